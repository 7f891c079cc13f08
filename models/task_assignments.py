from models import db, new_id
from utils.helpers import format_datetime


class TaskAssignment(db.Model):
    __tablename__ = "task_assignments"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    task_id = db.Column(db.String(36), db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    assigned_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    submitted_at = db.Column(db.DateTime, nullable=True)

    task = db.relationship("Task", back_populates="assignments")
    user = db.relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        db.UniqueConstraint("task_id", "user_id", name="uq_task_assignment"),
    )

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "assigned_at": format_datetime(self.assigned_at),
            "is_completed": self.is_completed,
            "submitted_at": format_datetime(self.submitted_at),
        }
