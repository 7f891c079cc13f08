from models import db, new_id
from utils.helpers import format_datetime

TASK_STATUSES = ("draft", "published", "completed", "archived", "deadline_passed", "deleted")

# Allowed status changes for an existing task
STATE_TRANSITIONS = {
    "draft": ("published", "deleted"),
    "published": ("archived", "deleted", "deadline_passed", "completed"),
    "deadline_passed": ("archived",),
    "archived": ("deleted",),
    "completed": ("archived", "deleted"),
    "deleted": (),
}


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    deadline = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="draft")
    passing_score = db.Column(db.Integer, nullable=False, default=100)
    strict_mode = db.Column(db.Boolean, nullable=False, default=True)
    enable_quiz = db.Column(db.Boolean, nullable=False, default=False)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, nullable=True, onupdate=db.func.now())

    creator = db.relationship("User")
    files = db.relationship(
        "TaskFile", back_populates="task", order_by="TaskFile.order",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    assignments = db.relationship(
        "TaskAssignment", back_populates="task", cascade="all, delete-orphan", passive_deletes=True
    )
    questions = db.relationship(
        "QuizQuestion", back_populates="task", order_by="QuizQuestion.order",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    @property
    def is_published(self):
        return self.status == "published"

    def can_transition_to(self, new_status):
        return new_status in STATE_TRANSITIONS.get(self.status, ())

    def __repr__(self):
        return f"<Task {self.title} ({self.status})>"

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "deadline": format_datetime(self.deadline),
            "status": self.status,
            "passing_score": self.passing_score,
            "strict_mode": self.strict_mode,
            "enable_quiz": self.enable_quiz,
            "created_by": {
                "id": self.created_by,
                "name": self.creator.name if self.creator else None,
            },
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
            "file_count": len(self.files),
            "assignment_count": len(self.assignments),
        }
