from models import db, new_id
from utils.helpers import format_datetime


class FileProgress(db.Model):
    """Per (user, file) consumption state.

    ``position``/``extent`` are pages for paged documents and seconds for
    video. ``effective_time`` only ever grows and ``completed_at`` is never
    cleared once set; both are maintained by ProgressManager's upsert.
    """

    __tablename__ = "file_progress"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    file_id = db.Column(db.String(36), db.ForeignKey("task_files.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = db.Column(db.String(36), db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    extent = db.Column(db.Integer, nullable=False, default=0)
    progress = db.Column(db.Float, nullable=False, default=0.0)
    effective_time = db.Column(db.Integer, nullable=False, default=0)
    started_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    last_accessed = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("user_id", "file_id", name="uq_file_progress_user_file"),
    )

    @property
    def is_completed(self):
        return self.completed_at is not None

    def to_dict(self):
        return {
            "fileId": self.file_id,
            "taskId": self.task_id,
            "position": self.position,
            "extent": self.extent,
            "progressPercent": self.progress,
            "effectiveTime": self.effective_time,
            "isCompleted": self.is_completed,
            "startedAt": format_datetime(self.started_at),
            "lastAccessed": format_datetime(self.last_accessed),
            "completedAt": format_datetime(self.completed_at),
        }
