from models import db, new_id

PAGED_FILE_TYPES = ("pdf", "docx", "xlsx", "pptx")
TIMED_FILE_TYPES = ("video",)
FILE_TYPES = PAGED_FILE_TYPES + TIMED_FILE_TYPES


class TaskFile(db.Model):
    __tablename__ = "task_files"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    task_id = db.Column(db.String(36), db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    storage_key = db.Column(db.String(512), nullable=False)
    file_type = db.Column(db.String(20), nullable=False)
    file_size = db.Column(db.BigInteger, nullable=False, default=0)
    total_pages = db.Column(db.Integer, nullable=True)   # paged documents
    duration = db.Column(db.Integer, nullable=True)      # video, seconds
    order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    task = db.relationship("Task", back_populates="files")

    @property
    def is_timed(self):
        return self.file_type in TIMED_FILE_TYPES

    @property
    def stored_extent(self):
        return (self.duration if self.is_timed else self.total_pages) or 0

    def __repr__(self):
        return f"<TaskFile {self.title} ({self.file_type})>"

    def to_dict(self):
        return {
            "id": self.id,
            "task_id": self.task_id,
            "title": self.title,
            "storage_key": self.storage_key,
            "file_type": self.file_type,
            "file_size": self.file_size,
            "total_pages": self.total_pages,
            "duration": self.duration,
            "order": self.order,
        }
