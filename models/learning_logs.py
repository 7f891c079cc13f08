from models import db, new_id


class LearningLog(db.Model):
    """Append-only record of every reported learning event."""

    __tablename__ = "learning_logs"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    file_id = db.Column(db.String(36), db.ForeignKey("task_files.id", ondelete="CASCADE"), nullable=False)
    task_id = db.Column(db.String(36), db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    log_type = db.Column(db.String(10), nullable=False)  # 'paged', 'timed'
    position = db.Column(db.Integer, nullable=False)
    extent = db.Column(db.Integer, nullable=False)
    action = db.Column(db.String(20), nullable=False)
    session_duration = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
