import logging
from dataclasses import dataclass

from sqlalchemy import and_, func, select

from classes.validators import PAGED_ACTIONS, TIMED_ACTIONS
from models import db, new_id
from models.file_progress import FileProgress
from models.learning_logs import LearningLog
from models.quiz_submissions import QuizSubmission
from models.task_assignments import TaskAssignment
from models.task_files import TaskFile
from models.tasks import Task
from utils.errors import Forbidden, InvalidState, NotFound, ValidationFailed

logger = logging.getLogger(__name__)

# Videos count as watched once this share of the duration is reached
TIMED_COMPLETION_RATIO = 0.95


def progress_percent(position, extent):
    """Percentage of ``extent`` covered by ``position``, clamped to [0, 100]."""
    if not extent or extent <= 0:
        return 0.0
    return round(max(0.0, min(position / extent * 100, 100.0)), 2)


def is_completed(timed, position, extent):
    if not extent or extent <= 0:
        return False
    if timed:
        return position >= TIMED_COMPLETION_RATIO * extent
    return position >= extent


def resolve_extent(task_file, reported):
    """Pages come from the stored document, durations preferably from the player."""
    if task_file.is_timed:
        return reported or task_file.duration or 0
    return task_file.total_pages or reported or 0


@dataclass(frozen=True)
class ProgressEvent:
    user_id: str
    file_id: str
    task_id: str
    position: int
    action_kind: str
    extent: int = None
    session_duration_delta: int = 0


def _upsert_statement(dialect_name, values):
    """INSERT ... ON CONFLICT merge for file_progress, keyed on (user_id, file_id).

    On conflict effective_time is incremented, completed_at keeps the first
    non-null value and position/extent/progress/last_accessed are replaced.
    """
    table = FileProgress.__table__

    if dialect_name in ("mysql", "mariadb"):
        from sqlalchemy.dialects.mysql import insert

        stmt = insert(table).values(**values)
        new = stmt.inserted
        return stmt.on_duplicate_key_update([
            ("position", new.position),
            ("extent", new.extent),
            ("progress", new.progress),
            ("effective_time", table.c.effective_time + new.effective_time),
            ("last_accessed", func.now()),
            ("completed_at", func.coalesce(table.c.completed_at, new.completed_at)),
        ])

    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise RuntimeError(f"Progress upsert is not supported on {dialect_name}")

    stmt = insert(table).values(**values)
    new = stmt.excluded
    return stmt.on_conflict_do_update(
        index_elements=[table.c.user_id, table.c.file_id],
        set_={
            "position": new.position,
            "extent": new.extent,
            "progress": new.progress,
            "effective_time": table.c.effective_time + new.effective_time,
            "last_accessed": func.now(),
            "completed_at": func.coalesce(table.c.completed_at, new.completed_at),
        },
    )


def _merged_view(row):
    return {
        "position": row["position"],
        "extent": row["extent"],
        "progressPercent": row["progress"],
        "effectiveTime": row["effective_time"],
        "isCompleted": row["completed_at"] is not None,
    }


class ProgressManager:
    @staticmethod
    def load_target(task_id, file_id, user_id):
        """Task and file a progress report refers to, after precondition checks."""
        task = db.session.get(Task, task_id)
        if not task:
            raise NotFound("Task not found")
        if not task.is_published:
            raise InvalidState("Task is not published")

        task_file = TaskFile.query.filter_by(id=file_id, task_id=task_id).first()
        if not task_file:
            raise NotFound("File not found in this task")

        if not TaskAssignment.query.filter_by(task_id=task_id, user_id=user_id).first():
            raise Forbidden("You are not assigned to this task")
        return task, task_file

    @staticmethod
    def record(event):
        """Fold one reported learning event into the user's progress for a file."""
        task, task_file = ProgressManager.load_target(event.task_id, event.file_id, event.user_id)

        allowed = TIMED_ACTIONS if task_file.is_timed else PAGED_ACTIONS
        if event.action_kind not in allowed:
            raise ValidationFailed(
                f"actionKind: '{event.action_kind}' does not apply to {task_file.file_type} files"
            )

        extent = resolve_extent(task_file, event.extent)
        percent = progress_percent(event.position, extent)
        completed_now = is_completed(task_file.is_timed, event.position, extent)

        values = {
            "id": new_id(),
            "user_id": event.user_id,
            "file_id": task_file.id,
            "task_id": task.id,
            "position": event.position,
            "extent": extent,
            "progress": percent,
            "effective_time": event.session_duration_delta,
            "started_at": func.now(),
            "last_accessed": func.now(),
            "completed_at": func.now() if completed_now else None,
        }

        dialect = db.session.get_bind().dialect
        stmt = _upsert_statement(dialect.name, values)
        returning = bool(getattr(dialect, "insert_returning", False))
        if returning:
            stmt = stmt.returning(*FileProgress.__table__.c)

        try:
            result = db.session.execute(stmt)
            if returning:
                row = result.mappings().one()
            else:
                row = db.session.execute(
                    select(FileProgress.__table__).where(and_(
                        FileProgress.user_id == event.user_id,
                        FileProgress.file_id == task_file.id,
                    ))
                ).mappings().one()

            db.session.add(LearningLog(
                user_id=event.user_id,
                file_id=task_file.id,
                task_id=task.id,
                log_type="timed" if task_file.is_timed else "paged",
                position=event.position,
                extent=extent,
                action=event.action_kind,
                session_duration=event.session_duration_delta,
            ))
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        logger.debug(
            "Progress merged user=%s file=%s position=%s/%s",
            event.user_id, task_file.id, event.position, extent,
        )
        return _merged_view(row)

    @staticmethod
    def get(user_id, file_id):
        record = FileProgress.query.filter_by(user_id=user_id, file_id=file_id).first()
        if not record:
            raise NotFound("No progress recorded for this file")
        return record.to_dict()

    @staticmethod
    def for_task(user_id, task_id):
        records = FileProgress.query.filter_by(user_id=user_id, task_id=task_id).all()
        return {record.file_id: record.to_dict() for record in records}

    @staticmethod
    def summary(user_id):
        """Learning statistics across every task assigned to ``user_id``."""
        assigned_task_ids = select(TaskAssignment.task_id).where(TaskAssignment.user_id == user_id)

        total_tasks = db.session.scalar(
            select(func.count(TaskAssignment.id)).where(TaskAssignment.user_id == user_id)
        ) or 0
        completed_tasks = db.session.scalar(
            select(func.count(TaskAssignment.id)).where(
                TaskAssignment.user_id == user_id, TaskAssignment.is_completed.is_(True)
            )
        ) or 0
        total_files = db.session.scalar(
            select(func.count(TaskFile.id)).where(TaskFile.task_id.in_(assigned_task_ids))
        ) or 0

        started_files, completed_files, effective_time = db.session.execute(
            select(
                func.count(FileProgress.id),
                func.count(FileProgress.completed_at),
                func.coalesce(func.sum(FileProgress.effective_time), 0),
            ).where(FileProgress.user_id == user_id)
        ).one()

        attempts, average_score = db.session.execute(
            select(
                func.count(QuizSubmission.id),
                func.avg(QuizSubmission.score),
            ).where(QuizSubmission.user_id == user_id)
        ).one()
        passed_tasks = db.session.scalar(
            select(func.count(func.distinct(QuizSubmission.task_id))).where(
                QuizSubmission.user_id == user_id, QuizSubmission.passed.is_(True)
            )
        ) or 0

        return {
            "totalTasks": total_tasks,
            "completedTasks": completed_tasks,
            "files": {
                "total": total_files,
                "started": started_files,
                "completed": completed_files,
            },
            "effectiveTime": int(effective_time or 0),
            "quiz": {
                "attempts": attempts,
                "passedTasks": passed_tasks,
                "averageScore": round(float(average_score), 2) if average_score is not None else None,
            },
        }
