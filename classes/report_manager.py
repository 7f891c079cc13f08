from sqlalchemy import and_, case, func, select

from models import db
from models.file_progress import FileProgress
from models.quiz_submissions import QuizSubmission
from models.task_assignments import TaskAssignment
from models.task_files import TaskFile
from models.tasks import Task
from models.users import User
from utils.helpers import round_half_up_percent


def _average(value):
    return round(float(value), 2) if value is not None else None


def _latest_submissions():
    """Each user's most recent attempt per task."""
    latest = (
        select(
            QuizSubmission.task_id,
            QuizSubmission.user_id,
            func.max(QuizSubmission.attempt).label("attempt"),
        )
        .group_by(QuizSubmission.task_id, QuizSubmission.user_id)
        .subquery()
    )
    return and_(
        QuizSubmission.task_id == latest.c.task_id,
        QuizSubmission.user_id == latest.c.user_id,
        QuizSubmission.attempt == latest.c.attempt,
    ), latest


class ReportManager:
    @staticmethod
    def tasks():
        completed_case = case((TaskAssignment.is_completed.is_(True), 1), else_=0)
        assignment_counts = {
            task_id: (assigned, completed or 0)
            for task_id, assigned, completed in db.session.execute(
                select(
                    TaskAssignment.task_id,
                    func.count(TaskAssignment.id),
                    func.sum(completed_case),
                ).group_by(TaskAssignment.task_id)
            )
        }

        on_latest, latest = _latest_submissions()
        average_scores = dict(db.session.execute(
            select(QuizSubmission.task_id, func.avg(QuizSubmission.score))
            .join(latest, on_latest)
            .group_by(QuizSubmission.task_id)
        ).all())

        report = []
        for task in Task.query.order_by(Task.created_at.desc()).all():
            assigned, completed = assignment_counts.get(task.id, (0, 0))
            report.append({
                "taskId": task.id,
                "title": task.title,
                "status": task.status,
                "assigned": assigned,
                "completed": completed,
                "completionRate": round_half_up_percent(completed, assigned),
                "averageScore": _average(average_scores.get(task.id)),
            })
        return report

    @staticmethod
    def users():
        completed_case = case((TaskAssignment.is_completed.is_(True), 1), else_=0)
        task_counts = {
            user_id: (assigned, completed or 0)
            for user_id, assigned, completed in db.session.execute(
                select(
                    TaskAssignment.user_id,
                    func.count(TaskAssignment.id),
                    func.sum(completed_case),
                ).group_by(TaskAssignment.user_id)
            )
        }

        on_latest, latest = _latest_submissions()
        average_scores = dict(db.session.execute(
            select(QuizSubmission.user_id, func.avg(QuizSubmission.score))
            .join(latest, on_latest)
            .group_by(QuizSubmission.user_id)
        ).all())

        effective_times = dict(db.session.execute(
            select(FileProgress.user_id, func.sum(FileProgress.effective_time))
            .group_by(FileProgress.user_id)
        ).all())

        report = []
        for user in User.query.filter_by(role="user").order_by(User.username).all():
            assigned, completed = task_counts.get(user.id, (0, 0))
            report.append({
                "userId": user.id,
                "username": user.username,
                "name": user.name,
                "tasksAssigned": assigned,
                "tasksCompleted": completed,
                "averageScore": _average(average_scores.get(user.id)),
                "effectiveTime": int(effective_times.get(user.id) or 0),
            })
        return report

    @staticmethod
    def files(task_id):
        completed_case = case((FileProgress.completed_at.is_not(None), 1), else_=0)
        stats = {
            file_id: (started, completed or 0, average)
            for file_id, started, completed, average in db.session.execute(
                select(
                    FileProgress.file_id,
                    func.count(FileProgress.id),
                    func.sum(completed_case),
                    func.avg(FileProgress.progress),
                )
                .where(FileProgress.task_id == task_id)
                .group_by(FileProgress.file_id)
            )
        }

        report = []
        for task_file in TaskFile.query.filter_by(task_id=task_id).order_by(TaskFile.order).all():
            started, completed, average = stats.get(task_file.id, (0, 0, None))
            report.append({
                "fileId": task_file.id,
                "title": task_file.title,
                "fileType": task_file.file_type,
                "started": started,
                "completed": completed,
                "averageProgress": _average(average),
            })
        return report
