import logging
from datetime import timezone

from sqlalchemy import func, select

from classes.progress_manager import ProgressManager
from classes.quiz_manager import QuizManager
from models import db
from models.file_progress import FileProgress
from models.quiz_questions import QuizQuestion
from models.task_assignments import TaskAssignment
from models.task_files import TaskFile
from models.tasks import Task
from models.users import User
from utils.errors import Forbidden, InvalidState, NotFound, ValidationFailed
from utils.helpers import utcnow

logger = logging.getLogger(__name__)

NULLABLE_TASK_FIELDS = ("description", "deadline")


def _naive_utc(value):
    # deadlines are stored as naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class TaskManager:
    @staticmethod
    def get_or_404(task_id):
        task = db.session.get(Task, task_id)
        if not task:
            raise NotFound("Task not found")
        return task

    @staticmethod
    def _resolve_users(user_ids):
        user_ids = list(dict.fromkeys(str(user_id) for user_id in user_ids))
        if not user_ids:
            return []
        found = {row for row in db.session.scalars(select(User.id).where(User.id.in_(user_ids)))}
        missing = [user_id for user_id in user_ids if user_id not in found]
        if missing:
            raise ValidationFailed(f"assignmentIds: unknown user {missing[0]}")
        return user_ids

    @staticmethod
    def create(data, admin_id):
        if data.assignment_type == "all":
            user_ids = db.session.scalars(
                select(User.id).where(User.status == "active", User.role == "user")
            ).all()
        else:
            user_ids = TaskManager._resolve_users(data.assignment_ids)

        task = Task(
            title=data.title,
            description=data.description,
            deadline=_naive_utc(data.deadline),
            passing_score=data.passing_score,
            strict_mode=data.strict_mode,
            enable_quiz=data.enable_quiz,
            created_by=admin_id,
            status="draft",
        )
        db.session.add(task)
        db.session.flush()

        for user_id in user_ids:
            db.session.add(TaskAssignment(task_id=task.id, user_id=user_id, assigned_by=admin_id))

        db.session.commit()
        logger.info("Task %s created by %s with %d assignments", task.id, admin_id, len(user_ids))
        return task

    @staticmethod
    def list(user_id, admin, query):
        stmt = select(Task)
        if not admin:
            stmt = stmt.join(TaskAssignment, TaskAssignment.task_id == Task.id).where(
                TaskAssignment.user_id == user_id, Task.status == "published"
            )
        if query.status:
            stmt = stmt.where(Task.status == query.status)
        if query.search:
            stmt = stmt.where(Task.title.ilike(f"%{query.search}%"))
        stmt = stmt.order_by(Task.created_at.desc())

        page = db.paginate(stmt, page=query.page, per_page=query.limit, error_out=False)
        meta = {
            "total": page.total,
            "page": query.page,
            "limit": query.limit,
            "totalPages": page.pages,
        }
        return [task.to_dict() for task in page.items], meta

    @staticmethod
    def detail(task_id, user_id, admin):
        task = TaskManager.get_or_404(task_id)
        if not admin and not task.is_published:
            raise Forbidden("You cannot view this task")

        data = task.to_dict()
        data["files"] = [task_file.to_dict() for task_file in task.files]
        data["assignments"] = [assignment.to_dict() for assignment in task.assignments]
        data["quiz_questions"] = [question.to_dict(include_answer=admin) for question in task.questions]
        if not admin:
            data["progress"] = ProgressManager.for_task(user_id, task.id)
        return data

    @staticmethod
    def update(task_id, data):
        task = TaskManager.get_or_404(task_id)
        changes = data.model_dump(exclude_unset=True)

        new_status = changes.pop("status", None)
        if new_status and new_status != task.status:
            if not task.can_transition_to(new_status):
                raise ValidationFailed(f"status: cannot change from {task.status} to {new_status}")
            task.status = new_status

        if "deadline" in changes:
            changes["deadline"] = _naive_utc(changes["deadline"])
        for field, value in changes.items():
            if value is None and field not in NULLABLE_TASK_FIELDS:
                continue
            setattr(task, field, value)

        db.session.commit()
        return task

    @staticmethod
    def delete(task_id):
        task = TaskManager.get_or_404(task_id)
        storage_keys = [task_file.storage_key for task_file in task.files]
        db.session.delete(task)
        db.session.commit()
        logger.info("Task %s deleted", task_id)
        return storage_keys

    @staticmethod
    def add_file(task_id, data):
        task = TaskManager.get_or_404(task_id)
        next_order = db.session.scalar(
            select(func.coalesce(func.max(TaskFile.order) + 1, 0)).where(TaskFile.task_id == task.id)
        )
        task_file = TaskFile(
            task_id=task.id,
            title=data.title,
            storage_key=data.storage_key,
            file_type=data.file_type,
            file_size=data.file_size,
            total_pages=data.total_pages if data.file_type != "video" else None,
            duration=data.duration if data.file_type == "video" else None,
            order=next_order,
        )
        db.session.add(task_file)
        db.session.commit()
        return task_file

    @staticmethod
    def remove_file(task_id, file_id):
        task_file = TaskFile.query.filter_by(id=file_id, task_id=task_id).first()
        if not task_file:
            raise NotFound("File not found in this task")
        storage_key = task_file.storage_key
        db.session.delete(task_file)
        db.session.commit()
        return storage_key

    @staticmethod
    def reorder_files(task_id, file_ids):
        task = TaskManager.get_or_404(task_id)
        file_ids = [str(file_id) for file_id in file_ids]
        files = {task_file.id: task_file for task_file in task.files}
        if len(file_ids) != len(set(file_ids)) or set(file_ids) != set(files):
            raise ValidationFailed("fileIds: must list every file of the task exactly once")

        for position, file_id in enumerate(file_ids):
            files[file_id].order = position
        db.session.commit()
        return [files[file_id].to_dict() for file_id in file_ids]

    @staticmethod
    def set_assignments(task_id, user_ids, admin_id):
        task = TaskManager.get_or_404(task_id)
        wanted = TaskManager._resolve_users(user_ids)

        current = {assignment.user_id: assignment for assignment in task.assignments}
        for user_id, assignment in current.items():
            if user_id not in wanted:
                db.session.delete(assignment)
        for user_id in wanted:
            if user_id not in current:
                db.session.add(TaskAssignment(task_id=task.id, user_id=user_id, assigned_by=admin_id))

        db.session.commit()
        db.session.refresh(task)
        return [assignment.to_dict() for assignment in task.assignments]

    @staticmethod
    def add_question(task_id, data):
        task = TaskManager.get_or_404(task_id)
        order = data.order
        if order is None:
            order = db.session.scalar(
                select(func.coalesce(func.max(QuizQuestion.order) + 1, 0)).where(QuizQuestion.task_id == task.id)
            )
        question = QuizQuestion(
            task_id=task.id,
            question=data.question,
            options=data.options,
            correct_answer=data.correct_answer,
            order=order,
        )
        db.session.add(question)
        db.session.commit()
        return question

    @staticmethod
    def get_question(task_id, question_id):
        question = QuizQuestion.query.filter_by(id=question_id, task_id=task_id).first()
        if not question:
            raise NotFound("Question not found in this task")
        return question

    @staticmethod
    def update_question(task_id, question_id, data):
        question = TaskManager.get_question(task_id, question_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        options = changes.get("options", question.options)
        correct_answer = changes.get("correct_answer", question.correct_answer)
        if correct_answer >= len(options):
            raise ValidationFailed("correctAnswer must index one of the options")

        for field, value in changes.items():
            setattr(question, field, value)
        db.session.commit()
        return question

    @staticmethod
    def delete_question(task_id, question_id):
        question = TaskManager.get_question(task_id, question_id)
        db.session.delete(question)
        db.session.commit()

    @staticmethod
    def complete(task_id, user_id):
        """Mark the caller's assignment done once every requirement is met."""
        task = TaskManager.get_or_404(task_id)
        if not task.is_published:
            raise InvalidState("Task is not published")
        if task.deadline and task.deadline < utcnow():
            raise ValidationFailed("The task deadline has passed")

        assignment = TaskAssignment.query.filter_by(task_id=task_id, user_id=user_id).first()
        if not assignment:
            raise Forbidden("You are not assigned to this task")
        if assignment.is_completed:
            raise ValidationFailed("Task already completed")

        file_ids = [task_file.id for task_file in task.files]
        if file_ids:
            completed = set(db.session.scalars(
                select(FileProgress.file_id).where(
                    FileProgress.user_id == user_id,
                    FileProgress.file_id.in_(file_ids),
                    FileProgress.completed_at.is_not(None),
                )
            ))
            remaining = len([file_id for file_id in file_ids if file_id not in completed])
            if remaining:
                raise ValidationFailed(f"{remaining} file(s) not completed yet")

        if task.enable_quiz:
            submission = QuizManager.latest(task_id, user_id)
            if not submission:
                raise ValidationFailed("Complete the quiz first")
            if not submission.passed:
                raise ValidationFailed("Quiz not passed")

        assignment.is_completed = True
        assignment.submitted_at = utcnow()
        db.session.commit()
        logger.info("Task %s completed by %s", task_id, user_id)
        return assignment
