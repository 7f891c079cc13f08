import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from models import db
from models.quiz_questions import QuizQuestion
from models.quiz_submissions import QuizSubmission
from models.task_assignments import TaskAssignment
from models.tasks import Task
from utils.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationFailed
from utils.helpers import round_half_up_percent

logger = logging.getLogger(__name__)


def grade(questions, answers):
    """Count correct answers; unanswered questions count as wrong.

    ``answers`` maps question id to the selected option index.
    """
    correct = 0
    for question in questions:
        if answers.get(question.id) == question.correct_answer:
            correct += 1
    return correct


class QuizManager:
    @staticmethod
    def questions_for(task_id):
        return QuizQuestion.query.filter_by(task_id=task_id).order_by(QuizQuestion.order).all()

    @staticmethod
    def submit(task_id, user_id, answers):
        """Grade a full answer set and store it as a new attempt.

        ``answers`` is a list of ``(question_id, selected_index)`` pairs. The
        pass mark is the task's passing score at this moment; stored
        submissions are never re-graded.
        """
        task = db.session.get(Task, task_id)
        if not task:
            raise NotFound("Task not found")
        if not task.is_published:
            raise InvalidState("Task is not published")
        if not TaskAssignment.query.filter_by(task_id=task_id, user_id=user_id).first():
            raise Forbidden("You are not assigned to this task")

        questions = QuizManager.questions_for(task_id)
        if not task.enable_quiz or not questions:
            raise ValidationFailed("This task has no quiz")

        known_ids = {question.id for question in questions}
        submitted = {}
        for question_id, selected_index in answers:
            if question_id not in known_ids:
                raise ValidationFailed(f"answers: unknown question {question_id}")
            if question_id in submitted:
                raise ValidationFailed(f"answers: question {question_id} answered twice")
            submitted[question_id] = selected_index

        correct = grade(questions, submitted)
        total = len(questions)
        score = round_half_up_percent(correct, total)
        passed = score >= task.passing_score

        previous_attempts = db.session.scalar(
            select(func.count(QuizSubmission.id)).where(
                QuizSubmission.task_id == task_id, QuizSubmission.user_id == user_id
            )
        ) or 0

        submission = QuizSubmission(
            task_id=task_id,
            user_id=user_id,
            attempt=previous_attempts + 1,
            score=score,
            passed=passed,
            passing_score=task.passing_score,
            total_questions=total,
            correct_answers=correct,
            answers=[
                {"questionId": question_id, "selectedIndex": index}
                for question_id, index in submitted.items()
            ],
        )
        db.session.add(submission)
        try:
            db.session.commit()
        except IntegrityError as e:
            # another attempt was stored between counting and inserting
            db.session.rollback()
            raise Conflict("Another submission for this quiz is being processed") from e

        logger.info(
            "Quiz submitted task=%s user=%s attempt=%s score=%s passed=%s",
            task_id, user_id, submission.attempt, score, passed,
        )
        return {
            "submissionId": submission.id,
            "score": score,
            "passed": passed,
            "correctAnswers": correct,
            "totalQuestions": total,
            "attempt": submission.attempt,
            "passingScore": task.passing_score,
        }

    @staticmethod
    def latest(task_id, user_id):
        return (
            QuizSubmission.query
            .filter_by(task_id=task_id, user_id=user_id)
            .order_by(QuizSubmission.attempt.desc())
            .first()
        )
