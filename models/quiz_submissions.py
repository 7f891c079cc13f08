from models import db, new_id
from utils.helpers import format_datetime


class QuizSubmission(db.Model):
    """One graded attempt. Rows are never updated after insert."""

    __tablename__ = "quiz_submissions"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    task_id = db.Column(db.String(36), db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    attempt = db.Column(db.Integer, nullable=False, default=1)
    score = db.Column(db.Integer, nullable=False)
    passed = db.Column(db.Boolean, nullable=False)
    passing_score = db.Column(db.Integer, nullable=False)
    total_questions = db.Column(db.Integer, nullable=False)
    correct_answers = db.Column(db.Integer, nullable=False)
    answers = db.Column(db.JSON, nullable=False)
    submitted_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    __table_args__ = (
        db.UniqueConstraint("task_id", "user_id", "attempt", name="uq_quiz_submission_attempt"),
    )

    def to_dict(self):
        return {
            "submissionId": self.id,
            "taskId": self.task_id,
            "attempt": self.attempt,
            "score": self.score,
            "passed": self.passed,
            "passingScore": self.passing_score,
            "totalQuestions": self.total_questions,
            "correctAnswers": self.correct_answers,
            "submittedAt": format_datetime(self.submitted_at),
        }
