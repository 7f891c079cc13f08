from models import db, new_id


class QuizQuestion(db.Model):
    __tablename__ = "quiz_questions"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    task_id = db.Column(db.String(36), db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    question = db.Column(db.Text, nullable=False)
    options = db.Column(db.JSON, nullable=False)
    correct_answer = db.Column(db.Integer, nullable=False)  # index into options
    order = db.Column(db.Integer, nullable=False, default=0)

    task = db.relationship("Task", back_populates="questions")

    def to_dict(self, include_answer=False):
        data = {
            "id": self.id,
            "question": self.question,
            "options": self.options,
            "order": self.order,
        }
        if include_answer:
            data["correct_answer"] = self.correct_answer
        return data
