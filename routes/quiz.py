from flask import Blueprint, g

from classes.quiz_manager import QuizManager
from classes.validators import QuizSubmitSchema, parse_body
from utils.errors import NotFound
from utils.helpers import success_response
from utils.utils import login_required

quiz_bp = Blueprint("quiz", __name__)


@quiz_bp.route("/submit", methods=["POST"])
@login_required
def submit_quiz():
    data = parse_body(QuizSubmitSchema)
    answers = [(str(answer.question_id), answer.selected_index) for answer in data.answers]
    result = QuizManager.submit(str(data.task_id), g.user_id, answers)
    return success_response(result, status=201)


@quiz_bp.route("/<task_id>/result", methods=["GET"])
@login_required
def latest_result(task_id):
    submission = QuizManager.latest(task_id, g.user_id)
    if not submission:
        raise NotFound("No quiz submission for this task")
    return success_response(submission.to_dict())
