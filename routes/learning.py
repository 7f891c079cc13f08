from flask import Blueprint, g, request

from classes.progress_manager import ProgressEvent, ProgressManager
from classes.validators import ProgressReportSchema, parse_body
from models import db
from models.users import User
from utils.errors import NotFound
from utils.helpers import success_response
from utils.utils import login_required, require_admin

learning_bp = Blueprint("learning", __name__)


@learning_bp.route("/progress", methods=["POST"])
@login_required
def report_progress():
    """Merge one learning event into the caller's progress for a file."""
    data = parse_body(ProgressReportSchema)
    event = ProgressEvent(
        user_id=g.user_id,
        file_id=str(data.file_id),
        task_id=str(data.task_id),
        position=data.position,
        action_kind=data.action_kind,
        extent=data.extent,
        session_duration_delta=data.session_duration_delta,
    )
    return success_response(ProgressManager.record(event))


@learning_bp.route("/progress/<file_id>", methods=["GET"])
@login_required
def get_progress(file_id):
    return success_response(ProgressManager.get(g.user_id, file_id))


@learning_bp.route("/summary", methods=["GET"])
@login_required
def summary():
    user_id = request.args.get("userId")
    if user_id and user_id != g.user_id:
        require_admin(g.user_id)
        if not db.session.get(User, user_id):
            raise NotFound("User not found")
    else:
        user_id = g.user_id
    return success_response(ProgressManager.summary(user_id))
