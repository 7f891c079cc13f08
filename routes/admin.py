import logging

from flask import Blueprint, g, request
from sqlalchemy.exc import IntegrityError

from classes.report_manager import ReportManager
from classes.task_manager import TaskManager
from classes.validators import UserCreateSchema, UserUpdateSchema, parse_body
from models import db
from models.users import User
from utils.errors import Conflict, NotFound, ValidationFailed
from utils.helpers import success_response
from utils.utils import admin_required

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)


def get_user_or_404(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("User not found")
    return user


def _commit_user():
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise Conflict("Username already exists") from e

#__________________________________________________________________________________________ * Users *__________________________________________________

@admin_bp.route("/users", methods=["GET"])
@admin_required
def list_users():
    users = User.query.order_by(User.created_at.desc()).all()
    return success_response([user.to_dict() for user in users])


@admin_bp.route("/users", methods=["POST"])
@admin_required
def add_user():
    """Admin can add a learner or another admin."""
    data = parse_body(UserCreateSchema)
    if User.query.filter_by(username=data.username).first():
        raise Conflict("Username already exists")

    user = User(username=data.username, name=data.name, role=data.role)
    user.set_password(data.password)
    db.session.add(user)
    _commit_user()

    logger.info("User %s (%s) created by %s", user.username, user.role, g.user_id)
    return success_response(user.to_dict(), status=201)


@admin_bp.route("/users/<user_id>", methods=["PATCH"])
@admin_required
def update_user(user_id):
    user = get_user_or_404(user_id)
    data = parse_body(UserUpdateSchema)

    if user.id == g.user_id and (data.role == "user" or data.status == "disabled"):
        raise ValidationFailed("You cannot demote or disable your own account")

    if data.username and data.username != user.username:
        if User.query.filter_by(username=data.username).first():
            raise Conflict("Username already exists")
        user.username = data.username
    if data.name:
        user.name = data.name
    if data.role:
        user.role = data.role
    if data.status:
        user.status = data.status
    if data.password:
        user.set_password(data.password)
        user.failed_login_attempts = 0
        user.locked_until = None

    _commit_user()
    return success_response(user.to_dict())


@admin_bp.route("/users/<user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id):
    user = get_user_or_404(user_id)
    if user.id == g.user_id:
        raise ValidationFailed("You cannot delete your own account")

    db.session.delete(user)
    db.session.commit()
    logger.info("User %s deleted by %s", user_id, g.user_id)
    return success_response({"message": "User deleted"})

#__________________________________________________________________________________________ * Reports *__________________________________________________

@admin_bp.route("/reports/tasks", methods=["GET"])
@admin_required
def task_report():
    return success_response(ReportManager.tasks())


@admin_bp.route("/reports/users", methods=["GET"])
@admin_required
def user_report():
    return success_response(ReportManager.users())


@admin_bp.route("/reports/files", methods=["GET"])
@admin_required
def file_report():
    task_id = request.args.get("taskId")
    if not task_id:
        raise ValidationFailed("taskId: Field required")
    TaskManager.get_or_404(task_id)
    return success_response(ReportManager.files(task_id))
