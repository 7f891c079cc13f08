import logging
from datetime import timedelta

from flask import Blueprint, current_app, g, make_response
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from classes.validators import LoginSchema, RegisterSchema, parse_body
from models import db
from models.users import User
from utils.errors import Conflict, TooManyAttempts, Unauthenticated
from utils.helpers import success_response, utcnow
from utils.tokens import issue_token, revoke_token
from utils.utils import clear_session_cookie, current_token, login_required, set_session_cookie

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth_bp', __name__)

MAX_FAILED_LOGINS = 5
LOCKOUT_PERIOD = timedelta(minutes=30)


def register_failed_login(user):
    """Count a failed password check against the stored counter and lock the
    account once it reaches MAX_FAILED_LOGINS."""
    db.session.execute(
        update(User)
        .where(User.id == user.id)
        .values(failed_login_attempts=User.failed_login_attempts + 1)
    )
    locked = db.session.execute(
        update(User)
        .where(User.id == user.id, User.failed_login_attempts >= MAX_FAILED_LOGINS)
        .values(failed_login_attempts=0, locked_until=utcnow() + LOCKOUT_PERIOD)
    )
    db.session.commit()
    if locked.rowcount:
        logger.warning("Account %s locked after repeated failed logins", user.username)


# Register
@auth_bp.route('/register', methods=['POST'])
def register():
    data = parse_body(RegisterSchema)

    if User.query.filter_by(username=data.username).first():
        raise Conflict("Username already exists")

    user = User(username=data.username, name=data.name, role="user")
    user.set_password(data.password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise Conflict("Username already exists") from e

    logger.info("User registered: %s", user.username)
    return success_response(user.to_dict(), status=201)


# Login
@auth_bp.route('/login', methods=['POST'])
def login():
    data = parse_body(LoginSchema)
    user = User.query.filter_by(username=data.username).first()

    if user and user.locked_until and user.locked_until > utcnow():
        raise TooManyAttempts()

    if not user or not user.check_password(data.password):
        if user:
            register_failed_login(user)
        logger.debug("Failed login for %s", data.username)
        raise Unauthenticated("Invalid username or password")

    if not user.is_active:
        raise Unauthenticated("Account is disabled")

    user.failed_login_attempts = 0
    user.locked_until = None
    db.session.commit()

    token = issue_token(user.id, current_app.config["SESSION_SECRET"])
    response = make_response(*success_response({"user": user.to_dict(), "token": token}))
    return set_session_cookie(response, token)


# Logout
@auth_bp.route('/logout', methods=['POST'])
def logout():
    revoke_token(current_token())
    response = make_response(*success_response({"message": "Logout successful"}))
    return clear_session_cookie(response)


# Current user
@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    user = db.session.get(User, g.user_id)
    return success_response(user.to_dict())
