from functools import wraps

from flask import current_app, g, request

from config import SESSION_COOKIE_NAME, SESSION_LIFETIME
from models import db
from models.users import User
from utils.errors import Forbidden, Unauthenticated
from utils.tokens import verify_token


def current_token():
    """Session token from the cookie, or from an ``Authorization: Bearer`` header."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if token:
        return token

    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def authenticate():
    """Resolve the calling user's id or raise Unauthenticated."""
    user_id = verify_token(current_token(), current_app.config["SESSION_SECRET"])
    if not user_id:
        raise Unauthenticated()

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise Unauthenticated()
    return user_id


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.user_id = authenticate()
        return f(*args, **kwargs)

    return decorated_function


def require_admin(user_id):
    """Re-read the stored role; authentication alone never grants admin rights."""
    user = db.session.get(User, user_id)
    if user is None or user.role != "admin":
        raise Forbidden()
    return user


def admin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.user_id = authenticate()
        g.user = require_admin(g.user_id)
        return f(*args, **kwargs)

    return decorated_function


def is_admin(user_id):
    user = db.session.get(User, user_id)
    return user is not None and user.role == "admin"


def set_session_cookie(response, token):
    response.set_cookie(
        SESSION_COOKIE_NAME, token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", True),
        samesite="Lax",
        path="/",
        max_age=int(SESSION_LIFETIME.total_seconds()),
    )
    return response


def clear_session_cookie(response):
    response.set_cookie(
        SESSION_COOKIE_NAME, "",
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", True),
        samesite="Lax",
        path="/",
        max_age=0,
        expires=0,
    )
    return response
