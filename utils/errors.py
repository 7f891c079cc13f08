import logging

from pydantic import ValidationError as PydanticValidationError
from werkzeug.exceptions import HTTPException

from utils.helpers import error_response

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


class ApiError(Exception):
    """Base class for errors that map onto a client-facing HTTP status."""

    status_code = 400
    default_message = "Bad request"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(ApiError):
    status_code = 400
    default_message = "Validation failed"


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "Not authenticated"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Admin privileges required"


class InvalidState(ApiError):
    status_code = 403
    default_message = "Operation not allowed in the current state"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Conflict"


class TooManyAttempts(ApiError):
    status_code = 429
    default_message = "Too many attempts"


class StorageError(ApiError):
    status_code = 500
    default_message = GENERIC_ERROR_MESSAGE


def first_error_message(exc):
    """Return the first violated field constraint of a pydantic ValidationError."""
    errors = exc.errors()
    if not errors:
        return ValidationFailed.default_message
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "__root__")
    message = first.get("msg", ValidationFailed.default_message)
    # custom validators raise ValueError("..."), pydantic prefixes it
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{location}: {message}" if location else message


def _rollback():
    from models import db
    db.session.rollback()


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(exc):
        # a rejected request must not leave pending changes on the session
        _rollback()
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message)
            return error_response(GENERIC_ERROR_MESSAGE, exc.status_code)
        return error_response(exc.message, exc.status_code)

    @app.errorhandler(PydanticValidationError)
    def handle_validation_error(exc):
        return error_response(first_error_message(exc), 400)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc):
        return error_response(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        logger.exception("Unhandled error while processing request")
        _rollback()
        return error_response(GENERIC_ERROR_MESSAGE, 500)

    return app


__all__ = [
    "ApiError",
    "ValidationFailed",
    "Unauthenticated",
    "Forbidden",
    "InvalidState",
    "NotFound",
    "Conflict",
    "TooManyAttempts",
    "StorageError",
    "first_error_message",
    "register_error_handlers",
]
