# gradelab/errors.py
"""
Error taxonomy for the API.

Every error a handler can raise on purpose derives from ``ApiError`` and is
rendered by ``register_error_handlers`` as the standard envelope
``{"success": false, "message": ...}`` with the matching status code.
"""
import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None, *, status_code=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(ApiError):
    status_code = 401
    default_message = "Authentication required"


class PermissionDenied(ApiError):
    status_code = 403
    default_message = "You are not allowed to perform this action"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Conflict"


class TransitionError(ConflictError):
    """Requested status change is not allowed from the upload's current status."""

    default_message = "Status transition not allowed"

    def __init__(self, current, target, message=None):
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot move upload from '{current}' to '{target}'")


class RateLimitExceeded(ApiError):
    status_code = 429
    default_message = "Too many attempts, try again later"

    def __init__(self, message=None, retry_after=None):
        super().__init__(message)
        self.retry_after = retry_after


class DownstreamFailure(ApiError):
    """The next pipeline stage could not be reached or refused the hand-off."""

    status_code = 502
    default_message = "Downstream service unavailable"


class PersistenceFailure(ApiError):
    status_code = 500
    default_message = "Database error"


def error_response(message, status_code, headers=None):
    resp = jsonify({"success": False, "message": message})
    resp.status_code = status_code
    if headers:
        resp.headers.update(headers)
    return resp


def register_error_handlers(app):
    from gradelab.models import db

    @app.errorhandler(ApiError)
    def _handle_api_error(err):
        headers = None
        if isinstance(err, RateLimitExceeded) and err.retry_after:
            headers = {"Retry-After": str(err.retry_after)}
        if err.status_code >= 500:
            logger.error("API error: %s", err.message)
        return error_response(err.message, err.status_code, headers)

    @app.errorhandler(SQLAlchemyError)
    def _handle_db_error(err):
        db.session.rollback()
        logger.exception("Database error")
        return error_response(PersistenceFailure.default_message, PersistenceFailure.status_code)

    @app.errorhandler(HTTPException)
    def _handle_http_error(err):
        return error_response(err.description or err.name, err.code or 500)

    @app.errorhandler(Exception)
    def _handle_unexpected(err):
        db.session.rollback()
        logger.exception("Unhandled error")
        return error_response(ApiError.default_message, 500)
