"""Application error taxonomy and the JSON error handlers.

Every error a service raises derives from :class:`AppError` and knows its HTTP
status. Routes never build error responses themselves; they let the error
propagate and :func:`register_error_handlers` renders ``{"error": message}``.
"""
from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, **self.extra}


# 400
class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class InvalidReportKind(ValidationError):
    default_message = "Report kinds do not match (expected a lost and a found report)"


# 401
class AuthenticationError(AppError):
    status_code = 401
    default_message = "Unauthorized - token required"


class InvalidToken(AuthenticationError):
    default_message = "Unauthorized - invalid or expired token"


# 403
class AuthorizationError(AppError):
    status_code = 403
    default_message = "Forbidden - insufficient role"


class SelfDeleteForbidden(AuthorizationError):
    default_message = "You cannot delete your own account"


# 404
class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ReportNotFound(NotFoundError):
    default_message = "Report not found"


class MatchNotFound(NotFoundError):
    default_message = "Match not found"


class ClaimNotFound(NotFoundError):
    default_message = "Claim not found"


class UserNotFound(NotFoundError):
    default_message = "User not found"


class CategoryNotFound(NotFoundError):
    default_message = "Category not found"


# 409
class ConflictError(AppError):
    status_code = 409
    default_message = "Conflicting state"


class AlreadyMatched(ConflictError):
    default_message = "Report is already matched"


class AlreadyClaimed(ConflictError):
    default_message = "Match has already been claimed"


class MatchAlreadyClaimed(AlreadyClaimed):
    default_message = "Match has been claimed and can no longer be changed"


class InconsistentReportState(ConflictError):
    default_message = "Report status does not allow this operation"


class HasDependents(ConflictError):
    default_message = "Record is still referenced by other records"


class EmailAlreadyInUse(ConflictError):
    default_message = "Email already in use"


# 5xx
class DependencyError(AppError):
    status_code = 502
    default_message = "Upstream service failed"


class UploadFailed(DependencyError):
    default_message = "Failed to store attachment"


class IdentityProviderError(DependencyError):
    default_message = "Identity provider request failed"


class InternalError(AppError):
    status_code = 500


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def _app_error(err: AppError):
        if err.status_code >= 500:
            logger.error("%s: %s", type(err).__name__, err.message)
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        return jsonify({"error": err.description or err.name}), err.code or 500

    @app.errorhandler(Exception)
    def _unexpected(err: Exception):
        logger.exception("Unhandled error")
        return jsonify({"error": InternalError.default_message}), 500
