"""
Field Operations Platform
Blueprint registry and shared blueprint helpers.

Every blueprint calls ``register_error_handlers(bp)`` so service exceptions
map to the same HTTP responses everywhere:

    NotFoundError        → 404
    ValidationError      → 422 (with field details)
    ConflictError        → 409 (context keys merged into the body)
    AuthenticationError  → 401
    AuthorizationError   → 403
    DocumentRenderError  → 502
    anything else        → 500, logged with traceback
"""

import logging

from flask import request
from werkzeug.exceptions import HTTPException

from fieldops.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DocumentRenderError,
    NotFoundError,
    ValidationError,
)
from fieldops.models import db
from fieldops.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def json_body() -> dict:
    """Request JSON as a dict; a non-object body is treated as empty."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _rollback() -> None:
    """Discard partial writes left by a service call that raised."""
    db.session.rollback()


def register_error_handlers(bp):
    """Attach the shared service-exception handlers to ``bp``."""

    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        _rollback()
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        _rollback()
        code = E.ALREADY_SUBMITTED if error.context.get("view") == "already_submitted" else E.CONFLICT_DUPLICATE
        return api_error(code, str(error), **error.context)

    @bp.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error: AuthenticationError):
        return api_error(E.UNAUTHENTICATED, str(error) or "Authentication required")

    @bp.errorhandler(AuthorizationError)
    def _handle_forbidden(error: AuthorizationError):
        extra = {"required_role": error.required_role} if error.required_role else {}
        return api_error(E.FORBIDDEN, str(error), **extra)

    @bp.errorhandler(DocumentRenderError)
    def _handle_render(error: DocumentRenderError):
        logger.error(
            "Document render failed: %s", error,
            extra={"job_id": error.job_id, "kind": error.kind, "operation": "render"},
        )
        return api_error(E.DOCUMENT_RENDER, "Document could not be generated", kind=error.kind)

    @bp.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        _rollback()
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")

    return bp
