"""Standardised API error responses.

Usage
-----
    from travel_desk.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Application not found")
    return api_error(E.VALIDATION_REQUIRED, "action is required")

Service exceptions (``travel_desk.core.exceptions``) are converted by the
handlers installed in ``register_error_handlers``; blueprints only build
errors by hand for malformed input.
"""

from __future__ import annotations

import logging

from flask import jsonify

from travel_desk.core.exceptions import (
    InvalidTransitionError,
    MissingReferralTargetError,
    NotificationFailure,
    NotFoundError,
    PersistenceFailure,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400 / 422
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Workflow – HTTP 409 / 400
    INVALID_TRANSITION = "ERR_INVALID_TRANSITION"
    MISSING_REFERRAL_TARGET = "ERR_MISSING_REFERRAL_TARGET"

    # Permissions – HTTP 401 / 403
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Server – HTTP 500 / 502
    DATABASE = "ERR_DATABASE"
    NOTIFICATION = "ERR_NOTIFICATION"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 422,
    E.NOT_FOUND: 404,
    E.INVALID_TRANSITION: 409,
    E.MISSING_REFERRAL_TARGET: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.DATABASE: 500,
    E.NOTIFICATION: 502,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field errors, current status, ...).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def register_error_handlers(app):
    """Map service exceptions to JSON error responses app-wide."""

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @app.errorhandler(InvalidTransitionError)
    def _handle_invalid_transition(error: InvalidTransitionError):
        return api_error(
            E.INVALID_TRANSITION, str(error),
            details={"action": error.action, "current_status": error.current_status},
        )

    @app.errorhandler(MissingReferralTargetError)
    def _handle_missing_referral(error: MissingReferralTargetError):
        return api_error(E.MISSING_REFERRAL_TARGET, str(error))

    @app.errorhandler(UnauthorizedError)
    def _handle_unauthorized(error: UnauthorizedError):
        return api_error(E.FORBIDDEN, str(error))

    @app.errorhandler(PersistenceFailure)
    def _handle_persistence(error: PersistenceFailure):
        logger.error("Persistence failure: %s", error)
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(NotificationFailure)
    def _handle_notification(error: NotificationFailure):
        return api_error(E.NOTIFICATION, str(error))
