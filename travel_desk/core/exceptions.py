"""
Travel Desk exception hierarchy.

Services raise these types; ``utils.errors.register_error_handlers`` maps
each one to a stable HTTP status and machine-readable code once, so every
blueprint reports the same failure the same way.

Usage:
    from travel_desk.core.exceptions import NotFoundError, InvalidTransitionError

    raise NotFoundError(resource="Application", resource_id=app_id)
    raise InvalidTransitionError(application_number, action, status)
"""


class TravelDeskError(Exception):
    """Base class.  ``code`` is the stable error kind callers switch on."""

    code = "ERR_INTERNAL"


class NotFoundError(TravelDeskError):
    """Raised when a requested entity does not exist or is not visible to the actor.

    Args:
        resource: Human-readable entity name (e.g. "Application").
        resource_id: The key that was looked up.  Logged, echoed in the message.
    """

    code = "ERR_NOT_FOUND"

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(TravelDeskError):
    """Raised when well-formed input violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown; keys are field names.
    """

    code = "ERR_VALIDATION_INVALID"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidTransitionError(TravelDeskError):
    """Raised when an action is not legal from the application's current status."""

    code = "ERR_INVALID_TRANSITION"

    def __init__(self, application_number: str, action: str, current: str,
                 reason: str | None = None) -> None:
        msg = f"Cannot '{action}' application {application_number} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.application_number = application_number
        self.action = action
        self.current_status = current
        self.reason = reason


class MissingReferralTargetError(TravelDeskError):
    """Raised when a minister referral has no usable minister email in its note."""

    code = "ERR_MISSING_REFERRAL_TARGET"

    def __init__(self, note: str | None = None) -> None:
        if note:
            msg = f"Referral target {note!r} is not a valid email address"
        else:
            msg = "Minister email is required for referral"
        super().__init__(msg)
        self.note = note


class UnauthorizedError(TravelDeskError):
    """Raised when the actor's role set does not reach the requested queue."""

    code = "ERR_FORBIDDEN"

    def __init__(self, actor_id: str | None, queue: str) -> None:
        super().__init__(f"Actor {actor_id} may not access the '{queue}' queue")
        self.actor_id = actor_id
        self.queue = queue


class NotificationFailure(TravelDeskError):
    """Raised by the mail transport.  Contained by the dispatcher, logged only."""

    code = "ERR_NOTIFICATION"


class PersistenceFailure(TravelDeskError):
    """Raised when the store rejects a write; the enclosing operation is aborted."""

    code = "ERR_DATABASE"
