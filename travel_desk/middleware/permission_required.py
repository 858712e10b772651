"""
Permission Decorators — role-gate decorators for route protection.

Usage:
    @bp.route("/queue", methods=["GET"])
    @require_queue("reviewer")
    def reviewer_queue():
        actor = g.actor
        ...

    @bp.route("/", methods=["GET"])
    @require_actor
    def list_mine():
        ...

No identity → 401.  Identity whose roles miss the queue → 403.
"""

import functools
import logging

from flask import g

from travel_desk.services.permission import can_access_queue
from travel_desk.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def require_actor(f):
    """Decorator: require an authenticated identity."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "actor", None) is None:
            return api_error(E.UNAUTHENTICATED, "Authentication required")
        return f(*args, **kwargs)
    return decorated


def require_queue(queue: str):
    """
    Decorator: require the actor's roles to reach ``queue``.

    Args:
        queue: Key of ``QUEUE_ROLES`` ("reviewer", "minister", "admin").
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            actor = getattr(g, "actor", None)
            if actor is None:
                return api_error(E.UNAUTHENTICATED, "Authentication required")
            if not can_access_queue(actor, queue):
                logger.warning(
                    "Actor %s denied: '%s' queue on %s",
                    actor.id, queue, f.__name__,
                    extra={"event_type": "access_denied", "actor_id": actor.id},
                )
                return api_error(E.FORBIDDEN, "Permission denied", details={"queue": queue})
            return f(*args, **kwargs)
        return decorated
    return decorator
