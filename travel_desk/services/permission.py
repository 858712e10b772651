"""
Role / capability gate.

Roles are a closed set and are not ranked: ADMIN reaches a queue only because
each queue table lists it explicitly.  Which decision actions an actor can
issue follows from which queue routes the actor can reach; there is no
separate per-action ACL.

Usage:
    from travel_desk.services.permission import allows, check_queue_access

    if allows(actor.roles, QUEUE_ROLES["reviewer"]):
        ...
    check_queue_access(actor, "minister")   # raises UnauthorizedError
"""

from travel_desk.core.exceptions import UnauthorizedError
from travel_desk.models.application import (
    ACTION_APPROVED,
    ACTION_MINISTER_APPROVED,
    ACTION_MINISTER_REJECTED,
    ACTION_REFERRED,
    ACTION_REJECTED,
    ACTION_REQUEST_INFO,
    ACTION_SUBMITTED,
)

ROLE_USER = "USER"
ROLE_REVIEWER = "REVIEWER"
ROLE_MINISTER = "MINISTER"
ROLE_ADMIN = "ADMIN"

# Queue → roles that may view it.
QUEUE_ROLES = {
    "reviewer": frozenset({ROLE_REVIEWER, ROLE_ADMIN}),
    "minister": frozenset({ROLE_MINISTER, ROLE_ADMIN}),
    "admin": frozenset({ROLE_ADMIN}),
}

# Decision action → queue whose routes issue it.
ACTION_QUEUE = {
    ACTION_APPROVED: "reviewer",
    ACTION_REJECTED: "reviewer",
    ACTION_REQUEST_INFO: "reviewer",
    ACTION_REFERRED: "reviewer",
    ACTION_MINISTER_APPROVED: "minister",
    ACTION_MINISTER_REJECTED: "minister",
    ACTION_SUBMITTED: None,        # requester-owned, checked by ownership
}

# Roles that may read any application (not only their own).
APPLICATION_READ_ROLES = frozenset({ROLE_REVIEWER, ROLE_MINISTER, ROLE_ADMIN})


def allows(role_set, required_roles) -> bool:
    """True iff the two role collections intersect."""
    return bool(set(role_set or ()) & set(required_roles or ()))


def can_access_queue(actor, queue: str) -> bool:
    if actor is None:
        return False
    return allows(actor.roles, QUEUE_ROLES.get(queue, ()))


def check_queue_access(actor, queue: str) -> None:
    """
    Assert the actor reaches ``queue``; raise UnauthorizedError if not.

    Raises:
        UnauthorizedError: unknown queue or no intersecting role.
    """
    if not can_access_queue(actor, queue):
        raise UnauthorizedError(getattr(actor, "id", None), queue)


def can_read_application(actor, application) -> bool:
    """Requesters see their own applications; reviewers, ministers and admins see all."""
    if actor is None:
        return False
    if application.requester_id == actor.id:
        return True
    return allows(actor.roles, APPLICATION_READ_ROLES)


def actions_for(queue: str) -> frozenset:
    """Decision actions issued through ``queue``'s routes."""
    return frozenset(a for a, q in ACTION_QUEUE.items() if q == queue)


def queues_for(role_set) -> list[str]:
    """Queue names reachable by a role set, sorted."""
    return sorted(q for q, roles in QUEUE_ROLES.items() if allows(role_set, roles))
