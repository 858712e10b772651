"""
Workflow Engine — the single writer of application status.

Every status change goes through here, together with its decision log
entry, in one transaction:

    submit           DRAFT → SUBMITTED                       (logged)
    open_for_review  SUBMITTED → IN_REVIEW, first opener owns it (not logged)
    decide           reviewer actions from IN_REVIEW         (logged)
    minister_decide  minister actions from REFERRED_TO_MINISTER (logged)

Checks run in a fixed order so a rejected call never touches the store:
unknown action → referral target → application exists → transition legal.

Role checks are not made here; blueprints gate each route with
``require_queue`` before calling in.  Notifications are dispatched only
after the commit and cannot fail the decision.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select, update

from travel_desk.core.exceptions import (
    InvalidTransitionError,
    MissingReferralTargetError,
    NotFoundError,
    ValidationError,
)
from travel_desk.models import db
from travel_desk.models.application import (
    ACTION_REFERRED,
    ACTION_SUBMITTED,
    ARCHIVED_STATUSES,
    ARCHIVING_ACTIONS,
    CLOSED_STATUSES,
    DECIDING_ACTIONS,
    STATUS_IN_REVIEW,
    STATUS_SUBMITTED,
    TravelApplication,
    validate_transition,
)
from travel_desk.services import decision_log
from travel_desk.services.notification import NotificationDispatcher
from travel_desk.services.permission import actions_for
from travel_desk.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)


def get_application(application_id: str) -> TravelApplication:
    application = db.session.get(TravelApplication, application_id)
    if application is None:
        raise NotFoundError(resource="Application", resource_id=application_id)
    return application


def _clean_note(note) -> str | None:
    if note is None:
        return None
    note = str(note).strip()
    return note or None


def validate_referral_target(note: str | None) -> str:
    """The referral note must be the minister's email address.

    Raises:
        MissingReferralTargetError: empty note or not an email address.
    """
    if not note:
        raise MissingReferralTargetError()
    try:
        validate_email(note, check_deliverability=False)
    except EmailNotValidError as exc:
        raise MissingReferralTargetError(note) from exc
    return note


def _apply(application: TravelApplication, action: str, actor, note: str | None):
    """Validate, append and write status in one transaction.  Returns the entry."""
    result = validate_transition(application.status, action)
    if not result["valid"]:
        raise InvalidTransitionError(
            application.application_number, action, application.status, result["reason"],
        )

    now = decision_log.next_timestamp(application.id, datetime.now(timezone.utc))
    entry = decision_log.append(application, action, actor, note=note, timestamp=now)

    previous = application.status
    application.status = result["to"]
    if action == ACTION_SUBMITTED:
        application.submitted_at = now
    if action == ACTION_REFERRED:
        application.minister_email = note
    if action in DECIDING_ACTIONS:
        application.decided_at = now
    if action in ARCHIVING_ACTIONS:
        application.archived_at = now

    commit_or_raise(f"{action} on {application.application_number}")

    logger.info(
        "Application %s: %s → %s by %s",
        application.application_number, previous, application.status, actor.id,
        extra={"event_type": "decision", "application_id": application.id,
               "action": action, "actor_id": actor.id},
    )
    return entry


def _decide(application_id: str, action: str, actor, note, queue: str) -> TravelApplication:
    allowed = actions_for(queue)
    if action not in allowed:
        raise ValidationError(
            f"Invalid action: {action}",
            details={"action": f"must be one of {sorted(allowed)}"},
        )
    note = _clean_note(note)
    if action == ACTION_REFERRED:
        validate_referral_target(note)

    application = get_application(application_id)
    entry = _apply(application, action, actor, note)

    NotificationDispatcher.notify_decision(
        application, action, note=note,
        reviewer_name=entry.actor_name, reviewer_email=entry.actor_email,
    )
    return application


def decide(application_id: str, action: str, actor, note: str | None = None) -> TravelApplication:
    """Apply a reviewer decision (APPROVED, REJECTED, REQUEST_INFO, REFERRED_TO_MINISTER).

    Raises:
        ValidationError: ``action`` is not a reviewer action.
        MissingReferralTargetError: referral without a minister email.
        NotFoundError: unknown application.
        InvalidTransitionError: the application is not IN_REVIEW.
        PersistenceFailure: the store rejected the write; nothing changed.
    """
    return _decide(application_id, action, actor, note, "reviewer")


def minister_decide(application_id: str, action: str, actor, note: str | None = None) -> TravelApplication:
    """Apply a minister decision to a REFERRED_TO_MINISTER application."""
    return _decide(application_id, action, actor, note, "minister")


def submit(application_id: str, actor) -> TravelApplication:
    """Move the actor's own DRAFT to SUBMITTED and notify.

    Other people's applications are reported as not found.
    """
    application = get_application(application_id)
    if application.requester_id != actor.id:
        raise NotFoundError(resource="Application", resource_id=application_id)
    _apply(application, ACTION_SUBMITTED, actor, None)
    NotificationDispatcher.notify_submission(application)
    return application


def open_for_review(application_id: str, actor) -> TravelApplication:
    """Claim a SUBMITTED application for ``actor``.

    Only the first opener wins: the update is conditional on the status
    still being SUBMITTED, so a later or concurrent opener changes nothing
    and sees the application as it is.  Any other status is returned as is.
    """
    application = get_application(application_id)
    if application.status != STATUS_SUBMITTED:
        return application

    result = db.session.execute(
        update(TravelApplication)
        .where(TravelApplication.id == application.id,
               TravelApplication.status == STATUS_SUBMITTED)
        .values(status=STATUS_IN_REVIEW, current_reviewer_id=actor.id,
                updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    commit_or_raise(f"open {application.application_number}")
    db.session.refresh(application)

    if result.rowcount:
        logger.info(
            "Application %s opened for review by %s",
            application.application_number, actor.id,
            extra={"event_type": "open_for_review", "application_id": application.id,
                   "actor_id": actor.id},
        )
    return application


# ── Queues ───────────────────────────────────────────────────────────────────


def list_queue(statuses) -> list[TravelApplication]:
    """Applications in any of ``statuses``, newest submission first."""
    return list(db.session.execute(
        select(TravelApplication)
        .where(TravelApplication.status.in_(list(statuses)))
        .order_by(TravelApplication.submitted_at.desc(), TravelApplication.created_at.desc())
    ).scalars().all())


def list_archived(application_ids=None) -> list[TravelApplication]:
    """Approved applications (ARCHIVED or MINISTER_APPROVED), most recently archived first."""
    stmt = select(TravelApplication).where(TravelApplication.status.in_(ARCHIVED_STATUSES))
    if application_ids is not None:
        stmt = stmt.where(TravelApplication.id.in_(list(application_ids)))
    return list(db.session.execute(
        stmt.order_by(TravelApplication.archived_at.desc())
    ).scalars().all())


def list_closed(application_ids=None) -> list[TravelApplication]:
    """Every closed application, approved or rejected, most recently decided first."""
    stmt = select(TravelApplication).where(TravelApplication.status.in_(CLOSED_STATUSES))
    if application_ids is not None:
        stmt = stmt.where(TravelApplication.id.in_(list(application_ids)))
    return list(db.session.execute(
        stmt.order_by(TravelApplication.decided_at.desc())
    ).scalars().all())


def list_decided_by(actor_id: str, actions) -> list[TravelApplication]:
    """Closed applications on which ``actor_id`` recorded one of ``actions``."""
    ids = decision_log.application_ids_decided_by(actor_id, actions)
    if not ids:
        return []
    return list_closed(ids)


# ── Consistency ──────────────────────────────────────────────────────────────


def reconcile(application_id: str) -> dict:
    """Rewrite the application's status cache from its decision log.

    Opened-but-undecided applications keep IN_REVIEW, since opening is not
    logged.

    Returns:
        {"application_id", "changed": {field: [old, new]}, "anomalies": [...]}
    """
    application = get_application(application_id)
    derived = decision_log.derive_state(decision_log.list_for(application.id))

    target_status = derived["status"]
    if target_status == STATUS_SUBMITTED and application.status == STATUS_IN_REVIEW:
        target_status = STATUS_IN_REVIEW

    changed = {}
    for field, value in (
        ("status", target_status),
        ("decided_at", derived["decided_at"]),
        ("archived_at", derived["archived_at"]),
        ("minister_email", derived["minister_email"]),
    ):
        current = getattr(application, field)
        if field.endswith("_at"):
            same = (current is None and value is None) or (
                current is not None and value is not None
                and current.replace(tzinfo=None) == value.replace(tzinfo=None)
            )
        else:
            same = current == value
        if not same:
            changed[field] = [str(current) if current else None, str(value) if value else None]
            setattr(application, field, value)

    if changed:
        commit_or_raise(f"reconcile {application.application_number}")
        logger.warning(
            "Application %s status cache rewritten from decision log",
            application.application_number,
            extra={"event_type": "reconcile", "application_id": application.id},
        )
    return {"application_id": application.id, "changed": changed,
            "anomalies": derived["anomalies"]}
