"""
Decision Log Service — append-only audit trail per application.

Design decisions:
    - DecisionEntry is APPEND-ONLY.  ``append`` adds to the caller's unit of
      work without committing, so the workflow commits the entry and the
      status write together.
    - Entries are never deduplicated: repeating the same action by the same
      actor produces a second, distinct entry.
    - ``sequence`` (max + 1 per application, unique) fixes insertion order.
      Two concurrent appends for the same application cannot both commit the
      same position.
    - Timestamps never go backwards within one application's log, even if the
      wall clock does: ``next_timestamp`` clamps to the last entry.
    - The log is authoritative.  ``derive_state`` replays it through the
      transition table to recompute the scalar cache on the application.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select

from travel_desk.models import db
from travel_desk.models.application import (
    APPLICATION_TRANSITIONS,
    ARCHIVING_ACTIONS,
    ACTION_REFERRED,
    DECIDING_ACTIONS,
    STATUS_DRAFT,
    STATUS_IN_REVIEW,
    STATUS_SUBMITTED,
    TravelApplication,
)
from travel_desk.models.decision import DecisionEntry
from travel_desk.utils.helpers import as_utc, flush_or_raise

logger = logging.getLogger(__name__)


def _last_entry(application_id: str) -> DecisionEntry | None:
    return db.session.execute(
        select(DecisionEntry)
        .where(DecisionEntry.application_id == application_id)
        .order_by(DecisionEntry.sequence.desc())
        .limit(1)
    ).scalar_one_or_none()


def _next_sequence(application_id: str) -> int:
    current_max = db.session.execute(
        select(func.max(DecisionEntry.sequence))
        .where(DecisionEntry.application_id == application_id)
    ).scalar()
    return (current_max or 0) + 1


def next_timestamp(application_id: str, now: datetime | None = None) -> datetime:
    """Return ``now`` (UTC) clamped so it is not earlier than the last entry."""
    now = as_utc(now) or datetime.now(timezone.utc)
    last = _last_entry(application_id)
    if last is not None:
        last_ts = as_utc(last.timestamp)
        if last_ts and last_ts > now:
            return last_ts
    return now


def append(
    application: TravelApplication,
    action: str,
    actor,
    note: str | None = None,
    timestamp: datetime | None = None,
) -> DecisionEntry:
    """Stage one new entry at the end of the application's log.

    The actor's name and email are copied into the entry.  The caller owns
    the commit.

    Returns:
        The pending DecisionEntry (flushed, so ``id`` and ``sequence`` are set).

    Raises:
        PersistenceFailure: another entry already holds this position.
    """
    entry = DecisionEntry(
        application_id=application.id,
        sequence=_next_sequence(application.id),
        action=action,
        actor_id=str(actor.id),
        actor_name=actor.full_name,
        actor_email=actor.email or "",
        note=note,
        timestamp=timestamp or next_timestamp(application.id),
    )
    db.session.add(entry)
    flush_or_raise(f"append {action} to {application.id}")
    return entry


def list_for(application_id: str) -> list[DecisionEntry]:
    """All entries of one application, in insertion order."""
    return list(db.session.execute(
        select(DecisionEntry)
        .where(DecisionEntry.application_id == application_id)
        .order_by(DecisionEntry.sequence.asc())
    ).scalars().all())


def history(application_id: str) -> list[dict]:
    """Serialised log for API responses, oldest first."""
    return [e.to_dict() for e in list_for(application_id)]


def latest_for(application_id: str, actions=None) -> DecisionEntry | None:
    """Most recent entry, optionally restricted to a set of actions."""
    stmt = select(DecisionEntry).where(DecisionEntry.application_id == application_id)
    if actions:
        stmt = stmt.where(DecisionEntry.action.in_(list(actions)))
    return db.session.execute(
        stmt.order_by(DecisionEntry.sequence.desc()).limit(1)
    ).scalar_one_or_none()


def application_ids_decided_by(actor_id: str, actions=None) -> list[str]:
    """Ids of applications whose log holds an entry by ``actor_id``."""
    stmt = select(DecisionEntry.application_id).where(DecisionEntry.actor_id == str(actor_id))
    if actions:
        stmt = stmt.where(DecisionEntry.action.in_(list(actions)))
    return list(dict.fromkeys(db.session.execute(stmt).scalars().all()))


def derive_state(entries) -> dict:
    """Replay a log and return the scalar fields it implies.

    Opening a SUBMITTED application is not logged, so a reviewer action
    recorded after SUBMITTED implies the IN_REVIEW step.  Entries that are not
    legal from the replayed status are reported in ``anomalies`` and skipped.

    Returns:
        {"status", "decided_at", "archived_at", "minister_email", "anomalies"}
    """
    status = STATUS_DRAFT
    decided_at = archived_at = minister_email = None
    anomalies: list[str] = []

    for entry in entries:
        rule = APPLICATION_TRANSITIONS.get(entry.action)
        if rule is None:
            anomalies.append(f"#{entry.sequence}: unknown action {entry.action}")
            continue
        if status == STATUS_SUBMITTED and STATUS_IN_REVIEW in rule["from"]:
            status = STATUS_IN_REVIEW
        if status not in rule["from"]:
            anomalies.append(f"#{entry.sequence}: {entry.action} not legal from {status}")
            continue
        status = rule["to"]
        ts = as_utc(entry.timestamp)
        if entry.action in DECIDING_ACTIONS:
            decided_at = ts
        if entry.action in ARCHIVING_ACTIONS:
            archived_at = ts
        if entry.action == ACTION_REFERRED:
            minister_email = entry.note

    return {
        "status": status,
        "decided_at": decided_at,
        "archived_at": archived_at,
        "minister_email": minister_email,
        "anomalies": anomalies,
    }
