"""Shared utility functions for services and blueprints.

parse_date:       lenient date parsing (returns None on bad input)
as_utc:           normalise naive datetimes read back from SQLite
commit_or_raise:  commit the session, converting store errors to PersistenceFailure
flush_or_raise:   flush pending rows, same conversion (constraints fire here)
"""
import logging
from datetime import date, datetime, timezone

from sqlalchemy.exc import SQLAlchemyError

from travel_desk.core.exceptions import PersistenceFailure
from travel_desk.models import db

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY / DD/MM/YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY and DD/MM/YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except (ValueError, TypeError):
        pass
    for fmt in ("%d.%m.%Y", "%d/%m/%Y"):
        try:
            return datetime.strptime(str(value), fmt).date()
        except (ValueError, TypeError):
            continue
    return None


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def commit_or_raise(context: str) -> None:
    """Commit the current session or roll back and raise PersistenceFailure.

    The whole unit of work (status write + log append) is discarded on error,
    so nothing from a failed operation is observable afterwards.
    """
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error during %s", context)
        raise PersistenceFailure(f"{context} failed: {exc.__class__.__name__}") from exc


def flush_or_raise(context: str) -> None:
    """Flush pending rows or roll back and raise PersistenceFailure.

    Unique constraints are checked at flush, before the commit, so a losing
    concurrent append fails here.
    """
    try:
        db.session.flush()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error during %s", context)
        raise PersistenceFailure(f"{context} failed: {exc.__class__.__name__}") from exc
