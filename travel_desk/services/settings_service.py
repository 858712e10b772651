"""
Settings store & migrator.

One JSON document, persisted under ``SETTINGS_KEY``.  Documents written by
older releases lack keys added since; ``heal`` fills them from the defaults
on read so callers always see a complete document.

    get_settings()                     → healed document (writes only if healing changed it)
    update_settings(partial, actor)    → merged + persisted document
    masked(document)                   → copy safe to return over HTTP

Secrets (``email.smtp.password``, ``ldap.bindCredentials``) are never echoed:
``masked`` swaps them for ``MASKED``, and an update carrying ``MASKED`` or an
empty value keeps the stored secret.
"""

from __future__ import annotations

import copy
import logging

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from travel_desk.core.exceptions import PersistenceFailure, ValidationError
from travel_desk.models import db
from travel_desk.models.settings import SETTINGS_KEY, SystemSettingsRecord
from travel_desk.services.email_templates import DEFAULT_TEMPLATES
from travel_desk.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)

MASKED = "***MASKED***"

SECRET_PATHS = (
    ("email", "smtp", "password"),
    ("ldap", "bindCredentials"),
)

DEFAULT_EXPENSE_TYPES = [
    "Airfare",
    "Accommodation",
    "Meals",
    "Transportation",
    "Registration Fee",
    "Visa",
    "Insurance",
    "Other",
]


def default_settings() -> dict:
    """A fresh copy of the default document.  SMTP is seeded from MAIL_* config."""
    cfg = current_app.config if has_app_context() else {}
    sender = cfg.get("MAIL_DEFAULT_SENDER") or ""
    return {
        "email": {
            "smtp": {
                "host": cfg.get("MAIL_SERVER") or "",
                "port": int(cfg.get("MAIL_PORT") or 587),
                "username": cfg.get("MAIL_USERNAME") or "",
                "password": cfg.get("MAIL_PASSWORD") or "",
                "from": sender or "Travel Desk <no-reply@example.com>",
                "fromName": "Travel Desk",
                "replyTo": sender or "no-reply@example.com",
                "secure": True,
            },
            "notifications": {
                "enabled": True,
                "applicationSubmitted": True,
                "applicationApproved": True,
                "applicationRejected": True,
                "notifyApplicantOnSubmission": True,
                "reviewerRecipients": [],
            },
            "templates": copy.deepcopy(DEFAULT_TEMPLATES),
        },
        "workflow": {
            "defaultReviewDeadlineDays": 7,
            "autoEscalationEnabled": True,
            "minCostForAdditionalApproval": 5000,
            "maxTravellersPerApplication": 10,
            "maxTravelDurationDays": 30,
        },
        "uploads": {
            "maxFileSizeMB": 10,
            "allowedFileTypes": ["pdf", "doc", "docx", "xls", "xlsx", "jpg", "jpeg", "png"],
            "retentionDays": 365,
        },
        "security": {
            "minPasswordLength": 8,
            "passwordExpirationDays": 90,
            "sessionTimeoutMinutes": 60,
        },
        "system": {
            "maintenanceMode": False,
            "maintenanceMessage": "The system is currently under maintenance. Please try again later.",
            "auditLogRetentionDays": 730,
        },
        "application": {
            "expenseTypes": list(DEFAULT_EXPENSE_TYPES),
        },
        "ldap": {
            "enabled": False,
            "url": "ldap://localhost:389",
            "bindDN": "",
            "bindCredentials": "",
            "searchBase": "dc=example,dc=com",
            "searchFilter": "(uid={{username}})",
        },
    }


# ── Healing ──────────────────────────────────────────────────────────────────


def _fill_missing(target: dict, defaults: dict) -> bool:
    changed = False
    for key, default_value in defaults.items():
        if target.get(key) is None:
            target[key] = copy.deepcopy(default_value)
            changed = True
        elif isinstance(default_value, dict):
            if isinstance(target[key], dict):
                changed = _fill_missing(target[key], default_value) or changed
            else:
                target[key] = copy.deepcopy(default_value)
                changed = True
    return changed


def heal(document, defaults: dict | None = None) -> tuple[dict, bool]:
    """Complete ``document`` against the defaults.  Pure; the input is not mutated.

    Every key missing at any depth is filled from the defaults, and an
    ``application.expenseTypes`` that is not a non-empty list is replaced.
    Keys unknown to the defaults are kept as they are.

    Returns:
        (healed document, whether anything had to change)
    """
    defaults = defaults if defaults is not None else default_settings()
    if isinstance(document, dict):
        healed = copy.deepcopy(document)
        changed = _fill_missing(healed, defaults)
    else:
        healed, changed = copy.deepcopy(defaults), True

    expense_types = healed["application"].get("expenseTypes")
    if not isinstance(expense_types, list) or not expense_types:
        healed["application"]["expenseTypes"] = list(defaults["application"]["expenseTypes"])
        changed = True
    return healed, changed


# ── Persistence ──────────────────────────────────────────────────────────────


def _persist(document: dict, updated_by: str = "system") -> None:
    """Upsert the settings row.  Raises PersistenceFailure on store errors."""
    record = db.session.get(SystemSettingsRecord, SETTINGS_KEY)
    if record is None:
        record = SystemSettingsRecord(key=SETTINGS_KEY)
        db.session.add(record)
    record.value = copy.deepcopy(document)
    record.updated_by = updated_by or "system"
    commit_or_raise("settings save")


def _persist_quietly(document: dict) -> None:
    try:
        _persist(document)
    except (PersistenceFailure, SQLAlchemyError):
        db.session.rollback()
        logger.warning("Could not persist healed settings; serving them unsaved",
                       exc_info=True, extra={"event_type": "settings_heal_failed"})


def get_settings() -> dict:
    """Return the current, fully healed settings document.

    Absent row → defaults are stored and returned.  A failing read returns
    the defaults without touching the store.
    """
    try:
        record = db.session.get(SystemSettingsRecord, SETTINGS_KEY)
        stored = copy.deepcopy(record.value) if record is not None else None
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Error reading settings; falling back to defaults")
        return default_settings()

    if stored is None:
        document = default_settings()
        _persist_quietly(document)
        logger.info("Settings initialised with defaults", extra={"event_type": "settings_init"})
        return document

    healed, changed = heal(stored)
    if changed:
        _persist_quietly(healed)
        logger.info("Settings healed with missing defaults", extra={"event_type": "settings_healed"})
    return healed


# ── Updates ──────────────────────────────────────────────────────────────────


def _check_type(path: str, value, default_value) -> None:
    if isinstance(default_value, bool):
        ok = isinstance(value, bool)
    elif isinstance(default_value, (int, float)):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    elif isinstance(default_value, str):
        ok = isinstance(value, str)
    elif isinstance(default_value, list):
        ok = isinstance(value, list)
    else:
        ok = True
    if not ok:
        raise ValidationError(
            f"Invalid value for {path}",
            details={path: f"expected {type(default_value).__name__}"},
        )


def _merge_into(target: dict, updates: dict, schema: dict, prefix: str = "") -> None:
    for key, value in updates.items():
        if key not in schema or value is None:
            continue
        path = f"{prefix}{key}"
        expected = schema[key]
        if isinstance(expected, dict):
            if not isinstance(value, dict):
                raise ValidationError(f"Invalid value for {path}", details={path: "expected object"})
            _merge_into(target.setdefault(key, {}), value, expected, prefix=f"{path}.")
        else:
            _check_type(path, value, expected)
            target[key] = copy.deepcopy(value)


def _dig(document, path):
    for part in path:
        if not isinstance(document, dict):
            return None
        document = document.get(part)
    return document


def _place(document: dict, path, value) -> None:
    for part in path[:-1]:
        document = document.setdefault(part, {})
    document[path[-1]] = value


def merge_settings(current: dict, updates: dict, schema: dict | None = None) -> dict:
    """Deep-merge ``updates`` over ``current``, restricted to known keys.

    Raises:
        ValidationError: a known key carries a value of the wrong type.
    """
    schema = schema if schema is not None else default_settings()
    merged = copy.deepcopy(current)
    _merge_into(merged, updates or {}, schema)

    for path in SECRET_PATHS:
        incoming = _dig(updates, path)
        if incoming in (None, "", MASKED):
            _place(merged, path, _dig(current, path) or "")
    return merged


def update_settings(partial: dict, actor_id: str | None = None) -> dict:
    """Merge ``partial`` into the stored document and persist it.

    Raises:
        ValidationError: ``partial`` is not an object or has mistyped values.
        PersistenceFailure: the store rejected the write.
    """
    if not isinstance(partial, dict):
        raise ValidationError("Settings update must be a JSON object")
    current = get_settings()
    merged = merge_settings(current, partial)
    _persist(merged, updated_by=str(actor_id) if actor_id else "system")
    logger.info(
        "Settings updated",
        extra={"event_type": "settings_updated", "actor_id": actor_id,
               "sections": sorted(partial.keys())},
    )
    return merged


def masked(document: dict) -> dict:
    """Copy of ``document`` with secrets replaced by ``MASKED`` (empty stays empty)."""
    result = copy.deepcopy(document)
    for path in SECRET_PATHS:
        if _dig(result, path[:-1]) is not None:
            _place(result, path, MASKED if _dig(result, path) else "")
    return result


def expense_types() -> list[str]:
    return list(get_settings()["application"]["expenseTypes"])
