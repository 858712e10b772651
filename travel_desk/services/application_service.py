"""
Application intake — create, edit and read travel applications.

Requesters own their applications while they are DRAFTs; after submission
only the workflow engine changes them.  Derived fields (duration,
total GoN cost, traveller count) are always recomputed from the payload.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, select

from travel_desk.core.exceptions import NotFoundError, ValidationError
from travel_desk.models import db
from travel_desk.models.application import (
    DONOR_FUNDING_VALUES,
    REQUESTER_FIELDS,
    STATUS_DRAFT,
    ApplicationNumberSequence,
    TravelApplication,
)
from travel_desk.services import settings_service, workflow
from travel_desk.services.permission import can_read_application
from travel_desk.utils.helpers import commit_or_raise, flush_or_raise, parse_date

logger = logging.getLogger(__name__)

_DEPARTMENT_CODE = re.compile(r"^[A-Za-z0-9]{1,10}$")

_TEXT_FIELDS = (
    "requester_first_name",
    "requester_last_name",
    "phone_number",
    "department",
    "division",
    "head_of_department",
    "head_of_department_email",
    "hod_email",
    "minister_name",
    "event_title",
    "reason_for_participation",
)


# ── Normalisation ────────────────────────────────────────────────────────────


def _number(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def normalize_travellers(items) -> list[dict]:
    """Keep ``{name, role}`` pairs with a non-blank name."""
    if not isinstance(items, list):
        return []
    travellers = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = item.get("name") if isinstance(item.get("name"), str) else ""
        role = item.get("role") if isinstance(item.get("role"), str) else ""
        if name.strip():
            travellers.append({"name": name, "role": role})
    return travellers


def normalize_expenses(items) -> list[dict]:
    """Coerce expense rows to the stored shape; unknown donor values become ""."""
    if not isinstance(items, list):
        return []
    rows = []
    for item in items:
        item = item if isinstance(item, dict) else {}
        donor = item.get("donor_funding")
        rows.append({
            "expense_type": item.get("expense_type") if isinstance(item.get("expense_type"), str) else "",
            "details": item.get("details") if isinstance(item.get("details"), str) else "",
            "cost_per_person": _number(item.get("cost_per_person")),
            "persons_or_days": _number(item.get("persons_or_days")),
            "total_cost": _number(item.get("total_cost")),
            "donor_funding": donor if donor in DONOR_FUNDING_VALUES else "",
            "gon_cost": _number(item.get("gon_cost")),
        })
    return rows


def calculate_duration(start, end) -> int:
    """Inclusive day count; 0 when either date is missing or end precedes start."""
    if start is None or end is None:
        return 0
    diff = (end - start).days
    return diff + 1 if diff >= 0 else 0


def _valid_email(value: str, field: str, errors: dict) -> str:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        errors[field] = "invalid email address"
    return value


# ── Application numbers ──────────────────────────────────────────────────────


def next_application_number(department_code: str, year: int | None = None) -> str:
    """Reserve ``<dept>-<year>-<seq:03d>`` in the caller's transaction."""
    year = year or datetime.now(timezone.utc).year
    counter = db.session.execute(
        select(ApplicationNumberSequence).where(
            ApplicationNumberSequence.department_code == department_code,
            ApplicationNumberSequence.year == year,
        )
    ).scalar_one_or_none()
    if counter is None:
        counter = ApplicationNumberSequence(department_code=department_code, year=year, sequence=0)
        db.session.add(counter)
    counter.sequence = (counter.sequence or 0) + 1
    flush_or_raise(f"reserve number {department_code}-{year}")
    return f"{department_code}-{year}-{counter.sequence:03d}"


# ── Validation ───────────────────────────────────────────────────────────────


def _build_fields(data: dict, settings: dict, *, partial: bool, stored=None) -> dict:
    """Validate a create/update payload and return model field values.

    On a partial edit, date checks run against ``stored`` for whichever date
    the payload leaves out.
    """
    errors: dict = {}
    fields: dict = {}

    for name in _TEXT_FIELDS:
        if name in data:
            value = data.get(name)
            fields[name] = value.strip() if isinstance(value, str) else ""

    required = ("department", "event_title", "minister_name", "hod_email")
    for name in required:
        if (not partial or name in data) and not fields.get(name):
            errors[name] = "required"

    for name in ("hod_email", "head_of_department_email"):
        if fields.get(name):
            _valid_email(fields[name], name, errors)

    for name in ("start_date", "end_date"):
        if name in data or not partial:
            parsed = parse_date(data.get(name))
            if parsed is None:
                errors[name] = "required (YYYY-MM-DD)"
            fields[name] = parsed

    if "travellers" in data or not partial:
        fields["travellers"] = normalize_travellers(data.get("travellers"))
    if "expenses" in data or not partial:
        fields["expenses"] = normalize_expenses(data.get("expenses"))
        fields["total_gon_cost"] = sum(row["gon_cost"] for row in fields["expenses"])
    if "attachments_provided" in data or not partial:
        attachments = data.get("attachments_provided")
        fields["attachments_provided"] = (
            [a for a in attachments if isinstance(a, str)] if isinstance(attachments, list) else []
        )

    if "number_of_travellers" in data or "travellers" in data or not partial:
        count = data.get("number_of_travellers")
        try:
            fields["number_of_travellers"] = int(count) if count not in (None, "") \
                else len(fields.get("travellers") or [])
        except (TypeError, ValueError):
            errors["number_of_travellers"] = "must be an integer"
        else:
            if fields["number_of_travellers"] < 0:
                errors["number_of_travellers"] = "must not be negative"

    limits = settings["workflow"]
    if fields.get("number_of_travellers", 0) > limits["maxTravellersPerApplication"]:
        errors["number_of_travellers"] = f"at most {limits['maxTravellersPerApplication']}"

    start = fields.get("start_date", getattr(stored, "start_date", None))
    end = fields.get("end_date", getattr(stored, "end_date", None))
    if start and end:
        if end < start:
            errors["end_date"] = "must not be before start_date"
        elif calculate_duration(start, end) > limits["maxTravelDurationDays"]:
            errors["end_date"] = f"trip longer than {limits['maxTravelDurationDays']} days"

    if "department_head_code" in data:
        code = str(data.get("department_head_code") or "").strip() or "00"
        if not _DEPARTMENT_CODE.match(code):
            errors["department_head_code"] = "must be 1-10 letters or digits"
        fields["department_head_code"] = code

    if errors:
        raise ValidationError("Invalid application", details=errors)
    return fields


# ── Operations ───────────────────────────────────────────────────────────────


def create_application(data: dict, actor, submit: bool = False) -> TravelApplication:
    """Create a DRAFT for ``actor``; with ``submit`` it is submitted straight away.

    Requester identity fields default to the actor's own.

    Raises:
        ValidationError: missing or malformed fields, or settings limits exceeded.
    """
    data = data or {}
    settings = settings_service.get_settings()
    fields = _build_fields(data, settings, partial=False)

    requester_email = (data.get("requester_email") or actor.email or "").strip()
    if not requester_email:
        raise ValidationError("Invalid application", details={"requester_email": "required"})
    errors: dict = {}
    _valid_email(requester_email, "requester_email", errors)
    if errors:
        raise ValidationError("Invalid application", details=errors)

    fields.setdefault("requester_first_name", "")
    fields.setdefault("requester_last_name", "")
    fields["requester_first_name"] = fields["requester_first_name"] or actor.first_name
    fields["requester_last_name"] = fields["requester_last_name"] or actor.last_name
    department_code = fields.pop("department_head_code", "00")

    application = TravelApplication(
        requester_id=actor.id,
        requester_email=requester_email,
        department_head_code=department_code,
        application_number=next_application_number(department_code),
        status=STATUS_DRAFT,
        duration_days=calculate_duration(fields.get("start_date"), fields.get("end_date")),
        **fields,
    )
    db.session.add(application)
    commit_or_raise("create application")

    logger.info(
        "Application %s created by %s", application.application_number, actor.id,
        extra={"event_type": "application_created", "application_id": application.id,
               "actor_id": actor.id},
    )

    if submit:
        workflow.submit(application.id, actor)
    return application


def get_application_for(application_id: str, actor) -> TravelApplication:
    """Load an application the actor may read; others are reported as not found."""
    application = db.session.get(TravelApplication, application_id)
    if application is None or not can_read_application(actor, application):
        raise NotFoundError(resource="Application", resource_id=application_id)
    return application


def update_draft(application_id: str, data: dict, actor) -> TravelApplication:
    """Edit requester fields of the actor's own DRAFT.  Other keys are ignored.

    Raises:
        NotFoundError: unknown or not the actor's application.
        ValidationError: not a DRAFT any more, or invalid fields.
    """
    application = db.session.get(TravelApplication, application_id)
    if application is None or application.requester_id != actor.id:
        raise NotFoundError(resource="Application", resource_id=application_id)
    if application.status != STATUS_DRAFT:
        raise ValidationError(
            f"Application {application.application_number} can no longer be edited",
            details={"status": application.status},
        )

    data = {k: v for k, v in (data or {}).items() if k in REQUESTER_FIELDS}
    settings = settings_service.get_settings()
    fields = _build_fields(data, settings, partial=True, stored=application)
    if "requester_email" in data:
        errors: dict = {}
        fields["requester_email"] = _valid_email(
            str(data.get("requester_email") or "").strip(), "requester_email", errors)
        if errors:
            raise ValidationError("Invalid application", details=errors)

    for name, value in fields.items():
        setattr(application, name, value)
    application.duration_days = calculate_duration(application.start_date, application.end_date)
    commit_or_raise(f"update {application.application_number}")
    return application


def list_for_requester(actor) -> list[TravelApplication]:
    """The actor's own applications, latest activity first."""
    return list(db.session.execute(
        select(TravelApplication)
        .where(TravelApplication.requester_id == actor.id)
        .order_by(func.coalesce(TravelApplication.submitted_at,
                                TravelApplication.created_at).desc())
    ).scalars().all())
