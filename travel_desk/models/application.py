"""
Travel Desk
Application domain models.

Models:
    - TravelApplication: one travel request and its workflow-owned status fields
    - ApplicationNumberSequence: per-department, per-year counter for
      human-readable application numbers

Lifecycle:
    DRAFT → SUBMITTED → IN_REVIEW → {ARCHIVED, REJECTED, REFERRED_TO_MINISTER}
    REFERRED_TO_MINISTER → {MINISTER_APPROVED, MINISTER_REJECTED}

The transition table below is keyed by decision action.  IN_REVIEW is entered
without a decision, by the first reviewer who opens a SUBMITTED application
(see ``services.workflow.open_for_review``).
"""

import uuid
from datetime import datetime, timezone

from travel_desk.models import db


def _uuid():
    return str(uuid.uuid4())


# ── Status constants ─────────────────────────────────────────────────────────

STATUS_DRAFT = "DRAFT"
STATUS_SUBMITTED = "SUBMITTED"
STATUS_IN_REVIEW = "IN_REVIEW"
STATUS_ARCHIVED = "ARCHIVED"
STATUS_REJECTED = "REJECTED"
STATUS_REFERRED = "REFERRED_TO_MINISTER"
STATUS_MINISTER_APPROVED = "MINISTER_APPROVED"
STATUS_MINISTER_REJECTED = "MINISTER_REJECTED"

# MINISTER_APPROVED has no outgoing edge, so it is closed as well.
TERMINAL_STATUSES = frozenset({
    STATUS_ARCHIVED,
    STATUS_REJECTED,
    STATUS_MINISTER_REJECTED,
    STATUS_MINISTER_APPROVED,
})

# ── Decision actions ─────────────────────────────────────────────────────────

ACTION_SUBMITTED = "SUBMITTED"
ACTION_APPROVED = "APPROVED"
ACTION_REJECTED = "REJECTED"
ACTION_REQUEST_INFO = "REQUEST_INFO"
ACTION_REFERRED = "REFERRED_TO_MINISTER"
ACTION_MINISTER_APPROVED = "MINISTER_APPROVED"
ACTION_MINISTER_REJECTED = "MINISTER_REJECTED"

REVIEWER_ACTIONS = frozenset({
    ACTION_APPROVED,
    ACTION_REJECTED,
    ACTION_REQUEST_INFO,
    ACTION_REFERRED,
})
MINISTER_ACTIONS = frozenset({ACTION_MINISTER_APPROVED, ACTION_MINISTER_REJECTED})

APPLICATION_TRANSITIONS = {
    ACTION_SUBMITTED: {"from": [STATUS_DRAFT], "to": STATUS_SUBMITTED},
    ACTION_APPROVED: {"from": [STATUS_IN_REVIEW], "to": STATUS_ARCHIVED},
    ACTION_REJECTED: {"from": [STATUS_IN_REVIEW], "to": STATUS_REJECTED},
    ACTION_REQUEST_INFO: {"from": [STATUS_IN_REVIEW], "to": STATUS_IN_REVIEW},
    ACTION_REFERRED: {"from": [STATUS_IN_REVIEW], "to": STATUS_REFERRED},
    ACTION_MINISTER_APPROVED: {"from": [STATUS_REFERRED], "to": STATUS_MINISTER_APPROVED},
    ACTION_MINISTER_REJECTED: {"from": [STATUS_REFERRED], "to": STATUS_MINISTER_REJECTED},
}

# Actions that close the application (set decided_at) and archive it.
DECIDING_ACTIONS = frozenset({
    ACTION_APPROVED,
    ACTION_REJECTED,
    ACTION_MINISTER_APPROVED,
    ACTION_MINISTER_REJECTED,
})
ARCHIVING_ACTIONS = frozenset({ACTION_APPROVED, ACTION_MINISTER_APPROVED})

ARCHIVED_STATUSES = (STATUS_ARCHIVED, STATUS_MINISTER_APPROVED)
CLOSED_STATUSES = (
    STATUS_ARCHIVED,
    STATUS_MINISTER_APPROVED,
    STATUS_REJECTED,
    STATUS_MINISTER_REJECTED,
)

# Fields the requester owns.  Editable only while the application is a DRAFT.
REQUESTER_FIELDS = (
    "requester_email",
    "requester_first_name",
    "requester_last_name",
    "phone_number",
    "department",
    "division",
    "head_of_department",
    "head_of_department_email",
    "department_head_code",
    "hod_email",
    "minister_name",
    "event_title",
    "reason_for_participation",
    "start_date",
    "end_date",
    "number_of_travellers",
    "travellers",
    "expenses",
    "attachments_provided",
)

DONOR_FUNDING_VALUES = {"Yes", "No", ""}


def validate_transition(status: str, action: str) -> dict:
    """
    Check whether ``action`` may be applied to an application in ``status``.

    Returns:
        {"valid": bool, "from": str, "to": str|None, "reason": str|None}
    """
    rule = APPLICATION_TRANSITIONS.get(action)
    if not rule:
        return {"valid": False, "from": status, "to": None,
                "reason": f"Unknown action: {action}"}
    if status not in rule["from"]:
        return {"valid": False, "from": status, "to": rule["to"],
                "reason": f"Cannot '{action}' from status '{status}'"}
    return {"valid": True, "from": status, "to": rule["to"], "reason": None}


def _iso(value):
    return value.isoformat() if value else None


class TravelApplication(db.Model):
    """
    A government travel request.

    Status-bearing fields (status, current_reviewer_id, minister_email,
    submitted_at, decided_at, archived_at) are written only by the workflow
    service.  decided_at / archived_at are a cache of the decision log and are
    never cleared once set.
    """

    __tablename__ = "applications"
    __table_args__ = (
        db.Index("idx_app_status", "status"),
        db.Index("idx_app_requester", "requester_id"),
        db.Index("idx_app_archived_at", "archived_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    application_number = db.Column(
        db.String(32), nullable=False, unique=True,
        comment="<dept code>-<year>-<seq>, assigned at creation",
    )

    # Requester
    requester_id = db.Column(db.String(64), nullable=False)
    requester_email = db.Column(db.String(255), nullable=False)
    requester_first_name = db.Column(db.String(100), default="")
    requester_last_name = db.Column(db.String(100), default="")
    phone_number = db.Column(db.String(50), default="")

    # Department
    department = db.Column(db.String(200), nullable=False)
    division = db.Column(db.String(200), default="")
    head_of_department = db.Column(db.String(200), default="")
    head_of_department_email = db.Column(db.String(255), default="")
    department_head_code = db.Column(db.String(10), default="00")
    hod_email = db.Column(db.String(255), default="")
    minister_name = db.Column(db.String(200), default="")

    # Trip
    event_title = db.Column(db.String(500), nullable=False)
    reason_for_participation = db.Column(db.Text, default="")
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    duration_days = db.Column(db.Integer, default=0)
    number_of_travellers = db.Column(db.Integer, default=0)
    travellers = db.Column(db.JSON, default=list)
    expenses = db.Column(db.JSON, default=list)
    attachments_provided = db.Column(db.JSON, default=list)
    total_gon_cost = db.Column(db.Float, default=0.0)

    # Workflow-owned
    status = db.Column(db.String(30), nullable=False, default=STATUS_DRAFT)
    current_reviewer_id = db.Column(db.String(64), nullable=True)
    minister_email = db.Column(
        db.String(255), nullable=True,
        comment="Set only when the application is referred to a minister",
    )
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    archived_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    decisions = db.relationship(
        "DecisionEntry",
        back_populates="application",
        order_by="DecisionEntry.sequence",
        lazy="select",
    )

    @property
    def requester_name(self) -> str:
        return f"{self.requester_first_name or ''} {self.requester_last_name or ''}".strip()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self, include_log: bool = False):
        d = {
            "id": self.id,
            "application_number": self.application_number,
            "requester_id": self.requester_id,
            "requester_email": self.requester_email,
            "requester_first_name": self.requester_first_name,
            "requester_last_name": self.requester_last_name,
            "phone_number": self.phone_number,
            "department": self.department,
            "division": self.division,
            "head_of_department": self.head_of_department,
            "head_of_department_email": self.head_of_department_email,
            "department_head_code": self.department_head_code,
            "hod_email": self.hod_email,
            "minister_name": self.minister_name,
            "event_title": self.event_title,
            "reason_for_participation": self.reason_for_participation,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "duration_days": self.duration_days,
            "number_of_travellers": self.number_of_travellers,
            "travellers": self.travellers or [],
            "expenses": self.expenses or [],
            "attachments_provided": self.attachments_provided or [],
            "total_gon_cost": self.total_gon_cost,
            "status": self.status,
            "current_reviewer_id": self.current_reviewer_id,
            "minister_email": self.minister_email,
            "submitted_at": _iso(self.submitted_at),
            "decided_at": _iso(self.decided_at),
            "archived_at": _iso(self.archived_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_log:
            d["approval_log"] = [e.to_dict() for e in self.decisions]
        return d

    def __repr__(self):
        return f"<TravelApplication {self.application_number} [{self.status}]>"


class ApplicationNumberSequence(db.Model):
    """Running counter behind ``<dept>-<year>-<seq>`` application numbers."""

    __tablename__ = "application_number_sequences"
    __table_args__ = (
        db.UniqueConstraint("department_code", "year", name="uq_appseq_dept_year"),
    )

    id = db.Column(db.Integer, primary_key=True)
    department_code = db.Column(db.String(10), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    sequence = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<ApplicationNumberSequence {self.department_code}-{self.year}={self.sequence}>"
