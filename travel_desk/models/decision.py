"""
Decision log — DecisionEntry model.

Append-only audit trail of every action taken on a travel application.
Each submit / approve / reject / request-info / referral / minister decision
creates exactly one row; rows are never updated or deleted.

Ordering:
    ``sequence`` is the 1-based position of the entry in its application's
    log and is the single source of truth for history order.  ``timestamp``
    is non-decreasing along ``sequence``.
"""

import uuid
from datetime import datetime, timezone

from travel_desk.models import db


class DecisionEntry(db.Model):
    """
    Immutable record of one workflow action.

    Business rules:
    - Records are NEVER deleted or updated.
    - actor_name / actor_email are snapshots of the acting identity at
      decision time; they are not re-resolved if the user's profile changes.
    - Duplicate entries are legal: two identical decisions by the same actor
      are two distinct events.
    """

    __tablename__ = "decision_entries"
    __table_args__ = (
        db.UniqueConstraint("application_id", "sequence", name="uq_decision_app_seq"),
        db.Index("ix_decision_actor", "actor_id"),
        db.Index("ix_decision_action", "action"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    application_id = db.Column(
        db.String(36),
        db.ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence = db.Column(
        db.Integer,
        nullable=False,
        comment="1-based insertion position within the application's log",
    )

    action = db.Column(
        db.String(30),
        nullable=False,
        comment="SUBMITTED | APPROVED | REJECTED | REQUEST_INFO | REFERRED_TO_MINISTER | MINISTER_*",
    )

    actor_id = db.Column(db.String(64), nullable=False)
    actor_name = db.Column(
        db.String(255),
        nullable=False,
        default="",
        comment="Actor full name captured at decision time",
    )
    actor_email = db.Column(
        db.String(255),
        nullable=False,
        default="",
        comment="Actor email captured at decision time",
    )

    note = db.Column(
        db.Text,
        nullable=True,
        comment="Free text; for REFERRED_TO_MINISTER this is the minister's email",
    )

    timestamp = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    application = db.relationship("TravelApplication", back_populates="decisions")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "application_id": self.application_id,
            "sequence": self.sequence,
            "action": self.action,
            "actor_id": self.actor_id,
            "actor_name": self.actor_name,
            "actor_email": self.actor_email,
            "note": self.note,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self) -> str:
        return f"<DecisionEntry #{self.sequence} {self.application_id} {self.action}>"
