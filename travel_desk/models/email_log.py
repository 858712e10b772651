"""
Travel Desk
Outbound email audit log.

Every notification attempt writes one EmailLog row, whether it was
delivered, only logged (no SMTP host configured) or failed.  Failed rows are
the only trace of a lost notification: there is no retry queue.
"""

from datetime import datetime, timezone

from travel_desk.models import db

EMAIL_STATUSES = {"queued", "sent", "logged", "failed"}

EMAIL_CATEGORIES = {"submission", "decision", "referral", "test"}


class EmailLog(db.Model):
    """One delivery attempt."""

    __tablename__ = "email_logs"

    id = db.Column(db.Integer, primary_key=True)
    recipient_email = db.Column(db.String(255), nullable=False, index=True)
    subject = db.Column(db.String(500), nullable=False)
    template_name = db.Column(db.String(100), nullable=True,
                              comment="Settings template key used to render the email")
    category = db.Column(db.String(30), default="decision",
                         comment="submission, decision, referral, test")
    status = db.Column(db.String(20), default="queued",
                       comment="queued, sent, logged, failed")
    error_message = db.Column(db.Text, nullable=True)
    message_id = db.Column(db.String(255), nullable=True)

    application_id = db.Column(db.String(36), db.ForeignKey("applications.id", ondelete="SET NULL"),
                               nullable=True, index=True)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_email": self.recipient_email,
            "subject": self.subject,
            "template_name": self.template_name,
            "category": self.category,
            "status": self.status,
            "error_message": self.error_message,
            "message_id": self.message_id,
            "application_id": self.application_id,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<EmailLog {self.id}: {self.subject[:40]} → {self.recipient_email}>"
