"""
Travel Desk
System settings model.

A single logical row (key ``system_settings``) holds the whole settings
document as JSON.  There is no version history: writes upsert the row.
"""

from datetime import datetime, timezone

from travel_desk.models import db

SETTINGS_KEY = "system_settings"


class SystemSettingsRecord(db.Model):
    """Persisted settings document, one row per key."""

    __tablename__ = "system_settings"

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.JSON, nullable=False, default=dict)
    updated_by = db.Column(db.String(255), nullable=False, default="system")
    updated_at = db.Column(db.DateTime(timezone=True),
                           default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<SystemSettingsRecord {self.key} by {self.updated_by}>"
