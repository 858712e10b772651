"""
Travel Desk
Notification Dispatcher.

Maps workflow events to templated emails and hands them to EmailService.
Dispatch runs after the workflow has committed; nothing raised here may
undo or fail a decision, so the ``notify_*`` entry points contain every
error and only log it.  The EmailLog rows are the record of what happened.

Referral emails go out even when notifications are disabled: the minister
has no other way of learning about the referral.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from email_validator import EmailNotValidError, validate_email
from flask import current_app

from travel_desk.core.exceptions import NotificationFailure, NotFoundError, ValidationError
from travel_desk.models import db
from travel_desk.models.application import (
    ACTION_APPROVED,
    ACTION_MINISTER_APPROVED,
    ACTION_MINISTER_REJECTED,
    ACTION_REFERRED,
    ACTION_REJECTED,
    ACTION_REQUEST_INFO,
    MINISTER_ACTIONS,
    REVIEWER_ACTIONS,
    TravelApplication,
)
from travel_desk.models.email_log import EmailLog
from travel_desk.services import decision_log, settings_service
from travel_desk.services.email_service import EmailService
from travel_desk.services.email_templates import (
    TEST_EMAIL_BODY,
    TEST_EMAIL_SUBJECT,
    build_context,
    render,
    render_email,
)
from travel_desk.utils.helpers import commit_or_raise

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedEmail:
    """One email the dispatcher intends to send."""

    template: str
    recipient: str
    category: str
    reason: str | None = None


# ── Selection (pure) ─────────────────────────────────────────────────────────


def select_decision_notification(action: str, application, note: str | None,
                                 settings: dict) -> PlannedEmail | None:
    """Decide which email, if any, a decision produces.

    Returns None when the action sends nothing under the given settings.
    """
    flags = settings["email"]["notifications"]

    if action == ACTION_REFERRED:
        return PlannedEmail("ministerReferral", note or "", "referral")

    if not flags.get("enabled"):
        return None

    recipient = application.requester_email
    if action in (ACTION_APPROVED, ACTION_MINISTER_APPROVED):
        if flags.get("applicationApproved"):
            return PlannedEmail("applicationApproved", recipient, "decision")
        return None
    if action in (ACTION_REJECTED, ACTION_MINISTER_REJECTED):
        if flags.get("applicationRejected"):
            return PlannedEmail("applicationRejected", recipient, "decision", reason=note)
        return None
    if action == ACTION_REQUEST_INFO:
        return PlannedEmail("informationRequested", recipient, "decision")
    return None


def select_submission_notifications(application, settings: dict) -> list[PlannedEmail]:
    """Applicant confirmation plus one alert per configured reviewer address."""
    flags = settings["email"]["notifications"]
    if not (flags.get("enabled") and flags.get("applicationSubmitted")):
        return []

    planned = []
    if flags.get("notifyApplicantOnSubmission") and application.requester_email:
        planned.append(PlannedEmail("applicationSubmitted", application.requester_email, "submission"))
    for address in flags.get("reviewerRecipients") or []:
        if address:
            planned.append(PlannedEmail("applicationSubmittedReviewer", address, "submission"))
    return planned


# ── Dispatch ─────────────────────────────────────────────────────────────────


class NotificationDispatcher:
    """Stateless dispatcher; every method reads the current settings."""

    @staticmethod
    def _context(application, **kwargs) -> dict:
        cfg = current_app.config
        return build_context(
            application,
            client_url=cfg.get("CLIENT_URL", ""),
            utc_offset_hours=cfg.get("DISPLAY_UTC_OFFSET_HOURS", 12),
            **kwargs,
        )

    @classmethod
    def _deliver(cls, planned: PlannedEmail, application, settings: dict, context: dict) -> EmailLog:
        template = settings["email"]["templates"].get(planned.template)
        subject, body = render_email(template, context)
        return EmailService.send(
            to_email=planned.recipient,
            subject=subject or planned.template,
            html_body=body,
            smtp_settings=settings["email"]["smtp"],
            template_name=planned.template,
            category=planned.category,
            application_id=application.id if application is not None else None,
        )

    @classmethod
    def _dispatch_decision(cls, application, action, *, note=None,
                           reviewer_name=None, reviewer_email=None) -> list[EmailLog]:
        settings = settings_service.get_settings()
        planned = select_decision_notification(action, application, note, settings)
        if planned is None:
            logger.debug("No notification for %s on %s", action, application.application_number)
            return []
        context = cls._context(
            application,
            reviewer_name=reviewer_name,
            reviewer_email=reviewer_email,
            note=None if action == ACTION_REFERRED else note,
            reason=planned.reason,
        )
        log = cls._deliver(planned, application, settings, context)
        commit_or_raise("email log")
        return [log]

    @classmethod
    def notify_decision(cls, application, action: str, *, note: str | None = None,
                        reviewer_name: str | None = None,
                        reviewer_email: str | None = None) -> list[EmailLog]:
        """Send the email a committed decision calls for.  Never raises."""
        try:
            return cls._dispatch_decision(
                application, action, note=note,
                reviewer_name=reviewer_name, reviewer_email=reviewer_email,
            )
        except Exception:
            db.session.rollback()
            logger.exception(
                "Notification dispatch failed for %s", action,
                extra={"event_type": "notification_failed", "action": action,
                       "application_id": getattr(application, "id", None)},
            )
            return []

    @classmethod
    def notify_submission(cls, application) -> list[EmailLog]:
        """Confirm a submission to the applicant and alert reviewers.  Never raises."""
        try:
            settings = settings_service.get_settings()
            context = cls._context(application)
            logs = [
                cls._deliver(planned, application, settings, context)
                for planned in select_submission_notifications(application, settings)
            ]
            if logs:
                commit_or_raise("email log")
            return logs
        except Exception:
            db.session.rollback()
            logger.exception(
                "Submission notification failed",
                extra={"event_type": "notification_failed",
                       "application_id": getattr(application, "id", None)},
            )
            return []

    @classmethod
    def renotify(cls, application_id: str) -> list[EmailLog]:
        """Re-send the notification for the application's latest decision.

        Raises:
            NotFoundError: unknown application.
            ValidationError: the application has no decision yet.
        """
        application = db.session.get(TravelApplication, application_id)
        if application is None:
            raise NotFoundError(resource="Application", resource_id=application_id)

        entry = decision_log.latest_for(application.id, REVIEWER_ACTIONS | MINISTER_ACTIONS)
        if entry is None:
            raise ValidationError(
                f"Application {application.application_number} has no decision to re-notify"
            )
        logger.info(
            "Re-notifying %s for %s", entry.action, application.application_number,
            extra={"event_type": "renotify", "application_id": application.id,
                   "action": entry.action},
        )
        return cls._dispatch_decision(
            application, entry.action, note=entry.note,
            reviewer_name=entry.actor_name, reviewer_email=entry.actor_email,
        )

    @classmethod
    def send_test_email(cls, address: str) -> EmailLog:
        """Send a fixed test message with the current SMTP settings.

        Unlike the ``notify_*`` methods this propagates failures.

        Raises:
            ValidationError: bad address or no SMTP host configured.
            NotificationFailure: the SMTP server rejected the message.
        """
        try:
            address = validate_email(address or "", check_deliverability=False).normalized
        except EmailNotValidError as exc:
            raise ValidationError("Invalid email address", details={"email": str(exc)}) from exc

        settings = settings_service.get_settings()
        smtp = settings["email"]["smtp"]
        if not smtp.get("host"):
            raise ValidationError(
                "SMTP host is required. Please configure SMTP settings first.",
                details={"email.smtp.host": "required"},
            )

        context = cls._context(None)
        try:
            log = EmailService.send(
                to_email=address,
                subject=TEST_EMAIL_SUBJECT,
                html_body=render(TEST_EMAIL_BODY, context, escape=True),
                smtp_settings=smtp,
                template_name="test",
                category="test",
                raise_on_error=True,
            )
        except NotificationFailure:
            commit_or_raise("email log")
            raise
        commit_or_raise("email log")
        return log
