"""
Tests: NotificationDispatcher — which email each event produces, and
containment of delivery failures.
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from travel_desk.core.exceptions import NotificationFailure, NotFoundError, ValidationError
from travel_desk.models.email_log import EmailLog
from travel_desk.services import settings_service, workflow
from travel_desk.services.email_service import DeliveryReceipt, LogTransport
from travel_desk.services.notification import (
    NotificationDispatcher,
    PlannedEmail,
    select_decision_notification,
    select_submission_notifications,
)

APPLICANT = SimpleNamespace(requester_email="ana.deiye@finance.gov.nr")


def _settings(**flags):
    doc = settings_service.default_settings()
    doc["email"]["notifications"].update(flags)
    return doc


def _configure(**notifications):
    settings_service.update_settings({"email": {"notifications": notifications}})


# ═════════════════════════════════════════════════════════════════════════════
# Selection
# ═════════════════════════════════════════════════════════════════════════════


class TestSelectDecision:
    @pytest.mark.parametrize("action,template", [
        ("APPROVED", "applicationApproved"),
        ("MINISTER_APPROVED", "applicationApproved"),
        ("REJECTED", "applicationRejected"),
        ("MINISTER_REJECTED", "applicationRejected"),
        ("REQUEST_INFO", "informationRequested"),
    ])
    def test_requester_emails(self, action, template):
        planned = select_decision_notification(action, APPLICANT, "Some note", _settings())
        assert planned.template == template
        assert planned.recipient == "ana.deiye@finance.gov.nr"
        assert planned.category == "decision"

    def test_rejection_reason_is_the_note(self):
        planned = select_decision_notification("REJECTED", APPLICANT, "Over budget", _settings())
        assert planned.reason == "Over budget"

    def test_referral_goes_to_minister(self):
        planned = select_decision_notification(
            "REFERRED_TO_MINISTER", APPLICANT, "minister@finance.gov.nr", _settings())
        assert planned == PlannedEmail("ministerReferral", "minister@finance.gov.nr", "referral")

    def test_referral_ignores_disabled_notifications(self):
        planned = select_decision_notification(
            "REFERRED_TO_MINISTER", APPLICANT, "minister@finance.gov.nr", _settings(enabled=False))
        assert planned is not None

    @pytest.mark.parametrize("action", ["APPROVED", "REJECTED", "REQUEST_INFO", "MINISTER_APPROVED"])
    def test_disabled_sends_nothing(self, action):
        assert select_decision_notification(action, APPLICANT, None, _settings(enabled=False)) is None

    def test_per_event_flags(self):
        settings = _settings(applicationApproved=False)
        assert select_decision_notification("APPROVED", APPLICANT, None, settings) is None
        assert select_decision_notification("REJECTED", APPLICANT, None, settings) is not None

    def test_request_info_has_no_flag_of_its_own(self):
        settings = _settings(applicationApproved=False, applicationRejected=False)
        assert select_decision_notification("REQUEST_INFO", APPLICANT, None, settings) is not None

    def test_submitted_is_not_a_decision_email(self):
        assert select_decision_notification("SUBMITTED", APPLICANT, None, _settings()) is None


class TestSelectSubmission:
    def test_applicant_and_reviewers(self):
        planned = select_submission_notifications(
            APPLICANT, _settings(reviewerRecipients=["desk@traveldesk.gov.nr", ""]))
        assert [(p.template, p.recipient) for p in planned] == [
            ("applicationSubmitted", "ana.deiye@finance.gov.nr"),
            ("applicationSubmittedReviewer", "desk@traveldesk.gov.nr"),
        ]

    def test_applicant_copy_can_be_turned_off(self):
        planned = select_submission_notifications(APPLICANT, _settings(notifyApplicantOnSubmission=False))
        assert planned == []

    @pytest.mark.parametrize("flags", [{"enabled": False}, {"applicationSubmitted": False}])
    def test_switched_off(self, flags):
        assert select_submission_notifications(
            APPLICANT, _settings(reviewerRecipients=["desk@traveldesk.gov.nr"], **flags)) == []


# ═════════════════════════════════════════════════════════════════════════════
# Dispatch through the workflow
# ═════════════════════════════════════════════════════════════════════════════


class TestDispatch:
    def test_submission_logs_confirmation(self, submitted_app):
        rows = EmailLog.query.filter_by(application_id=submitted_app.id).all()
        assert [(r.template_name, r.recipient_email, r.status) for r in rows] == [
            ("applicationSubmitted", "ana.deiye@finance.gov.nr", "logged"),
        ]
        assert rows[0].subject.startswith("Travel Application Submitted - 06-")

    def test_submission_alerts_reviewers(self, draft_app, requester):
        _configure(reviewerRecipients=["desk@traveldesk.gov.nr"])
        workflow.submit(draft_app.id, requester)
        recipients = {r.recipient_email for r in EmailLog.query.filter_by(application_id=draft_app.id)}
        assert recipients == {"ana.deiye@finance.gov.nr", "desk@traveldesk.gov.nr"}

    def test_rejection_email(self, in_review_app, reviewer):
        workflow.decide(in_review_app.id, "REJECTED", reviewer, note="Over budget")
        row = EmailLog.query.filter_by(application_id=in_review_app.id, category="decision").one()
        assert row.template_name == "applicationRejected"
        assert row.recipient_email == "ana.deiye@finance.gov.nr"
        assert row.subject == "Travel Application Rejected: Pacific Budget Forum"

    def test_rejection_body_contains_reason(self, in_review_app, reviewer):
        receipt = DeliveryReceipt(message_id="<1@traveldesk.gov.nr>", transport="log")
        with patch.object(LogTransport, "send", autospec=True, return_value=receipt) as send:
            workflow.decide(in_review_app.id, "REJECTED", reviewer, note="Over <budget>")
        _self, to, _subject, html_body = send.call_args[0][:4]
        assert to == "ana.deiye@finance.gov.nr"
        assert "Over &lt;budget&gt;" in html_body
        assert "Ben Adam" in html_body

    def test_disabled_notifications_send_nothing(self, in_review_app, reviewer):
        _configure(enabled=False)
        workflow.decide(in_review_app.id, "APPROVED", reviewer)
        assert EmailLog.query.filter_by(application_id=in_review_app.id, category="decision").count() == 0

    def test_referral_sent_even_when_disabled(self, in_review_app, reviewer):
        _configure(enabled=False)
        workflow.decide(in_review_app.id, "REFERRED_TO_MINISTER", reviewer, note="minister@finance.gov.nr")
        row = EmailLog.query.filter_by(application_id=in_review_app.id, category="referral").one()
        assert row.recipient_email == "minister@finance.gov.nr"

    def test_minister_approval_notifies_applicant(self, referred_app, minister):
        workflow.minister_decide(referred_app.id, "MINISTER_APPROVED", minister)
        row = EmailLog.query.filter_by(application_id=referred_app.id, category="decision").one()
        assert row.template_name == "applicationApproved"
        assert row.recipient_email == "ana.deiye@finance.gov.nr"


# ═════════════════════════════════════════════════════════════════════════════
# Re-notify
# ═════════════════════════════════════════════════════════════════════════════


class TestRenotify:
    def test_resends_latest_decision(self, in_review_app, reviewer):
        workflow.decide(in_review_app.id, "REQUEST_INFO", reviewer, note="Invitation letter")
        logs = NotificationDispatcher.renotify(in_review_app.id)
        assert [log.template_name for log in logs] == ["informationRequested"]
        assert EmailLog.query.filter_by(application_id=in_review_app.id,
                                        template_name="informationRequested").count() == 2

    def test_undecided_application(self, submitted_app):
        with pytest.raises(ValidationError):
            NotificationDispatcher.renotify(submitted_app.id)

    def test_unknown_application(self):
        with pytest.raises(NotFoundError):
            NotificationDispatcher.renotify("no-such-id")


# ═════════════════════════════════════════════════════════════════════════════
# Test email
# ═════════════════════════════════════════════════════════════════════════════


class TestSendTestEmail:
    def _with_host(self):
        settings_service.update_settings({"email": {"smtp": {"host": "smtp.gov.nr", "port": 587}}})

    def test_requires_smtp_host(self):
        with pytest.raises(ValidationError) as exc_info:
            NotificationDispatcher.send_test_email("sam.dowiyogo@ict.gov.nr")
        assert "email.smtp.host" in exc_info.value.details

    def test_rejects_bad_address(self):
        with pytest.raises(ValidationError):
            NotificationDispatcher.send_test_email("not-an-address")

    def test_sends_through_smtp(self):
        self._with_host()
        with patch("travel_desk.services.email_service.smtplib.SMTP") as smtp_cls:
            log = NotificationDispatcher.send_test_email("sam.dowiyogo@ict.gov.nr")
        assert log.status == "sent"
        assert log.category == "test"
        assert log.subject == "Travel Desk - Test Email"
        smtp_cls.return_value.__enter__.return_value.send_message.assert_called_once()

    def test_failure_propagates_and_is_logged(self):
        self._with_host()
        with patch("travel_desk.services.email_service.smtplib.SMTP",
                   side_effect=OSError("connection refused")):
            with pytest.raises(NotificationFailure):
                NotificationDispatcher.send_test_email("sam.dowiyogo@ict.gov.nr")
        row = EmailLog.query.filter_by(category="test").one()
        assert row.status == "failed"
