"""
API tests: /api/v1/admin — settings, email logs, recovery endpoints.
"""

from unittest.mock import patch

import pytest

from travel_desk.models import db as _db
from travel_desk.models.application import TravelApplication
from travel_desk.services import settings_service, workflow
from travel_desk.services.settings_service import MASKED


ADMIN = "/api/v1/admin"


@pytest.fixture()
def as_admin(auth_headers, admin):
    return auth_headers(admin)


class TestAccess:
    @pytest.mark.parametrize("fixture_name", ["requester", "reviewer", "minister"])
    def test_non_admin_forbidden(self, client, auth_headers, request, fixture_name):
        actor = request.getfixturevalue(fixture_name)
        res = client.get(f"{ADMIN}/settings", headers=auth_headers(actor))
        assert res.status_code == 403

    def test_anonymous(self, client):
        assert client.get(f"{ADMIN}/settings").status_code == 401


class TestSettingsApi:
    def test_get_masks_password(self, client, as_admin):
        settings_service.update_settings({"email": {"smtp": {"password": "s3cret"}}})
        res = client.get(f"{ADMIN}/settings", headers=as_admin)
        assert res.status_code == 200
        smtp = res.get_json()["settings"]["email"]["smtp"]
        assert smtp["password"] == MASKED

    def test_put_round_trip_keeps_secret(self, client, as_admin):
        settings_service.update_settings({"email": {"smtp": {"password": "s3cret"}}})
        shown = client.get(f"{ADMIN}/settings", headers=as_admin).get_json()["settings"]
        shown["email"]["smtp"]["host"] = "smtp.gov.nr"

        res = client.put(f"{ADMIN}/settings", json=shown, headers=as_admin)

        assert res.status_code == 200
        assert res.get_json()["settings"]["email"]["smtp"]["password"] == MASKED
        stored = settings_service.get_settings()["email"]["smtp"]
        assert stored["host"] == "smtp.gov.nr"
        assert stored["password"] == "s3cret"

    def test_put_wrong_type(self, client, as_admin):
        res = client.put(f"{ADMIN}/settings", json={"workflow": {"maxTravelDurationDays": "many"}},
                         headers=as_admin)
        assert res.status_code == 422
        assert "workflow.maxTravelDurationDays" in res.get_json()["details"]

    def test_put_non_object(self, client, as_admin):
        res = client.put(f"{ADMIN}/settings", json=["workflow"], headers=as_admin)
        assert res.status_code == 400

    def test_test_email_without_host(self, client, as_admin):
        res = client.post(f"{ADMIN}/settings/test-email", json={"email": "sam.dowiyogo@ict.gov.nr"},
                          headers=as_admin)
        assert res.status_code == 422

    def test_test_email_requires_address(self, client, as_admin):
        res = client.post(f"{ADMIN}/settings/test-email", json={}, headers=as_admin)
        assert res.status_code == 400

    def test_test_email_non_string_address(self, client, as_admin):
        res = client.post(f"{ADMIN}/settings/test-email", json={"email": 42}, headers=as_admin)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_test_email_sent(self, client, as_admin):
        settings_service.update_settings({"email": {"smtp": {"host": "smtp.gov.nr", "port": 1025}}})
        with patch("travel_desk.services.email_service.smtplib.SMTP"):
            res = client.post(f"{ADMIN}/settings/test-email",
                              json={"email": "sam.dowiyogo@ict.gov.nr"}, headers=as_admin)
        assert res.status_code == 200
        assert res.get_json()["email_log"]["status"] == "sent"

    def test_test_email_smtp_failure(self, client, as_admin):
        settings_service.update_settings({"email": {"smtp": {"host": "smtp.gov.nr", "port": 1025}}})
        with patch("travel_desk.services.email_service.smtplib.SMTP",
                   side_effect=OSError("connection refused")):
            res = client.post(f"{ADMIN}/settings/test-email",
                              json={"email": "sam.dowiyogo@ict.gov.nr"}, headers=as_admin)
        assert res.status_code == 502
        assert res.get_json()["code"] == "ERR_NOTIFICATION"


class TestEmailLogs:
    def test_lists_and_filters(self, client, as_admin, in_review_app, reviewer):
        workflow.decide(in_review_app.id, "APPROVED", reviewer)
        res = client.get(f"{ADMIN}/email-logs?application_id={in_review_app.id}", headers=as_admin)
        body = res.get_json()
        assert res.status_code == 200
        assert body["total"] == 2
        assert body["email_logs"][0]["template_name"] == "applicationApproved"

        failed = client.get(f"{ADMIN}/email-logs?status=failed", headers=as_admin).get_json()
        assert failed["total"] == 0

    def test_unknown_status(self, client, as_admin):
        res = client.get(f"{ADMIN}/email-logs?status=bounced", headers=as_admin)
        assert res.status_code == 422


class TestRecovery:
    def test_renotify(self, client, as_admin, in_review_app, reviewer):
        workflow.decide(in_review_app.id, "REJECTED", reviewer, note="Late")
        res = client.post(f"{ADMIN}/applications/{in_review_app.id}/renotify", headers=as_admin)
        assert res.status_code == 200
        assert [log["template_name"] for log in res.get_json()["email_logs"]] == ["applicationRejected"]

    def test_renotify_without_decision(self, client, as_admin, submitted_app):
        res = client.post(f"{ADMIN}/applications/{submitted_app.id}/renotify", headers=as_admin)
        assert res.status_code == 422

    def test_reconcile(self, client, as_admin, in_review_app, reviewer):
        workflow.decide(in_review_app.id, "REJECTED", reviewer)
        app = _db.session.get(TravelApplication, in_review_app.id)
        app.status = "IN_REVIEW"
        _db.session.commit()

        res = client.post(f"{ADMIN}/applications/{in_review_app.id}/reconcile", headers=as_admin)

        assert res.status_code == 200
        body = res.get_json()
        assert body["changed"]["status"] == ["IN_REVIEW", "REJECTED"]
        assert body["anomalies"] == []
