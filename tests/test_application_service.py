"""
Tests: application intake — validation, derived fields, numbering, drafts.
"""

from datetime import date

import pytest

from travel_desk.core.exceptions import NotFoundError, ValidationError
from travel_desk.services import application_service, settings_service
from travel_desk.services.application_service import (
    calculate_duration,
    normalize_expenses,
    normalize_travellers,
)


class TestNormalisation:
    def test_travellers_drop_blank_names(self):
        assert normalize_travellers([
            {"name": "Ana Deiye", "role": "Budget Officer"},
            {"name": "   ", "role": "Driver"},
            {"name": "Tom", "role": 5},
            "junk",
        ]) == [{"name": "Ana Deiye", "role": "Budget Officer"}, {"name": "Tom", "role": ""}]

    def test_travellers_not_a_list(self):
        assert normalize_travellers({"name": "Ana"}) == []

    def test_expenses_coerce_numbers_and_donor(self):
        rows = normalize_expenses([{"expense_type": "Visa", "cost_per_person": "120",
                                    "gon_cost": "n/a", "donor_funding": "Maybe"}])
        assert rows == [{
            "expense_type": "Visa", "details": "", "cost_per_person": 120.0,
            "persons_or_days": 0.0, "total_cost": 0.0, "donor_funding": "", "gon_cost": 0.0,
        }]

    @pytest.mark.parametrize("start,end,expected", [
        (date(2026, 11, 2), date(2026, 11, 6), 5),
        (date(2026, 11, 2), date(2026, 11, 2), 1),
        (date(2026, 11, 6), date(2026, 11, 2), 0),
        (None, date(2026, 11, 2), 0),
    ])
    def test_duration_is_inclusive(self, start, end, expected):
        assert calculate_duration(start, end) == expected


class TestCreate:
    def test_derived_fields(self, draft_app, requester):
        assert draft_app.status == "DRAFT"
        assert draft_app.duration_days == 5
        assert draft_app.total_gon_cost == 2800
        assert draft_app.number_of_travellers == 1
        assert draft_app.requester_id == requester.id
        assert draft_app.requester_email == requester.email
        assert draft_app.requester_first_name == "Ana"
        assert draft_app.submitted_at is None

    def test_numbers_count_per_department(self, requester, application_payload):
        first = application_service.create_application(application_payload(), requester)
        second = application_service.create_application(application_payload(), requester)
        other = application_service.create_application(
            application_payload(department_head_code="12"), requester)
        year = date.today().year
        assert first.application_number == f"06-{year}-001"
        assert second.application_number == f"06-{year}-002"
        assert other.application_number == f"12-{year}-001"

    def test_missing_code_defaults(self, requester, application_payload):
        payload = application_payload()
        payload.pop("department_head_code")
        app = application_service.create_application(payload, requester)
        assert app.application_number.startswith("00-")

    @pytest.mark.parametrize("field", ["department", "event_title", "minister_name", "hod_email",
                                       "start_date", "end_date"])
    def test_required_fields(self, requester, application_payload, field):
        with pytest.raises(ValidationError) as exc_info:
            application_service.create_application(application_payload(**{field: ""}), requester)
        assert field in exc_info.value.details

    def test_invalid_hod_email(self, requester, application_payload):
        with pytest.raises(ValidationError) as exc_info:
            application_service.create_application(application_payload(hod_email="secretary"), requester)
        assert "hod_email" in exc_info.value.details

    def test_end_before_start(self, requester, application_payload):
        with pytest.raises(ValidationError) as exc_info:
            application_service.create_application(
                application_payload(start_date="2026-11-06", end_date="2026-11-02"), requester)
        assert "end_date" in exc_info.value.details

    def test_duration_limit_from_settings(self, requester, application_payload):
        settings_service.update_settings({"workflow": {"maxTravelDurationDays": 3}})
        with pytest.raises(ValidationError) as exc_info:
            application_service.create_application(application_payload(), requester)
        assert "end_date" in exc_info.value.details

    def test_traveller_limit_from_settings(self, requester, application_payload):
        with pytest.raises(ValidationError) as exc_info:
            application_service.create_application(
                application_payload(number_of_travellers=11), requester)
        assert "number_of_travellers" in exc_info.value.details

    def test_negative_traveller_count(self, requester, application_payload):
        with pytest.raises(ValidationError) as exc_info:
            application_service.create_application(
                application_payload(number_of_travellers=-2), requester)
        assert exc_info.value.details["number_of_travellers"] == "must not be negative"

    def test_bad_department_code(self, requester, application_payload):
        with pytest.raises(ValidationError):
            application_service.create_application(
                application_payload(department_head_code="06/FIN"), requester)

    def test_create_and_submit(self, requester, application_payload):
        app = application_service.create_application(application_payload(), requester, submit=True)
        assert app.status == "SUBMITTED"
        assert app.submitted_at is not None


class TestDrafts:
    def test_update_recomputes_duration(self, draft_app, requester):
        app = application_service.update_draft(draft_app.id, {"end_date": "2026-11-03"}, requester)
        assert app.duration_days == 2
        assert app.event_title == "Pacific Budget Forum"

    def test_update_expenses_recomputes_total(self, draft_app, requester):
        app = application_service.update_draft(draft_app.id, {"expenses": [
            {"expense_type": "Airfare", "gon_cost": 900},
        ]}, requester)
        assert app.total_gon_cost == 900

    def test_update_after_submit_is_refused(self, submitted_app, requester):
        with pytest.raises(ValidationError):
            application_service.update_draft(submitted_app.id, {"event_title": "Changed"}, requester)

    def test_update_someone_elses_draft(self, draft_app, other_requester):
        with pytest.raises(NotFoundError):
            application_service.update_draft(draft_app.id, {"event_title": "Changed"}, other_requester)

    def test_update_cannot_blank_required(self, draft_app, requester):
        with pytest.raises(ValidationError):
            application_service.update_draft(draft_app.id, {"event_title": "  "}, requester)

    def test_end_date_alone_is_checked_against_stored_start(self, draft_app, requester):
        with pytest.raises(ValidationError) as exc_info:
            application_service.update_draft(draft_app.id, {"end_date": "2026-10-01"}, requester)
        assert "end_date" in exc_info.value.details
        assert draft_app.end_date == date(2026, 11, 6)

    def test_end_date_alone_respects_duration_limit(self, draft_app, requester):
        with pytest.raises(ValidationError) as exc_info:
            application_service.update_draft(draft_app.id, {"end_date": "2027-06-01"}, requester)
        assert "30 days" in exc_info.value.details["end_date"]

    def test_start_date_alone_is_checked_against_stored_end(self, draft_app, requester):
        with pytest.raises(ValidationError):
            application_service.update_draft(draft_app.id, {"start_date": "2026-11-20"}, requester)

    def test_workflow_fields_are_ignored(self, draft_app, requester):
        app = application_service.update_draft(
            draft_app.id, {"status": "ARCHIVED", "event_title": "Forum 2026"}, requester)
        assert app.status == "DRAFT"
        assert app.event_title == "Forum 2026"


class TestRead:
    def test_owner_and_staff_can_read(self, draft_app, requester, reviewer):
        assert application_service.get_application_for(draft_app.id, requester).id == draft_app.id
        assert application_service.get_application_for(draft_app.id, reviewer).id == draft_app.id

    def test_other_requester_cannot(self, draft_app, other_requester):
        with pytest.raises(NotFoundError):
            application_service.get_application_for(draft_app.id, other_requester)

    def test_list_for_requester_only_own(self, draft_app, requester, other_requester, application_payload):
        application_service.create_application(application_payload(), other_requester)
        assert [a.id for a in application_service.list_for_requester(requester)] == [draft_app.id]
