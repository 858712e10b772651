"""
Tests: email template rendering and context building.
"""

from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from travel_desk.services.email_templates import (
    DEFAULT_TEMPLATES,
    TEMPLATE_VARIABLES,
    build_context,
    format_amount,
    format_display_date,
    render,
    render_email,
)


def _application(**overrides):
    data = dict(
        id="7d3c1a52-0000-4000-8000-000000000001",
        application_number="06-2026-004",
        event_title="Pacific Budget Forum",
        requester_name="Ana Deiye",
        requester_email="ana.deiye@finance.gov.nr",
        department="Finance",
        start_date=date(2026, 11, 2),
        end_date=date(2026, 11, 6),
        duration_days=5,
        number_of_travellers=1,
        total_gon_cost=2800.0,
        reason_for_participation="Present the budget reform.",
    )
    data.update(overrides)
    return SimpleNamespace(**data)


class TestRender:
    def test_substitutes_variables(self):
        assert render("Hello {{name}}!", {"name": "Ana"}) == "Hello Ana!"

    def test_missing_variable_renders_empty(self):
        assert render("[{{missing}}]", {}) == "[]"

    def test_whitespace_inside_braces(self):
        assert render("{{ name }}", {"name": "Ana"}) == "Ana"

    @pytest.mark.parametrize("value,expected", [
        ("Call me", "Note: Call me."),
        ("", "."),
        (None, "."),
    ])
    def test_if_block(self, value, expected):
        assert render("{{#if note}}Note: {{note}}{{/if}}.", {"note": value}) == expected

    def test_if_block_spans_lines(self):
        out = render("a{{#if x}}\n<p>{{x}}</p>\n{{/if}}b", {"x": "1"})
        assert out == "a\n<p>1</p>\nb"

    def test_escape_only_when_asked(self):
        ctx = {"note": "<b>bring visa</b> & passport"}
        assert render("{{note}}", ctx) == "<b>bring visa</b> & passport"
        assert render("{{note}}", ctx, escape=True) == "&lt;b&gt;bring visa&lt;/b&gt; &amp; passport"

    def test_none_template(self):
        assert render(None, {"a": 1}) == ""

    def test_render_email_escapes_body_not_subject(self):
        subject, body = render_email(
            {"subject": "Re: {{eventTitle}}", "body": "<p>{{eventTitle}}</p>"},
            {"eventTitle": "R&D Summit"},
        )
        assert subject == "Re: R&D Summit"
        assert body == "<p>R&amp;D Summit</p>"

    def test_render_email_without_template(self):
        assert render_email(None, {}) == ("", "")


class TestFormatting:
    def test_display_date_shifts_to_local_zone(self):
        late_utc = datetime(2026, 11, 1, 13, 30, tzinfo=timezone.utc)
        assert format_display_date(late_utc) == "02/11/2026"
        assert format_display_date(late_utc, utc_offset_hours=0) == "01/11/2026"

    def test_plain_dates_are_not_shifted(self):
        assert format_display_date(date(2026, 11, 2)) == "02/11/2026"
        assert format_display_date("2026-11-02") == "02/11/2026"

    @pytest.mark.parametrize("value,expected", [(None, "N/A"), ("", "N/A"), ("soon", "Invalid date")])
    def test_missing_and_invalid_dates(self, value, expected):
        assert format_display_date(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (2800, "$2,800"),
        (1234.5, "$1,234.50"),
        (None, "$0"),
        ("n/a", "$0"),
    ])
    def test_amount(self, value, expected):
        assert format_amount(value) == expected


class TestBuildContext:
    NOW = datetime(2026, 11, 10, 0, 0, tzinfo=timezone.utc)

    def test_application_fields(self):
        ctx = build_context(_application(), client_url="https://traveldesk.example.nr/", now=self.NOW)
        assert ctx["applicationNumber"] == "06-2026-004"
        assert ctx["applicationLink"] == "https://traveldesk.example.nr/#/my-applications"
        assert ctx["startDate"] == "02/11/2026"
        assert ctx["totalCost"] == "$2,800"
        assert ctx["currentDate"] == "10/11/2026"

    def test_number_falls_back_to_short_id(self):
        ctx = build_context(_application(application_number=None), now=self.NOW)
        assert ctx["applicationNumber"] == "7d3c1a52"

    def test_optional_keys_left_out(self):
        ctx = build_context(_application(), now=self.NOW)
        for key in ("reviewerName", "reviewerEmail", "note", "reason"):
            assert key not in ctx

    def test_decision_details(self):
        ctx = build_context(_application(), reviewer_name="Ben Adam",
                            reviewer_email="ben.adam@traveldesk.gov.nr",
                            reason="Over budget", now=self.NOW)
        assert ctx["reviewerName"] == "Ben Adam"
        assert ctx["reason"] == "Over budget"

    def test_without_application(self):
        assert set(build_context(None, now=self.NOW)) == {"currentDate"}

    def test_context_keys_are_documented(self):
        ctx = build_context(_application(), reviewer_name="x", note="y", reason="z", now=self.NOW)
        assert set(ctx) <= set(TEMPLATE_VARIABLES)


class TestDefaultTemplates:
    def test_rejection_shows_reason_and_reviewer(self):
        ctx = build_context(_application(), reviewer_name="Ben Adam",
                            reviewer_email="ben.adam@traveldesk.gov.nr",
                            reason="Duplicate <trip>", now=TestBuildContext.NOW)
        subject, body = render_email(DEFAULT_TEMPLATES["applicationRejected"], ctx)
        assert subject == "Travel Application Rejected: Pacific Budget Forum"
        assert "Duplicate &lt;trip&gt;" in body
        assert "Reviewed by:</strong> Ben Adam" in body
        assert "{{" not in body

    def test_approval_without_note_drops_block(self):
        ctx = build_context(_application(), now=TestBuildContext.NOW)
        _, body = render_email(DEFAULT_TEMPLATES["applicationApproved"], ctx)
        assert "Note:" not in body
        assert "Approved by:" not in body

    @pytest.mark.parametrize("name", sorted(DEFAULT_TEMPLATES))
    def test_defaults_use_known_variables_only(self, name):
        import re
        template = DEFAULT_TEMPLATES[name]
        names = set(re.findall(r"\{\{(?:#if\s+)?(\w+)", template["subject"] + template["body"]))
        assert names <= set(TEMPLATE_VARIABLES)
