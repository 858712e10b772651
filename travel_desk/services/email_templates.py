"""
Email template defaults and renderer.

Templates live in the settings document under ``email.templates`` as
``{"subject": ..., "body": ...}`` pairs; the defaults below seed and heal it.

Syntax:
    {{name}}                 replaced by the context value, "" when absent
    {{#if name}}...{{/if}}   kept only when the context value is truthy

Available variables are listed in ``TEMPLATE_VARIABLES``.  Rendering never
raises: anything it cannot resolve becomes an empty string.
"""

from __future__ import annotations

import html
import re
from datetime import date, datetime, timedelta, timezone

from travel_desk.utils.helpers import as_utc, parse_date

TEMPLATE_VARIABLES = (
    "applicationNumber",
    "applicationLink",
    "statusLink",
    "eventTitle",
    "applicantName",
    "applicantEmail",
    "department",
    "startDate",
    "endDate",
    "durationDays",
    "numberOfTravellers",
    "totalCost",
    "reasonForParticipation",
    "reviewerName",
    "reviewerEmail",
    "note",
    "reason",
    "currentDate",
)

_IF_BLOCK = re.compile(r"\{\{#if\s+(\w+)\s*\}\}(.*?)\{\{/if\}\}", re.DOTALL)
_VARIABLE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


_LAYOUT = """<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.5; color: #333;">
  <div style="max-width: 600px; margin: 0 auto;">
    <div style="background-color: {colour}; color: white; padding: 16px; text-align: center;">
      <h1 style="margin: 0; font-size: 20px;">{title}</h1>
    </div>
    <div style="padding: 20px; background-color: #fafafa;">
{content}
    </div>
  </div>
</body>
</html>"""

_DETAILS = """      <div style="background-color: white; padding: 16px; margin: 16px 0;">
        <p><strong>Application Number:</strong> <a href="{{applicationLink}}">{{applicationNumber}}</a></p>
        <p><strong>Event:</strong> {{eventTitle}}</p>
        <p><strong>Department:</strong> {{department}}</p>
        <p><strong>Travel Dates:</strong> {{startDate}} to {{endDate}} ({{durationDays}} days)</p>
        <p><strong>Travellers:</strong> {{numberOfTravellers}}</p>
        <p><strong>Total Cost:</strong> {{totalCost}}</p>
      </div>"""


def _page(colour: str, title: str, content: str) -> str:
    return _LAYOUT.format(colour=colour, title=title, content=content)


DEFAULT_TEMPLATES = {
    "applicationSubmitted": {
        "subject": "Travel Application Submitted - {{applicationNumber}}",
        "body": _page("#f97316", "Travel Application Submitted", "\n".join([
            "      <p>Dear {{applicantName}},</p>",
            "      <p>Your travel application has been submitted successfully and is now pending review.</p>",
            _DETAILS,
            "      <p>You will be notified once your application has been reviewed.</p>",
            '      <p><a href="{{statusLink}}">Check Application Status</a></p>',
        ])),
    },
    "applicationSubmittedReviewer": {
        "subject": "New Travel Application Submitted: {{eventTitle}}",
        "body": _page("#f97316", "New Travel Application", "\n".join([
            "      <p>A new travel application has been submitted and requires your review.</p>",
            "      <p><strong>Applicant:</strong> {{applicantName}} ({{applicantEmail}})</p>",
            _DETAILS,
            "      <p><strong>Reason for participation:</strong> {{reasonForParticipation}}</p>",
        ])),
    },
    "applicationApproved": {
        "subject": "Travel Application Approved: {{eventTitle}}",
        "body": _page("#16a34a", "Travel Application Approved", "\n".join([
            "      <p><strong>Date:</strong> {{currentDate}}</p>",
            "      <p>Dear {{applicantName}},</p>",
            "      <p>Your travel application has been approved.</p>",
            _DETAILS,
            "      {{#if note}}<p><strong>Note:</strong> {{note}}</p>{{/if}}",
            "      {{#if reviewerName}}<p><strong>Approved by:</strong> {{reviewerName}} ({{reviewerEmail}})</p>{{/if}}",
        ])),
    },
    "applicationRejected": {
        "subject": "Travel Application Rejected: {{eventTitle}}",
        "body": _page("#dc2626", "Travel Application Rejected", "\n".join([
            "      <p>Dear {{applicantName}},</p>",
            "      <p>We regret to inform you that your travel application has been rejected.</p>",
            _DETAILS,
            "      {{#if reason}}<p><strong>Reason:</strong> {{reason}}</p>{{/if}}",
            "      {{#if reviewerName}}<p><strong>Reviewed by:</strong> {{reviewerName}} ({{reviewerEmail}})</p>{{/if}}",
            "      <p>If you have questions about this decision, please contact the reviewer.</p>",
        ])),
    },
    "informationRequested": {
        "subject": "Additional Information Required: {{eventTitle}}",
        "body": _page("#2563eb", "Additional Information Required", "\n".join([
            "      <p>Dear {{applicantName}},</p>",
            "      <p>The reviewer has requested additional information for your travel application.</p>",
            _DETAILS,
            "      {{#if note}}<p><strong>Requested information:</strong> {{note}}</p>{{/if}}",
            "      {{#if reviewerName}}<p><strong>Reviewed by:</strong> {{reviewerName}} ({{reviewerEmail}})</p>{{/if}}",
        ])),
    },
    "ministerReferral": {
        "subject": "Travel Application Referred for Review: {{eventTitle}}",
        "body": _page("#7c3aed", "Travel Application Referred for Review", "\n".join([
            "      <p>A travel application has been referred to you for a decision.</p>",
            "      <p><strong>Applicant:</strong> {{applicantName}} ({{applicantEmail}})</p>",
            _DETAILS,
            "      <p><strong>Reason for participation:</strong> {{reasonForParticipation}}</p>",
            "      {{#if reviewerName}}<p><strong>Referred by:</strong> {{reviewerName}} ({{reviewerEmail}})</p>{{/if}}",
        ])),
    },
}


TEST_EMAIL_SUBJECT = "Travel Desk - Test Email"
TEST_EMAIL_BODY = _page("#f97316", "Test Email", "\n".join([
    "      <p>This is a test email from the Travel Desk system.</p>",
    "      <p>If you received this message, your SMTP settings are working.</p>",
    "      <p><strong>Sent:</strong> {{currentDate}}</p>",
]))


# ── Formatting ───────────────────────────────────────────────────────────────


def format_display_date(value, utc_offset_hours: int = 12) -> str:
    """dd/mm/yyyy in the display zone.  ``N/A`` for missing, ``Invalid date`` for junk."""
    if value in (None, ""):
        return "N/A"
    if isinstance(value, datetime):
        shifted = as_utc(value) + timedelta(hours=utc_offset_hours)
        return shifted.strftime("%d/%m/%Y")
    if not isinstance(value, date):
        value = parse_date(value)
        if value is None:
            return "Invalid date"
    return value.strftime("%d/%m/%Y")


def format_amount(value) -> str:
    try:
        amount = float(value or 0)
    except (TypeError, ValueError):
        amount = 0.0
    if amount.is_integer():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}"


def build_context(
    application=None,
    *,
    reviewer_name: str | None = None,
    reviewer_email: str | None = None,
    note: str | None = None,
    reason: str | None = None,
    client_url: str = "",
    utc_offset_hours: int = 12,
    now: datetime | None = None,
) -> dict:
    """Collect template variables from an application and decision details.

    Keys whose source is absent are left out, so they render as "" and
    ``{{#if ...}}`` blocks on them are dropped.
    """
    now = as_utc(now) or datetime.now(timezone.utc)
    context: dict = {"currentDate": format_display_date(now, utc_offset_hours)}

    if application is not None:
        link = f"{client_url.rstrip('/')}/#/my-applications"
        context.update({
            "applicationNumber": application.application_number or str(application.id)[:8],
            "applicationLink": link,
            "statusLink": link,
            "eventTitle": application.event_title or "",
            "applicantName": application.requester_name,
            "applicantEmail": application.requester_email or "",
            "department": application.department or "",
            "startDate": format_display_date(application.start_date, utc_offset_hours),
            "endDate": format_display_date(application.end_date, utc_offset_hours),
            "durationDays": application.duration_days or 0,
            "numberOfTravellers": application.number_of_travellers or 0,
            "totalCost": format_amount(application.total_gon_cost),
            "reasonForParticipation": application.reason_for_participation or "",
        })

    if reviewer_name:
        context["reviewerName"] = reviewer_name
        context["reviewerEmail"] = reviewer_email or ""
    if note:
        context["note"] = note
    if reason:
        context["reason"] = reason
    return context


# ── Rendering ────────────────────────────────────────────────────────────────


def _stringify(value, escape: bool) -> str:
    if value is None:
        return ""
    text = str(value)
    return html.escape(text, quote=False) if escape else text


def render(template: str | None, context: dict | None, escape: bool = False) -> str:
    """Substitute ``{{name}}`` placeholders and resolve ``{{#if}}`` blocks.

    Args:
        template: Template text; None renders as "".
        context: Variable values.
        escape: HTML-escape substituted values (bodies, not subjects).
    """
    if not template:
        return ""
    context = context or {}

    def _block(match):
        return match.group(2) if context.get(match.group(1)) else ""

    text = _IF_BLOCK.sub(_block, str(template))
    return _VARIABLE.sub(lambda m: _stringify(context.get(m.group(1)), escape), text)


def render_email(template: dict | None, context: dict) -> tuple[str, str]:
    """Render a ``{"subject", "body"}`` pair to (subject, html body)."""
    template = template or {}
    subject = render(template.get("subject"), context)
    body = render(template.get("body"), context, escape=True)
    return subject, body
