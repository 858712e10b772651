"""
Admin Blueprint — settings, email diagnostics and recovery.

Endpoints:
    GET   /api/v1/admin/settings                      settings document, secrets masked
    PUT   /api/v1/admin/settings                      partial update, returns masked document
    POST  /api/v1/admin/settings/test-email           Body: {"email": "..."}
    GET   /api/v1/admin/email-logs                    ?status=&application_id=&limit=
    POST  /api/v1/admin/applications/<id>/renotify    re-send the latest decision email
    POST  /api/v1/admin/applications/<id>/reconcile   rewrite status fields from the decision log

Every route requires the ADMIN role.
"""

import logging

from flask import Blueprint, g, jsonify, request
from sqlalchemy import select

from travel_desk.middleware.permission_required import require_queue
from travel_desk.models import db
from travel_desk.models.email_log import EMAIL_STATUSES, EmailLog
from travel_desk.services import settings_service, workflow
from travel_desk.services.notification import NotificationDispatcher
from travel_desk.utils.errors import E, api_error

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")


@admin_bp.route("/settings", methods=["GET"])
@require_queue("admin")
def get_settings():
    return jsonify({"settings": settings_service.masked(settings_service.get_settings())})


@admin_bp.route("/settings", methods=["PUT"])
@require_queue("admin")
def put_settings():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return api_error(E.VALIDATION_REQUIRED, "JSON object body is required")
    updated = settings_service.update_settings(data, actor_id=g.actor.id)
    return jsonify({"settings": settings_service.masked(updated)})


@admin_bp.route("/settings/test-email", methods=["POST"])
@require_queue("admin")
def test_email():
    data = request.get_json(silent=True) or {}
    address = data.get("email")
    address = address.strip() if isinstance(address, str) else ""
    if not address:
        return api_error(E.VALIDATION_REQUIRED, "Field 'email' is required")
    log = NotificationDispatcher.send_test_email(address)
    return jsonify({"message": f"Test email sent to {log.recipient_email}",
                    "email_log": log.to_dict()})


@admin_bp.route("/email-logs", methods=["GET"])
@require_queue("admin")
def email_logs():
    stmt = select(EmailLog)
    status = request.args.get("status")
    if status:
        if status not in EMAIL_STATUSES:
            return api_error(E.VALIDATION_INVALID, f"Unknown status '{status}'",
                             details={"valid_statuses": sorted(EMAIL_STATUSES)})
        stmt = stmt.where(EmailLog.status == status)
    application_id = request.args.get("application_id")
    if application_id:
        stmt = stmt.where(EmailLog.application_id == application_id)
    limit = min(request.args.get("limit", 100, type=int) or 100, 500)

    rows = db.session.execute(
        stmt.order_by(EmailLog.created_at.desc(), EmailLog.id.desc()).limit(limit)
    ).scalars().all()
    return jsonify({"email_logs": [r.to_dict() for r in rows], "total": len(rows)})


@admin_bp.route("/applications/<application_id>/renotify", methods=["POST"])
@require_queue("admin")
def renotify(application_id):
    logs = NotificationDispatcher.renotify(application_id)
    return jsonify({"email_logs": [log.to_dict() for log in logs]})


@admin_bp.route("/applications/<application_id>/reconcile", methods=["POST"])
@require_queue("admin")
def reconcile(application_id):
    return jsonify(workflow.reconcile(application_id))
