"""
Reviewer Blueprint — reviewer queue and decisions.

Endpoints:
    GET   /api/v1/reviewer/queue            SUBMITTED + IN_REVIEW, newest first
    GET   /api/v1/reviewer/archived         approved applications, latest archive first
    GET   /api/v1/reviewer/<id>             view; a SUBMITTED application is opened (→ IN_REVIEW)
    POST  /api/v1/reviewer/<id>/decision    Body: {"action": "...", "note": "..."}

Every route requires a role in QUEUE_ROLES["reviewer"] (REVIEWER or ADMIN).
"""

import logging

from flask import Blueprint, g, jsonify, request

from travel_desk.middleware.permission_required import require_queue
from travel_desk.models.application import REVIEWER_ACTIONS, STATUS_IN_REVIEW, STATUS_SUBMITTED
from travel_desk.services import workflow
from travel_desk.utils.errors import E, api_error

logger = logging.getLogger(__name__)

reviewer_bp = Blueprint("reviewer", __name__, url_prefix="/api/v1/reviewer")

REVIEWER_QUEUE_STATUSES = (STATUS_SUBMITTED, STATUS_IN_REVIEW)


@reviewer_bp.route("/queue", methods=["GET"])
@require_queue("reviewer")
def queue():
    items = workflow.list_queue(REVIEWER_QUEUE_STATUSES)
    return jsonify({"queue": [a.to_dict() for a in items], "total": len(items)})


@reviewer_bp.route("/archived", methods=["GET"])
@require_queue("reviewer")
def archived():
    items = workflow.list_archived()
    return jsonify({"applications": [a.to_dict() for a in items], "total": len(items)})


@reviewer_bp.route("/<application_id>", methods=["GET"])
@require_queue("reviewer")
def open_application(application_id):
    """Return the application, claiming it for review if it is still SUBMITTED."""
    application = workflow.open_for_review(application_id, g.actor)
    return jsonify({"application": application.to_dict(include_log=True)})


@reviewer_bp.route("/<application_id>/decision", methods=["POST"])
@require_queue("reviewer")
def decision(application_id):
    data = request.get_json(silent=True) or {}
    action = data.get("action")
    action = action.strip() if isinstance(action, str) else ""
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "Field 'action' is required",
                         details={"valid_actions": sorted(REVIEWER_ACTIONS)})

    application = workflow.decide(application_id, action, g.actor, note=data.get("note"))
    return jsonify({"application": application.to_dict(include_log=True)})
