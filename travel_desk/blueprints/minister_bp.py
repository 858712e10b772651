"""
Minister Blueprint — referred applications.

Endpoints:
    GET   /api/v1/minister/queue            REFERRED_TO_MINISTER, newest first
    GET   /api/v1/minister/archived         applications this minister decided
    POST  /api/v1/minister/<id>/decision    Body: {"action": "MINISTER_APPROVED|MINISTER_REJECTED", "note": "..."}

Every route requires a role in QUEUE_ROLES["minister"] (MINISTER or ADMIN).
"""

from flask import Blueprint, g, jsonify, request

from travel_desk.middleware.permission_required import require_queue
from travel_desk.models.application import MINISTER_ACTIONS, STATUS_REFERRED
from travel_desk.services import workflow
from travel_desk.utils.errors import E, api_error

minister_bp = Blueprint("minister", __name__, url_prefix="/api/v1/minister")


@minister_bp.route("/queue", methods=["GET"])
@require_queue("minister")
def queue():
    items = workflow.list_queue((STATUS_REFERRED,))
    return jsonify({"queue": [a.to_dict() for a in items], "total": len(items)})


@minister_bp.route("/archived", methods=["GET"])
@require_queue("minister")
def archived():
    items = workflow.list_decided_by(g.actor.id, MINISTER_ACTIONS)
    return jsonify({"applications": [a.to_dict() for a in items], "total": len(items)})


@minister_bp.route("/<application_id>/decision", methods=["POST"])
@require_queue("minister")
def decision(application_id):
    data = request.get_json(silent=True) or {}
    action = data.get("action")
    action = action.strip() if isinstance(action, str) else ""
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "Field 'action' is required",
                         details={"valid_actions": sorted(MINISTER_ACTIONS)})

    application = workflow.minister_decide(application_id, action, g.actor, note=data.get("note"))
    return jsonify({"application": application.to_dict(include_log=True)})
