"""
Applications Blueprint — requester-facing CRUD and history.

Endpoints:
    GET   /api/v1/applications                   my applications
    POST  /api/v1/applications                   create; {"submit": true} submits immediately
    GET   /api/v1/applications/expense-types     expense types from settings
    GET   /api/v1/applications/closed            every closed application (reviewer queue roles)
    GET   /api/v1/applications/<id>              one application with its decision log
    PUT   /api/v1/applications/<id>              edit my DRAFT
    POST  /api/v1/applications/<id>/submit       DRAFT → SUBMITTED
    GET   /api/v1/applications/<id>/history      decision log, oldest first

Layer contract:
    - Blueprint: parse input, call service, return JSON.
    - No db.session calls here; writes belong to the services.
"""

import logging

from flask import Blueprint, g, jsonify, request

from travel_desk.middleware.permission_required import require_actor, require_queue
from travel_desk.models.application import STATUS_SUBMITTED
from travel_desk.services import application_service, decision_log, settings_service, workflow

logger = logging.getLogger(__name__)

application_bp = Blueprint("applications", __name__, url_prefix="/api/v1/applications")


@application_bp.route("", methods=["GET"])
@require_actor
def list_mine():
    items = application_service.list_for_requester(g.actor)
    return jsonify({"applications": [a.to_dict() for a in items], "total": len(items)})


@application_bp.route("", methods=["POST"])
@require_actor
def create():
    data = request.get_json(silent=True) or {}
    submit = data.get("submit") is True or data.get("status") == STATUS_SUBMITTED
    application = application_service.create_application(data, g.actor, submit=submit)
    return jsonify({"application": application.to_dict(include_log=True)}), 201


@application_bp.route("/expense-types", methods=["GET"])
@require_actor
def expense_types():
    return jsonify({"expense_types": settings_service.expense_types()})


@application_bp.route("/closed", methods=["GET"])
@require_queue("reviewer")
def closed():
    items = workflow.list_closed()
    return jsonify({"applications": [a.to_dict() for a in items], "total": len(items)})


@application_bp.route("/<application_id>", methods=["GET"])
@require_actor
def get_one(application_id):
    application = application_service.get_application_for(application_id, g.actor)
    return jsonify({"application": application.to_dict(include_log=True)})


@application_bp.route("/<application_id>", methods=["PUT"])
@require_actor
def update(application_id):
    data = request.get_json(silent=True) or {}
    application = application_service.update_draft(application_id, data, g.actor)
    return jsonify({"application": application.to_dict()})


@application_bp.route("/<application_id>/submit", methods=["POST"])
@require_actor
def submit(application_id):
    application = workflow.submit(application_id, g.actor)
    return jsonify({"application": application.to_dict(include_log=True)})


@application_bp.route("/<application_id>/history", methods=["GET"])
@require_actor
def history(application_id):
    application = application_service.get_application_for(application_id, g.actor)
    return jsonify({"application_id": application.id,
                    "history": decision_log.history(application.id)})
