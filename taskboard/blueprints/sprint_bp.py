"""
Taskboard - Project Tracking API
Sprint Blueprint.

Endpoints:
    GET    /api/v1/sprints        - List (status filter, newest start first)
    POST   /api/v1/sprints        - Create
    GET    /api/v1/sprints/<id>   - Detail (+ tasks)
    PUT    /api/v1/sprints/<id>   - Update
    DELETE /api/v1/sprints/<id>   - Delete (tasks are detached, not deleted)
"""

import logging

from flask import Blueprint, jsonify, request

from taskboard.blueprints import paginated
from taskboard.middleware.permission_required import current_user
from taskboard.services import sprint_service
from taskboard.utils.helpers import db_commit_or_error, request_json

logger = logging.getLogger(__name__)

sprint_bp = Blueprint("sprint", __name__, url_prefix="/api/v1")


@sprint_bp.route("/sprints", methods=["GET"])
def list_sprints():
    query = sprint_service.list_sprints(status=request.args.get("status"))
    return jsonify(paginated(query, lambda s: s.to_dict())), 200


@sprint_bp.route("/sprints", methods=["POST"])
def create_sprint():
    sprint = sprint_service.create_sprint(request_json(), current_user().id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(sprint.to_dict()), 201


@sprint_bp.route("/sprints/<int:sprint_id>", methods=["GET"])
def get_sprint(sprint_id):
    sprint = sprint_service.get_sprint(sprint_id)
    return jsonify(sprint.to_dict(include_tasks=True)), 200


@sprint_bp.route("/sprints/<int:sprint_id>", methods=["PUT"])
def update_sprint(sprint_id):
    sprint = sprint_service.update_sprint(sprint_id, request_json())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(sprint.to_dict()), 200


@sprint_bp.route("/sprints/<int:sprint_id>", methods=["DELETE"])
def delete_sprint(sprint_id):
    """Delete a sprint and unassign its tasks."""
    detached = sprint_service.delete_sprint(sprint_id, current_user().id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": f"Sprint {sprint_id} deleted", "tasks_detached": detached}), 200
