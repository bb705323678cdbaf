"""
Taskboard - Project Tracking API
User Blueprint - identity store reads and profile updates.

Endpoints:
    GET  /api/v1/users                        - List (ADMIN / MANAGER)
    GET  /api/v1/users/me                     - Caller's profile
    GET  /api/v1/users/<id>                   - Profile
    PUT  /api/v1/users/<id>                   - Update (self or ADMIN)
    GET  /api/v1/users/<id>/tasks             - Tasks assigned to the user
    GET  /api/v1/users/<id>/reported-tasks    - Tasks reported by the user
"""

from flask import Blueprint, jsonify, request

from taskboard.blueprints import paginated
from taskboard.middleware.permission_required import current_user, require_role
from taskboard.services import user_service
from taskboard.utils.helpers import db_commit_or_error, request_json

user_bp = Blueprint("user", __name__, url_prefix="/api/v1")


@user_bp.route("/users", methods=["GET"])
@require_role("ADMIN", "MANAGER")
def list_users():
    """Query params: role, search, limit, offset."""
    query = user_service.list_users(
        role=request.args.get("role"),
        search=request.args.get("search"),
    )
    return jsonify(paginated(query, lambda u: u.to_dict())), 200


@user_bp.route("/users/me", methods=["GET"])
def me():
    return jsonify(current_user().to_dict()), 200


@user_bp.route("/users/<int:user_id>", methods=["GET"])
def get_user(user_id):
    return jsonify(user_service.get_user(user_id).to_dict()), 200


@user_bp.route("/users/<int:user_id>", methods=["PUT"])
def update_user(user_id):
    user = user_service.update_user(user_id, request_json(), current_user())
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(user.to_dict()), 200


@user_bp.route("/users/<int:user_id>/tasks", methods=["GET"])
def user_tasks(user_id):
    return jsonify(paginated(user_service.assigned_tasks(user_id), lambda t: t.to_dict())), 200


@user_bp.route("/users/<int:user_id>/reported-tasks", methods=["GET"])
def user_reported_tasks(user_id):
    return jsonify(paginated(user_service.reported_tasks(user_id), lambda t: t.to_dict())), 200
