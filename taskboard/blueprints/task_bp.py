"""
Taskboard - Project Tracking API
Task Blueprint - CRUD, status moves, Kanban board and attachments.

Endpoints:
    GET    /api/v1/tasks                                    - List (filterable, paginated)
    POST   /api/v1/tasks                                    - Create
    GET    /api/v1/tasks/board                              - Kanban board
    GET    /api/v1/tasks/<id>                               - Detail (+ history)
    PUT    /api/v1/tasks/<id>                               - Update fields (not status)
    DELETE /api/v1/tasks/<id>                               - Delete
    PATCH  /api/v1/tasks/<id>/move                          - Change status
    POST   /api/v1/tasks/<id>/attachments                   - Add attachment
    DELETE /api/v1/tasks/<id>/attachments/<attachment_id>   - Remove attachment
"""

import logging

from flask import Blueprint, jsonify, request

from taskboard.blueprints import paginated
from taskboard.middleware.permission_required import current_user
from taskboard.services import task_service
from taskboard.utils.helpers import db_commit_or_error, request_json

logger = logging.getLogger(__name__)

task_bp = Blueprint("task", __name__, url_prefix="/api/v1")

LIST_FILTERS = ("status", "priority", "assignee_id", "reporter_id", "sprint_id", "search")


# ═════════════════════════════════════════════════════════════════════════════
# TASKS
# ═════════════════════════════════════════════════════════════════════════════

@task_bp.route("/tasks", methods=["GET"])
def list_tasks():
    """List tasks, most recently updated first.

    Query params:
        status, priority, assignee_id, reporter_id
        sprint_id - use 0 for tasks without a sprint
        search    - case-insensitive match on title / description
        limit, offset
    """
    filters = {p: request.args.get(p) for p in LIST_FILTERS}
    query = task_service.build_task_query(filters)
    return jsonify(paginated(query, lambda t: t.to_dict())), 200


@task_bp.route("/tasks", methods=["POST"])
def create_task():
    task = task_service.create_task(request_json(), current_user().id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(task.to_dict(include_history=True)), 201


@task_bp.route("/tasks/board", methods=["GET"])
def board():
    """Kanban board: one column per status. Filters: sprint_id, assignee_id."""
    result = task_service.compute_board({
        "sprint_id": request.args.get("sprint_id"),
        "assignee_id": request.args.get("assignee_id"),
    })
    return jsonify(result), 200


@task_bp.route("/tasks/<int:task_id>", methods=["GET"])
def get_task(task_id):
    task = task_service.get_task(task_id)
    return jsonify(task.to_dict(include_history=True)), 200


@task_bp.route("/tasks/<int:task_id>", methods=["PUT"])
def update_task(task_id):
    task = task_service.apply_field_update(task_id, request_json(), current_user().id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(task.to_dict(include_history=True)), 200


@task_bp.route("/tasks/<int:task_id>", methods=["DELETE"])
def delete_task(task_id):
    task_service.delete_task(task_id, current_user().id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify({"message": f"Task {task_id} deleted"}), 200


@task_bp.route("/tasks/<int:task_id>/move", methods=["PATCH"])
def move_task(task_id):
    """Change a task's status.

    Body JSON:
        status  - target status (required)
        comment - ledger note (optional)
        version - client's task version (optional, 409 on mismatch)
    """
    task, entry = task_service.move_task(task_id, request_json(), current_user().id)
    err = db_commit_or_error()
    if err:
        return err
    payload = task.to_dict(include_history=True)
    payload["changed"] = entry is not None
    return jsonify(payload), 200


# ═════════════════════════════════════════════════════════════════════════════
# ATTACHMENTS
# ═════════════════════════════════════════════════════════════════════════════

@task_bp.route("/tasks/<int:task_id>/attachments", methods=["POST"])
def add_attachment(task_id):
    """Attach uploaded-file metadata. Body JSON: filename, path, version?"""
    data = request_json()
    attachment = task_service.add_attachment(
        task_id,
        data.get("filename"),
        data.get("path"),
        current_user().id,
        expected_version=data.get("version"),
    )
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(attachment.task.to_dict()), 201


@task_bp.route("/tasks/<int:task_id>/attachments/<int:attachment_id>", methods=["DELETE"])
def remove_attachment(task_id, attachment_id):
    task = task_service.remove_attachment(task_id, attachment_id, current_user().id)
    err = db_commit_or_error()
    if err:
        return err
    return jsonify(task.to_dict()), 200
