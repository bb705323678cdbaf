"""Sprint service layer - sprint lifecycle.

Transaction policy: methods use flush() for ID generation, never commit().
Caller (route handler) is responsible for db.session.commit().

Operations:
- Sprint creation (name + strict start < end date window)
- Partial update (date window re-validated when either end changes)
- Deletion with task detachment (tasks are never deleted)
- Listing / detail
"""
import logging

from sqlalchemy.orm.exc import StaleDataError

from taskboard.core.exceptions import ConflictError, NotFoundError, ValidationError
from taskboard.models import db
from taskboard.models.sprint import SPRINT_STATUSES, Sprint
from taskboard.models.task import Task
from taskboard.services.identity import optional_id
from taskboard.utils.helpers import parse_date_input, text_input

logger = logging.getLogger(__name__)

DEFAULT_SPRINT_STATUS = "PLANNING"


def get_sprint(sprint_id) -> Sprint:
    sprint = db.session.get(Sprint, sprint_id)
    if not sprint:
        raise NotFoundError(resource="Sprint", resource_id=sprint_id)
    return sprint


def _validate_status(status):
    if not isinstance(status, str) or status not in SPRINT_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(SPRINT_STATUSES))}",
            details={"status": status},
        )
    return status


def _validate_window(start_date, end_date):
    if start_date >= end_date:
        raise ValidationError(
            "end_date must be after start_date",
            details={
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )


def create_sprint(data, actor_id) -> Sprint:
    """Create a sprint owned by *actor_id*.

    Raises:
        ValidationError: missing name or dates, malformed dates,
            end_date not after start_date, or unknown status.
    """
    name = text_input(data.get("name"), "name")
    description = text_input(data.get("description"), "description")
    missing = [
        f for f, v in (
            ("name", name),
            ("start_date", data.get("start_date")),
            ("end_date", data.get("end_date")),
        ) if v in (None, "")
    ]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={f: "required" for f in missing},
        )

    start_date = parse_date_input(data["start_date"], "start_date")
    end_date = parse_date_input(data["end_date"], "end_date")
    _validate_window(start_date, end_date)
    status = _validate_status(data.get("status") or DEFAULT_SPRINT_STATUS)

    sprint = Sprint(
        name=name,
        description=description,
        status=status,
        start_date=start_date,
        end_date=end_date,
        created_by_id=actor_id,
    )
    db.session.add(sprint)
    db.session.flush()
    logger.info("Sprint %s created by user %s (%s → %s)", sprint.id, actor_id, start_date, end_date)
    return sprint


def update_sprint(sprint_id, data) -> Sprint:
    """Update a sprint's fields.

    created_by_id is immutable; a differing value is rejected.
    """
    sprint = get_sprint(sprint_id)

    if "created_by_id" in data and optional_id(data["created_by_id"], "created_by_id") != sprint.created_by_id:
        raise ValidationError(
            "created_by_id is immutable",
            details={"created_by_id": data["created_by_id"]},
        )

    changes = {}
    if "name" in data:
        name = text_input(data["name"], "name")
        if not name:
            raise ValidationError("Sprint name cannot be empty", details={"name": "empty"})
        changes["name"] = name
    if "description" in data:
        changes["description"] = text_input(data["description"], "description")
    if "status" in data:
        changes["status"] = _validate_status(data["status"])

    for date_field in ("start_date", "end_date"):
        if date_field in data:
            value = parse_date_input(data[date_field], date_field)
            if value is None:
                raise ValidationError(
                    f"{date_field} cannot be cleared", details={date_field: "required"},
                )
            changes[date_field] = value

    if "start_date" in changes or "end_date" in changes:
        _validate_window(
            changes.get("start_date", sprint.start_date),
            changes.get("end_date", sprint.end_date),
        )

    for field, value in changes.items():
        setattr(sprint, field, value)

    db.session.flush()
    return sprint


def delete_sprint(sprint_id, actor_id=None):
    """Delete a sprint and detach its tasks.

    Each referencing task is locked, has sprint_id cleared and updated_at
    refreshed (its version increments on flush). The sprint row is deleted
    in the same flush, so the caller's commit applies all of it or none.

    Returns:
        Number of tasks detached.
    """
    sprint = get_sprint(sprint_id)

    tasks = (
        Task.query.filter(Task.sprint_id == sprint.id)
        .with_for_update()
        .all()
    )
    for task in tasks:
        task.sprint_id = None
        task.touch()

    db.session.delete(sprint)
    try:
        db.session.flush()
    except StaleDataError:
        db.session.rollback()
        logger.warning("Concurrent task modification while deleting sprint %s", sprint_id)
        raise ConflictError("Sprint", sprint_id)

    logger.info(
        "Sprint %s deleted by user %s; %d task(s) detached",
        sprint_id, actor_id, len(tasks),
    )
    return len(tasks)


def list_sprints(status=None):
    query = Sprint.query
    if status:
        query = query.filter(Sprint.status == _validate_status(status))
    return query.order_by(Sprint.start_date.desc(), Sprint.id.desc())
