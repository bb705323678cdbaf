"""Task service layer - task aggregate operations.

Transaction policy: methods use flush() for ID generation and version
checks, never commit(). The caller (route handler) is responsible for
db.session.commit().

Operations:
- Task creation (ledger seeded with "Task created")
- Field-level update (title / description / priority / assignee / sprint)
- Move (status change) - delegated to the transition engine
- Attachment add / remove
- Task listing with filters
- Kanban board computation
- Deletion

Concurrency:
    load_task_for_update() takes a row lock (SELECT ... FOR UPDATE on
    PostgreSQL) and every mutation ends in flush_task(), which turns a
    version_id_col mismatch into ConflictError.
"""
import logging
import os

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.orm.exc import StaleDataError

from taskboard.core.exceptions import (
    ConflictError,
    InvalidStatusError,
    NotFoundError,
    ValidationError,
)
from taskboard.models import db
from taskboard.models.task import (
    CREATED_COMMENT,
    DEFAULT_PRIORITY,
    DEFAULT_STATUS,
    TASK_PRIORITIES,
    TASK_STATUSES,
    Task,
    TaskAttachment,
    next_timestamp,
)
from taskboard.services.identity import (
    not_found_as,
    optional_id,
    resolve_sprint,
    resolve_user,
)
from taskboard.utils.helpers import text_input

logger = logging.getLogger(__name__)

UPDATABLE_TEXT_FIELDS = ("title", "description")


# ── Aggregate loading / version control ──────────────────────────────────────

def get_task(task_id) -> Task:
    task = db.session.get(Task, task_id)
    if not task:
        raise NotFoundError(resource="Task", resource_id=task_id)
    return task


def load_task_for_update(task_id) -> Task:
    """Load a task for mutation, holding a row lock until commit."""
    task = db.session.get(
        Task, task_id, with_for_update=True, populate_existing=True,
    )
    if not task:
        raise NotFoundError(resource="Task", resource_id=task_id)
    return task


def check_expected_version(task, expected_version):
    """Fail fast when the client based its write on an older version."""
    if expected_version is None:
        return
    try:
        expected = int(expected_version)
    except (ValueError, TypeError):
        raise ValidationError("version must be an integer", details={"version": expected_version})
    if expected != task.version:
        logger.warning(
            "Version conflict on task %s: client=%s stored=%s",
            task.id, expected, task.version,
        )
        raise ConflictError("Task", task.id, expected, task.version)


def flush_task(task):
    """Flush pending changes; a lost optimistic race becomes ConflictError."""
    task_id = task.id
    try:
        db.session.flush()
    except StaleDataError:
        db.session.rollback()
        logger.warning("Concurrent modification detected on task %s", task_id)
        raise ConflictError("Task", task_id)


# ── Validation helpers ───────────────────────────────────────────────────────

def validate_status(status):
    if not isinstance(status, str) or status not in TASK_STATUSES:
        raise InvalidStatusError(status, TASK_STATUSES)
    return status


def _validate_priority(priority):
    if not isinstance(priority, str) or priority not in TASK_PRIORITIES:
        raise ValidationError(
            f"priority must be one of: {', '.join(sorted(TASK_PRIORITIES))}",
            details={"priority": priority},
        )
    return priority


# ── Create / update / delete ─────────────────────────────────────────────────

def create_task(data, actor_id) -> Task:
    """Create a task and seed its ledger.

    Args:
        data: Dict with title, description?, priority?, status?,
              assignee_id, reporter_id, sprint_id?.
        actor_id: Authenticated user creating the task.

    Raises:
        ValidationError: missing title / assignee / reporter, or an id
            that does not resolve.
        InvalidStatusError: explicit initial status outside the set.
    """
    title = text_input(data.get("title"), "title")
    description = text_input(data.get("description"), "description")
    missing = [
        f for f, v in (
            ("title", title),
            ("assignee_id", data.get("assignee_id")),
            ("reporter_id", data.get("reporter_id")),
        ) if v in (None, "")
    ]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={f: "required" for f in missing},
        )

    status = validate_status(data.get("status") or DEFAULT_STATUS)
    priority = _validate_priority(data.get("priority") or DEFAULT_PRIORITY)

    assignee = not_found_as("assignee_id", resolve_user, data["assignee_id"])
    reporter = not_found_as("reporter_id", resolve_user, data["reporter_id"])

    sprint_id = optional_id(data.get("sprint_id"), "sprint_id")
    if sprint_id is not None:
        not_found_as("sprint_id", resolve_sprint, sprint_id)

    now = next_timestamp()
    task = Task(
        title=title,
        description=description,
        priority=priority,
        status=status,
        assignee_id=assignee.id,
        reporter_id=reporter.id,
        sprint_id=sprint_id,
        created_at=now,
        updated_at=now,
    )
    task.append_history(status, reporter.id, CREATED_COMMENT)
    db.session.add(task)
    db.session.flush()
    logger.info(
        "Task %s created by user %s (status=%s, sprint=%s)",
        task.id, actor_id, status, sprint_id,
    )
    return task


def apply_field_update(task_id, data, actor_id) -> Task:
    """Partial update of non-status fields. Never touches the ledger.

    Status and reporter cannot be changed here: a differing value is
    rejected so that status changes always go through the move endpoint.

    Raises:
        ValidationError, NotFoundError, ConflictError
    """
    task = load_task_for_update(task_id)
    check_expected_version(task, data.get("version"))

    if "status" in data and data["status"] != task.status:
        raise ValidationError(
            "status cannot be changed by a field update; use the move endpoint",
            details={"status": data["status"]},
        )
    if "reporter_id" in data and optional_id(data["reporter_id"], "reporter_id") != task.reporter_id:
        raise ValidationError(
            "reporter_id is immutable",
            details={"reporter_id": data["reporter_id"]},
        )

    # Validate everything before applying anything.
    changes = {}
    for field in UPDATABLE_TEXT_FIELDS:
        if field in data:
            changes[field] = text_input(data[field], field)
    if "title" in changes and not changes["title"]:
        raise ValidationError("Task title cannot be empty", details={"title": "empty"})

    if "priority" in data:
        changes["priority"] = _validate_priority(data["priority"])

    if "assignee_id" in data:
        if data["assignee_id"] in (None, ""):
            raise ValidationError("assignee_id cannot be cleared", details={"assignee_id": "required"})
        changes["assignee_id"] = resolve_user(data["assignee_id"]).id

    if "sprint_id" in data:
        sprint_id = optional_id(data["sprint_id"], "sprint_id")
        if sprint_id is not None:
            resolve_sprint(sprint_id)
        changes["sprint_id"] = sprint_id

    dirty = {k: v for k, v in changes.items() if getattr(task, k) != v}
    if not dirty:
        return task

    for field, value in dirty.items():
        setattr(task, field, value)
    task.touch()
    flush_task(task)
    logger.info("Task %s updated by user %s: %s", task.id, actor_id, sorted(dirty))
    return task


def move_task(task_id, data, actor_id):
    """Parse a move request and hand it to the transition engine.

    Returns:
        (Task, TaskHistoryEntry | None) - entry is None for a no-op move.
    """
    from taskboard.services.transition_engine import transition_status

    if "status" not in data:
        raise ValidationError("status is required", details={"status": "required"})
    return transition_status(
        task_id,
        data["status"],
        actor_id,
        comment=data.get("comment"),
        expected_version=data.get("version"),
    )


def delete_task(task_id, actor_id):
    task = load_task_for_update(task_id)
    db.session.delete(task)
    flush_task(task)
    logger.info("Task %s deleted by user %s", task_id, actor_id)


# ── Attachments ──────────────────────────────────────────────────────────────

def _validate_attachment_name(filename):
    allowed = current_app.config.get("ALLOWED_ATTACHMENT_EXTENSIONS")
    if not allowed:
        return
    ext = os.path.splitext(filename)[1].lower().lstrip(".")
    if ext not in allowed:
        raise ValidationError(
            "Unsupported file format. Allowed: " + ", ".join(sorted(allowed)),
            details={"filename": filename},
        )


def add_attachment(task_id, filename, path, actor_id, expected_version=None) -> TaskAttachment:
    """Append attachment metadata. No ledger effect."""
    filename = text_input(filename, "filename")
    path = text_input(path, "path")
    missing = [f for f, v in (("filename", filename), ("path", path)) if not v]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            details={f: "required" for f in missing},
        )
    _validate_attachment_name(filename)

    task = load_task_for_update(task_id)
    check_expected_version(task, expected_version)

    attachment = TaskAttachment(
        filename=filename,
        path=path,
        uploaded_by_id=actor_id,
        uploaded_at=next_timestamp(),
    )
    task.attachments.append(attachment)
    task.touch()
    flush_task(task)
    logger.info("Attachment %s added to task %s by user %s", attachment.id, task.id, actor_id)
    return attachment


def remove_attachment(task_id, attachment_id, actor_id) -> Task:
    """Remove an attachment by id (row is deleted, no tombstone)."""
    task = load_task_for_update(task_id)
    match = next((a for a in task.attachments if a.id == attachment_id), None)
    if match is None:
        raise NotFoundError(resource="Attachment", resource_id=attachment_id)

    task.attachments = [a for a in task.attachments if a.id != attachment_id]
    task.touch()
    flush_task(task)
    logger.info("Attachment %s removed from task %s by user %s", attachment_id, task.id, actor_id)
    return task


# ── Queries ──────────────────────────────────────────────────────────────────

def build_task_query(filters):
    """Task query for the fixed filter set.

    Filters (all optional): status, priority, assignee_id, reporter_id,
    sprint_id ("0" = tasks without a sprint), search (title/description).
    """
    query = Task.query

    status = filters.get("status")
    if status:
        query = query.filter(Task.status == validate_status(status))

    priority = filters.get("priority")
    if priority:
        query = query.filter(Task.priority == _validate_priority(priority))

    for param in ("assignee_id", "reporter_id"):
        val = filters.get(param)
        if val not in (None, ""):
            query = query.filter(getattr(Task, param) == optional_id(val, param))

    sprint_id = filters.get("sprint_id")
    if sprint_id not in (None, ""):
        if str(sprint_id) == "0":
            query = query.filter(Task.sprint_id.is_(None))
        else:
            query = query.filter(Task.sprint_id == optional_id(sprint_id, "sprint_id"))

    search = (filters.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

    return query.order_by(Task.updated_at.desc(), Task.id.desc())


def compute_board(filters):
    """Kanban board - tasks partitioned into the four fixed status columns.

    Returns:
        dict with 'columns' and 'summary' keys.
    """
    query = build_task_query({
        "sprint_id": filters.get("sprint_id"),
        "assignee_id": filters.get("assignee_id"),
    })
    tasks = query.all()

    columns = {s: [] for s in TASK_STATUSES}
    for t in tasks:
        columns[t.status].append(t.to_dict())

    total = len(tasks)
    done = len(columns["DONE"])
    return {
        "columns": columns,
        "summary": {
            "total_tasks": total,
            "by_status": {s: len(items) for s, items in columns.items()},
            "completion_pct": round(done / total * 100) if total else 0,
        },
    }
