"""
Transition engine - the only writer of the task history ledger.

Every status change of a task goes through transition_status(), which
validates the target, consults the configured transition policy, and in
one flush appends the ledger entry, sets Task.status and refreshes
updated_at.

Policy is read from app.config["TASK_TRANSITION_POLICY"]:
    unconstrained  - any status to any other status (board default)
    workflow       - forward flow with single-step rework

Moving a task to the status it already has is a no-op: nothing is
appended and updated_at is left untouched.
"""

import logging

from flask import current_app

from taskboard.core.exceptions import InvalidTransitionError
from taskboard.models.task import TASK_TRANSITION_POLICIES
from taskboard.services.task_service import (
    check_expected_version,
    flush_task,
    load_task_for_update,
    validate_status,
)
from taskboard.utils.helpers import text_input

logger = logging.getLogger(__name__)

DEFAULT_POLICY = "unconstrained"


def status_changed_comment(status):
    return f"Status changed to {status}"


def get_policy(name=None):
    """Return the transition map for *name* (defaults to the app setting)."""
    name = name or current_app.config.get("TASK_TRANSITION_POLICY") or DEFAULT_POLICY
    try:
        return TASK_TRANSITION_POLICIES[name]
    except KeyError:
        raise RuntimeError(
            f"Unknown TASK_TRANSITION_POLICY {name!r}; "
            f"expected one of {sorted(TASK_TRANSITION_POLICIES)}"
        )


def allowed_targets(current_status, policy=None):
    return get_policy(policy).get(current_status, set())


def transition_status(task_id, new_status, actor_id, comment=None,
                      expected_version=None, policy=None):
    """Move a task to *new_status* on behalf of *actor_id*.

    Args:
        task_id: Task PK.
        new_status: Target status (one of TASK_STATUSES).
        actor_id: User recorded as updated_by on the ledger entry.
        comment: Optional note; defaults to "Status changed to <status>".
        expected_version: Client's view of Task.version (optional).
        policy: Override of the configured policy name.

    Returns:
        (Task, TaskHistoryEntry | None) - entry is None for a same-status move.

    Raises:
        InvalidStatusError: new_status outside the enumerated set.
        NotFoundError: task does not exist.
        ConflictError: expected_version mismatch or a concurrent writer won.
        InvalidTransitionError: the active policy forbids the edge.
    """
    validate_status(new_status)
    text = text_input(comment, "comment")
    task = load_task_for_update(task_id)
    check_expected_version(task, expected_version)

    current = task.status
    if new_status == current:
        logger.debug("Task %s already in %s; move ignored", task.id, current)
        return task, None

    allowed = allowed_targets(current, policy)
    if new_status not in allowed:
        raise InvalidTransitionError(task.id, current, new_status, allowed)

    entry = task.append_history(
        new_status, actor_id, text or status_changed_comment(new_status),
    )
    task.status = new_status
    task.touch()
    flush_task(task)

    logger.info(
        "Task %s transitioned %s → %s by user %s",
        task.id, current, new_status, actor_id,
    )
    return task, entry
