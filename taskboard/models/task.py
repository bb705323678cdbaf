"""
Taskboard - Project Tracking API
Task domain models.

Models:
    - Task: aggregate root (status, assignment, sprint link, attachments, history)
    - TaskAttachment: uploaded-file metadata owned by a task
    - TaskHistoryEntry: append-only ledger row, one per status entered

Ledger rules:
    - A new task is seeded with exactly one entry (comment "Task created").
    - Only the transition engine appends afterwards.
    - Rows are never updated; a before_update hook refuses it.
    - The last entry's status always equals Task.status.

Task.version is the SQLAlchemy version_id_col: every UPDATE of the task row
is guarded by "WHERE version = <loaded>", so a concurrent writer that lost
the race gets a StaleDataError at flush time.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import event as _sa_event

from taskboard.models import db

# ── Shared constants ─────────────────────────────────────────────────────

TASK_STATUSES = ("TO_DO", "IN_PROGRESS", "REVIEW", "DONE")
TASK_PRIORITIES = {"LOW", "MEDIUM", "HIGH", "URGENT"}

DEFAULT_STATUS = "TO_DO"
DEFAULT_PRIORITY = "MEDIUM"
CREATED_COMMENT = "Task created"

# Transition policies: current status → statuses it may move to.
# "unconstrained" is the board default (any column to any column);
# "workflow" enforces the forward flow with single-step rework.
TASK_TRANSITION_POLICIES = {
    "unconstrained": {
        s: {t for t in TASK_STATUSES if t != s} for s in TASK_STATUSES
    },
    "workflow": {
        "TO_DO": {"IN_PROGRESS"},
        "IN_PROGRESS": {"TO_DO", "REVIEW"},
        "REVIEW": {"IN_PROGRESS", "DONE"},
        "DONE": {"REVIEW"},
    },
}


def _utcnow():
    return datetime.now(timezone.utc)


def _as_aware(value):
    # SQLite hands timezone-aware columns back as naive datetimes.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def next_timestamp(previous=None):
    """Return "now", bumped to be strictly later than *previous*."""
    now = _utcnow()
    previous = _as_aware(previous)
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


class Task(db.Model):
    """
    Task aggregate.

    reporter_id is set once at creation and never changes.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        db.Index("idx_task_status", "status"),
        db.Index("idx_task_sprint", "sprint_id"),
        db.Index("idx_task_assignee", "assignee_id"),
        db.Index("idx_task_reporter", "reporter_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    priority = db.Column(
        db.String(20), nullable=False, default=DEFAULT_PRIORITY,
        comment="LOW | MEDIUM | HIGH | URGENT",
    )
    status = db.Column(
        db.String(20), nullable=False, default=DEFAULT_STATUS,
        comment="TO_DO | IN_PROGRESS | REVIEW | DONE",
    )
    assignee_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False,
    )
    reporter_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False,
        comment="Immutable after creation",
    )
    sprint_id = db.Column(
        db.Integer, db.ForeignKey("sprints.id", ondelete="SET NULL"), nullable=True,
    )
    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow,
    )
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=_utcnow,
    )

    __mapper_args__ = {"version_id_col": version}

    # ── Relationships
    assignee = db.relationship("User", foreign_keys=[assignee_id])
    reporter = db.relationship("User", foreign_keys=[reporter_id])
    sprint = db.relationship("Sprint", back_populates="tasks")
    attachments = db.relationship(
        "TaskAttachment",
        back_populates="task",
        order_by="TaskAttachment.id",
        cascade="all, delete-orphan",
    )
    history = db.relationship(
        "TaskHistoryEntry",
        back_populates="task",
        order_by="TaskHistoryEntry.id",
        cascade="all, delete-orphan",
    )

    # ── Ledger helpers

    def append_history(self, status, updated_by_id, comment=None):
        """Append one ledger entry. Callers own status/updated_at consistency."""
        last = self.history[-1].timestamp if self.history else None
        entry = TaskHistoryEntry(
            status=status,
            updated_by_id=updated_by_id,
            comment=comment,
            timestamp=next_timestamp(last),
        )
        self.history.append(entry)
        return entry

    def touch(self):
        """Refresh updated_at, strictly after its previous value."""
        self.updated_at = next_timestamp(self.updated_at)

    @property
    def last_history_entry(self):
        return self.history[-1] if self.history else None

    def to_dict(self, include_history=False):
        result = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "assignee_id": self.assignee_id,
            "assignee": self.assignee.to_summary() if self.assignee else None,
            "reporter_id": self.reporter_id,
            "reporter": self.reporter.to_summary() if self.reporter else None,
            "sprint_id": self.sprint_id,
            "sprint": self.sprint.to_summary() if self.sprint else None,
            "attachments": [a.to_dict() for a in self.attachments],
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_history:
            result["history"] = [h.to_dict() for h in self.history]
        return result

    def __repr__(self):
        return f"<Task {self.id}: [{self.status}] {self.title[:30]}>"


class TaskAttachment(db.Model):
    """File metadata; the bytes live in external storage at *path*."""

    __tablename__ = "task_attachments"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    filename = db.Column(db.String(255), nullable=False)
    path = db.Column(db.String(500), nullable=False)
    uploaded_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    uploaded_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    task = db.relationship("Task", back_populates="attachments")

    def to_dict(self):
        return {
            "id": self.id,
            "filename": self.filename,
            "path": self.path,
            "uploaded_at": self.uploaded_at.isoformat() if self.uploaded_at else None,
            "uploaded_by_id": self.uploaded_by_id,
        }

    def __repr__(self):
        return f"<TaskAttachment {self.id}: {self.filename}>"


class TaskHistoryEntry(db.Model):
    """
    Immutable ledger row: the status a task entered, who moved it, and when.

    Ordered by id, which follows append order.
    """

    __tablename__ = "task_history"

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer, db.ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    status = db.Column(db.String(20), nullable=False)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    comment = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    task = db.relationship("Task", back_populates="history")
    updated_by = db.relationship("User", foreign_keys=[updated_by_id])

    def to_dict(self):
        return {
            "id": self.id,
            "status": self.status,
            "updated_by_id": self.updated_by_id,
            "updated_by": self.updated_by.to_summary() if self.updated_by else None,
            "comment": self.comment,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<TaskHistoryEntry {self.id}: task={self.task_id} → {self.status}>"


@_sa_event.listens_for(TaskHistoryEntry, "before_update")
def _refuse_history_update(mapper, connection, target):
    """History rows are append-only."""
    raise ValueError(
        f"TaskHistoryEntry {target.id} is immutable; append a new entry instead"
    )
