"""
Taskboard - Project Tracking API
Sprint domain model.

Models:
    - Sprint: time-boxed iteration that tasks may be linked to.

Deleting a sprint never deletes tasks; the sprint service clears the
link on every referencing task first (see services/sprint_service.py).
"""

from datetime import datetime, timezone

from taskboard.models import db

SPRINT_STATUSES = {"PLANNING", "ACTIVE", "COMPLETED"}


class Sprint(db.Model):
    """
    Iteration container for planning and grouping tasks.

    Invariant: start_date < end_date (checked by the sprint service on
    create and whenever either endpoint is updated).
    """

    __tablename__ = "sprints"
    __table_args__ = (
        db.CheckConstraint("start_date < end_date", name="ck_sprint_date_window"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, comment="e.g. Sprint 1, Iteration 2.3")
    description = db.Column(db.Text, default="")
    status = db.Column(
        db.String(20),
        nullable=False,
        default="PLANNING",
        comment="PLANNING | ACTIVE | COMPLETED",
    )
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    created_by_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False,
        comment="Immutable after creation",
    )

    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ── Relationships
    created_by = db.relationship("User", foreign_keys=[created_by_id])
    tasks = db.relationship(
        "Task", back_populates="sprint", lazy="dynamic", order_by="Task.id",
        passive_deletes=True,
    )

    def to_summary(self):
        return {
            "id": self.id,
            "name": self.name,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "status": self.status,
        }

    def to_dict(self, include_tasks=False):
        result = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "created_by_id": self.created_by_id,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_tasks:
            result["tasks"] = [t.to_dict() for t in self.tasks]
        return result

    def __repr__(self):
        return f"<Sprint {self.id}: {self.name}>"
