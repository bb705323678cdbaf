"""
Taskboard - Project Tracking API
Identity models.

Models:
    - User: the actor behind every mutation; referenced by id from
      sprints (created_by), tasks (assignee / reporter), attachments
      and history entries.

Passwords and token issuance live upstream; this table only carries
identity and role.
"""

from datetime import datetime, timezone

from taskboard.models import db

USER_ROLES = {"ADMIN", "MANAGER", "DEVELOPER", "REPORTER"}


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    name = db.Column(db.String(200), nullable=False)
    role = db.Column(
        db.String(20), nullable=False, default="DEVELOPER",
        comment="ADMIN | MANAGER | DEVELOPER | REPORTER",
    )
    profile_picture = db.Column(db.String(500))
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_summary(self):
        """Compact form embedded in task / sprint payloads."""
        return {
            "id": self.id,
            "username": self.username,
            "name": self.name,
            "profile_picture": self.profile_picture,
        }

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "profile_picture": self.profile_picture,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.username} ({self.role})>"
