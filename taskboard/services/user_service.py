"""
User Service - identity store reads, profile updates, seeding.

Users are created by tooling (``flask create-user``, seed script); there
is no registration endpoint. Profile updates are allowed for the user
themself or an ADMIN; only an ADMIN may change a role.
"""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import or_

from taskboard.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from taskboard.models import db
from taskboard.models.task import Task
from taskboard.models.user import USER_ROLES, User
from taskboard.utils.helpers import text_input

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "email", "profile_picture")


def _normalize_email(email):
    try:
        return validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": email})


def _validate_role(role):
    if not isinstance(role, str) or role not in USER_ROLES:
        raise ValidationError(
            f"role must be one of: {', '.join(sorted(USER_ROLES))}",
            details={"role": role},
        )
    return role


def _ensure_unique(field, value, exclude_id=None):
    query = User.query.filter(getattr(User, field) == value)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise ValidationError(f"{field} is already in use", details={field: value})


# ═══════════════════════════════════════════════════════════════
# Reads
# ═══════════════════════════════════════════════════════════════
def get_user(user_id) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def list_users(role=None, search=None):
    query = User.query
    if role:
        query = query.filter(User.role == _validate_role(role))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            User.username.ilike(pattern),
            User.name.ilike(pattern),
            User.email.ilike(pattern),
        ))
    return query.order_by(User.username)


def assigned_tasks(user_id):
    get_user(user_id)
    return Task.query.filter(Task.assignee_id == user_id).order_by(Task.updated_at.desc(), Task.id.desc())


def reported_tasks(user_id):
    get_user(user_id)
    return Task.query.filter(Task.reporter_id == user_id).order_by(Task.updated_at.desc(), Task.id.desc())


# ═══════════════════════════════════════════════════════════════
# Writes
# ═══════════════════════════════════════════════════════════════
def create_user(username, email, name, role="DEVELOPER", profile_picture=None) -> User:
    """Insert a user into the identity store."""
    username = text_input(username, "username")
    name = text_input(name, "name")
    if not username or not name:
        raise ValidationError(
            "username and name are required",
            details={"username": username, "name": name},
        )
    email = _normalize_email(email or "")
    _validate_role(role)
    _ensure_unique("username", username)
    _ensure_unique("email", email)

    user = User(
        username=username,
        email=email,
        name=name,
        role=role,
        profile_picture=profile_picture,
    )
    db.session.add(user)
    db.session.flush()
    logger.info("User %s created (%s, role=%s)", user.id, username, role)
    return user


def update_user(user_id, data, actor) -> User:
    """Update profile fields of *user_id* on behalf of *actor*.

    Raises:
        AuthorizationError: actor is neither the user nor an ADMIN, or a
            non-ADMIN tries to change the role.
        ValidationError: malformed email / role, duplicate email, empty name.
    """
    user = get_user(user_id)
    is_admin = actor.role == "ADMIN"
    if actor.id != user.id and not is_admin:
        raise AuthorizationError("You can only update your own profile")

    if "role" in data and data["role"] != user.role:
        if not is_admin:
            raise AuthorizationError("Only ADMIN can change roles")
        user.role = _validate_role(data["role"])

    for field in PROFILE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == "name":
            value = text_input(value, "name")
            if not value:
                raise ValidationError("name cannot be empty", details={"name": "empty"})
        elif field == "email":
            value = _normalize_email(text_input(value, "email"))
            _ensure_unique("email", value, exclude_id=user.id)
        elif value is not None:
            value = text_input(value, field) or None
        setattr(user, field, value)

    db.session.flush()
    logger.info("User %s updated by user %s", user.id, actor.id)
    return user
