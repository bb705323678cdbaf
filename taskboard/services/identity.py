"""Identity reference helpers - resolve user / sprint ids to rows.

Every operation that accepts a foreign id goes through here so the
"references an existing row" rule lives in one place.

Conventions:
    - ``None`` and ``""`` mean "no reference" for optional links.
    - Ids that are not integers raise ValidationError.
    - Ids that do not resolve raise NotFoundError; callers that must
      report a missing reference as bad input (task creation) re-raise
      it as ValidationError via ``not_found_as``.
"""
import logging

from taskboard.core.exceptions import NotFoundError, ValidationError
from taskboard.models import db
from taskboard.models.sprint import Sprint
from taskboard.models.user import User

logger = logging.getLogger(__name__)


def coerce_id(value, field):
    """Return *value* as an int, or raise ValidationError naming *field*."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={field: value})
    try:
        return int(value)
    except (ValueError, TypeError):
        raise ValidationError(f"{field} must be an integer", details={field: value})


def optional_id(value, field):
    """Like coerce_id, but ``None`` / ``""`` pass through as None."""
    if value is None or value == "":
        return None
    return coerce_id(value, field)


def resolve_user(user_id) -> User:
    user = db.session.get(User, coerce_id(user_id, "user_id"))
    if not user:
        raise NotFoundError(resource="User", resource_id=user_id)
    return user


def resolve_sprint(sprint_id) -> Sprint:
    sprint = db.session.get(Sprint, coerce_id(sprint_id, "sprint_id"))
    if not sprint:
        raise NotFoundError(resource="Sprint", resource_id=sprint_id)
    return sprint


def not_found_as(field, resolver, value):
    """Call *resolver(value)*, reporting a miss as a ValidationError on *field*."""
    try:
        return resolver(value)
    except NotFoundError as exc:
        raise ValidationError(str(exc), details={field: value}) from exc
