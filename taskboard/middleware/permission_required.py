"""
Role Decorators - RBAC for route protection.

Roles live on the User row (ADMIN | MANAGER | DEVELOPER | REPORTER); the
JWT middleware has already resolved the caller into g.current_user.

Usage:
    @user_bp.route("/users", methods=["GET"])
    @require_role("ADMIN", "MANAGER")
    def list_users():
        ...
"""

import functools
import logging

from flask import g

from taskboard.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def current_user():
    """The authenticated User for this request (set by jwt_auth)."""
    return getattr(g, "current_user", None)


def require_role(*roles: str):
    """
    Decorator: require the authenticated user to hold one of *roles*.

    Returns 401 when no user is attached and 403 when the role is not listed.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = current_user()
            if user is None:
                return api_error(E.UNAUTHORIZED, "Authentication required")

            if user.role not in roles:
                logger.warning(
                    "User %d (%s) denied: requires one of %s on %s",
                    user.id, user.role, roles, f.__name__,
                )
                return api_error(
                    E.FORBIDDEN,
                    "Access denied: insufficient permissions",
                    details={"required_any": list(roles)},
                )

            return f(*args, **kwargs)
        return decorated
    return decorator
