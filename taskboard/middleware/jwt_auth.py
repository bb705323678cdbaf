"""
JWT Auth Middleware - resolves the bearer token into g.current_user.

Every /api/v1/* request (health probes excepted) must carry
``Authorization: Bearer <token>``. The token is verified with PyJWT and
its ``sub`` must name an existing user; otherwise the request is
rejected with 401 before any view runs.

After this hook:
    g.current_user  →  User row of the caller (None on skipped paths)
    g.jwt_payload   →  decoded token claims
"""

import logging

import jwt as pyjwt
from flask import g, request

from taskboard.models import db
from taskboard.models.user import User
from taskboard.services.jwt_service import decode_access_token, user_id_from_payload
from taskboard.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
)


def _unauthorized(message):
    return api_error(E.UNAUTHORIZED, message)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user = None
        g.jwt_payload = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return None
        if request.method == "OPTIONS":
            return None
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return None

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return _unauthorized("Authentication required")

        token = auth_header[7:].strip()  # Strip "Bearer "
        try:
            payload = decode_access_token(token)
            user_id = user_id_from_payload(payload)
        except pyjwt.ExpiredSignatureError:
            return _unauthorized("Token expired")
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected bearer token on %s: %s", path, exc)
            return _unauthorized("Invalid token")

        user = db.session.get(User, user_id)
        if user is None:
            logger.warning("Token for unknown user %s on %s", user_id, path)
            return _unauthorized("User not found")

        g.current_user = user
        g.jwt_payload = payload
        return None
