"""
Taskboard - Project Tracking API
Flask Application Factory.

Usage:
    from taskboard import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from taskboard.config import config
from taskboard.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from taskboard.models import db
from taskboard.middleware.diagnostics import run_startup_diagnostics
from taskboard.middleware.jwt_auth import init_jwt_middleware
from taskboard.middleware.logging_config import configure_logging
from taskboard.middleware.rate_limiter import init_rate_limits
from taskboard.middleware.security_headers import init_security_headers
from taskboard.middleware.timing import init_request_timing
from taskboard.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine  # noqa: E402


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit - apply per-blueprint
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Security headers ─────────────────────────────────────────────────
    init_security_headers(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.current_user) ────────────────────────
    init_jwt_middleware(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 1 * 1024 * 1024)  # 1 MB

    @app.before_request
    def _guard_request():
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            if request.data and "json" not in ct:
                return api_error(
                    E.VALIDATION_INVALID,
                    "Content-Type must be application/json",
                    status=415,
                )
        return None

    # ── Import all models so Alembic can detect them ─────────────────────
    from taskboard.models import user as _user_models       # noqa: F401
    from taskboard.models import sprint as _sprint_models   # noqa: F401
    from taskboard.models import task as _task_models       # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from taskboard.blueprints.health_bp import health_bp
    from taskboard.blueprints.sprint_bp import sprint_bp
    from taskboard.blueprints.task_bp import task_bp
    from taskboard.blueprints.user_bp import user_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(task_bp)
    app.register_blueprint(sprint_bp)
    app.register_blueprint(user_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("create-user")
    @click.option("--username", required=True)
    @click.option("--email", required=True)
    @click.option("--name", required=True)
    @click.option("--role", default="DEVELOPER", show_default=True)
    @click.option("--token/--no-token", default=False, help="Print an access token for the new user.")
    def create_user_cmd(username, email, name, role, token):
        """Add a user to the identity store."""
        from taskboard.services.jwt_service import generate_access_token
        from taskboard.services.user_service import create_user

        try:
            user = create_user(username, email, name, role=role)
        except ValidationError as exc:
            db.session.rollback()
            raise click.ClickException(str(exc))
        db.session.commit()
        click.echo(f"Created user {user.id} ({user.username}, {user.role})")
        if token:
            click.echo(generate_access_token(user.id, user.role))

    # ── Domain error handlers ────────────────────────────────────────────
    _register_error_handlers(app)

    # ── Startup diagnostics ──────────────────────────────────────────────
    run_startup_diagnostics(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app


def _register_error_handlers(app):
    """Map service exceptions and HTTP errors to the standard error body.

    Every domain handler rolls back first: a failed operation leaves no
    partial change in the session.
    """

    @app.errorhandler(InvalidStatusError)
    def _invalid_status(e):
        db.session.rollback()
        return api_error(E.VALIDATION_STATUS, str(e), details=e.details)

    @app.errorhandler(ValidationError)
    def _validation(e):
        db.session.rollback()
        return api_error(E.VALIDATION_INVALID, str(e), details=e.details)

    @app.errorhandler(NotFoundError)
    def _not_found(e):
        db.session.rollback()
        return api_error(E.NOT_FOUND, f"{e.resource} not found")

    @app.errorhandler(ConflictError)
    def _conflict(e):
        db.session.rollback()
        details = {}
        if e.expected_version is not None:
            details["expected_version"] = e.expected_version
        if e.actual_version is not None:
            details["actual_version"] = e.actual_version
        return api_error(E.CONFLICT_VERSION, str(e), details=details)

    @app.errorhandler(InvalidTransitionError)
    def _invalid_transition(e):
        db.session.rollback()
        return api_error(
            E.CONFLICT_STATE,
            str(e),
            details={
                "current_status": e.current_status,
                "target_status": e.target_status,
                "allowed": e.allowed,
            },
        )

    @app.errorhandler(AuthenticationError)
    def _unauthenticated(e):
        return api_error(E.UNAUTHORIZED, str(e))

    @app.errorhandler(AuthorizationError)
    def _forbidden(e):
        db.session.rollback()
        return api_error(E.FORBIDDEN, str(e))

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed")

    @app.errorhandler(413)
    def too_large(e):
        return api_error(E.VALIDATION_INVALID, "Request body too large", status=413)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"retry_after": e.description})

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        logger.error("500 error: %s", e, exc_info=True)
        details = {"detail": str(getattr(e, "original_exception", e))} if app.debug else None
        return api_error(E.INTERNAL, "Internal server error", details=details)
