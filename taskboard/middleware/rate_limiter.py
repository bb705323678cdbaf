"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in taskboard/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from taskboard.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

WRITE_HEAVY_LIMIT = "120/minute"
USER_LIMIT = "60/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Tasks / sprints:  120/minute
        - Users:            60/minute
        - Health check:     exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING") or not app.config.get("RATELIMIT_ENABLED", True):
        app.logger.info("Rate limiter disabled")
        return

    for bp_name in ("task", "sprint"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_HEAVY_LIMIT)(bp)

    bp = app.blueprints.get("user")
    if bp:
        limiter.limit(USER_LIMIT)(bp)

    # Health check - exempt from rate limiting
    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured - tasks/sprints: %s, users: %s",
        WRITE_HEAVY_LIMIT, USER_LIMIT,
    )
