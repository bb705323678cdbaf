"""Shared utility functions used by services and blueprints.

parse_date_input:    raises ValidationError on malformed dates
text_input:          stripped string or ValidationError
request_json:        JSON body or ValidationError
db_commit_or_error:  uniform commit + rollback + error response
"""
import logging
from datetime import date, datetime

from flask import request

from taskboard.core.exceptions import ValidationError
from taskboard.models import db
from taskboard.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def parse_date_input(value, field="date"):
    """Parse a date string, raising ValidationError on bad input.

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS (→ date), DD.MM.YYYY,
    date objects. Empty input returns None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(
            f"{field}: invalid date format. Use YYYY-MM-DD.",
            details={field: value},
        )
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(value, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValidationError(
            f"{field}: invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.",
            details={field: value},
        ) from exc


def text_input(value, field):
    """Strip a free-text field. ``None`` becomes ""; non-strings are a ValidationError."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: value})
    return value.strip()


def request_json():
    """Return the request body as a dict; anything else is a ValidationError."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure - ready for ``return``.

    Usage::

        err = db_commit_or_error()
        if err:
            return err

    IntegrityError → 409 (duplicate / constraint violation)
    StaleDataError → 409 (optimistic version lost a race)
    OperationalError → 500 (connection / lock issues)
    Other → 500 (unexpected)
    """
    from sqlalchemy.exc import IntegrityError, OperationalError
    from sqlalchemy.orm.exc import StaleDataError

    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return api_error(E.CONFLICT_DUPLICATE, "Duplicate or constraint violation")
    except StaleDataError:
        db.session.rollback()
        logger.warning("Stale version on commit")
        return api_error(E.CONFLICT_VERSION, "Resource was modified concurrently; reload and retry")
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return api_error(E.DATABASE, "Database error")
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return api_error(E.DATABASE, "Database error")
