"""
Taskboard - Project Tracking API
Blueprint registry.

List endpoints share one response envelope:
    {"items": [...], "total": <matches>, "limit": <page size>, "offset": <start>}
"""

from flask import request

DEFAULT_PAGE_SIZE = 200
MAX_PAGE_SIZE = 1000


def page_params():
    """Read ?limit / ?offset, falling back to defaults on malformed values."""
    limit = request.args.get("limit", DEFAULT_PAGE_SIZE, type=int)
    offset = request.args.get("offset", 0, type=int)
    return min(max(limit, 1), MAX_PAGE_SIZE), max(offset, 0)


def paginated(query, serialize):
    """Run *query* for the requested page and wrap it in the list envelope.

    *serialize* turns one row into a dict (usually ``lambda r: r.to_dict()``).
    """
    limit, offset = page_params()
    total = query.order_by(None).count()
    rows = query.limit(limit).offset(offset).all()
    return {
        "items": [serialize(r) for r in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }
