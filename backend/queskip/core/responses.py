"""Standardized API response helpers.

Every endpoint returns the same envelope:
    {"success": true, "data": ..., "message": ...}

Paginated endpoints additionally include:
    {"pagination": {"page": <int>, "limit": <int>, "total": <int>, "totalPages": <int>}}

Errors are rendered by the exception handlers in ``queskip.main`` as:
    {"success": false, "message": ..., "errors": [...]}
"""

import math
from typing import Any, List, Optional


def success_response(data: Any = None, message: Optional[str] = None) -> dict:
    """Wrap a payload in the success envelope."""
    return {
        "success": True,
        "data": data,
        "message": message,
    }


def error_response(message: str, errors: Optional[List[Any]] = None) -> dict:
    """Build the error envelope."""
    body = {
        "success": False,
        "message": message,
    }
    if errors:
        body["errors"] = errors
    return body


def paginated_response(
    items: list,
    page: int,
    limit: int,
    total: int,
    extra: Optional[dict] = None,
) -> dict:
    """Wrap one page of serialized items in the success envelope.

    Args:
        items: The page of serialized items.
        page: 1-based page number requested.
        limit: Page size requested.
        total: Total count across all pages.
        extra: Additional top-level keys, e.g. aggregates over all pages.
    """
    body = {
        "success": True,
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if limit else 0,
        },
    }
    if extra:
        body.update(extra)
    return body
