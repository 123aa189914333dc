"""Pagination envelope and link helpers."""

import math
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

from notelens.models.filters import DEFAULT_LIMIT
from notelens.models.results import Pagination


def paginate(total: int, page: int, limit: int) -> Pagination:
    """Build the pagination envelope.

    page is whatever the caller asked for - asking past the end just gives
    an empty page, total and total_pages still tell the truth.
    """
    if limit < 1:
        raise ValueError(f"limit must be positive, got {limit}")
    if total < 0:
        raise ValueError(f"total can't be negative, got {total}")

    total_pages = 0 if total == 0 else math.ceil(total / limit)
    return Pagination(page=page, limit=limit, total=total, total_pages=total_pages)


def page_links(
    pagination: Pagination,
    base_url: str,
    query: Mapping[str, Any] | None = None,
    default_limit: int = DEFAULT_LIMIT,
) -> dict[str, str]:
    """Build first/prev/next/last urls for an RFC 5988 Link header.

    the current query is preserved except for page; limit only shows up
    when it differs from the default.
    """
    kept = {
        key: str(value)
        for key, value in (query or {}).items()
        if value is not None and key not in ("page", "limit")
    }

    def url(page: int) -> str:
        params = dict(kept, page=str(page))
        if pagination.limit != default_limit:
            params["limit"] = str(pagination.limit)
        return f"{base_url}?{urlencode(params)}"

    links = {}
    if pagination.page > 1:
        links["first"] = url(1)
        links["prev"] = url(pagination.page - 1)
    if pagination.page < pagination.total_pages:
        links["next"] = url(pagination.page + 1)
        if pagination.total_pages > 1:
            links["last"] = url(pagination.total_pages)
    return links


def pagination_headers(
    pagination: Pagination,
    base_url: str,
    query: Mapping[str, Any] | None = None,
) -> dict[str, str]:
    """X-Total-Count style headers plus Link, ready for any http layer."""
    headers = {
        "X-Total-Count": str(pagination.total),
        "X-Page": str(pagination.page),
        "X-Per-Page": str(pagination.limit),
        "X-Total-Pages": str(pagination.total_pages),
    }
    links = page_links(pagination, base_url, query)
    if links:
        headers["Link"] = ", ".join(f'<{href}>; rel="{rel}"' for rel, href in links.items())
    return headers
