from collections.abc import MutableMapping
from datetime import datetime
from hashlib import sha256
from math import ceil
from typing import Any

from fastapi import FastAPI, Request
from fastapi.routing import APIRoute
from orjson import JSONDecodeError, loads
from starlette.routing import BaseRoute, Match, Route


def host(request: Request) -> str:
    """Return the host IP address."""
    return request.client.host if request.client else "unknown"


def today_str() -> str:
    """Return today's date as a string."""
    return datetime.now(datetime.now().astimezone().tzinfo).strftime(
        "%Y-%m-%d %H:%M:%S",
    )


def get_summary(request: Request) -> str | None:
    """Extract route summary from request."""

    scope: MutableMapping[str, Any] = request.scope
    app: FastAPI = scope["app"]
    routes: list[BaseRoute] = app.routes

    summary = None
    for route in routes:
        is_api_route = type(route) is APIRoute
        is_route = type(route) is Route
        if is_api_route and route.matches(scope)[0] == Match.FULL:
            summary = route.summary
            break
        if is_route and route.matches(scope)[0] == Match.FULL:
            summary = route.name
            break

    return summary


def fingerprint(secret: str) -> str:
    """Short, non-reversible identifier for a credential, safe to log or key on."""
    return sha256(secret.encode("utf-8")).hexdigest()[:16]


def parse_tags(raw: str | None) -> list[str]:
    """
    Parse the multipart ``tags`` field into an ordered, de-duplicated list.

    The field is expected to be a JSON array of strings. Any malformed input
    (invalid JSON, a non-array value, ``None``) yields an empty list; this is
    part of the contract, not an error path. Non-string items and blank
    strings are dropped, surrounding whitespace is stripped and the first
    occurrence of a duplicate wins.

    Args:
        raw: Raw form value.

    Returns:
        list[str]: Tags in insertion order.

    Examples:
    --------
    >>> parse_tags('["travel", "food", "travel"]')
    ['travel', 'food']
    >>> parse_tags("not json")
    []
    """
    if not raw:
        return []
    try:
        value = loads(raw)
    except JSONDecodeError:
        return []
    if not isinstance(value, list):
        return []

    tags: dict[str, None] = {}
    for item in value:
        if isinstance(item, str) and (tag := item.strip()):
            tags.setdefault(tag, None)
    return list(tags)


def split_csv(raw: str | None) -> list[str]:
    """Split a comma separated query value, dropping blanks."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def total_pages(total: int, limit: int) -> int:
    return ceil(total / limit) if limit else 0
