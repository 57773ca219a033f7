"""Utility helper functions."""

from app.utils.helpers import (
    fingerprint,
    get_summary,
    host,
    parse_tags,
    split_csv,
    today_str,
    total_pages,
)

__all__ = [
    "fingerprint",
    "get_summary",
    "host",
    "parse_tags",
    "split_csv",
    "today_str",
    "total_pages",
]
