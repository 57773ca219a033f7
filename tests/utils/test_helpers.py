"""Tests for small parsing helpers."""

import pytest

from app.utils.cache_keys import blog_list_key, blog_search_key
from app.utils.helpers import fingerprint, parse_tags, split_csv, total_pages


class TestParseTags:
    """Tags arrive as a JSON array string inside a multipart form."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ('["travel", "food"]', ["travel", "food"]),
            ('["travel", "food", "travel"]', ["travel", "food"]),
            ('[" yoga ", "", "  "]', ["yoga"]),
            ('["a", 1, null, "b"]', ["a", "b"]),
            ("[]", []),
        ],
    )
    def test_valid_arrays(self, raw: str, expected: list[str]) -> None:
        """Order is kept, duplicates and blanks are dropped."""
        assert parse_tags(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "not json", '{"a": 1}', '"travel"', "[unclosed"])
    def test_malformed_input_yields_no_tags(self, raw: str | None) -> None:
        """Anything that is not a JSON array becomes an empty list."""
        assert parse_tags(raw) == []


class TestSplitCsv:
    def test_splits_and_trims(self) -> None:
        """Blanks between commas are ignored."""
        assert split_csv("a, b,,c ") == ["a", "b", "c"]

    def test_empty(self) -> None:
        assert split_csv(None) == []
        assert split_csv("") == []


class TestTotalPages:
    @pytest.mark.parametrize(
        ("total", "limit", "pages"),
        [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (5, 0, 0)],
    )
    def test_total_pages(self, total: int, limit: int, pages: int) -> None:
        assert total_pages(total, limit) == pages


def test_fingerprint_is_stable_and_short() -> None:
    """The same secret always maps to the same 16 hex characters."""
    assert fingerprint("secret") == fingerprint("secret")
    assert fingerprint("secret") != fingerprint("other")
    assert len(fingerprint("secret")) == 16


def test_cache_keys_separate_filters() -> None:
    """Different filters never share a cache entry."""
    assert blog_list_key(1, 10, [], None) != blog_list_key(1, 10, ["a"], None)
    assert blog_list_key(1, 10, [], "x") != blog_list_key(2, 10, [], "x")
    assert blog_search_key("Yoga", 1, 10) == blog_search_key("yoga", 1, 10)
