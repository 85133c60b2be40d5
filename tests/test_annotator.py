"""Unit tests for rate limit header rendering."""

import pytest
from fastapi import Response

from throttle.core.annotator import annotate, build_rate_limit_headers
from throttle.core.config import DEFAULT_HEADER_NAMES


def test_renders_plain_text_values() -> None:
    headers = build_rate_limit_headers(DEFAULT_HEADER_NAMES, limit=10, remaining=9, reset=1_700_000_060)

    assert headers == {
        "X-RateLimit-Limit": "10",
        "X-RateLimit-Remaining": "9",
        "X-RateLimit-Reset": "1700000060",
    }


def test_remaining_is_floored_at_zero() -> None:
    headers = build_rate_limit_headers(DEFAULT_HEADER_NAMES, limit=10, remaining=-3, reset=1)

    assert headers["X-RateLimit-Remaining"] == "0"


def test_absent_reset_renders_empty() -> None:
    headers = build_rate_limit_headers(DEFAULT_HEADER_NAMES, limit=10, remaining=9, reset=None)

    assert headers["X-RateLimit-Reset"] == ""


def test_custom_header_names() -> None:
    names = {"limit": "RateLimit-Limit", "remaining": "RateLimit-Remaining", "reset": "RateLimit-Reset"}

    headers = build_rate_limit_headers(names, limit=5, remaining=2, reset="1700000060")

    assert headers == {"RateLimit-Limit": "5", "RateLimit-Remaining": "2", "RateLimit-Reset": "1700000060"}


@pytest.mark.parametrize(
    "names",
    [
        None,
        "X-RateLimit",
        ["limit", "remaining", "reset"],
        {"limit": "X-Limit", "remaining": "X-Remaining"},
        {"limit": "X-Limit", "remaining": "X-Remaining", "reset": ""},
        {"limit": "X-Limit", "remaining": 1, "reset": "X-Reset"},
    ],
)
def test_malformed_names_disable_annotation(names) -> None:
    assert build_rate_limit_headers(names, limit=10, remaining=9, reset=1) == {}


def test_annotate_sets_headers_on_response() -> None:
    response = Response(content="ok")

    result = annotate(response, {"X-RateLimit-Limit": "10"})

    assert result is response
    assert response.headers["X-RateLimit-Limit"] == "10"


def test_annotate_leaves_response_without_headers_untouched() -> None:
    response = object()

    assert annotate(response, {"X-RateLimit-Limit": "10"}) is response
