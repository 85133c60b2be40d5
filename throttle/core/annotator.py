"""Rate limit response headers.

Annotation is best-effort: a missing or malformed header-name mapping leaves
the response untouched instead of failing the request.
"""

from __future__ import annotations

from typing import Any, Mapping, TypeVar

HEADER_ROLES = ("limit", "remaining", "reset")

ResponseT = TypeVar("ResponseT")


def _header_names(header_names: Any) -> dict[str, str] | None:
    if not isinstance(header_names, Mapping):
        return None

    names: dict[str, str] = {}
    for role in HEADER_ROLES:
        name = header_names.get(role)
        if not isinstance(name, str) or not name:
            return None
        names[role] = name
    return names


def build_rate_limit_headers(
    header_names: Any,
    *,
    limit: int,
    remaining: int,
    reset: Any,
) -> dict[str, str]:
    """Render the limit/remaining/reset headers as plain text.

    Args:
        header_names: Mapping of role (limit, remaining, reset) to header name.
        limit: Configured hit limit.
        remaining: Hits left in the interval (floored at 0).
        reset: Epoch at which the interval ends; None renders as "".

    Returns:
        dict[str, str]: Header name to value, or {} when names are malformed.
    """
    names = _header_names(header_names)
    if names is None:
        return {}

    return {
        names["limit"]: str(limit),
        names["remaining"]: str(max(0, remaining)),
        names["reset"]: "" if reset is None else str(reset),
    }


def annotate(response: ResponseT, headers: Mapping[str, str]) -> ResponseT:
    """Copy rendered rate limit headers onto a response and return it."""
    target = getattr(response, "headers", None)
    if target is None:
        return response

    for name, value in headers.items():
        target[name] = value
    return response
