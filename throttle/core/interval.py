"""Relative interval expressions.

Intervals are configured as human-readable relative durations such as
``"+1 minute"`` or ``"+1 hour 30 minutes"``. Plain numbers are seconds and
``timedelta`` values are accepted as-is.
"""

from __future__ import annotations

import re
from datetime import timedelta

from throttle.core.errors import ConfigurationError

IntervalExpr = str | int | float | timedelta

_UNIT_SECONDS: dict[str, int] = {
    "s": 1,
    "sec": 1,
    "secs": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
}

_TERM_RE = re.compile(r"(\d+)\s*([a-z]+)")


def _invalid(expr: object, hint: str) -> ConfigurationError:
    return ConfigurationError(
        code="throttle_invalid_interval",
        message=f"Invalid throttle interval: {expr!r}",
        details={"option": "interval", "value": str(expr), "hint": hint},
    )


def parse_interval(expr: IntervalExpr) -> int:
    """Convert an interval expression into a number of seconds.

    Args:
        expr: Relative duration string, number of seconds or timedelta.

    Returns:
        int: Interval length in whole seconds (always > 0).

    Raises:
        ConfigurationError: If the expression is empty, unparseable or not positive.

    Examples:
        >>> parse_interval("+1 minute")
        60
        >>> parse_interval("1 hour 30 minutes")
        5400
        >>> parse_interval(90)
        90
    """
    if isinstance(expr, bool):
        raise _invalid(expr, "booleans are not durations")

    if isinstance(expr, timedelta):
        seconds = int(expr.total_seconds())
    elif isinstance(expr, (int, float)):
        seconds = int(expr)
    elif isinstance(expr, str):
        seconds = _parse_relative(expr)
    else:
        raise _invalid(expr, "expected a string, number of seconds or timedelta")

    if seconds <= 0:
        raise _invalid(expr, "interval must be positive")
    return seconds


def _parse_relative(expr: str) -> int:
    text = expr.strip().lower()
    if text.startswith("+"):
        text = text[1:].strip()
    if not text:
        raise _invalid(expr, "interval is empty")

    if text.isdigit():
        return int(text)

    total = 0
    position = 0
    for match in _TERM_RE.finditer(text):
        # Anything between two terms other than whitespace/"and"/"," is garbage.
        gap = text[position:match.start()].replace(",", " ").replace("and", " ")
        if gap.strip():
            raise _invalid(expr, f"unexpected text {gap.strip()!r}")

        amount, unit = match.groups()
        if unit not in _UNIT_SECONDS:
            raise _invalid(expr, f"unknown unit {unit!r}")
        total += int(amount) * _UNIT_SECONDS[unit]
        position = match.end()

    if position == 0 or text[position:].strip():
        raise _invalid(expr, "expected terms like '+1 minute' or '2 hours'")
    return total


def next_expiration(expr: IntervalExpr, now: float) -> int:
    """Return the epoch second at which an interval starting at ``now`` ends."""
    return int(now) + parse_interval(expr)
