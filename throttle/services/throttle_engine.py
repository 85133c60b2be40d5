"""Throttle engine: identifier -> counter -> decision -> headers.

The engine holds configuration only; every counter lives in the counter store,
so any number of engines (workers, hosts) can share one Redis database.
Safe concurrent use relies on the store's atomic increment.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from fastapi import Request

from throttle.adapters.store.registry import StoreRegistry
from throttle.core.annotator import build_rate_limit_headers
from throttle.core.config import DEFAULT_HEADER_NAMES, ThrottleSettings
from throttle.core.errors import ConfigurationError
from throttle.core.identifier import (
    default_identifier,
    load_identifier,
    proxied_identifier,
    resolve_identifier,
)
from throttle.core.interval import IntervalExpr, parse_interval
from throttle.core.logging import hash_identifier
from throttle.services.limit_evaluator import LimitEvaluator, is_exceeded, remaining

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThrottleConfig:
    """Immutable throttle configuration.

    Attributes:
        message: Text returned with rejected requests.
        interval: Relative interval expression (e.g. "+1 minute").
        limit: Maximum hits per interval (0 rejects everything).
        identifier: ``(Request) -> str`` function naming the caller.
        headers: Mapping of limit/remaining/reset to header names, or None.
        namespace: Counter store namespace.
        status_code: HTTP status used for rejections.
    """

    message: str = "Rate limit exceeded"
    interval: IntervalExpr = "+1 minute"
    limit: int = 10
    identifier: Any = default_identifier
    headers: Mapping[str, str] | None = field(default_factory=lambda: dict(DEFAULT_HEADER_NAMES))
    namespace: str = "throttle"
    status_code: int = 429

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 0:
            raise ConfigurationError(
                code="throttle_invalid_limit",
                message="Throttle limit must be a non-negative integer",
                details={"option": "limit", "value": str(self.limit)},
            )
        # Validates the expression; raises ConfigurationError.
        parse_interval(self.interval)

    @property
    def interval_seconds(self) -> int:
        return parse_interval(self.interval)

    @classmethod
    def from_settings(cls, throttle_settings: ThrottleSettings) -> "ThrottleConfig":
        """Build the config from environment-backed settings."""
        if throttle_settings.identifier:
            identifier = load_identifier(throttle_settings.identifier)
        elif throttle_settings.trust_proxy:
            identifier = proxied_identifier
        else:
            identifier = default_identifier

        return cls(
            message=throttle_settings.message,
            interval=throttle_settings.interval,
            limit=throttle_settings.limit,
            identifier=identifier,
            headers=throttle_settings.headers,
            namespace=throttle_settings.namespace,
            status_code=throttle_settings.status_code,
        )


@dataclass(frozen=True)
class ThrottleDecision:
    """Outcome of evaluating one request.

    Attributes:
        allowed: Whether the request may proceed.
        identifier: Resolved caller identifier.
        count: Post-increment hit counter.
        limit: Configured limit.
        remaining: Hits left in the interval.
        reset: Interval end epoch, or None when not stored yet.
        response_headers: Rendered rate limit headers ({} when disabled).
        error_message: Rejection message, None when allowed.
        status_code: Rejection status, None when allowed.
    """

    allowed: bool
    identifier: str
    count: int
    limit: int
    remaining: int
    reset: Any | None
    response_headers: dict[str, str]
    error_message: str | None = None
    status_code: int | None = None


class ThrottleEngine:
    """Evaluates requests against a fixed-interval hit limit."""

    def __init__(
        self,
        config: ThrottleConfig,
        registry: StoreRegistry,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config
        self._registry = registry
        self._clock = clock
        self._evaluator: LimitEvaluator | None = None

    def _limit_evaluator(self) -> LimitEvaluator:
        # The namespace store is created on first use and reused afterwards.
        if self._evaluator is None:
            interval = self.config.interval_seconds
            store = self._registry.get(self.config.namespace, interval)
            self._evaluator = LimitEvaluator(store, interval=interval, clock=self._clock)
        return self._evaluator

    def evaluate(self, request: Request) -> ThrottleDecision:
        """Count the request and decide whether it may proceed.

        Raises:
            ConfigurationError: If the identifier option is not callable. No
                store access happens in that case.
            StoreUnavailableError: If the counter store cannot be reached.
        """
        identifier = resolve_identifier(self.config.identifier, request)

        evaluator = self._limit_evaluator()
        count = evaluator.touch(identifier)
        left = remaining(self.config.limit, count)
        reset = evaluator.reset_at(identifier)

        headers = build_rate_limit_headers(
            self.config.headers,
            limit=self.config.limit,
            remaining=left,
            reset=reset,
        )

        log_extra = {
            "key_hash": hash_identifier(identifier),
            "limit": self.config.limit,
            "count": count,
            "remaining": left,
            "reset": reset,
        }

        if is_exceeded(self.config.limit, count):
            logger.warning("throttle.exceeded", extra=log_extra)
            return ThrottleDecision(
                allowed=False,
                identifier=identifier,
                count=count,
                limit=self.config.limit,
                remaining=left,
                reset=reset,
                response_headers=headers,
                error_message=self.config.message,
                status_code=self.config.status_code,
            )

        logger.debug("throttle.allowed", extra=log_extra)
        return ThrottleDecision(
            allowed=True,
            identifier=identifier,
            count=count,
            limit=self.config.limit,
            remaining=left,
            reset=reset,
            response_headers=headers,
        )
