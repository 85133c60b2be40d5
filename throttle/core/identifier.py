"""Client identifier resolution.

The identifier decides which counter a request is charged against. By default
it is the client IP; integrators can supply any ``(Request) -> str`` function,
either directly or as an import path in configuration.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Callable

from fastapi import Request

from throttle.core.errors import ConfigurationError

IdentifierFn = Callable[[Request], str]

logger = logging.getLogger(__name__)

UNKNOWN_CLIENT = "unknown"


def client_ip(request: Request, *, trust_proxy: bool = False) -> str:
    """Return the client IP address of the request.

    Args:
        request: Incoming request.
        trust_proxy: Use the left-most X-Forwarded-For entry when present.

    Returns:
        str: Client address, or "unknown" when the server did not provide one.
    """
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    return request.client.host if request.client else UNKNOWN_CLIENT


def default_identifier(request: Request) -> str:
    """Identify callers by their direct client IP."""
    return client_ip(request)


def proxied_identifier(request: Request) -> str:
    """Identify callers by client IP as reported by a trusted reverse proxy."""
    return client_ip(request, trust_proxy=True)


def load_identifier(path: str) -> Any:
    """Import the object named by ``"package.module:attribute"``.

    The result is returned as-is; callability is checked when a request is
    resolved so that a misconfiguration is reported as
    ``throttle_identifier_not_callable``.

    Raises:
        ConfigurationError: If the path is malformed or cannot be imported.
    """
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ConfigurationError(
            code="throttle_identifier_import_failed",
            message="Throttle identifier must be given as 'package.module:function'",
            details={"option": "identifier", "value": path},
        )

    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise ConfigurationError(
            code="throttle_identifier_import_failed",
            message=f"Unable to import throttle identifier {path!r}: {exc}",
            details={"option": "identifier", "value": path},
        ) from exc


def resolve_identifier(identifier_fn: Any, request: Request) -> str:
    """Run the configured identifier function for a request.

    Raises:
        ConfigurationError: If the configured identifier is not callable.
    """
    if not callable(identifier_fn):
        raise ConfigurationError(
            code="throttle_identifier_not_callable",
            message="Throttle identifier option must be a callable",
            details={"option": "identifier", "value": type(identifier_fn).__name__},
        )
    identifier = identifier_fn(request)
    if not isinstance(identifier, str):
        # Non-string results (None included) are coerced and may collide.
        logger.warning(
            "throttle.identifier_not_string",
            extra={
                "identifier_fn": getattr(identifier_fn, "__qualname__", type(identifier_fn).__name__),
                "value_type": type(identifier).__name__,
            },
        )
    return str(identifier)
