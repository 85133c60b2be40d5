"""HTTP middleware for request correlation and throttling.

Two function middlewares are provided:

- ``request_id_middleware`` accepts an incoming X-Request-ID header (or
  generates a UUID), stores it in contextvars for log correlation and echoes it
  on the response together with the request duration.
- ``build_throttle_middleware(engine)`` returns a middleware that charges each
  non-exempt request against the caller's counter, rejects it when the limit
  is exceeded and attaches the rate limit headers on both paths.

Usage:
    app.middleware("http")(build_throttle_middleware(engine, exempt_paths))
    app.middleware("http")(request_id_middleware)  # added last = outermost
"""

from __future__ import annotations

import time
import uuid
from typing import Awaitable, Callable, Iterable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from throttle.core.annotator import annotate
from throttle.core.config import settings
from throttle.core.errors import AppError
from throttle.core.exception_handlers import app_error_handler
from throttle.core.logging import clear_request_id, get_request_id, set_request_id
from throttle.services.throttle_engine import ThrottleDecision, ThrottleEngine

CallNext = Callable[[Request], Awaitable[Response]]


async def request_id_middleware(request: Request, call_next: CallNext) -> Response:
    """HTTP middleware for request ID generation and propagation.

    If the client provides an X-Request-ID header (configurable via
    LOG_REQUEST_ID_HEADER), that value is used. Otherwise, a new UUID is
    generated. The ID is propagated back in the response headers and stored
    in contextvars for log correlation.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The response from the next handler with request_id and
            duration headers added.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


def rate_limit_exceeded_response(decision: ThrottleDecision) -> JSONResponse:
    """Build the JSON error response for a rejected request."""
    return JSONResponse(
        status_code=decision.status_code or 429,
        content={
            "error": {
                "code": "rate_limit_exceeded",
                "message": decision.error_message,
                "request_id": get_request_id(),
            }
        },
    )


def build_throttle_middleware(
    engine: ThrottleEngine,
    exempt_paths: Iterable[str] = (),
    *,
    enabled: bool = True,
) -> Callable[[Request, CallNext], Awaitable[Response]]:
    """Create the throttling HTTP middleware bound to an engine.

    Args:
        engine: Throttle engine evaluating each request.
        exempt_paths: Exact request paths that are never throttled.
        enabled: When False the middleware passes every request through.

    Returns:
        An ``(request, call_next)`` coroutine function for ``app.middleware("http")``.
    """
    exempt = frozenset(exempt_paths)

    async def throttle_middleware(request: Request, call_next: CallNext) -> Response:
        if not enabled or request.url.path in exempt:
            return await call_next(request)

        # Store calls are blocking; keep them off the event loop.
        try:
            decision = await run_in_threadpool(engine.evaluate, request)
        except AppError as exc:
            return await app_error_handler(request, exc)

        request.state.throttle = decision

        if decision.allowed:
            response = await call_next(request)
        else:
            response = rate_limit_exceeded_response(decision)

        return annotate(response, decision.response_headers)

    return throttle_middleware
