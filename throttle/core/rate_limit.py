"""Rate limiting dependency for FastAPI routes.

The HTTP middleware throttles every non-exempt path. Routes that need a
separate budget can instead depend on ``enforce_throttle`` bound to their own
engine (e.g. a stricter limit for login endpoints):

    login_engine = ThrottleEngine(ThrottleConfig(limit=5, namespace="login"), registry)

    @router.post("/login", dependencies=[Depends(throttle_dependency(login_engine))])
    ...

The plain ``enforce_throttle`` dependency uses the application engine stored
on ``app.state.throttle_engine`` by the app factory.
"""

from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import HTTPException, Request, Response
from starlette.concurrency import run_in_threadpool

from throttle.services.throttle_engine import ThrottleDecision, ThrottleEngine


def get_throttle_engine(request: Request) -> ThrottleEngine:
    """Return the engine the application was composed with."""
    return request.app.state.throttle_engine


async def _apply(engine: ThrottleEngine, request: Request, response: Response) -> ThrottleDecision:
    decision = await run_in_threadpool(engine.evaluate, request)

    if not decision.allowed:
        raise HTTPException(
            status_code=decision.status_code or 429,
            detail=decision.error_message,
            headers=decision.response_headers or None,
        )

    for name, value in decision.response_headers.items():
        response.headers[name] = value
    return decision


async def enforce_throttle(request: Request, response: Response) -> ThrottleDecision:
    """FastAPI dependency charging the request to the application engine.

    Raises:
        HTTPException: With the configured status, message and rate limit
            headers when the limit is exceeded.
        ConfigurationError: If the identifier option is not callable.
    """
    return await _apply(get_throttle_engine(request), request, response)


def throttle_dependency(
    engine: ThrottleEngine,
) -> Callable[[Request, Response], Awaitable[ThrottleDecision]]:
    """Build a dependency bound to a dedicated engine."""

    async def dependency(request: Request, response: Response) -> ThrottleDecision:
        return await _apply(engine, request, response)

    return dependency
