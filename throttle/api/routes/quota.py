from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

router = APIRouter(tags=["Quota"])


class QuotaResponse(BaseModel):
    """Caller's rate limit state after counting this request."""

    throttled: bool = Field(..., description="Whether throttling applied to this request")
    limit: int | None = Field(None, description="Maximum requests per interval")
    remaining: int | None = Field(None, description="Requests left in the current interval")
    reset: int | None = Field(None, description="UNIX epoch second when the interval ends")


@router.get("/quota", response_model=QuotaResponse)
def get_quota(request: Request) -> QuotaResponse:
    """Report the caller's quota as seen by the throttle middleware.

    This request itself is counted. When throttling is disabled only
    ``throttled=false`` is returned.
    """
    decision = getattr(request.state, "throttle", None)
    if decision is None:
        return QuotaResponse(throttled=False)

    reset = int(decision.reset) if decision.reset not in (None, "") else None
    return QuotaResponse(
        throttled=True,
        limit=decision.limit,
        remaining=decision.remaining,
        reset=reset,
    )
