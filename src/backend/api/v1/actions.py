"""
Rate-limited action endpoints.

Called before a comment, like, message, follow, tip or report is accepted.
A denial is a normal answer (200) that carries the retry hint.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from api.deps import get_current_user_id, get_rate_limiter, outcome_response
from schemas.rate_limit import ActionCheckRequest, RateLimitResult
from services.rate_limiter import RateLimiterService

router = APIRouter()


@router.post("/check", response_model=RateLimitResult)
async def check_action(
    request: ActionCheckRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    rate_limiter: Annotated[RateLimiterService, Depends(get_rate_limiter)],
):
    """Check and consume one action slot for the caller."""
    result = await rate_limiter.check(
        user_id,
        request.action_type,
        content=request.content,
        device_fingerprint=request.device_fingerprint,
    )
    return outcome_response(result)
