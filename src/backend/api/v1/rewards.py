"""
Reward attempt endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from api.deps import get_current_user_id, get_reward_validator, outcome_response
from schemas.reward import RewardAttemptRequest, RewardAttemptResult
from services.reward_validator import RewardAttemptValidator

router = APIRouter()


@router.post("/validate", response_model=RewardAttemptResult)
async def validate_reward_attempt(
    request: RewardAttemptRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    validator: Annotated[RewardAttemptValidator, Depends(get_reward_validator)],
):
    """Score a reward claim before the reward is granted."""
    result = await validator.validate(
        user_id,
        attention_score=request.attention_score,
        watch_duration_seconds=request.watch_duration_seconds,
        required_duration_seconds=request.required_duration_seconds,
        device_fingerprint=request.device_fingerprint,
    )
    return outcome_response(result)
