"""
Trust score endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from api.deps import get_current_user_id, get_trust_service
from schemas.trust import TrustSummary
from services.trust_score_service import TrustScoreService

router = APIRouter()


@router.get("/me", response_model=TrustSummary)
async def get_my_trust(
    user_id: Annotated[str, Depends(get_current_user_id)],
    trust: Annotated[TrustScoreService, Depends(get_trust_service)],
) -> TrustSummary:
    """Caller's trust score, reward multiplier and account state."""
    return await trust.summary(user_id)
