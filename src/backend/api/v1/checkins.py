"""
Geofenced check-in endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from api.deps import get_checkin_verifier, get_current_user_id, outcome_response
from schemas.checkin import CheckinRequest, CheckinResult
from services.checkin_service import CheckinVerifier

router = APIRouter()


@router.post("/verify", response_model=CheckinResult)
async def verify_checkin(
    request: CheckinRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    verifier: Annotated[CheckinVerifier, Depends(get_checkin_verifier)],
):
    """
    Verify a check-in at a promotion location.

    Out-of-range attempts are recorded and answered with verified=false.
    A second check-in within 24 hours is a 409.
    """
    result = await verifier.verify(
        user_id,
        promotion_id=request.promotion_id,
        business_name=request.business_name,
        target_lat=request.target_latitude,
        target_lng=request.target_longitude,
        user_lat=request.user_latitude,
        user_lng=request.user_longitude,
        reward_amount=request.reward_amount,
        reward_type=request.reward_type.value,
        max_distance_meters=request.max_distance_meters,
    )
    if result.reason == "already_checked_in":
        return outcome_response(result, denied_status=status.HTTP_409_CONFLICT)
    return outcome_response(result)
