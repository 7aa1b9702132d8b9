"""
Session security endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from api.deps import get_current_user_id, get_session_security, outcome_response
from schemas.session import ForceLogoutRequest, ForceLogoutResult, SessionCheckRequest, SessionCheckResult
from services.session_security_service import SessionSecurityService

router = APIRouter()


@router.post("/check", response_model=SessionCheckResult)
async def check_session(
    request: SessionCheckRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    sessions: Annotated[SessionSecurityService, Depends(get_session_security)],
):
    """Validate the caller's session on the given device."""
    result = await sessions.check_session(user_id, request.device_fingerprint)
    return outcome_response(result)


@router.post("/force-logout", response_model=ForceLogoutResult)
async def force_logout(
    request: ForceLogoutRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    sessions: Annotated[SessionSecurityService, Depends(get_session_security)],
) -> ForceLogoutResult:
    """Log the caller out of every device except the one given."""
    return await sessions.force_logout(user_id, keep_device=request.keep_device, reason=request.reason)
