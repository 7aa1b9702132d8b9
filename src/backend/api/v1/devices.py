"""
Device fingerprint endpoints.

Clients register the device they are using on sign-in and before
reward-granting actions.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import get_current_user_id, get_device_service, outcome_response
from schemas.device import (
    DeviceRegistrationRequest,
    DeviceRegistrationResult,
    DeviceTrustEventRequest,
    DeviceTrustResult,
    DuplicateDeviceResult,
)
from services.device_fingerprint_service import DeviceFingerprintService

router = APIRouter()


@router.post("/register", response_model=DeviceRegistrationResult)
async def register_device(
    request: DeviceRegistrationRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    devices: Annotated[DeviceFingerprintService, Depends(get_device_service)],
) -> DeviceRegistrationResult:
    """Register (or refresh) the caller's current device."""
    return await devices.register(user_id, request.characteristics)


@router.post("/check-duplicate", response_model=DuplicateDeviceResult)
async def check_duplicate_device(
    request: DeviceRegistrationRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    devices: Annotated[DeviceFingerprintService, Depends(get_device_service)],
):
    """Check whether the caller's device is also used by other accounts."""
    result = await devices.check_duplicate(user_id, request.characteristics)
    return outcome_response(result)


@router.post("/trust-events", response_model=DeviceTrustResult)
async def apply_device_trust_event(
    request: DeviceTrustEventRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    devices: Annotated[DeviceFingerprintService, Depends(get_device_service)],
) -> DeviceTrustResult:
    """Apply a trust event (e.g. successful_login) to one of the caller's devices."""
    result = await devices.apply_trust_event(user_id, request.fingerprint_hash, request.event)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
    return result
