"""
Admin endpoints for trust review.

These endpoints require the trust admin role and are used for:
- Audit export of the abuse log
- Manual device flagging and unflagging
- Reporting suspicious activity and recording login attempts on behalf of
  other services
- Unlocking accounts after review
- Inspecting a user's trust state
"""

from datetime import datetime
from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, Query

from api.deps import (
    CurrentIdentity,
    get_abuse_log_service,
    get_current_admin,
    get_device_service,
    get_session_security,
    get_trust_service,
)
from models.abuse_log import AbuseType
from schemas.abuse import AbuseLogEntry, AbuseLogPage
from schemas.device import DeviceFlagRequest, DeviceFlagResult
from schemas.session import (
    AccountUnlockResult,
    ForceLogoutRequest,
    ForceLogoutResult,
    LoginAttemptRequest,
    LoginAttemptResult,
    SuspiciousReportRequest,
    SuspiciousReportResult,
)
from schemas.trust import TrustSummary
from services.abuse_log_service import AbuseLogService
from services.device_fingerprint_service import DeviceFingerprintService
from services.session_security_service import SessionSecurityService
from services.trust_score_service import TrustScoreService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/abuse-logs", response_model=AbuseLogPage)
async def export_abuse_logs(
    admin: Annotated[CurrentIdentity, Depends(get_current_admin)],
    abuse_log: Annotated[AbuseLogService, Depends(get_abuse_log_service)],
    user_id: Optional[str] = Query(None, max_length=64),
    abuse_type: Optional[AbuseType] = Query(None),
    since: Optional[datetime] = Query(None),
    until: Optional[datetime] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> AbuseLogPage:
    """Export abuse log entries by user, type and time window."""
    entries = await abuse_log.export(
        user_id=user_id,
        abuse_type=abuse_type,
        since=since,
        until=until,
        limit=limit,
        offset=offset,
    )
    logger.info("abuse_log_exported", admin_id=admin.user_id, count=len(entries), user_id=user_id)
    items = [AbuseLogEntry.model_validate(entry) for entry in entries]
    return AbuseLogPage(items=items, limit=limit, offset=offset, count=len(items))


@router.post("/devices/{fingerprint_hash}/flag", response_model=DeviceFlagResult)
async def flag_device(
    fingerprint_hash: str,
    request: DeviceFlagRequest,
    admin: Annotated[CurrentIdentity, Depends(get_current_admin)],
    devices: Annotated[DeviceFingerprintService, Depends(get_device_service)],
) -> DeviceFlagResult:
    logger.info("admin_flag_device", admin_id=admin.user_id, fingerprint=fingerprint_hash[:8])
    return await devices.flag(fingerprint_hash, request.reason)


@router.post("/devices/{fingerprint_hash}/unflag", response_model=DeviceFlagResult)
async def unflag_device(
    fingerprint_hash: str,
    admin: Annotated[CurrentIdentity, Depends(get_current_admin)],
    devices: Annotated[DeviceFingerprintService, Depends(get_device_service)],
) -> DeviceFlagResult:
    """Clear a device flag after manual review."""
    logger.info("admin_unflag_device", admin_id=admin.user_id, fingerprint=fingerprint_hash[:8])
    return await devices.unflag(fingerprint_hash)


@router.post("/users/{user_id}/report-suspicious", response_model=SuspiciousReportResult)
async def report_suspicious(
    user_id: str,
    request: SuspiciousReportRequest,
    admin: Annotated[CurrentIdentity, Depends(get_current_admin)],
    sessions: Annotated[SessionSecurityService, Depends(get_session_security)],
) -> SuspiciousReportResult:
    details = {**request.details, "reported_by": admin.user_id}
    return await sessions.report_suspicious(user_id, device_fingerprint=request.device_fingerprint, details=details)


@router.post("/users/{user_id}/login-attempts", response_model=LoginAttemptResult)
async def record_login_attempt(
    user_id: str,
    request: LoginAttemptRequest,
    _admin: Annotated[CurrentIdentity, Depends(get_current_admin)],
    sessions: Annotated[SessionSecurityService, Depends(get_session_security)],
) -> LoginAttemptResult:
    """Record a login attempt reported by the authentication service."""
    return await sessions.record_login_attempt(
        user_id,
        success=request.success,
        device_fingerprint=request.device_fingerprint,
        ip_address=request.ip_address,
        user_agent=request.user_agent,
    )


@router.post("/users/{user_id}/force-logout", response_model=ForceLogoutResult)
async def force_logout_user(
    user_id: str,
    request: ForceLogoutRequest,
    admin: Annotated[CurrentIdentity, Depends(get_current_admin)],
    sessions: Annotated[SessionSecurityService, Depends(get_session_security)],
) -> ForceLogoutResult:
    reason = request.reason or f"admin:{admin.user_id}"
    return await sessions.force_logout(user_id, keep_device=request.keep_device, reason=reason)


@router.post("/users/{user_id}/unlock", response_model=AccountUnlockResult)
async def unlock_user(
    user_id: str,
    admin: Annotated[CurrentIdentity, Depends(get_current_admin)],
    sessions: Annotated[SessionSecurityService, Depends(get_session_security)],
) -> AccountUnlockResult:
    return await sessions.unlock_account(user_id, reviewed_by=admin.user_id)


@router.get("/users/{user_id}/trust", response_model=TrustSummary)
async def get_user_trust(
    user_id: str,
    _admin: Annotated[CurrentIdentity, Depends(get_current_admin)],
    trust: Annotated[TrustScoreService, Depends(get_trust_service)],
) -> TrustSummary:
    return await trust.summary(user_id)
