"""
Shared dependencies for API endpoints.

Includes:
- Bearer token identity (tokens are issued by the external auth service)
- Admin role check for review endpoints
- Per-request service construction sharing one database session
"""

from typing import Annotated, Any

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.security import decode_token
from db.session import get_db
from schemas.common import CheckOutcome
from services.abuse_log_service import AbuseLogService
from services.cache_service import CacheService, get_cache_service
from services.checkin_service import CheckinVerifier
from services.device_fingerprint_service import DeviceFingerprintService
from services.ledger_client import LedgerClient, get_ledger_client
from services.notification_service import NotificationService, get_notification_service
from services.rate_limiter import RateLimiterService
from services.reward_validator import RewardAttemptValidator
from services.session_security_service import SessionSecurityService
from services.trust_score_service import TrustScoreService

logger = structlog.get_logger(__name__)

# Security schemes
security = HTTPBearer()


class CurrentIdentity(BaseModel):
    """Caller identity taken from a verified bearer token."""

    user_id: str
    roles: list[str] = []

    @property
    def is_admin(self) -> bool:
        return settings.ADMIN_ROLE in self.roles


# =============================================================================
# Identity
# =============================================================================


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> CurrentIdentity:
    """
    Extract and validate the caller from the JWT token.

    Raises:
        HTTPException: If the token is invalid or has no subject.
    """
    payload = decode_token(credentials.credentials, expected_type="access")
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return CurrentIdentity(user_id=str(user_id), roles=list(roles))


async def get_current_user_id(identity: CurrentIdentity = Depends(get_current_identity)) -> str:
    return identity.user_id


async def get_current_admin(identity: CurrentIdentity = Depends(get_current_identity)) -> CurrentIdentity:
    """Require the trust admin role."""
    if not identity.is_admin:
        logger.warning("admin_access_denied", user_id=identity.user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return identity


# =============================================================================
# Services
# =============================================================================


def get_abuse_log_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
) -> AbuseLogService:
    return AbuseLogService(db, cache=cache)


def get_device_service(
    db: AsyncSession = Depends(get_db),
    abuse_log: AbuseLogService = Depends(get_abuse_log_service),
) -> DeviceFingerprintService:
    return DeviceFingerprintService(db, abuse_log=abuse_log)


def get_trust_service(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
) -> TrustScoreService:
    return TrustScoreService(db, cache=cache)


def get_rate_limiter(
    db: AsyncSession = Depends(get_db),
    abuse_log: AbuseLogService = Depends(get_abuse_log_service),
    devices: DeviceFingerprintService = Depends(get_device_service),
) -> RateLimiterService:
    return RateLimiterService(db, abuse_log=abuse_log, devices=devices)


def get_reward_validator(
    db: AsyncSession = Depends(get_db),
    abuse_log: AbuseLogService = Depends(get_abuse_log_service),
    rate_limiter: RateLimiterService = Depends(get_rate_limiter),
    trust: TrustScoreService = Depends(get_trust_service),
) -> RewardAttemptValidator:
    return RewardAttemptValidator(db, abuse_log=abuse_log, rate_limiter=rate_limiter, trust=trust)


def get_checkin_verifier(
    db: AsyncSession = Depends(get_db),
    abuse_log: AbuseLogService = Depends(get_abuse_log_service),
    ledger: LedgerClient = Depends(get_ledger_client),
    notifier: NotificationService = Depends(get_notification_service),
) -> CheckinVerifier:
    return CheckinVerifier(db, abuse_log=abuse_log, ledger=ledger, notifier=notifier)


def get_session_security(
    db: AsyncSession = Depends(get_db),
    abuse_log: AbuseLogService = Depends(get_abuse_log_service),
    devices: DeviceFingerprintService = Depends(get_device_service),
    trust: TrustScoreService = Depends(get_trust_service),
    notifier: NotificationService = Depends(get_notification_service),
) -> SessionSecurityService:
    return SessionSecurityService(db, abuse_log=abuse_log, devices=devices, trust=trust, notifier=notifier)


# =============================================================================
# Responses
# =============================================================================


def outcome_response(result: Any, denied_status: int = status.HTTP_200_OK) -> Any:
    """
    Map a check result to an HTTP response.

    Indeterminate results become 503 with the structured body intact.
    """
    if result.outcome == CheckOutcome.INDETERMINATE:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=jsonable_encoder(result))
    if result.outcome == CheckOutcome.DENIED and denied_status != status.HTTP_200_OK:
        return JSONResponse(status_code=denied_status, content=jsonable_encoder(result))
    return result
