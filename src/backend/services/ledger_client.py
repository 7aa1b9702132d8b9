"""
Ledger client.

Credits rewards through the external ledger service over HTTP. Balances
are not stored here. A failed credit is reported as False, and the caller
leaves the reward unclaimed.
"""

from typing import Optional

import httpx
import structlog

from core.config import settings

logger = structlog.get_logger(__name__)


class LedgerClient:
    """HTTP client for the ledger's credit endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.LEDGER_SERVICE_URL
        self.token = token if token is not None else settings.LEDGER_SERVICE_TOKEN
        self.timeout = timeout or settings.EXTERNAL_SERVICE_TIMEOUT_SECONDS
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    async def credit(self, user_id: str, coin_type: str, amount: int, reference_id: str) -> bool:
        """
        Credit `amount` of `coin_type` to a user.

        reference_id makes the credit idempotent on the ledger side.
        """
        if not self.is_configured:
            logger.warning("ledger_not_configured", user_id=user_id, reference_id=reference_id)
            return False

        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        payload = {
            "user_id": user_id,
            "coin_type": coin_type,
            "amount": amount,
            "reference_id": reference_id,
        }

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post("/credits", json=payload, headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(
                "ledger_credit_failed",
                user_id=user_id,
                reference_id=reference_id,
                amount=amount,
                error=str(e),
            )
            return False

        logger.info("ledger_credited", user_id=user_id, coin_type=coin_type, amount=amount, reference_id=reference_id)
        return True


ledger_client = LedgerClient()


async def get_ledger_client() -> LedgerClient:
    """Dependency injection for the ledger client."""
    return ledger_client
