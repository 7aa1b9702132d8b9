"""
Short-lived in-process cache.

Holds derived values (trust scores) for a few seconds. Never the source
of truth: writers delete the affected key right after they change the
underlying data, so a caller that just logged a violation reads a fresh
score.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import structlog

logger = structlog.get_logger(__name__)


class CacheService:
    """In-memory TTL cache with namespaced keys."""

    PREFIX_TRUST_SCORE = "trust:score:"

    def __init__(self) -> None:
        self._cache: dict[str, tuple[Any, datetime]] = {}  # key -> (value, expires_at)

    async def cache_set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        self._cache[key] = (value, datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds))

    async def cache_get(self, key: str) -> Optional[Any]:
        if key in self._cache:
            value, expires_at = self._cache[key]
            if datetime.now(timezone.utc) < expires_at:
                return value
            del self._cache[key]
        return None

    async def cache_delete(self, key: str) -> bool:
        if key in self._cache:
            del self._cache[key]
            return True
        return False

    async def clear(self) -> None:
        self._cache.clear()

    def trust_score_key(self, user_id: str) -> str:
        return f"{self.PREFIX_TRUST_SCORE}{user_id}"

    async def invalidate_trust_score(self, user_id: str) -> None:
        if await self.cache_delete(self.trust_score_key(user_id)):
            logger.debug("trust_score_cache_invalidated", user_id=user_id)


cache_service = CacheService()


async def get_cache_service() -> CacheService:
    """Dependency injection for the cache service."""
    return cache_service
