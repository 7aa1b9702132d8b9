"""
Pytest fixtures for TrustShield backend tests.
"""

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("POSTGRES_PASSWORD", "test-password")
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_DB", "trustshield_test")
os.environ.setdefault("FINGERPRINT_SALT", "test-fingerprint-salt")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")


@asynccontextmanager
async def _savepoint():
    yield


def make_result(scalar: Any = None, scalars: list | None = None, rowcount: int = 0, one: Any = None) -> MagicMock:
    """Build a mock SQLAlchemy result object."""
    result = MagicMock()
    result.scalar = MagicMock(return_value=scalar)
    result.scalar_one_or_none = MagicMock(return_value=scalar)
    result.scalar_one = MagicMock(return_value=scalar)
    result.scalars = MagicMock(return_value=MagicMock(all=MagicMock(return_value=scalars or [])))
    result.all = MagicMock(return_value=scalars or [])
    result.one = MagicMock(return_value=one)
    result.rowcount = rowcount
    return result


@pytest.fixture
async def app() -> Any:
    """Create FastAPI application for testing."""
    from main import app as fastapi_app

    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """Create mock database session."""
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.execute = AsyncMock(return_value=make_result())
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.add = MagicMock()
    session.begin_nested = MagicMock(side_effect=lambda: _savepoint())
    return session


@pytest.fixture
def cache():
    """Fresh in-memory cache per test."""
    from services.cache_service import CacheService

    return CacheService()


@pytest.fixture
def mock_notifier() -> MagicMock:
    notifier = MagicMock()
    notifier.notify = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def sample_user_id() -> str:
    return "user-123"


@pytest.fixture
def sample_characteristics() -> dict[str, Any]:
    """Device characteristics as a browser would report them."""
    return {
        "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
        "language": "en-US",
        "platform": "Win32",
        "screen_resolution": "1920x1080",
        "timezone": "Europe/Berlin",
        "color_depth": 24,
        "device_memory": 8,
        "hardware_concurrency": 8,
        "touch_support": False,
        "webgl_vendor": "NVIDIA Corporation",
        "webgl_renderer": "NVIDIA GeForce GTX 1080",
    }


@pytest.fixture
def auth_headers(sample_user_id: str) -> dict[str, str]:
    """Authentication headers with a valid access token."""
    from core.security import create_access_token

    token = create_access_token({"sub": sample_user_id})
    return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Authentication headers for a trust admin."""
    from core.config import settings
    from core.security import create_access_token

    token = create_access_token({"sub": "admin-1", "roles": [settings.ADMIN_ROLE]})
    return {"Authorization": f"Bearer {token}", "Content-Type": "application/json"}
