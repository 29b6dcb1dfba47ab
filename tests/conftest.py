"""Shared test fixtures."""

import os

# Settings are read at import time and the service key has no default
os.environ.setdefault("QUEUE_PROCESSOR_API_KEY", "test-key")

from collections.abc import AsyncGenerator  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from src.main import app  # noqa: E402
from src.pv_common.database import get_db_session  # noqa: E402

SERVICE_KEY = os.environ["QUEUE_PROCESSOR_API_KEY"]


@pytest.fixture
async def client() -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints, service key attached."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers={"X-API-Key": SERVICE_KEY}
    ) as ac:
        yield ac


@pytest.fixture
def redis_stub(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    """Stand-in Redis for the rate limiter; each request counts as the first in its window."""
    redis = AsyncMock()
    redis.incr.return_value = 1
    monkeypatch.setattr(
        "src.pv_gateway.middleware.rate_limit.get_redis", AsyncMock(return_value=redis)
    )
    return redis


@pytest.fixture
def db_override() -> AsyncMock:
    """Replace the request-scoped DB session with a mock for router tests."""
    db = AsyncMock()

    async def _session() -> AsyncGenerator[AsyncMock, None]:
        yield db

    app.dependency_overrides[get_db_session] = _session
    yield db
    app.dependency_overrides.pop(get_db_session, None)
