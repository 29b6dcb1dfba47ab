"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool (created at import time) remains valid across
the entire test session. Requires PostgreSQL with migrations applied
(alembic upgrade head); the whole directory is skipped otherwise.
"""

import uuid
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from src.main import app
from src.pv_common.database import engine
from config.settings import settings


@pytest_asyncio.fixture(loop_scope="session", scope="session", autouse=True)
async def _require_database() -> None:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1 FROM order_queue LIMIT 1"))
    except (OSError, SQLAlchemyError) as exc:
        pytest.skip(f"PostgreSQL with migrations not available: {exc}")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport, base_url="http://test", headers={"X-API-Key": settings.QUEUE_PROCESSOR_API_KEY}
    ) as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session")
async def ticker() -> str:
    """A fresh curve (base 1.00, step 0.01, empty) so tests never share state."""
    symbol = f"T{uuid.uuid4().hex[:8].upper()}"
    async with engine.begin() as conn:
        await conn.execute(
            text("""
                INSERT INTO issuer_trading
                    (ticker, base_price, price_step, current_price, current_supply, total_usdp)
                VALUES (:ticker, :base, :step, :base, 0, 0)
            """),
            {"ticker": symbol, "base": Decimal("1.00"), "step": Decimal("0.01")},
        )
    return symbol
