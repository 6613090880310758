"""Shared test fixtures."""

from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from launch_scanner.config import settings
from launch_scanner.delivery.web import views
from launch_scanner.ingestion.models import NormalizedLaunch
from launch_scanner.storage.models import Base


@pytest_asyncio.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh in-memory SQLite per test; StaticPool keeps the one connection alive."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep tests off real API keys and the network-backed features."""
    monkeypatch.setattr(settings, "anthropic_api_key", "")
    monkeypatch.setattr(settings, "firecrawl_api_key", "")
    monkeypatch.setattr(settings, "revalidate_url", "")
    monkeypatch.setattr(settings, "telegram_bot_token", "")
    monkeypatch.setattr(settings, "telegram_chat_id", "")
    views.clear_cache()
    yield
    views.clear_cache()


def make_launch(**kwargs) -> NormalizedLaunch:
    defaults = {
        "launchpad": "Virtuals Protocol",
        "launchpad_specific_id": "1001",
        "title": "Agent Smith ($SMITH)",
        "url": "https://app.virtuals.io/virtual/1001",
        "description": "# Agent Smith\nAn autonomous agent.",
        "chain": "BASE",
        "status": "AVAILABLE",
        "creator_address": "0x1111111111111111111111111111111111111111",
        "token_address": "0x2222222222222222222222222222222222222222",
        "creator_tokens_held": 150_000_000 * 10**18,
        "creator_initial_tokens_held": 150_000_000 * 10**18,
        "tokens_for_sale": 850_000_000 * 10**18,
        "total_token_supply": 1_000_000_000 * 10**18,
        "creator_token_holding_percentage": Decimal("15.00"),
        "creator_token_movement_details": "No outgoing creator transfers detected",
        "sent_to_zero_address": False,
    }
    defaults.update(kwargs)
    return NormalizedLaunch(**defaults)


@pytest.fixture
def launch_factory():
    return make_launch
