"""Pytest configuration and fixtures for testing."""

import os

# Settings are read at import time
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("TX_RETRY_BACKOFF_SECONDS", "0")

from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from vendorhub.core.database import Base
from vendorhub.models import Product
from vendorhub.services.wallet_service import WalletService


class RecordingNotifier:
    """Collects dispatched order events instead of delivering them."""

    def __init__(self):
        self.events: list[tuple[str, str, str, str]] = []

    def dispatch(self, event_type: str, order_id: str, status: str, recipient_id: str) -> None:
        self.events.append((event_type, str(order_id), str(status), recipient_id))


# Database fixtures
@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite database, one per test.

    Every transaction starts with BEGIN IMMEDIATE, so concurrent sessions
    take the write lock up front and serialize the way row locks do.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'vendorhub.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# Data helpers
@pytest.fixture
def make_product(session_factory):
    """Create a catalog product in its own committed session."""

    async def _make(
        name: str = "Onions",
        supplier_id: str = "supplier-1",
        price: str = "40.00",
        quantity: int = 100,
        min_order_quantity: int = 1,
        unit: str = "kg",
    ) -> Product:
        async with session_factory() as session:
            product = Product(
                supplier_id=supplier_id,
                name=name,
                unit=unit,
                price=Decimal(price),
                available_quantity=quantity,
                min_order_quantity=min_order_quantity,
                is_active=True,
            )
            session.add(product)
            await session.commit()
            return product

    return _make


@pytest.fixture
def fund_wallet(session_factory):
    """Top up a wallet in its own committed session."""

    async def _fund(user_id: str, amount: str) -> None:
        async with session_factory() as session:
            await WalletService(session).top_up(user_id, Decimal(amount))

    return _fund


@pytest.fixture
def load(session_factory):
    """Fetch a fresh copy of a row by primary key."""

    async def _load(model, key):
        async with session_factory() as session:
            return await session.get(model, key)

    return _load


# Mock Redis client fixture
@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis client."""
    redis = AsyncMock()
    redis.ping = AsyncMock(return_value=True)
    return redis
