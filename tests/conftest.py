"""Shared fixtures: in-memory database, blob store and seed helpers."""

import random
from collections.abc import AsyncGenerator, Callable

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from backoffice.catalog.models import Category, Flavor, OrderItem, Weight
from backoffice.catalog.sku import SkuGenerator, SkuResolver
from backoffice.infrastructure.blob_store import InMemoryBlobStore
from backoffice.infrastructure.database import Base, enable_sqlite_savepoints

# Fixed clock: 1_700_000_004.5 s -> ...4500 ms
FIXED_CLOCK = 1_700_000_004.5


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def sku_generator() -> SkuGenerator:
    """Generator with a frozen clock so SKUs are predictable."""
    return SkuGenerator(clock=lambda: FIXED_CLOCK, rng=random.Random(7))


@pytest.fixture
def resolver(session: AsyncSession, sku_generator: SkuGenerator) -> SkuResolver:
    return SkuResolver(session, generator=sku_generator, max_attempts=5, placeholders=["-VAN-50g"])


# ============================================================================
# Seed Helpers
# ============================================================================


@pytest.fixture
def make_category(session: AsyncSession) -> Callable:
    """Insert a category directly."""

    async def _make(name: str, parent: Category | None = None) -> Category:
        category = Category(
            name=name,
            slug=name.lower().replace(" ", "-"),
            parent_id=parent.id if parent else None,
        )
        session.add(category)
        await session.commit()
        return category

    return _make


@pytest.fixture
def make_flavor(session: AsyncSession) -> Callable:
    async def _make(name: str) -> Flavor:
        flavor = Flavor(name=name)
        session.add(flavor)
        await session.commit()
        return flavor

    return _make


@pytest.fixture
def make_weight(session: AsyncSession) -> Callable:
    async def _make(value: float, unit: str) -> Weight:
        weight = Weight(value=value, unit=unit)
        session.add(weight)
        await session.commit()
        return weight

    return _make


@pytest.fixture
def place_order(session: AsyncSession) -> Callable:
    """Record an order line referencing a product and optionally a variant."""

    async def _place(product_id: str, variant_id: str | None = None) -> OrderItem:
        item = OrderItem(
            order_id="order-1",
            product_id=product_id,
            variant_id=variant_id,
            quantity=1,
            unit_price_cents=1000,
        )
        session.add(item)
        await session.commit()
        return item

    return _place
