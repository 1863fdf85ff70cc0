"""
Test Suite Configuration
"""
from datetime import datetime
from decimal import Decimal
from itertools import count
from typing import AsyncGenerator, Iterable, Optional, Sequence, Tuple

import fakeredis
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marketplace_dashboard.analytics.service import DashboardService
from marketplace_dashboard.config.settings import DashboardSettings
from marketplace_dashboard.database.models import (
    Base,
    Brand,
    Category,
    FinancialStatus,
    Image,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductImage,
    ProductStatistic,
    StatisticType,
)
from marketplace_dashboard.serving.cache import CacheManager
from marketplace_dashboard.serving.storage import StorageUrlResolver

# Fixed "now" for every test: 2025-06-15 12:00 (UTC, naive)
NOW = datetime(2025, 6, 15, 12, 0, 0)
STORAGE_BASE_URL = "https://cdn.test/media"


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
async def test_engine():
    """In-memory SQLite engine shared across connections"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def test_db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Database session"""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def fake_redis():
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def dashboard_cache(fake_redis) -> CacheManager:
    return CacheManager("dashboard", default_ttl=300, client=fake_redis)


@pytest.fixture
def storage() -> StorageUrlResolver:
    return StorageUrlResolver(STORAGE_BASE_URL)


@pytest.fixture
def dashboard_settings() -> DashboardSettings:
    return DashboardSettings()


class MarketplaceSeeder:
    """Inserts catalog, order and interest rows for query tests"""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._clients = count(1)

    async def _add(self, obj):
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def brand(self, brand_id: str = "brand-1", user_id: Optional[str] = "user-1", name: str = "Acme") -> Brand:
        return await self._add(Brand(id=brand_id, user_id=user_id, name=name))

    async def category(self, name: str = "Shoes") -> Category:
        return await self._add(Category(name=name))

    async def product(
        self,
        brand: Brand,
        title: str = "Product",
        category: Optional[Category] = None,
        images: Iterable[Tuple[str, int]] = (),
    ) -> Product:
        product = await self._add(Product(
            brand_id=brand.id,
            title=title,
            category_id=category.id if category else None,
        ))
        for src, position in images:
            image = await self._add(Image(src=src))
            await self._add(ProductImage(product_id=product.id, image_id=image.id, position=position))
        return product

    async def order(
        self,
        brand: Brand,
        created_at: datetime,
        items: Sequence[Tuple[Optional[Product], int, str]] = (),
        status: OrderStatus = OrderStatus.COMPLETED,
        financial_status: FinancialStatus = FinancialStatus.PAID,
    ) -> Order:
        """items: (product, quantity, final_price)"""
        order = await self._add(Order(
            brand_id=brand.id,
            status=status,
            financial_status=financial_status,
            created_at=created_at,
        ))
        for product, quantity, final_price in items:
            await self._add(OrderItem(
                order_id=order.id,
                product_id=product.id if product else None,
                title=product.title if product else "Deleted",
                quantity=quantity,
                final_price=Decimal(final_price),
            ))
        return order

    async def events(self, product: Product, event_type: StatisticType, created_at: datetime, times: int = 1) -> None:
        for _ in range(times):
            await self._add(ProductStatistic(
                product_id=product.id,
                client_id=f"client-{next(self._clients)}",
                type=event_type,
                created_at=created_at,
            ))


@pytest.fixture
def seeder(test_db) -> MarketplaceSeeder:
    return MarketplaceSeeder(test_db)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def dashboard_service(test_db, dashboard_cache, storage, dashboard_settings, clock):
    return DashboardService(test_db, dashboard_cache, storage, settings=dashboard_settings, clock=clock)
