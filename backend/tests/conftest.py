"""Pytest fixtures for BAN Directory backend tests."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.auth import create_access_token, hash_password
from app.database import Base, get_db
from app.main import app
from app.models import Package, Place, Product, ProductImage, UserProfile, UserSubscription


# Use SQLite for tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
test_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def override_get_db():
    async with test_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


@pytest_asyncio.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def db():
    async with test_session() as session:
        yield session


@pytest.fixture
def auth_headers():
    def _headers(user: UserProfile) -> dict[str, str]:
        token = create_access_token(str(user.id), user.email)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def make_user(db: AsyncSession):
    async def _make(
        email: str,
        full_name: str | None = None,
        is_admin: bool = False,
        password: str = "secret123",
    ) -> UserProfile:
        user = UserProfile(
            id=uuid.uuid4(),
            email=email,
            password_hash=hash_password(password),
            full_name=full_name,
            is_admin=is_admin,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make


@pytest_asyncio.fixture
async def owner(make_user) -> UserProfile:
    return await make_user("owner@example.com", full_name="صاحب المتجر")


@pytest_asyncio.fixture
async def customer(make_user) -> UserProfile:
    return await make_user("customer@example.com", full_name="Customer One")


@pytest_asyncio.fixture
async def admin(make_user) -> UserProfile:
    return await make_user("admin@example.com", full_name="Admin", is_admin=True)


@pytest_asyncio.fixture
async def package(db: AsyncSession) -> Package:
    package = Package(
        id=uuid.uuid4(),
        name_ar="الباقة الذهبية",
        name_en="Gold",
        price=Decimal("100.00"),
        max_places=1,
        max_product_images=3,
        max_product_videos=1,
        max_place_videos=1,
        priority=10,
        is_featured=True,
    )
    db.add(package)
    await db.commit()
    await db.refresh(package)
    return package


@pytest_asyncio.fixture
async def subscription(
    db: AsyncSession, owner: UserProfile, package: Package
) -> UserSubscription:
    subscription = UserSubscription(
        id=uuid.uuid4(),
        user_id=owner.id,
        package_id=package.id,
        status="approved",
        is_active=True,
        amount_paid=package.price,
        expires_at=datetime.now(timezone.utc) + timedelta(days=30),
    )
    db.add(subscription)
    await db.commit()
    await db.refresh(subscription)
    return subscription


@pytest_asyncio.fixture
async def place(
    db: AsyncSession, owner: UserProfile, subscription: UserSubscription
) -> Place:
    place = Place(
        id=uuid.uuid4(),
        user_id=owner.id,
        subscription_id=subscription.id,
        name_ar="صيدلية النور",
        name_en="Al Nour Pharmacy",
        category="pharmacy",
        latitude=30.0444,
        longitude=31.2357,
        phone_1="+201000000000",
        is_featured=True,
        last_view_reset_date=date.today(),
    )
    db.add(place)
    await db.commit()
    await db.refresh(place)
    return place


@pytest_asyncio.fixture
async def product(db: AsyncSession, place: Place) -> Product:
    product = Product(
        id=uuid.uuid4(),
        place_id=place.id,
        name_ar="بنادول اكسترا",
        name_en="Panadol Extra",
        description_ar="مسكن للصداع",
        price=Decimal("45.50"),
        images=[ProductImage(image_url="https://i.ibb.co/abc/panadol.webp", order_index=0)],
    )
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product
