"""
Pytest fixtures for test database, client, seed data and authentication.

Every test gets its own SQLite file so that several sessions (the seeding
session, request sessions, a "racing" session) can see each other's
committed writes, the way separate connections do against PostgreSQL.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"

from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.models import BatchSlot, InventoryDateRange, Listing, User
from app.models.enums import BookingFormat, UserRole

from factories import create_batch, create_date_range, create_listing, create_user


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'booking_engine_test.db'}",
        poolclass=NullPool,
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding data and calling services directly."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client; each request runs in its own committed-or-rolled-back session."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def customer(db_session: AsyncSession) -> User:
    return await create_user(db_session, "customer@example.com", UserRole.CUSTOMER)


@pytest_asyncio.fixture
async def other_customer(db_session: AsyncSession) -> User:
    return await create_user(db_session, "other@example.com", UserRole.CUSTOMER)


@pytest_asyncio.fixture
async def operator(db_session: AsyncSession) -> User:
    return await create_user(db_session, "operator@example.com", UserRole.OPERATOR)


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await create_user(db_session, "admin@example.com", UserRole.ADMIN)


@pytest_asyncio.fixture
async def batch_listing(db_session: AsyncSession, operator: User) -> Listing:
    return await create_listing(db_session, operator, BookingFormat.BATCH)


@pytest_asyncio.fixture
async def batch_slot(db_session: AsyncSession, batch_listing: Listing) -> BatchSlot:
    """A five-day batch with 3 of 3 places left at 5,000.00 per participant."""
    return await create_batch(db_session, batch_listing)


@pytest_asyncio.fixture
async def rental_listing(db_session: AsyncSession, operator: User) -> Listing:
    return await create_listing(db_session, operator, BookingFormat.DAY_RENTAL)


@pytest_asyncio.fixture
async def rental_range(db_session: AsyncSession, rental_listing: Listing) -> InventoryDateRange:
    return await create_date_range(db_session, rental_listing)
