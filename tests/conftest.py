"""
Shared test configuration and fixtures for the CaseWatch test suite.

Repository and service tests run against an in-memory SQLite database
through aiosqlite; router tests drive the ASGI app with httpx.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SLA_EVALUATION_INTERVAL", "0")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from casewatch.infrastructure.database import Base, get_session
from casewatch.sla.application import SlaTrackingService
from casewatch.sla.domain import SlaConfiguration, SlaTrackingRecord
from casewatch.sla.infrastructure import (
    SQLAlchemySlaConfigurationRepository,
    SQLAlchemySlaTrackingRepository,
)
import casewatch.sla.infrastructure.models  # noqa: F401

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_configuration(
    name: str = "Global default",
    response_hours: int = 24,
    resolution_hours: int = 72,
    category: Optional[str] = None,
    case_type: Optional[str] = None,
    priority: int = 0,
    is_active: bool = True,
    created_at: datetime = T0 - timedelta(days=30),
    configuration_id: Optional[str] = None,
) -> SlaConfiguration:
    return SlaConfiguration(
        id=configuration_id or f"cfg-{name.lower().replace(' ', '-')}",
        name=name,
        category=category,
        case_type=case_type,
        response_deadline_hours=response_hours,
        resolution_deadline_hours=resolution_hours,
        priority=priority,
        is_active=is_active,
        created_at=created_at,
    )


def make_record(
    case_id: str = "case-1",
    created_at: datetime = T0,
    response_hours: int = 24,
    resolution_hours: int = 72,
    store_id: str = "store-1",
    store_name: str = "Acme Outlet",
    **overrides,
) -> SlaTrackingRecord:
    values = dict(
        id=f"rec-{case_id}",
        case_id=case_id,
        case_number=f"CASE-{case_id.upper()}",
        case_type="Return",
        store_id=store_id,
        store_name=store_name,
        case_created_at=created_at,
        first_response_deadline=created_at + timedelta(hours=response_hours),
        resolution_deadline=created_at + timedelta(hours=resolution_hours),
    )
    values.update(overrides)
    return SlaTrackingRecord(**values)


@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture
def tracking_repository(session) -> SQLAlchemySlaTrackingRepository:
    return SQLAlchemySlaTrackingRepository(session)


@pytest.fixture
def configuration_repository(session) -> SQLAlchemySlaConfigurationRepository:
    return SQLAlchemySlaConfigurationRepository(session)


@pytest.fixture
def service(tracking_repository, configuration_repository) -> SlaTrackingService:
    return SlaTrackingService(tracking_repository, configuration_repository, batch_size=2, max_update_retries=3)


@pytest_asyncio.fixture
async def global_configuration(service) -> SlaConfiguration:
    """The {24h, 72h, global} configuration."""
    result = await service.save_sla_configuration(
        SlaConfiguration(
            id=None,
            name="Global default",
            response_deadline_hours=24,
            resolution_deadline_hours=72,
        ),
        admin_user_id="admin-1",
    )
    assert result.succeeded
    return result.value


@pytest_asyncio.fixture
async def client(session_maker) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client against the app, wired to the test database."""
    from casewatch.main import create_app

    app = create_app(use_lifespan=False)

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
