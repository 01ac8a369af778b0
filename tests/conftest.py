import os
from collections.abc import AsyncGenerator

# Settings are read at import time; point them at an in-memory database first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("REFERENCE_CACHE_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import MetaData, insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import get_db
from app.dependencies import get_cache_manager
from app.main import app
from app.models.appointments import metadata as appointments_metadata
from app.models.references import (
    appointment_tags,
    clinic_users,
    contacts,
    users,
)
from app.models.references import metadata as references_metadata
from app.scheduling.slots import WorkingHours
from app.services.appointment_repository import AppointmentRepository
from app.services.scheduling_agent import SchedulingAgent
from tests.reference_data import (
    CLINIC_ID,
    CONTACT_ID,
    INACTIVE_PRACTITIONER_ID,
    OTHER_CLINIC_CONTACT_ID,
    OTHER_CLINIC_ID,
    PRACTITIONER_ID,
    SECOND_PRACTITIONER_ID,
    TAG_ID,
)

# Combine all metadata
metadata = MetaData()
for table in appointments_metadata.tables.values():
    table.to_metadata(metadata)
for table in references_metadata.tables.values():
    table.to_metadata(metadata)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh in-memory database and a session bound to it."""
    # StaticPool keeps the single in-memory connection alive across sessions
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session

    await test_engine.dispose()


@pytest_asyncio.fixture
async def seeded(db_session: AsyncSession) -> AsyncSession:
    """Insert the contacts, practitioners and tags referenced by appointments."""
    await db_session.execute(
        insert(contacts),
        [
            {"id": CONTACT_ID, "clinic_id": CLINIC_ID, "name": "Maria Souza"},
            {"id": OTHER_CLINIC_CONTACT_ID, "clinic_id": OTHER_CLINIC_ID, "name": "João Lima"},
        ],
    )
    await db_session.execute(
        insert(users),
        [
            {"id": PRACTITIONER_ID, "name": "Dra. Ana", "is_active": True},
            {"id": SECOND_PRACTITIONER_ID, "name": "Dr. Paulo", "is_active": True},
            {"id": INACTIVE_PRACTITIONER_ID, "name": "Dr. Inativo", "is_active": False},
        ],
    )
    await db_session.execute(
        insert(clinic_users),
        [
            {"clinic_id": CLINIC_ID, "user_id": PRACTITIONER_ID, "is_active": True},
            {"clinic_id": CLINIC_ID, "user_id": SECOND_PRACTITIONER_ID, "is_active": True},
            {"clinic_id": CLINIC_ID, "user_id": INACTIVE_PRACTITIONER_ID, "is_active": True},
        ],
    )
    await db_session.execute(
        insert(appointment_tags),
        [{"id": TAG_ID, "clinic_id": CLINIC_ID, "name": "Retorno", "color": "#00aa00"}],
    )
    await db_session.commit()
    return db_session


@pytest.fixture
def repository(seeded: AsyncSession) -> AppointmentRepository:
    """Appointment gateway over the seeded database."""
    return AppointmentRepository(seeded)


@pytest.fixture
def agent(repository: AppointmentRepository) -> SchedulingAgent:
    """Scheduling agent with the default 08:00-18:00 working day."""
    return SchedulingAgent(
        repository,
        working_hours=WorkingHours.parse("08:00", "18:00"),
        timezone="America/Sao_Paulo",
    )


@pytest.fixture
def appointment_data() -> dict:
    """Sample create payload for 2030-06-10 at 10:00."""
    return {
        "contact_id": CONTACT_ID,
        "clinic_id": CLINIC_ID,
        "practitioner_id": PRACTITIONER_ID,
        "scheduled_date": "2030-06-10",
        "scheduled_time": "10:00",
        "duration_minutes": 60,
        "doctor_name": "Dra. Ana",
        "specialty": "Psicologia",
    }


@pytest_asyncio.fixture
async def client(seeded: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield seeded

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
