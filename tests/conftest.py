"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database (aiosqlite) created fresh for each test
- Async session bound to it
- Factory for inserting appointments with sensible defaults
"""
import os
from datetime import datetime

# Point the app at SQLite before anything imports the engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["LOGFIRE_TOKEN"] = ""

import logfire
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from appointment_engine.database import Base
from appointment_engine.models import Appointment, AppointmentStatus

logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture
async def engine():
    """Fresh in-memory database per test; StaticPool keeps one shared connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_appointment(db):
    """Insert an appointment; defaults describe a confirmed 1h meeting on 2024-01-10 09:00."""

    async def _make(**overrides) -> Appointment:
        fields = {
            "requester_id": "student-1",
            "provider_id": "lecturer-1",
            "subject": "Office hours",
            "scheduled_at": datetime(2024, 1, 10, 9, 0),
            "duration_minutes": 60,
            "status": AppointmentStatus.CONFIRMED,
            "booked_at": datetime(2024, 1, 1, 9, 0),
        }
        fields.update(overrides)
        if isinstance(fields["status"], AppointmentStatus):
            fields["status"] = fields["status"].value
        if hasattr(fields.get("recurring_pattern"), "value"):
            fields["recurring_pattern"] = fields["recurring_pattern"].value

        appointment = Appointment(**fields)
        db.add(appointment)
        await db.flush()
        return appointment

    return _make
