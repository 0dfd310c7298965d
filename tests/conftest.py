"""Shared fixtures: a file-backed SQLite store per test, seed helpers and a fake assistant."""
import asyncio
import os
import tempfile
from datetime import date, time
from decimal import Decimal

# Settings are read at import time; point them at a throwaway database first.
_TMP = tempfile.mkdtemp(prefix="booking-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP}/app.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("LLM_API_KEY", "test-key")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from app.core.db import build_engine, build_session_maker, init_db
from app.core.security import create_access_token
from app.models.appointment import (
    Appointment,
    AppointmentLog,
    AppointmentSource,
    AppointmentStatus,
)
from app.models.business import BusinessHours, BusinessProfile, Service
from app.services.assistant_service import AssistantReply

OWNER_ID = 1
OTHER_OWNER_ID = 2


class FakeAssistant:
    """Stands in for the language model: returns a canned reply and records prompts."""

    def __init__(self, text: str = "", tool_arguments: str | None = None, delay: float = 0.0, exc: Exception | None = None):
        self.text = text
        self.tool_arguments = tool_arguments
        self.delay = delay
        self.exc = exc
        self.calls: list[tuple[str, str]] = []

    async def generate(self, system_prompt: str, message: str) -> AssistantReply:
        self.calls.append((system_prompt, message))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.exc is not None:
            raise self.exc
        return AssistantReply(text=self.text, tool_arguments=self.tool_arguments)


def booking_block(service="Haircut", date_="2024-01-15", time_="15:00", client="Maria", phone="555-0100") -> str:
    return (
        '{"action":"book","data":{"client":"%s","phone":"%s","service":"%s","date":"%s","time":"%s"}}'
        % (client, phone, service, date_, time_)
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db")
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as s:
        yield s


async def seed_profile(session, owner_id: int = OWNER_ID, **overrides) -> BusinessProfile:
    values = dict(
        owner_id=owner_id,
        name="Downtown Barbers",
        address="12 Main St",
        phone="555-0000",
        whatsapp="555-0001",
        email="hello@downtown.test",
        min_notice_minutes=60,
        interval_minutes=10,
    )
    values.update(overrides)
    profile = BusinessProfile(**values)
    session.add(profile)
    await session.commit()
    return profile


async def seed_service(
    session, name: str = "Haircut", price: str = "25.00", duration: int = 30,
    owner_id: int = OWNER_ID, active: bool = True,
) -> Service:
    service = Service(
        owner_id=owner_id, name=name, price=Decimal(price), duration_minutes=duration, is_active=active
    )
    session.add(service)
    await session.commit()
    return service


async def seed_hours(
    session, weekday: int, open_: str = "09:00", close: str = "18:00",
    break_: tuple[str, str] | None = None, owner_id: int = OWNER_ID,
) -> BusinessHours:
    hours = BusinessHours(
        owner_id=owner_id,
        weekday=weekday,
        open_time=time.fromisoformat(open_),
        close_time=time.fromisoformat(close),
        break_start=time.fromisoformat(break_[0]) if break_ else None,
        break_end=time.fromisoformat(break_[1]) if break_ else None,
    )
    session.add(hours)
    await session.commit()
    return hours


async def seed_appointment(
    session, service: Service, slot_date: date, slot_time: time,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    client: str = "Existing Client", owner_id: int = OWNER_ID,
) -> Appointment:
    appointment = Appointment(
        owner_id=owner_id,
        client_name=client,
        phone="555-9999",
        service_id=service.id,
        slot_date=slot_date,
        slot_time=slot_time,
        price=service.price,
        status=status,
        source=AppointmentSource.STAFF,
    )
    session.add(appointment)
    await session.commit()
    return appointment


async def count_rows(session_maker, model) -> int:
    async with session_maker() as s:
        return (await s.execute(select(func.count()).select_from(model))).scalar_one()


async def count_appointments(session_maker) -> int:
    return await count_rows(session_maker, Appointment)


async def count_logs(session_maker) -> int:
    return await count_rows(session_maker, AppointmentLog)


@pytest.fixture
def fake_assistant():
    return FakeAssistant(text="Hello! How can I help you today?")


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token(OWNER_ID)}"}


@pytest_asyncio.fixture
async def client(session_maker, fake_assistant):
    from app.api.deps import get_assistant
    from app.core.db import get_session
    from app.main import app

    async def override_get_session():
        async with session_maker() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_assistant] = lambda: fake_assistant
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
