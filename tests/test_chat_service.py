import asyncio
from datetime import date, datetime, time
from decimal import Decimal

import pytest
import pytest_asyncio

from app.models.appointment import AppointmentSource, AppointmentStatus, LogAction
from app.services.appointment_service import get_appointment_logs
from app.services.chat_service import attempt_booking_from_text
from app.services.errors import (
    AmbiguousServiceError,
    AssistantUnavailableError,
    ConfigurationMissingError,
    InsufficientNoticeError,
    PastSlotError,
    ServiceNotFoundError,
    SlotConflictError,
)
from tests.conftest import (
    OWNER_ID,
    FakeAssistant,
    booking_block,
    count_appointments,
    count_logs,
    seed_appointment,
    seed_profile,
    seed_service,
)

NOW = datetime(2024, 1, 10, 9, 0)


@pytest_asyncio.fixture
async def barbershop(session):
    """One business with a Haircut and a confirmed booking on 2024-01-15 at 14:00."""
    await seed_profile(session)
    haircut = await seed_service(session, "Haircut", "25.00", 30)
    await seed_appointment(session, haircut, date(2024, 1, 15), time(14, 0))
    return haircut


async def chat(session, assistant, message="I'd like a haircut", now=NOW, timeout=5.0):
    return await attempt_booking_from_text(session, OWNER_ID, message, assistant, timeout=timeout, now=now)


async def test_taken_slot_is_reported_and_nothing_written(session, session_maker, barbershop):
    reply = "Booked!\n" + booking_block(time_="14:00")
    result = await chat(session, FakeAssistant(text=reply))

    assert result.assistant_reply == reply
    assert result.booking_created is None
    assert isinstance(result.booking_error, SlotConflictError)
    assert await count_appointments(session_maker) == 1
    assert await count_logs(session_maker) == 0


async def test_free_slot_is_booked_with_snapshot_price(session, session_maker, barbershop):
    result = await chat(session, FakeAssistant(text="Done! " + booking_block(time_="15:00")))

    appointment = result.booking_created
    assert appointment is not None
    assert result.booking_error is None
    assert result.service_name == "Haircut"
    assert appointment.service_id == barbershop.id
    assert appointment.price == Decimal("25.00")
    assert appointment.status == AppointmentStatus.CONFIRMED
    assert appointment.source == AppointmentSource.ASSISTANT
    assert appointment.client_name == "Maria"
    assert appointment.slot_date == date(2024, 1, 15)
    assert appointment.slot_time == time(15, 0)
    logs = await get_appointment_logs(session, OWNER_ID, appointment.id)
    assert [log.action for log in logs] == [LogAction.CREATED]
    assert await count_appointments(session_maker) == 2


async def test_plain_reply_returns_unchanged(session, session_maker, barbershop):
    assistant = FakeAssistant(text="Which day suits you?")
    result = await chat(session, assistant)

    assert result.assistant_reply == "Which day suits you?"
    assert result.booking_created is None
    assert result.booking_error is None
    assert await count_appointments(session_maker) == 1


async def test_briefing_and_message_reach_the_assistant(session, barbershop):
    assistant = FakeAssistant(text="Hi")
    await chat(session, assistant, message="Any slots Monday?")

    system_prompt, message = assistant.calls[0]
    assert message == "Any slots Monday?"
    assert "Downtown Barbers" in system_prompt
    assert "- 2024-01-15 at 14:00" in system_prompt
    assert "Today is Wednesday, 2024-01-10." in system_prompt


async def test_tool_call_arguments_book_without_json_in_text(session, session_maker, barbershop):
    args = '{"client":"Ana","phone":"1","service":"haircut","date":"2024-01-15","time":"16:00"}'
    result = await chat(session, FakeAssistant(text="See you Monday at 16:00!", tool_arguments=args))

    assert result.booking_created.client_name == "Ana"
    assert result.assistant_reply == "See you Monday at 16:00!"


async def test_unknown_service(session, session_maker, barbershop):
    result = await chat(session, FakeAssistant(text=booking_block(service="Massage")))
    assert isinstance(result.booking_error, ServiceNotFoundError)
    assert await count_appointments(session_maker) == 1


async def test_ambiguous_service(session, barbershop):
    await seed_service(session, "Haircut Kids", "15.00", 20)
    await seed_service(session, "Haircut Deluxe", "45.00", 60)
    result = await chat(session, FakeAssistant(text=booking_block(service="haircut ")))
    # An exact name still wins over the longer partial matches
    assert result.booking_created is not None

    result = await chat(session, FakeAssistant(text=booking_block(service="cut", time_="17:00")))
    assert isinstance(result.booking_error, AmbiguousServiceError)
    assert len(result.booking_error.candidates) == 3


async def test_minimum_notice_uses_request_time(session, session_maker, barbershop):
    result = await chat(
        session, FakeAssistant(text=booking_block(time_="15:00")), now=datetime(2024, 1, 15, 14, 30)
    )
    assert isinstance(result.booking_error, InsufficientNoticeError)
    assert await count_appointments(session_maker) == 1


async def test_missing_business_profile_stops_before_the_assistant(session, session_maker):
    await seed_service(session)
    assistant = FakeAssistant(text=booking_block())
    with pytest.raises(ConfigurationMissingError):
        await chat(session, assistant)
    assert assistant.calls == []
    assert await count_appointments(session_maker) == 0


async def test_timeout_means_no_booking(session, session_maker, barbershop):
    assistant = FakeAssistant(text=booking_block(time_="15:00"), delay=1.0)
    with pytest.raises(AssistantUnavailableError):
        await chat(session, assistant, timeout=0.05)
    assert await count_appointments(session_maker) == 1


async def test_assistant_failure_is_unavailable(session, session_maker, barbershop):
    with pytest.raises(AssistantUnavailableError):
        await chat(session, FakeAssistant(exc=RuntimeError("connection reset")))
    with pytest.raises(AssistantUnavailableError):
        await chat(session, FakeAssistant(exc=AssistantUnavailableError("HTTP 503")))
    assert await count_appointments(session_maker) == 1


async def test_concurrent_requests_for_one_slot_book_once(session_maker, barbershop):
    async def attempt(client):
        async with session_maker() as s:
            assistant = FakeAssistant(text=booking_block(time_="15:00", client=client), delay=0.01)
            return await attempt_booking_from_text(s, OWNER_ID, "book", assistant, timeout=5.0, now=NOW)

    first, second = await asyncio.gather(attempt("Maria"), attempt("Joao"))

    created = [r for r in (first, second) if r.booking_created is not None]
    rejected = [r for r in (first, second) if r.booking_error is not None]
    assert len(created) == 1
    assert len(rejected) == 1
    assert isinstance(rejected[0].booking_error, SlotConflictError)
    assert await count_appointments(session_maker) == 2
    assert await count_logs(session_maker) == 1


async def test_past_date_without_clock_is_reported_as_past(session, session_maker):
    await seed_profile(session, min_notice_minutes=0)
    haircut = await seed_service(session, "Haircut", "25.00", 30)
    await seed_appointment(session, haircut, date(2024, 1, 15), time(14, 0))

    result = await attempt_booking_from_text(
        session, OWNER_ID, "I'd like a haircut", FakeAssistant(text=booking_block(time_="15:00")), timeout=5.0
    )

    assert result.booking_created is None
    assert isinstance(result.booking_error, PastSlotError)
    assert result.booking_error.code == "slot_in_past"
    assert "notice" not in str(result.booking_error)
    assert await count_appointments(session_maker) == 1


async def test_future_date_without_clock_is_booked(session, session_maker, barbershop):
    reply = booking_block(date_="2099-01-15", time_="15:00")
    result = await attempt_booking_from_text(
        session, OWNER_ID, "I'd like a haircut", FakeAssistant(text=reply), timeout=5.0
    )

    assert result.booking_error is None
    assert result.booking_created.price == Decimal("25.00")
    assert await count_appointments(session_maker) == 2


async def test_concurrent_overlapping_requests_book_once(session, session_maker, barbershop):
    await seed_service(session, "Coloring", "60.00", 60)

    async def attempt(slot, client):
        async with session_maker() as s:
            assistant = FakeAssistant(
                text=booking_block(service="Coloring", time_=slot, client=client), delay=0.01
            )
            return await attempt_booking_from_text(s, OWNER_ID, "book", assistant, timeout=5.0, now=NOW)

    first, second = await asyncio.gather(attempt("10:00", "Maria"), attempt("10:30", "Joao"))

    created = [r for r in (first, second) if r.booking_created is not None]
    rejected = [r for r in (first, second) if r.booking_error is not None]
    assert len(created) == 1
    assert len(rejected) == 1
    assert isinstance(rejected[0].booking_error, SlotConflictError)
    assert await count_appointments(session_maker) == 2
    assert await count_logs(session_maker) == 1
