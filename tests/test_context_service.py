from datetime import date, time

import pytest

from app.models.appointment import AppointmentStatus
from app.services.context_service import build_system_prompt, load_business_snapshot
from app.services.errors import ConfigurationMissingError
from tests.conftest import (
    OTHER_OWNER_ID,
    OWNER_ID,
    seed_appointment,
    seed_hours,
    seed_profile,
    seed_service,
)

TODAY = date(2024, 1, 15)  # a Monday


async def test_missing_profile_refuses_to_brief(session):
    await seed_service(session)
    with pytest.raises(ConfigurationMissingError):
        await load_business_snapshot(session, OWNER_ID, TODAY)


async def test_briefing_lists_identity_services_hours_and_policy(session):
    await seed_profile(session)
    await seed_service(session, "Haircut", "25.00", 30)
    await seed_service(session, "Beard Trim", "15.50", 20)
    await seed_service(session, "Old Perm", "80.00", 90, active=False)
    await seed_hours(session, 0, "09:00", "18:00", break_=("12:00", "13:00"))
    await seed_hours(session, 5, "09:00", "14:00")

    prompt = build_system_prompt(await load_business_snapshot(session, OWNER_ID, TODAY))

    assert "Downtown Barbers" in prompt
    assert "12 Main St" in prompt
    assert "555-0000" in prompt
    assert "WhatsApp: 555-0001" in prompt
    assert "- Haircut: 25.00 (30 min)" in prompt
    assert "- Beard Trim: 15.50 (20 min)" in prompt
    assert "Old Perm" not in prompt
    assert "- Monday: 09:00 to 18:00 (closed 12:00-13:00)" in prompt
    assert "- Saturday: 09:00 to 14:00" in prompt
    assert "Interval between appointments: 10 minutes" in prompt
    assert "Minimum notice: 60 minutes" in prompt
    assert '"action": "book"' in prompt
    assert "Today is Monday, 2024-01-15." in prompt


async def test_booked_slots_are_listed_without_client_identity(session):
    await seed_profile(session)
    haircut = await seed_service(session)
    await seed_appointment(session, haircut, date(2024, 1, 15), time(14, 0), client="Secret Person")
    await seed_appointment(session, haircut, date(2024, 1, 16), time(9, 30), status=AppointmentStatus.PENDING)
    await seed_appointment(session, haircut, date(2024, 1, 16), time(11, 0), status=AppointmentStatus.CANCELLED)
    await seed_appointment(session, haircut, date(2024, 1, 10), time(10, 0))

    snapshot = await load_business_snapshot(session, OWNER_ID, TODAY)
    prompt = build_system_prompt(snapshot)

    assert snapshot.booked_slots == ((date(2024, 1, 15), time(14, 0)), (date(2024, 1, 16), time(9, 30)))
    assert "- 2024-01-15 at 14:00" in prompt
    assert "- 2024-01-16 at 09:30" in prompt
    assert "11:00" not in prompt
    assert "2024-01-10" not in prompt
    assert "Secret Person" not in prompt
    assert "555-9999" not in prompt


async def test_other_accounts_do_not_leak_into_briefing(session):
    await seed_profile(session)
    await seed_profile(session, owner_id=OTHER_OWNER_ID, name="Uptown Salon")
    other = await seed_service(session, "Manicure", owner_id=OTHER_OWNER_ID)
    await seed_appointment(session, other, date(2024, 1, 20), time(10, 0), owner_id=OTHER_OWNER_ID)

    prompt = build_system_prompt(await load_business_snapshot(session, OWNER_ID, TODAY))

    assert "Uptown Salon" not in prompt
    assert "Manicure" not in prompt
    assert "2024-01-20" not in prompt
    assert "(no services available)" in prompt


async def test_briefing_is_deterministic_and_capped(session):
    await seed_profile(session)
    haircut = await seed_service(session)
    for hour in (9, 10, 11):
        await seed_appointment(session, haircut, date(2024, 1, 15), time(hour, 0))

    first = await load_business_snapshot(session, OWNER_ID, TODAY, max_booked_slots=2)
    second = await load_business_snapshot(session, OWNER_ID, TODAY, max_booked_slots=2)

    assert build_system_prompt(first) == build_system_prompt(second)
    assert len(first.booked_slots) == 2
    assert first.booked_slots[0] == (date(2024, 1, 15), time(9, 0))
