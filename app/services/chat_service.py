"""Chat-to-booking pipeline: the only booking entry point the request layer calls."""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.appointment import Appointment, AppointmentSource
from app.services.appointment_service import commit_booking
from app.services.assistant_service import TextGenerator
from app.services.context_service import build_system_prompt, load_business_snapshot
from app.services.errors import RECOVERABLE_BOOKING_ERRORS, AssistantUnavailableError, BookingError
from app.services.intent_service import intent_from_reply
from app.services.slot_service import resolve_booking

logger = logging.getLogger(__name__)


@dataclass
class ChatBookingResult:
    assistant_reply: str
    booking_created: Appointment | None = None
    service_name: str | None = None
    booking_error: BookingError | None = None


async def attempt_booking_from_text(
    session: AsyncSession,
    owner_id: int,
    message: str,
    assistant: TextGenerator,
    *,
    timeout: float,
    now: datetime | None = None,
) -> ChatBookingResult:
    """Brief the assistant, ask it, and book whatever intent its reply carries.

    ConfigurationMissingError, AssistantUnavailableError and PersistenceError
    propagate. Service and slot problems come back in `booking_error` with the
    reply intact.
    """
    now = now or datetime.now()
    snapshot = await load_business_snapshot(session, owner_id, now.date())
    system_prompt = build_system_prompt(snapshot)

    try:
        reply = await asyncio.wait_for(assistant.generate(system_prompt, message), timeout=timeout)
    except AssistantUnavailableError:
        raise
    except asyncio.TimeoutError as e:
        logger.warning("Assistant timed out after %ss for owner_id=%s; no booking attempted", timeout, owner_id)
        raise AssistantUnavailableError("Assistant timed out") from e
    except Exception as e:
        logger.exception("Assistant call failed for owner_id=%s", owner_id)
        raise AssistantUnavailableError("Assistant is unavailable") from e

    intent = intent_from_reply(reply.text, reply.tool_arguments)
    if intent is None:
        return ChatBookingResult(assistant_reply=reply.text)

    logger.info(
        "Booking intent owner_id=%s service=%r %s %s",
        owner_id, intent.data.service, intent.data.date, intent.data.time,
    )
    try:
        draft = await resolve_booking(
            session, owner_id, intent, min_notice_minutes=snapshot.min_notice_minutes, now=now
        )
        appointment = await commit_booking(session, draft, AppointmentSource.ASSISTANT)
    except RECOVERABLE_BOOKING_ERRORS as e:
        logger.info("Booking not created for owner_id=%s: %s (%s)", owner_id, e.message, e.code)
        return ChatBookingResult(assistant_reply=reply.text, booking_error=e)
    return ChatBookingResult(
        assistant_reply=reply.text, booking_created=appointment, service_name=draft.service_name
    )
