import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_assistant, get_current_owner_id, get_session
from app.api.errors import to_http_exception
from app.api.routes.appointments import to_public
from app.api.schemas.chat import BookingErrorInfo, ChatRequest, ChatResponse
from app.core.config import settings
from app.services.assistant_service import TextGenerator
from app.services.chat_service import attempt_booking_from_text
from app.services.errors import AmbiguousServiceError, BookingError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    session: AsyncSession = Depends(get_session),
    owner_id: int = Depends(get_current_owner_id),
    assistant: TextGenerator = Depends(get_assistant),
) -> ChatResponse:
    """Send the customer's message to the assistant and book the slot it confirms, if any."""
    try:
        result = await attempt_booking_from_text(
            session, owner_id, body.message, assistant, timeout=settings.llm_timeout_seconds
        )
    except BookingError as e:
        raise to_http_exception(e) from e

    error = None
    if result.booking_error is not None:
        error = BookingErrorInfo(
            code=result.booking_error.code,
            message=result.booking_error.message,
            candidates=(
                result.booking_error.candidates
                if isinstance(result.booking_error, AmbiguousServiceError)
                else None
            ),
        )
    created = None
    if result.booking_created is not None:
        created = to_public(result.booking_created, result.service_name)
    return ChatResponse(assistant_reply=result.assistant_reply, booking_created=created, booking_error=error)
