"""Pull a booking intent out of what the assistant said.

Structured tool-call arguments win when the generation step returns them.
Otherwise the free text is scanned for the first JSON object that validates
as a booking intent. Nothing here raises: a reply without a usable intent is
an ordinary conversational turn.
"""
import json
import logging
import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

_decoder = json.JSONDecoder()


class BookingData(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    client: str = Field(min_length=1, description="Customer full name")
    phone: str = Field(min_length=1, description="Customer phone number")
    service: str = Field(min_length=1, description="Name of the requested service")
    date: str = Field(description="Appointment date, YYYY-MM-DD")
    time: str = Field(description="Appointment start time, HH:MM (24h)")

    @field_validator("date")
    @classmethod
    def _valid_date(cls, v: str) -> str:
        if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", v):
            raise ValueError("date must be YYYY-MM-DD")
        datetime.strptime(v, "%Y-%m-%d")
        return v

    @field_validator("time")
    @classmethod
    def _valid_time(cls, v: str) -> str:
        if not re.fullmatch(r"\d{1,2}:\d{2}", v):
            raise ValueError("time must be HH:MM")
        return datetime.strptime(v, "%H:%M").strftime("%H:%M")

    @property
    def slot_date(self):
        return datetime.strptime(self.date, "%Y-%m-%d").date()

    @property
    def slot_time(self):
        return datetime.strptime(self.time, "%H:%M").time()


class BookingIntent(BaseModel):
    action: Literal["book"]
    data: BookingData


def _json_objects(text: str):
    """Yield every JSON object that starts at a '{' in text, outer ones first."""
    idx = text.find("{")
    while idx != -1:
        try:
            obj, _ = _decoder.raw_decode(text, idx)
        except ValueError:
            obj = None
        if isinstance(obj, dict):
            yield obj
        idx = text.find("{", idx + 1)


def extract_booking_intent(text: str | None) -> BookingIntent | None:
    """First well-formed booking intent in text, or None."""
    if not text:
        return None
    for obj in _json_objects(text):
        if obj.get("action") != "book":
            continue
        try:
            return BookingIntent.model_validate(obj)
        except ValidationError as e:
            logger.info("Ignoring malformed booking block: %s", e.errors(include_url=False))
    return None


def intent_from_tool_arguments(arguments: str | dict | None) -> BookingIntent | None:
    if not arguments:
        return None
    try:
        payload = json.loads(arguments) if isinstance(arguments, str) else arguments
        return BookingIntent(action="book", data=BookingData.model_validate(payload))
    except (ValueError, ValidationError) as e:
        logger.warning("Tool-call booking arguments rejected: %s", e)
        return None


def intent_from_reply(text: str | None, tool_arguments: str | dict | None = None) -> BookingIntent | None:
    intent = intent_from_tool_arguments(tool_arguments)
    if intent is not None:
        return intent
    return extract_booking_intent(text)


def booking_tool_definition() -> dict:
    """OpenAI-style function tool whose parameters are the BookingData schema."""
    return {
        "type": "function",
        "function": {
            "name": "book_appointment",
            "description": "Book an appointment once the customer has confirmed every detail.",
            "parameters": BookingData.model_json_schema(),
        },
    }
