from datetime import UTC, datetime, time
from decimal import Decimal

import sqlalchemy as sa
from pydantic import model_validator
from sqlmodel import Field, SQLModel

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class BusinessProfile(SQLModel, table=True):
    __tablename__ = "business_profiles"
    id: int | None = Field(default=None, primary_key=True)
    owner_id: int = Field(unique=True, index=True)
    name: str
    address: str = ""
    phone: str = ""
    email: str | None = None
    whatsapp: str | None = None
    min_notice_minutes: int = 0
    interval_minutes: int = 0
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime = Field(default_factory=_utc_naive_now)


class BusinessHours(SQLModel, table=True):
    __tablename__ = "business_hours"
    __table_args__ = (
        sa.UniqueConstraint("owner_id", "weekday", name="uq_business_hours_owner_weekday"),
    )
    id: int | None = Field(default=None, primary_key=True)
    owner_id: int = Field(index=True)
    weekday: int  # 0 = Monday … 6 = Sunday
    open_time: time
    close_time: time
    break_start: time | None = None
    break_end: time | None = None
    is_active: bool = True
    updated_at: datetime = Field(default_factory=_utc_naive_now)

    @property
    def weekday_name(self) -> str:
        return WEEKDAY_NAMES[self.weekday]

    def contains(self, start: time, end: time) -> bool:
        """True when [start, end) fits inside opening hours and does not touch the break."""
        if start < self.open_time or end > self.close_time:
            return False
        if self.break_start is not None and self.break_end is not None:
            if start < self.break_end and end > self.break_start:
                return False
        return True


class Service(SQLModel, table=True):
    __tablename__ = "services"
    id: int | None = Field(default=None, primary_key=True)
    owner_id: int = Field(index=True)
    name: str = Field(index=True)
    description: str | None = None
    price: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    duration_minutes: int = 30
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime = Field(default_factory=_utc_naive_now)


class ServicePublic(SQLModel):
    id: int
    name: str
    description: str | None = None
    price: Decimal
    duration_minutes: int
    is_active: bool


class BusinessProfileUpdate(SQLModel):
    name: str = Field(min_length=1)
    address: str = ""
    phone: str = ""
    email: str | None = None
    whatsapp: str | None = None
    min_notice_minutes: int = Field(default=0, ge=0)
    interval_minutes: int = Field(default=0, ge=0)


class BusinessHoursCreate(SQLModel):
    weekday: int = Field(ge=0, le=6)
    open_time: time
    close_time: time
    break_start: time | None = None
    break_end: time | None = None
    is_active: bool = True

    @model_validator(mode="after")
    def _check_order(self) -> "BusinessHoursCreate":
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("break_start and break_end must be given together")
        if self.break_start is not None and self.break_end is not None:
            if not (self.open_time < self.break_start < self.break_end < self.close_time):
                raise ValueError("expected open_time < break_start < break_end < close_time")
        elif not self.open_time < self.close_time:
            raise ValueError("expected open_time < close_time")
        return self


class ServiceCreate(SQLModel):
    name: str = Field(min_length=1)
    description: str | None = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    duration_minutes: int = Field(gt=0)
