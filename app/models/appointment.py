import enum
from datetime import UTC, date, datetime, time
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def enum_column(enum_cls: type[enum.Enum], default: enum.Enum, index: bool = False) -> sa.Column:
    """Store enum values (not names) as VARCHAR so SQL filters can use the plain value."""
    return sa.Column(
        sa.Enum(
            enum_cls,
            values_callable=lambda members: [m.value for m in members],
            native_enum=False,
            length=20,
            validate_strings=True,
        ),
        nullable=False,
        default=default,
        index=index,
    )


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    INSTANT_TRANSFER = "instant_transfer"
    CARD = "card"
    PENDING = "pending"


class AppointmentSource(str, enum.Enum):
    STAFF = "staff"
    ASSISTANT = "assistant"


class LogAction(str, enum.Enum):
    CREATED = "created"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    COMPLETED = "completed"
    UPDATED = "updated"


LIVE_SLOT_INDEX = "uq_appointments_live_slot"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    # At most one live appointment per owner and slot; cancelled rows free the slot
    __table_args__ = (
        sa.Index(
            LIVE_SLOT_INDEX,
            "owner_id",
            "slot_date",
            "slot_time",
            unique=True,
            postgresql_where=sa.text("status <> 'cancelled'"),
            sqlite_where=sa.text("status <> 'cancelled'"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    owner_id: int = Field(index=True)
    client_name: str
    phone: str
    email: str | None = None
    service_id: int = Field(foreign_key="services.id", index=True)
    slot_date: date = Field(index=True)
    slot_time: time
    price: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    paid: bool = False
    payment_method: PaymentMethod = Field(
        default=PaymentMethod.PENDING,
        sa_column=enum_column(PaymentMethod, PaymentMethod.PENDING),
    )
    notes: str | None = None
    status: AppointmentStatus = Field(
        default=AppointmentStatus.CONFIRMED,
        sa_column=enum_column(AppointmentStatus, AppointmentStatus.CONFIRMED, index=True),
    )
    source: AppointmentSource = Field(
        default=AppointmentSource.STAFF,
        sa_column=enum_column(AppointmentSource, AppointmentSource.STAFF),
    )
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime = Field(default_factory=_utc_naive_now)


class AppointmentLog(SQLModel, table=True):
    """Append-only history; one row per state-changing action."""

    __tablename__ = "appointment_logs"
    id: int | None = Field(default=None, primary_key=True)
    appointment_id: int = Field(foreign_key="appointments.id", index=True)
    action: LogAction = Field(sa_column=enum_column(LogAction, LogAction.UPDATED))
    detail: str = ""
    created_at: datetime = Field(default_factory=_utc_naive_now)


class AppointmentPublic(SQLModel):
    id: int
    owner_id: int
    client_name: str
    phone: str
    email: str | None = None
    service_id: int
    service_name: str | None = None
    slot_date: date
    slot_time: time
    price: Decimal
    paid: bool
    payment_method: PaymentMethod
    notes: str | None = None
    status: AppointmentStatus
    source: AppointmentSource
    created_at: datetime
    updated_at: datetime


class AppointmentLogPublic(SQLModel):
    id: int
    appointment_id: int
    action: LogAction
    detail: str
    created_at: datetime
