"""Availability rule, booking, and bookable slot data models."""

from datetime import datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from realty_booking.config import settings
from realty_booking.utils import ensure_aware


class BookingStatus(str, Enum):
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class AvailabilityRule(BaseModel):
    """Recurring weekly availability window defined by an administrator.

    Range and duration checks happen in the resolver, which skips a
    malformed row with a diagnostic.
    """
    id: str
    owner_id: str
    weekday: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    slot_duration_minutes: int
    buffer_minutes: int = 0
    price: Decimal = Decimal("0")
    currency: str = settings.booking.default_currency
    is_active: bool = True


class RuleDraft(BaseModel):
    """Admin input for a new availability rule."""
    weekday: int = Field(default=1, ge=0, le=6)
    start_time: time = time(9, 0)
    end_time: time = time(17, 0)
    slot_duration_minutes: int = 60
    buffer_minutes: int = 0
    price: Decimal = Decimal("50.00")
    currency: str = settings.booking.default_currency
    is_active: bool = True


class Booking(BaseModel):
    """Persisted reservation occupying [start, start + duration)."""
    id: Optional[str] = None
    owner_id: str
    rule_id: Optional[str] = None
    customer_id: Optional[str] = None
    start: datetime
    duration_minutes: int = Field(gt=0)
    price_at_booking: Optional[Decimal] = None
    currency_at_booking: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING_PAYMENT
    created_at: Optional[datetime] = None

    @field_validator("start")
    @classmethod
    def _start_is_aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class BookingRequest(BaseModel):
    """Insert payload sent to the booking store."""
    owner_id: str
    rule_id: str
    customer_id: str
    start: datetime
    duration_minutes: int = Field(gt=0)
    price_at_booking: Decimal
    currency_at_booking: str
    status: BookingStatus = BookingStatus.PENDING_PAYMENT

    @field_validator("start")
    @classmethod
    def _start_is_aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)


class BookableSlot(BaseModel):
    """A concrete, offerable window on one date. Never persisted."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime
    source_rule_id: str
    owner_id: str
    price: Decimal
    currency: str
    duration_minutes: int


class RuleDiagnostic(BaseModel):
    """Why a rule was skipped during resolution."""
    model_config = ConfigDict(frozen=True)

    rule_id: str
    reason: str
