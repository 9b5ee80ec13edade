"""Shared test fixtures and helpers."""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from realty_booking.auth.session_machine import SessionSnapshot, SessionState
from realty_booking.scheduling.booking_service import AppointmentBookingService
from realty_booking.schemas.availability_schema import AvailabilityRule, Booking, BookingStatus
from realty_booking.schemas.profile_schema import Profile
from realty_booking.tools.auth_backend import InMemoryAuthBackend
from realty_booking.tools.booking_store import InMemoryBookingStore
from realty_booking.tools.rule_store import InMemoryRuleStore

NEW_YORK = ZoneInfo("America/New_York")

# Monday, and the Sunday before it
MONDAY = date(2026, 10, 19)
SUNDAY = date(2026, 10, 18)


def make_rule(
    rule_id: str = "RULE-1",
    owner_id: str = "owner-a",
    weekday: int = 1,
    start: str = "09:00",
    end: str = "11:00",
    duration: int = 60,
    buffer: int = 0,
    price: str = "50.00",
    currency: str = "USD",
    is_active: bool = True,
) -> AvailabilityRule:
    """Helper to create an AvailabilityRule with sensible defaults."""
    return AvailabilityRule(
        id=rule_id,
        owner_id=owner_id,
        weekday=weekday,
        start_time=start,
        end_time=end,
        slot_duration_minutes=duration,
        buffer_minutes=buffer,
        price=Decimal(price),
        currency=currency,
        is_active=is_active,
    )


def at(day: date, hhmm: str, tz=timezone.utc) -> datetime:
    """Aware datetime for ``hhmm`` on ``day`` in ``tz``."""
    hour, minute = (int(part) for part in hhmm.split(":"))
    return datetime.combine(day, time(hour, minute)).replace(tzinfo=tz)


def make_booking(
    start: datetime,
    duration: int = 60,
    owner_id: str = "owner-a",
    status: BookingStatus = BookingStatus.CONFIRMED,
    booking_id: Optional[str] = None,
) -> Booking:
    """Helper to create a Booking."""
    return Booking(
        id=booking_id,
        owner_id=owner_id,
        start=start,
        duration_minutes=duration,
        status=status,
    )


def authenticated(user_id: str = "visitor-1", is_admin: bool = False) -> SessionSnapshot:
    """Snapshot of a signed-in visitor with a profile."""
    return SessionSnapshot(
        state=SessionState.AUTHENTICATED,
        user_id=user_id,
        profile=Profile(id=user_id, full_name="Casey Visitor", is_admin=is_admin),
    )


class FixedClock:
    """Injectable clock returning a settable instant."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def admin() -> Profile:
    return Profile(id="owner-a", full_name="Jordan Avery", is_admin=True)


@pytest.fixture
def rule_store():
    return InMemoryRuleStore([make_rule()])


@pytest.fixture
def booking_store():
    return InMemoryBookingStore()


@pytest.fixture
def clock():
    # 08:00 on Monday in New York
    return FixedClock(at(MONDAY, "08:00", NEW_YORK))


@pytest.fixture
def service(rule_store, booking_store, clock):
    return AppointmentBookingService(rule_store, booking_store, clock=clock, tz=NEW_YORK)


@pytest.fixture
def auth_backend():
    backend = InMemoryAuthBackend()
    backend.add_account("visitor@example.com", "secret-pass", full_name="Casey Visitor")
    backend.add_account("agent@example.com", "admin-pass", full_name="Jordan Avery", is_admin=True)
    return backend
