"""
Appointment booking service.

Gathers a consistent snapshot of rules and bookings for one date, runs the
resolver, and writes booking requests. All instants handed to the stores
are UTC; the business zone is used only to find day boundaries and to
present slot times.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Optional, Protocol

from realty_booking.auth.capabilities import require_profile
from realty_booking.auth.session_machine import SessionSnapshot
from realty_booking.config import settings
from realty_booking.errors import (
    ConcurrentBookingConflictError,
    InputFetchError,
    RuleNotFoundError,
)
from realty_booking.logging_context import get_session_logger
from realty_booking.scheduling.resolver import ResolutionResult, resolve_slots
from realty_booking.schemas.availability_schema import (
    AvailabilityRule,
    BookableSlot,
    Booking,
    BookingRequest,
)
from realty_booking.utils import ensure_aware, next_n_days

logger = get_session_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RuleSource(Protocol):
    def list_rules(
        self, owner_id: Optional[str] = None, active_only: bool = True
    ) -> list[AvailabilityRule]: ...

    def get_rule(self, rule_id: str) -> Optional[AvailabilityRule]: ...


class BookingLedger(Protocol):
    def list_bookings(
        self, range_start: datetime, range_end: datetime, owner_id: Optional[str] = None
    ) -> list[Booking]: ...

    def insert_booking(self, request: BookingRequest) -> Booking: ...


class AppointmentBookingService:
    """Entry point used by the booking page and request handlers."""

    def __init__(
        self,
        rule_store: RuleSource,
        booking_store: BookingLedger,
        clock: Optional[Clock] = None,
        tz: Optional[tzinfo] = None,
        window_days: Optional[int] = None,
    ) -> None:
        self.rule_store = rule_store
        self.booking_store = booking_store
        self.clock = clock or utc_now
        self.tz = tz or settings.site.tz
        self.window_days = (
            window_days if window_days is not None else settings.booking.window_days
        )
        if self.window_days < 1:
            raise ValueError(f"window_days must be >= 1, got {self.window_days}")

    def today(self) -> date:
        return self.clock().astimezone(self.tz).date()

    def bookable_dates(self, days: Optional[int] = None) -> list[date]:
        """Today and the following days in the business zone."""
        return next_n_days(self.today(), self.window_days if days is None else days)

    def day_bounds(self, target_date: date) -> tuple[datetime, datetime]:
        """``[start, end)`` of ``target_date`` in the business zone, as UTC instants."""
        start = datetime.combine(target_date, time.min).replace(tzinfo=self.tz)
        end = datetime.combine(target_date + timedelta(days=1), time.min).replace(tzinfo=self.tz)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    def available_slots(
        self, target_date: date, owner_id: Optional[str] = None
    ) -> ResolutionResult:
        """
        Resolve bookable slots for ``target_date``.

        Slots that have already started are dropped. Fetch failures are
        raised as InputFetchError; nothing is resolved on partial data.

        Raises:
            ValueError: If ``target_date`` is outside the booking window.
            InputFetchError: If rules or bookings could not be fetched.
        """
        self._check_in_window(target_date)

        try:
            rules = self.rule_store.list_rules(owner_id=owner_id, active_only=True)
        except Exception as exc:
            logger.error("Could not load availability rules: %s", exc)
            raise InputFetchError("Could not load available appointment slots.") from exc

        day_start, day_end = self.day_bounds(target_date)
        try:
            bookings = self.booking_store.list_bookings(day_start, day_end, owner_id=owner_id)
        except Exception as exc:
            logger.error("Could not load bookings for %s: %s", target_date.isoformat(), exc)
            raise InputFetchError("Error checking existing bookings.") from exc

        result = resolve_slots(target_date, rules, bookings, tz=self.tz)
        now = self.clock()
        upcoming = tuple(slot for slot in result.slots if slot.start > now)
        return ResolutionResult(slots=upcoming, skipped=result.skipped)

    def request_booking(self, session: SessionSnapshot, slot: BookableSlot) -> Booking:
        """
        Record a pending-payment booking for ``slot`` on behalf of the visitor.

        Only the slot's rule and start are taken from the submission. The
        start must fall inside the booking window and on that rule's slot
        grid; price, currency and duration come from the stored rule.

        Raises:
            AuthenticationRequiredError: If the visitor is not signed in.
            RuleNotFoundError: If the slot's rule is gone or inactive.
            ValueError: If the slot has already started, lies outside the
                booking window, or is not a slot the rule offers.
            ConcurrentBookingConflictError: If the time was taken meanwhile.
        """
        profile = require_profile(session)
        rule = self.rule_store.get_rule(slot.source_rule_id)
        if rule is None or not rule.is_active or rule.owner_id != slot.owner_id:
            raise RuleNotFoundError(f"Availability rule {slot.source_rule_id} is not bookable.")
        start = ensure_aware(slot.start)
        if start <= self.clock():
            raise ValueError("This time slot has already started.")
        self._check_on_rule_grid(rule, start)

        request = BookingRequest(
            owner_id=rule.owner_id,
            rule_id=rule.id,
            customer_id=profile.id,
            start=start.astimezone(timezone.utc),
            duration_minutes=rule.slot_duration_minutes,
            price_at_booking=rule.price,
            currency_at_booking=rule.currency,
        )
        try:
            booking = self.booking_store.insert_booking(request)
        except ConcurrentBookingConflictError:
            logger.info(
                "Slot %s for owner %s was taken concurrently; caller should re-resolve",
                request.start.isoformat(), request.owner_id,
            )
            raise
        logger.info(
            "Booking %s noted for %s, awaiting payment", booking.id, profile.id
        )
        return booking

    def _check_in_window(self, target_date: date) -> None:
        window = self.bookable_dates()
        if target_date < window[0] or target_date > window[-1]:
            raise ValueError(
                f"{target_date.isoformat()} is outside the booking window "
                f"{window[0].isoformat()}..{window[-1].isoformat()}"
            )

    def _check_on_rule_grid(self, rule: AvailabilityRule, start: datetime) -> None:
        """Raise ValueError unless ``rule`` generates a slot starting at ``start``.

        Existing bookings are ignored here; a taken slot is reported by the
        booking store as a conflict.
        """
        local_date = start.astimezone(self.tz).date()
        self._check_in_window(local_date)
        grid = resolve_slots(local_date, [rule], [], tz=self.tz)
        if not any(candidate.start == start for candidate in grid.slots):
            logger.warning(
                "Rejected booking for rule %s at %s: not an offered slot",
                rule.id, start.isoformat(),
            )
            raise ValueError("This time slot is not offered by the selected availability.")
