"""
In-memory booking store.

In production this is the hosted database's ``bookings`` table, where an
exclusion constraint rejects overlapping rows for the same owner. The
same guarantee is enforced here on insert.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from realty_booking.errors import ConcurrentBookingConflictError
from realty_booking.scheduling.resolver import overlaps
from realty_booking.schemas.availability_schema import Booking, BookingRequest, BookingStatus
from realty_booking.utils import ensure_aware

logger = logging.getLogger(__name__)


def _end_of(booking: Booking) -> datetime:
    return booking.start + timedelta(minutes=booking.duration_minutes)


class InMemoryBookingStore:
    """Booking rows keyed by id."""

    def __init__(self, bookings: Optional[Iterable[Booking]] = None) -> None:
        self._bookings: dict[str, Booking] = {}
        for booking in bookings or ():
            stored = booking if booking.id else booking.model_copy(update={"id": self._new_id()})
            self._bookings[stored.id] = stored

    @staticmethod
    def _new_id() -> str:
        return f"BK-{uuid.uuid4().hex[:6].upper()}"

    def list_bookings(
        self,
        range_start: datetime,
        range_end: datetime,
        owner_id: Optional[str] = None,
        include_cancelled: bool = False,
    ) -> list[Booking]:
        """Return bookings whose start falls in ``[range_start, range_end)``."""
        range_start = ensure_aware(range_start)
        range_end = ensure_aware(range_end)
        rows = [
            booking.model_copy()
            for booking in self._bookings.values()
            if range_start <= booking.start < range_end
            and (owner_id is None or booking.owner_id == owner_id)
            and (include_cancelled or booking.status != BookingStatus.CANCELLED)
        ]
        return sorted(rows, key=lambda b: b.start)

    def insert_booking(self, request: BookingRequest) -> Booking:
        """Persist a booking, rejecting any overlap with the owner's active bookings."""
        new_end = request.start + timedelta(minutes=request.duration_minutes)
        for existing in self._bookings.values():
            if existing.owner_id != request.owner_id or existing.status == BookingStatus.CANCELLED:
                continue
            if overlaps(request.start, new_end, existing.start, _end_of(existing)):
                logger.warning(
                    "Booking rejected: %s overlaps %s for owner %s",
                    request.start.isoformat(), existing.id, request.owner_id,
                )
                raise ConcurrentBookingConflictError(
                    f"The {request.start.isoformat()} slot is no longer available."
                )

        booking = Booking(
            id=self._new_id(),
            created_at=datetime.now(timezone.utc),
            **request.model_dump(),
        )
        self._bookings[booking.id] = booking
        logger.info(
            "Booking created: %s for owner %s at %s (%s)",
            booking.id, booking.owner_id, booking.start.isoformat(), booking.status.value,
        )
        return booking.model_copy()

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        booking = self._bookings.get(booking_id)
        return booking.model_copy() if booking is not None else None

    def cancel_booking(self, booking_id: str) -> Optional[Booking]:
        booking = self._bookings.get(booking_id)
        if booking is None:
            return None
        booking.status = BookingStatus.CANCELLED
        logger.info("Booking cancelled: %s", booking_id)
        return booking.model_copy()

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        self._bookings.clear()
