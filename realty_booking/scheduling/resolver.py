"""
Availability resolver: expands weekly rules into bookable slots for one date.

Rule times are wall-clock times in the business zone. Each rule's window
is anchored on the target date in that zone, then walked in absolute time
so comparisons against stored bookings (kept in UTC) are exact, including
on daylight-saving transition days.

Usage:
    result = resolve_slots(date(2026, 10, 19), rules, bookings)
    for slot in result.slots:
        print(slot.start, slot.end)
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable, Optional

from realty_booking.config import settings
from realty_booking.schemas.availability_schema import (
    AvailabilityRule,
    BookableSlot,
    Booking,
    BookingStatus,
    RuleDiagnostic,
)
from realty_booking.utils import sunday_based_weekday

logger = logging.getLogger(__name__)

Interval = tuple[datetime, datetime]


@dataclass(frozen=True)
class ResolutionResult:
    """Ordered bookable slots plus the rules that were skipped as invalid."""

    slots: tuple[BookableSlot, ...] = ()
    skipped: tuple[RuleDiagnostic, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.slots


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap: touching endpoints do not overlap."""
    return a_start < b_end and a_end > b_start


def validate_rule(rule: AvailabilityRule) -> Optional[str]:
    """Return why ``rule`` cannot produce slots, or None if it is well formed."""
    if rule.start_time >= rule.end_time:
        return (
            f"start time {rule.start_time:%H:%M} is not before "
            f"end time {rule.end_time:%H:%M}"
        )
    if rule.slot_duration_minutes <= 0:
        return f"slot duration must be positive, got {rule.slot_duration_minutes}"
    if rule.buffer_minutes < 0:
        return f"buffer must not be negative, got {rule.buffer_minutes}"
    return None


def _occupied_by_owner(bookings: Iterable[Booking]) -> dict[str, list[Interval]]:
    occupied: dict[str, list[Interval]] = defaultdict(list)
    for booking in bookings:
        if booking.status == BookingStatus.CANCELLED:
            continue
        end = booking.start + timedelta(minutes=booking.duration_minutes)
        occupied[booking.owner_id].append((booking.start, end))
    return occupied


def _anchor_utc(target_date: date, rule_time: time, tz: tzinfo) -> datetime:
    """Wall-clock ``rule_time`` on ``target_date`` in ``tz``, as a UTC instant."""
    return datetime.combine(target_date, rule_time).replace(tzinfo=tz).astimezone(timezone.utc)


def _expand_rule(
    rule: AvailabilityRule,
    target_date: date,
    tz: tzinfo,
    occupied: list[Interval],
) -> list[BookableSlot]:
    duration = timedelta(minutes=rule.slot_duration_minutes)
    step = duration + timedelta(minutes=rule.buffer_minutes)
    # Walk in UTC: aware arithmetic within a single zone ignores DST shifts
    cursor = _anchor_utc(target_date, rule.start_time, tz)
    window_end = _anchor_utc(target_date, rule.end_time, tz)

    slots: list[BookableSlot] = []
    while cursor + duration <= window_end:
        slot_end = cursor + duration
        if not any(overlaps(cursor, slot_end, b_start, b_end) for b_start, b_end in occupied):
            slots.append(
                BookableSlot(
                    start=cursor.astimezone(tz),
                    end=slot_end.astimezone(tz),
                    source_rule_id=rule.id,
                    owner_id=rule.owner_id,
                    price=rule.price,
                    currency=rule.currency,
                    duration_minutes=rule.slot_duration_minutes,
                )
            )
        cursor += step
    return slots


def resolve_slots(
    target_date: date,
    rules: Iterable[AvailabilityRule],
    bookings: Iterable[Booking],
    tz: Optional[tzinfo] = None,
) -> ResolutionResult:
    """
    Produce the ordered bookable slots for ``target_date``.

    Args:
        target_date: Calendar day in the business zone.
        rules: Rule snapshot. Inactive rules and rules for other weekdays
            are ignored here, so callers may pass the full set.
        bookings: Bookings starting on ``target_date``. A booking only
            blocks slots of rules with the same owner.
        tz: Zone the rule times are expressed in. Defaults to the
            configured business zone.

    Returns:
        A ResolutionResult whose slots are sorted by start time, stable in
        rule order for equal starts. Malformed rules are skipped and listed
        in ``skipped``.
    """
    tz = tz or settings.site.tz
    weekday = sunday_based_weekday(target_date)
    occupied = _occupied_by_owner(bookings)

    slots: list[BookableSlot] = []
    skipped: list[RuleDiagnostic] = []
    for rule in rules:
        if not rule.is_active or rule.weekday != weekday:
            continue
        reason = validate_rule(rule)
        if reason is not None:
            logger.warning("Skipping availability rule %s: %s", rule.id, reason)
            skipped.append(RuleDiagnostic(rule_id=rule.id, reason=reason))
            continue
        slots.extend(_expand_rule(rule, target_date, tz, occupied.get(rule.owner_id, [])))

    slots.sort(key=lambda slot: slot.start.astimezone(timezone.utc))
    logger.debug(
        "Resolved %d slot(s) for %s (%d rule(s) skipped)",
        len(slots), target_date.isoformat(), len(skipped),
    )
    return ResolutionResult(slots=tuple(slots), skipped=tuple(skipped))
