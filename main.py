"""
Console entry point for the appointment booking core.

Runs against seeded in-memory stores, so no backend credentials are needed.

Usage:
    python main.py dates
    python main.py slots --date 2026-10-19
    python main.py slots --date 2026-10-19 --owner admin-jordan
    python main.py demo
"""

import argparse
import asyncio
import logging
import sys
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional

from realty_booking.auth import SessionController
from realty_booking.config import settings
from realty_booking.errors import ConcurrentBookingConflictError, InputFetchError
from realty_booking.scheduling import AppointmentBookingService
from realty_booking.schemas.availability_schema import AvailabilityRule, Booking
from realty_booking.tools.auth_backend import InMemoryAuthBackend
from realty_booking.tools.booking_store import InMemoryBookingStore
from realty_booking.tools.rule_store import InMemoryRuleStore
from realty_booking.utils import WEEKDAY_NAMES, format_time_for_display, sunday_based_weekday

logger = logging.getLogger(__name__)

GREEN = "\033[92m"
YELLOW = "\033[93m"
DIM = "\033[2m"
RESET = "\033[0m"

DEMO_OWNER = "admin-jordan"


def _seed_rules() -> list[AvailabilityRule]:
    rules = [
        AvailabilityRule(
            id=f"RULE-WEEKDAY-{weekday}",
            owner_id=DEMO_OWNER,
            weekday=weekday,
            start_time=time(9, 0),
            end_time=time(17, 0),
            slot_duration_minutes=60,
            buffer_minutes=15,
            price=Decimal("50.00"),
        )
        for weekday in range(1, 6)
    ]
    rules.append(
        AvailabilityRule(
            id="RULE-SATURDAY",
            owner_id=DEMO_OWNER,
            weekday=6,
            start_time=time(10, 0),
            end_time=time(13, 0),
            slot_duration_minutes=30,
            price=Decimal("35.00"),
        )
    )
    return rules


def build_demo_service() -> AppointmentBookingService:
    """Booking service over seeded rules plus one existing booking tomorrow."""
    tz = settings.site.tz
    tomorrow = datetime.now(tz).date() + timedelta(days=1)
    first = datetime.combine(tomorrow, time(9, 0)).replace(tzinfo=tz)
    existing = Booking(
        id="BK-SEED01",
        owner_id=DEMO_OWNER,
        start=first.astimezone(timezone.utc),
        duration_minutes=60,
    )
    return AppointmentBookingService(
        InMemoryRuleStore(_seed_rules()), InMemoryBookingStore([existing]), tz=tz
    )


def _print_slots(service: AppointmentBookingService, target: date, owner: Optional[str]) -> int:
    try:
        result = service.available_slots(target, owner_id=owner)
    except (InputFetchError, ValueError) as exc:
        logger.error("%s", exc)
        return 1

    print(f"Available slots for {WEEKDAY_NAMES[sunday_based_weekday(target)]} {target.isoformat()}"
          f" ({settings.site.timezone}):")
    if result.is_empty:
        print(f"{DIM}  No available slots for this date. Please try another day.{RESET}")
    for slot in result.slots:
        print(f"{GREEN}  {format_time_for_display(slot.start)} - "
              f"{format_time_for_display(slot.end)}{RESET}  "
              f"{slot.duration_minutes} min  {slot.price} {slot.currency}  [{slot.owner_id}]")
    for diagnostic in result.skipped:
        print(f"{YELLOW}  skipped rule {diagnostic.rule_id}: {diagnostic.reason}{RESET}")
    return 0


async def _run_demo(service: AppointmentBookingService) -> int:
    backend = InMemoryAuthBackend()
    backend.add_account("visitor@example.com", "correct-horse", full_name="Casey Visitor")
    controller = SessionController(backend)

    snapshot = await controller.bootstrap()
    print(f"{DIM}  >> session: {snapshot.state.value}{RESET}")
    snapshot = await controller.sign_in("visitor@example.com", "correct-horse")
    print(f"{DIM}  >> session: {snapshot.state.value}, landing on {snapshot.landing_path}{RESET}")

    target = service.today() + timedelta(days=1)
    slots = service.available_slots(target).slots
    if not slots:
        print("No slots tomorrow; nothing to book.")
        return 0
    chosen = slots[0]
    booking = service.request_booking(snapshot, chosen)
    print(f"{GREEN}Booking {booking.id} noted for {format_time_for_display(chosen.start)} "
          f"({booking.status.value}){RESET}")

    try:
        service.request_booking(snapshot, chosen)
    except ConcurrentBookingConflictError as exc:
        print(f"{YELLOW}Second attempt rejected: {exc}{RESET}")
    return _print_slots(service, target, None)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Appointment availability console.")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("dates", help="List the dates open for booking.")
    slots = sub.add_parser("slots", help="Show bookable slots for one date.")
    slots.add_argument("--date", required=True, help="Date in YYYY-MM-DD format.")
    slots.add_argument("--owner", default=None, help="Only show one provider's slots.")
    sub.add_parser("demo", help="Sign in, book a slot and show the refreshed availability.")
    args = parser.parse_args(argv)

    service = build_demo_service()

    if args.command == "dates":
        for day in service.bookable_dates():
            print(f"  {day.isoformat()}  {WEEKDAY_NAMES[sunday_based_weekday(day)]}")
        return 0
    if args.command == "slots":
        try:
            target = date.fromisoformat(args.date)
        except ValueError:
            logger.error("Invalid date %r, expected YYYY-MM-DD", args.date)
            return 1
        return _print_slots(service, target, args.owner)
    return asyncio.run(_run_demo(service))


if __name__ == "__main__":
    sys.exit(main())
