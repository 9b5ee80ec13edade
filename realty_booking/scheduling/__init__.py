from realty_booking.scheduling.availability_admin import AvailabilityManager
from realty_booking.scheduling.booking_service import AppointmentBookingService
from realty_booking.scheduling.resolver import (
    ResolutionResult,
    overlaps,
    resolve_slots,
    validate_rule,
)

__all__ = [
    "AppointmentBookingService",
    "AvailabilityManager",
    "ResolutionResult",
    "overlaps",
    "resolve_slots",
    "validate_rule",
]
