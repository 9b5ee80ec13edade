from realty_booking.auth.capabilities import require_admin, require_profile
from realty_booking.auth.session_controller import SessionController
from realty_booking.auth.session_machine import (
    SessionEvent,
    SessionSnapshot,
    SessionState,
    SessionStateMachine,
)

__all__ = [
    "SessionController",
    "SessionEvent",
    "SessionSnapshot",
    "SessionState",
    "SessionStateMachine",
    "require_admin",
    "require_profile",
]
