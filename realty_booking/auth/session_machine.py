"""
Finite state machine for the visitor's authentication session.

Four states and explicit transitions driven by discrete events. The
loading flag, the signed-in user and the admin capability are all derived
from the single current state instead of separate booleans.

Usage:
    sm = SessionStateMachine()
    sm.dispatch(SessionEvent.SESSION_RESTORED)
    assert sm.current_state == SessionState.ANONYMOUS
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from realty_booking.logging_context import get_session_logger
from realty_booking.schemas.profile_schema import Profile

logger = get_session_logger(__name__)


class SessionState(str, Enum):
    """All possible states of a visitor session."""
    INITIALIZING = "initializing"
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    ERROR = "error"


class SessionEvent(str, Enum):
    """Events that cause state transitions."""
    SESSION_RESTORED = "session_restored"
    RESTORE_FAILED = "restore_failed"
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    SIGN_UP_REQUESTED = "sign_up_requested"


@dataclass(frozen=True)
class EventPayload:
    """Data delivered with an event."""
    user_id: Optional[str] = None
    profile: Optional[Profile] = None
    email: Optional[str] = None
    error: Optional[str] = None


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: SessionState
    to_state: SessionState
    event: SessionEvent
    guard: Optional[Callable[[EventPayload], bool]] = None


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: SessionState
    entered_at: datetime
    event: Optional[SessionEvent] = None


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of the session for pages and request handlers."""
    state: SessionState
    user_id: Optional[str] = None
    profile: Optional[Profile] = None
    pending_confirmation_email: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_loading(self) -> bool:
        return self.state == SessionState.INITIALIZING

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED

    @property
    def is_admin(self) -> bool:
        return self.is_authenticated and self.profile is not None and self.profile.is_admin

    @property
    def landing_path(self) -> str:
        """Where to send the visitor after signing in or out."""
        if not self.is_authenticated:
            return "/"
        return "/admin-dashboard" if self.is_admin else "/dashboard"


class InvalidTransitionError(Exception):
    """Raised when an event is not valid from the current state."""


def _has_user(payload: EventPayload) -> bool:
    return payload.user_id is not None


def _no_user(payload: EventPayload) -> bool:
    return payload.user_id is None


class SessionStateMachine:
    """
    Deterministic state machine for session lifecycle.

    Every transition must be explicitly defined. An event with no
    matching transition from the current state is rejected.
    """

    TRANSITIONS: list[Transition] = [
        # --- Bootstrap ---
        Transition(SessionState.INITIALIZING, SessionState.AUTHENTICATED,
                   SessionEvent.SESSION_RESTORED, guard=_has_user),
        Transition(SessionState.INITIALIZING, SessionState.ANONYMOUS,
                   SessionEvent.SESSION_RESTORED, guard=_no_user),
        Transition(SessionState.INITIALIZING, SessionState.ERROR,
                   SessionEvent.RESTORE_FAILED),

        # --- Anonymous ---
        Transition(SessionState.ANONYMOUS, SessionState.AUTHENTICATED,
                   SessionEvent.SIGNED_IN, guard=_has_user),
        Transition(SessionState.ANONYMOUS, SessionState.ANONYMOUS,
                   SessionEvent.SIGN_UP_REQUESTED),
        Transition(SessionState.ANONYMOUS, SessionState.ANONYMOUS,
                   SessionEvent.SIGNED_OUT),

        # --- Authenticated ---
        Transition(SessionState.AUTHENTICATED, SessionState.AUTHENTICATED,
                   SessionEvent.SIGNED_IN, guard=_has_user),
        Transition(SessionState.AUTHENTICATED, SessionState.ANONYMOUS,
                   SessionEvent.SIGNED_OUT),

        # --- Error recovery ---
        Transition(SessionState.ERROR, SessionState.AUTHENTICATED,
                   SessionEvent.SIGNED_IN, guard=_has_user),
        Transition(SessionState.ERROR, SessionState.ANONYMOUS,
                   SessionEvent.SIGNED_OUT),
        Transition(SessionState.ERROR, SessionState.ANONYMOUS,
                   SessionEvent.SIGN_UP_REQUESTED),
    ]

    def __init__(self) -> None:
        self._snapshot = SessionSnapshot(state=SessionState.INITIALIZING)
        self._history: list[StateEntry] = [
            StateEntry(state=SessionState.INITIALIZING, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> SessionState:
        return self._snapshot.state

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    def dispatch(
        self, event: SessionEvent, payload: Optional[EventPayload] = None
    ) -> SessionState:
        """
        Apply an event to the session.

        Args:
            event: The event to apply.
            payload: User, profile or error details carried by the event.

        Returns:
            The new session state.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        payload = payload or EventPayload()
        for t in self.TRANSITIONS:
            if t.from_state != self._snapshot.state or t.event != event:
                continue
            if t.guard is not None and not t.guard(payload):
                continue

            old_state = self._snapshot.state
            self._snapshot = self._next_snapshot(t.to_state, event, payload)
            self._history.append(StateEntry(
                state=t.to_state,
                entered_at=datetime.now(timezone.utc),
                event=event,
            ))
            logger.debug(
                "Session transition: %s -> %s (event: %s)",
                old_state.value, t.to_state.value, event.value,
            )
            return t.to_state

        valid = [e.value for e in self.get_valid_events()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._snapshot.state.value}' "
            f"with event '{event.value}'. Valid events: {valid}"
        )

    def _next_snapshot(
        self, state: SessionState, event: SessionEvent, payload: EventPayload
    ) -> SessionSnapshot:
        if state == SessionState.AUTHENTICATED:
            return SessionSnapshot(state=state, user_id=payload.user_id, profile=payload.profile)
        if state == SessionState.ERROR:
            return SessionSnapshot(state=state, error=payload.error or "Session restore failed")
        if event == SessionEvent.SIGN_UP_REQUESTED:
            return SessionSnapshot(state=state, pending_confirmation_email=payload.email)
        return SessionSnapshot(state=state)

    def get_valid_events(self) -> list[SessionEvent]:
        """Return all events valid from the current state, without duplicates."""
        events: list[SessionEvent] = []
        for t in self.TRANSITIONS:
            if t.from_state == self._snapshot.state and t.event not in events:
                events.append(t.event)
        return events

    def get_history(self) -> list[StateEntry]:
        """Return the full state transition history."""
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]
