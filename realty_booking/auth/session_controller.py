"""
Session controller: talks to the auth backend and feeds the state machine.

All state changes go through one ordered event queue. Each queued event is
stamped with the sign-out generation current when its operation started;
``drain`` drops events from an older generation, so a sign-in whose
profile fetch is still in flight when the visitor signs out cannot
resurrect the session.
"""

import asyncio
import uuid
from typing import Optional, Protocol

from realty_booking.auth.session_machine import (
    EventPayload,
    SessionEvent,
    SessionSnapshot,
    SessionStateMachine,
)
from realty_booking.config import settings
from realty_booking.errors import AuthBackendError
from realty_booking.logging_context import bind_session_id, get_session_logger
from realty_booking.schemas.profile_schema import Profile, SignUpResult

logger = get_session_logger(__name__)


class AuthBackend(Protocol):
    async def get_session(self) -> Optional[str]: ...

    async def fetch_profile(self, user_id: str) -> Optional[Profile]: ...

    async def sign_in(self, email: str, password: str) -> str: ...

    async def sign_up(self, email: str, password: str, full_name: str) -> SignUpResult: ...

    async def sign_out(self) -> None: ...


class SessionController:
    """Owns the session state machine and its single event channel."""

    def __init__(
        self,
        backend: AuthBackend,
        machine: Optional[SessionStateMachine] = None,
        restore_timeout_sec: Optional[float] = None,
        profile_fetch_delay_sec: Optional[float] = None,
    ) -> None:
        self.backend = backend
        self.machine = machine or SessionStateMachine()
        self.restore_timeout_sec = (
            restore_timeout_sec
            if restore_timeout_sec is not None
            else settings.auth.session_restore_timeout_sec
        )
        self.profile_fetch_delay_sec = (
            profile_fetch_delay_sec
            if profile_fetch_delay_sec is not None
            else settings.auth.profile_fetch_delay_sec
        )
        self.session_id = f"SESS-{uuid.uuid4().hex[:8]}"
        self._generation = 0
        self._events: asyncio.Queue[tuple[int, SessionEvent, EventPayload]] = asyncio.Queue()

    @property
    def snapshot(self) -> SessionSnapshot:
        return self.machine.snapshot

    @property
    def generation(self) -> int:
        """Number of sign-outs seen; events from earlier generations are stale."""
        return self._generation

    async def publish(
        self,
        event: SessionEvent,
        payload: Optional[EventPayload] = None,
        generation: Optional[int] = None,
    ) -> None:
        """Enqueue an event; it takes effect on the next ``drain``."""
        stamp = self._generation if generation is None else generation
        await self._events.put((stamp, event, payload or EventPayload()))

    async def drain(self) -> SessionSnapshot:
        """Apply every queued event in arrival order, skipping stale ones."""
        while not self._events.empty():
            stamp, event, payload = self._events.get_nowait()
            try:
                if stamp < self._generation:
                    logger.info(
                        "Dropped stale %s event (generation %d, current %d)",
                        event.value, stamp, self._generation,
                    )
                    continue
                self.machine.dispatch(event, payload)
            finally:
                self._events.task_done()
        return self.machine.snapshot

    async def bootstrap(self) -> SessionSnapshot:
        """Restore a persisted session, or fall back to ERROR on failure."""
        bind_session_id(self.session_id)
        generation = self._generation
        try:
            user_id = await asyncio.wait_for(
                self.backend.get_session(), timeout=self.restore_timeout_sec
            )
        except asyncio.TimeoutError:
            logger.error(
                "Session restore timed out after %.1fs", self.restore_timeout_sec
            )
            return await self._fail_restore(
                "Session restoration timed out. Please sign in again.", generation
            )
        except Exception as exc:
            # Any backend failure must leave INITIALIZING, or the site stays loading
            logger.error("Session restore failed: %s", exc)
            return await self._fail_restore("Failed to initialize session.", generation)

        profile = await self._load_profile(user_id) if user_id else None
        await self.publish(
            SessionEvent.SESSION_RESTORED,
            EventPayload(user_id=user_id, profile=profile),
            generation=generation,
        )
        snapshot = await self.drain()
        logger.info("Session restored: %s", snapshot.state.value)
        return snapshot

    async def sign_in(self, email: str, password: str) -> SessionSnapshot:
        """Sign in; backend rejections propagate as AuthBackendError.

        If the visitor signs out before the sign-in completes, the sign-in
        is discarded and the returned snapshot is anonymous.
        """
        bind_session_id(self.session_id)
        generation = self._generation
        user_id = await self.backend.sign_in(email, password)
        profile = await self._load_profile(user_id, wait_if_missing=True)
        if generation != self._generation:
            logger.info("Sign-in for %s superseded by a sign-out", user_id)
            # The backend session may have been created after the sign-out ran
            await self.backend.sign_out()
            return await self.drain()
        await self.publish(
            SessionEvent.SIGNED_IN,
            EventPayload(user_id=user_id, profile=profile),
            generation=generation,
        )
        snapshot = await self.drain()
        logger.info("Signed in as %s", user_id)
        return snapshot

    async def sign_up(self, email: str, password: str, full_name: str) -> SignUpResult:
        """Register an account; the session stays anonymous until email confirmation."""
        bind_session_id(self.session_id)
        generation = self._generation
        result = await self.backend.sign_up(email, password, full_name)
        if result.already_exists:
            logger.info("Sign up skipped, account already exists for %s", email)
            return result
        await self.publish(
            SessionEvent.SIGN_UP_REQUESTED, EventPayload(email=email), generation=generation
        )
        await self.drain()
        return result

    async def sign_out(self) -> SessionSnapshot:
        bind_session_id(self.session_id)
        self._generation += 1
        await self.backend.sign_out()
        await self.publish(SessionEvent.SIGNED_OUT)
        snapshot = await self.drain()
        logger.info("Signed out")
        return snapshot

    async def _fail_restore(self, message: str, generation: int) -> SessionSnapshot:
        await self._clear_corrupted_session()
        await self.publish(
            SessionEvent.RESTORE_FAILED, EventPayload(error=message), generation=generation
        )
        return await self.drain()

    async def _load_profile(self, user_id: str, wait_if_missing: bool = False) -> Optional[Profile]:
        """Fetch the profile; a missing row may still be pending creation."""
        try:
            profile = await self.backend.fetch_profile(user_id)
            if profile is None and wait_if_missing and self.profile_fetch_delay_sec:
                await asyncio.sleep(self.profile_fetch_delay_sec)
                profile = await self.backend.fetch_profile(user_id)
        except (AuthBackendError, OSError) as exc:
            logger.error("Error fetching profile for %s: %s", user_id, exc)
            return None
        if profile is None:
            logger.warning("Profile not found for %s, might be pending creation", user_id)
        return profile

    async def _clear_corrupted_session(self) -> None:
        try:
            await self.backend.sign_out()
        except (AuthBackendError, OSError) as exc:
            logger.warning("Failed to clear session after restore failure: %s", exc)
