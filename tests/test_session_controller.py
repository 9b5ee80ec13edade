"""Tests for the session controller and its ordered event channel."""

import asyncio
import logging

import pytest

from realty_booking.auth.session_controller import SessionController
from realty_booking.auth.session_machine import EventPayload, SessionEvent, SessionState
from realty_booking.errors import AuthBackendError
from realty_booking.logging_context import bind_session_id, current_session_id
from realty_booking.schemas.profile_schema import Profile
from realty_booking.tools.auth_backend import InMemoryAuthBackend
from tests.conftest import MONDAY


class _BrokenBackend(InMemoryAuthBackend):
    async def get_session(self):
        raise ConnectionError("network down")


class _ProfileErrorBackend(InMemoryAuthBackend):
    async def fetch_profile(self, user_id):
        raise AuthBackendError("profiles table unavailable")


def _controller(backend, **kwargs) -> SessionController:
    kwargs.setdefault("profile_fetch_delay_sec", 0)
    return SessionController(backend, **kwargs)


class TestBootstrap:
    @pytest.mark.asyncio
    async def test_no_persisted_session_is_anonymous(self, auth_backend):
        snapshot = await _controller(auth_backend).bootstrap()
        assert snapshot.state == SessionState.ANONYMOUS

    @pytest.mark.asyncio
    async def test_persisted_session_restores_profile(self, auth_backend):
        user_id = await auth_backend.sign_in("agent@example.com", "admin-pass")
        snapshot = await _controller(auth_backend).bootstrap()
        assert snapshot.state == SessionState.AUTHENTICATED
        assert snapshot.user_id == user_id
        assert snapshot.is_admin

    @pytest.mark.asyncio
    async def test_timeout_goes_to_error_and_clears_session(self, auth_backend):
        auth_backend.restore_delay_sec = 0.5
        auth_backend.restore_as("stale-user")
        controller = _controller(auth_backend, restore_timeout_sec=0.01)

        snapshot = await controller.bootstrap()

        assert snapshot.state == SessionState.ERROR
        assert "timed out" in snapshot.error
        assert auth_backend.sign_out_calls == 1
        auth_backend.restore_delay_sec = 0
        assert await auth_backend.get_session() is None

    @pytest.mark.asyncio
    async def test_network_failure_goes_to_error(self):
        backend = _BrokenBackend()
        snapshot = await _controller(backend).bootstrap()
        assert snapshot.state == SessionState.ERROR
        assert snapshot.error == "Failed to initialize session."
        assert backend.sign_out_calls == 1

    @pytest.mark.asyncio
    async def test_profile_error_still_authenticates(self):
        backend = _ProfileErrorBackend()
        backend.restore_as("some-user")
        snapshot = await _controller(backend).bootstrap()
        assert snapshot.state == SessionState.AUTHENTICATED
        assert snapshot.profile is None


class TestSignIn:
    @pytest.mark.asyncio
    async def test_sign_in_authenticates(self, auth_backend):
        controller = _controller(auth_backend)
        await controller.bootstrap()
        snapshot = await controller.sign_in("visitor@example.com", "secret-pass")
        assert snapshot.state == SessionState.AUTHENTICATED
        assert snapshot.profile.full_name == "Casey Visitor"
        assert snapshot.landing_path == "/dashboard"

    @pytest.mark.asyncio
    async def test_email_is_case_insensitive(self, auth_backend):
        controller = _controller(auth_backend)
        await controller.bootstrap()
        snapshot = await controller.sign_in("Visitor@Example.com", "secret-pass")
        assert snapshot.is_authenticated

    @pytest.mark.asyncio
    async def test_bad_password_propagates_and_keeps_state(self, auth_backend):
        controller = _controller(auth_backend)
        await controller.bootstrap()
        with pytest.raises(AuthBackendError, match="Invalid login"):
            await controller.sign_in("visitor@example.com", "wrong")
        assert controller.snapshot.state == SessionState.ANONYMOUS

    @pytest.mark.asyncio
    async def test_sign_in_recovers_from_error(self, auth_backend):
        auth_backend.restore_delay_sec = 0.5
        controller = _controller(auth_backend, restore_timeout_sec=0.01)
        await controller.bootstrap()
        auth_backend.restore_delay_sec = 0
        snapshot = await controller.sign_in("agent@example.com", "admin-pass")
        assert snapshot.landing_path == "/admin-dashboard"


class TestSignUpAndOut:
    @pytest.mark.asyncio
    async def test_sign_up_requires_confirmation(self, auth_backend):
        controller = _controller(auth_backend)
        await controller.bootstrap()
        result = await controller.sign_up("new@example.com", "pw-12345", "New Buyer")

        assert result.user_id is not None
        assert not result.already_exists
        assert controller.snapshot.state == SessionState.ANONYMOUS
        assert controller.snapshot.pending_confirmation_email == "new@example.com"
        with pytest.raises(AuthBackendError, match="not confirmed"):
            await controller.sign_in("new@example.com", "pw-12345")

    @pytest.mark.asyncio
    async def test_confirmed_sign_up_can_sign_in(self, auth_backend):
        controller = _controller(auth_backend)
        await controller.bootstrap()
        await controller.sign_up("new@example.com", "pw-12345", "New Buyer")
        auth_backend.confirm_email("new@example.com")
        snapshot = await controller.sign_in("new@example.com", "pw-12345")
        assert snapshot.profile.full_name == "New Buyer"

    @pytest.mark.asyncio
    async def test_existing_account_sign_up(self, auth_backend):
        controller = _controller(auth_backend)
        await controller.bootstrap()
        result = await controller.sign_up("visitor@example.com", "x", "Someone")
        assert result.already_exists
        assert controller.snapshot.pending_confirmation_email is None

    @pytest.mark.asyncio
    async def test_profile_pending_creation(self):
        backend = InMemoryAuthBackend(create_profiles_on_signup=False)
        controller = _controller(backend)
        await controller.bootstrap()
        await controller.sign_up("late@example.com", "pw", "Late Profile")
        backend.confirm_email("late@example.com")
        snapshot = await controller.sign_in("late@example.com", "pw")
        assert snapshot.is_authenticated
        assert snapshot.profile is None

    @pytest.mark.asyncio
    async def test_sign_out(self, auth_backend):
        controller = _controller(auth_backend)
        await controller.bootstrap()
        await controller.sign_in("visitor@example.com", "secret-pass")
        snapshot = await controller.sign_out()
        assert snapshot.state == SessionState.ANONYMOUS
        assert snapshot.landing_path == "/"


class TestEventChannel:
    @pytest.mark.asyncio
    async def test_published_events_wait_for_drain(self, auth_backend):
        controller = _controller(auth_backend)
        await controller.publish(SessionEvent.SESSION_RESTORED)
        assert controller.snapshot.state == SessionState.INITIALIZING
        await controller.drain()
        assert controller.snapshot.state == SessionState.ANONYMOUS

    @pytest.mark.asyncio
    async def test_events_apply_in_arrival_order(self, auth_backend):
        controller = _controller(auth_backend)
        profile = Profile(id="visitor-1")
        await controller.publish(SessionEvent.SESSION_RESTORED)
        await controller.publish(
            SessionEvent.SIGNED_IN, EventPayload(user_id="visitor-1", profile=profile)
        )
        await controller.publish(SessionEvent.SIGNED_OUT)

        snapshot = await controller.drain()

        assert snapshot.state == SessionState.ANONYMOUS
        assert controller.machine.get_state_trace() == [
            "initializing", "anonymous", "authenticated", "anonymous",
        ]


class _SlowProfileBackend(InMemoryAuthBackend):
    async def fetch_profile(self, user_id):
        await asyncio.sleep(0.05)
        return await super().fetch_profile(user_id)


class _UnexpectedFailureBackend(InMemoryAuthBackend):
    async def get_session(self):
        raise RuntimeError("unexpected payload from auth service")


class TestSignOutRace:
    @pytest.mark.asyncio
    async def test_sign_out_during_profile_fetch_wins(self):
        backend = _SlowProfileBackend()
        backend.add_account("visitor@example.com", "secret-pass", full_name="Casey Visitor")
        controller = _controller(backend)
        await controller.bootstrap()

        pending = asyncio.create_task(controller.sign_in("visitor@example.com", "secret-pass"))
        await asyncio.sleep(0.01)
        await controller.sign_out()
        snapshot = await pending

        assert snapshot.state == SessionState.ANONYMOUS
        assert controller.snapshot.state == SessionState.ANONYMOUS
        assert await backend.get_session() is None
        assert "authenticated" not in controller.machine.get_state_trace()

    @pytest.mark.asyncio
    async def test_event_from_before_sign_out_is_dropped(self, auth_backend):
        controller = _controller(auth_backend)
        await controller.bootstrap()
        stale = controller.generation
        await controller.sign_out()

        await controller.publish(
            SessionEvent.SIGNED_IN,
            EventPayload(user_id="visitor-1", profile=Profile(id="visitor-1")),
            generation=stale,
        )
        snapshot = await controller.drain()

        assert snapshot.state == SessionState.ANONYMOUS
        assert controller.generation == stale + 1

    @pytest.mark.asyncio
    async def test_sign_in_after_sign_out_still_works(self, auth_backend):
        controller = _controller(auth_backend)
        await controller.bootstrap()
        await controller.sign_out()
        snapshot = await controller.sign_in("visitor@example.com", "secret-pass")
        assert snapshot.is_authenticated


class TestRestoreFailures:
    @pytest.mark.asyncio
    async def test_unexpected_backend_error_leaves_loading_state(self):
        backend = _UnexpectedFailureBackend()
        snapshot = await _controller(backend).bootstrap()
        assert snapshot.state == SessionState.ERROR
        assert not snapshot.is_loading
        assert backend.sign_out_calls == 1


class TestCorrelationId:
    @pytest.mark.asyncio
    async def test_controller_records_carry_session_id(self, auth_backend, caplog):
        controller = _controller(auth_backend)
        with caplog.at_level(logging.INFO):
            await controller.bootstrap()
            await controller.sign_in("visitor@example.com", "secret-pass")
            await controller.sign_out()

        records = [r for r in caplog.records if r.name == "realty_booking.auth.session_controller"]
        assert records
        assert {r.session_id for r in records} == {controller.session_id}

    @pytest.mark.asyncio
    async def test_each_entry_point_binds_the_id(self, auth_backend):
        controller = _controller(auth_backend)
        await controller.bootstrap()
        bind_session_id("SESS-elsewhere")
        await controller.sign_up("fresh@example.com", "pw-12345", "Fresh Buyer")
        assert current_session_id() == controller.session_id

    @pytest.mark.asyncio
    async def test_booking_logs_share_the_session_id(self, auth_backend, service, caplog):
        controller = _controller(auth_backend)
        await controller.bootstrap()
        snapshot = await controller.sign_in("visitor@example.com", "secret-pass")
        slot = service.available_slots(MONDAY).slots[0]
        with caplog.at_level(logging.INFO):
            service.request_booking(snapshot, slot)

        records = [
            r for r in caplog.records if r.name == "realty_booking.scheduling.booking_service"
        ]
        assert records
        assert all(r.session_id == controller.session_id for r in records)
