"""
In-memory auth backend.

In production, accounts and sessions are handled by the hosted auth
service and profiles by a database trigger. This backend keeps the same
async surface so the session controller can be exercised offline.
"""

import asyncio
import hashlib
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from realty_booking.errors import AuthBackendError
from realty_booking.schemas.profile_schema import Profile, SignUpResult

logger = logging.getLogger(__name__)


def _hash_password(email: str, password: str) -> str:
    return hashlib.sha256(f"{email.lower()}:{password}".encode("utf-8")).hexdigest()


@dataclass
class Account:
    user_id: str
    email: str
    password_hash: str
    confirmed: bool = False


class InMemoryAuthBackend:
    """Accounts, profiles and a single current session."""

    def __init__(
        self,
        restore_delay_sec: float = 0.0,
        create_profiles_on_signup: bool = True,
    ) -> None:
        self.restore_delay_sec = restore_delay_sec
        self.create_profiles_on_signup = create_profiles_on_signup
        self._accounts: dict[str, Account] = {}
        self._profiles: dict[str, Profile] = {}
        self._session_user_id: Optional[str] = None
        self.sign_out_calls = 0

    def add_account(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        is_admin: bool = False,
        confirmed: bool = True,
    ) -> str:
        """Seed a confirmed account with a profile. Returns the user id."""
        user_id = str(uuid.uuid4())
        key = email.lower()
        self._accounts[key] = Account(user_id, key, _hash_password(key, password), confirmed)
        self._profiles[user_id] = Profile(
            id=user_id, email=key, full_name=full_name, is_admin=is_admin
        )
        return user_id

    def confirm_email(self, email: str) -> None:
        account = self._accounts.get(email.lower())
        if account is None:
            raise AuthBackendError(f"No account for {email}")
        account.confirmed = True

    def restore_as(self, user_id: Optional[str]) -> None:
        """Pretend a persisted session for ``user_id`` exists on this device."""
        self._session_user_id = user_id

    async def get_session(self) -> Optional[str]:
        if self.restore_delay_sec:
            await asyncio.sleep(self.restore_delay_sec)
        return self._session_user_id

    async def fetch_profile(self, user_id: str) -> Optional[Profile]:
        profile = self._profiles.get(user_id)
        return profile.model_copy() if profile is not None else None

    async def sign_in(self, email: str, password: str) -> str:
        account = self._accounts.get(email.lower())
        if account is None or account.password_hash != _hash_password(email, password):
            raise AuthBackendError("Invalid login credentials")
        if not account.confirmed:
            raise AuthBackendError("Email not confirmed")
        self._session_user_id = account.user_id
        return account.user_id

    async def sign_up(self, email: str, password: str, full_name: str) -> SignUpResult:
        key = email.lower()
        if key in self._accounts:
            return SignUpResult(user_id=None, already_exists=True)
        user_id = str(uuid.uuid4())
        self._accounts[key] = Account(user_id, key, _hash_password(key, password))
        if self.create_profiles_on_signup:
            self._profiles[user_id] = Profile(id=user_id, email=key, full_name=full_name)
        logger.info("Account created for %s, awaiting email confirmation", key)
        return SignUpResult(user_id=user_id)

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        self._session_user_id = None
