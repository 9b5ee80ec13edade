"""Capability checks applied on write paths.

Page-level admin gating is only a convenience; these checks are the
authorization boundary.
"""

import logging
from typing import Optional

from realty_booking.auth.session_machine import SessionSnapshot
from realty_booking.errors import AuthenticationRequiredError, AuthorizationError
from realty_booking.schemas.profile_schema import Profile

logger = logging.getLogger(__name__)


def require_profile(session: SessionSnapshot) -> Profile:
    """Return the signed-in visitor's profile or raise AuthenticationRequiredError."""
    if not session.is_authenticated or session.profile is None:
        raise AuthenticationRequiredError("Please log in or sign up to continue.")
    return session.profile


def require_admin(actor: Optional[Profile]) -> Profile:
    """Return ``actor`` if it holds the admin capability."""
    if actor is None:
        raise AuthenticationRequiredError("Please log in to continue.")
    if not actor.is_admin:
        logger.warning("Admin action refused for profile %s", actor.id)
        raise AuthorizationError("You do not have permission to perform this action.")
    return actor
