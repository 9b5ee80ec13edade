"""
Centralized configuration with environment variable overrides.

Site, booking window, and session settings are configurable here.
Nothing is hardcoded in scheduling or auth logic.
"""

import logging
import os
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from realty_booking.logging_context import configure_logging

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    return os.getenv(env_var, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class SiteConfig:
    """Site identity and the zone all rule times are expressed in."""

    name: str = os.getenv("SITE_NAME", "Realty Booking")
    timezone: str = os.getenv("BUSINESS_TIMEZONE", "America/New_York")

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class BookingConfig:
    """Appointment window and rule validation limits."""

    window_days: int = _safe_int("BOOKING_WINDOW_DAYS", "14")
    min_slot_duration_minutes: int = _safe_int("MIN_SLOT_DURATION_MINUTES", "15")
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "USD")


@dataclass(frozen=True)
class AuthConfig:
    """Session bootstrap timings."""

    session_restore_timeout_sec: float = _safe_float("SESSION_RESTORE_TIMEOUT_SEC", "10.0")
    profile_fetch_delay_sec: float = _safe_float("PROFILE_FETCH_DELAY_SEC", "0.5")


@dataclass(frozen=True)
class BackendConfig:
    """Hosted database/auth backend connection settings."""

    url: str = os.getenv("BACKEND_URL", "")
    anon_key: str = os.getenv("BACKEND_ANON_KEY", "")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    site: SiteConfig = field(default_factory=SiteConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug_mode: bool = _safe_bool("DEBUG_MODE", "false")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    try:
        ZoneInfo(config.site.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(
            f"BUSINESS_TIMEZONE is not a known IANA zone: {config.site.timezone!r}"
        ) from None
    if config.booking.window_days < 1:
        raise ValueError(
            f"BOOKING_WINDOW_DAYS must be >= 1, got {config.booking.window_days}"
        )
    if config.booking.min_slot_duration_minutes < 1:
        raise ValueError(
            "MIN_SLOT_DURATION_MINUTES must be >= 1, "
            f"got {config.booking.min_slot_duration_minutes}"
        )
    currency = config.booking.default_currency
    if len(currency) != 3 or not currency.isalpha():
        raise ValueError(
            f"DEFAULT_CURRENCY must be a three-letter code, got {currency!r}"
        )
    if config.auth.session_restore_timeout_sec <= 0:
        raise ValueError(
            "SESSION_RESTORE_TIMEOUT_SEC must be > 0, "
            f"got {config.auth.session_restore_timeout_sec}"
        )
    if config.auth.profile_fetch_delay_sec < 0:
        raise ValueError(
            "PROFILE_FETCH_DELAY_SEC must be >= 0, "
            f"got {config.auth.profile_fetch_delay_sec}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    configure_logging("DEBUG" if config.debug_mode else config.log_level)
    if not config.backend.url:
        logger.debug("BACKEND_URL not set; only in-memory stores are usable")
    logger.info("Configuration loaded for '%s' (%s)", config.site.name, config.site.timezone)
    return config


# Singleton instance
settings = load_config()
