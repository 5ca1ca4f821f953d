"""
Centralized configuration with environment variable overrides.

Opening hours, the booking window and the duration domain are
configurable here. Nothing is hardcoded in scheduling or wizard logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from courtbook.logging_context import SessionIdFilter

load_dotenv()

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("pix", "credit_card", "venue")

LOG_FORMAT = "%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


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


def _safe_float_list(env_var: str, default: str) -> tuple[float, ...]:
    """Parse a comma-separated list of floats from an env var."""
    raw = os.getenv(env_var, default)
    try:
        return tuple(float(part) for part in raw.split(",") if part.strip())
    except (ValueError, TypeError, AttributeError):
        raise ValueError(
            f"Invalid float list for {env_var}: {raw!r}"
        ) from None


@dataclass(frozen=True)
class ScheduleConfig:
    """Opening hours and the selectable booking window."""

    first_start_hour: int = _safe_int("FIRST_START_HOUR", "7")
    last_start_hour: int = _safe_int("LAST_START_HOUR", "22")
    booking_window_days: int = _safe_int("BOOKING_WINDOW_DAYS", "7")


@dataclass(frozen=True)
class BookingConfig:
    """Draft defaults and the enumerated duration domain."""

    allowed_durations: tuple[float, ...] = _safe_float_list("ALLOWED_DURATIONS", "1.0,1.5,2.0")
    default_duration: float = _safe_float("DEFAULT_DURATION", "1.0")
    default_payment_method: str = os.getenv("DEFAULT_PAYMENT_METHOD", "pix")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "courtbook")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    schedule = config.schedule
    if not 0 <= schedule.first_start_hour <= 23:
        raise ValueError(
            f"FIRST_START_HOUR must be between 0 and 23, got {schedule.first_start_hour}"
        )
    if not 0 <= schedule.last_start_hour <= 23:
        raise ValueError(
            f"LAST_START_HOUR must be between 0 and 23, got {schedule.last_start_hour}"
        )
    if schedule.last_start_hour < schedule.first_start_hour:
        raise ValueError(
            "LAST_START_HOUR must be >= FIRST_START_HOUR, "
            f"got {schedule.last_start_hour} < {schedule.first_start_hour}"
        )
    if schedule.booking_window_days < 1:
        raise ValueError(
            f"BOOKING_WINDOW_DAYS must be >= 1, got {schedule.booking_window_days}"
        )

    booking = config.booking
    if not booking.allowed_durations:
        raise ValueError("ALLOWED_DURATIONS must list at least one duration")
    for duration in booking.allowed_durations:
        if duration <= 0:
            raise ValueError(f"ALLOWED_DURATIONS must be > 0, got {duration}")
    if booking.default_duration not in booking.allowed_durations:
        raise ValueError(
            f"DEFAULT_DURATION must be one of {list(booking.allowed_durations)}, "
            f"got {booking.default_duration}"
        )
    if booking.default_payment_method not in PAYMENT_METHODS:
        raise ValueError(
            f"DEFAULT_PAYMENT_METHOD must be one of {list(PAYMENT_METHODS)}, "
            f"got {booking.default_payment_method!r}"
        )


def build_log_handler() -> logging.Handler:
    """Console handler whose records always carry a session id, even from plain loggers."""
    handler = logging.StreamHandler()
    handler.addFilter(SessionIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    return handler


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        handlers=[build_log_handler()],
    )
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()
