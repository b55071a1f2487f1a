"""
Centralized configuration with environment variable overrides.

Default operating hours, buffers, payment limits and refund windows are
configurable here. Nothing is hardcoded in availability, pricing or
booking logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from clubbooking.logging_context import install_request_id_filter

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s"


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


@dataclass(frozen=True)
class BookingConfig:
    """Scheduling defaults used when a subject carries no schedule of its own."""

    default_open_time: str = os.getenv("DEFAULT_OPEN_TIME", "08:00")
    default_close_time: str = os.getenv("DEFAULT_CLOSE_TIME", "20:00")
    default_buffer_minutes: int = _safe_int("DEFAULT_BUFFER_MINUTES", "15")
    slot_interval_minutes: int = _safe_int("SLOT_INTERVAL_MINUTES", "30")
    max_days_to_check: int = _safe_int("MAX_DAYS_TO_CHECK", "14")
    modification_lead_hours: float = _safe_float("MODIFICATION_LEAD_HOURS", "1.0")
    no_show_prepayment_threshold: int = _safe_int("NO_SHOW_PREPAYMENT_THRESHOLD", "3")
    booking_number_prefix: str = os.getenv("BOOKING_NUMBER_PREFIX", "BK")


@dataclass(frozen=True)
class PricingConfig:
    """Currency, account limits and cancellation refund windows."""

    currency_symbol: str = os.getenv("CURRENCY_SYMBOL", "$")
    minor_unit_places: int = _safe_int("MINOR_UNIT_PLACES", "2")
    credit_limit: float = _safe_float("CREDIT_LIMIT", "5000")
    full_refund_hours: float = _safe_float("FULL_REFUND_HOURS", "24")
    partial_refund_hours: float = _safe_float("PARTIAL_REFUND_HOURS", "4")
    partial_refund_percent: int = _safe_int("PARTIAL_REFUND_PERCENT", "50")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    booking: BookingConfig = field(default_factory=BookingConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "club-booking-engine")


def _validate_hhmm(name: str, value: str) -> int:
    parts = value.split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"{name} must be HH:MM, got {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 24 or minutes > 59 or (hours == 24 and minutes != 0):
        raise ValueError(f"{name} must be a time of day, got {value!r}")
    return hours * 60 + minutes


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    booking = config.booking
    pricing = config.pricing

    open_minutes = _validate_hhmm("DEFAULT_OPEN_TIME", booking.default_open_time)
    close_minutes = _validate_hhmm("DEFAULT_CLOSE_TIME", booking.default_close_time)
    if close_minutes <= open_minutes:
        raise ValueError(
            "DEFAULT_CLOSE_TIME must be after DEFAULT_OPEN_TIME, "
            f"got {booking.default_open_time}-{booking.default_close_time}"
        )
    if booking.default_buffer_minutes < 0:
        raise ValueError(
            f"DEFAULT_BUFFER_MINUTES must be >= 0, got {booking.default_buffer_minutes}"
        )
    if booking.slot_interval_minutes < 1:
        raise ValueError(
            f"SLOT_INTERVAL_MINUTES must be >= 1, got {booking.slot_interval_minutes}"
        )
    if booking.max_days_to_check < 1:
        raise ValueError(
            f"MAX_DAYS_TO_CHECK must be >= 1, got {booking.max_days_to_check}"
        )
    if booking.modification_lead_hours < 0:
        raise ValueError(
            f"MODIFICATION_LEAD_HOURS must be >= 0, got {booking.modification_lead_hours}"
        )
    if booking.no_show_prepayment_threshold < 1:
        raise ValueError(
            "NO_SHOW_PREPAYMENT_THRESHOLD must be >= 1, "
            f"got {booking.no_show_prepayment_threshold}"
        )

    if not 0 <= pricing.minor_unit_places <= 4:
        raise ValueError(
            f"MINOR_UNIT_PLACES must be between 0 and 4, got {pricing.minor_unit_places}"
        )
    if pricing.credit_limit < 0:
        raise ValueError(f"CREDIT_LIMIT must be >= 0, got {pricing.credit_limit}")
    if pricing.partial_refund_hours < 0:
        raise ValueError(
            f"PARTIAL_REFUND_HOURS must be >= 0, got {pricing.partial_refund_hours}"
        )
    if pricing.full_refund_hours < pricing.partial_refund_hours:
        raise ValueError(
            "FULL_REFUND_HOURS must be >= PARTIAL_REFUND_HOURS, "
            f"got {pricing.full_refund_hours} < {pricing.partial_refund_hours}"
        )
    if not 0 <= pricing.partial_refund_percent <= 100:
        raise ValueError(
            "PARTIAL_REFUND_PERCENT must be between 0 and 100, "
            f"got {pricing.partial_refund_percent}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_request_id_filter(logging.getLogger().handlers)
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()
