"""
Centralized configuration module for application-wide settings.

This module provides the storage connection descriptor handed to the
clinic service, timezone handling for date-bound domain rules, and the
vital-sign range policy switch.
"""

import logging
import os
from dataclasses import dataclass
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./fivet.db"
DEFAULT_SLOW_QUERY_MS = 100

# ===========================
# Timezone Configuration
# ===========================


def get_app_timezone() -> ZoneInfo:
    """
    Get the application timezone from environment variable.

    Returns:
        ZoneInfo: Application timezone (defaults to UTC if not configured)

    Environment Variables:
        TZ: Timezone identifier (e.g., 'America/Santiago', 'UTC')
            Default: 'UTC'

    Examples:
        >>> # In .env file:
        >>> # TZ=America/Santiago
        >>> tz = get_app_timezone()
        >>> print(tz)  # America/Santiago
    """
    tz_name = os.getenv("TZ", "UTC")

    try:
        return ZoneInfo(tz_name)
    except Exception as e:
        logger.warning(
            f"Invalid timezone '{tz_name}' specified in TZ environment variable. "
            f"Falling back to UTC. Error: {e}"
        )
        return ZoneInfo("UTC")


# Global timezone instance - initialized once at import time
APP_TZ = get_app_timezone()


def log_timezone_config():
    """Log the active timezone configuration."""
    logger.info(
        "Timezone configuration initialized",
        extra={
            "context": {
                "timezone": str(APP_TZ),
                "tz_env_var": os.getenv("TZ", "UTC"),
            }
        },
    )


# ===========================
# Vital Sign Range Policy
# ===========================


def get_strict_vital_ranges() -> bool:
    """
    Whether visit vitals outside their declared bounds are rejected.

    Environment Variables:
        FIVET_STRICT_VITAL_RANGES: 'true' to raise OutOfRangeError,
            anything else keeps the permissive policy (warning only).
            Default: 'false'
    """
    return os.getenv("FIVET_STRICT_VITAL_RANGES", "false").strip().lower() in (
        "1",
        "true",
        "yes",
    )


# ===========================
# Storage Configuration
# ===========================


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning(
            f"Invalid integer '{raw}' for {name}. Using default {default}.",
            extra={"context": {"variable": name}},
        )
        return default


@dataclass(frozen=True)
class StorageConfig:
    """Connection descriptor for the backing store.

    One instance is handed to the clinic service constructor; the service
    owns the engine and session built from it until ``close()``.
    """

    database_url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    slow_query_ms: int = DEFAULT_SLOW_QUERY_MS
    slow_query_alerts: bool = True

    @classmethod
    def from_env(cls) -> "StorageConfig":
        """Build the descriptor from environment variables.

        A ``.env`` file is only consulted when DATABASE_URL is not already
        defined by the environment.
        """
        if not os.getenv("DATABASE_URL"):
            load_dotenv()

        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            echo=_env_flag("SQL_ECHO", False),
            slow_query_ms=_env_int("ALERT_QUERY_MS_THRESHOLD", DEFAULT_SLOW_QUERY_MS),
            slow_query_alerts=_env_flag("ALERT_SLOW_QUERY_ENABLED", True),
        )
