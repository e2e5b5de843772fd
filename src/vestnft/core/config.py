"""
vestnft Configuration

Engine policies and logging settings are read from environment variables so
the same build can run with different claim policies per deployment.

Environment variables:
- VESTNFT_REJECT_EMPTY_CLAIMS: "1" rejects zero-amount claims (default "1")
- VESTNFT_ALLOW_ZERO_ALLOCATION: "1" accepts positions with zero allocation
- VESTNFT_LOG_LEVEL: logging level name (default "INFO")
- VESTNFT_LOG_FILE: optional JSON log file path
- VESTNFT_ENVIRONMENT: environment tag added to log records
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Canonical "infinity" timestamp used by callers to read the total allocation
MAX_TIMESTAMP = 2**256 - 1

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_flag(env_var: str, default: bool) -> bool:
    """Parse a 0/1 style boolean flag from the environment."""
    raw = os.getenv(env_var, "").strip().lower()
    if not raw:
        return default
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{env_var} must be a boolean flag, got {raw!r}")


def _get_log_level(env_var: str, default: str) -> str:
    level = os.getenv(env_var, default).strip().upper() or default
    if level not in LOG_LEVELS:
        raise ConfigurationError(
            f"{env_var} must be one of {', '.join(LOG_LEVELS)}, got {level!r}"
        )
    return level


@dataclass(frozen=True)
class VestingConfig:
    """Policy and logging settings for a vesting NFT deployment."""

    # Zero-claimable claims raise NothingToClaimError instead of returning 0
    reject_empty_claims: bool = True
    allow_zero_allocation: bool = False
    log_level: str = "INFO"
    log_file: str | None = None
    environment: str = "production"

    @classmethod
    def from_env(cls) -> "VestingConfig":
        """Build a configuration from VESTNFT_* environment variables."""
        config = cls(
            reject_empty_claims=_get_flag("VESTNFT_REJECT_EMPTY_CLAIMS", True),
            allow_zero_allocation=_get_flag("VESTNFT_ALLOW_ZERO_ALLOCATION", False),
            log_level=_get_log_level("VESTNFT_LOG_LEVEL", "INFO"),
            log_file=os.getenv("VESTNFT_LOG_FILE", "").strip() or None,
            environment=os.getenv("VESTNFT_ENVIRONMENT", "production").strip() or "production",
        )
        logger.debug(
            "Loaded vesting configuration",
            extra={
                "event": "config.loaded",
                "reject_empty_claims": config.reject_empty_claims,
                "allow_zero_allocation": config.allow_zero_allocation,
            },
        )
        return config


DEFAULT_CONFIG = VestingConfig()
