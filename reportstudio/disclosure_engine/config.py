# -*- coding: utf-8 -*-
"""
Disclosure Engine Configuration

Centralized configuration for the in-memory disclosure engine covering:
- Seed catalog and sample user directory loading
- Evidence source URL limits
- Audit trail chain hashing and query limits
- Reminder defaults exposed to external reminder processes
- Logging

All settings can be overridden via environment variables with the
``RS_DE_`` prefix (e.g. ``RS_DE_MAX_SOURCE_URL_LENGTH``).

Example:
    >>> from reportstudio.disclosure_engine.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.max_source_url_length, cfg.enable_provenance)

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional

from reportstudio.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "RS_DE_"

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


# ---------------------------------------------------------------------------
# DisclosureEngineConfig
# ---------------------------------------------------------------------------


@dataclass
class DisclosureEngineConfig:
    """Complete configuration for the disclosure engine.

    Attributes:
        seed_sample_users: Load the fixed sample user directory at startup.
        seed_section_catalog: Load the default section catalog at startup.
        max_source_url_length: Maximum length of an evidence source URL.
        enable_provenance: Chain-hash every audit log entry with SHA-256.
        genesis_seed: Seed text for the genesis hash of the audit chain.
        max_audit_query_results: Upper bound on entries returned by one
            audit log query (0 means unbounded).
        default_reminder_days: Days before a deadline at which reminders
            are due when a period has no explicit configuration.
        default_check_frequency_hours: Default reminder scan frequency.
        log_level: Logging level for the disclosure engine.
    """

    # -- Seeding -------------------------------------------------------------
    seed_sample_users: bool = True
    seed_section_catalog: bool = True

    # -- Evidence ------------------------------------------------------------
    max_source_url_length: int = 2048

    # -- Audit trail ---------------------------------------------------------
    enable_provenance: bool = True
    genesis_seed: str = "reportstudio-disclosure-engine-genesis"
    max_audit_query_results: int = 0

    # -- Reminders -----------------------------------------------------------
    default_reminder_days: List[int] = field(default_factory=lambda: [7, 3, 1])
    default_check_frequency_hours: int = 24

    # -- Logging -------------------------------------------------------------
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """Check structural constraints on the configuration.

        Raises:
            ConfigurationError: If a setting can never produce a working
                engine.
        """
        if self.max_source_url_length <= 0:
            raise ConfigurationError(
                "max_source_url_length must be positive",
                config_key="max_source_url_length",
                config_value=self.max_source_url_length,
            )
        if self.max_audit_query_results < 0:
            raise ConfigurationError(
                "max_audit_query_results must not be negative",
                config_key="max_audit_query_results",
                config_value=self.max_audit_query_results,
            )
        if self.default_check_frequency_hours <= 0:
            raise ConfigurationError(
                "default_check_frequency_hours must be positive",
                config_key="default_check_frequency_hours",
                config_value=self.default_check_frequency_hours,
            )
        if any(day < 0 for day in self.default_reminder_days):
            raise ConfigurationError(
                "default_reminder_days must not contain negative values",
                config_key="default_reminder_days",
                config_value=list(self.default_reminder_days),
            )
        if not self.genesis_seed:
            raise ConfigurationError(
                "genesis_seed must not be empty",
                config_key="genesis_seed",
                config_value=self.genesis_seed,
            )
        if str(self.log_level).upper() not in _LOG_LEVELS:
            raise ConfigurationError(
                f"log_level must be one of {', '.join(_LOG_LEVELS)}",
                config_key="log_level",
                config_value=self.log_level,
            )

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> DisclosureEngineConfig:
        """Build a DisclosureEngineConfig from environment variables.

        Every field can be overridden via ``RS_DE_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).
        Integer values are parsed via ``int()``. List values are
        comma-separated integers.

        Returns:
            Populated DisclosureEngineConfig instance.
        """
        prefix = _ENV_PREFIX
        defaults = cls()

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _int_list(name: str, default: List[int]) -> List[int]:
            val = _env(name)
            if val is None:
                return list(default)
            try:
                return [int(part) for part in val.split(",") if part.strip()]
            except ValueError:
                logger.warning(
                    "Invalid integer list for %s%s=%s, using default %s",
                    prefix, name, val, default,
                )
                return list(default)

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val

        config = cls(
            # Seeding
            seed_sample_users=_bool(
                "SEED_SAMPLE_USERS", defaults.seed_sample_users,
            ),
            seed_section_catalog=_bool(
                "SEED_SECTION_CATALOG", defaults.seed_section_catalog,
            ),
            # Evidence
            max_source_url_length=_int(
                "MAX_SOURCE_URL_LENGTH", defaults.max_source_url_length,
            ),
            # Audit trail
            enable_provenance=_bool(
                "ENABLE_PROVENANCE", defaults.enable_provenance,
            ),
            genesis_seed=_str("GENESIS_SEED", defaults.genesis_seed),
            max_audit_query_results=_int(
                "MAX_AUDIT_QUERY_RESULTS", defaults.max_audit_query_results,
            ),
            # Reminders
            default_reminder_days=_int_list(
                "DEFAULT_REMINDER_DAYS", defaults.default_reminder_days,
            ),
            default_check_frequency_hours=_int(
                "DEFAULT_CHECK_FREQUENCY_HOURS",
                defaults.default_check_frequency_hours,
            ),
            # Logging
            log_level=_str("LOG_LEVEL", defaults.log_level),
        )

        logger.info(
            "DisclosureEngineConfig loaded: users=%s, catalog=%s, "
            "max_url=%d, provenance=%s, audit_limit=%d, "
            "reminder_days=%s, check_every=%dh",
            config.seed_sample_users,
            config.seed_section_catalog,
            config.max_source_url_length,
            config.enable_provenance,
            config.max_audit_query_results,
            config.default_reminder_days,
            config.default_check_frequency_hours,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[DisclosureEngineConfig] = None
_config_lock = threading.Lock()


def get_config() -> DisclosureEngineConfig:
    """Return the singleton DisclosureEngineConfig, creating from env if needed.

    Returns:
        DisclosureEngineConfig singleton instance.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = DisclosureEngineConfig.from_env()
    return _config_instance


def set_config(config: DisclosureEngineConfig) -> None:
    """Replace the singleton DisclosureEngineConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("DisclosureEngineConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "DisclosureEngineConfig",
    "get_config",
    "set_config",
    "reset_config",
]
