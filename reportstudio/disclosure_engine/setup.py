# -*- coding: utf-8 -*-
"""
Disclosure Engine Service Setup - Report Studio

Provides the ``DisclosureEngineService`` facade, which validates the
configuration, builds the entity store (and through it every engine of
the disclosure engine), and exposes lifecycle, health and metrics
summaries to the hosting application.

Also exposes ``get_service()`` / ``configure_service()`` for
thread-safe singleton access.

Usage:
    >>> from reportstudio.disclosure_engine.setup import get_service
    >>> service = get_service()
    >>> service.startup()
    >>> service.store.get_users()[0].name
    'Sarah Chen'

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from reportstudio.disclosure_engine.config import (
    DisclosureEngineConfig,
    get_config,
)
from reportstudio.disclosure_engine.store import EntityStore

logger = logging.getLogger(__name__)


# ===================================================================
# Statistics model
# ===================================================================


class DisclosureEngineStatistics(BaseModel):
    """Aggregate entity counts of the disclosure engine.

    Attributes:
        users: Users in the directory.
        periods: Reporting periods.
        sections: Report sections across all periods.
        data_points: Data points held by the store.
        evidence: Evidence records.
        validation_rules: Section validation rules.
        gaps: Section-level gaps.
        completion_exceptions: Completion exceptions in any status.
        audit_entries: Entries in the audit log.
        reminders_sent: Reminder history records.
    """
    users: int = Field(default=0)
    periods: int = Field(default=0)
    sections: int = Field(default=0)
    data_points: int = Field(default=0)
    evidence: int = Field(default=0)
    validation_rules: int = Field(default=0)
    gaps: int = Field(default=0)
    completion_exceptions: int = Field(default=0)
    audit_entries: int = Field(default=0)
    reminders_sent: int = Field(default=0)


# ===================================================================
# DisclosureEngineService facade
# ===================================================================

# Thread-safe singleton lock
_singleton_lock = threading.Lock()
_singleton_instance: Optional["DisclosureEngineService"] = None


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class DisclosureEngineService:
    """Unified facade over the disclosure engine.

    Attributes:
        config: DisclosureEngineConfig instance.

    Example:
        >>> service = DisclosureEngineService()
        >>> service.startup()
        >>> service.health_check()["status"]
        'healthy'
    """

    def __init__(
        self,
        config: Optional[DisclosureEngineConfig] = None,
    ) -> None:
        """Initialize the service facade.

        Args:
            config: Optional configuration. Uses global config if None.

        Raises:
            ConfigurationError: If the configuration is invalid.
        """
        self.config = config or get_config()
        self.config.validate()

        self._store = EntityStore(self.config)
        self._started = False
        self._started_at: Optional[datetime] = None

        logger.info("DisclosureEngineService facade created")

    @property
    def store(self) -> EntityStore:
        """Get the EntityStore instance."""
        return self._store

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Start the disclosure engine service.

        Applies the configured log level to the ``reportstudio`` logger
        hierarchy. Safe to call multiple times.
        """
        if self._started:
            logger.debug("DisclosureEngineService already started; skipping")
            return

        logger.info("DisclosureEngineService starting up...")
        logging.getLogger("reportstudio").setLevel(self.config.log_level.upper())
        self._started = True
        self._started_at = _utcnow()
        logger.info("DisclosureEngineService startup complete")

    def shutdown(self) -> None:
        """Shutdown the disclosure engine service."""
        if not self._started:
            return

        self._started = False
        logger.info("DisclosureEngineService shut down")

    # ------------------------------------------------------------------
    # Health and metrics
    # ------------------------------------------------------------------

    def get_statistics(self) -> DisclosureEngineStatistics:
        return DisclosureEngineStatistics(**self._store.get_statistics())

    def health_check(self) -> Dict[str, Any]:
        """Perform a health check on the service.

        The audit chain is verified as part of the check; a broken chain
        reports the service as degraded.

        Returns:
            Health status dict.
        """
        verification = self._store.verify_audit_chain()
        if not self._started:
            status = "not_started"
        elif not verification.is_valid:
            status = "degraded"
        else:
            status = "healthy"
        return {
            "status": status,
            "service": "disclosure-engine",
            "started": self._started,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "audit_chain_valid": verification.is_valid,
            "audit_chain_message": verification.message,
            **self._store.get_statistics(),
        }

    def get_metrics(self) -> Dict[str, Any]:
        """Get disclosure engine service metrics summary.

        Returns:
            Dictionary with service metric summaries.
        """
        stats = self.get_statistics()
        return {
            "started": self._started,
            "provenance_enabled": self.config.enable_provenance,
            "total_data_points": stats.data_points,
            "total_evidence": stats.evidence,
            "total_validation_rules": stats.validation_rules,
            "total_audit_entries": stats.audit_entries,
            "total_reminders_sent": stats.reminders_sent,
        }


# ===================================================================
# Thread-safe singleton access
# ===================================================================


def get_service() -> DisclosureEngineService:
    """Get or create the singleton DisclosureEngineService instance.

    Returns:
        The singleton DisclosureEngineService.
    """
    global _singleton_instance
    if _singleton_instance is None:
        with _singleton_lock:
            if _singleton_instance is None:
                _singleton_instance = DisclosureEngineService()
    return _singleton_instance


def configure_service(
    config: Optional[DisclosureEngineConfig] = None,
) -> DisclosureEngineService:
    """Create, install as singleton and start a DisclosureEngineService.

    Args:
        config: Optional disclosure engine config.

    Returns:
        The started DisclosureEngineService.
    """
    global _singleton_instance

    service = DisclosureEngineService(config=config)
    with _singleton_lock:
        previous = _singleton_instance
        _singleton_instance = service
    if previous is not None:
        previous.shutdown()

    service.startup()
    logger.info("Disclosure engine service configured")
    return service


def reset_service() -> None:
    """Shut down and drop the singleton (primarily for test teardown)."""
    global _singleton_instance
    with _singleton_lock:
        previous = _singleton_instance
        _singleton_instance = None
    if previous is not None:
        previous.shutdown()


__all__ = [
    "DisclosureEngineService",
    "DisclosureEngineStatistics",
    "configure_service",
    "get_service",
    "reset_service",
]
