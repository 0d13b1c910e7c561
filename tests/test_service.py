"""Tests for the DisclosureEngineService facade and its singleton helpers."""

import pytest

from reportstudio.disclosure_engine.config import DisclosureEngineConfig
from reportstudio.disclosure_engine.models import CreateReportingPeriodRequest
from reportstudio.disclosure_engine.setup import (
    DisclosureEngineService,
    configure_service,
    get_service,
    reset_service,
)
from reportstudio.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _isolated_service():
    reset_service()
    yield
    reset_service()


@pytest.fixture
def service(config):
    svc = DisclosureEngineService(config)
    svc.startup()
    return svc


class TestLifecycle:
    """Startup, shutdown and health."""

    def test_not_started(self, config):
        svc = DisclosureEngineService(config)

        health = svc.health_check()

        assert health["status"] == "not_started"
        assert health["started_at"] is None

    def test_healthy(self, service):
        health = service.health_check()

        assert health["status"] == "healthy"
        assert health["audit_chain_valid"] is True
        assert health["users"] == 6

    def test_startup_is_idempotent(self, service):
        started_at = service.health_check()["started_at"]

        service.startup()

        assert service.health_check()["started_at"] == started_at

    def test_shutdown(self, service):
        service.shutdown()

        assert service.health_check()["started"] is False

    def test_degraded_on_broken_chain(self, service):
        service.store.create_period(CreateReportingPeriodRequest(
            name="FY 2024", start_date="2024-01-01", end_date="2024-12-31", owner_id="user-1",
        ))
        audit = service.store._audit
        audit._entries[0] = audit._entries[0].model_copy(update={"user_name": "Someone Else"})

        health = service.health_check()

        assert health["status"] == "degraded"
        assert health["audit_chain_valid"] is False

    def test_invalid_config_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            DisclosureEngineService(DisclosureEngineConfig(max_source_url_length=0))

        assert exc_info.value.context["config_key"] == "max_source_url_length"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            DisclosureEngineService(DisclosureEngineConfig(log_level="verbose"))

        assert exc_info.value.context["config_key"] == "log_level"


class TestStatistics:

    def test_statistics_model(self, service):
        stats = service.get_statistics()

        assert stats.users == 6
        assert stats.data_points == 0

    def test_metrics(self, service):
        metrics = service.get_metrics()

        assert metrics["started"] is True
        assert metrics["provenance_enabled"] is True
        assert metrics["total_audit_entries"] == 0


class TestSingleton:
    """Module-level service access."""

    def test_get_service_returns_same_instance(self):
        assert get_service() is get_service()

    def test_configure_replaces_and_starts(self, config):
        first = configure_service(config)
        second = configure_service(config)

        assert get_service() is second
        assert first.health_check()["started"] is False
        assert second.health_check()["status"] == "healthy"

    def test_reset(self, config):
        service = configure_service(config)

        reset_service()

        assert get_service() is not service
