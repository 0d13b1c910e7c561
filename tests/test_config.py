"""Tests for DisclosureEngineConfig and the config singleton."""

import pytest

from reportstudio.disclosure_engine.config import (
    DisclosureEngineConfig,
    get_config,
    reset_config,
    set_config,
)
from reportstudio.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def _reset_config_singleton():
    reset_config()
    yield
    reset_config()


class TestDefaults:
    """Default configuration values."""

    def test_defaults(self):
        cfg = DisclosureEngineConfig()

        assert cfg.seed_sample_users is True
        assert cfg.seed_section_catalog is True
        assert cfg.max_source_url_length == 2048
        assert cfg.enable_provenance is True
        assert cfg.max_audit_query_results == 0
        assert cfg.default_reminder_days == [7, 3, 1]
        assert cfg.default_check_frequency_hours == 24
        assert cfg.log_level == "INFO"

    def test_defaults_validate(self):
        DisclosureEngineConfig().validate()


class TestFromEnv:
    """Environment overrides with the RS_DE_ prefix."""

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("RS_DE_MAX_SOURCE_URL_LENGTH", "512")
        monkeypatch.setenv("RS_DE_ENABLE_PROVENANCE", "false")
        monkeypatch.setenv("RS_DE_DEFAULT_REMINDER_DAYS", "14, 7")
        monkeypatch.setenv("RS_DE_LOG_LEVEL", "DEBUG")

        cfg = DisclosureEngineConfig.from_env()

        assert cfg.max_source_url_length == 512
        assert cfg.enable_provenance is False
        assert cfg.default_reminder_days == [14, 7]
        assert cfg.log_level == "DEBUG"

    def test_bool_accepts_yes(self, monkeypatch):
        monkeypatch.setenv("RS_DE_SEED_SAMPLE_USERS", "YES")

        assert DisclosureEngineConfig.from_env().seed_sample_users is True

    def test_invalid_integer_falls_back(self, monkeypatch):
        monkeypatch.setenv("RS_DE_MAX_AUDIT_QUERY_RESULTS", "lots")

        assert DisclosureEngineConfig.from_env().max_audit_query_results == 0

    def test_invalid_integer_list_falls_back(self, monkeypatch):
        monkeypatch.setenv("RS_DE_DEFAULT_REMINDER_DAYS", "7,soon")

        assert DisclosureEngineConfig.from_env().default_reminder_days == [7, 3, 1]


class TestValidation:
    """Structural checks raise ConfigurationError."""

    @pytest.mark.parametrize("kwargs,key", [
        ({"max_source_url_length": 0}, "max_source_url_length"),
        ({"max_audit_query_results": -1}, "max_audit_query_results"),
        ({"default_check_frequency_hours": 0}, "default_check_frequency_hours"),
        ({"default_reminder_days": [7, -1]}, "default_reminder_days"),
        ({"genesis_seed": ""}, "genesis_seed"),
        ({"log_level": "verbose"}, "log_level"),
    ])
    def test_invalid_settings(self, kwargs, key):
        with pytest.raises(ConfigurationError) as exc_info:
            DisclosureEngineConfig(**kwargs).validate()

        assert exc_info.value.context["config_key"] == key


class TestSingleton:
    """get_config / set_config / reset_config."""

    def test_get_config_is_cached(self):
        assert get_config() is get_config()

    def test_set_config_replaces(self):
        cfg = DisclosureEngineConfig(max_source_url_length=100)
        set_config(cfg)

        assert get_config() is cfg

    def test_reset_config_rebuilds(self):
        first = get_config()
        reset_config()

        assert get_config() is not first
