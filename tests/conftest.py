# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures for the disclosure engine."""

from typing import Any, Callable

import pytest

from reportstudio.disclosure_engine.config import DisclosureEngineConfig, reset_config
from reportstudio.disclosure_engine.models import (
    CreateDataPointRequest,
    CreateReportingPeriodRequest,
    DataPoint,
    ReportingPeriod,
    ReportSection,
)
from reportstudio.disclosure_engine.store import EntityStore


@pytest.fixture(autouse=True)
def _isolated_config():
    """Keep the global config singleton from leaking between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config() -> DisclosureEngineConfig:
    return DisclosureEngineConfig()


@pytest.fixture
def store(config) -> EntityStore:
    """A fresh store seeded with the sample users and section catalog."""
    return EntityStore(config)


@pytest.fixture
def period(store) -> ReportingPeriod:
    """FY 2024 simplified period owned by user-1 (Sarah Chen)."""
    result = store.create_period(CreateReportingPeriodRequest(
        name="FY 2024",
        start_date="2024-01-01",
        end_date="2024-12-31",
        reporting_mode="simplified",
        owner_id="user-1",
    ))
    assert result.is_valid, result.error_message
    return result.data


@pytest.fixture
def section(store, period) -> ReportSection:
    """The first section of the period (Energy & Emissions)."""
    return store.get_sections(period.id)[0]


@pytest.fixture
def dp_request(section) -> Callable[..., CreateDataPointRequest]:
    """Factory for valid create requests in the fixture section."""

    def _build(**overrides: Any) -> CreateDataPointRequest:
        fields = {
            "section_id": section.id,
            "type": "metric",
            "title": "Scope 1 emissions",
            "content": "Direct emissions from owned sources",
            "value": "1250",
            "unit": "tCO2e",
            "owner_id": "user-3",
            "source": "Fuel invoices",
            "information_type": "fact",
            "deadline": "2025-03-31",
            "created_by": "user-3",
        }
        fields.update(overrides)
        return CreateDataPointRequest(**fields)

    return _build


@pytest.fixture
def data_point(store, dp_request) -> DataPoint:
    result = store.create_data_point(dp_request())
    assert result.is_valid, result.error_message
    return result.data
