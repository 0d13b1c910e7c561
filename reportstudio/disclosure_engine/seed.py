# -*- coding: utf-8 -*-
"""
Seed Data - Report Studio Disclosure Engine

Fixed sample user directory and default section catalog loaded into the
store at process start. The engine never mutates the user directory; it
only reads it for ownership and role checks.

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from typing import List, Tuple

from reportstudio.disclosure_engine.models import (
    ReportingMode,
    SectionCatalogItem,
    User,
    UserRole,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Sample user directory
# ---------------------------------------------------------------------------

_SAMPLE_USERS: Tuple[Tuple[str, str, str, str], ...] = (
    ("user-1", "Sarah Chen", "sarah.chen@company.com", UserRole.REPORT_OWNER.value),
    ("user-2", "Admin User", "admin@company.com", UserRole.ADMIN.value),
    ("user-3", "John Smith", "john.smith@company.com", UserRole.CONTRIBUTOR.value),
    ("user-4", "Emily Johnson", "emily.johnson@company.com", UserRole.CONTRIBUTOR.value),
    ("user-5", "Michael Brown", "michael.brown@company.com", UserRole.CONTRIBUTOR.value),
    ("user-6", "Lisa Anderson", "lisa.anderson@company.com", UserRole.AUDITOR.value),
)


# ---------------------------------------------------------------------------
# Section catalog: (title, code, category, description)
# ---------------------------------------------------------------------------

_SECTION_CATALOG: Tuple[Tuple[str, str, str, str], ...] = (
    ("Energy & Emissions", "ENV-001", "environmental",
     "Energy consumption, GHG emissions, carbon footprint"),
    ("Waste & Recycling", "ENV-002", "environmental",
     "Waste generation, recycling rates, circular economy initiatives"),
    ("Water & Biodiversity", "ENV-003", "environmental",
     "Water usage, water quality, biodiversity impact"),
    ("Supply Chain Environmental Impact", "ENV-004", "environmental",
     "Supplier environmental performance, sustainable sourcing"),
    ("Employee Health & Safety", "SOC-001", "social",
     "Workplace safety metrics, injury rates, wellness programs"),
    ("Diversity & Inclusion", "SOC-002", "social",
     "Workforce diversity, equal opportunity, inclusion initiatives"),
    ("Employee Development", "SOC-003", "social",
     "Training hours, skill development, career progression"),
    ("Community Engagement", "SOC-004", "social",
     "Social investment, local employment, community programs"),
    ("Human Rights", "SOC-005", "social",
     "Human rights policy, supply chain labor practices"),
    ("Board Composition", "GOV-001", "governance",
     "Board structure, independence, diversity, expertise"),
    ("Ethics & Compliance", "GOV-002", "governance",
     "Code of conduct, anti-corruption, compliance training"),
    ("Risk Management", "GOV-003", "governance",
     "Risk framework, ESG risk integration, climate risk"),
    ("Stakeholder Engagement", "GOV-004", "governance",
     "Stakeholder dialogue, materiality assessment"),
)

SIMPLIFIED_SECTION_CODES: Tuple[str, ...] = (
    "ENV-001", "ENV-002", "SOC-001", "SOC-002", "GOV-001", "GOV-002",
)


def sample_users() -> List[User]:
    """Build the fixed sample user directory."""
    return [
        User(id=uid, name=name, email=email, role=role)
        for uid, name, email, role in _SAMPLE_USERS
    ]


def default_section_catalog() -> List[SectionCatalogItem]:
    """Build the default section catalog, one item per catalog code."""
    items = [
        SectionCatalogItem(
            title=title, code=code, category=category, description=description,
        )
        for title, code, category, description in _SECTION_CATALOG
    ]
    logger.debug("Built default section catalog with %d items", len(items))
    return items


def catalog_for_mode(
    catalog: List[SectionCatalogItem],
    reporting_mode: str,
) -> List[SectionCatalogItem]:
    """Select the non-deprecated catalog items a reporting mode instantiates.

    Simplified mode covers the six core sections; extended mode covers
    the whole catalog.

    Args:
        catalog: Full section catalog.
        reporting_mode: simplified or extended.

    Returns:
        Catalog items in catalog order.
    """
    active = [item for item in catalog if not item.is_deprecated]
    if reporting_mode == ReportingMode.EXTENDED.value:
        return active
    return [item for item in active if item.code in SIMPLIFIED_SECTION_CODES]


__all__ = [
    "SIMPLIFIED_SECTION_CODES",
    "sample_users",
    "default_section_catalog",
    "catalog_for_mode",
]
