# -*- coding: utf-8 -*-
"""
Report Studio - ESG report authoring core

Packages:
    - disclosure_engine: in-memory domain core for reporting periods,
      sections, data points, evidence, validation rules and the audit log
    - exceptions: ReportStudioException hierarchy
"""

__version__ = "1.0.0"

from reportstudio.exceptions import (
    AuditIntegrityError,
    ConfigurationError,
    DependentEntityError,
    DuplicateEntityError,
    InvariantViolation,
    ReportStudioException,
)

__all__ = [
    "__version__",
    "ReportStudioException",
    "ConfigurationError",
    "InvariantViolation",
    "DependentEntityError",
    "DuplicateEntityError",
    "AuditIntegrityError",
]
