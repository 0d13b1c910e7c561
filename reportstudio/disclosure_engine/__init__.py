# -*- coding: utf-8 -*-
"""
Report Studio Disclosure Engine SDK
===================================

In-memory domain core of an ESG report authoring workspace. It keeps
reporting periods, sections, data points, evidence, validation rules,
gaps and completion exceptions consistent under concurrent requests and
provides:

- Completeness derivation for data points and section progress
- Forward-only gap workflow (missing -> estimated -> provided) with
  permission checks and estimate snapshots
- Section-scoped validation rules evaluated before every write
- Period-wide consistency validation gating publication
- Append-only, field-level audit log with SHA-256 chain hashing
- Review workflow, missing-data flags and provenance review flags
- Completeness statistics and completion exception reports
- Reminder configuration and history for external reminder processes
- 11 Prometheus metrics for observability
- Thread-safe configuration with RS_DE_ env prefix

Key Components:
    - config: DisclosureEngineConfig with RS_DE_ env prefix
    - models: pydantic entities, requests and results
    - completeness: CompletenessCalculator
    - gap_workflow: GapWorkflowEngine
    - rule_engine: ValidationRuleEngine
    - consistency_validator: ConsistencyValidator
    - audit_trail: AuditTrailRecorder
    - provenance: SHA-256 chain-hashed audit trails
    - store: EntityStore, the single locked owner of all state
    - metrics: 11 Prometheus metrics
    - setup: DisclosureEngineService facade

Example:
    >>> from reportstudio.disclosure_engine import EntityStore, CreateReportingPeriodRequest
    >>> store = EntityStore()
    >>> result = store.create_period(CreateReportingPeriodRequest(
    ...     name="FY 2024", start_date="2024-01-01", end_date="2024-12-31",
    ...     owner_id="user-1",
    ... ))
    >>> len(store.get_sections(result.data.id))
    6
"""

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------
from reportstudio.disclosure_engine.config import (
    DisclosureEngineConfig,
    get_config,
    set_config,
    reset_config,
)

# ---------------------------------------------------------------------------
# Provenance
# ---------------------------------------------------------------------------
from reportstudio.disclosure_engine.provenance import ProvenanceTracker

# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------
from reportstudio.disclosure_engine.completeness import CompletenessCalculator
from reportstudio.disclosure_engine.gap_workflow import GapWorkflowEngine
from reportstudio.disclosure_engine.rule_engine import ValidationRuleEngine
from reportstudio.disclosure_engine.consistency_validator import ConsistencyValidator
from reportstudio.disclosure_engine.audit_trail import AuditTrailRecorder
from reportstudio.disclosure_engine.store import EntityStore

# ---------------------------------------------------------------------------
# Service setup facade
# ---------------------------------------------------------------------------
from reportstudio.disclosure_engine.setup import (
    DisclosureEngineService,
    configure_service,
    get_service,
    reset_service,
)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
from reportstudio.disclosure_engine.models import (
    # Enumerations
    CompletenessStatus,
    ConfidenceLevel,
    ConsistencyPass,
    EstimateType,
    GapStatus,
    InformationType,
    ReviewStatus,
    RuleKind,
    SectionProgressStatus,
    UserRole,
    # Entities
    AuditLogEntry,
    CompletionException,
    DataPoint,
    Evidence,
    FieldChange,
    Gap,
    ReportingPeriod,
    ReportSection,
    User,
    ValidationRule,
    # Requests
    CreateDataPointRequest,
    CreateReportingPeriodRequest,
    CreateValidationRuleRequest,
    TransitionGapStatusRequest,
    UpdateDataPointRequest,
    # Results
    OperationResult,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    "__version__",
    # Configuration
    "DisclosureEngineConfig",
    "get_config",
    "set_config",
    "reset_config",
    # Provenance
    "ProvenanceTracker",
    # Engines
    "CompletenessCalculator",
    "GapWorkflowEngine",
    "ValidationRuleEngine",
    "ConsistencyValidator",
    "AuditTrailRecorder",
    "EntityStore",
    # Service
    "DisclosureEngineService",
    "configure_service",
    "get_service",
    "reset_service",
    # Enumerations
    "CompletenessStatus",
    "ConfidenceLevel",
    "ConsistencyPass",
    "EstimateType",
    "GapStatus",
    "InformationType",
    "ReviewStatus",
    "RuleKind",
    "SectionProgressStatus",
    "UserRole",
    # Entities
    "AuditLogEntry",
    "CompletionException",
    "DataPoint",
    "Evidence",
    "FieldChange",
    "Gap",
    "ReportingPeriod",
    "ReportSection",
    "User",
    "ValidationRule",
    # Requests
    "CreateDataPointRequest",
    "CreateReportingPeriodRequest",
    "CreateValidationRuleRequest",
    "TransitionGapStatusRequest",
    "UpdateDataPointRequest",
    # Results
    "OperationResult",
    "ValidationIssue",
    "ValidationResult",
]
