# -*- coding: utf-8 -*-
"""
Disclosure Engine Data Models

Pydantic v2 data models for the disclosure engine. Entity status fields
are plain strings holding the ``.value`` of the matching enumeration so
that serialized entities carry the exact wire vocabulary
(``"ready-for-review"``, ``"proxy-based"``...) and the unset gap status
can be represented as the empty string.

Models:
    - Enums: InformationType, CompletenessStatus, ReviewStatus, GapStatus,
             EstimateType, ConfidenceLevel, MissingReasonCategory,
             SectionCategory, SectionProgressStatus, RuleKind, UserRole,
             ReportingMode, PeriodStatus, ExceptionType, ExceptionStatus,
             GapImpact, IssueSeverity, ValidationStatus, ConsistencyPass
    - Directory: User
    - Structure: ReportingPeriod, SectionCatalogItem, ReportSection,
                 SectionSummary
    - Content: DataPoint, EstimateInputSource, NarrativeSourceReference,
               GapStatusHistoryEntry, Evidence, Gap, CompletionException
    - Rules: ValidationRule
    - Audit: FieldChange, AuditLogEntry, AuditChainVerification
    - Reminders: ReminderConfiguration, ReminderHistory
    - Requests: Create*/Update*/... request models
    - Results: OperationResult, MissingFieldDetail, ValidationIssue,
               ValidationResult, PublishReportResult, CompletenessBreakdown,
               CompletenessStats, SectionCompletenessDetail,
               CompletenessValidationSummary, CompletenessValidationReport

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, List, Optional, Type

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Helpers
# =============================================================================


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _new_id() -> str:
    return str(uuid.uuid4())


def is_blank(value: Optional[str]) -> bool:
    """True for None, empty or whitespace-only text."""
    return value is None or not str(value).strip()


def enum_values(enum_cls: Type[Enum]) -> List[str]:
    """Return the wire values of an enumeration in declaration order."""
    return [member.value for member in enum_cls]


def is_member(enum_cls: Type[Enum], value: Optional[str], ignore_case: bool = False) -> bool:
    """Check whether ``value`` is one of the wire values of ``enum_cls``."""
    if value is None:
        return False
    if ignore_case:
        return value.lower() in (v.lower() for v in enum_values(enum_cls))
    return value in enum_values(enum_cls)


# =============================================================================
# Enumerations
# =============================================================================


class InformationType(str, Enum):
    """Nature of the disclosed information."""
    FACT = "fact"
    ESTIMATE = "estimate"
    DECLARATION = "declaration"
    PLAN = "plan"


class CompletenessStatus(str, Enum):
    """Coarse completeness classification of a data point."""
    MISSING = "missing"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"
    NOT_APPLICABLE = "not-applicable"


class ReviewStatus(str, Enum):
    """Review workflow state of a data point."""
    DRAFT = "draft"
    READY_FOR_REVIEW = "ready-for-review"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes-requested"


class GapStatus(str, Enum):
    """Forward-only gap resolution stage. UNSET is the initial state."""
    UNSET = ""
    MISSING = "missing"
    ESTIMATED = "estimated"
    PROVIDED = "provided"


class EstimateType(str, Enum):
    """Estimation technique."""
    POINT = "point"
    RANGE = "range"
    PROXY_BASED = "proxy-based"
    EXTRAPOLATED = "extrapolated"


class ConfidenceLevel(str, Enum):
    """Confidence attached to an estimate."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MissingReasonCategory(str, Enum):
    """Why a data point is flagged as missing."""
    NOT_MEASURED = "not-measured"
    NOT_APPLICABLE = "not-applicable"
    UNAVAILABLE_FROM_SUPPLIER = "unavailable-from-supplier"
    DATA_QUALITY_ISSUE = "data-quality-issue"
    SYSTEM_LIMITATION = "system-limitation"
    OTHER = "other"


class SectionCategory(str, Enum):
    """ESG pillar of a section."""
    ENVIRONMENTAL = "environmental"
    SOCIAL = "social"
    GOVERNANCE = "governance"


class SectionProgressStatus(str, Enum):
    """Derived progress of a section."""
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    BLOCKED = "blocked"
    COMPLETED = "completed"


class RuleKind(str, Enum):
    """Closed set of section validation rule kinds."""
    NON_NEGATIVE = "non-negative"
    REQUIRED_UNIT = "required-unit"
    ALLOWED_UNITS = "allowed-units"
    VALUE_WITHIN_PERIOD = "value-within-period"


class UserRole(str, Enum):
    """Role classification supplied by the user directory."""
    ADMIN = "admin"
    REPORT_OWNER = "report-owner"
    CONTRIBUTOR = "contributor"
    AUDITOR = "auditor"


class ReportingMode(str, Enum):
    """Section coverage of a reporting period."""
    SIMPLIFIED = "simplified"
    EXTENDED = "extended"


class PeriodStatus(str, Enum):
    """Lifecycle state of a reporting period."""
    ACTIVE = "active"
    CLOSED = "closed"
    PUBLISHED = "published"


class ExceptionType(str, Enum):
    """Kind of completion exception."""
    MISSING_DATA = "missing-data"
    ESTIMATED_DATA = "estimated-data"
    SIMPLIFIED_SCOPE = "simplified-scope"
    OTHER = "other"


class ExceptionStatus(str, Enum):
    """Approval state of a completion exception."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class GapImpact(str, Enum):
    """Impact rating of a reporting gap."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class IssueSeverity(str, Enum):
    """Severity of a consistency issue."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidationStatus(str, Enum):
    """Aggregate outcome of a consistency validation run."""
    PASSED = "passed"
    FAILED = "failed"
    WARNING = "warning"


class ConsistencyPass(str, Enum):
    """Independently selectable consistency validation passes."""
    REQUIRED_DATA = "required-data"
    UNIT_NORMALIZATION = "unit-normalization"
    PERIOD_COVERAGE = "period-coverage"
    MISSING_FIELDS = "missing-fields"


# =============================================================================
# Directory and structure
# =============================================================================


class User(BaseModel):
    """A user as returned by the external user/role directory."""
    id: str = Field(..., description="User identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(default="", description="Contact email")
    role: str = Field(..., description="One of UserRole values")

    model_config = {"extra": "forbid"}


class ReportingPeriod(BaseModel):
    """A reporting period grouping sections."""
    id: str = Field(default_factory=_new_id, description="Period identifier")
    name: str = Field(..., description="Display name, e.g. FY 2024")
    start_date: date = Field(..., description="First day of the period")
    end_date: date = Field(..., description="Last day of the period")
    reporting_mode: str = Field(default=ReportingMode.SIMPLIFIED.value)
    report_scope: str = Field(default="single-company")
    status: str = Field(default=PeriodStatus.ACTIVE.value)
    owner_id: str = Field(default="", description="Period owner user id")
    created_at: datetime = Field(default_factory=_utcnow)
    published_at: Optional[datetime] = Field(None)
    published_by: Optional[str] = Field(None)

    model_config = {"extra": "forbid"}


class SectionCatalogItem(BaseModel):
    """Template from which period sections are instantiated."""
    id: str = Field(default_factory=_new_id)
    title: str
    code: str
    category: str
    description: str = ""
    is_deprecated: bool = False

    model_config = {"extra": "forbid"}


class ReportSection(BaseModel):
    """A category-scoped grouping of data points within a period.

    ``progress_status`` is derived from the section's data points and is
    recomputed by the store after every mutation that touches them.
    """
    id: str = Field(default_factory=_new_id)
    period_id: str
    title: str
    category: str = Field(default=SectionCategory.ENVIRONMENTAL.value)
    description: str = ""
    owner_id: str = ""
    status: str = "draft"
    is_enabled: bool = True
    order: int = 0
    catalog_code: Optional[str] = None
    progress_status: str = Field(default=SectionProgressStatus.NOT_STARTED.value)

    model_config = {"extra": "forbid"}


class SectionSummary(ReportSection):
    """Section with aggregate counters for dashboards."""
    data_point_count: int = 0
    evidence_count: int = 0
    gap_count: int = 0
    completeness_percentage: int = 0
    owner_name: str = ""


# =============================================================================
# Content
# =============================================================================


class EstimateInputSource(BaseModel):
    """An input an estimate was derived from."""
    source_type: str = Field(..., description="internal-document, uploaded-evidence, external-url, assumption, other")
    source_reference: str = Field(..., description="Reference to the source")
    description: str = Field(default="")

    model_config = {"extra": "forbid"}


class NarrativeSourceReference(BaseModel):
    """Provenance link from a data point to an originating record."""
    source_type: str
    source_reference: str
    description: str = ""
    origin_system: str = ""
    owner_id: str = ""
    owner_name: str = ""
    last_updated: Optional[str] = None
    value_snapshot: Optional[str] = None

    model_config = {"extra": "forbid"}


class GapStatusHistoryEntry(BaseModel):
    """One successful gap status transition."""
    id: str = Field(default_factory=_new_id)
    data_point_id: str
    from_status: str
    to_status: str
    transitioned_by: str
    transitioned_by_name: str
    transitioned_at: datetime = Field(default_factory=_utcnow)
    change_note: Optional[str] = None
    estimate_snapshot: Optional[str] = None

    model_config = {"extra": "forbid"}


class DataPoint(BaseModel):
    """Smallest disclosable unit of content."""

    # Identity
    id: str = Field(default_factory=_new_id)
    section_id: str

    # Content
    type: str = Field(default="narrative", description="narrative or metric")
    classification: Optional[str] = None
    title: str = ""
    content: str = ""
    value: Optional[str] = None
    unit: Optional[str] = None
    source: str = ""
    information_type: str = ""
    assumptions: Optional[str] = None
    deadline: Optional[str] = None

    # Ownership
    owner_id: str = ""
    contributor_ids: List[str] = Field(default_factory=list)

    # Workflow state
    completeness_status: str = Field(default=CompletenessStatus.INCOMPLETE.value)
    review_status: str = Field(default=ReviewStatus.DRAFT.value)
    gap_status: str = Field(default=GapStatus.UNSET.value)
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    review_comments: Optional[str] = None

    # Blocker
    is_blocked: bool = False
    blocker_reason: Optional[str] = None
    blocker_due_date: Optional[str] = None

    # Missing data
    is_missing: bool = False
    missing_reason: Optional[str] = None
    missing_reason_category: Optional[str] = None
    missing_flagged_by: Optional[str] = None
    missing_flagged_at: Optional[datetime] = None

    # Estimates
    estimate_type: Optional[str] = None
    estimate_method: Optional[str] = None
    confidence_level: Optional[str] = None
    estimate_input_sources: List[EstimateInputSource] = Field(default_factory=list)
    estimate_author: Optional[str] = None
    estimate_created_at: Optional[datetime] = None
    previous_estimate_snapshot: Optional[str] = None
    gap_status_history: List[GapStatusHistoryEntry] = Field(default_factory=list)

    # Provenance
    source_references: List[NarrativeSourceReference] = Field(default_factory=list)
    provenance_needs_review: bool = False
    provenance_review_reason: Optional[str] = None
    provenance_flagged_by: Optional[str] = None
    provenance_flagged_at: Optional[datetime] = None
    publication_source_hash: Optional[str] = None

    # Evidence
    evidence_ids: List[str] = Field(default_factory=list)

    # Timestamps
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = {"extra": "forbid"}


class Evidence(BaseModel):
    """Supporting document or URL attached to a section."""
    id: str = Field(default_factory=_new_id)
    section_id: str
    title: str
    description: Optional[str] = None
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    source_url: Optional[str] = None
    uploaded_by: str
    uploaded_at: datetime = Field(default_factory=_utcnow)
    checksum: str = Field(default="", description="SHA-256 of the descriptive payload")
    linked_data_point_ids: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class ValidationRule(BaseModel):
    """A section-scoped constraint evaluated at write time."""
    id: str = Field(default_factory=_new_id)
    section_id: str
    rule_type: str = Field(..., description="One of RuleKind values")
    target_field: Optional[str] = None
    parameters: Optional[str] = Field(None, description="Opaque serialized parameters")
    error_message: str
    is_active: bool = True
    created_by: str
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = {"extra": "forbid"}


class Gap(BaseModel):
    """A known reporting gap with an improvement plan."""
    id: str = Field(default_factory=_new_id)
    section_id: str
    title: str
    description: str = ""
    impact: str = Field(default=GapImpact.MEDIUM.value)
    improvement_plan: Optional[str] = None
    target_date: Optional[str] = None
    created_by: str
    created_at: datetime = Field(default_factory=_utcnow)
    resolved: bool = False

    model_config = {"extra": "forbid"}


class CompletionException(BaseModel):
    """Approved exemption from the completeness denominator."""
    id: str = Field(default_factory=_new_id)
    section_id: str
    data_point_id: Optional[str] = Field(None, description="None covers the whole section")
    title: str
    exception_type: str
    justification: str
    status: str = Field(default=ExceptionStatus.PENDING.value)
    requested_by: str
    requested_at: datetime = Field(default_factory=_utcnow)
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    review_comments: Optional[str] = None
    expires_at: Optional[datetime] = None

    model_config = {"extra": "forbid"}


# =============================================================================
# Audit
# =============================================================================


class FieldChange(BaseModel):
    """One field-level difference, displayed values only."""
    field: str
    old_value: str = ""
    new_value: str = ""

    model_config = {"extra": "forbid", "frozen": True}


class AuditLogEntry(BaseModel):
    """Immutable audit log record."""
    id: str = Field(default_factory=_new_id)
    timestamp: datetime = Field(default_factory=_utcnow)
    user_id: str
    user_name: str
    action: str
    entity_type: str
    entity_id: str
    change_note: Optional[str] = None
    changes: List[FieldChange] = Field(default_factory=list)
    chain_hash: str = Field(default="", description="SHA-256 link to the previous entry")

    model_config = {"extra": "forbid", "frozen": True}


class AuditChainVerification(BaseModel):
    """Outcome of recomputing the audit hash chain."""
    is_valid: bool
    entries_checked: int
    broken_entry_id: Optional[str] = None
    message: str = ""

    model_config = {"extra": "forbid"}


# =============================================================================
# Reminders
# =============================================================================


class ReminderConfiguration(BaseModel):
    """Reminder settings for one reporting period."""
    id: str = Field(default_factory=_new_id)
    period_id: str
    enabled: bool = True
    days_before_deadline: List[int] = Field(default_factory=lambda: [7, 3, 1])
    check_frequency_hours: int = 24
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = {"extra": "forbid"}


class ReminderHistory(BaseModel):
    """A reminder sent by an external reminder process."""
    id: str = Field(default_factory=_new_id)
    data_point_id: str
    recipient_user_id: str
    recipient_email: str = ""
    sent_at: datetime = Field(default_factory=_utcnow)
    reminder_type: str = Field(default="missing", description="missing or incomplete")
    days_until_deadline: int = 0
    deadline_date: Optional[str] = None
    email_sent: bool = False
    error_message: Optional[str] = None

    model_config = {"extra": "forbid"}


# =============================================================================
# Requests
# =============================================================================


class CreateReportingPeriodRequest(BaseModel):
    name: str = ""
    start_date: str = ""
    end_date: str = ""
    reporting_mode: str = ReportingMode.SIMPLIFIED.value
    report_scope: str = "single-company"
    owner_id: str = ""

    model_config = {"extra": "forbid"}


class UpdateReportingPeriodRequest(BaseModel):
    name: str = ""
    start_date: str = ""
    end_date: str = ""
    reporting_mode: str = ReportingMode.SIMPLIFIED.value
    report_scope: str = "single-company"
    updated_by: str = ""

    model_config = {"extra": "forbid"}


class UpdateSectionRequest(BaseModel):
    """Partial section update; ``None`` keeps the current value."""
    owner_id: Optional[str] = None
    is_enabled: Optional[bool] = None
    updated_by: str = ""
    change_note: Optional[str] = None

    model_config = {"extra": "forbid"}


class _DataPointPayload(BaseModel):
    """Fields shared by data point create and update requests."""
    type: str = "narrative"
    classification: Optional[str] = None
    title: str = ""
    content: str = ""
    value: Optional[str] = None
    unit: Optional[str] = None
    owner_id: str = ""
    contributor_ids: List[str] = Field(default_factory=list)
    source: str = ""
    information_type: str = ""
    assumptions: Optional[str] = None
    completeness_status: str = ""
    review_status: Optional[str] = None
    deadline: Optional[str] = None
    estimate_type: Optional[str] = None
    estimate_method: Optional[str] = None
    confidence_level: Optional[str] = None
    estimate_input_sources: List[EstimateInputSource] = Field(default_factory=list)
    source_references: List[NarrativeSourceReference] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class CreateDataPointRequest(_DataPointPayload):
    section_id: str = ""
    created_by: str = ""


class UpdateDataPointRequest(_DataPointPayload):
    """Full replacement of the editable fields of a data point.

    ``deadline=None`` keeps the current deadline.
    """
    updated_by: str = ""
    change_note: Optional[str] = None


class ApproveDataPointRequest(BaseModel):
    reviewed_by: str = ""
    review_comments: Optional[str] = None

    model_config = {"extra": "forbid"}


class RequestChangesRequest(BaseModel):
    reviewed_by: str = ""
    review_comments: str = ""

    model_config = {"extra": "forbid"}


class UpdateDataPointStatusRequest(BaseModel):
    completeness_status: str = ""
    updated_by: str = ""
    change_note: Optional[str] = None

    model_config = {"extra": "forbid"}


class FlagMissingDataRequest(BaseModel):
    flagged_by: str = ""
    missing_reason_category: str = ""
    missing_reason: str = ""

    model_config = {"extra": "forbid"}


class UnflagMissingDataRequest(BaseModel):
    unflagged_by: str = ""
    change_note: Optional[str] = None

    model_config = {"extra": "forbid"}


class TransitionGapStatusRequest(BaseModel):
    """Gap status transition; the estimate triple is needed for 'estimated'."""
    transitioned_by: str = ""
    target_status: str = ""
    change_note: Optional[str] = None
    estimate_type: Optional[str] = None
    estimate_method: Optional[str] = None
    confidence_level: Optional[str] = None

    model_config = {"extra": "forbid"}


class FlagProvenanceRequest(BaseModel):
    flagged_by: str = ""
    reason: str = ""

    model_config = {"extra": "forbid"}


class CreateEvidenceRequest(BaseModel):
    section_id: str = ""
    title: str = ""
    description: Optional[str] = None
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    source_url: Optional[str] = None
    uploaded_by: str = ""

    model_config = {"extra": "forbid"}


class CreateValidationRuleRequest(BaseModel):
    section_id: str = ""
    rule_type: str = ""
    target_field: Optional[str] = None
    parameters: Optional[str] = None
    error_message: str = ""
    created_by: str = ""

    model_config = {"extra": "forbid"}


class UpdateValidationRuleRequest(BaseModel):
    rule_type: str = ""
    target_field: Optional[str] = None
    parameters: Optional[str] = None
    error_message: str = ""
    is_active: bool = True
    updated_by: str = ""

    model_config = {"extra": "forbid"}


class CreateGapRequest(BaseModel):
    section_id: str = ""
    title: str = ""
    description: str = ""
    impact: str = GapImpact.MEDIUM.value
    improvement_plan: Optional[str] = None
    target_date: Optional[str] = None
    created_by: str = ""

    model_config = {"extra": "forbid"}


class UpdateGapRequest(BaseModel):
    title: str = ""
    description: str = ""
    impact: str = GapImpact.MEDIUM.value
    improvement_plan: Optional[str] = None
    target_date: Optional[str] = None
    updated_by: str = ""
    change_note: Optional[str] = None

    model_config = {"extra": "forbid"}


class GapResolutionRequest(BaseModel):
    """Resolve or reopen a gap."""
    user_id: str = ""
    change_note: Optional[str] = None

    model_config = {"extra": "forbid"}


class CreateCompletionExceptionRequest(BaseModel):
    section_id: str = ""
    data_point_id: Optional[str] = None
    title: str = ""
    exception_type: str = ""
    justification: str = ""
    requested_by: str = ""
    expires_at: Optional[str] = None

    model_config = {"extra": "forbid"}


class ReviewCompletionExceptionRequest(BaseModel):
    reviewed_by: str = ""
    review_comments: Optional[str] = None

    model_config = {"extra": "forbid"}


class RunValidationRequest(BaseModel):
    """Consistency validation run; empty ``rule_types`` runs every pass."""
    period_id: str = ""
    validated_by: str = ""
    rule_types: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class PublishReportRequest(BaseModel):
    period_id: str = ""
    published_by: str = ""
    override_validation: bool = False
    override_justification: Optional[str] = None

    model_config = {"extra": "forbid"}


# =============================================================================
# Results
# =============================================================================


class MissingFieldDetail(BaseModel):
    """A named field that blocks an operation, with the reason."""
    field: str
    reason: str

    model_config = {"extra": "forbid"}


class OperationResult(BaseModel):
    """Outcome of a store operation.

    Expected business failures are returned through this value rather
    than raised: ``is_valid`` is False and ``error_message`` carries the
    message, optionally with ``missing_fields`` descriptors.
    """
    is_valid: bool = Field(..., description="Whether the operation succeeded")
    error_message: Optional[str] = Field(None, description="Failure message")
    missing_fields: List[MissingFieldDetail] = Field(default_factory=list)
    data: Any = Field(None, description="Entity or payload on success")

    model_config = {"extra": "forbid"}

    @classmethod
    def ok(cls, data: Any = None) -> OperationResult:
        return cls(is_valid=True, data=data)

    @classmethod
    def fail(
        cls,
        message: str,
        missing_fields: Optional[List[MissingFieldDetail]] = None,
    ) -> OperationResult:
        return cls(
            is_valid=False,
            error_message=message,
            missing_fields=list(missing_fields or []),
        )


class ValidationIssue(BaseModel):
    """One finding of a consistency validation run."""
    id: str = Field(default_factory=_new_id)
    rule_type: str
    severity: str
    message: str
    section_id: Optional[str] = None
    section_title: Optional[str] = None
    affected_data_point_ids: List[str] = Field(default_factory=list)
    affected_evidence_ids: List[str] = Field(default_factory=list)
    field_name: Optional[str] = None
    expected_value: Optional[str] = None
    actual_value: Optional[str] = None
    detected_at: datetime = Field(default_factory=_utcnow)

    model_config = {"extra": "forbid"}

    @field_validator("severity")
    @classmethod
    def validate_severity(cls, v: str) -> str:
        """Restrict severity to error, warning or info."""
        if v not in enum_values(IssueSeverity):
            raise ValueError(f"severity must be one of {enum_values(IssueSeverity)}")
        return v


class ValidationResult(BaseModel):
    """Aggregate of a consistency validation run."""
    status: str
    period_id: str
    period_name: str = ""
    validated_at: datetime = Field(default_factory=_utcnow)
    validated_by: str = ""
    issues: List[ValidationIssue] = Field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0
    info_count: int = 0
    can_publish: bool = False
    summary: str = ""

    model_config = {"extra": "forbid"}


class PublishReportResult(BaseModel):
    period_id: str
    period_name: str
    published_at: datetime
    published_by: str
    validation_overridden: bool = False
    override_justification: Optional[str] = None
    validation_result: ValidationResult

    model_config = {"extra": "forbid"}


class CompletenessBreakdown(BaseModel):
    """Completeness counters for one grouping."""
    id: str
    name: str
    missing_count: int = 0
    incomplete_count: int = 0
    complete_count: int = 0
    not_applicable_count: int = 0
    total_count: int = 0
    complete_percentage: float = 0.0

    model_config = {"extra": "forbid"}


class CompletenessStats(BaseModel):
    overall: CompletenessBreakdown
    by_category: List[CompletenessBreakdown] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class SectionCompletenessDetail(BaseModel):
    section_id: str
    section_title: str
    category: str
    total_data_points: int = 0
    complete_data_points: int = 0
    exempted_data_points: int = 0
    completeness_percentage: float = 0.0
    completeness_with_exceptions_percentage: float = 0.0
    accepted_exception_ids: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class CompletenessValidationSummary(BaseModel):
    total_data_points: int = 0
    complete_data_points: int = 0
    exempted_data_points: int = 0
    completeness_percentage: float = 0.0
    completeness_with_exceptions_percentage: float = 0.0

    model_config = {"extra": "forbid"}


class CompletenessValidationReport(BaseModel):
    """Per-period completeness report that honours accepted exceptions."""
    period_id: str
    period_name: str
    sections: List[SectionCompletenessDetail] = Field(default_factory=list)
    summary: CompletenessValidationSummary = Field(default_factory=CompletenessValidationSummary)
    generated_at: datetime = Field(default_factory=_utcnow)

    model_config = {"extra": "forbid"}


__all__ = [
    # Helpers
    "is_blank",
    "enum_values",
    "is_member",
    # Enums
    "InformationType",
    "CompletenessStatus",
    "ReviewStatus",
    "GapStatus",
    "EstimateType",
    "ConfidenceLevel",
    "MissingReasonCategory",
    "SectionCategory",
    "SectionProgressStatus",
    "RuleKind",
    "UserRole",
    "ReportingMode",
    "PeriodStatus",
    "ExceptionType",
    "ExceptionStatus",
    "GapImpact",
    "IssueSeverity",
    "ValidationStatus",
    "ConsistencyPass",
    # Entities
    "User",
    "ReportingPeriod",
    "SectionCatalogItem",
    "ReportSection",
    "SectionSummary",
    "EstimateInputSource",
    "NarrativeSourceReference",
    "GapStatusHistoryEntry",
    "DataPoint",
    "Evidence",
    "ValidationRule",
    "Gap",
    "CompletionException",
    "FieldChange",
    "AuditLogEntry",
    "AuditChainVerification",
    "ReminderConfiguration",
    "ReminderHistory",
    # Requests
    "CreateReportingPeriodRequest",
    "UpdateReportingPeriodRequest",
    "UpdateSectionRequest",
    "CreateDataPointRequest",
    "UpdateDataPointRequest",
    "ApproveDataPointRequest",
    "RequestChangesRequest",
    "UpdateDataPointStatusRequest",
    "FlagMissingDataRequest",
    "UnflagMissingDataRequest",
    "TransitionGapStatusRequest",
    "FlagProvenanceRequest",
    "CreateEvidenceRequest",
    "CreateValidationRuleRequest",
    "UpdateValidationRuleRequest",
    "CreateGapRequest",
    "UpdateGapRequest",
    "GapResolutionRequest",
    "CreateCompletionExceptionRequest",
    "ReviewCompletionExceptionRequest",
    "RunValidationRequest",
    "PublishReportRequest",
    # Results
    "MissingFieldDetail",
    "OperationResult",
    "ValidationIssue",
    "ValidationResult",
    "PublishReportResult",
    "CompletenessBreakdown",
    "CompletenessStats",
    "SectionCompletenessDetail",
    "CompletenessValidationSummary",
    "CompletenessValidationReport",
]
