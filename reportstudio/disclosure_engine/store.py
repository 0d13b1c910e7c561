# -*- coding: utf-8 -*-
"""
Entity Store - Report Studio Disclosure Engine

Owns every mutable collection of the disclosure engine (periods,
sections, data points, evidence, validation rules, gaps, completion
exceptions, reminder records and the audit log) behind one exclusive
lock. Every public method acquires the lock for its whole duration and
is the unit of atomicity: validate against a prospective copy, commit,
recompute derived fields, append exactly one audit entry, release.

Public methods never call other public methods, and the engines they
delegate to (completeness, rules, gap workflow, consistency, audit) are
invoked while the lock is already held.

Failure Model:
    - Expected business failures (blank fields, invalid enum members,
      rule rejections, permission denials, illegal transitions, unknown
      ids) are returned as ``OperationResult(is_valid=False, ...)``.
    - Structural integrity violations (deleting an entity that still has
      dependents, id collisions, audit chain misuse) raise subclasses of
      ``reportstudio.exceptions.InvariantViolation``.
    - Entities handed out are deep copies; callers never hold references
      into store state.

Example:
    >>> from reportstudio.disclosure_engine.store import EntityStore
    >>> from reportstudio.disclosure_engine.models import CreateReportingPeriodRequest
    >>> store = EntityStore()
    >>> result = store.create_period(CreateReportingPeriodRequest(
    ...     name="FY 2024", start_date="2024-01-01", end_date="2024-12-31",
    ...     owner_id="user-1",
    ... ))
    >>> result.is_valid
    True

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Set, TypeVar, Union
from urllib.parse import urlparse

from pydantic import BaseModel

from reportstudio.disclosure_engine.audit_trail import AuditTrailRecorder
from reportstudio.disclosure_engine.completeness import CompletenessCalculator
from reportstudio.disclosure_engine.config import DisclosureEngineConfig, get_config
from reportstudio.disclosure_engine.consistency_validator import ConsistencyValidator
from reportstudio.disclosure_engine.gap_workflow import (
    PERMISSION_DENIED_MESSAGE,
    GapWorkflowEngine,
)
from reportstudio.disclosure_engine.metrics import (
    record_data_point_operation,
    record_gap_transition,
    record_invariant_violation,
    record_operation_duration,
    record_publication,
    set_data_point_count,
)
from reportstudio.disclosure_engine.models import (
    ApproveDataPointRequest,
    AuditChainVerification,
    AuditLogEntry,
    CompletenessStats,
    CompletenessStatus,
    CompletionException,
    ConfidenceLevel,
    CreateCompletionExceptionRequest,
    CreateDataPointRequest,
    CreateEvidenceRequest,
    CreateGapRequest,
    CreateReportingPeriodRequest,
    CreateValidationRuleRequest,
    DataPoint,
    EstimateType,
    Evidence,
    ExceptionStatus,
    ExceptionType,
    FieldChange,
    FlagMissingDataRequest,
    FlagProvenanceRequest,
    Gap,
    GapImpact,
    GapResolutionRequest,
    InformationType,
    MissingReasonCategory,
    OperationResult,
    PeriodStatus,
    PublishReportRequest,
    PublishReportResult,
    ReminderConfiguration,
    ReminderHistory,
    ReportingMode,
    ReportingPeriod,
    ReportSection,
    RequestChangesRequest,
    ReviewCompletionExceptionRequest,
    ReviewStatus,
    RunValidationRequest,
    SectionCatalogItem,
    SectionSummary,
    TransitionGapStatusRequest,
    UnflagMissingDataRequest,
    UpdateDataPointRequest,
    UpdateDataPointStatusRequest,
    UpdateGapRequest,
    UpdateReportingPeriodRequest,
    UpdateSectionRequest,
    UpdateValidationRuleRequest,
    User,
    UserRole,
    ValidationResult,
    ValidationRule,
    enum_values,
    is_blank,
    is_member,
)
from reportstudio.disclosure_engine.provenance import ProvenanceTracker
from reportstudio.disclosure_engine.rule_engine import (
    ValidationRuleEngine,
    parse_date_text,
)
from reportstudio.disclosure_engine.seed import (
    catalog_for_mode,
    default_section_catalog,
    sample_users,
)
from reportstudio.exceptions import (
    DependentEntityError,
    DuplicateEntityError,
    InvariantViolation,
)

logger = logging.getLogger(__name__)

__all__ = [
    "EntityStore",
]

_M = TypeVar("_M", bound=BaseModel)
_DataPointPayload = Union[CreateDataPointRequest, UpdateDataPointRequest]


# ---------------------------------------------------------------------------
# Messages and tracked fields
# ---------------------------------------------------------------------------

_APPROVED_READ_ONLY = (
    "Cannot modify approved data points. "
    "Only admins can make changes to approved entries."
)
_UNKNOWN_USER = "Unknown User"

_PERIOD_TRACKED_FIELDS = (
    ("Name", "name"),
    ("StartDate", "start_date"),
    ("EndDate", "end_date"),
    ("ReportingMode", "reporting_mode"),
    ("ReportScope", "report_scope"),
    ("Status", "status"),
)
_SECTION_TRACKED_FIELDS = (
    ("OwnerId", "owner_id"),
    ("IsEnabled", "is_enabled"),
)
_RULE_TRACKED_FIELDS = (
    ("RuleType", "rule_type"),
    ("TargetField", "target_field"),
    ("Parameters", "parameters"),
    ("ErrorMessage", "error_message"),
    ("IsActive", "is_active"),
)
_GAP_TRACKED_FIELDS = (
    ("Title", "title"),
    ("Description", "description"),
    ("Impact", "impact"),
    ("ImprovementPlan", "improvement_plan"),
    ("TargetDate", "target_date"),
    ("Resolved", "resolved"),
)
_EXCEPTION_TRACKED_FIELDS = (
    ("Status", "status"),
    ("ReviewComments", "review_comments"),
)


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _copy(entity: _M) -> _M:
    return entity.model_copy(deep=True)


def _instrumented(operation: str) -> Callable:
    """Record duration and invariant violations of a store operation."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(self: "EntityStore", *args: Any, **kwargs: Any) -> Any:
            start_time = time.time()
            try:
                return func(self, *args, **kwargs)
            except InvariantViolation as exc:
                record_invariant_violation(type(exc).__name__)
                raise
            finally:
                record_operation_duration(operation, time.time() - start_time)

        return wrapper

    return decorator


def _is_http_url(url: str) -> bool:
    parsed = urlparse(url.strip())
    return parsed.scheme.lower() in ("http", "https") and bool(parsed.netloc)


class EntityStore:
    """In-memory disclosure store guarded by one exclusive lock.

    Attributes:
        config: Engine configuration.
        _lock: The single store lock.
        _audit: Append-only audit trail.
    """

    def __init__(self, config: Optional[DisclosureEngineConfig] = None) -> None:
        """Initialize the store and load the seed directory and catalog.

        Args:
            config: Optional configuration; defaults to the global config.
        """
        self.config = config or get_config()
        self._lock = threading.Lock()

        self._users: Dict[str, User] = {}
        self._catalog: List[SectionCatalogItem] = []
        self._periods: Dict[str, ReportingPeriod] = {}
        self._sections: Dict[str, ReportSection] = {}
        self._data_points: Dict[str, DataPoint] = {}
        self._evidence: Dict[str, Evidence] = {}
        self._rules: Dict[str, ValidationRule] = {}
        self._gaps: Dict[str, Gap] = {}
        self._exceptions: Dict[str, CompletionException] = {}
        self._reminder_configs: Dict[str, ReminderConfiguration] = {}
        self._reminder_history: List[ReminderHistory] = []

        self._provenance = ProvenanceTracker(self.config.genesis_seed)
        self._completeness = CompletenessCalculator()
        self._rule_engine = ValidationRuleEngine()
        self._gap_workflow = GapWorkflowEngine()
        self._validator = ConsistencyValidator()
        self._audit = AuditTrailRecorder(
            self._provenance, enable_provenance=self.config.enable_provenance,
        )

        if self.config.seed_sample_users:
            for user in sample_users():
                self._users[user.id] = user
        if self.config.seed_section_catalog:
            self._catalog.extend(default_section_catalog())

        logger.info(
            "EntityStore initialized: %d users, %d catalog items",
            len(self._users), len(self._catalog),
        )

    # ==================================================================
    # Internal helpers (lock must be held)
    # ==================================================================

    def _insert(self, collection: Dict[str, _M], entity: _M, entity_type: str) -> None:
        entity_id = getattr(entity, "id")
        if entity_id in collection:
            raise DuplicateEntityError(
                f"{entity_type} with ID '{entity_id}' already exists",
                entity_type=entity_type,
                entity_id=entity_id,
            )
        collection[entity_id] = entity

    def _user_name(self, user_id: Optional[str]) -> str:
        user = self._users.get(user_id or "")
        return user.name if user else _UNKNOWN_USER

    def _audit_entry(
        self,
        user_id: str,
        action: str,
        entity_type: str,
        entity_id: str,
        changes: Optional[List[FieldChange]] = None,
        change_note: Optional[str] = None,
    ) -> AuditLogEntry:
        return self._audit.record(
            user_id=user_id,
            user_name=self._user_name(user_id),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            changes=changes,
            change_note=change_note,
        )

    def _section_data_points(self, section_id: str) -> List[DataPoint]:
        return [dp for dp in self._data_points.values() if dp.section_id == section_id]

    def _period_sections(self, period_id: str) -> List[ReportSection]:
        return sorted(
            (s for s in self._sections.values() if s.period_id == period_id),
            key=lambda s: s.order,
        )

    def _period_of(self, section_id: str) -> Optional[ReportingPeriod]:
        section = self._sections.get(section_id)
        if section is None:
            return None
        return self._periods.get(section.period_id)

    def _refresh_section_progress(self, section_id: str) -> None:
        section = self._sections.get(section_id)
        if section is None:
            return
        section.progress_status = self._completeness.derive_section_progress(
            self._section_data_points(section_id),
        )

    def _find_overlap(
        self,
        start: Any,
        end: Any,
        exclude_id: Optional[str] = None,
    ) -> Optional[ReportingPeriod]:
        for period in self._periods.values():
            if period.id == exclude_id:
                continue
            if start <= period.end_date and end >= period.start_date:
                return period
        return None

    def _check_period_dates(
        self,
        start_text: str,
        end_text: str,
        exclude_id: Optional[str] = None,
    ) -> Union[str, tuple]:
        start = parse_date_text(start_text)
        end = parse_date_text(end_text)
        if start is None or end is None:
            return "Invalid date format. Please provide valid dates."
        if start >= end:
            return "Start date must be before end date."
        overlap = self._find_overlap(start, end, exclude_id)
        if overlap is not None:
            return (
                f"Reporting period overlaps with existing period '{overlap.name}' "
                f"({overlap.start_date.isoformat()} - {overlap.end_date.isoformat()})."
            )
        return start, end

    def _instantiate_sections(self, period: ReportingPeriod) -> None:
        """Create missing catalog sections for the period's reporting mode."""
        existing = {
            s.catalog_code for s in self._sections.values() if s.period_id == period.id
        }
        wanted = catalog_for_mode(self._catalog, period.reporting_mode)
        next_order = len(existing) + 1
        for item in wanted:
            if item.code in existing:
                continue
            self._insert(self._sections, ReportSection(
                period_id=period.id,
                title=item.title,
                category=item.category,
                description=item.description,
                owner_id=period.owner_id,
                order=next_order,
                catalog_code=item.code,
            ), "ReportSection")
            next_order += 1

    def _section_dependents(self, section_id: str) -> Dict[str, int]:
        counts = {
            "DataPoint": sum(1 for dp in self._data_points.values() if dp.section_id == section_id),
            "Evidence": sum(1 for ev in self._evidence.values() if ev.section_id == section_id),
            "ValidationRule": sum(1 for r in self._rules.values() if r.section_id == section_id),
            "Gap": sum(1 for g in self._gaps.values() if g.section_id == section_id),
            "CompletionException": sum(
                1 for e in self._exceptions.values() if e.section_id == section_id
            ),
        }
        return {name: count for name, count in counts.items() if count}

    def _check_data_point_payload(
        self,
        payload: _DataPointPayload,
        section_id: Optional[str] = None,
    ) -> Optional[str]:
        """Validate the caller-supplied fields of a data point write.

        Args:
            payload: Create or update request.
            section_id: Requested section (create only); None skips the
                SectionId check.

        Returns:
            Failure message, or None if the payload is acceptable.
        """
        if is_blank(payload.title):
            return "Title is required."
        if is_blank(payload.content):
            return "Content is required."
        if section_id is not None and is_blank(section_id):
            return "SectionId is required."

        if not is_blank(payload.owner_id):
            if payload.owner_id not in self._users:
                return f"Owner with ID '{payload.owner_id}' not found."
            if payload.owner_id in payload.contributor_ids:
                return "Owner cannot also be listed as a contributor."
        for contributor_id in payload.contributor_ids:
            if contributor_id not in self._users:
                return f"Contributor with ID '{contributor_id}' not found."

        if is_blank(payload.source):
            return "Source is required."
        if is_blank(payload.information_type):
            return "InformationType is required."
        if not is_member(InformationType, payload.information_type):
            return f"InformationType must be one of: {', '.join(enum_values(InformationType))}."

        if payload.information_type == InformationType.ESTIMATE.value:
            if is_blank(payload.estimate_type):
                return "EstimateType is required when InformationType is 'estimate'."
            if not is_member(EstimateType, payload.estimate_type):
                return f"EstimateType must be one of: {', '.join(enum_values(EstimateType))}."
            if is_blank(payload.estimate_method):
                return "EstimateMethod is required when InformationType is 'estimate'."
            if is_blank(payload.confidence_level):
                return "ConfidenceLevel is required when InformationType is 'estimate'."
            if not is_member(ConfidenceLevel, payload.confidence_level):
                return f"ConfidenceLevel must be one of: {', '.join(enum_values(ConfidenceLevel))}."

        if not is_blank(payload.completeness_status):
            if not is_member(CompletenessStatus, payload.completeness_status):
                return (
                    "CompletenessStatus must be one of: "
                    f"{', '.join(enum_values(CompletenessStatus))}."
                )
            message = self._completeness.require_owner_for_complete(
                payload.completeness_status, payload.owner_id,
            )
            if message:
                return message

        if payload.review_status is not None and not is_member(ReviewStatus, payload.review_status):
            return f"ReviewStatus must be one of: {', '.join(enum_values(ReviewStatus))}."
        return None

    def _apply_payload(self, dp: DataPoint, payload: _DataPointPayload) -> None:
        dp.type = payload.type
        dp.classification = payload.classification
        dp.title = payload.title
        dp.content = payload.content
        dp.value = payload.value
        dp.unit = payload.unit
        dp.owner_id = payload.owner_id
        dp.contributor_ids = list(payload.contributor_ids)
        dp.source = payload.source
        dp.information_type = payload.information_type
        dp.assumptions = payload.assumptions
        dp.estimate_type = payload.estimate_type
        dp.estimate_method = payload.estimate_method
        dp.confidence_level = payload.confidence_level
        dp.estimate_input_sources = [_copy(s) for s in payload.estimate_input_sources]
        dp.source_references = [_copy(r) for r in payload.source_references]
        if payload.deadline is not None:
            dp.deadline = payload.deadline
        if payload.review_status is not None:
            dp.review_status = payload.review_status
        if is_blank(payload.completeness_status):
            dp.completeness_status = self._completeness.derive_completeness_status(dp)
        else:
            dp.completeness_status = payload.completeness_status

    def _run_rules(self, dp: DataPoint) -> Optional[str]:
        rules = [r for r in self._rules.values() if r.section_id == dp.section_id]
        return self._rule_engine.evaluate(rules, dp, self._period_of(dp.section_id))

    def _commit_data_point(
        self,
        before: DataPoint,
        after: DataPoint,
        user_id: str,
        action: str,
        change_note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Optional[AuditLogEntry]:
        """Commit a prospective data point and audit the diff.

        Returns:
            The audit entry, or None when nothing tracked changed (in
            which case nothing is committed).
        """
        changes = self._audit.diff_data_point(before, after)
        if not changes:
            return None
        after.updated_at = now or _utcnow()
        self._data_points[after.id] = after
        self._refresh_section_progress(after.section_id)
        return self._audit_entry(user_id, action, "DataPoint", after.id, changes, change_note)

    @staticmethod
    def _rejected(operation: str, message: str, **kwargs: Any) -> OperationResult:
        record_data_point_operation(operation, "rejected")
        return OperationResult.fail(message, **kwargs)

    # ==================================================================
    # Users and catalog
    # ==================================================================

    def get_users(self) -> List[User]:
        with self._lock:
            return [_copy(u) for u in self._users.values()]

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return _copy(user) if user else None

    def get_section_catalog(self, include_deprecated: bool = False) -> List[SectionCatalogItem]:
        with self._lock:
            return [
                _copy(item) for item in self._catalog
                if include_deprecated or not item.is_deprecated
            ]

    # ==================================================================
    # Reporting periods
    # ==================================================================

    @_instrumented("create_period")
    def create_period(self, request: CreateReportingPeriodRequest) -> OperationResult:
        """Create a reporting period and instantiate its sections.

        The new period becomes the only active one: every other active
        period is closed. Sections are created from the catalog for the
        requested reporting mode, owned by the period owner.

        Args:
            request: Period definition.

        Returns:
            OperationResult carrying the new ReportingPeriod.
        """
        with self._lock:
            if is_blank(request.name):
                return OperationResult.fail("Name is required.")
            checked = self._check_period_dates(request.start_date, request.end_date)
            if isinstance(checked, str):
                return OperationResult.fail(checked)
            start, end = checked
            if not is_member(ReportingMode, request.reporting_mode):
                return OperationResult.fail(
                    f"ReportingMode must be one of: {', '.join(enum_values(ReportingMode))}."
                )
            if is_blank(request.owner_id):
                return OperationResult.fail("OwnerId is required.")
            if request.owner_id not in self._users:
                return OperationResult.fail(f"Owner with ID '{request.owner_id}' not found.")

            period = ReportingPeriod(
                name=request.name.strip(),
                start_date=start,
                end_date=end,
                reporting_mode=request.reporting_mode,
                report_scope=request.report_scope,
                owner_id=request.owner_id,
            )
            self._close_active_periods(request.owner_id, period.name)
            self._insert(self._periods, period, "ReportingPeriod")
            self._instantiate_sections(period)
            self._audit_entry(
                request.owner_id, "create", "ReportingPeriod", period.id,
                change_note=f"Created reporting period '{period.name}'",
            )
            return OperationResult.ok(_copy(period))

    def _close_active_periods(self, closed_by: str, new_period_name: str) -> None:
        """Close every active period in favour of a newly created one."""
        for period_id, other in list(self._periods.items()):
            if other.status != PeriodStatus.ACTIVE.value:
                continue
            closed = _copy(other)
            closed.status = PeriodStatus.CLOSED.value
            self._periods[period_id] = closed
            self._audit_entry(
                closed_by, "update", "ReportingPeriod", period_id,
                self._audit.diff(other, closed, _PERIOD_TRACKED_FIELDS),
                change_note=f"Closed by new reporting period '{new_period_name}'",
            )

    @_instrumented("update_period")
    def update_period(
        self,
        period_id: str,
        request: UpdateReportingPeriodRequest,
    ) -> OperationResult:
        """Edit the configuration of a period before reporting has started."""
        with self._lock:
            period = self._periods.get(period_id)
            if period is None:
                return OperationResult.fail("Reporting period not found.")
            section_ids = {s.id for s in self._sections.values() if s.period_id == period_id}
            if any(dp.section_id in section_ids for dp in self._data_points.values()):
                return OperationResult.fail(
                    "Cannot edit configuration after reporting has started. "
                    "Reporting is considered started when data points have been "
                    "added to sections."
                )
            if is_blank(request.updated_by):
                return OperationResult.fail("UpdatedBy is required.")
            if is_blank(request.name):
                return OperationResult.fail("Name is required.")
            checked = self._check_period_dates(
                request.start_date, request.end_date, exclude_id=period_id,
            )
            if isinstance(checked, str):
                return OperationResult.fail(checked)
            if not is_member(ReportingMode, request.reporting_mode):
                return OperationResult.fail(
                    f"ReportingMode must be one of: {', '.join(enum_values(ReportingMode))}."
                )

            updated = _copy(period)
            updated.name = request.name.strip()
            updated.start_date, updated.end_date = checked
            updated.reporting_mode = request.reporting_mode
            updated.report_scope = request.report_scope

            changes = self._audit.diff(period, updated, _PERIOD_TRACKED_FIELDS)
            if not changes:
                return OperationResult.ok(_copy(period))

            self._periods[period_id] = updated
            if updated.reporting_mode != period.reporting_mode:
                self._resync_sections(updated, request.updated_by)
            self._audit_entry(request.updated_by, "update", "ReportingPeriod", period_id, changes)
            return OperationResult.ok(_copy(updated))

    def _resync_sections(self, period: ReportingPeriod, updated_by: str) -> None:
        """Align a period's sections with a changed reporting mode.

        Sections outside the new mode are dropped unless something still
        references them; sections the new mode adds are instantiated.
        """
        wanted_codes = {item.code for item in catalog_for_mode(self._catalog, period.reporting_mode)}
        for section in self._period_sections(period.id):
            if section.catalog_code in wanted_codes:
                continue
            if not self._section_dependents(section.id):
                del self._sections[section.id]
                self._audit_entry(
                    updated_by, "delete", "ReportSection", section.id,
                    change_note=f"Removed section '{section.title}' on reporting mode change",
                )
        self._instantiate_sections(period)

    def get_periods(self) -> List[ReportingPeriod]:
        with self._lock:
            return [_copy(p) for p in self._periods.values()]

    def get_period(self, period_id: str) -> Optional[ReportingPeriod]:
        with self._lock:
            period = self._periods.get(period_id)
            return _copy(period) if period else None

    # ==================================================================
    # Sections
    # ==================================================================

    def get_sections(self, period_id: Optional[str] = None) -> List[ReportSection]:
        with self._lock:
            if period_id:
                return [_copy(s) for s in self._period_sections(period_id)]
            return [_copy(s) for s in self._sections.values()]

    def get_section(self, section_id: str) -> Optional[ReportSection]:
        with self._lock:
            section = self._sections.get(section_id)
            return _copy(section) if section else None

    @_instrumented("update_section")
    def update_section(self, section_id: str, request: UpdateSectionRequest) -> OperationResult:
        """Change the owner or enabled flag of a section."""
        with self._lock:
            section = self._sections.get(section_id)
            if section is None:
                return OperationResult.fail("Section not found.")
            if is_blank(request.updated_by):
                return OperationResult.fail("UpdatedBy is required.")
            if request.owner_id is not None and request.owner_id not in self._users:
                return OperationResult.fail(f"Owner with ID '{request.owner_id}' not found.")

            updated = _copy(section)
            if request.owner_id is not None:
                updated.owner_id = request.owner_id
            if request.is_enabled is not None:
                updated.is_enabled = request.is_enabled

            changes = self._audit.diff(section, updated, _SECTION_TRACKED_FIELDS)
            if not changes:
                return OperationResult.ok(_copy(section))
            self._sections[section_id] = updated
            self._audit_entry(
                request.updated_by, "update", "ReportSection", section_id,
                changes, request.change_note,
            )
            return OperationResult.ok(_copy(updated))

    def get_section_summaries(self, period_id: Optional[str] = None) -> List[SectionSummary]:
        """Sections with counters, completeness percentage and owner name."""
        with self._lock:
            sections = (
                self._period_sections(period_id) if period_id
                else list(self._sections.values())
            )
            summaries: List[SectionSummary] = []
            for section in sections:
                dps = self._section_data_points(section.id)
                summaries.append(SectionSummary(
                    **section.model_dump(),
                    data_point_count=len(dps),
                    evidence_count=sum(
                        1 for ev in self._evidence.values() if ev.section_id == section.id
                    ),
                    gap_count=sum(
                        1 for gap in self._gaps.values()
                        if gap.section_id == section.id and not gap.resolved
                    ),
                    completeness_percentage=self._completeness.section_completeness_percentage(dps),
                    owner_name=self._user_name(section.owner_id) if section.owner_id else "",
                ))
            return summaries

    @_instrumented("delete_section")
    def delete_section(self, section_id: str, deleted_by: str = "") -> bool:
        """Delete a section that nothing references any more.

        Returns:
            False if the section does not exist.

        Raises:
            DependentEntityError: If data points, evidence, rules, gaps
                or completion exceptions still reference the section.
        """
        with self._lock:
            section = self._sections.get(section_id)
            if section is None:
                return False
            dependents = self._section_dependents(section_id)
            if dependents:
                raise DependentEntityError(
                    f"Cannot delete section '{section.title}' while other entities reference it",
                    entity_type="ReportSection",
                    entity_id=section_id,
                    dependents=dependents,
                )
            del self._sections[section_id]
            self._audit_entry(
                deleted_by or "system", "delete", "ReportSection", section_id,
                change_note=f"Deleted section '{section.title}'",
            )
            return True

    # ==================================================================
    # Data points
    # ==================================================================

    @_instrumented("create_data_point")
    def create_data_point(self, request: CreateDataPointRequest) -> OperationResult:
        """Validate, rule-check and create a data point.

        When no completeness status is supplied it is derived from the
        data point's content, evidence links and owner.

        Args:
            request: Data point fields.

        Returns:
            OperationResult carrying the new DataPoint.
        """
        with self._lock:
            message = self._check_data_point_payload(request, section_id=request.section_id)
            if message:
                return self._rejected("create", message)
            if request.section_id not in self._sections:
                return self._rejected("create", f"Section with ID '{request.section_id}' not found.")

            now = _utcnow()
            dp = DataPoint(section_id=request.section_id, created_at=now, updated_at=now)
            self._apply_payload(dp, request)

            message = self._run_rules(dp)
            if message:
                return self._rejected("create", message)

            self._insert(self._data_points, dp, "DataPoint")
            self._refresh_section_progress(dp.section_id)
            actor = request.created_by or request.owner_id or "system"
            self._audit_entry(
                actor, "create", "DataPoint", dp.id,
                change_note=f"Created data point '{dp.title}'",
            )
            record_data_point_operation("create", "success")
            set_data_point_count(len(self._data_points))
            return OperationResult.ok(_copy(dp))

    @_instrumented("update_data_point")
    def update_data_point(self, data_point_id: str, request: UpdateDataPointRequest) -> OperationResult:
        """Replace the editable fields of a data point.

        Approved data points only accept review-status-only changes. An
        update that changes no tracked field commits nothing and writes
        no audit entry.
        """
        with self._lock:
            current = self._data_points.get(data_point_id)
            if current is None:
                return self._rejected("update", "DataPoint not found.")

            prospective = _copy(current)
            self._apply_payload(prospective, request)

            changes = self._audit.diff_data_point(current, prospective)
            if current.review_status == ReviewStatus.APPROVED.value and any(
                change.field != "ReviewStatus" for change in changes
            ):
                return self._rejected("update", _APPROVED_READ_ONLY)

            message = self._check_data_point_payload(request)
            if message:
                return self._rejected("update", message)

            message = self._run_rules(prospective)
            if message:
                return self._rejected("update", message)

            actor = request.updated_by or current.owner_id or "system"
            entry = self._commit_data_point(
                current, prospective, actor, "update", request.change_note,
            )
            if entry is None:
                return OperationResult.ok(_copy(current))
            record_data_point_operation("update", "success")
            return OperationResult.ok(_copy(prospective))

    @_instrumented("delete_data_point")
    def delete_data_point(self, data_point_id: str, deleted_by: str = "") -> bool:
        """Delete a data point and its evidence links.

        The audit history of the data point is kept.

        Raises:
            DependentEntityError: If a completion exception references it.
        """
        with self._lock:
            dp = self._data_points.get(data_point_id)
            if dp is None:
                return False
            referencing = [
                exc.id for exc in self._exceptions.values()
                if exc.data_point_id == data_point_id
            ]
            if referencing:
                raise DependentEntityError(
                    f"Cannot delete data point '{dp.title}' while completion exceptions reference it",
                    entity_type="DataPoint",
                    entity_id=data_point_id,
                    dependents={"CompletionException": len(referencing)},
                )

            for evidence in self._evidence.values():
                if data_point_id in evidence.linked_data_point_ids:
                    evidence.linked_data_point_ids.remove(data_point_id)
            del self._data_points[data_point_id]
            self._refresh_section_progress(dp.section_id)
            self._audit_entry(
                deleted_by or "system", "delete", "DataPoint", data_point_id,
                change_note=f"Deleted data point '{dp.title}'",
            )
            record_data_point_operation("delete", "success")
            set_data_point_count(len(self._data_points))
            return True

    def get_data_point(self, data_point_id: str) -> Optional[DataPoint]:
        with self._lock:
            dp = self._data_points.get(data_point_id)
            return _copy(dp) if dp else None

    def get_data_points(
        self,
        section_id: Optional[str] = None,
        assigned_user_id: Optional[str] = None,
    ) -> List[DataPoint]:
        """Data points filtered by section and/or assignee (owner or contributor)."""
        with self._lock:
            results = []
            for dp in self._data_points.values():
                if section_id and dp.section_id != section_id:
                    continue
                if assigned_user_id and not (
                    dp.owner_id == assigned_user_id or assigned_user_id in dp.contributor_ids
                ):
                    continue
                results.append(_copy(dp))
            return results

    def get_data_points_for_period(self, period_id: str) -> List[DataPoint]:
        with self._lock:
            section_ids = {s.id for s in self._sections.values() if s.period_id == period_id}
            return [
                _copy(dp) for dp in self._data_points.values() if dp.section_id in section_ids
            ]

    # ------------------------------------------------------------------
    # Review workflow
    # ------------------------------------------------------------------

    def _review(
        self,
        data_point_id: str,
        reviewed_by: str,
        review_comments: Optional[str],
        target_status: str,
        action: str,
        verb: str,
    ) -> OperationResult:
        current = self._data_points.get(data_point_id)
        if current is None:
            return self._rejected(action, "DataPoint not found.")
        if is_blank(reviewed_by):
            return self._rejected(action, "ReviewedBy is required.")
        if reviewed_by not in self._users:
            return self._rejected(action, f"Reviewer with ID '{reviewed_by}' not found.")
        if current.review_status != ReviewStatus.READY_FOR_REVIEW.value:
            return self._rejected(
                action, f"Data point must be in 'ready-for-review' status to {verb}.",
            )

        now = _utcnow()
        prospective = _copy(current)
        prospective.review_status = target_status
        prospective.reviewed_by = reviewed_by
        prospective.reviewed_at = now
        prospective.review_comments = review_comments
        message = self._run_rules(prospective)
        if message:
            return self._rejected(action, message)
        self._commit_data_point(current, prospective, reviewed_by, action, review_comments, now)
        record_data_point_operation(action, "success")
        return OperationResult.ok(_copy(prospective))

    @_instrumented("approve_data_point")
    def approve_data_point(self, data_point_id: str, request: ApproveDataPointRequest) -> OperationResult:
        with self._lock:
            return self._review(
                data_point_id, request.reviewed_by, request.review_comments,
                ReviewStatus.APPROVED.value, "approve", "be approved",
            )

    @_instrumented("request_changes")
    def request_changes(self, data_point_id: str, request: RequestChangesRequest) -> OperationResult:
        """Send a data point back to its owner; comments are mandatory."""
        with self._lock:
            if data_point_id in self._data_points and is_blank(request.review_comments):
                return self._rejected(
                    "request-changes", "Review comments are required when requesting changes.",
                )
            return self._review(
                data_point_id, request.reviewed_by, request.review_comments,
                ReviewStatus.CHANGES_REQUESTED.value, "request-changes", "request changes",
            )

    # ------------------------------------------------------------------
    # Completeness status and missing-data flags
    # ------------------------------------------------------------------

    @_instrumented("update_data_point_status")
    def update_data_point_status(
        self,
        data_point_id: str,
        request: UpdateDataPointStatusRequest,
    ) -> OperationResult:
        """Set the completeness status explicitly.

        Marking a data point complete requires a value, a deadline, a
        source and an owner; missing ones come back as MissingFieldDetail
        descriptors.
        """
        with self._lock:
            current = self._data_points.get(data_point_id)
            if current is None:
                return self._rejected("update-status", "DataPoint not found.")
            if current.review_status == ReviewStatus.APPROVED.value:
                return self._rejected("update-status", _APPROVED_READ_ONLY)
            if is_blank(request.updated_by):
                return self._rejected("update-status", "UpdatedBy is required.")
            if not is_member(CompletenessStatus, request.completeness_status):
                return self._rejected(
                    "update-status",
                    f"CompletenessStatus must be one of: {', '.join(enum_values(CompletenessStatus))}.",
                )
            if request.completeness_status == CompletenessStatus.COMPLETE.value:
                missing = self._completeness.missing_fields_for_complete(current)
                if missing:
                    return self._rejected(
                        "update-status",
                        "Cannot mark data point as complete. Required fields are missing.",
                        missing_fields=missing,
                    )

            prospective = _copy(current)
            prospective.completeness_status = request.completeness_status
            message = self._run_rules(prospective)
            if message:
                return self._rejected("update-status", message)
            self._commit_data_point(
                current, prospective, request.updated_by, "update-status", request.change_note,
            )
            record_data_point_operation("update-status", "success")
            return OperationResult.ok(_copy(self._data_points[data_point_id]))

    @_instrumented("flag_missing_data")
    def flag_missing_data(self, data_point_id: str, request: FlagMissingDataRequest) -> OperationResult:
        with self._lock:
            current = self._data_points.get(data_point_id)
            if current is None:
                return self._rejected("flag-missing", "DataPoint not found.")
            if current.review_status == ReviewStatus.APPROVED.value:
                return self._rejected("flag-missing", _APPROVED_READ_ONLY)
            if is_blank(request.flagged_by):
                return self._rejected("flag-missing", "FlaggedBy is required.")
            if request.flagged_by not in self._users:
                return self._rejected("flag-missing", f"User with ID '{request.flagged_by}' not found.")
            if is_blank(request.missing_reason):
                return self._rejected("flag-missing", "MissingReason cannot be empty.")
            if not is_member(MissingReasonCategory, request.missing_reason_category):
                return self._rejected(
                    "flag-missing",
                    "MissingReasonCategory must be one of: "
                    f"{', '.join(enum_values(MissingReasonCategory))}.",
                )

            now = _utcnow()
            prospective = _copy(current)
            prospective.is_missing = True
            prospective.missing_reason = request.missing_reason
            prospective.missing_reason_category = request.missing_reason_category
            prospective.missing_flagged_by = request.flagged_by
            prospective.missing_flagged_at = now
            prospective.completeness_status = CompletenessStatus.MISSING.value
            message = self._run_rules(prospective)
            if message:
                return self._rejected("flag-missing", message)
            self._commit_data_point(
                current, prospective, request.flagged_by, "flag-missing",
                f"Flagged as missing ({request.missing_reason_category}): {request.missing_reason}",
                now,
            )
            record_data_point_operation("flag-missing", "success")
            return OperationResult.ok(_copy(self._data_points[data_point_id]))

    @_instrumented("unflag_missing_data")
    def unflag_missing_data(self, data_point_id: str, request: UnflagMissingDataRequest) -> OperationResult:
        """Clear a missing-data flag and re-derive the completeness status."""
        with self._lock:
            current = self._data_points.get(data_point_id)
            if current is None:
                return self._rejected("unflag-missing", "DataPoint not found.")
            if current.review_status == ReviewStatus.APPROVED.value:
                return self._rejected("unflag-missing", _APPROVED_READ_ONLY)
            if is_blank(request.unflagged_by):
                return self._rejected("unflag-missing", "UnflaggedBy is required.")
            if not current.is_missing:
                return self._rejected("unflag-missing", "Data point is not currently flagged as missing.")

            prospective = _copy(current)
            prospective.is_missing = False
            prospective.missing_reason = None
            prospective.missing_reason_category = None
            prospective.missing_flagged_by = None
            prospective.missing_flagged_at = None
            prospective.completeness_status = self._completeness.derive_completeness_status(prospective)
            message = self._run_rules(prospective)
            if message:
                return self._rejected("unflag-missing", message)
            self._commit_data_point(
                current, prospective, request.unflagged_by, "unflag-missing",
                request.change_note or "Missing data flag removed.",
            )
            record_data_point_operation("unflag-missing", "success")
            return OperationResult.ok(_copy(self._data_points[data_point_id]))

    # ------------------------------------------------------------------
    # Gap workflow
    # ------------------------------------------------------------------

    @_instrumented("transition_gap_status")
    def transition_gap_status(
        self,
        data_point_id: str,
        request: TransitionGapStatusRequest,
    ) -> OperationResult:
        """Move a data point along missing -> estimated -> provided.

        Permission is checked before legality; a denied attempt is
        audited as ``transition-gap-status-denied`` before the failure is
        returned.
        """
        with self._lock:
            target = request.target_status
            current = self._data_points.get(data_point_id)
            if current is None:
                record_gap_transition(target, "rejected")
                return OperationResult.fail("DataPoint not found.")
            if is_blank(request.transitioned_by):
                record_gap_transition(target, "rejected")
                return OperationResult.fail("TransitionedBy is required.")
            user = self._users.get(request.transitioned_by)
            if user is None:
                record_gap_transition(target, "rejected")
                return OperationResult.fail(f"User with ID '{request.transitioned_by}' not found.")

            section = self._sections.get(current.section_id)
            period = self._periods.get(section.period_id) if section else None
            if not self._gap_workflow.has_permission(user, current, section, period):
                self._audit_entry(
                    user.id, "transition-gap-status-denied", "DataPoint", data_point_id,
                    change_note=f"Denied gap status transition to '{target}'",
                )
                record_gap_transition(target, "denied")
                logger.warning(
                    "Denied gap status transition of %s to '%s' by %s",
                    data_point_id, target, user.id,
                )
                return OperationResult.fail(PERMISSION_DENIED_MESSAGE)

            if current.review_status == ReviewStatus.APPROVED.value:
                record_gap_transition(target, "rejected")
                return OperationResult.fail(_APPROVED_READ_ONLY)
            message = self._gap_workflow.check_transition(current, request)
            if message:
                record_gap_transition(target, "rejected")
                return OperationResult.fail(message)

            now = _utcnow()
            prospective = _copy(current)
            self._gap_workflow.apply(prospective, request, user, now)
            message = self._run_rules(prospective)
            if message:
                record_gap_transition(target, "rejected")
                return OperationResult.fail(message)

            self._commit_data_point(
                current, prospective, user.id, "transition-gap-status",
                request.change_note, now,
            )
            record_gap_transition(target, "success")
            return OperationResult.ok(_copy(prospective))

    # ------------------------------------------------------------------
    # Provenance review
    # ------------------------------------------------------------------

    @_instrumented("flag_provenance_for_review")
    def flag_provenance_for_review(
        self,
        data_point_id: str,
        request: FlagProvenanceRequest,
    ) -> OperationResult:
        """Mark a data point whose source records changed as needing review."""
        with self._lock:
            current = self._data_points.get(data_point_id)
            if current is None:
                return self._rejected("flag-provenance", "DataPoint not found.")
            if current.review_status == ReviewStatus.APPROVED.value:
                return self._rejected("flag-provenance", _APPROVED_READ_ONLY)
            if is_blank(request.flagged_by):
                return self._rejected("flag-provenance", "FlaggedBy is required.")
            if is_blank(request.reason):
                return self._rejected("flag-provenance", "Reason is required.")

            now = _utcnow()
            prospective = _copy(current)
            prospective.provenance_needs_review = True
            prospective.provenance_review_reason = request.reason
            prospective.provenance_flagged_by = request.flagged_by
            prospective.provenance_flagged_at = now
            message = self._run_rules(prospective)
            if message:
                return self._rejected("flag-provenance", message)
            self._commit_data_point(
                current, prospective, request.flagged_by, "flag-provenance", request.reason, now,
            )
            record_data_point_operation("flag-provenance", "success")
            return OperationResult.ok(_copy(self._data_points[data_point_id]))

    # ==================================================================
    # Evidence
    # ==================================================================

    @_instrumented("create_evidence")
    def create_evidence(self, request: CreateEvidenceRequest) -> OperationResult:
        """Register an evidence file or URL for a section."""
        with self._lock:
            if is_blank(request.title):
                return OperationResult.fail("Title is required.")
            if is_blank(request.section_id):
                return OperationResult.fail("SectionId is required.")
            if is_blank(request.uploaded_by):
                return OperationResult.fail("UploadedBy is required.")
            has_file = not is_blank(request.file_name) or not is_blank(request.file_url)
            if not has_file and is_blank(request.source_url):
                return OperationResult.fail("Either a file or a source URL must be provided.")
            if not is_blank(request.source_url):
                if len(request.source_url) > self.config.max_source_url_length:
                    return OperationResult.fail(
                        f"Source URL must not exceed {self.config.max_source_url_length} characters."
                    )
                if not _is_http_url(request.source_url):
                    return OperationResult.fail("Source URL must be a valid HTTP or HTTPS URL.")
            if request.section_id not in self._sections:
                return OperationResult.fail(f"Section with ID '{request.section_id}' not found.")

            evidence = Evidence(
                section_id=request.section_id,
                title=request.title,
                description=request.description,
                file_name=request.file_name,
                file_url=request.file_url,
                source_url=request.source_url,
                uploaded_by=request.uploaded_by,
            )
            evidence.checksum = self._provenance.build_hash({
                "section_id": evidence.section_id,
                "title": evidence.title,
                "description": evidence.description,
                "file_name": evidence.file_name,
                "file_url": evidence.file_url,
                "source_url": evidence.source_url,
            })
            self._insert(self._evidence, evidence, "Evidence")
            self._audit_entry(
                request.uploaded_by, "create", "Evidence", evidence.id,
                change_note=f"Uploaded evidence '{evidence.title}'",
            )
            return OperationResult.ok(_copy(evidence))

    def get_evidence(self, section_id: Optional[str] = None) -> List[Evidence]:
        with self._lock:
            return [
                _copy(ev) for ev in self._evidence.values()
                if not section_id or ev.section_id == section_id
            ]

    def get_evidence_by_id(self, evidence_id: str) -> Optional[Evidence]:
        with self._lock:
            evidence = self._evidence.get(evidence_id)
            return _copy(evidence) if evidence else None

    def _change_evidence_link(
        self,
        evidence_id: str,
        data_point_id: str,
        user_id: str,
        link: bool,
    ) -> OperationResult:
        action = "link-evidence" if link else "unlink-evidence"
        evidence = self._evidence.get(evidence_id)
        if evidence is None:
            return OperationResult.fail(f"Evidence with ID '{evidence_id}' not found.")
        current = self._data_points.get(data_point_id)
        if current is None:
            return OperationResult.fail(f"DataPoint with ID '{data_point_id}' not found.")
        if current.review_status == ReviewStatus.APPROVED.value:
            return OperationResult.fail(_APPROVED_READ_ONLY)
        linked = evidence_id in current.evidence_ids
        if link and linked:
            return OperationResult.fail("Evidence is already linked to this data point.")
        if not link and not linked:
            return OperationResult.fail("Evidence is not linked to this data point.")

        prospective = _copy(current)
        if link:
            prospective.evidence_ids.append(evidence_id)
        else:
            prospective.evidence_ids.remove(evidence_id)
        message = self._run_rules(prospective)
        if message:
            return OperationResult.fail(message)

        if link:
            evidence.linked_data_point_ids.append(data_point_id)
        elif data_point_id in evidence.linked_data_point_ids:
            evidence.linked_data_point_ids.remove(data_point_id)
        self._commit_data_point(
            current, prospective, user_id or current.owner_id or "system", action,
            f"{'Linked' if link else 'Unlinked'} evidence '{evidence.title}'",
        )
        return OperationResult.ok(_copy(prospective))

    @_instrumented("link_evidence")
    def link_evidence(self, evidence_id: str, data_point_id: str, linked_by: str = "") -> OperationResult:
        with self._lock:
            return self._change_evidence_link(evidence_id, data_point_id, linked_by, link=True)

    @_instrumented("unlink_evidence")
    def unlink_evidence(self, evidence_id: str, data_point_id: str, unlinked_by: str = "") -> OperationResult:
        with self._lock:
            return self._change_evidence_link(evidence_id, data_point_id, unlinked_by, link=False)

    @_instrumented("delete_evidence")
    def delete_evidence(self, evidence_id: str, deleted_by: str = "") -> bool:
        """Delete evidence and remove it from every data point that links it."""
        with self._lock:
            evidence = self._evidence.pop(evidence_id, None)
            if evidence is None:
                return False
            actor = deleted_by or evidence.uploaded_by
            for dp in list(self._data_points.values()):
                if evidence_id not in dp.evidence_ids:
                    continue
                prospective = _copy(dp)
                prospective.evidence_ids.remove(evidence_id)
                self._commit_data_point(
                    dp, prospective, actor, "unlink-evidence",
                    f"Unlinked evidence '{evidence.title}'",
                )
            self._audit_entry(
                actor, "delete", "Evidence", evidence_id,
                change_note=f"Deleted evidence '{evidence.title}'",
            )
            return True

    # ==================================================================
    # Validation rules
    # ==================================================================

    @_instrumented("create_validation_rule")
    def create_validation_rule(self, request: CreateValidationRuleRequest) -> OperationResult:
        """Attach a validation rule to a section.

        Rule kinds are matched case-insensitively and stored in their
        canonical lower-case form; unknown kinds are rejected.
        """
        with self._lock:
            message = self._rule_engine.validate_definition(
                request.section_id, request.rule_type, request.error_message, request.created_by,
            )
            if message:
                return OperationResult.fail(message)
            if request.section_id not in self._sections:
                return OperationResult.fail(f"Section with ID '{request.section_id}' not found.")

            rule = ValidationRule(
                section_id=request.section_id,
                rule_type=self._rule_engine.normalize_rule_type(request.rule_type),
                target_field=request.target_field,
                parameters=request.parameters,
                error_message=request.error_message,
                created_by=request.created_by,
            )
            self._insert(self._rules, rule, "ValidationRule")
            self._audit_entry(
                request.created_by, "create", "ValidationRule", rule.id,
                change_note=f"Created validation rule '{rule.rule_type}'",
            )
            return OperationResult.ok(_copy(rule))

    @_instrumented("update_validation_rule")
    def update_validation_rule(self, rule_id: str, request: UpdateValidationRuleRequest) -> OperationResult:
        with self._lock:
            rule = self._rules.get(rule_id)
            if rule is None:
                return OperationResult.fail("ValidationRule not found.")
            message = self._rule_engine.validate_definition(
                None, request.rule_type, request.error_message, request.updated_by,
                author_field="UpdatedBy",
            )
            if message:
                return OperationResult.fail(message)

            updated = _copy(rule)
            updated.rule_type = self._rule_engine.normalize_rule_type(request.rule_type)
            updated.target_field = request.target_field
            updated.parameters = request.parameters
            updated.error_message = request.error_message
            updated.is_active = request.is_active

            changes = self._audit.diff(rule, updated, _RULE_TRACKED_FIELDS)
            if not changes:
                return OperationResult.ok(_copy(rule))
            self._rules[rule_id] = updated
            self._audit_entry(
                request.updated_by, "update", "ValidationRule", rule_id, changes,
                f"Updated validation rule '{updated.rule_type}'",
            )
            return OperationResult.ok(_copy(updated))

    @_instrumented("delete_validation_rule")
    def delete_validation_rule(self, rule_id: str, deleted_by: str = "") -> bool:
        with self._lock:
            rule = self._rules.pop(rule_id, None)
            if rule is None:
                return False
            self._audit_entry(
                deleted_by or rule.created_by, "delete", "ValidationRule", rule_id,
                change_note=f"Deleted validation rule '{rule.rule_type}'",
            )
            return True

    def get_validation_rules(self, section_id: Optional[str] = None) -> List[ValidationRule]:
        """Active rules of a section in insertion order, or every rule."""
        with self._lock:
            if section_id:
                return [
                    _copy(r) for r in self._rules.values()
                    if r.section_id == section_id and r.is_active
                ]
            return [_copy(r) for r in self._rules.values()]

    # ==================================================================
    # Gaps
    # ==================================================================

    @_instrumented("create_gap")
    def create_gap(self, request: CreateGapRequest) -> OperationResult:
        with self._lock:
            if is_blank(request.section_id):
                return OperationResult.fail("SectionId is required.")
            if is_blank(request.title):
                return OperationResult.fail("Title is required.")
            if is_blank(request.created_by):
                return OperationResult.fail("CreatedBy is required.")
            if not is_member(GapImpact, request.impact):
                return OperationResult.fail(
                    f"Impact must be one of: {', '.join(enum_values(GapImpact))}."
                )
            if request.section_id not in self._sections:
                return OperationResult.fail(f"Section with ID '{request.section_id}' not found.")

            gap = Gap(
                section_id=request.section_id,
                title=request.title,
                description=request.description,
                impact=request.impact,
                improvement_plan=request.improvement_plan,
                target_date=request.target_date,
                created_by=request.created_by,
            )
            self._insert(self._gaps, gap, "Gap")
            self._audit_entry(
                request.created_by, "create", "Gap", gap.id,
                change_note=f"Created gap '{gap.title}'",
            )
            return OperationResult.ok(_copy(gap))

    @_instrumented("update_gap")
    def update_gap(self, gap_id: str, request: UpdateGapRequest) -> OperationResult:
        with self._lock:
            gap = self._gaps.get(gap_id)
            if gap is None:
                return OperationResult.fail("Gap not found.")
            if is_blank(request.title):
                return OperationResult.fail("Title is required.")
            if is_blank(request.updated_by):
                return OperationResult.fail("UpdatedBy is required.")
            if not is_member(GapImpact, request.impact):
                return OperationResult.fail(
                    f"Impact must be one of: {', '.join(enum_values(GapImpact))}."
                )

            updated = _copy(gap)
            updated.title = request.title
            updated.description = request.description
            updated.impact = request.impact
            updated.improvement_plan = request.improvement_plan
            updated.target_date = request.target_date
            changes = self._audit.diff(gap, updated, _GAP_TRACKED_FIELDS)
            if not changes:
                return OperationResult.ok(_copy(gap))
            self._gaps[gap_id] = updated
            self._audit_entry(request.updated_by, "update", "Gap", gap_id, changes, request.change_note)
            return OperationResult.ok(_copy(updated))

    def _set_gap_resolved(self, gap_id: str, request: GapResolutionRequest, resolved: bool) -> OperationResult:
        gap = self._gaps.get(gap_id)
        if gap is None:
            return OperationResult.fail("Gap not found.")
        if is_blank(request.user_id):
            return OperationResult.fail("UserId is required.")
        if gap.resolved == resolved:
            return OperationResult.fail(
                "Gap is already resolved." if resolved else "Gap is not resolved."
            )
        updated = _copy(gap)
        updated.resolved = resolved
        changes = self._audit.diff(gap, updated, _GAP_TRACKED_FIELDS)
        self._gaps[gap_id] = updated
        self._audit_entry(
            request.user_id, "resolve" if resolved else "reopen", "Gap", gap_id,
            changes, request.change_note,
        )
        return OperationResult.ok(_copy(updated))

    @_instrumented("resolve_gap")
    def resolve_gap(self, gap_id: str, request: GapResolutionRequest) -> OperationResult:
        with self._lock:
            return self._set_gap_resolved(gap_id, request, resolved=True)

    @_instrumented("reopen_gap")
    def reopen_gap(self, gap_id: str, request: GapResolutionRequest) -> OperationResult:
        with self._lock:
            return self._set_gap_resolved(gap_id, request, resolved=False)

    def get_gaps(self, section_id: Optional[str] = None) -> List[Gap]:
        with self._lock:
            return [
                _copy(g) for g in self._gaps.values()
                if not section_id or g.section_id == section_id
            ]

    # ==================================================================
    # Completion exceptions
    # ==================================================================

    @_instrumented("create_completion_exception")
    def create_completion_exception(self, request: CreateCompletionExceptionRequest) -> OperationResult:
        """Request an exemption from the completeness denominator."""
        with self._lock:
            if is_blank(request.section_id):
                return OperationResult.fail("SectionId is required.")
            if is_blank(request.title):
                return OperationResult.fail("Title is required.")
            if is_blank(request.exception_type):
                return OperationResult.fail("ExceptionType is required.")
            if not is_member(ExceptionType, request.exception_type):
                return OperationResult.fail(
                    f"ExceptionType must be one of: {', '.join(enum_values(ExceptionType))}."
                )
            if is_blank(request.justification):
                return OperationResult.fail("Justification is required.")
            if is_blank(request.requested_by):
                return OperationResult.fail("RequestedBy is required.")
            if request.section_id not in self._sections:
                return OperationResult.fail(f"Section with ID '{request.section_id}' not found.")
            if not is_blank(request.data_point_id):
                dp = self._data_points.get(request.data_point_id)
                if dp is None:
                    return OperationResult.fail(
                        f"DataPoint with ID '{request.data_point_id}' not found."
                    )
                if dp.section_id != request.section_id:
                    return OperationResult.fail("Data point does not belong to the specified section.")

            expires_at: Optional[datetime] = None
            if not is_blank(request.expires_at):
                expires_on = parse_date_text(request.expires_at)
                if expires_on is None:
                    return OperationResult.fail("Invalid expiration date format.")
                expires_at = datetime(
                    expires_on.year, expires_on.month, expires_on.day, tzinfo=timezone.utc,
                )

            exception = CompletionException(
                section_id=request.section_id,
                data_point_id=request.data_point_id or None,
                title=request.title,
                exception_type=request.exception_type,
                justification=request.justification,
                requested_by=request.requested_by,
                expires_at=expires_at,
            )
            self._insert(self._exceptions, exception, "CompletionException")
            self._audit_entry(
                request.requested_by, "create", "CompletionException", exception.id,
                change_note=f"Requested completion exception '{exception.title}'",
            )
            return OperationResult.ok(_copy(exception))

    def _review_exception(
        self,
        exception_id: str,
        request: ReviewCompletionExceptionRequest,
        accept: bool,
    ) -> OperationResult:
        exception = self._exceptions.get(exception_id)
        if exception is None:
            return OperationResult.fail("Completion exception not found.")
        if exception.status != ExceptionStatus.PENDING.value:
            return OperationResult.fail(
                f"Only pending exceptions can be {'approved' if accept else 'rejected'}."
            )
        if is_blank(request.reviewed_by):
            return OperationResult.fail("ReviewedBy is required.")
        if request.reviewed_by not in self._users:
            return OperationResult.fail(f"Reviewer with ID '{request.reviewed_by}' not found.")
        if not accept and is_blank(request.review_comments):
            return OperationResult.fail("Review comments are required when rejecting an exception.")

        now = _utcnow()
        updated = _copy(exception)
        updated.review_comments = request.review_comments
        if accept:
            updated.status = ExceptionStatus.ACCEPTED.value
            updated.approved_by = request.reviewed_by
            updated.approved_at = now
        else:
            updated.status = ExceptionStatus.REJECTED.value
            updated.rejected_by = request.reviewed_by
            updated.rejected_at = now
        changes = self._audit.diff(exception, updated, _EXCEPTION_TRACKED_FIELDS)
        self._exceptions[exception_id] = updated
        self._audit_entry(
            request.reviewed_by, "approve" if accept else "reject",
            "CompletionException", exception_id, changes, request.review_comments,
        )
        return OperationResult.ok(_copy(updated))

    @_instrumented("approve_completion_exception")
    def approve_completion_exception(
        self,
        exception_id: str,
        request: ReviewCompletionExceptionRequest,
    ) -> OperationResult:
        with self._lock:
            return self._review_exception(exception_id, request, accept=True)

    @_instrumented("reject_completion_exception")
    def reject_completion_exception(
        self,
        exception_id: str,
        request: ReviewCompletionExceptionRequest,
    ) -> OperationResult:
        with self._lock:
            return self._review_exception(exception_id, request, accept=False)

    def get_completion_exceptions(
        self,
        section_id: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[CompletionException]:
        with self._lock:
            return [
                _copy(e) for e in self._exceptions.values()
                if (not section_id or e.section_id == section_id)
                and (not status or e.status == status)
            ]

    def get_completeness_validation_report(self, period_id: str) -> OperationResult:
        """Per-section completeness with and without accepted exceptions."""
        with self._lock:
            period = self._periods.get(period_id)
            if period is None:
                return OperationResult.fail("Reporting period not found.")
            sections = self._period_sections(period_id)
            section_ids = {s.id for s in sections}
            report = self._completeness.build_validation_report(
                period,
                sections,
                [dp for dp in self._data_points.values() if dp.section_id in section_ids],
                [e for e in self._exceptions.values() if e.section_id in section_ids],
            )
            return OperationResult.ok(report)

    def get_completeness_stats(self, period_id: Optional[str] = None) -> CompletenessStats:
        with self._lock:
            sections = (
                self._period_sections(period_id) if period_id
                else list(self._sections.values())
            )
            section_ids = {s.id for s in sections}
            return self._completeness.build_stats(
                sections,
                [dp for dp in self._data_points.values() if dp.section_id in section_ids],
            )

    # ==================================================================
    # Consistency validation and publication
    # ==================================================================

    def _validate_period(
        self,
        period_id: str,
        validated_by: str,
        rule_types: Optional[List[str]] = None,
    ) -> ValidationResult:
        period = self._periods.get(period_id)
        sections = self._period_sections(period_id) if period else []
        section_ids = {s.id for s in sections}
        return self._validator.validate(
            period,
            period_id,
            sections,
            [dp for dp in self._data_points.values() if dp.section_id in section_ids],
            validated_by,
            rule_types,
        )

    @_instrumented("run_consistency_validation")
    def run_consistency_validation(self, request: RunValidationRequest) -> ValidationResult:
        """Read-only consistency validation of a whole period."""
        with self._lock:
            return self._validate_period(request.period_id, request.validated_by, request.rule_types)

    @_instrumented("publish_period")
    def publish_period(self, request: PublishReportRequest) -> OperationResult:
        """Publish a period once consistency validation allows it.

        With validation errors the request fails unless it overrides
        validation with a justification, which only an admin or the
        period owner may do. Publication stamps every data point of the
        period with a hash of its published content.
        """
        with self._lock:
            period = self._periods.get(request.period_id)
            if period is None:
                record_publication("rejected")
                return OperationResult.fail("Reporting period not found.")
            if is_blank(request.published_by):
                record_publication("rejected")
                return OperationResult.fail("PublishedBy is required.")
            user = self._users.get(request.published_by)
            if user is None:
                record_publication("rejected")
                return OperationResult.fail(f"User with ID '{request.published_by}' not found.")
            if period.status == PeriodStatus.PUBLISHED.value:
                record_publication("rejected")
                return OperationResult.fail("Reporting period is already published.")

            validation = self._validate_period(period.id, user.id)
            overridden = False
            if not validation.can_publish:
                if not request.override_validation:
                    record_publication("blocked")
                    return OperationResult.fail(
                        f"Cannot publish report: validation found {validation.error_count} "
                        "error(s). Resolve them or override validation with a justification."
                    )
                if is_blank(request.override_justification):
                    record_publication("rejected")
                    return OperationResult.fail(
                        "Override justification is required when overriding validation."
                    )
                if user.role != UserRole.ADMIN.value and user.id != period.owner_id:
                    self._audit_entry(
                        user.id, "publish-denied", "ReportingPeriod", period.id,
                        change_note="Denied validation override on publication",
                    )
                    record_publication("denied")
                    return OperationResult.fail(
                        "Permission denied: only an admin or the reporting period owner "
                        "can override validation."
                    )
                overridden = True

            now = _utcnow()
            updated = _copy(period)
            updated.status = PeriodStatus.PUBLISHED.value
            updated.published_at = now
            updated.published_by = user.id
            changes = self._audit.diff(period, updated, _PERIOD_TRACKED_FIELDS)
            self._periods[period.id] = updated

            section_ids = {s.id for s in self._period_sections(period.id)}
            for dp in self._data_points.values():
                if dp.section_id in section_ids:
                    dp.publication_source_hash = self._provenance.build_hash({
                        "value": dp.value,
                        "unit": dp.unit,
                        "content": dp.content,
                        "source": dp.source,
                        "source_references": [
                            ref.model_dump(mode="json") for ref in dp.source_references
                        ],
                    })

            self._audit_entry(
                user.id, "publish", "ReportingPeriod", period.id, changes,
                request.override_justification if overridden else None,
            )
            record_publication("overridden" if overridden else "published")
            return OperationResult.ok(PublishReportResult(
                period_id=period.id,
                period_name=period.name,
                published_at=now,
                published_by=user.id,
                validation_overridden=overridden,
                override_justification=request.override_justification if overridden else None,
                validation_result=validation,
            ))

    # ==================================================================
    # Audit trail
    # ==================================================================

    def get_audit_log(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> List[AuditLogEntry]:
        """Query the audit log, newest first.

        ``owner_id`` keeps entries about data points currently owned by
        that user, resolved against live data point state.
        """
        with self._lock:
            owned: Optional[Set[str]] = None
            if not is_blank(owner_id):
                owned = {dp.id for dp in self._data_points.values() if dp.owner_id == owner_id}
            entries = self._audit.query(
                entity_type=entity_type,
                entity_id=entity_id,
                user_id=user_id,
                action=action,
                start_date=start_date,
                end_date=end_date,
                owned_data_point_ids=owned,
                limit=self.config.max_audit_query_results,
            )
            return [_copy(entry) for entry in entries]

    def verify_audit_chain(self) -> AuditChainVerification:
        with self._lock:
            return self._audit.verify()

    # ==================================================================
    # Reminders
    # ==================================================================

    def get_reminder_configuration(self, period_id: str) -> ReminderConfiguration:
        """Stored reminder configuration, or the configured defaults."""
        with self._lock:
            stored = self._reminder_configs.get(period_id)
            if stored is not None:
                return _copy(stored)
            return ReminderConfiguration(
                period_id=period_id,
                days_before_deadline=list(self.config.default_reminder_days),
                check_frequency_hours=self.config.default_check_frequency_hours,
            )

    @_instrumented("save_reminder_configuration")
    def save_reminder_configuration(
        self,
        period_id: str,
        enabled: bool,
        days_before_deadline: List[int],
        check_frequency_hours: int,
    ) -> OperationResult:
        with self._lock:
            if period_id not in self._periods:
                return OperationResult.fail("Reporting period not found.")
            if not days_before_deadline or any(day <= 0 for day in days_before_deadline):
                return OperationResult.fail(
                    "DaysBeforeDeadline must contain at least one positive number of days."
                )
            if check_frequency_hours <= 0:
                return OperationResult.fail("CheckFrequencyHours must be positive.")

            now = _utcnow()
            stored = self._reminder_configs.get(period_id)
            if stored is None:
                stored = ReminderConfiguration(period_id=period_id, created_at=now)
            else:
                stored = _copy(stored)
            stored.enabled = enabled
            stored.days_before_deadline = sorted(set(days_before_deadline), reverse=True)
            stored.check_frequency_hours = check_frequency_hours
            stored.updated_at = now
            self._reminder_configs[period_id] = stored
            return OperationResult.ok(_copy(stored))

    def record_reminder_sent(self, history: ReminderHistory) -> ReminderHistory:
        with self._lock:
            record = _copy(history)
            self._reminder_history.append(record)
            return _copy(record)

    def has_reminder_been_sent_today(self, data_point_id: str, days_until_deadline: int) -> bool:
        with self._lock:
            today = _utcnow().date()
            return any(
                h.data_point_id == data_point_id
                and h.days_until_deadline == days_until_deadline
                and h.sent_at.date() == today
                for h in self._reminder_history
            )

    def get_reminder_history(
        self,
        data_point_id: Optional[str] = None,
        recipient_user_id: Optional[str] = None,
    ) -> List[ReminderHistory]:
        with self._lock:
            return [
                _copy(h) for h in reversed(self._reminder_history)
                if (not data_point_id or h.data_point_id == data_point_id)
                and (not recipient_user_id or h.recipient_user_id == recipient_user_id)
            ]

    # ==================================================================
    # Statistics
    # ==================================================================

    def get_statistics(self) -> Dict[str, int]:
        """Entity counts for health checks."""
        with self._lock:
            return {
                "users": len(self._users),
                "periods": len(self._periods),
                "sections": len(self._sections),
                "data_points": len(self._data_points),
                "evidence": len(self._evidence),
                "validation_rules": len(self._rules),
                "gaps": len(self._gaps),
                "completion_exceptions": len(self._exceptions),
                "audit_entries": self._audit.entry_count,
                "reminders_sent": len(self._reminder_history),
            }
