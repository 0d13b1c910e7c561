# -*- coding: utf-8 -*-
"""
Consistency Validator Engine - Report Studio Disclosure Engine

Read-only batch validation over a whole reporting period. Produces
severity-classified issues and the publish gate (no errors means the
period can be published). The validator only reads the entities it is
handed; re-running it with no intervening mutation yields the same issue
set apart from regenerated issue ids and timestamps.

Zero-Hallucination Guarantees:
    - Every issue comes from a deterministic field comparison
    - Sections are visited in section order, data points in insertion order
    - Aggregate status and publish gate derive from issue counts only
    - No ML/LLM calls in the validation path

Passes (independently selectable):
    1. required-data: empty enabled sections (error), partly incomplete
       sections (warning), data points under changes-requested review or
       flagged for provenance review (error)
    2. unit-normalization: mixed units within one classification
       (warning), metrics with a value but no unit (error)
    3. period-coverage: date values outside the period (warning)
    4. missing-fields: no owner (warning), approved non-estimates without
       evidence (warning), estimates missing estimate fields (error)

Example:
    >>> from reportstudio.disclosure_engine.consistency_validator import ConsistencyValidator
    >>> validator = ConsistencyValidator()
    >>> result = validator.validate(None, "unknown", [], [], "user-1")
    >>> result.status, result.can_publish
    ('failed', False)

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from reportstudio.disclosure_engine.metrics import (
    record_consistency_issue,
    record_consistency_run,
)
from reportstudio.disclosure_engine.models import (
    CompletenessStatus,
    ConsistencyPass,
    DataPoint,
    InformationType,
    IssueSeverity,
    ReportingPeriod,
    ReportSection,
    ReviewStatus,
    ValidationIssue,
    ValidationResult,
    ValidationStatus,
    enum_values,
    is_blank,
)
from reportstudio.disclosure_engine.rule_engine import parse_date_text

logger = logging.getLogger(__name__)

__all__ = [
    "ConsistencyValidator",
    "ISSUE_MISSING_REQUIRED_FIELD",
    "ISSUE_CONTRADICTORY_STATEMENT",
    "ISSUE_INVALID_UNIT",
    "ISSUE_PERIOD_COVERAGE",
    "ISSUE_PERIOD_NOT_FOUND",
]


# ---------------------------------------------------------------------------
# Issue rule types
# ---------------------------------------------------------------------------

ISSUE_MISSING_REQUIRED_FIELD = "missing-required-field"
ISSUE_CONTRADICTORY_STATEMENT = "contradictory-statement"
ISSUE_INVALID_UNIT = "invalid-unit"
ISSUE_PERIOD_COVERAGE = "period-coverage"
ISSUE_PERIOD_NOT_FOUND = "period-not-found"

_ERROR = IssueSeverity.ERROR.value
_WARNING = IssueSeverity.WARNING.value
_INFO = IssueSeverity.INFO.value


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class ConsistencyValidator:
    """Period-wide consistency checks and publish gate."""

    def validate(
        self,
        period: Optional[ReportingPeriod],
        period_id: str,
        sections: Sequence[ReportSection],
        data_points: Sequence[DataPoint],
        validated_by: str,
        rule_types: Optional[Sequence[str]] = None,
    ) -> ValidationResult:
        """Run the selected passes over one reporting period.

        Args:
            period: The reporting period, or None if it does not exist.
            period_id: Requested period id (reported back when unknown).
            sections: Sections of the period.
            data_points: Data points of those sections.
            validated_by: Acting user id.
            rule_types: Pass names to run; empty or None runs all passes.
                Unknown names are ignored.

        Returns:
            ValidationResult with issues, counts, status and publish gate.
        """
        now = _utcnow()
        if period is None:
            issue = ValidationIssue(
                rule_type=ISSUE_PERIOD_NOT_FOUND,
                severity=_ERROR,
                message=f"Reporting period with ID '{period_id}' not found.",
                detected_at=now,
            )
            return self._aggregate(period_id, "", validated_by, [issue], now)

        selected = set(rule_types or []) or set(enum_values(ConsistencyPass))
        enabled = sorted(
            (s for s in sections if s.is_enabled and s.period_id == period.id),
            key=lambda s: s.order,
        )
        by_section: Dict[str, List[DataPoint]] = {s.id: [] for s in enabled}
        for dp in data_points:
            if dp.section_id in by_section:
                by_section[dp.section_id].append(dp)

        issues: List[ValidationIssue] = []
        for section in enabled:
            section_dps = by_section[section.id]
            if ConsistencyPass.REQUIRED_DATA.value in selected:
                issues.extend(self._check_required_data(section, section_dps, now))
            if ConsistencyPass.UNIT_NORMALIZATION.value in selected:
                issues.extend(self._check_units(section, section_dps, now))
            if ConsistencyPass.PERIOD_COVERAGE.value in selected:
                issues.extend(self._check_period_coverage(period, section, section_dps, now))
            if ConsistencyPass.MISSING_FIELDS.value in selected:
                issues.extend(self._check_missing_fields(section, section_dps, now))

        return self._aggregate(period.id, period.name, validated_by, issues, now)

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def _check_required_data(
        self,
        section: ReportSection,
        dps: Sequence[DataPoint],
        now: datetime,
    ) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        if not dps:
            issues.append(ValidationIssue(
                rule_type=ISSUE_MISSING_REQUIRED_FIELD,
                severity=_ERROR,
                message=f"Section '{section.title}' has no data points.",
                section_id=section.id,
                section_title=section.title,
                detected_at=now,
            ))
            return issues

        unfinished = [
            dp.id for dp in dps
            if dp.completeness_status in (
                CompletenessStatus.MISSING.value,
                CompletenessStatus.INCOMPLETE.value,
            )
        ]
        if unfinished:
            issues.append(ValidationIssue(
                rule_type=ISSUE_MISSING_REQUIRED_FIELD,
                severity=_WARNING,
                message=(
                    f"Section '{section.title}' has {len(unfinished)} data point(s) "
                    "that are incomplete or missing."
                ),
                section_id=section.id,
                section_title=section.title,
                affected_data_point_ids=unfinished,
                detected_at=now,
            ))

        for dp in dps:
            if dp.review_status == ReviewStatus.CHANGES_REQUESTED.value:
                issues.append(ValidationIssue(
                    rule_type=ISSUE_CONTRADICTORY_STATEMENT,
                    severity=_ERROR,
                    message=f"Data point '{dp.title}' has changes requested and needs revision.",
                    section_id=section.id,
                    section_title=section.title,
                    affected_data_point_ids=[dp.id],
                    field_name="ReviewStatus",
                    actual_value=dp.review_status,
                    detected_at=now,
                ))
            if dp.provenance_needs_review:
                issues.append(ValidationIssue(
                    rule_type=ISSUE_CONTRADICTORY_STATEMENT,
                    severity=_ERROR,
                    message=(
                        f"Data point '{dp.title}' has source data changes that need review"
                        + (f": {dp.provenance_review_reason}" if dp.provenance_review_reason else ".")
                    ),
                    section_id=section.id,
                    section_title=section.title,
                    affected_data_point_ids=[dp.id],
                    field_name="ProvenanceNeedsReview",
                    detected_at=now,
                ))
        return issues

    def _check_units(
        self,
        section: ReportSection,
        dps: Sequence[DataPoint],
        now: datetime,
    ) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []

        groups: Dict[str, List[DataPoint]] = {}
        for dp in dps:
            if not is_blank(dp.classification):
                groups.setdefault(dp.classification.strip(), []).append(dp)

        for classification, members in groups.items():
            units: List[str] = []
            for dp in members:
                if not is_blank(dp.unit) and dp.unit.strip() not in units:
                    units.append(dp.unit.strip())
            if len(units) > 1:
                issues.append(ValidationIssue(
                    rule_type=ISSUE_INVALID_UNIT,
                    severity=_WARNING,
                    message=(
                        f"Data points classified as '{classification}' in section "
                        f"'{section.title}' use inconsistent units: {', '.join(units)}."
                    ),
                    section_id=section.id,
                    section_title=section.title,
                    affected_data_point_ids=[dp.id for dp in members],
                    field_name="Unit",
                    actual_value=", ".join(units),
                    detected_at=now,
                ))

        for dp in dps:
            if dp.type == "metric" and not is_blank(dp.value) and is_blank(dp.unit):
                issues.append(ValidationIssue(
                    rule_type=ISSUE_MISSING_REQUIRED_FIELD,
                    severity=_ERROR,
                    message=f"Metric data point '{dp.title}' has a value but no unit.",
                    section_id=section.id,
                    section_title=section.title,
                    affected_data_point_ids=[dp.id],
                    field_name="Unit",
                    actual_value=dp.value,
                    detected_at=now,
                ))
        return issues

    def _check_period_coverage(
        self,
        period: ReportingPeriod,
        section: ReportSection,
        dps: Sequence[DataPoint],
        now: datetime,
    ) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for dp in dps:
            value_date = parse_date_text(dp.value)
            if value_date is None:
                continue
            if period.start_date <= value_date <= period.end_date:
                continue
            issues.append(ValidationIssue(
                rule_type=ISSUE_PERIOD_COVERAGE,
                severity=_WARNING,
                message=(
                    f"Data point '{dp.title}' has date value {value_date.isoformat()} "
                    f"outside the reporting period {period.start_date.isoformat()} - "
                    f"{period.end_date.isoformat()}."
                ),
                section_id=section.id,
                section_title=section.title,
                affected_data_point_ids=[dp.id],
                field_name="Value",
                expected_value=f"{period.start_date.isoformat()} - {period.end_date.isoformat()}",
                actual_value=dp.value,
                detected_at=now,
            ))
        return issues

    def _check_missing_fields(
        self,
        section: ReportSection,
        dps: Sequence[DataPoint],
        now: datetime,
    ) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        for dp in dps:
            if is_blank(dp.owner_id):
                issues.append(self._field_issue(
                    section, dp, _WARNING, "OwnerId",
                    f"Data point '{dp.title}' has no owner assigned.", now,
                ))

            is_estimate = dp.information_type == InformationType.ESTIMATE.value
            if (
                dp.review_status == ReviewStatus.APPROVED.value
                and not is_estimate
                and not dp.evidence_ids
            ):
                issues.append(self._field_issue(
                    section, dp, _WARNING, "EvidenceIds",
                    f"Approved data point '{dp.title}' has no supporting evidence.", now,
                ))

            if is_estimate:
                for field_name, value in (
                    ("EstimateType", dp.estimate_type),
                    ("EstimateMethod", dp.estimate_method),
                    ("ConfidenceLevel", dp.confidence_level),
                ):
                    if is_blank(value):
                        issues.append(self._field_issue(
                            section, dp, _ERROR, field_name,
                            f"Estimate data point '{dp.title}' is missing {field_name}.", now,
                        ))
        return issues

    @staticmethod
    def _field_issue(
        section: ReportSection,
        dp: DataPoint,
        severity: str,
        field_name: str,
        message: str,
        now: datetime,
    ) -> ValidationIssue:
        return ValidationIssue(
            rule_type=ISSUE_MISSING_REQUIRED_FIELD,
            severity=severity,
            message=message,
            section_id=section.id,
            section_title=section.title,
            affected_data_point_ids=[dp.id],
            field_name=field_name,
            detected_at=now,
        )

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def _aggregate(
        self,
        period_id: str,
        period_name: str,
        validated_by: str,
        issues: List[ValidationIssue],
        now: datetime,
    ) -> ValidationResult:
        errors = sum(1 for issue in issues if issue.severity == _ERROR)
        warnings = sum(1 for issue in issues if issue.severity == _WARNING)
        infos = sum(1 for issue in issues if issue.severity == _INFO)

        if errors:
            status = ValidationStatus.FAILED.value
            summary = (
                f"Validation failed with {errors} error(s) and {warnings} warning(s). "
                "Resolve all errors before publishing."
            )
        elif warnings:
            status = ValidationStatus.WARNING.value
            summary = f"Validation passed with {warnings} warning(s)."
        else:
            status = ValidationStatus.PASSED.value
            summary = "All consistency checks passed."

        record_consistency_run(status)
        record_consistency_issue(_ERROR, errors)
        record_consistency_issue(_WARNING, warnings)
        record_consistency_issue(_INFO, infos)
        logger.info(
            "Consistency validation of period %s: %s (%d errors, %d warnings)",
            period_id, status, errors, warnings,
        )
        return ValidationResult(
            status=status,
            period_id=period_id,
            period_name=period_name,
            validated_at=now,
            validated_by=validated_by,
            issues=issues,
            error_count=errors,
            warning_count=warnings,
            info_count=infos,
            can_publish=errors == 0,
            summary=summary,
        )
