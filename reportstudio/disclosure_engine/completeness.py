# -*- coding: utf-8 -*-
"""
Completeness Calculator Engine - Report Studio Disclosure Engine

Pure derivations of data point completeness, section progress, and the
period-level completeness statistics and reports built on top of them.
The calculator holds no state; the entity store invokes it under its own
lock after committing a mutation.

Zero-Hallucination Guarantees:
    - Completeness status is a deterministic function of data point fields
    - Section progress follows a fixed priority order
    - All percentages are deterministic arithmetic (complete / total)
    - No ML/LLM calls in the calculation path

Progress Priority:
    1. No data points                          -> not-started
    2. Any review status changes-requested     -> blocked
    3. Every data point missing                -> not-started
    4. Every data point complete/not-applicable -> completed
    5. Otherwise                               -> in-progress

Example:
    >>> from reportstudio.disclosure_engine.completeness import CompletenessCalculator
    >>> calc = CompletenessCalculator()
    >>> calc.derive_section_progress([])
    'not-started'

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from reportstudio.disclosure_engine.models import (
    CompletenessBreakdown,
    CompletenessStats,
    CompletenessStatus,
    CompletenessValidationReport,
    CompletenessValidationSummary,
    CompletionException,
    DataPoint,
    ExceptionStatus,
    MissingFieldDetail,
    ReportingPeriod,
    ReportSection,
    ReviewStatus,
    SectionCompletenessDetail,
    SectionProgressStatus,
    is_blank,
)

logger = logging.getLogger(__name__)

__all__ = [
    "CompletenessCalculator",
    "OWNER_REQUIRED_FOR_COMPLETE",
]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

OWNER_REQUIRED_FOR_COMPLETE = "OwnerId is required when CompletenessStatus is 'complete'."

_FINISHED_STATUSES = (
    CompletenessStatus.COMPLETE.value,
    CompletenessStatus.NOT_APPLICABLE.value,
)


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def _percentage(part: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(part * 100.0 / total, 1)


def _percentage_with_exceptions(complete: int, total: int, exempted: int) -> float:
    # Every data point exempted leaves nothing outstanding.
    if total > 0 and total - exempted <= 0:
        return 100.0
    return _percentage(complete, total - exempted)


class CompletenessCalculator:
    """Stateless completeness and progress derivations.

    Example:
        >>> calc = CompletenessCalculator()
        >>> calc.require_owner_for_complete("complete", "")
        "OwnerId is required when CompletenessStatus is 'complete'."
    """

    # ------------------------------------------------------------------
    # Data point level
    # ------------------------------------------------------------------

    def derive_completeness_status(self, dp: DataPoint) -> str:
        """Derive the completeness status of a data point.

        A data point is complete when title, content, source and
        information type are all present, it links at least one evidence
        record, and it has an owner.

        Args:
            dp: Data point in its prospective state.

        Returns:
            ``"complete"`` or ``"incomplete"``.
        """
        has_required_content = not (
            is_blank(dp.title)
            or is_blank(dp.content)
            or is_blank(dp.source)
            or is_blank(dp.information_type)
        )
        if has_required_content and dp.evidence_ids and not is_blank(dp.owner_id):
            return CompletenessStatus.COMPLETE.value
        return CompletenessStatus.INCOMPLETE.value

    def require_owner_for_complete(
        self,
        completeness_status: Optional[str],
        owner_id: Optional[str],
    ) -> Optional[str]:
        """Return the failure message when ``complete`` is requested without an owner."""
        if completeness_status == CompletenessStatus.COMPLETE.value and is_blank(owner_id):
            return OWNER_REQUIRED_FOR_COMPLETE
        return None

    def missing_fields_for_complete(self, dp: DataPoint) -> List[MissingFieldDetail]:
        """List the fields blocking a data point from being marked complete.

        Args:
            dp: Data point to inspect.

        Returns:
            One MissingFieldDetail per missing field (Value, Period,
            Source, Owner), empty when the data point can be completed.
        """
        missing: List[MissingFieldDetail] = []
        if is_blank(dp.value):
            missing.append(MissingFieldDetail(
                field="Value", reason="A value must be provided before marking as complete.",
            ))
        if is_blank(dp.deadline):
            missing.append(MissingFieldDetail(
                field="Period", reason="A reporting deadline must be set before marking as complete.",
            ))
        if is_blank(dp.source):
            missing.append(MissingFieldDetail(
                field="Source", reason="A data source must be specified before marking as complete.",
            ))
        if is_blank(dp.owner_id):
            missing.append(MissingFieldDetail(
                field="Owner", reason="An owner must be assigned before marking as complete.",
            ))
        return missing

    # ------------------------------------------------------------------
    # Section level
    # ------------------------------------------------------------------

    def derive_section_progress(self, data_points: Sequence[DataPoint]) -> str:
        """Derive the aggregate progress status of a section.

        Args:
            data_points: All data points of the section.

        Returns:
            One of the SectionProgressStatus values.
        """
        if not data_points:
            return SectionProgressStatus.NOT_STARTED.value
        if any(dp.review_status == ReviewStatus.CHANGES_REQUESTED.value for dp in data_points):
            return SectionProgressStatus.BLOCKED.value
        if all(dp.completeness_status == CompletenessStatus.MISSING.value for dp in data_points):
            return SectionProgressStatus.NOT_STARTED.value
        if all(dp.completeness_status in _FINISHED_STATUSES for dp in data_points):
            return SectionProgressStatus.COMPLETED.value
        return SectionProgressStatus.IN_PROGRESS.value

    def section_completeness_percentage(self, data_points: Sequence[DataPoint]) -> int:
        """Whole-number share of complete data points in a section."""
        if not data_points:
            return 0
        complete = sum(
            1 for dp in data_points
            if dp.completeness_status == CompletenessStatus.COMPLETE.value
        )
        return int(round(complete * 100.0 / len(data_points)))

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def build_breakdown(
        self,
        breakdown_id: str,
        name: str,
        data_points: Iterable[DataPoint],
    ) -> CompletenessBreakdown:
        """Count data points per completeness status for one grouping."""
        counts: Dict[str, int] = {status.value: 0 for status in CompletenessStatus}
        total = 0
        for dp in data_points:
            counts[dp.completeness_status] = counts.get(dp.completeness_status, 0) + 1
            total += 1

        complete = counts[CompletenessStatus.COMPLETE.value]
        return CompletenessBreakdown(
            id=breakdown_id,
            name=name,
            missing_count=counts[CompletenessStatus.MISSING.value],
            incomplete_count=counts[CompletenessStatus.INCOMPLETE.value],
            complete_count=complete,
            not_applicable_count=counts[CompletenessStatus.NOT_APPLICABLE.value],
            total_count=total,
            complete_percentage=_percentage(complete, total),
        )

    def build_stats(
        self,
        sections: Sequence[ReportSection],
        data_points: Sequence[DataPoint],
    ) -> CompletenessStats:
        """Build overall and per-category completeness statistics.

        Args:
            sections: Sections in scope.
            data_points: Data points belonging to those sections.

        Returns:
            CompletenessStats with an ``overall`` breakdown and one
            breakdown per section category present in scope.
        """
        category_of = {section.id: section.category for section in sections}
        by_category: Dict[str, List[DataPoint]] = {}
        for section in sections:
            by_category.setdefault(section.category, [])
        for dp in data_points:
            category = category_of.get(dp.section_id)
            if category is not None:
                by_category[category].append(dp)

        return CompletenessStats(
            overall=self.build_breakdown("overall", "Overall", data_points),
            by_category=[
                self.build_breakdown(category, category.capitalize(), dps)
                for category, dps in sorted(by_category.items())
            ],
        )

    # ------------------------------------------------------------------
    # Completeness validation report
    # ------------------------------------------------------------------

    def build_validation_report(
        self,
        period: ReportingPeriod,
        sections: Sequence[ReportSection],
        data_points: Sequence[DataPoint],
        exceptions: Sequence[CompletionException],
        now: Optional[datetime] = None,
    ) -> CompletenessValidationReport:
        """Build a per-section completeness report honouring exceptions.

        Accepted, non-expired exceptions remove the non-complete data
        points they cover from the denominator of the
        ``completeness_with_exceptions_percentage``. An exception without a
        data point id covers every data point of its section.

        Args:
            period: Reporting period being reported on.
            sections: Sections of the period.
            data_points: Data points of those sections.
            exceptions: Completion exceptions of those sections.
            now: Reference time for expiry checks.

        Returns:
            CompletenessValidationReport.
        """
        now = now or _utcnow()
        active = [
            exc for exc in exceptions
            if exc.status == ExceptionStatus.ACCEPTED.value
            and (exc.expires_at is None or exc.expires_at > now)
        ]

        details: List[SectionCompletenessDetail] = []
        total_all = complete_all = exempted_all = 0
        for section in sections:
            section_dps = [dp for dp in data_points if dp.section_id == section.id]
            section_exceptions = [exc for exc in active if exc.section_id == section.id]
            covers_section = any(exc.data_point_id is None for exc in section_exceptions)
            covered_ids = {exc.data_point_id for exc in section_exceptions if exc.data_point_id}

            complete = sum(
                1 for dp in section_dps
                if dp.completeness_status == CompletenessStatus.COMPLETE.value
            )
            exempted = sum(
                1 for dp in section_dps
                if dp.completeness_status != CompletenessStatus.COMPLETE.value
                and (covers_section or dp.id in covered_ids)
            )
            total = len(section_dps)
            details.append(SectionCompletenessDetail(
                section_id=section.id,
                section_title=section.title,
                category=section.category,
                total_data_points=total,
                complete_data_points=complete,
                exempted_data_points=exempted,
                completeness_percentage=_percentage(complete, total),
                completeness_with_exceptions_percentage=_percentage_with_exceptions(
                    complete, total, exempted,
                ),
                accepted_exception_ids=[exc.id for exc in section_exceptions],
            ))
            total_all += total
            complete_all += complete
            exempted_all += exempted

        summary = CompletenessValidationSummary(
            total_data_points=total_all,
            complete_data_points=complete_all,
            exempted_data_points=exempted_all,
            completeness_percentage=_percentage(complete_all, total_all),
            completeness_with_exceptions_percentage=_percentage_with_exceptions(
                complete_all, total_all, exempted_all,
            ),
        )
        logger.debug(
            "Completeness report for period %s: %d/%d complete, %d exempted",
            period.id, complete_all, total_all, exempted_all,
        )
        return CompletenessValidationReport(
            period_id=period.id,
            period_name=period.name,
            sections=details,
            summary=summary,
            generated_at=now,
        )
