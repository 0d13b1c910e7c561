# -*- coding: utf-8 -*-
"""
Gap Workflow Engine - Report Studio Disclosure Engine

Enforces the forward-only gap resolution state machine of a data point:

    "" (unset) -> missing -> estimated -> provided

No state may be skipped and no transition may move backwards. A move to
``estimated`` carries the estimate triple (type, method, confidence),
which must be complete and drawn from the fixed vocabularies. A move
from ``estimated`` to ``provided`` freezes the superseded estimate as a
JSON snapshot on the data point.

The engine is stateless. The entity store calls, in order:

    1. ``has_permission`` - admin, data point owner, section owner or
       period owner; denials are audited by the store
    2. ``check_transition`` - target validity, legality, estimate triple
    3. ``apply`` - side effects on a prospective copy of the data point

Legality Table (current -> target):
    - same state                           -> rejected (already in status)
    - estimated -> missing                 -> rejected (backwards)
    - provided -> missing | estimated      -> rejected (backwards)
    - unset | missing -> provided          -> rejected (skip estimated)
    - unset -> estimated                   -> rejected (skip missing)
    - unset -> missing, missing -> estimated, estimated -> provided -> allowed

Example:
    >>> from reportstudio.disclosure_engine.gap_workflow import GapWorkflowEngine
    >>> engine = GapWorkflowEngine()
    >>> engine.check_legality("", "estimated")
    "Cannot skip 'missing' state. Data point must first be marked as 'missing', then 'estimated'."

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from reportstudio.disclosure_engine.completeness import OWNER_REQUIRED_FOR_COMPLETE
from reportstudio.disclosure_engine.models import (
    CompletenessStatus,
    ConfidenceLevel,
    DataPoint,
    EstimateType,
    GapStatus,
    GapStatusHistoryEntry,
    InformationType,
    ReportingPeriod,
    ReportSection,
    TransitionGapStatusRequest,
    User,
    UserRole,
    enum_values,
    is_blank,
    is_member,
)

logger = logging.getLogger(__name__)

__all__ = [
    "GapWorkflowEngine",
    "PERMISSION_DENIED_MESSAGE",
    "build_estimate_snapshot",
]


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_TARGET_STATES = (
    GapStatus.MISSING.value,
    GapStatus.ESTIMATED.value,
    GapStatus.PROVIDED.value,
)

_ORDER = {
    GapStatus.UNSET.value: 0,
    GapStatus.MISSING.value: 1,
    GapStatus.ESTIMATED.value: 2,
    GapStatus.PROVIDED.value: 3,
}

PERMISSION_DENIED_MESSAGE = (
    "Permission denied: only an admin, the data point owner, the section owner "
    "or the reporting period owner can change the gap status."
)


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def build_estimate_snapshot(dp: DataPoint, snapshot_at: datetime) -> str:
    """Serialize the estimate fields of a data point.

    Args:
        dp: Data point in its pre-transition state.
        snapshot_at: Time the snapshot is taken.

    Returns:
        JSON text with the estimate type, method, confidence,
        assumptions, value and unit.
    """
    return json.dumps({
        "estimateType": dp.estimate_type,
        "estimateMethod": dp.estimate_method,
        "confidenceLevel": dp.confidence_level,
        "assumptions": dp.assumptions,
        "value": dp.value,
        "unit": dp.unit,
        "snapshotAt": snapshot_at.isoformat(),
    }, sort_keys=True)


class GapWorkflowEngine:
    """Stateless gap status state machine."""

    # ------------------------------------------------------------------
    # Permission gate
    # ------------------------------------------------------------------

    def has_permission(
        self,
        user: User,
        dp: DataPoint,
        section: Optional[ReportSection],
        period: Optional[ReportingPeriod],
    ) -> bool:
        """Check whether a user may change the gap status of a data point.

        Args:
            user: Acting user from the directory.
            dp: Target data point.
            section: Section owning the data point.
            period: Reporting period owning the section.

        Returns:
            True for an admin, the data point owner, the section owner
            or the period owner.
        """
        if user.role == UserRole.ADMIN.value:
            return True
        if not is_blank(dp.owner_id) and dp.owner_id == user.id:
            return True
        if section is not None and not is_blank(section.owner_id) and section.owner_id == user.id:
            return True
        if period is not None and not is_blank(period.owner_id) and period.owner_id == user.id:
            return True
        return False

    # ------------------------------------------------------------------
    # Transition checks
    # ------------------------------------------------------------------

    def check_target(self, target_status: Optional[str]) -> Optional[str]:
        if target_status not in _TARGET_STATES:
            return f"TargetStatus must be one of: {', '.join(_TARGET_STATES)}."
        return None

    def check_legality(self, current: str, target: str) -> Optional[str]:
        """Apply the legality table to a (current, target) pair.

        Args:
            current: Current gap status ("" when unset).
            target: Requested gap status.

        Returns:
            Failure message, or None if the transition is allowed.
        """
        current = current or GapStatus.UNSET.value
        if current == target:
            return f"Data point is already in '{target}' status."
        if _ORDER[target] < _ORDER[current]:
            if current == GapStatus.PROVIDED.value:
                return (
                    "Cannot transition from 'provided' back to earlier states. "
                    "Gap status can only move forward."
                )
            return (
                f"Cannot transition from '{current}' back to '{target}'. "
                "Gap status can only move forward."
            )
        if target == GapStatus.PROVIDED.value and current != GapStatus.ESTIMATED.value:
            return (
                "Cannot skip 'estimated' state. Data point must be 'estimated' "
                "before it can be 'provided'."
            )
        if current == GapStatus.UNSET.value and target == GapStatus.ESTIMATED.value:
            return (
                "Cannot skip 'missing' state. Data point must first be marked "
                "as 'missing', then 'estimated'."
            )
        return None

    def check_estimate(self, request: TransitionGapStatusRequest) -> Optional[str]:
        """Validate the estimate triple carried by a move to 'estimated'."""
        if is_blank(request.estimate_type):
            return "EstimateType is required when transitioning to 'estimated' status."
        if not is_member(EstimateType, request.estimate_type):
            return f"EstimateType must be one of: {', '.join(enum_values(EstimateType))}."
        if is_blank(request.estimate_method):
            return "EstimateMethod is required when transitioning to 'estimated' status."
        if is_blank(request.confidence_level):
            return "ConfidenceLevel is required when transitioning to 'estimated' status."
        if not is_member(ConfidenceLevel, request.confidence_level):
            return f"ConfidenceLevel must be one of: {', '.join(enum_values(ConfidenceLevel))}."
        return None

    def check_transition(
        self,
        dp: DataPoint,
        request: TransitionGapStatusRequest,
    ) -> Optional[str]:
        """Run every check that does not depend on the acting user.

        Args:
            dp: Current data point.
            request: Transition request.

        Returns:
            Failure message, or None if the transition may be applied.
        """
        message = self.check_target(request.target_status)
        if message:
            return message
        message = self.check_legality(dp.gap_status, request.target_status)
        if message:
            return message
        if request.target_status == GapStatus.ESTIMATED.value:
            return self.check_estimate(request)
        if request.target_status == GapStatus.PROVIDED.value and is_blank(dp.owner_id):
            return OWNER_REQUIRED_FOR_COMPLETE
        return None

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def apply(
        self,
        dp: DataPoint,
        request: TransitionGapStatusRequest,
        user: User,
        now: Optional[datetime] = None,
    ) -> GapStatusHistoryEntry:
        """Apply a checked transition to a prospective data point copy.

        Args:
            dp: Prospective copy; mutated in place.
            request: Transition request that passed ``check_transition``.
            user: Acting user.
            now: Transition time.

        Returns:
            The history entry appended to ``dp.gap_status_history``.
        """
        now = now or _utcnow()
        previous = dp.gap_status or GapStatus.UNSET.value
        target = request.target_status
        snapshot: Optional[str] = None

        if target == GapStatus.MISSING.value:
            dp.is_missing = True
            dp.completeness_status = CompletenessStatus.MISSING.value

        elif target == GapStatus.ESTIMATED.value:
            dp.estimate_type = request.estimate_type
            dp.estimate_method = request.estimate_method
            dp.confidence_level = request.confidence_level
            dp.estimate_author = user.id
            dp.estimate_created_at = now
            dp.is_missing = False
            dp.information_type = InformationType.ESTIMATE.value
            if is_blank(dp.completeness_status) or dp.completeness_status == CompletenessStatus.MISSING.value:
                dp.completeness_status = CompletenessStatus.INCOMPLETE.value
            snapshot = build_estimate_snapshot(dp, now)

        elif target == GapStatus.PROVIDED.value:
            if previous == GapStatus.ESTIMATED.value:
                dp.previous_estimate_snapshot = build_estimate_snapshot(dp, now)
                snapshot = dp.previous_estimate_snapshot
            dp.is_missing = False
            dp.completeness_status = CompletenessStatus.COMPLETE.value

        dp.gap_status = target
        dp.updated_at = now

        entry = GapStatusHistoryEntry(
            data_point_id=dp.id,
            from_status=previous,
            to_status=target,
            transitioned_by=user.id,
            transitioned_by_name=user.name,
            transitioned_at=now,
            change_note=request.change_note,
            estimate_snapshot=snapshot,
        )
        dp.gap_status_history.append(entry)
        logger.debug(
            "Gap status of %s: '%s' -> '%s' by %s",
            dp.id, previous, target, user.id,
        )
        return entry
