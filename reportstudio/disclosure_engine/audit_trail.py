# -*- coding: utf-8 -*-
"""
Audit Trail Recorder - Report Studio Disclosure Engine

Computes field-level diffs and appends immutable audit log entries. The
log is append-only for the life of the process: entries are frozen
pydantic models, they are never edited or removed (not even after the
entity they describe is deleted), and each one carries a SHA-256 chain
hash linking it to the entry before it.

The recorder holds state but no lock of its own; it is only ever called
by the entity store while the store's lock is held.

Zero-Hallucination Guarantees:
    - Diffs compare displayed values field by field, in a fixed order
    - Exactly one entry per state-changing operation, none for no-ops
    - Chain hashes are deterministic SHA-256 over entry content
    - Verification recomputes every link from the genesis hash

Example:
    >>> from reportstudio.disclosure_engine.audit_trail import AuditTrailRecorder
    >>> recorder = AuditTrailRecorder()
    >>> entry = recorder.record("user-1", "Sarah Chen", "create", "DataPoint", "dp-1")
    >>> recorder.verify().is_valid
    True

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from pydantic import BaseModel

from reportstudio.disclosure_engine.metrics import record_audit_entry, set_audit_log_size
from reportstudio.disclosure_engine.models import (
    AuditChainVerification,
    AuditLogEntry,
    FieldChange,
    is_blank,
)
from reportstudio.disclosure_engine.provenance import ProvenanceTracker
from reportstudio.exceptions import AuditIntegrityError

logger = logging.getLogger(__name__)

__all__ = [
    "AuditTrailRecorder",
    "DATA_POINT_TRACKED_FIELDS",
    "display_value",
]


# ---------------------------------------------------------------------------
# Tracked fields: (displayed field name, model attribute)
# ---------------------------------------------------------------------------

DATA_POINT_TRACKED_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("Type", "type"),
    ("Classification", "classification"),
    ("Title", "title"),
    ("Content", "content"),
    ("Value", "value"),
    ("Unit", "unit"),
    ("OwnerId", "owner_id"),
    ("ContributorIds", "contributor_ids"),
    ("Source", "source"),
    ("InformationType", "information_type"),
    ("Assumptions", "assumptions"),
    ("CompletenessStatus", "completeness_status"),
    ("ReviewStatus", "review_status"),
    ("ReviewComments", "review_comments"),
    ("Deadline", "deadline"),
    ("GapStatus", "gap_status"),
    ("IsMissing", "is_missing"),
    ("MissingReasonCategory", "missing_reason_category"),
    ("MissingReason", "missing_reason"),
    ("EstimateType", "estimate_type"),
    ("EstimateMethod", "estimate_method"),
    ("ConfidenceLevel", "confidence_level"),
    ("ProvenanceNeedsReview", "provenance_needs_review"),
    ("ProvenanceReviewReason", "provenance_review_reason"),
    ("EvidenceIds", "evidence_ids"),
)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a query bound permissively; unparseable input yields None.

    Args:
        value: ISO-8601 text (date or timestamp, ``Z`` suffix allowed).

    Returns:
        Parsed UTC datetime, or None if unparseable.
    """
    if is_blank(value):
        return None
    s = value.strip()
    try:
        iso_s = s.replace("Z", "+00:00") if s.endswith("Z") else s
        dt = datetime.fromisoformat(iso_s)
    except ValueError:
        logger.debug("Ignoring unparseable audit query bound %r", value)
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def display_value(value: Any) -> str:
    """Render a field value the way it appears in a FieldChange."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple, set)):
        return ", ".join(display_value(item) for item in value)
    return str(value)


class AuditTrailRecorder:
    """Append-only audit log with field diffs and SHA-256 chaining.

    Attributes:
        _entries: Entries in append order (oldest first).
        _by_entity: Secondary index of entry positions by entity id.
        _ids: Entry ids already appended.
        _provenance: Chain hasher, None when provenance is disabled.
    """

    def __init__(
        self,
        provenance: Optional[ProvenanceTracker] = None,
        enable_provenance: bool = True,
    ) -> None:
        self._entries: List[AuditLogEntry] = []
        self._by_entity: Dict[str, List[int]] = {}
        self._ids: Set[str] = set()
        if enable_provenance:
            self._provenance: Optional[ProvenanceTracker] = provenance or ProvenanceTracker()
        else:
            self._provenance = None
        logger.info(
            "AuditTrailRecorder initialized: provenance=%s", enable_provenance,
        )

    # ------------------------------------------------------------------
    # Diffing
    # ------------------------------------------------------------------

    def diff(
        self,
        before: BaseModel,
        after: BaseModel,
        fields: Sequence[Tuple[str, str]],
    ) -> List[FieldChange]:
        """Compute field changes between two states of an entity.

        Args:
            before: Current committed state.
            after: Prospective state.
            fields: (displayed name, attribute) pairs to compare, in the
                order they should appear.

        Returns:
            One FieldChange per field whose displayed value differs.
        """
        changes: List[FieldChange] = []
        for name, attr in fields:
            old = display_value(getattr(before, attr))
            new = display_value(getattr(after, attr))
            if old != new:
                changes.append(FieldChange(field=name, old_value=old, new_value=new))
        return changes

    def diff_data_point(self, before: BaseModel, after: BaseModel) -> List[FieldChange]:
        return self.diff(before, after, DATA_POINT_TRACKED_FIELDS)

    # ------------------------------------------------------------------
    # Appending
    # ------------------------------------------------------------------

    def record(
        self,
        user_id: str,
        user_name: str,
        action: str,
        entity_type: str,
        entity_id: str,
        changes: Optional[List[FieldChange]] = None,
        change_note: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> AuditLogEntry:
        """Build, chain and append one audit entry.

        Args:
            user_id: Acting user id.
            user_name: Acting user's display name.
            action: Action tag (create, update, transition-gap-status, ...).
            entity_type: Entity type (DataPoint, ValidationRule, ...).
            entity_id: Entity id.
            changes: Field changes of the operation.
            change_note: Optional free-text note.
            timestamp: Entry time; defaults to now.

        Returns:
            The appended entry.
        """
        entry_kwargs: Dict[str, Any] = {
            "user_id": user_id,
            "user_name": user_name,
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "change_note": change_note,
            "changes": list(changes or []),
        }
        if timestamp is not None:
            entry_kwargs["timestamp"] = timestamp
        return self.append(AuditLogEntry(**entry_kwargs))

    def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Chain and append a prepared entry.

        Raises:
            AuditIntegrityError: If the entry id was already appended or
                the entry already carries a chain hash.
        """
        if entry.id in self._ids:
            raise AuditIntegrityError(
                f"Audit entry '{entry.id}' already exists in the log",
                entry_id=entry.id,
            )
        if entry.chain_hash:
            raise AuditIntegrityError(
                "Audit entries are chained on append and must not carry a chain hash",
                entry_id=entry.id,
            )

        if self._provenance is not None:
            chain_hash = self._provenance.record(
                entry.entity_type,
                entry.entity_id,
                entry.action,
                self._content_hash(entry),
                user_id=entry.user_id,
                timestamp=entry.timestamp.isoformat(),
            )
            entry = entry.model_copy(update={"chain_hash": chain_hash})

        self._by_entity.setdefault(entry.entity_id, []).append(len(self._entries))
        self._entries.append(entry)
        self._ids.add(entry.id)

        record_audit_entry(entry.action)
        set_audit_log_size(len(self._entries))
        logger.info(
            "Audit %s %s/%s by %s (%d changes)",
            entry.action, entry.entity_type, entry.entity_id,
            entry.user_id, len(entry.changes),
        )
        return entry

    def _content_hash(self, entry: AuditLogEntry) -> str:
        return self._provenance.build_hash(
            entry.model_dump(mode="json", exclude={"chain_hash"}),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        owned_data_point_ids: Optional[Set[str]] = None,
        limit: int = 0,
    ) -> List[AuditLogEntry]:
        """Filter the audit log, newest first.

        Args:
            entity_type: Entity type, compared case-insensitively.
            entity_id: Exact entity id (served from the secondary index).
            user_id: Acting user id.
            action: Exact action tag.
            start_date: Inclusive lower time bound; ignored if unparseable.
            end_date: Inclusive upper time bound; ignored if unparseable.
            owned_data_point_ids: When given, keep only DataPoint entries
                whose entity id is in the set.
            limit: Maximum number of entries (0 means unbounded).

        Returns:
            Matching entries, newest first.
        """
        if entity_id:
            candidates = [self._entries[i] for i in self._by_entity.get(entity_id, [])]
        else:
            candidates = list(self._entries)

        start = _parse_timestamp(start_date)
        end = _parse_timestamp(end_date)
        wanted_type = entity_type.lower() if not is_blank(entity_type) else None

        results: List[AuditLogEntry] = []
        for entry in reversed(candidates):
            if wanted_type and entry.entity_type.lower() != wanted_type:
                continue
            if not is_blank(user_id) and entry.user_id != user_id:
                continue
            if not is_blank(action) and entry.action != action:
                continue
            if start is not None and entry.timestamp < start:
                continue
            if end is not None and entry.timestamp > end:
                continue
            if owned_data_point_ids is not None and (
                entry.entity_type != "DataPoint"
                or entry.entity_id not in owned_data_point_ids
            ):
                continue
            results.append(entry)
            if limit and len(results) >= limit:
                break
        return results

    def entries_for(self, entity_id: str) -> List[AuditLogEntry]:
        """Entries of one entity, oldest first."""
        return [self._entries[i] for i in self._by_entity.get(entity_id, [])]

    @property
    def entry_count(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(self) -> AuditChainVerification:
        """Recompute the hash chain over every entry.

        Returns:
            AuditChainVerification naming the first broken entry, if any.
        """
        if self._provenance is None:
            return AuditChainVerification(
                is_valid=True,
                entries_checked=0,
                message="Provenance chaining is disabled.",
            )

        links = [
            (
                self._content_hash(entry),
                entry.action,
                entry.timestamp.isoformat(),
                entry.chain_hash,
            )
            for entry in self._entries
        ]
        broken = self._provenance.find_broken_link(links)
        if broken >= 0:
            entry = self._entries[broken]
            logger.warning(
                "Audit chain broken at entry %s (position %d)", entry.id, broken,
            )
            return AuditChainVerification(
                is_valid=False,
                entries_checked=broken + 1,
                broken_entry_id=entry.id,
                message=f"Audit chain broken at entry '{entry.id}'.",
            )
        return AuditChainVerification(
            is_valid=True,
            entries_checked=len(self._entries),
            message="Audit chain intact.",
        )
