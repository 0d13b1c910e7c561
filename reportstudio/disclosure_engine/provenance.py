# -*- coding: utf-8 -*-
"""
Provenance Tracking for the Disclosure Engine

Provides SHA-256 chain hashing for the append-only audit trail. Every
audit entry is reduced to a content hash, and each content hash is
chained onto the hash of the entry before it, so that editing, removing
or reordering any earlier entry breaks every later link.

Zero-Hallucination Guarantees:
    - All hashes are deterministic SHA-256
    - Chain hashing links operations in sequence
    - Verification recomputes the full chain from the genesis hash
    - JSON export for external audit systems

Example:
    >>> from reportstudio.disclosure_engine.provenance import ProvenanceTracker
    >>> tracker = ProvenanceTracker()
    >>> h = tracker.build_hash({"title": "Energy use"})
    >>> chain_hash = tracker.record("DataPoint", "dp-1", "create", h)
    >>> valid, chain = tracker.verify_chain("DataPoint", "dp-1")
    >>> assert valid is True

Author: Report Studio Platform Team
Date: October 2026
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

_DEFAULT_GENESIS_SEED = "reportstudio-disclosure-engine-genesis"


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


class ProvenanceTracker:
    """Tracks provenance for disclosure engine operations with SHA-256 chain hashing.

    Maintains an ordered log of operations whose hashes chain together,
    grouped by entity type and entity ID for per-entity lookups.

    Attributes:
        _chain_store: In-memory chain storage grouped by entity key.
        _global_chain: Flat list of all entries in order.
        _last_chain_hash: Most recent chain hash for linking.
        _lock: Thread-safety lock.
    """

    def __init__(self, genesis_seed: str = _DEFAULT_GENESIS_SEED) -> None:
        """Initialize ProvenanceTracker.

        Args:
            genesis_seed: Text hashed into the genesis link of the chain.
        """
        self._genesis_hash = hashlib.sha256(genesis_seed.encode("utf-8")).hexdigest()
        self._chain_store: Dict[str, List[Dict[str, Any]]] = {}
        self._global_chain: List[Dict[str, Any]] = []
        self._last_chain_hash: str = self._genesis_hash
        self._lock = threading.Lock()
        logger.info("ProvenanceTracker initialized")

    @property
    def genesis_hash(self) -> str:
        return self._genesis_hash

    @property
    def last_chain_hash(self) -> str:
        with self._lock:
            return self._last_chain_hash

    def record(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        data_hash: str,
        user_id: str = "system",
        timestamp: Optional[str] = None,
    ) -> str:
        """Record a provenance entry for an entity operation.

        Args:
            entity_type: Type of entity (DataPoint, ValidationRule, Gap, ...).
            entity_id: Unique entity identifier.
            action: Action performed (create, update, approve, ...).
            data_hash: SHA-256 hash of the operation data.
            user_id: User who performed the operation.
            timestamp: ISO timestamp of the operation; defaults to now.

        Returns:
            Chain hash of the new entry.
        """
        timestamp = timestamp or _utcnow().isoformat()
        store_key = f"{entity_type}:{entity_id}"

        entry = {
            "entity_type": entity_type,
            "entity_id": entity_id,
            "action": action,
            "data_hash": data_hash,
            "user_id": user_id,
            "timestamp": timestamp,
            "chain_hash": "",
        }

        with self._lock:
            chain_hash = self._compute_chain_hash(
                self._last_chain_hash, data_hash, action, timestamp,
            )
            entry["chain_hash"] = chain_hash

            self._chain_store.setdefault(store_key, []).append(entry)
            self._global_chain.append(entry)
            self._last_chain_hash = chain_hash

        logger.debug(
            "Recorded provenance: %s/%s action=%s hash=%s",
            entity_type, entity_id[:8], action, chain_hash[:16],
        )
        return chain_hash

    def verify_chain(
        self,
        entity_type: str,
        entity_id: str,
    ) -> Tuple[bool, List[Dict[str, Any]]]:
        """Verify the integrity of the provenance chain for an entity.

        Recomputes the global chain from genesis and checks that every
        link matches its stored value, then returns the entity's entries.

        Args:
            entity_type: Type of entity.
            entity_id: Entity ID whose chain to verify.

        Returns:
            Tuple of (is_valid: bool, chain_entries: list).
        """
        store_key = f"{entity_type}:{entity_id}"

        with self._lock:
            chain = list(self._chain_store.get(store_key, []))
            global_chain = list(self._global_chain)

        if not chain:
            return True, []

        broken = self.find_broken_link(
            (e["data_hash"], e["action"], e["timestamp"], e["chain_hash"])
            for e in global_chain
        )
        if broken >= 0:
            logger.warning(
                "Chain verification failed for %s/%s at global index %d",
                entity_type, entity_id, broken,
            )
            return False, chain
        return True, chain

    def find_broken_link(
        self,
        links: Iterable[Tuple[str, str, str, str]],
    ) -> int:
        """Locate the first link that does not extend the chain.

        Args:
            links: Iterable of (data_hash, action, timestamp, chain_hash)
                tuples, oldest first.

        Returns:
            Index of the first broken link, or -1 if the chain is intact.
        """
        previous = self._genesis_hash
        for index, (data_hash, action, timestamp, chain_hash) in enumerate(links):
            expected = self._compute_chain_hash(previous, data_hash, action, timestamp)
            if expected != chain_hash:
                return index
            previous = chain_hash
        return -1

    def get_chain(
        self,
        entity_type: str,
        entity_id: str,
    ) -> List[Dict[str, Any]]:
        """Get the provenance chain for an entity, oldest first."""
        store_key = f"{entity_type}:{entity_id}"
        with self._lock:
            return list(self._chain_store.get(store_key, []))

    def get_global_chain(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get the global provenance chain (all entities).

        Args:
            limit: Maximum number of entries to return.

        Returns:
            List of provenance entries, newest first.
        """
        with self._lock:
            return list(reversed(self._global_chain[-limit:]))

    def _compute_chain_hash(
        self,
        previous_hash: str,
        data_hash: str,
        action: str,
        timestamp: str,
    ) -> str:
        """Compute the next chain hash linking to the previous.

        Args:
            previous_hash: Previous chain hash.
            data_hash: Hash of the current operation data.
            action: Action performed.
            timestamp: ISO-formatted timestamp.

        Returns:
            New SHA-256 chain hash.
        """
        combined = json.dumps({
            "previous": previous_hash,
            "data": data_hash,
            "action": action,
            "timestamp": timestamp,
        }, sort_keys=True)
        return hashlib.sha256(combined.encode("utf-8")).hexdigest()

    @property
    def entry_count(self) -> int:
        """Return the total number of provenance entries."""
        with self._lock:
            return len(self._global_chain)

    @property
    def entity_count(self) -> int:
        """Return the number of unique entities tracked."""
        with self._lock:
            return len(self._chain_store)

    def export_json(self) -> str:
        """Export all provenance records as JSON string."""
        with self._lock:
            data = list(self._global_chain)
        return json.dumps(data, indent=2, default=str)

    def build_hash(self, data: Any) -> str:
        """Build a SHA-256 hash for arbitrary data.

        Args:
            data: Data to hash (dict, list, or other).

        Returns:
            Hex-encoded SHA-256 hash.
        """
        serialized = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


__all__ = [
    "ProvenanceTracker",
]
