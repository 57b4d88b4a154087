"""Hash-chained audit log.

Every entry's hash covers its canonical content and the hash of the entry
appended immediately before it:

    data = canonical JSON of {action, entityId, entityType, metadata, timestamp, userId}
    hash = sha256(f"{previous_hash}:{data}")   or sha256(data) for the first entry

Canonical JSON sorts keys at every level and uses compact separators, so the
same content always produces the same bytes.

Appends go through a single lock around "read head -> compute hash -> write",
so concurrent writers can never link two entries to the same stale head.

Usage:
    from docverify.audit.hash_chain import AuditChain

    chain = AuditChain(audit_store)
    await chain.append("VERIFICATION", verification_id, "VERIFICATION_STARTED", user_id="u-1")
    assert (await chain.verify()).valid
"""

import asyncio
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import structlog

from docverify.data_management.audit_store import AuditStore
from docverify.data_management.schemas.audit_schema import AuditLogEntry
from docverify.errors import ChainIntegrityError


def canonicalize(
    entity_type: str,
    entity_id: str,
    action: str,
    user_id: Optional[str],
    metadata: Optional[dict[str, Any]],
    timestamp: datetime,
) -> str:
    """Deterministic serialization of the hashed fields."""
    return json.dumps(
        {
            "entityType": entity_type,
            "entityId": entity_id,
            "action": action,
            "userId": user_id,
            "metadata": metadata,
            "timestamp": timestamp.isoformat(),
        },
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


def compute_hash(canonical: str, previous_hash: Optional[str] = None) -> str:
    combined = f"{previous_hash}:{canonical}" if previous_hash else canonical
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()


def entry_hash(entry: AuditLogEntry) -> str:
    """Recompute an entry's hash from its stored fields."""
    canonical = canonicalize(
        entry.entity_type,
        entry.entity_id,
        entry.action,
        entry.user_id,
        entry.metadata,
        entry.timestamp,
    )
    return compute_hash(canonical, entry.previous_hash)


@dataclass
class ChainVerification:
    """Outcome of walking the chain.

    ``broken_index`` and ``reason`` describe the first bad entry, if any.
    """

    valid: bool
    checked: int
    broken_index: Optional[int] = None
    broken_entry_id: Optional[str] = None
    reason: Optional[str] = None


def verify_entries(entries: Sequence[AuditLogEntry]) -> ChainVerification:
    """Walk entries in creation order, stopping at the first inconsistency."""
    previous: Optional[AuditLogEntry] = None
    for index, entry in enumerate(entries):
        expected_previous = previous.hash if previous is not None else None
        if entry.previous_hash != expected_previous:
            return ChainVerification(
                valid=False,
                checked=index + 1,
                broken_index=index,
                broken_entry_id=entry.id,
                reason="previous_hash does not match predecessor hash",
            )
        if entry_hash(entry) != entry.hash:
            return ChainVerification(
                valid=False,
                checked=index + 1,
                broken_index=index,
                broken_entry_id=entry.id,
                reason="stored hash does not match recomputed hash",
            )
        previous = entry
    return ChainVerification(valid=True, checked=len(entries))


def verify_chain(entries: Sequence[AuditLogEntry]) -> bool:
    """True iff recomputing every hash in order reproduces the stored chain."""
    return verify_entries(entries).valid


class AuditChain:
    """Single-writer appender over an AuditStore."""

    def __init__(self, store: Optional[AuditStore] = None) -> None:
        self.store = store or AuditStore()
        self._write_lock = asyncio.Lock()
        self._logger = structlog.get_logger().bind(component="AuditChain")

    async def append(
        self,
        entity_type: str,
        entity_id: str,
        action: str,
        user_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuditLogEntry:
        """Link a new entry to the current head and persist it.

        Args:
            entity_type: Kind of entity the event concerns (e.g. VERIFICATION)
            entity_id: Id of that entity
            action: Action label, e.g. VERIFICATION_COMPLETED
            user_id: Acting user, if any
            metadata: Arbitrary JSON-serializable payload

        Returns:
            The persisted AuditLogEntry
        """
        entity_type = getattr(entity_type, "value", entity_type)
        # Round-trip metadata so the stored form is exactly what was hashed
        if metadata is not None:
            metadata = json.loads(json.dumps(metadata, default=str))

        async with self._write_lock:
            head = await self.store.head()
            previous_hash = head.hash if head is not None else None
            timestamp = datetime.now(timezone.utc)
            if head is not None and timestamp < head.timestamp:
                timestamp = head.timestamp

            canonical = canonicalize(entity_type, entity_id, action, user_id, metadata, timestamp)
            entry = AuditLogEntry(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                user_id=user_id,
                metadata=metadata,
                timestamp=timestamp,
                hash=compute_hash(canonical, previous_hash),
                previous_hash=previous_hash,
            )
            await self.store.append(entry)

        self._logger.debug(
            "audit_entry_appended",
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            entry_id=entry.id,
        )
        return entry

    async def verify(self) -> ChainVerification:
        entries = await self.store.list_entries()
        result = verify_entries(entries)
        if not result.valid:
            self._logger.error(
                "audit_chain_broken",
                index=result.broken_index,
                entry_id=result.broken_entry_id,
                reason=result.reason,
            )
        return result

    async def assert_valid(self) -> None:
        """Raise ChainIntegrityError at the first broken entry."""
        result = await self.verify()
        if not result.valid:
            raise ChainIntegrityError(
                f"Audit chain integrity check failed: {result.reason}",
                index=result.broken_index,
                entry_id=result.broken_entry_id,
            )

    async def history(self, entity_type: str, entity_id: str) -> list[AuditLogEntry]:
        """Entries concerning one entity, in creation order."""
        return await self.store.list_for_entity(getattr(entity_type, "value", entity_type), entity_id)
