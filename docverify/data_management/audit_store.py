"""Append-only audit log storage.

Entries are kept in strict append order, which is also creation order, and
are never reordered: chain verification depends on it. With persistence
enabled the log is written as JSON lines, one entry per line, appended as
entries arrive.

The store performs no hashing and no locking across calls. Serializing
"read head -> compute hash -> append" is the job of the audit chain writer.
"""

import asyncio
import json
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from docverify.data_management.schemas.audit_schema import AuditLogEntry


class AuditStore:
    """Storage adapter for the audit hash chain."""

    def __init__(self, persistence_path: Optional[str] = None):
        """
        Initialize audit store.

        Args:
            persistence_path: Optional path to a JSON-lines file.
                            If None, storage is memory-only.
        """
        self._entries: List[AuditLogEntry] = []
        self._positions: Dict[str, int] = {}
        self._lock = asyncio.Lock()
        self.persistence_path = Path(persistence_path) if persistence_path else None
        self.logger = logger.bind(component="AuditStore")

        if self.persistence_path and self.persistence_path.exists():
            self._load_from_file()

    async def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Persist then record an entry.

        Raises:
            OSError: The log file could not be written; nothing is appended,
                so the chain head is unchanged.
        """
        async with self._lock:
            if self.persistence_path:
                self._append_to_file(entry)
            self._positions[entry.id] = len(self._entries)
            self._entries.append(entry)
            self.logger.debug(f"Appended audit entry {entry.id}", action=entry.action)
            return entry

    async def head(self) -> Optional[AuditLogEntry]:
        """Most recently appended entry, or None for an empty log."""
        async with self._lock:
            return self._entries[-1] if self._entries else None

    async def get(self, entry_id: str) -> Optional[AuditLogEntry]:
        async with self._lock:
            position = self._positions.get(entry_id)
            return self._entries[position] if position is not None else None

    async def list_entries(self) -> List[AuditLogEntry]:
        """Every entry in creation order."""
        async with self._lock:
            return list(self._entries)

    async def list_for_entity(self, entity_type: str, entity_id: str) -> List[AuditLogEntry]:
        async with self._lock:
            return [
                e
                for e in self._entries
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]

    async def count(self) -> int:
        async with self._lock:
            return len(self._entries)

    async def _replace_entry(self, entry_id: str, entry: AuditLogEntry) -> None:
        """Overwrite a stored entry in place.

        Exists only so tests and operators can simulate tampering; the chain
        writer never calls it.
        """
        async with self._lock:
            position = self._positions[entry_id]
            self._entries[position] = entry
            if self.persistence_path:
                self._rewrite_file()

    def _append_to_file(self, entry: AuditLogEntry) -> None:
        try:
            self.persistence_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.persistence_path, "a") as f:
                f.write(entry.model_dump_json() + "\n")
        except OSError as e:
            self.logger.error(f"Failed to persist audit entry {entry.id}: {e}")
            raise

    def _rewrite_file(self) -> None:
        with open(self.persistence_path, "w") as f:
            for entry in self._entries:
                f.write(entry.model_dump_json() + "\n")

    def _load_from_file(self) -> None:
        with open(self.persistence_path) as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                entry = AuditLogEntry.model_validate(json.loads(line))
                self._positions[entry.id] = len(self._entries)
                self._entries.append(entry)
        self.logger.info(f"Loaded {len(self._entries)} audit entries from {self.persistence_path}")
