"""Certificate storage with optional JSON persistence.

Follows the same patterns as the other stores:
- O(1) lookup by certificate id
- Thread-safe operations with asyncio locks
- Copies in, copies out: callers never hold a reference into the store
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from docverify.data_management.schemas.certificate_schema import Certificate


class CertificateStore:
    """Storage adapter for certificates.

    Certificates are created by the upload layer and mutated only through
    ``save`` (status and identity-verified flags). Concurrent saves of the
    same certificate are last-writer-wins.
    """

    def __init__(self, persistence_path: Optional[str] = None):
        """
        Initialize certificate store.

        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only.
        """
        self._certificates: Dict[str, Certificate] = {}
        self._lock = asyncio.Lock()
        self.persistence_path = Path(persistence_path) if persistence_path else None
        self.logger = logger.bind(component="CertificateStore")

        if self.persistence_path and self.persistence_path.exists():
            self._load_from_file()

    async def save(self, certificate: Certificate) -> Certificate:
        """Insert or update a certificate, returning the stored copy."""
        async with self._lock:
            stored = certificate.model_copy(deep=True)
            stored.updated_at = datetime.now(timezone.utc)
            self._certificates[stored.id] = stored
            self.logger.debug(
                f"Saved certificate {stored.id}",
                status=stored.status.value,
                identity_verified=stored.identity_verified,
            )
            if self.persistence_path:
                self._save_to_file()
            return stored.model_copy(deep=True)

    async def get(self, certificate_id: str) -> Optional[Certificate]:
        async with self._lock:
            certificate = self._certificates.get(certificate_id)
            return certificate.model_copy(deep=True) if certificate else None

    async def list_all(self) -> List[Certificate]:
        async with self._lock:
            return [c.model_copy(deep=True) for c in self._certificates.values()]

    def _save_to_file(self) -> None:
        """Save to JSON file (synchronous)."""
        try:
            self.persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data = {cid: c.model_dump(mode="json") for cid, c in self._certificates.items()}
            with open(self.persistence_path, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            self.logger.error(f"Failed to persist certificates: {e}")

    def _load_from_file(self) -> None:
        with open(self.persistence_path) as f:
            data = json.load(f)
        self._certificates = {
            cid: Certificate.model_validate(record) for cid, record in data.items()
        }
        self.logger.info(f"Loaded {len(self._certificates)} certificates from {self.persistence_path}")
