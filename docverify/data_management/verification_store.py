"""Verification and step storage with optional JSON persistence.

Data structure:
{
    "verifications": {verification_id: Verification, ...},
    "steps": {verification_id: {step_id: VerificationStep, ...}, ...}
}

Steps are written incrementally while a pipeline runs, so readers polling
``get_steps`` can observe IN_PROGRESS steps mid-run.

Usage:
    from docverify.data_management.verification_store import VerificationStore

    store = VerificationStore()
    await store.save(verification)
    steps = await store.get_steps(verification.id)
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from docverify.data_management.schemas.verification_schema import (
    Verification,
    VerificationStatus,
    VerificationStep,
)


class VerificationStore:
    """Storage for verifications and their ordered steps."""

    def __init__(self, persistence_path: Optional[str] = None) -> None:
        """Initialize VerificationStore.

        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only.
        """
        self._verifications: Dict[str, Verification] = {}
        self._steps: Dict[str, Dict[str, VerificationStep]] = {}
        self._lock = asyncio.Lock()
        self.persistence_path = Path(persistence_path) if persistence_path else None
        self.logger = logger.bind(component="VerificationStore")

        if self.persistence_path and self.persistence_path.exists():
            self._load_from_file()

    async def save(self, verification: Verification) -> Verification:
        """Insert or update a verification (atomic replace)."""
        async with self._lock:
            self._verifications[verification.id] = verification.model_copy(deep=True)
            self.logger.debug(
                f"Saved verification {verification.id}",
                status=verification.status.value,
            )
            self._persist()
            return verification.model_copy(deep=True)

    async def get(self, verification_id: str) -> Optional[Verification]:
        async with self._lock:
            verification = self._verifications.get(verification_id)
            return verification.model_copy(deep=True) if verification else None

    async def list_for_certificate(self, certificate_id: str) -> List[Verification]:
        """All verifications of a certificate, oldest first."""
        async with self._lock:
            matches = [
                v.model_copy(deep=True)
                for v in self._verifications.values()
                if v.certificate_id == certificate_id
            ]
        return sorted(matches, key=lambda v: v.created_at)

    async def list_by_status(self, status: VerificationStatus) -> List[Verification]:
        async with self._lock:
            return [
                v.model_copy(deep=True)
                for v in self._verifications.values()
                if v.status == status
            ]

    async def add_step(self, step: VerificationStep) -> VerificationStep:
        """Append a step record to its verification."""
        async with self._lock:
            steps = self._steps.setdefault(step.verification_id, {})
            steps[step.id] = step.model_copy(deep=True)
            self._persist()
            return step.model_copy(deep=True)

    async def save_step(self, step: VerificationStep) -> VerificationStep:
        """Update a previously added step."""
        async with self._lock:
            steps = self._steps.setdefault(step.verification_id, {})
            if step.id not in steps:
                self.logger.warning(f"Updating unknown step {step.id}; inserting it")
            steps[step.id] = step.model_copy(deep=True)
            self._persist()
            return step.model_copy(deep=True)

    async def get_steps(self, verification_id: str) -> List[VerificationStep]:
        """Steps of a verification ordered by sequence number."""
        async with self._lock:
            steps = self._steps.get(verification_id, {})
            ordered = sorted(steps.values(), key=lambda s: s.sequence_number)
            return [s.model_copy(deep=True) for s in ordered]

    async def delete_steps(self, verification_id: str) -> int:
        """Remove every step of a verification. Returns the number deleted."""
        async with self._lock:
            removed = self._steps.pop(verification_id, {})
            self.logger.debug(
                f"Deleted {len(removed)} steps for verification {verification_id}"
            )
            self._persist()
            return len(removed)

    def _persist(self) -> None:
        if self.persistence_path:
            self._save_to_file()

    def _save_to_file(self) -> None:
        """Save to JSON file (synchronous)."""
        try:
            self.persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data: dict[str, Any] = {
                "verifications": {
                    vid: v.model_dump(mode="json") for vid, v in self._verifications.items()
                },
                "steps": {
                    vid: {sid: s.model_dump(mode="json") for sid, s in steps.items()}
                    for vid, steps in self._steps.items()
                },
            }
            with open(self.persistence_path, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            self.logger.error(f"Failed to persist verifications: {e}")

    def _load_from_file(self) -> None:
        with open(self.persistence_path) as f:
            data = json.load(f)
        self._verifications = {
            vid: Verification.model_validate(v)
            for vid, v in data.get("verifications", {}).items()
        }
        self._steps = {
            vid: {sid: VerificationStep.model_validate(s) for sid, s in steps.items()}
            for vid, steps in data.get("steps", {}).items()
        }
        self.logger.info(
            f"Loaded {len(self._verifications)} verifications from {self.persistence_path}"
        )
