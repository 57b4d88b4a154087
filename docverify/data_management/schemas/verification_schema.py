"""Verification and VerificationStep schemas.

A Verification is one attempt at verifying a certificate; its steps are the
individual external checks executed during that attempt, numbered from 1 in
execution order.

State machine:
    PENDING --start--> IN_PROGRESS --success--> COMPLETED
                       IN_PROGRESS --exception--> FAILED --retry--> IN_PROGRESS

Invariant: ``result`` and ``confidence_score`` are set iff status is
COMPLETED. A FAILED verification never carries a result. The transition
helpers below are the only code paths that touch these fields.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class VerificationType(str, Enum):
    DIGITAL = "DIGITAL"
    PORTAL = "PORTAL"
    MANUAL = "MANUAL"
    FORENSIC = "FORENSIC"
    COMBINED = "COMBINED"


class VerificationStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class VerificationResult(str, Enum):
    VERIFIED = "VERIFIED"
    UNVERIFIED = "UNVERIFIED"
    INCONCLUSIVE = "INCONCLUSIVE"


class StepType(str, Enum):
    """One step type per check kind."""

    DIGITAL_AUTHENTICITY = "DIGITAL_AUTHENTICITY"
    ISSUER_PORTAL = "ISSUER_PORTAL"
    FORENSIC = "FORENSIC"
    IDENTITY = "IDENTITY"


class StepStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class VerificationStep(BaseModel):
    """A single check executed within a verification run."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    verification_id: str
    step_type: StepType
    step_name: str
    check_kind: str = Field(..., description="Provider check kind that ran in this step")
    sequence_number: int = Field(..., ge=1)
    status: StepStatus = StepStatus.PENDING
    result: Optional[dict[str, Any]] = Field(
        default=None, description="Raw provider payload"
    )
    error_message: Optional[str] = None
    executed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: Optional[int] = None


class Verification(BaseModel):
    """One verification attempt on a certificate."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    certificate_id: str
    verification_type: VerificationType = VerificationType.COMBINED
    status: VerificationStatus = VerificationStatus.PENDING
    result: Optional[VerificationResult] = None
    confidence_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    result_data: Optional[dict[str, Any]] = Field(
        default=None,
        description="Aggregated evidence, per-factor score breakdown and recommendation",
    )
    requested_by: Optional[str] = None
    attempt: int = Field(default=1, ge=1, description="Incremented on every retry")
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def check_result_invariant(self) -> "Verification":
        """result/confidence_score present iff COMPLETED."""
        completed = self.status == VerificationStatus.COMPLETED
        has_result = self.result is not None and self.confidence_score is not None
        if completed and not has_result:
            raise ValueError("COMPLETED verification requires result and confidence_score")
        if not completed and (self.result is not None or self.confidence_score is not None):
            raise ValueError(f"{self.status.value} verification cannot carry a result")
        return self

    def mark_in_progress(self, now: Optional[datetime] = None) -> None:
        self.status = VerificationStatus.IN_PROGRESS
        self.started_at = now or datetime.now(timezone.utc)

    def mark_completed(
        self,
        result: VerificationResult,
        confidence_score: float,
        result_data: dict[str, Any],
        now: Optional[datetime] = None,
    ) -> None:
        now = now or datetime.now(timezone.utc)
        self.status = VerificationStatus.COMPLETED
        self.result = result
        self.confidence_score = confidence_score
        self.result_data = result_data
        self.completed_at = now
        self.duration_ms = self._elapsed_ms(now)

    def mark_failed(self, now: Optional[datetime] = None) -> None:
        """Status-only transition; any partial result is discarded."""
        now = now or datetime.now(timezone.utc)
        self.status = VerificationStatus.FAILED
        self.result = None
        self.confidence_score = None
        self.result_data = None
        self.completed_at = now
        self.duration_ms = self._elapsed_ms(now)

    def reset_for_retry(self, now: Optional[datetime] = None) -> None:
        self.result = None
        self.confidence_score = None
        self.result_data = None
        self.completed_at = None
        self.duration_ms = None
        self.attempt += 1
        self.mark_in_progress(now)

    def _elapsed_ms(self, now: datetime) -> Optional[int]:
        if self.started_at is None:
            return None
        return int((now - self.started_at).total_seconds() * 1000)
