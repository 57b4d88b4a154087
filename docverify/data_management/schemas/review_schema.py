"""Manual review schema.

Reviews are created when automated scoring is inconclusive. A reviewer
claims one (dequeue or explicit assignment), which binds the reviewer and
starts the SLA clock, then submits a decision.

Lifecycle: PENDING -> IN_PROGRESS -> {COMPLETED | ESCALATED}
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ReviewStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ESCALATED = "ESCALATED"


ACTIVE_REVIEW_STATUSES = frozenset({ReviewStatus.PENDING, ReviewStatus.IN_PROGRESS})


class ReviewPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        """Numeric rank for ordering; higher is more urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    ReviewPriority.LOW: 0,
    ReviewPriority.MEDIUM: 1,
    ReviewPriority.HIGH: 2,
    ReviewPriority.URGENT: 3,
}


class ReviewDecision(str, Enum):
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NEEDS_INFO = "NEEDS_INFO"
    ESCALATED = "ESCALATED"


class ManualReview(BaseModel):
    """Human adjudication work item for one certificate."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    certificate_id: str
    verification_id: Optional[str] = None
    verifier_id: Optional[str] = Field(default=None, description="Bound reviewer")
    status: ReviewStatus = ReviewStatus.PENDING
    priority: ReviewPriority = ReviewPriority.MEDIUM
    reason: str = Field(default="", description="Why the review was opened")
    decision: Optional[ReviewDecision] = None
    comments: Optional[str] = None
    escalated_to: Optional[str] = None
    escalation_reason: Optional[str] = None
    sla_deadline: Optional[datetime] = None
    sla_breached: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    assigned_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "certificate_id": "cert-123",
                    "status": "IN_PROGRESS",
                    "priority": "HIGH",
                    "reason": "Low confidence score: 45.0%. Requires manual verification.",
                    "verifier_id": "verifier-7",
                    "sla_deadline": "2026-10-19T12:00:00Z",
                }
            ]
        }
    }

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_REVIEW_STATUSES

    def is_sla_breached(self, now: datetime) -> bool:
        """Derived SLA check: past the deadline and not yet completed."""
        if self.sla_deadline is None or self.status == ReviewStatus.COMPLETED:
            return False
        return now > self.sla_deadline


class ReviewStatistics(BaseModel):
    """Queue counters over an optional creation-date window."""

    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    escalated: int = 0
    approved: int = 0
    rejected: int = 0
    needs_info: int = 0
    sla_breached: int = 0
    avg_review_minutes: float = Field(
        default=0.0, description="Mean startedAt -> completedAt over completed reviews"
    )
