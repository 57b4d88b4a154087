"""Audit log entry schema.

Entries are immutable once written and form a single global hash chain:
each entry's ``hash`` covers its own content plus ``previous_hash``, the
hash of the entry appended immediately before it (None for the first).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AuditEntityType(str, Enum):
    CERTIFICATE = "CERTIFICATE"
    VERIFICATION = "VERIFICATION"
    USER = "USER"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    CONSENT = "CONSENT"


class AuditLogEntry(BaseModel):
    """One link of the audit hash chain."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    entity_type: str
    entity_id: str
    action: str = Field(..., max_length=100)
    user_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    hash: str = Field(..., min_length=64, max_length=64)
    previous_hash: Optional[str] = Field(default=None, min_length=64, max_length=64)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "entity_type": "VERIFICATION",
                    "entity_id": "9b1f0c1e-3c53-4f43-9d55-0a1d1c7f0e11",
                    "action": "VERIFICATION_COMPLETED",
                    "user_id": "user-123",
                    "metadata": {"result": "VERIFIED", "confidenceScore": 92.5},
                    "timestamp": "2026-10-18T12:00:00+00:00",
                    "hash": "a" * 64,
                    "previous_hash": "b" * 64,
                }
            ]
        },
    }
