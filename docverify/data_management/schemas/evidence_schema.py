"""Evidence schemas: provider responses in, normalized evidence records out.

Each check kind has its own evidence variant, discriminated on ``kind``,
so consumers can match exhaustively over check kinds. Every variant keeps
the provider's untouched payload in ``raw``: evidence must be
reconstructable later without re-querying the provider.

Outcomes distinguish three cases that all count as "not passed" for scoring:
    success  provider answered and the check-specific predicate held
    failure  provider answered but the predicate did not hold
    error    provider raised, timed out, or the check could not be attempted
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field


class CheckKind(str, Enum):
    """External check kinds known to the pipeline."""

    DIGITAL_AUTHENTICITY = "digital_authenticity"
    ISSUER_PORTAL = "issuer_portal"
    FORENSIC = "forensic"
    IDENTITY_AADHAAR = "identity_aadhaar"
    IDENTITY_PAN = "identity_pan"

    @property
    def is_identity(self) -> bool:
        return self in (CheckKind.IDENTITY_AADHAAR, CheckKind.IDENTITY_PAN)


class CheckOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"


class ProviderResponse(BaseModel):
    """What one check produced, as handed to the evidence aggregator.

    ``payload`` is the provider's raw response; it is None when the provider
    raised or timed out, in which case ``error`` holds the captured message.
    """

    check_kind: CheckKind
    payload: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class _EvidenceBase(BaseModel):
    outcome: CheckOutcome
    passed: bool
    error_message: Optional[str] = None
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    raw: Optional[dict[str, Any]] = Field(
        default=None, description="Provider payload, passed through unchanged"
    )


class DigitalAuthenticityEvidence(_EvidenceBase):
    kind: Literal["digital_authenticity"] = "digital_authenticity"
    status: Optional[str] = None
    verified: bool = False
    document_id: Optional[str] = None
    issuer: Optional[dict[str, Any]] = None


class IssuerPortalEvidence(_EvidenceBase):
    kind: Literal["issuer_portal"] = "issuer_portal"
    found: bool = False
    roll_number: Optional[str] = None
    exam_year: Optional[str] = None
    student_name: Optional[str] = None
    verification_code: Optional[str] = None


class ForensicEvidence(_EvidenceBase):
    kind: Literal["forensic"] = "forensic"
    risk_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    findings: list[dict[str, Any]] = Field(default_factory=list)
    recommendation: Optional[str] = None
    analysis_time_ms: Optional[float] = None


class QrCodeEvidence(_EvidenceBase):
    """Derived from the digital-authenticity check for documents carrying a QR code."""

    kind: Literal["qr_code"] = "qr_code"
    valid: bool = False
    data: Optional[Any] = None


class IdentityEvidence(_EvidenceBase):
    kind: Literal["identity"] = "identity"
    document: Literal["aadhaar", "pan"]
    status: Optional[str] = None
    verified: bool = False
    masked_number: Optional[str] = None


EvidenceItem = Annotated[
    Union[
        DigitalAuthenticityEvidence,
        IssuerPortalEvidence,
        ForensicEvidence,
        QrCodeEvidence,
        IdentityEvidence,
    ],
    Field(discriminator="kind"),
]


class EvidenceSummary(BaseModel):
    collected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    total_checks: int = Field(default=0, ge=0)
    passed_checks: int = Field(default=0, ge=0)
    failed_checks: int = Field(default=0, ge=0)


class EvidenceRecord(BaseModel):
    """All evidence gathered during one verification run."""

    items: list[EvidenceItem] = Field(default_factory=list)
    summary: EvidenceSummary = Field(default_factory=EvidenceSummary)

    def of_kind(self, kind: str) -> list[Any]:
        return [item for item in self.items if item.kind == kind]

    def first(self, kind: str) -> Optional[Any]:
        matches = self.of_kind(kind)
        return matches[0] if matches else None
