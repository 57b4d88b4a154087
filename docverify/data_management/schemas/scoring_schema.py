"""Confidence scoring inputs and outputs.

Two factor sets exist. Identity documents are scored almost entirely on the
single identity check; standard documents combine every applicable check.
A factor left as None was not applicable and is omitted from the breakdown.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Recommendation(str, Enum):
    ACCEPT = "ACCEPT"
    REVIEW = "REVIEW"
    REJECT = "REJECT"


class StandardFactors(BaseModel):
    """Factors for educational and other non-identity documents."""

    digital_authenticity_passed: Optional[bool] = None
    portal_found: Optional[bool] = None
    forensic_passed: Optional[bool] = None
    forensic_risk_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    qr_code_valid: Optional[bool] = None
    signature_valid: Optional[bool] = None
    identity_checks: dict[str, bool] = Field(
        default_factory=dict,
        description="Supplementary identity checks keyed by document (aadhaar, pan)",
    )


class IdentityFactors(BaseModel):
    """Factors for national identity documents."""

    identity_verified: bool
    forensic_passed: Optional[bool] = None


class FactorContribution(BaseModel):
    name: str
    weight: float
    passed: bool
    contribution: float


class ConfidenceResult(BaseModel):
    score: float = Field(..., ge=0.0, le=100.0)
    factors: list[FactorContribution] = Field(default_factory=list)
    recommendation: Recommendation
