"""Certificate schema - the document being verified.

A certificate's identity (type, issuer, payload, QR/signature flags) is fixed
at upload. Only its status and identity-verified markers change afterwards,
and only as a consequence of a verification run.

The opaque ``certificate_data`` bag carries whatever the upload/extraction
layer produced: student fields for educational documents, holder fields for
identity documents, and optional embedded ``aadhaar`` / ``pan`` sub-records
that trigger supplementary identity checks.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class CertificateType(str, Enum):
    """Document classification driving pipeline branch selection."""

    SCHOOL_CERTIFICATE = "SCHOOL_CERTIFICATE"
    DEGREE = "DEGREE"
    DIPLOMA = "DIPLOMA"
    MARKSHEET = "MARKSHEET"
    AADHAAR_CARD = "AADHAAR_CARD"
    PAN_CARD = "PAN_CARD"
    OTHER = "OTHER"


IDENTITY_DOCUMENT_TYPES = frozenset({CertificateType.AADHAAR_CARD, CertificateType.PAN_CARD})


class IssuerType(str, Enum):
    CBSE = "CBSE"
    STATE_BOARD = "STATE_BOARD"
    UNIVERSITY = "UNIVERSITY"
    PROFESSIONAL_BODY = "PROFESSIONAL_BODY"
    GOVERNMENT = "GOVERNMENT"
    OTHER = "OTHER"


class CertificateStatus(str, Enum):
    """Certificate lifecycle.

    PENDING -> IN_PROGRESS -> {VERIFIED | UNVERIFIED | MANUAL_REVIEW | FAILED}
    """

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    VERIFIED = "VERIFIED"
    UNVERIFIED = "UNVERIFIED"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    FAILED = "FAILED"


class Certificate(BaseModel):
    """Uploaded document owned by a user."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str = Field(..., description="Owning user")
    certificate_type: CertificateType
    issuer_name: str = Field(default="", description="Issuing authority name")
    issuer_type: Optional[IssuerType] = None
    certificate_number: Optional[str] = None
    certificate_data: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque key/value payload with student or identity fields",
    )
    has_qr_code: bool = False
    has_digital_signature: bool = False
    status: CertificateStatus = CertificateStatus.PENDING
    identity_verified: bool = False
    identity_verified_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "user_id": "user-123",
                    "certificate_type": "SCHOOL_CERTIFICATE",
                    "issuer_name": "Central Board of Secondary Education",
                    "issuer_type": "CBSE",
                    "certificate_data": {
                        "studentName": "Asha Rao",
                        "rollNumber": "1234567",
                        "examYear": "2023",
                        "qrCodeData": "DL-QR-9f2c",
                    },
                    "has_qr_code": True,
                    "has_digital_signature": False,
                }
            ]
        }
    }

    @property
    def is_identity_document(self) -> bool:
        return self.certificate_type in IDENTITY_DOCUMENT_TYPES

    @property
    def qr_payload(self) -> Optional[str]:
        """QR or signature payload sent to the digital-authenticity check."""
        for key in ("qrCodeData", "qrCode", "digitalSignature"):
            value = self.certificate_data.get(key)
            if value:
                return str(value)
        return None

    def embedded_identity(self, key: str) -> dict[str, Any]:
        """Return the embedded identity sub-record (``aadhaar`` / ``pan``), if any."""
        value = self.certificate_data.get(key)
        return value if isinstance(value, dict) else {}

    def mark_identity_verified(self, at: Optional[datetime] = None) -> None:
        """Set the identity-verified flag. Idempotent; the first timestamp wins."""
        if not self.identity_verified:
            self.identity_verified = True
            self.identity_verified_at = at or datetime.now(timezone.utc)
