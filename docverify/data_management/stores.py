"""One store per entity, wired to a shared data directory."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from docverify.data_management.audit_store import AuditStore
from docverify.data_management.certificate_store import CertificateStore
from docverify.data_management.review_store import ReviewStore
from docverify.data_management.verification_store import VerificationStore

CERTIFICATES_FILE = "certificates.json"
VERIFICATIONS_FILE = "verifications.json"
REVIEWS_FILE = "reviews.json"
AUDIT_LOG_FILE = "audit_log.jsonl"


@dataclass
class Stores:
    """The persistence collaborator: one store for each entity type."""

    certificates: CertificateStore = field(default_factory=CertificateStore)
    verifications: VerificationStore = field(default_factory=VerificationStore)
    reviews: ReviewStore = field(default_factory=ReviewStore)
    audit: AuditStore = field(default_factory=AuditStore)

    @classmethod
    def in_directory(cls, data_dir: Optional[str]) -> "Stores":
        """Build stores persisting under ``data_dir``, or memory-only stores if None."""
        if not data_dir:
            return cls()
        root = Path(data_dir)
        return cls(
            certificates=CertificateStore(str(root / CERTIFICATES_FILE)),
            verifications=VerificationStore(str(root / VERIFICATIONS_FILE)),
            reviews=ReviewStore(str(root / REVIEWS_FILE)),
            audit=AuditStore(str(root / AUDIT_LOG_FILE)),
        )
