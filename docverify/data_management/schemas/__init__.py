"""Schema package for certificates, verifications, reviews, evidence and audit entries.

Primary exports:
- Certificate: the document under verification
- Verification / VerificationStep: one verification attempt and its checks
- ManualReview: human adjudication work item
- AuditLogEntry: one link of the audit hash chain
- EvidenceRecord: normalized, provenance-preserving check evidence
- ConfidenceResult: score, per-factor breakdown and recommendation

Usage:
    from docverify.data_management.schemas import Certificate, CertificateType
    cert = Certificate(user_id="u-1", certificate_type=CertificateType.DEGREE)
"""

from docverify.data_management.schemas.certificate_schema import (
    Certificate,
    CertificateStatus,
    CertificateType,
    IssuerType,
    IDENTITY_DOCUMENT_TYPES,
)
from docverify.data_management.schemas.verification_schema import (
    StepStatus,
    StepType,
    Verification,
    VerificationResult,
    VerificationStatus,
    VerificationStep,
    VerificationType,
)
from docverify.data_management.schemas.review_schema import (
    ACTIVE_REVIEW_STATUSES,
    ManualReview,
    ReviewDecision,
    ReviewPriority,
    ReviewStatistics,
    ReviewStatus,
)
from docverify.data_management.schemas.audit_schema import (
    AuditEntityType,
    AuditLogEntry,
)
from docverify.data_management.schemas.evidence_schema import (
    CheckKind,
    CheckOutcome,
    DigitalAuthenticityEvidence,
    EvidenceItem,
    EvidenceRecord,
    EvidenceSummary,
    ForensicEvidence,
    IdentityEvidence,
    IssuerPortalEvidence,
    ProviderResponse,
    QrCodeEvidence,
)
from docverify.data_management.schemas.scoring_schema import (
    ConfidenceResult,
    FactorContribution,
    IdentityFactors,
    Recommendation,
    StandardFactors,
)

__all__ = [
    # Certificate
    "Certificate",
    "CertificateStatus",
    "CertificateType",
    "IssuerType",
    "IDENTITY_DOCUMENT_TYPES",
    # Verification
    "StepStatus",
    "StepType",
    "Verification",
    "VerificationResult",
    "VerificationStatus",
    "VerificationStep",
    "VerificationType",
    # Review
    "ACTIVE_REVIEW_STATUSES",
    "ManualReview",
    "ReviewDecision",
    "ReviewPriority",
    "ReviewStatistics",
    "ReviewStatus",
    # Audit
    "AuditEntityType",
    "AuditLogEntry",
    # Evidence
    "CheckKind",
    "CheckOutcome",
    "DigitalAuthenticityEvidence",
    "EvidenceItem",
    "EvidenceRecord",
    "EvidenceSummary",
    "ForensicEvidence",
    "IdentityEvidence",
    "IssuerPortalEvidence",
    "ProviderResponse",
    "QrCodeEvidence",
    # Scoring
    "ConfidenceResult",
    "FactorContribution",
    "IdentityFactors",
    "Recommendation",
    "StandardFactors",
]
