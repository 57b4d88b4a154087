"""Mock check providers simulating the external verification authorities.

Each mock reproduces its authority's response shape and a realistic mix of
outcomes (success, negative answer, system error) drawn from a seeded
``random.Random``, with optional simulated latency. Passing ``outcome``
forces one branch for reproducible demos.

Providers:
- MockDigitalAuthenticityProvider: document-wallet QR/signature check
- MockIssuerPortalProvider: exam-board result lookup by roll number
- MockForensicProvider: tamper analysis with severity-weighted risk score
- MockAadhaarProvider: 12-digit national id, Verhoeff-checked
- MockPanProvider: 10-character tax id, AAAAA9999A
"""

import asyncio
import random
import re
import string
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from docverify.checks.base_provider import CheckProvider
from docverify.config.settings import settings
from docverify.data_management.schemas.certificate_schema import Certificate, CertificateType
from docverify.data_management.schemas.evidence_schema import CheckKind

logger = structlog.get_logger().bind(component="MockProviders")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class MockCheckProvider(CheckProvider):
    """Shared randomness, latency and outcome selection for mock providers."""

    # (outcome, cumulative probability upper bound); the remainder is "success"
    outcome_rates: tuple[tuple[str, float], ...] = ()

    def __init__(
        self,
        seed: Optional[int] = None,
        delay_min: Optional[float] = None,
        delay_max: Optional[float] = None,
        outcome: Optional[str] = None,
    ):
        self._rng = random.Random(settings.mock_seed if seed is None else seed)
        self.delay_min = settings.mock_response_delay_min if delay_min is None else delay_min
        self.delay_max = settings.mock_response_delay_max if delay_max is None else delay_max
        self.forced_outcome = outcome

    async def _simulate_delay(self) -> float:
        if self.delay_max <= 0:
            return 0.0
        delay = self._rng.uniform(self.delay_min, max(self.delay_min, self.delay_max))
        await asyncio.sleep(delay)
        return delay

    def _determine_outcome(self) -> str:
        if self.forced_outcome:
            return self.forced_outcome
        roll = self._rng.random()
        bound = 0.0
        for outcome, rate in self.outcome_rates:
            bound += rate
            if roll < bound:
                return outcome
        return "success"

    def _token(self, length: int) -> str:
        return "".join(self._rng.choices(string.ascii_uppercase + string.digits, k=length))


class MockDigitalAuthenticityProvider(MockCheckProvider):
    check_kind = CheckKind.DIGITAL_AUTHENTICITY
    name = "Digital authenticity verification"
    outcome_rates = (("error", 0.02), ("invalid", 0.03))

    async def run(self, certificate: Certificate) -> dict[str, Any]:
        logger.info("digital_check_started", certificate_id=certificate.id)
        await self._simulate_delay()
        outcome = self._determine_outcome()

        if outcome == "error":
            return {
                "status": "ERROR",
                "error": {"code": "NETWORK_TIMEOUT", "message": "Request timed out"},
                "timestamp": _timestamp(),
            }
        if outcome == "invalid" or not certificate.qr_payload:
            return {
                "status": "FAILED",
                "error": {
                    "code": "INVALID_SIGNATURE",
                    "message": "Digital signature verification failed",
                },
                "timestamp": _timestamp(),
            }

        data = certificate.certificate_data
        return {
            "status": "SUCCESS",
            "documentId": f"DL-{datetime.now(timezone.utc).year}-{self._token(8)}",
            "verified": True,
            "issuer": {
                "name": certificate.issuer_name or "Central Board of Secondary Education",
                "code": certificate.issuer_type.value if certificate.issuer_type else "CBSE",
                "verified": True,
            },
            "document": {
                "type": "CERTIFICATE",
                "issueDate": data.get("issueDate") or datetime.now(timezone.utc).date().isoformat(),
            },
            "timestamp": _timestamp(),
        }


class MockIssuerPortalProvider(MockCheckProvider):
    check_kind = CheckKind.ISSUER_PORTAL
    name = "Issuer portal lookup"
    outcome_rates = (("portal_down", 0.05), ("not_found", 0.07))

    SUBJECTS = ("Mathematics", "Physics", "Chemistry", "English", "Computer Science")

    async def run(self, certificate: Certificate) -> dict[str, Any]:
        data = certificate.certificate_data
        roll_number = str(data.get("rollNumber") or "")
        exam_year = str(data.get("examYear") or "")
        logger.info(
            "portal_lookup_started",
            certificate_id=certificate.id,
            roll_number=roll_number,
            exam_year=exam_year,
        )
        await self._simulate_delay()
        outcome = self._determine_outcome()

        if outcome == "portal_down":
            return {
                "found": False,
                "error": {
                    "code": "PORTAL_UNAVAILABLE",
                    "message": "Issuer portal is temporarily unavailable",
                },
                "timestamp": _timestamp(),
            }
        if outcome == "not_found" or not roll_number:
            return {
                "found": False,
                "error": {
                    "code": "RECORD_NOT_FOUND",
                    "message": "Certificate record not found in issuer database",
                },
                "timestamp": _timestamp(),
            }

        subjects = []
        for subject in self.SUBJECTS:
            marks = self._rng.randint(80, 99)
            grade = "A+" if marks >= 90 else "A"
            subjects.append({"name": subject, "marks": marks, "maxMarks": 100, "grade": grade})
        percentage = sum(s["marks"] for s in subjects) / (100 * len(subjects)) * 100

        return {
            "found": True,
            "rollNumber": roll_number,
            "examYear": exam_year,
            "studentName": data.get("studentName") or "John Doe",
            "school": data.get("school") or {"name": "Delhi Public School", "code": "1234567"},
            "result": {
                "status": "PASS",
                "percentage": round(percentage, 2),
                "subjects": subjects,
            },
            "verificationCode": f"VER-{exam_year}-{self._token(5)}",
            "timestamp": _timestamp(),
        }


SEVERITY_WEIGHTS = {"LOW": 15, "MEDIUM": 40, "HIGH": 80}

# (category, severity, probability, description, evidence)
FORENSIC_DETECTORS = (
    (
        "FONT_ANALYSIS",
        "MEDIUM",
        0.05,
        "Inconsistent font usage detected in certificate body",
        "Multiple font families found: Arial, Times New Roman",
    ),
    (
        "METADATA",
        "HIGH",
        0.03,
        "Document creation date does not match issue date",
        "Creation timestamp postdates the stated issue date",
    ),
    (
        "TEMPLATE",
        "LOW",
        0.04,
        "Minor deviations from standard certificate template",
        "Logo placement differs by 2px from standard",
    ),
    (
        "SEAL",
        "HIGH",
        0.02,
        "Official seal shows signs of digital manipulation",
        "Error level analysis indicates copy-paste artifacts",
    ),
)


def forensic_risk_score(findings: list[dict[str, Any]]) -> int:
    """Sum of severity weights, capped at 100."""
    return min(100, sum(SEVERITY_WEIGHTS[f["severity"]] for f in findings))


def forensic_recommendation(risk_score: float) -> str:
    if risk_score >= 70:
        return "REJECT"
    if risk_score >= 30:
        return "REVIEW"
    return "ACCEPT"


class MockForensicProvider(MockCheckProvider):
    """Tamper analysis. ``findings`` pins the detector output for demos."""

    check_kind = CheckKind.FORENSIC
    name = "Forensic analysis"

    def __init__(self, findings: Optional[list[dict[str, Any]]] = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.fixed_findings = findings

    def _detect(self) -> list[dict[str, Any]]:
        if self.fixed_findings is not None:
            return [dict(f) for f in self.fixed_findings]
        findings = []
        for category, severity, probability, description, evidence in FORENSIC_DETECTORS:
            if self._rng.random() < probability:
                findings.append(
                    {
                        "category": category,
                        "severity": severity,
                        "description": description,
                        "evidence": evidence,
                    }
                )
        return findings

    async def run(self, certificate: Certificate) -> dict[str, Any]:
        started = datetime.now(timezone.utc)
        await self._simulate_delay()
        findings = self._detect()
        risk_score = forensic_risk_score(findings)
        recommendation = forensic_recommendation(risk_score)
        analysis_ms = (datetime.now(timezone.utc) - started).total_seconds() * 1000

        logger.info(
            "forensic_analysis_completed",
            certificate_id=certificate.id,
            risk_score=risk_score,
            findings_count=len(findings),
            recommendation=recommendation,
        )
        return {
            "riskScore": risk_score,
            "findings": findings,
            "recommendation": recommendation,
            "analysisTime": round(analysis_ms, 2),
            "timestamp": _timestamp(),
        }


class MockIdentityProvider(MockCheckProvider):
    """Identity checks read the holder fields from the document itself for
    identity documents, or from the embedded sub-record otherwise."""

    document_type: CertificateType
    record_key: str
    number_field: str

    def _identity_fields(self, certificate: Certificate) -> dict[str, Any]:
        if certificate.certificate_type == self.document_type:
            return certificate.certificate_data
        return certificate.embedded_identity(self.record_key)

    def _identity_number(self, certificate: Certificate) -> str:
        value = self._identity_fields(certificate).get(self.number_field) or ""
        return re.sub(r"[\s-]", "", str(value)).upper()


VERHOEFF_MULTIPLICATION = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9),
    (1, 2, 3, 4, 0, 6, 7, 8, 9, 5),
    (2, 3, 4, 0, 1, 7, 8, 9, 5, 6),
    (3, 4, 0, 1, 2, 8, 9, 5, 6, 7),
    (4, 0, 1, 2, 3, 9, 5, 6, 7, 8),
    (5, 9, 8, 7, 6, 0, 4, 3, 2, 1),
    (6, 5, 9, 8, 7, 1, 0, 4, 3, 2),
    (7, 6, 5, 9, 8, 2, 1, 0, 4, 3),
    (8, 7, 6, 5, 9, 3, 2, 1, 0, 4),
    (9, 8, 7, 6, 5, 4, 3, 2, 1, 0),
)

VERHOEFF_PERMUTATION = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9),
    (1, 5, 7, 6, 2, 8, 3, 0, 9, 4),
    (5, 8, 0, 3, 7, 9, 6, 1, 4, 2),
    (8, 9, 1, 6, 0, 4, 3, 5, 2, 7),
    (9, 4, 5, 3, 1, 2, 6, 8, 7, 0),
    (4, 2, 8, 6, 5, 7, 3, 9, 0, 1),
    (2, 7, 9, 3, 8, 0, 6, 4, 1, 5),
    (7, 0, 4, 6, 9, 1, 3, 2, 5, 8),
)


def verhoeff_valid(number: str) -> bool:
    """True for a 12-digit number whose Verhoeff checksum is zero."""
    if not re.fullmatch(r"\d{12}", number):
        return False
    checksum = 0
    for i, digit in enumerate(int(d) for d in reversed(number)):
        checksum = VERHOEFF_MULTIPLICATION[checksum][VERHOEFF_PERMUTATION[i % 8][digit]]
    return checksum == 0


def mask_aadhaar(number: str) -> str:
    return f"XXXX-XXXX-{number[-4:]}"


PAN_PATTERN = re.compile(r"[A-Z]{5}[0-9]{4}[A-Z]")


def mask_pan(number: str) -> str:
    return f"{number[:2]}XXXXXX{number[-2:]}"


class MockAadhaarProvider(MockIdentityProvider):
    check_kind = CheckKind.IDENTITY_AADHAAR
    name = "Aadhaar identity verification"
    document_type = CertificateType.AADHAAR_CARD
    record_key = "aadhaar"
    number_field = "aadhaarNumber"
    outcome_rates = (("error", 0.01), ("invalid", 0.05), ("mismatch", 0.02))

    async def run(self, certificate: Certificate) -> dict[str, Any]:
        number = self._identity_number(certificate)
        if not re.fullmatch(r"\d{12}", number):
            return {
                "status": "FAILED",
                "verified": False,
                "error": {"code": "INVALID_FORMAT", "message": "Aadhaar number must be 12 digits"},
                "timestamp": _timestamp(),
            }
        if not verhoeff_valid(number):
            logger.warning("aadhaar_checksum_failed", certificate_id=certificate.id)
            return {
                "status": "FAILED",
                "verified": False,
                "error": {"code": "INVALID_AADHAAR", "message": "Invalid Aadhaar number"},
                "timestamp": _timestamp(),
            }

        await self._simulate_delay()
        outcome = self._determine_outcome()
        masked = mask_aadhaar(number)

        if outcome == "error":
            return {
                "status": "ERROR",
                "error": {
                    "code": "UIDAI_UNAVAILABLE",
                    "message": "Identity service temporarily unavailable",
                },
                "timestamp": _timestamp(),
            }
        if outcome == "invalid":
            return {
                "status": "FAILED",
                "verified": False,
                "error": {"code": "AADHAAR_NOT_FOUND", "message": "Aadhaar number not found"},
                "timestamp": _timestamp(),
            }
        if outcome == "mismatch":
            return {
                "status": "FAILED",
                "verified": False,
                "maskedNumber": masked,
                "demographicMatch": {
                    "name": False,
                    "dob": True,
                    "gender": True,
                    "address": True,
                    "overallScore": self._rng.randint(30, 69),
                },
                "error": {
                    "code": "DEMOGRAPHIC_MISMATCH",
                    "message": "Provided demographic details do not match records",
                },
                "timestamp": _timestamp(),
            }
        return {
            "status": "SUCCESS",
            "verified": True,
            "maskedNumber": masked,
            "demographicMatch": {
                "name": True,
                "dob": True,
                "gender": True,
                "address": True,
                "overallScore": 100,
            },
            "verificationId": f"UIDAI-VER-{datetime.now(timezone.utc).year}-{self._token(8)}",
            "timestamp": _timestamp(),
        }


class MockPanProvider(MockIdentityProvider):
    check_kind = CheckKind.IDENTITY_PAN
    name = "PAN identity verification"
    document_type = CertificateType.PAN_CARD
    record_key = "pan"
    number_field = "panNumber"
    outcome_rates = (("error", 0.005), ("invalid", 0.04), ("inactive", 0.015))

    async def run(self, certificate: Certificate) -> dict[str, Any]:
        number = self._identity_number(certificate)
        if not PAN_PATTERN.fullmatch(number):
            return {
                "status": "FAILED",
                "verified": False,
                "error": {"code": "INVALID_FORMAT", "message": "PAN must match AAAAA9999A"},
                "timestamp": _timestamp(),
            }

        await self._simulate_delay()
        outcome = self._determine_outcome()
        masked = mask_pan(number)

        if outcome == "error":
            return {
                "status": "ERROR",
                "error": {"code": "SERVICE_UNAVAILABLE", "message": "PAN service unavailable"},
                "timestamp": _timestamp(),
            }
        if outcome == "invalid":
            return {
                "status": "FAILED",
                "verified": False,
                "error": {"code": "PAN_NOT_FOUND", "message": "PAN not found"},
                "timestamp": _timestamp(),
            }
        if outcome == "inactive":
            return {
                "status": "FAILED",
                "verified": False,
                "maskedNumber": masked,
                "panStatus": "Inactive",
                "error": {"code": "PAN_INACTIVE", "message": "PAN is not active"},
                "timestamp": _timestamp(),
            }
        return {
            "status": "SUCCESS",
            "verified": True,
            "maskedNumber": masked,
            "panStatus": "Active",
            "nameMatch": True,
            "timestamp": _timestamp(),
        }


def build_mock_providers(
    seed: Optional[int] = None, **kwargs: Any
) -> dict[CheckKind, CheckProvider]:
    """One mock provider per check kind, sharing seed and latency settings."""
    providers: list[CheckProvider] = [
        MockDigitalAuthenticityProvider(seed=seed, **kwargs),
        MockIssuerPortalProvider(seed=seed, **kwargs),
        MockForensicProvider(seed=seed, **kwargs),
        MockAadhaarProvider(seed=seed, **kwargs),
        MockPanProvider(seed=seed, **kwargs),
    ]
    return {p.check_kind: p for p in providers}
