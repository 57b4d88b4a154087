"""Evidence aggregation: raw provider responses to a normalized evidence record.

Each response is classified with its check-specific pass predicate:
- Digital authenticity: status == "SUCCESS" and verified is True
- Issuer portal: found is True
- Forensic: recommendation == "ACCEPT"
- Identity: status == "SUCCESS" and verified is True
- QR code (derived from digital authenticity): the digital check passed

Outcome distinguishes how a check did not pass: ``failure`` when the
provider answered negatively, ``error`` when it raised, timed out, or
reported a system error itself. Scoring treats both as not passed.

Absent providers are simply omitted and not counted. The provider payload
is stored untouched in each item's ``raw`` field.

Usage:
    from docverify.verification.evidence_aggregator import EvidenceAggregator

    aggregator = EvidenceAggregator()
    record = aggregator.collect(responses, qr_code=True, qr_code_data="DL-QR-9f2c")
    print(aggregator.format(record))
"""

from typing import Any, Optional

import structlog

from docverify.data_management.schemas.evidence_schema import (
    CheckKind,
    CheckOutcome,
    DigitalAuthenticityEvidence,
    EvidenceRecord,
    EvidenceSummary,
    ForensicEvidence,
    IdentityEvidence,
    IssuerPortalEvidence,
    ProviderResponse,
    QrCodeEvidence,
)


def _error_message(payload: dict[str, Any]) -> Optional[str]:
    error = payload.get("error")
    if isinstance(error, dict):
        return error.get("message") or error.get("code")
    return str(error) if error else None


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class EvidenceAggregator:
    """Normalizes provider responses and keeps running pass/fail counters."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger().bind(component="EvidenceAggregator")

    def collect(
        self,
        responses: list[ProviderResponse],
        qr_code: bool = False,
        qr_code_data: Optional[Any] = None,
    ) -> EvidenceRecord:
        """Build the evidence record for one verification run.

        Args:
            responses: One ProviderResponse per executed check, in execution order.
            qr_code: Whether the certificate declares a QR code. A derived
                QR item is added when a digital-authenticity response is present.
            qr_code_data: QR payload recorded on the derived item.

        Returns:
            EvidenceRecord with one item per response (plus the QR item)
            and summary counters.
        """
        items: list[Any] = []
        digital: Optional[DigitalAuthenticityEvidence] = None

        for response in responses:
            item = self._normalize(response)
            items.append(item)
            if isinstance(item, DigitalAuthenticityEvidence):
                digital = item

        if qr_code and digital is not None:
            items.append(
                QrCodeEvidence(
                    outcome=CheckOutcome.SUCCESS if digital.passed else digital.outcome,
                    passed=digital.passed,
                    valid=digital.passed,
                    data=qr_code_data,
                    error_message=digital.error_message,
                )
            )

        passed = sum(1 for item in items if item.passed)
        summary = EvidenceSummary(
            total_checks=len(items),
            passed_checks=passed,
            failed_checks=len(items) - passed,
        )

        self._logger.info(
            "evidence_collected",
            total_checks=summary.total_checks,
            passed_checks=summary.passed_checks,
            failed_checks=summary.failed_checks,
        )
        return EvidenceRecord(items=items, summary=summary)

    def _normalize(self, response: ProviderResponse) -> Any:
        kind = response.check_kind
        payload = response.payload

        if payload is None:
            base = {
                "outcome": CheckOutcome.ERROR,
                "passed": False,
                "error_message": response.error or "Check did not return a response",
                "checked_at": response.received_at,
            }
            if kind == CheckKind.DIGITAL_AUTHENTICITY:
                return DigitalAuthenticityEvidence(**base)
            if kind == CheckKind.ISSUER_PORTAL:
                return IssuerPortalEvidence(**base)
            if kind == CheckKind.FORENSIC:
                return ForensicEvidence(**base)
            return IdentityEvidence(document=self._identity_document(kind), **base)

        if kind == CheckKind.DIGITAL_AUTHENTICITY:
            status = payload.get("status")
            passed = status == "SUCCESS" and payload.get("verified") is True
            return DigitalAuthenticityEvidence(
                outcome=self._outcome(passed, status == "ERROR"),
                passed=passed,
                error_message=_error_message(payload),
                checked_at=response.received_at,
                raw=payload,
                status=_optional_str(status),
                verified=passed,
                document_id=_optional_str(payload.get("documentId")),
                issuer=payload.get("issuer") if isinstance(payload.get("issuer"), dict) else None,
            )

        if kind == CheckKind.ISSUER_PORTAL:
            passed = payload.get("found") is True
            return IssuerPortalEvidence(
                outcome=self._outcome(passed, False),
                passed=passed,
                error_message=_error_message(payload),
                checked_at=response.received_at,
                raw=payload,
                found=passed,
                roll_number=_optional_str(payload.get("rollNumber")),
                exam_year=_optional_str(payload.get("examYear")),
                student_name=_optional_str(payload.get("studentName")),
                verification_code=_optional_str(payload.get("verificationCode")),
            )

        if kind == CheckKind.FORENSIC:
            recommendation = payload.get("recommendation")
            passed = recommendation == "ACCEPT"
            risk = payload.get("riskScore")
            return ForensicEvidence(
                outcome=self._outcome(passed, False),
                passed=passed,
                error_message=_error_message(payload),
                checked_at=response.received_at,
                raw=payload,
                risk_score=None if risk is None else min(100.0, max(0.0, float(risk))),
                findings=list(payload.get("findings") or []),
                recommendation=_optional_str(recommendation),
                analysis_time_ms=payload.get("analysisTime"),
            )

        status = payload.get("status")
        passed = status == "SUCCESS" and payload.get("verified") is True
        return IdentityEvidence(
            outcome=self._outcome(passed, status == "ERROR"),
            passed=passed,
            error_message=_error_message(payload),
            checked_at=response.received_at,
            raw=payload,
            document=self._identity_document(kind),
            status=_optional_str(status),
            verified=passed,
            masked_number=_optional_str(payload.get("maskedNumber")),
        )

    @staticmethod
    def _outcome(passed: bool, system_error: bool) -> CheckOutcome:
        if passed:
            return CheckOutcome.SUCCESS
        return CheckOutcome.ERROR if system_error else CheckOutcome.FAILURE

    @staticmethod
    def _identity_document(kind: CheckKind) -> str:
        if kind == CheckKind.IDENTITY_AADHAAR:
            return "aadhaar"
        if kind == CheckKind.IDENTITY_PAN:
            return "pan"
        raise ValueError(f"Not an identity check kind: {kind}")

    def format(self, record: EvidenceRecord) -> str:
        """Plain-text evidence report for operators."""
        sections = ["=== VERIFICATION EVIDENCE ===", ""]

        for item in record.items:
            if isinstance(item, DigitalAuthenticityEvidence):
                sections.append("Digital Authenticity:")
                sections.append(f"  Status: {item.status or 'N/A'}")
                sections.append(f"  Verified: {'Yes' if item.verified else 'No'}")
                if item.document_id:
                    sections.append(f"  Document ID: {item.document_id}")
            elif isinstance(item, IssuerPortalEvidence):
                sections.append("Issuer Portal Lookup:")
                sections.append(f"  Found: {'Yes' if item.found else 'No'}")
                if item.found:
                    sections.append(f"  Roll Number: {item.roll_number}")
                    sections.append(f"  Student: {item.student_name}")
                    sections.append(f"  Verification Code: {item.verification_code}")
            elif isinstance(item, ForensicEvidence):
                sections.append("Forensic Analysis:")
                risk = "N/A" if item.risk_score is None else f"{item.risk_score:g}/100"
                sections.append(f"  Risk Score: {risk}")
                sections.append(f"  Recommendation: {item.recommendation or 'N/A'}")
                sections.append(f"  Findings: {len(item.findings)}")
            elif isinstance(item, QrCodeEvidence):
                sections.append("QR Code Validation:")
                sections.append(f"  Valid: {'Yes' if item.valid else 'No'}")
            elif isinstance(item, IdentityEvidence):
                sections.append(f"Identity Check ({item.document.upper()}):")
                sections.append(f"  Status: {item.status or 'N/A'}")
                sections.append(f"  Verified: {'Yes' if item.verified else 'No'}")
                if item.masked_number:
                    sections.append(f"  Number: {item.masked_number}")
            if item.error_message:
                sections.append(f"  Error: {item.error_message}")
            sections.append("")

        sections.append("Summary:")
        sections.append(f"  Total Checks: {record.summary.total_checks}")
        sections.append(f"  Passed: {record.summary.passed_checks}")
        sections.append(f"  Failed: {record.summary.failed_checks}")
        return "\n".join(sections)

    def extract_key_findings(self, record: EvidenceRecord) -> list[str]:
        """Short human-readable findings, one per notable check result."""
        findings: list[str] = []
        for item in record.items:
            if isinstance(item, DigitalAuthenticityEvidence) and item.verified:
                findings.append("Certificate verified via digital authenticity check")
            elif isinstance(item, IssuerPortalEvidence) and item.found:
                findings.append("Certificate found in issuer records")
            elif isinstance(item, ForensicEvidence) and item.outcome != CheckOutcome.ERROR:
                if item.recommendation == "ACCEPT":
                    findings.append("Forensic analysis passed")
                elif item.recommendation == "REJECT":
                    findings.append(f"Forensic analysis failed (Risk: {item.risk_score or 0:g}%)")
                else:
                    findings.append("Forensic analysis requires review")
            elif isinstance(item, QrCodeEvidence) and item.valid:
                findings.append("QR code validated successfully")
            elif isinstance(item, IdentityEvidence) and item.verified:
                findings.append(f"{item.document.upper()} identity verified")
            elif item.outcome == CheckOutcome.ERROR:
                findings.append(f"{item.kind.replace('_', ' ').capitalize()} check errored")
        return findings
