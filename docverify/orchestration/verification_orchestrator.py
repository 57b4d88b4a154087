"""Verification orchestrator: drives one certificate through its checks.

Pipeline per certificate classification:

Identity documents (AADHAAR_CARD, PAN_CARD):
    1. The identity check matching the document type
    Scored with the identity factor set; a VERIFIED result marks the
    certificate identity-verified.

Standard documents, in fixed order:
    1. Digital authenticity - only with a QR code or digital signature
    2. Issuer portal lookup - always
    3. Forensic analysis - always
    4. Supplementary identity checks - one per embedded aadhaar/pan record

Inapplicable steps are never created. A check that raises or times out is
recorded as a FAILED step and the pipeline moves on: failed checks are
scoring inputs, not pipeline errors.

After the checks: aggregate evidence, score, map the recommendation to a
result (ACCEPT -> VERIFIED, REVIEW -> INCONCLUSIVE plus a manual review,
REJECT -> UNVERIFIED), persist the verification as COMPLETED, write the
audit entry, then notify. Any exception escaping this sequence marks the
verification FAILED without a result; only ``retry`` restarts it.

State machine:
    PENDING --start--> IN_PROGRESS --success--> COMPLETED
                       IN_PROGRESS --exception--> FAILED --retry--> IN_PROGRESS

Usage:
    orchestrator = VerificationOrchestrator(stores=stores, providers=providers)
    verification = await orchestrator.start(certificate.id, requested_by="user-1")
    await orchestrator.wait_for(verification.id)
    verification = await orchestrator.get(verification.id)
"""

import asyncio
import itertools
import time
from datetime import datetime, timezone
from typing import Any, Iterator, Optional, Union

from docverify.audit.hash_chain import AuditChain
from docverify.checks.base_provider import CheckProvider
from docverify.checks.mock_providers import build_mock_providers
from docverify.config.settings import settings
from docverify.data_management.schemas.audit_schema import AuditEntityType
from docverify.data_management.schemas.certificate_schema import (
    Certificate,
    CertificateStatus,
    CertificateType,
)
from docverify.data_management.schemas.evidence_schema import (
    CheckKind,
    DigitalAuthenticityEvidence,
    EvidenceRecord,
    ForensicEvidence,
    IdentityEvidence,
    IssuerPortalEvidence,
    ProviderResponse,
)
from docverify.data_management.schemas.review_schema import ManualReview, ReviewPriority
from docverify.data_management.schemas.scoring_schema import (
    ConfidenceResult,
    IdentityFactors,
    Recommendation,
    StandardFactors,
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
from docverify.data_management.stores import Stores
from docverify.errors import (
    CheckProviderError,
    DocVerifyError,
    InvalidStateError,
    NotFoundError,
    PipelineError,
)
from docverify.notifications.notification_service import NotificationService
from docverify.orchestration.pipeline_runner import PipelineRunner
from docverify.review.manual_review_queue import ManualReviewQueue
from docverify.utils.logging import get_correlation_id, get_structured_logger
from docverify.verification.confidence_calculator import ConfidenceCalculator
from docverify.verification.evidence_aggregator import EvidenceAggregator

RESULT_BY_RECOMMENDATION = {
    Recommendation.ACCEPT: VerificationResult.VERIFIED,
    Recommendation.REVIEW: VerificationResult.INCONCLUSIVE,
    Recommendation.REJECT: VerificationResult.UNVERIFIED,
}

CERTIFICATE_STATUS_BY_RESULT = {
    VerificationResult.VERIFIED: CertificateStatus.VERIFIED,
    VerificationResult.UNVERIFIED: CertificateStatus.UNVERIFIED,
    VerificationResult.INCONCLUSIVE: CertificateStatus.MANUAL_REVIEW,
}

IDENTITY_CHECK_BY_TYPE = {
    CertificateType.AADHAAR_CARD: CheckKind.IDENTITY_AADHAAR,
    CertificateType.PAN_CARD: CheckKind.IDENTITY_PAN,
}

# (check kind, embedded record key, number field)
SUPPLEMENTARY_IDENTITY_CHECKS = (
    (CheckKind.IDENTITY_AADHAAR, "aadhaar", "aadhaarNumber"),
    (CheckKind.IDENTITY_PAN, "pan", "panNumber"),
)

STEP_TYPE_BY_KIND = {
    CheckKind.DIGITAL_AUTHENTICITY: StepType.DIGITAL_AUTHENTICITY,
    CheckKind.ISSUER_PORTAL: StepType.ISSUER_PORTAL,
    CheckKind.FORENSIC: StepType.FORENSIC,
    CheckKind.IDENTITY_AADHAAR: StepType.IDENTITY,
    CheckKind.IDENTITY_PAN: StepType.IDENTITY,
}

VERIFICATION_ENTITY = "Verification"
CERTIFICATE_ENTITY = "Certificate"


class VerificationOrchestrator:
    """Top-level coordinator of verification runs."""

    def __init__(
        self,
        stores: Optional[Stores] = None,
        providers: Optional[dict[CheckKind, CheckProvider]] = None,
        calculator: Optional[ConfidenceCalculator] = None,
        aggregator: Optional[EvidenceAggregator] = None,
        review_queue: Optional[ManualReviewQueue] = None,
        audit: Optional[AuditChain] = None,
        notifier: Optional[NotificationService] = None,
        runner: Optional[PipelineRunner] = None,
        check_timeout: Optional[float] = None,
        high_priority_below: Optional[float] = None,
    ) -> None:
        """Initialize the orchestrator.

        Every collaborator is optional; defaults are memory-only stores,
        mock providers and settings-driven thresholds.

        Args:
            stores: Persistence collaborator.
            providers: One check provider per check kind.
            calculator: Confidence calculator.
            aggregator: Evidence aggregator.
            review_queue: Queue receiving inconclusive verifications.
            audit: Audit chain writer over ``stores.audit``.
            notifier: Notification collaborator.
            runner: Bounded pool running detached pipelines.
            check_timeout: Seconds allowed per check. Defaults to settings.
            high_priority_below: Inconclusive scores below this get HIGH review
                priority. Defaults to settings.
        """
        self.stores = stores or Stores()
        self.providers = providers if providers is not None else build_mock_providers()
        self.calculator = calculator or ConfidenceCalculator()
        self.aggregator = aggregator or EvidenceAggregator()
        self.audit = audit or AuditChain(self.stores.audit)
        self.review_queue = review_queue or ManualReviewQueue(self.stores.reviews, audit=self.audit)
        self.notifier = notifier or NotificationService()
        self.runner = runner or PipelineRunner()
        self.check_timeout = check_timeout or settings.check_timeout_seconds
        self.high_priority_below = (
            settings.high_priority_below if high_priority_below is None else high_priority_below
        )
        self._transition_lock = asyncio.Lock()
        self._logger = get_structured_logger("VerificationOrchestrator")

    # ── Public operations ─────────────────────────────────────────────

    async def start(
        self,
        certificate_id: str,
        verification_type: VerificationType = VerificationType.COMBINED,
        requested_by: Optional[str] = None,
    ) -> Verification:
        """Create an IN_PROGRESS verification and run its pipeline in the background.

        Raises:
            NotFoundError: The certificate does not exist.
            OSError: The audit log could not be written; the verification is
                left FAILED and can be retried.
        """
        certificate = await self.stores.certificates.get(certificate_id)
        if certificate is None:
            raise NotFoundError(CERTIFICATE_ENTITY, certificate_id)

        verification = Verification(
            certificate_id=certificate_id,
            verification_type=verification_type,
            requested_by=requested_by,
        )
        verification.mark_in_progress()
        verification = await self.stores.verifications.save(verification)

        certificate.status = CertificateStatus.IN_PROGRESS
        await self.stores.certificates.save(certificate)

        try:
            await self.audit.append(
                AuditEntityType.VERIFICATION,
                verification.id,
                "VERIFICATION_STARTED",
                user_id=requested_by,
                metadata={
                    "certificateId": certificate_id,
                    "verificationType": verification_type.value,
                },
            )
        except OSError:
            await self._abandon(verification)
            raise
        self._logger.info(
            "verification_started",
            verification_id=verification.id,
            certificate_id=certificate_id,
            verification_type=verification_type.value,
        )

        self.runner.submit(verification.id, lambda: self._execute(verification.id))
        return verification

    async def retry(self, verification_id: str, user_id: Optional[str] = None) -> Verification:
        """Reset a FAILED verification and run its pipeline again from step 1.

        Raises:
            NotFoundError: The verification does not exist.
            InvalidStateError: The verification is not FAILED, or its previous
                pipeline is still finishing (audit entry, notification).
            OSError: The audit log could not be written; the verification is
                left FAILED.
        """
        async with self._transition_lock:
            verification = await self.get(verification_id)
            if verification.status != VerificationStatus.FAILED:
                raise InvalidStateError(
                    "Only FAILED verifications can be retried",
                    entity_type=VERIFICATION_ENTITY,
                    entity_id=verification_id,
                    current_state=verification.status.value,
                )
            # FAILED is saved before the failure is audited and notified
            if self.runner.is_running(verification_id):
                raise InvalidStateError(
                    "Previous pipeline is still finishing; retry once it is done",
                    entity_type=VERIFICATION_ENTITY,
                    entity_id=verification_id,
                    current_state=verification.status.value,
                )
            verification.reset_for_retry()
            verification = await self.stores.verifications.save(verification)
            deleted = await self.stores.verifications.delete_steps(verification_id)

        certificate = await self.stores.certificates.get(verification.certificate_id)
        if certificate is not None:
            certificate.status = CertificateStatus.IN_PROGRESS
            await self.stores.certificates.save(certificate)

        try:
            await self.audit.append(
                AuditEntityType.VERIFICATION,
                verification_id,
                "VERIFICATION_RETRIED",
                user_id=user_id,
                metadata={
                    "certificateId": verification.certificate_id,
                    "attempt": verification.attempt,
                    "deletedSteps": deleted,
                },
            )
        except OSError:
            await self._abandon(verification)
            raise
        self._logger.info(
            "verification_retried",
            verification_id=verification_id,
            attempt=verification.attempt,
            deleted_steps=deleted,
        )

        self.runner.submit(verification_id, lambda: self._execute(verification_id))
        return verification

    async def get(self, verification_id: str) -> Verification:
        verification = await self.stores.verifications.get(verification_id)
        if verification is None:
            raise NotFoundError(VERIFICATION_ENTITY, verification_id)
        return verification

    async def get_steps(self, verification_id: str) -> list[VerificationStep]:
        await self.get(verification_id)
        return await self.stores.verifications.get_steps(verification_id)

    async def list_for_certificate(self, certificate_id: str) -> list[Verification]:
        return await self.stores.verifications.list_for_certificate(certificate_id)

    async def wait_for(self, verification_id: str, timeout: Optional[float] = None) -> Verification:
        """Await the detached pipeline of a verification, then return its record."""
        await self.runner.wait_for(verification_id, timeout)
        return await self.get(verification_id)

    async def drain(self) -> None:
        await self.runner.drain()

    # ── Pipeline ──────────────────────────────────────────────────────

    async def _execute(self, verification_id: str) -> None:
        verification = await self.get(verification_id)
        log = get_structured_logger(
            "VerificationOrchestrator",
            verification_id=verification_id,
            certificate_id=verification.certificate_id,
            correlation_id=get_correlation_id(),
            attempt=verification.attempt,
        )
        stage = "load"
        try:
            certificate = await self.stores.certificates.get(verification.certificate_id)
            if certificate is None:
                raise NotFoundError(CERTIFICATE_ENTITY, verification.certificate_id)

            stage = "checks"
            sequence = itertools.count(1)
            if certificate.is_identity_document:
                responses = await self._run_identity_path(verification, certificate, sequence, log)
            else:
                responses = await self._run_standard_path(verification, certificate, sequence, log)

            stage = "aggregation"
            record = self.aggregator.collect(
                responses,
                qr_code=certificate.has_qr_code,
                qr_code_data=certificate.qr_payload,
            )

            stage = "scoring"
            if certificate.is_identity_document:
                confidence = self.calculator.calculate(self._identity_factors(record))
            else:
                confidence = self.calculator.calculate(self._standard_factors(certificate, record))

            stage = "finalize"
            await self._complete(verification, certificate, record, confidence, log)
        except Exception as e:
            error = PipelineError(verification_id, stage, e)
            log.error("verification_pipeline_failed", stage=stage, error=str(e), error_type=type(e).__name__)
            await self._fail(verification_id, error, log)

    async def _run_identity_path(
        self,
        verification: Verification,
        certificate: Certificate,
        sequence: Iterator[int],
        log: Any,
    ) -> list[ProviderResponse]:
        kind = IDENTITY_CHECK_BY_TYPE[certificate.certificate_type]
        log.info("identity_path_selected", check_kind=kind.value)
        response = await self._run_step(verification, certificate, kind, next(sequence), log)
        return [response]

    async def _run_standard_path(
        self,
        verification: Verification,
        certificate: Certificate,
        sequence: Iterator[int],
        log: Any,
    ) -> list[ProviderResponse]:
        kinds: list[CheckKind] = []
        if certificate.has_qr_code or certificate.has_digital_signature:
            kinds.append(CheckKind.DIGITAL_AUTHENTICITY)
        kinds.extend([CheckKind.ISSUER_PORTAL, CheckKind.FORENSIC])
        for kind, record_key, number_field in SUPPLEMENTARY_IDENTITY_CHECKS:
            if certificate.embedded_identity(record_key).get(number_field):
                kinds.append(kind)

        log.info("standard_path_selected", checks=[k.value for k in kinds])
        responses = []
        for kind in kinds:
            responses.append(
                await self._run_step(verification, certificate, kind, next(sequence), log)
            )
        return responses

    async def _run_step(
        self,
        verification: Verification,
        certificate: Certificate,
        kind: CheckKind,
        sequence_number: int,
        log: Any,
    ) -> ProviderResponse:
        """Create, execute and update one step. Check failures never propagate."""
        provider = self._provider(kind)
        step = VerificationStep(
            verification_id=verification.id,
            step_type=STEP_TYPE_BY_KIND[kind],
            step_name=provider.name,
            check_kind=kind.value,
            sequence_number=sequence_number,
            status=StepStatus.IN_PROGRESS,
        )
        await self.stores.verifications.add_step(step)

        started = time.monotonic()
        try:
            payload = await asyncio.wait_for(provider.run(certificate), timeout=self.check_timeout)
            if not isinstance(payload, dict):
                raise CheckProviderError(kind.value, "Provider returned a non-object payload")
            step.status = StepStatus.COMPLETED
            step.result = payload
            response = ProviderResponse(check_kind=kind, payload=payload)
        except asyncio.TimeoutError:
            error = CheckProviderError(
                kind.value,
                f"Check timed out after {self.check_timeout}s",
                verification_id=verification.id,
                stage=step.step_name,
            )
            response = self._failed_step(step, error, log)
        except Exception as e:
            error = CheckProviderError(
                kind.value,
                str(e) or type(e).__name__,
                verification_id=verification.id,
                stage=step.step_name,
            )
            response = self._failed_step(step, error, log)

        step.duration_ms = int((time.monotonic() - started) * 1000)
        await self.stores.verifications.save_step(step)
        log.info(
            "step_finished",
            sequence_number=sequence_number,
            check_kind=kind.value,
            status=step.status.value,
            duration_ms=step.duration_ms,
        )
        return response

    def _failed_step(
        self, step: VerificationStep, error: CheckProviderError, log: Any
    ) -> ProviderResponse:
        step.status = StepStatus.FAILED
        step.error_message = error.message
        log.warning("check_failed", **error.to_dict())
        return ProviderResponse(check_kind=CheckKind(step.check_kind), error=error.message)

    def _provider(self, kind: CheckKind) -> CheckProvider:
        provider = self.providers.get(kind)
        if provider is None:
            raise DocVerifyError("No check provider configured", check_kind=kind.value)
        return provider

    # ── Scoring inputs ────────────────────────────────────────────────

    @staticmethod
    def _standard_factors(certificate: Certificate, record: EvidenceRecord) -> StandardFactors:
        digital: Optional[DigitalAuthenticityEvidence] = record.first("digital_authenticity")
        portal: Optional[IssuerPortalEvidence] = record.first("issuer_portal")
        forensic: Optional[ForensicEvidence] = record.first("forensic")
        identities: list[IdentityEvidence] = record.of_kind("identity")

        digital_passed = digital.passed if digital is not None else None
        return StandardFactors(
            digital_authenticity_passed=digital_passed,
            portal_found=portal.passed if portal is not None else None,
            forensic_passed=forensic.passed if forensic is not None else None,
            forensic_risk_score=forensic.risk_score if forensic is not None else None,
            qr_code_valid=digital_passed if certificate.has_qr_code else None,
            signature_valid=digital_passed if certificate.has_digital_signature else None,
            identity_checks={item.document: item.passed for item in identities},
        )

    @staticmethod
    def _identity_factors(record: EvidenceRecord) -> IdentityFactors:
        identity: Optional[IdentityEvidence] = record.first("identity")
        forensic: Optional[ForensicEvidence] = record.first("forensic")
        return IdentityFactors(
            identity_verified=identity is not None and identity.passed,
            forensic_passed=forensic.passed if forensic is not None else None,
        )

    # ── Terminal transitions ──────────────────────────────────────────

    async def _complete(
        self,
        verification: Verification,
        certificate: Certificate,
        record: EvidenceRecord,
        confidence: ConfidenceResult,
        log: Any,
    ) -> None:
        result = RESULT_BY_RECOMMENDATION[confidence.recommendation]
        score = confidence.score
        result_data: dict[str, Any] = {
            "evidence": record.model_dump(mode="json"),
            "confidence_factors": [f.model_dump() for f in confidence.factors],
            "recommendation": confidence.recommendation.value,
            "confidence_level": self.calculator.confidence_level(score),
            "key_findings": self.aggregator.extract_key_findings(record),
        }

        review: Optional[ManualReview] = None
        if result == VerificationResult.INCONCLUSIVE:
            priority = (
                ReviewPriority.HIGH if score < self.high_priority_below else ReviewPriority.MEDIUM
            )
            review = await self.review_queue.create(
                certificate.id,
                reason=f"Low confidence score: {score}%. Requires manual verification.",
                priority=priority,
                verification_id=verification.id,
                user_id=verification.requested_by,
            )
            result_data["manual_review_id"] = review.id

        now = datetime.now(timezone.utc)
        verification.mark_completed(result, score, result_data, now=now)
        await self.stores.verifications.save(verification)

        # Re-read so concurrent identity flags from other runs are kept
        current = await self.stores.certificates.get(certificate.id) or certificate
        current.status = CERTIFICATE_STATUS_BY_RESULT[result]
        if result == VerificationResult.VERIFIED:
            current.verified_at = now
        if self._identity_confirmed(certificate, record, result):
            current.mark_identity_verified(now)
        await self.stores.certificates.save(current)

        await self.audit.append(
            AuditEntityType.VERIFICATION,
            verification.id,
            "VERIFICATION_COMPLETED",
            user_id=verification.requested_by,
            metadata={
                "certificateId": certificate.id,
                "result": result.value,
                "confidenceScore": score,
                "recommendation": confidence.recommendation.value,
                "attempt": verification.attempt,
                "manualReviewId": review.id if review else None,
            },
        )
        log.info(
            "verification_completed",
            result=result.value,
            confidence_score=score,
            duration_ms=verification.duration_ms,
            manual_review_id=review.id if review else None,
        )

        await self._notify_complete(verification, log)
        if review is not None:
            await self._notify_review(review, log)

    @staticmethod
    def _identity_confirmed(
        certificate: Certificate, record: EvidenceRecord, result: VerificationResult
    ) -> bool:
        if certificate.is_identity_document:
            return result == VerificationResult.VERIFIED
        return any(item.passed for item in record.of_kind("identity"))

    async def _abandon(self, verification: Verification) -> None:
        """Return a verification whose run never launched to FAILED, so it stays retryable."""
        verification.mark_failed()
        await self.stores.verifications.save(verification)
        certificate = await self.stores.certificates.get(verification.certificate_id)
        if certificate is not None:
            certificate.status = CertificateStatus.FAILED
            await self.stores.certificates.save(certificate)
        self._logger.error(
            "verification_not_launched",
            verification_id=verification.id,
            reason="audit_write_failed",
        )

    async def _fail(self, verification_id: str, error: PipelineError, log: Any) -> None:
        verification = await self.get(verification_id)
        verification.mark_failed()
        await self.stores.verifications.save(verification)

        certificate = await self.stores.certificates.get(verification.certificate_id)
        if certificate is not None:
            certificate.status = CertificateStatus.FAILED
            await self.stores.certificates.save(certificate)

        await self.audit.append(
            AuditEntityType.VERIFICATION,
            verification_id,
            "VERIFICATION_FAILED",
            user_id=verification.requested_by,
            metadata={
                "certificateId": verification.certificate_id,
                "attempt": verification.attempt,
                **error.to_dict(),
            },
        )
        log.warning("verification_marked_failed", stage=error.stage)
        await self._notify_complete(verification, log)

    # ── Notifications ─────────────────────────────────────────────────

    async def _notify_complete(self, verification: Verification, log: Any) -> None:
        try:
            await self.notifier.notify_verification_complete(
                verification.id,
                verification.certificate_id,
                verification.status.value,
                result=verification.result.value if verification.result else None,
                confidence_score=verification.confidence_score,
            )
        except Exception as e:
            log.error("notification_failed", event_name="verification.completed", error=str(e))

    async def _notify_review(self, review: ManualReview, log: Any) -> None:
        try:
            await self.notifier.notify_manual_review_required(
                review.id, review.certificate_id, review.priority.value, review.reason
            )
        except Exception as e:
            log.error(
                "notification_failed",
                event_name="verification.manual_review_required",
                error=str(e),
            )
