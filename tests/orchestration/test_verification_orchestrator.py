"""Tests for VerificationOrchestrator.

Tests cover:
- End-to-end standard pipelines (verified, unverified, inconclusive)
- Step ordering, conditional digital step and supplementary identity checks
- Identity document path and the identity-verified flag
- Check failures and timeouts recorded as FAILED steps without aborting
- Pipeline failures: FAILED verification without a result, then retry
- Notification failures isolated from the verification outcome
- Audit trail and chain integrity across concurrent runs
"""

import asyncio
from typing import Any

import pytest

from docverify.audit.hash_chain import AuditChain
from docverify.checks.base_provider import CheckProvider, StaticCheckProvider
from docverify.data_management.audit_store import AuditStore
from docverify.data_management.schemas.certificate_schema import (
    Certificate,
    CertificateStatus,
    CertificateType,
)
from docverify.data_management.schemas.evidence_schema import CheckKind
from docverify.data_management.schemas.review_schema import ReviewPriority, ReviewStatus
from docverify.data_management.schemas.verification_schema import (
    StepStatus,
    StepType,
    VerificationResult,
    VerificationStatus,
)
from docverify.data_management.stores import Stores
from docverify.errors import InvalidStateError, NotFoundError
from docverify.notifications.notification_service import NotificationService
from docverify.orchestration.verification_orchestrator import VerificationOrchestrator
from docverify.verification.confidence_calculator import ConfidenceCalculator


DIGITAL_OK = {"status": "SUCCESS", "verified": True, "documentId": "DL-2023-ABCD1234"}
PORTAL_FOUND = {"found": True, "rollNumber": "1234567", "examYear": "2023", "verificationCode": "VER-2023-X1"}
PORTAL_MISSING = {"found": False, "error": {"code": "RECORD_NOT_FOUND", "message": "not found"}}
IDENTITY_OK = {"status": "SUCCESS", "verified": True, "maskedNumber": "XXXX-XXXX-2346"}


def forensic(risk: float, recommendation: str) -> dict[str, Any]:
    return {"riskScore": risk, "findings": [], "recommendation": recommendation}


# ── Fixtures ──────────────────────────────────────────────────────────────


class FlakyCalculator(ConfidenceCalculator):
    """Raises on the first ``calculate`` call only."""

    def __init__(self) -> None:
        super().__init__(accept_threshold=70.0, review_threshold=40.0)
        self.calls = 0

    def calculate(self, factors):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("scoring backend unavailable")
        return super().calculate(factors)


class ExplodingNotifier(NotificationService):
    def __init__(self) -> None:
        super().__init__(mock_mode=True)

    async def notify_verification_complete(self, *args, **kwargs) -> None:
        raise RuntimeError("notification bus down")

    async def notify_manual_review_required(self, *args, **kwargs) -> None:
        raise RuntimeError("notification bus down")


class BlockingNotifier(NotificationService):
    """Holds completion notifications until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__(mock_mode=True)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def notify_verification_complete(self, *args, **kwargs) -> None:
        self.entered.set()
        await self.release.wait()
        await super().notify_verification_complete(*args, **kwargs)


class FailingFirstWriteAuditStore(AuditStore):
    """Raises OSError on the first append, like a full disk would."""

    def __init__(self) -> None:
        super().__init__()
        self.failures = 1

    async def append(self, entry):
        if self.failures:
            self.failures -= 1
            raise OSError(28, "No space left on device")
        return await super().append(entry)


class ListPayloadProvider(CheckProvider):
    check_kind = CheckKind.FORENSIC
    name = "Broken forensic analysis"

    async def run(self, certificate):
        return ["not", "a", "dict"]


@pytest.fixture
def stores() -> Stores:
    return Stores()


@pytest.fixture
def notifier() -> NotificationService:
    return NotificationService(mock_mode=True)


def providers(
    digital: Any = DIGITAL_OK,
    portal: Any = PORTAL_FOUND,
    forensic_payload: Any = None,
    **extra: StaticCheckProvider,
) -> dict[CheckKind, CheckProvider]:
    registry: dict[CheckKind, CheckProvider] = {
        CheckKind.DIGITAL_AUTHENTICITY: StaticCheckProvider(CheckKind.DIGITAL_AUTHENTICITY, digital),
        CheckKind.ISSUER_PORTAL: StaticCheckProvider(CheckKind.ISSUER_PORTAL, portal),
        CheckKind.FORENSIC: StaticCheckProvider(
            CheckKind.FORENSIC, forensic_payload or forensic(0, "ACCEPT")
        ),
        CheckKind.IDENTITY_AADHAAR: StaticCheckProvider(CheckKind.IDENTITY_AADHAAR, IDENTITY_OK),
        CheckKind.IDENTITY_PAN: StaticCheckProvider(CheckKind.IDENTITY_PAN, IDENTITY_OK),
    }
    for key, provider in extra.items():
        registry[CheckKind(key)] = provider
    return registry


def make_orchestrator(
    stores: Stores,
    registry: dict[CheckKind, CheckProvider],
    notifier: NotificationService,
    **kwargs: Any,
) -> VerificationOrchestrator:
    kwargs.setdefault("calculator", ConfidenceCalculator(accept_threshold=70.0, review_threshold=40.0))
    return VerificationOrchestrator(
        stores=stores,
        providers=registry,
        notifier=notifier,
        high_priority_below=50.0,
        **kwargs,
    )


async def save_certificate(stores: Stores, qr: bool = False, **data: Any) -> Certificate:
    certificate = Certificate(
        user_id="user-1",
        certificate_type=CertificateType.SCHOOL_CERTIFICATE,
        issuer_name="Central Board of Secondary Education",
        certificate_data={
            "studentName": "Asha Rao",
            "rollNumber": "1234567",
            "examYear": "2023",
            **({"qrCodeData": "DL-QR-9f2c"} if qr else {}),
            **data,
        },
        has_qr_code=qr,
    )
    return await stores.certificates.save(certificate)


async def run_to_end(orchestrator: VerificationOrchestrator, certificate_id: str):
    started = await orchestrator.start(certificate_id, requested_by="user-1")
    return await orchestrator.wait_for(started.id, timeout=5)


# ── Standard Pipeline Outcomes ───────────────────────────────────────────


class TestStandardPipeline:
    @pytest.mark.asyncio
    async def test_everything_passes_is_verified(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier)
        certificate = await save_certificate(stores, qr=True)

        verification = await run_to_end(orchestrator, certificate.id)

        assert verification.status == VerificationStatus.COMPLETED
        assert verification.result == VerificationResult.VERIFIED
        assert verification.confidence_score == 100.0
        assert verification.result_data["recommendation"] == "ACCEPT"
        assert "manual_review_id" not in verification.result_data

        stored = await stores.certificates.get(certificate.id)
        assert stored.status == CertificateStatus.VERIFIED
        assert stored.verified_at is not None

    @pytest.mark.asyncio
    async def test_portal_miss_and_tampering_is_unverified(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(
            stores,
            providers(portal=PORTAL_MISSING, forensic_payload=forensic(85, "REJECT")),
            notifier,
        )
        certificate = await save_certificate(stores, qr=True)

        verification = await run_to_end(orchestrator, certificate.id)

        assert verification.result == VerificationResult.UNVERIFIED
        assert verification.confidence_score == 29.5
        assert (await stores.certificates.get(certificate.id)).status == CertificateStatus.UNVERIFIED
        assert await stores.reviews.list_all() == []

    @pytest.mark.asyncio
    async def test_borderline_score_queues_high_priority_review(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(
            stores, providers(forensic_payload=forensic(50, "REVIEW")), notifier
        )
        certificate = await save_certificate(stores)

        verification = await run_to_end(orchestrator, certificate.id)

        assert verification.result == VerificationResult.INCONCLUSIVE
        assert verification.confidence_score == 45.0
        review = await orchestrator.review_queue.get(verification.result_data["manual_review_id"])
        assert review.priority == ReviewPriority.HIGH
        assert review.status == ReviewStatus.PENDING
        assert review.verification_id == verification.id
        assert (await stores.certificates.get(certificate.id)).status == CertificateStatus.MANUAL_REVIEW

        events = [e["event"] for e in notifier.sent_events]
        assert events == ["verification.completed", "verification.manual_review_required"]

    @pytest.mark.asyncio
    async def test_upper_review_band_gets_medium_priority(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(
            stores, providers(forensic_payload=forensic(20, "REVIEW")), notifier
        )
        certificate = await save_certificate(stores)

        verification = await run_to_end(orchestrator, certificate.id)

        assert verification.confidence_score == 54.0
        (review,) = await stores.reviews.list_all()
        assert review.priority == ReviewPriority.MEDIUM

    @pytest.mark.asyncio
    async def test_result_data_carries_evidence_and_breakdown(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier)
        certificate = await save_certificate(stores, qr=True)

        verification = await run_to_end(orchestrator, certificate.id)

        data = verification.result_data
        kinds = [item["kind"] for item in data["evidence"]["items"]]
        assert kinds == ["digital_authenticity", "issuer_portal", "forensic", "qr_code"]
        assert data["evidence"]["items"][1]["raw"] == PORTAL_FOUND
        factor_names = [f["name"] for f in data["confidence_factors"]]
        assert factor_names == ["digital_authenticity", "issuer_portal", "forensic", "qr_code"]
        assert data["confidence_level"] == "Very High"
        assert "Certificate found in issuer records" in data["key_findings"]


# ── Step Selection and Recording ─────────────────────────────────────────


class TestSteps:
    @pytest.mark.asyncio
    async def test_digital_step_only_with_qr_or_signature(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        registry = providers()
        orchestrator = make_orchestrator(stores, registry, notifier)
        certificate = await save_certificate(stores)

        verification = await run_to_end(orchestrator, certificate.id)
        steps = await orchestrator.get_steps(verification.id)

        assert [s.step_type for s in steps] == [StepType.ISSUER_PORTAL, StepType.FORENSIC]
        assert [s.sequence_number for s in steps] == [1, 2]
        assert registry[CheckKind.DIGITAL_AUTHENTICITY].calls == []

    @pytest.mark.asyncio
    async def test_steps_record_payload_and_duration(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier)
        certificate = await save_certificate(stores, qr=True)

        verification = await run_to_end(orchestrator, certificate.id)
        steps = await orchestrator.get_steps(verification.id)

        assert [s.sequence_number for s in steps] == [1, 2, 3]
        assert all(s.status == StepStatus.COMPLETED for s in steps)
        assert all(s.duration_ms is not None for s in steps)
        assert steps[0].result == DIGITAL_OK

    @pytest.mark.asyncio
    async def test_embedded_identity_records_add_supplementary_steps(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier)
        certificate = await save_certificate(
            stores,
            aadhaar={"aadhaarNumber": "234123412346", "name": "Asha Rao"},
            pan={"panNumber": "ABCDE1234F", "name": "Asha Rao"},
        )

        verification = await run_to_end(orchestrator, certificate.id)
        steps = await orchestrator.get_steps(verification.id)

        assert [s.check_kind for s in steps] == [
            "issuer_portal",
            "forensic",
            "identity_aadhaar",
            "identity_pan",
        ]
        names = [f["name"] for f in verification.result_data["confidence_factors"]]
        assert names[-2:] == ["identity_aadhaar", "identity_pan"]
        assert (await stores.certificates.get(certificate.id)).identity_verified is True

    @pytest.mark.asyncio
    async def test_get_steps_of_unknown_verification(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier)
        with pytest.raises(NotFoundError):
            await orchestrator.get_steps("missing")


# ── Identity Documents ───────────────────────────────────────────────────


class TestIdentityPath:
    @pytest.mark.asyncio
    async def test_verified_aadhaar_card(self, stores: Stores, notifier: NotificationService) -> None:
        registry = providers()
        orchestrator = make_orchestrator(stores, registry, notifier)
        certificate = await stores.certificates.save(
            Certificate(
                user_id="user-1",
                certificate_type=CertificateType.AADHAAR_CARD,
                certificate_data={"aadhaarNumber": "234123412346", "name": "Asha Rao"},
            )
        )

        verification = await run_to_end(orchestrator, certificate.id)
        steps = await orchestrator.get_steps(verification.id)

        assert [s.step_type for s in steps] == [StepType.IDENTITY]
        assert verification.result == VerificationResult.VERIFIED
        assert verification.confidence_score == 80.0
        assert registry[CheckKind.ISSUER_PORTAL].calls == []

        stored = await stores.certificates.get(certificate.id)
        assert stored.identity_verified is True
        assert stored.identity_verified_at is not None

    @pytest.mark.asyncio
    async def test_failed_pan_card(self, stores: Stores, notifier: NotificationService) -> None:
        registry = providers(
            identity_pan=StaticCheckProvider(
                CheckKind.IDENTITY_PAN, {"status": "FAILED", "verified": False}
            )
        )
        orchestrator = make_orchestrator(stores, registry, notifier)
        certificate = await stores.certificates.save(
            Certificate(
                user_id="user-1",
                certificate_type=CertificateType.PAN_CARD,
                certificate_data={"panNumber": "ABCDE1234F"},
            )
        )

        verification = await run_to_end(orchestrator, certificate.id)

        assert verification.result == VerificationResult.UNVERIFIED
        assert verification.confidence_score == 0.0
        assert (await stores.certificates.get(certificate.id)).identity_verified is False


# ── Check Failures ───────────────────────────────────────────────────────


class TestCheckFailures:
    @pytest.mark.asyncio
    async def test_timeout_fails_step_and_pipeline_continues(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        registry = providers(
            issuer_portal=StaticCheckProvider(CheckKind.ISSUER_PORTAL, PORTAL_FOUND, delay=1.0)
        )
        orchestrator = make_orchestrator(stores, registry, notifier, check_timeout=0.05)
        certificate = await save_certificate(stores)

        verification = await run_to_end(orchestrator, certificate.id)
        portal_step, forensic_step = await orchestrator.get_steps(verification.id)

        assert portal_step.status == StepStatus.FAILED
        assert portal_step.error_message == "Check timed out after 0.05s"
        assert forensic_step.status == StepStatus.COMPLETED
        assert verification.status == VerificationStatus.COMPLETED
        assert verification.confidence_score == 30.0
        assert verification.result == VerificationResult.UNVERIFIED

    @pytest.mark.asyncio
    async def test_raising_provider_recorded_as_error_evidence(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        registry = providers(
            forensic=StaticCheckProvider(CheckKind.FORENSIC, error=ConnectionError("scanner offline"))
        )
        orchestrator = make_orchestrator(stores, registry, notifier)
        certificate = await save_certificate(stores)

        verification = await run_to_end(orchestrator, certificate.id)
        steps = await orchestrator.get_steps(verification.id)

        assert steps[1].status == StepStatus.FAILED
        assert steps[1].error_message == "scanner offline"
        forensic_item = verification.result_data["evidence"]["items"][1]
        assert forensic_item["outcome"] == "error"
        assert verification.result == VerificationResult.INCONCLUSIVE

    @pytest.mark.asyncio
    async def test_non_object_payload_fails_step(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        registry = providers()
        registry[CheckKind.FORENSIC] = ListPayloadProvider()
        orchestrator = make_orchestrator(stores, registry, notifier)
        certificate = await save_certificate(stores)

        verification = await run_to_end(orchestrator, certificate.id)
        steps = await orchestrator.get_steps(verification.id)

        assert steps[1].status == StepStatus.FAILED
        assert verification.status == VerificationStatus.COMPLETED


# ── Pipeline Failure and Retry ───────────────────────────────────────────


class TestFailureAndRetry:
    @pytest.mark.asyncio
    async def test_start_unknown_certificate(self, stores: Stores, notifier: NotificationService) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier)
        with pytest.raises(NotFoundError):
            await orchestrator.start("missing")

    @pytest.mark.asyncio
    async def test_missing_provider_fails_verification(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        registry = providers()
        del registry[CheckKind.FORENSIC]
        orchestrator = make_orchestrator(stores, registry, notifier)
        certificate = await save_certificate(stores)

        verification = await run_to_end(orchestrator, certificate.id)

        assert verification.status == VerificationStatus.FAILED
        assert verification.result is None
        assert verification.confidence_score is None
        assert (await stores.certificates.get(certificate.id)).status == CertificateStatus.FAILED

        (failed,) = [
            e for e in await orchestrator.audit.history("VERIFICATION", verification.id)
            if e.action == "VERIFICATION_FAILED"
        ]
        assert failed.metadata["stage"] == "checks"
        assert failed.metadata["code"] == "PIPELINE_FAILURE"

    @pytest.mark.asyncio
    async def test_retry_after_scoring_failure(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier, calculator=FlakyCalculator())
        certificate = await save_certificate(stores, qr=True)

        failed = await run_to_end(orchestrator, certificate.id)
        assert failed.status == VerificationStatus.FAILED
        assert len(await orchestrator.get_steps(failed.id)) == 3

        retried = await orchestrator.retry(failed.id, user_id="admin-1")
        assert retried.status == VerificationStatus.IN_PROGRESS
        assert retried.attempt == 2
        assert await orchestrator.get_steps(failed.id) == []

        done = await orchestrator.wait_for(failed.id, timeout=5)
        assert done.status == VerificationStatus.COMPLETED
        assert done.result == VerificationResult.VERIFIED
        steps = await orchestrator.get_steps(failed.id)
        assert [s.sequence_number for s in steps] == [1, 2, 3]

        history = await orchestrator.audit.history("VERIFICATION", failed.id)
        assert [e.action for e in history] == [
            "VERIFICATION_STARTED",
            "VERIFICATION_FAILED",
            "VERIFICATION_RETRIED",
            "VERIFICATION_COMPLETED",
        ]

    @pytest.mark.asyncio
    async def test_retry_requires_failed_state(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier)
        certificate = await save_certificate(stores)
        verification = await run_to_end(orchestrator, certificate.id)

        with pytest.raises(InvalidStateError):
            await orchestrator.retry(verification.id)
        assert (await orchestrator.get(verification.id)).attempt == 1

    @pytest.mark.asyncio
    async def test_retry_unknown_verification(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier)
        with pytest.raises(NotFoundError):
            await orchestrator.retry("missing")

    @pytest.mark.asyncio
    async def test_retry_while_failure_is_still_notifying(self, stores: Stores) -> None:
        registry = providers()
        del registry[CheckKind.FORENSIC]
        blocking = BlockingNotifier()
        orchestrator = make_orchestrator(stores, registry, blocking)
        certificate = await save_certificate(stores)

        started = await orchestrator.start(certificate.id)
        await asyncio.wait_for(blocking.entered.wait(), timeout=5)
        assert (await orchestrator.get(started.id)).status == VerificationStatus.FAILED

        with pytest.raises(InvalidStateError):
            await orchestrator.retry(started.id)
        unchanged = await orchestrator.get(started.id)
        assert unchanged.status == VerificationStatus.FAILED
        assert unchanged.attempt == 1
        assert len(await orchestrator.get_steps(started.id)) == 1

        blocking.release.set()
        await orchestrator.wait_for(started.id, timeout=5)

        retried = await orchestrator.retry(started.id)
        assert retried.status == VerificationStatus.IN_PROGRESS
        assert retried.attempt == 2
        done = await orchestrator.wait_for(started.id, timeout=5)
        assert done.status == VerificationStatus.FAILED

    @pytest.mark.asyncio
    async def test_audit_write_failure_at_start_leaves_retryable_failure(
        self, notifier: NotificationService
    ) -> None:
        stores = Stores(audit=FailingFirstWriteAuditStore())
        orchestrator = make_orchestrator(stores, providers(), notifier)
        certificate = await save_certificate(stores)

        with pytest.raises(OSError):
            await orchestrator.start(certificate.id)

        (verification,) = await orchestrator.list_for_certificate(certificate.id)
        assert verification.status == VerificationStatus.FAILED
        assert not orchestrator.runner.is_running(verification.id)
        assert (await stores.certificates.get(certificate.id)).status == CertificateStatus.FAILED

        await orchestrator.retry(verification.id)
        done = await orchestrator.wait_for(verification.id, timeout=5)
        assert done.status == VerificationStatus.COMPLETED
        assert done.result == VerificationResult.VERIFIED


# ── Notifications ────────────────────────────────────────────────────────


class TestNotifications:
    @pytest.mark.asyncio
    async def test_notification_failure_does_not_affect_result(self, stores: Stores) -> None:
        orchestrator = make_orchestrator(
            stores, providers(forensic_payload=forensic(50, "REVIEW")), ExplodingNotifier()
        )
        certificate = await save_certificate(stores)

        verification = await run_to_end(orchestrator, certificate.id)

        assert verification.status == VerificationStatus.COMPLETED
        assert verification.result == VerificationResult.INCONCLUSIVE

    @pytest.mark.asyncio
    async def test_completion_event_payload(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier)
        certificate = await save_certificate(stores)

        verification = await run_to_end(orchestrator, certificate.id)

        (event,) = notifier.sent_events
        assert event["event"] == "verification.completed"
        assert event["data"]["verificationId"] == verification.id
        assert event["data"]["result"] == "VERIFIED"


# ── Audit and Concurrency ────────────────────────────────────────────────


class TestAuditAndConcurrency:
    @pytest.mark.asyncio
    async def test_run_is_audited(self, stores: Stores, notifier: NotificationService) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier)
        certificate = await save_certificate(stores)

        verification = await run_to_end(orchestrator, certificate.id)

        history = await orchestrator.audit.history("VERIFICATION", verification.id)
        assert [e.action for e in history] == ["VERIFICATION_STARTED", "VERIFICATION_COMPLETED"]
        assert history[0].user_id == "user-1"
        assert history[1].metadata["result"] == "VERIFIED"
        assert (await orchestrator.audit.verify()).valid

    @pytest.mark.asyncio
    async def test_concurrent_runs_share_one_valid_chain(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        orchestrator = make_orchestrator(
            stores, providers(forensic_payload=forensic(50, "REVIEW")), notifier
        )
        certificates = [await save_certificate(stores) for _ in range(12)]

        started = await asyncio.gather(*(orchestrator.start(c.id) for c in certificates))
        await orchestrator.drain()

        for verification in started:
            assert (await orchestrator.get(verification.id)).status == VerificationStatus.COMPLETED
        assert len(await stores.reviews.list_all()) == 12
        assert (await orchestrator.audit.verify()).valid

    @pytest.mark.asyncio
    async def test_list_for_certificate(self, stores: Stores, notifier: NotificationService) -> None:
        orchestrator = make_orchestrator(stores, providers(), notifier)
        certificate = await save_certificate(stores)

        first = await run_to_end(orchestrator, certificate.id)
        second = await run_to_end(orchestrator, certificate.id)

        listed = await orchestrator.list_for_certificate(certificate.id)
        assert [v.id for v in listed] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_shared_audit_chain_collaborator(
        self, stores: Stores, notifier: NotificationService
    ) -> None:
        audit = AuditChain(stores.audit)
        orchestrator = make_orchestrator(
            stores, providers(forensic_payload=forensic(50, "REVIEW")), notifier, audit=audit
        )
        certificate = await save_certificate(stores)

        verification = await run_to_end(orchestrator, certificate.id)

        review_id = verification.result_data["manual_review_id"]
        assert [e.action for e in await audit.history("MANUAL_REVIEW", review_id)] == ["REVIEW_CREATED"]
