"""Manual review queue with priority ordering and SLA tracking.

Queue order is priority DESC, created_at ASC, then insertion order, so
selection is deterministic even for reviews created in the same instant.

SLA: the deadline is ``assigned_at + review_sla_hours``. Breach is a derived
read computed against the injected clock whenever a review is returned; no
timer writes it. A review completed after its deadline keeps the breach
flag permanently.

All read-modify-write operations hold one queue lock, which makes
``create`` idempotent and ``dequeue_next`` atomic under concurrency.

Usage:
    from docverify.review.manual_review_queue import ManualReviewQueue

    queue = ManualReviewQueue(ReviewStore())
    review = await queue.create(cert_id, "Low confidence score", ReviewPriority.HIGH)
    claimed = await queue.dequeue_next("verifier-7")
    await queue.submit(claimed.id, "verifier-7", ReviewDecision.APPROVED, "Matches records")
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from docverify.audit.hash_chain import AuditChain
from docverify.config.settings import settings
from docverify.data_management.review_store import ReviewStore
from docverify.data_management.schemas.audit_schema import AuditEntityType
from docverify.data_management.schemas.review_schema import (
    ManualReview,
    ReviewDecision,
    ReviewPriority,
    ReviewStatistics,
    ReviewStatus,
)
from docverify.errors import InvalidStateError, NotFoundError

ENTITY = "ManualReview"

TERMINAL_REVIEW_STATUSES = frozenset({ReviewStatus.COMPLETED, ReviewStatus.ESCALATED})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def queue_order(reviews: list[ManualReview]) -> list[ManualReview]:
    """Stable sort of insertion-ordered reviews into queue order."""
    return sorted(reviews, key=lambda r: (-r.priority.rank, r.created_at))


class ManualReviewQueue:
    """Stores and serves manual review work items."""

    def __init__(
        self,
        store: Optional[ReviewStore] = None,
        audit: Optional[AuditChain] = None,
        sla_hours: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize ManualReviewQueue.

        Args:
            store: Review persistence. Memory-only store if not provided.
            audit: Optional audit chain receiving REVIEW_* entries.
            sla_hours: SLA window after assignment. Defaults to settings.
            clock: Source of "now"; injectable for SLA tests.
        """
        self.store = store or ReviewStore()
        self.audit = audit
        self.sla_window = timedelta(hours=sla_hours or settings.review_sla_hours)
        self.clock = clock
        self._lock = asyncio.Lock()
        self._logger = structlog.get_logger().bind(component="ManualReviewQueue")

    async def create(
        self,
        certificate_id: str,
        reason: str,
        priority: ReviewPriority = ReviewPriority.MEDIUM,
        verification_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ManualReview:
        """Open a review, or return the certificate's active one unchanged."""
        async with self._lock:
            existing = await self.store.find_active_for_certificate(certificate_id)
            if existing is not None:
                self._logger.info(
                    "review_already_active",
                    review_id=existing.id,
                    certificate_id=certificate_id,
                    status=existing.status.value,
                )
                return self._with_sla(existing)

            review = ManualReview(
                certificate_id=certificate_id,
                verification_id=verification_id,
                reason=reason,
                priority=priority,
                created_at=self.clock(),
            )
            review = await self.store.save(review)

        self._logger.info(
            "review_created",
            review_id=review.id,
            certificate_id=certificate_id,
            priority=priority.value,
        )
        await self._audit(
            review,
            "REVIEW_CREATED",
            user_id,
            {"priority": priority.value, "reason": reason, "verificationId": verification_id},
        )
        return review

    async def get(self, review_id: str) -> ManualReview:
        return self._with_sla(await self._require(review_id))

    async def dequeue_next(self, verifier_id: str) -> Optional[ManualReview]:
        """Claim the most urgent, oldest PENDING review for a verifier.

        Returns:
            The claimed review, now IN_PROGRESS, or None if nothing is pending.
        """
        async with self._lock:
            pending = [r for r in await self.store.list_all() if r.status == ReviewStatus.PENDING]
            if not pending:
                return None
            review = queue_order(pending)[0]
            review = await self._claim(review, verifier_id)

        self._logger.info(
            "review_dequeued",
            review_id=review.id,
            verifier_id=verifier_id,
            priority=review.priority.value,
        )
        await self._audit(review, "REVIEW_ASSIGNED", verifier_id, {"verifierId": verifier_id})
        return self._with_sla(review)

    async def assign(self, review_id: str, verifier_id: str) -> ManualReview:
        """Manually bind a PENDING review to a verifier."""
        async with self._lock:
            review = await self._require(review_id)
            if review.status != ReviewStatus.PENDING:
                raise InvalidStateError(
                    "Only PENDING reviews can be assigned",
                    entity_type=ENTITY,
                    entity_id=review_id,
                    current_state=review.status.value,
                )
            review = await self._claim(review, verifier_id)

        self._logger.info("review_assigned", review_id=review_id, verifier_id=verifier_id)
        await self._audit(review, "REVIEW_ASSIGNED", verifier_id, {"verifierId": verifier_id})
        return self._with_sla(review)

    async def submit(
        self,
        review_id: str,
        verifier_id: str,
        decision: ReviewDecision,
        comments: Optional[str] = None,
    ) -> ManualReview:
        """Record a verifier's decision and complete the review.

        Raises:
            NotFoundError: Unknown review.
            InvalidStateError: Review already COMPLETED or ESCALATED, or bound
                to a different verifier. No state changes in either case.
        """
        async with self._lock:
            review = await self._require(review_id)
            if review.status in TERMINAL_REVIEW_STATUSES:
                raise InvalidStateError(
                    f"Review is already {review.status.value}",
                    entity_type=ENTITY,
                    entity_id=review_id,
                    current_state=review.status.value,
                )
            if review.verifier_id and review.verifier_id != verifier_id:
                raise InvalidStateError(
                    "Review is assigned to another verifier",
                    entity_type=ENTITY,
                    entity_id=review_id,
                    current_state=review.status.value,
                    verifier_id=verifier_id,
                )

            now = self.clock()
            review.status = ReviewStatus.COMPLETED
            review.decision = decision
            review.comments = comments
            review.verifier_id = verifier_id
            review.started_at = review.started_at or now
            review.completed_at = now
            review.sla_breached = review.sla_deadline is not None and now > review.sla_deadline
            review = await self.store.save(review)

        self._logger.info(
            "review_submitted",
            review_id=review_id,
            verifier_id=verifier_id,
            decision=decision.value,
            sla_breached=review.sla_breached,
        )
        await self._audit(
            review,
            "REVIEW_SUBMITTED",
            verifier_id,
            {"decision": decision.value, "comments": comments},
        )
        return review

    async def escalate(
        self,
        review_id: str,
        escalated_to: str,
        reason: str,
        user_id: Optional[str] = None,
    ) -> ManualReview:
        """Hand an active review to a senior reviewer."""
        async with self._lock:
            review = await self._require(review_id)
            if not review.is_active:
                raise InvalidStateError(
                    "Only PENDING or IN_PROGRESS reviews can be escalated",
                    entity_type=ENTITY,
                    entity_id=review_id,
                    current_state=review.status.value,
                )
            review.status = ReviewStatus.ESCALATED
            review.escalated_to = escalated_to
            review.escalation_reason = reason
            review = await self.store.save(review)

        self._logger.warning(
            "review_escalated",
            review_id=review_id,
            escalated_to=escalated_to,
            reason=reason,
        )
        await self._audit(
            review,
            "REVIEW_ESCALATED",
            user_id,
            {"escalatedTo": escalated_to, "reason": reason},
        )
        return self._with_sla(review)

    async def list_queue(
        self,
        status: Optional[ReviewStatus] = None,
        priority: Optional[ReviewPriority] = None,
        verifier_id: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[ManualReview], int]:
        """Filtered, paginated queue view.

        Returns:
            (reviews on the requested page, total matching reviews)
        """
        if page < 1 or limit < 1:
            raise ValueError("page and limit must be positive")
        reviews = [
            r
            for r in await self.store.list_all()
            if (status is None or r.status == status)
            and (priority is None or r.priority == priority)
            and (verifier_id is None or r.verifier_id == verifier_id)
        ]
        ordered = queue_order(reviews)
        start = (page - 1) * limit
        return [self._with_sla(r) for r in ordered[start:start + limit]], len(ordered)

    async def get_statistics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        verifier_id: Optional[str] = None,
    ) -> ReviewStatistics:
        """Counters over reviews created within [start_date, end_date]."""
        reviews = [
            self._with_sla(r)
            for r in await self.store.list_all()
            if (start_date is None or r.created_at >= start_date)
            and (end_date is None or r.created_at <= end_date)
            and (verifier_id is None or r.verifier_id == verifier_id)
        ]

        def count(predicate: Callable[[ManualReview], bool]) -> int:
            return sum(1 for r in reviews if predicate(r))

        durations = [
            (r.completed_at - r.started_at).total_seconds() / 60
            for r in reviews
            if r.status == ReviewStatus.COMPLETED and r.completed_at and r.started_at
        ]
        return ReviewStatistics(
            total=len(reviews),
            pending=count(lambda r: r.status == ReviewStatus.PENDING),
            in_progress=count(lambda r: r.status == ReviewStatus.IN_PROGRESS),
            completed=count(lambda r: r.status == ReviewStatus.COMPLETED),
            escalated=count(lambda r: r.status == ReviewStatus.ESCALATED),
            approved=count(lambda r: r.decision == ReviewDecision.APPROVED),
            rejected=count(lambda r: r.decision == ReviewDecision.REJECTED),
            needs_info=count(lambda r: r.decision == ReviewDecision.NEEDS_INFO),
            sla_breached=count(lambda r: r.sla_breached),
            avg_review_minutes=round(sum(durations) / len(durations), 2) if durations else 0.0,
        )

    async def _claim(self, review: ManualReview, verifier_id: str) -> ManualReview:
        now = self.clock()
        review.status = ReviewStatus.IN_PROGRESS
        review.verifier_id = verifier_id
        review.assigned_at = now
        review.started_at = now
        review.sla_deadline = now + self.sla_window
        return await self.store.save(review)

    async def _require(self, review_id: str) -> ManualReview:
        review = await self.store.get(review_id)
        if review is None:
            raise NotFoundError(ENTITY, review_id)
        return review

    def _with_sla(self, review: ManualReview) -> ManualReview:
        if review.status != ReviewStatus.COMPLETED:
            review.sla_breached = review.is_sla_breached(self.clock())
        return review

    async def _audit(
        self,
        review: ManualReview,
        action: str,
        user_id: Optional[str],
        metadata: dict,
    ) -> None:
        if self.audit is None:
            return
        await self.audit.append(
            AuditEntityType.MANUAL_REVIEW,
            review.id,
            action,
            user_id=user_id,
            metadata={"certificateId": review.certificate_id, **metadata},
        )
