"""Verification event notifications.

Fire-and-forget: every event is logged, and delivered to the configured
webhook when mock mode is off. Delivery retries transient HTTP failures with
exponential backoff. A notification failure is logged and never propagated;
it must not affect the verification that triggered it.

Events:
- verification.completed
- verification.manual_review_required
"""

from collections import deque
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from docverify.config.settings import settings


class NotificationService:
    """Logs verification events and posts them to an optional webhook."""

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        mock_mode: Optional[bool] = None,
        client: Optional[httpx.AsyncClient] = None,
        max_attempts: int = 3,
        backoff_multiplier: float = 1.0,
        timeout: float = 10.0,
        history_size: int = 100,
    ) -> None:
        """Initialize NotificationService.

        Args:
            webhook_url: Target for event POSTs. Defaults to settings.
            mock_mode: Log only, never POST. Defaults to settings.
            client: Shared httpx.AsyncClient; a short-lived client is used per
                delivery if not provided.
            max_attempts: Delivery attempts per event.
            backoff_multiplier: Exponential backoff multiplier in seconds.
            timeout: HTTP timeout per attempt in seconds.
            history_size: Most recent delivered (or mock-recorded) events kept
                in ``sent_events``.
        """
        self.webhook_url = webhook_url if webhook_url is not None else settings.webhook_url
        self.mock_mode = settings.notification_mock_mode if mock_mode is None else mock_mode
        self._client = client
        self.max_attempts = max_attempts
        self.backoff_multiplier = backoff_multiplier
        self.timeout = timeout
        self.sent_events: deque[dict[str, Any]] = deque(maxlen=history_size)
        self._logger = structlog.get_logger().bind(component="NotificationService")

    async def notify_verification_complete(
        self,
        verification_id: str,
        certificate_id: str,
        status: str,
        result: Optional[str] = None,
        confidence_score: Optional[float] = None,
    ) -> None:
        await self._dispatch(
            "verification.completed",
            {
                "verificationId": verification_id,
                "certificateId": certificate_id,
                "status": status,
                "result": result,
                "confidenceScore": confidence_score,
            },
        )

    async def notify_manual_review_required(
        self,
        review_id: str,
        certificate_id: str,
        priority: str,
        reason: str,
    ) -> None:
        await self._dispatch(
            "verification.manual_review_required",
            {
                "reviewId": review_id,
                "certificateId": certificate_id,
                "priority": priority,
                "reason": reason,
            },
        )

    async def _dispatch(self, event: str, data: dict[str, Any]) -> None:
        body = {
            "event": event,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }
        self._logger.info("notification_event", event_name=event, **data)

        if self.mock_mode or not self.webhook_url:
            self.sent_events.append(body)
            return

        try:
            await self._deliver(body)
            self.sent_events.append(body)
        except httpx.HTTPError as e:
            self._logger.error(
                "notification_delivery_failed",
                event_name=event,
                webhook_url=self.webhook_url,
                error=str(e),
                attempts=self.max_attempts,
            )

    async def _deliver(self, body: dict[str, Any]) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_multiplier, max=10),
            retry=retry_if_exception_type(httpx.HTTPError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._post(body)

    async def _post(self, body: dict[str, Any]) -> None:
        if self._client is not None:
            response = await self._client.post(self.webhook_url, json=body)
            response.raise_for_status()
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.webhook_url, json=body)
            response.raise_for_status()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
