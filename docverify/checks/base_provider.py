"""Check provider boundary.

A provider wraps one external verification authority. ``run`` returns the
authority's raw response payload; a failed check is still a returned
payload (e.g. ``{"found": False}``), while transport or system failures
raise. The orchestrator treats both as "did not pass" but records them
differently.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional

from docverify.data_management.schemas.certificate_schema import Certificate
from docverify.data_management.schemas.evidence_schema import CheckKind


class CheckProvider(ABC):
    """Abstract base class for all check providers.

    Attributes:
        check_kind: Which check this provider performs
        name: Human-readable provider name, recorded as the step name
    """

    check_kind: CheckKind
    name: str = "check"

    @abstractmethod
    async def run(self, certificate: Certificate) -> dict[str, Any]:
        """
        Execute the check for one certificate.

        Args:
            certificate: Certificate under verification

        Returns:
            Raw provider payload, passed through to the evidence record unchanged

        Raises:
            Exception: On transport or system failure
        """
        ...


class StaticCheckProvider(CheckProvider):
    """Returns a fixed payload, or raises a fixed error, on every call.

    Used for deterministic demos and tests. ``delay`` simulates latency so
    timeouts can be exercised.
    """

    def __init__(
        self,
        check_kind: CheckKind,
        payload: Optional[dict[str, Any]] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
        name: Optional[str] = None,
    ):
        self.check_kind = check_kind
        self.payload = payload or {}
        self.error = error
        self.delay = delay
        self.name = name or f"Static {check_kind.value.replace('_', ' ')} check"
        self.calls: list[str] = []

    async def run(self, certificate: Certificate) -> dict[str, Any]:
        self.calls.append(certificate.id)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return dict(self.payload)
