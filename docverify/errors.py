"""Error taxonomy for the verification engine.

Every error carries a machine-readable ``code`` and a ``context`` dict with
the entity id and pipeline stage, so log lines and audit entries can be
correlated with the failure that produced them.
"""

from typing import Any, Optional


class DocVerifyError(Exception):
    """Base class for all engine errors."""

    code = "DOCVERIFY_ERROR"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.context}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


class NotFoundError(DocVerifyError):
    """A certificate, verification or review does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(
            f"{entity_type} not found",
            entity_type=entity_type,
            entity_id=entity_id,
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidStateError(DocVerifyError):
    """The requested transition is not legal from the entity's current state."""

    code = "INVALID_STATE"

    def __init__(
        self,
        message: str,
        entity_type: str,
        entity_id: str,
        current_state: Optional[str] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            message,
            entity_type=entity_type,
            entity_id=entity_id,
            current_state=current_state,
            **context,
        )
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state


class CheckProviderError(DocVerifyError):
    """A single external check raised or timed out.

    Recovered locally: the step is marked FAILED and the pipeline continues.
    """

    code = "CHECK_PROVIDER_FAILURE"

    def __init__(self, check_kind: str, message: str, **context: Any) -> None:
        super().__init__(message, check_kind=check_kind, **context)
        self.check_kind = check_kind


class PipelineError(DocVerifyError):
    """An exception escaped the pipeline; the verification is marked FAILED."""

    code = "PIPELINE_FAILURE"

    def __init__(self, verification_id: str, stage: str, cause: BaseException) -> None:
        super().__init__(
            f"Verification pipeline failed during {stage}: {cause}",
            verification_id=verification_id,
            stage=stage,
            cause=type(cause).__name__,
        )
        self.verification_id = verification_id
        self.stage = stage
        self.__cause__ = cause


class ChainIntegrityError(DocVerifyError):
    """Audit chain recomputation did not reproduce a stored hash.

    Treated as evidence of tampering; never repaired automatically.
    """

    code = "CHAIN_INTEGRITY_FAILURE"

    def __init__(self, message: str, index: int, entry_id: Optional[str] = None) -> None:
        super().__init__(message, index=index, entry_id=entry_id)
        self.index = index
        self.entry_id = entry_id
