"""Pipeline orchestration: the verification state machine and its worker pool."""

from docverify.orchestration.pipeline_runner import PipelineRunner
from docverify.orchestration.verification_orchestrator import VerificationOrchestrator

__all__ = ["PipelineRunner", "VerificationOrchestrator"]
