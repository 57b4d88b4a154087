"""Scoring and evidence aggregation for verification runs."""

from docverify.verification.confidence_calculator import ConfidenceCalculator
from docverify.verification.evidence_aggregator import EvidenceAggregator

__all__ = ["ConfidenceCalculator", "EvidenceAggregator"]
