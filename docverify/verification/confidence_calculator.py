"""Confidence scoring for verification outcomes.

Converts heterogeneous check outcomes into a single 0-100 score and an
accept/review/reject recommendation. Two factor sets exist:

Standard documents (additive, clamped):
- Issuer portal record found: +60
- Digital authenticity passed: +40
- Forensic passed: +30; failed: -(risk_score / 100) * 30
- QR code valid: +15
- Digital signature valid: +15
- Each supplementary identity check passed: +10

Identity documents:
- Identity check verified: +80
- Forensic passed: +20; failed: -10 (flat)

Weights are not required to sum to 100; the sum is clamped to [0, 100]
and rounded to two decimals. Factors that were not applicable (None) are
left out of the breakdown entirely.

The calculator holds configuration only. ``calculate`` is deterministic
and has no side effects.

Usage:
    from docverify.verification.confidence_calculator import ConfidenceCalculator

    calculator = ConfidenceCalculator()
    result = calculator.calculate(StandardFactors(portal_found=True, forensic_passed=True))
    result.score           # 90.0
    result.recommendation  # Recommendation.ACCEPT
"""

from typing import Optional, Union

from docverify.config.settings import settings
from docverify.data_management.schemas.scoring_schema import (
    ConfidenceResult,
    FactorContribution,
    IdentityFactors,
    Recommendation,
    StandardFactors,
)

STANDARD_WEIGHTS: dict[str, float] = {
    "digital_authenticity": 40.0,
    "issuer_portal": 60.0,
    "forensic": 30.0,
    "qr_code": 15.0,
    "digital_signature": 15.0,
    "identity_check": 10.0,
}

IDENTITY_WEIGHTS: dict[str, float] = {
    "identity": 80.0,
    "forensic_bonus": 20.0,
    "forensic_penalty": 10.0,
}

# (lower bound, label), highest first
CONFIDENCE_LEVELS: tuple[tuple[float, str], ...] = (
    (90.0, "Very High"),
    (70.0, "High"),
    (50.0, "Medium"),
    (30.0, "Low"),
)


class ConfidenceCalculator:
    """Weighted, clamped confidence scoring with threshold recommendations."""

    def __init__(
        self,
        accept_threshold: Optional[float] = None,
        review_threshold: Optional[float] = None,
        standard_weights: Optional[dict[str, float]] = None,
        identity_weights: Optional[dict[str, float]] = None,
    ) -> None:
        """Initialize ConfidenceCalculator.

        Args:
            accept_threshold: Minimum score for ACCEPT. Defaults to settings.
            review_threshold: Minimum score for REVIEW. Defaults to settings.
            standard_weights: Overrides merged over STANDARD_WEIGHTS.
            identity_weights: Overrides merged over IDENTITY_WEIGHTS.

        Raises:
            ValueError: If review_threshold exceeds accept_threshold.
        """
        self.accept_threshold = (
            settings.accept_threshold if accept_threshold is None else accept_threshold
        )
        self.review_threshold = (
            settings.review_threshold if review_threshold is None else review_threshold
        )
        if self.review_threshold > self.accept_threshold:
            raise ValueError(
                f"review_threshold ({self.review_threshold}) must not exceed "
                f"accept_threshold ({self.accept_threshold})"
            )
        self.standard_weights = {**STANDARD_WEIGHTS, **(standard_weights or {})}
        self.identity_weights = {**IDENTITY_WEIGHTS, **(identity_weights or {})}

    def calculate(self, factors: Union[StandardFactors, IdentityFactors]) -> ConfidenceResult:
        """Score a factor set.

        Args:
            factors: StandardFactors or IdentityFactors.

        Returns:
            ConfidenceResult with clamped score, breakdown and recommendation.
        """
        if isinstance(factors, IdentityFactors):
            contributions = self._identity_contributions(factors)
        else:
            contributions = self._standard_contributions(factors)

        raw = sum(c.contribution for c in contributions)
        score = round(min(100.0, max(0.0, raw)), 2)
        return ConfidenceResult(
            score=score,
            factors=contributions,
            recommendation=self.recommend(score),
        )

    def _standard_contributions(self, factors: StandardFactors) -> list[FactorContribution]:
        w = self.standard_weights
        contributions: list[FactorContribution] = []

        def flag(name: str, passed: Optional[bool]) -> None:
            if passed is None:
                return
            contributions.append(
                FactorContribution(
                    name=name,
                    weight=w[name],
                    passed=passed,
                    contribution=w[name] if passed else 0.0,
                )
            )

        flag("digital_authenticity", factors.digital_authenticity_passed)
        flag("issuer_portal", factors.portal_found)

        if factors.forensic_passed is not None:
            if factors.forensic_passed:
                contribution = w["forensic"]
            else:
                # Penalty scales with the reported risk
                risk = factors.forensic_risk_score or 0.0
                contribution = -(risk / 100.0) * w["forensic"]
            contributions.append(
                FactorContribution(
                    name="forensic",
                    weight=w["forensic"],
                    passed=factors.forensic_passed,
                    contribution=contribution,
                )
            )

        flag("qr_code", factors.qr_code_valid)
        flag("digital_signature", factors.signature_valid)

        for document, passed in factors.identity_checks.items():
            contributions.append(
                FactorContribution(
                    name=f"identity_{document}",
                    weight=w["identity_check"],
                    passed=passed,
                    contribution=w["identity_check"] if passed else 0.0,
                )
            )
        return contributions

    def _identity_contributions(self, factors: IdentityFactors) -> list[FactorContribution]:
        w = self.identity_weights
        contributions = [
            FactorContribution(
                name="identity",
                weight=w["identity"],
                passed=factors.identity_verified,
                contribution=w["identity"] if factors.identity_verified else 0.0,
            )
        ]
        if factors.forensic_passed is not None:
            # Flat bonus or penalty
            contributions.append(
                FactorContribution(
                    name="forensic",
                    weight=w["forensic_bonus"],
                    passed=factors.forensic_passed,
                    contribution=(
                        w["forensic_bonus"]
                        if factors.forensic_passed
                        else -w["forensic_penalty"]
                    ),
                )
            )
        return contributions

    def recommend(self, score: float) -> Recommendation:
        if score >= self.accept_threshold:
            return Recommendation.ACCEPT
        if score >= self.review_threshold:
            return Recommendation.REVIEW
        return Recommendation.REJECT

    def requires_manual_review(self, score: float) -> bool:
        return self.recommend(score) == Recommendation.REVIEW

    @staticmethod
    def confidence_level(score: float) -> str:
        """Human-readable band for a score."""
        for lower_bound, label in CONFIDENCE_LEVELS:
            if score >= lower_bound:
                return label
        return "Very Low"
