"""Manual review workflow for inconclusive verifications."""

from docverify.review.manual_review_queue import ManualReviewQueue

__all__ = ["ManualReviewQueue"]
