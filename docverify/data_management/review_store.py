"""Manual review storage preserving insertion order.

Insertion order is the final tie-breaker when two reviews share priority and
creation timestamp, which keeps queue selection deterministic.
"""

import asyncio
import json
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from docverify.data_management.schemas.review_schema import ManualReview


class ReviewStore:
    """Storage adapter for manual reviews.

    ``list_all`` always returns reviews in insertion order; callers sort on
    top of it with a stable sort.
    """

    def __init__(self, persistence_path: Optional[str] = None):
        self._reviews: Dict[str, ManualReview] = {}
        self._lock = asyncio.Lock()
        self.persistence_path = Path(persistence_path) if persistence_path else None
        self.logger = logger.bind(component="ReviewStore")

        if self.persistence_path and self.persistence_path.exists():
            self._load_from_file()

    async def save(self, review: ManualReview) -> ManualReview:
        """Insert or update a review. Updates keep the original insertion slot."""
        async with self._lock:
            # dicts preserve first-insertion order on update
            self._reviews[review.id] = review.model_copy(deep=True)
            self.logger.debug(
                f"Saved review {review.id}",
                status=review.status.value,
                priority=review.priority.value,
            )
            if self.persistence_path:
                self._save_to_file()
            return review.model_copy(deep=True)

    async def get(self, review_id: str) -> Optional[ManualReview]:
        async with self._lock:
            review = self._reviews.get(review_id)
            return review.model_copy(deep=True) if review else None

    async def list_all(self) -> List[ManualReview]:
        async with self._lock:
            return [r.model_copy(deep=True) for r in self._reviews.values()]

    async def find_active_for_certificate(self, certificate_id: str) -> Optional[ManualReview]:
        """The PENDING or IN_PROGRESS review of a certificate, if one exists."""
        async with self._lock:
            for review in self._reviews.values():
                if review.certificate_id == certificate_id and review.is_active:
                    return review.model_copy(deep=True)
            return None

    def _save_to_file(self) -> None:
        """Save to JSON file (synchronous). A list keeps insertion order explicit."""
        try:
            self.persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data = [r.model_dump(mode="json") for r in self._reviews.values()]
            with open(self.persistence_path, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            self.logger.error(f"Failed to persist reviews: {e}")

    def _load_from_file(self) -> None:
        with open(self.persistence_path) as f:
            data = json.load(f)
        for record in data:
            review = ManualReview.model_validate(record)
            self._reviews[review.id] = review
        self.logger.info(f"Loaded {len(self._reviews)} reviews from {self.persistence_path}")
