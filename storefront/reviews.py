"""Local review ledger.

Reviews live only in the session store. Submitting one also posts the bare
rating to the API; that call is fire-and-forget and its failure does not
undo the local review.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .errors import ReviewNotAllowed, StorefrontError
from .orders import OrderLedger
from .schemas import LocalReview, Product, User
from .session_store import REVIEWS_KEY, SessionStore
from .transport import ApiTransport

logger = logging.getLogger(__name__)

NO_COMMENT = "No comment provided"


def _check_rating(rating: int) -> None:
    if not 1 <= rating <= 5:
        raise ValueError(f"Invalid rating: {rating}. Must be 1-5")


class ReviewLedger:
    def __init__(self, store: SessionStore, transport: ApiTransport, orders: OrderLedger) -> None:
        self.store = store
        self.transport = transport
        self.orders = orders

    def all(self) -> List[LocalReview]:
        reviews: List[LocalReview] = []
        for item in self.store.load_ledger(REVIEWS_KEY):
            try:
                reviews.append(LocalReview.model_validate(item))
            except ValidationError as exc:
                logger.warning(f"Skipping unreadable review entry: {exc}")
        return reviews

    def _raw(self) -> List[Dict[str, Any]]:
        return self.store.load_ledger(REVIEWS_KEY)

    def _save(self, raw: List[Dict[str, Any]]) -> None:
        # Entries that fail validation are written back untouched.
        self.store.save_ledger(REVIEWS_KEY, raw)

    def for_product(self, product_id: str) -> List[LocalReview]:
        return [review for review in self.all() if review.product_id == product_id]

    def for_author(self, author_id: str, category: Optional[str] = None) -> List[LocalReview]:
        reviews = [review for review in self.all() if review.author_id == author_id]
        if category and category != "all":
            reviews = [review for review in reviews if review.product_category == category]
        return reviews

    def can_review(self, product_id: str) -> bool:
        return self.orders.has_purchased(product_id)

    async def submit(self, product: Product, rating: int, text: str, author: User) -> LocalReview:
        """Store a review for a purchased product and post its rating."""

        _check_rating(rating)
        if not self.can_review(product.id):
            raise ReviewNotAllowed("You can only review products you have purchased")

        review = LocalReview(
            id=uuid.uuid4().hex,
            product_id=product.id,
            product_title=product.title,
            product_image=product.thumbnail,
            product_category=product.category.name if product.category else "",
            rating=rating,
            text=text.strip() or NO_COMMENT,
            author_name=author.full_name,
            author_id=author.id,
            created_at=datetime.now(timezone.utc),
        )
        raw = self._raw()
        raw.append(review.to_wire())
        self._save(raw)
        logger.info(f"Saved review {review.id} for product {product.id}")

        try:
            await self.transport.post(
                "/shop/products/rate",
                json={"productId": product.id, "rate": rating},
                auth=True,
            )
        except StorefrontError as exc:
            logger.warning(f"Rating for {product.id} not accepted by the API: {exc}")
        return review

    def edit(self, review_id: str, author_id: str, rating: int, text: str) -> LocalReview:
        _check_rating(rating)
        raw = self._raw()
        for index, item in enumerate(raw):
            if item.get("_id") != review_id:
                continue
            if item.get("userId") != author_id:
                raise ReviewNotAllowed("Only the author can edit this review")
            updated = LocalReview.model_validate(
                {**item, "rating": rating, "review": text.strip() or NO_COMMENT}
            )
            raw[index] = {**item, **updated.to_wire()}
            self._save(raw)
            return updated
        raise ReviewNotAllowed(f"Review {review_id} not found")

    def delete(self, review_id: str, author_id: str) -> bool:
        raw = self._raw()
        target = next((item for item in raw if item.get("_id") == review_id), None)
        if target is None:
            return False
        if target.get("userId") != author_id:
            raise ReviewNotAllowed("Only the author can delete this review")
        self._save([item for item in raw if item is not target])
        return True

    def delete_all_mine(self, author_id: str) -> int:
        raw = self._raw()
        kept = [item for item in raw if item.get("userId") != author_id]
        self._save(kept)
        removed = len(raw) - len(kept)
        logger.info(f"Deleted {removed} reviews by {author_id}")
        return removed
