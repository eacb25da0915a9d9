from __future__ import annotations

from typing import Iterable, List

from .schemas import LocalReview, Product


def combined_rating(product: Product, reviews: Iterable[LocalReview]) -> float:
    """Blend the remote rating with local reviews of the same product.

    The remote aggregate counts as exactly one vote:
    (remote + sum(local)) / (1 + len(local)).
    """

    local = [review.rating for review in reviews if review.product_id == product.id]
    if not local:
        return product.rating
    return (product.rating + sum(local)) / (1 + len(local))


def with_combined_ratings(products: Iterable[Product], reviews: Iterable[LocalReview]) -> List[Product]:
    """Copies of products whose rating is the combined rating."""

    review_list = list(reviews)
    return [
        product.model_copy(update={"rating": combined_rating(product, review_list)})
        for product in products
    ]


def top_rated(products: Iterable[Product], reviews: Iterable[LocalReview], limit: int = 5) -> List[Product]:
    """Highest combined ratings first; ties keep catalog order."""

    rated = with_combined_ratings(products, reviews)
    rated.sort(key=lambda product: product.rating, reverse=True)
    return rated[:limit]
