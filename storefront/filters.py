"""Catalog filter and sort pipeline.

Filters narrow the list in a fixed order (query, search text, brand, price,
rating bucket). The price sort and the rating sort are applied one after the
other as full stable re-sorts, so with both set the rating order is the one
that shows.
"""
from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

from .ratings import with_combined_ratings
from .schemas import FilterCriteria, LocalReview, Product

DEFAULT_PRICE_BOUNDS: Tuple[float, float] = (0.0, 1000.0)


def price_bounds(products: Sequence[Product]) -> Tuple[float, float]:
    if not products:
        return DEFAULT_PRICE_BOUNDS
    prices = [product.price.current for product in products]
    return float(math.floor(min(prices))), float(math.ceil(max(prices)))


def reset_criteria(products: Sequence[Product], query: str = "") -> FilterCriteria:
    """Default criteria for a product set; only the route query survives."""

    low, high = price_bounds(products)
    return FilterCriteria(query=query, min_price=low, max_price=high)


def _matches_text(product: Product, text: str) -> bool:
    needle = text.strip().lower()
    return not needle or needle in product.title.lower()


def _in_rating_bucket(rating: float, bucket: int) -> bool:
    if bucket == 5:
        return rating == 5.0
    return bucket <= rating < bucket + 1


def apply_filters(
    products: Iterable[Product],
    criteria: FilterCriteria,
    reviews: Optional[Iterable[LocalReview]] = None,
) -> List[Product]:
    """Return the products that pass criteria, in display order.

    When reviews are given, ratings are overlaid first so bucket filtering
    and rating sorts see combined ratings.
    """

    result = list(products)
    if reviews is not None:
        result = with_combined_ratings(result, reviews)

    if criteria.query.strip():
        result = [p for p in result if _matches_text(p, criteria.query)]
    if criteria.search_text.strip():
        result = [p for p in result if _matches_text(p, criteria.search_text)]
    if criteria.brand.strip():
        result = [p for p in result if p.brand == criteria.brand]

    result = [p for p in result if criteria.min_price <= p.price.current <= criteria.max_price]

    if criteria.rating_bucket is not None:
        result = [p for p in result if _in_rating_bucket(p.rating, criteria.rating_bucket)]

    if criteria.sort_price is not None:
        result.sort(key=lambda p: p.price.current, reverse=criteria.sort_price == "desc")
    if criteria.sort_rating is not None:
        result.sort(key=lambda p: p.rating, reverse=criteria.sort_rating == "desc")

    return result
