import pytest

from storefront.ratings import combined_rating, top_rated, with_combined_ratings
from storefront.schemas import LocalReview


def _review(product_id, rating, review_id="r"):
    return LocalReview(id=review_id, product_id=product_id, rating=rating)


def test_no_local_reviews_keeps_remote_rating(make_product):
    product = make_product(rating=3.7)
    assert combined_rating(product, []) == 3.7


def test_one_review_averages_with_remote(make_product):
    product = make_product(rating=3.0)
    assert combined_rating(product, [_review("p1", 5)]) == pytest.approx(4.0)


def test_remote_counts_as_one_vote(make_product):
    product = make_product(rating=2.0)
    reviews = [_review("p1", 5, "a"), _review("p1", 4, "b")]
    assert combined_rating(product, reviews) == pytest.approx(11 / 3)


def test_balanced_reviews_leave_rating_unchanged(make_product):
    product = make_product(rating=4.0)
    reviews = [_review("p1", 5, "a"), _review("p1", 3, "b")]
    assert combined_rating(product, reviews) == 4.0


def test_reviews_of_other_products_are_ignored(make_product):
    product = make_product(rating=4.5)
    assert combined_rating(product, [_review("p2", 1)]) == 4.5


def test_overlay_copies_products(make_product):
    original = make_product(product_id="p1", rating=1.0)
    untouched = make_product(product_id="p2", rating=2.0)

    rated = with_combined_ratings([original, untouched], [_review("p1", 5)])

    assert [p.rating for p in rated] == [3.0, 2.0]
    assert original.rating == 1.0


def test_top_rated_keeps_catalog_order_on_ties(make_product):
    products = [
        make_product("p1", rating=4.0),
        make_product("p2", rating=5.0),
        make_product("p3", rating=4.0),
        make_product("p4", rating=2.0),
    ]

    assert [p.id for p in top_rated(products, [], limit=3)] == ["p2", "p1", "p3"]


def test_top_rated_uses_local_reviews(make_product):
    products = [make_product("p1", rating=4.0), make_product("p2", rating=3.0)]
    reviews = [_review("p2", 5, "a"), _review("p2", 5, "b")]

    top = top_rated(products, reviews, limit=1)

    assert [p.id for p in top] == ["p2"]
    assert top[0].rating == pytest.approx(13 / 3)
