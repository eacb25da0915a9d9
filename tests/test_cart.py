"""
Cart reconciliation tests against the in-memory cart server.
"""

import asyncio

import pytest

from storefront.cart import CartService
from storefront.errors import ApiError, CartBusyError
from storefront.schemas import CartSummary


@pytest.fixture
def cart(transport, signed_in):
    return CartService(transport, signed_in)


def test_repeated_adds_merge_into_one_line(cart, cart_server, fake_session):
    async def scenario():
        await cart.add_or_increment("p1", 1)
        return await cart.add_or_increment("p1", 2)

    result = asyncio.run(scenario())

    assert [(line.product_id, line.quantity) for line in result.lines] == [("p1", 3)]
    assert cart_server.lines == {"p1": 3}
    assert len(fake_session.calls_to("POST", "/shop/cart/product")) == 1
    assert fake_session.calls_to("PATCH", "/shop/cart/product")[0].json == {"id": "p1", "quantity": 3}


def test_one_line_per_product_over_many_adds(cart, cart_server):
    async def scenario():
        for product_id in ["p1", "p2", "p1", "p3", "p2", "p1"]:
            await cart.add_or_increment(product_id)

    asyncio.run(scenario())

    assert cart_server.lines == {"p1": 3, "p2": 2, "p3": 1}


def test_first_add_on_missing_cart_creates_line(cart, cart_server, fake_session):
    result = asyncio.run(cart.add_or_increment("p9", 2))

    assert result.item_count == 2
    assert fake_session.calls_to("GET", "/shop/cart")[0].bearer == "access-1"
    assert fake_session.calls_to("POST", "/shop/cart/product")[0].json == {"id": "p9", "quantity": 2}


def test_rejected_create_falls_back_to_update(cart, cart_server, fake_session):
    # The cart read is stale: the server already holds the line.
    cart_server.exists = True
    cart_server.lines["p1"] = 1
    fake_session.route("GET", "/shop/cart", (409, {"error": "User has to create cart first"}))

    result = asyncio.run(cart.add_or_increment("p1", 2))

    assert result.line_for("p1").quantity == 2
    assert len(fake_session.calls_to("POST", "/shop/cart/product")) == 1
    assert len(fake_session.calls_to("PATCH", "/shop/cart/product")) == 1


def test_add_updates_summary_and_flags_notification(cart, cart_server, signed_in):
    asyncio.run(cart.add_or_increment("p1", 2))

    assert signed_in.cart_summary == CartSummary(has_cart=True, item_count=2, has_unseen_notification=True)


def test_fetch_keeps_notification_flag(cart, cart_server, signed_in):
    asyncio.run(cart.add_or_increment("p1"))
    fetched = asyncio.run(cart.fetch())

    assert fetched.item_count == 1
    assert signed_in.cart_summary.has_unseen_notification is True

    signed_in.mark_cart_seen()
    asyncio.run(cart.fetch())
    assert signed_in.cart_summary.has_unseen_notification is False


def test_missing_cart_reads_as_empty(cart, cart_server, signed_in):
    signed_in.store_cart_summary(CartSummary(has_cart=True, item_count=5))

    result = asyncio.run(cart.fetch())

    assert result.is_empty
    assert signed_in.cart_summary == CartSummary()


def test_signed_out_fetch_makes_no_call(transport, store, fake_session):
    result = asyncio.run(CartService(transport, store).fetch())

    assert result.is_empty
    assert fake_session.calls == []


def test_concurrent_add_is_refused(cart, cart_server):
    async def scenario():
        return await asyncio.gather(
            cart.add_or_increment("p1"),
            cart.add_or_increment("p2"),
            return_exceptions=True,
        )

    first, second = asyncio.run(scenario())

    assert first.item_count == 1
    assert isinstance(second, CartBusyError)
    assert cart_server.lines == {"p1": 1}
    assert cart.is_adding is False


def test_busy_flag_released_after_failure(cart, fake_session):
    fake_session.route("GET", "/shop/cart", (500, {"error": "boom"}))

    with pytest.raises(ApiError):
        asyncio.run(cart.add_or_increment("p1"))

    assert cart.is_adding is False


@pytest.mark.parametrize("quantity", [0, -1])
def test_add_rejects_non_positive_quantity(cart, quantity):
    with pytest.raises(ValueError):
        asyncio.run(cart.add_or_increment("p1", quantity))


def test_set_quantity_rejects_zero(cart):
    with pytest.raises(ValueError):
        asyncio.run(cart.set_quantity("p1", 0))


def test_increase_and_decrease(cart, cart_server):
    async def scenario():
        await cart.add_or_increment("p1", 2)
        await cart.increase("p1")
        return await cart.decrease("p1")

    result = asyncio.run(scenario())

    assert result.line_for("p1").quantity == 2
    assert cart_server.lines == {"p1": 2}


def test_decrease_stops_at_one(cart, cart_server, fake_session):
    async def scenario():
        await cart.add_or_increment("p1", 1)
        return await cart.decrease("p1")

    result = asyncio.run(scenario())

    assert result.line_for("p1").quantity == 1
    assert fake_session.calls_to("PATCH", "/shop/cart/product") == []


def test_increase_adds_missing_line(cart, cart_server):
    asyncio.run(cart.increase("p4"))

    assert cart_server.lines == {"p4": 1}


def test_remove_line(cart, cart_server, signed_in):
    async def scenario():
        await cart.add_or_increment("p1")
        await cart.add_or_increment("p2", 2)
        return await cart.remove("p1")

    result = asyncio.run(scenario())

    assert [line.product_id for line in result.lines] == ["p2"]
    assert signed_in.cart_summary.item_count == 2


def test_clear_resets_summary(cart, cart_server, signed_in):
    async def scenario():
        await cart.add_or_increment("p1", 3)
        await cart.clear()

    asyncio.run(scenario())

    assert cart_server.lines == {}
    assert signed_in.cart_summary == CartSummary()


def test_fetch_detailed_resolves_products(cart, cart_server, fake_session):
    fake_session.route(
        "GET",
        "/shop/products/id/p1",
        (200, {"_id": "p1", "title": "Phone", "price": {"current": 250.0, "currency": "USD"}}),
    )

    async def scenario():
        await cart.add_or_increment("p1", 2)
        return await cart.fetch_detailed()

    result = asyncio.run(scenario())

    line = result.line_for("p1")
    assert line.product.title == "Phone"
    assert line.line_total == 500.0


def test_quantity_changes_keep_unseen_notification(cart, cart_server, signed_in):
    async def scenario():
        await cart.add_or_increment("p1", 1)
        await cart.add_or_increment("p2", 1)
        await cart.set_quantity("p1", 4)
        return await cart.remove("p2")

    result = asyncio.run(scenario())

    assert result.item_count == 4
    assert signed_in.cart_summary == CartSummary(has_cart=True, item_count=4, has_unseen_notification=True)


def test_quantity_change_after_seen_stays_seen(cart, cart_server, signed_in):
    asyncio.run(cart.add_or_increment("p1", 1))
    signed_in.mark_cart_seen()

    asyncio.run(cart.set_quantity("p1", 2))

    assert signed_in.cart_summary.has_unseen_notification is False
