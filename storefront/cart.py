"""Cart reconciliation against the server-side cart."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from .errors import ApiError, CartBusyError
from .schemas import Cart, CartSummary, Product
from .session_store import SessionStore
from .transport import ApiTransport

logger = logging.getLogger(__name__)

CART_PATH = "/shop/cart"
CART_LINE_PATH = "/shop/cart/product"


class CartService:
    """Cart mutations that keep one line per product on the server.

    The server has no atomic upsert, so adds fetch the cart first and fall
    back from create to update when the line already exists. Only one add
    may be outstanding at a time; a second concurrent add raises
    CartBusyError instead of racing the first.
    """

    def __init__(self, transport: ApiTransport, store: SessionStore) -> None:
        self.transport = transport
        self.store = store
        self._adding = False

    @property
    def is_adding(self) -> bool:
        return self._adding

    async def fetch(self) -> Cart:
        """Return the current cart; a missing cart reads as empty."""

        if not self.store.is_authenticated:
            self._sync_summary(None)
            return Cart.empty()
        try:
            cart = await self._fetch_raw()
        except ApiError as exc:
            if not exc.is_not_found_or_empty:
                raise
            cart = Cart.empty()
        self._sync_summary(cart)
        return cart

    async def fetch_detailed(self) -> Cart:
        """Fetch the cart and resolve every line's product."""

        cart = await self.fetch()
        if cart.is_empty:
            return cart
        products = await asyncio.gather(
            *(self.transport.get(f"/shop/products/id/{line.product_id}") for line in cart.lines)
        )
        lines = [
            line.model_copy(update={"product": Product.model_validate(data)})
            for line, data in zip(cart.lines, products)
        ]
        return cart.model_copy(update={"lines": lines})

    async def add_or_increment(self, product_id: str, quantity: int = 1) -> Cart:
        """Add quantity of a product, creating its line only when absent."""

        if quantity < 1:
            raise ValueError("Quantity to add must be at least 1")
        if self._adding:
            raise CartBusyError("An add-to-cart request is already in progress")

        self._adding = True
        try:
            cart = await self._reconcile_add(product_id, quantity)
        except ApiError as exc:
            if exc.is_not_found_or_empty:
                self._sync_summary(None)
            raise
        finally:
            self._adding = False

        self._sync_summary(cart, notify=True)
        logger.info(f"Added {quantity} x {product_id} to cart ({cart.item_count} items)")
        return cart

    async def set_quantity(self, product_id: str, quantity: int) -> Cart:
        if quantity < 1:
            raise ValueError("Quantity must be at least 1; remove the line instead")
        cart = await self._update_line(product_id, quantity)
        self._sync_summary(cart)
        return cart

    async def increase(self, product_id: str) -> Cart:
        cart = await self.fetch()
        line = cart.line_for(product_id)
        if line is None:
            return await self.add_or_increment(product_id, 1)
        return await self.set_quantity(product_id, line.quantity + 1)

    async def decrease(self, product_id: str) -> Cart:
        cart = await self.fetch()
        line = cart.line_for(product_id)
        if line is None or line.quantity <= 1:
            return cart
        return await self.set_quantity(product_id, line.quantity - 1)

    async def remove(self, product_id: str) -> Cart:
        data = await self.transport.delete(CART_LINE_PATH, json={"id": product_id}, auth=True)
        cart = self._to_cart(data)
        self._sync_summary(cart)
        return cart

    async def clear(self) -> None:
        await self.transport.delete(CART_PATH, auth=True)
        self._sync_summary(None)

    async def _reconcile_add(self, product_id: str, quantity: int) -> Cart:
        try:
            cart = await self._fetch_raw()
        except ApiError as exc:
            if not exc.is_not_found_or_empty:
                raise
            cart = Cart.empty()

        existing = cart.line_for(product_id)
        if existing is not None:
            return await self._update_line(product_id, existing.quantity + quantity)
        return await self._create_line(product_id, quantity)

    async def _create_line(self, product_id: str, quantity: int) -> Cart:
        body = {"id": product_id, "quantity": quantity}
        try:
            data = await self.transport.post(CART_LINE_PATH, json=body, auth=True)
        except ApiError as exc:
            if exc.status not in (400, 409) or exc.is_auth_failure:
                raise
            # A line appeared between our fetch and the create.
            logger.info(f"Create for {product_id} rejected with {exc.status}, updating instead")
            return await self._update_line(product_id, quantity)
        return self._to_cart(data)

    async def _update_line(self, product_id: str, quantity: int) -> Cart:
        body = {"id": product_id, "quantity": quantity}
        data = await self.transport.patch(CART_LINE_PATH, json=body, auth=True)
        return self._to_cart(data)

    async def _fetch_raw(self) -> Cart:
        data = await self.transport.get(CART_PATH, auth=True)
        return self._to_cart(data)

    @staticmethod
    def _to_cart(data: Any) -> Cart:
        if not isinstance(data, dict):
            return Cart.empty()
        return Cart.model_validate(data)

    def _sync_summary(self, cart: Cart | None, notify: bool | None = None) -> None:
        # Keeps the unseen flag unless told otherwise; no cart clears it.
        if notify is None:
            notify = cart is not None and self.store.cart_summary.has_unseen_notification
        self.store.store_cart_summary(CartSummary.from_cart(cart, notify=notify))
