from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from config import load_shipping_rates
from .errors import CheckoutError
from .orders import OrderLedger
from .schemas import CartLine, CartSummary, Order
from .session_store import SessionStore
from .transport import ApiTransport

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class Quote:
    subtotal: float
    shipping: float
    total: float
    currency: str


class CheckoutService:
    """Price a cart, place the order and keep a local receipt."""

    def __init__(
        self,
        transport: ApiTransport,
        store: SessionStore,
        orders: OrderLedger,
        shipping_rates: Optional[Dict[str, float]] = None,
    ) -> None:
        self.transport = transport
        self.store = store
        self.orders = orders
        self.shipping_rates = dict(shipping_rates or load_shipping_rates())

    def quote(self, lines: Sequence[CartLine], shipping_method: str = "standard") -> Quote:
        if shipping_method not in self.shipping_rates:
            raise CheckoutError(f"Unknown shipping method: {shipping_method}")
        subtotal = sum(line.line_total for line in lines)
        shipping = self.shipping_rates[shipping_method]
        currency = next(
            (line.product.price.currency for line in lines if line.product is not None),
            "USD",
        )
        return Quote(subtotal=subtotal, shipping=shipping, total=subtotal + shipping, currency=currency)

    async def place_order(
        self,
        lines: Sequence[CartLine],
        payment_method: str,
        shipping_method: str = "standard",
    ) -> Order:
        if not payment_method:
            raise CheckoutError("Please select a payment method")
        if not shipping_method:
            raise CheckoutError("Please select a shipping method")
        priced: List[CartLine] = [line for line in lines if line.product is not None]
        if not priced:
            raise CheckoutError("Your cart is empty")

        quote = self.quote(priced, shipping_method)
        await self.transport.post("/shop/cart/checkout", json={}, auth=True)

        order = Order(
            id=uuid.uuid4().hex,
            lines=priced,
            subtotal=quote.subtotal,
            shipping=quote.shipping,
            total=quote.total,
            currency=quote.currency,
            payment_method=payment_method,
            shipping_method=shipping_method,
            created_at=datetime.now(timezone.utc),
        )
        self.orders.record(order)
        self.store.store_cart_summary(CartSummary())
        logger.info(f"Order {order.id} placed for {quote.total:.2f} {quote.currency}")
        return order
