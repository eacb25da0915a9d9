"""Local order receipts."""
from __future__ import annotations

import logging
from typing import Dict, List

from pydantic import ValidationError

from .schemas import Order, Product
from .session_store import ORDERS_KEY, SessionStore

logger = logging.getLogger(__name__)


class OrderLedger:
    """Orders placed from this client, kept only in the session store."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    def _load(self) -> List[Order]:
        orders: List[Order] = []
        for item in self.store.load_ledger(ORDERS_KEY):
            try:
                orders.append(Order.model_validate(item))
            except ValidationError as exc:
                logger.warning(f"Skipping unreadable order entry: {exc}")
        return orders

    def record(self, order: Order) -> None:
        raw = self.store.load_ledger(ORDERS_KEY)
        raw.append(order.to_wire())
        self.store.save_ledger(ORDERS_KEY, raw)
        logger.info(f"Recorded order {order.id} ({order.total:.2f} {order.currency})")

    def orders(self) -> List[Order]:
        """All orders, newest first."""

        return sorted(self._load(), key=lambda order: order.created_at, reverse=True)

    def get(self, order_id: str) -> Order | None:
        return next((order for order in self._load() if order.id == order_id), None)

    def has_purchased(self, product_id: str) -> bool:
        return any(order.contains(product_id) for order in self._load())

    def purchased_products(self) -> List[Product]:
        seen: Dict[str, Product] = {}
        for order in self._load():
            for line in order.lines:
                if line.product is not None and line.product.id not in seen:
                    seen[line.product.id] = line.product
        return list(seen.values())
