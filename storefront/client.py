from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import requests

from .auth import AuthService
from .cart import CartService
from .catalog import CatalogService
from .checkout import CheckoutService
from .errors import ReauthenticationRequired
from .filters import apply_filters
from .orders import OrderLedger
from .qr import QRCodeService
from .ratings import combined_rating, top_rated, with_combined_ratings
from .reviews import ReviewLedger
from .schemas import CartSummary, FilterCriteria, LocalReview, Order, Product, User
from .session_store import SessionStore
from .transport import ApiTransport


class StorefrontClient:
    """One session store and one transport shared by every service."""

    def __init__(
        self,
        db_path: str | None = None,
        base_url: str | None = None,
        session: requests.Session | None = None,
        shipping_rates: Optional[Dict[str, float]] = None,
    ) -> None:
        self.store = SessionStore(db_path)
        self.transport = ApiTransport(self.store, base_url=base_url, session=session)
        self.catalog = CatalogService(self.transport)
        self.cart = CartService(self.transport, self.store)
        self.auth = AuthService(self.transport, self.store)
        self.orders = OrderLedger(self.store)
        self.reviews = ReviewLedger(self.store, self.transport, self.orders)
        self.checkout = CheckoutService(self.transport, self.store, self.orders, shipping_rates)
        self.qr = QRCodeService(self.transport)

    def close(self) -> None:
        self.store.close()

    @property
    def cart_summary(self) -> CartSummary:
        return self.store.cart_summary

    def require_user(self) -> User:
        user = self.store.user_profile if self.store.is_authenticated else None
        if user is None:
            raise ReauthenticationRequired("Please sign in first")
        return user

    def rated(self, products: Iterable[Product]) -> List[Product]:
        return with_combined_ratings(products, self.reviews.all())

    def browse(self, products: Iterable[Product], criteria: FilterCriteria) -> List[Product]:
        """Filter and sort products using ratings that include local reviews."""

        return apply_filters(products, criteria, reviews=self.reviews.all())

    async def popular(self, limit: int = 5) -> List[Product]:
        """Top products across every category by combined rating."""

        products = await self.catalog.load_all()
        return top_rated(products, self.reviews.all(), limit)

    async def product(self, product_id: str) -> Product:
        product = await self.catalog.get_product(product_id)
        rating = combined_rating(product, self.reviews.for_product(product_id))
        return product.model_copy(update={"rating": rating})

    async def submit_review(self, product_id: str, rating: int, text: str = "") -> LocalReview:
        user = self.require_user()
        product = await self.catalog.get_product(product_id)
        return await self.reviews.submit(product, rating, text, user)

    async def place_order(self, payment_method: str, shipping_method: str = "standard") -> Order:
        cart = await self.cart.fetch_detailed()
        return await self.checkout.place_order(cart.lines, payment_method, shipping_method)
