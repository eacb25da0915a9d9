"""Shared fixtures: a fake requests session and an in-memory cart server."""

import json
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import pytest
import requests

from storefront.schemas import Product
from storefront.session_store import SessionStore
from storefront.transport import ApiTransport

BASE_URL = "https://api.test"
VALID_TOKEN = "access-1"


def make_response(status: int, body: Any = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = b"" if body is None else json.dumps(body).encode("utf-8")
    response.headers["Content-Type"] = "application/json"
    return response


@dataclass
class Call:
    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    params: Optional[Dict[str, Any]] = None
    json: Any = None

    @property
    def bearer(self) -> Optional[str]:
        value = self.headers.get("Authorization")
        return value[len("Bearer "):] if value else None


Handler = Callable[[Call], Tuple[int, Any]]


class FakeSession:
    """Stands in for requests.Session; routes by method and path."""

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.calls: List[Call] = []
        self._lock = threading.Lock()

    def route(self, method: str, path: str, handler: Any) -> None:
        self.routes[(method, path)] = handler

    def request(self, method, url, headers=None, params=None, json=None, timeout=None):
        call = Call(method, urlsplit(url).path, dict(headers or {}), params, json)
        with self._lock:
            self.calls.append(call)
        handler = self.routes.get((method, call.path))
        if handler is None:
            return make_response(404, {"error": f"No route for {method} {call.path}"})
        status, body = handler(call) if callable(handler) else handler
        return make_response(status, body)

    def calls_to(self, method: str, path: str) -> List[Call]:
        with self._lock:
            return [call for call in self.calls if call.method == method and call.path == path]


class FakeCartServer:
    """Server-side cart with the API's quirks: 409 before the first line,
    400 when creating a line that exists, 401 for a wrong bearer token."""

    def __init__(self, session: FakeSession, token: str = VALID_TOKEN) -> None:
        self.token = token
        self.lines: Dict[str, int] = {}
        self.exists = False
        self.prices: Dict[str, float] = {}
        session.route("GET", "/shop/cart", self.get_cart)
        session.route("DELETE", "/shop/cart", self.clear_cart)
        session.route("POST", "/shop/cart/product", self.create_line)
        session.route("PATCH", "/shop/cart/product", self.update_line)
        session.route("DELETE", "/shop/cart/product", self.delete_line)

    def _authorized(self, call: Call) -> bool:
        return call.bearer == self.token

    def body(self) -> Dict[str, Any]:
        total = sum(self.prices.get(pid, 10.0) * qty for pid, qty in self.lines.items())
        return {
            "_id": "cart-1",
            "userId": "user-1",
            "products": [{"productId": pid, "quantity": qty} for pid, qty in self.lines.items()],
            "total": {"price": {"current": total}, "quantity": sum(self.lines.values())},
        }

    def get_cart(self, call: Call):
        if not self._authorized(call):
            return 401, {"error": "Unauthorized"}
        if not self.exists:
            return 409, {"error": "User has to create cart first"}
        return 200, self.body()

    def clear_cart(self, call: Call):
        if not self._authorized(call):
            return 401, {"error": "Unauthorized"}
        self.lines.clear()
        self.exists = False
        return 200, {"success": True}

    def create_line(self, call: Call):
        if not self._authorized(call):
            return 401, {"error": "Unauthorized"}
        pid = call.json["id"]
        if pid in self.lines:
            return 400, {"error": "Product already in cart"}
        self.exists = True
        self.lines[pid] = call.json["quantity"]
        return 201, self.body()

    def update_line(self, call: Call):
        if not self._authorized(call):
            return 401, {"error": "Unauthorized"}
        pid = call.json["id"]
        if pid not in self.lines:
            return 400, {"error": "Product not in cart"}
        self.lines[pid] = call.json["quantity"]
        return 200, self.body()

    def delete_line(self, call: Call):
        if not self._authorized(call):
            return 401, {"error": "Unauthorized"}
        self.lines.pop(call.json["id"], None)
        return 200, self.body()


@pytest.fixture
def store(tmp_path):
    session_store = SessionStore(str(tmp_path / "session.db"))
    yield session_store
    session_store.close()


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def transport(store, fake_session):
    return ApiTransport(store, base_url=BASE_URL, timeout=1.0, session=fake_session)


@pytest.fixture
def signed_in(store):
    store.store_tokens(VALID_TOKEN, "refresh-1")
    return store


@pytest.fixture
def cart_server(fake_session):
    return FakeCartServer(fake_session)


@pytest.fixture
def make_product():
    def factory(
        product_id: str = "p1",
        title: str = "Laptop",
        price: float = 100.0,
        rating: float = 4.0,
        brand: str = "acme",
        category: str = "laptops",
        stock: int = 5,
    ) -> Product:
        return Product.model_validate(
            {
                "_id": product_id,
                "title": title,
                "price": {"current": price, "currency": "USD"},
                "category": {"id": "1", "name": category},
                "brand": brand,
                "thumbnail": f"https://img.test/{product_id}.png",
                "stock": stock,
                "rating": rating,
            }
        )

    return factory
