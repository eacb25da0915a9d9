"""Persisted session state backed by a small SQLite key-value table."""
from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, Iterable, List, Optional

from config import settings
from .schemas import CartSummary, User

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_KEY = "user"
HAS_CART_KEY = "hasCart"
CART_COUNT_KEY = "cartCount"
CART_NOTIFICATION_KEY = "hasCartNotification"
REVIEWS_KEY = "reviews"
ORDERS_KEY = "orders"

SESSION_KEYS = (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_KEY,
    HAS_CART_KEY,
    CART_COUNT_KEY,
    CART_NOTIFICATION_KEY,
)

_EMPTY_SENTINELS = {"undefined", "null"}


def normalize_token(value: Optional[str]) -> Optional[str]:
    """Collapse every "no token" spelling to None."""

    if value is None:
        return None
    stripped = value.strip()
    if not stripped or stripped in _EMPTY_SENTINELS:
        return None
    return value


def is_valid_token(value: Optional[str]) -> bool:
    return normalize_token(value) is not None


class SessionStore:
    """Key-value store that survives restarts.

    Every component reads and writes session data through this class so the
    token normalization and the sign-out clear-set live in one place.
    """

    def __init__(self, db_path: str | None = None) -> None:
        self.db_path = db_path or settings.db_path
        self._conn = sqlite3.connect(self.db_path)
        self._init_db()

    def _init_db(self) -> None:
        with self._conn:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv(
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def close(self) -> None:
        self._conn.close()

    # Raw contract

    def get(self, key: str) -> Optional[str]:
        row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, items: Dict[str, str]) -> None:
        with self._conn:
            self._conn.executemany(
                "INSERT OR REPLACE INTO kv(key, value) VALUES (?, ?)",
                list(items.items()),
            )

    def remove(self, key: str) -> None:
        self.remove_many([key])

    def remove_many(self, keys: Iterable[str]) -> None:
        with self._conn:
            self._conn.executemany("DELETE FROM kv WHERE key = ?", [(key,) for key in keys])

    def clear(self) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM kv")

    # Tokens

    @property
    def access_token(self) -> Optional[str]:
        return normalize_token(self.get(ACCESS_TOKEN_KEY))

    @property
    def refresh_token(self) -> Optional[str]:
        return normalize_token(self.get(REFRESH_TOKEN_KEY))

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    def store_tokens(self, access_token: str, refresh_token: str) -> None:
        self.set_many({ACCESS_TOKEN_KEY: access_token, REFRESH_TOKEN_KEY: refresh_token})

    def clear_tokens(self) -> None:
        self.remove_many([ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY])

    def clear_session(self) -> None:
        """Drop tokens, the cached profile and the cart summary together."""

        self.remove_many(SESSION_KEYS)
        logger.info("Session cleared")

    # Profile

    @property
    def user_profile(self) -> Optional[User]:
        raw = self.get(USER_KEY)
        if not raw:
            return None
        try:
            return User.model_validate(json.loads(raw))
        except ValueError as exc:
            logger.warning(f"Ignoring unreadable cached profile: {exc}")
            return None

    def store_user_profile(self, user: User) -> None:
        self.set(USER_KEY, json.dumps(user.to_wire()))

    # Cart summary

    @property
    def cart_summary(self) -> CartSummary:
        count_raw = self.get(CART_COUNT_KEY) or "0"
        try:
            count = max(int(count_raw), 0)
        except ValueError:
            count = 0
        return CartSummary(
            has_cart=self.get(HAS_CART_KEY) == "true",
            item_count=count,
            has_unseen_notification=self.get(CART_NOTIFICATION_KEY) == "true",
        )

    def store_cart_summary(self, summary: CartSummary) -> None:
        self.set_many(
            {
                HAS_CART_KEY: "true" if summary.has_cart else "false",
                CART_COUNT_KEY: str(summary.item_count),
                CART_NOTIFICATION_KEY: "true" if summary.has_unseen_notification else "false",
            }
        )

    def mark_cart_seen(self) -> None:
        self.set(CART_NOTIFICATION_KEY, "false")

    # Ledgers

    def load_ledger(self, key: str) -> List[Dict[str, Any]]:
        """Return a stored JSON array; unreadable data reads as empty."""

        raw = self.get(key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning(f"Ledger '{key}' is corrupt, treating as empty: {exc}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Ledger '{key}' is not a list, treating as empty")
            return []
        return [item for item in data if isinstance(item, dict)]

    def save_ledger(self, key: str, items: List[Dict[str, Any]]) -> None:
        self.set(key, json.dumps(items))
