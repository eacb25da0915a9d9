from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from .errors import AccountNotVerified, ApiError, StorefrontError
from .schemas import AuthTokens, SignUpRequest, User, UserUpdate
from .session_store import SessionStore
from .transport import ApiTransport

logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    """Account flows that read or change the stored session."""

    def __init__(self, transport: ApiTransport, store: SessionStore) -> None:
        self.transport = transport
        self.store = store

    async def sign_up(self, request: SignUpRequest) -> Any:
        payload = request.to_wire()
        payload["email"] = _normalize_email(request.email)
        return await self.transport.post("/auth/sign_up", json=payload)

    async def sign_in(self, email: str, password: str) -> User:
        """Sign in, then require a verified account before keeping the session."""

        data = await self.transport.post(
            "/auth/sign_in",
            json={"email": _normalize_email(email), "password": password},
        )
        tokens = AuthTokens.model_validate(data)
        self.store.store_tokens(tokens.access_token, tokens.refresh_token)

        try:
            user = await self._fetch_user()
        except (StorefrontError, ValidationError):
            self.store.clear_tokens()
            raise

        if not user.is_verified:
            self.store.clear_tokens()
            raise AccountNotVerified(
                "Please check your email and verify your account before signing in."
            )

        self.store.store_user_profile(user)
        logger.info(f"Signed in as {user.email}")
        return user

    async def sign_out(self) -> None:
        """End the session locally even when the server call fails."""

        try:
            await self.transport.post("/auth/sign_out", json={}, auth=True)
        except ApiError as exc:
            if exc.status not in (404, 501):
                logger.warning(f"Server sign-out failed: {exc}")
        except StorefrontError as exc:
            logger.warning(f"Server sign-out failed: {exc}")
        finally:
            self.store.clear_session()

    async def current_user(self) -> User:
        try:
            user = await self._fetch_user()
        except (StorefrontError, ValidationError):
            self.store.clear_session()
            raise
        self.store.store_user_profile(user)
        return user

    async def update_user(self, update: UserUpdate) -> User:
        data = await self.transport.patch("/auth/update", json=update.to_wire(), auth=True)
        user = User.model_validate(data)
        self.store.store_user_profile(user)
        return user

    async def change_password(self, old_password: str, new_password: str) -> None:
        data = await self.transport.patch(
            "/auth/change_password",
            json={"oldPassword": old_password, "newPassword": new_password},
            auth=True,
        )
        # The API may rotate tokens when the password changes.
        if isinstance(data, dict) and data.get("access_token") and data.get("refresh_token"):
            self.store.store_tokens(data["access_token"], data["refresh_token"])

    async def verify_email(self, email: str) -> Any:
        return await self.transport.post("/auth/verify_email", json={"email": _normalize_email(email)})

    async def recover_password(self, email: str) -> Any:
        return await self.transport.post("/auth/recovery", json={"email": _normalize_email(email)})

    async def delete_account(self) -> None:
        await self.transport.delete("/auth/delete", auth=True)
        self.store.clear()
        logger.info("Account deleted, local data wiped")

    async def _fetch_user(self) -> User:
        data = await self.transport.get("/auth", auth=True)
        return User.model_validate(data)
