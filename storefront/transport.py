from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError

from config import settings
from .errors import ApiError, ReauthenticationRequired, TransportError
from .schemas import AuthTokens
from .session_store import SessionStore

logger = logging.getLogger(__name__)


class ApiTransport:
    """Execute calls against the commerce API with bearer auth and one-shot refresh.

    Authorized calls that fail with an expired or rejected token trigger a
    token refresh. At most one refresh runs at a time: callers failing while
    it is in flight await the same task, then retry once with the new token.
    """

    def __init__(
        self,
        store: SessionStore,
        base_url: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.store = store
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = settings.request_timeout if timeout is None else timeout
        self._session = session or requests.Session()
        self._refresh_task: Optional[asyncio.Task[None]] = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        auth: bool = False,
    ) -> Any:
        """Send a request and return the decoded JSON body (or None)."""

        token = self.store.access_token if auth else None
        try:
            return await self._send(method, path, params=params, json=json, token=token)
        except ApiError as exc:
            if not (auth and exc.is_auth_failure):
                raise
            logger.info(f"{method} {path} rejected with {exc.status}, refreshing session")
            await self._ensure_fresh_token(token)

        # Retried once; a second failure goes to the caller as-is.
        return await self._send(method, path, params=params, json=json, token=self.store.access_token)

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None

    async def _ensure_fresh_token(self, used_token: Optional[str]) -> None:
        current = self.store.access_token
        if current is not None and current != used_token:
            # Another caller refreshed after this request was sent.
            return
        if self._refresh_task is None:
            self._refresh_task = asyncio.get_running_loop().create_task(self._refresh())
        await asyncio.shield(self._refresh_task)

    async def _refresh(self) -> None:
        try:
            refresh_token = self.store.refresh_token
            if refresh_token is None:
                self.store.clear_session()
                raise ReauthenticationRequired("No refresh token stored")
            try:
                data = await self._send(
                    "POST",
                    "/auth/refresh",
                    params=None,
                    json={"refresh_token": refresh_token},
                    token=None,
                )
                tokens = AuthTokens.model_validate(data)
            except (ApiError, ValidationError) as exc:
                logger.warning(f"Token refresh failed: {exc}")
                self.store.clear_session()
                raise ReauthenticationRequired("Session refresh failed") from exc
            self.store.store_tokens(tokens.access_token, tokens.refresh_token)
            logger.info("Session tokens refreshed")
        finally:
            self._refresh_task = None

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]],
        json: Any,
        token: Optional[str],
    ) -> Any:
        url = self._build_url(path)
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        request_kwargs: Dict[str, Any] = {"headers": headers, "timeout": self.timeout}
        if params:
            request_kwargs["params"] = params
        if json is not None:
            request_kwargs["json"] = json

        start = time.time()
        try:
            response = await asyncio.to_thread(
                self._session.request, method=method, url=url, **request_kwargs
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        latency = time.time() - start
        logger.debug(f"{method} {url} -> {response.status_code} in {latency:.3f}s")

        body = self._decode_body(response)
        if not response.ok:
            raise ApiError(response.status_code, body, method=method, url=url)
        return body

    def _build_url(self, target: str) -> str:
        if target.startswith(("http://", "https://")):
            return target
        if not target.startswith("/"):
            target = f"/{target}"
        return f"{self.base_url}{target}"

    @staticmethod
    def _decode_body(response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text
