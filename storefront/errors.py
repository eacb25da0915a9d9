"""Exception taxonomy for the storefront client."""
from __future__ import annotations

from typing import Any, Dict, List

# Validation keys the API returns in ``errorKeys`` and their user-facing text.
ERROR_MESSAGES: Dict[str, str] = {
    "errors.email_in_use": "This email is already in use",
    "errors.invalid_email": "Invalid email format",
    "errors.invalid_phone_number": "Invalid phone number format. Use format: +[country code][number]",
    "errors.password_too_short": "Password must be at least 8 characters",
    "errors.invalid_avatar": "Invalid avatar URL",
    "errors.old_password_incorrect": "Old password is incorrect",
    "errors.new_password_matches_old": "New password must be different from old password",
}

TOKEN_EXPIRED_MARKER = "token expired"


class StorefrontError(Exception):
    """Base class for every error raised by this package."""


class TransportError(StorefrontError):
    """The API could not be reached."""


class ApiError(StorefrontError):
    """The API answered with a non-success status."""

    def __init__(self, status: int, body: Any = None, method: str = "", url: str = "") -> None:
        self.status = status
        self.body = body
        self.method = method
        self.url = url
        super().__init__(f"{method} {url} -> {status}: {self.message or 'no details'}".strip())

    @property
    def message(self) -> str:
        if isinstance(self.body, dict):
            for key in ("error", "message"):
                value = self.body.get(key)
                if isinstance(value, str) and value:
                    return value
            return ""
        if isinstance(self.body, str):
            return self.body
        return ""

    @property
    def error_keys(self) -> List[str]:
        if isinstance(self.body, dict):
            keys = self.body.get("errorKeys")
            if isinstance(keys, list):
                return [str(key) for key in keys]
        return []

    @property
    def is_auth_failure(self) -> bool:
        if self.status == 401:
            return True
        return self.status == 400 and TOKEN_EXPIRED_MARKER in self.message.lower()

    @property
    def is_not_found_or_empty(self) -> bool:
        return self.status in (404, 409)


class ReauthenticationRequired(StorefrontError):
    """The session could not be refreshed; the user must sign in again."""


class AccountNotVerified(StorefrontError):
    """Sign-in succeeded but the account e-mail is not verified."""


class CartBusyError(StorefrontError):
    """An add-to-cart call is already in flight."""


class ReviewNotAllowed(StorefrontError):
    """The user may not create or change this review."""


class CheckoutError(StorefrontError):
    """The order cannot be placed as requested."""


def describe_error(exc: BaseException, default: str = "Request failed") -> str:
    """Turn an exception into the message a user should see."""

    if isinstance(exc, ApiError):
        keys = exc.error_keys
        if keys:
            for key, text in ERROR_MESSAGES.items():
                if key in keys:
                    return text
            return ", ".join(keys)
        return exc.message or default
    if isinstance(exc, ReauthenticationRequired):
        return "Your session has expired. Please sign in again"
    text = str(exc)
    return text or default
