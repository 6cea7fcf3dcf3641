from __future__ import annotations
from typing import Any

from .error_codes import ErrorFamily, family, is_retryable, message


class BitkubClientError(Exception):
    """Base exception for all client errors."""

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


# ---------- local (raised before any network activity) ----------
class BitkubPreconditionError(BitkubClientError):
    """Missing credentials or a missing/invalid request field."""

    def __init__(self, message: str, *, field: str | None = None, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.field = field


class BitkubEncodingError(BitkubPreconditionError):
    """The request payload could not be serialized to JSON."""


# ---------- transport ----------
class BitkubTransportError(BitkubClientError):
    """Anything that went wrong between sending bytes and holding a decoded envelope."""


class BitkubHTTPError(BitkubTransportError):
    """Non-200 HTTP status returned by the exchange."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        method: str | None = None,
        path: str | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.method = method
        self.path = path
        self.body = body


class BitkubAuthError(BitkubHTTPError):
    """Authentication/authorization errors (401/403)."""


class BitkubRateLimitError(BitkubHTTPError):
    """Rate limit exceeded (HTTP 429). The client never retries on its own."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: float | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(status_code=429, message=message, **kwargs)
        self.retry_after = retry_after


class BitkubNetworkError(BitkubTransportError):
    """Network/timeout/connection related errors."""


class BitkubDecodeError(BitkubTransportError):
    """Response body is not valid JSON or does not have the expected shape."""

    def __init__(self, message: str, *, body: str | None = None, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.body = body


# ---------- domain ----------
class BitkubAPIError(BitkubClientError):
    """HTTP 200 with a nonzero ``error`` code in the envelope."""

    def __init__(self, code: int, *, path: str | None = None):
        self.code = code
        self.message = message(code)
        self.path = path
        super().__init__(f"got server error ({code}) : {self.message}")

    @property
    def family(self) -> ErrorFamily:
        return family(self.code)

    @property
    def retryable(self) -> bool:
        return is_retryable(self.code)
