from __future__ import annotations

import logging
from typing import Any, Mapping

import requests
from requests.exceptions import RequestException, Timeout

from .config import BitkubConfig
from .errors import BitkubAuthError, BitkubHTTPError, BitkubNetworkError, BitkubRateLimitError

logger = logging.getLogger(__name__)


class Transport:
    """
    Thin wrapper over ``requests.Session``.

    Returns the raw body of an HTTP 200 response and classifies everything else.
    There is no retry loop: a signed body carries a timestamp and must never be
    resent, callers that retry have to sign again.
    """

    def __init__(self, config: BitkubConfig = BitkubConfig(), session: requests.Session | None = None):
        self.config = config
        self.session = session or requests.Session()

    def _headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = {"User-Agent": self.config.user_agent, "Accept": "application/json"}
        if extra:
            headers.update(extra)
        return headers

    def get(self, path: str, params: Mapping[str, Any] | None = None) -> bytes:
        url = f"{self.config.base_url}{path}"
        logger.debug("GET %s params=%s", path, params)
        try:
            response = self.session.get(url, params=params or None, headers=self._headers(), timeout=self.config.timeout)
        except Timeout as e:
            logger.error("GET %s timed out", path)
            raise BitkubNetworkError(f"Timeout calling {url}", cause=e) from e
        except RequestException as e:
            logger.error("GET %s network error: %s", path, e)
            raise BitkubNetworkError(f"Network error calling {url}: {e}", cause=e) from e
        return self._check(response, "GET", path)

    def post(self, path: str, body: bytes, headers: Mapping[str, str]) -> bytes:
        url = f"{self.config.base_url}{path}"
        # body is signed; never log it
        logger.debug("POST %s (%d bytes)", path, len(body))
        try:
            response = self.session.post(url, data=body, headers=self._headers(headers), timeout=self.config.timeout)
        except Timeout as e:
            logger.error("POST %s timed out", path)
            raise BitkubNetworkError(f"Timeout calling {url}", cause=e) from e
        except RequestException as e:
            logger.error("POST %s network error: %s", path, e)
            raise BitkubNetworkError(f"Network error calling {url}: {e}", cause=e) from e
        return self._check(response, "POST", path)

    def _check(self, response: Any, method: str, path: str) -> bytes:
        status = response.status_code
        if status == 200:
            return response.content

        text = (response.text or "")[:300]

        if status in (401, 403):
            logger.error("%s %s auth error: HTTP %d", method, path, status)
            raise BitkubAuthError(status_code=status, message="Auth failed", method=method, path=path, body=text)

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            parsed: float | None = None
            if retry_after is not None:
                try:
                    parsed = float(retry_after)
                except ValueError:
                    parsed = None
            logger.warning("%s %s rate limited; Retry-After=%s", method, path, parsed)
            raise BitkubRateLimitError(retry_after=parsed, method=method, path=path, body=text)

        if status >= 500:
            logger.warning("%s %s server error HTTP %d", method, path, status)
            message = "Server error"
        else:
            logger.error("%s %s client error HTTP %d", method, path, status)
            message = text.strip() or "Unknown error"

        raise BitkubHTTPError(status_code=status, message=message, method=method, path=path, body=text)
