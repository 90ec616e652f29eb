"""Shared httpx plumbing for the backend adapters.

HTTPAdapter owns one httpx.Client per adapter and translates every failure
at the HTTP boundary into the tooltalk backend error hierarchy:

- 429                     -> RateLimitedError (Retry-After honoured)
- 500, 502, 503, 504      -> BackendUnavailableError
- connect/timeout errors  -> BackendUnavailableError
- 401, 403                -> AuthError
- 400 and other 4xx       -> BadRequestError

Adapters never retry; RetryPolicy does.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from tooltalk.exceptions import (
    AuthError,
    BackendUnavailableError,
    BadRequestError,
    ConfigError,
    RateLimitedError,
    ResponseFormatError,
)

logger = logging.getLogger(__name__)

_UNAVAILABLE_STATUS_CODES = {500, 502, 503, 504}
_AUTH_ERROR_STATUS_CODES = {401, 403}

DEFAULT_TIMEOUT = 3600.0


def env_api_key(backend: str) -> str | None:
    """API key from ``TOOLTALK_<BACKEND>_API_KEY``, if set."""
    return os.environ.get(f"TOOLTALK_{backend.upper()}_API_KEY") or None


def env_base_url(backend: str) -> str | None:
    """Base URL from ``TOOLTALK_<BACKEND>_BASE_URL``, if set."""
    return os.environ.get(f"TOOLTALK_{backend.upper()}_BASE_URL") or None


def _parse_retry_after(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def raise_for_status(response: httpx.Response) -> None:
    """Raise the tooltalk error matching a non-2xx response."""
    status = response.status_code
    if status < 400:
        return
    detail = f"HTTP {status} - {response.text}"
    if status == 429:
        raise RateLimitedError(
            f"Rate limited: {detail}",
            retry_after=_parse_retry_after(response.headers.get("Retry-After")),
        )
    if status in _UNAVAILABLE_STATUS_CODES:
        raise BackendUnavailableError(f"Backend unavailable: {detail}", status_code=status)
    if status in _AUTH_ERROR_STATUS_CODES:
        raise AuthError(f"Authentication failed: {detail}", status_code=status)
    if 400 <= status < 500:
        raise BadRequestError(f"Request rejected: {detail}", status_code=status)
    raise BackendUnavailableError(f"Unexpected status: {detail}", status_code=status)


class HTTPAdapter:
    """Base class holding the httpx client and request helpers.

    Args:
        base_url: Backend base URL, without a trailing slash.
        headers: Default headers for every request.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
    """

    backend: str = ""

    def __init__(
        self,
        base_url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        all_headers = {"Content-Type": "application/json"}
        all_headers.update(headers or {})
        self._client = httpx.Client(
            timeout=timeout,
            headers=all_headers,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @staticmethod
    def require_key(backend: str, api_key: str | None) -> str:
        """Resolve an API key or fail with ConfigError."""
        key = api_key or env_api_key(backend)
        if not key:
            raise ConfigError(
                f"No API key provided. Pass api_key= or set "
                f"TOOLTALK_{backend.upper()}_API_KEY environment variable."
            )
        return key

    def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        """Send one request and return the decoded JSON body."""
        url = f"{self._base_url}{path}"
        try:
            response = self._client.request(method, url, **kwargs)
        except (httpx.ConnectError, httpx.TimeoutException, httpx.RemoteProtocolError) as exc:
            raise BackendUnavailableError(f"{self.backend} request failed: {exc}") from exc
        except httpx.TransportError as exc:
            raise BackendUnavailableError(f"{self.backend} transport error: {exc}") from exc
        raise_for_status(response)
        try:
            data = response.json()
        except ValueError as exc:
            raise ResponseFormatError(
                f"{self.backend} returned non-JSON body: {response.text[:200]}"
            ) from exc
        if not isinstance(data, dict):
            raise ResponseFormatError(f"{self.backend} returned unexpected body: {data!r}")
        return data

    def _post(self, path: str, payload: dict) -> dict:
        logger.debug("POST %s%s", self._base_url, path)
        return self._request("POST", path, json=payload)

    def _get(self, path: str, **kwargs: Any) -> dict:
        return self._request("GET", path, **kwargs)

    def close(self) -> None:
        """Close the underlying httpx client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
