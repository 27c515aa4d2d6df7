"""Small JSON-over-HTTP client for third-party lookups made off the request path."""

import logging
from typing import Any, Self

import httpx
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


class HTTPClientError(Exception):
    """A lookup failed: bad status, timeout, connection error or unreadable body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def transient(self) -> bool:
        return self.status_code is None or self.status_code >= 500


class HTTPClient:
    """GET-only JSON client with a short timeout and bounded retries.

    Subclasses set ``base_url`` and call :meth:`get_json`. Only transient
    failures (no response, or a 5xx) are retried; 4xx responses surface
    immediately as :class:`HTTPClientError`.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        max_retries: int = 1,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(max_retries, 1)
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _fetch(self, path: str, params: dict | None) -> httpx.Response:
        try:
            response = self.client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise HTTPClientError(f"Timed out fetching {path}") from e
        except httpx.TransportError as e:
            raise HTTPClientError(f"Connection failed for {path}: {e}") from e

        if response.is_error:
            raise HTTPClientError(
                f"HTTP {response.status_code} for {path}",
                status_code=response.status_code,
            )
        return response

    def get_json(self, path: str, params: dict | None = None) -> Any:
        """GET path and decode the JSON body, retrying transient failures."""
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=0.5, max=4),
            retry=retry_if_exception(
                lambda e: isinstance(e, HTTPClientError) and e.transient
            ),
            reraise=True,
        )
        try:
            response = retrying(self._fetch, path, params)
        except HTTPClientError as e:
            logger.warning(f"Lookup {path} failed: {e}")
            raise

        try:
            return response.json()
        except ValueError as e:
            raise HTTPClientError(f"Unreadable JSON from {path}") from e
