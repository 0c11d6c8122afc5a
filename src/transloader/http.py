"""
HTTP client shared by source downloads and entity store requests.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .config import ClientConfig
from .exceptions import TransportError

logger = logging.getLogger(__name__)


class HTTPClient:
    """
    Thin wrapper around ``httpx.Client`` with default headers, optional
    Basic auth and request/response logging.

    Status codes are returned to the caller untouched; only timeouts and
    connection failures are raised, as :class:`TransportError`.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.config = config or ClientConfig()
        self.timeout = self.config.timeout
        self._logger = log or logger
        self._client = httpx.Client(
            timeout=self.timeout,
            headers={"User-Agent": self.config.user_agent},
            auth=self.config.auth,
            transport=transport,
            follow_redirects=True,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def get(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        return self.request("GET", url, params=params, headers=headers)

    def head(self, url: str, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        return self.request("HEAD", url, headers=headers)

    def post(self, url: str, json: Any = None, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        return self.request("POST", url, json=json, headers=headers)

    def patch(self, url: str, json: Any = None, headers: Optional[Dict[str, str]] = None) -> httpx.Response:
        return self.request("PATCH", url, json=json, headers=headers)

    def request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send a request, logging both sides of the exchange at DEBUG."""
        self._logger.debug("%s %s params=%s headers=%s", method, url, params, headers)
        if json is not None:
            self._logger.debug("Request body: %s", json)

        try:
            response = self._client.request(method, url, params=params, headers=headers, json=json)
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {url} timed out after {self.timeout}s") from e
        except httpx.RequestError as e:
            raise TransportError(f"Network error during {method} {url}: {e}") from e

        self._log_response(response)
        return response

    def _log_response(self, response: httpx.Response) -> None:
        if not self._logger.isEnabledFor(logging.DEBUG):
            return
        self._logger.debug(
            "%s %s %s", response.http_version, response.status_code, response.reason_phrase
        )
        for header, value in response.headers.items():
            self._logger.debug("%s: %s", header, value)
        if response.request.method != "HEAD":
            self._logger.debug("%s", response.text[:2000])
