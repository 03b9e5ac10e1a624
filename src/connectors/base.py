"""Base class for external provider clients.

Clients:
- Translate provider calls to HTTP requests
- Raise UpstreamError for any non-success response
- Make exactly one attempt per call (no retries)
- Hold no state besides their HTTP client (and, for the record store,
  the credential cache)
"""

from typing import Any, Optional

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger

logger = get_logger(__name__)


class RESTClient:
    """
    Base client for REST API providers.

    Owns a lazily created ``httpx.AsyncClient`` unless one is injected,
    in which case the caller keeps ownership.
    """

    provider: str = "upstream"

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        http: Optional[httpx.AsyncClient] = None
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = http
        self._owns_client = http is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _send(
        self,
        method: str,
        path: str,
        **kwargs: Any
    ) -> httpx.Response:
        """Send a request and raise UpstreamError unless it succeeded."""
        client = await self._get_client()
        url = self._url(path)
        logger.debug("Upstream request", provider=self.provider, method=method, url=url)

        response = await client.request(method, url, **kwargs)
        if not response.is_success:
            raise UpstreamError(self.provider, response.status_code, response.text)
        return response

    async def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any
    ) -> dict[str, Any]:
        """Send a request and decode the JSON body (empty dict for 204)."""
        response = await self._send(method, path, **kwargs)
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
