"""
Common HTTP plumbing for external provider clients.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import UpstreamError
from shared.logging import get_logger


class ProviderClient:
    """Base class for a single external provider reached over HTTP.

    Every failure (timeout, transport error, non-2xx, undecodable body) is
    raised as UpstreamError tagged with the provider name.
    """

    provider = "provider"

    def __init__(
        self,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.timeout = timeout
        self.transport = transport
        self.logger = get_logger(f"enrichment.providers.{self.provider}")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None
    ) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, url, params=params, headers=headers, json=json)

        except httpx.TimeoutException as e:
            raise UpstreamError(self.provider, "request timed out") from e
        except httpx.RequestError as e:
            raise UpstreamError(self.provider, f"request failed: {e}") from e

        if response.status_code // 100 != 2:
            raise UpstreamError(
                self.provider,
                f"unexpected status {response.status_code}",
                {"status_code": response.status_code}
            )

        return response

    async def _get_json(self, url: str, **kwargs) -> Any:
        response = await self._request("GET", url, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(self.provider, "malformed JSON response") from e
