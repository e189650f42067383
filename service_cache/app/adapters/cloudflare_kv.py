"""
Cloudflare Workers KV store over the REST API.
"""

from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from shared.errors import CacheClientError
from shared.logging import get_logger
from shared.retry import RetryConfig, retry_on_exception
from .base import StoredKey

# Workers KV rejects expirations shorter than this
MIN_EXPIRATION_TTL = 60
LIST_PAGE_SIZE = 1000


class _TransientStatusError(Exception):
    """5xx from the KV API, eligible for retry."""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"Cloudflare KV returned {response.status_code}")


class CloudflareKVStore:
    """Key-value store backed by a Cloudflare Workers KV namespace."""

    def __init__(
        self,
        account_id: str,
        namespace_id: str,
        api_token: str,
        *,
        api_url: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 5.0,
        retry_config: Optional[RetryConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (
            f"{api_url.rstrip('/')}/accounts/{account_id}/storage/kv/namespaces/{namespace_id}"
        )
        self.timeout = timeout
        self.logger = get_logger("cache.store.cloudflare")
        self._headers = {"Authorization": f"Bearer {api_token}"}
        self._transport = transport
        self._send = retry_on_exception(
            (httpx.TransportError, _TransientStatusError),
            config=retry_config or RetryConfig(max_attempts=3, base_delay=0.1, max_delay=1.0),
        )(self._send_once)

    async def _send_once(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers=self._headers,
            transport=self._transport,
        ) as client:
            response = await client.request(method, url, **kwargs)

        if response.status_code >= 500:
            raise _TransientStatusError(response)
        return response

    async def _call(self, operation: str, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping every failure onto CacheClientError."""
        try:
            return await self._send(method, url, **kwargs)
        except _TransientStatusError as e:
            self.logger.error(
                "Cloudflare KV request failed",
                operation=operation,
                status_code=e.response.status_code,
            )
            raise CacheClientError(
                f"Cloudflare KV {operation} failed with status {e.response.status_code}",
                cause=e,
                details={"status_code": e.response.status_code, "body": e.response.text},
            ) from e
        except httpx.HTTPError as e:
            self.logger.error("Cloudflare KV transport error", operation=operation, error=str(e))
            raise CacheClientError(f"Cloudflare KV {operation} failed: {e}", cause=e) from e

    def _value_url(self, key: str) -> str:
        return f"{self.base_url}/values/{quote(key, safe='')}"

    @staticmethod
    def _raise_for_status(operation: str, response: httpx.Response) -> None:
        if response.is_success:
            return
        raise CacheClientError(
            f"Cloudflare KV {operation} failed with status {response.status_code}",
            details={"status_code": response.status_code, "body": response.text},
        )

    async def get(self, key: str) -> Optional[str]:
        response = await self._call("get", "GET", self._value_url(key))
        if response.status_code == 404:
            return None
        self._raise_for_status("get", response)
        return response.text

    async def put(self, key: str, value: str, expiration_ttl: int) -> None:
        ttl = max(MIN_EXPIRATION_TTL, int(expiration_ttl))
        response = await self._call(
            "put",
            "PUT",
            self._value_url(key),
            params={"expiration_ttl": ttl},
            content=value.encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )
        self._raise_for_status("put", response)
        self.logger.debug("Stored value in Cloudflare KV", key=key, ttl=ttl)

    async def delete(self, key: str) -> None:
        response = await self._call("delete", "DELETE", self._value_url(key))
        if response.status_code == 404:
            return
        self._raise_for_status("delete", response)

    async def list(self, prefix: str) -> List[StoredKey]:
        names: List[StoredKey] = []
        cursor: Optional[str] = None

        while True:
            params: Dict[str, Any] = {"prefix": prefix, "limit": LIST_PAGE_SIZE}
            if cursor:
                params["cursor"] = cursor

            response = await self._call("list", "GET", f"{self.base_url}/keys", params=params)
            self._raise_for_status("list", response)

            try:
                payload = response.json()
            except ValueError as e:
                raise CacheClientError("Cloudflare KV list returned invalid JSON", cause=e) from e

            names.extend(StoredKey(name=item["name"]) for item in payload.get("result", []))

            cursor = (payload.get("result_info") or {}).get("cursor")
            if not cursor:
                return names
