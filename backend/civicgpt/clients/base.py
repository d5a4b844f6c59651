import asyncio
import logging
from typing import Any, Optional
import httpx
from cachetools import TTLCache

from ..config import get_settings

logger = logging.getLogger(__name__)

_cache: TTLCache = TTLCache(maxsize=1000, ttl=get_settings().cache_ttl)


class RateLimitError(Exception):
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class APIError(Exception):
    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


class BaseAPIClient:
    """Shared httpx plumbing: pooled clients, GET caching, retry with backoff."""

    _shared_clients: dict[float, httpx.AsyncClient] = {}

    # Subclasses serving data that must be fresh per turn switch this off.
    cache_responses: bool = True

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.settings = get_settings()
        self._client = self._get_shared_client(timeout)

    @classmethod
    def _get_shared_client(cls, timeout: float) -> httpx.AsyncClient:
        client = BaseAPIClient._shared_clients.get(timeout)
        if client and not client.is_closed:
            return client
        limits = httpx.Limits(max_connections=50, max_keepalive_connections=20)
        client = httpx.AsyncClient(timeout=timeout, limits=limits)
        BaseAPIClient._shared_clients[timeout] = client
        return client

    @classmethod
    async def close_shared_clients(cls) -> None:
        for client in BaseAPIClient._shared_clients.values():
            await client.aclose()
        BaseAPIClient._shared_clients = {}

    def _get_cache_key(self, method: str, url: str, params: Optional[Any] = None) -> str:
        if isinstance(params, dict):
            items = sorted(params.items())
        else:
            items = list(params or [])
        param_str = "&".join(f"{k}={v}" for k, v in items)
        return f"{method}:{url}?{param_str}"

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        headers: Optional[dict] = None,
        params: Optional[Any] = None,
        json: Optional[Any] = None,
        use_cache: Optional[bool] = None,
    ) -> Any:
        if use_cache is None:
            use_cache = self.cache_responses
        cacheable = use_cache and method.upper() == "GET"
        cache_key = self._get_cache_key(method, url, params)
        if cacheable and cache_key in _cache:
            logger.debug(f"Cache hit for {cache_key}")
            return _cache[cache_key]

        backoff = self.settings.initial_backoff
        last_error: Optional[Exception] = None

        for attempt in range(self.settings.max_retries + 1):
            try:
                response = await self._client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    json=json,
                    timeout=self.timeout,
                )

                if response.status_code == 429:
                    retry_after = response.headers.get("Retry-After")
                    wait_time = float(retry_after) if retry_after else backoff

                    logger.warning(
                        f"Rate limited (429). Attempt {attempt + 1}/{self.settings.max_retries + 1}. "
                        f"Waiting {wait_time}s"
                    )

                    if attempt < self.settings.max_retries:
                        await asyncio.sleep(wait_time)
                        backoff *= 2
                        continue
                    raise RateLimitError(
                        "Rate limit exceeded. Please try again later.",
                        retry_after=wait_time,
                    )

                if response.status_code >= 400:
                    preview = (response.text or "")[:800]
                    logger.error("API error %s from %s: %s", response.status_code, url, preview)
                    raise APIError(
                        f"API request failed ({response.status_code}): {preview}",
                        status_code=response.status_code,
                    )

                data = response.json() if response.content else None

                if cacheable:
                    _cache[cache_key] = data

                return data

            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(f"Request timeout. Attempt {attempt + 1}")
                if attempt < self.settings.max_retries:
                    await asyncio.sleep(backoff)
                    backoff *= 2
                    continue

            except httpx.RequestError as e:
                last_error = e
                logger.error(f"Request error: {e}")
                if attempt < self.settings.max_retries:
                    await asyncio.sleep(backoff)
                    backoff *= 2
                    continue

        raise APIError(f"Request failed after retries: {last_error}")
