import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Sequence

import httpx

from ..config import get_settings
from ..models.schemas import EntityContext, GenerateContext, GenerateRequest, PreviousMessage

logger = logging.getLogger(__name__)


class BackendError(Exception):
    def __init__(self, status_code: int, body: str = ""):
        super().__init__(f"Backend request failed ({status_code}): {body[:300]}")
        self.status_code = status_code
        self.body = body


def is_event_stream(response: httpx.Response) -> bool:
    return "text/event-stream" in response.headers.get("content-type", "")


class ChatBackendClient:
    """Talks to ``POST /api/generate`` on behalf of a conversation."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.app_api_key
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=10.0),
        )

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @staticmethod
    def build_payload(
        prompt: str,
        model: str,
        stream: bool = True,
        history: Sequence[PreviousMessage] = (),
        system_context: Optional[str] = None,
        entity: Optional[EntityContext] = None,
        enhance_with_nys_data: bool = True,
    ) -> dict:
        request = GenerateRequest(
            prompt=prompt,
            stream=stream,
            model=model,
            context=GenerateContext(previous_messages=list(history), system_context=system_context),
            entity_context=entity,
            enhance_with_nys_data=enhance_with_nys_data,
        )
        return request.model_dump(by_alias=True, exclude_none=True)

    @asynccontextmanager
    async def open(self, payload: dict) -> AsyncIterator[httpx.Response]:
        """Send the request and yield the response with its body still unread."""
        async with self._client.stream(
            "POST", "/api/generate", json=payload, headers=self._headers()
        ) as response:
            if response.status_code >= 400:
                body = (await response.aread()).decode("utf-8", errors="replace")
                logger.error(f"Backend returned {response.status_code}: {body[:200]}")
                raise BackendError(response.status_code, body)
            yield response

    async def aclose(self) -> None:
        await self._client.aclose()
