"""Server-sent event parsing for the generate endpoint.

The backend emits ``event: delta`` frames whose data is ``{"delta": "..."}``;
raw provider frames in the OpenAI (``choices[0].delta.content``) and
Anthropic (``delta.text``) shapes are read as well.
"""
import json
import logging
from typing import Any, AsyncIterator, Optional

from .client import BackendError

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


def delta_from_payload(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None

    delta = payload.get("delta")
    if isinstance(delta, str):
        return delta
    if isinstance(delta, dict) and isinstance(delta.get("text"), str):
        return delta["text"]

    choices = payload.get("choices")
    if isinstance(choices, list) and choices:
        content = ((choices[0] or {}).get("delta") or {}).get("content")
        if isinstance(content, str):
            return content
    return None


def _raise_error_event(data: str) -> None:
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        raise BackendError(502, data)
    if not isinstance(payload, dict):
        raise BackendError(502, str(payload))
    try:
        status = int(payload.get("status_code") or 502)
    except (TypeError, ValueError):
        status = 502
    raise BackendError(status, str(payload.get("message") or data))


async def iter_sse_deltas(lines: AsyncIterator[str]) -> AsyncIterator[str]:
    """Yield text deltas from an SSE line stream until a terminal event."""
    event: Optional[str] = None
    async for raw in lines:
        line = raw.rstrip("\r")
        if not line:
            event = None
            continue
        if line.startswith(":"):
            continue
        if line.startswith("event:"):
            event = line[len("event:"):].strip()
            if event == "done":
                return
            continue
        if not line.startswith("data:"):
            continue

        data = line[len("data:"):].strip()
        if data == DONE_SENTINEL:
            return
        if event == "error":
            _raise_error_event(data)

        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed SSE payload: {data[:80]}")
            continue

        delta = delta_from_payload(payload)
        if delta:
            yield delta


def extract_non_streaming_content(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    if payload.get("generatedText"):
        return payload["generatedText"]

    choices = payload.get("choices")
    if isinstance(choices, list) and choices:
        content = ((choices[0] or {}).get("message") or {}).get("content")
        if content:
            return content

    blocks = payload.get("content")
    if isinstance(blocks, list) and blocks and isinstance(blocks[0], dict):
        return blocks[0].get("text") or ""
    return ""
