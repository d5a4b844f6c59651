import asyncio
import json
import logging
import uuid
from typing import Awaitable, Callable, Literal, Optional

import httpx

from ..config import get_settings
from ..models.schemas import EntityContext, Message, NumberedCitation, PreviousMessage
from ..pipeline.system_prompts import PromptScope, compose_for
from ..services.providers import PERPLEXITY, provider_for_model
from .citations import CitationExtractor
from .client import BackendError, ChatBackendClient, is_event_stream
from .sse import extract_non_streaming_content, iter_sse_deltas
from .stream import StreamConsumer, StreamReadError, StreamSession, StreamState

logger = logging.getLogger(__name__)

THINKING_PHRASES = (
    "Thinking…",
    "Reflecting…",
    "Considering…",
    "Processing…",
    "Drafting a thought…",
    "Formulating a response…",
    "Gathering context…",
)

Persist = Callable[[list[Message]], Awaitable[None]]
OnUpdate = Callable[[Message], None]


async def _discard(messages: list[Message]) -> None:
    return None


def _message_id(role: str) -> str:
    return f"{role}-{uuid.uuid4().hex[:12]}"


class Conversation:
    """One chat thread: its messages, at most one open stream, and its turn counter."""

    def __init__(
        self,
        backend: ChatBackendClient,
        extractor: Optional[CitationExtractor] = None,
        model: Optional[str] = None,
        persist: Optional[Persist] = None,
        on_update: Optional[OnUpdate] = None,
        history_limit: Optional[int] = None,
    ):
        settings = get_settings()
        self.backend = backend
        self.extractor = extractor or CitationExtractor()
        self.model = model or settings.default_model
        self.persist = persist or _discard
        self.on_update = on_update
        self.history_limit = history_limit or settings.history_message_limit
        self.non_streaming_providers = set(settings.non_streaming_providers)

        self.messages: list[Message] = []
        self._session: Optional[StreamSession] = None
        self._turns = 0
        self._background: set[asyncio.Task] = set()

    @property
    def is_streaming(self) -> bool:
        return self._session is not None and self._session.is_open

    def next_thinking_phrase(self) -> str:
        phrase = THINKING_PHRASES[self._turns % len(THINKING_PHRASES)]
        self._turns += 1
        return phrase

    def history(self) -> list[PreviousMessage]:
        return [
            PreviousMessage(role=m.role, content=m.content)
            for m in self.messages[-self.history_limit:]
        ]

    def find(self, message_id: str) -> Optional[Message]:
        return next((m for m in self.messages if m.id == message_id), None)

    async def submit(
        self,
        text: str,
        system_context: Optional[str] = None,
        entity: Optional[EntityContext] = None,
        scope: Optional[PromptScope] = None,
    ) -> Message:
        """Send one user turn and return the assistant message once the turn settles.

        An explicit ``system_context`` wins; otherwise a ``scope`` is composed
        into the domain persona for the page the user is chatting from.
        """
        self.stop()
        if system_context is None and scope is not None:
            system_context = compose_for(scope)

        history = self.history()
        self.messages.append(Message(id=_message_id("user"), role="user", content=text))
        assistant = Message(
            id=_message_id("assistant"),
            role="assistant",
            is_streaming=True,
            thinking_phrase=self.next_thinking_phrase(),
            prompt_log=system_context,
        )
        self.messages.append(assistant)
        self._notify(assistant)

        provider = provider_for_model(self.model)
        payload = self.backend.build_payload(
            text,
            self.model,
            stream=provider not in self.non_streaming_providers,
            history=history,
            system_context=system_context,
            entity=entity,
        )

        session = StreamSession(id=assistant.id)
        consumer = StreamConsumer(session, assistant, on_update=self.on_update)
        self._session = session
        session.task = asyncio.create_task(self._run_turn(consumer, payload, text, provider))
        try:
            await session.task
        except asyncio.CancelledError:
            consumer.cancel()
            if not session.cancel_requested:
                raise
        finally:
            if self._session is session:
                self._session = None
        return assistant

    async def _run_turn(self, consumer: StreamConsumer, payload: dict, query: str, provider: str) -> None:
        streamed = True
        provider_citations: list[NumberedCitation] = []
        try:
            async with self.backend.open(payload) as response:
                if is_event_stream(response):
                    await consumer.consume(iter_sse_deltas(response.aiter_lines()))
                    text = None
                else:
                    streamed = False
                    data = json.loads(await response.aread())
                    if not isinstance(data, dict):
                        raise BackendError(502, f"Unexpected response body: {str(data)[:200]}")
                    text = extract_non_streaming_content(data)
                    provider_citations = [
                        NumberedCitation.model_validate(c) for c in data.get("citations") or []
                    ]
        except asyncio.CancelledError:
            consumer.cancel()
            raise
        except (BackendError, StreamReadError, httpx.HTTPError, ValueError) as e:
            logger.error(f"Error generating response: {e}")
            consumer.fail(e)
            return
        except Exception as e:
            logger.exception("Unexpected error while reading the response")
            consumer.fail(e)
            return

        if consumer.state == StreamState.CANCELLED or not consumer.finalize(text):
            return

        assistant = consumer.message
        await self.extractor.apply(
            assistant,
            query,
            streamed=streamed,
            provider_citations=provider_citations,
            web_markers=provider == PERPLEXITY,
        )
        self._notify(assistant)

        if assistant.citations:
            self._spawn(self._enrich_related(assistant))
        await self._persist()

    async def _enrich_related(self, message: Message) -> None:
        related = await self.extractor.related_bills(message.citations)
        if related:
            message.related_bills = related
            self._notify(message)
            await self._persist()

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _persist(self) -> None:
        try:
            await self.persist(list(self.messages))
        except Exception as e:
            logger.error(f"Failed to persist conversation: {e}")

    def _notify(self, message: Message) -> None:
        if self.on_update:
            self.on_update(message)

    async def wait_for_enrichment(self) -> None:
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    def stop(self) -> bool:
        """Cancel the open stream, keeping whatever text already arrived."""
        session = self._session
        if session is None or not session.is_open:
            return False
        session.cancel()
        return True

    def reset(self) -> None:
        self.stop()
        for task in list(self._background):
            task.cancel()
        self._background.clear()
        self.messages.clear()
        self._session = None

    def set_feedback(self, message_id: str, feedback: Optional[Literal["good", "bad"]]) -> Optional[Message]:
        message = self.find(message_id)
        if message is None:
            return None
        message.feedback = feedback
        self._notify(message)
        return message
