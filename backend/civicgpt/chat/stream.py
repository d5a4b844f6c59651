"""Client-side lifecycle of one streamed answer.

A session moves ``created -> streaming -> finalized``, or ends early as
``cancelled`` (user stop, new turn, navigation away) or ``errored``. Once a
session reaches a terminal state the message is never touched again.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Callable, Optional

import httpx

from ..models.schemas import Message

logger = logging.getLogger(__name__)

APOLOGY = "I apologize, but I encountered an error generating a response. Please try again."
EMPTY_RESPONSE_APOLOGY = "I apologize, but I encountered an error. Please try again."


class StreamReadError(Exception):
    pass


class StreamState(str, Enum):
    CREATED = "created"
    STREAMING = "streaming"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"
    ERRORED = "errored"


TERMINAL_STATES = {StreamState.FINALIZED, StreamState.CANCELLED, StreamState.ERRORED}

TRANSITIONS = {
    StreamState.CREATED: {StreamState.STREAMING, *TERMINAL_STATES},
    StreamState.STREAMING: TERMINAL_STATES,
}


@dataclass
class StreamSession:
    id: str
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    accumulated_text: str = ""
    state: StreamState = StreamState.CREATED
    task: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self.state not in TERMINAL_STATES

    @property
    def cancel_requested(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Signal the reader to stop; best effort, upstream may keep generating."""
        self.cancel_event.set()
        if self.task is not None and not self.task.done():
            self.task.cancel()


class StreamConsumer:
    def __init__(
        self,
        session: StreamSession,
        message: Message,
        on_update: Optional[Callable[[Message], None]] = None,
    ):
        self.session = session
        self.message = message
        self.on_update = on_update

    @property
    def state(self) -> StreamState:
        return self.session.state

    def _transition(self, target: StreamState) -> bool:
        current = self.session.state
        if current == target:
            return True
        if target not in TRANSITIONS.get(current, set()):
            logger.debug(f"Session {self.session.id}: ignoring {current.value} -> {target.value}")
            return False
        self.session.state = target
        return True

    def _notify(self) -> None:
        if self.on_update:
            self.on_update(self.message)

    async def consume(self, deltas: AsyncIterator[str]) -> str:
        """Append deltas in arrival order; returns the accumulated text."""
        if not self._transition(StreamState.STREAMING):
            return self.session.accumulated_text

        try:
            async for delta in deltas:
                if self.session.cancel_requested:
                    break
                self.session.accumulated_text += delta
                self.message.content = self.session.accumulated_text
                self._notify()
        except asyncio.CancelledError:
            self.cancel()
            raise
        except (httpx.HTTPError, httpx.StreamError) as e:
            raise StreamReadError(str(e)) from e

        if self.session.cancel_requested:
            self.cancel()
        return self.session.accumulated_text

    def cancel(self) -> None:
        if not self._transition(StreamState.CANCELLED):
            return
        self.message.content = self.session.accumulated_text
        self.message.is_streaming = False
        logger.info(f"Stream {self.session.id} cancelled after {len(self.session.accumulated_text)} chars")
        self._notify()

    def fail(self, error: BaseException) -> None:
        if not self._transition(StreamState.ERRORED):
            return
        logger.error(f"Stream {self.session.id} failed: {error}")
        self.message.content = APOLOGY
        self.message.is_streaming = False
        self._notify()

    def finalize(self, text: Optional[str] = None) -> bool:
        """Freeze the answer. ``text`` overrides the accumulated deltas (single-shot)."""
        if not self._transition(StreamState.FINALIZED):
            return False
        if text is not None:
            self.session.accumulated_text = text
        self.message.content = self.session.accumulated_text or EMPTY_RESPONSE_APOLOGY
        self.message.is_streaming = False
        self._notify()
        return True
