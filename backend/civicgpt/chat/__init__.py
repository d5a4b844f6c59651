from ..pipeline.system_prompts import PromptScope
from .client import BackendError, ChatBackendClient
from .conversation import Conversation
from .stream import StreamConsumer, StreamReadError, StreamSession, StreamState

__all__ = [
    "BackendError",
    "ChatBackendClient",
    "Conversation",
    "PromptScope",
    "StreamConsumer",
    "StreamReadError",
    "StreamSession",
    "StreamState",
]
