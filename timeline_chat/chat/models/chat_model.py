# timeline_chat/chat/models/chat_model.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from timeline_chat.chat.entity.chat import ChatMessage, SessionSummary, WireMessage
from timeline_chat.core.config import settings
from timeline_chat.core.logger import get_logger
from timeline_chat.llm.entity.models import ProviderFamily
from timeline_chat.llm.service.provider.base_provider import CancellationToken

logger = get_logger(__name__)


class ChatPhase(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class StreamingSession:
    """One in-flight response. Lives from STREAMING until its terminal callback."""
    model_id: str
    family: ProviderFamily
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    accumulated_text: str = ""
    target_message_id: Optional[str] = None


@dataclass(frozen=True)
class ConversationContext:
    """Outbound request content, rebuilt for every send."""
    system_prompt: str
    messages: Tuple[WireMessage, ...]


Listener = Callable[["ChatState"], None]


class ChatState:
    """
    Observable state of the chat panel.

    Every mutation goes through a method here and notifies subscribers with
    the state itself. The message list is exposed as a tuple so callers
    cannot reorder or edit turns behind the listeners' back.
    """

    def __init__(self, selected_model: Optional[str] = None):
        self._messages: List[ChatMessage] = []
        self._listeners: List[Listener] = []
        self.is_processing: bool = False
        self.streaming_text: Optional[str] = None
        self.selected_model: str = selected_model or settings.DEFAULT_MODEL
        self.last_error: Optional[str] = None
        self.current_session_id: Optional[str] = None
        self.sessions: List[SessionSummary] = []

    @property
    def messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Chat state listener failed: {e}")

    def update(self, **changes) -> None:
        for key, value in changes.items():
            if key.startswith("_") or not hasattr(self, key) or key == "messages":
                raise AttributeError(f"ChatState has no writable field '{key}'")
            setattr(self, key, value)
        self._notify()

    def append_message(self, message: ChatMessage) -> ChatMessage:
        # timestamps never go backwards within one transcript
        if self._messages and message.timestamp < self._messages[-1].timestamp:
            message = message.model_copy(update={"timestamp": self._messages[-1].timestamp})
        self._messages.append(message)
        self._notify()
        return message

    def set_messages(self, messages: List[ChatMessage]) -> None:
        self._messages = list(messages)
        self._notify()

    def clear_messages(self) -> None:
        self._messages = []
        self.streaming_text = None
        self.last_error = None
        self._notify()
