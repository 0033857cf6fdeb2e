"""Error taxonomy for the chat layer.

Provider failures of any kind (auth, network, malformed payload) are
``ProviderError``; the orchestrator catches them at its boundary and turns
them into state. ``StreamCancelledError`` is the expected outcome of
``cancel()`` and is never shown to the user.
"""

from typing import Optional


class ChatError(Exception):
    """Base class for all chat layer errors."""


class ProviderError(ChatError):
    """A provider request failed (auth, network, status or payload)."""

    def __init__(self, message: str, provider: str = "unknown", status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class ProviderTimeoutError(ProviderError):
    """The provider did not finish streaming within the allowed time."""


class StreamCancelledError(ChatError):
    """The stream was stopped through its cancellation token."""

    def __init__(self, message: str = "Aborted"):
        super().__init__(message)


class MissingCredentialError(ChatError):
    """No usable API key is configured for the provider family."""

    def __init__(self, family: str):
        super().__init__(f"No valid API key configured for provider '{family}'")
        self.family = family


class ChatStorageError(ChatError):
    """Session storage could not read or write data."""


class SessionNotFoundError(ChatStorageError):
    def __init__(self, session_id: str):
        super().__init__(f"Chat session {session_id} not found")
        self.session_id = session_id


class MessageNotFoundError(ChatStorageError):
    def __init__(self, session_id: str, message_id: str):
        super().__init__(f"Message {message_id} not found in chat session {session_id}")
        self.session_id = session_id
        self.message_id = message_id
