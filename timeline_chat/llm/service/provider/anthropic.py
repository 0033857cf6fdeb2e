# timeline_chat/llm/service/provider/anthropic.py
from typing import AsyncIterator, Optional, Sequence

from anthropic import AsyncAnthropic

from .base_provider import BaseProvider, StreamOptions
from timeline_chat.chat.entity.chat import WireMessage
from timeline_chat.core.config import settings
from timeline_chat.core.errors import ProviderError

# Chat panel ids -> Anthropic API model ids
MODEL_ALIASES = {
    "claude-4-sonnet": "claude-sonnet-4-20250514",
    "claude-4-opus": "claude-opus-4-20250514",
}


class AnthropicProvider(BaseProvider):
    """Handles Claude (Anthropic) models.

    The system prompt goes into the dedicated ``system`` parameter, never
    into ``messages``.
    """

    name = "anthropic"
    display_name = "Anthropic"

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncAnthropic] = None):
        self.api_key = api_key if api_key is not None else settings.ANTHROPIC_API_KEY
        self.client = client or self._build_client()

    def _build_client(self) -> Optional[AsyncAnthropic]:
        return AsyncAnthropic(api_key=self.api_key) if self.api_key else None

    def set_api_key(self, api_key: Optional[str]) -> None:
        self.api_key = api_key
        self.client = self._build_client()

    def is_enabled(self) -> bool:
        return self.client is not None

    async def _iter_deltas(
        self, model: str, messages: Sequence[WireMessage], options: StreamOptions
    ) -> AsyncIterator[str]:
        if self.client is None:
            raise ProviderError("Anthropic API key is not set", provider=self.name)

        kwargs = {
            "model": MODEL_ALIASES.get(model, model),
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "messages": [{"role": m.role, "content": m.content} for m in messages if m.role != "system"],
        }
        if options.system_prompt:
            kwargs["system"] = options.system_prompt

        async with self.client.messages.stream(**kwargs) as s:
            async for text in s.text_stream:
                yield text
