# timeline_chat/llm/service/provider/openai_provider.py
import re
from typing import Any, AsyncIterator, Dict, Optional, Sequence

from openai import AsyncOpenAI

from .base_provider import BaseProvider, StreamOptions
from timeline_chat.chat.entity.chat import WireMessage
from timeline_chat.core.config import settings
from timeline_chat.core.errors import ProviderError

# o1, o3, o4-mini ... take max_completion_tokens and a fixed temperature
_REASONING_MODEL = re.compile(r"^o\d")


class OpenAIProvider(BaseProvider):
    """Handles OpenAI chat completion models.

    The system prompt is sent as a synthetic first ``system`` message.
    """

    name = "openai"
    display_name = "OpenAI"
    model_aliases: Dict[str, str] = {}

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.api_key = api_key if api_key is not None else self._default_api_key()
        self.base_url = base_url or self._default_base_url()
        self.client = client or self._build_client()

    def _default_api_key(self) -> Optional[str]:
        return settings.OPENAI_API_KEY

    def _default_base_url(self) -> Optional[str]:
        return None

    def _build_client(self) -> Optional[AsyncOpenAI]:
        if not self.api_key:
            return None
        return AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)

    def set_api_key(self, api_key: Optional[str]) -> None:
        self.api_key = api_key
        self.client = self._build_client()

    def is_enabled(self) -> bool:
        return self.client is not None

    def _request_kwargs(self, model: str, messages: Sequence[WireMessage], options: StreamOptions) -> Dict[str, Any]:
        effective_model = self.model_aliases.get(model, model)
        kwargs: Dict[str, Any] = {
            "model": effective_model,
            "messages": self._with_system(messages, options.system_prompt),
            "stream": True,
        }
        if _REASONING_MODEL.match(effective_model):
            kwargs["max_completion_tokens"] = options.max_tokens
        else:
            kwargs["max_tokens"] = options.max_tokens
            kwargs["temperature"] = options.temperature
        return kwargs

    async def _iter_deltas(
        self, model: str, messages: Sequence[WireMessage], options: StreamOptions
    ) -> AsyncIterator[str]:
        if self.client is None:
            raise ProviderError(f"{self.display_name} API key is not set", provider=self.name)

        response_stream = await self.client.chat.completions.create(**self._request_kwargs(model, messages, options))
        async for event in response_stream:
            # delta content lives in event.choices[0].delta.content; usage-only chunks have no choices
            delta = getattr(event.choices[0].delta, "content", None) if getattr(event, "choices", None) else None
            if delta:
                yield delta
