# timeline_chat/llm/service/provider/deepseek.py
from typing import Optional

from .openai_provider import OpenAIProvider
from timeline_chat.core.config import settings


class DeepSeekProvider(OpenAIProvider):
    """Handles DeepSeek API integration.

    DeepSeek speaks the OpenAI chat completions protocol, so this is the
    OpenAI client pointed at the DeepSeek base URL.
    """

    name = "deepseek"
    display_name = "DeepSeek"
    model_aliases = {"deepseek-r1": "deepseek-reasoner"}

    def _default_api_key(self) -> Optional[str]:
        return settings.DEEPSEEK_API_KEY

    def _default_base_url(self) -> Optional[str]:
        return settings.DEEPSEEK_BASE_URL or "https://api.deepseek.com/v1"
