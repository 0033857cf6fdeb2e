# timeline_chat/llm/service/router_service.py
from typing import Dict, Mapping, Optional, Tuple

from timeline_chat.core.logger import get_logger
from timeline_chat.llm.entity.models import ProviderFamily
from timeline_chat.llm.service.provider.base_provider import BaseProvider

logger = get_logger("ProviderRouter")

# First matching prefix wins; anything unmatched runs locally
FAMILY_PREFIXES: Tuple[Tuple[str, ProviderFamily], ...] = (
    ("claude", ProviderFamily.ANTHROPIC),
    ("gpt", ProviderFamily.OPENAI),
    ("o3", ProviderFamily.OPENAI),
    ("deepseek", ProviderFamily.DEEPSEEK),
)


def resolve_provider_family(model_id: str) -> ProviderFamily:
    """Classify a model id by prefix. Total: unknown ids go to LOCAL."""
    model_id = model_id or ""
    for prefix, family in FAMILY_PREFIXES:
        if model_id.startswith(prefix):
            return family
    return ProviderFamily.LOCAL


class ProviderRouter:
    """
    Maps model ids to the provider client that serves them.
    Clients are constructed by the caller and injected, one per family.
    """

    def __init__(self, clients: Mapping[ProviderFamily, BaseProvider]):
        self.clients: Dict[ProviderFamily, BaseProvider] = dict(clients)

    @classmethod
    def from_settings(cls, settings=None) -> "ProviderRouter":
        from timeline_chat.core.config import settings as default_settings
        from timeline_chat.llm.service.provider.anthropic import AnthropicProvider
        from timeline_chat.llm.service.provider.openai_provider import OpenAIProvider
        from timeline_chat.llm.service.provider.deepseek import DeepSeekProvider
        from timeline_chat.llm.service.provider.ollama import OllamaProvider

        settings = settings or default_settings
        return cls({
            ProviderFamily.ANTHROPIC: AnthropicProvider(api_key=settings.ANTHROPIC_API_KEY),
            ProviderFamily.OPENAI: OpenAIProvider(api_key=settings.OPENAI_API_KEY),
            ProviderFamily.DEEPSEEK: DeepSeekProvider(
                api_key=settings.DEEPSEEK_API_KEY, base_url=settings.DEEPSEEK_BASE_URL
            ),
            ProviderFamily.LOCAL: OllamaProvider(base_url=settings.OLLAMA_BASE_URL),
        })

    def resolve(self, model_id: str) -> ProviderFamily:
        return resolve_provider_family(model_id)

    def client_for(self, model_id: str) -> BaseProvider:
        family = self.resolve(model_id)
        client: Optional[BaseProvider] = self.clients.get(family)
        if client is None:
            raise KeyError(f"No provider client registered for family '{family.value}'")
        logger.debug(f"Routing model={model_id} -> {client.name}")
        return client
