import pytest

from timeline_chat.llm.entity.models import MODEL_REGISTRY, ProviderFamily
from timeline_chat.llm.service.provider.anthropic import AnthropicProvider
from timeline_chat.llm.service.provider.deepseek import DeepSeekProvider
from timeline_chat.llm.service.provider.ollama import OllamaProvider
from timeline_chat.llm.service.provider.openai_provider import OpenAIProvider
from timeline_chat.llm.service.router_service import ProviderRouter, resolve_provider_family

from conftest import FakeProvider


@pytest.mark.parametrize(
    "model_id, family",
    [
        ("claude-4-sonnet", ProviderFamily.ANTHROPIC),
        ("claude-4-opus", ProviderFamily.ANTHROPIC),
        ("gpt-4o", ProviderFamily.OPENAI),
        ("gpt-3.5-turbo", ProviderFamily.OPENAI),
        ("o3", ProviderFamily.OPENAI),
        ("deepseek-r1", ProviderFamily.DEEPSEEK),
        ("deepseek-coder", ProviderFamily.DEEPSEEK),
        ("llama2:13b", ProviderFamily.LOCAL),
        ("mistral", ProviderFamily.LOCAL),
    ],
)
def test_resolve_known_models(model_id, family):
    assert resolve_provider_family(model_id) is family


@pytest.mark.parametrize("model_id", ["", "   ", "модель", "🤖", "Claude-4", "unknown/model"])
def test_resolve_is_total_and_defaults_to_local(model_id):
    assert resolve_provider_family(model_id) is ProviderFamily.LOCAL


def test_registry_families_agree_with_routing():
    for model in MODEL_REGISTRY.values():
        assert resolve_provider_family(model.id) is model.family


def test_client_for_returns_family_client():
    anthropic, local = FakeProvider(), FakeProvider()
    router = ProviderRouter({ProviderFamily.ANTHROPIC: anthropic, ProviderFamily.LOCAL: local})

    assert router.client_for("claude-4-opus") is anthropic
    assert router.client_for("vicuna") is local


def test_client_for_unregistered_family_raises_key_error():
    router = ProviderRouter({ProviderFamily.LOCAL: FakeProvider()})

    with pytest.raises(KeyError):
        router.client_for("gpt-4")


def test_from_settings_builds_one_client_per_family(test_settings):
    router = ProviderRouter.from_settings(test_settings)

    assert isinstance(router.clients[ProviderFamily.ANTHROPIC], AnthropicProvider)
    assert isinstance(router.clients[ProviderFamily.DEEPSEEK], DeepSeekProvider)
    assert isinstance(router.clients[ProviderFamily.LOCAL], OllamaProvider)
    openai_client = router.clients[ProviderFamily.OPENAI]
    assert type(openai_client) is OpenAIProvider
    assert openai_client.has_credentials()
