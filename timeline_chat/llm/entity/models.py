# timeline_chat/llm/entity/models.py
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class ProviderFamily(str, Enum):
    """Chat backends grouped by wire protocol / vendor."""
    ANTHROPIC = "anthropic"
    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    LOCAL = "local"  # Ollama

    @property
    def requires_credentials(self) -> bool:
        return self is not ProviderFamily.LOCAL


@dataclass(frozen=True)
class ProviderModel:
    """Static descriptor of a chat model."""
    id: str
    display_name: str
    family: ProviderFamily
    supports_tools: bool = False
    context_window: int = 4096
    description: str = ""


_MODELS = [
    # Claude
    ProviderModel("claude-4-sonnet", "Claude 4 Sonnet", ProviderFamily.ANTHROPIC, True, 200000,
                  "Most capable everyday Claude model"),
    ProviderModel("claude-4-opus", "Claude 4 Opus", ProviderFamily.ANTHROPIC, True, 200000,
                  "Premium Claude model with maximum capabilities"),
    # OpenAI
    ProviderModel("gpt-4", "GPT-4", ProviderFamily.OPENAI, False, 8192, "OpenAI GPT-4"),
    ProviderModel("gpt-4o", "GPT-4o", ProviderFamily.OPENAI, False, 128000, "Multimodal GPT-4 Omni"),
    ProviderModel("gpt-3.5-turbo", "GPT-3.5 Turbo", ProviderFamily.OPENAI, False, 16385, "Fast and cheap"),
    ProviderModel("o3", "o3", ProviderFamily.OPENAI, False, 128000, "OpenAI o3 reasoning model"),
    # DeepSeek
    ProviderModel("deepseek-r1", "DeepSeek R1", ProviderFamily.DEEPSEEK, False, 65536,
                  "DeepSeek model with improved reasoning"),
    ProviderModel("deepseek-chat", "DeepSeek Chat", ProviderFamily.DEEPSEEK, False, 32768,
                  "Base DeepSeek chat model"),
    ProviderModel("deepseek-coder", "DeepSeek Coder", ProviderFamily.DEEPSEEK, False, 32768,
                  "DeepSeek model specialised for programming"),
    # Ollama (local)
    ProviderModel("llama2", "Llama 2 (7B)", ProviderFamily.LOCAL, False, 4096, "Meta Llama 2, 7B parameters"),
    ProviderModel("llama2:13b", "Llama 2 (13B)", ProviderFamily.LOCAL, False, 4096, "Meta Llama 2, 13B parameters"),
    ProviderModel("mistral", "Mistral (7B)", ProviderFamily.LOCAL, False, 4096, "High performance model from Mistral AI"),
    ProviderModel("codellama", "Code Llama (7B)", ProviderFamily.LOCAL, False, 4096, "Llama tuned for code"),
    ProviderModel("codellama:13b", "Code Llama (13B)", ProviderFamily.LOCAL, False, 4096, "Larger Code Llama"),
    ProviderModel("vicuna", "Vicuna (7B)", ProviderFamily.LOCAL, False, 4096, "Chat fine-tune of Llama"),
    ProviderModel("orca-mini", "Orca Mini (3B)", ProviderFamily.LOCAL, False, 4096, "Small general purpose model"),
    ProviderModel("neural-chat", "Neural Chat (7B)", ProviderFamily.LOCAL, False, 4096, "Intel fine-tune of Mistral"),
]

MODEL_REGISTRY: Dict[str, ProviderModel] = {m.id: m for m in _MODELS}

# Used when a model id is not in the registry
DEFAULT_CONTEXT_WINDOWS: Dict[ProviderFamily, int] = {
    ProviderFamily.ANTHROPIC: 200000,
    ProviderFamily.OPENAI: 16385,
    ProviderFamily.DEEPSEEK: 32768,
    ProviderFamily.LOCAL: 4096,
}

# Models offered in the chat panel's model picker
AVAILABLE_AGENTS: List[str] = [
    "claude-4-sonnet",
    "claude-4-opus",
    "gpt-4",
    "gpt-4o",
    "gpt-3.5-turbo",
    "o3",
]


def get_model(model_id: str) -> Optional[ProviderModel]:
    return MODEL_REGISTRY.get(model_id)


def get_models_for_family(family: ProviderFamily) -> List[ProviderModel]:
    """Registered models of one provider family, in registry order."""
    return [m for m in _MODELS if m.family is family]
