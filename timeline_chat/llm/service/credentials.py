# timeline_chat/llm/service/credentials.py
from dataclasses import dataclass
from typing import Dict, Optional

from timeline_chat.core.config import settings as default_settings
from timeline_chat.llm.entity.models import ProviderFamily

MIN_API_KEY_LENGTH = 10


@dataclass(frozen=True)
class CredentialInfo:
    present: bool
    valid: bool


def is_valid_api_key(key: Optional[str]) -> bool:
    return bool(key) and len(key) >= MIN_API_KEY_LENGTH and not any(c.isspace() for c in key)


class SettingsCredentialStore:
    """API keys per provider family, seeded from Settings and updatable at runtime."""

    def __init__(self, settings=None):
        settings = settings or default_settings
        self._keys: Dict[ProviderFamily, Optional[str]] = {
            ProviderFamily.ANTHROPIC: settings.ANTHROPIC_API_KEY,
            ProviderFamily.OPENAI: settings.OPENAI_API_KEY,
            ProviderFamily.DEEPSEEK: settings.DEEPSEEK_API_KEY,
        }

    def get_api_key_info(self, family: ProviderFamily) -> CredentialInfo:
        if not family.requires_credentials:
            return CredentialInfo(present=True, valid=True)
        key = self._keys.get(family)
        return CredentialInfo(present=bool(key), valid=is_valid_api_key(key))

    def get_api_key(self, family: ProviderFamily) -> Optional[str]:
        return self._keys.get(family)

    def set_api_key(self, family: ProviderFamily, key: Optional[str]) -> None:
        if not family.requires_credentials:
            return
        self._keys[family] = key.strip() if key else None
