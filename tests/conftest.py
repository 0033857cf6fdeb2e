import asyncio
from typing import List, Optional, Sequence

import pytest

from timeline_chat.chat.models.chat_model import ChatState
from timeline_chat.chat.repository.chat_repository import LocalChatStorage
from timeline_chat.chat.service.orchestrator import ChatOrchestrator
from timeline_chat.core.config import Settings
from timeline_chat.llm.entity.models import ProviderFamily
from timeline_chat.llm.service.credentials import SettingsCredentialStore
from timeline_chat.llm.service.provider.base_provider import BaseProvider, StreamOptions
from timeline_chat.llm.service.router_service import ProviderRouter


class FakeProvider(BaseProvider):
    """Scripted provider: yields ``deltas``, then optionally raises or hangs."""

    name = "fake"
    display_name = "Fake"

    def __init__(
        self,
        deltas: Sequence[str] = ("Hello", " world"),
        error: Optional[BaseException] = None,
        hang: bool = False,
        delay: float = 0.0,
    ):
        self.deltas = list(deltas)
        self.error = error
        self.hang = hang
        self.delay = delay
        self.calls: List[tuple] = []
        self.started = asyncio.Event()

    async def _iter_deltas(self, model, messages, options: StreamOptions):
        self.calls.append((model, list(messages), options))
        self.started.set()
        for delta in self.deltas:
            if self.delay:
                await asyncio.sleep(self.delay)
            yield delta
        if self.error is not None:
            raise self.error
        if self.hang:
            await asyncio.Event().wait()


async def wait_for(predicate, timeout: float = 2.0) -> None:
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        ANTHROPIC_API_KEY="sk-ant-test-key-0123456789",
        OPENAI_API_KEY="sk-openai-test-key-0123456789",
        DEEPSEEK_API_KEY="sk-deepseek-test-key-0123456789",
        DEFAULT_MODEL="claude-4-sonnet",
        REQUEST_TIMEOUT_MS=5000,
        CHAT_STORAGE_DIR=str(tmp_path / "chats"),
    )


@pytest.fixture
def storage(tmp_path):
    return LocalChatStorage(str(tmp_path / "chats"))


@pytest.fixture
def make_orchestrator(test_settings, storage):
    def _make(provider: Optional[BaseProvider] = None, settings=None, store=None, **kwargs):
        settings = settings or test_settings
        provider = provider or FakeProvider()
        router = ProviderRouter({family: provider for family in ProviderFamily})
        state = ChatState(selected_model=settings.DEFAULT_MODEL)
        return ChatOrchestrator(
            state=state,
            store=store or storage,
            router=router,
            credentials=SettingsCredentialStore(settings),
            settings=settings,
            **kwargs,
        )

    return _make
