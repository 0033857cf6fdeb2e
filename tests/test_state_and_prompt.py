from datetime import timedelta

import pytest

from timeline_chat.chat.entity.chat import ChatMessage
from timeline_chat.chat.models.chat_model import ChatState
from timeline_chat.chat.service.prompt import ProjectState, SelectionState, SystemPromptBuilder
from timeline_chat.llm.entity.models import ProviderFamily
from timeline_chat.llm.service.credentials import SettingsCredentialStore, is_valid_api_key


def test_state_notifies_until_unsubscribed():
    state = ChatState(selected_model="gpt-4")
    seen = []
    unsubscribe = state.subscribe(lambda s: seen.append(s.is_processing))

    state.update(is_processing=True)
    unsubscribe()
    state.update(is_processing=False)

    assert seen == [True]
    assert state.selected_model == "gpt-4"


def test_state_rejects_unknown_fields():
    with pytest.raises(AttributeError):
        ChatState().update(messages=[])
    with pytest.raises(AttributeError):
        ChatState().update(not_a_field=1)


def test_messages_view_is_read_only_and_timestamps_never_go_back():
    state = ChatState()
    later = ChatMessage.user("first")
    earlier = ChatMessage(role="assistant", content="second", timestamp=later.timestamp - timedelta(seconds=5))

    state.append_message(later)
    stored = state.append_message(earlier)

    assert isinstance(state.messages, tuple)
    assert stored.timestamp == later.timestamp
    assert [m.content for m in state.messages] == ["first", "second"]


def test_failing_listener_does_not_stop_others():
    state = ChatState()
    seen = []

    def broken(_):
        raise RuntimeError("listener bug")

    state.subscribe(broken)
    state.subscribe(lambda s: seen.append(s.last_error))
    state.update(last_error="x")

    assert seen == ["x"]


def test_credential_validation(test_settings):
    store = SettingsCredentialStore(test_settings)

    assert store.get_api_key_info(ProviderFamily.ANTHROPIC).valid
    assert store.get_api_key_info(ProviderFamily.LOCAL).present

    store.set_api_key(ProviderFamily.OPENAI, "bad key with spaces")
    info = store.get_api_key_info(ProviderFamily.OPENAI)
    assert info.present and not info.valid

    store.set_api_key(ProviderFamily.DEEPSEEK, None)
    assert not store.get_api_key_info(ProviderFamily.DEEPSEEK).present

    assert not is_valid_api_key("123456789")
    assert is_valid_api_key("1234567890")


def test_prompt_with_project_and_selection():
    prompt = SystemPromptBuilder().build(
        ProjectState(media_count=12, other_resource_count=3, project_name="Wedding", playing_video="intro.mp4"),
        SelectionState(active_tab="music"),
    )

    assert "12 media files, 3 other resources" in prompt
    assert "Active browser tab: music" in prompt
    assert "Current project: Wedding" in prompt
    assert "Player: playing intro.mp4" in prompt


def test_prompt_without_project_state():
    prompt = SystemPromptBuilder().build(None, None)

    assert "Available resources: not available" in prompt
    assert "Current project: not available" in prompt
    assert "Timeline Studio" in prompt


def test_prompt_with_project_but_no_open_project_name():
    prompt = SystemPromptBuilder().build(ProjectState(), SelectionState())

    assert "Current project: none" in prompt
    assert "Player: idle" in prompt
    assert "Active browser tab: media" in prompt
