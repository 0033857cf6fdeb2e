import asyncio

import pytest

from timeline_chat.chat.entity.chat import ChatMessage
from timeline_chat.chat.service.session_service import ChatSessionService
from timeline_chat.core.errors import SessionNotFoundError

from conftest import FakeProvider, wait_for


@pytest.fixture
def service_and_orchestrator(make_orchestrator, storage):
    provider = FakeProvider(deltas=["reply"])
    orchestrator = make_orchestrator(provider)
    return ChatSessionService(orchestrator.state, storage, orchestrator), orchestrator


@pytest.mark.asyncio
async def test_create_new_chat_resets_transcript(service_and_orchestrator):
    service, orchestrator = service_and_orchestrator
    await orchestrator.send_message("Hi")
    old_session = orchestrator.state.current_session_id

    new_id = await service.create_new_chat()

    assert new_id != old_session
    assert orchestrator.state.current_session_id == new_id
    assert orchestrator.state.messages == ()
    assert {s.id for s in orchestrator.state.sessions} == {old_session, new_id}


@pytest.mark.asyncio
async def test_switch_session_loads_history(service_and_orchestrator, storage):
    service, orchestrator = service_and_orchestrator
    other = await storage.create_session(title="Earlier")
    await storage.add_message(other.id, ChatMessage.user("old question"))
    await orchestrator.send_message("Hi")

    await service.switch_session(other.id)

    assert orchestrator.state.current_session_id == other.id
    assert [m.content for m in orchestrator.state.messages] == ["old question"]


@pytest.mark.asyncio
async def test_switch_to_unknown_session_raises(service_and_orchestrator):
    service, _ = service_and_orchestrator
    with pytest.raises(SessionNotFoundError):
        await service.switch_session("missing")


@pytest.mark.asyncio
async def test_switch_cancels_active_stream(make_orchestrator, storage):
    provider = FakeProvider(deltas=["streaming..."], hang=True)
    orchestrator = make_orchestrator(provider)
    service = ChatSessionService(orchestrator.state, storage, orchestrator)
    other = await storage.create_session(title="Other")

    task = orchestrator.submit("long answer please")
    await wait_for(lambda: orchestrator.state.streaming_text == "streaming...")
    await service.switch_session(other.id)
    await task

    assert orchestrator.state.current_session_id == other.id
    assert orchestrator.state.messages == ()
    assert orchestrator.state.streaming_text is None
    assert orchestrator.state.is_processing is False


@pytest.mark.asyncio
async def test_delete_current_session_clears_state(service_and_orchestrator, storage):
    service, orchestrator = service_and_orchestrator
    await orchestrator.send_message("Hi")
    current = orchestrator.state.current_session_id

    await service.delete_session(current)

    assert orchestrator.state.current_session_id is None
    assert orchestrator.state.messages == ()
    assert await storage.get_session(current) is None
    assert orchestrator.state.sessions == []


@pytest.mark.asyncio
async def test_clear_messages_leaves_store_untouched(service_and_orchestrator, storage):
    service, orchestrator = service_and_orchestrator
    await orchestrator.send_message("Hi")

    service.clear_messages()

    assert orchestrator.state.messages == ()
    stored = await storage.get_session(orchestrator.state.current_session_id)
    assert len(stored.messages) == 2


@pytest.mark.asyncio
async def test_switch_while_send_is_creating_its_session_keeps_the_switch(make_orchestrator, storage):
    other = await storage.create_session(title="Other")
    await storage.add_message(other.id, ChatMessage.user("old question"))

    gate = asyncio.Event()
    create_session = storage.create_session

    async def slow_create_session(*args, **kwargs):
        await gate.wait()
        return await create_session(*args, **kwargs)

    storage.create_session = slow_create_session
    provider = FakeProvider()
    orchestrator = make_orchestrator(provider)
    service = ChatSessionService(orchestrator.state, storage, orchestrator)

    task = orchestrator.submit("belongs to new chat")
    await asyncio.sleep(0.01)
    await service.switch_session(other.id)
    gate.set()
    await task

    assert orchestrator.state.current_session_id == other.id
    assert [m.content for m in orchestrator.state.messages] == ["old question"]
    assert provider.calls == []
    assert [s.id for s in await storage.get_all_sessions()] == [other.id]
    assert [m.content for m in (await storage.get_session(other.id)).messages] == ["old question"]
