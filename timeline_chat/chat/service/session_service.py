from typing import List

from timeline_chat.chat.entity.chat import SessionSummary
from timeline_chat.chat.models.chat_model import ChatState
from timeline_chat.chat.service.orchestrator import ChatOrchestrator
from timeline_chat.chat.service.service import ISessionStore
from timeline_chat.core.errors import SessionNotFoundError
from timeline_chat.core.logger import get_logger

logger = get_logger(__name__)


class ChatSessionService:
    """
    Chat history panel operations:
    - new chat / switch / delete, keeping ChatState in step with the store
    - any stream in flight is cancelled before the transcript is replaced
    """

    def __init__(self, state: ChatState, store: ISessionStore, orchestrator: ChatOrchestrator):
        self.state = state
        self.store = store
        self.orchestrator = orchestrator

    async def load_sessions(self) -> List[SessionSummary]:
        sessions = await self.store.get_all_sessions()
        self.state.update(sessions=sessions)
        return sessions

    async def create_new_chat(self) -> str:
        self.orchestrator.cancel()
        session = await self.store.create_session(agent=self.state.selected_model)
        self.state.clear_messages()
        self.state.update(current_session_id=session.id)
        await self.load_sessions()
        logger.info(f"New chat started: {session.id}")
        return session.id

    async def switch_session(self, session_id: str) -> None:
        session = await self.store.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        self.orchestrator.cancel()
        self.state.clear_messages()
        self.state.set_messages(session.messages)
        self.state.update(current_session_id=session.id)
        logger.info(f"Switched to chat session: {session_id}")

    async def delete_session(self, session_id: str) -> None:
        await self.store.delete_session(session_id)
        if self.state.current_session_id == session_id:
            self.orchestrator.cancel()
            self.state.clear_messages()
            self.state.update(current_session_id=None)
        await self.load_sessions()

    def clear_messages(self) -> None:
        self.state.clear_messages()
