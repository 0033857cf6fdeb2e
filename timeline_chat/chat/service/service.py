from abc import ABC, abstractmethod
from typing import List, Optional

from timeline_chat.chat.entity.chat import ChatMessage, ChatSession, SessionSummary


class ISessionStore(ABC):
    @abstractmethod
    async def create_session(self, title: Optional[str] = None, agent: Optional[str] = None) -> ChatSession:
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        pass

    @abstractmethod
    async def add_message(self, session_id: str, message: ChatMessage) -> ChatMessage:
        pass

    @abstractmethod
    async def get_all_sessions(self) -> List[SessionSummary]:
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        pass

    @abstractmethod
    async def update_session(self, session_id: str, title: str) -> None:
        pass

    @abstractmethod
    async def update_message(self, session_id: str, message_id: str, content: str) -> None:
        pass

    @abstractmethod
    async def delete_message(self, session_id: str, message_id: str) -> None:
        pass

    @abstractmethod
    async def search_sessions(self, query: str) -> List[SessionSummary]:
        pass

    @abstractmethod
    async def export_session(self, session_id: str) -> str:
        pass

    @abstractmethod
    async def import_session(self, data: str) -> ChatSession:
        pass
