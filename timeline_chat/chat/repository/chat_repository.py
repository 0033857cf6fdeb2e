# timeline_chat/chat/repository/chat_repository.py

import asyncio
import json
import os
from typing import List, Optional

from pydantic import ValidationError

from timeline_chat.chat.entity.chat import ChatMessage, ChatSession, SessionSummary, new_id, utcnow
from timeline_chat.chat.service.service import ISessionStore
from timeline_chat.core.config import settings
from timeline_chat.core.errors import ChatStorageError, MessageNotFoundError, SessionNotFoundError
from timeline_chat.core.logger import get_logger

logger = get_logger(__name__)

DEFAULT_TITLE = "New chat"
DEFAULT_AGENT = "claude-4-sonnet"
TITLE_MAX_LENGTH = 50
PREVIEW_MAX_LENGTH = 100


def generate_title(text: str) -> str:
    """First line of ``text``, cut to 50 characters plus an ellipsis."""
    lines = text.strip().splitlines()
    first_line = lines[0].strip() if lines else ""
    if len(first_line) > TITLE_MAX_LENGTH:
        return first_line[:TITLE_MAX_LENGTH] + "..."
    return first_line or DEFAULT_TITLE


def session_to_summary(session: ChatSession) -> SessionSummary:
    last = session.messages[-1] if session.messages else None
    preview = None
    if last is not None:
        preview = last.content
        if len(preview) > PREVIEW_MAX_LENGTH:
            preview = preview[:PREVIEW_MAX_LENGTH] + "..."
    return SessionSummary(
        id=session.id,
        title=session.title,
        last_message=preview,
        last_message_at=last.timestamp if last is not None else session.updated_at,
        message_count=len(session.messages),
    )


class LocalChatStorage(ISessionStore):
    """Keeps chat sessions as one JSON file per session under ``root_dir``."""

    def __init__(self, root_dir: Optional[str] = None):
        self.root_dir = root_dir or settings.CHAT_STORAGE_DIR
        self._lock = asyncio.Lock()
        self.logger = logger

    # ────────────────────────────────────────────────
    # File helpers (run in a worker thread)
    # ────────────────────────────────────────────────

    def _path(self, session_id: str) -> str:
        return os.path.join(self.root_dir, f"chat_{session_id}.json")

    def _read_file(self, path: str) -> Optional[ChatSession]:
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return ChatSession.model_validate_json(f.read())
        except (OSError, ValidationError) as e:
            raise ChatStorageError(f"Failed to read chat session file {path}: {e}") from e

    def _write_file(self, session: ChatSession) -> None:
        os.makedirs(self.root_dir, exist_ok=True)
        path = self._path(session.id)
        tmp_path = path + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(session.model_dump_json(indent=2))
            os.replace(tmp_path, path)
        except OSError as e:
            raise ChatStorageError(f"Failed to write chat session {session.id}: {e}") from e

    def _list_files(self) -> List[str]:
        if not os.path.isdir(self.root_dir):
            return []
        return [
            os.path.join(self.root_dir, name)
            for name in os.listdir(self.root_dir)
            if name.startswith("chat_") and name.endswith(".json")
        ]

    def _read_all(self) -> List[ChatSession]:
        sessions = []
        for path in self._list_files():
            try:
                session = self._read_file(path)
            except ChatStorageError as e:
                self.logger.warning(f"Skipping unreadable chat session file: {e}")
                continue
            if session is not None:
                sessions.append(session)
        return sessions

    async def _load(self, session_id: str) -> ChatSession:
        session = await asyncio.to_thread(self._read_file, self._path(session_id))
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def _save(self, session: ChatSession) -> None:
        await asyncio.to_thread(self._write_file, session)

    # ────────────────────────────────────────────────
    # Session CRUD
    # ────────────────────────────────────────────────

    async def create_session(self, title: Optional[str] = None, agent: Optional[str] = None) -> ChatSession:
        session = ChatSession(title=title or DEFAULT_TITLE, agent=agent or DEFAULT_AGENT)
        async with self._lock:
            await self._save(session)
        self.logger.info(f"Chat session created: {session.id}")
        return session

    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        return await asyncio.to_thread(self._read_file, self._path(session_id))

    async def get_all_sessions(self) -> List[SessionSummary]:
        sessions = await asyncio.to_thread(self._read_all)
        sessions.sort(key=lambda s: s.updated_at, reverse=True)
        return [session_to_summary(s) for s in sessions]

    async def update_session(self, session_id: str, title: str) -> None:
        async with self._lock:
            session = await self._load(session_id)
            session.title = title
            session.updated_at = utcnow()
            await self._save(session)

    async def delete_session(self, session_id: str) -> None:
        path = self._path(session_id)
        async with self._lock:
            if await asyncio.to_thread(os.path.exists, path):
                await asyncio.to_thread(os.remove, path)
                self.logger.info(f"Chat session deleted: {session_id}")

    # ────────────────────────────────────────────────
    # Messages
    # ────────────────────────────────────────────────

    async def add_message(self, session_id: str, message: ChatMessage) -> ChatMessage:
        async with self._lock:
            session = await self._load(session_id)
            is_first_user_turn = message.role == "user" and not any(m.role == "user" for m in session.messages)
            session.messages.append(message)
            if is_first_user_turn and session.title == DEFAULT_TITLE:
                session.title = generate_title(message.content)
            session.updated_at = utcnow()
            await self._save(session)
        return message

    async def update_message(self, session_id: str, message_id: str, content: str) -> None:
        async with self._lock:
            session = await self._load(session_id)
            for m in session.messages:
                if m.id == message_id:
                    m.content = content
                    break
            else:
                raise MessageNotFoundError(session_id, message_id)
            session.updated_at = utcnow()
            await self._save(session)

    async def delete_message(self, session_id: str, message_id: str) -> None:
        async with self._lock:
            session = await self._load(session_id)
            remaining = [m for m in session.messages if m.id != message_id]
            if len(remaining) == len(session.messages):
                raise MessageNotFoundError(session_id, message_id)
            session.messages = remaining
            session.updated_at = utcnow()
            await self._save(session)

    # ────────────────────────────────────────────────
    # Search / export / import
    # ────────────────────────────────────────────────

    async def search_sessions(self, query: str) -> List[SessionSummary]:
        needle = query.strip().lower()
        summaries = await self.get_all_sessions()
        if not needle:
            return summaries
        return [
            s for s in summaries
            if needle in s.title.lower() or (s.last_message and needle in s.last_message.lower())
        ]

    async def export_session(self, session_id: str) -> str:
        session = await self._load(session_id)
        return session.model_dump_json(indent=2)

    async def import_session(self, data: str) -> ChatSession:
        """Store an exported session under a fresh id."""
        try:
            payload = json.loads(data)
            imported = ChatSession.model_validate(payload)
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            raise ChatStorageError(f"Invalid session data: {e}") from e

        session = imported.model_copy(update={"id": new_id(), "updated_at": utcnow()})
        async with self._lock:
            await self._save(session)
        self.logger.info(f"Chat session imported: {session.id}")
        return session
