# timeline_chat/chat/service/orchestrator.py
import asyncio
import inspect
from typing import Any, Callable, Dict, Optional

from timeline_chat.chat.entity.chat import ChatMessage
from timeline_chat.chat.models.chat_model import ChatPhase, ChatState, ConversationContext, StreamingSession
from timeline_chat.chat.service.prompt import ProjectState, SelectionState, SystemPromptBuilder
from timeline_chat.chat.service.service import ISessionStore
from timeline_chat.core.config import settings as default_settings
from timeline_chat.core.errors import ProviderError, StreamCancelledError
from timeline_chat.core.logger import get_logger
from timeline_chat.llm.entity.models import ProviderFamily
from timeline_chat.llm.service.context_window import ContextWindowManager
from timeline_chat.llm.service.credentials import SettingsCredentialStore
from timeline_chat.llm.service.provider.base_provider import StreamOptions
from timeline_chat.llm.service.router_service import ProviderRouter

logger = get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Sorry, an error occurred while getting a response. Please try again."


class ChatOrchestrator:
    """
    Drives one chat send at a time:
    IDLE -> VALIDATING -> STREAMING -> FINALIZING | CANCELLED | FAILED -> IDLE.

    Provider failures never escape ``send_message``. When nothing was
    streamed they end up in ``state.last_error`` and as an error notice in
    the transcript; otherwise the partial reply is kept and the error is
    only logged.
    """

    def __init__(
        self,
        state: ChatState,
        store: ISessionStore,
        router: ProviderRouter,
        credentials: SettingsCredentialStore,
        prompt_builder: Optional[SystemPromptBuilder] = None,
        context_manager: Optional[ContextWindowManager] = None,
        settings=None,
        on_credentials_required: Optional[Callable[[ProviderFamily], Any]] = None,
        project_state_provider: Optional[Callable[[], Optional[ProjectState]]] = None,
        selection_state_provider: Optional[Callable[[], Optional[SelectionState]]] = None,
    ):
        self.state = state
        self.store = store
        self.router = router
        self.credentials = credentials
        self.prompt_builder = prompt_builder or SystemPromptBuilder()
        self.settings = settings or default_settings
        self.context_manager = context_manager or ContextWindowManager(self.settings.DEFAULT_MAX_TOKENS)
        self.on_credentials_required = on_credentials_required
        self.project_state_provider = project_state_provider
        self.selection_state_provider = selection_state_provider

        self.phase: ChatPhase = ChatPhase.IDLE
        self._session: Optional[StreamingSession] = None
        self._validation_cancelled = False

    @property
    def streaming_session(self) -> Optional[StreamingSession]:
        return self._session

    # ────────────────────────────────────────────────
    # Public entry points
    # ────────────────────────────────────────────────

    async def send_message(self, text: str) -> None:
        if not self._claim(text):
            return
        await self._send(text)

    def submit(self, text: str) -> Optional[asyncio.Task]:
        """Schedule a send from synchronous UI code. ``None`` when it would be a no-op."""
        if not self._claim(text):
            return None
        return asyncio.get_running_loop().create_task(self._send(text))

    def cancel(self) -> bool:
        if self.phase is ChatPhase.VALIDATING:
            # picked up by the send once its session lookup returns
            logger.info("Cancelling send before streaming")
            self._validation_cancelled = True
            return True
        if self.phase is not ChatPhase.STREAMING or self._session is None:
            return False
        logger.info(f"Cancelling stream | model={self._session.model_id}")
        self._session.cancellation.cancel()
        return True

    def select_model(self, model_id: str) -> None:
        self.state.update(selected_model=model_id)

    # ────────────────────────────────────────────────
    # Send pipeline
    # ────────────────────────────────────────────────

    def _claim(self, text: str) -> bool:
        # moves to VALIDATING before any await so a second call sees a busy phase
        if not text or not text.strip() or self.phase is not ChatPhase.IDLE:
            return False
        self.phase = ChatPhase.VALIDATING
        self._validation_cancelled = False
        return True

    async def _send(self, text: str) -> None:
        persist_user: Optional[asyncio.Task] = None
        try:
            model_id = self.state.selected_model
            family = self.router.resolve(model_id)
            logger.info(f"send start | model={model_id} family={family.value}")

            if family.requires_credentials:
                info = self.credentials.get_api_key_info(family)
                if not (info.present and info.valid):
                    logger.info(f"Credentials required | family={family.value} present={info.present}")
                    await self._request_credentials(family)
                    return

            session_id = await self._ensure_session(model_id)
            if self._validation_cancelled:
                logger.info(f"send dropped | chat changed before streaming model={model_id}")
                return
            user_message = self.state.append_message(ChatMessage.user(text))
            persist_user = self._schedule_persist(session_id, user_message)
            self.state.update(last_error=None, streaming_text=None, is_processing=True)

            context = self._build_context(model_id)
            streaming = StreamingSession(model_id=model_id, family=family)
            self._session = streaming
            self.phase = ChatPhase.STREAMING

            outcome = await self._stream(streaming, context)

            error = outcome.get("error")
            if streaming.cancellation.cancelled or isinstance(error, StreamCancelledError):
                await self._finish_cancelled(streaming, persist_user)
            elif error is not None:
                await self._finish_failed(streaming, error, session_id, persist_user)
            elif not streaming.accumulated_text:
                await self._finish_failed(
                    streaming, ProviderError(f"{model_id} returned an empty response", provider=family.value),
                    session_id, persist_user,
                )
            else:
                await self._finish_completed(streaming, session_id, persist_user)
        finally:
            if self.state.is_processing:
                self.state.update(is_processing=False)
            self._session = None
            self._validation_cancelled = False
            self.phase = ChatPhase.IDLE

    async def _stream(self, streaming: StreamingSession, context: ConversationContext) -> Dict[str, Any]:
        outcome: Dict[str, Any] = {}

        def on_content(delta: str) -> None:
            if streaming.cancellation.cancelled:
                return
            streaming.accumulated_text += delta
            self.state.update(streaming_text=streaming.accumulated_text)

        def on_complete(full_text: str) -> None:
            outcome.setdefault("result", full_text)

        def on_error(exc: Exception) -> None:
            outcome.setdefault("error", exc)

        options = StreamOptions(
            max_tokens=self.settings.DEFAULT_MAX_TOKENS,
            temperature=self.settings.DEFAULT_TEMPERATURE,
            system_prompt=context.system_prompt,
            cancellation=streaming.cancellation,
            timeout=self.settings.REQUEST_TIMEOUT_MS / 1000 if self.settings.REQUEST_TIMEOUT_MS else None,
            on_content=on_content,
            on_complete=on_complete,
            on_error=on_error,
        )
        try:
            client = self.router.client_for(streaming.model_id)
            await client.stream(streaming.model_id, list(context.messages), options)
        except Exception as e:
            logger.error(f"Provider client raised | model={streaming.model_id} error={e}")
            outcome.setdefault("error", e)

        if "result" not in outcome and "error" not in outcome and not streaming.cancellation.cancelled:
            outcome["error"] = ProviderError(
                f"{streaming.model_id} stream ended without a result", provider=streaming.family.value
            )
        return outcome

    def _build_system_prompt(self) -> str:
        try:
            project = self.project_state_provider() if self.project_state_provider else None
            selection = self.selection_state_provider() if self.selection_state_provider else None
            return self.prompt_builder.build(project, selection)
        except Exception as e:
            logger.error(f"Project context unavailable, building prompt without it: {e}")
            return self.prompt_builder.build(None, None)

    def _build_context(self, model_id: str) -> ConversationContext:
        system_prompt = self._build_system_prompt()

        wire = [m.to_wire() for m in self.state.messages if not m.is_error]
        if not self.context_manager.fits(wire, model_id, system_prompt):
            wire = self.context_manager.compress(wire, model_id, system_prompt)
        return ConversationContext(system_prompt=system_prompt, messages=tuple(wire))

    # ────────────────────────────────────────────────
    # Terminal states
    # ────────────────────────────────────────────────

    async def _finish_completed(
        self, streaming: StreamingSession, session_id: Optional[str], persist_user: Optional[asyncio.Task]
    ) -> None:
        self.phase = ChatPhase.FINALIZING
        reply = ChatMessage.assistant(streaming.accumulated_text, agent=streaming.model_id)
        streaming.target_message_id = reply.id
        # the user may have switched chats while the reply was finishing
        if session_id is None or self.state.current_session_id == session_id:
            reply = self.state.append_message(reply)
        await self._await_persist(persist_user)
        await self._await_persist(self._schedule_persist(session_id, reply))
        self.state.update(streaming_text=None, is_processing=False)
        logger.info(f"send complete | model={streaming.model_id} chars={len(reply.content)}")

    async def _finish_failed(
        self,
        streaming: StreamingSession,
        error: Exception,
        session_id: Optional[str],
        persist_user: Optional[asyncio.Task],
    ) -> None:
        self.phase = ChatPhase.FAILED
        logger.error(f"send failed | model={streaming.model_id} error={error}")
        if not streaming.accumulated_text:
            notice = ChatMessage.assistant(GENERIC_ERROR_MESSAGE, agent=streaming.model_id)
            self.state.append_message(notice.model_copy(update={"is_error": True}))
            self.state.update(last_error=str(error), is_processing=False)
            await self._await_persist(persist_user)
            return

        # text already shown live is kept as the reply; the error is only logged
        partial = ChatMessage.assistant(streaming.accumulated_text, agent=streaming.model_id)
        partial = partial.model_copy(update={"is_partial": True})
        streaming.target_message_id = partial.id
        if session_id is None or self.state.current_session_id == session_id:
            partial = self.state.append_message(partial)
        await self._await_persist(persist_user)
        await self._await_persist(self._schedule_persist(session_id, partial))
        self.state.update(streaming_text=None, is_processing=False)

    async def _finish_cancelled(self, streaming: StreamingSession, persist_user: Optional[asyncio.Task]) -> None:
        self.phase = ChatPhase.CANCELLED
        logger.info(f"send cancelled | model={streaming.model_id} discarded_chars={len(streaming.accumulated_text)}")
        streaming.accumulated_text = ""
        self.state.update(streaming_text=None, is_processing=False)
        await self._await_persist(persist_user)

    # ────────────────────────────────────────────────
    # Collaborators
    # ────────────────────────────────────────────────

    async def _request_credentials(self, family: ProviderFamily) -> None:
        if self.on_credentials_required is None:
            logger.warning(f"No credentials handler registered | family={family.value}")
            return
        result = self.on_credentials_required(family)
        if inspect.isawaitable(result):
            await result

    async def _ensure_session(self, model_id: str) -> Optional[str]:
        if self.state.current_session_id:
            return self.state.current_session_id
        try:
            session = await self.store.create_session(agent=model_id)
        except Exception as e:
            logger.error(f"Failed to create chat session: {e}")
            return None
        if self._validation_cancelled or self.state.current_session_id is not None:
            # the user opened another chat meanwhile; that choice wins
            self._validation_cancelled = True
            await self._discard_session(session.id)
            return None
        self.state.update(current_session_id=session.id)
        return session.id

    async def _discard_session(self, session_id: str) -> None:
        try:
            await self.store.delete_session(session_id)
        except Exception as e:
            logger.error(f"Failed to discard unused chat session | session={session_id} error={e}")

    def _schedule_persist(self, session_id: Optional[str], message: ChatMessage) -> Optional[asyncio.Task]:
        if session_id is None:
            return None
        return asyncio.create_task(self._persist(session_id, message))

    async def _persist(self, session_id: str, message: ChatMessage) -> None:
        try:
            await self.store.add_message(session_id, message)
        except Exception as e:
            logger.error(f"Failed to persist {message.role} message | session={session_id} error={e}")

    @staticmethod
    async def _await_persist(task: Optional[asyncio.Task]) -> None:
        if task is not None:
            await task
