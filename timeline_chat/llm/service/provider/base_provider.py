# timeline_chat/llm/service/provider/base_provider.py
import asyncio
from abc import ABC, abstractmethod
from contextlib import aclosing
from dataclasses import dataclass, field, replace
from typing import Any, AsyncGenerator, AsyncIterator, Callable, Dict, List, Optional, Sequence

from timeline_chat.chat.entity.chat import WireMessage
from timeline_chat.core.errors import ProviderError, ProviderTimeoutError, StreamCancelledError
from timeline_chat.core.logger import get_logger

logger = get_logger(__name__)


class CancellationToken:
    """Cooperative stop signal shared between the caller and a provider stream."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class StreamOptions:
    max_tokens: int = 1000
    temperature: float = 0.7
    system_prompt: Optional[str] = None
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    timeout: Optional[float] = None  # seconds, None = unbounded
    on_content: Optional[Callable[[str], Any]] = None
    on_complete: Optional[Callable[[str], Any]] = None
    on_error: Optional[Callable[[Exception], Any]] = None


class BaseProvider(ABC):
    """Abstract base provider for all LLM integrations.

    Subclasses only translate their wire protocol into text deltas
    (``_iter_deltas``). ``stream`` drives that generator and guarantees the
    callback contract for every provider:

    - ``on_content`` once per non-empty chunk, in arrival order;
    - exactly one terminal callback, ``on_complete`` or ``on_error``;
    - after cancellation no more content, and the terminal callback is
      ``on_error(StreamCancelledError)``.
    """

    name: str = "base"
    display_name: str = "Provider"

    @abstractmethod
    def _iter_deltas(
        self, model: str, messages: Sequence[WireMessage], options: StreamOptions
    ) -> AsyncIterator[str]:
        """Yield text deltas for one request, raising on any failure."""

    def is_enabled(self) -> bool:
        """Whether this provider is usable (e.g., API key present)."""
        return True

    def has_credentials(self) -> bool:
        return self.is_enabled()

    async def stream(self, model: str, messages: Sequence[WireMessage], options: StreamOptions) -> None:
        parts: List[str] = []
        pump = asyncio.create_task(self._pump(model, messages, options, parts))
        stop = asyncio.create_task(options.cancellation.wait())
        try:
            done, _ = await asyncio.wait(
                {pump, stop}, timeout=options.timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            stop.cancel()
            if not pump.done():
                pump.cancel()
                await asyncio.gather(pump, return_exceptions=True)

        if options.cancellation.cancelled:
            logger.debug(f"{self.name} stream cancelled | model={model} chunks={len(parts)}")
            self._emit(options.on_error, StreamCancelledError())
            return

        if not done:
            logger.warning(f"{self.name} stream timed out | model={model} timeout={options.timeout}")
            self._emit(
                options.on_error,
                ProviderTimeoutError(
                    f"{self.display_name} did not finish responding within {options.timeout:g}s",
                    provider=self.name,
                ),
            )
            return

        exc = pump.exception()
        if exc is not None:
            error = self._wrap_error(exc)
            logger.error(f"{self.name} stream failed | model={model} error={error}")
            self._emit(options.on_error, error)
            return

        self._emit(options.on_complete, "".join(parts))

    async def iter_stream(
        self, model: str, messages: Sequence[WireMessage], options: Optional[StreamOptions] = None
    ) -> AsyncGenerator[str, None]:
        """Async-generator view of ``stream``: yields deltas, raises the terminal error."""
        options = options or StreamOptions()
        queue: asyncio.Queue = asyncio.Queue()

        def on_content(delta: str):
            self._emit(options.on_content, delta)
            queue.put_nowait(("delta", delta))

        def on_complete(text: str):
            self._emit(options.on_complete, text)
            queue.put_nowait(("complete", text))

        def on_error(err: Exception):
            self._emit(options.on_error, err)
            queue.put_nowait(("error", err))

        inner = replace(options, on_content=on_content, on_complete=on_complete, on_error=on_error)
        task = asyncio.create_task(self.stream(model, messages, inner))
        try:
            while True:
                kind, payload = await queue.get()
                if kind == "delta":
                    yield payload
                elif kind == "error":
                    raise payload
                else:
                    return
        finally:
            if not task.done():
                options.cancellation.cancel()
                await asyncio.gather(task, return_exceptions=True)

    async def _pump(
        self, model: str, messages: Sequence[WireMessage], options: StreamOptions, parts: List[str]
    ) -> None:
        async with aclosing(self._iter_deltas(model, messages, options)) as deltas:
            async for delta in deltas:
                if options.cancellation.cancelled:
                    return
                if not delta:
                    continue
                parts.append(delta)
                self._emit(options.on_content, delta)

    def _wrap_error(self, exc: BaseException) -> ProviderError:
        if isinstance(exc, ProviderError):
            return exc
        status = getattr(exc, "status_code", None)
        if status is None:
            status = getattr(getattr(exc, "response", None), "status_code", None)
        if status is not None:
            return ProviderError(f"{self.display_name} API error: {status} {exc}", provider=self.name, status_code=status)
        return ProviderError(f"{self.display_name} request failed: {exc}", provider=self.name)

    @staticmethod
    def _with_system(messages: Sequence[WireMessage], system_prompt: Optional[str]) -> List[Dict[str, str]]:
        """Wire messages with the system prompt prepended as a synthetic first message."""
        payload = [{"role": m.role, "content": m.content} for m in messages if m.role != "system"]
        if system_prompt:
            payload.insert(0, {"role": "system", "content": system_prompt})
        return payload

    @staticmethod
    def _emit(callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is not None:
            callback(*args)
