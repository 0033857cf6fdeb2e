# timeline_chat/llm/service/provider/ollama.py
import json
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from .base_provider import BaseProvider, StreamOptions
from timeline_chat.chat.entity.chat import WireMessage
from timeline_chat.core.config import settings
from timeline_chat.core.errors import ProviderError
from timeline_chat.core.logger import get_logger

logger = get_logger(__name__)


class OllamaProvider(BaseProvider):
    """Handles Ollama (local models) interaction.

    Streams newline-delimited JSON from ``POST /api/chat``. No API key is
    involved; availability is a matter of the local server running.
    """

    name = "ollama"
    display_name = "Ollama"

    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or settings.OLLAMA_BASE_URL or "http://localhost:11434").rstrip("/")
        self._transport = transport

    def _client(self, timeout: Optional[float] = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=self._transport)

    def _unavailable(self, exc: Exception) -> ProviderError:
        logger.warning(f"Ollama unreachable | base_url={self.base_url} error={exc}")
        return ProviderError(
            f"Ollama server unavailable. Make sure Ollama is running at {self.base_url}",
            provider=self.name,
        )

    async def is_available(self) -> bool:
        try:
            async with self._client(timeout=5.0) as client:
                response = await client.get("/api/tags")
                return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def get_installed_models(self) -> List[Dict[str, Any]]:
        """Models pulled into the local Ollama server (``/api/tags``)."""
        try:
            async with self._client(timeout=10.0) as client:
                response = await client.get("/api/tags")
        except httpx.ConnectError as e:
            raise self._unavailable(e) from e
        if response.status_code != 200:
            raise ProviderError(f"Ollama API error: {response.status_code}", provider=self.name,
                                status_code=response.status_code)
        return response.json().get("models", [])

    async def pull_model(self, model: str) -> None:
        """Ask the local server to download ``model``."""
        try:
            async with self._client(timeout=None) as client:
                response = await client.post("/api/pull", json={"name": model, "stream": False})
        except httpx.ConnectError as e:
            raise self._unavailable(e) from e
        if response.status_code != 200:
            raise ProviderError(
                f"Failed to pull Ollama model {model}: {response.status_code} {response.text}",
                provider=self.name,
                status_code=response.status_code,
            )
        logger.info(f"Started pulling Ollama model: {model}")

    async def _iter_deltas(
        self, model: str, messages: Sequence[WireMessage], options: StreamOptions
    ) -> AsyncIterator[str]:
        payload = {
            "model": model,
            "messages": self._with_system(messages, options.system_prompt),
            "stream": True,
            "options": {
                "temperature": options.temperature,
                "num_predict": options.max_tokens,
            },
        }
        finished = False
        try:
            async with self._client() as client:
                async with client.stream("POST", "/api/chat", json=payload) as resp:
                    if resp.status_code != 200:
                        body = (await resp.aread()).decode("utf-8", errors="replace")
                        raise ProviderError(
                            f"Ollama API error: {resp.status_code} {body}",
                            provider=self.name,
                            status_code=resp.status_code,
                        )
                    async for raw_line in resp.aiter_lines():
                        line = raw_line.strip()
                        if not line:
                            continue
                        try:
                            chunk = json.loads(line)
                        except json.JSONDecodeError:
                            logger.warning(f"Skipping unparseable Ollama stream line: {line[:80]!r}")
                            continue
                        if chunk.get("error"):
                            raise ProviderError(f"Ollama API error: {chunk['error']}", provider=self.name)
                        content = (chunk.get("message") or {}).get("content")
                        if content:
                            yield content
                        if chunk.get("done"):
                            finished = True
                            break
        except httpx.ConnectError as e:
            raise self._unavailable(e) from e

        if not finished:
            raise ProviderError("Ollama stream ended without a completion marker", provider=self.name)
