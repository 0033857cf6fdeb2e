# timeline_chat/llm/service/context_window.py
"""
Token budgeting for outbound requests.

Token counts are a character heuristic (4 characters per token plus a small
per-message formatting overhead). They only need to be deterministic and
monotonic, not exact, since the reserved output share leaves headroom.
"""

import math
from typing import List, Optional, Sequence

from timeline_chat.chat.entity.chat import WireMessage
from timeline_chat.core.config import settings
from timeline_chat.core.logger import get_logger
from timeline_chat.llm.entity.models import DEFAULT_CONTEXT_WINDOWS, get_model
from timeline_chat.llm.service.router_service import resolve_provider_family

logger = get_logger(__name__)

CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD_TOKENS = 4


def estimate_tokens(text: Optional[str]) -> int:
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


class ContextWindowManager:
    """Keeps a conversation within a model's context window."""

    def __init__(self, reserved_output_tokens: Optional[int] = None):
        if reserved_output_tokens is None:
            reserved_output_tokens = settings.DEFAULT_MAX_TOKENS
        self.reserved_output_tokens = max(0, reserved_output_tokens)

    def context_window(self, model_id: str) -> int:
        model = get_model(model_id)
        if model is not None:
            return model.context_window
        return DEFAULT_CONTEXT_WINDOWS[resolve_provider_family(model_id)]

    def budget(self, model_id: str) -> int:
        window = self.context_window(model_id)
        return window - min(self.reserved_output_tokens, window // 2)

    def estimate_tokens(self, text: Optional[str]) -> int:
        return estimate_tokens(text)

    def estimate(self, messages: Sequence[WireMessage], system_prompt: Optional[str] = None) -> int:
        total = estimate_tokens(system_prompt)
        for m in messages:
            total += estimate_tokens(m.content) + MESSAGE_OVERHEAD_TOKENS
        return total

    def fits(self, messages: Sequence[WireMessage], model_id: str, system_prompt: Optional[str] = None) -> bool:
        return self.estimate(messages, system_prompt) <= self.budget(model_id)

    def compress(
        self, messages: Sequence[WireMessage], model_id: str, system_prompt: Optional[str] = None
    ) -> List[WireMessage]:
        """
        Drop the oldest turns until the rest fits.

        The result is always a suffix of ``messages`` that starts at a user
        turn, so the latest user turn is kept and order is preserved. When
        even that turn alone is over budget it is returned by itself.
        """
        messages = list(messages)
        budget = self.budget(model_id)
        if self.estimate(messages, system_prompt) <= budget:
            return messages

        user_positions = [i for i, m in enumerate(messages) if m.role == "user"]
        if not user_positions:
            # nothing to anchor on; keep the longest fitting tail
            start = len(messages)
            used = estimate_tokens(system_prompt)
            while start > 0:
                cost = estimate_tokens(messages[start - 1].content) + MESSAGE_OVERHEAD_TOKENS
                if used + cost > budget:
                    break
                used += cost
                start -= 1
            return messages[start:]

        for start in user_positions:
            candidate = messages[start:]
            if self.estimate(candidate, system_prompt) <= budget:
                logger.info(
                    f"Context compressed | model={model_id} kept={len(candidate)}/{len(messages)} budget={budget}"
                )
                return candidate

        latest = user_positions[-1]
        logger.warning(f"Latest user turn alone exceeds budget | model={model_id} budget={budget}")
        return [messages[latest]]
