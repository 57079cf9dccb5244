"""
Token counting backed by tiktoken.

The encoder for the requested model is created on first use.  When tiktoken
cannot provide one (unknown model and no cached ``cl100k_base`` data), a
simple character-based heuristic is used (~4 characters per token).
"""

from __future__ import annotations

import json
import logging
from typing import Any

import tiktoken

from chatcore.llm.types import Message

logger = logging.getLogger(__name__)

_UNSET = object()


class TokenCounter:
    """
    Estimate token counts for text and message lists.

    Satisfies the ``Tokenizer`` protocol used for usage accounting.

    Parameters
    ----------
    model:
        Model name passed to ``tiktoken.encoding_for_model``.
    """

    def __init__(self, model: str | None = None) -> None:
        self.model = model
        self._enc: Any = _UNSET

    def _encoder(self) -> Any:
        if self._enc is _UNSET:
            try:
                self._enc = tiktoken.encoding_for_model(self.model or "gpt-4")
            except KeyError:
                self._enc = self._fallback_encoding()
            except Exception:
                logger.debug("tiktoken unavailable for %s, using heuristic", self.model, exc_info=True)
                self._enc = None
        return self._enc

    @staticmethod
    def _fallback_encoding() -> Any:
        try:
            return tiktoken.get_encoding("cl100k_base")
        except Exception:
            logger.debug("cl100k_base unavailable, using heuristic", exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def count_text(self, text: str) -> int:
        """Return the estimated token count for a plain string."""
        if not text:
            return 0
        enc = self._encoder()
        if enc is not None:
            return len(enc.encode(text))
        # Heuristic: roughly 4 characters per token for English text.
        return max(1, len(text) // 4)

    def count_messages(
        self,
        messages: list[Message],
        tools: list[dict] | None = None,
    ) -> int:
        """
        Estimate the total token count for a conversation.

        Each message adds a small constant overhead (for role markers, etc.)
        plus the token count for content and any embedded tool calls.  Tool
        definitions are counted as their JSON text.
        """
        total = 0
        for msg in messages:
            # Per-message overhead (role, separators, priming).
            total += 4
            total += self.count_text(msg.text)

            for tc in msg.tool_calls or []:
                func = tc.get("function") or {}
                total += self.count_text(func.get("name") or "")
                total += self.count_text(func.get("arguments") or "")

            if msg.tool_call_id:
                total += self.count_text(msg.tool_call_id)

        if tools:
            total += self.count_text(json.dumps(tools))

        return total
