"""
Split visible text from reasoning text delimited by textual markers.

Some providers interleave model "thinking" with the reply, wrapped in a
literal prefix/suffix pair such as ``<think>`` ... ``</think>``.  While
streaming, either marker can straddle two chunks, so the parser holds back
the tail of its buffer whenever that tail could still grow into a marker.

Feeding the parser the whole text at once or split at arbitrary points
produces the same concatenated ``delta`` and ``reasoning``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from chatcore.llm.types import ReasoningTemplate


class ParserState(enum.Enum):
    SEARCHING_PREFIX = "searching_prefix"
    IN_REASONING = "in_reasoning"
    DONE = "done"


@dataclass
class ReasoningDelta:
    delta: str = ""
    reasoning: str = ""


def _pending_marker_length(buffer: str, marker: str) -> int:
    """Length of the longest buffer suffix that is a proper prefix of *marker*."""
    for size in range(min(len(buffer), len(marker) - 1), 0, -1):
        if buffer.endswith(marker[:size]):
            return size
    return 0


class StreamReasoningParser:
    """State machine over SEARCHING_PREFIX -> IN_REASONING -> DONE."""

    def __init__(self, prefix: str | None, suffix: str | None) -> None:
        self.prefix = prefix or ""
        self.suffix = suffix or ""
        self._buffer = ""
        if self.prefix and self.suffix:
            self.state = ParserState.SEARCHING_PREFIX
        else:
            self.state = ParserState.DONE

    @classmethod
    def from_template(cls, template: ReasoningTemplate | None) -> StreamReasoningParser:
        if template is None:
            return cls(None, None)
        return cls(template.prefix, template.suffix)

    def process(self, text: str) -> ReasoningDelta:
        """Consume one chunk and return whatever can be released safely."""
        if self.state is ParserState.DONE:
            return ReasoningDelta(delta=text)

        self._buffer += text
        out = ReasoningDelta()

        if self.state is ParserState.SEARCHING_PREFIX:
            index = self._buffer.find(self.prefix)
            if index == -1:
                out.delta += self._release(self.prefix)
                return out
            out.delta += self._buffer[:index]
            self._buffer = self._buffer[index + len(self.prefix):]
            self.state = ParserState.IN_REASONING

        index = self._buffer.find(self.suffix)
        if index == -1:
            out.reasoning += self._release(self.suffix)
            return out
        out.reasoning += self._buffer[:index]
        out.delta += self._buffer[index + len(self.suffix):]
        self._buffer = ""
        self.state = ParserState.DONE
        return out

    def flush(self) -> ReasoningDelta:
        """Drain the held-back buffer.  Call once when the stream ends."""
        pending, self._buffer = self._buffer, ""
        if self.state is ParserState.SEARCHING_PREFIX:
            return ReasoningDelta(delta=pending)
        if self.state is ParserState.IN_REASONING:
            return ReasoningDelta(reasoning=pending)
        return ReasoningDelta()

    def _release(self, marker: str) -> str:
        keep = _pending_marker_length(self._buffer, marker)
        cut = len(self._buffer) - keep
        released, self._buffer = self._buffer[:cut], self._buffer[cut:]
        return released


def extract_reasoning(text: str, template: ReasoningTemplate | None) -> tuple[str, str]:
    """Excise delimited reasoning from a complete response; returns ``(content, reasoning)``."""
    parser = StreamReasoningParser.from_template(template)
    first = parser.process(text)
    rest = parser.flush()
    return first.delta + rest.delta, first.reasoning + rest.reasoning
