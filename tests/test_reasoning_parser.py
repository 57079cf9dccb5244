"""Tests for chatcore.llm.reasoning."""

from __future__ import annotations

import pytest

from chatcore.llm.reasoning import (
    ParserState,
    StreamReasoningParser,
    extract_reasoning,
)
from chatcore.llm.types import ReasoningTemplate

THINK = ReasoningTemplate(name="think", prefix="<think>", suffix="</think>")


def _feed(parser: StreamReasoningParser, chunks: list[str]) -> tuple[str, str]:
    delta, reasoning = "", ""
    for chunk in chunks:
        out = parser.process(chunk)
        delta += out.delta
        reasoning += out.reasoning
    tail = parser.flush()
    return delta + tail.delta, reasoning + tail.reasoning


class TestStreamingSplit:
    def test_markers_in_one_chunk(self):
        parser = StreamReasoningParser.from_template(THINK)
        out = parser.process("<think>plan</think>Answer")
        assert out.reasoning == "plan"
        assert out.delta == "Answer"
        assert parser.state is ParserState.DONE

    def test_prefix_straddles_chunks(self):
        parser = StreamReasoningParser.from_template(THINK)

        first = parser.process("Hi <thi")
        assert first.delta == "Hi "
        assert first.reasoning == ""

        second = parser.process("nk>secret</think>done")
        assert second.delta == "done"
        assert second.reasoning == "secret"

    def test_suffix_straddles_chunks(self):
        parser = StreamReasoningParser.from_template(THINK)
        assert parser.process("<think>abc</th").reasoning == "abc"
        out = parser.process("ink>rest")
        assert out.reasoning == ""
        assert out.delta == "rest"

    def test_text_before_prefix_is_visible(self):
        parser = StreamReasoningParser.from_template(THINK)
        assert _feed(parser, ["Preamble ", "<think>x</think>", " after"]) == (
            "Preamble  after",
            "x",
        )

    def test_text_after_done_passes_through(self):
        parser = StreamReasoningParser.from_template(THINK)
        parser.process("<think>r</think>")
        out = parser.process("<think>not reasoning</think>")
        assert out.delta == "<think>not reasoning</think>"
        assert out.reasoning == ""

    @pytest.mark.parametrize("size", [1, 2, 3, 5, 7])
    def test_chunk_boundaries_do_not_change_result(self, size):
        text = "lead <think>step one, step two</think> final answer"
        chunks = [text[i:i + size] for i in range(0, len(text), size)]
        whole = _feed(StreamReasoningParser.from_template(THINK), [text])
        split = _feed(StreamReasoningParser.from_template(THINK), chunks)
        assert split == whole == ("lead  final answer", "step one, step two")


class TestFlush:
    def test_unterminated_reasoning_is_flushed_as_reasoning(self):
        parser = StreamReasoningParser.from_template(THINK)
        assert _feed(parser, ["<think>never closed</th"]) == ("", "never closed</th")

    def test_partial_prefix_is_flushed_as_delta(self):
        parser = StreamReasoningParser.from_template(THINK)
        assert _feed(parser, ["text <thi"]) == ("text <thi", "")

    def test_flush_on_done_state_is_empty(self):
        parser = StreamReasoningParser.from_template(THINK)
        parser.process("<think>a</think>b")
        tail = parser.flush()
        assert tail.delta == "" and tail.reasoning == ""


class TestWithoutTemplate:
    def test_no_template_is_passthrough(self):
        parser = StreamReasoningParser.from_template(None)
        assert parser.state is ParserState.DONE
        out = parser.process("<think>x</think>")
        assert out.delta == "<think>x</think>"

    def test_empty_suffix_disables_parsing(self):
        parser = StreamReasoningParser("<think>", "")
        assert parser.process("<think>x").delta == "<think>x"


class TestExtractReasoning:
    def test_excises_reasoning_from_complete_text(self):
        content, reasoning = extract_reasoning("<think>why</think>Because.", THINK)
        assert content == "Because."
        assert reasoning == "why"

    def test_no_markers(self):
        assert extract_reasoning("plain", THINK) == ("plain", "")

    def test_no_template(self):
        assert extract_reasoning("<think>x</think>y", None) == ("<think>x</think>y", "")
