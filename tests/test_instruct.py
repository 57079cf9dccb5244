"""Tests for chatcore.llm.instruct."""

from __future__ import annotations

from chatcore.llm.instruct import (
    convert_messages_to_instruct_string,
    is_prefill,
    trim_instruct_response,
)
from chatcore.llm.types import InstructTemplate, Message, NamesBehavior

CHATML = InstructTemplate(
    name="ChatML",
    input_sequence="<|im_start|>user\n",
    input_suffix="<|im_end|>\n",
    output_sequence="<|im_start|>assistant\n",
    output_suffix="<|im_end|>\n",
    system_sequence="<|im_start|>system\n",
    system_suffix="<|im_end|>\n",
    stop_sequence="<|im_end|>",
)


class TestIsPrefill:
    def test_assistant_ending_with_colon(self):
        assert is_prefill([Message("user", "hi"), Message("assistant", "Bob:  ")])

    def test_user_last(self):
        assert not is_prefill([Message("user", "Note:")])

    def test_assistant_without_colon(self):
        assert not is_prefill([Message("assistant", "Hello")])

    def test_empty(self):
        assert not is_prefill([])


class TestConvertMessages:
    def test_roles_and_trailing_output_sequence(self):
        prompt = convert_messages_to_instruct_string(
            [Message("system", "Be brief."), Message("user", "Hi")],
            CHATML,
            "User",
            "Bot",
        )
        assert prompt == (
            "<|im_start|>system\nBe brief.<|im_end|>\n"
            "<|im_start|>user\nHi<|im_end|>\n"
            "<|im_start|>assistant\n"
        )

    def test_continuation_omits_last_assistant_suffix(self):
        prompt = convert_messages_to_instruct_string(
            [Message("user", "Hi"), Message("assistant", "Well,")],
            CHATML,
            "User",
            "Bot",
            is_continuation=True,
        )
        assert prompt.endswith("<|im_start|>assistant\nWell,")

    def test_last_output_sequence_preferred(self):
        template = InstructTemplate(
            name="t",
            input_sequence="### Input: ",
            output_sequence="### Response: ",
            last_output_sequence="### Final: ",
        )
        prompt = convert_messages_to_instruct_string([Message("user", "x")], template, "U", "C")
        assert prompt == "### Input: x### Final: "

    def test_names_included(self):
        template = InstructTemplate(
            name="t",
            input_sequence="> ",
            input_suffix="\n",
            output_sequence="< ",
            output_suffix="\n",
            names_behavior=NamesBehavior.ALWAYS,
        )
        prompt = convert_messages_to_instruct_string(
            [Message("user", "hello"), Message("assistant", "hey"), Message("user", "bye")],
            template,
            "Ann",
            "Bot",
        )
        assert prompt == "> Ann: hello\n< Bot: hey\n> Ann: bye\n< Bot: "

    def test_macros_in_sequences(self):
        template = InstructTemplate(name="t", input_sequence="[{{user}}] ", output_sequence="[{{char}}] ")
        prompt = convert_messages_to_instruct_string([Message("user", "x")], template, "Ann", "Bot")
        assert prompt == "[Ann] x[Bot] "

    def test_empty_messages_skipped(self):
        prompt = convert_messages_to_instruct_string(
            [Message("user", ""), Message("user", "y")], CHATML, "U", "C"
        )
        assert prompt.count("<|im_start|>user") == 1


class TestTrimInstructResponse:
    def test_trailing_line_whitespace(self):
        assert trim_instruct_response("a  \nb\t") == "a\nb"

    def test_cuts_at_leaked_stop_sequence(self):
        text = "Answer here<|im_end|>\n<|im_start|>user\nmore"
        assert trim_instruct_response(text, CHATML) == "Answer here"

    def test_removes_output_sequence_lines(self):
        text = "<|im_start|>assistant\nHello"
        assert trim_instruct_response(text, CHATML) == "\nHello"
