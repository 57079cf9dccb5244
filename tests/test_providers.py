"""Tests for provider response handlers."""

from __future__ import annotations

import json

import pytest

from chatcore.llm.providers.base import extract_message_generic
from chatcore.llm.providers.claude import ClaudeHandler
from chatcore.llm.providers.cohere import CohereHandler
from chatcore.llm.providers.google import GoogleHandler
from chatcore.llm.providers.ollama import OllamaHandler
from chatcore.llm.providers.openai_compat import OpenAIHandler
from chatcore.llm.providers.registry import DEFAULT_HANDLER, get_provider_handler
from chatcore.llm.tool_call_accumulator import ToolCallAccumulator
from chatcore.llm.types import Formatter


class TestRegistry:
    @pytest.mark.parametrize("provider, cls", [
        ("claude", ClaudeHandler),
        ("makersuite", GoogleHandler),
        ("vertexai", GoogleHandler),
        ("cohere", CohereHandler),
        ("ollama", OllamaHandler),
        ("openrouter", OpenAIHandler),
        ("koboldcpp", OpenAIHandler),
    ])
    def test_lookup(self, provider, cls):
        assert isinstance(get_provider_handler(provider), cls)

    def test_unknown_provider(self):
        assert get_provider_handler(None) is DEFAULT_HANDLER


class TestGenericExtraction:
    @pytest.mark.parametrize("data, expected", [
        ({"choices": [{"message": {"content": "chat"}}]}, "chat"),
        ({"choices": [{"text": "text completion"}]}, "text completion"),
        ({"message": {"content": [{"type": "text", "text": "parts"}]}}, "parts"),
        ({"content": "plain"}, "plain"),
        ({"response": "ollama"}, "ollama"),
        ({"results": [{"text": "kobold"}]}, "kobold"),
        ("raw string", "raw string"),
        ({"unrelated": 1}, ""),
        ([1, 2], ""),
    ])
    def test_shapes(self, data, expected):
        assert extract_message_generic(data) == expected


class TestOpenAIHandler:
    handler = OpenAIHandler()

    def test_message_parts(self):
        data = {"choices": [{"message": {"content": [
            {"type": "text", "text": "a"},
            {"type": "image_url", "image_url": {"url": "x"}},
            {"type": "text", "text": "b"},
        ]}}]}
        assert self.handler.extract_message(data) == "ab"

    def test_images(self):
        data = {"choices": [{"message": {"content": "", "images": [
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAA"}},
        ]}}]}
        assert self.handler.extract_images(data) == ["data:image/png;base64,AAA"]

    def test_streaming_text_formatter(self):
        reply = self.handler.get_streaming_reply({"choices": [{"text": "tok"}]}, Formatter.TEXT)
        assert reply.delta == "tok"

    def test_streaming_reasoning_and_tools(self):
        frame = {"choices": [{"delta": {
            "reasoning": "hmm",
            "tool_calls": [{"index": 0, "function": {"arguments": "{"}}],
        }}]}
        reply = self.handler.get_streaming_reply(frame, Formatter.CHAT)
        assert reply.delta == ""
        assert reply.reasoning == "hmm"
        assert reply.tool_call_deltas == [{"index": 0, "function": {"arguments": "{"}}]


class TestClaudeHandler:
    handler = ClaudeHandler()

    def test_blocks(self):
        data = {"content": [
            {"type": "thinking", "thinking": "first"},
            {"type": "text", "text": "Hello"},
            {"type": "tool_use", "id": "tu_1", "name": "search", "input": {"q": "x"}},
        ]}
        assert self.handler.extract_message(data) == "Hello"
        assert self.handler.extract_reasoning(data) == "first"
        call = self.handler.extract_tool_calls(data)[0]
        assert call["id"] == "tu_1"
        assert json.loads(call["function"]["arguments"]) == {"q": "x"}

    def test_streamed_tool_use_accumulates(self):
        frames = [
            {"type": "content_block_start", "index": 1,
             "content_block": {"type": "tool_use", "id": "tu_1", "name": "search"}},
            {"type": "content_block_delta", "index": 1,
             "delta": {"type": "input_json_delta", "partial_json": '{"q":'}},
            {"type": "content_block_delta", "index": 1,
             "delta": {"type": "input_json_delta", "partial_json": ' "x"}'}},
        ]
        acc = ToolCallAccumulator()
        for frame in frames:
            acc.add(self.handler.get_streaming_reply(frame, Formatter.CHAT).tool_call_deltas)
        calls = acc.get_calls()
        assert calls[1]["function"] == {"name": "search", "arguments": '{"q": "x"}'}

    def test_stream_text_and_thinking(self):
        text = {"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}}
        thinking = {"type": "content_block_delta", "delta": {"type": "thinking_delta", "thinking": "..."}}
        assert self.handler.get_streaming_reply(text, Formatter.CHAT).delta == "Hi"
        assert self.handler.get_streaming_reply(thinking, Formatter.CHAT).reasoning == "..."
        assert self.handler.get_streaming_reply({"type": "ping"}, Formatter.CHAT).delta == ""


class TestGoogleHandler:
    handler = GoogleHandler()

    def test_parts(self):
        data = {"candidates": [{"content": {"parts": [
            {"text": "thought", "thought": True},
            {"text": "answer"},
            {"inlineData": {"mimeType": "image/jpeg", "data": "QQ=="}},
            {"functionCall": {"name": "lookup", "args": {"id": 1}}},
        ]}}]}
        assert self.handler.extract_message(data) == "answer"
        assert self.handler.extract_reasoning(data) == "thought"
        assert self.handler.extract_images(data) == ["data:image/jpeg;base64,QQ=="]
        call = self.handler.extract_tool_calls(data)[0]
        assert call["id"] == "call_0"
        assert call["function"]["name"] == "lookup"

    def test_no_candidates(self):
        assert self.handler.extract_message({}) == ""


class TestOllamaHandler:
    handler = OllamaHandler()

    def test_generate_shape(self):
        data = {"response": "hi", "thinking": "hmm"}
        assert self.handler.extract_message(data) == "hi"
        assert self.handler.extract_reasoning(data) == "hmm"

    def test_chat_shape_with_object_arguments(self):
        data = {"message": {"content": "", "tool_calls": [
            {"function": {"name": "get_weather", "arguments": {"city": "Oslo"}}},
        ]}}
        call = self.handler.extract_tool_calls(data)[0]
        assert call["id"] == "ollama_call_0"
        assert json.loads(call["function"]["arguments"]) == {"city": "Oslo"}


class TestCohereHandler:
    handler = CohereHandler()

    def test_message(self):
        data = {"message": {"content": [
            {"type": "thinking", "thinking": "plan"},
            {"type": "text", "text": "done"},
        ]}}
        assert self.handler.extract_message(data) == "done"
        assert self.handler.extract_reasoning(data) == "plan"

    def test_stream_events(self):
        delta = {"type": "content-delta", "delta": {"message": {"content": {"text": "x"}}}}
        assert self.handler.get_streaming_reply(delta, Formatter.CHAT).delta == "x"
        start = {"type": "tool-call-start", "index": 2, "delta": {"message": {"tool_calls": {
            "id": "t1", "type": "function", "function": {"name": "f", "arguments": ""},
        }}}}
        reply = self.handler.get_streaming_reply(start, Formatter.CHAT)
        assert reply.tool_call_deltas[0]["index"] == 2
        assert reply.tool_call_deltas[0]["id"] == "t1"
