"""
Handler for Ollama responses.

``/api/generate`` (text completion) answers with ``response`` and
``thinking`` fields; ``/api/chat`` nests them in ``message``.  Ollama sends
tool calls complete, with ``arguments`` as an object rather than a string.
"""

from __future__ import annotations

import json

from chatcore.llm.providers.base import ProviderHandler
from chatcore.llm.types import StreamingReply, make_tool_call


def _message(data: dict) -> dict:
    message = data.get("message")
    return message if isinstance(message, dict) else {}


def _tool_calls(data: dict) -> list[dict]:
    calls = []
    for idx, tc in enumerate(_message(data).get("tool_calls") or []):
        func = tc.get("function") or {}
        arguments = func.get("arguments", {})
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        calls.append(make_tool_call(tc.get("id") or f"ollama_call_{idx}", func.get("name") or "", arguments))
    return calls


class OllamaHandler(ProviderHandler):
    name = "ollama"

    def extract_message(self, data: dict) -> str:
        if isinstance(data.get("response"), str):
            return data["response"]
        return _message(data).get("content") or ""

    def extract_reasoning(self, data: dict) -> str:
        if isinstance(data.get("thinking"), str):
            return data["thinking"]
        return _message(data).get("thinking") or ""

    def extract_tool_calls(self, data: dict) -> list[dict]:
        return _tool_calls(data)

    def extract_images(self, data: dict) -> list[str]:
        return [f"data:image/png;base64,{img}" for img in _message(data).get("images") or []]

    def get_streaming_reply(self, data: dict, formatter: str) -> StreamingReply:
        calls = [dict(call, index=i) for i, call in enumerate(_tool_calls(data))]
        return StreamingReply(
            delta=self.extract_message(data),
            reasoning=self.extract_reasoning(data),
            tool_call_deltas=calls or None,
        )
