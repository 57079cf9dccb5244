"""
Handler for Anthropic Messages API responses.

Non-streaming responses carry a ``content`` list of typed blocks (``text``,
``thinking``, ``tool_use``).  Streams are a sequence of events; text and
thinking arrive as ``content_block_delta`` events and tool arguments as
``input_json_delta`` fragments keyed by the content block index.
"""

from __future__ import annotations

import json

from chatcore.llm.providers.base import ProviderHandler
from chatcore.llm.types import StreamingReply, make_tool_call


def _blocks(data: dict) -> list[dict]:
    content = data.get("content")
    return [b for b in content if isinstance(b, dict)] if isinstance(content, list) else []


class ClaudeHandler(ProviderHandler):
    name = "claude"

    def extract_message(self, data: dict) -> str:
        return "".join(b.get("text") or "" for b in _blocks(data) if b.get("type") == "text")

    def extract_reasoning(self, data: dict) -> str:
        return "\n\n".join(
            b.get("thinking") or ""
            for b in _blocks(data)
            if b.get("type") == "thinking" and b.get("thinking")
        )

    def extract_tool_calls(self, data: dict) -> list[dict]:
        return [
            make_tool_call(b.get("id") or "", b.get("name") or "", json.dumps(b.get("input") or {}))
            for b in _blocks(data)
            if b.get("type") == "tool_use"
        ]

    def get_streaming_reply(self, data: dict, formatter: str) -> StreamingReply:
        event_type = data.get("type")
        index = data.get("index", 0)

        if event_type == "content_block_start":
            block = data.get("content_block") or {}
            if block.get("type") == "tool_use":
                return StreamingReply(
                    tool_call_deltas=[
                        {
                            "index": index,
                            "id": block.get("id") or "",
                            "type": "function",
                            "function": {"name": block.get("name") or "", "arguments": ""},
                        }
                    ]
                )
            return StreamingReply(delta=block.get("text") or "")

        if event_type == "content_block_delta":
            delta = data.get("delta") or {}
            delta_type = delta.get("type")
            if delta_type == "text_delta":
                return StreamingReply(delta=delta.get("text") or "")
            if delta_type == "thinking_delta":
                return StreamingReply(reasoning=delta.get("thinking") or "")
            if delta_type == "input_json_delta":
                return StreamingReply(
                    tool_call_deltas=[
                        {"index": index, "function": {"arguments": delta.get("partial_json") or ""}}
                    ]
                )

        return StreamingReply()
