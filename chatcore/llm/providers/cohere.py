"""Handler for Cohere v2 chat responses."""

from __future__ import annotations

from chatcore.llm.providers.base import ProviderHandler, text_from_parts
from chatcore.llm.types import StreamingReply


class CohereHandler(ProviderHandler):
    name = "cohere"

    def extract_message(self, data: dict) -> str:
        message = data.get("message") or {}
        return text_from_parts(message.get("content"))

    def extract_reasoning(self, data: dict) -> str:
        message = data.get("message") or {}
        content = message.get("content")
        if not isinstance(content, list):
            return ""
        return "".join(
            part.get("thinking") or ""
            for part in content
            if isinstance(part, dict) and part.get("type") == "thinking"
        )

    def extract_tool_calls(self, data: dict) -> list[dict]:
        message = data.get("message") or {}
        return list(message.get("tool_calls") or [])

    def get_streaming_reply(self, data: dict, formatter: str) -> StreamingReply:
        event_type = data.get("type")
        message = (data.get("delta") or {}).get("message") or {}

        if event_type == "content-delta":
            content = message.get("content") or {}
            return StreamingReply(
                delta=content.get("text") or "",
                reasoning=content.get("thinking") or "",
            )
        if event_type in ("tool-call-start", "tool-call-delta"):
            call = dict(message.get("tool_calls") or {})
            call["index"] = data.get("index", 0)
            return StreamingReply(tool_call_deltas=[call])
        return StreamingReply()
