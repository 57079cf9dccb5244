"""Handler for Google AI Studio (MakerSuite) and Vertex AI responses."""

from __future__ import annotations

import json

from chatcore.llm.providers.base import ProviderHandler
from chatcore.llm.types import StreamingReply, make_tool_call


def _parts(data: dict) -> list[dict]:
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return []
    content = (candidates[0] or {}).get("content") or {}
    return [p for p in content.get("parts") or [] if isinstance(p, dict)]


def _text(parts: list[dict], thought: bool) -> str:
    return "".join(
        p.get("text") or "" for p in parts if "text" in p and bool(p.get("thought")) is thought
    )


def _images(parts: list[dict]) -> list[str]:
    images = []
    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            images.append(f"data:{mime};base64,{inline['data']}")
    return images


def _tool_calls(parts: list[dict]) -> list[dict]:
    calls = []
    for part in parts:
        call = part.get("functionCall")
        if call:
            calls.append(
                make_tool_call(
                    call.get("id") or f"call_{len(calls)}",
                    call.get("name") or "",
                    json.dumps(call.get("args") or {}),
                )
            )
    return calls


class GoogleHandler(ProviderHandler):
    name = "google"

    def extract_message(self, data: dict) -> str:
        return _text(_parts(data), thought=False)

    def extract_reasoning(self, data: dict) -> str:
        return _text(_parts(data), thought=True)

    def extract_tool_calls(self, data: dict) -> list[dict]:
        return _tool_calls(_parts(data))

    def extract_images(self, data: dict) -> list[str]:
        return _images(_parts(data))

    def get_streaming_reply(self, data: dict, formatter: str) -> StreamingReply:
        parts = _parts(data)
        # Gemini sends complete function calls, all in a single frame.
        calls = [dict(call, index=i) for i, call in enumerate(_tool_calls(parts))]
        return StreamingReply(
            delta=_text(parts, thought=False),
            reasoning=_text(parts, thought=True),
            tool_call_deltas=calls or None,
            images=_images(parts) or None,
        )
