"""Base class for provider response handlers."""

from __future__ import annotations

from typing import Any

from chatcore.llm.types import StreamingReply


def text_from_parts(content: Any) -> str:
    """Join the text of a content value that may be a string or a list of parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text") or ""
            for part in content
            if isinstance(part, dict) and part.get("type", "text") == "text"
        )
    return ""


def first_choice(data: dict) -> dict:
    choices = data.get("choices") if isinstance(data, dict) else None
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


def extract_message_generic(data: Any) -> str:
    """
    Best-effort content extraction used when a provider handler finds nothing.

    Tries the common response shapes in turn: OpenAI chat and text
    completions, message/content objects, and plain ``response``/``text``
    fields.
    """
    if isinstance(data, str):
        return data
    if not isinstance(data, dict):
        return ""

    choice = first_choice(data)
    if choice:
        message = choice.get("message") or {}
        text = text_from_parts(message.get("content"))
        if text:
            return text
        if isinstance(choice.get("text"), str):
            return choice["text"]

    message = data.get("message")
    if isinstance(message, dict):
        text = text_from_parts(message.get("content"))
        if text:
            return text

    text = text_from_parts(data.get("content"))
    if text:
        return text

    for key in ("response", "text", "output"):
        if isinstance(data.get(key), str):
            return data[key]

    results = data.get("results")
    if isinstance(results, list) and results and isinstance(results[0], dict):
        return results[0].get("text") or ""
    return ""


class ProviderHandler:
    """
    Knows how one provider shapes its responses.

    Subclasses override the extractors for their wire format.  The service
    calls ``extract_*`` on a complete non-streaming response and
    ``get_streaming_reply`` on each decoded stream frame.
    """

    name = "generic"

    def extract_message(self, data: dict) -> str:
        return extract_message_generic(data)

    def extract_reasoning(self, data: dict) -> str:
        return ""

    def extract_tool_calls(self, data: dict) -> list[dict]:
        return []

    def extract_images(self, data: dict) -> list[str]:
        return []

    def get_streaming_reply(self, data: dict, formatter: str) -> StreamingReply:
        return StreamingReply(delta=extract_message_generic(data))
