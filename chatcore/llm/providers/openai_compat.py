"""
Handler for OpenAI-compatible responses.

Covers every provider whose backend route answers in the OpenAI
``/v1/chat/completions`` (or ``/v1/completions``) shape -- OpenAI itself,
OpenRouter, Mistral, Groq, DeepSeek, xAI, custom endpoints, KoboldCpp, etc.
"""

from __future__ import annotations

from chatcore.llm.providers.base import ProviderHandler, first_choice, text_from_parts
from chatcore.llm.types import Formatter, StreamingReply


def _reasoning_of(obj: dict) -> str:
    for key in ("reasoning_content", "reasoning", "thinking"):
        value = obj.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def _image_urls(images: list | None) -> list[str]:
    urls: list[str] = []
    for image in images or []:
        if isinstance(image, str):
            urls.append(image)
        elif isinstance(image, dict):
            url = (image.get("image_url") or {}).get("url") or image.get("url")
            if url:
                urls.append(url)
    return urls


class OpenAIHandler(ProviderHandler):
    name = "openai"

    def extract_message(self, data: dict) -> str:
        choice = first_choice(data)
        message = choice.get("message")
        if isinstance(message, dict):
            return text_from_parts(message.get("content"))
        if isinstance(choice.get("text"), str):
            return choice["text"]
        return ""

    def extract_reasoning(self, data: dict) -> str:
        message = first_choice(data).get("message")
        return _reasoning_of(message) if isinstance(message, dict) else ""

    def extract_tool_calls(self, data: dict) -> list[dict]:
        message = first_choice(data).get("message") or {}
        return list(message.get("tool_calls") or [])

    def extract_images(self, data: dict) -> list[str]:
        message = first_choice(data).get("message") or {}
        return _image_urls(message.get("images"))

    def get_streaming_reply(self, data: dict, formatter: str) -> StreamingReply:
        choice = first_choice(data)
        if formatter == Formatter.TEXT and "delta" not in choice:
            return StreamingReply(delta=choice.get("text") or "")

        delta = choice.get("delta") or {}
        return StreamingReply(
            delta=text_from_parts(delta.get("content")),
            reasoning=_reasoning_of(delta),
            tool_call_deltas=delta.get("tool_calls") or None,
            images=_image_urls(delta.get("images")) or None,
        )
