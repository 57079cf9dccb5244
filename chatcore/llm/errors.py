"""Exceptions raised by the chat completion service."""

from __future__ import annotations

QUOTA_EXCEEDED_MESSAGE = (
    "You have exceeded your current quota. "
    "Please check your plan and billing details."
)


class ChatCompletionError(Exception):
    """Base class for failures surfaced to callers of ``generate``."""


class TransportError(ChatCompletionError):
    """The backend answered with a non-2xx status or an unreadable body."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderError(ChatCompletionError):
    """The provider reported an error inside an otherwise valid response."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class QuotaExceededError(ProviderError):
    def __init__(self) -> None:
        super().__init__(QUOTA_EXCEEDED_MESSAGE, code="insufficient_quota")


class GenerationAborted(ChatCompletionError):
    """The caller set the abort signal before the response arrived."""


class StructuredResponseError(Exception):
    """
    Structured output could not be parsed or failed schema validation.

    Never raised to callers of ``generate``; it is attached to the result as
    ``parse_error`` next to the raw text.
    """

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


def raise_for_api_error(data: dict) -> None:
    """Raise ``ProviderError`` if *data* carries an ``error`` member."""
    error = data.get("error") if isinstance(data, dict) else None
    if not error:
        return
    if isinstance(error, dict):
        if error.get("code") == "insufficient_quota":
            raise QuotaExceededError()
        message = (
            error.get("message")
            or error.get("type")
            or "An unknown API error occurred."
        )
        raise ProviderError(str(message), code=error.get("code"))
    raise ProviderError(str(error))
