"""
Transport and response normalization for chat completions.

``ChatCompletionService`` posts a built payload to the application backend
and returns either a normalized ``GenerationResponse`` or, for streaming
payloads, a ``ChatCompletionStream``.

Dependencies: ``httpx`` (async HTTP client).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

from chatcore.llm.definitions import PROVIDER_CONFIG, Provider
from chatcore.llm.errors import (
    ChatCompletionError,
    StructuredResponseError,
    TransportError,
    raise_for_api_error,
)
from chatcore.llm.instruct import trim_instruct_response
from chatcore.llm.providers.base import ProviderHandler, extract_message_generic
from chatcore.llm.providers.registry import get_provider_handler
from chatcore.llm.reasoning import extract_reasoning
from chatcore.llm.stream import ChatCompletionStream, wait_or_abort
from chatcore.llm.structured import parse_structured_response
from chatcore.llm.types import (
    ChatCompletionPayload,
    Formatter,
    GenerationOptions,
    GenerationResponse,
    Message,
)
from chatcore.llm.usage import report_completion

logger = logging.getLogger(__name__)

CHAT_COMPLETION_ENDPOINT = "/api/backends/chat-completions/generate"
PROCESS_ENDPOINT = "/api/backends/chat-completions/process"

_SERVER_KEYS = ("api_server", "ollama_server", "koboldcpp_server", "custom_url")


def provider_key(payload: ChatCompletionPayload) -> str:
    """
    The provider a payload targets.

    KoboldCpp payloads are sent through the custom source, so they are
    recognised by their ``koboldcpp_server`` field.
    """
    if payload.get("koboldcpp_server"):
        return Provider.KOBOLDCPP
    return payload.get("chat_completion_source") or ""


def _stream_error_message(response: httpx.Response) -> str:
    message = f"Request failed with status {response.status_code}"
    try:
        data = response.json()
    except ValueError:
        return message
    if not isinstance(data, dict):
        return message
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if data.get("message"):
        return str(data["message"])
    return message


class ChatCompletionService:
    """
    Client for the backend's chat completion endpoints.

    Parameters
    ----------
    base_url:
        Root URL of the application backend, e.g. ``"http://localhost:8000"``.
    client:
        Shared ``httpx.AsyncClient``.  One is created (and owned) when omitted.
    headers:
        Static headers added to every request.
    header_provider:
        Called before every request for headers that change over time, such
        as a CSRF token.
    timeout:
        Request timeout in seconds for an owned client.
    """

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        header_provider: Callable[[], dict[str, str]] | None = None,
        timeout: float = 120.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client
        self._owns_client = client is None
        self._headers = dict(headers or {})
        self._header_provider = header_provider
        self._timeout = timeout

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ChatCompletionService:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
        }
        headers.update(self._headers)
        if self._header_provider is not None:
            headers.update(self._header_provider())
        return headers

    def _prepare(
        self,
        payload: ChatCompletionPayload,
        formatter: str,
        provider: str,
    ) -> tuple[str, dict]:
        endpoint = CHAT_COMPLETION_ENDPOINT
        body = dict(payload)

        config = PROVIDER_CONFIG.get(provider)
        if config is not None and config.text_completion_endpoint and formatter == Formatter.TEXT:
            endpoint = config.text_completion_endpoint
            body["api_type"] = provider
            body["api_server"] = next(
                (payload[key] for key in _SERVER_KEYS if payload.get(key)), None
            )

        return f"{self._base_url}{endpoint}", body

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(
        self,
        payload: ChatCompletionPayload,
        formatter: str = Formatter.CHAT,
        options: GenerationOptions | None = None,
    ) -> GenerationResponse | ChatCompletionStream:
        """
        Send *payload* and normalize the answer.

        Returns a ``GenerationResponse`` for non-streaming payloads and a
        ``ChatCompletionStream`` when ``payload["stream"]`` is true.

        Raises ``TransportError`` for non-2xx statuses and network failures,
        ``ProviderError`` (or ``QuotaExceededError``) for error payloads, and
        ``GenerationAborted`` when ``options.signal`` is set before the
        response arrives.
        """
        options = options or GenerationOptions()
        provider = provider_key(payload)
        url, body = self._prepare(payload, formatter, provider)
        handler = get_provider_handler(provider)

        messages = payload.get("messages")
        logger.info(
            "REQUEST: provider=%s model=%s formatter=%s stream=%s messages=%s tools=%d",
            provider or "(none)",
            payload.get("model", ""),
            formatter,
            bool(payload.get("stream")),
            len(messages) if isinstance(messages, list) else "prompt",
            len(payload.get("tools") or []),
        )

        started = time.monotonic()
        if payload.get("stream"):
            return await self._generate_stream(url, body, handler, formatter, options, started)
        return await self._generate_once(url, body, handler, formatter, options, started)

    async def _generate_once(
        self,
        url: str,
        body: dict,
        handler: ProviderHandler,
        formatter: str,
        options: GenerationOptions,
        started: float,
    ) -> GenerationResponse:
        text = ""
        structured_content: Any = None
        parse_error: StructuredResponseError | None = None
        result: GenerationResponse | None = None

        try:
            try:
                response = await wait_or_abort(
                    self._get_client().post(url, json=body, headers=self._build_headers()),
                    options.signal,
                )
            except httpx.HTTPError as exc:
                raise TransportError(f"Request failed: {exc}") from exc

            try:
                data = response.json()
            except ValueError:
                data = {"error": "Failed to parse JSON response"}

            if not response.is_success:
                raise_for_api_error(data)
                raise TransportError(
                    f"Request failed with status {response.status_code}",
                    status_code=response.status_code,
                )
            raise_for_api_error(data)

            raw = handler.extract_message(data)
            if not raw:
                logger.debug("Handler %s found no content, using generic extraction", handler.name)
                raw = extract_message_generic(data)
            reasoning = handler.extract_reasoning(data) or ""

            if options.reasoning_template is not None:
                raw, excised = extract_reasoning(raw, options.reasoning_template)
                reasoning += excised

            if formatter == Formatter.TEXT and options.instruct_template is not None:
                raw = trim_instruct_response(raw, options.instruct_template)
            text = raw.rstrip() if options.is_continuation else raw.strip()

            structured = options.structured_response
            if structured is not None:
                try:
                    structured_content = parse_structured_response(
                        text, structured.format, structured.schema.value
                    )
                except StructuredResponseError as exc:
                    logger.info("Structured response parse failed: %s", exc)
                    parse_error = exc

            result = GenerationResponse(
                content=text,
                reasoning=reasoning.strip() or None,
                images=handler.extract_images(data) or None,
                tool_calls=handler.extract_tool_calls(data) or None,
                structured_content=structured_content,
                parse_error=parse_error,
            )
            return result
        finally:
            stats = report_completion(
                options,
                text,
                started,
                structured_content=structured_content,
                parse_error=parse_error,
            )
            if result is not None and options.tokenizer is not None:
                result.token_count = stats.output_tokens

    async def _generate_stream(
        self,
        url: str,
        body: dict,
        handler: ProviderHandler,
        formatter: str,
        options: GenerationOptions,
        started: float,
    ) -> ChatCompletionStream:
        client = self._get_client()
        request = client.build_request("POST", url, json=body, headers=self._build_headers())

        try:
            try:
                response = await wait_or_abort(client.send(request, stream=True), options.signal)
            except httpx.HTTPError as exc:
                raise TransportError(f"Request failed: {exc}") from exc

            if not response.is_success:
                try:
                    await response.aread()
                    message = _stream_error_message(response)
                finally:
                    await response.aclose()
                raise TransportError(message, status_code=response.status_code)
        except ChatCompletionError:
            report_completion(options, "", started)
            raise

        return ChatCompletionStream(response, handler, formatter, options, started)

    # ------------------------------------------------------------------
    # Prompt post-processing
    # ------------------------------------------------------------------

    async def format_messages(
        self,
        messages: list[Message] | list[dict],
        post_processing: str,
    ) -> list[dict]:
        """
        Ask the backend to post-process *messages* (merge, squash, ...).

        Returns the processed wire messages, or the input unchanged when the
        backend answers without a ``messages`` list.
        """
        wire = [m.to_wire() if isinstance(m, Message) else m for m in messages]
        try:
            response = await self._get_client().post(
                f"{self._base_url}{PROCESS_ENDPOINT}",
                json={"messages": wire, "type": post_processing},
                headers=self._build_headers(),
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"Request failed: {exc}") from exc

        if not response.is_success:
            raise TransportError(
                f"Failed to post-process messages: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        data = response.json()
        if isinstance(data, dict) and isinstance(data.get("messages"), list):
            return data["messages"]
        return wire
