"""
Streaming decoder for ``text/event-stream`` chat completion responses.

The backend sends frames of the form::

    data: {json}\\n\\n

terminated by ``data: [DONE]``.  ``ChatCompletionStream`` reassembles lines
split across network reads, hands each decoded frame to the provider handler,
runs visible text through the reasoning-boundary parser, merges tool-call
fragments, and yields ``StreamedChunk`` objects.

Whatever ends the stream, the end-of-stream hook runs exactly once: the
response is released, structured output is parsed from the full text, and
usage is reported.  A consumer that breaks out of ``async for`` and drops the
stream is covered by the event loop's async-generator finalizer; using the
stream as an async context manager (or calling ``aclose()``) runs the hook
immediately instead of at collection time::

    async with stream:
        async for chunk in stream:
            ...
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterator, Awaitable

import httpx

from chatcore.llm.errors import (
    GenerationAborted,
    ProviderError,
    StructuredResponseError,
    TransportError,
    raise_for_api_error,
)
from chatcore.llm.instruct import trim_instruct_response
from chatcore.llm.providers.base import ProviderHandler
from chatcore.llm.reasoning import StreamReasoningParser
from chatcore.llm.structured import parse_structured_response
from chatcore.llm.tool_call_accumulator import ToolCallAccumulator
from chatcore.llm.types import Formatter, GenerationOptions, StreamedChunk
from chatcore.llm.usage import report_completion

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"

# End hooks scheduled from __del__, held until they complete.
_pending_finishes: set[asyncio.Task] = set()


async def wait_or_abort(awaitable: Awaitable[Any], signal: asyncio.Event | None) -> Any:
    """
    Await *awaitable* unless *signal* is set first.

    Raises ``GenerationAborted`` (after cancelling the pending work) when the
    signal wins the race.
    """
    if signal is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    if signal.is_set():
        task.cancel()
        await asyncio.wait({task})
        raise GenerationAborted("Generation aborted by user.")

    waiter = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()
    task.cancel()
    await asyncio.wait({task})
    raise GenerationAborted("Generation aborted by user.")


class ChatCompletionStream:
    """
    Async iterator of ``StreamedChunk`` for one streaming request.

    ``text`` is the concatenation of every yielded delta.  After the stream
    ends, ``content`` holds that text trimmed (and cleaned of instruct
    sequences for the text formatter), and ``reasoning``, ``tool_calls``,
    ``structured_content`` and ``parse_error`` hold the final state.
    """

    def __init__(
        self,
        response: httpx.Response,
        handler: ProviderHandler,
        formatter: str,
        options: GenerationOptions | None = None,
        started: float | None = None,
    ) -> None:
        self._response = response
        self._handler = handler
        self._formatter = formatter
        self._options = options or GenerationOptions()
        self._started = started if started is not None else time.monotonic()

        self._parser = StreamReasoningParser.from_template(self._options.reasoning_template)
        self._accumulator = ToolCallAccumulator()
        self._text_parts: list[str] = []
        self._awaiting_first_content = not self._options.is_continuation
        self._finished = False
        self._gen = self._iterate()

        self.reasoning = ""
        self.content = ""
        self.images: list[str] = []
        self.structured_content: Any = None
        self.parse_error: StructuredResponseError | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        return "".join(self._text_parts)

    @property
    def tool_calls(self) -> list[dict]:
        return self._accumulator.get_calls()

    @property
    def finished(self) -> bool:
        return self._finished

    def __aiter__(self) -> ChatCompletionStream:
        return self

    async def __anext__(self) -> StreamedChunk:
        try:
            return await self._gen.__anext__()
        except StopAsyncIteration:
            await self._finish()
            raise
        except BaseException:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        """Stop consuming the stream and run the end-of-stream hook."""
        await self._gen.aclose()
        await self._finish()

    async def __aenter__(self) -> ChatCompletionStream:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def __del__(self) -> None:
        # Backstop for a stream dropped before its generator ever started.
        if getattr(self, "_finished", True):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Stream dropped outside an event loop; response left open.")
            return
        task = loop.create_task(self._finish())
        _pending_finishes.add(task)
        task.add_done_callback(_pending_finishes.discard)

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    async def _iterate(self) -> AsyncIterator[StreamedChunk]:
        reader = self._response.aiter_text()
        signal = self._options.signal
        buffer = ""

        try:
            while True:
                try:
                    text = await wait_or_abort(reader.__anext__(), signal)
                except StopAsyncIteration:
                    break
                except GenerationAborted:
                    logger.debug("Stream aborted by user.")
                    break
                except httpx.HTTPError as exc:
                    raise TransportError(f"Stream read failed: {exc}") from exc

                buffer += text
                lines = buffer.split("\n")
                buffer = lines.pop()  # keep the trailing, possibly partial, line

                stop = False
                for line in lines:
                    data = self._decode_line(line)
                    if data is None:
                        continue
                    if data is DONE_SENTINEL:
                        stop = True
                        break
                    chunk = self._process_frame(data)
                    if chunk is not None:
                        yield chunk
                if stop:
                    break

            tail = self._parser.flush()
            chunk = self._emit(tail.delta, tail.reasoning)
            if chunk is not None:
                yield chunk
        finally:
            await self._finish()

    def _decode_line(self, line: str) -> Any:
        line = line.strip()
        if not line.startswith("data:"):
            return None
        payload = line[len("data:"):].strip()
        if payload == DONE_SENTINEL:
            return DONE_SENTINEL
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Failed to parse stream frame: %s", payload[:200])
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object stream frame: %s", payload[:200])
            return None
        try:
            raise_for_api_error(data)
        except ProviderError as exc:
            logger.warning("Skipping stream frame with provider error: %s", exc)
            return None
        return data

    def _process_frame(self, data: dict) -> StreamedChunk | None:
        reply = self._handler.get_streaming_reply(data, self._formatter)
        delta = reply.delta or ""
        reasoning = reply.reasoning or ""
        if delta:
            split = self._parser.process(delta)
            delta = split.delta
            reasoning += split.reasoning
        if reply.tool_call_deltas:
            self._accumulator.add(reply.tool_call_deltas)
        return self._emit(delta, reasoning, reply.images, bool(reply.tool_call_deltas))

    def _emit(
        self,
        delta: str,
        reasoning: str,
        images: list[str] | None = None,
        tools_changed: bool = False,
    ) -> StreamedChunk | None:
        if delta and self._awaiting_first_content:
            delta = delta.lstrip()
            self._awaiting_first_content = False
        if reasoning:
            self.reasoning += reasoning
        if not (delta or reasoning or images or tools_changed):
            return None

        self._text_parts.append(delta)
        if images:
            self.images.extend(images)
        return StreamedChunk(
            delta=delta,
            reasoning=self.reasoning,
            images=list(images) if images else None,
            tool_calls=self._accumulator.get_calls() if self._accumulator.has_calls() else None,
        )

    # ------------------------------------------------------------------
    # End of stream
    # ------------------------------------------------------------------

    async def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        await self._response.aclose()

        text = self.text
        template = self._options.instruct_template
        if self._formatter == Formatter.TEXT and template is not None:
            text = trim_instruct_response(text, template)
        self.content = text.rstrip() if self._options.is_continuation else text.strip()

        structured = self._options.structured_response
        if structured is not None:
            try:
                self.structured_content = parse_structured_response(
                    self.content, structured.format, structured.schema.value
                )
            except StructuredResponseError as exc:
                logger.info("Structured response parse failed: %s", exc)
                self.parse_error = exc

        report_completion(
            self._options,
            self.content,
            self._started,
            structured_content=self.structured_content,
            parse_error=self.parse_error,
        )
