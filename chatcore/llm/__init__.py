"""Chat completion subsystem -- resolution, payload building, transport and streaming."""

from chatcore.llm.errors import (
    ChatCompletionError,
    GenerationAborted,
    ProviderError,
    QuotaExceededError,
    StructuredResponseError,
    TransportError,
)
from chatcore.llm.payload import build_chat_completion_payload
from chatcore.llm.reasoning import StreamReasoningParser
from chatcore.llm.resolver import ProfileResolver, YamlCollectionSource
from chatcore.llm.service import ChatCompletionService
from chatcore.llm.stream import ChatCompletionStream
from chatcore.llm.token_counter import TokenCounter
from chatcore.llm.tool_call_accumulator import ToolCallAccumulator
from chatcore.llm.types import (
    BuildPayloadOptions,
    GenerationOptions,
    GenerationResponse,
    Message,
    ResolvedConfig,
    StreamedChunk,
)

__all__ = [
    "BuildPayloadOptions",
    "ChatCompletionError",
    "ChatCompletionService",
    "ChatCompletionStream",
    "GenerationAborted",
    "GenerationOptions",
    "GenerationResponse",
    "Message",
    "ProfileResolver",
    "ProviderError",
    "QuotaExceededError",
    "ResolvedConfig",
    "StreamReasoningParser",
    "StreamedChunk",
    "StructuredResponseError",
    "TokenCounter",
    "ToolCallAccumulator",
    "TransportError",
    "YamlCollectionSource",
    "build_chat_completion_payload",
]
