"""Core types for the chat completion subsystem."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Protocol

if TYPE_CHECKING:
    from chatcore.llm.errors import StructuredResponseError
    from chatcore.tools.registry import ToolRegistry


ChatCompletionPayload = dict[str, Any]


class Formatter:
    CHAT = "chat"
    TEXT = "text"


class GenerationMode:
    NEW = "new"
    REGENERATE = "regenerate"
    ADD_SWIPE = "add_swipe"
    CONTINUE = "continue"


class NamesBehavior:
    NONE = "none"
    INCLUDE = "include"
    FORCE = "force"
    ALWAYS = "always"


# ---------------------------------------------------------------------------
# Messages and tool calls
# ---------------------------------------------------------------------------

@dataclass
class Message:
    """A single message in a conversation."""

    role: str  # "system", "user", "assistant", "tool"
    content: str | list[dict] | None
    name: str = ""
    tool_calls: list[dict] | None = None
    tool_call_id: str | None = None

    @property
    def text(self) -> str:
        """Plain text of the message, joining the text parts of multi-part content."""
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        return "".join(
            part.get("text") or ""
            for part in self.content
            if part.get("type") == "text"
        )

    def to_wire(self) -> dict:
        m: dict = {"role": self.role, "content": self.content}
        if self.name:
            m["name"] = self.name
        if self.tool_calls:
            m["tool_calls"] = self.tool_calls
        if self.tool_call_id:
            m["tool_call_id"] = self.tool_call_id
        return m


def make_tool_call(call_id: str, name: str, arguments: str) -> dict:
    """Build a wire-format tool call dict."""
    return {
        "id": call_id,
        "type": "function",
        "function": {"name": name, "arguments": arguments},
    }


# ---------------------------------------------------------------------------
# Templates and profiles
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InstructTemplate:
    name: str
    input_sequence: str = ""
    input_suffix: str = ""
    output_sequence: str = ""
    output_suffix: str = ""
    last_output_sequence: str = ""
    system_sequence: str = ""
    system_suffix: str = ""
    stop_sequence: str = ""
    sequences_as_stop_strings: bool = True
    names_behavior: str = NamesBehavior.NONE


@dataclass(frozen=True)
class ReasoningTemplate:
    name: str
    prefix: str = ""
    suffix: str = ""


@dataclass(frozen=True)
class ConnectionProfile:
    """Named override bundle selecting provider, model, preset and templates."""

    name: str
    provider: str | None = None
    model: str | None = None
    sampler: str | None = None
    formatter: str | None = None
    instruct_template: str | None = None
    reasoning_template: str | None = None
    api_url: str | None = None
    custom_prompt_post_processing: str | None = None


@dataclass(frozen=True)
class SamplerPreset:
    name: str
    preset: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedConfig:
    """
    Fully-resolved configuration for a single request.

    Built once by ``ProfileResolver.resolve`` from deep copies of the global
    settings; nothing mutates it afterwards.
    """

    provider: str
    model: str
    sampler_settings: dict
    formatter: str
    provider_specific: dict
    instruct_template: InstructTemplate | None = None
    reasoning_template: ReasoningTemplate | None = None
    custom_prompt_post_processing: str = ""


# ---------------------------------------------------------------------------
# Request options
# ---------------------------------------------------------------------------

@dataclass
class StructuredResponseSchema:
    name: str
    value: dict
    strict: bool = True

    def to_dict(self) -> dict:
        return {"name": self.name, "strict": self.strict, "value": self.value}


@dataclass
class StructuredResponseOptions:
    """
    Request a structured response.

    ``format`` is ``"native"`` when the provider enforces the JSON schema, or
    ``"json"`` / ``"xml"`` when the output is parsed and validated afterwards.
    """

    schema: StructuredResponseSchema
    format: str = "native"


@dataclass
class ToolGenerationConfig:
    include_registered_tools: bool = True
    additional_tools: list[dict] = field(default_factory=list)
    exclude_tools: list[str] = field(default_factory=list)
    tool_choice: str | dict = "auto"


@dataclass
class Character:
    name: str


ToolCapabilityCheck = Callable[[str, str, str], bool]


@dataclass
class BuildPayloadOptions:
    """Everything the payload builder reads.  Never mutated by the builder."""

    sampler_settings: dict
    messages: list[Message]
    model: str
    provider: str
    provider_specific: dict = field(default_factory=dict)
    formatter: str = Formatter.CHAT
    instruct_template: InstructTemplate | None = None
    custom_prompt_post_processing: str = ""
    proxy: dict | None = None
    player_name: str = "User"
    active_character: Character | None = None
    structured_response: StructuredResponseOptions | None = None
    tool_config: ToolGenerationConfig | None = None
    mode: str = GenerationMode.NEW
    tool_registry: ToolRegistry | None = None
    tool_capability: ToolCapabilityCheck | None = None

    @classmethod
    def from_resolved(
        cls,
        resolved: ResolvedConfig,
        messages: list[Message],
        **kwargs: Any,
    ) -> BuildPayloadOptions:
        return cls(
            sampler_settings=resolved.sampler_settings,
            messages=messages,
            model=resolved.model,
            provider=resolved.provider,
            provider_specific=resolved.provider_specific,
            formatter=resolved.formatter,
            instruct_template=resolved.instruct_template,
            custom_prompt_post_processing=resolved.custom_prompt_post_processing,
            **kwargs,
        )


class Tokenizer(Protocol):
    def count_text(self, text: str) -> int: ...


@dataclass
class GenerationTrackingOptions:
    source: str
    model: str
    input_tokens: int = 0
    context: str | None = None


@dataclass
class UsageRecord:
    source: str
    model: str
    input_tokens: int
    output_tokens: int
    duration: float
    context: str | None = None


@dataclass
class CompletionStats:
    output_tokens: int
    duration: float
    structured_content: Any = None
    parse_error: StructuredResponseError | None = None


@dataclass
class GenerationOptions:
    """
    Per-call options for ``ChatCompletionService.generate``.

    *signal* is an ``asyncio.Event``; setting it aborts the request.
    *usage_sink* receives a ``UsageRecord`` when *tracking* is given.
    *on_completion* always receives a ``CompletionStats`` once the
    generation ends, whether it succeeded, failed or was aborted.
    *instruct_template* cleans leaked template sequences from text-formatter
    replies.
    """

    signal: asyncio.Event | None = None
    tokenizer: Tokenizer | None = None
    tracking: GenerationTrackingOptions | None = None
    usage_sink: Callable[[UsageRecord], None] | None = None
    on_completion: Callable[[CompletionStats], None] | None = None
    reasoning_template: ReasoningTemplate | None = None
    instruct_template: InstructTemplate | None = None
    structured_response: StructuredResponseOptions | None = None
    is_continuation: bool = False


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class StreamingReply:
    """What a provider handler extracts from one decoded stream frame."""

    delta: str = ""
    reasoning: str = ""
    tool_call_deltas: list[dict] | None = None
    images: list[str] | None = None


@dataclass
class StreamedChunk:
    """
    A single chunk yielded while streaming.

    *delta* is the new visible text of this event.  *reasoning* and
    *tool_calls* are cumulative: they carry the full state so far, not the
    increment.
    """

    delta: str = ""
    reasoning: str = ""
    images: list[str] | None = None
    tool_calls: list[dict] | None = None


@dataclass
class GenerationResponse:
    """The normalized result of a non-streaming generation."""

    content: str
    reasoning: str | None = None
    images: list[str] | None = None
    tool_calls: list[dict] | None = None
    token_count: int | None = None
    structured_content: Any = None
    parse_error: StructuredResponseError | None = None
