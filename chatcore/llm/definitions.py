"""
Static provider and parameter tables.

Everything here is read-only configuration consumed by the resolver, the
payload builder and the service:

  - ``PROVIDER_CAPABILITIES``: which formatters a provider accepts.
  - ``PROVIDER_CONFIG``: optional text-completion endpoint per provider.
  - ``PARAMETER_DEFINITIONS``: how each sampler key maps onto the payload.
  - ``PROVIDER_INJECTIONS`` / ``MODEL_INJECTIONS``: payload fixups.
  - ``AI_CONFIG_DEFINITION``: the settings tree whose ``group`` widgets decide
    which parameters a provider can disable as a group.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable

import yaml

from chatcore.llm.types import BuildPayloadOptions, ChatCompletionPayload


class Provider:
    OPENAI = "openai"
    CLAUDE = "claude"
    OPENROUTER = "openrouter"
    AI21 = "ai21"
    MAKERSUITE = "makersuite"
    VERTEXAI = "vertexai"
    MISTRALAI = "mistralai"
    CUSTOM = "custom"
    COHERE = "cohere"
    PERPLEXITY = "perplexity"
    GROQ = "groq"
    ELECTRONHUB = "electronhub"
    NANOGPT = "nanogpt"
    DEEPSEEK = "deepseek"
    AIMLAPI = "aimlapi"
    XAI = "xai"
    POLLINATIONS = "pollinations"
    MOONSHOT = "moonshot"
    FIREWORKS = "fireworks"
    COMETAPI = "cometapi"
    AZURE_OPENAI = "azure_openai"
    ZAI = "zai"
    KOBOLDCPP = "koboldcpp"
    OLLAMA = "ollama"


class CustomPromptPostProcessing:
    NONE = ""
    MERGE = "merge"
    MERGE_TOOLS = "merge_tools"
    SEMI = "semi"
    SEMI_TOOLS = "semi_tools"
    STRICT = "strict"
    STRICT_TOOLS = "strict_tools"
    SINGLE = "single"


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProviderCapability:
    supports_chat: bool = True
    supports_text: bool = False
    supports_tools: bool = True


@dataclass(frozen=True)
class ProviderConfig:
    text_completion_endpoint: str | None = None


_CHAT_ONLY = ProviderCapability()

PROVIDER_CAPABILITIES: dict[str, ProviderCapability] = {
    Provider.OPENROUTER: ProviderCapability(supports_text=True),
    Provider.OPENAI: _CHAT_ONLY,
    Provider.CLAUDE: _CHAT_ONLY,
    Provider.AI21: _CHAT_ONLY,
    Provider.MAKERSUITE: _CHAT_ONLY,
    Provider.VERTEXAI: _CHAT_ONLY,
    Provider.MISTRALAI: _CHAT_ONLY,
    Provider.CUSTOM: _CHAT_ONLY,
    Provider.COHERE: _CHAT_ONLY,
    Provider.PERPLEXITY: ProviderCapability(supports_tools=False),
    Provider.GROQ: _CHAT_ONLY,
    Provider.ELECTRONHUB: _CHAT_ONLY,
    Provider.NANOGPT: _CHAT_ONLY,
    Provider.DEEPSEEK: _CHAT_ONLY,
    Provider.AIMLAPI: _CHAT_ONLY,
    Provider.XAI: _CHAT_ONLY,
    Provider.POLLINATIONS: ProviderCapability(supports_tools=False),
    Provider.MOONSHOT: _CHAT_ONLY,
    Provider.FIREWORKS: _CHAT_ONLY,
    Provider.COMETAPI: _CHAT_ONLY,
    Provider.AZURE_OPENAI: _CHAT_ONLY,
    Provider.ZAI: _CHAT_ONLY,
    Provider.KOBOLDCPP: ProviderCapability(supports_text=True),
    Provider.OLLAMA: ProviderCapability(supports_text=True),
}

TEXT_COMPLETION_ENDPOINT = "/api/backends/text-completions/generate"

PROVIDER_CONFIG: dict[str, ProviderConfig] = {
    Provider.KOBOLDCPP: ProviderConfig(text_completion_endpoint=TEXT_COMPLETION_ENDPOINT),
    Provider.OLLAMA: ProviderConfig(text_completion_endpoint=TEXT_COMPLETION_ENDPOINT),
}

# Provider-specific sub-settings whose ``url`` a connection profile may override.
URL_OVERRIDE_PROVIDERS = (Provider.CUSTOM, Provider.KOBOLDCPP, Provider.OLLAMA)


def get_capability(provider: str) -> ProviderCapability:
    return PROVIDER_CAPABILITIES.get(provider, _CHAT_ONLY)


def supports_tool_calling(provider: str, model: str, post_processing: str) -> bool:
    """
    Default tool-calling capability check.

    Prompt post-processing modes that merge or squash messages drop tool
    calls unless they are the ``*_tools`` variant.
    """
    if not get_capability(provider).supports_tools:
        return False
    if post_processing and not post_processing.endswith("_tools"):
        return False
    return True


# ---------------------------------------------------------------------------
# Parameter definitions
# ---------------------------------------------------------------------------

Transform = Callable[[Any, BuildPayloadOptions], Any]


@dataclass(frozen=True)
class ParamHandling:
    """
    How one setting is written into the payload.

    *remote_key* may be a dotted path for nested placement.  ``None`` fields
    are unset and do not override earlier rules when merged.
    """

    remote_key: str | None = None
    min: float | None = None
    max: float | None = None
    transform: Transform | None = None

    def merge(self, overlay: ParamHandling) -> ParamHandling:
        return ParamHandling(
            remote_key=overlay.remote_key if overlay.remote_key is not None else self.remote_key,
            min=overlay.min if overlay.min is not None else self.min,
            max=overlay.max if overlay.max is not None else self.max,
            transform=overlay.transform if overlay.transform is not None else self.transform,
        )


@dataclass(frozen=True)
class FormatterRule:
    formatters: tuple[str, ...]
    rule: ParamHandling | None
    providers: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ModelRule:
    pattern: re.Pattern
    rule: ParamHandling | None


@dataclass(frozen=True)
class ParamConfiguration:
    """
    Cross-provider legality of a single sampler key.

    A ``None`` *defaults* means the key is only sent to providers listed in
    *providers*.  A ``None`` provider entry disables the key for that provider.
    """

    defaults: ParamHandling | None = field(default_factory=ParamHandling)
    providers: dict[str, ParamHandling | None] = field(default_factory=dict)
    formatter_rules: tuple[FormatterRule, ...] = ()
    model_rules: tuple[ModelRule, ...] = ()


def _rx(pattern: str) -> re.Pattern:
    return re.compile(pattern)


O_SERIES = _rx(r"^(o1|o3|o4)")
GPT5 = _rx(r"^gpt-5")
GROK_3_MINI = _rx(r"grok-3-mini")
GROK_4 = _rx(r"(grok-4|grok-code)")
GPT_VISION = _rx(r"(?=.*gpt)(?=.*vision)")

_DROP = None


def _google_stop(v, _ctx):
    return [x for x in (v or [])[:5] if 1 <= len(x) <= 16]


def _cohere_stop(v, _ctx):
    return (v or [])[:5]


def _zai_stop(v, _ctx):
    return (v or [])[:1]


def _non_empty_list(v, _ctx):
    return v if v else None


def _valid_seed(v, _ctx):
    return v if isinstance(v, (int, float)) and not isinstance(v, bool) and v >= 0 else None


PARAMETER_DEFINITIONS: dict[str, ParamConfiguration] = {
    "show_thoughts": ParamConfiguration(defaults=None),
    "stream": ParamConfiguration(),
    "max_tokens": ParamConfiguration(
        providers={Provider.POLLINATIONS: _DROP},
        model_rules=(
            ModelRule(O_SERIES, ParamHandling(remote_key="max_completion_tokens")),
            ModelRule(GPT5, ParamHandling(remote_key="max_completion_tokens")),
        ),
    ),
    "max_context": ParamConfiguration(defaults=None),
    "temperature": ParamConfiguration(
        defaults=ParamHandling(min=0, max=2),
        providers={Provider.CLAUDE: ParamHandling(max=1)},
        model_rules=(ModelRule(O_SERIES, _DROP),),
    ),
    "frequency_penalty": ParamConfiguration(
        defaults=ParamHandling(min=-2, max=2),
        providers={
            Provider.COHERE: ParamHandling(min=0, max=1),
            Provider.ZAI: _DROP,
            Provider.CLAUDE: _DROP,
        },
        model_rules=(
            ModelRule(O_SERIES, _DROP),
            ModelRule(GROK_3_MINI, _DROP),
            ModelRule(GROK_4, _DROP),
            ModelRule(_rx(r"gpt-5(\.1)?"), _DROP),
        ),
    ),
    "presence_penalty": ParamConfiguration(
        defaults=ParamHandling(min=-2, max=2),
        providers={
            Provider.COHERE: ParamHandling(min=0, max=1),
            Provider.ZAI: _DROP,
            Provider.CLAUDE: _DROP,
        },
        model_rules=(
            ModelRule(O_SERIES, _DROP),
            ModelRule(GROK_3_MINI, _DROP),
            ModelRule(GROK_4, _DROP),
            ModelRule(_rx(r"gpt-5(\.1)?"), _DROP),
        ),
    ),
    "top_p": ParamConfiguration(
        defaults=ParamHandling(min=0, max=1),
        providers={
            Provider.COHERE: ParamHandling(min=0.01, max=0.99),
            Provider.ZAI: ParamHandling(transform=lambda v, _ctx: v or 0.01),
            Provider.DEEPSEEK: ParamHandling(transform=lambda v, _ctx: v or 2.220446049250313e-16),
        },
        model_rules=(ModelRule(O_SERIES, _DROP),),
    ),
    "top_k": ParamConfiguration(
        defaults=None,
        providers={
            Provider.CLAUDE: ParamHandling(),
            Provider.OPENROUTER: ParamHandling(),
            Provider.MAKERSUITE: ParamHandling(),
            Provider.VERTEXAI: ParamHandling(),
            Provider.COHERE: ParamHandling(),
            Provider.PERPLEXITY: ParamHandling(),
            Provider.ELECTRONHUB: ParamHandling(),
            Provider.KOBOLDCPP: ParamHandling(),
            Provider.OLLAMA: ParamHandling(remote_key="options.top_k"),
        },
    ),
    "top_a": ParamConfiguration(
        defaults=None,
        providers={
            Provider.OPENROUTER: ParamHandling(min=0, max=1),
            Provider.KOBOLDCPP: ParamHandling(min=0, max=1),
        },
    ),
    "min_p": ParamConfiguration(
        defaults=None,
        providers={
            Provider.OPENROUTER: ParamHandling(min=0, max=1),
            Provider.KOBOLDCPP: ParamHandling(min=0, max=1),
            Provider.OLLAMA: ParamHandling(remote_key="options.min_p", min=0, max=1),
        },
    ),
    "repetition_penalty": ParamConfiguration(
        defaults=None,
        providers={
            Provider.OPENROUTER: ParamHandling(min=0, max=2),
            Provider.KOBOLDCPP: ParamHandling(remote_key="rep_pen"),
            Provider.OLLAMA: ParamHandling(remote_key="options.repeat_penalty"),
        },
        formatter_rules=(
            FormatterRule(("text",), ParamHandling(remote_key="repeat_penalty"), providers=(Provider.OPENROUTER,)),
        ),
    ),
    "seed": ParamConfiguration(
        defaults=ParamHandling(transform=_valid_seed),
        providers={Provider.CLAUDE: _DROP},
    ),
    "stop": ParamConfiguration(
        defaults=ParamHandling(transform=_non_empty_list),
        providers={
            Provider.COHERE: ParamHandling(transform=_cohere_stop),
            Provider.MAKERSUITE: ParamHandling(transform=_google_stop),
            Provider.VERTEXAI: ParamHandling(transform=_google_stop),
            Provider.PERPLEXITY: _DROP,
            Provider.ZAI: ParamHandling(transform=_zai_stop),
        },
        model_rules=(
            ModelRule(O_SERIES, _DROP),
            ModelRule(GPT_VISION, _DROP),
            ModelRule(GROK_3_MINI, _DROP),
            ModelRule(_rx(r"grok-4(?!.*fast-non-reasoning)"), _DROP),
            ModelRule(GPT5, _DROP),
        ),
    ),
    "n": ParamConfiguration(
        defaults=ParamHandling(min=1),
        providers={
            Provider.GROQ: _DROP,
            Provider.XAI: _DROP,
            Provider.CLAUDE: _DROP,
        },
        model_rules=(ModelRule(O_SERIES, _DROP),),
    ),
    "logit_bias": ParamConfiguration(
        defaults=ParamHandling(transform=lambda v, _ctx: v if v else None),
        providers={Provider.CLAUDE: _DROP, Provider.COHERE: _DROP},
    ),
}


# ---------------------------------------------------------------------------
# Settings tree and parameter groups
# ---------------------------------------------------------------------------

def _slider(key: str) -> dict:
    return {"id": f"api.samplers.{key}", "widget": "slider"}


AI_CONFIG_DEFINITION: list[dict] = [
    {
        "id": "common-settings",
        "items": [
            {"id": "api.samplers.max_context", "widget": "slider"},
            {"id": "api.samplers.max_tokens", "widget": "number-input"},
            {"id": "api.samplers.stream", "widget": "checkbox"},
            {"id": "api.samplers.show_thoughts", "widget": "checkbox"},
        ],
    },
    {
        "id": "samplers",
        "items": [
            _slider("temperature"),
            _slider("top_p"),
            {
                "id": "api.samplers.penalties",
                "widget": "group",
                "items": [
                    _slider("frequency_penalty"),
                    _slider("presence_penalty"),
                    _slider("repetition_penalty"),
                ],
            },
            {
                "id": "api.samplers.truncation",
                "widget": "group",
                "items": [_slider("top_k"), _slider("top_a"), _slider("min_p")],
            },
            {"id": "api.samplers.seed", "widget": "number-input"},
            {"id": "api.samplers.n", "widget": "number-input"},
            {"id": "api.samplers.stop", "widget": "list"},
            {"id": "api.samplers.logit_bias", "widget": "key-value"},
        ],
    },
    {
        "id": "koboldcpp",
        "items": [
            {
                "id": "koboldcpp_basic",
                "widget": "group",
                "items": [
                    {"id": "api.samplers.providers.koboldcpp.rep_pen_range"},
                    {"id": "api.samplers.providers.koboldcpp.sampler_order"},
                ],
            },
            {
                "id": "koboldcpp_dynatemp",
                "widget": "group",
                "items": [
                    {"id": "api.samplers.providers.koboldcpp.dynatemp_range"},
                    {"id": "api.samplers.providers.koboldcpp.dynatemp_exponent"},
                    {"id": "api.samplers.providers.koboldcpp.smoothing_factor"},
                ],
            },
            {
                "id": "koboldcpp_mirostat",
                "widget": "group",
                "items": [
                    {"id": "api.samplers.providers.koboldcpp.mirostat"},
                    {"id": "api.samplers.providers.koboldcpp.mirostat_tau"},
                    {"id": "api.samplers.providers.koboldcpp.mirostat_eta"},
                ],
            },
            {
                "id": "koboldcpp_grammar",
                "widget": "group",
                "items": [
                    {"id": "api.samplers.providers.koboldcpp.grammar"},
                    {"id": "api.samplers.providers.koboldcpp.grammar_retain_state"},
                    {"id": "api.samplers.providers.koboldcpp.use_default_badwordsids"},
                    {"id": "api.samplers.providers.koboldcpp.banned_tokens"},
                ],
            },
            {
                "id": "koboldcpp_tfs",
                "widget": "group",
                "items": [
                    {"id": "api.samplers.providers.koboldcpp.tfs"},
                    {"id": "api.samplers.providers.koboldcpp.typical"},
                ],
            },
            {
                "id": "koboldcpp_dry",
                "widget": "group",
                "items": [
                    {"id": "api.samplers.providers.koboldcpp.dry_multiplier"},
                    {"id": "api.samplers.providers.koboldcpp.dry_base"},
                    {"id": "api.samplers.providers.koboldcpp.dry_allowed_length"},
                    {"id": "api.samplers.providers.koboldcpp.dry_penalty_last_n"},
                    {"id": "api.samplers.providers.koboldcpp.dry_sequence_breakers"},
                ],
            },
            {
                "id": "koboldcpp_xtc",
                "widget": "group",
                "items": [
                    {"id": "api.samplers.providers.koboldcpp.xtc_threshold"},
                    {"id": "api.samplers.providers.koboldcpp.xtc_probability"},
                    {"id": "api.samplers.providers.koboldcpp.nsigma"},
                ],
            },
        ],
    },
]


# ---------------------------------------------------------------------------
# Provider injections
# ---------------------------------------------------------------------------

InjectionFunction = Callable[[ChatCompletionPayload, BuildPayloadOptions], None]


def _provider_settings(options: BuildPayloadOptions, name: str) -> dict:
    return (options.sampler_settings.get("providers") or {}).get(name) or {}


def _inject_claude(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    claude = _provider_settings(options, "claude")
    payload["claude_use_sysprompt"] = claude.get("use_sysprompt")
    payload["assistant_prefill"] = claude.get("assistant_prefill")


def _inject_mistral(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    payload["safe_prompt"] = False


def _inject_makersuite(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    google = _provider_settings(options, "google")
    payload["use_makersuite_sysprompt"] = google.get("use_makersuite_sysprompt")


def _inject_vertexai(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    _inject_makersuite(payload, options)
    vertex = options.provider_specific.get("vertexai")
    if vertex:
        payload["vertexai_auth_mode"] = vertex.get("auth_mode")
        payload["vertexai_region"] = vertex.get("region")
        payload["vertexai_express_project_id"] = vertex.get("express_project_id")


def _inject_openrouter(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    openrouter = options.provider_specific.get("openrouter") or {}
    payload["use_fallback"] = openrouter.get("use_fallback")
    payload["provider"] = openrouter.get("providers")
    payload["allow_fallbacks"] = openrouter.get("allow_fallbacks")
    payload["middleout"] = openrouter.get("middleout")


def _inject_custom(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    custom = options.provider_specific.get("custom") or {}
    payload["custom_url"] = custom.get("url")
    payload["custom_include_body"] = custom.get("include_body")
    payload["custom_exclude_body"] = custom.get("exclude_body")
    payload["custom_include_headers"] = custom.get("include_headers")
    proxy = options.proxy or {}
    if proxy.get("url"):
        payload["reverse_proxy"] = proxy["url"]
    if proxy.get("password"):
        payload["proxy_password"] = proxy["password"]


def _inject_azure(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    azure = options.provider_specific.get("azure_openai")
    if azure:
        payload["azure_base_url"] = azure.get("base_url")
        payload["azure_deployment_name"] = azure.get("deployment_name")
        payload["azure_api_version"] = azure.get("api_version")


def _inject_zai(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    zai = options.provider_specific.get("zai") or {}
    if zai.get("endpoint"):
        payload["zai_endpoint"] = zai["endpoint"]


def _inject_groq(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    for key in ("logprobs", "logit_bias", "top_logprobs", "n"):
        payload.pop(key, None)


def _inject_ollama(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    ollama = options.provider_specific.get("ollama") or {}
    payload["ollama_server"] = ollama.get("url")
    if ollama.get("keep_alive") is not None:
        payload["keep_alive"] = ollama["keep_alive"]


def _split_lines(value: Any) -> list[str] | None:
    if isinstance(value, str):
        return [s.strip() for s in value.split("\n") if s.strip()]
    if isinstance(value, list):
        return value
    return None


# KoboldCpp settings sent only when their group is enabled.
_KOBOLDCPP_GROUPS: dict[str, tuple[str, ...]] = {
    "koboldcpp_basic": ("rep_pen_range",),
    "koboldcpp_dynatemp": ("dynatemp_range", "dynatemp_exponent", "smoothing_factor"),
    "koboldcpp_mirostat": ("mirostat", "mirostat_tau", "mirostat_eta"),
    "koboldcpp_grammar": ("grammar_retain_state", "use_default_badwordsids"),
    "koboldcpp_tfs": ("tfs", "typical"),
    "koboldcpp_dry": ("dry_multiplier", "dry_base", "dry_allowed_length", "dry_penalty_last_n"),
    "koboldcpp_xtc": ("xtc_threshold", "xtc_probability", "nsigma"),
}

_KOBOLDCPP_IGNORED_KEYS = (
    "chat_completion_source",
    "custom_url",
    "custom_include_body",
    "custom_exclude_body",
    "custom_include_headers",
    "model",
    "include_reasoning",
    "koboldcpp_server",
)
_KOBOLDCPP_ROOT_KEYS = ("stream",)


def _inject_koboldcpp(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    """
    Route KoboldCpp through the custom endpoint.

    Generation settings travel as a YAML document in ``custom_include_body``;
    only ``stream`` stays at the payload root.
    """
    koboldcpp = options.provider_specific.get("koboldcpp") or {}
    payload["chat_completion_source"] = Provider.CUSTOM
    payload["custom_url"] = koboldcpp.get("url")
    payload["koboldcpp_server"] = koboldcpp.get("url")

    disabled = (
        (options.sampler_settings.get("providers") or {})
        .get("disabled_fields", {})
        .get(Provider.KOBOLDCPP, [])
    )
    settings = _provider_settings(options, "koboldcpp")
    if settings:
        for group, keys in _KOBOLDCPP_GROUPS.items():
            if group in disabled:
                continue
            for key in keys:
                if settings.get(key) is not None:
                    payload[key] = settings[key]
        if "koboldcpp_basic" not in disabled and settings.get("sampler_order"):
            payload["sampler_order"] = settings["sampler_order"]
        if "koboldcpp_grammar" not in disabled:
            if settings.get("grammar"):
                payload["grammar"] = settings["grammar"]
            banned = _split_lines(settings.get("banned_tokens"))
            if banned is not None:
                payload["banned_tokens"] = banned
        if "koboldcpp_dry" not in disabled:
            breakers = _split_lines(settings.get("dry_sequence_breakers"))
            if breakers is not None:
                payload["dry_sequence_breakers"] = breakers

    body: dict[str, Any] = {}
    for key in list(payload):
        if key in _KOBOLDCPP_IGNORED_KEYS:
            continue
        body[key] = payload[key]
        if key not in _KOBOLDCPP_ROOT_KEYS:
            del payload[key]

    payload.pop("model", None)
    payload.pop("include_reasoning", None)
    payload["custom_include_body"] = yaml.safe_dump(body, sort_keys=False, allow_unicode=True)


PROVIDER_INJECTIONS: dict[str, InjectionFunction] = {
    Provider.CLAUDE: _inject_claude,
    Provider.MISTRALAI: _inject_mistral,
    Provider.MAKERSUITE: _inject_makersuite,
    Provider.VERTEXAI: _inject_vertexai,
    Provider.OPENROUTER: _inject_openrouter,
    Provider.CUSTOM: _inject_custom,
    Provider.AZURE_OPENAI: _inject_azure,
    Provider.ZAI: _inject_zai,
    Provider.GROQ: _inject_groq,
    Provider.OLLAMA: _inject_ollama,
    Provider.KOBOLDCPP: _inject_koboldcpp,
}


# ---------------------------------------------------------------------------
# Model injections
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelInjection:
    pattern: re.Pattern
    inject: InjectionFunction


def _inject_o_series(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    if str(payload.get("model", "")).startswith("o1") and isinstance(payload.get("messages"), list):
        payload["messages"] = [
            {**m, "role": "user"} if m.get("role") == "system" else m
            for m in payload["messages"]
        ]
    for key in ("n", "tools", "tool_choice", "logprobs", "top_logprobs"):
        payload.pop(key, None)


def _inject_gpt5(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    payload.pop("logprobs", None)
    payload.pop("top_logprobs", None)
    if "chat-latest" in str(payload.get("model", "")):
        payload.pop("tools", None)
        payload.pop("tool_choice", None)
    else:
        for key in (
            "temperature",
            "top_p",
            "frequency_penalty",
            "presence_penalty",
            "stop",
            "logit_bias",
        ):
            payload.pop(key, None)


def _inject_grok(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    if "grok-4-fast-non-reasoning" not in options.model:
        payload.pop("stop", None)


def _inject_vision(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    for key in ("logit_bias", "stop", "logprobs"):
        payload.pop(key, None)


def _inject_reasoning_effort(payload: ChatCompletionPayload, options: BuildPayloadOptions) -> None:
    effort = options.sampler_settings.get("reasoning_effort")
    if effort and effort != "auto":
        payload["reasoning_effort"] = effort


MODEL_INJECTIONS: list[ModelInjection] = [
    ModelInjection(O_SERIES, _inject_o_series),
    ModelInjection(GPT5, _inject_gpt5),
    ModelInjection(GROK_4, _inject_grok),
    ModelInjection(GPT_VISION, _inject_vision),
    ModelInjection(_rx(r"^(o1|o3|o4|gpt-5)|grok-3-mini|deepseek-reasoner"), _inject_reasoning_effort),
]
