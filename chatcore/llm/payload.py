"""
Build the provider-specific wire payload for a chat completion request.

The builder is a pure function of ``BuildPayloadOptions``: it performs no I/O
and never mutates its inputs.  Steps run in a fixed order and later steps may
overwrite earlier ones:

  1. base fields (model, provider tag, reasoning visibility)
  2. structured-response JSON schema
  3. tools
  4. message shaping (chat array or flattened instruct prompt) and stop list
  5. per-parameter mapping through ``PARAMETER_DEFINITIONS``
  6. provider injection
  7. model injections (every matching entry, in order)
"""

from __future__ import annotations

import copy
import functools
import logging
from typing import Any

from chatcore.llm.definitions import (
    AI_CONFIG_DEFINITION,
    MODEL_INJECTIONS,
    PARAMETER_DEFINITIONS,
    PROVIDER_INJECTIONS,
    ParamHandling,
    Provider,
    supports_tool_calling,
)
from chatcore.llm.instruct import convert_messages_to_instruct_string, is_prefill
from chatcore.llm.types import (
    BuildPayloadOptions,
    ChatCompletionPayload,
    Formatter,
    GenerationMode,
)

logger = logging.getLogger(__name__)

# Sampler keys that are containers or UI state, never payload parameters.
EXCLUDED_SAMPLER_KEYS = frozenset(
    {
        "prompts",
        "prompt_order",
        "providers",
        "max_context_unlocked",
        "reasoning_effort",
        "disabled_fields",
    }
)

SETTINGS_ID_PREFIX = "api.samplers."


@functools.cache
def param_group_index() -> dict[str, str]:
    """Map each settings id to the id of the ``group`` widget containing it."""
    index: dict[str, str] = {}
    for section in AI_CONFIG_DEFINITION:
        for item in section.get("items", []):
            if item.get("widget") != "group" or not item.get("id"):
                continue
            for sub in item.get("items", []):
                if sub.get("id"):
                    index[sub["id"]] = item["id"]
    return index


def is_parameter_disabled(settings_id: str, provider: str, sampler_settings: dict) -> bool:
    """Check the global and the per-provider disabled lists (by id or group)."""
    if settings_id in (sampler_settings.get("disabled_fields") or []):
        return True
    providers = sampler_settings.get("providers") or {}
    provider_disabled = (providers.get("disabled_fields") or {}).get(provider)
    if not provider_disabled:
        return False
    if settings_id in provider_disabled:
        return True
    group_id = param_group_index().get(settings_id)
    return bool(group_id and group_id in provider_disabled)


def set_deep(obj: dict, path: str, value: Any) -> None:
    """Assign *value* at a dotted *path*, creating intermediate dicts."""
    keys = path.split(".")
    current = obj
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def resolve_param_rule(key: str, options: BuildPayloadOptions) -> ParamHandling | None:
    """
    Merge the handling rules that apply to *key* for this request.

    Returns ``None`` when the parameter must not be sent.
    """
    config = PARAMETER_DEFINITIONS.get(key)
    if config is None:
        return None

    provider = options.provider
    if provider in config.providers:
        provider_rule = config.providers[provider]
        if provider_rule is None:
            return None
        rule = (config.defaults or ParamHandling()).merge(provider_rule)
    elif config.defaults is None:
        return None
    else:
        rule = config.defaults

    for fmt_rule in config.formatter_rules:
        if options.formatter not in fmt_rule.formatters:
            continue
        if fmt_rule.providers is not None and provider not in fmt_rule.providers:
            continue
        if fmt_rule.rule is None:
            return None
        rule = rule.merge(fmt_rule.rule)

    for model_rule in config.model_rules:
        if model_rule.pattern.search(options.model or ""):
            if model_rule.rule is None:
                return None
            rule = rule.merge(model_rule.rule)

    return rule


def _apply_parameter(
    payload: ChatCompletionPayload,
    key: str,
    value: Any,
    options: BuildPayloadOptions,
) -> None:
    if is_parameter_disabled(SETTINGS_ID_PREFIX + key, options.provider, options.sampler_settings):
        return
    rule = resolve_param_rule(key, options)
    if rule is None:
        return

    if rule.transform is not None:
        value = rule.transform(value, options)

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if rule.min is not None:
            value = max(value, rule.min)
        if rule.max is not None:
            value = min(value, rule.max)

    if value is None:
        return
    remote_key = rule.remote_key or key
    if "." in remote_key:
        set_deep(payload, remote_key, value)
    else:
        payload[remote_key] = value


def _collect_tools(options: BuildPayloadOptions) -> list[dict]:
    config = options.tool_config
    include_registered = config.include_registered_tools if config else True
    tools: list[dict] = []
    if include_registered and options.tool_registry is not None:
        tools.extend(options.tool_registry.to_api_schema())
    if config:
        tools.extend(copy.deepcopy(config.additional_tools))
        excluded = set(config.exclude_tools)
        if excluded:
            tools = [t for t in tools if t.get("function", {}).get("name") not in excluded]
    return tools


def _instruct_stop(options: BuildPayloadOptions) -> list[str]:
    stop = list(options.sampler_settings.get("stop") or [])
    template = options.instruct_template
    if template is not None and template.sequences_as_stop_strings:
        stop.extend(
            [template.stop_sequence, template.input_sequence, template.system_sequence]
        )
        stop = [s for s in stop if s]
    return stop


def build_chat_completion_payload(options: BuildPayloadOptions) -> ChatCompletionPayload:
    """Construct the wire payload for one request."""
    sampler = options.sampler_settings
    payload: ChatCompletionPayload = {
        "model": options.model,
        "chat_completion_source": options.provider,
        "include_reasoning": bool(sampler.get("show_thoughts")),
    }

    structured = options.structured_response
    if structured is not None and structured.format != "xml" and options.formatter == Formatter.CHAT:
        payload["json_schema"] = copy.deepcopy(structured.schema.to_dict())

    capability = options.tool_capability or supports_tool_calling
    if capability(options.provider, options.model, options.custom_prompt_post_processing):
        tools = _collect_tools(options)
        if tools:
            payload["tools"] = tools
            config = options.tool_config
            payload["tool_choice"] = copy.deepcopy(config.tool_choice) if config else "auto"

    if (
        options.formatter == Formatter.TEXT
        and options.instruct_template is not None
        and options.active_character is not None
    ):
        is_continuation = options.mode == GenerationMode.CONTINUE or is_prefill(options.messages)
        prompt = convert_messages_to_instruct_string(
            options.messages,
            options.instruct_template,
            options.player_name or "User",
            options.active_character.name,
            is_continuation=is_continuation,
        )
        if options.provider == Provider.OPENROUTER:
            payload["messages"] = prompt
        else:
            payload["prompt"] = prompt
        stop = _instruct_stop(options)
    else:
        payload["messages"] = [m.to_wire() for m in copy.deepcopy(options.messages)]
        stop = list(sampler.get("stop") or [])

    for key, value in sampler.items():
        if key in EXCLUDED_SAMPLER_KEYS:
            continue
        if key == "stop":
            value = stop
        _apply_parameter(payload, key, copy.deepcopy(value), options)
    if "stop" not in sampler and stop:
        _apply_parameter(payload, "stop", stop, options)

    inject = PROVIDER_INJECTIONS.get(options.provider)
    if inject is not None:
        inject(payload, options)

    for injection in MODEL_INJECTIONS:
        if injection.pattern.search(options.model or ""):
            injection.inject(payload, options)

    logger.debug(
        "Built payload: provider=%s model=%s formatter=%s keys=%s",
        options.provider,
        options.model,
        options.formatter,
        sorted(payload),
    )
    return payload
