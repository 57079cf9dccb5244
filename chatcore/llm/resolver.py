"""
Connection profile resolution.

``ProfileResolver`` merges a named connection profile with the global API
settings into one ``ResolvedConfig``.  Precedence, highest first:

    forced provider > profile > global settings

Samplers are layered as global samplers < named preset < ad-hoc overrides.
Presets and templates are loaded lazily, once per resolver, from
``PresetSource`` / ``TemplateSource`` implementations.  Anything a profile
names that cannot be found falls through to the next source; resolution
never raises for missing data.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from dataclasses import fields
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Generic, Iterable, Protocol, TypeVar

import yaml

from chatcore.llm.definitions import URL_OVERRIDE_PROVIDERS, get_capability
from chatcore.llm.types import (
    ConnectionProfile,
    Formatter,
    InstructTemplate,
    ReasoningTemplate,
    ResolvedConfig,
    SamplerPreset,
)

if TYPE_CHECKING:
    from chatcore.config import ApiConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


# ---------------------------------------------------------------------------
# Collection sources
# ---------------------------------------------------------------------------

class CollectionSource(Protocol[T_co]):
    async def load(self) -> list[T_co]: ...


PresetSource = CollectionSource[SamplerPreset]
TemplateSource = CollectionSource[Any]


def _from_dict(cls: type, data: dict, default_name: str) -> Any:
    valid = {f.name for f in fields(cls)}
    kwargs = {k: v for k, v in data.items() if k in valid}
    kwargs.setdefault("name", default_name)
    return cls(**kwargs)


def sampler_preset_from_dict(data: dict, default_name: str) -> SamplerPreset:
    """
    A preset file is either ``{name, preset: {...}}`` or a flat mapping of
    sampler values, named after the file.
    """
    if isinstance(data.get("preset"), dict):
        return SamplerPreset(name=data.get("name") or default_name, preset=data["preset"])
    preset = {k: v for k, v in data.items() if k != "name"}
    return SamplerPreset(name=data.get("name") or default_name, preset=preset)


def instruct_template_from_dict(data: dict, default_name: str) -> InstructTemplate:
    return _from_dict(InstructTemplate, data, default_name)


def reasoning_template_from_dict(data: dict, default_name: str) -> ReasoningTemplate:
    return _from_dict(ReasoningTemplate, data, default_name)


class YamlCollectionSource(Generic[T]):
    """
    Loads a collection from ``*.yaml``, ``*.yml`` and ``*.json`` files.

    Each file holds one item (a mapping) or a list of items.  A missing
    directory yields an empty collection.
    """

    SUFFIXES = (".yaml", ".yml", ".json")

    def __init__(self, directory: str | Path, factory: Callable[[dict, str], T]) -> None:
        self._directory = Path(directory).expanduser()
        self._factory = factory

    async def load(self) -> list[T]:
        return await asyncio.to_thread(self._load_sync)

    def _load_sync(self) -> list[T]:
        if not self._directory.is_dir():
            logger.debug("Collection directory %s does not exist", self._directory)
            return []

        items: list[T] = []
        for path in sorted(self._directory.iterdir()):
            if path.suffix not in self.SUFFIXES:
                continue
            with path.open("r", encoding="utf-8") as f:
                if path.suffix == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
            entries = data if isinstance(data, list) else [data]
            for entry in entries:
                if isinstance(entry, dict):
                    items.append(self._factory(entry, path.stem))
        logger.debug("Loaded %d items from %s", len(items), self._directory)
        return items


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class ProfileResolver:
    """
    Parameters
    ----------
    settings:
        Global API settings (``ApiConfig``).
    profiles:
        Known connection profiles.
    presets, instruct_templates, reasoning_templates:
        Lazily-loaded collections.  ``None`` means an empty collection.
    """

    def __init__(
        self,
        settings: ApiConfig,
        profiles: Iterable[ConnectionProfile] = (),
        presets: PresetSource | None = None,
        instruct_templates: TemplateSource | None = None,
        reasoning_templates: TemplateSource | None = None,
    ) -> None:
        self._settings = settings
        self._profiles = {p.name: p for p in profiles}
        self._preset_source = presets
        self._instruct_source = instruct_templates
        self._reasoning_source = reasoning_templates

        self._lock = asyncio.Lock()
        self._presets: dict[str, SamplerPreset] | None = None
        self._instruct: dict[str, InstructTemplate] | None = None
        self._reasoning: dict[str, ReasoningTemplate] | None = None

    # ------------------------------------------------------------------
    # Lazy collections
    # ------------------------------------------------------------------

    @staticmethod
    async def _load(source: CollectionSource | None) -> dict[str, Any]:
        if source is None:
            return {}
        return {item.name: item for item in await source.load()}

    async def _get_presets(self) -> dict[str, SamplerPreset]:
        async with self._lock:
            if self._presets is None:
                self._presets = await self._load(self._preset_source)
            return self._presets

    async def _get_templates(self) -> tuple[dict[str, InstructTemplate], dict[str, ReasoningTemplate]]:
        async with self._lock:
            if self._instruct is None:
                self._instruct = await self._load(self._instruct_source)
            if self._reasoning is None:
                self._reasoning = await self._load(self._reasoning_source)
            return self._instruct, self._reasoning

    def get_profile(self, name: str) -> ConnectionProfile | None:
        return self._profiles.get(name)

    def list_profiles(self) -> list[ConnectionProfile]:
        return list(self._profiles.values())

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve(
        self,
        profile_name: str | None = None,
        sampler_overrides: dict | None = None,
        forced_provider: str | None = None,
    ) -> ResolvedConfig:
        settings = self._settings
        profile: ConnectionProfile | None = None
        if profile_name:
            profile = self._profiles.get(profile_name)
            if profile is None:
                logger.debug("Connection profile %r not found, using global settings", profile_name)

        provider = forced_provider or (profile and profile.provider) or settings.provider

        model = (
            (profile and profile.model)
            or settings.selected_provider_models.get(provider)
            or settings.active_model
            or ""
        )

        sampler_settings = copy.deepcopy(settings.samplers)
        if profile and profile.sampler:
            preset = (await self._get_presets()).get(profile.sampler)
            if preset is not None:
                sampler_settings.update(copy.deepcopy(preset.preset))
            else:
                logger.debug("Sampler preset %r not found", profile.sampler)
        if sampler_overrides:
            sampler_settings.update(copy.deepcopy(sampler_overrides))

        formatter = (profile and profile.formatter) or settings.formatter or Formatter.CHAT
        capability = get_capability(provider)
        if formatter == Formatter.TEXT and not capability.supports_text:
            formatter = Formatter.CHAT
        elif formatter == Formatter.CHAT and not capability.supports_chat:
            formatter = Formatter.TEXT

        instruct_templates, reasoning_templates = await self._get_templates()
        instruct_name = (profile and profile.instruct_template) or settings.instruct_template_name
        reasoning_name = (profile and profile.reasoning_template) or settings.reasoning_template_name
        instruct_template = instruct_templates.get(instruct_name) if instruct_name else None
        reasoning_template = reasoning_templates.get(reasoning_name) if reasoning_name else None
        if instruct_name and instruct_template is None:
            logger.debug("Instruct template %r not found", instruct_name)
        if reasoning_name and reasoning_template is None:
            logger.debug("Reasoning template %r not found", reasoning_name)

        provider_specific = copy.deepcopy(settings.provider_specific)
        if profile and profile.api_url is not None and provider in URL_OVERRIDE_PROVIDERS:
            provider_specific.setdefault(provider, {})["url"] = profile.api_url

        post_processing = (
            (profile and profile.custom_prompt_post_processing)
            or settings.custom_prompt_post_processing
            or ""
        )

        resolved = ResolvedConfig(
            provider=provider,
            model=model,
            sampler_settings=sampler_settings,
            formatter=formatter,
            provider_specific=provider_specific,
            instruct_template=instruct_template,
            reasoning_template=reasoning_template,
            custom_prompt_post_processing=post_processing,
        )
        logger.debug(
            "Resolved profile=%s provider=%s model=%s formatter=%s",
            profile_name or "(global)",
            provider,
            model,
            formatter,
        )
        return resolved
