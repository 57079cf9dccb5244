"""
Typed configuration model with precedence-based loader.

Precedence (lowest to highest):
    defaults < config file (YAML) < env vars < CLI flags < per-session overrides

The ``api`` section is the global settings store the profile resolver reads;
``profiles`` holds the named connection profiles.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any

import yaml

from chatcore.llm.types import ConnectionProfile


# ---------------------------------------------------------------------------
# Section dataclasses
# ---------------------------------------------------------------------------

@dataclass
class ServiceConfig:
    base_url: str = "http://localhost:8000"
    timeout_seconds: int = 120
    headers: dict[str, str] = field(default_factory=dict)
    csrf_token_env: str = "CHATCORE_CSRF_TOKEN"

    def request_headers(self) -> dict[str, str]:
        """Static headers plus the CSRF token, when its env var is set."""
        headers = dict(self.headers)
        token = os.environ.get(self.csrf_token_env) if self.csrf_token_env else None
        if token:
            headers["X-CSRF-Token"] = token
        return headers


@dataclass
class ApiConfig:
    provider: str = "openai"
    formatter: str = "chat"
    active_model: str = ""
    selected_provider_models: dict[str, str] = field(default_factory=dict)
    samplers: dict[str, Any] = field(default_factory=dict)
    provider_specific: dict[str, Any] = field(default_factory=dict)
    instruct_template_name: str = ""
    reasoning_template_name: str = ""
    custom_prompt_post_processing: str = ""
    proxy: dict[str, Any] | None = None


@dataclass
class LibraryConfig:
    presets_dir: str = "~/.chatcore/presets"
    instruct_dir: str = "~/.chatcore/instruct"
    reasoning_dir: str = "~/.chatcore/reasoning"


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

@dataclass
class ChatcoreConfig:
    service: ServiceConfig = field(default_factory=ServiceConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    library: LibraryConfig = field(default_factory=LibraryConfig)
    profiles: dict[str, dict[str, Any]] = field(default_factory=dict)
    active_profile: str = ""

    # ----- per-session overrides (applied last) ----
    _overrides: dict[str, Any] = field(default_factory=dict, repr=False)

    def set_override(self, dotpath: str, value: Any) -> None:
        """Set a per-session override using dot notation (e.g. 'api.provider')."""
        self._overrides[dotpath] = value
        _apply_dotpath(self, dotpath, value)

    def get_override(self, dotpath: str) -> Any | None:
        return self._overrides.get(dotpath)

    def connection_profiles(self) -> list[ConnectionProfile]:
        """The ``profiles`` section as ``ConnectionProfile`` objects, keyed by their map name."""
        result = []
        for name, raw in self.profiles.items():
            data = dict(raw or {})
            data["name"] = name
            result.append(_build_section(ConnectionProfile, data))
        return result

    def to_dict(self) -> dict:
        d = asdict(self)
        d.pop("_overrides", None)
        return d


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _apply_dotpath(obj: Any, dotpath: str, value: Any) -> None:
    """
    Walk obj via dotpath and set the final attribute.

    Dict-valued fields are walked by key, so ``api.samplers.temperature``
    sets one sampler.
    """
    parts = dotpath.split(".")
    for part in parts[:-1]:
        if isinstance(obj, dict):
            obj = obj.setdefault(part, {})
        else:
            obj = getattr(obj, part)
    if isinstance(obj, dict):
        obj[parts[-1]] = value
    else:
        setattr(obj, parts[-1], value)


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge overlay into base, returning a new dict."""
    merged = dict(base)
    for k, v in overlay.items():
        if k in merged and isinstance(merged[k], dict) and isinstance(v, dict):
            merged[k] = _deep_merge(merged[k], v)
        else:
            merged[k] = v
    return merged


def _coerce(value: str, target_type: type) -> Any:
    """Coerce a string env value to the target type."""
    if target_type is bool:
        return value.lower() in ("1", "true", "yes", "on")
    if target_type is int:
        return int(value)
    if target_type is float:
        return float(value)
    return value


def _build_section(cls: type, raw: dict) -> Any:
    """Build a dataclass section from a raw dict, ignoring unknown keys."""
    valid_fields = {f.name for f in fields(cls)}
    filtered = {k: copy.deepcopy(v) for k, v in raw.items() if k in valid_fields}
    return cls(**filtered)


# ---------------------------------------------------------------------------
# ENV var mapping
# ---------------------------------------------------------------------------

_ENV_MAP: dict[str, tuple[str, type]] = {
    "CHATCORE_BASE_URL":            ("service.base_url", str),
    "CHATCORE_TIMEOUT":             ("service.timeout_seconds", int),
    "CHATCORE_PROVIDER":            ("api.provider", str),
    "CHATCORE_FORMATTER":           ("api.formatter", str),
    "CHATCORE_MODEL":               ("api.active_model", str),
    "CHATCORE_INSTRUCT_TEMPLATE":   ("api.instruct_template_name", str),
    "CHATCORE_REASONING_TEMPLATE":  ("api.reasoning_template_name", str),
    "CHATCORE_POST_PROCESSING":     ("api.custom_prompt_post_processing", str),
    "CHATCORE_TEMPERATURE":         ("api.samplers.temperature", float),
    "CHATCORE_MAX_TOKENS":          ("api.samplers.max_tokens", int),
    "CHATCORE_STREAM":              ("api.samplers.stream", bool),
    "CHATCORE_PRESETS_DIR":         ("library.presets_dir", str),
    "CHATCORE_INSTRUCT_DIR":        ("library.instruct_dir", str),
    "CHATCORE_REASONING_DIR":       ("library.reasoning_dir", str),
    "CHATCORE_PROFILE":             ("active_profile", str),
}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    *,
    profile: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> ChatcoreConfig:
    """
    Build a ChatcoreConfig by layering sources in precedence order:

        defaults  <  config file  <  env vars  <  CLI flags  <  per-session overrides

    Parameters
    ----------
    config_path : path to YAML config file (optional)
    profile : name of the connection profile to make active
    cli_overrides : dict of dotpath -> value CLI flag overrides
    """
    raw: dict[str, Any] = {}

    # --- 1. Config file ---
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.is_file():
            with p.open("r", encoding="utf-8") as f:
                file_data = yaml.safe_load(f) or {}
            raw = _deep_merge(raw, file_data)

    # --- Build sections from raw ---
    cfg = ChatcoreConfig(
        service=_build_section(ServiceConfig, raw.get("service", {})),
        api=_build_section(ApiConfig, raw.get("api", {})),
        library=_build_section(LibraryConfig, raw.get("library", {})),
        profiles=raw.get("profiles", {}) or {},
        active_profile=raw.get("active_profile", "") or "",
    )

    # --- 2. Env var overrides ---
    for env_var, (dotpath, target_type) in _ENV_MAP.items():
        val = os.environ.get(env_var)
        if val is not None:
            _apply_dotpath(cfg, dotpath, _coerce(val, target_type))

    # --- 3. CLI flag overrides ---
    if cli_overrides:
        for dotpath, value in cli_overrides.items():
            _apply_dotpath(cfg, dotpath, value)

    # --- 4. Active profile ---
    if profile:
        cfg.active_profile = profile

    return cfg
