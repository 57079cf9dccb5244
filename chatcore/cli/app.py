"""
Main CLI application for chatcore.

Usage:
    chatcore generate PROMPT [--profile NAME] [--provider NAME] [--set KEY=VALUE]
    chatcore payload PROMPT [...]      (build and print the payload, no request)
    chatcore profiles list
    chatcore tools list --file FILE
    chatcore config show|validate
    chatcore version
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console

from chatcore.config import ChatcoreConfig, load_config

app = typer.Typer(name="chatcore", help="Chat completion client for the application backend")
profiles_app = typer.Typer(help="Connection profiles")
tools_app = typer.Typer(help="Tool definitions")
config_app = typer.Typer(help="Configuration management")

app.add_typer(profiles_app, name="profiles")
app.add_typer(tools_app, name="tools")
app.add_typer(config_app, name="config")

console = Console()
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_config_path() -> Path | None:
    """Find config file in standard locations."""
    candidates = [
        Path.cwd() / "chatcore.yaml",
        Path.cwd() / "chatcore.yml",
        Path.home() / ".config" / "chatcore" / "config.yaml",
        Path.home() / ".chatcore" / "config.yaml",
    ]
    for p in candidates:
        if p.is_file():
            return p
    return None


def _parse_overrides(pairs: list[str]) -> dict:
    """Parse ``KEY=VALUE`` pairs; values are read as YAML scalars (``0.7``, ``true``, ``[a, b]``)."""
    overrides: dict = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}")
        overrides[key.strip()] = yaml.safe_load(value)
    return overrides


def _load_messages(prompt: str | None, system: str | None, messages_file: Path | None) -> list:
    from chatcore.llm.types import Message

    messages: list[Message] = []
    if system:
        messages.append(Message(role="system", content=system))
    if messages_file is not None:
        with messages_file.open("r", encoding="utf-8") as f:
            for entry in yaml.safe_load(f) or []:
                messages.append(Message(
                    role=entry["role"],
                    content=entry.get("content"),
                    name=entry.get("name", ""),
                    tool_calls=entry.get("tool_calls"),
                    tool_call_id=entry.get("tool_call_id"),
                ))
    if prompt:
        messages.append(Message(role="user", content=prompt))
    if not messages:
        raise typer.BadParameter("Provide a prompt or --messages")
    return messages


def _build_resolver(cfg: ChatcoreConfig):
    from chatcore.llm.resolver import (
        ProfileResolver,
        YamlCollectionSource,
        instruct_template_from_dict,
        reasoning_template_from_dict,
        sampler_preset_from_dict,
    )

    return ProfileResolver(
        cfg.api,
        cfg.connection_profiles(),
        presets=YamlCollectionSource(cfg.library.presets_dir, sampler_preset_from_dict),
        instruct_templates=YamlCollectionSource(cfg.library.instruct_dir, instruct_template_from_dict),
        reasoning_templates=YamlCollectionSource(cfg.library.reasoning_dir, reasoning_template_from_dict),
    )


async def _prepare(
    cfg: ChatcoreConfig,
    prompt: str | None,
    system: str | None,
    messages_file: Path | None,
    provider: str | None,
    overrides: list[str],
    tools_file: Path | None,
    character: str | None,
    mode: str,
    schema_file: Path | None,
    schema_format: str,
):
    """Resolve the active profile and build the payload."""
    from chatcore.llm.payload import build_chat_completion_payload
    from chatcore.llm.types import (
        BuildPayloadOptions,
        Character,
        StructuredResponseOptions,
        StructuredResponseSchema,
    )
    from chatcore.tools.registry import ToolRegistry

    resolver = _build_resolver(cfg)
    resolved = await resolver.resolve(
        cfg.active_profile or None,
        sampler_overrides=_parse_overrides(overrides),
        forced_provider=provider,
    )

    registry = ToolRegistry()
    if tools_file is not None:
        registry.load_file(tools_file)

    structured = None
    if schema_file is not None:
        with schema_file.open("r", encoding="utf-8") as f:
            schema = yaml.safe_load(f)
        structured = StructuredResponseOptions(
            schema=StructuredResponseSchema(name=schema_file.stem, value=schema),
            format=schema_format,
        )

    options = BuildPayloadOptions.from_resolved(
        resolved,
        _load_messages(prompt, system, messages_file),
        proxy=cfg.api.proxy,
        active_character=Character(character) if character else None,
        structured_response=structured,
        mode=mode,
        tool_registry=registry,
    )
    return resolved, options, build_chat_completion_payload(options), registry


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.callback()
def _main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def generate(
    prompt: Optional[str] = typer.Argument(None, help="User message"),
    system: Optional[str] = typer.Option(None, help="System message"),
    messages_file: Optional[Path] = typer.Option(None, "--messages", help="YAML/JSON list of messages"),
    profile: Optional[str] = typer.Option(None, help="Connection profile name"),
    provider: Optional[str] = typer.Option(None, help="Force a provider"),
    overrides: list[str] = typer.Option([], "--set", help="Sampler override KEY=VALUE"),
    stream: Optional[bool] = typer.Option(None, "--stream/--no-stream", help="Override streaming"),
    tools_file: Optional[Path] = typer.Option(None, "--tools", help="YAML file of tool definitions"),
    character: Optional[str] = typer.Option(None, help="Active character name (text formatter)"),
    mode: str = typer.Option("new", help="Generation mode: new, regenerate, add_swipe, continue"),
    schema_file: Optional[Path] = typer.Option(None, "--schema", help="JSON schema for structured output"),
    schema_format: str = typer.Option("native", help="Structured format: native, json, xml"),
):
    """Send a chat completion request and print the reply."""
    from chatcore.cli.output import OutputFormatter
    from chatcore.llm.errors import ChatCompletionError, GenerationAborted
    from chatcore.llm.service import ChatCompletionService
    from chatcore.llm.stream import ChatCompletionStream
    from chatcore.llm.token_counter import TokenCounter
    from chatcore.llm.types import GenerationMode, GenerationOptions, GenerationTrackingOptions

    cfg = load_config(_get_config_path(), profile=profile)
    if stream is not None:
        overrides = [*overrides, f"stream={'true' if stream else 'false'}"]
    formatter = OutputFormatter(console)

    async def _run() -> int:
        resolved, options, payload, registry = await _prepare(
            cfg, prompt, system, messages_file, provider, overrides,
            tools_file, character, mode, schema_file, schema_format,
        )
        counter = TokenCounter(resolved.model)
        abort = asyncio.Event()
        with contextlib.suppress(NotImplementedError):
            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, abort.set)

        gen_options = GenerationOptions(
            signal=abort,
            tokenizer=counter,
            tracking=GenerationTrackingOptions(
                source="cli",
                model=resolved.model,
                input_tokens=counter.count_messages(options.messages, payload.get("tools")),
            ),
            usage_sink=formatter.format_usage,
            reasoning_template=resolved.reasoning_template,
            instruct_template=resolved.instruct_template,
            structured_response=options.structured_response,
            is_continuation=mode == GenerationMode.CONTINUE,
        )

        async with ChatCompletionService(
            cfg.service.base_url,
            headers=cfg.service.request_headers(),
            timeout=float(cfg.service.timeout_seconds),
        ) as service:
            try:
                result = await service.generate(payload, resolved.formatter, gen_options)
                if isinstance(result, ChatCompletionStream):
                    async with result:
                        async for chunk in result:
                            console.print(chunk.delta, end="", soft_wrap=True, highlight=False)
                    console.print()
                    if result.reasoning:
                        formatter.format_reasoning(result.reasoning)
                    formatter.format_tool_calls(result.tool_calls, registry)
                    formatter.format_structured(result.structured_content, result.parse_error)
                else:
                    formatter.format_response(result)
                    formatter.format_tool_calls(result.tool_calls or [], registry)
                    formatter.format_structured(result.structured_content, result.parse_error)
            except GenerationAborted:
                console.print("[yellow]Generation cancelled.[/yellow]")
                return 130
            except ChatCompletionError as e:
                console.print(f"[red]Error:[/red] {e}")
                return 1
        if abort.is_set():
            console.print("[yellow]Generation cancelled.[/yellow]")
        return 0

    code = asyncio.run(_run())
    if code:
        raise typer.Exit(code)


@app.command()
def payload(
    prompt: Optional[str] = typer.Argument(None, help="User message"),
    system: Optional[str] = typer.Option(None, help="System message"),
    messages_file: Optional[Path] = typer.Option(None, "--messages", help="YAML/JSON list of messages"),
    profile: Optional[str] = typer.Option(None, help="Connection profile name"),
    provider: Optional[str] = typer.Option(None, help="Force a provider"),
    overrides: list[str] = typer.Option([], "--set", help="Sampler override KEY=VALUE"),
    tools_file: Optional[Path] = typer.Option(None, "--tools", help="YAML file of tool definitions"),
    character: Optional[str] = typer.Option(None, help="Active character name (text formatter)"),
    mode: str = typer.Option("new", help="Generation mode"),
    schema_file: Optional[Path] = typer.Option(None, "--schema", help="JSON schema for structured output"),
    schema_format: str = typer.Option("native", help="Structured format: native, json, xml"),
):
    """Build and print the request payload without sending it."""
    from chatcore.cli.output import OutputFormatter

    cfg = load_config(_get_config_path(), profile=profile)

    async def _run():
        _, _, body, _ = await _prepare(
            cfg, prompt, system, messages_file, provider, overrides,
            tools_file, character, mode, schema_file, schema_format,
        )
        return body

    OutputFormatter(console).format_payload(asyncio.run(_run()))


@profiles_app.command("list")
def profiles_list():
    """List connection profiles."""
    from chatcore.cli.output import OutputFormatter

    cfg = load_config(_get_config_path())
    OutputFormatter(console).format_profile_list(cfg.connection_profiles(), cfg.active_profile)


@tools_app.command("list")
def tools_list(
    tools_file: Path = typer.Option(..., "--file", help="YAML file of tool definitions"),
):
    """List tools defined in a file."""
    from chatcore.cli.output import OutputFormatter
    from chatcore.tools.registry import ToolRegistry

    registry = ToolRegistry()
    try:
        registry.load_file(tools_file)
    except (OSError, KeyError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Could not load tools:[/red] {e}")
        raise typer.Exit(1)
    OutputFormatter(console).format_tool_list(registry.list())


@config_app.command("show")
def config_show():
    """Show effective config."""
    from chatcore.cli.output import OutputFormatter

    cfg = load_config(_get_config_path())
    formatter = OutputFormatter(console)
    formatter.format_config(cfg.to_dict())


@config_app.command("validate")
def config_validate():
    """Validate config and show any type issues."""
    config_path = _get_config_path()
    try:
        cfg = load_config(config_path)
        profiles = cfg.connection_profiles()
        console.print("[green]Config is valid.[/green]")
        if config_path:
            console.print(f"  Loaded from: {config_path}")
        else:
            console.print("  [dim]No config file found, using defaults.[/dim]")
        console.print(f"  Backend: {cfg.service.base_url}")
        console.print(f"  Provider: {cfg.api.provider} ({cfg.api.active_model or 'no model'})")
        console.print(f"  Profiles: {len(profiles)}")
        if cfg.active_profile and cfg.active_profile not in cfg.profiles:
            console.print(f"  [yellow]Active profile '{cfg.active_profile}' is not defined.[/yellow]")
    except Exception as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """Show version."""
    console.print("chatcore v0.1.0")


def main():
    app()


if __name__ == "__main__":
    main()
