"""Output formatting utilities for the CLI."""

from __future__ import annotations

import json
from typing import Any

import yaml
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from chatcore.llm.types import ConnectionProfile, GenerationResponse, UsageRecord
from chatcore.tools.base import ToolDefinition
from chatcore.tools.registry import ToolRegistry
from chatcore.tools.validation import ToolValidator


class OutputFormatter:
    """Rich-based output formatting for the chatcore CLI."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def format_profile_list(self, profiles: list[ConnectionProfile], active: str = "") -> None:
        if not profiles:
            self.console.print("[dim]No connection profiles configured.[/dim]")
            return

        table = Table(title="Connection Profiles")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Provider", no_wrap=True)
        table.add_column("Model")
        table.add_column("Preset")
        table.add_column("Formatter", no_wrap=True)
        table.add_column("Templates")

        for p in profiles:
            name = Text(p.name, style="bold cyan" if p.name == active else "cyan")
            templates = ", ".join(t for t in (p.instruct_template, p.reasoning_template) if t)
            table.add_row(
                name,
                p.provider or "-",
                p.model or "-",
                p.sampler or "-",
                p.formatter or "-",
                templates or "-",
            )

        self.console.print(table)

    def format_tool_list(self, tools: list[ToolDefinition]) -> None:
        table = Table(title="Registered Tools", show_lines=True)
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Parameters")
        table.add_column("Description")

        for t in tools:
            params = ", ".join((t.parameters.get("properties") or {}).keys())
            table.add_row(t.name, params or "-", t.description)

        self.console.print(table)

    def format_payload(self, payload: dict) -> None:
        self.console.print(Syntax(json.dumps(payload, indent=2, default=str), "json", theme="monokai"))

    def format_reasoning(self, reasoning: str) -> None:
        self.console.print(Panel(reasoning, title="Reasoning", border_style="dim"))

    def format_response(self, response: GenerationResponse) -> None:
        if response.reasoning:
            self.format_reasoning(response.reasoning)
        self.console.print(response.content)
        for image in response.images or []:
            self.console.print(f"[dim]image:[/dim] {image[:80]}")

    def format_structured(self, content: Any, parse_error: Exception | None) -> None:
        if parse_error is not None:
            self.console.print(f"[red]Structured output invalid:[/red] {parse_error}")
            return
        if content is not None:
            self.console.print(Panel(
                Syntax(json.dumps(content, indent=2, default=str), "json", theme="monokai"),
                title="Structured output",
            ))

    def format_tool_calls(self, calls: list[dict], registry: ToolRegistry | None = None) -> None:
        if not calls:
            return
        table = Table(title="Tool Calls")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Name", no_wrap=True)
        table.add_column("Arguments")
        table.add_column("Valid", no_wrap=True)

        for call in calls:
            func = call.get("function") or {}
            tool = registry.get(func.get("name", "")) if registry else None
            if tool is None:
                status = Text("unknown", style="dim")
            else:
                ok, error = ToolValidator.validate_call(tool, call)
                status = Text("ok", style="green") if ok else Text(error or "invalid", style="red")
            table.add_row(call.get("id", ""), func.get("name", ""), func.get("arguments", ""), status)

        self.console.print(table)

    def format_usage(self, record: UsageRecord) -> None:
        self.console.print(
            f"[dim]{record.model}: {record.input_tokens} in / "
            f"{record.output_tokens} out, {record.duration:.2f}s[/dim]"
        )

    def format_config(self, config: dict) -> None:
        yaml_str = yaml.safe_dump(config, sort_keys=False, allow_unicode=True)
        self.console.print(Syntax(yaml_str, "yaml", theme="monokai"))
