from __future__ import annotations

from pathlib import Path

import yaml

from chatcore.tools.base import ToolDefinition


class ToolRegistry:
    def __init__(self):
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, tool: ToolDefinition, *, overwrite: bool = False) -> None:
        if tool.name in self._tools and not overwrite:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def require(self, name: str) -> ToolDefinition:
        t = self.get(name)
        if not t:
            raise KeyError(name)
        return t

    def list(self) -> list[ToolDefinition]:
        return sorted(self._tools.values(), key=lambda t: t.name)

    def to_api_schema(self) -> list[dict]:
        return [t.to_api_schema() for t in self.list()]

    def load_file(self, path: str | Path, *, overwrite: bool = False) -> int:
        """Register every tool in a YAML (or JSON) file holding a list of definitions."""
        with Path(path).expanduser().open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or []
        if isinstance(data, dict):
            data = data.get("tools", [data])
        loaded = 0
        for entry in data:
            self.register(ToolDefinition.from_dict(entry), overwrite=overwrite)
            loaded += 1
        return loaded
