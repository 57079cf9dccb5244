from __future__ import annotations

from dataclasses import dataclass, field


def normalize_schema(schema: dict) -> dict:
    s = dict(schema or {})
    s.setdefault("type", "object")
    s.setdefault("properties", {})
    return s


@dataclass(frozen=True)
class ToolDefinition:
    """A function the model may call.  Execution happens outside this package."""

    name: str
    description: str = ""
    parameters: dict = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> ToolDefinition:
        """Accept either a bare definition or the ``{"type": "function", "function": {...}}`` wrapper."""
        func = data.get("function") if isinstance(data.get("function"), dict) else data
        return cls(
            name=func["name"],
            description=func.get("description", ""),
            parameters=func.get("parameters") or {},
        )

    def to_api_schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": normalize_schema(self.parameters),
            },
        }
