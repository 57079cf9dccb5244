from __future__ import annotations

import json

import jsonschema

from chatcore.tools.base import ToolDefinition, normalize_schema


class ToolValidator:
    @staticmethod
    def validate(tool: ToolDefinition, arguments: dict) -> tuple[bool, str | None]:
        try:
            jsonschema.validate(
                instance=arguments,
                schema=normalize_schema(tool.parameters),
            )
            return True, None
        except jsonschema.ValidationError as e:
            return False, str(e.message)

    @staticmethod
    def validate_call(tool: ToolDefinition, call: dict) -> tuple[bool, str | None]:
        """Validate an accumulated tool call, whose arguments are a JSON string."""
        raw = (call.get("function") or {}).get("arguments") or "{}"
        try:
            arguments = json.loads(raw)
        except json.JSONDecodeError as e:
            return False, f"Arguments are not valid JSON: {e.msg}"
        if not isinstance(arguments, dict):
            return False, "Arguments must be a JSON object"
        return ToolValidator.validate(tool, arguments)
