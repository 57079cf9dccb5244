"""Tests for ToolRegistry and ToolDefinition."""

import json

import pytest
import yaml

from chatcore.tools.base import ToolDefinition, normalize_schema
from chatcore.tools.registry import ToolRegistry

ECHO = ToolDefinition(
    name="echo",
    description="Echo a message",
    parameters={
        "type": "object",
        "properties": {"message": {"type": "string"}},
        "required": ["message"],
    },
)
SEARCH = ToolDefinition(name="search", description="Search the web")


class TestToolRegistry:
    """Test suite for ToolRegistry."""

    def test_register_and_get(self):
        reg = ToolRegistry()
        reg.register(ECHO)
        assert reg.get("echo") is ECHO

    def test_get_returns_none_for_unknown(self):
        reg = ToolRegistry()
        assert reg.get("nonexistent") is None

    def test_require_returns_tool(self):
        reg = ToolRegistry()
        reg.register(ECHO)
        assert reg.require("echo") is ECHO

    def test_require_raises_keyerror_for_unknown(self):
        reg = ToolRegistry()
        with pytest.raises(KeyError, match="nonexistent"):
            reg.require("nonexistent")

    def test_duplicate_registration_raises_valueerror(self):
        reg = ToolRegistry()
        reg.register(ECHO)
        with pytest.raises(ValueError, match="already registered"):
            reg.register(ToolDefinition(name="echo"))

    def test_duplicate_registration_with_overwrite(self):
        reg = ToolRegistry()
        replacement = ToolDefinition(name="echo", description="v2")
        reg.register(ECHO)
        reg.register(replacement, overwrite=True)
        assert reg.get("echo") is replacement

    def test_list_returns_all_sorted_by_name(self):
        reg = ToolRegistry()
        reg.register(SEARCH)
        reg.register(ECHO)
        assert [t.name for t in reg.list()] == ["echo", "search"]

    def test_to_api_schema(self):
        reg = ToolRegistry()
        reg.register(SEARCH)
        reg.register(ECHO)
        schema = reg.to_api_schema()
        assert [s["function"]["name"] for s in schema] == ["echo", "search"]
        for entry in schema:
            assert entry["type"] == "function"
            assert entry["function"]["parameters"]["type"] == "object"
        assert schema[1]["function"]["parameters"] == {"type": "object", "properties": {}}

    def test_empty_registry(self):
        reg = ToolRegistry()
        assert reg.list() == []
        assert reg.to_api_schema() == []


class TestLoadFile:
    def test_yaml_list(self, tmp_path):
        path = tmp_path / "tools.yaml"
        path.write_text(yaml.safe_dump([
            {"name": "echo", "description": "Echo", "parameters": ECHO.parameters},
            {"type": "function", "function": {"name": "search"}},
        ]))
        reg = ToolRegistry()
        assert reg.load_file(path) == 2
        assert reg.require("echo").parameters["required"] == ["message"]
        assert reg.require("search").description == ""

    def test_tools_key(self, tmp_path):
        path = tmp_path / "tools.json"
        path.write_text(json.dumps({"tools": [{"name": "a"}, {"name": "b"}]}))
        reg = ToolRegistry()
        assert reg.load_file(path) == 2
        assert [t.name for t in reg.list()] == ["a", "b"]

    def test_single_definition(self, tmp_path):
        path = tmp_path / "one.yaml"
        path.write_text(yaml.safe_dump({"name": "solo"}))
        reg = ToolRegistry()
        assert reg.load_file(path) == 1

    def test_duplicate_in_file(self, tmp_path):
        path = tmp_path / "dup.yaml"
        path.write_text(yaml.safe_dump([{"name": "x"}, {"name": "x"}]))
        with pytest.raises(ValueError, match="already registered"):
            ToolRegistry().load_file(path)


class TestToolDefinition:
    def test_from_wrapper(self):
        tool = ToolDefinition.from_dict({
            "type": "function",
            "function": {"name": "f", "description": "d", "parameters": {"type": "object"}},
        })
        assert tool == ToolDefinition(name="f", description="d", parameters={"type": "object"})

    def test_missing_name(self):
        with pytest.raises(KeyError):
            ToolDefinition.from_dict({"description": "nameless"})

    def test_normalize_schema_keeps_input(self):
        original = {"properties": {"a": {"type": "string"}}}
        normalized = normalize_schema(original)
        assert normalized["type"] == "object"
        assert "type" not in original
