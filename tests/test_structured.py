"""Tests for chatcore.llm.structured."""

from __future__ import annotations

import pytest

from chatcore.llm.errors import StructuredResponseError
from chatcore.llm.structured import parse_structured_response

PERSON = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "age": {"type": "integer"},
        "tags": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["name", "age"],
}


class TestJson:
    def test_plain(self):
        assert parse_structured_response('{"name": "Ann", "age": 30}', "json", PERSON) == {
            "name": "Ann",
            "age": 30,
        }

    def test_native_format_parses_as_json(self):
        assert parse_structured_response('{"a": 1}', "native") == {"a": 1}

    def test_code_fence(self):
        text = 'Here you go:\n```json\n{"name": "Ann", "age": 30}\n```'
        assert parse_structured_response(text, "json", PERSON)["name"] == "Ann"

    def test_surrounding_prose(self):
        text = 'Sure! {"name": "Bo", "age": 4} Hope that helps.'
        assert parse_structured_response(text, "json", PERSON)["age"] == 4

    def test_no_json(self):
        with pytest.raises(StructuredResponseError, match="No JSON"):
            parse_structured_response("nothing here", "json")

    def test_broken_json(self):
        with pytest.raises(StructuredResponseError, match="Invalid JSON") as exc_info:
            parse_structured_response('{"name": "Ann",, }', "json")
        assert exc_info.value.raw == '{"name": "Ann",, }'

    def test_schema_violation(self):
        with pytest.raises(StructuredResponseError, match="Schema validation failed"):
            parse_structured_response('{"name": "Ann"}', "json", PERSON)


class TestXml:
    def test_coerces_by_schema(self):
        text = "<person><name>Ann</name><age>30</age><tags><tag>a</tag><tag>b</tag></tags></person>"
        assert parse_structured_response(text, "xml", PERSON) == {
            "name": "Ann",
            "age": 30,
            "tags": ["a", "b"],
        }

    def test_repeated_tags_without_schema(self):
        text = "<list><item>1</item><item>2</item></list>"
        assert parse_structured_response(text, "xml") == {"item": ["1", "2"]}

    def test_boolean_and_number(self):
        schema = {
            "type": "object",
            "properties": {"ok": {"type": "boolean"}, "score": {"type": "number"}},
        }
        text = "```xml\n<r><ok>True</ok><score>0.5</score></r>\n```"
        assert parse_structured_response(text, "xml", schema) == {"ok": True, "score": 0.5}

    def test_invalid_xml(self):
        with pytest.raises(StructuredResponseError, match="Invalid XML"):
            parse_structured_response("<a><b></a>", "xml")

    def test_no_xml(self):
        with pytest.raises(StructuredResponseError, match="No XML"):
            parse_structured_response("plain words", "xml")
