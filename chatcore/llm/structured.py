"""Parse and validate structured (JSON or XML) model output."""

from __future__ import annotations

import json
import re
import xml.etree.ElementTree as ET
from typing import Any

import jsonschema

from chatcore.llm.errors import StructuredResponseError

_CODE_FENCE = re.compile(r"```(?:[\w-]+)?\s*\n?(.*?)```", re.DOTALL)


def _strip_code_fence(text: str) -> str:
    match = _CODE_FENCE.search(text)
    return match.group(1).strip() if match else text.strip()


def _parse_json(text: str) -> Any:
    body = _strip_code_fence(text)
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        pass
    # Models often wrap the object in prose; fall back to the outermost braces.
    start = min((i for i in (body.find("{"), body.find("[")) if i != -1), default=-1)
    end = max(body.rfind("}"), body.rfind("]"))
    if start == -1 or end <= start:
        raise StructuredResponseError("No JSON object found in response", raw=text)
    try:
        return json.loads(body[start:end + 1])
    except json.JSONDecodeError as exc:
        raise StructuredResponseError(f"Invalid JSON: {exc}", raw=text) from exc


def _coerce_scalar(text: str, schema: dict | None) -> Any:
    kind = (schema or {}).get("type")
    if kind == "integer":
        try:
            return int(text)
        except ValueError:
            return text
    if kind == "number":
        try:
            return float(text)
        except ValueError:
            return text
    if kind == "boolean":
        lowered = text.strip().lower()
        if lowered in ("true", "false"):
            return lowered == "true"
    return text


def _element_to_value(element: ET.Element, schema: dict | None) -> Any:
    children = list(element)
    schema = schema or {}
    if not children:
        text = (element.text or "").strip()
        if schema.get("type") == "array":
            return [_coerce_scalar(text, schema.get("items"))] if text else []
        if schema.get("type") == "object":
            return {}
        return _coerce_scalar(text, schema)

    if schema.get("type") == "array":
        item_schema = schema.get("items")
        return [_element_to_value(child, item_schema) for child in children]

    properties = schema.get("properties") or {}
    result: dict[str, Any] = {}
    for child in children:
        child_schema = properties.get(child.tag)
        value = _element_to_value(child, child_schema)
        if child.tag not in result:
            result[child.tag] = value
            continue
        # Repeated tag: collect the siblings into a list.
        if not isinstance(result[child.tag], list):
            result[child.tag] = [result[child.tag]]
        result[child.tag].append(value)
    return result


def _parse_xml(text: str, schema: dict | None) -> Any:
    body = _strip_code_fence(text)
    start = body.find("<")
    end = body.rfind(">")
    if start == -1 or end <= start:
        raise StructuredResponseError("No XML document found in response", raw=text)
    try:
        root = ET.fromstring(body[start:end + 1])
    except ET.ParseError as exc:
        raise StructuredResponseError(f"Invalid XML: {exc}", raw=text) from exc
    return _element_to_value(root, schema)


def parse_structured_response(text: str, fmt: str, schema: dict | None = None) -> Any:
    """
    Parse *text* as ``json`` (also used for ``native``) or ``xml`` and
    validate the result against *schema* when given.

    Raises ``StructuredResponseError`` on any failure.
    """
    if fmt == "xml":
        value = _parse_xml(text, schema)
    else:
        value = _parse_json(text)

    if schema:
        try:
            jsonschema.validate(instance=value, schema=schema)
        except jsonschema.ValidationError as exc:
            raise StructuredResponseError(
                f"Schema validation failed: {exc.message}", raw=text
            ) from exc
    return value
