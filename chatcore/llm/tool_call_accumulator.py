"""
Accumulates streamed tool-call deltas into complete tool-call objects.

Providers stream tool calls as sparse fragments keyed by an integer
``index``: the first fragment usually carries the id and function name, and
later ones append pieces of the JSON-encoded ``arguments`` string.  Each
fragment is deep-merged into the call at its index:

  - strings concatenate (a missing or non-string existing value counts as ``""``)
  - nested dicts merge recursively
  - ``None`` only fills a key that has no value yet
  - anything else overwrites

``type`` is the one exception to concatenation: providers repeat
``"function"`` on every fragment, so it is replaced.
"""

from __future__ import annotations

import copy
from typing import Any

_REPLACED_KEYS = frozenset({"type"})


def empty_tool_call() -> dict:
    """Placeholder for an index no fragment has reached yet."""
    return {"id": "", "type": "", "function": {"name": "", "arguments": ""}}


def _merge(target: dict, source: dict) -> None:
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(value, str):
            if key in _REPLACED_KEYS:
                target[key] = value
            else:
                target[key] = (existing if isinstance(existing, str) else "") + value
        elif isinstance(value, dict):
            if not isinstance(existing, dict):
                existing = {}
                target[key] = existing
            _merge(existing, value)
        elif value is None:
            if existing is None:
                target[key] = None
        else:
            target[key] = copy.deepcopy(value)


class ToolCallAccumulator:
    """Index-addressable list of in-progress tool calls."""

    def __init__(self) -> None:
        self._calls: list[dict] = []

    def add(self, deltas: list[dict[str, Any]]) -> None:
        """Merge a batch of indexed tool-call fragments."""
        for delta in deltas:
            index = delta.get("index", 0)
            if not isinstance(index, int) or index < 0:
                index = len(self._calls)
            while len(self._calls) <= index:
                self._calls.append(empty_tool_call())
            fragment = {k: v for k, v in delta.items() if k != "index"}
            _merge(self._calls[index], fragment)

    def get_calls(self) -> list[dict]:
        """Deep copy of the current state, in index order."""
        return copy.deepcopy(self._calls)

    def has_calls(self) -> bool:
        return bool(self._calls)

    def reset(self) -> None:
        self._calls.clear()
