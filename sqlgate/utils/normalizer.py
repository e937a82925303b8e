"""
Record normalization helpers applied before writes and after reads.

Everything here is pure: inputs are never mutated and no I/O happens.

- ``normalize`` converts keys between snake_case (storage) and camelCase
  (application) recursively through nested mappings and lists.
- ``parse_repairable`` parses almost-JSON (trailing commas, single quotes,
  missing brackets...) and reports failures through ``ParseResult``.
- ``strip_namespace_prefixes`` cleans XML-to-JSON responses of an external
  service: namespace prefixes are removed from keys and ``{"_": value}``
  text nodes are unwrapped.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

from json_repair import repair_json

Case = Literal["snake", "camel"]

SNAKE: Case = "snake"
CAMEL: Case = "camel"

_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z]?[a-z]+|[A-Z]+|\d+")

NAMESPACE_PREFIXES = ("ns:", "ns1:", "ns0:", "ns2:", "ns3:", "dnp:", "acc:", "act:", "tns4:")
NAMESPACE_SUFFIXES = (":net",)
TEXT_NODE_KEY = "_"


def _words(value: str) -> list[str]:
    return _WORD_RE.findall(value)


def to_snake_case(value: str) -> str:
    """``"userId"`` / ``"User ID"`` / ``"user-id"`` -> ``"user_id"``."""
    return "_".join(word.lower() for word in _words(value))


def to_camel_case(value: str) -> str:
    """``"user_id"`` / ``"User ID"`` -> ``"userId"``."""
    words = [word.lower() for word in _words(value)]
    if not words:
        return ""
    return words[0] + "".join(word.capitalize() for word in words[1:])


def normalize(subject: Any, target_case: Case = SNAKE) -> Any:
    """Rename mapping keys to ``target_case`` at every nesting level."""
    if target_case == SNAKE:
        convert = to_snake_case
    elif target_case == CAMEL:
        convert = to_camel_case
    else:
        raise ValueError(f"Unknown target case: {target_case!r}")

    def _walk(node: Any) -> Any:
        if isinstance(node, Mapping):
            return {
                (convert(key) if isinstance(key, str) else key): _walk(value)
                for key, value in node.items()
            }
        if isinstance(node, list):
            return [_walk(item) for item in node]
        return node

    return _walk(subject)


@dataclass(frozen=True)
class ParseResult:
    """Outcome of ``parse_repairable``: either ``value`` or ``error`` is set."""

    ok: bool
    value: Any = None
    error: Optional[str] = None


def parse_repairable(text: str) -> ParseResult:
    """Best-effort JSON parsing of possibly malformed text."""
    if not isinstance(text, str) or not text.strip():
        return ParseResult(ok=False, error="empty input")
    try:
        return ParseResult(ok=True, value=json.loads(text))
    except json.JSONDecodeError:
        pass
    repaired = repair_json(text)
    # repair_json yields "" when nothing JSON-like could be recovered
    if not repaired or repaired == '""':
        return ParseResult(ok=False, error="input cannot be repaired into JSON")
    try:
        return ParseResult(ok=True, value=json.loads(repaired))
    except json.JSONDecodeError as exc:
        return ParseResult(ok=False, error=str(exc))


def _strip_key(key: str) -> str:
    for prefix in NAMESPACE_PREFIXES:
        if key.startswith(prefix):
            key = key[len(prefix):]
    for suffix in NAMESPACE_SUFFIXES:
        if key.endswith(suffix):
            key = key[: -len(suffix)]
    return key


def strip_namespace_prefixes(tree: Any) -> Any:
    """Drop namespace prefixes from keys and unwrap single text-value nodes."""
    if isinstance(tree, list):
        return [strip_namespace_prefixes(item) for item in tree]
    if not isinstance(tree, Mapping):
        return tree
    cleaned: dict[str, Any] = {}
    for key, value in tree.items():
        new_key = _strip_key(key) if isinstance(key, str) else key
        if isinstance(value, Mapping) and TEXT_NODE_KEY in value:
            cleaned[new_key] = value[TEXT_NODE_KEY]
        else:
            cleaned[new_key] = strip_namespace_prefixes(value)
    return cleaned


def unwrap_text_nodes(tree: Any) -> Any:
    """Replace every mapping that has a ``"_"`` key with that key's value."""
    if isinstance(tree, list):
        return [unwrap_text_nodes(item) for item in tree]
    if isinstance(tree, Mapping):
        if TEXT_NODE_KEY in tree:
            return tree[TEXT_NODE_KEY]
        return {key: unwrap_text_nodes(value) for key, value in tree.items()}
    return tree


def remove_empty(record: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``record`` without None, empty strings and empty containers."""
    return {
        key: value
        for key, value in record.items()
        if not (value is None or (isinstance(value, (str, list, tuple, dict, set)) and not value))
    }


__all__ = [
    "Case",
    "SNAKE",
    "CAMEL",
    "ParseResult",
    "normalize",
    "to_snake_case",
    "to_camel_case",
    "parse_repairable",
    "strip_namespace_prefixes",
    "unwrap_text_nodes",
    "remove_empty",
]
