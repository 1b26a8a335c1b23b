"""
Converts K# syntax trees to plain data and dumps them as YAML or JSON.
"""
from __future__ import annotations

import dataclasses
import json
from typing import Any, List

import yaml

from ksharp.ksharp_tokens import Token


def to_builtin(node: Any) -> Any:
    """Recursively turns AST nodes into dicts, tokens into their lexemes."""
    if isinstance(node, Token):
        return node.lexeme
    if isinstance(node, list):
        return [to_builtin(item) for item in node]
    if dataclasses.is_dataclass(node) and not isinstance(node, type):
        out = {'node': type(node).__name__}
        for f in dataclasses.fields(node):
            out[f.name] = to_builtin(getattr(node, f.name))
        return out
    if isinstance(node, float) and node.is_integer():
        return int(node)
    return node


def serialize(statements: List[Any], *, fmt: str = 'yaml') -> str:
    """Dumps a parsed program. fmt: 'yaml' | 'json'."""
    f = (fmt or '').lower()
    built = to_builtin(statements)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "to_builtin",
    "serialize",
]
