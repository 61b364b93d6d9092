from __future__ import annotations

import json
from typing import Any, Optional

import yaml

from rbparse.rbparse_nodes import Node, Position


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode('utf-8')
    return data


def to_builtin(node: Node) -> dict:
    """Converts a tree into plain dicts and lists, keys in a stable order.

    `children`, `comments` and `position` are left out when empty or unset.
    """
    out: dict = {'data': node.data}
    if node.children:
        out['children'] = [to_builtin(child) for child in node.children]
    if node.comments:
        out['comments'] = [to_builtin(c) for c in node.comments]
    if node.position is not None:
        out['position'] = {'line': node.position.line, 'column': node.position.column}
    return out


def from_builtin(data: Any) -> Node:
    """Rebuilds a tree from `to_builtin` output."""
    if not isinstance(data, dict) or 'data' not in data:
        raise ValueError(f"Not a serialized node: {data!r}")
    pos = data.get('position')
    position: Optional[Position] = None
    if pos is not None:
        position = Position(int(pos['line']), int(pos['column']))
    return Node(
        str(data['data']),
        [from_builtin(child) for child in data.get('children') or []],
        [from_builtin(c) for c in data.get('comments') or []],
        position=position,
    )


# --------------------------
# Public API
# --------------------------

def serialize(node: Node, *, fmt: str = 'json', pretty: bool = True) -> str:
    """
    Convert a syntax tree into text.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = to_builtin(node)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


def deserialize(data: bytes | bytearray | str, *, fmt: str = 'json') -> Node:
    """Inverse of `serialize`. Malformed input raises the decoder's own error."""
    text = _norm_text(data)
    f = (fmt or '').lower()
    if f == 'json':
        return from_builtin(json.loads(text))
    if f == 'yaml':
        return from_builtin(yaml.safe_load(text))
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "deserialize",
    "serialize",
    "to_builtin",
    "from_builtin",
]
