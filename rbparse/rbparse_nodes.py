"""
Defines the syntax tree node used by the rbparse grammar.

A node is one grammar production or one terminal token. Leaves have no
children; composites name an operator, keyword form or structural tag in
`data`. Every node also carries the comments that preceded it in the source
and, once the tree has been resolved, its original line and column.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

# Structural tags
INVOKE = "()"
HASH = "{"
ARRAY = "["
INDEX = "[]"
BLOCK = "{}"
GROUP = "("
LIST = ","
SEQUENCE = ";"
EMPTY = ""

# Comment kinds
LINE_COMMENT = "#"
BLOCK_COMMENT = "=begin"


@dataclass(frozen=True)
class Position:
    """A resolved source location. Lines are 0-based, columns 0-based with -1 for a newline."""
    line: int
    column: int


class Node:
    """An immutable syntax tree node."""

    __slots__ = ("data", "children", "comments", "offset", "position")

    def __init__(self, data: str, children: Iterable['Node'] = (), comments: Iterable['Node'] = (),
                 offset: Optional[int] = None, position: Optional[Position] = None):
        self.data = data
        self.children: Tuple['Node', ...] = tuple(children)
        self.comments: Tuple['Node', ...] = tuple(comments)
        self.offset = offset
        self.position = position

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def is_empty(self) -> bool:
        return self.data == EMPTY and not self.children

    def _copy(self, **changes) -> 'Node':
        fields = {
            "data": self.data,
            "children": self.children,
            "comments": self.comments,
            "offset": self.offset,
            "position": self.position,
        }
        fields.update(changes)
        return Node(**fields)

    def with_children(self, children: Iterable['Node']) -> 'Node':
        return self._copy(children=children)

    def with_comments(self, comments: Iterable['Node']) -> 'Node':
        """Returns a copy with `comments` placed before the ones already attached."""
        return self._copy(comments=tuple(comments) + self.comments)

    def append_comments(self, comments: Iterable['Node']) -> 'Node':
        return self._copy(comments=self.comments + tuple(comments))

    def at(self, offset: int) -> 'Node':
        return self._copy(offset=offset)

    def retag(self, data: str) -> 'Node':
        return self._copy(data=data)

    def resolved(self, position: Position, children: Iterable['Node'], comments: Iterable['Node']) -> 'Node':
        return self._copy(position=position, children=children, comments=comments)

    def __eq__(self, other):
        if not isinstance(other, Node):
            return NotImplemented
        pairs = [(self, other)]
        while pairs:
            a, b = pairs.pop()
            if a.data != b.data or len(a.children) != len(b.children):
                return False
            pairs.extend(zip(a.children, b.children))
        return True

    __hash__ = None

    def __repr__(self) -> str:
        if not self.children:
            return f"Node({self.data!r})"
        return f"Node({self.data!r}, {list(self.children)!r})"


def empty(offset: Optional[int] = None) -> Node:
    """The placeholder for an absent parameter list, parent class or body."""
    return Node(EMPTY, offset=offset)


def comment(kind: str, text: str, offset: int, text_offset: int) -> Node:
    return Node(kind, (Node(text, offset=text_offset),), offset=offset)
