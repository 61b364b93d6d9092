"""
Maps raw character offsets to line/column positions.
"""

from typing import Tuple

from rbparse.rbparse_nodes import Node, Position


class PositionTable:
    """Offset -> Position index for every offset in 0..len(text), built in one pass.

    A newline bumps the line counter at the newline itself and is recorded with
    column -1, so the character after it is column 0 of the new line. No node is
    ever anchored on a newline, the convention only keeps the indexing simple.
    """

    def __init__(self, text: str):
        entries = []
        line, column = 0, 0
        for ch in text:
            if ch == "\n":
                line += 1
                column = -1
            entries.append(Position(line, column))
            column += 1
        entries.append(Position(line, column))
        self._entries: Tuple[Position, ...] = tuple(entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, offset: int) -> Position:
        if offset < 0:
            raise IndexError(f"negative offset {offset}")
        return self._entries[offset]

    def position_of(self, offset: int) -> Position:
        """Like indexing, but clamps offsets past the end of the text."""
        return self._entries[min(max(offset, 0), len(self._entries) - 1)]


def resolve_positions(node: Node, table: PositionTable) -> Node:
    """Rewrites raw offsets into resolved positions across the whole tree.

    Post-order over children and comments, on an explicit stack since a long
    operator chain nests as deep as it is long. Nodes that already carry a
    position keep it, so running the pass twice changes nothing.
    """
    done = []
    stack = [(node, False)]
    while stack:
        current, expanded = stack.pop()
        if not expanded:
            stack.append((current, True))
            stack.extend((c, False) for c in reversed(current.comments))
            stack.extend((child, False) for child in reversed(current.children))
            continue
        split = len(done) - len(current.children) - len(current.comments)
        parts = done[split:]
        del done[split:]
        position = current.position
        if position is None and current.offset is not None:
            position = table.position_of(current.offset)
        count = len(current.children)
        done.append(current.resolved(position, parts[:count], parts[count:]))
    return done[0]
