"""
A pretty-printer for rbparse syntax trees.
"""
import re

from rbparse.rbparse_nodes import Node

_BARE_ATOM = re.compile(r'[^\s()"\\{}]+')


class Printer:
    """Formats syntax trees as S-expressions, e.g. `("+" 1 ("*" 2 3))`.

    Composite tags are always quoted, leaves only when they would not read back
    as a single atom. The empty node prints as `()`.
    """

    def __init__(self, indent_width=2, width=80):
        self._indent_char = " " * indent_width
        self.width = width

    def pformat(self, node: Node, show_positions=False, show_comments=False, level=0) -> str:
        """Public entry point to format a tree."""
        # Children are formatted before their parent, on an explicit stack.
        done = []
        stack = [(node, level, False)]
        while stack:
            current, depth, expanded = stack.pop()
            if current.children and not expanded:
                stack.append((current, depth, True))
                stack.extend((child, depth + 1, False) for child in reversed(current.children))
                continue
            split = len(done) - len(current.children)
            children = done[split:]
            del done[split:]
            done.append(self._pformat(current, children, depth, show_positions, show_comments))
        return done[0]

    def _pformat(self, node, children, level, show_positions, show_comments):
        if node.is_empty:
            text = "()"
        elif node.is_leaf:
            text = self._pformat_atom(node.data) + self._pformat_position(node, show_positions)
        else:
            text = self._pformat_composite(node, children, level, show_positions)
        if show_comments and node.comments:
            return self._pformat_comments(node) + " " + text
        return text

    def _pformat_atom(self, data):
        if _BARE_ATOM.fullmatch(data):
            return data
        return self._quote(data)

    def _quote(self, data):
        escaped = data.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
        return f'"{escaped}"'

    def _pformat_position(self, node, show_positions):
        if not show_positions or node.position is None:
            return ""
        return f"@{node.position.line}:{node.position.column}"

    def _pformat_comments(self, node):
        parts = [f"{c.data} {self._quote(c.children[0].data)}" for c in node.comments]
        return "{" + ", ".join(parts) + "}"

    def _pformat_composite(self, node, children, level, show_positions):
        head = "(" + self._quote(node.data) + self._pformat_position(node, show_positions)
        flat = head + " " + " ".join(children) + ")"
        indent = len(self._indent_char) * level
        if "\n" not in flat and indent + len(flat) <= self.width:
            return flat
        # One child per line, each indented one level past the opening paren.
        inner = self._indent_char * (level + 1)
        lines = [head] + [inner + child for child in children]
        return "\n".join(lines) + ")"
