"""
Top-level parse entry point.

`parse()` coerces its input to text once, runs the grammar, and resolves every
raw offset into a line/column position. A failed parse raises `ParseError`
carrying the furthest offset any terminal was attempted at.
"""

import os
import sys
from typing import List, Optional

import pyparsing as pp

from rbparse.rbparse_grammar import Grammar
from rbparse.rbparse_nodes import Node, Position
from rbparse.rbparse_operators import OperatorTables
from rbparse.rbparse_positions import PositionTable, resolve_positions


def _dbg(*parts):
    if os.environ.get("RBPARSE_DEBUG"):
        print("[DBG]", *parts, file=sys.stderr)


class ParseError(Exception):
    """The source did not match the grammar.

    `offset` is the furthest character offset reached across every attempted
    alternative, `position` its resolved line/column (0-based), `expected` the
    names of the terminals that failed there.
    """

    def __init__(self, message: str, offset: int, position: Position,
                 expected: Optional[List[str]] = None, source: str = ""):
        super().__init__(message)
        self.message = message
        self.offset = offset
        self.position = position
        self.expected = list(expected or [])
        self.source = source

    @property
    def line(self) -> int:
        """1-based line of the failure, as shown to users."""
        return self.source.count("\n", 0, self.offset) + 1

    @property
    def column(self) -> int:
        """1-based column of the failure, as shown to users."""
        return self.offset - (self.source.rfind("\n", 0, self.offset) + 1) + 1

    def format_error(self) -> str:
        """Formats the message with its location and a source excerpt."""
        header = f"ParseError: {self.message} (line {self.line}, col {self.column})"
        context = _source_context(self.source, self.line, self.column)
        return f"{header}\n{context}" if context else header


def _source_context(source: str, line: int, col: Optional[int], radius: int = 2) -> str:
    lines = source.splitlines()
    if line == len(lines) + 1 and source.endswith("\n"):
        lines.append("")
    if not line or line < 1 or line > len(lines):
        return ""
    start = max(1, line - radius)
    end = min(len(lines), line + radius)
    width = len(str(end))
    out = []
    for i in range(start, end + 1):
        prefix = ">" if i == line else " "
        ln = str(i).rjust(width)
        out.append(f"{prefix} {ln} | {lines[i - 1]}")
        if i == line and col is not None:
            caret = " " * max(col - 1, 0)
            out.append(f"  {' ' * width} | {caret}^")
    return "\n".join(out)


class _FurthestFailure:
    """Fail action shared by every terminal of one grammar."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.offset = -1
        self.expected: List[str] = []

    def record(self, s, loc, expr, err):
        if loc > self.offset:
            self.offset = loc
            self.expected = [expr.name]
        elif loc == self.offset and expr.name not in self.expected:
            self.expected.append(expr.name)


def _coerce(source) -> str:
    if source is None:
        raise TypeError("parse() needs source text, got None")
    if isinstance(source, str):
        return source
    if isinstance(source, (bytes, bytearray)):
        return bytes(source).decode("utf-8")
    return str(source)


def _describe(text: str, offset: int) -> str:
    if offset >= len(text):
        return "end of input"
    snippet = text[offset:offset + 12].split("\n", 1)[0]
    return repr(snippet) if snippet else "end of line"


class Parser:
    """Parses source text into a position-resolved syntax tree.

    Each instance owns its grammar, so separate parsers never share state.
    """

    def __init__(self, tables: Optional[OperatorTables] = None):
        self._failures = _FurthestFailure()
        self.grammar = Grammar(tables, on_failure=self._failures.record)

    def parse(self, source) -> Node:
        text = _coerce(source)
        self._failures.reset()
        try:
            raw = self.grammar.program.parse_string(text)[0]
        except pp.ParseBaseException as e:
            raise self._error(text, e) from e
        return resolve_positions(raw, PositionTable(text))

    def _error(self, text: str, exc: pp.ParseBaseException) -> ParseError:
        if self._failures.offset >= exc.loc:
            offset, expected = self._failures.offset, self._failures.expected
        else:
            offset, expected = exc.loc, [exc.msg]
        found = _describe(text, offset)
        if expected:
            message = f"Expected {' or '.join(expected)}, found {found}"
        else:
            message = f"Unexpected {found}"
        _dbg("parse failed", "offset", offset, "pyparsing loc", exc.loc, "expected", expected)
        position = PositionTable(text).position_of(offset)
        return ParseError(message, offset, position, expected, text)


def parse(source, tables: Optional[OperatorTables] = None) -> Node:
    """Parses `source` (text, UTF-8 bytes, or anything with a string form) into a tree."""
    return Parser(tables).parse(source)
