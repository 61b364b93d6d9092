"""
Operator tables and the precedence fixup.

The grammar is combinatorial, so every binary production recurses into a full
expression on its right and the raw tree leans right. Precedence and
associativity are restored afterwards by rotating each reduction against the
operator of its right operand, instead of encoding levels in the grammar.

Levels come from ordered symbol lists, tightest binding first. A BOUNDARY
inside a list, and the end of each list, moves to the next level. Unary prefix
operators are keyed with the UNARY suffix so that `-@` and binary `-` have
separate levels.
"""

from types import MappingProxyType
from typing import Iterable, Optional, Sequence

from rbparse.rbparse_nodes import LIST, SEQUENCE, Node

BOUNDARY = None
UNARY = "@"

EXPRESSION_OPERATORS = (
    ".", "::", BOUNDARY,
    "!@", "~@", "+@", "-@", BOUNDARY,
    "**", BOUNDARY,
    "*", "/", "%", BOUNDARY,
    "+", "-", BOUNDARY,
    "<<", ">>", BOUNDARY,
    "&", BOUNDARY,
    "|", "^", BOUNDARY,
    ">", ">=", "<", "<=", BOUNDARY,
    "<=>", "==", "===", "!=", "=~", "!~", BOUNDARY,
    "&&", BOUNDARY,
    "||", BOUNDARY,
    "..", "...", BOUNDARY,
    "?",
)

SPLAT_OPERATORS = ("*@", "**@", "&@")

MODIFIER_RESCUE = ("rescue",)

ASSIGNMENT_OPERATORS = (
    "=", "+=", "-=", "*=", "/=", "%=", "**=", "<<=", ">>=",
    "&&=", "||=", "&=", "|=", "^=",
)

STATEMENT_OPERATORS = (
    "defined?@", BOUNDARY,
    "not@", BOUNDARY,
    "and", "or",
)

MODIFIER_OPERATORS = ("if", "unless", "while", "until")

# Statement comma: tighter than assignment, so `x, y = 1, 2` is one assignment.
STATEMENT_COMMA = (LIST,)
STATEMENT_SEPARATOR = (SEQUENCE,)
HASH_PAIR = ("=>",)

RIGHT_ASSOCIATIVE = frozenset(
    [s + UNARY for s in ("!", "~", "+", "-", "*", "**", "&", "defined?", "not")]
    + ["**", "?"]
    + list(ASSIGNMENT_OPERATORS)
)

# Produced by dedicated productions, never by the generic binary operator terminal.
_SPECIAL_BINARY = frozenset([".", "::", "?", LIST, SEQUENCE])

# Operators whose chains collapse into one n-ary node.
LIST_OPERATORS = frozenset([LIST, SEQUENCE])


def unary_key(symbol: str) -> str:
    return symbol + UNARY


class OperatorTable:
    """Immutable precedence/associativity lookup for one grammar context."""

    def __init__(self, *symbol_lists: Sequence[Optional[str]], right_associative: Iterable[str] = RIGHT_ASSOCIATIVE):
        levels = {}
        level = 0
        for symbols in symbol_lists:
            for symbol_text in symbols:
                if symbol_text is BOUNDARY:
                    level += 1
                else:
                    levels.setdefault(symbol_text, level)
            level += 1
        self._levels = MappingProxyType(levels)
        self._right = frozenset(right_associative)

    def __contains__(self, key: str) -> bool:
        return key in self._levels

    def precedence(self, key: str) -> Optional[int]:
        return self._levels.get(key)

    def is_right_associative(self, key: str) -> bool:
        return key in self._right

    def binary_symbols(self):
        """Spellings the generic binary operator terminal should recognize."""
        return [k for k in self._levels if not k.endswith(UNARY) and k not in _SPECIAL_BINARY]

    def unary_symbols(self):
        return [k[:-len(UNARY)] for k in self._levels if k.endswith(UNARY)]

    def binds_before(self, outer: str, inner: str) -> bool:
        """True when `outer` must be applied before `inner`, i.e. `outer` binds at least as tightly.

        Ties go to `outer` only when it associates left to right.
        """
        outer_level = self._levels[outer]
        inner_level = self._levels[inner]
        if outer_level != inner_level:
            return outer_level < inner_level
        return not self.is_right_associative(outer)

    def rotates(self, key: str, operand: Node) -> bool:
        """Whether a reduction of `key` must rotate into `operand`.

        Only operator nodes from the same chain qualify: two or more children and a
        binary spelling known to this table. Groups, calls and unary nodes never do.
        """
        if len(operand.children) < 2 or operand.data not in self._levels:
            return False
        return self.binds_before(key, operand.data)

    def fixup(self, operator: Node, leading: Sequence[Node], last: Node, key: Optional[str] = None) -> Node:
        """Reduces `operator` over `leading + [last]`, rotating left as precedence requires.

        `(op1 L (op2 M R))` becomes `(op2 (op1 L M) R)` for as long as op1 binds
        before op2, walking down the left spine of `last` so that the newly nested
        subtree is fixed as well. Every node keeps its comments and offset.
        """
        key = key or operator.data
        spine = []
        while self.rotates(key, last):
            spine.append(last)
            last = last.children[0]
        result = join(operator, (*leading, last))
        for parent in reversed(spine):
            result = join(parent, (result, *parent.children[1:]))
        return result


def join(operator: Node, children: Sequence[Node]) -> Node:
    """Attaches children to an operator node, splicing same-operator lists flat."""
    first = children[0] if children else None
    if (operator.data in LIST_OPERATORS and first is not None
            and first.data == operator.data and len(first.children) >= 2):
        return first.with_children(first.children + tuple(children[1:]))
    return operator.with_children(children)


class OperatorTables:
    """The precedence configuration handed to the grammar.

    `statement` governs bodies and groups: newline/`;` separate statements and
    the comma binds tighter than assignment. `argument` governs argument lists
    and container literals: the comma is a plain separator looser than every
    operator, `=>` pairs are allowed, statement modifiers are not. `command`
    governs the arguments of a call written without parentheses, which end at
    the line break and never take `and`/`or`/`not`.
    """

    def __init__(self, statement: Optional[OperatorTable] = None, argument: Optional[OperatorTable] = None,
                 command: Optional[OperatorTable] = None):
        self.statement = statement or OperatorTable(
            EXPRESSION_OPERATORS, SPLAT_OPERATORS, MODIFIER_RESCUE, STATEMENT_COMMA,
            ASSIGNMENT_OPERATORS, STATEMENT_OPERATORS, MODIFIER_OPERATORS, STATEMENT_SEPARATOR,
        )
        self.argument = argument or OperatorTable(
            EXPRESSION_OPERATORS, SPLAT_OPERATORS, ASSIGNMENT_OPERATORS, STATEMENT_OPERATORS, HASH_PAIR,
        )
        self.command = command or OperatorTable(
            EXPRESSION_OPERATORS, SPLAT_OPERATORS, ASSIGNMENT_OPERATORS, HASH_PAIR,
        )
