"""
Expression, statement and argument grammar.

The grammar is threaded through three context modes, each with its own
operator table and its own rule for newlines in front of an operator:

- `statement`: bodies, groups and the program. A newline or `;` is the
  loosest chain operator and the comma is a chain operator binding tighter
  than assignment.
- `argument`: inside `()`, `[]` and `{}`. Newlines never matter, the comma is
  a list separator looser than any operator, labels and `=>` are allowed.
- `command`: the arguments of a call without parentheses. Like `argument`,
  but a newline ends the list.

An operator chain `operand (operator operand)*` is reduced right to left, so
its result is exactly the right-recursive production's result, with the
precedence fixup applied at every reduction.
"""

from typing import Optional

import pyparsing as pp

from rbparse.rbparse_filters import (
    GAP, HORIZONTAL, WHITESPACE, comments_before, no_newline_before, pattern, skip_whitespace_before,
    space_insensitive,
)
from rbparse.rbparse_nodes import BLOCK, GROUP, INDEX, INVOKE, LIST, Node, empty
from rbparse.rbparse_operators import OperatorTable, OperatorTables, unary_key
from rbparse.rbparse_terminals import (
    global_variable, identifier, instance_variable, keyword, label, method_name, number, one_of,
    punctuation, regexp, separator, symbol,
)

STATEMENT = "statement"
ARGUMENT = "argument"
COMMAND = "command"
MODES = (STATEMENT, ARGUMENT, COMMAND)

# At least one blank, then something that can only start an argument.
_COMMAND_START = r"(?:[ \t]|\\\r?\n)+(?=[\w@$(\[]|:[A-Za-z_@$]|[*&!](?=[\w@$(\[:])|\*\*\w)"
_PARAMETER_START = r"[ \t]+(?=[*&A-Za-z_])"
_SAME_LINE_VALUE = HORIZONTAL + r"(?=[^\s,)|#;])"


def _or_empty(expr: pp.ParserElement) -> pp.ParserElement:
    """Optional single-node element; an absent match becomes an empty node at that offset."""
    def _fill(s, loc, toks):
        return toks[0] if toks else empty(loc)
    return pp.Opt(expr).add_parse_action(_fill)


def _node_list(item: pp.ParserElement, comma: pp.ParserElement,
               trailing: bool = False, allow_empty: bool = True) -> pp.ParserElement:
    """`item (comma item)*` as one `","` node. `comma` must already be suppressed."""
    def _build(s, loc, toks):
        offset = toks[0].offset if toks else loc
        return Node(LIST, toks, offset=offset)
    items = item + pp.ZeroOrMore(comma + item)
    if trailing:
        items = items + pp.Opt(comma)
    if allow_empty:
        items = pp.Opt(items)
    return items.add_parse_action(_build)


def _fold(table: OperatorTable, toks) -> Node:
    """Reduces `x0 op1 x1 ... opN xN` from the right, fixing precedence at each step."""
    items = list(toks)
    result = items[-1]
    for index in range(len(items) - 2, 0, -2):
        operator, left = items[index], items[index - 1]
        if isinstance(operator, tuple):
            question, then = operator
            result = table.fixup(question, (left, then), result)
        else:
            result = table.fixup(operator, (left,), result)
    return result


class Grammar:
    """The complete grammar for one parser instance.

    Every element, parse action and failure hook is created here and belongs to
    this instance only. `program` is the entry element.
    """

    def __init__(self, tables: Optional[OperatorTables] = None, on_failure=None):
        self.tables = tables or OperatorTables()
        self._on_failure = on_failure
        self._expressions = {mode: pp.Forward().leave_whitespace() for mode in MODES}
        self._postfix_operand = pp.Forward().leave_whitespace()
        self.statements = self._expressions[STATEMENT]

        self._postfix_operand <<= self._build_postfix(self._build_primary())
        for mode in MODES:
            self._expressions[mode] <<= self._build_chain(mode)
        self.program = self._build_program().parse_with_tabs()

    def expression(self, mode: str = STATEMENT) -> pp.ParserElement:
        return self._expressions[mode]

    # Terminals

    def _terminal(self, element: pp.ParserElement) -> pp.ParserElement:
        if self._on_failure is not None:
            element.set_fail_action(self._on_failure)
        return element

    def _punct(self, text: str, not_followed_by: str = "") -> pp.ParserElement:
        return self._terminal(punctuation(text, not_followed_by))

    def _keyword(self, word: str) -> pp.ParserElement:
        return self._terminal(keyword(word))

    def _closing(self, text: str, skip: str = WHITESPACE) -> pp.ParserElement:
        """The closing token. Yields the comments in front of it as one tuple, possibly empty."""
        def _collect(s, loc, toks):
            return tuple(toks)
        closer = self._keyword(text) if text.isalpha() else self._punct(text)
        return (comments_before(skip) + skip_whitespace_before(closer, skip).suppress()).add_parse_action(_collect)

    def _table(self, mode: str) -> OperatorTable:
        return getattr(self.tables, mode)

    # Primaries

    def _build_primary(self) -> pp.ParserElement:
        primary = pp.MatchFirst([
            self._build_def(),
            self._build_class(),
            self._build_module(),
            self._build_alias(),
            self._terminal(number()),
            self._terminal(symbol()),
            self._terminal(global_variable()),
            self._terminal(instance_variable()),
            self._terminal(regexp()),
            self._terminal(identifier()),
            self._build_group(),
            self._container("[", "]"),
            self._container("{", "}"),
        ])
        return space_insensitive(primary)

    def _build_group(self) -> pp.ParserElement:
        def _build(s, loc, toks):
            opening, body, trailing = toks
            return opening.retag(GROUP).with_children([body.append_comments(trailing)])
        body = _or_empty(skip_whitespace_before(self.statements, GAP))
        return (self._punct("(") + body + self._closing(")", GAP)).add_parse_action(_build)

    def _container(self, opening: str, closing: str) -> pp.ParserElement:
        """Array `[...]` and hash `{...}` literals, tagged with their opening bracket."""
        def _build(s, loc, toks):
            bracket, elements, trailing = toks
            return bracket.with_children([elements.append_comments(trailing)])
        return (self._punct(opening) + self._arguments(ARGUMENT) + self._closing(closing)).add_parse_action(_build)

    # Argument lists

    def _label_pair(self, mode: str) -> pp.ParserElement:
        """`name: value`, as `(":" name value)` with the colon's own offset."""
        def _build(s, loc, toks):
            key, value = toks
            return Node(":", (key, value), offset=key.offset + len(key.data))
        return (space_insensitive(self._terminal(label())) + self._expressions[mode]).add_parse_action(_build)

    def _arguments(self, mode: str) -> pp.ParserElement:
        item = self._label_pair(mode) | self._expressions[mode]
        if mode == COMMAND:
            comma = no_newline_before(self._punct(",")).suppress()
            return _node_list(item, comma, allow_empty=False)
        comma = skip_whitespace_before(self._punct(",")).suppress()
        return _node_list(item, comma, trailing=True)

    # Postfix chain

    def _build_postfix(self, primary: pp.ParserElement) -> pp.ParserElement:
        def _apply(s, loc, toks):
            result = toks[0]
            for suffix in toks[1:]:
                result = suffix(result)
            return result
        suffix = pp.MatchFirst([
            self._call_suffix(INVOKE, "(", ")"),
            self._call_suffix(INDEX, "[", "]"),
            self._member_suffix(),
            self._scope_suffix(),
            self._block_suffix(),
        ])
        return (primary + pp.ZeroOrMore(suffix)).add_parse_action(_apply)

    def _call_suffix(self, tag: str, opening: str, closing: str) -> pp.ParserElement:
        """`callee(args)` or `receiver[args]`; the bracket must touch the callee."""
        def _build(s, loc, toks):
            bracket, arguments, trailing = toks
            arguments = arguments.append_comments(trailing)
            return lambda callee: bracket.retag(tag).with_children([callee, arguments])
        return (self._punct(opening) + self._arguments(ARGUMENT) + self._closing(closing)).add_parse_action(_build)

    def _member_suffix(self) -> pp.ParserElement:
        def _build(s, loc, toks):
            dot, name = toks
            return lambda receiver: dot.with_children([receiver, name])
        dot = space_insensitive(self._punct("&.") | self._punct(".", "."))
        name = skip_whitespace_before(self._terminal(method_name()))
        return (dot + name).add_parse_action(_build)

    def _scope_suffix(self) -> pp.ParserElement:
        def _build(s, loc, toks):
            colons, name = toks
            return lambda scope: colons.with_children([scope, name])
        return (self._punct("::") + self._terminal(method_name())).add_parse_action(_build)

    def _block_suffix(self) -> pp.ParserElement:
        """A brace block joins the invocation before it, or wraps its callee in a new one."""
        def _build(s, loc, toks):
            block = toks[0]

            def _attach(callee):
                if callee.data == INVOKE and len(callee.children) == 2:
                    return callee.with_children(callee.children + (block,))
                return Node(INVOKE, (callee, Node(LIST, offset=block.offset), block), offset=block.offset)
            return _attach
        return (pattern(HORIZONTAL).suppress() + self._block()).add_parse_action(_build)

    def _block(self) -> pp.ParserElement:
        def _build(s, loc, toks):
            brace, params, body, trailing = toks
            return brace.retag(BLOCK).with_children([params, body.append_comments(trailing)])
        bar = skip_whitespace_before(self._punct("|")).suppress()
        comma = skip_whitespace_before(self._punct(",")).suppress()
        params = _or_empty(bar + self._parameters(self._postfix_operand, comma) + bar)
        body = _or_empty(skip_whitespace_before(self.statements, GAP))
        return (self._punct("{") + params + body + self._closing("}", GAP)).add_parse_action(_build)

    # Parameters

    def _parameters(self, default: pp.ParserElement, comma: pp.ParserElement,
                    allow_empty: bool = True) -> pp.ParserElement:
        """Formal parameters: `a`, `a = v`, `*a`, `**a`, `&a`, `a:` and `a: v`."""
        def _splat(s, loc, toks):
            operator, name = toks
            return operator.with_children([name])

        def _keyword_parameter(s, loc, toks):
            key, *value = toks
            return Node(":", (key, *value), offset=key.offset + len(key.data))

        def _named(s, loc, toks):
            if len(toks) == 1:
                return toks[0]
            name, equals, value = toks
            return equals.with_children([name, value])

        splat = (space_insensitive(self._terminal(one_of(["**", "*", "&"], "splat")))
                 + self._terminal(identifier())).add_parse_action(_splat)
        keyword_parameter = (space_insensitive(self._terminal(label()))
                             + pp.Opt(pattern(_SAME_LINE_VALUE).suppress() + default)
                             ).add_parse_action(_keyword_parameter)
        named = (space_insensitive(self._terminal(identifier()))
                 + pp.Opt(no_newline_before(self._punct("=", "=~>")) + default)
                 ).add_parse_action(_named)
        return _node_list(splat | keyword_parameter | named, comma, allow_empty=allow_empty)

    # Keyword compound forms

    def _body(self) -> pp.ParserElement:
        """Statements up to `end`, or an empty node when there are none.

        Comments right before `end` are appended to the body node.
        """
        def _build(s, loc, toks):
            body, trailing = toks
            return body.append_comments(trailing)
        statements = _or_empty(skip_whitespace_before(self.statements, GAP))
        return (statements + self._closing("end", GAP)).add_parse_action(_build)

    def _build_def(self) -> pp.ParserElement:
        def _name(s, loc, toks):
            if len(toks) == 1:
                return toks[0]
            receiver, dot, name = toks
            return dot.with_children([receiver, name])

        def _build(s, loc, toks):
            word, name, params, body = toks
            return word.with_children([name, params, body])

        def _parenthesized(s, loc, toks):
            params, trailing = toks
            return params.append_comments(trailing)

        name = (space_insensitive(self._terminal(method_name()))
                + pp.Opt(self._punct(".") + self._terminal(method_name()))).add_parse_action(_name)
        comma = skip_whitespace_before(self._punct(",")).suppress()
        parenthesized = (no_newline_before(self._punct("(")).suppress()
                         + self._parameters(self._expressions[ARGUMENT], comma)
                         + self._closing(")")).add_parse_action(_parenthesized)
        bare = (pattern(_PARAMETER_START).suppress()
                + self._parameters(self._expressions[COMMAND], no_newline_before(self._punct(",")).suppress(),
                                   allow_empty=False))
        params = _or_empty(parenthesized | bare)
        return (self._keyword("def") + name + params + self._body()).add_parse_action(_build)

    def _build_class(self) -> pp.ParserElement:
        def _singleton(s, loc, toks):
            shift, target = toks
            return shift.with_children([target])

        def _parent(s, loc, toks):
            less, parent = toks
            return parent.with_comments(less.comments)

        def _build(s, loc, toks):
            word, *parts = toks
            return word.with_children(parts)

        singleton = (space_insensitive(self._punct("<<")) + self._postfix_operand).add_parse_action(_singleton)
        parent = _or_empty((space_insensitive(self._punct("<", "<=")) + self._postfix_operand).add_parse_action(_parent))
        named = self._postfix_operand + parent
        return (self._keyword("class") + (singleton | named) + self._body()).add_parse_action(_build)

    def _build_module(self) -> pp.ParserElement:
        def _build(s, loc, toks):
            word, name, body = toks
            return word.with_children([name, body])
        return (self._keyword("module") + self._postfix_operand + self._body()).add_parse_action(_build)

    def _build_alias(self) -> pp.ParserElement:
        def _build(s, loc, toks):
            word, new_name, old_name = toks
            return word.with_children([new_name, old_name])
        name = no_newline_before(
            self._terminal(symbol()) | self._terminal(global_variable()) | self._terminal(method_name()))
        return (self._keyword("alias") + name + name).add_parse_action(_build)

    # Operator chains

    def _operand(self, mode: str) -> pp.ParserElement:
        table = self._table(mode)

        def _zip(s, loc, toks):
            operator, operand = toks
            return table.fixup(operator, (), operand, key=unary_key(operator.data))

        prefix = space_insensitive(self._terminal(one_of(table.unary_symbols(), "unary operator")))
        unary = (prefix + self._expressions[mode]).add_parse_action(_zip)
        if mode == STATEMENT:
            return unary | self._command_call()
        return unary | self._postfix_operand

    def _command_call(self) -> pp.ParserElement:
        """`callee arg, ...` with no parentheses, as an ordinary invocation."""
        def _build(s, loc, toks):
            if len(toks) == 1:
                return toks[0]
            callee, arguments = toks
            return Node(INVOKE, (callee, arguments), offset=callee.offset)
        arguments = pattern(_COMMAND_START).suppress() + self._arguments(COMMAND)
        return (self._postfix_operand + pp.Opt(arguments)).add_parse_action(_build)

    def _ternary_head(self, near) -> pp.ParserElement:
        """`? then :`, kept as a (question, then) pair until the chain is folded.

        Comments in front of the colon are appended to `then`.
        """
        def _build(s, loc, toks):
            question, then, colon = toks
            return (question, then.append_comments(colon.comments))
        colon = space_insensitive(self._punct(":", ":"))
        return (near(self._punct("?")) + self._expressions[ARGUMENT] + colon).add_parse_action(_build)

    def _chain_operator(self, mode: str) -> pp.ParserElement:
        near = space_insensitive if mode == ARGUMENT else no_newline_before
        binary = self._terminal(one_of(self._table(mode).binary_symbols(), "operator"))
        alternatives = [near(binary), self._ternary_head(near)]
        if mode == STATEMENT:
            alternatives.append(near(self._punct(",")))
            alternatives.append(near(self._terminal(separator())))
        return pp.MatchFirst(alternatives)

    def _build_chain(self, mode: str) -> pp.ParserElement:
        table = self._table(mode)

        def _reduce(s, loc, toks):
            return _fold(table, toks)
        operand = self._operand(mode)
        return (operand + pp.ZeroOrMore(self._chain_operator(mode) + operand)).add_parse_action(_reduce)

    # Program

    def _build_program(self) -> pp.ParserElement:
        def _build(s, loc, toks):
            root, *trailing = toks
            return root.append_comments(trailing) if trailing else root
        root = _or_empty(skip_whitespace_before(self.statements, GAP))
        trailing = comments_before(GAP)
        end = self._terminal(pp.StringEnd().leave_whitespace().set_name("end of input"))
        return (root + trailing + skip_whitespace_before(end, GAP)).add_parse_action(_build)
