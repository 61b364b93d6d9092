"""
Lexical-insensitivity filters.

There is no separate lexer: whitespace and comments are skipped at the grammar
level, right before each terminal, so that a comment ends up attached to the
syntactically nearest node that follows it. Newline significance is decided by
the production choosing a filter, never by the filter itself.
"""

import re

import pyparsing as pp

from rbparse.rbparse_nodes import BLOCK_COMMENT, LINE_COMMENT, comment

# Skip patterns
WHITESPACE = r"\s*"
GAP = r"[\s;]*"
HORIZONTAL = r"(?:[ \t\r\f]|\\\r?\n)*"

_LINE_COMMENT_LEAD = re.compile(r"#[ \t]*")


def pattern(regex: str, flags: int = 0) -> pp.ParserElement:
    """A raw regex element that never skips whitespace on its own."""
    return pp.Regex(regex, flags).leave_whitespace()


def records_position(parser: pp.ParserElement) -> pp.ParserElement:
    """Tags the produced node with the offset at which the match began."""
    def _record(s, loc, toks):
        return toks[0].at(loc)
    return pp.And([parser]).add_parse_action(_record)


def line_comment() -> pp.ParserElement:
    def _build(s, loc, toks):
        text = toks[0]
        lead = _LINE_COMMENT_LEAD.match(text).end()
        return comment(LINE_COMMENT, text[lead:].rstrip("\r"), loc, loc + lead)
    return pattern(r"#[^\n]*").add_parse_action(_build).set_name("comment")


def block_comment() -> pp.ParserElement:
    """`=begin` ... `=end`, both markers at the start of a line."""
    def _build(s, loc, toks):
        text = toks[0]
        start = text.index("\n") + 1
        stop = max(text.rindex("\n=end"), start)
        return comment(BLOCK_COMMENT, text[start:stop], loc, loc + start)
    return pattern(r"^=begin(?!\w)[^\n]*\n(?:.*?\n)?=end(?!\w)[^\n]*", re.MULTILINE | re.DOTALL) \
        .add_parse_action(_build).set_name("=begin comment")


def skip_whitespace_before(parser: pp.ParserElement, skip: str = WHITESPACE) -> pp.ParserElement:
    return pattern(skip).suppress() + parser


def comments_before(skip: str = WHITESPACE) -> pp.ParserElement:
    """Zero or more comments, each preceded by `skip`, as comment nodes in source order."""
    return pp.ZeroOrMore(skip_whitespace_before(block_comment() | line_comment(), skip))


def skip_comment_before(parser: pp.ParserElement, skip: str = WHITESPACE) -> pp.ParserElement:
    """Consumes leading comments and attaches them, in order, to the node `parser` produces."""
    def _attach(s, loc, toks):
        *comments, node = toks
        return node.with_comments(comments) if comments else node
    return (comments_before(skip) + parser).add_parse_action(_attach)


def space_insensitive(parser: pp.ParserElement, skip: str = WHITESPACE) -> pp.ParserElement:
    return skip_comment_before(skip_whitespace_before(parser, skip), skip)


def no_newline_before(parser: pp.ParserElement) -> pp.ParserElement:
    """Horizontal whitespace and backslash continuations only."""
    return skip_whitespace_before(parser, HORIZONTAL)
