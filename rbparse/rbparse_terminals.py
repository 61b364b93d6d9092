"""
Terminal and literal parsers.

Each factory returns a fresh element that produces exactly one leaf node,
tagged with its starting offset. String literals are not recognized.
"""

import re

import pyparsing as pp

from rbparse.rbparse_filters import pattern, records_position
from rbparse.rbparse_nodes import Node

RESERVED_WORDS = (
    "alias", "and", "begin", "class", "def", "do", "else", "elsif", "end",
    "ensure", "for", "if", "in", "module", "not", "or", "rescue", "then",
    "undef", "unless", "until", "when", "while",
)

_WORD_END = r"(?![\w?!])"
_RESERVED = r"(?!(?:%s)%s|defined\?)" % ("|".join(RESERVED_WORDS), _WORD_END)
_NAME = r"[A-Za-z_]\w*"
_IDENTIFIER = _RESERVED + _NAME + r"(?:[?!](?!=))?"
_GLOBAL = r"\$(?:\w+|[!@&`'+~=/\\,;.<>_*$?:\"])"
_INSTANCE = r"@@?" + _NAME
_OPERATOR_METHOD = r"\[\]=?|<=>|===?|=~|!=|!~|<<|>>|<=|>=|\*\*|[-+]@|[-+*/%<>!~^&|]"
_METHOD = _NAME + r"(?:[?!](?!=)|=(?=\())?|" + _OPERATOR_METHOD
_NUMBER = (
    r"0[xX][0-9a-fA-F_]+"
    r"|0[bB][01_]+"
    r"|0[oO]?[0-7_]+(?![.\deE])"
    r"|\d[\d_]*(?:\.\d[\d_]*)?(?:[eE][+-]?\d+)?"
)


def _leaf(regex: str, name: str, flags: int = 0) -> pp.ParserElement:
    def _build(s, loc, toks):
        return Node(toks[0])
    return records_position(pattern(regex, flags).add_parse_action(_build)).set_name(name)


def identifier() -> pp.ParserElement:
    """Word characters with an optional ?/! suffix; reserved words never match."""
    return _leaf(_IDENTIFIER, "identifier")


def global_variable() -> pp.ParserElement:
    return _leaf(_GLOBAL, "global variable")


def instance_variable() -> pp.ParserElement:
    return _leaf(_INSTANCE, "instance variable")


def symbol() -> pp.ParserElement:
    """`:` + identifier, global, instance variable or operator method, as one `:name` token."""
    return _leaf(r":(?:%s|%s|%s)" % (_GLOBAL, _INSTANCE, _METHOD), "symbol")


def number() -> pp.ParserElement:
    return _leaf(_NUMBER, "number")


def regexp() -> pp.ParserElement:
    """`/.../` with backslash escapes. No flags, no escape classes."""
    return _leaf(r"/(?:[^/\\\n]|\\.)*/", "regexp")


def method_name() -> pp.ParserElement:
    """Anything that may follow `def` or `.`: keywords included, setters and operators too."""
    return _leaf(_METHOD, "method name")


def label() -> pp.ParserElement:
    """A hash label `name:`. The node holds the bare name."""
    def _build(s, loc, toks):
        return Node(toks[0][:-1])
    element = pattern(_NAME + r"[?!]?:(?!:)").add_parse_action(_build)
    return records_position(element).set_name("label")


def keyword(word: str) -> pp.ParserElement:
    boundary = _WORD_END if re.match(r"\w", word) else ""
    return _leaf(re.escape(word) + boundary, repr(word))


def punctuation(text: str, not_followed_by: str = "") -> pp.ParserElement:
    regex = re.escape(text)
    if not_followed_by:
        regex += "(?![%s])" % re.escape(not_followed_by)
    return _leaf(regex, repr(text))


def one_of(symbols, name: str) -> pp.ParserElement:
    """Longest-match alternation over operator spellings, word operators bounded."""
    alternatives = []
    for symbol_text in sorted(symbols, key=len, reverse=True):
        alternative = re.escape(symbol_text)
        if re.match(r"\w", symbol_text):
            alternative += _WORD_END
        alternatives.append(alternative)
    return _leaf("|".join(alternatives), name)


def separator() -> pp.ParserElement:
    """A statement break: `;` or newline (plus any run of them), or the start of a trailing comment."""
    def _build(s, loc, toks):
        return Node(";")
    element = pattern(r"[;\n][\s;]*|(?=#)").add_parse_action(_build)
    return records_position(element).set_name("statement separator")
