import pytest

from rbparse.rbparse_nodes import BLOCK_COMMENT, LINE_COMMENT, Node, Position
from rbparse.rbparse_parser import ParseError, Parser, parse
from rbparse.rbparse_positions import PositionTable, resolve_positions
from rbparse.rbparse_printer import Printer

# --- Test Setup and Fixtures ---


@pytest.fixture(scope="module")
def parser():
    """One parser reused across the module; parses must not leak into each other."""
    return Parser()


def sexp(node: Node) -> str:
    return Printer(width=10_000).pformat(node)


def walk(node: Node):
    yield node
    for child in node.children:
        yield from walk(child)
    for c in node.comments:
        yield from walk(c)


# --- Test Cases ---

# Each entry is a tuple: (test_id, source_code, expected_tree)
TEST_CASES = [
    ("empty_program", "", "()"),
    ("only_separators", ";\n;", "()"),
    ("single_number", "42", "42"),
    ("mul_binds_tighter", "1 + 2 * 3", '("+" 1 ("*" 2 3))'),
    ("rotation_left", "1 * 2 + 3", '("+" ("*" 1 2) 3)'),
    ("power_right_assoc", "2 ** 3 ** 2", '("**" 2 ("**" 3 2))'),
    ("minus_left_assoc", "1 - 2 - 3", '("-" ("-" 1 2) 3)'),
    ("and_before_or", "a && b || c", '("||" ("&&" a b) c)'),
    ("or_then_and", "a || b && c", '("||" a ("&&" b c))'),
    ("assignment_right_assoc", "x = y = 1", '("=" x ("=" y 1))'),
    ("compound_assignment", "@count += 1", '("+=" @count 1)'),
    ("modifier_if", "x = 1 if c", '("if" ("=" x 1) c)'),
    ("modifier_unless", "return unless ok", '("unless" return ok)'),
    ("modifier_rescue", "x = foo rescue nil", '("=" x ("rescue" foo nil))'),
    ("unary_rotates_into_binary", "-a + b", '("+" ("-" a) b)'),
    ("not_binds_loosely", "not a == b", '("not" ("==" a b))'),
    ("and_not", "a and not b", '("and" a ("not" b))'),
    ("negative_literal", "a = -1", '("=" a ("-" 1))'),
    ("defined", "defined?(x)", '("defined?" ("(" x))'),
    ("multiple_assignment", "x, y = 1, 2", '("=" ("," x y) ("," 1 2))'),
    ("splat_assignment", "*a, b = c", '("=" ("," ("*" a) b) c)'),
    ("statements_newline", "a = 1\nb = 2", '(";" ("=" a 1) ("=" b 2))'),
    ("statements_flat", "a; b; c", '(";" a b c)'),
    ("ternary", "a ? b : c", '("?" a b c)'),
    ("ternary_right_assoc", "a ? b : c ? d : e", '("?" a b ("?" c d e))'),
    ("ternary_in_assignment", "x = a ? b : c", '("=" x ("?" a b c))'),
    ("ternary_condition_rotates", "a + b ? c : d", '("?" ("+" a b) c d)'),
    ("range", "1..10", '(".." 1 10)'),
    ("regexp_match", "a =~ /ab+c/", '("=~" a /ab+c/)'),
    ("numbers", "0x1F + 0b10", '("+" 0x1F 0b10)'),
    ("float_exponent", "1.5e3 * 2", '("*" 1.5e3 2)'),
    ("group", "(1 + 2) * 3", '("*" ("(" ("+" 1 2)) 3)'),
    ("member", "a.b", '("." a b)'),
    ("safe_member", "a&.b", '("&." a b)'),
    ("member_on_next_line", "foo\n  .bar", '("." foo bar)'),
    ("scope", "Foo::Bar", '("::" Foo Bar)'),
    ("setter", "a.b = 1", '("=" ("." a b) 1)'),
    ("invoke", "f(1, 2)", '("()" f ("," 1 2))'),
    ("invoke_no_arguments", "f()", '("()" f ,)'),
    ("invoke_trailing_comma", "f(1,\n  2,\n)", '("()" f ("," 1 2))'),
    ("argument_comma_below_assignment", "f(x, y = 1, 2)", '("()" f ("," x ("=" y 1) 2))'),
    ("splat_arguments", "f(*args, &blk)", '("()" f ("," ("*" args) ("&" blk)))'),
    ("label_arguments", "f(a: 1, b: 2)", '("()" f ("," (":" a 1) (":" b 2)))'),
    ("index", "a[0]", '("[]" a ("," 0))'),
    ("command_call", "puts x, y", '("()" puts ("," x y))'),
    ("command_call_symbol", "attr_reader :name", '("()" attr_reader ("," :name))'),
    ("command_call_modifier", "foo a if b", '("if" ("()" foo ("," a)) b)'),
    ("command_call_labels", "validates :name, presence: true",
     '("()" validates ("," :name (":" presence true)))'),
    ("invoke_with_block", "recv.meth(a, b) { |x| x }",
     '("()" ("." recv meth) ("," a b) ("{}" ("," x) x))'),
    ("block_without_arguments", "foo { bar }", '("()" foo , ("{}" () bar))'),
    ("block_on_member", "x = [1, 2].map { |v| v * 2 }",
     '("=" x ("()" ("." ("[" ("," 1 2)) map) , ("{}" ("," v) ("*" v 2))))'),
    ("hash_rockets", "{k1 => v1, k2 => v2}", '("{" ("," ("=>" k1 v1) ("=>" k2 v2)))'),
    ("hash_labels", "{k1: v1}", '("{" ("," (":" k1 v1)))'),
    ("empty_hash", "{}", '("{" ,)'),
    ("array", "[1, 2, 3]", '("[" ("," 1 2 3))'),
    ("def", "def foo(a, b)\n  a + b\nend", '("def" foo ("," a b) ("+" a b))'),
    ("def_singleton", "def self.foo; end", '("def" ("." self foo) () ())'),
    ("def_bare_params", "def foo a, b = 1\nend", '("def" foo ("," a ("=" b 1)) ())'),
    ("def_splat_params", "def foo(*rest, **opts, &blk); end",
     '("def" foo ("," ("*" rest) ("**" opts) ("&" blk)) ())'),
    ("def_keyword_params", "def foo(a:, b: 2); end", '("def" foo ("," (":" a) (":" b 2)) ())'),
    ("def_operator", "def ==(other)\n  id == other.id\nend",
     '("def" == ("," other) ("==" id ("." other id)))'),
    ("def_multiline_body", "def foo\n  a\n  b\nend", '("def" foo () (";" a b))'),
    ("class", "class Foo; end", '("class" Foo () ())'),
    ("class_parent", "class Foo < Bar\n  x\nend", '("class" Foo Bar x)'),
    ("class_singleton", "class << self\nend", '("class" ("<<" self) ())'),
    ("class_scoped_name", "class A::B < C; end", '("class" ("::" A B) C ())'),
    ("module", "module Foo\n  def bar; end\nend", '("module" Foo ("def" bar () ()))'),
    ("alias", "alias new_name old_name", '("alias" new_name old_name)'),
    ("alias_symbols", "alias :a :b", '("alias" :a :b)'),
    ("alias_globals", "alias $new $old", '("alias" $new $old)'),
    ("class_with_members", "class Foo < Bar\n  attr_reader :name\n\n  def initialize(name)\n    @name = name\n  end\nend",
     '("class" Foo Bar (";" ("()" attr_reader ("," :name)) ("def" initialize ("," name) ("=" @name name))))'),
]


@pytest.mark.parametrize("test_id, source_code, expected_tree", TEST_CASES, ids=[t[0] for t in TEST_CASES])
def test_parsing(parser: Parser, test_id: str, source_code: str, expected_tree: str):
    """Parses a source string and compares the printed tree."""
    assert sexp(parser.parse(source_code)) == expected_tree


# --- Comments ---

def test_no_comments_anywhere_without_comment_source(parser):
    tree = parser.parse("a = b + c * d\nfoo(1, [2, 3]) { |x| x }")
    assert all(node.comments == () for node in walk(tree))


def test_leading_comment_attaches_to_first_node(parser):
    tree = parser.parse("# leading\nx = 1")
    target = tree.children[0]
    assert target.data == "x"
    assert len(target.comments) == 1
    note = target.comments[0]
    assert note.data == LINE_COMMENT
    assert note.children[0].data == "leading"


def test_comment_after_statement_attaches_to_next_statement(parser):
    tree = parser.parse("x = 1 # about y\ny = 2")
    assert sexp(tree) == '(";" ("=" x 1) ("=" y 2))'
    y = tree.children[1].children[0]
    assert [c.children[0].data for c in y.comments] == ["about y"]


def test_trailing_comments_attach_to_root(parser):
    tree = parser.parse("x = 1 # trailing\n# last words\n")
    assert [c.children[0].data for c in tree.comments] == ["trailing", "last words"]


def test_comment_only_program(parser):
    tree = parser.parse("# nothing here")
    assert tree.is_empty
    assert tree.comments[0].children[0].data == "nothing here"


def test_block_comment(parser):
    tree = parser.parse("=begin\nhello\n=end\nx")
    assert tree.data == "x"
    (note,) = tree.comments
    assert note.data == BLOCK_COMMENT
    assert note.children[0].data == "hello"
    assert note.position == Position(0, 0)
    assert note.children[0].position == Position(1, 0)


def test_multiple_comments_keep_source_order(parser):
    tree = parser.parse("# one\n# two\nfoo")
    assert [c.children[0].data for c in tree.comments] == ["one", "two"]


def test_rotation_keeps_operator_comments(parser):
    tree = parser.parse("[1\n  # note\n  * 2 + 3]")
    plus = tree.children[0].children[0]
    assert sexp(plus) == '("+" ("*" 1 2) 3)'
    times = plus.children[0]
    assert [c.children[0].data for c in times.comments] == ["note"]
    assert plus.comments == ()


def test_rotation_keeps_operand_comments(parser):
    tree = parser.parse("a *\n  # about b\n  b + c")
    assert sexp(tree) == '("+" ("*" a b) c)'
    b = tree.children[0].children[1]
    assert b.data == "b"
    assert [c.children[0].data for c in b.comments] == ["about b"]


def texts(node):
    return [c.children[0].data for c in node.comments]


def test_comment_before_end_attaches_to_empty_body(parser):
    tree = parser.parse("class A\n  # TODO: later\nend")
    body = tree.children[2]
    assert body.is_empty
    assert texts(body) == ["TODO: later"]
    assert body.comments[0].position == Position(1, 2)


def test_comment_before_end_attaches_to_body(parser):
    tree = parser.parse("def foo\n  a\n  # done\nend")
    body = tree.children[2]
    assert body.data == "a"
    assert texts(body) == ["done"]


@pytest.mark.parametrize("source, path, expected", [
    ("f(1 # why\n)", (1,), ["why"]),
    ("x[1 # index\n]", (1,), ["index"]),
    ("[1, # c\n]", (0,), ["c"]),
    ("{a: 1 # last\n}", (0,), ["last"]),
    ("(x # inner\n)", (0,), ["inner"]),
    ("foo { |x| x # note\n}", (2, 1), ["note"]),
    ("def foo(a # first\n)\nend", (1,), ["first"]),
    ("a ? b # why\n  : c", (1,), ["why"]),
    ("class A # base\n  < B\nend", (1,), ["base"]),
])
def test_comments_before_closers_are_kept(parser, source, path, expected):
    node = parser.parse(source)
    for index in path:
        node = node.children[index]
    assert texts(node) == expected


def test_every_comment_survives(parser):
    source = "# a\nclass A # b\n  def f(x # c\n  )\n    g(1, # d\n    ) # e\n    # f\n  end\n  # g\nend\n# h\n"
    tree = parser.parse(source)
    found = sorted(n.children[0].data for n in walk(tree) if n.data == LINE_COMMENT)
    assert found == ["a", "b", "c", "d", "e", "f", "g", "h"]


# --- Positions ---

def test_positions_resolved_everywhere(parser):
    tree = parser.parse("# c\ndef foo(a)\n  a.b(1) { |x| x }\nend\n")
    assert all(node.position is not None for node in walk(tree))


def test_positions_follow_lines(parser):
    tree = parser.parse("a +\n  b")
    assert tree.position == Position(0, 2)
    a, b = tree.children
    assert a.position == Position(0, 0)
    assert b.position == Position(1, 2)


def test_positions_keep_tabs(parser):
    tree = parser.parse("\tx")
    assert tree.position == Position(0, 1)


def test_label_pair_colon_position(parser):
    tree = parser.parse("{key: 1}")
    pair = tree.children[0].children[0]
    assert pair.data == ":"
    assert pair.position == Position(0, 4)
    assert pair.children[0].position == Position(0, 1)


def test_position_pass_is_idempotent(parser):
    source = "x = [1,\n  2]\ny"
    tree = parser.parse(source)
    again = resolve_positions(tree, PositionTable(source))
    assert again == tree
    assert [n.position for n in walk(again)] == [n.position for n in walk(tree)]


def test_long_chain_parses_and_resolves(parser):
    source = " + ".join(["a"] * 1200)
    tree = parser.parse(source)
    depth, node = 0, tree
    while node.children:
        assert node.data == "+"
        assert node.position is not None
        node = node.children[0]
        depth += 1
    assert depth == 1199
    assert node.position == Position(0, 0)
    assert tree.children[1].position == Position(0, len(source) - 1)
    assert Printer(width=100_000).pformat(tree).count("(") == 1199


# --- Node arity ---

def test_leaves_have_no_children(parser):
    tree = parser.parse("x = foo + :sym + $g + @iv + 12 + 3.5")
    leaves = [n for n in walk(tree) if n.data in ("x", "foo", ":sym", "$g", "@iv", "12", "3.5")]
    assert len(leaves) == 7
    assert all(leaf.is_leaf for leaf in leaves)


@pytest.mark.parametrize("source, tag, arity", [
    ("def x.y(a); b; end", "def", 3),
    ("def x; end", "def", 3),
    ("class A; end", "class", 3),
    ("class A < B; end", "class", 3),
    ("class << x; end", "class", 2),
    ("module M; end", "module", 2),
    ("alias a b", "alias", 2),
    ("a if b", "if", 2),
    ("a + b", "+", 2),
])
def test_keyword_form_arity(parser, source, tag, arity):
    tree = parser.parse(source)
    assert tree.data == tag
    assert len(tree.children) == arity


# --- Input coercion ---

def test_bytes_are_decoded(parser):
    assert sexp(parser.parse(b"x = 1")) == '("=" x 1)'


def test_none_is_rejected(parser):
    with pytest.raises(TypeError):
        parser.parse(None)


def test_module_level_parse():
    assert sexp(parse("1 + 2")) == '("+" 1 2)'


def test_parsers_are_independent():
    first, second = Parser(), Parser()
    with pytest.raises(ParseError):
        first.parse("1 +")
    assert sexp(second.parse("a")) == "a"
    assert sexp(first.parse("a")) == "a"


# --- Errors ---

def test_error_reports_furthest_offset(parser):
    with pytest.raises(ParseError) as info:
        parser.parse("1 +")
    err = info.value
    assert err.offset == 3
    assert err.position == Position(0, 3)
    assert "number" in err.expected
    assert "end of input" in err.message


def test_error_unclosed_call(parser):
    with pytest.raises(ParseError) as info:
        parser.parse("foo(1, 2")
    assert info.value.offset == 8
    assert "')'" in info.value.expected


def test_error_on_later_line(parser):
    source = "x = 1\ny = (2\n"
    with pytest.raises(ParseError) as info:
        parser.parse(source)
    err = info.value
    assert err.offset == len(source)
    assert err.position == Position(2, 0)
    assert (err.line, err.column) == (3, 1)


def test_format_error_shows_context(parser):
    with pytest.raises(ParseError) as info:
        parser.parse("a = 1\nb = 2 +\n")
    text = info.value.format_error()
    assert text.startswith("ParseError: Expected ")
    assert "(line 3, col 1)" in text
    assert ">" in text and "^" in text


def test_string_literals_are_not_supported(parser):
    with pytest.raises(ParseError) as info:
        parser.parse('puts "hello"')
    assert info.value.offset >= 5
