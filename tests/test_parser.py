import pytest

from regram.parser import (
    Alternation,
    Concat,
    InvalidCharacter,
    InvalidToken,
    Literal,
    RegexNodesVisitor,
    RegexParser,
    RegexpParsingError,
    Star,
    UnbalancedParentheses,
    parse,
)

a, b, c, d = Literal("a"), Literal("b"), Literal("c"), Literal("d")


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("a", a),
        ("ab", Concat(a, b)),
        ("abc", Concat(Concat(a, b), c)),
        ("ab|c", Alternation(Concat(a, b), c)),
        ("ab*", Concat(a, Star(b))),
        ("a*b*", Concat(Star(a), Star(b))),
        ("a(b|c)", Concat(a, Alternation(b, c))),
        ("a|b|c", Alternation(a, Alternation(b, c))),
        ("ab|cd", Alternation(Concat(a, b), Concat(c, d))),
        ("(a|b)*c", Concat(Star(Alternation(a, b)), c)),
        ("(a)(b)", Concat(a, b)),
        ("((a))", a),
        ("a(bc)", Concat(a, Concat(b, c))),
        ("(a|(b))c", Concat(Alternation(a, b), c)),
        ("a|(b)c", Alternation(a, Concat(b, c))),
        ("(a*)*", Star(Star(a))),
        ("da*b", Concat(Concat(d, Star(a)), b)),
        ("0|1A", Alternation(Literal("0"), Concat(Literal("1"), Literal("A")))),
    ],
)
def test_parse(pattern, expected):
    assert parse(pattern) == expected, f"{pattern=}"


@pytest.mark.parametrize(
    "pattern, error",
    [
        ("(a", UnbalancedParentheses),
        ("a(b", UnbalancedParentheses),
        ("a)b", UnbalancedParentheses),
        (")", UnbalancedParentheses),
        ("a()", InvalidToken),
        ("()", InvalidToken),
        ("*a", InvalidToken),
        ("a**", InvalidToken),
        ("(a)**", InvalidToken),
        ("a|", InvalidToken),
        ("|a", InvalidToken),
        ("(a|)", InvalidToken),
        ("", InvalidToken),
        ("a$", InvalidCharacter),
        ("a b", InvalidCharacter),
        ("a.b", InvalidCharacter),
        ("[ab]", InvalidCharacter),
    ],
)
def test_parse_errors(pattern, error):
    with pytest.raises(error):
        RegexParser(pattern)


def test_parse_errors_share_a_base_class():
    for pattern in ("(a", "a()", "a$"):
        with pytest.raises(RegexpParsingError):
            parse(pattern)


def test_invalid_character_names_the_character():
    with pytest.raises(InvalidCharacter) as exc_info:
        parse("ab+")
    assert exc_info.value.char == "+"


def test_invalid_token_has_a_reason():
    with pytest.raises(InvalidToken) as exc_info:
        parse("a()")
    assert exc_info.value.reason == "empty parentheses are not accepted"


@pytest.mark.parametrize(
    "pattern",
    [
        "a",
        "ab|c",
        "a(b|c)",
        "(a|b)*c",
        "a|b|c",
        "(a|b)|c",
        "a(bc)",
        "(ab)*",
        "(a*)*",
        "a*b*(c|d)*",
        "(a|b)(c|d)",
        "(abb)*a(a)",
        "(a|b)*ab(c)",
        "(abb)*aa",
        "a(b|c)d(e)",
        "(a|b)*a(b*)",
        "(a|b)*ab*c",
    ],
)
def test_to_string_parses_back(pattern):
    root = parse(pattern)
    assert parse(root.to_string()) == root
    assert root.to_string() == pattern


class LiteralCounter(RegexNodesVisitor[int]):
    def visit_literal(self, literal: Literal) -> int:
        return 1

    def visit_concat(self, concat: Concat) -> int:
        return concat.left.accept(self) + concat.right.accept(self)

    def visit_alternation(self, alternation: Alternation) -> int:
        return alternation.left.accept(self) + alternation.right.accept(self)

    def visit_star(self, star: Star) -> int:
        return star.inner.accept(self)


@pytest.mark.parametrize(
    "pattern, n_literals",
    [("a", 1), ("ab|c", 3), ("(a|b)*c", 3), ("a*b*(c|d)*", 4)],
)
def test_visitor(pattern, n_literals):
    assert parse(pattern).accept(LiteralCounter()) == n_literals


def test_graph_view():
    view = parse("a|b*").graph_view()
    assert view.nodes == {0: "|", 1: "a", 2: "*", 3: "b"}
    assert view.edges == [(0, 1, None), (0, 2, None), (2, 3, None)]
    assert view.start is None


@pytest.mark.parametrize(
    "root",
    [
        Concat(Concat(Star(Concat(Concat(a, b), b)), a), a),
        Concat(Star(Alternation(a, b)), Concat(a, b)),
        Concat(Concat(Star(Alternation(a, b)), Concat(a, b)), c),
        Concat(Concat(Alternation(a, b), a), Star(b)),
        Concat(Concat(Alternation(a, b), a), Star(Alternation(a, b))),
        Concat(Alternation(a, b), Concat(a, Alternation(c, d))),
        Concat(Concat(a, Alternation(b, c)), Concat(Concat(d, a), b)),
        Concat(a, Concat(b, Star(c))),
        Star(Concat(Concat(Star(a), b), Concat(c, d))),
    ],
)
def test_to_string_of_built_trees_parses_back(root):
    assert parse(root.to_string()) == root, root.to_string()
