import pytest

from regram.fsm import DFA
from regram.grammar import Grammar, NonTerminal, Production, Terminal
from regram.utils import EPSILON

S, A, B = NonTerminal(0), NonTerminal(1), NonTerminal(2)


def first_follow_grammar():
    # S -> Ab | c
    # A -> aA | ε
    return Grammar(
        0,
        [
            Production.of(0, 1, "b"),
            Production.of(0, "c"),
            Production.of(1, "a", 1),
            Production.of(1, EPSILON),
        ],
    )


def expression_grammar():
    # E -> E+T | T
    # T -> T*F | F
    # F -> (E) | a
    return Grammar(
        0,
        [
            Production.of(0, 0, "+", 1),
            Production.of(0, 1),
            Production.of(1, 1, "*", 2),
            Production.of(1, 2),
            Production.of(2, "(", 0, ")"),
            Production.of(2, "a"),
        ],
    )


def test_letters_sort_nonterminals_first():
    letters = [Terminal("b"), NonTerminal(1), Terminal("a"), NonTerminal(0)]
    assert sorted(letters) == [NonTerminal(0), NonTerminal(1), Terminal("a"), Terminal("b")]


def test_production():
    production = Production.of(0, "a", 1)
    assert production.lhs == S
    assert production.rhs == (Terminal("a"), A)
    assert str(production) == "0 -> a 1"
    assert not production.is_unit()
    assert Production.of(0, 1).is_unit()
    assert not Production.of(0, "a").is_unit()


def test_accessors():
    grammar = first_follow_grammar()
    assert grammar.non_terminals() == [S, A]
    assert grammar.terminals() == [Terminal("a"), Terminal("b"), Terminal("c")]
    assert grammar.productions_of(A) == [Production.of(1, "a", 1), Production.of(1, EPSILON)]
    assert grammar.adjacency() == {
        S: [(A, Terminal("b")), (Terminal("c"),)],
        A: [(Terminal("a"), A), (Terminal(EPSILON),)],
    }


def test_from_dfa():
    grammar = Grammar.from_dfa(DFA.from_pattern("a"))
    assert grammar.start_symbol == S
    assert [str(production) for production in grammar.productions] == [
        "0 -> a 1",
        "1 -> a 2",
        "1 -> ε",
        "2 -> a 2",
    ]


def test_from_dfa_is_right_linear():
    grammar = Grammar.from_dfa(DFA.from_pattern("(a|b)*abb").minimize())
    for production in grammar.productions:
        *head, last = production.rhs
        assert all(isinstance(letter, Terminal) for letter in head)
        assert len(production.rhs) in (1, 2)


def test_from_dfa_then_remove_useless_drops_the_dead_state():
    grammar = Grammar.from_dfa(DFA.from_pattern("a"))
    grammar.remove_useless()
    assert [str(production) for production in grammar.productions] == [
        "0 -> a 1",
        "1 -> ε",
    ]


def test_nullable():
    assert first_follow_grammar().nullable == {A}


@pytest.mark.parametrize(
    "productions, nullable",
    [
        ([Production.of(0, 1, 2), Production.of(1, EPSILON), Production.of(2, EPSILON)], {S, A, B}),
        ([Production.of(0, 1, "a"), Production.of(1, EPSILON)], {A}),
        ([Production.of(0, 0)], set()),
        ([Production.of(0)], {S}),
    ],
)
def test_nullable_fixpoint(productions, nullable):
    assert Grammar(0, productions).nullable == nullable


def test_reachable():
    grammar = Grammar(0, [Production.of(0, "a", 1), Production.of(1, "b"), Production.of(2, "c")])
    assert grammar.reachable() == {S, A}


def test_generators():
    grammar = Grammar(
        0,
        [Production.of(0, 1, 2), Production.of(0, "a"), Production.of(2, "b"), Production.of(1, 1)],
    )
    assert grammar.generators() == {S, B}


def test_remove_useless():
    # S -> AB | a
    # B -> b
    # S = 0, B = 1, A = 2
    grammar = Grammar(
        0,
        [
            Production.of(0, 2, 1),
            Production.of(0, "a"),
            Production.of(1, "b"),
        ],
    )
    grammar.remove_useless()
    assert grammar == Grammar(0, [Production.of(0, "a")])


def test_unit_pairs():
    pairs = expression_grammar().unit_pairs()
    assert pairs == {(S, S), (A, A), (B, B), (S, A), (S, B), (A, B)}


def test_remove_unit_cycles():
    grammar = expression_grammar()
    grammar.remove_unit_cycles()
    # E -> E+T | T*F | (E) | a
    # T -> T*F | (E) | a
    # F -> (E) | a
    assert grammar.productions == [
        Production.of(0, 0, "+", 1),
        Production.of(0, 1, "*", 2),
        Production.of(0, "(", 0, ")"),
        Production.of(0, "a"),
        Production.of(1, 1, "*", 2),
        Production.of(1, "(", 0, ")"),
        Production.of(1, "a"),
        Production.of(2, "(", 0, ")"),
        Production.of(2, "a"),
    ]
    assert not any(production.is_unit() for production in grammar.productions)


def test_remove_unit_cycles_with_a_cycle():
    grammar = Grammar(
        0,
        [Production.of(0, 1), Production.of(1, 0), Production.of(1, "b"), Production.of(0, "a"), Production.of(0, 0)],
    )
    grammar.remove_unit_cycles()
    assert [str(production) for production in grammar.productions] == [
        "0 -> a",
        "0 -> b",
        "1 -> b",
        "1 -> a",
    ]


def test_set_productions_invalidates_caches():
    grammar = first_follow_grammar()
    assert grammar.nullable == {A}
    assert grammar.first(S) == {Terminal("a"), Terminal("b"), Terminal("c")}

    grammar.set_productions([Production.of(0, EPSILON)])
    assert grammar.nullable == {S}
    assert grammar.first(S) == {Terminal(EPSILON)}


def test_graph_view():
    view = Grammar(0, [Production.of(0, "a", 1), Production.of(1, EPSILON), Production.of(1, 1, 1)]).graph_view()
    assert view.nodes == {0: "s:0", 1: "1"}
    assert view.edges == [(0, 1, "a 1"), (1, 1, "1 1"), (1, 1, "1 1")]
    assert view.start == 0


def test_str():
    assert str(first_follow_grammar()) == "0 -> 1 b\n0 -> c\n1 -> a 1\n1 -> ε"
