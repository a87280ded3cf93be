import pytest

from regram.fsm import DFA, NFA
from regram.serializer import (
    AutomatonFormatError,
    dumps_dfa,
    dumps_nfa,
    loads_dfa,
    loads_nfa,
)
from regram.utils import EPSILON


def test_dumps_dfa():
    assert dumps_dfa(DFA.from_pattern("a")) == (
        "start_state: 0\n"
        "end_states: [1]\n"
        "num_states: 3\n"
        "0 -- 'a' --> 1\n"
        "1 -- 'a' --> 2\n"
        "2 -- 'a' --> 2\n"
    )


@pytest.mark.parametrize("pattern", ["a", "a(b|c)", "(a|b)*abb", "a*b*"])
def test_dfa_tables_survive_a_dump(pattern):
    dfa = DFA.from_pattern(pattern).minimize()
    loaded = loads_dfa(dumps_dfa(dfa))
    assert loaded.num_states == dfa.num_states
    assert loaded.start_state == dfa.start_state
    assert loaded.accept_states == dfa.accept_states
    assert loaded.transitions == dfa.transitions
    assert loaded.alphabet == dfa.alphabet


@pytest.mark.parametrize("pattern", ["a", "a(b|c)", "(a|b)*", "ab|c"])
def test_nfa_tables_survive_a_dump(pattern):
    nfa = NFA(pattern)
    loaded = loads_nfa(dumps_nfa(nfa))
    assert loaded.num_states == nfa.num_states
    assert loaded.start_state == nfa.start_state
    assert loaded.accept_states == nfa.accept_states
    assert loaded.transitions == nfa.transitions
    assert loaded.used_alphabet == nfa.used_alphabet
    assert dumps_nfa(loaded) == dumps_nfa(nfa)


def test_loads_is_whitespace_tolerant():
    text = """
    num_states:3
    finish_states : [ 2 ]
    start_state: 0

    0 --'a'-->1
      1 ----> 2
    """
    nfa = loads_nfa(text)
    assert nfa.num_states == 3
    assert nfa.accept_states == {2}
    assert nfa.transitions[1] == {EPSILON: {2}}
    assert nfa.used_alphabet == {"a"}
    assert nfa.accepts("a")
    assert not nfa.accepts("")


def test_loads_dfa_infers_the_alphabet():
    dfa = loads_dfa(
        "start_state: 0\nend_states: []\nnum_states: 2\n0 -- 'b' --> 1\n0 -- 'a' --> 0\n"
    )
    assert dfa.alphabet == ("a", "b")
    assert dfa.accept_states == set()
    assert not dfa.accepts("ab")


@pytest.mark.parametrize(
    "text, line_number",
    [
        ("start_state: 0\nend_states: [1]\n", None),
        ("start_state: 0\nend_states: [1]\nnum_states: 2\n0 -> 1\n", 4),
        ("start_state: 0\nend_states: [1]\nnum_states: 2\n0 -- 'a' --> 5\n", 4),
        ("start_state: 3\nend_states: [1]\nnum_states: 2\n", 1),
        ("start_state: 0\nend_states: 1\nnum_states: 2\n", 2),
        ("start_state: 0\nend_states: [1]\nnum_states: two\n", 3),
        ("start_state: 0\nstart_state: 1\nend_states: [1]\nnum_states: 2\n", 2),
        ("start_state: 0\nend_states: [1]\nnum_states: 2\n0 -- '$' --> 1\n", 4),
    ],
)
def test_malformed_text(text, line_number):
    with pytest.raises(AutomatonFormatError) as exc_info:
        loads_nfa(text)
    assert exc_info.value.line_number == line_number


@pytest.mark.parametrize(
    "text",
    [
        # epsilon transitions are for NFAs only
        "start_state: 0\nend_states: [1]\nnum_states: 2\n0 ----> 1\n",
        # two destinations for one symbol
        "start_state: 0\nend_states: [1]\nnum_states: 2\n0 -- 'a' --> 1\n0 -- 'a' --> 0\n",
    ],
)
def test_loads_dfa_rejects_nondeterminism(text):
    with pytest.raises(AutomatonFormatError):
        loads_dfa(text)
    # the same text is a fine NFA
    assert loads_nfa(text).num_states == 2


def test_format_error_is_a_value_error():
    with pytest.raises(ValueError):
        loads_dfa("")


def test_symbols_without_transitions_are_not_restored():
    dfa = DFA(2, 0, {1}, [{"a": 1}, {}], alphabet=["a", "b"])
    loaded = loads_dfa(dumps_dfa(dfa))
    assert loaded.transitions == dfa.transitions
    assert dfa.alphabet == ("a", "b")
    assert loaded.alphabet == ("a",)
