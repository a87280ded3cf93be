import re
from dataclasses import dataclass, field
from typing import Final, Optional

from regram.fsm import DFA, NFA, State
from regram.utils import EPSILON, BuildFlag

HEADER_PATTERN: Final = re.compile(
    r"^\s*(start_state|end_states|finish_states|num_states)\s*:\s*(.*?)\s*$"
)
TRANSITION_PATTERN: Final = re.compile(
    r"^\s*(\d+)\s*--\s*(?:'([A-Za-z0-9])'\s*)?-->\s*(\d+)\s*$"
)
STATE_LIST_PATTERN: Final = re.compile(r"^\[\s*((?:\d+\s*,\s*)*\d+)?\s*,?\s*\]$")

# the 'finish_states' spelling is read as 'end_states'
HEADER_ALIASES: Final = {"finish_states": "end_states"}


class AutomatonFormatError(ValueError):
    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


@dataclass
class AutomatonText:
    """The tables read from the textual format, before they are checked against an automaton kind"""

    num_states: int
    start_state: State
    accept_states: list[State]
    # (line number, from, symbol, to)
    transitions: list[tuple[int, State, str, State]] = field(default_factory=list)


def _parse_state(value: str, line_number: int) -> State:
    if not value.isdigit():
        raise AutomatonFormatError(f"expected a state index, got {value!r}", line_number)
    return int(value)


def _parse_state_list(value: str, line_number: int) -> list[State]:
    if (match := STATE_LIST_PATTERN.match(value)) is None:
        raise AutomatonFormatError(
            f"expected a list of states like [1, 2], got {value!r}", line_number
        )
    if match.group(1) is None:
        return []
    return [int(state) for state in match.group(1).split(",")]


def parse_automaton(text: str) -> AutomatonText:
    """
    Read the three headers and the transitions of an automaton

    Examples
    --------
    >>> parsed = parse_automaton("start_state: 0\\nend_states: [1]\\nnum_states: 2\\n0 -- 'a' --> 1")
    >>> parsed.num_states, parsed.start_state, parsed.accept_states, parsed.transitions
    (2, 0, [1], [(4, 0, 'a', 1)])
    """
    headers: dict[str, tuple[int, str]] = {}
    transitions: list[tuple[int, State, str, State]] = []

    for line_number, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        if (match := HEADER_PATTERN.match(line)) is not None:
            name = HEADER_ALIASES.get(match.group(1), match.group(1))
            if name in headers:
                raise AutomatonFormatError(f"duplicate header {name!r}", line_number)
            headers[name] = (line_number, match.group(2))
        elif (match := TRANSITION_PATTERN.match(line)) is not None:
            start, symbol, end = match.groups()
            transitions.append(
                (line_number, int(start), EPSILON if symbol is None else symbol, int(end))
            )
        else:
            raise AutomatonFormatError(f"malformed line {line.strip()!r}", line_number)

    for name in ("start_state", "end_states", "num_states"):
        if name not in headers:
            raise AutomatonFormatError(f"missing header {name!r}")

    num_states = _parse_state(headers["num_states"][1], headers["num_states"][0])
    parsed = AutomatonText(
        num_states,
        _parse_state(headers["start_state"][1], headers["start_state"][0]),
        _parse_state_list(headers["end_states"][1], headers["end_states"][0]),
        transitions,
    )

    def check(state: State, line_number: int):
        if not 0 <= state < num_states:
            raise AutomatonFormatError(
                f"state {state} is out of range for {num_states} states", line_number
            )

    check(parsed.start_state, headers["start_state"][0])
    for state in parsed.accept_states:
        check(state, headers["end_states"][0])
    for line_number, start, _, end in transitions:
        check(start, line_number)
        check(end, line_number)
    return parsed


def _dump_transition(start: State, symbol: str, end: State) -> str:
    if symbol == EPSILON:
        return f"{start} ----> {end}"
    return f"{start} -- '{symbol}' --> {end}"


def _dump(
    num_states: int, start_state: State, accept_states: set[State], transitions
) -> str:
    lines = [
        f"start_state: {start_state}",
        f"end_states: {sorted(accept_states)}",
        f"num_states: {num_states}",
    ]
    lines.extend(_dump_transition(*transition) for transition in transitions)
    return "\n".join(lines) + "\n"


def loads_nfa(text: str, flags: BuildFlag = BuildFlag.NOFLAG) -> NFA:
    parsed = parse_automaton(text)
    return NFA.from_tables(
        parsed.num_states,
        parsed.start_state,
        parsed.accept_states,
        ((start, symbol, end) for _, start, symbol, end in parsed.transitions),
        flags,
    )


def dumps_nfa(nfa: NFA) -> str:
    """
    Examples
    --------
    >>> print(dumps_nfa(NFA('a|b')), end='')
    start_state: 0
    end_states: [1]
    num_states: 6
    0 ----> 2
    0 ----> 4
    2 -- 'a' --> 3
    3 ----> 1
    4 -- 'b' --> 5
    5 ----> 1
    """
    return _dump(
        nfa.num_states, nfa.start_state, nfa.accept_states, nfa.all_transitions()
    )


def loads_dfa(text: str, flags: BuildFlag = BuildFlag.NOFLAG) -> DFA:
    parsed = parse_automaton(text)
    transitions: list[dict[str, State]] = [{} for _ in range(parsed.num_states)]
    for line_number, start, symbol, end in parsed.transitions:
        if symbol == EPSILON:
            raise AutomatonFormatError(
                "a DFA cannot have epsilon transitions", line_number
            )
        if symbol in transitions[start] and transitions[start][symbol] != end:
            raise AutomatonFormatError(
                f"state {start} has two transitions on {symbol!r}", line_number
            )
        transitions[start][symbol] = end
    return DFA(
        parsed.num_states,
        parsed.start_state,
        parsed.accept_states,
        transitions,
        flags=flags,
    )


def dumps_dfa(dfa: DFA) -> str:
    """
    The text carries no alphabet. `loads_dfa` infers it from the transition lines, so a symbol
    no state has a transition on is not restored. The complete DFAs of the subset construction
    and the minimizer have a transition on every symbol and come back with identical tables.
    """
    return _dump(
        dfa.num_states, dfa.start_state, dfa.accept_states, dfa.all_transitions()
    )


if __name__ == "__main__":
    import doctest

    doctest.testmod()
