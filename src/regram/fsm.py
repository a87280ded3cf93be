import logging
from functools import reduce
from itertools import combinations
from typing import Iterable, Optional

from more_itertools import minmax
from tqdm import tqdm

from regram.graph import GraphView
from regram.parser import (
    Alternation,
    Concat,
    Literal,
    RegexNode,
    RegexNodesVisitor,
    RegexParser,
    Star,
)
from regram.utils import EPSILON, BuildFlag, Fragment, UnionFind

logger = logging.getLogger(__name__)

State = int


class AutomatonUsageError(Exception):
    ...


class InvalidStateError(AutomatonUsageError, IndexError):
    def __init__(self, state: State, num_states: int):
        self.state = state
        super().__init__(f"invalid state {state}: expected 0 <= state < {num_states}")


class InvalidSymbolError(AutomatonUsageError, ValueError):
    def __init__(self, symbol: str, alphabet: Iterable[str]):
        self.symbol = symbol
        super().__init__(
            f"symbol {symbol!r} is not in the alphabet {sorted(alphabet)!r}"
        )


def _state_label(state: State, start_state: State, accept_states: set[State]) -> str:
    if state == start_state:
        return f"s:{state}"
    if state in accept_states:
        return f"e:{state}"
    return f"{state}"


class NFA(RegexNodesVisitor[Fragment[State]]):
    """Formally, an NFA is a 5-tuple (Q, Σ, q0, T, δ) where
        • Q is finite set of states;
        • Σ is alphabet of input symbols;
        • q0 is start state;
        • T is subset of Q giving the ``accept`` states;
        and
        • δ is the transition function.
    Now the transition function specifies a set of states rather than a state: it maps Q × (Σ ∪ {ε}) to { subsets of Q }.

    States are the integers 0..num_states-1 and `transitions[state]` maps a symbol (or ε) to the
    set of destinations. When built from a pattern the automaton is produced by Thompson's construction
    and has exactly one start and one accept state.

    Examples
    --------
    >>> nfa = NFA('a(b|c)')
    >>> nfa.accepts('ab'), nfa.accepts('ac'), nfa.accepts('a')
    (True, True, False)
    >>> sorted(nfa.used_alphabet)
    ['a', 'b', 'c']
    """

    def __init__(
        self, pattern: Optional[str] = None, flags: BuildFlag = BuildFlag.NOFLAG
    ):
        self.num_states = 0
        self.start_state: State = 0
        self.accept_states: set[State] = set()
        self.transitions: list[dict[str, set[State]]] = []
        self.used_alphabet: set[str] = set()
        self.flags = flags
        self._start: Optional[State] = None
        if pattern is not None:
            self.build(RegexParser(pattern).root)

    @staticmethod
    def from_ast(root: RegexNode, flags: BuildFlag = BuildFlag.NOFLAG) -> "NFA":
        nfa = NFA(flags=flags)
        nfa.build(root)
        return nfa

    @staticmethod
    def from_tables(
        num_states: int,
        start_state: State,
        accept_states: Iterable[State],
        transitions: Iterable[tuple[State, str, State]],
        flags: BuildFlag = BuildFlag.NOFLAG,
    ) -> "NFA":
        """Build an NFA from (from, symbol, to) triples; ε marks an epsilon transition"""
        nfa = NFA(flags=flags)
        for _ in range(num_states):
            nfa.add_state()
        nfa.start_state = nfa.check_state(start_state)
        nfa.accept_states = {nfa.check_state(state) for state in accept_states}
        for start, symbol, end in transitions:
            nfa.add_transition(start, end, symbol)
        return nfa

    def build(self, root: RegexNode) -> None:
        fragment = self._build(root)
        self.start_state = fragment.start
        self.accept_states = {fragment.end}
        logger.debug(
            "thompson construction: %d states, %d transitions",
            self.num_states,
            self.n_transitions(),
        )

    def check_state(self, state: State) -> State:
        if not 0 <= state < self.num_states:
            raise InvalidStateError(state, self.num_states)
        return state

    def add_state(self) -> State:
        self.transitions.append({})
        self.num_states += 1
        return self.num_states - 1

    def add_transition(self, start: State, end: State, symbol: str):
        self.check_state(start)
        self.check_state(end)
        self.transitions[start].setdefault(symbol, set()).add(end)
        if symbol != EPSILON:
            self.used_alphabet.add(symbol)

    def epsilon(self, start: State, end: State):
        self.add_transition(start, end, EPSILON)

    def transition(self, state: State, symbol: str) -> frozenset[State]:
        return frozenset(self.transitions[self.check_state(state)].get(symbol, ()))

    def is_final_state(self, state: State) -> bool:
        return state in self.accept_states

    def contains_final_state(self, states: Iterable[State]) -> bool:
        return any(state in self.accept_states for state in states)

    def epsilon_closure(self, states: Iterable[State]) -> frozenset[State]:
        """
        This is the set of all the nodes which can be reached by following epsilon labeled edges
        This is done here using a depth first search

        https://castle.eiu.edu/~mathcs/mat4885/index/Webview/examples/epsilon-closure.pdf
        """

        seen = set()
        stack = list(states)

        while stack:
            if (state := stack.pop()) in seen:
                continue

            seen.add(state)
            stack.extend(self.transition(state, EPSILON))

        return frozenset(seen)

    def move(self, states: Iterable[State], symbol: str) -> frozenset[State]:
        return frozenset(
            reduce(
                frozenset.union,
                (self.transition(state, symbol) for state in states),
                frozenset(),
            )
        )

    def accepts(self, text: str) -> bool:
        current = self.epsilon_closure((self.start_state,))
        for char in text:
            current = self.epsilon_closure(self.move(current, char))
            if not current:
                return False
        return self.contains_final_state(current)

    def n_transitions(self) -> int:
        return sum(
            len(ends) for table in self.transitions for ends in table.values()
        )

    def all_transitions(self) -> Iterable[tuple[State, str, State]]:
        for start, table in enumerate(self.transitions):
            for symbol, ends in table.items():
                for end in sorted(ends):
                    yield start, symbol, end

    def graph_view(self) -> GraphView:
        view = GraphView(start=self.start_state, accepting=set(self.accept_states))
        for state in range(self.num_states):
            view.add_node(
                _state_label(state, self.start_state, self.accept_states), state
            )
        for start, symbol, end in self.all_transitions():
            view.add_edge(start, end, symbol)
        return view

    def __repr__(self):
        return (
            f"NFA(num_states={self.num_states}, "
            f"symbols={sorted(self.used_alphabet)}, "
            f"start_state={self.start_state}, "
            f"transitions={self.transitions}, "
            f"accept_states={self.accept_states})"
        )

    # Thompson's construction

    def _build(self, node: RegexNode, start: Optional[State] = None) -> Fragment[State]:
        # `start` is an existing state the fragment must begin at
        self._start = start
        return node.accept(self)

    def _claim_start(self) -> Optional[State]:
        start, self._start = self._start, None
        return start

    def _fragment(self, start: Optional[State]) -> Fragment[State]:
        return Fragment(self.add_state() if start is None else start, self.add_state())

    def base(self, symbol: str, fragment: Fragment[State]) -> Fragment[State]:
        self.add_transition(fragment.start, fragment.end, symbol)
        return fragment

    def alternation(
        self, fragment: Fragment[State], upper: Fragment[State], lower: Fragment[State]
    ) -> Fragment[State]:
        self.epsilon(fragment.start, upper.start)
        self.epsilon(fragment.start, lower.start)
        self.epsilon(upper.end, fragment.end)
        self.epsilon(lower.end, fragment.end)
        return fragment

    def zero_or_more(
        self, fragment: Fragment[State], inner: Fragment[State]
    ) -> Fragment[State]:
        self.epsilon(fragment.start, fragment.end)
        self.epsilon(fragment.start, inner.start)
        self.epsilon(inner.end, inner.start)
        self.epsilon(inner.end, fragment.end)
        return fragment

    def concatenate(self, fragment1: Fragment[State], fragment2: Fragment[State]):
        self.epsilon(fragment1.end, fragment2.start)

    def visit_literal(self, literal: Literal) -> Fragment[State]:
        return self.base(literal.char, self._fragment(self._claim_start()))

    def visit_concat(self, concat: Concat) -> Fragment[State]:
        left = self._build(concat.left, self._claim_start())
        if self.flags & BuildFlag.EPSILON_CONCAT:
            right = self._build(concat.right)
            self.concatenate(left, right)
        else:
            # the right fragment starts where the left one ends
            right = self._build(concat.right, left.end)
        return Fragment(left.start, right.end)

    def visit_alternation(self, alternation: Alternation) -> Fragment[State]:
        fragment = self._fragment(self._claim_start())
        upper = self._build(alternation.left)
        lower = self._build(alternation.right)
        return self.alternation(fragment, upper, lower)

    def visit_star(self, star: Star) -> Fragment[State]:
        fragment = self._fragment(self._claim_start())
        return self.zero_or_more(fragment, self._build(star.inner))


class DFA:
    """
    A deterministic automaton over the states 0..num_states-1

    `transitions[state]` maps a symbol of `alphabet` to exactly one destination.
    DFAs produced by the subset construction are complete: the empty set of NFA states
    becomes an explicit dead state.

    Examples
    --------
    >>> dfa = DFA.from_pattern('a(b|c)')
    >>> [dfa.accepts(text) for text in ('ab', 'ac', 'a', 'abc', 'bc')]
    [True, True, False, False, False]
    >>> minimal = dfa.minimize()
    >>> minimal.num_states <= dfa.num_states
    True
    >>> minimal.accepts('ac')
    True
    """

    def __init__(
        self,
        num_states: int,
        start_state: State,
        accept_states: Iterable[State],
        transitions: list[dict[str, State]],
        alphabet: Optional[Iterable[str]] = None,
        *,
        flags: BuildFlag = BuildFlag.NOFLAG,
        source_sets: Optional[list[frozenset[State]]] = None,
    ):
        if len(transitions) != num_states:
            raise ValueError(
                f"expected {num_states} transition tables, got {len(transitions)}"
            )
        self.num_states = num_states
        self.transitions = transitions
        if alphabet is None:
            alphabet = {symbol for table in transitions for symbol in table}
        self.alphabet: tuple[str, ...] = tuple(sorted(set(alphabet)))
        self.start_state = self.check_state(start_state)
        self.accept_states: set[State] = {
            self.check_state(state) for state in accept_states
        }
        self.flags = flags
        # the states of the automaton this one was derived from, for each state
        self.source_sets = source_sets

        for table in transitions:
            for symbol, end in table.items():
                self.check_symbol(symbol)
                self.check_state(end)

    @staticmethod
    def from_nfa(nfa: NFA, flags: Optional[BuildFlag] = None) -> "DFA":
        """
        Subset construction

        Every DFA state stands for an epsilon-closed set of NFA states. The sets are discovered with a
        worklist, starting from the epsilon closure of the NFA's start state, and indexed by the
        frozenset itself so that the construction does not depend on the order states are visited in.
        """
        if flags is None:
            flags = nfa.flags
        alphabet = sorted(nfa.used_alphabet)

        start = nfa.epsilon_closure((nfa.start_state,))
        subset2state: dict[frozenset[State], State] = {start: 0}
        source_sets: list[frozenset[State]] = [start]
        transitions: list[dict[str, State]] = [{}]
        stack = [start]

        progress = (
            tqdm(desc="subset construction", unit="state") if flags.debug() else None
        )
        while stack:
            subset = stack.pop()
            state = subset2state[subset]
            for symbol in alphabet:
                target = nfa.epsilon_closure(nfa.move(subset, symbol))
                if target not in subset2state:
                    subset2state[target] = len(source_sets)
                    source_sets.append(target)
                    transitions.append({})
                    stack.append(target)
                    if flags.debug():
                        logger.debug(
                            "new dfa state %d = %s",
                            subset2state[target],
                            sorted(target),
                        )
                transitions[state][symbol] = subset2state[target]
            if progress is not None:
                progress.update(1)
        if progress is not None:
            progress.close()

        accept_states = {
            state
            for state, subset in enumerate(source_sets)
            if nfa.contains_final_state(subset)
        }
        logger.debug(
            "subset construction: %d nfa states -> %d dfa states",
            nfa.num_states,
            len(source_sets),
        )
        return DFA(
            len(source_sets),
            0,
            accept_states,
            transitions,
            alphabet,
            flags=flags,
            source_sets=source_sets,
        )

    @staticmethod
    def from_pattern(pattern: str, flags: BuildFlag = BuildFlag.NOFLAG) -> "DFA":
        return DFA.from_nfa(NFA(pattern, flags))

    def check_state(self, state: State) -> State:
        if not 0 <= state < self.num_states:
            raise InvalidStateError(state, self.num_states)
        return state

    def check_symbol(self, symbol: str) -> str:
        if symbol not in self.alphabet:
            raise InvalidSymbolError(symbol, self.alphabet)
        return symbol

    def move(self, state: State, symbol: str) -> Optional[State]:
        self.check_state(state)
        self.check_symbol(symbol)
        return self.transitions[state].get(symbol)

    def is_final_state(self, state: State) -> bool:
        return state in self.accept_states

    def is_complete(self) -> bool:
        return all(len(table) == len(self.alphabet) for table in self.transitions)

    def accepts(self, text: str) -> bool:
        state: Optional[State] = self.start_state
        for char in text:
            if char not in self.alphabet:
                return False
            state = self.transitions[state].get(char)
            if state is None:
                return False
        return state in self.accept_states

    def all_transitions(self) -> Iterable[tuple[State, str, State]]:
        for start, table in enumerate(self.transitions):
            for symbol in sorted(table):
                yield start, symbol, table[symbol]

    def n_transitions(self) -> int:
        return sum(len(table) for table in self.transitions)

    def _completed(self) -> tuple[int, list[dict[str, State]]]:
        # undefined transitions go to an extra dead state numbered num_states
        if self.is_complete():
            return self.num_states, self.transitions
        dead = self.num_states
        transitions = [
            {symbol: table.get(symbol, dead) for symbol in self.alphabet}
            for table in self.transitions
        ]
        transitions.append({symbol: dead for symbol in self.alphabet})
        return self.num_states + 1, transitions

    def distinguishability_table(
        self, flags: Optional[BuildFlag] = None
    ) -> dict[tuple[State, State], int]:
        """
        Table-filling algorithm (Myhill–Nerode)

        Maps every distinguished pair (p, q), p < q, to the round in which it was marked.
        Round 0 marks the pairs where exactly one state accepts, each following round marks (p, q) if
        some symbol leads them to an already marked pair. Rounds stop when no new pair is marked.

        https://www.cs.scranton.edu/~mccloske/courses/cmps364/dfa_minimize.html
        """
        if flags is None:
            flags = self.flags
        num_states, transitions = self._completed()
        pairs = list(combinations(range(num_states), 2))

        marks = {
            (p, q): 0
            for p, q in pairs
            if (p in self.accept_states) != (q in self.accept_states)
        }

        progress = (
            tqdm(desc="minimization", unit="round") if flags.debug() else None
        )
        changed, current_round = True, 0
        while changed:
            changed, current_round = False, current_round + 1
            n_marked = 0
            for p, q in pairs:
                if (p, q) in marks:
                    continue
                for symbol in self.alphabet:
                    # we use min max to index the upper triangle of the table only
                    pair = minmax(transitions[p][symbol], transitions[q][symbol])
                    if pair in marks:
                        marks[(p, q)] = current_round
                        n_marked += 1
                        changed = True
                        break
            logger.debug("minimization round %d: %d new marks", current_round, n_marked)
            if progress is not None:
                progress.update(1)
        if progress is not None:
            progress.close()

        return marks

    def equivalent_pairs(
        self, flags: Optional[BuildFlag] = None
    ) -> list[tuple[State, State]]:
        marks = self.distinguishability_table(flags)
        return [
            (p, q)
            for p, q in combinations(range(self.num_states), 2)
            if (p, q) not in marks
        ]

    def minimize(self, flags: Optional[BuildFlag] = None) -> "DFA":
        """
        Merge indistinguishable states into one state. The representative of a class is its lowest state
        and the new states are numbered in increasing order of their representatives.
        This automaton is left untouched.
        """
        if flags is None:
            flags = self.flags
        union_find = UnionFind(range(self.num_states))
        for p, q in self.equivalent_pairs(flags):
            union_find.union(p, q)

        representatives: dict[State, State] = {}
        for state in range(self.num_states):
            # states are visited in increasing order, so the first one seen is the lowest
            representatives.setdefault(union_find.find(state), state)
        heads = sorted(representatives.values())
        head2state = {head: index for index, head in enumerate(heads)}

        def remap(state: State) -> State:
            return head2state[representatives[union_find.find(state)]]

        transitions: list[dict[str, State]] = [{} for _ in heads]
        for start, symbol, end in self.all_transitions():
            transitions[remap(start)].setdefault(symbol, remap(end))

        classes: list[set[State]] = [set() for _ in heads]
        for state in range(self.num_states):
            classes[remap(state)].add(state)

        logger.debug(
            "minimization: %d states -> %d states", self.num_states, len(heads)
        )
        return DFA(
            len(heads),
            remap(self.start_state),
            {remap(state) for state in self.accept_states},
            transitions,
            self.alphabet,
            flags=flags,
            source_sets=[frozenset(members) for members in classes],
        )

    def graph_view(self) -> GraphView:
        view = GraphView(start=self.start_state, accepting=set(self.accept_states))
        for state in range(self.num_states):
            view.add_node(
                _state_label(state, self.start_state, self.accept_states), state
            )
        for start, table in enumerate(self.transitions):
            # edges going to the same state are compacted into one
            labels: dict[State, list[str]] = {}
            for symbol in sorted(table):
                labels.setdefault(table[symbol], []).append(symbol)
            for end, symbols in labels.items():
                view.add_edge(start, end, ",".join(symbols))
        return view

    def __repr__(self):
        return (
            f"DFA(num_states={self.num_states}, "
            f"symbols={list(self.alphabet)}, "
            f"start_state={self.start_state}, "
            f"transitions={self.transitions}, "
            f"accept_states={self.accept_states})"
        )


if __name__ == "__main__":
    import doctest

    doctest.testmod()
