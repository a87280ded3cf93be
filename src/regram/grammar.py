import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import total_ordering
from typing import TYPE_CHECKING, Final, Iterable, Optional, Union

from more_itertools import unique_everseen

from regram.graph import GraphView
from regram.utils import EPSILON

if TYPE_CHECKING:
    from regram.first_follow import FirstFollow
    from regram.fsm import DFA

logger = logging.getLogger(__name__)

STRING_END: Final[str] = "$"


@total_ordering
class Letter(ABC):
    """A grammar symbol. Nonterminals sort before terminals."""

    __slots__ = ()

    @abstractmethod
    def sort_key(self) -> tuple[int, Union[int, str]]:
        ...

    def __lt__(self, other):
        if not isinstance(other, Letter):
            return NotImplemented
        return self.sort_key() < other.sort_key()


@dataclass(frozen=True, slots=True)
class NonTerminal(Letter):
    index: int

    def sort_key(self) -> tuple[int, Union[int, str]]:
        return 0, self.index

    def __str__(self):
        return f"{self.index}"


@dataclass(frozen=True, slots=True)
class Terminal(Letter):
    char: str

    def sort_key(self) -> tuple[int, Union[int, str]]:
        return 1, self.char

    def is_epsilon(self) -> bool:
        return self.char == EPSILON

    def __str__(self):
        return self.char


@dataclass(frozen=True, slots=True)
class Production:
    lhs: NonTerminal
    rhs: tuple[Letter, ...]

    @staticmethod
    def of(lhs: int, *symbols: Union[int, str]) -> "Production":
        """
        Shorthand where integers stand for nonterminals and strings for terminals

        Examples
        --------
        >>> print(Production.of(0, 'a', 1))
        0 -> a 1
        >>> Production.of(1, 2).is_unit()
        True
        """
        return Production(
            NonTerminal(lhs),
            tuple(
                NonTerminal(symbol) if isinstance(symbol, int) else Terminal(symbol)
                for symbol in symbols
            ),
        )

    def is_unit(self) -> bool:
        return len(self.rhs) == 1 and isinstance(self.rhs[0], NonTerminal)

    def non_terminals(self) -> Iterable[NonTerminal]:
        return (letter for letter in self.rhs if isinstance(letter, NonTerminal))

    def rhs_string(self) -> str:
        return " ".join(map(str, self.rhs))

    def __str__(self):
        return f"{self.lhs} -> {self.rhs_string()}"


def is_nullable_sequence(
    letters: Iterable[Letter], nullable: Iterable[NonTerminal]
) -> bool:
    nullable = set(nullable)
    return all(
        letter in nullable
        if isinstance(letter, NonTerminal)
        else letter.is_epsilon()  # type: ignore[union-attr]
        for letter in letters
    )


class Grammar:
    """
    A context free grammar over integer nonterminals and single character terminals

    The nullable set and the FIRST/FOLLOW tables are cached. They are computed on first use
    by `recompute()`, and `set_productions` throws them away.

    Examples
    --------
    >>> g = Grammar(0, [Production.of(0, 1, 'b'), Production.of(0, 'c'),
    ...                 Production.of(1, 'a', 1), Production.of(1, EPSILON)])
    >>> sorted(g.nullable)
    [NonTerminal(index=1)]
    >>> sorted(map(str, g.first(NonTerminal(0))))
    ['a', 'b', 'c']
    """

    def __init__(
        self, start_symbol: Union[NonTerminal, int], productions: Iterable[Production]
    ):
        if isinstance(start_symbol, int):
            start_symbol = NonTerminal(start_symbol)
        self.start_symbol: NonTerminal = start_symbol
        self.productions: list[Production] = list(productions)
        self._nullable: Optional[frozenset[NonTerminal]] = None
        self._first_follow: Optional["FirstFollow"] = None

    @staticmethod
    def from_dfa(dfa: "DFA") -> "Grammar":
        """
        The right linear grammar of a DFA: state q becomes the nonterminal q, a transition q --c--> p
        becomes q -> c p and an accepting state q gets q -> ε
        """
        productions = []
        for state in range(dfa.num_states):
            for symbol in sorted(dfa.transitions[state]):
                productions.append(
                    Production(
                        NonTerminal(state),
                        (Terminal(symbol), NonTerminal(dfa.transitions[state][symbol])),
                    )
                )
            if dfa.is_final_state(state):
                productions.append(
                    Production(NonTerminal(state), (Terminal(EPSILON),))
                )
        return Grammar(dfa.start_state, productions)

    # caches

    def invalidate(self) -> None:
        self._nullable = None
        self._first_follow = None

    def recompute(self) -> None:
        from regram.first_follow import FirstFollow

        self._nullable = self.compute_nullable()
        self._first_follow = FirstFollow(self)

    @property
    def nullable(self) -> frozenset[NonTerminal]:
        if self._nullable is None:
            self.recompute()
        assert self._nullable is not None
        return self._nullable

    @property
    def first_follow(self) -> "FirstFollow":
        if self._first_follow is None:
            self.recompute()
        assert self._first_follow is not None
        return self._first_follow

    def first(self, letter: Letter) -> frozenset[Terminal]:
        return self.first_follow.first(letter)

    def follow(self, non_terminal: NonTerminal) -> frozenset[Terminal]:
        return self.first_follow.follow(non_terminal)

    def first_of_sequence(self, letters: Iterable[Letter]) -> frozenset[Terminal]:
        return self.first_follow.first_of_sequence(letters)

    def set_productions(self, productions: Iterable[Production]) -> None:
        self.productions = list(productions)
        self.invalidate()

    # accessors

    def non_terminals(self) -> list[NonTerminal]:
        non_terminals = {self.start_symbol}
        for production in self.productions:
            non_terminals.add(production.lhs)
            non_terminals.update(production.non_terminals())
        return sorted(non_terminals)

    def terminals(self) -> list[Terminal]:
        return sorted(
            {
                letter
                for production in self.productions
                for letter in production.rhs
                if isinstance(letter, Terminal) and not letter.is_epsilon()
            }
        )

    def productions_of(self, non_terminal: NonTerminal) -> list[Production]:
        return [
            production
            for production in self.productions
            if production.lhs == non_terminal
        ]

    def adjacency(self) -> dict[NonTerminal, list[tuple[Letter, ...]]]:
        adjacency: dict[NonTerminal, list[tuple[Letter, ...]]] = {
            non_terminal: [] for non_terminal in self.non_terminals()
        }
        for production in self.productions:
            adjacency[production.lhs].append(production.rhs)
        return adjacency

    # analyses

    def compute_nullable(self) -> frozenset[NonTerminal]:
        nullable: set[NonTerminal] = set()
        changed = True
        while changed:
            changed = False
            for production in self.productions:
                if production.lhs not in nullable and is_nullable_sequence(
                    production.rhs, nullable
                ):
                    nullable.add(production.lhs)
                    changed = True
        logger.debug("nullable: %s", sorted(map(str, nullable)))
        return frozenset(nullable)

    def reachable(self) -> frozenset[NonTerminal]:
        adjacency = self.adjacency()
        reachable = {self.start_symbol}
        stack = [self.start_symbol]
        while stack:
            for rhs in adjacency.get(stack.pop(), ()):
                for letter in rhs:
                    if isinstance(letter, NonTerminal) and letter not in reachable:
                        reachable.add(letter)
                        stack.append(letter)
        return frozenset(reachable)

    def generators(self) -> frozenset[NonTerminal]:
        """Nonterminals deriving at least one finite string of terminals"""
        generators: set[NonTerminal] = set()
        changed = True
        while changed:
            changed = False
            for production in self.productions:
                if production.lhs not in generators and all(
                    letter in generators for letter in production.non_terminals()
                ):
                    generators.add(production.lhs)
                    changed = True
        return frozenset(generators)

    def unit_pairs(self) -> frozenset[tuple[NonTerminal, NonTerminal]]:
        """
        Pairs (A, B) with A =>* B using unit productions only. The relation is reflexive.

        Examples
        --------
        >>> g = Grammar(0, [Production.of(0, 1), Production.of(1, 2), Production.of(2, 'a')])
        >>> sorted((a.index, b.index) for a, b in g.unit_pairs())
        [(0, 0), (0, 1), (0, 2), (1, 1), (1, 2), (2, 2)]
        """
        unit_edges: dict[NonTerminal, set[NonTerminal]] = {}
        for production in self.productions:
            if production.is_unit():
                unit_edges.setdefault(production.lhs, set()).add(
                    production.rhs[0]  # type: ignore[arg-type]
                )

        pairs = set()
        for source in self.non_terminals():
            seen = {source}
            stack = [source]
            while stack:
                for target in unit_edges.get(stack.pop(), ()):
                    if target not in seen:
                        seen.add(target)
                        stack.append(target)
            pairs.update((source, target) for target in seen)
        return frozenset(pairs)

    # simplification

    def _retain(self, keep: frozenset[NonTerminal]) -> list[Production]:
        return [
            production
            for production in self.productions
            if production.lhs in keep
            and all(letter in keep for letter in production.non_terminals())
        ]

    def remove_useless(self) -> None:
        """Drop the productions using a non generating symbol, then those using an unreachable one"""
        before = len(self.productions)
        generators = self.generators()
        self.set_productions(self._retain(generators))
        reachable = self.reachable()
        self.set_productions(self._retain(reachable))
        logger.debug(
            "%d generators, %d reachable nonterminals", len(generators), len(reachable)
        )
        logger.debug(
            "removed %d useless productions", before - len(self.productions)
        )

    def remove_unit_cycles(self) -> None:
        """
        Replace every unit production A -> B by copies of B's non unit productions

        Examples
        --------
        >>> g = Grammar(0, [Production.of(0, 1), Production.of(1, 'a'), Production.of(1, 0)])
        >>> g.remove_unit_cycles()
        >>> print(g)
        0 -> a
        1 -> a
        """
        pairs = self.unit_pairs()
        non_unit = {
            non_terminal: [
                production
                for production in self.productions_of(non_terminal)
                if not production.is_unit()
            ]
            for non_terminal in self.non_terminals()
        }

        productions = []
        for head in self.non_terminals():
            expanded = list(non_unit[head])
            for source, target in sorted(pairs):
                if source == head and target != head:
                    expanded.extend(
                        Production(head, production.rhs)
                        for production in non_unit[target]
                    )
            productions.extend(unique_everseen(expanded))
        logger.debug(
            "unit pairs %s expanded into %d productions",
            sorted((str(a), str(b)) for a, b in pairs if a != b),
            len(productions),
        )
        self.set_productions(productions)

    def graph_view(self) -> GraphView:
        view = GraphView(start=self.start_symbol.index)
        for non_terminal in self.non_terminals():
            prefix = "s:" if non_terminal == self.start_symbol else ""
            view.add_node(f"{prefix}{non_terminal}", non_terminal.index)
        for production in self.productions:
            for letter in production.non_terminals():
                view.add_edge(
                    production.lhs.index, letter.index, production.rhs_string()
                )
        return view

    def __eq__(self, other):
        if not isinstance(other, Grammar):
            return NotImplemented
        return (
            self.start_symbol == other.start_symbol
            and self.productions == other.productions
        )

    __hash__ = None  # type: ignore[assignment]

    def __str__(self):
        return "\n".join(map(str, self.productions))

    def __repr__(self):
        return f"Grammar(start_symbol={self.start_symbol}, productions={self.productions})"


if __name__ == "__main__":
    import doctest

    doctest.testmod()
