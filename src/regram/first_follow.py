import logging
from typing import Iterable

from regram.grammar import (
    STRING_END,
    Grammar,
    Letter,
    NonTerminal,
    Production,
    Terminal,
)
from regram.utils import EPSILON

logger = logging.getLogger(__name__)

EPSILON_TERMINAL = Terminal(EPSILON)
STRING_END_TERMINAL = Terminal(STRING_END)


class FirstFollow:
    """
    FIRST and FOLLOW sets of a grammar, computed eagerly by fixpoint iteration

    FIRST(X) holds ε exactly when X is nullable. FOLLOW sets never hold ε,
    and FOLLOW of the start symbol holds the end marker $.

    Examples
    --------
    >>> S, A = NonTerminal(0), NonTerminal(1)
    >>> g = Grammar(S, [Production.of(0, 1, 'b'), Production.of(0, 'c'),
    ...                 Production.of(1, 'a', 1), Production.of(1, EPSILON)])
    >>> first_follow = FirstFollow(g)
    >>> sorted(map(str, first_follow.first(A)))
    ['a', 'ε']
    >>> sorted(map(str, first_follow.follow(A)))
    ['b']
    >>> sorted(map(str, first_follow.follow(S)))
    ['$']
    """

    def __init__(self, grammar: Grammar):
        self.start_symbol = grammar.start_symbol
        self.nullable: frozenset[NonTerminal] = grammar.compute_nullable()
        self.first_table: dict[NonTerminal, set[Terminal]] = {
            non_terminal: set() for non_terminal in grammar.non_terminals()
        }
        self.follow_table: dict[NonTerminal, set[Terminal]] = {
            non_terminal: set() for non_terminal in grammar.non_terminals()
        }
        self.compute_first(grammar.productions)
        self.compute_follow(grammar.productions)

    def compute_first(self, productions: list[Production]):
        changed, rounds = True, 0
        while changed:
            changed, rounds = False, rounds + 1
            for production in productions:
                first = self.first_of_sequence(production.rhs) - {EPSILON_TERMINAL}
                table = self.first_table[production.lhs]
                if not first <= table:
                    table.update(first)
                    changed = True
        for non_terminal in self.nullable:
            self.first_table[non_terminal].add(EPSILON_TERMINAL)
        logger.debug("FIRST converged after %d rounds", rounds)

    def compute_follow(self, productions: list[Production]):
        self.follow_table[self.start_symbol].add(STRING_END_TERMINAL)
        changed, rounds = True, 0
        while changed:
            changed, rounds = False, rounds + 1
            for production in productions:
                for position, letter in enumerate(production.rhs):
                    if not isinstance(letter, NonTerminal):
                        continue
                    rest = self.first_of_sequence(production.rhs[position + 1 :])
                    follow = rest - {EPSILON_TERMINAL}
                    if EPSILON_TERMINAL in rest:
                        # the rest of the production can vanish
                        follow |= self.follow_table[production.lhs]
                    table = self.follow_table[letter]
                    if not follow <= table:
                        table.update(follow)
                        changed = True
        logger.debug("FOLLOW converged after %d rounds", rounds)

    def first(self, letter: Letter) -> frozenset[Terminal]:
        if isinstance(letter, NonTerminal):
            return frozenset(self.first_table[letter])
        assert isinstance(letter, Terminal)
        return frozenset((letter,))

    def follow(self, non_terminal: NonTerminal) -> frozenset[Terminal]:
        return frozenset(self.follow_table[non_terminal])

    def first_of_sequence(self, letters: Iterable[Letter]) -> frozenset[Terminal]:
        """FIRST of a string of letters; it holds ε when every letter is nullable, the empty string included"""
        first: set[Terminal] = set()
        for letter in letters:
            if isinstance(letter, Terminal):
                if letter.is_epsilon():
                    continue
                first.add(letter)
                return frozenset(first)
            assert isinstance(letter, NonTerminal)
            first.update(self.first_table[letter] - {EPSILON_TERMINAL})
            if letter not in self.nullable:
                return frozenset(first)
        first.add(EPSILON_TERMINAL)
        return frozenset(first)


if __name__ == "__main__":
    import doctest

    doctest.testmod()
