import logging
from dataclasses import dataclass
from typing import Final, Iterable, Optional

from regram.grammar import Grammar, Letter, NonTerminal, Production, Terminal
from regram.utils import EPSILON

logger = logging.getLogger(__name__)

DOT: Final[Terminal] = Terminal("•")
EPSILON_TERMINAL: Final[Terminal] = Terminal(EPSILON)


@dataclass(frozen=True, slots=True)
class Item:
    """
    A production with a dot marking how much of it has been recognized, and an optional lookahead

    Examples
    --------
    >>> item = Item(itemize(Production.of(1, '(', 1, ')'))[1], Terminal('$'))
    >>> print(item)
    1 -> ( • 1 ) , $
    >>> item.next_letter()
    NonTerminal(index=1)
    >>> print(item.advance())
    1 -> ( 1 • ) , $
    """

    production: Production
    lookahead: Optional[Terminal] = None

    @property
    def dot_position(self) -> int:
        return self.production.rhs.index(DOT)

    def next_letter(self) -> Optional[Letter]:
        position = self.dot_position + 1
        if position < len(self.production.rhs):
            return self.production.rhs[position]
        return None

    def is_complete(self) -> bool:
        return self.next_letter() is None

    def advance(self) -> "Item":
        if self.is_complete():
            raise ValueError(f"cannot advance the complete item {self}")
        rhs = list(self.production.rhs)
        position = self.dot_position
        rhs[position], rhs[position + 1] = rhs[position + 1], rhs[position]
        return Item(Production(self.production.lhs, tuple(rhs)), self.lookahead)

    def __str__(self):
        if self.lookahead is None:
            return f"{self.production}"
        return f"{self.production} , {self.lookahead}"


def itemize(production: Production) -> list[Production]:
    """
    Every way to place the dot in a production. An ε production has the single item A -> •

    >>> [str(p) for p in itemize(Production.of(0, 'a', 1))]
    ['0 -> • a 1', '0 -> a • 1', '0 -> a 1 •']
    >>> [str(p) for p in itemize(Production.of(0, EPSILON))]
    ['0 -> •']
    """
    if production.rhs == (EPSILON_TERMINAL,) or not production.rhs:
        return [Production(production.lhs, (DOT,))]
    return [
        Production(
            production.lhs,
            production.rhs[:position] + (DOT,) + production.rhs[position:],
        )
        for position in range(len(production.rhs) + 1)
    ]


def itemization(productions: Iterable[Production]) -> list[Production]:
    return [item for production in productions for item in itemize(production)]


def lookaheads(
    rest: tuple[Letter, ...], lookahead: Optional[Terminal], grammar: Grammar
) -> list[Optional[Terminal]]:
    # the lookaheads of items predicted for a nonterminal followed by `rest`
    if lookahead is None:
        return [None]
    first = grammar.first_of_sequence(rest)
    terminals: list[Optional[Terminal]] = sorted(first - {EPSILON_TERMINAL})
    if EPSILON_TERMINAL in first:
        terminals.append(lookahead)
    return terminals


def closure(items: Iterable[Item], grammar: Grammar) -> frozenset[Item]:
    """
    Add the predicted items N -> •γ for every item with the dot before the nonterminal N

    Lookaheads propagate as in LR(1): the predicted items get FIRST of what follows N in the item,
    and the item's own lookahead when that suffix is nullable. Items without a lookahead predict
    items without one.
    """
    result = set(items)
    n_seeds = len(result)
    stack = list(result)
    visited: set[tuple[NonTerminal, Optional[Terminal]]] = set()

    while stack:
        item = stack.pop()
        letter = item.next_letter()
        if not isinstance(letter, NonTerminal):
            continue
        rest = item.production.rhs[item.dot_position + 2 :]
        for lookahead in lookaheads(rest, item.lookahead, grammar):
            if (letter, lookahead) in visited:
                continue
            visited.add((letter, lookahead))
            for production in grammar.productions_of(letter):
                predicted = Item(itemize(production)[0], lookahead)
                if predicted not in result:
                    result.add(predicted)
                    stack.append(predicted)

    logger.debug("closure: %d items -> %d items", n_seeds, len(result))
    return frozenset(result)


def goto(items: Iterable[Item], letter: Letter) -> frozenset[Item]:
    """The kernel reached by moving the dot over `letter`; it still has to be closed"""
    return frozenset(item.advance() for item in items if item.next_letter() == letter)


def canonical_collection(
    grammar: Grammar, start_items: Iterable[Item]
) -> tuple[list[frozenset[Item]], dict[tuple[int, Letter], int]]:
    """
    The closed item sets reachable from the closure of `start_items`, and the goto transitions
    between them. State 0 is the closure of the start items.
    """
    states = [closure(start_items, grammar)]
    state_indices = {states[0]: 0}
    transitions: dict[tuple[int, Letter], int] = {}

    current = 0
    while current < len(states):
        state = states[current]
        letters = sorted(
            {letter for item in state if (letter := item.next_letter()) is not None}
        )
        for letter in letters:
            target = closure(goto(state, letter), grammar)
            if target not in state_indices:
                state_indices[target] = len(states)
                states.append(target)
            transitions[(current, letter)] = state_indices[target]
        current += 1

    logger.debug(
        "canonical collection: %d states, %d transitions",
        len(states),
        len(transitions),
    )
    return states, transitions


if __name__ == "__main__":
    import doctest

    doctest.testmod()
