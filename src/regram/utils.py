from enum import IntFlag, auto
from typing import Generic, Hashable, Iterable, NamedTuple, TypeVar

T = TypeVar("T")

EPSILON = "ε"


class Fragment(NamedTuple, Generic[T]):
    start: T
    end: T


class BuildFlag(IntFlag):
    NOFLAG = 0
    DEBUG = auto()  # log every fixpoint round and show progress bars
    EPSILON_CONCAT = auto()  # textbook concatenation through an epsilon edge

    def debug(self) -> bool:
        return bool(self & BuildFlag.DEBUG)


class UnionFind:
    """A disjoint-set data structure with path compression and union by rank.
    The amortized running time is O(m ⍺(n)) for m disjoint-set operations on n elements, where
    ⍺(n) is the inverse Ackermann function. ⍺(n) grows extremely slowly and can be assumed to be ⩽ 5 for
    all practical purposes.
    Operations:
        MAKE-SET(x) – creates a new set with one element {x}.
        UNION(x, y) – merge into one set the set that contains element x and the
                        set that contains element y.
        FIND-SET(x) – returns the representative of the set that contains element x.

    Here it is used to merge the equivalence classes of indistinguishable DFA states.

    Reference:
        1.  Cormen, Leiserson, Rivest, Stein,. "Chapter 21: Data structures for Disjoint Sets".
            Introduction to Algorithms (Third ed.). MIT Press. pp. 571–572. ISBN 978-0-262-03384-8.
        2.  https://en.wikipedia.org/wiki/Disjoint-set_data_structure

    Examples
    --------
    >>> uf = UnionFind(range(5))
    >>> uf.union(0, 3)
    True
    >>> uf.union(3, 0)
    False
    >>> uf.find(0) == uf.find(3)
    True
    >>> uf.n_sets
    4
    >>> sorted(map(sorted, uf.to_sets()))
    [[0, 3], [1], [2], [4]]
    """

    def __init__(self, items: Iterable[Hashable] = ()):
        self.parents: dict = {}
        self.ranks: dict = {}
        self.n_sets = 0

        for item in items:
            self.make_set(item)

    def make_set(self, item) -> None:
        if item not in self.parents:
            self.parents[item] = item
            self.ranks[item] = 0
            self.n_sets += 1

    def find(self, item):
        # FIND-SET()
        if item not in self.parents:
            self.make_set(item)
            return item
        # store nodes in the path leading to the root(representative) for later updating
        # this is the path-compression step
        path = [item]
        root = self.parents[item]
        while root != path[-1]:
            path.append(root)
            root = self.parents[root]
        for node in path:
            self.parents[node] = root
        return root

    __getitem__ = find

    def union(self, x, y) -> bool:
        """Merge the sets containing x and y. Returns False if they were already merged."""
        x, y = self.find(x), self.find(y)
        if x == y:
            return False
        if self.ranks[x] < self.ranks[y]:
            x, y = y, x
        self.parents[y] = x
        if self.ranks[x] == self.ranks[y]:
            self.ranks[x] += 1
        self.n_sets -= 1
        return True

    def is_head(self, item) -> bool:
        return self.parents.get(item) == item

    def __iter__(self):
        return iter(self.parents)

    def __len__(self):
        return len(self.parents)

    def to_sets(self):
        groups: dict = {}
        for item in self.parents:
            groups.setdefault(self.find(item), set()).add(item)
        yield from groups.values()

    def __str__(self):
        return str(list(self.to_sets()))


if __name__ == "__main__":
    import doctest

    doctest.testmod()
