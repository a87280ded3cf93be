import re
from abc import ABC, ABCMeta, abstractmethod
from dataclasses import dataclass
from string import ascii_letters, digits
from typing import Final, Generic, Optional, TypeVar

from regram.graph import GraphView

V = TypeVar("V")

OPERATORS: Final[str] = "()|*"
ALLOWED_SYMBOLS: Final[frozenset[str]] = frozenset(ascii_letters + digits)
ALLOWED_CHARACTERS: Final[frozenset[str]] = ALLOWED_SYMBOLS | frozenset(OPERATORS)
SCOPE_DELIMITERS: Final[str] = "|()"


class RegexpParsingError(Exception):
    ...


class InvalidCharacter(RegexpParsingError):
    def __init__(self, char: str):
        self.char = char
        super().__init__(
            f"invalid character {char!r}: only [A-Za-z0-9()|*] is accepted"
        )


class UnbalancedParentheses(RegexpParsingError):
    def __init__(self):
        super().__init__("unbalanced parentheses")


class InvalidToken(RegexpParsingError):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class RegexNode(ABC):
    # finds upper case letters which are not at the beginning of a string
    pattern = re.compile(r"(?<!^)(?=[A-Z])")

    def accept(self, visitor: "RegexNodesVisitor"):
        """
        This is the acceptor of an instance of RegexNodesVisitor
        Works by finding the appropriate method in the visitor.

        The appropriate visit method for a class X is `visit_ + to_snake_case(X)`

        Examples
        --------
        >>> Printer = type(
        ...     "Printer",
        ...     (),
        ...     {
        ...         "visit_literal": lambda _self, literal: print(f"a literal {literal.char}"),
        ...         "visit_star": lambda _self, star: star.inner.accept(_self),
        ...     },
        ... )
        >>> Star(Literal('a')).accept(Printer())
        a literal a
        """
        method_name = f"visit_{self.pattern.sub('_', self.__class__.__name__).lower()}"
        visit_method = getattr(visitor, method_name)
        return visit_method(self)

    @abstractmethod
    def to_string(self) -> str:
        """
        Converts ("reverse engineers") a regex node to a source string that parses back to it
        """
        ...

    @abstractmethod
    def label(self) -> str:
        ...

    @abstractmethod
    def children(self) -> tuple["RegexNode", ...]:
        ...

    def graph_view(self) -> GraphView:
        """
        One node per AST node, with edges going from a parent to its children, left child first

        Examples
        --------
        >>> view = parse('ab').graph_view()
        >>> view.nodes
        {0: '·', 1: 'a', 2: 'b'}
        >>> view.edges
        [(0, 1, None), (0, 2, None)]
        """
        view = GraphView()
        stack: list[tuple[Optional[int], RegexNode]] = [(None, self)]
        while stack:
            parent, node = stack.pop()
            node_id = view.add_node(node.label())
            if parent is not None:
                view.add_edge(parent, node_id)
            stack.extend((node_id, child) for child in reversed(node.children()))
        return view


@dataclass(frozen=True, slots=True)
class Literal(RegexNode):
    char: str

    def to_string(self) -> str:
        return self.char

    def label(self) -> str:
        return self.char

    def children(self) -> tuple[RegexNode, ...]:
        return ()

    def __repr__(self):
        return f"{self.char}"


@dataclass(frozen=True, slots=True)
class Concat(RegexNode):
    left: RegexNode
    right: RegexNode

    def to_string(self) -> str:
        """
        The parser reads a run of symbols as one token folded to the left, and a token
        following a group becomes a single operand. The right side is grouped whenever
        writing it bare would be read differently.

        Examples
        --------
        >>> Concat(Concat(Star(parse('abb')), Literal('a')), Literal('a')).to_string()
        '(abb)*a(a)'
        >>> Concat(Star(parse('a|b')), parse('ab')).to_string()
        '(a|b)*ab'
        """
        left = self.left.to_string()
        if isinstance(self.left, Alternation):
            left = f"({left})"
        right = self.right.to_string()
        if left.endswith((")", ")*")):
            bare = is_token(self.right) or isinstance(self.right, Star)
        elif "(" in left:
            # the trailing symbols of `left` already form an operand of their own
            bare = isinstance(self.right, Star) and not is_symbol(self.right)
        else:
            bare = isinstance(self.right, (Literal, Star))
        if not bare:
            right = f"({right})"
        return left + right

    def label(self) -> str:
        return "·"

    def children(self) -> tuple[RegexNode, ...]:
        return self.left, self.right


@dataclass(frozen=True, slots=True)
class Alternation(RegexNode):
    left: RegexNode
    right: RegexNode

    def to_string(self) -> str:
        # alternation folds to the right
        left = self.left.to_string()
        if isinstance(self.left, Alternation):
            left = f"({left})"
        return f"{left}|{self.right.to_string()}"

    def label(self) -> str:
        return "|"

    def children(self) -> tuple[RegexNode, ...]:
        return self.left, self.right


@dataclass(frozen=True, slots=True)
class Star(RegexNode):
    inner: RegexNode

    def to_string(self) -> str:
        if isinstance(self.inner, Literal):
            return f"{self.inner.to_string()}*"
        return f"({self.inner.to_string()})*"

    def label(self) -> str:
        return "*"

    def children(self) -> tuple[RegexNode, ...]:
        return (self.inner,)


def is_symbol(node: RegexNode) -> bool:
    return isinstance(node, Literal) or (
        isinstance(node, Star) and isinstance(node.inner, Literal)
    )


def is_token(node: RegexNode) -> bool:
    """A run of symbols as the parser folds it: ((x y) z) with each symbol optionally starred"""
    if isinstance(node, Concat):
        return is_token(node.left) and is_symbol(node.right)
    return is_symbol(node)


class RegexNodesVisitor(Generic[V], metaclass=ABCMeta):
    @abstractmethod
    def visit_literal(self, literal: Literal) -> V:
        ...

    @abstractmethod
    def visit_concat(self, concat: Concat) -> V:
        ...

    @abstractmethod
    def visit_alternation(self, alternation: Alternation) -> V:
        ...

    @abstractmethod
    def visit_star(self, star: Star) -> V:
        ...


class RegexParser:
    """
    Recursive descent parser for the regular expressions

        expr   ::= term ('|' expr)?
        term   ::= factor+
        factor ::= atom '*'?
        atom   ::= symbol | '(' expr ')'

    Alternation is right associative, concatenation is left associative and the star applies
    only to the symbol or the parenthesized group right before it.

    The parser works one scope at a time: '(' and '|' open a new scope which is parsed recursively,
    ')' closes the current one. The number of open parentheses is tracked in `depth`.

    Examples
    --------
    >>> RegexParser('ab|c').root
    Alternation(left=Concat(left=a, right=b), right=c)
    >>> RegexParser('ab*').root
    Concat(left=a, right=Star(inner=b))
    >>> RegexParser('(a')
    Traceback (most recent call last):
        ...
    regram.parser.UnbalancedParentheses: unbalanced parentheses
    """

    def __init__(self, regex: str):
        self._regex = regex
        self._pos = 0
        self._depth = 0
        self._root = self.parse_scope()
        if self._depth != 0:
            raise UnbalancedParentheses()

    @property
    def root(self) -> RegexNode:
        return self._root

    def within_bounds(self) -> bool:
        return self._pos < len(self._regex)

    def current(self) -> str:
        return self._regex[self._pos]

    def matches(self, char: str) -> bool:
        return self.within_bounds() and self.current() == char

    def consume_and_return(self) -> str:
        char = self.current()
        self._pos += 1
        return char

    @staticmethod
    def validate(char: str) -> str:
        if char not in ALLOWED_CHARACTERS:
            raise InvalidCharacter(char)
        return char

    def parse_scope(self) -> RegexNode:
        # parse until the current scope is closed by a ')' or the input ends
        tree = self.parse_next(None)
        depth = self._depth
        while self.within_bounds():
            tree = self.parse_next(tree)
            if depth > self._depth:
                # a nested call consumed the ')' that closes this scope
                break
        return tree

    def parse_next(self, tree: Optional[RegexNode]) -> RegexNode:
        """Fold the next group, alternation or token into the running tree"""
        if not self.within_bounds():
            if tree is None:
                raise InvalidToken("empty string is not accepted")
            return tree

        match self.validate(self.current()):
            case "(":
                self.consume_and_return()
                self._depth += 1
                group = self.parse_scope()
                if self.matches("*"):
                    self.consume_and_return()
                    group = Star(group)
                tree = group if tree is None else Concat(tree, group)
            case "|":
                self.consume_and_return()
                if tree is None:
                    raise InvalidToken("cannot begin with |")
                tree = Alternation(tree, self.parse_scope())
            case ")":
                self.consume_and_return()
                self._depth -= 1
                if self._depth < 0:
                    raise UnbalancedParentheses()
                if tree is None:
                    raise InvalidToken("empty parentheses are not accepted")
            case _:
                token = self.parse_token(self.next_token())
                tree = token if tree is None else Concat(tree, token)
        return tree

    def next_token(self) -> str:
        """Consume the run of symbols and stars up to the next '(', ')', '|' or the end of input"""
        chars = []
        while self.within_bounds() and self.current() not in SCOPE_DELIMITERS:
            chars.append(self.validate(self.consume_and_return()))
        return "".join(chars)

    @staticmethod
    def parse_token(token: str) -> RegexNode:
        """
        Parse a token: a run of symbols, each optionally followed by a single star

        Examples
        --------
        >>> RegexParser.parse_token('da*b')
        Concat(left=Concat(left=d, right=Star(inner=a)), right=b)
        >>> RegexParser.parse_token('ab**c')
        Traceback (most recent call last):
            ...
        regram.parser.InvalidToken: cannot have Kleene star without a symbol
        """
        if not token:
            raise InvalidToken("empty token")
        if token.startswith("*"):
            raise InvalidToken("a token can't start with *")

        tree: Optional[RegexNode] = None
        pos = 0
        while pos < len(token):
            char = token[pos]
            pos += 1
            if char == "*":
                raise InvalidToken("cannot have Kleene star without a symbol")
            node: RegexNode = Literal(char)
            if pos < len(token) and token[pos] == "*":
                pos += 1
                node = Star(node)
            tree = node if tree is None else Concat(tree, node)
        assert tree is not None
        return tree

    def __repr__(self):
        return f"Parser({self._regex})"


def parse(regex: str) -> RegexNode:
    return RegexParser(regex).root


if __name__ == "__main__":
    import doctest

    doctest.testmod()
