from dataclasses import dataclass, field
from typing import Optional

import graphviz

Edge = tuple[int, int, Optional[str]]


@dataclass(slots=True)
class GraphView:
    """
    A read-only snapshot of an AST, an automaton or a grammar for a renderer to lay out

    Attributes
    ----------
    nodes: dict[int, str]
        node id to node label
    edges: list[tuple[int, int, Optional[str]]]
        (from, to, label) triples, in insertion order
    start: Optional[int]
        the node a renderer should mark as the entry point, if any
    accepting: set[int]
        nodes a renderer should draw as final
    """

    nodes: dict[int, str] = field(default_factory=dict)
    edges: list[Edge] = field(default_factory=list)
    start: Optional[int] = None
    accepting: set[int] = field(default_factory=set)

    def add_node(self, label: str, node_id: Optional[int] = None) -> int:
        if node_id is None:
            node_id = len(self.nodes)
        self.nodes[node_id] = label
        return node_id

    def add_edge(self, start: int, end: int, label: Optional[str] = None) -> int:
        self.edges.append((start, end, label))
        return len(self.edges) - 1

    def edges_from(self, node_id: int) -> list[Edge]:
        return [edge for edge in self.edges if edge[0] == node_id]

    def to_digraph(self, name: str = "graph") -> graphviz.Digraph:
        """
        Describe this view as a graphviz digraph. Nothing is rendered: callers own rendering.

        Examples
        --------
        >>> view = GraphView()
        >>> view.add_node('s:0', 0)
        0
        >>> view.add_edge(0, 0, 'a')
        0
        >>> 'label=a' in view.to_digraph().source
        True
        """
        dot = graphviz.Digraph(name, engine="dot")
        dot.attr("graph", rankdir="LR")
        dot.attr("node", fontname="verdana")
        dot.attr("edge", fontname="verdana")

        for node_id, label in self.nodes.items():
            dot.node(
                str(node_id),
                label=label,
                color="green" if node_id == self.start else "",
                shape="doublecircle" if node_id in self.accepting else "circle",
            )
        for start, end, label in self.edges:
            if label is None:
                dot.edge(str(start), str(end))
            else:
                dot.edge(str(start), str(end), label=label)

        if self.start is not None:
            dot.node("start", shape="none")
            dot.edge("start", str(self.start), arrowhead="vee")
        return dot


if __name__ == "__main__":
    import doctest

    doctest.testmod()
