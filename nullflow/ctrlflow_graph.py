"""
nullflow.ctrlflow_graph
=======================

Statement-level control flow graphs.

Every node wraps exactly one :class:`~nullflow.statements.Statement`; edges
carry a coarse :class:`EdgeKind` used for rendering.  Graphs are built
append-only by :class:`~nullflow.cfg_builder.CFGBuilder`, so they are DAGs
(loops are not modelled).

Public API
----------
    EdgeKind   - classification of a CFG edge
    CFGNode    - a single statement node
    CFGEdge    - a directed edge between two CFGNodes
    CFG        - the control flow graph for one translation unit / function

Typical usage::

    from nullflow.cfg_builder import CFGBuilder

    builder = CFGBuilder()
    builder.on_declaration("int *p = NULL;", True, True, "p")
    builder.on_assignment("*p = 5;", None, False, dereferences=("p",))
    cfg = builder.build()
    for node in cfg.nodes():
        print(node.id, node.statement.source_text)
    print(cfg.to_dot(title="main"))
"""

from __future__ import annotations

import enum
from collections import deque
from typing import Deque, Dict, Iterator, List, Optional, Set, Tuple

from nullflow.errors import IssueLog
from nullflow.statements import Statement, StatementKind


# ---------------------------------------------------------------------------
# Edge kinds
# ---------------------------------------------------------------------------


class EdgeKind(enum.Enum):
    """Classification of a CFG edge."""

    FALL_THROUGH = "fall-through"
    BRANCH_TRUE = "branch-true"
    BRANCH_FALSE = "branch-false"


# ---------------------------------------------------------------------------
# CFGNode
# ---------------------------------------------------------------------------


class CFGNode:
    """A statement node in the CFG.

    Nodes compare and hash by identity: two structurally identical
    statements are distinct nodes.

    Attributes
    ----------
    id : int
        Identifier unique within the owning graph, in creation order.
    statement : Statement
    successors : list[CFGNode]
        Nodes to which control may pass, in insertion order.
    predecessors : list[CFGNode]
        Nodes from which control may arrive, in insertion order.
    """

    __slots__ = ("id", "statement", "successors", "predecessors")

    def __init__(self, node_id: int, statement: Statement) -> None:
        self.id: int = node_id
        self.statement: Statement = statement
        self.successors: List[CFGNode] = []
        self.predecessors: List[CFGNode] = []

    @property
    def code(self) -> str:
        return self.statement.source_text

    @property
    def kind(self) -> StatementKind:
        return self.statement.kind

    def label(self) -> str:
        """Return a compact, human-readable label for this node."""
        return f"N{self.id}: {self.statement.source_text}"

    def __repr__(self) -> str:
        return (
            f"CFGNode(id={self.id}, kind={self.statement.kind.value!r}, "
            f"code={self.statement.source_text!r})"
        )


# ---------------------------------------------------------------------------
# CFGEdge
# ---------------------------------------------------------------------------


class CFGEdge:
    """A directed edge in the CFG."""

    __slots__ = ("src", "dst", "kind")

    def __init__(
        self,
        src: CFGNode,
        dst: CFGNode,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
    ) -> None:
        self.src = src
        self.dst = dst
        self.kind = kind

    def __repr__(self) -> str:
        return f"CFGEdge(N{self.src.id} -> N{self.dst.id}, kind={self.kind.value!r})"


# ---------------------------------------------------------------------------
# CFG
# ---------------------------------------------------------------------------


class CFG:
    """Statement-level control flow graph.

    Attributes
    ----------
    name : str or None
        Optional name (e.g. the function the graph was built from).
    start : CFGNode or None
        The first node added, ``None`` for an empty graph.
    edges : list[CFGEdge]
        All edges, in insertion order.
    issues : IssueLog
        Input problems recorded while the graph was built.
    """

    def __init__(self, name: Optional[str] = None, issues: Optional[IssueLog] = None) -> None:
        self.name = name
        self.issues = issues if issues is not None else IssueLog()
        self.start: Optional[CFGNode] = None
        self.edges: List[CFGEdge] = []
        self._nodes: List[CFGNode] = []
        self._edge_index: Dict[Tuple[int, int], CFGEdge] = {}

    # ----- graph mutation ---------------------------------------------------

    def add_node(self, statement: Statement) -> CFGNode:
        """Create a node for *statement*, register it and return it.

        The first node added becomes :attr:`start`.
        """
        node = CFGNode(len(self._nodes), statement)
        self._nodes.append(node)
        if self.start is None:
            self.start = node
        return node

    def add_edge(
        self,
        src: CFGNode,
        dst: CFGNode,
        kind: EdgeKind = EdgeKind.FALL_THROUGH,
    ) -> CFGEdge:
        """Create an edge and wire up successor/predecessor lists.

        Adding the same ``(src, dst)`` pair twice returns the existing edge.
        """
        key = (src.id, dst.id)
        existing = self._edge_index.get(key)
        if existing is not None:
            return existing
        e = CFGEdge(src, dst, kind)
        self.edges.append(e)
        self._edge_index[key] = e
        src.successors.append(dst)
        dst.predecessors.append(src)
        return e

    # ----- queries ----------------------------------------------------------

    def successors_of(self, node: CFGNode) -> List[CFGNode]:
        return list(node.successors)

    def predecessors_of(self, node: CFGNode) -> List[CFGNode]:
        return list(node.predecessors)

    def edge(self, src: CFGNode, dst: CFGNode) -> Optional[CFGEdge]:
        return self._edge_index.get((src.id, dst.id))

    def owns(self, node: CFGNode) -> bool:
        return 0 <= node.id < len(self._nodes) and self._nodes[node.id] is node

    def nodes(self) -> List[CFGNode]:
        """All nodes reachable from :attr:`start`, in breadth-first order.

        Each reachable node appears exactly once; successors are enqueued in
        insertion order, so the result is deterministic.
        """
        if self.start is None:
            return []
        result: List[CFGNode] = []
        visited: Set[CFGNode] = {self.start}
        queue: Deque[CFGNode] = deque([self.start])
        while queue:
            current = queue.popleft()
            result.append(current)
            for succ in current.successors:
                if succ not in visited:
                    visited.add(succ)
                    queue.append(succ)
        return result

    def reverse_postorder(self) -> List[CFGNode]:
        """Reachable nodes in reverse post-order (a topological order).

        Every node appears after all of its reachable predecessors.
        """
        if self.start is None:
            return []
        order: List[CFGNode] = []
        visited: Set[CFGNode] = {self.start}
        stack: List[Tuple[CFGNode, Iterator[CFGNode]]] = [
            (self.start, iter(self.start.successors))
        ]
        while stack:
            node, succs = stack[-1]
            for succ in succs:
                if succ not in visited:
                    visited.add(succ)
                    stack.append((succ, iter(succ.successors)))
                    break
            else:
                stack.pop()
                order.append(node)
        order.reverse()
        return order

    def reachable_from(self, start: CFGNode) -> Set[CFGNode]:
        """Return the set of nodes reachable from *start*."""
        visited: Set[CFGNode] = set()
        worklist = [start]
        while worklist:
            n = worklist.pop()
            if n in visited:
                continue
            visited.add(n)
            worklist.extend(n.successors)
        return visited

    def __iter__(self) -> Iterator[CFGNode]:
        return iter(self.nodes())

    def __len__(self) -> int:
        return len(self._nodes)

    # ----- serialisation helpers --------------------------------------------

    def format_graph(self) -> str:
        """Depth-first listing of every node followed by its successors."""
        if self.start is None:
            return ""
        lines: List[str] = []
        visited: Set[CFGNode] = set()

        def enter(node: CFGNode) -> Iterator[CFGNode]:
            visited.add(node)
            lines.append(f"Node: {node.code}")
            return iter(node.successors)

        stack: List[Iterator[CFGNode]] = [enter(self.start)]
        while stack:
            for succ in stack[-1]:
                lines.append(f"  Successor: {succ.code}")
                if succ not in visited:
                    stack.append(enter(succ))
                    break
            else:
                stack.pop()
        return "\n".join(lines)

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation of this CFG."""
        lines = ["digraph CFG {"]
        title = title if title is not None else self.name
        if title:
            lines.append(f'  label="{title}";')
        lines.append("  node [shape=box, fontname=monospace, fontsize=10];")
        for n in self._nodes:
            lbl = n.code.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
            style = ""
            if n.kind is StatementKind.CONDITION_ENTRY:
                style = ", shape=diamond"
            elif n.kind is StatementKind.BRANCH_MARKER:
                style = ', style=filled, fillcolor="#e0e0e0"'
            lines.append(f'  N{n.id} [label="N{n.id}\\n{lbl}"{style}];')
        for e in self.edges:
            style = ""
            if e.kind is EdgeKind.BRANCH_TRUE:
                style = ', color=green, fontcolor=green'
            elif e.kind is EdgeKind.BRANCH_FALSE:
                style = ', color=red, fontcolor=red'
            lines.append(
                f'  N{e.src.id} -> N{e.dst.id} [label="{e.kind.value}"{style}];'
            )
        lines.append("}")
        return "\n".join(lines)

    def render(self, path: str, fmt: str = "svg", title: Optional[str] = None) -> str:
        """Render the graph with Graphviz; returns the written file path.

        Requires the ``graphviz`` package (``pip install nullflow[viz]``).
        """
        import graphviz

        source = graphviz.Source(self.to_dot(title=title))
        return source.render(outfile=path, format=fmt, cleanup=True)

    def __repr__(self) -> str:
        name = self.name or "<anonymous>"
        return f"CFG(name={name!r}, nodes={len(self._nodes)}, edges={len(self.edges)})"
