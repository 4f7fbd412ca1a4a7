"""
nullflow.dataflow_engine
========================

Forward nullability dataflow over a statement-level CFG.

Direction:   FORWARD
Confluence:  JOIN, only at explicit join nodes
Lattice:     name -> VariableState  (see :mod:`nullflow.nullness`)

Because the builder emits DAGs, a single pass in reverse post-order reaches
the fixpoint: each node's in-state is computed from predecessors that have
already been processed.

* ``in(start)`` is the empty state.
* A node with one predecessor inherits that predecessor's out-state.  In
  particular the else marker inherits the out-state of its condition node,
  the snapshot of pre-``if`` knowledge.
* A join node folds its predecessors' out-states with :func:`merge_states`
  in predecessor order: the if-branch exit first, then the else-branch exit
  (or the condition node when there is no ``else``).
* ``out(n) = transfer(n.statement, in(n))``.

Usage::

    analysis = NullabilityAnalysis(cfg)
    analysis.run()
    for node in cfg.nodes():
        print(node.code, analysis.state_before(node))
"""

from __future__ import annotations

import logging
from typing import Dict, List

from nullflow.ctrlflow_graph import CFG, CFGNode
from nullflow.errors import AnalysisNotRunError, IssueLog, UnknownNodeError
from nullflow.nullness import AnalysisState, transfer

logger = logging.getLogger(__name__)


def merge_states(left: AnalysisState, right: AnalysisState) -> AnalysisState:
    """Join two branch-exit states.

    Variables known on both sides are joined (disagreement widens to
    ``POTENTIALLY_NULL``); a variable known on one side only is carried
    unchanged.  Result order: *left*'s variables, then those only in
    *right*.
    """
    merged = []
    for name, lvar in left.items():
        rvar = right.get(name)
        merged.append(lvar if rvar is None else lvar.join(rvar))
    for name, rvar in right.items():
        if name not in left:
            merged.append(rvar)
    return AnalysisState(merged)


class NullabilityAnalysis:
    """Computes the :class:`AnalysisState` before and after every node.

    After :meth:`run`, use:
      - ``state_before(node)`` / ``state_after(node)``
      - ``final_state()``
      - ``issues`` for malformed statements that were skipped
    """

    def __init__(self, cfg: CFG) -> None:
        self.cfg = cfg
        self.issues = IssueLog()
        self._in: Dict[CFGNode, AnalysisState] = {}
        self._out: Dict[CFGNode, AnalysisState] = {}
        self._order: List[CFGNode] = []
        self._converged = False

    # ── Fixpoint engine ──────────────────────────────────────────────

    def _incoming(self, node: CFGNode) -> AnalysisState:
        preds = [p for p in node.predecessors if p in self._out]
        if not preds:
            return AnalysisState.empty()
        combined = self._out[preds[0]]
        for p in preds[1:]:
            combined = merge_states(combined, self._out[p])
        if len(preds) > 1:
            logger.debug("join at N%d: %r", node.id, combined)
        return combined

    def run(self) -> NullabilityAnalysis:
        """Compute per-node states.  Re-running recomputes from scratch."""
        self._in.clear()
        self._out.clear()
        self.issues = IssueLog()
        self._order = self.cfg.reverse_postorder()
        for node in self._order:
            in_state = self._incoming(node)
            self._in[node] = in_state
            self._out[node] = transfer(node.statement, in_state, self.issues)
        self._converged = True
        logger.debug(
            "analysed %d nodes of %r, %d issues",
            len(self._order), self.cfg, len(self.issues),
        )
        return self

    # ── Query API ────────────────────────────────────────────────────

    @property
    def has_run(self) -> bool:
        return self._converged

    def _lookup(self, table: Dict[CFGNode, AnalysisState], node: CFGNode) -> AnalysisState:
        if not self._converged:
            raise AnalysisNotRunError()
        try:
            return table[node]
        except KeyError:
            raise UnknownNodeError(node) from None

    def state_before(self, node: CFGNode) -> AnalysisState:
        """State on entry to *node*."""
        return self._lookup(self._in, node)

    def state_after(self, node: CFGNode) -> AnalysisState:
        """State on exit from *node*."""
        return self._lookup(self._out, node)

    def final_state(self) -> AnalysisState:
        """State after the last node in topological order."""
        if not self._converged:
            raise AnalysisNotRunError()
        if not self._order:
            return AnalysisState.empty()
        return self._out[self._order[-1]]

    def __repr__(self) -> str:
        status = "run" if self._converged else "pending"
        return f"NullabilityAnalysis({self.cfg!r}, {status})"
