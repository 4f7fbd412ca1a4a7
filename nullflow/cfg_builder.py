"""
nullflow.cfg_builder
====================

Incremental CFG construction from a source-ordered stream of statement
events.

The builder is driven by a front end (see :mod:`nullflow.frontend`) or by
hand, one call per recognised statement::

    b = CFGBuilder()
    b.on_declaration("int *p = NULL;", True, True, "p")
    b.on_condition_enter("c")
    b.on_assignment("p = &x;", "p", False)
    b.on_condition_else()
    b.on_assignment("p = NULL;", "p", True)
    b.on_condition_exit()
    b.on_expression("use(*p);")
    cfg = b.build()

Branch structure
----------------
``if`` / ``else`` constructs are tracked on an explicit branch stack, one
frame per open condition node::

    if(c) ──true──► if-body ... ──────────────┐
      │                                        ▼
      └──false──► else ──► else-body ... ──► join

Without an ``else`` the false edge goes straight from the condition to the
join node.  The join node gives the dataflow engine a structural merge
point; the else marker has the condition as its only predecessor, so the
else branch starts from pre-``if`` knowledge.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Tuple

from nullflow.ctrlflow_graph import CFG, CFGNode, EdgeKind
from nullflow.errors import IssueKind, IssueLog
from nullflow.statements import BranchRole, Statement

logger = logging.getLogger(__name__)

_DEREF_STAR = re.compile(r"\*\s*([A-Za-z_]\w*)")
_DEREF_ARROW = re.compile(r"([A-Za-z_]\w*)\s*->")


def extract_dereferences(text: str) -> Tuple[str, ...]:
    """Find ``*name`` and ``name->`` sites in *text*, in source order.

    Only used when the front end does not supply resolved dereference
    sites.  Being textual, it cannot tell multiplication from indirection.
    """
    hits = [(m.start(), m.group(1)) for m in _DEREF_STAR.finditer(text)]
    hits.extend((m.start(), m.group(1)) for m in _DEREF_ARROW.finditer(text))
    hits.sort()
    return tuple(name for _, name in hits)


def _declaration_dereferences(text: str) -> Tuple[str, ...]:
    # The declarator (left of the first '=') is never a dereference.
    _, eq, initializer = text.partition("=")
    return extract_dereferences(initializer) if eq else ()


@dataclass
class _BranchFrame:
    """One open ``if`` on the branch stack."""

    condition: CFGNode
    if_exit: Optional[CFGNode] = None
    else_marker: Optional[CFGNode] = None


class CFGBuilder:
    """Grows a :class:`~nullflow.ctrlflow_graph.CFG` one statement at a time.

    Attributes
    ----------
    cfg : CFG
        The graph under construction.
    issues : IssueLog
        Structural inconsistencies found while building.
    """

    def __init__(self, name: Optional[str] = None, issues: Optional[IssueLog] = None) -> None:
        self.issues = issues if issues is not None else IssueLog()
        self.cfg = CFG(name, self.issues)
        self._tail: Optional[CFGNode] = None
        self._next_edge = EdgeKind.FALL_THROUGH
        self._branches: List[_BranchFrame] = []

    # ----- helpers ----------------------------------------------------------

    def _append(self, statement: Statement) -> CFGNode:
        node = self.cfg.add_node(statement)
        if self._tail is not None:
            self.cfg.add_edge(self._tail, node, self._next_edge)
        self._next_edge = EdgeKind.FALL_THROUGH
        self._tail = node
        logger.debug("added %r", node)
        return node

    @staticmethod
    def _derefs(supplied: Optional[Iterable[str]], text: str) -> Tuple[str, ...]:
        if supplied is None:
            return extract_dereferences(text)
        return tuple(supplied)

    @property
    def depth(self) -> int:
        """Number of currently open ``if`` constructs."""
        return len(self._branches)

    @property
    def tail(self) -> Optional[CFGNode]:
        """The most recently appended node."""
        return self._tail

    # ----- straight-line statements -----------------------------------------

    def on_declaration(
        self,
        text: str,
        is_pointer: bool,
        initializer_is_null: bool,
        name: Optional[str],
        *,
        has_initializer: bool = True,
        dereferences: Optional[Iterable[str]] = None,
        source_ref: Any = None,
    ) -> CFGNode:
        derefs = (
            _declaration_dereferences(text) if dereferences is None else tuple(dereferences)
        )
        return self._append(
            Statement.declaration(
                text,
                name,
                is_pointer,
                initializer_is_null,
                has_initializer=has_initializer,
                dereferences=derefs,
                source_ref=source_ref,
            )
        )

    def on_assignment(
        self,
        text: str,
        lhs_name: Optional[str],
        rhs_is_null: bool,
        *,
        dereferences: Optional[Iterable[str]] = None,
        source_ref: Any = None,
    ) -> CFGNode:
        return self._append(
            Statement.assignment(
                text,
                lhs_name,
                rhs_is_null,
                dereferences=self._derefs(dereferences, text),
                source_ref=source_ref,
            )
        )

    def on_expression(
        self,
        text: str,
        *,
        dereferences: Optional[Iterable[str]] = None,
        source_ref: Any = None,
    ) -> CFGNode:
        return self._append(
            Statement.expression(
                text,
                dereferences=self._derefs(dereferences, text),
                source_ref=source_ref,
            )
        )

    def on_jump(
        self,
        text: str,
        returned_name: Optional[str] = None,
        *,
        dereferences: Optional[Iterable[str]] = None,
        source_ref: Any = None,
    ) -> CFGNode:
        return self._append(
            Statement.jump(
                text,
                returned_name,
                dereferences=self._derefs(dereferences, text),
                source_ref=source_ref,
            )
        )

    # ----- branching --------------------------------------------------------

    def on_condition_enter(
        self,
        condition_text: str,
        *,
        dereferences: Optional[Iterable[str]] = None,
        source_ref: Any = None,
    ) -> CFGNode:
        node = self._append(
            Statement.condition(
                condition_text,
                dereferences=self._derefs(dereferences, condition_text),
                source_ref=source_ref,
            )
        )
        self._branches.append(_BranchFrame(condition=node))
        self._next_edge = EdgeKind.BRANCH_TRUE
        return node

    def on_condition_else(self) -> CFGNode:
        frame = self._branches[-1] if self._branches else None
        if frame is None or frame.else_marker is not None:
            self.issues.record(
                IssueKind.STRUCTURAL_INCONSISTENCY,
                "'else' without a matching open 'if'",
            )
            return self._append(Statement.marker(BranchRole.ELSE))

        frame.if_exit = self._tail
        marker = self.cfg.add_node(Statement.marker(BranchRole.ELSE))
        self.cfg.add_edge(frame.condition, marker, EdgeKind.BRANCH_FALSE)
        frame.else_marker = marker
        self._tail = marker
        self._next_edge = EdgeKind.FALL_THROUGH
        logger.debug("else branch of N%d starts at N%d", frame.condition.id, marker.id)
        return marker

    def on_condition_exit(self) -> CFGNode:
        if not self._branches:
            self.issues.record(
                IssueKind.STRUCTURAL_INCONSISTENCY,
                "end of 'if' without a matching open 'if'",
            )
            return self._append(Statement.marker(BranchRole.JOIN))
        return self._close(self._branches.pop())

    def _close(self, frame: _BranchFrame) -> CFGNode:
        tail = self._tail
        if frame.else_marker is None:
            if_exit, other_exit = tail, frame.condition
            other_kind = EdgeKind.BRANCH_FALSE
        else:
            if_exit, other_exit = frame.if_exit, tail
            other_kind = EdgeKind.FALL_THROUGH

        join = self.cfg.add_node(Statement.marker(BranchRole.JOIN))
        if if_exit is frame.condition:
            # empty if-body
            self.cfg.add_edge(if_exit, join, EdgeKind.BRANCH_TRUE)
        else:
            self.cfg.add_edge(if_exit, join, EdgeKind.FALL_THROUGH)
        self.cfg.add_edge(other_exit, join, other_kind)

        self._tail = join
        self._next_edge = EdgeKind.FALL_THROUGH
        logger.debug("branch at N%d joins at N%d", frame.condition.id, join.id)
        return join

    # ----- result -----------------------------------------------------------

    def build(self) -> CFG:
        """Close any still-open branches and return the graph."""
        while self._branches:
            frame = self._branches.pop()
            self.issues.record(
                IssueKind.STRUCTURAL_INCONSISTENCY,
                "'if' never closed; joining at end of input",
                frame.condition.code,
            )
            self._close(frame)
        return self.cfg
