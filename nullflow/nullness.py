"""
nullflow.nullness
=================

Nullability lattice, per-variable state and the transfer function.

Lattice
-------
::

              POTENTIALLY_NULL          (⊤, most conservative)
               /            \\
          ASSIGNED         NULL
               \\            /
                 UNASSIGNED             (⊥)

``join`` keeps agreeing values and widens any disagreement to
``POTENTIALLY_NULL``; ``UNASSIGNED`` is the identity.

Transfer
--------
``transfer(statement, state)`` is pure: it returns a new
:class:`AnalysisState` and never mutates its argument.  Only declarations
and assignments change state.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, Optional

from nullflow.errors import IssueKind, IssueLog
from nullflow.statements import Statement, StatementKind

logger = logging.getLogger(__name__)


class Nullability(Enum):
    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    NULL = "null"
    POTENTIALLY_NULL = "potentially-null"

    @property
    def may_be_null(self) -> bool:
        return self in (Nullability.NULL, Nullability.POTENTIALLY_NULL)

    def join(self, other: Nullability) -> Nullability:
        if self is Nullability.UNASSIGNED:
            return other
        if other is Nullability.UNASSIGNED:
            return self
        if self is other:
            return self
        return Nullability.POTENTIALLY_NULL

    def leq(self, other: Nullability) -> bool:
        if self is Nullability.UNASSIGNED or other is Nullability.POTENTIALLY_NULL:
            return True
        return self is other

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class VariableState:
    """Nullability knowledge about one variable at one program point."""

    name: str
    is_pointer: bool
    nullability: Nullability = Nullability.UNASSIGNED

    def with_nullability(self, nullability: Nullability) -> VariableState:
        return VariableState(self.name, self.is_pointer, nullability)

    def join(self, other: VariableState) -> VariableState:
        return VariableState(
            self.name,
            self.is_pointer or other.is_pointer,
            self.nullability.join(other.nullability),
        )

    def __repr__(self) -> str:
        kind = "ptr" if self.is_pointer else "val"
        return f"{self.name}:{kind}={self.nullability.name}"


class AnalysisState(Mapping):
    """Immutable ``name -> VariableState`` map for one program point.

    Iteration follows insertion order, which keeps every derived result
    deterministic.
    """

    __slots__ = ("_vars",)

    def __init__(self, variables: Optional[Iterable[VariableState]] = None) -> None:
        self._vars: Dict[str, VariableState] = {}
        for v in variables or ():
            self._vars[v.name] = v

    @classmethod
    def empty(cls) -> AnalysisState:
        return cls()

    def with_variable(self, var: VariableState) -> AnalysisState:
        """Return a copy in which *var* replaces any entry of the same name."""
        new = AnalysisState()
        new._vars = dict(self._vars)
        new._vars[var.name] = var
        return new

    def nullability_of(self, name: str) -> Nullability:
        var = self._vars.get(name)
        return var.nullability if var is not None else Nullability.UNASSIGNED

    def pointers(self) -> Iterator[VariableState]:
        return (v for v in self._vars.values() if v.is_pointer)

    # ----- Mapping protocol ---------------------------------------------------

    def __getitem__(self, name: str) -> VariableState:
        return self._vars[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AnalysisState):
            return self._vars == other._vars
        return NotImplemented

    def __hash__(self) -> int:
        return hash(tuple(self._vars.items()))

    def __repr__(self) -> str:
        inner = ", ".join(repr(v) for v in self._vars.values())
        return f"AnalysisState({inner})"


# ═════════════════════════════════════════════════════════════════════════
#  TRANSFER FUNCTION
# ═════════════════════════════════════════════════════════════════════════


def _initial_nullability(is_null: bool) -> Nullability:
    return Nullability.NULL if is_null else Nullability.ASSIGNED


def transfer(
    statement: Statement,
    state: AnalysisState,
    issues: Optional[IssueLog] = None,
) -> AnalysisState:
    """Return the state after *statement*, given the state before it."""
    if not statement.updates_state:
        return state

    name = statement.name
    if name is None:
        if issues is not None:
            issues.record(
                IssueKind.MALFORMED_INPUT,
                f"cannot resolve the variable of this {statement.kind.value}",
                statement.source_text,
            )
        return state

    if statement.kind is StatementKind.DECLARATION:
        if statement.is_pointer:
            var = VariableState(name, True, _initial_nullability(statement.is_null))
        else:
            var = VariableState(name, False, Nullability.ASSIGNED)
        logger.debug("declare %r", var)
        return state.with_variable(var)

    # StatementKind.ASSIGNMENT
    current = state.get(name)
    if current is None:
        # untracked target: remember it, but not as a pointer
        return state.with_variable(VariableState(name, False, Nullability.ASSIGNED))
    if not current.is_pointer:
        return state
    updated = current.with_nullability(_initial_nullability(statement.is_null))
    logger.debug("assign %r -> %r", current, updated)
    return state.with_variable(updated)
