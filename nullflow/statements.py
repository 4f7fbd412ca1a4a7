"""
nullflow.statements
===================

The closed set of statement variants a CFG node can carry.

A :class:`Statement` records the resolved operand information the analysis
needs (operand name, pointer flag, null initializer, dereference sites) at
build time, so neither the dataflow engine nor the checker ever re-parses
statement text.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple


class StatementKind(enum.Enum):
    """Classification of a statement."""

    DECLARATION = "declaration"
    ASSIGNMENT = "assignment"
    EXPRESSION = "expression"
    JUMP = "jump"
    CONDITION_ENTRY = "condition-entry"
    BRANCH_MARKER = "branch-marker"


class BranchRole(enum.Enum):
    """Role of a synthetic ``BRANCH_MARKER`` statement."""

    ELSE = "else"
    JOIN = "join"


@dataclass(frozen=True)
class Statement:
    """An immutable statement, created once by the CFG builder.

    Attributes
    ----------
    kind : StatementKind
    source_text : str
        The original statement text.
    source_ref : object or None
        Opaque handle to the producing parse-tree node or token.  Carried
        along for callers; never interpreted by the analysis.
    name : str or None
        Declared variable, assignment target or returned variable.
    is_pointer : bool
        Declarations only: the declarator denotes a pointer type.
    is_null : bool
        The initializer (declarations) or right-hand side (assignments) is
        the null pointer constant.
    has_initializer : bool
        Declarations only.
    dereferences : tuple of str
        Names dereferenced by this statement, in source order.
    role : BranchRole or None
        Set for ``BRANCH_MARKER`` statements only.
    """

    kind: StatementKind
    source_text: str
    source_ref: Any = field(default=None, compare=False, repr=False)
    name: Optional[str] = None
    is_pointer: bool = False
    is_null: bool = False
    has_initializer: bool = False
    dereferences: Tuple[str, ...] = ()
    role: Optional[BranchRole] = None

    # ----- constructors ------------------------------------------------------

    @classmethod
    def declaration(
        cls,
        text: str,
        name: Optional[str],
        is_pointer: bool,
        initializer_is_null: bool,
        *,
        has_initializer: bool = True,
        dereferences: Tuple[str, ...] = (),
        source_ref: Any = None,
    ) -> Statement:
        return cls(
            StatementKind.DECLARATION,
            text,
            source_ref=source_ref,
            name=name,
            is_pointer=is_pointer,
            is_null=initializer_is_null and has_initializer,
            has_initializer=has_initializer,
            dereferences=tuple(dereferences),
        )

    @classmethod
    def assignment(
        cls,
        text: str,
        name: Optional[str],
        rhs_is_null: bool,
        *,
        dereferences: Tuple[str, ...] = (),
        source_ref: Any = None,
    ) -> Statement:
        return cls(
            StatementKind.ASSIGNMENT,
            text,
            source_ref=source_ref,
            name=name,
            is_null=rhs_is_null,
            dereferences=tuple(dereferences),
        )

    @classmethod
    def expression(
        cls,
        text: str,
        *,
        dereferences: Tuple[str, ...] = (),
        source_ref: Any = None,
    ) -> Statement:
        return cls(
            StatementKind.EXPRESSION,
            text,
            source_ref=source_ref,
            dereferences=tuple(dereferences),
        )

    @classmethod
    def jump(
        cls,
        text: str,
        returned_name: Optional[str] = None,
        *,
        dereferences: Tuple[str, ...] = (),
        source_ref: Any = None,
    ) -> Statement:
        return cls(
            StatementKind.JUMP,
            text,
            source_ref=source_ref,
            name=returned_name,
            dereferences=tuple(dereferences),
        )

    @classmethod
    def condition(
        cls,
        condition_text: str,
        *,
        dereferences: Tuple[str, ...] = (),
        source_ref: Any = None,
    ) -> Statement:
        return cls(
            StatementKind.CONDITION_ENTRY,
            f"if({condition_text})",
            source_ref=source_ref,
            dereferences=tuple(dereferences),
        )

    @classmethod
    def marker(cls, role: BranchRole) -> Statement:
        return cls(StatementKind.BRANCH_MARKER, role.value, role=role)

    # ----- queries -----------------------------------------------------------

    @property
    def is_marker(self) -> bool:
        return self.kind is StatementKind.BRANCH_MARKER

    @property
    def is_join(self) -> bool:
        return self.role is BranchRole.JOIN

    @property
    def updates_state(self) -> bool:
        """Whether the transfer function may change state at this statement."""
        return self.kind in (StatementKind.DECLARATION, StatementKind.ASSIGNMENT)

    def __str__(self) -> str:
        return self.source_text
