# nullflow/errors.py
"""
Issue taxonomy and exceptions.

The analysis is a best-effort heuristic, so problems with the *input* never
abort a run.  They are recorded as :class:`AnalysisIssue` entries in an
:class:`IssueLog` and logged:

┌────────────────────────────┬──────────┬──────────────────────────────────┐
│ IssueKind                  │ Code     │ Policy                           │
├────────────────────────────┼──────────┼──────────────────────────────────┤
│ MALFORMED_INPUT            │ NF-1001  │ skip tracking for the statement  │
│ UNKNOWN_VARIABLE           │ NF-1002  │ no finding for the site          │
│ STRUCTURAL_INCONSISTENCY   │ NF-1003  │ link the marker, pop nothing     │
└────────────────────────────┴──────────┴──────────────────────────────────┘

Exceptions (:class:`NullflowError` and subclasses) are reserved for misuse
of the API itself, e.g. asking the analysis about a node from another graph.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, unique
from typing import Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


@unique
class IssueKind(Enum):
    """Non-fatal input problems detected during a run."""

    MALFORMED_INPUT = ("NF-1001", logging.DEBUG)
    UNKNOWN_VARIABLE = ("NF-1002", logging.DEBUG)
    STRUCTURAL_INCONSISTENCY = ("NF-1003", logging.WARNING)

    def __init__(self, code: str, log_level: int) -> None:
        self.code = code
        self.log_level = log_level


@dataclass(frozen=True)
class AnalysisIssue:
    """A single recorded input problem."""

    kind: IssueKind
    message: str
    statement_text: Optional[str] = None

    def __str__(self) -> str:
        where = f" at '{self.statement_text}'" if self.statement_text else ""
        return f"{self.kind.code}: {self.message}{where}"


class IssueLog:
    """Ordered collector of :class:`AnalysisIssue` records."""

    def __init__(self) -> None:
        self._issues: List[AnalysisIssue] = []

    def record(
        self,
        kind: IssueKind,
        message: str,
        statement_text: Optional[str] = None,
    ) -> AnalysisIssue:
        issue = AnalysisIssue(kind, message, statement_text)
        self._issues.append(issue)
        logger.log(kind.log_level, "%s", issue)
        return issue

    def extend(self, other: IssueLog) -> None:
        self._issues.extend(other)

    def of_kind(self, kind: IssueKind) -> List[AnalysisIssue]:
        return [i for i in self._issues if i.kind is kind]

    def counts(self) -> Dict[IssueKind, int]:
        result: Dict[IssueKind, int] = {}
        for issue in self._issues:
            result[issue.kind] = result.get(issue.kind, 0) + 1
        return result

    def __iter__(self) -> Iterator[AnalysisIssue]:
        return iter(self._issues)

    def __len__(self) -> int:
        return len(self._issues)

    def __bool__(self) -> bool:
        return bool(self._issues)

    def __repr__(self) -> str:
        return f"IssueLog({len(self._issues)} issues)"


# ═════════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ═════════════════════════════════════════════════════════════════════════

class NullflowError(Exception):
    """Base class for API misuse errors raised by nullflow."""


class UnknownNodeError(NullflowError, KeyError):
    """A CFG node that is not part of the analysed graph was queried."""

    def __init__(self, node: object) -> None:
        super().__init__(f"node {node!r} is not part of the analysed CFG")
        self.node = node


class AnalysisNotRunError(NullflowError, RuntimeError):
    """Per-node states were requested before ``run()`` was called."""

    def __init__(self) -> None:
        super().__init__("NullabilityAnalysis.run() has not been called")
