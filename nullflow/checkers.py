"""
nullflow/checkers.py
════════════════════

The null-dereference checker: the "last mile" that turns per-node
nullability states into findings.

Pipeline
────────

  statement events ──► CFGBuilder ──► CFG
                                       │
                          NullabilityAnalysis.run()
                                       │  state before / after every node
                                       ▼
                               NullDerefChecker.check()
                                       │
                                       ▼
               CheckResult(findings=(NullDereference | NullReturn ...)
                                     or (NoFindings(),))

Findings are produced in breadth-first node order, so a run over an
unchanged event sequence always yields the same findings in the same order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, ClassVar, FrozenSet, Iterator, List, Optional, Tuple, Union

from nullflow.cfg_builder import CFGBuilder
from nullflow.config import AnalysisOptions, DEFAULT_OPTIONS
from nullflow.ctrlflow_graph import CFG
from nullflow.dataflow_engine import NullabilityAnalysis
from nullflow.errors import IssueKind, IssueLog
from nullflow.nullness import Nullability
from nullflow.statements import StatementKind

logger = logging.getLogger(__name__)

CWE_NULL_DEREFERENCE = 476


# ═════════════════════════════════════════════════════════════════════════
#  PART 1: FINDING RECORDS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class NullDereference:
    """A dereference of a pointer that is null on at least one path."""
    variable: str
    statement_text: str
    nullability: Nullability = Nullability.NULL
    node_id: int = -1
    file: str = field(default="", compare=False)
    line: int = field(default=0, compare=False)

    cwe: ClassVar[int] = CWE_NULL_DEREFERENCE

    @property
    def location(self) -> str:
        return self.statement_text

    @property
    def is_definite(self) -> bool:
        return self.nullability is Nullability.NULL

    @property
    def error_id(self) -> str:
        return "nullDeref" if self.is_definite else "nullDerefPossible"

    @property
    def message(self) -> str:
        if self.is_definite:
            return f"Null pointer dereference: '{self.variable}' is null"
        return f"Possible null pointer dereference: '{self.variable}' may be null"


@dataclass(frozen=True)
class NullReturn:
    """A ``return`` of a pointer known to be null."""
    statement_text: str
    variable: Optional[str] = None
    node_id: int = -1
    file: str = field(default="", compare=False)
    line: int = field(default=0, compare=False)

    error_id: ClassVar[str] = "nullReturn"
    cwe: ClassVar[int] = CWE_NULL_DEREFERENCE

    @property
    def message(self) -> str:
        return f"Returning a null pointer '{self.variable}'"


@dataclass(frozen=True)
class NoFindings:
    """Terminal marker: the checker ran and found nothing."""

    error_id: ClassVar[str] = "noFindings"
    message: ClassVar[str] = "No potential null pointer dereferences found"


Finding = Union[NullDereference, NullReturn, NoFindings]


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one checker run.

    ``findings`` is never empty: a clean run holds exactly ``(NoFindings(),)``.
    """
    findings: Tuple[Finding, ...]
    issues: Tuple = field(default=(), compare=False)

    @property
    def has_findings(self) -> bool:
        return not isinstance(self.findings[0], NoFindings)

    @property
    def dereferences(self) -> List[NullDereference]:
        return [f for f in self.findings if isinstance(f, NullDereference)]

    @property
    def returns(self) -> List[NullReturn]:
        return [f for f in self.findings if isinstance(f, NullReturn)]

    def __iter__(self) -> Iterator[Finding]:
        return iter(self.findings)

    def __len__(self) -> int:
        return len(self.findings)


# ═════════════════════════════════════════════════════════════════════════
#  PART 2: CHECKER
# ═════════════════════════════════════════════════════════════════════════

def _source_position(ref) -> dict:
    """``file``/``line`` keywords from a Cppcheck token, when there is one."""
    if ref is None:
        return {}
    return {
        "file": getattr(ref, "file", None) or "",
        "line": int(getattr(ref, "linenr", 0) or 0),
    }


class NullDerefChecker:
    """
    Reports dereferences of NULL / POTENTIALLY_NULL pointers and returns of
    NULL pointers.

    Every site is judged against the state *before* its statement, so
    ``p = NULL; *p = 1;`` is flagged while ``*p = 1; p = NULL;`` is not.
    Names that were never declared or assigned are not reported.
    """

    name: ClassVar[str] = "null-deref"
    description: ClassVar[str] = "Null pointer dereference detection"
    error_ids: ClassVar[FrozenSet[str]] = frozenset(
        {"nullDeref", "nullDerefPossible", "nullReturn"}
    )

    def __init__(self, options: Optional[AnalysisOptions] = None) -> None:
        self.options = options or DEFAULT_OPTIONS

    def _reportable(self, nullability: Nullability) -> bool:
        if nullability is Nullability.NULL:
            return True
        return (
            nullability is Nullability.POTENTIALLY_NULL
            and self.options.report_potentially_null
        )

    def check(self, cfg: CFG, analysis: NullabilityAnalysis) -> CheckResult:
        if not analysis.has_run:
            analysis.run()
        issues = IssueLog()
        findings: List[Finding] = []

        for node in cfg.nodes():
            stmt = node.statement
            state = analysis.state_before(node)

            seen = set()
            for name in stmt.dereferences:
                if name in seen:
                    continue
                seen.add(name)
                var = state.get(name)
                if var is None:
                    issues.record(
                        IssueKind.UNKNOWN_VARIABLE,
                        f"dereference of untracked name '{name}'",
                        stmt.source_text,
                    )
                    continue
                if not var.is_pointer or not self._reportable(var.nullability):
                    continue
                finding = NullDereference(
                    variable=name,
                    statement_text=stmt.source_text,
                    nullability=var.nullability,
                    node_id=node.id,
                    **_source_position(stmt.source_ref),
                )
                logger.info("%s at N%d: %s", finding.error_id, node.id, stmt.source_text)
                findings.append(finding)

            if stmt.kind is StatementKind.JUMP and stmt.name is not None:
                var = state.get(stmt.name)
                if var is None:
                    issues.record(
                        IssueKind.UNKNOWN_VARIABLE,
                        f"return of untracked name '{stmt.name}'",
                        stmt.source_text,
                    )
                elif (
                    self.options.report_null_returns
                    and var.is_pointer
                    and var.nullability is Nullability.NULL
                ):
                    findings.append(
                        NullReturn(
                            statement_text=stmt.source_text,
                            variable=stmt.name,
                            node_id=node.id,
                            **_source_position(stmt.source_ref),
                        )
                    )
                    logger.info("nullReturn at N%d: %s", node.id, stmt.source_text)

        if not findings:
            findings.append(NoFindings())
        all_issues = tuple(cfg.issues) + tuple(analysis.issues) + tuple(issues)
        return CheckResult(findings=tuple(findings), issues=all_issues)


# ═════════════════════════════════════════════════════════════════════════
#  PART 3: STATE DUMP
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StateDumpRow:
    """One node of the diagnostic dump."""
    node_id: int
    code: str
    variable: Optional[str] = None
    is_pointer: bool = False
    nullability: Optional[Nullability] = None

    def __str__(self) -> str:
        if self.variable is None:
            return f"Node: {self.code} - No variable"
        state = str(self.nullability) if self.is_pointer else "Not a pointer"
        return f"Node: {self.code} - Variable: {self.variable} - State: {state}"


def dump_states(cfg: CFG, analysis: NullabilityAnalysis) -> List[StateDumpRow]:
    """Per node in BFS order: its text and its variable's state after it."""
    if not analysis.has_run:
        analysis.run()
    rows: List[StateDumpRow] = []
    for node in cfg.nodes():
        name = node.statement.name
        var = analysis.state_after(node).get(name) if name is not None else None
        if var is None:
            rows.append(StateDumpRow(node.id, node.code))
            continue
        rows.append(
            StateDumpRow(
                node.id,
                node.code,
                variable=name,
                is_pointer=var.is_pointer,
                nullability=var.nullability if var.is_pointer else None,
            )
        )
    return rows


def format_dump(rows: List[StateDumpRow]) -> str:
    return "\n".join(str(r) for r in rows)


# ═════════════════════════════════════════════════════════════════════════
#  PART 4: PIPELINE HELPERS
# ═════════════════════════════════════════════════════════════════════════

def run_checker(cfg: CFG, options: Optional[AnalysisOptions] = None) -> CheckResult:
    """Analyse *cfg* and check it in one call."""
    analysis = NullabilityAnalysis(cfg).run()
    return NullDerefChecker(options).check(cfg, analysis)


def analyze_events(
    drive: Callable[[CFGBuilder], None],
    options: Optional[AnalysisOptions] = None,
    name: Optional[str] = None,
) -> CheckResult:
    """Build a CFG by calling ``drive(builder)``, then analyse and check it.

    Builder issues (structural inconsistencies) are included in the
    result's ``issues``.
    """
    builder = CFGBuilder(name)
    drive(builder)
    return run_checker(builder.build(), options)
