"""
nullflow: Null Pointer Dereference Detection for C
===================================================

Builds a statement-level control flow graph, runs a forward nullability
dataflow over it and reports dereferences of pointers that are null on at
least one path.

Core modules
------------
statements
    The closed set of statement variants a CFG node carries.
ctrlflow_graph
    ``CFGNode`` / ``CFG`` with BFS and reverse post-order traversal, DOT export.
cfg_builder
    ``CFGBuilder``: turns source-ordered statement events into a CFG.
nullness
    The nullability lattice, per-variable state and the transfer function.
dataflow_engine
    The join at if/else merge points and the per-node analysis driver.
checkers
    ``NullDerefChecker`` and the finding records.
frontend
    Drives a ``CFGBuilder`` from a Cppcheck dump token list.
plus_reporter
    Terminal / cppcheck-line / JSON / SARIF / HTML rendering of findings.

Quick start
-----------
>>> from nullflow import analyze_events
>>> def drive(b):
...     b.on_declaration("int *p = NULL;", True, True, "p")
...     b.on_assignment("*p = 5;", None, False)
>>> result = analyze_events(drive)
>>> [f.error_id for f in result]
['nullDeref']
"""

from __future__ import annotations

import logging
import sys
from typing import List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__license__ = "MIT"

_log = logging.getLogger(__name__)
_log.addHandler(logging.NullHandler())


def configure_logging(verbosity: int) -> None:
    """Set up the root ``nullflow`` logger for applications.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    _log.setLevel(level)
    _log.addHandler(handler)


from nullflow.config import AnalysisOptions, DEFAULT_OPTIONS  # noqa: E402
from nullflow.errors import (  # noqa: E402
    AnalysisIssue,
    AnalysisNotRunError,
    IssueKind,
    IssueLog,
    NullflowError,
    UnknownNodeError,
)
from nullflow.statements import BranchRole, Statement, StatementKind  # noqa: E402
from nullflow.ctrlflow_graph import CFG, CFGEdge, CFGNode, EdgeKind  # noqa: E402
from nullflow.cfg_builder import CFGBuilder  # noqa: E402
from nullflow.nullness import AnalysisState, Nullability, VariableState, transfer  # noqa: E402
from nullflow.dataflow_engine import NullabilityAnalysis, merge_states  # noqa: E402
from nullflow.checkers import (  # noqa: E402
    CheckResult,
    NoFindings,
    NullDereference,
    NullDerefChecker,
    NullReturn,
    analyze_events,
    dump_states,
    format_dump,
    run_checker,
)
from nullflow.frontend import build_all_cfgs, build_cfg, walk_scope  # noqa: E402

__all__: List[str] = [
    "__version__",
    "configure_logging",
    "AnalysisOptions",
    "DEFAULT_OPTIONS",
    "AnalysisIssue",
    "AnalysisNotRunError",
    "IssueKind",
    "IssueLog",
    "NullflowError",
    "UnknownNodeError",
    "BranchRole",
    "Statement",
    "StatementKind",
    "CFG",
    "CFGEdge",
    "CFGNode",
    "EdgeKind",
    "CFGBuilder",
    "AnalysisState",
    "Nullability",
    "VariableState",
    "transfer",
    "NullabilityAnalysis",
    "merge_states",
    "CheckResult",
    "NoFindings",
    "NullDereference",
    "NullDerefChecker",
    "NullReturn",
    "analyze_events",
    "dump_states",
    "format_dump",
    "run_checker",
    "build_all_cfgs",
    "build_cfg",
    "walk_scope",
]
