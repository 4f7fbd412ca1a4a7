"""
nullflow/plus_reporter.py
═════════════════════════

Colourful, cppcheck-compatible rendering of checker findings.

Output formats
──────────────
  • Terminal : termcolor rendering (default when the stream is a TTY)
  • Plain    : one cppcheck line per finding (non-TTY streams)
  • JSON     : one object per line, :func:`to_json_lines`
  • SARIF    : :func:`to_sarif`, or a file when ``$NULLFLOW_REPORT_SARIF``
               is set to a path
  • HTML     : :func:`to_html` (Jinja2), or a file when
               ``$NULLFLOW_REPORT_HTML`` is set to a path

Cppcheck compatibility
──────────────────────
Every finding also has a classic one-liner:
    [filename:line]: (severity) message [errorId]

A clean run renders the explicit line::

    No potential null pointer dereferences found

Usage
─────
    from nullflow.checkers import run_checker
    from nullflow.plus_reporter import Reporter

    with Reporter() as rep:
        rep.report(run_checker(cfg), function="main")
"""

from __future__ import annotations

import enum
import json
import logging
import os
import sys
import textwrap
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, TextIO, Union

import jinja2
from termcolor import colored, cprint

from nullflow.checkers import CheckResult, Finding, NoFindings, NullDereference

logger = logging.getLogger(__name__)

SARIF_ENV = "NULLFLOW_REPORT_SARIF"
HTML_ENV = "NULLFLOW_REPORT_HTML"


def _tool_version() -> str:
    from nullflow import __version__

    return __version__


# ═════════════════════════════════════════════════════════════════════════
#  SEVERITY ENUM
# ═════════════════════════════════════════════════════════════════════════

class Severity(enum.Enum):
    """
    Finding severity levels.

    Each carries:
      • cppcheck_name: the string cppcheck uses in its output
      • color        : termcolor colour name
      • sarif_level  : SARIF 2.1.0 ``level`` string
    """

    ERROR = ("error", "red", "error")
    WARNING = ("warning", "yellow", "warning")
    INFORMATION = ("information", "white", "note")

    def __init__(self, cppcheck_name: str, color: str, sarif_level: str) -> None:
        self.cppcheck_name = cppcheck_name
        self.color = color
        self.sarif_level = sarif_level

    @classmethod
    def for_finding(cls, finding: Finding) -> Severity:
        if isinstance(finding, NoFindings):
            return cls.INFORMATION
        if isinstance(finding, NullDereference) and finding.is_definite:
            return cls.ERROR
        return cls.WARNING


@dataclass
class ReporterStats:
    """Aggregate counts per severity."""
    error: int = 0
    warning: int = 0
    information: int = 0

    def record(self, severity: Severity) -> None:
        attr = severity.cppcheck_name
        setattr(self, attr, getattr(self, attr) + 1)

    @property
    def total(self) -> int:
        return self.error + self.warning + self.information

    def summary_line(self) -> str:
        parts: List[str] = []
        if self.error:
            parts.append(f"{self.error} error{'s' if self.error != 1 else ''}")
        if self.warning:
            parts.append(f"{self.warning} warning{'s' if self.warning != 1 else ''}")
        if self.information:
            parts.append(f"{self.information} info")
        if not parts:
            return "no findings emitted"
        return "; ".join(parts) + f" ({self.total} total)"


# ═════════════════════════════════════════════════════════════════════════
#  FINDING HELPERS
# ═════════════════════════════════════════════════════════════════════════

def _findings_of(source: Union[CheckResult, Iterable[Finding]]) -> List[Finding]:
    if isinstance(source, CheckResult):
        return list(source.findings)
    return list(source)


def cppcheck_line(finding: Finding) -> str:
    """Classic one-liner: ``[file:line]: (severity) message [id]``."""
    if isinstance(finding, NoFindings):
        return finding.message
    sev = Severity.for_finding(finding).cppcheck_name
    return f"[{finding.file}:{finding.line}]: ({sev}) {finding.message} [{finding.error_id}]"


def finding_to_dict(finding: Finding, function: Optional[str] = None) -> Dict[str, Any]:
    """Flatten a finding into JSON-friendly primitives."""
    entry: Dict[str, Any] = {
        "error_id": finding.error_id,
        "severity": Severity.for_finding(finding).cppcheck_name,
        "message": finding.message,
    }
    if function is not None:
        entry["function"] = function
    if isinstance(finding, NoFindings):
        return entry
    entry.update(
        statement=finding.statement_text,
        variable=finding.variable,
        node_id=finding.node_id,
        file=finding.file,
        line=finding.line,
        cwe=finding.cwe,
    )
    if isinstance(finding, NullDereference):
        entry["nullability"] = finding.nullability.name
    return entry


# ═════════════════════════════════════════════════════════════════════════
#  TERMINAL RENDERER
# ═════════════════════════════════════════════════════════════════════════

class _TerminalRenderer:
    """Render findings to a terminal with colours."""

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        self._stream = stream

    def render(self, finding: Finding, function: Optional[str] = None) -> None:
        if isinstance(finding, NoFindings):
            self._stream.write(colored(finding.message, "green", attrs=["bold"]) + "\n")
            self._stream.flush()
            return

        severity = Severity.for_finding(finding)
        lines: List[str] = []

        # ── header: severity[errorId]: message ───────────────────────
        sev_str = colored(
            f"{severity.cppcheck_name}[{finding.error_id}]",
            severity.color,
            attrs=["bold"],
        )
        lines.append(f"{sev_str}: {colored(finding.message, 'white', attrs=['bold'])}")

        # ── location ─────────────────────────────────────────────────
        arrow = colored("-->", "blue", attrs=["bold"])
        if finding.file:
            lines.append(f"  {arrow} {finding.file}:{finding.line}")
        pipe = colored("|", "blue", attrs=["bold"])
        lines.append(f"   {pipe} {finding.statement_text}")

        if function is not None:
            prefix = colored("note", "cyan", attrs=["bold"])
            lines.append(f"  = {prefix}: in function '{function}'")

        cwe_str = colored(f"CWE-{finding.cwe}", "blue", attrs=["underline"])
        lines.append(f"  = {cwe_str}: https://cwe.mitre.org/data/definitions/{finding.cwe}.html")

        lines.append(colored(cppcheck_line(finding), attrs=["dark"]))
        lines.append("")
        self._stream.write("\n".join(lines) + "\n")
        self._stream.flush()


# ═════════════════════════════════════════════════════════════════════════
#  PLAIN RENDERER  (for log files / non-TTY)
# ═════════════════════════════════════════════════════════════════════════

class _PlainRenderer:
    """Non-coloured renderer: one cppcheck-compatible line per finding."""

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        self._stream = stream

    def render(self, finding: Finding, function: Optional[str] = None) -> None:
        self._stream.write(cppcheck_line(finding) + "\n")
        if function is not None and not isinstance(finding, NoFindings):
            self._stream.write(f"  note: in function '{function}'\n")
        self._stream.flush()


# ═════════════════════════════════════════════════════════════════════════
#  SARIF 2.1.0 BUILDER
# ═════════════════════════════════════════════════════════════════════════

class _SarifBuilder:
    """Accumulates findings and writes a SARIF 2.1.0 JSON file."""

    SARIF_VERSION = "2.1.0"
    SARIF_SCHEMA = (
        "https://raw.githubusercontent.com/oasis-tcs/sarif-spec/master/"
        "Schemata/sarif-schema-2.1.0.json"
    )

    def __init__(self) -> None:
        self._results: List[Dict[str, Any]] = []
        self._rules: Dict[str, Dict[str, Any]] = {}

    def add(self, finding: Finding) -> None:
        if isinstance(finding, NoFindings):
            return

        if finding.error_id not in self._rules:
            self._rules[finding.error_id] = {
                "id": finding.error_id,
                "shortDescription": {"text": finding.message},
                "relationships": [
                    {
                        "target": {
                            "id": str(finding.cwe),
                            "guid": "",
                            "toolComponent": {"name": "CWE", "guid": ""},
                        },
                        "kinds": ["superset"],
                    }
                ],
            }

        result: Dict[str, Any] = {
            "ruleId": finding.error_id,
            "level": Severity.for_finding(finding).sarif_level,
            "message": {"text": finding.message},
            "properties": {"cwe": finding.cwe, "statement": finding.statement_text},
        }
        if finding.file:
            result["locations"] = [
                {
                    "physicalLocation": {
                        "artifactLocation": {"uri": finding.file},
                        "region": {"startLine": finding.line},
                    }
                }
            ]
        self._results.append(result)

    def to_json(self, tool_name: str = "nullflow", version: Optional[str] = None) -> str:
        sarif: Dict[str, Any] = {
            "$schema": self.SARIF_SCHEMA,
            "version": self.SARIF_VERSION,
            "runs": [
                {
                    "tool": {
                        "driver": {
                            "name": tool_name,
                            "version": version or _tool_version(),
                            "rules": list(self._rules.values()),
                        }
                    },
                    "results": self._results,
                }
            ],
        }
        return json.dumps(sarif, indent=2)

    def write(self, path: str, tool_name: str = "nullflow", version: Optional[str] = None) -> None:
        Path(path).write_text(self.to_json(tool_name, version), encoding="utf-8")


# ═════════════════════════════════════════════════════════════════════════
#  HTML BUILDER
# ═════════════════════════════════════════════════════════════════════════

class _HtmlBuilder:
    """Accumulates findings and renders them to HTML via Jinja2."""

    def __init__(self) -> None:
        self._findings: List[Dict[str, Any]] = []

    def add(self, finding: Finding, function: Optional[str] = None) -> None:
        if isinstance(finding, NoFindings):
            return
        self._findings.append(finding_to_dict(finding, function))

    def render(self, template_path: Optional[str] = None) -> str:
        env = jinja2.Environment(autoescape=True)
        tmpl = env.from_string(self._load_template(template_path))
        return tmpl.render(
            findings=self._findings,
            total=len(self._findings),
            clean_message=NoFindings.message,
        )

    def write(self, path: str, template_path: Optional[str] = None) -> None:
        Path(path).write_text(self.render(template_path), encoding="utf-8")

    @staticmethod
    def _load_template(template_path: Optional[str]) -> str:
        if template_path:
            return Path(template_path).read_text(encoding="utf-8")
        env_tmpl = os.environ.get("NULLFLOW_HTML_TEMPLATE", "")
        if env_tmpl and Path(env_tmpl).is_file():
            return Path(env_tmpl).read_text(encoding="utf-8")
        return _DEFAULT_HTML_TEMPLATE


# ═════════════════════════════════════════════════════════════════════════
#  ONE-SHOT SERIALISERS
# ═════════════════════════════════════════════════════════════════════════

def to_json_lines(source: Union[CheckResult, Iterable[Finding]],
                  function: Optional[str] = None) -> str:
    """One JSON object per finding, newline separated."""
    return "\n".join(
        json.dumps(finding_to_dict(f, function), sort_keys=True)
        for f in _findings_of(source)
    )


def to_sarif(source: Union[CheckResult, Iterable[Finding]],
             tool_name: str = "nullflow", version: Optional[str] = None) -> str:
    builder = _SarifBuilder()
    for finding in _findings_of(source):
        builder.add(finding)
    return builder.to_json(tool_name, version)


def to_html(source: Union[CheckResult, Iterable[Finding]],
            function: Optional[str] = None,
            template_path: Optional[str] = None) -> str:
    builder = _HtmlBuilder()
    for finding in _findings_of(source):
        builder.add(finding, function)
    return builder.render(template_path)


# ═════════════════════════════════════════════════════════════════════════
#  REPORTER  (main entry point)
# ═════════════════════════════════════════════════════════════════════════

class Reporter:
    """
    Central finding dispatcher.

    Use as a context manager::

        with Reporter() as rep:
            rep.report(result, function="main")
        # finish() is called automatically

    SARIF / HTML files are written by :meth:`finish` when a path is given,
    either explicitly or through ``$NULLFLOW_REPORT_SARIF`` /
    ``$NULLFLOW_REPORT_HTML``.
    """

    def __init__(
        self,
        stream: TextIO = sys.stderr,
        colour: Optional[bool] = None,
        tool_name: str = "nullflow",
        tool_version: Optional[str] = None,
        sarif_path: Optional[str] = None,
        html_path: Optional[str] = None,
    ) -> None:
        self.tool_name = tool_name
        self.tool_version = tool_version or _tool_version()
        self.stats = ReporterStats()
        self.findings: List[Finding] = []
        self._stream = stream

        use_colour = colour if colour is not None else hasattr(stream, "isatty") and stream.isatty()
        if use_colour:
            self._renderer: Union[_TerminalRenderer, _PlainRenderer] = _TerminalRenderer(stream)
        else:
            self._renderer = _PlainRenderer(stream)

        self._sarif_path = sarif_path or os.environ.get(SARIF_ENV, "")
        self._sarif: Optional[_SarifBuilder] = _SarifBuilder() if self._sarif_path else None

        self._html_path = html_path or os.environ.get(HTML_ENV, "")
        self._html: Optional[_HtmlBuilder] = _HtmlBuilder() if self._html_path else None

    def __enter__(self) -> Reporter:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.finish()

    def report(self, source: Union[CheckResult, Iterable[Finding]],
               function: Optional[str] = None) -> None:
        """Render every finding of *source* and route it to the file outputs."""
        for finding in _findings_of(source):
            self._accept(finding, function)

    def _accept(self, finding: Finding, function: Optional[str]) -> None:
        if not isinstance(finding, NoFindings):
            self.stats.record(Severity.for_finding(finding))
        self.findings.append(finding)
        self._renderer.render(finding, function)
        if self._sarif is not None:
            self._sarif.add(finding)
        if self._html is not None:
            self._html.add(finding, function)

    def finish(self) -> ReporterStats:
        """Print the summary line and write SARIF / HTML if configured."""
        summary = self.stats.summary_line()
        if isinstance(self._renderer, _TerminalRenderer):
            colour = "red" if self.stats.error else "yellow" if self.stats.total else "green"
            cprint(f"  ╰─ {summary}", colour, attrs=["bold"], file=self._stream)
        else:
            print(f"  {summary}", file=self._stream)

        if self._sarif is not None:
            try:
                self._sarif.write(self._sarif_path, self.tool_name, self.tool_version)
            except OSError as exc:
                logger.error("failed to write SARIF to %s: %s", self._sarif_path, exc)

        if self._html is not None:
            try:
                self._html.write(self._html_path)
            except OSError as exc:
                logger.error("failed to write HTML to %s: %s", self._html_path, exc)

        return self.stats


# ═════════════════════════════════════════════════════════════════════════
#  DEFAULT HTML TEMPLATE
# ═════════════════════════════════════════════════════════════════════════

_DEFAULT_HTML_TEMPLATE = textwrap.dedent("""\
<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>nullflow report</title>
  <style>
    body { font-family: monospace; background: #1e1e2e; color: #cdd6f4; padding: 2rem; }
    .card { background: #313244; border-radius: 8px; padding: 1rem; margin-bottom: 1rem; }
    .sev-error   { border-left: 4px solid #f38ba8; }
    .sev-warning { border-left: 4px solid #f9e2af; }
    .loc { color: #89b4fa; }
    .stmt { margin-top: 0.4rem; color: #a6adc8; }
    .cwe { color: #cba6f7; margin-top: 0.3rem; }
    .summary { margin-top: 2rem; text-align: center; }
  </style>
</head>
<body>
  <h1>Null pointer dereference report</h1>
  {% for f in findings %}
  <div class="card sev-{{ f.severity }}">
    <strong>{{ f.severity }}</strong> <code>[{{ f.error_id }}]</code>
    {% if f.file %}<span class="loc">{{ f.file }}:{{ f.line }}</span>{% endif %}
    {% if f.function %}<span class="loc">in {{ f.function }}</span>{% endif %}
    <div>{{ f.message }}</div>
    <div class="stmt"><code>{{ f.statement }}</code></div>
    <div class="cwe">CWE-{{ f.cwe }}</div>
  </div>
  {% else %}
  <div class="card">{{ clean_message }}</div>
  {% endfor %}
  <div class="summary">{{ total }} finding{{ 's' if total != 1 else '' }}.</div>
</body>
</html>
""")


__all__ = [
    "Severity",
    "ReporterStats",
    "Reporter",
    "cppcheck_line",
    "finding_to_dict",
    "to_json_lines",
    "to_sarif",
    "to_html",
]
