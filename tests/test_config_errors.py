# tests/test_config_errors.py
"""
Tests for AnalysisOptions, the issue taxonomy / IssueLog collector and the
package-level logging helper.
"""

import logging

import pytest

import nullflow
from nullflow.config import DEFAULT_NULL_LITERALS, AnalysisOptions
from nullflow.errors import (
    AnalysisIssue,
    AnalysisNotRunError,
    IssueKind,
    IssueLog,
    NullflowError,
    UnknownNodeError,
)


class TestAnalysisOptions:

    def test_defaults(self):
        opts = AnalysisOptions()
        assert opts.null_literals == DEFAULT_NULL_LITERALS
        assert opts.report_potentially_null
        assert opts.report_null_returns

    @pytest.mark.parametrize("text, expected", [
        ("NULL", True),
        (" ( void * ) 0 ", True),
        ("nullptr", True),
        ("&x", False),
        ("", False),
        (None, False),
    ])
    def test_is_null_literal(self, text, expected):
        assert AnalysisOptions().is_null_literal(text) is expected

    def test_from_env(self):
        opts = AnalysisOptions.from_env({
            "NULLFLOW_NULL_LITERALS": "NIL, nil",
            "NULLFLOW_REPORT_POSSIBLE": "off",
            "NULLFLOW_REPORT_RETURNS": "yes",
        })
        assert opts.null_literals == frozenset({"NIL", "nil"})
        assert not opts.report_potentially_null
        assert opts.report_null_returns

    def test_from_env_ignores_garbage(self, caplog):
        with caplog.at_level(logging.WARNING, logger="nullflow.config"):
            opts = AnalysisOptions.from_env({"NULLFLOW_REPORT_POSSIBLE": "maybe"})
        assert opts.report_potentially_null
        assert "NULLFLOW_REPORT_POSSIBLE" in caplog.text

    def test_from_env_empty(self):
        assert AnalysisOptions.from_env({}) == AnalysisOptions()

    def test_frozen(self):
        with pytest.raises(AttributeError):
            AnalysisOptions().report_null_returns = False


class TestIssueLog:

    def test_codes(self):
        assert IssueKind.MALFORMED_INPUT.code == "NF-1001"
        assert IssueKind.UNKNOWN_VARIABLE.code == "NF-1002"
        assert IssueKind.STRUCTURAL_INCONSISTENCY.code == "NF-1003"

    def test_record_and_query(self):
        log = IssueLog()
        assert not log
        issue = log.record(IssueKind.MALFORMED_INPUT, "bad", "x = ;")
        log.record(IssueKind.UNKNOWN_VARIABLE, "who")
        assert len(log) == 2
        assert list(log)[0] is issue
        assert log.of_kind(IssueKind.UNKNOWN_VARIABLE)[0].message == "who"
        assert log.counts() == {IssueKind.MALFORMED_INPUT: 1, IssueKind.UNKNOWN_VARIABLE: 1}

    def test_extend(self):
        a, b = IssueLog(), IssueLog()
        b.record(IssueKind.MALFORMED_INPUT, "m")
        a.extend(b)
        assert len(a) == 1

    def test_str(self):
        issue = AnalysisIssue(IssueKind.MALFORMED_INPUT, "bad", "x = ;")
        assert str(issue) == "NF-1001: bad at 'x = ;'"
        assert str(AnalysisIssue(IssueKind.UNKNOWN_VARIABLE, "who")) == "NF-1002: who"

    def test_structural_issues_log_warnings(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="nullflow.errors"):
            IssueLog().record(IssueKind.STRUCTURAL_INCONSISTENCY, "stray else")
        (record,) = caplog.records
        assert record.levelno == logging.WARNING
        assert "NF-1003" in record.getMessage()


class TestExceptions:

    def test_hierarchy(self):
        assert issubclass(UnknownNodeError, NullflowError)
        assert issubclass(UnknownNodeError, KeyError)
        assert issubclass(AnalysisNotRunError, RuntimeError)
        assert issubclass(AnalysisNotRunError, NullflowError)


class TestPackage:

    def test_version_and_exports(self):
        assert nullflow.__version__
        for name in nullflow.__all__:
            assert hasattr(nullflow, name)

    def test_configure_logging(self):
        logger = logging.getLogger("nullflow")
        handlers = list(logger.handlers)
        level = logger.level
        try:
            nullflow.configure_logging(2)
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == len(handlers) + 1
        finally:
            logger.handlers = handlers
            logger.setLevel(level)
