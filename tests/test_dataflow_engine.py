# tests/test_dataflow_engine.py
"""
Tests for the join at if/else merge points and the NullabilityAnalysis
driver: per-node states, snapshot semantics and API misuse errors.
"""

import pytest

from nullflow.cfg_builder import CFGBuilder
from nullflow.ctrlflow_graph import CFG
from nullflow.dataflow_engine import NullabilityAnalysis, merge_states
from nullflow.errors import AnalysisNotRunError, IssueKind, UnknownNodeError
from nullflow.nullness import AnalysisState, Nullability, VariableState
from nullflow.statements import Statement


def _state(**vars):
    return AnalysisState(VariableState(n, True, v) for n, v in vars.items())


class TestMergeStates:

    def test_agreeing_values_are_kept(self):
        merged = merge_states(_state(p=Nullability.NULL), _state(p=Nullability.NULL))
        assert merged.nullability_of("p") is Nullability.NULL

    def test_disagreement_widens(self):
        merged = merge_states(_state(p=Nullability.NULL), _state(p=Nullability.ASSIGNED))
        assert merged.nullability_of("p") is Nullability.POTENTIALLY_NULL

    def test_one_sided_variables_are_carried(self):
        merged = merge_states(_state(p=Nullability.NULL), _state(q=Nullability.ASSIGNED))
        assert list(merged) == ["p", "q"]
        assert merged.nullability_of("p") is Nullability.NULL
        assert merged.nullability_of("q") is Nullability.ASSIGNED

    def test_merge_is_conservative(self):
        left = _state(p=Nullability.NULL, q=Nullability.ASSIGNED)
        right = _state(p=Nullability.ASSIGNED, q=Nullability.ASSIGNED)
        merged = merge_states(left, right)
        for side in (left, right):
            for name, var in side.items():
                assert var.nullability.leq(merged[name].nullability)


class TestAnalysis:

    def _if_else(self, then_null, else_null):
        b = CFGBuilder()
        decl = b.on_declaration("int *p = &x;", True, False, "p")
        b.on_condition_enter("c")
        b.on_assignment("p = ...;", "p", then_null)
        els = b.on_condition_else()
        b.on_assignment("p = ...;", "p", else_null)
        join = b.on_condition_exit()
        return b.build(), decl, els, join

    def test_start_state_is_empty(self):
        b = CFGBuilder()
        n = b.on_expression("f();")
        analysis = NullabilityAnalysis(b.build()).run()
        assert analysis.state_before(n) == AnalysisState()

    def test_before_and_after(self):
        b = CFGBuilder()
        d = b.on_declaration("int *p = NULL;", True, True, "p")
        a = b.on_assignment("p = &x;", "p", False)
        analysis = NullabilityAnalysis(b.build()).run()
        assert analysis.state_before(d) == AnalysisState()
        assert analysis.state_after(d).nullability_of("p") is Nullability.NULL
        assert analysis.state_before(a).nullability_of("p") is Nullability.NULL
        assert analysis.state_after(a).nullability_of("p") is Nullability.ASSIGNED
        assert analysis.final_state().nullability_of("p") is Nullability.ASSIGNED

    def test_else_branch_starts_from_pre_if_snapshot(self):
        cfg, decl, els, _ = self._if_else(True, True)
        analysis = NullabilityAnalysis(cfg).run()
        assert analysis.state_before(els).nullability_of("p") is Nullability.ASSIGNED

    @pytest.mark.parametrize("then_null, else_null, expected", [
        (True, True, Nullability.NULL),
        (False, False, Nullability.ASSIGNED),
        (True, False, Nullability.POTENTIALLY_NULL),
        (False, True, Nullability.POTENTIALLY_NULL),
    ])
    def test_join(self, then_null, else_null, expected):
        cfg, _, _, join = self._if_else(then_null, else_null)
        analysis = NullabilityAnalysis(cfg).run()
        assert analysis.state_after(join).nullability_of("p") is expected

    def test_if_without_else_merges_with_condition(self):
        b = CFGBuilder()
        b.on_declaration("int *p = &x;", True, False, "p")
        b.on_condition_enter("c")
        b.on_assignment("p = NULL;", "p", True)
        join = b.on_condition_exit()
        analysis = NullabilityAnalysis(b.build()).run()
        assert analysis.state_after(join).nullability_of("p") is Nullability.POTENTIALLY_NULL

    def test_branch_local_declaration_survives_join(self):
        b = CFGBuilder()
        b.on_condition_enter("c")
        b.on_declaration("int *q = NULL;", True, True, "q")
        join = b.on_condition_exit()
        analysis = NullabilityAnalysis(b.build()).run()
        assert analysis.state_after(join).nullability_of("q") is Nullability.NULL

    def test_malformed_statements_are_collected(self):
        b = CFGBuilder()
        b.on_assignment("*p = 5;", None, False)
        analysis = NullabilityAnalysis(b.build()).run()
        assert [i.kind for i in analysis.issues] == [IssueKind.MALFORMED_INPUT]

    def test_rerun_is_idempotent(self):
        cfg, _, _, join = self._if_else(True, False)
        analysis = NullabilityAnalysis(cfg)
        first = analysis.run().state_after(join)
        issues = len(analysis.issues)
        second = analysis.run().state_after(join)
        assert first == second
        assert len(analysis.issues) == issues

    def test_empty_graph(self):
        analysis = NullabilityAnalysis(CFG()).run()
        assert analysis.final_state() == AnalysisState()


class TestMisuse:

    def test_query_before_run(self):
        b = CFGBuilder()
        n = b.on_expression("f();")
        analysis = NullabilityAnalysis(b.build())
        assert not analysis.has_run
        with pytest.raises(AnalysisNotRunError):
            analysis.state_before(n)
        with pytest.raises(AnalysisNotRunError):
            analysis.final_state()

    def test_foreign_node(self):
        b = CFGBuilder()
        b.on_expression("f();")
        analysis = NullabilityAnalysis(b.build()).run()
        other = CFG().add_node(Statement.expression("g();"))
        with pytest.raises(UnknownNodeError) as excinfo:
            analysis.state_after(other)
        assert excinfo.value.node is other
        assert isinstance(excinfo.value, KeyError)
