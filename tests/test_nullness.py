# tests/test_nullness.py
"""
Tests for the nullability lattice, VariableState / AnalysisState and the
pure transfer function.
"""

import itertools

import pytest

from nullflow.errors import IssueKind, IssueLog
from nullflow.nullness import AnalysisState, Nullability, VariableState, transfer
from nullflow.statements import Statement

U, A, N, P = (
    Nullability.UNASSIGNED,
    Nullability.ASSIGNED,
    Nullability.NULL,
    Nullability.POTENTIALLY_NULL,
)


class TestLattice:

    @pytest.mark.parametrize("left, right, expected", [
        (N, N, N),
        (A, A, A),
        (N, A, P),
        (A, N, P),
        (U, N, N),
        (A, U, A),
        (P, A, P),
        (U, U, U),
    ])
    def test_join_table(self, left, right, expected):
        assert left.join(right) is expected

    def test_join_is_commutative_and_idempotent(self):
        for a, b in itertools.product(Nullability, repeat=2):
            assert a.join(b) is b.join(a)
            assert a.join(a) is a

    def test_join_is_an_upper_bound(self):
        for a, b in itertools.product(Nullability, repeat=2):
            j = a.join(b)
            assert a.leq(j) and b.leq(j)

    def test_may_be_null(self):
        assert N.may_be_null and P.may_be_null
        assert not A.may_be_null and not U.may_be_null

    def test_str_is_name(self):
        assert str(P) == "POTENTIALLY_NULL"


class TestAnalysisState:

    def test_with_variable_does_not_mutate(self):
        s0 = AnalysisState.empty()
        s1 = s0.with_variable(VariableState("p", True, N))
        assert "p" not in s0
        assert s1["p"].nullability is N
        assert len(s1) == 1

    def test_replacing_keeps_position(self):
        s = AnalysisState([VariableState("a", False, A), VariableState("p", True, N)])
        s = s.with_variable(VariableState("a", False, A))
        assert list(s) == ["a", "p"]

    def test_nullability_of_untracked_is_unassigned(self):
        assert AnalysisState().nullability_of("q") is U

    def test_pointers(self):
        s = AnalysisState([VariableState("a", False, A), VariableState("p", True, N)])
        assert [v.name for v in s.pointers()] == ["p"]

    def test_equality_and_hash(self):
        a = AnalysisState([VariableState("p", True, N)])
        b = AnalysisState.empty().with_variable(VariableState("p", True, N))
        assert a == b
        assert hash(a) == hash(b)
        assert a != AnalysisState()

    def test_variable_join_ors_pointer_flag(self):
        j = VariableState("x", False, A).join(VariableState("x", True, N))
        assert j.is_pointer
        assert j.nullability is P

    def test_repr(self):
        assert repr(VariableState("p", True, N)) == "p:ptr=NULL"


class TestTransfer:

    def test_pointer_declaration_null(self):
        s = transfer(Statement.declaration("int *p = NULL;", "p", True, True), AnalysisState())
        assert s["p"] == VariableState("p", True, N)

    def test_pointer_declaration_non_null(self):
        s = transfer(Statement.declaration("int *p = &x;", "p", True, False), AnalysisState())
        assert s["p"].nullability is A

    def test_pointer_declaration_without_initializer(self):
        stmt = Statement.declaration("int *p;", "p", True, True, has_initializer=False)
        assert transfer(stmt, AnalysisState())["p"].nullability is A

    def test_scalar_declaration(self):
        s = transfer(Statement.declaration("int x = 0;", "x", False, True), AnalysisState())
        assert s["x"] == VariableState("x", False, A)

    def test_redeclaration_replaces(self):
        s = transfer(Statement.declaration("int *p = NULL;", "p", True, True), AnalysisState())
        s = transfer(Statement.declaration("int *p = &x;", "p", True, False), s)
        assert s["p"].nullability is A

    def test_assignment_updates_pointer(self):
        s = AnalysisState([VariableState("p", True, A)])
        s = transfer(Statement.assignment("p = NULL;", "p", True), s)
        assert s["p"].nullability is N
        s = transfer(Statement.assignment("p = &x;", "p", False), s)
        assert s["p"].nullability is A

    def test_assignment_to_scalar_is_unchanged(self):
        before = AnalysisState([VariableState("x", False, A)])
        assert transfer(Statement.assignment("x = 0;", "x", True), before) is before

    def test_assignment_to_untracked_records_non_pointer(self):
        s = transfer(Statement.assignment("q = NULL;", "q", True), AnalysisState())
        assert s["q"] == VariableState("q", False, A)

    def test_unresolved_name_is_malformed(self):
        issues = IssueLog()
        before = AnalysisState([VariableState("p", True, N)])
        after = transfer(Statement.assignment("*p = 5;", None, False), before, issues)
        assert after is before
        assert [i.kind for i in issues] == [IssueKind.MALFORMED_INPUT]

    @pytest.mark.parametrize("stmt", [
        Statement.expression("f(p);"),
        Statement.jump("return p;", "p"),
        Statement.condition("p"),
    ])
    def test_non_updating_statements_pass_through(self, stmt):
        before = AnalysisState([VariableState("p", True, N)])
        assert transfer(stmt, before) is before

    def test_transfer_is_pure(self):
        before = AnalysisState([VariableState("p", True, A)])
        snapshot = dict(before)
        transfer(Statement.assignment("p = NULL;", "p", True), before)
        assert dict(before) == snapshot
