"""
Tests for PyRandomization exception hierarchy.

Validates:
    - Inheritance chain (all exceptions catchable via PyRandomizationError)
    - Diagnostic attributes on the design, assignment, hypothesis, data and
      statistic errors
    - Default attribute values (None for optional attributes)
"""

import pytest

from pyrandomization.core.exceptions import (
    AssignmentMismatch,
    DesignDataMismatch,
    DimensionError,
    IncompatibleHypothesis,
    InvalidDesign,
    NumericalError,
    PyRandomizationError,
    SingularMatrixError,
    StatisticEvaluationError,
    ValidationError,
)


# ═══════════════════════════════════════════════════════════════════════
# Inheritance hierarchy
# ═══════════════════════════════════════════════════════════════════════


class TestInheritance:
    """Every exception is catchable via PyRandomizationError."""

    @pytest.mark.parametrize("exc_type", [
        ValidationError,
        DimensionError,
        NumericalError,
        SingularMatrixError,
        InvalidDesign,
        AssignmentMismatch,
        IncompatibleHypothesis,
        DesignDataMismatch,
        StatisticEvaluationError,
    ])
    def test_catchable_as_base(self, exc_type):
        with pytest.raises(PyRandomizationError):
            raise exc_type("boom")

    def test_dimension_error_is_validation_error(self):
        assert issubclass(DimensionError, ValidationError)

    def test_singular_matrix_error_is_numerical_error(self):
        assert issubclass(SingularMatrixError, NumericalError)

    def test_design_errors_are_validation_errors(self):
        assert issubclass(InvalidDesign, ValidationError)
        assert issubclass(AssignmentMismatch, ValidationError)
        assert issubclass(IncompatibleHypothesis, ValidationError)

    def test_design_data_mismatch_is_dimension_error(self):
        assert issubclass(DesignDataMismatch, DimensionError)

    def test_statistic_error_is_not_validation_error(self):
        assert not issubclass(StatisticEvaluationError, ValidationError)


# ═══════════════════════════════════════════════════════════════════════
# Diagnostic attributes
# ═══════════════════════════════════════════════════════════════════════


class TestSingularMatrixError:

    def test_attributes(self):
        e = SingularMatrixError(
            "X is rank deficient", matrix_name="X",
            condition_number=1e18, rank=2, expected_rank=3,
        )
        assert e.matrix_name == "X"
        assert e.condition_number == 1e18
        assert e.rank == 2
        assert e.expected_rank == 3
        assert str(e) == "X is rank deficient"

    def test_defaults(self):
        e = SingularMatrixError("singular")
        assert e.matrix_name is None
        assert e.condition_number is None
        assert e.rank is None
        assert e.expected_rank is None


class TestDomainErrors:

    def test_invalid_design(self):
        e = InvalidDesign("bad targets", block="a", reason="targets")
        assert e.block == "a"
        assert e.reason == "targets"
        assert InvalidDesign("x").reason is None

    def test_assignment_mismatch(self):
        e = AssignmentMismatch(
            "counts differ", block=1, expected={0: 3, 1: 2}, observed={0: 4, 1: 1},
        )
        assert e.block == 1
        assert e.cluster is None
        assert e.expected == {0: 3, 1: 2}
        assert e.observed == {0: 4, 1: 1}

    def test_assignment_mismatch_cluster(self):
        e = AssignmentMismatch("cluster varies", block="a", cluster=7)
        assert e.block == "a"
        assert e.cluster == 7

    def test_incompatible_hypothesis(self):
        e = IncompatibleHypothesis("missing x", column="x", n_arms=3)
        assert e.column == "x"
        assert e.n_arms == 3

    def test_design_data_mismatch(self):
        e = DesignDataMismatch("rows", expected=10, actual=9)
        assert e.column is None
        assert e.expected == 10
        assert e.actual == 9

    def test_statistic_evaluation_error(self):
        e = StatisticEvaluationError("failed", draw=4, statistic="my_stat")
        assert e.draw == 4
        assert e.statistic == "my_stat"
        assert StatisticEvaluationError("failed").draw is None
