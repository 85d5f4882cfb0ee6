"""
Exception hierarchy for PyRandomization.

All exceptions inherit from PyRandomizationError to allow catching any
library-specific error. Domain-specific exceptions inherit from the
appropriate base class here.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages are actionable with actual vs expected values
    - Never catch and re-raise with less information
"""

from typing import Any


class PyRandomizationError(Exception):
    """Base exception for all PyRandomization errors."""
    pass


class ValidationError(PyRandomizationError):
    """
    Input validation failed.

    Raised when user-provided inputs fail validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.

    Raised when array shapes don't match expected dimensions or
    when multiple arrays have inconsistent shapes.
    """
    pass


class NumericalError(PyRandomizationError):
    """
    Numerical computation failed.

    Base class for errors arising from numerical issues during computation.
    """
    pass


class SingularMatrixError(NumericalError):
    """
    Matrix is singular or nearly singular.

    Raised when a matrix operation requires invertibility but the matrix
    is singular or numerically rank-deficient.

    Attributes:
        matrix_name: Name/description of the problematic matrix
        condition_number: Estimated condition number, if available
        rank: Numerical rank, if computed
        expected_rank: Expected rank (typically min(n, p))
    """

    def __init__(
        self,
        message: str,
        matrix_name: str | None = None,
        condition_number: float | None = None,
        rank: int | None = None,
        expected_rank: int | None = None
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.condition_number = condition_number
        self.rank = rank
        self.expected_rank = expected_rank


class InvalidDesign(ValidationError):
    """
    Assignment design specification is malformed.

    Raised at design construction when the block or cluster partition is
    not total, a cluster straddles blocks, or arm-size targets are
    inconsistent with block sizes, and by conduct_ri() when a regression
    statistic is paired with a simple design (reason 'empty_arm').

    Attributes:
        block: Label of the offending block, if the problem is block-local
        reason: Short machine-readable reason ('partition', 'targets', ...)
    """

    def __init__(
        self,
        message: str,
        block: Any = None,
        reason: str | None = None,
    ):
        super().__init__(message)
        self.block = block
        self.reason = reason


class AssignmentMismatch(ValidationError):
    """
    An assignment vector is not valid under the design.

    Raised before any sampling when the observed (or a caller-supplied)
    assignment has unknown arm labels, varies within a cluster, or has
    per-block arm counts that differ from the design's targets.

    Attributes:
        block: Label of the offending block
        cluster: Label of the offending cluster, if the problem is a
            cluster whose units carry different arms
        expected: Expected arm counts (or arm label set)
        observed: Observed arm counts (or offending labels)
    """

    def __init__(
        self,
        message: str,
        block: Any = None,
        expected: Any = None,
        observed: Any = None,
        cluster: Any = None,
    ):
        super().__init__(message)
        self.block = block
        self.cluster = cluster
        self.expected = expected
        self.observed = observed


class IncompatibleHypothesis(ValidationError):
    """
    Sharp null hypothesis cannot be imposed on the data.

    Raised during imputation when the hypothesis references a column that
    the dataset lacks, or is underspecified for the number of arms.

    Attributes:
        column: Offending column name, if any
        n_arms: Number of arms in the design
    """

    def __init__(
        self,
        message: str,
        column: str | None = None,
        n_arms: int | None = None,
    ):
        super().__init__(message)
        self.column = column
        self.n_arms = n_arms


class DesignDataMismatch(DimensionError):
    """
    Dataset is inconsistent with the assignment design.

    Raised at the entry of conduct_ri() when the row count differs from the
    design's unit count, or a referenced column is absent or disagrees with
    the design's partition.

    Attributes:
        column: Offending column name, if any
        expected: Expected value (row count, partition)
        actual: Actual value found in the data
    """

    def __init__(
        self,
        message: str,
        column: str | None = None,
        expected: Any = None,
        actual: Any = None,
    ):
        super().__init__(message)
        self.column = column
        self.expected = expected
        self.actual = actual


class StatisticEvaluationError(PyRandomizationError):
    """
    A test statistic could not be computed.

    Fatal for the whole randomization-inference call: failed draws are
    never skipped.

    Attributes:
        draw: Index of the failing draw, or None for the observed statistic
        statistic: Description of the statistic that failed
    """

    def __init__(
        self,
        message: str,
        draw: int | None = None,
        statistic: str | None = None,
    ):
        super().__init__(message)
        self.draw = draw
        self.statistic = statistic
