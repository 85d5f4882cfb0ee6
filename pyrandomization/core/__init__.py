"""
Core infrastructure for PyRandomization.

This module provides shared abstractions and utilities used by the
domain-specific submodules (regression, randomization).

Key components:
    datasource: DataSource column store (the dataset collaborator)
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    compute: Timing and linear algebra primitives
"""

from pyrandomization.core.datasource import DataSource
from pyrandomization.core.protocols import Backend
from pyrandomization.core.result import Result
from pyrandomization.core.exceptions import (
    PyRandomizationError,
    ValidationError,
    DimensionError,
    NumericalError,
    SingularMatrixError,
    InvalidDesign,
    AssignmentMismatch,
    IncompatibleHypothesis,
    DesignDataMismatch,
    StatisticEvaluationError,
)

__all__ = [
    # Data
    "DataSource",
    # Protocols
    "Backend",
    # Result
    "Result",
    # Exceptions
    "PyRandomizationError",
    "ValidationError",
    "DimensionError",
    "NumericalError",
    "SingularMatrixError",
    "InvalidDesign",
    "AssignmentMismatch",
    "IncompatibleHypothesis",
    "DesignDataMismatch",
    "StatisticEvaluationError",
]
