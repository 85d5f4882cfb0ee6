"""
Linear models: the model-fit collaborator.

Randomization inference never fits models itself; it asks this module.
Every coefficient statistic and every nested-model comparison in the
randomization engine goes through fit() and compare().

Public API:
    fit(X, y, weights=None) -> LinearSolution
    compare(restricted, unrestricted) -> ModelComparison

Example:
    >>> from pyrandomization.regression import fit, compare
    >>> small = fit(X_restricted, y)
    >>> big = fit(X_full, y)
    >>> compare(small, big).f_statistic
"""

from pyrandomization.regression.design import RegressionDesign
from pyrandomization.regression.solution import (
    LinearSolution,
    LinearParams,
    ModelComparison,
)
from pyrandomization.regression.solvers import fit, compare

__all__ = [
    "fit",
    "compare",
    "RegressionDesign",
    "LinearSolution",
    "LinearParams",
    "ModelComparison",
]
