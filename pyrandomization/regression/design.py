"""
Regression Design.

Frozen, validated (X, y, weights) triple. Built once per fit; the
randomization engine builds thousands of these, so construction does
only the checks that catch real mistakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
import numpy as np
from numpy.typing import NDArray

from pyrandomization.core.validation import (
    check_finite,
    check_2d,
    check_1d,
    check_consistent_length,
    check_min_samples,
    check_positive,
)


@dataclass(frozen=True)
class RegressionDesign:
    """
    Regression design matrix specification.

    Immutable after construction. When weights are present, the design
    describes a weighted least squares problem min Σ w_i (y_i - x_i'β)².

    Construction:
        RegressionDesign.build(X, y)              # OLS
        RegressionDesign.build(X, y, weights=w)   # WLS
    """
    _X: NDArray[np.floating[Any]]
    _y: NDArray[np.floating[Any]]
    _weights: NDArray[np.floating[Any]] | None
    _n: int
    _p: int

    @classmethod
    def build(
        cls,
        X: NDArray,
        y: NDArray,
        weights: NDArray | None = None,
    ) -> RegressionDesign:
        """Build with validation."""
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        if X.ndim == 1:
            X = X.reshape(-1, 1)
        if y.ndim == 2 and y.shape[1] == 1:
            y = y.ravel()

        check_2d(X, 'X')
        check_1d(y, 'y')
        check_finite(X, 'X')
        check_finite(y, 'y')
        check_consistent_length(X, y, names=('X', 'y'))

        n, p = X.shape
        check_min_samples(X, p, 'X')

        w = None
        if weights is not None:
            w = np.asarray(weights, dtype=np.float64)
            check_1d(w, 'weights')
            check_finite(w, 'weights')
            check_consistent_length(X, w, names=('X', 'weights'))
            check_positive(w, 'weights')

        return cls(_X=X, _y=y, _weights=w, _n=n, _p=p)

    # === Properties ===

    @property
    def X(self) -> NDArray[np.floating[Any]]:
        """Design matrix (n x p)."""
        return self._X

    @property
    def y(self) -> NDArray[np.floating[Any]]:
        """Response vector (n,)."""
        return self._y

    @property
    def weights(self) -> NDArray[np.floating[Any]] | None:
        """Observation weights (n,), or None for OLS."""
        return self._weights

    @property
    def is_weighted(self) -> bool:
        return self._weights is not None

    @property
    def n(self) -> int:
        """Number of observations."""
        return self._n

    @property
    def p(self) -> int:
        """Number of predictors."""
        return self._p

    def whitened(self) -> tuple[NDArray[np.floating[Any]], NDArray[np.floating[Any]]]:
        """
        Rows scaled by sqrt(w), turning WLS into OLS.

        Returns (X, y) unchanged for unweighted designs.
        """
        if self._weights is None:
            return self._X, self._y
        root_w = np.sqrt(self._weights)
        return self._X * root_w[:, None], self._y * root_w
