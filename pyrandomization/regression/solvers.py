"""
Solver dispatch for regression.

This module provides the fit() and compare() functions (public API) and
backend selection.
"""

from typing import Literal
import numpy as np
from numpy.typing import ArrayLike
from scipy import stats as sp_stats

from pyrandomization.core.exceptions import ValidationError
from pyrandomization.core.validation import check_array
from pyrandomization.regression.design import RegressionDesign
from pyrandomization.regression.solution import LinearSolution, ModelComparison
from pyrandomization.regression.backends.cpu import CPUQRBackend


BackendChoice = Literal['auto', 'cpu', 'cpu_qr']


def fit(
    X: ArrayLike,
    y: ArrayLike,
    *,
    weights: ArrayLike | None = None,
    backend: BackendChoice = 'auto',
) -> LinearSolution:
    """
    Fit a linear regression model.

    Solves the (weighted) least squares problem:
        min_β Σ w_i (y_i - x_i'β)²

    All input validation, backend selection, and result wrapping happens
    here.

    Args:
        X: Design matrix (n x p). Include a column of ones for an intercept.
        y: Response vector (n,).
        weights: Optional positive observation weights (n,). None for OLS.
        backend: 'auto', 'cpu' or 'cpu_qr' (all the QR reference backend).

    Returns:
        LinearSolution with coefficients, diagnostics, and summary methods

    Raises:
        ValidationError: If inputs are invalid
        DimensionError: If X, y and weights have inconsistent dimensions
        SingularMatrixError: If X is rank-deficient

    Example:
        >>> X = np.column_stack([np.ones(100), rng.standard_normal(100)])
        >>> y = X @ [1.0, 2.0] + rng.standard_normal(100)
        >>> fit(X, y).coefficients
    """
    # This is the boundary - validate here, trust everywhere else
    X_arr = check_array(X, 'X')
    y_arr = check_array(y, 'y')
    w_arr = check_array(weights, 'weights') if weights is not None else None

    if y_arr.ndim == 2 and y_arr.shape[1] == 1:
        y_arr = y_arr.ravel()

    design = RegressionDesign.build(X_arr, y_arr, w_arr)
    backend_impl = _get_backend(backend)
    result = backend_impl.solve(design)

    return LinearSolution(_result=result, _design=design)


def compare(
    restricted: LinearSolution,
    unrestricted: LinearSolution,
) -> ModelComparison:
    """
    F test of a restricted model against an unrestricted model.

    Both fits must be on the same observations. The restricted model must
    use strictly fewer effective parameters than the unrestricted one.

    A residual-free unrestricted fit (RSS_u == 0) gives F = inf when the
    restricted fit has residual variation and F = 0 when neither does.

    Raises:
        ValidationError: If the fits are on different n, are not nested by
            rank, or the unrestricted model has no residual degrees of freedom
    """
    if restricted.n != unrestricted.n:
        raise ValidationError(
            f"compare: models fit on different numbers of observations "
            f"({restricted.n} vs {unrestricted.n})"
        )

    df_num = unrestricted.rank - restricted.rank
    df_den = unrestricted.df_residual
    if df_num <= 0:
        raise ValidationError(
            f"compare: unrestricted model (rank {unrestricted.rank}) must have "
            f"more parameters than restricted model (rank {restricted.rank})"
        )
    if df_den <= 0:
        raise ValidationError(
            "compare: unrestricted model has no residual degrees of freedom"
        )

    rss_r = restricted.rss
    rss_u = unrestricted.rss
    ss = max(rss_r - rss_u, 0.0)

    if rss_u == 0.0:
        f_stat = np.inf if ss > 0 else 0.0
    else:
        f_stat = (ss / df_num) / (rss_u / df_den)

    p_value = float(sp_stats.f.sf(f_stat, df_num, df_den))

    return ModelComparison(
        f_statistic=float(f_stat),
        df_numerator=df_num,
        df_denominator=df_den,
        p_value=p_value,
        rss_restricted=rss_r,
        rss_unrestricted=rss_u,
    )


def _get_backend(choice: BackendChoice):
    """
    Select and instantiate the appropriate backend.

    Raises:
        ValueError: If unknown backend specified
    """
    if choice in ('auto', 'cpu', 'cpu_qr'):
        return CPUQRBackend()
    raise ValueError(f"Unknown backend: {choice!r}")
