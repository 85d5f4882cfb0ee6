"""
Regression solution types.

Contains the parameter payload, the user-facing solution wrapper and the
nested-model comparison record.
"""

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING
import numpy as np
from numpy.typing import NDArray

from pyrandomization.core.result import Result

if TYPE_CHECKING:
    from pyrandomization.regression.design import RegressionDesign


@dataclass(frozen=True)
class LinearParams:
    """
    Parameter payload for linear regression.

    residuals and fitted_values are on the response scale (y - Xβ, Xβ)
    even for weighted fits; rss and tss carry the weights.
    """
    coefficients: NDArray[np.floating[Any]]
    residuals: NDArray[np.floating[Any]]
    fitted_values: NDArray[np.floating[Any]]
    rss: float
    tss: float
    rank: int
    df_residual: int


@dataclass(frozen=True)
class ModelComparison:
    """
    Nested-model F test between a restricted and an unrestricted fit.

    F = ((RSS_r - RSS_u) / df_numerator) / (RSS_u / df_denominator)
    """
    f_statistic: float
    df_numerator: int
    df_denominator: int
    p_value: float
    rss_restricted: float
    rss_unrestricted: float


@dataclass
class LinearSolution:
    """
    User-facing regression results.

    Wraps the backend Result and provides convenient accessors
    for all regression outputs including standard errors and t-statistics.
    """
    _result: Result[LinearParams]
    _design: 'RegressionDesign'

    # Cached computations
    _standard_errors: NDArray[np.floating[Any]] | None = None
    _t_statistics: NDArray[np.floating[Any]] | None = None

    @property
    def coefficients(self) -> NDArray[np.floating[Any]]:
        return self._result.params.coefficients

    @property
    def residuals(self) -> NDArray[np.floating[Any]]:
        return self._result.params.residuals

    @property
    def fitted_values(self) -> NDArray[np.floating[Any]]:
        return self._result.params.fitted_values

    @property
    def rss(self) -> float:
        return self._result.params.rss

    @property
    def tss(self) -> float:
        return self._result.params.tss

    @property
    def r_squared(self) -> float:
        if self.tss == 0:
            return 1.0 if self.rss == 0 else 0.0
        return 1.0 - (self.rss / self.tss)

    @property
    def residual_std_error(self) -> float:
        df = self._result.params.df_residual
        if df <= 0:
            return 0.0
        return float(np.sqrt(self.rss / df))

    @property
    def standard_errors(self) -> NDArray[np.floating[Any]]:
        """
        Standard errors of coefficients.

        SE(β) = sqrt(diag(σ² (X'WX)⁻¹)), with W = I for unweighted fits.
        NaN when there are no residual degrees of freedom.
        """
        if self._standard_errors is not None:
            return self._standard_errors

        df = self._result.params.df_residual
        p = len(self.coefficients)

        if df <= 0:
            self._standard_errors = np.full(p, np.nan, dtype=np.float64)
            return self._standard_errors

        sigma_sq = self.rss / df
        X_w, _ = self._design.whitened()
        try:
            XtX_inv = np.linalg.inv(X_w.T @ X_w)
            self._standard_errors = np.sqrt(sigma_sq * np.diag(XtX_inv))
        except np.linalg.LinAlgError:
            self._standard_errors = np.full(p, np.nan, dtype=np.float64)

        return self._standard_errors

    @property
    def t_statistics(self) -> NDArray[np.floating[Any]]:
        """t-statistics for coefficients (NaN where SE is zero or NaN)."""
        if self._t_statistics is not None:
            return self._t_statistics

        se = self.standard_errors
        with np.errstate(divide='ignore', invalid='ignore'):
            t = self.coefficients / se
            t = np.where(np.isfinite(t), t, np.nan)
        self._t_statistics = t
        return self._t_statistics

    @property
    def rank(self) -> int:
        return self._result.params.rank

    @property
    def df_residual(self) -> int:
        return self._result.params.df_residual

    @property
    def n(self) -> int:
        return self._design.n

    @property
    def p(self) -> int:
        return self._design.p

    @property
    def weighted(self) -> bool:
        return self._design.is_weighted

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def backend_name(self) -> str:
        return self._result.backend_name

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings

    def summary(self) -> str:
        """Generate R-style summary output."""
        title = "Weighted Linear Regression Results" if self.weighted else "Linear Regression Results"
        lines = [
            title,
            "=" * 60,
            f"Observations: {self._design.n}",
            f"Predictors: {self._design.p}",
            f"R-squared: {self.r_squared:.6f}",
            f"Residual Std. Error: {self.residual_std_error:.6f} on {self.df_residual} DF",
            "",
            "Coefficients:",
            "-" * 60,
            f"{'Index':<8} {'Estimate':>14} {'Std.Error':>12} {'t value':>10}",
            "-" * 60,
        ]

        for i, (coef, se, t) in enumerate(zip(
            self.coefficients, self.standard_errors, self.t_statistics
        )):
            se_str = f"{se:12.6f}" if not np.isnan(se) else "          NA"
            t_str = f"{t:10.3f}" if not np.isnan(t) else "        NA"
            lines.append(f"  β[{i}]: {coef:14.6f} {se_str} {t_str}")

        lines.append("-" * 60)
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"LinearSolution(n={self._design.n}, p={self._design.p}, "
            f"rank={self.rank}, r_squared={self.r_squared:.4f})"
        )
