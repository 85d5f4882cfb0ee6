"""
CPU reference backend for linear regression.

Uses QR decomposition via LAPACK (through NumPy/SciPy). Weighted fits are
solved as OLS on the sqrt(w)-scaled rows.
"""

from typing import Any
import numpy as np

from pyrandomization.core.result import Result
from pyrandomization.core.compute.timing import Timer
from pyrandomization.core.compute.linalg.qr import qr_solve_cpu
from pyrandomization.regression.design import RegressionDesign
from pyrandomization.regression.solution import LinearParams


class CPUQRBackend:
    """
    CPU backend using QR decomposition.

    Implements the Backend protocol for RegressionDesign -> LinearParams.
    """

    @property
    def name(self) -> str:
        return 'cpu_qr'

    def solve(self, design: RegressionDesign) -> Result[LinearParams]:
        """
        Solve OLS/WLS via QR decomposition.

        Algorithm:
            1. Whiten rows by sqrt(w) (no-op without weights)
            2. Compute QR of the whitened X and solve β = R⁻¹ Q'y
            3. Residuals and fitted values on the original response scale

        Raises:
            SingularMatrixError: If X is rank-deficient
        """
        timer = Timer()
        timer.start()

        X = design.X
        y = design.y
        n = design.n

        with timer.section('solve'):
            X_w, y_w = design.whitened()
            coefficients, rank = qr_solve_cpu(X_w, y_w, check_rank=True)

        with timer.section('residuals'):
            fitted_values = X @ coefficients
            residuals = y - fitted_values

        with timer.section('statistics'):
            if design.is_weighted:
                w = design.weights
                rss = float(np.sum(w * residuals ** 2))
                y_mean = float(np.sum(w * y) / np.sum(w))
                tss = float(np.sum(w * (y - y_mean) ** 2))
            else:
                rss = float(residuals @ residuals)
                tss = float(np.sum((y - np.mean(y)) ** 2))

        timer.stop()

        params = LinearParams(
            coefficients=coefficients,
            residuals=residuals,
            fitted_values=fitted_values,
            rss=rss,
            tss=tss,
            rank=rank,
            df_residual=n - rank,
        )

        info: dict[str, Any] = {
            'method': 'wls_qr' if design.is_weighted else 'qr',
            'rank': rank,
        }

        return Result(
            params=params,
            info=info,
            timing=timer.result(),
            backend_name=self.name,
            warnings=(),
        )
