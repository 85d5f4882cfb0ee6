"""
Randomization p-values.

Inclusive definitions: ties with the observed statistic count as at least
as extreme, and nothing is added to numerator or denominator. Under
exhaustive enumeration the observed assignment is itself one of the draws,
so every p-value is at least 1 / n_draws.

    two-tailed  mean(|T| >= |t_obs|)
    upper       mean(T >= t_obs)
    lower       mean(T <= t_obs)

Floating-point ties are recognised within tolerance * max(1, |t_obs|).
"""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray


ALTERNATIVES = ('two-tailed', 'upper', 'lower')


def compute_p_values(
    observed: float,
    null_distribution: NDArray[np.floating[Any]],
    tolerance: float = 1e-10,
) -> dict[str, float]:
    """
    Two-tailed, upper and lower p-values of observed against the null.

    Returns:
        {'two-tailed': p, 'upper': p, 'lower': p}
    """
    null = np.asarray(null_distribution, dtype=np.float64)
    if null.size == 0:
        raise ValueError("null distribution is empty")

    if np.isfinite(observed):
        tol = tolerance * max(1.0, abs(observed))
    else:
        tol = 0.0

    return {
        'two-tailed': float(np.mean(np.abs(null) >= abs(observed) - tol)),
        'upper': float(np.mean(null >= observed - tol)),
        'lower': float(np.mean(null <= observed + tol)),
    }
