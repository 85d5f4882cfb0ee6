"""
Common data structures for randomization inference.

RIConfig holds the per-call run settings. RandomizationParams is the
parameter payload wrapped by Result[P] and exposed through
RandomizationSolution.
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyrandomization.core.exceptions import ValidationError
from pyrandomization.core.validation import check_count


@dataclass(frozen=True)
class RIConfig:
    """
    Run settings for conduct_ri().

    Attributes:
        sims: Monte Carlo draws when the design is not enumerated.
        exhaustive_threshold: Enumerate every valid assignment when their
            total count is at most this.
        seed: Seed for the Monte Carlo generator. None draws fresh entropy.
        n_jobs: joblib workers for draw evaluation (1 = serial, -1 = all).
        ipw: Inverse probability weighting of coefficient statistics.
            None weights only when inclusion probabilities vary by unit.
        tolerance: Relative tolerance for ties with the observed statistic.
    """
    sims: int = 1000
    exhaustive_threshold: int = 5000
    seed: int | None = None
    n_jobs: int = 1
    ipw: bool | None = None
    tolerance: float = 1e-10

    def __post_init__(self):
        object.__setattr__(self, 'sims', check_count(self.sims, 'sims', minimum=1))
        object.__setattr__(
            self, 'exhaustive_threshold',
            check_count(self.exhaustive_threshold, 'exhaustive_threshold', minimum=0),
        )
        if self.seed is not None:
            object.__setattr__(self, 'seed', check_count(self.seed, 'seed', minimum=0))

        if isinstance(self.n_jobs, bool) or not isinstance(self.n_jobs, numbers.Integral) or self.n_jobs == 0:
            raise ValidationError(f"n_jobs: expected a nonzero integer, got {self.n_jobs!r}")
        if self.ipw not in (None, True, False):
            raise ValidationError(f"ipw: expected None, True or False, got {self.ipw!r}")
        if (
            isinstance(self.tolerance, bool)
            or not isinstance(self.tolerance, numbers.Real)
            or not 0 <= self.tolerance < 1
        ):
            raise ValidationError(f"tolerance: expected a number in [0, 1), got {self.tolerance!r}")


@dataclass(frozen=True)
class RandomizationParams:
    """
    Parameter payload for randomization inference.

    - observed_stat: statistic on the observed assignment and outcomes
    - null_distribution: statistic on each draw, in draw order
    - draw_indices: index of each draw (enumeration position or sample number)
    - p-values: inclusive, ties count as extreme
    - inclusion_probabilities: (n, k) probability of each unit getting each arm
    - weights: IPW weights of the observed assignment, None when unweighted
    """
    observed_stat: float
    null_distribution: NDArray[np.floating[Any]]   # shape (n_draws,)
    draw_indices: NDArray[np.intp]                  # shape (n_draws,)
    two_tailed_p_value: float
    upper_p_value: float
    lower_p_value: float
    inclusion_probabilities: NDArray[np.floating[Any]]   # shape (n, k)
    weights: NDArray[np.floating[Any]] | None
    n_draws: int
    exhaustive: bool
