"""
Solution class for randomization inference.

Wraps Result[RandomizationParams] with convenience accessors and
formatting.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from pyrandomization.core.result import Result
from pyrandomization.randomization._common import RandomizationParams
from pyrandomization.randomization._pvalues import ALTERNATIVES

if TYPE_CHECKING:
    from pyrandomization.randomization.design import RIDesign


@dataclass
class RandomizationSolution:
    """
    User-facing randomization-inference results.

    Provides the observed statistic, the null distribution in draw order,
    the three p-values and the inclusion probability table.
    """
    _result: Result[RandomizationParams]
    _design: 'RIDesign'

    # --- Core fields ---

    @property
    def observed_stat(self) -> float:
        """Statistic on the observed assignment and outcomes."""
        return self._result.params.observed_stat

    @property
    def null_distribution(self) -> NDArray[np.floating[Any]]:
        """Statistic on each draw, shape (n_draws,), in draw order."""
        return self._result.params.null_distribution

    @property
    def draw_indices(self) -> NDArray[np.intp]:
        return self._result.params.draw_indices

    @property
    def two_tailed_p_value(self) -> float:
        return self._result.params.two_tailed_p_value

    @property
    def upper_p_value(self) -> float:
        return self._result.params.upper_p_value

    @property
    def lower_p_value(self) -> float:
        return self._result.params.lower_p_value

    def p_value(self, alternative: str = 'two-tailed') -> float:
        """
        p-value for 'two-tailed', 'upper' or 'lower'.

        Raises:
            ValueError: If alternative is not one of these
        """
        if alternative == 'two-tailed':
            return self.two_tailed_p_value
        if alternative == 'upper':
            return self.upper_p_value
        if alternative == 'lower':
            return self.lower_p_value
        raise ValueError(
            f"Unknown alternative: {alternative!r}; expected one of {ALTERNATIVES}"
        )

    @property
    def inclusion_probabilities(self) -> NDArray[np.floating[Any]]:
        """Probability of each unit receiving each arm, shape (n, k)."""
        return self._result.params.inclusion_probabilities

    @property
    def weights(self) -> NDArray[np.floating[Any]] | None:
        """IPW weights of the observed assignment, None when unweighted."""
        return self._result.params.weights

    @property
    def n_draws(self) -> int:
        return self._result.params.n_draws

    @property
    def exhaustive(self) -> bool:
        """True if every valid assignment was enumerated."""
        return self._result.params.exhaustive

    @property
    def arm_labels(self) -> tuple:
        return self._design.arm_labels

    # --- Metadata ---

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

    # --- Display ---

    def summary(self) -> str:
        """Randomization inference summary."""
        mode = "exhaustive enumeration" if self.exhaustive else self.info.get('method', 'monte_carlo')
        lines = [
            "\nRANDOMIZATION INFERENCE",
            "",
            f"Draws: {self.n_draws} ({mode})",
            f"Observed statistic: {self.observed_stat:.6g}",
            f"p-value (two-tailed): {self.two_tailed_p_value:.4g}",
            f"p-value (upper): {self.upper_p_value:.4g}",
            f"p-value (lower): {self.lower_p_value:.4g}",
        ]
        if self.weights is not None:
            lines.append("Inverse probability weighted")
        lines.append("")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"RandomizationSolution(n_draws={self.n_draws}, "
            f"observed={self.observed_stat:.4g}, "
            f"p_value={self.two_tailed_p_value:.4g})"
        )
