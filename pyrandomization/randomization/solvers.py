"""
Solver dispatch for randomization inference.

This module provides conduct_ri() (public API) and backend selection.
"""

from typing import Any, Literal

from numpy.typing import ArrayLike

from pyrandomization.randomization._common import RIConfig
from pyrandomization.randomization.assignment import AssignmentDesign
from pyrandomization.randomization.backends.cpu import CPURandomizationBackend
from pyrandomization.randomization.design import RIDesign
from pyrandomization.randomization.hypothesis import Hypothesis
from pyrandomization.randomization.solution import RandomizationSolution


BackendChoice = Literal['auto', 'cpu']


def conduct_ri(
    design: AssignmentDesign,
    hypothesis: Hypothesis | None = None,
    statistic: Any = None,
    data: Any = None,
    *,
    assignment: str = 'Z',
    outcome: str = 'Y',
    blocks: str | None = None,
    clusters: str | None = None,
    config: RIConfig | None = None,
    permutation_matrix: ArrayLike | None = None,
    backend: BackendChoice = 'auto',
) -> RandomizationSolution:
    """
    Randomization inference for a sharp null hypothesis.

    Computes the statistic on the observed data and on every valid
    assignment (or a Monte Carlo sample of them) with outcomes imputed
    under the sharp null, and reports where the observed value falls.

    Args:
        design: How treatment was randomized.
        hypothesis: ConstantEffect or NestedModels. Default: no effect
            for any unit.
        statistic: A Statistic, a function of the dataset returning one
            number, or None for the hypothesis' default (difference in
            means, or the nested-model F statistic).
        data: DataSource, pandas DataFrame or dict of columns.
        assignment: Column holding the observed arm labels.
        outcome: Column holding the observed outcome.
        blocks: Optional column that must partition units like the
            design's blocks.
        clusters: Optional column that must partition units like the
            design's clusters.
        config: Run settings (draws, enumeration threshold, seed, workers,
            weighting, tie tolerance). Default: RIConfig().
        permutation_matrix: Optional (n, R) array of assignments, one per
            column, used instead of enumeration or sampling.
        backend: 'auto' or 'cpu'.

    Returns:
        RandomizationSolution with the observed statistic, null
        distribution and p-values

    Raises:
        ValidationError: If an argument has the wrong type
        DesignDataMismatch: If the data disagree with the design
        AssignmentMismatch: If the observed assignment is not valid
        IncompatibleHypothesis: If the hypothesis cannot be imposed,
            including when the outcome column is missing
        InvalidDesign: If a regression statistic is used with a simple design
        StatisticEvaluationError: If the statistic fails on any draw

    Example:
        >>> design = AssignmentDesign.complete(7, 2)
        >>> sol = conduct_ri(design, data={'Y': y, 'Z': z})
        >>> sol.two_tailed_p_value
    """
    # This is the boundary - validate here, trust everywhere else
    ri_design = RIDesign.for_conduct(
        design,
        hypothesis,
        statistic,
        data,
        assignment=assignment,
        outcome=outcome,
        blocks=blocks,
        clusters=clusters,
        config=config,
        permutation_matrix=permutation_matrix,
    )
    backend_impl = _get_backend(backend)
    result = backend_impl.solve(ri_design)

    return RandomizationSolution(_result=result, _design=ri_design)


def _get_backend(choice: BackendChoice):
    """
    Select and instantiate the appropriate backend.

    Raises:
        ValueError: If unknown backend specified
    """
    if choice in ('auto', 'cpu'):
        return CPURandomizationBackend()
    raise ValueError(f"Unknown backend: {choice!r}")
