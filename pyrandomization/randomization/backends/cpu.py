"""
CPU backend for randomization inference.

Imputes the potential-outcome table once, builds the draw set (every valid
assignment, a Monte Carlo sample, or a caller-supplied matrix), evaluates
the statistic on each draw and compares the observed statistic against
that null distribution.
"""

from __future__ import annotations

import warnings
from typing import Any

import numpy as np
from joblib import Parallel, delayed
from numpy.typing import NDArray

from pyrandomization.core.compute.timing import Timer
from pyrandomization.core.result import Result
from pyrandomization.randomization._common import RandomizationParams
from pyrandomization.randomization._pvalues import compute_p_values
from pyrandomization.randomization.design import RIDesign
from pyrandomization.randomization.hypothesis import (
    PotentialOutcomeTable,
    impute_potential_outcomes,
)
from pyrandomization.randomization.sampler import (
    enumerate_assignments,
    is_constant_probability,
    is_enumerable,
    sample_assignments,
    total_valid_assignment_count,
)
from pyrandomization.randomization.statistics import evaluate_statistic, ipw_weights


class CPURandomizationBackend:
    """
    CPU backend for randomization inference.

    Enumerates when the number of valid assignments is at most
    config.exhaustive_threshold and every assignment is equally likely;
    otherwise draws config.sims Monte Carlo assignments.
    """

    @property
    def name(self) -> str:
        return 'cpu_randomization'

    def solve(self, design: RIDesign) -> Result[RandomizationParams]:
        """Run randomization inference and return Result[RandomizationParams]."""
        timer = Timer()
        timer.start()

        ad = design.assignment_design
        config = design.config
        warnings_list: list[str] = []

        with timer.section('imputation'):
            table = impute_potential_outcomes(
                design.hypothesis,
                design.dataset,
                design.observed_codes,
                design.outcome,
                ad,
            )

        total = total_valid_assignment_count(ad)
        with timer.section('draws'):
            if design.permutation_codes is not None:
                draws = design.permutation_codes
                method = 'permutation_matrix'
                exhaustive = False
            elif total <= config.exhaustive_threshold and is_enumerable(ad):
                draws = np.array(list(enumerate_assignments(ad)), dtype=np.intp)
                method = 'enumeration'
                exhaustive = True
                if total < config.sims:
                    warnings_list.append(
                        f"design has only {total} valid assignments; all were "
                        f"enumerated and sims={config.sims} was not used"
                    )
            else:
                if total <= config.exhaustive_threshold:
                    warnings_list.append(
                        "simple design with unequal arm probabilities cannot be "
                        f"enumerated; using {config.sims} Monte Carlo draws instead"
                    )
                rng = np.random.default_rng(config.seed)
                draws = sample_assignments(ad, config.sims, rng=rng)
                method = 'monte_carlo'
                exhaustive = False

        if config.ipw is None:
            use_ipw = not is_constant_probability(design.probabilities)
        else:
            use_ipw = config.ipw
        observed_weights = (
            ipw_weights(design.probabilities, design.observed_codes) if use_ipw else None
        )

        with timer.section('observed_stat'):
            observed = evaluate_statistic(
                design.statistic,
                design.dataset,
                design.assignment,
                design.outcome,
                observed_weights,
                arm_labels=design.arm_labels,
            )

        with timer.section('null_distribution'):
            null = self._evaluate_draws(design, table, draws, use_ipw)

        with timer.section('p_value'):
            p_values = compute_p_values(observed, null, config.tolerance)

        timer.stop()

        for message in warnings_list:
            warnings.warn(message, RuntimeWarning, stacklevel=3)

        params = RandomizationParams(
            observed_stat=observed,
            null_distribution=null,
            draw_indices=np.arange(len(draws), dtype=np.intp),
            two_tailed_p_value=p_values['two-tailed'],
            upper_p_value=p_values['upper'],
            lower_p_value=p_values['lower'],
            inclusion_probabilities=design.probabilities,
            weights=observed_weights,
            n_draws=len(draws),
            exhaustive=exhaustive,
        )

        return Result(
            params=params,
            info={
                'method': method,
                'n_draws': len(draws),
                'total_assignments': total,
                'exhaustive': exhaustive,
                'imputation': table.mode,
                'ipw': use_ipw,
                'n_jobs': config.n_jobs,
                'seed': config.seed,
            },
            timing=timer.result(),
            backend_name=self.name,
            warnings=tuple(warnings_list),
        )

    def _evaluate_draws(
        self,
        design: RIDesign,
        table: PotentialOutcomeTable,
        draws: NDArray[np.intp],
        use_ipw: bool,
    ) -> NDArray[np.floating[Any]]:
        labels = np.asarray(design.arm_labels)

        def one(index: int, codes: NDArray[np.intp]) -> float:
            dataset = design.dataset.with_columns(**{
                design.assignment: labels[codes],
                design.outcome: table.realize(codes),
            })
            weights = ipw_weights(design.probabilities, codes) if use_ipw else None
            return evaluate_statistic(
                design.statistic,
                dataset,
                design.assignment,
                design.outcome,
                weights,
                arm_labels=design.arm_labels,
                draw=index,
            )

        if design.config.n_jobs == 1:
            null = np.empty(len(draws), dtype=np.float64)
            for i, codes in enumerate(draws):
                null[i] = one(i, codes)
            return null

        # Parallel returns results in submission order
        values = Parallel(n_jobs=design.config.n_jobs, prefer='threads')(
            delayed(one)(i, codes) for i, codes in enumerate(draws)
        )
        return np.asarray(values, dtype=np.float64)
