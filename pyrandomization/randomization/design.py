"""
Design class for randomization inference.

RIDesign bundles everything the backend needs for one conduct_ri() call:
the assignment design, the dataset, the hypothesis, the statistic, the run
settings and the observed assignment. Immutable, validated at construction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pyrandomization.core.capabilities import (
    CAPABILITY_COLUMN_REPLACEMENT,
    CAPABILITY_MATERIALIZED,
    CAPABILITY_REPEATABLE,
)
from pyrandomization.core.datasource import DataSource
from pyrandomization.core.exceptions import (
    AssignmentMismatch,
    DesignDataMismatch,
    IncompatibleHypothesis,
    InvalidDesign,
    ValidationError,
)
from pyrandomization.randomization._common import RIConfig
from pyrandomization.randomization.assignment import AssignmentDesign, _factorize
from pyrandomization.randomization.hypothesis import ConstantEffect, Hypothesis, NestedModels
from pyrandomization.randomization.sampler import check_assignment, inclusion_probabilities
from pyrandomization.randomization.statistics import (
    CoefficientStatistic,
    NestedFStatistic,
    Statistic,
    as_statistic,
)

# Every draw reads full columns and replaces the assignment and outcome
_REQUIRED_CAPABILITIES = (
    CAPABILITY_MATERIALIZED,
    CAPABILITY_REPEATABLE,
    CAPABILITY_COLUMN_REPLACEMENT,
)


@dataclass(frozen=True)
class RIDesign:
    """
    Frozen design for one randomization-inference run.

    Attributes:
        assignment_design: How treatment was randomized.
        dataset: Observed data.
        hypothesis: Sharp null to impose.
        statistic: Test statistic.
        assignment: Assignment column name.
        outcome: Outcome column name.
        observed_codes: Observed assignment as arm codes, shape (n,).
        probabilities: (n, k) inclusion probability table.
        config: Run settings.
        permutation_codes: Caller-supplied draws as arm codes, shape (R, n),
            or None to enumerate or sample.
    """
    assignment_design: AssignmentDesign
    dataset: DataSource
    hypothesis: Hypothesis
    statistic: Statistic
    assignment: str
    outcome: str
    observed_codes: NDArray[np.intp]
    probabilities: NDArray[np.floating[Any]]
    config: RIConfig
    permutation_codes: NDArray[np.intp] | None

    @classmethod
    def for_conduct(
        cls,
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
        permutation_matrix: Any = None,
    ) -> RIDesign:
        """
        Create a randomization-inference design with validation.

        Raises:
            ValidationError: If an argument has the wrong type
            DesignDataMismatch: If the data's rows or columns disagree with
                the design
            IncompatibleHypothesis: If the outcome column is not in the data
            InvalidDesign: If a regression statistic is paired with a simple
                design, where draws can leave an arm empty
            AssignmentMismatch: If the observed assignment, or a column of
                permutation_matrix, is not valid under the design
        """
        if not isinstance(design, AssignmentDesign):
            raise ValidationError(
                f"design must be an AssignmentDesign, got {type(design).__name__}"
            )
        if data is None:
            raise ValidationError("data is required")
        if config is None:
            config = RIConfig()
        elif not isinstance(config, RIConfig):
            raise ValidationError(f"config must be an RIConfig, got {type(config).__name__}")
        if hypothesis is None:
            hypothesis = ConstantEffect()
        elif not isinstance(hypothesis, (ConstantEffect, NestedModels)):
            raise ValidationError(
                f"hypothesis must be ConstantEffect or NestedModels, got "
                f"{type(hypothesis).__name__}"
            )

        is_dataframe = not isinstance(data, DataSource) and hasattr(data, 'columns')
        dataset = DataSource.build(data)
        for capability in _REQUIRED_CAPABILITIES:
            if not dataset.supports(capability):
                raise ValidationError(
                    f"data must support '{capability}' to be redrawn once per "
                    f"assignment"
                )

        if dataset.n_observations != design.n:
            raise DesignDataMismatch(
                f"data has {dataset.n_observations} rows but the design has "
                f"{design.n} units",
                expected=design.n,
                actual=dataset.n_observations,
            )
        _require_column(dataset, assignment, 'assignment')
        if outcome not in dataset:
            raise IncompatibleHypothesis(
                f"outcome column '{outcome}' referenced by the hypothesis is not "
                f"in the data; available: {sorted(dataset.keys())}",
                column=outcome,
                n_arms=design.n_arms,
            )
        if blocks is not None:
            _check_partition(dataset, blocks, design.blocks, 'block')
        if clusters is not None:
            _check_partition(dataset, clusters, design.clusters, 'cluster')

        observed_codes = check_assignment(design, dataset[assignment])

        permutation_codes = None
        if permutation_matrix is not None:
            permutation_codes = _check_permutation_matrix(design, permutation_matrix)

        statistic = as_statistic(statistic, hypothesis, as_dataframe=is_dataframe)
        if permutation_codes is None:
            _check_arm_sizes_fixed(design, statistic)

        return cls(
            assignment_design=design,
            dataset=dataset,
            hypothesis=hypothesis,
            statistic=statistic,
            assignment=assignment,
            outcome=outcome,
            observed_codes=observed_codes,
            probabilities=inclusion_probabilities(design),
            config=config,
            permutation_codes=permutation_codes,
        )

    @property
    def n(self) -> int:
        return self.assignment_design.n

    @property
    def arm_labels(self) -> tuple:
        return self.assignment_design.arm_labels


def _require_column(dataset: DataSource, name: str, role: str) -> None:
    if name not in dataset:
        raise DesignDataMismatch(
            f"{role} column '{name}' is not in the data; available: "
            f"{sorted(dataset.keys())}",
            column=name,
        )


def _check_partition(
    dataset: DataSource,
    name: str,
    expected: NDArray[np.intp],
    kind: str,
) -> None:
    """The column must group units exactly as the design's codes do."""
    _require_column(dataset, name, kind)
    codes, _ = _factorize(np.asarray(dataset[name]))
    n_groups = len(np.unique(codes))
    n_expected = len(np.unique(expected))
    n_pairs = len(np.unique(np.column_stack([codes, expected]), axis=0))
    if not (n_groups == n_expected == n_pairs):
        raise DesignDataMismatch(
            f"{kind} column '{name}' has {n_groups} groups that do not match "
            f"the design's {n_expected} {kind}s",
            column=name,
            expected=n_expected,
            actual=n_groups,
        )


def _check_arm_sizes_fixed(design: AssignmentDesign, statistic: Statistic) -> None:
    """
    Regression statistics need every arm present in every draw.

    Under a simple design each unit (or cluster) is assigned independently,
    so a draw can put every unit in one arm and leave the arm indicators
    rank-deficient.
    """
    if not design.is_simple:
        return
    if isinstance(statistic, CoefficientStatistic):
        uses_arms = True
    elif isinstance(statistic, NestedFStatistic):
        uses_arms = (
            statistic.restricted.has_treatment_terms
            or statistic.unrestricted.has_treatment_terms
        )
    else:
        uses_arms = False
    if uses_arms:
        raise InvalidDesign(
            f"{type(statistic).__name__} regresses on arm indicators, but a simple "
            f"design can leave an arm empty in a draw; pass a statistic that "
            f"handles empty arms, or a permutation_matrix",
            reason='empty_arm',
        )


def _check_permutation_matrix(design: AssignmentDesign, matrix: Any) -> NDArray[np.intp]:
    arr = np.asarray(matrix)
    if arr.ndim == 1:
        arr = arr[:, None]
    if arr.ndim != 2 or arr.shape[0] != design.n or arr.shape[1] == 0:
        raise DesignDataMismatch(
            f"permutation_matrix must have shape ({design.n}, R) with R >= 1, "
            f"got {arr.shape}",
            column='permutation_matrix',
            expected=design.n,
            actual=arr.shape,
        )

    codes = np.empty((arr.shape[1], design.n), dtype=np.intp)
    for j in range(arr.shape[1]):
        try:
            codes[j] = check_assignment(design, arr[:, j])
        except AssignmentMismatch as e:
            raise AssignmentMismatch(
                f"permutation_matrix column {j}: {e}",
                block=e.block,
                expected=e.expected,
                observed=e.observed,
                cluster=e.cluster,
            ) from e
    return codes
