"""
Sharp null hypotheses and potential-outcome imputation.

A sharp null fixes every unit's outcome under every arm. Two mutually
exclusive forms are supported, as distinct types:

    ConstantEffect  -- additive effects relative to a baseline arm:
                       Y_u(a) = y_u - tau[z_u] + tau[a],  tau[baseline] = 0.

    NestedModels    -- residual (Freedman-Lane style) imputation: fit the
                       restricted model to the observed outcome and set
                       Y_u(a) = fhat_u(a) + e_u, where fhat_u(a) is the
                       restricted prediction with unit u's treatment terms
                       set to arm a and e = y - fhat the observed residuals.

The resulting PotentialOutcomeTable is built once per inference call and
then only read: each draw picks one column per unit.
"""

from __future__ import annotations

import numbers
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

import numpy as np
from numpy.typing import NDArray

from pyrandomization.core.datasource import DataSource
from pyrandomization.core.exceptions import IncompatibleHypothesis, ValidationError
from pyrandomization.core.validation import check_array, check_finite
from pyrandomization.randomization.assignment import AssignmentDesign


MODE_CONSTANT_EFFECT = 'constant_effect'
MODE_RESIDUAL = 'residual'


@dataclass(frozen=True)
class ModelSpec:
    """
    Declarative linear model on the assignment and dataset columns.

    Column layout of the design matrix, in order:
        intercept (if intercept)
        one indicator per non-baseline arm (if treatment)
        covariate columns
        arm indicator x covariate products, per interaction covariate,
            arms varying fastest

    Attributes:
        covariates: Dataset columns entering as main effects.
        treatment: Include arm indicators.
        interactions: Covariates interacted with the arm indicators.
        intercept: Include an intercept column.
    """
    covariates: tuple[str, ...] = ()
    treatment: bool = True
    interactions: tuple[str, ...] = ()
    intercept: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'covariates', _as_names(self.covariates, 'covariates'))
        object.__setattr__(self, 'interactions', _as_names(self.interactions, 'interactions'))
        if self.interactions and not self.treatment:
            raise ValidationError(
                "ModelSpec: interactions require treatment=True"
            )

    @property
    def columns(self) -> tuple[str, ...]:
        """Dataset columns this model reads (excluding assignment/outcome)."""
        seen = dict.fromkeys(self.covariates + self.interactions)
        return tuple(seen)

    @property
    def has_treatment_terms(self) -> bool:
        return self.treatment

    def n_columns(self, n_arms: int) -> int:
        arms = n_arms - 1
        return (
            int(self.intercept)
            + (arms if self.treatment else 0)
            + len(self.covariates)
            + arms * len(self.interactions)
        )

    def treatment_columns(self, n_arms: int) -> list[int]:
        """Design-matrix column of each non-baseline arm's indicator."""
        if not self.treatment:
            return []
        start = int(self.intercept)
        return list(range(start, start + n_arms - 1))

    def matrix(
        self,
        dataset: DataSource,
        codes: NDArray[np.intp],
        n_arms: int,
    ) -> NDArray[np.floating[Any]]:
        """
        Numeric design matrix for arm codes `codes` (baseline = 0).

        Raises:
            KeyError: If a covariate column is missing
            ValidationError: If a covariate column is non-numeric or non-finite
        """
        n = codes.shape[0]
        blocks: list[NDArray] = []
        if self.intercept:
            blocks.append(np.ones((n, 1)))

        dummies = None
        if self.treatment:
            dummies = (codes[:, None] == np.arange(1, n_arms)[None, :]).astype(np.float64)
            blocks.append(dummies)

        for name in self.covariates:
            blocks.append(_covariate(dataset, name)[:, None])

        for name in self.interactions:
            blocks.append(dummies * _covariate(dataset, name)[:, None])

        if not blocks:
            return np.empty((n, 0))
        return np.hstack(blocks)

    def is_nested_in(self, other: ModelSpec) -> bool:
        """True if every term of self is a term of other and other has more."""
        contained = (
            (not self.intercept or other.intercept)
            and (not self.treatment or other.treatment)
            and set(self.covariates) <= set(other.covariates)
            and set(self.interactions) <= set(other.interactions)
        )
        return contained and self != other


@dataclass(frozen=True)
class ConstantEffect:
    """
    Sharp null of constant additive effects relative to a baseline arm.

    Attributes:
        effect: A number (two-arm designs, or 0 for any number of arms:
            no arm differs from baseline) or a mapping {arm_label: tau}
            covering every non-baseline arm.
        baseline: Baseline arm label. Default: the design's first arm.
    """
    effect: float | Mapping[Any, float] = 0.0
    baseline: Any = None


@dataclass(frozen=True)
class NestedModels:
    """
    Sharp null of no incremental effect of the unrestricted model's extra
    treatment terms, imposed by residual imputation from the restricted fit.

    Attributes:
        restricted: Model fit to the observed outcome for imputation.
        unrestricted: Model with the extra terms under test; must strictly
            contain restricted.
    """
    restricted: ModelSpec = field(default_factory=lambda: ModelSpec(treatment=False))
    unrestricted: ModelSpec = field(default_factory=ModelSpec)


Hypothesis = Union[ConstantEffect, NestedModels]


@dataclass(frozen=True)
class PotentialOutcomeTable:
    """
    Hypothesized outcome of every unit under every arm.

    Attributes:
        outcomes: Shape (n, n_arms); column a holds Y(a).
        mode: 'constant_effect' or 'residual'.
        fitted: Restricted-model predictions per arm, shape (n, n_arms),
            residual mode only.
        residuals: Observed restricted-model residuals, shape (n,),
            residual mode only.
    """
    outcomes: NDArray[np.floating[Any]]
    mode: str
    fitted: NDArray[np.floating[Any]] | None = None
    residuals: NDArray[np.floating[Any]] | None = None

    @property
    def n(self) -> int:
        return self.outcomes.shape[0]

    @property
    def n_arms(self) -> int:
        return self.outcomes.shape[1]

    def realize(self, codes: NDArray[np.intp]) -> NDArray[np.floating[Any]]:
        """Outcome vector revealed by the assignment `codes`."""
        return self.outcomes[np.arange(self.n), codes]


def impute_potential_outcomes(
    hypothesis: Hypothesis,
    dataset: DataSource,
    codes: NDArray[np.intp],
    outcome: str,
    design: AssignmentDesign,
) -> PotentialOutcomeTable:
    """
    Build the potential-outcome table implied by a sharp null.

    Args:
        hypothesis: ConstantEffect or NestedModels.
        dataset: Observed data.
        codes: Observed assignment as arm codes, shape (n,).
        outcome: Outcome column name.
        design: The assignment design (arm labels and count).

    Returns:
        PotentialOutcomeTable with outcomes of shape (n, n_arms).

    Raises:
        IncompatibleHypothesis: If the outcome or a model column is missing,
            the effect specification does not fit the arm count, or the
            nested models are not nested.
        SingularMatrixError: If the restricted model cannot be fit.
    """
    if outcome not in dataset:
        raise IncompatibleHypothesis(
            f"outcome column '{outcome}' is not in the dataset; "
            f"available: {sorted(dataset.keys())}",
            column=outcome,
            n_arms=design.n_arms,
        )
    y = check_array(dataset[outcome], outcome)
    check_finite(y, outcome)

    if isinstance(hypothesis, ConstantEffect):
        return _impute_constant_effect(hypothesis, y, codes, design)
    if isinstance(hypothesis, NestedModels):
        return _impute_residual(hypothesis, dataset, y, codes, design)
    raise IncompatibleHypothesis(
        f"unsupported hypothesis type {type(hypothesis).__name__}; expected "
        f"ConstantEffect or NestedModels",
        n_arms=design.n_arms,
    )


def effect_vector(hypothesis: ConstantEffect, design: AssignmentDesign) -> NDArray[np.floating[Any]]:
    """
    Per-arm effect tau (indexed by arm code) relative to the baseline.

    Raises:
        IncompatibleHypothesis: See impute_potential_outcomes()
    """
    k = design.n_arms
    baseline = design.arm_labels[0] if hypothesis.baseline is None else hypothesis.baseline
    if baseline not in design.arm_labels:
        raise IncompatibleHypothesis(
            f"baseline {baseline!r} is not an arm; arms are {design.arm_labels!r}",
            n_arms=k,
        )
    base_code = design.arm_labels.index(baseline)
    tau = np.zeros(k, dtype=np.float64)

    effect = hypothesis.effect
    if isinstance(effect, Mapping):
        unknown = [a for a in effect if a not in design.arm_labels]
        if unknown:
            raise IncompatibleHypothesis(
                f"effect names unknown arms {unknown!r}; arms are {design.arm_labels!r}",
                n_arms=k,
            )
        missing = [
            a for a in design.arm_labels
            if a != baseline and a not in effect
        ]
        if missing:
            raise IncompatibleHypothesis(
                f"effect mapping has no value for arms {missing!r}",
                n_arms=k,
            )
        if baseline in effect and effect[baseline] != 0:
            raise IncompatibleHypothesis(
                f"baseline arm {baseline!r} must have effect 0, got {effect[baseline]!r}",
                n_arms=k,
            )
        for label, value in effect.items():
            tau[design.arm_labels.index(label)] = float(value)
    elif isinstance(effect, numbers.Real) and not isinstance(effect, bool):
        if k > 2 and effect != 0:
            raise IncompatibleHypothesis(
                f"a single effect size is ambiguous with {k} arms; give a "
                f"mapping {{arm: effect}} for every non-baseline arm",
                n_arms=k,
            )
        tau[:] = float(effect)
        tau[base_code] = 0.0
    else:
        raise IncompatibleHypothesis(
            f"effect must be a number or a mapping, got {type(effect).__name__}",
            n_arms=k,
        )

    if not np.all(np.isfinite(tau)):
        raise IncompatibleHypothesis(f"effects must be finite, got {tau.tolist()}", n_arms=k)
    return tau


def _impute_constant_effect(
    hypothesis: ConstantEffect,
    y: NDArray[np.floating[Any]],
    codes: NDArray[np.intp],
    design: AssignmentDesign,
) -> PotentialOutcomeTable:
    tau = effect_vector(hypothesis, design)
    outcomes = (y - tau[codes])[:, None] + tau[None, :]
    return PotentialOutcomeTable(outcomes=outcomes, mode=MODE_CONSTANT_EFFECT)


def _impute_residual(
    hypothesis: NestedModels,
    dataset: DataSource,
    y: NDArray[np.floating[Any]],
    codes: NDArray[np.intp],
    design: AssignmentDesign,
) -> PotentialOutcomeTable:
    from pyrandomization.regression import fit

    restricted = hypothesis.restricted
    unrestricted = hypothesis.unrestricted
    k = design.n_arms

    for name in restricted.columns + unrestricted.columns:
        if name not in dataset:
            raise IncompatibleHypothesis(
                f"model column '{name}' is not in the dataset; "
                f"available: {sorted(dataset.keys())}",
                column=name,
                n_arms=k,
            )
    if not restricted.is_nested_in(unrestricted):
        raise IncompatibleHypothesis(
            f"restricted model {restricted!r} is not nested in unrestricted "
            f"model {unrestricted!r}",
            n_arms=k,
        )
    if restricted.n_columns(k) == 0:
        raise IncompatibleHypothesis(
            "restricted model has no terms; include at least the intercept",
            n_arms=k,
        )

    X_obs = restricted.matrix(dataset, codes, k)
    sol = fit(X_obs, y)
    residuals = sol.residuals

    fitted = np.empty((design.n, k), dtype=np.float64)
    if restricted.has_treatment_terms:
        for arm in range(k):
            X_arm = restricted.matrix(dataset, np.full(design.n, arm, dtype=np.intp), k)
            fitted[:, arm] = X_arm @ sol.coefficients
    else:
        fitted[:] = sol.fitted_values[:, None]

    return PotentialOutcomeTable(
        outcomes=fitted + residuals[:, None],
        mode=MODE_RESIDUAL,
        fitted=fitted,
        residuals=residuals,
    )


def _covariate(dataset: DataSource, name: str) -> NDArray[np.floating[Any]]:
    values = check_array(dataset[name], name)
    check_finite(values, name)
    return values


def _as_names(value: Any, field_name: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    names = tuple(value)
    if not all(isinstance(v, str) for v in names):
        raise ValidationError(f"ModelSpec.{field_name}: expected column names, got {names!r}")
    return names
