"""
Test statistics for randomization inference.

A statistic maps a dataset (with the assignment and outcome columns set to
one draw) to a single float. Three variants are provided:

    CoefficientStatistic  -- regression coefficient (or t value) of one arm
    NestedFStatistic      -- F statistic of a nested-model comparison
    FunctionStatistic     -- any caller-supplied function of the dataset

All variants share the Statistic protocol. evaluate_statistic() is the
single call site used by the engine: it converts every failure into a
StatisticEvaluationError that names the failing draw.
"""

from __future__ import annotations

import numbers
from dataclasses import dataclass
from typing import Any, Callable, Protocol, Sequence, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from pyrandomization.core.datasource import DataSource
from pyrandomization.core.exceptions import StatisticEvaluationError, ValidationError
from pyrandomization.core.validation import check_array, check_finite
from pyrandomization.randomization.hypothesis import (
    ConstantEffect,
    Hypothesis,
    ModelSpec,
    NestedModels,
)


@runtime_checkable
class Statistic(Protocol):
    """
    Protocol for test statistics.

    The assignment column holds arm labels; arm_labels lists the arms in
    code order, baseline first.
    """

    def evaluate(
        self,
        dataset: DataSource,
        assignment: str,
        outcome: str,
        weights: NDArray[np.floating[Any]] | None = None,
        *,
        arm_labels: Sequence[Any],
    ) -> float:
        ...


@dataclass(frozen=True)
class CoefficientStatistic:
    """
    Coefficient of one arm's indicator in the regression of the outcome on
    an intercept, the non-baseline arm indicators and the covariates.

    Weighted least squares when weights are given.

    Attributes:
        covariates: Adjustment covariates.
        arm: Arm whose coefficient is returned. Default: the first
            non-baseline arm.
        studentize: Return the coefficient's t value instead.
    """
    covariates: tuple[str, ...] = ()
    arm: Any = None
    studentize: bool = False

    def __post_init__(self):
        if isinstance(self.covariates, str):
            object.__setattr__(self, 'covariates', (self.covariates,))
        else:
            object.__setattr__(self, 'covariates', tuple(self.covariates))

    def evaluate(self, dataset, assignment, outcome, weights=None, *, arm_labels):
        from pyrandomization.regression import fit

        arm_labels = list(arm_labels)
        if len(arm_labels) < 2:
            raise ValidationError("CoefficientStatistic needs at least two arms")
        arm = arm_labels[1] if self.arm is None else self.arm
        if arm not in arm_labels[1:]:
            raise ValidationError(
                f"CoefficientStatistic: arm {arm!r} is not a non-baseline arm "
                f"of {arm_labels!r}"
            )

        codes = label_codes(dataset[assignment], arm_labels)
        model = ModelSpec(covariates=self.covariates)
        X = model.matrix(dataset, codes, len(arm_labels))
        column = model.treatment_columns(len(arm_labels))[arm_labels.index(arm) - 1]

        sol = fit(X, _outcome(dataset, outcome), weights=weights)
        if self.studentize:
            return float(sol.t_statistics[column])
        return float(sol.coefficients[column])


@dataclass(frozen=True)
class NestedFStatistic:
    """
    F statistic comparing a restricted model to an unrestricted one.

    Larger values mean the unrestricted model explains more. Weights are
    not used.
    """
    restricted: ModelSpec
    unrestricted: ModelSpec

    def evaluate(self, dataset, assignment, outcome, weights=None, *, arm_labels):
        from pyrandomization.regression import compare, fit

        codes = label_codes(dataset[assignment], arm_labels)
        k = len(arm_labels)
        y = _outcome(dataset, outcome)
        restricted = fit(self.restricted.matrix(dataset, codes, k), y)
        unrestricted = fit(self.unrestricted.matrix(dataset, codes, k), y)
        return compare(restricted, unrestricted).f_statistic


@dataclass(frozen=True)
class FunctionStatistic:
    """
    Caller-supplied statistic: func(dataset) -> single real number.

    The dataset is passed as given to the engine (a DataSource, or a
    pandas DataFrame when the caller supplied one). Weights are not used.
    """
    func: Callable[[Any], Any]
    as_dataframe: bool = False

    def evaluate(self, dataset, assignment, outcome, weights=None, *, arm_labels):
        data = dataset.to_dataframe() if self.as_dataframe else dataset
        return coerce_scalar(self.func(data), describe_statistic(self))


def coerce_scalar(value: Any, name: str = 'statistic') -> float:
    """
    Convert a statistic's return value to float.

    Accepts real numbers, numpy scalars and size-1 arrays, infinities
    included. Anything else raises StatisticEvaluationError.
    """
    if isinstance(value, (bool, np.bool_)) or value is None or isinstance(value, (str, bytes)):
        raise StatisticEvaluationError(
            f"{name} returned {value!r}; expected a single real number",
            statistic=name,
        )
    if isinstance(value, numbers.Real):
        return float(value)

    try:
        arr = np.asarray(value)
    except (TypeError, ValueError) as e:
        raise StatisticEvaluationError(
            f"{name} returned {type(value).__name__}; expected a single real number",
            statistic=name,
        ) from e
    if arr.size != 1 or not np.issubdtype(arr.dtype, np.number) or np.iscomplexobj(arr):
        raise StatisticEvaluationError(
            f"{name} returned an array of shape {arr.shape} and dtype {arr.dtype}; "
            f"expected a single real number",
            statistic=name,
        )
    return float(arr.reshape(()))


def as_statistic(
    obj: Any,
    hypothesis: Hypothesis | None = None,
    *,
    as_dataframe: bool = False,
) -> Statistic:
    """
    Normalize a user-supplied statistic.

    None selects the default for the hypothesis; callables are wrapped in
    FunctionStatistic (receiving a pandas DataFrame when as_dataframe);
    Statistic instances pass through.
    """
    if obj is None:
        return default_statistic(hypothesis)
    if isinstance(obj, Statistic):
        return obj
    if callable(obj):
        return FunctionStatistic(obj, as_dataframe=as_dataframe)
    raise ValidationError(
        f"statistic must be a Statistic, a callable or None, got {type(obj).__name__}"
    )


def default_statistic(hypothesis: Hypothesis | None) -> Statistic:
    """
    Difference in means (first non-baseline arm vs baseline) for constant
    effects; the nested-model F statistic for NestedModels.
    """
    if isinstance(hypothesis, NestedModels):
        return NestedFStatistic(hypothesis.restricted, hypothesis.unrestricted)
    if hypothesis is None or isinstance(hypothesis, ConstantEffect):
        return CoefficientStatistic()
    raise ValidationError(f"no default statistic for {type(hypothesis).__name__}")


def ipw_weights(
    probabilities: NDArray[np.floating[Any]],
    codes: NDArray[np.intp],
) -> NDArray[np.floating[Any]]:
    """
    Inverse probability weights 1 / P[u, arm_u] for an assignment.

    probabilities is the design's fixed (n, k) inclusion table; only the
    arm each unit received changes between draws.
    """
    return 1.0 / probabilities[np.arange(len(codes)), codes]


def evaluate_statistic(
    statistic: Statistic,
    dataset: DataSource,
    assignment: str,
    outcome: str,
    weights: NDArray[np.floating[Any]] | None = None,
    *,
    arm_labels: Sequence[Any],
    draw: int | None = None,
) -> float:
    """
    Evaluate a statistic, converting every failure to StatisticEvaluationError.

    Args:
        draw: Index of the draw being evaluated, None for the observed data.

    Raises:
        StatisticEvaluationError: Chained from the original exception
    """
    name = describe_statistic(statistic)
    where = "observed data" if draw is None else f"draw {draw}"
    try:
        value = statistic.evaluate(
            dataset, assignment, outcome, weights, arm_labels=arm_labels
        )
    except StatisticEvaluationError as e:
        raise StatisticEvaluationError(
            f"{name} failed on {where}: {e}", draw=draw, statistic=name
        ) from e
    except Exception as e:
        raise StatisticEvaluationError(
            f"{name} failed on {where}: {type(e).__name__}: {e}",
            draw=draw,
            statistic=name,
        ) from e

    if not isinstance(value, float):
        value = coerce_scalar(value, name)
    if np.isnan(value):
        raise StatisticEvaluationError(
            f"{name} returned NaN on {where}", draw=draw, statistic=name
        )
    return value


def describe_statistic(statistic: Any) -> str:
    if isinstance(statistic, FunctionStatistic):
        return getattr(statistic.func, '__name__', type(statistic.func).__name__)
    return type(statistic).__name__


def label_codes(values: Any, arm_labels: Sequence[Any]) -> NDArray[np.intp]:
    """
    Arm codes of an assignment column.

    Raises:
        ValidationError: If a value is not one of arm_labels
    """
    lookup = {label: code for code, label in enumerate(arm_labels)}
    out = np.empty(len(values), dtype=np.intp)
    for i, value in enumerate(np.asarray(values).tolist()):
        code = lookup.get(value)
        if code is None:
            raise ValidationError(
                f"assignment value {value!r} is not an arm of {list(arm_labels)!r}"
            )
        out[i] = code
    return out


def _outcome(dataset: DataSource, outcome: str) -> NDArray[np.floating[Any]]:
    y = check_array(dataset[outcome], outcome)
    check_finite(y, outcome)
    return y
