"""
Tests for test statistics and their evaluation wrapper.
"""

import numpy as np
import pandas as pd
import pytest

from pyrandomization.core import DataSource
from pyrandomization.core.exceptions import StatisticEvaluationError, ValidationError
from pyrandomization.randomization.hypothesis import ConstantEffect, ModelSpec, NestedModels
from pyrandomization.randomization.statistics import (
    CoefficientStatistic,
    FunctionStatistic,
    NestedFStatistic,
    Statistic,
    as_statistic,
    coerce_scalar,
    default_statistic,
    evaluate_statistic,
    ipw_weights,
    label_codes,
)


@pytest.fixture
def data(seven_unit_data):
    return DataSource.from_arrays(**seven_unit_data)


# ---------------------------------------------------------------------------
# Built-in statistics
# ---------------------------------------------------------------------------

class TestCoefficientStatistic:

    def test_difference_in_means(self, data):
        value = CoefficientStatistic().evaluate(data, 'Z', 'Y', arm_labels=(0, 1))
        assert value == pytest.approx(6.5)

    def test_weighted(self):
        ds = DataSource.from_arrays(Y=[1.0, 3.0, 10.0, 20.0], Z=[0, 0, 1, 1])
        w = np.array([3.0, 1.0, 1.0, 4.0])
        value = CoefficientStatistic().evaluate(ds, 'Z', 'Y', w, arm_labels=(0, 1))
        assert value == pytest.approx(18.0 - 1.5)

    def test_studentized(self, data):
        t = CoefficientStatistic(studentize=True).evaluate(data, 'Z', 'Y', arm_labels=(0, 1))
        coef = CoefficientStatistic().evaluate(data, 'Z', 'Y', arm_labels=(0, 1))
        assert np.sign(t) == np.sign(coef)
        assert abs(t) != pytest.approx(abs(coef))

    def test_named_arm_multi_arm(self):
        ds = DataSource.from_arrays(
            Y=[1.0, 1.0, 4.0, 4.0, 9.0, 9.0],
            Z=np.array(['c', 'c', 'a', 'a', 'b', 'b']),
        )
        stat = CoefficientStatistic(arm='b')
        assert stat.evaluate(ds, 'Z', 'Y', arm_labels=('c', 'a', 'b')) == pytest.approx(8.0)

    def test_baseline_arm_rejected(self, data):
        with pytest.raises(ValidationError, match="non-baseline"):
            CoefficientStatistic(arm=0).evaluate(data, 'Z', 'Y', arm_labels=(0, 1))

    def test_covariates(self):
        x = np.array([0.0, 1.0, 2.0, 3.0, 4.0, 5.0])
        z = np.array([0, 1, 0, 1, 0, 1])
        y = 2.0 * x + 3.0 * z + 1.0
        ds = DataSource.from_arrays(Y=y, Z=z, x=x)
        value = CoefficientStatistic(covariates=('x',)).evaluate(ds, 'Z', 'Y', arm_labels=(0, 1))
        assert value == pytest.approx(3.0)


class TestNestedFStatistic:

    def test_matches_squared_t_for_one_indicator(self, data):
        stat = NestedFStatistic(ModelSpec(treatment=False), ModelSpec())
        f = stat.evaluate(data, 'Z', 'Y', arm_labels=(0, 1))
        t = CoefficientStatistic(studentize=True).evaluate(data, 'Z', 'Y', arm_labels=(0, 1))
        assert f == pytest.approx(t ** 2)

    def test_ignores_weights(self, data):
        stat = NestedFStatistic(ModelSpec(treatment=False), ModelSpec())
        a = stat.evaluate(data, 'Z', 'Y', arm_labels=(0, 1))
        b = stat.evaluate(data, 'Z', 'Y', np.arange(1.0, 8.0), arm_labels=(0, 1))
        assert a == b


class TestFunctionStatistic:

    def test_receives_dataset(self, data):
        stat = FunctionStatistic(lambda ds: ds['Y'][ds['Z'] == 1].mean())
        assert stat.evaluate(data, 'Z', 'Y', arm_labels=(0, 1)) == pytest.approx(22.5)

    def test_dataframe_mode(self, data):
        def treated_mean(df):
            assert isinstance(df, pd.DataFrame)
            return df.loc[df['Z'] == 1, 'Y'].mean()

        stat = FunctionStatistic(treated_mean, as_dataframe=True)
        assert stat.evaluate(data, 'Z', 'Y', arm_labels=(0, 1)) == pytest.approx(22.5)


class TestCoerceScalar:

    @pytest.mark.parametrize("value, expected", [
        (3, 3.0),
        (np.float32(2.5), 2.5),
        (np.array([4.0]), 4.0),
        (np.array(7), 7.0),
        (np.inf, np.inf),
    ])
    def test_accepted(self, value, expected):
        assert coerce_scalar(value) == expected

    @pytest.mark.parametrize("value", [
        None,
        "1.0",
        True,
        np.array([1.0, 2.0]),
        [1.0, 2.0],
        {"a": 1},
        1 + 2j,
    ])
    def test_rejected(self, value):
        with pytest.raises(StatisticEvaluationError):
            coerce_scalar(value)


# ---------------------------------------------------------------------------
# evaluate_statistic()
# ---------------------------------------------------------------------------

class TestEvaluateStatistic:

    def test_exception_wrapped_with_draw(self, data):
        def broken(ds):
            raise ZeroDivisionError("nope")

        with pytest.raises(StatisticEvaluationError) as exc_info:
            evaluate_statistic(
                FunctionStatistic(broken), data, 'Z', 'Y', arm_labels=(0, 1), draw=3
            )
        e = exc_info.value
        assert e.draw == 3
        assert e.statistic == 'broken'
        assert isinstance(e.__cause__, ZeroDivisionError)

    def test_non_scalar_gets_draw(self, data):
        with pytest.raises(StatisticEvaluationError) as exc_info:
            evaluate_statistic(
                FunctionStatistic(lambda ds: ds['Y']), data, 'Z', 'Y',
                arm_labels=(0, 1), draw=0,
            )
        assert exc_info.value.draw == 0

    def test_nan_rejected(self, data):
        with pytest.raises(StatisticEvaluationError, match="NaN"):
            evaluate_statistic(
                FunctionStatistic(lambda ds: float('nan')), data, 'Z', 'Y', arm_labels=(0, 1)
            )

    def test_observed_has_no_draw(self, data):
        with pytest.raises(StatisticEvaluationError, match="observed data") as exc_info:
            evaluate_statistic(
                FunctionStatistic(lambda ds: None), data, 'Z', 'Y', arm_labels=(0, 1)
            )
        assert exc_info.value.draw is None

    def test_returns_float(self, data):
        value = evaluate_statistic(CoefficientStatistic(), data, 'Z', 'Y', arm_labels=(0, 1))
        assert isinstance(value, float)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestAsStatistic:

    def test_callable_wrapped(self):
        stat = as_statistic(lambda ds: 1.0)
        assert isinstance(stat, FunctionStatistic)
        assert isinstance(stat, Statistic)

    def test_passthrough(self):
        stat = CoefficientStatistic()
        assert as_statistic(stat) is stat

    def test_default_for_constant_effect(self):
        assert isinstance(as_statistic(None, ConstantEffect()), CoefficientStatistic)

    def test_default_for_nested_models(self):
        hyp = NestedModels(ModelSpec(treatment=False), ModelSpec())
        stat = default_statistic(hyp)
        assert isinstance(stat, NestedFStatistic)
        assert stat.unrestricted == ModelSpec()

    def test_rejects_other(self):
        with pytest.raises(ValidationError):
            as_statistic(42)


class TestIpwWeights:

    def test_inverse_of_received_arm(self):
        P = np.array([[0.75, 0.25], [0.75, 0.25], [0.5, 0.5]])
        w = ipw_weights(P, np.array([1, 0, 1]))
        np.testing.assert_allclose(w, [4.0, 4 / 3, 2.0])


class TestLabelCodes:

    def test_maps_labels(self):
        np.testing.assert_array_equal(label_codes(np.array(['b', 'a']), ('a', 'b')), [1, 0])

    def test_unknown(self):
        with pytest.raises(ValidationError):
            label_codes(np.array([0, 3]), (0, 1))
