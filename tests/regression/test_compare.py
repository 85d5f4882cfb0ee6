"""
Tests for the nested-model F test compare().
"""

import numpy as np
import pytest
from scipy import stats

from pyrandomization.regression import compare, fit
from pyrandomization.core.exceptions import ValidationError


@pytest.fixture
def nested_fits(rng):
    n = 40
    x = rng.standard_normal(n)
    z = (np.arange(n) % 2).astype(float)
    y = 1.0 + 0.5 * x + 2.0 * z + rng.standard_normal(n)
    small = fit(np.column_stack([np.ones(n), x]), y)
    big = fit(np.column_stack([np.ones(n), x, z]), y)
    return small, big


class TestCompare:

    def test_f_statistic_formula(self, nested_fits):
        small, big = nested_fits
        result = compare(small, big)
        expected = ((small.rss - big.rss) / 1) / (big.rss / big.df_residual)
        assert result.f_statistic == pytest.approx(expected)
        assert result.df_numerator == 1
        assert result.df_denominator == big.df_residual
        assert result.rss_restricted == small.rss
        assert result.rss_unrestricted == big.rss

    def test_p_value_from_f_distribution(self, nested_fits):
        small, big = nested_fits
        result = compare(small, big)
        expected = stats.f.sf(result.f_statistic, 1, big.df_residual)
        assert result.p_value == pytest.approx(expected)

    def test_single_indicator_f_equals_t_squared(self, nested_fits):
        small, big = nested_fits
        result = compare(small, big)
        assert result.f_statistic == pytest.approx(big.t_statistics[2] ** 2)

    def test_f_non_negative(self, rng):
        n = 20
        y = rng.standard_normal(n)
        z = (np.arange(n) % 2).astype(float)
        small = fit(np.ones((n, 1)), y)
        big = fit(np.column_stack([np.ones(n), z]), y)
        result = compare(small, big)
        assert result.f_statistic >= 0.0
        assert 0.0 <= result.p_value <= 1.0

    def test_perfect_unrestricted_fit(self):
        z = np.array([0.0, 0.0, 1.0, 1.0])
        y = np.array([1.0, 1.0, 5.0, 5.0])
        small = fit(np.ones((4, 1)), y)
        big = fit(np.column_stack([np.ones(4), z]), y)
        assert compare(small, big).f_statistic > 1e10

    def test_not_nested_by_rank(self, nested_fits):
        small, big = nested_fits
        with pytest.raises(ValidationError, match="more parameters"):
            compare(big, small)

    def test_different_n(self, rng):
        a = fit(np.ones((5, 1)), rng.standard_normal(5))
        b = fit(np.column_stack([np.ones(6), np.arange(6.0)]), rng.standard_normal(6))
        with pytest.raises(ValidationError, match="different numbers"):
            compare(a, b)

    def test_no_residual_df(self):
        y = np.array([1.0, 2.0, 4.0])
        small = fit(np.ones((3, 1)), y)
        big = fit(np.column_stack([np.ones(3), [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]), y)
        with pytest.raises(ValidationError, match="residual degrees"):
            compare(small, big)
