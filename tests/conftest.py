"""
pytest configuration and shared fixtures.
"""

import pytest
import numpy as np


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def simple_regression_data(rng):
    """Regression dataset with intercept and two covariates."""
    n = 100
    X = np.column_stack([np.ones(n), rng.standard_normal((n, 2))])
    beta_true = np.array([1.0, -2.0, 0.5])
    y = X @ beta_true + rng.standard_normal(n) * 0.1
    return X, y, beta_true


@pytest.fixture
def collinear_data(rng):
    """Dataset with perfect collinearity (should fail)."""
    n = 100
    x1 = rng.standard_normal(n)
    x2 = rng.standard_normal(n)
    X = np.column_stack([x1, x2, x1 + x2])
    y = rng.standard_normal(n)
    return X, y


@pytest.fixture
def seven_unit_data():
    """
    Seven units, units 0 and 6 treated under complete assignment of 2.

    Difference in means 22.5 - 16.0 = 6.5 over C(7, 2) = 21 assignments.
    """
    return {
        'Y': np.array([15.0, 15.0, 20.0, 20.0, 10.0, 15.0, 30.0]),
        'Z': np.array([1, 0, 0, 0, 0, 0, 1]),
    }
