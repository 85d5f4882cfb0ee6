"""
Tests for DataSource.

Validates:
    - Construction from arrays, dicts and pandas DataFrames
    - Column dtype handling (numeric to float64, labels kept)
    - Column access errors
    - with_columns() derives a copy without touching the original
"""

import numpy as np
import pandas as pd
import pytest

from pyrandomization.core import DataSource
from pyrandomization.core.capabilities import CAPABILITY_COLUMN_REPLACEMENT
from pyrandomization.core.exceptions import DimensionError, ValidationError


class TestConstruction:

    def test_from_arrays(self):
        ds = DataSource.from_arrays(Y=[1, 2, 3], Z=[0, 1, 0])
        assert ds.keys() == frozenset({"Y", "Z"})
        assert ds.n_observations == 3
        assert len(ds) == 3
        assert ds["Y"].dtype == np.float64

    def test_label_column_kept(self):
        ds = DataSource.from_arrays(block=["a", "b", "a"])
        assert ds["block"].tolist() == ["a", "b", "a"]

    def test_inconsistent_lengths(self):
        with pytest.raises(DimensionError, match="Inconsistent"):
            DataSource.from_arrays(Y=[1, 2, 3], Z=[0, 1])

    def test_no_columns(self):
        with pytest.raises(ValidationError):
            DataSource.from_arrays()

    def test_from_dataframe(self):
        df = pd.DataFrame({"Y": [1.0, 2.0], "Z": [0, 1], "g": ["x", "y"]})
        ds = DataSource.from_dataframe(df)
        assert ds.n_observations == 2
        np.testing.assert_array_equal(ds["Z"], [0.0, 1.0])

    def test_build_dispatch(self):
        ds = DataSource.build({"Y": [1, 2]})
        assert DataSource.build(ds) is ds
        assert DataSource.build(pd.DataFrame({"Y": [1, 2]})).n_observations == 2
        assert DataSource.build(Y=[1, 2, 3]).n_observations == 3

    def test_build_rejects_unknown(self):
        with pytest.raises(ValidationError):
            DataSource.build(42)


class TestAccess:

    def test_missing_column_lists_available(self):
        ds = DataSource.from_arrays(Y=[1, 2], Z=[0, 1])
        with pytest.raises(KeyError, match="Available"):
            ds["W"]

    def test_contains(self):
        ds = DataSource.from_arrays(Y=[1, 2])
        assert "Y" in ds
        assert "Z" not in ds

    def test_supports(self):
        ds = DataSource.from_arrays(Y=[1, 2])
        assert ds.supports(CAPABILITY_COLUMN_REPLACEMENT)
        assert not ds.supports("streaming")


class TestWithColumns:

    def test_replaces_without_mutating(self):
        ds = DataSource.from_arrays(Y=[1, 2, 3], Z=[0, 1, 0])
        derived = ds.with_columns(Z=[1, 0, 0])
        np.testing.assert_array_equal(ds["Z"], [0.0, 1.0, 0.0])
        np.testing.assert_array_equal(derived["Z"], [1.0, 0.0, 0.0])
        assert derived["Y"] is ds["Y"]

    def test_adds_column(self):
        ds = DataSource.from_arrays(Y=[1, 2])
        assert "X" in ds.with_columns(X=[3, 4])

    def test_wrong_length(self):
        ds = DataSource.from_arrays(Y=[1, 2])
        with pytest.raises(DimensionError):
            ds.with_columns(Z=[0, 1, 1])

    def test_to_dataframe(self):
        df = DataSource.from_arrays(Y=[1, 2], Z=[0, 1]).to_dataframe()
        assert list(df.columns) == ["Y", "Z"]
        assert df.shape == (2, 2)
