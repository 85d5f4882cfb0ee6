"""
Universal DataSource for PyRandomization.

DataSource is the "I have data" abstraction. It doesn't know or care
what domain consumes it. It just provides named columns of a fixed
row count.

Like a lumber yard: provides raw logs. Doesn't care if you're making
furniture (a regression) or running a randomization test that needs
the same logs re-cut a thousand times.

Usage:
    from pyrandomization import DataSource

    ds = DataSource.from_arrays(Y=y, Z=z, block=block_ids)
    ds = DataSource.from_dataframe(df)

    ds.keys()      # frozenset({'Y', 'Z', 'block'})
    y = ds['Y']

    # Modified copy with the assignment column replaced
    ds2 = ds.with_columns(Z=z_draw)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING
import numpy as np
from numpy.typing import NDArray

from pyrandomization.core.exceptions import DimensionError, ValidationError
from pyrandomization.core.capabilities import (
    CAPABILITY_MATERIALIZED,
    CAPABILITY_REPEATABLE,
    CAPABILITY_COLUMN_REPLACEMENT,
)

if TYPE_CHECKING:
    import pandas as pd


_CAPABILITIES = frozenset({
    CAPABILITY_MATERIALIZED,
    CAPABILITY_REPEATABLE,
    CAPABILITY_COLUMN_REPLACEMENT,
})


def _as_column(name: str, values: Any) -> NDArray:
    """Numeric columns become float64; label columns keep their dtype."""
    arr = np.asarray(values)
    if arr.ndim == 2 and arr.shape[1] == 1:
        arr = arr.ravel()
    if arr.ndim != 1:
        raise DimensionError(
            f"column '{name}': expected 1D values, got shape {arr.shape}"
        )
    if arr.dtype == bool or (
        np.issubdtype(arr.dtype, np.number) and not np.issubdtype(arr.dtype, np.complexfloating)
    ):
        return arr.astype(np.float64)
    return arr


@dataclass
class DataSource:
    """
    Universal data container. Domain-agnostic.

    Construct via factory classmethods, not directly. Every column has the
    same number of rows, fixed for the lifetime of the instance.
    """
    _data: dict[str, NDArray]
    _capabilities: frozenset[str]
    _metadata: dict[str, Any] = field(default_factory=dict)

    # === Column Access ===

    def keys(self) -> frozenset[str]:
        """Return the names of all available columns."""
        return frozenset(self._data.keys())

    def __getitem__(self, key: str) -> NDArray:
        """
        Access a named column.

        Raises:
            KeyError: If key not found, with a message listing available keys

        Example:
            >>> ds = DataSource.from_arrays(Y=y, Z=z)
            >>> ds['W']  # KeyError: "DataSource has no column 'W'. Available: ['Y', 'Z']"
        """
        if key not in self._data:
            available = sorted(self.keys())
            raise KeyError(
                f"DataSource has no column '{key}'. Available: {available}"
            )
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return self.n_observations

    # === Properties ===

    @property
    def n_observations(self) -> int:
        """Number of statistical units (rows)."""
        return self._metadata.get('n_observations', 0)

    @property
    def metadata(self) -> dict[str, Any]:
        """Domain-agnostic metadata."""
        return self._metadata.copy()

    def supports(self, capability: str) -> bool:
        """
        Check if this DataSource supports a capability.

        Unknown capabilities return False, never raise.
        """
        return capability in self._capabilities

    # === Derivation ===

    def with_columns(self, **columns: Any) -> DataSource:
        """
        Return a copy with the given columns added or replaced.

        The original is left untouched; unchanged columns are shared, not
        copied, so one derived DataSource per randomization draw is cheap.

        Raises:
            DimensionError: If a new column's length differs from n_observations
        """
        storage = dict(self._data)
        for name, values in columns.items():
            arr = _as_column(name, values)
            if arr.shape[0] != self.n_observations:
                raise DimensionError(
                    f"column '{name}': length {arr.shape[0]} does not match "
                    f"n_observations={self.n_observations}"
                )
            storage[name] = arr

        metadata = dict(self._metadata)
        metadata['derived'] = True
        return DataSource(
            _data=storage,
            _capabilities=self._capabilities,
            _metadata=metadata,
        )

    def to_dataframe(self) -> 'pd.DataFrame':
        """Materialize as a pandas DataFrame (columns in insertion order)."""
        import pandas as pd
        return pd.DataFrame({name: values for name, values in self._data.items()})

    # === Factory Methods ===

    @classmethod
    def from_arrays(cls, **columns: Any) -> DataSource:
        """
        Construct from named 1D arrays.

        Raises:
            ValidationError: If no columns are given
            DimensionError: If columns have different lengths
        """
        if not columns:
            raise ValidationError("DataSource.from_arrays requires at least one column")

        storage = {name: _as_column(name, values) for name, values in columns.items()}
        lengths = {name: arr.shape[0] for name, arr in storage.items()}
        if len(set(lengths.values())) > 1:
            details = ", ".join(f"{k}={v}" for k, v in lengths.items())
            raise DimensionError(f"Inconsistent column lengths: {details}")

        return cls(
            _data=storage,
            _capabilities=_CAPABILITIES,
            _metadata={
                'n_observations': next(iter(lengths.values())),
                'source': 'arrays',
            },
        )

    @classmethod
    def from_dataframe(cls, df: 'pd.DataFrame') -> DataSource:
        """Construct from pandas DataFrame."""
        storage = {str(col): _as_column(str(col), df[col].to_numpy()) for col in df.columns}

        return cls(
            _data=storage,
            _capabilities=_CAPABILITIES,
            _metadata={
                'n_observations': len(df),
                'source': 'dataframe',
                'columns': [str(c) for c in df.columns],
            },
        )

    @classmethod
    def build(cls, data: Any = None, **columns: Any) -> DataSource:
        """
        Convenience factory that dispatches to the appropriate from_* method.

        Examples:
            DataSource.build(df)          # from_dataframe
            DataSource.build(Y=y, Z=z)    # from_arrays
            DataSource.build(ds)          # returned unchanged
        """
        if isinstance(data, DataSource):
            return data
        if data is not None:
            if hasattr(data, 'columns') and hasattr(data, 'to_numpy'):
                return cls.from_dataframe(data)
            if isinstance(data, dict):
                return cls.from_arrays(**data)
            raise ValidationError(
                f"Cannot build DataSource from {type(data).__name__}; "
                f"expected DataFrame, dict or DataSource"
            )
        return cls.from_arrays(**columns)
