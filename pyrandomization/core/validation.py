"""
Input validation utilities for PyRandomization.

These validators follow the "fail fast, fail loud" principle. They raise
immediately with clear error messages rather than silently correcting
or making assumptions about user intent.

Design principles:
    - No silent type coercion (except np.asarray on array-likes)
    - Clear, actionable error messages with actual values
    - Each function validates ONE thing
    - Parameter names included in all error messages
"""

import numbers

import numpy as np
from numpy.typing import ArrayLike, NDArray
from typing import Any

from pyrandomization.core.exceptions import ValidationError, DimensionError


def check_array(
    array: ArrayLike,
    name: str,
) -> NDArray[np.floating[Any]]:
    """
    Validate and convert input to a float64 numpy array.

    Rejects inputs that result in object dtype (mixed types) or any other
    non-numeric dtype.

    Raises:
        ValidationError: If input cannot be converted to numeric array
    """
    try:
        result = np.asarray(array)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"{name}: cannot convert to array: {e}") from e

    if result.dtype == object:
        raise ValidationError(
            f"{name}: converted to object dtype, indicating mixed types or non-numeric data"
        )

    if result.dtype == bool:
        result = result.astype(np.float64)

    if not np.issubdtype(result.dtype, np.number):
        raise ValidationError(
            f"{name}: non-numeric dtype {result.dtype}, expected numeric data"
        )

    if not np.issubdtype(result.dtype, np.floating):
        result = result.astype(np.float64)

    return result


def check_labels(labels: ArrayLike, name: str) -> NDArray:
    """
    Validate a 1D vector of group or arm labels.

    Labels may be of any hashable scalar dtype (ints, strings). Missing
    values (None, NaN) are rejected because every unit must belong to
    exactly one group.

    Raises:
        DimensionError: If labels are not 1D
        ValidationError: If any label is missing
    """
    arr = np.asarray(labels)
    if arr.ndim != 1:
        raise DimensionError(
            f"{name}: expected 1D array, got {arr.ndim}D with shape {arr.shape}"
        )
    if arr.dtype == object:
        missing = [i for i, v in enumerate(arr) if v is None or (isinstance(v, float) and np.isnan(v))]
    elif np.issubdtype(arr.dtype, np.floating):
        missing = np.flatnonzero(np.isnan(arr)).tolist()
    else:
        missing = []
    if missing:
        raise ValidationError(
            f"{name}: {len(missing)} missing labels (first at position {missing[0]})"
        )
    return arr


def check_finite(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Verify array contains no NaN or Inf values.

    Raises:
        ValidationError: If array contains non-finite values
    """
    if not np.all(np.isfinite(array)):
        n_nan = int(np.sum(np.isnan(array)))
        n_inf = int(np.sum(np.isinf(array)))
        raise ValidationError(
            f"{name}: contains non-finite values ({n_nan} NaN, {n_inf} Inf)"
        )


def check_ndim(array: NDArray[np.floating[Any]], ndim: int, name: str) -> None:
    """
    Verify array has exactly the specified number of dimensions.

    Raises:
        DimensionError: If array has wrong number of dimensions
    """
    if array.ndim != ndim:
        raise DimensionError(
            f"{name}: expected {ndim}D array, got {array.ndim}D with shape {array.shape}"
        )


def check_1d(array: NDArray[np.floating[Any]], name: str) -> None:
    """Verify array is 1-dimensional."""
    check_ndim(array, 1, name)


def check_2d(array: NDArray[np.floating[Any]], name: str) -> None:
    """Verify array is 2-dimensional."""
    check_ndim(array, 2, name)


def check_consistent_length(
    *arrays: NDArray[np.floating[Any]],
    names: tuple[str, ...]
) -> None:
    """
    Verify all arrays have the same length (first dimension).

    Raises:
        ValueError: If number of names doesn't match number of arrays
        DimensionError: If arrays have inconsistent lengths
    """
    if len(arrays) != len(names):
        raise ValueError(
            f"Number of arrays ({len(arrays)}) must match number of names ({len(names)})"
        )

    if len(arrays) < 2:
        return

    lengths = [arr.shape[0] for arr in arrays]
    if len(set(lengths)) > 1:
        details = ", ".join(f"{name}={length}" for name, length in zip(names, lengths))
        raise DimensionError(f"Inconsistent lengths: {details}")


def check_min_samples(array: NDArray[np.floating[Any]], min_samples: int, name: str) -> None:
    """
    Verify array has at least the minimum number of samples.

    Raises:
        ValidationError: If array has fewer than min_samples
    """
    n = array.shape[0]
    if n < min_samples:
        raise ValidationError(
            f"{name}: requires at least {min_samples} samples, got {n}"
        )


def check_positive(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Verify every element is strictly positive.

    Raises:
        ValidationError: If any element is <= 0
    """
    bad = np.flatnonzero(array <= 0)
    if len(bad) > 0:
        raise ValidationError(
            f"{name}: {len(bad)} non-positive values (first at position {bad[0]}: "
            f"{array[bad[0]]!r})"
        )


def check_count(value: Any, name: str, minimum: int = 0) -> int:
    """
    Verify value is an integer count >= minimum and return it as int.

    Accepts integral floats (3.0) but not fractional ones.

    Raises:
        ValidationError: If value is not an integer or is below minimum
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(f"{name}: expected an integer, got {value!r}")
    if int(value) != value:
        raise ValidationError(f"{name}: expected an integer, got {value!r}")
    value = int(value)
    if value < minimum:
        raise ValidationError(f"{name}: must be >= {minimum}, got {value}")
    return value
