"""Helpers for statistics over small sets of cell values.

Used by grid resampling and orphan detection. The most-occurring value
breaks ties by first occurrence in row-major scan order, which keeps
results reproducible between runs and fixtures.
"""

import math
from typing import Iterable, Optional

import numpy as np

__all__ = [
    "is_excluded",
    "most_occurring_value",
    "min_max_value",
    "round_values",
]


def is_excluded(value: float, excluded: Iterable[float]) -> bool:
    """Return True if value is NaN-aware equal to one of ``excluded``."""
    value_is_nan = math.isnan(value)
    for ex in excluded:
        if ex is None:
            continue
        if math.isnan(ex):
            if value_is_nan:
                return True
        elif value == ex:
            return True
    return False


def most_occurring_value(values, excluded: Iterable[float] = ()) -> Optional[float]:
    """Modal value of ``values``, ignoring excluded values.

    Parameters
    ----------
    values : array_like
        Values scanned in row-major (C) order.
    excluded : iterable of float
        Values to skip. NaN in this list skips NaN values.

    Returns
    -------
    float or None
        The value with the highest count; on a tie the value that was
        encountered first. None when no value remains.

    Examples
    --------
    >>> most_occurring_value([[1, 2], [2, 1]])
    1.0
    >>> most_occurring_value([np.nan, -9999.0], excluded=(np.nan, -9999.0)) is None
    True
    """
    excluded = tuple(excluded)
    counts = {}
    for value in np.asarray(values, dtype=np.float64).ravel():
        value = float(value)
        if math.isnan(value) or is_excluded(value, excluded):
            continue
        counts[value] = counts.get(value, 0) + 1

    best_value = None
    best_count = 0
    # dicts keep insertion order, strict '>' keeps the first value on ties
    for value, count in counts.items():
        if count > best_count:
            best_value = value
            best_count = count
    return best_value


def min_max_value(values, excluded: Iterable[float] = ()):
    """Minimum and maximum of the non-excluded values, (None, None) if empty."""
    arr = np.asarray(values, dtype=np.float64).ravel()
    mask = ~np.isnan(arr)
    for ex in excluded:
        if ex is not None and not math.isnan(ex):
            mask &= arr != ex
    kept = arr[mask]
    if kept.size == 0:
        return None, None
    return float(kept.min()), float(kept.max())


def round_values(values, precision: Optional[int]):
    """Round to ``precision`` decimals; None leaves values untouched."""
    if precision is None:
        return values
    return np.round(values, precision)
