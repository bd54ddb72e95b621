"""Step-wise time series helpers (pandas).

Levels in a network are stored as step functions: a value holds from its
timestamp until the next timestamp. Series are ``pd.Series`` with a sorted
``DatetimeIndex``.
"""

import logging
from typing import Optional

import pandas as pd

logger = logging.getLogger(__name__)

__all__ = ["to_series", "step_value_at", "clip_period"]


def to_series(frame: pd.DataFrame, value_column: str,
              date_column: str = "date") -> pd.Series:
    """Build a sorted step series from a table with a date column.

    Raises
    ------
    KeyError
        If one of the columns is missing.
    """
    missing = [c for c in (date_column, value_column) if c not in frame.columns]
    if missing:
        raise KeyError(f"Missing column(s) {missing} in time series table")
    series = pd.Series(
        frame[value_column].astype(float).to_numpy(),
        index=pd.DatetimeIndex(pd.to_datetime(frame[date_column])),
        name=value_column,
    )
    return series.sort_index()


def step_value_at(series: pd.Series, timestamp) -> float:
    """Value in force at ``timestamp``.

    The last value whose timestamp is at or before ``timestamp``; the first
    value when ``timestamp`` precedes the series.
    """
    if series.empty:
        raise ValueError("Cannot take a value from an empty time series")
    pos = series.index.searchsorted(pd.Timestamp(timestamp), side="right") - 1
    return float(series.iloc[max(pos, 0)])


def clip_period(series: pd.Series, start=None, end=None) -> pd.Series:
    """Restrict a step series to [start, end].

    The value in force at ``start`` is kept and moved to ``start`` so the
    clipped series describes the whole period.
    """
    if series.empty:
        return series
    result = series
    if start is not None:
        start = pd.Timestamp(start)
        pos = series.index.searchsorted(start, side="right") - 1
        if pos >= 0 and series.index[pos] < start:
            head = pd.Series([series.iloc[pos]], index=pd.DatetimeIndex([start]),
                             name=series.name)
            result = pd.concat([head, series[series.index > start]])
        else:
            result = series[series.index >= start]
    if end is not None:
        result = result[result.index <= pd.Timestamp(end)]
    return result
