"""Temporal helpers for weaning-relative windows."""
import numpy as np
import pandas as pd


def hours_delta(hours: float) -> pd.Timedelta:
    """Timedelta for a window length in hours."""
    return pd.Timedelta(hours=hours)


def is_within_window(
    times: pd.Series,
    start: pd.Series,
    end: pd.Series,
) -> pd.Series:
    """Check timestamps against a closed window [start, end].

    Args:
        times: Event timestamps
        start: Window start (inclusive), aligned with times
        end: Window end (inclusive), aligned with times

    Returns:
        Boolean series; False where any operand is null
    """
    return ((times >= start) & (times <= end)).fillna(False).astype(bool)


def whole_hours(start: pd.Series, end: pd.Series) -> pd.Series:
    """Duration of each interval in whole hours, truncated toward zero.

    Args:
        start: Interval start timestamps
        end: Interval end timestamps

    Returns:
        Float series of truncated hours (NaN where either bound is null)
    """
    seconds = (end - start).dt.total_seconds()
    return np.trunc(seconds / 3600.0)


def whole_days(start: pd.Series, end: pd.Series) -> pd.Series:
    """Duration of each interval in whole days, truncated toward zero."""
    seconds = (end - start).dt.total_seconds()
    return np.trunc(seconds / 86400.0)
