"""Windowed aggregation of a measurement table to one value per stay.

Every aggregated feature goes through aggregate_feature, parameterized by a
FeatureSpec (source table, join key, window policy, reducer).
"""
from typing import Callable, Dict

import pandas as pd
import numpy as np

from weaning_cohort.config.cohort_config import WindowConfig
from weaning_cohort.config.feature_config import (
    FeatureSpec,
    TRAILING_24H,
    BEFORE_WEANING,
    NO_WINDOW,
)
from weaning_cohort.processing.temporal import hours_delta, is_within_window

BASE_COLUMNS = ['stay_id', 'hadm_id', 'weaning_time']


def window_mask(
    times: pd.Series,
    weaning_time: pd.Series,
    policy: str,
    windows: WindowConfig,
) -> pd.Series:
    """Rows of a measurement table that fall in the feature window.

    Args:
        times: Measurement timestamps
        weaning_time: Weaning time of the row's stay
        policy: One of TRAILING_24H, BEFORE_WEANING, NO_WINDOW
        windows: Window lengths

    Returns:
        Boolean mask aligned with times
    """
    if policy == TRAILING_24H:
        start = weaning_time - hours_delta(windows.feature_window_hours)
        return is_within_window(times, start, weaning_time)
    if policy == BEFORE_WEANING:
        return (times < weaning_time).fillna(False).astype(bool)
    if policy == NO_WINDOW:
        return pd.Series(True, index=times.index)
    raise ValueError(f"Unknown window policy: {policy}")


def _reduce_min(rows: pd.DataFrame, spec: FeatureSpec, **_) -> pd.Series:
    return rows.groupby('stay_id')[spec.value_columns[0]].min()


def _reduce_max(rows: pd.DataFrame, spec: FeatureSpec, **_) -> pd.Series:
    return rows.groupby('stay_id')[spec.value_columns[0]].max()


def _reduce_sum(rows: pd.DataFrame, spec: FeatureSpec, **_) -> pd.Series:
    return rows.groupby('stay_id')[spec.value_columns[0]].sum(min_count=1)


def _reduce_count_distinct_days(rows: pd.DataFrame, spec: FeatureSpec, **_) -> pd.Series:
    days = rows[spec.time_column].dt.normalize()
    return days.groupby(rows['stay_id']).nunique().astype(float)


def _reduce_any_positive(rows: pd.DataFrame, spec: FeatureSpec, threshold: float = 0.0, **_) -> pd.Series:
    doses = rows[list(spec.value_columns)]
    positive = (doses > threshold).any(axis=1).astype(float)
    return positive.groupby(rows['stay_id']).max()


REDUCER_FUNCS: Dict[str, Callable[..., pd.Series]] = {
    'min': _reduce_min,
    'max': _reduce_max,
    'sum': _reduce_sum,
    'count_distinct_days': _reduce_count_distinct_days,
    'any_positive': _reduce_any_positive,
}


def aggregate_feature(
    base: pd.DataFrame,
    source: pd.DataFrame,
    spec: FeatureSpec,
    windows: WindowConfig,
    threshold: float = 0.0,
) -> pd.Series:
    """Aggregate one feature for every stay of the base population.

    Args:
        base: One row per stay with stay_id, hadm_id, weaning_time
        source: Measurement table named by spec.table
        spec: Feature specification
        windows: Window lengths
        threshold: Dose threshold for the any_positive reducer

    Returns:
        Series named spec.name indexed by the base stay_ids; NaN where the
        stay had no row in the window
    """
    base_cols = ['stay_id', 'weaning_time'] if spec.key == 'stay_id' else BASE_COLUMNS
    source_cols = [spec.key, spec.time_column] + [c for c in spec.value_columns]
    source_cols = list(dict.fromkeys(source_cols))

    rows = base[base_cols].merge(source[source_cols], on=spec.key, how='inner')
    rows = rows[window_mask(rows[spec.time_column], rows['weaning_time'], spec.window, windows)]

    if rows.empty:
        values = pd.Series(dtype=float)
    else:
        values = REDUCER_FUNCS[spec.reducer](rows, spec, threshold=threshold)

    result = values.reindex(base['stay_id']).astype(float)
    result.index.name = 'stay_id'
    return result.rename(spec.name)


def earliest_value(
    base: pd.DataFrame,
    source: pd.DataFrame,
    time_column: str,
    value_column: str,
) -> pd.DataFrame:
    """Earliest non-null value per stay, ties broken by the lower value.

    The record time decides first; the lower value only breaks ties between
    records sharing the earliest timestamp. A later, lower weight never
    replaces the admission weight.

    Args:
        base: One row per stay with stay_id
        source: Stay-keyed table with time_column and value_column
        time_column: Ordering timestamp
        value_column: Value to pick

    Returns:
        DataFrame with stay_id, value_column, n_tied (rows sharing the pick's timestamp)
    """
    rows = source.loc[
        source['stay_id'].isin(base['stay_id']) & source[value_column].notna(),
        ['stay_id', time_column, value_column],
    ]
    ordered = rows.sort_values(['stay_id', time_column, value_column], kind='mergesort', na_position='last')
    first = ordered.drop_duplicates('stay_id', keep='first')

    earliest = ordered.groupby('stay_id')[time_column].transform('min')
    same_time = ordered[time_column] == earliest
    if ordered[time_column].isna().any():
        same_time = same_time | (ordered[time_column].isna() & earliest.isna())
    n_tied = same_time.groupby(ordered['stay_id']).sum()

    first = first[['stay_id', value_column]].set_index('stay_id')
    first['n_tied'] = n_tied.reindex(first.index).fillna(0).astype(np.int64)
    return first.reset_index()
