"""
Weaning Outcome Classifier
==========================

Labels each ventilated stay as weaning success (1) or failure (0).

Failure is any of, within [weaning_time, weaning_time + 48h] inclusive:
- Reintubation: another invasive ventilation event starts in the window
- Death: date of death falls in the window
- Prolonged NIV: non-invasive ventilation starting in the window adds up to
  at least 48 hours, each event truncated to whole hours before summing
"""
import logging

import pandas as pd

from weaning_cohort.config.cohort_config import (
    COHORT_CONFIG,
    CohortConfig,
    INVASIVE_VENT,
    NON_INVASIVE_VENT,
)
from weaning_cohort.processing.temporal import hours_delta, is_within_window, whole_hours

logger = logging.getLogger(__name__)

OUTCOME_COLUMNS = [
    'stay_id',
    'weaning_success',
    'reintubated_48h',
    'died_48h',
    'prolonged_niv_48h',
    'niv_hours_48h',
]

COMPONENT_COLUMNS = OUTCOME_COLUMNS[2:]


def _window_frame(episodes: pd.DataFrame, window_hours: float) -> pd.DataFrame:
    """Per-stay outcome window bounds."""
    frame = episodes[['stay_id', 'episode_event_id', 'weaning_time']].copy()
    frame['window_end'] = frame['weaning_time'] + hours_delta(window_hours)
    return frame


def _events_in_window(
    events: pd.DataFrame,
    windows: pd.DataFrame,
    time_column: str,
) -> pd.DataFrame:
    """Events whose time_column lies in their stay's outcome window."""
    merged = events.merge(windows, on='stay_id', how='inner')
    mask = is_within_window(merged[time_column], merged['weaning_time'], merged['window_end'])
    return merged[mask]


def detect_reintubation(
    episodes: pd.DataFrame,
    ventilation: pd.DataFrame,
    window_hours: float = 48,
) -> pd.Series:
    """Stays with a new invasive ventilation start in the outcome window.

    The qualifying episode itself never counts as its own reintubation.

    Returns:
        Boolean series indexed by stay_id
    """
    windows = _window_frame(episodes, window_hours)
    invasive = ventilation.loc[
        ventilation['ventilation_status'] == INVASIVE_VENT,
        ['stay_id', 'event_id', 'starttime'],
    ]
    hits = _events_in_window(invasive, windows, 'starttime')
    hits = hits[hits['event_id'] != hits['episode_event_id']]

    return episodes['stay_id'].isin(hits['stay_id']).set_axis(episodes['stay_id'])


def detect_death(
    episodes: pd.DataFrame,
    icustay_detail: pd.DataFrame,
    window_hours: float = 48,
) -> pd.Series:
    """Stays with a date of death in the outcome window.

    Returns:
        Boolean series indexed by stay_id
    """
    windows = _window_frame(episodes, window_hours)
    deaths = icustay_detail.loc[icustay_detail['dod'].notna(), ['stay_id', 'dod']]
    hits = _events_in_window(deaths, windows, 'dod')

    return episodes['stay_id'].isin(hits['stay_id']).set_axis(episodes['stay_id'])


def sum_niv_hours(
    episodes: pd.DataFrame,
    ventilation: pd.DataFrame,
    window_hours: float = 48,
) -> pd.Series:
    """Whole hours of NIV starting in the outcome window, per stay.

    Each event is truncated to whole hours before the per-stay sum.

    Returns:
        Float series indexed by stay_id (0 when no NIV)
    """
    windows = _window_frame(episodes, window_hours)
    niv = ventilation.loc[
        ventilation['ventilation_status'] == NON_INVASIVE_VENT,
        ['stay_id', 'starttime', 'endtime'],
    ]
    # Starts before T are excluded even when the event runs past T;
    # starts in [T, T+window] count, both ends inclusive
    hits = _events_in_window(niv, windows, 'starttime').copy()
    hits['hours'] = whole_hours(hits['starttime'], hits['endtime'])

    totals = hits.groupby('stay_id')['hours'].sum()
    return totals.reindex(episodes['stay_id'], fill_value=0).astype(float)


def classify_weaning_outcome(
    episodes: pd.DataFrame,
    ventilation: pd.DataFrame,
    icustay_detail: pd.DataFrame,
    config: CohortConfig = COHORT_CONFIG,
) -> pd.DataFrame:
    """Combine the three failure checks into a weaning_success label.

    Args:
        episodes: Output of extract_first_invasive_episode
        ventilation: Validated ventilation events (with event_id)
        icustay_detail: Stay table with dod
        config: Cohort configuration (window lengths)

    Returns:
        DataFrame with OUTCOME_COLUMNS, one row per episode
    """
    windows = config.windows
    reintubated = detect_reintubation(episodes, ventilation, windows.outcome_window_hours)
    died = detect_death(episodes, icustay_detail, windows.outcome_window_hours)
    niv_hours = sum_niv_hours(episodes, ventilation, windows.outcome_window_hours)
    prolonged_niv = niv_hours >= windows.prolonged_niv_hours

    failed = reintubated.values | died.values | prolonged_niv.values

    outcomes = pd.DataFrame({
        'stay_id': episodes['stay_id'].values,
        'weaning_success': (~failed).astype('int64'),
        'reintubated_48h': reintubated.values.astype(bool),
        'died_48h': died.values.astype(bool),
        'prolonged_niv_48h': prolonged_niv.values.astype(bool),
        'niv_hours_48h': niv_hours.values,
    })

    if len(outcomes):
        logger.info(
            f"Weaning outcome: {outcomes['weaning_success'].sum():,} success / "
            f"{len(outcomes):,} ventilated stays "
            f"(reintubated={int(outcomes['reintubated_48h'].sum())}, "
            f"died={int(outcomes['died_48h'].sum())}, "
            f"prolonged NIV={int(outcomes['prolonged_niv_48h'].sum())})"
        )
    return outcomes
