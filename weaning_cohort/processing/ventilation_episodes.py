"""
Ventilation Episode Extractor
=============================

Picks the first invasive ventilation episode of each cohort stay. The
episode end is the weaning (extubation) time used as the anchor for every
downstream window.
"""
import logging

import pandas as pd

from weaning_cohort.config.cohort_config import INVASIVE_VENT
from weaning_cohort.errors import warn_cardinality

logger = logging.getLogger(__name__)

EPISODE_COLUMNS = [
    'stay_id',
    'subject_id',
    'hadm_id',
    'episode_event_id',
    'ventilation_starttime',
    'weaning_time',
]

# Sort order for "first" episode; later keys break ties on starttime
EPISODE_SORT_KEYS = ['stay_id', 'starttime', 'endtime', 'event_id']


def invasive_events(ventilation: pd.DataFrame) -> pd.DataFrame:
    """Ventilation rows with InvasiveVent status."""
    return ventilation[ventilation['ventilation_status'] == INVASIVE_VENT]


def extract_first_invasive_episode(cohort: pd.DataFrame, ventilation: pd.DataFrame) -> pd.DataFrame:
    """Take the earliest invasive ventilation episode per cohort stay.

    Stays without any invasive event are dropped. When several events share
    the earliest start time, the one ending first wins, then the lowest
    event_id.

    Args:
        cohort: stay_id, subject_id, hadm_id
        ventilation: Validated ventilation events (with event_id)

    Returns:
        DataFrame with EPISODE_COLUMNS, one row per ventilated stay
    """
    events = invasive_events(ventilation)
    events = events[events['starttime'].notna()]
    events = events[events['stay_id'].isin(cohort['stay_id'])]

    if events.empty:
        logger.info("No cohort stays with invasive ventilation")
        return pd.DataFrame({
            'stay_id': pd.Series(dtype='int64'),
            'subject_id': pd.Series(dtype='int64'),
            'hadm_id': pd.Series(dtype='int64'),
            'episode_event_id': pd.Series(dtype='int64'),
            'ventilation_starttime': pd.Series(dtype='datetime64[ns]'),
            'weaning_time': pd.Series(dtype='datetime64[ns]'),
        })

    ordered = events.sort_values(EPISODE_SORT_KEYS, kind='mergesort', na_position='last')

    earliest = ordered.groupby('stay_id')['starttime'].transform('min')
    n_tied = (ordered['starttime'] == earliest).groupby(ordered['stay_id']).sum()
    warn_cardinality(
        'first invasive ventilation episode',
        int((n_tied > 1).sum()),
        'earliest endtime, then lowest event_id',
    )

    first = ordered.drop_duplicates('stay_id', keep='first')
    first = first[['stay_id', 'event_id', 'starttime', 'endtime']].rename(columns={
        'event_id': 'episode_event_id',
        'starttime': 'ventilation_starttime',
        'endtime': 'weaning_time',
    })

    episodes = cohort.merge(first, on='stay_id', how='inner')
    episodes = episodes[EPISODE_COLUMNS].sort_values('stay_id').reset_index(drop=True)

    logger.info(f"Ventilated stays: {len(episodes):,} of {len(cohort):,} cohort stays")
    return episodes
