"""Cohort selection: first ICU stays with a Sepsis-3 diagnosis."""
import logging

import pandas as pd

logger = logging.getLogger(__name__)

COHORT_COLUMNS = ['stay_id', 'subject_id', 'hadm_id']


def _flag(series: pd.Series) -> pd.Series:
    """Null-safe boolean flag (null counts as False)."""
    return series.astype('boolean').fillna(False).astype(bool)


def select_sepsis_cohort(icustay_detail: pd.DataFrame, sepsis3: pd.DataFrame) -> pd.DataFrame:
    """Select first ICU stays flagged as Sepsis-3.

    Args:
        icustay_detail: Stay table with stay_id, subject_id, hadm_id, first_icu_stay
        sepsis3: Sepsis flags with stay_id, sepsis3

    Returns:
        DataFrame with stay_id, subject_id, hadm_id (one row per stay, may be empty)
    """
    septic_ids = sepsis3.loc[_flag(sepsis3['sepsis3']), 'stay_id'].unique()

    stays = icustay_detail[_flag(icustay_detail['first_icu_stay'])]
    cohort = stays.loc[stays['stay_id'].isin(septic_ids), COHORT_COLUMNS]
    cohort = cohort.drop_duplicates('stay_id').sort_values('stay_id').reset_index(drop=True)

    logger.info(f"Sepsis first-stay cohort: {len(cohort):,} of {len(icustay_detail):,} stays")
    return cohort
