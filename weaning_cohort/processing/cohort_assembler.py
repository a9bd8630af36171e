"""
Cohort Assembler
================

Left-joins outcome, aggregated features and static attributes onto the
ventilated base population, applies the adult filter and orders the rows.
"""
from typing import List
import logging

import numpy as np
import pandas as pd

from weaning_cohort.config.cohort_config import (
    COHORT_CONFIG,
    CohortConfig,
    CHARLSON_FLAGS,
)
from weaning_cohort.config.feature_config import (
    FEATURE_COLUMNS,
    FEATURE_SPECS,
    ZERO_FILLED_FEATURES,
)
from weaning_cohort.errors import warn_cardinality
from weaning_cohort.processing.feature_aggregators import BMI_COLUMN
from weaning_cohort.processing.outcome_classifier import COMPONENT_COLUMNS
from weaning_cohort.processing.temporal import whole_days

logger = logging.getLogger(__name__)

ID_COLUMNS = ['subject_id', 'hadm_id', 'stay_id']

STATIC_COLUMNS = (
    ['age', 'gender', 'charlson_comorbidity_index']
    + CHARLSON_FLAGS
    + ['diabetes', BMI_COLUMN]
)

TREATMENT_COLUMNS = ['imv_duration_days']

OUTPUT_COLUMNS: List[str] = (
    ID_COLUMNS
    + ['weaning_success']
    + STATIC_COLUMNS
    + TREATMENT_COLUMNS
    + FEATURE_COLUMNS
)

# Day counts are whole numbers; urine output stays a float sum of mL
COUNT_FEATURES = [
    spec.name for spec in FEATURE_SPECS if spec.reducer == 'count_distinct_days'
]

INTEGER_COLUMNS = ['weaning_success'] + COUNT_FEATURES


def output_columns(config: CohortConfig = COHORT_CONFIG) -> List[str]:
    """Ordered output columns for a configuration."""
    if config.include_outcome_components:
        return OUTPUT_COLUMNS + COMPONENT_COLUMNS
    return list(OUTPUT_COLUMNS)


def combine_diabetes(charlson: pd.DataFrame, mode: str = 'count') -> pd.Series:
    """Combine complicated and uncomplicated diabetes indicators.

    Args:
        charlson: Rows with diabetes_with_cc and diabetes_without_cc
        mode: 'count' keeps the 0/1/2 sum, 'flag' clamps to 0/1

    Returns:
        Series aligned with charlson (NaN when both indicators are null)
    """
    parts = charlson[['diabetes_with_cc', 'diabetes_without_cc']]
    total = parts.sum(axis=1, min_count=1)
    if mode == 'flag':
        return total.clip(upper=1)
    if mode == 'count':
        return total
    raise ValueError(f"Unknown diabetes mode: {mode}")


def _column_dtype(col: str):
    if col in ID_COLUMNS or col in INTEGER_COLUMNS:
        return 'int64'
    if col == 'gender':
        return object
    if col == 'vasopressor_used':
        return 'Int64'
    if col in COMPONENT_COLUMNS and col != 'niv_hours_48h':
        return bool
    return 'float64'


def empty_cohort(config: CohortConfig = COHORT_CONFIG) -> pd.DataFrame:
    """Zero-row output table with the full column set."""
    return pd.DataFrame({col: pd.Series(dtype=_column_dtype(col)) for col in output_columns(config)})


def _first_per_key(df: pd.DataFrame, key: str, columns: List[str], table: str) -> pd.DataFrame:
    """One row per key, keeping the first occurrence in key order."""
    subset = df[[key] + [c for c in columns if c != key]]
    n_dup_keys = int(subset.loc[subset[key].duplicated(), key].nunique())
    warn_cardinality(f"{table} per {key}", n_dup_keys, "first row in key order")
    return subset.sort_values(key, kind='mergesort').drop_duplicates(key, keep='first')


def assemble_cohort(
    episodes: pd.DataFrame,
    outcomes: pd.DataFrame,
    features: pd.DataFrame,
    icustay_detail: pd.DataFrame,
    age: pd.DataFrame,
    charlson: pd.DataFrame,
    config: CohortConfig = COHORT_CONFIG,
) -> pd.DataFrame:
    """Build the final cohort table, one row per qualifying stay.

    Args:
        episodes: Ventilated base (stay_id, subject_id, hadm_id,
            ventilation_starttime, weaning_time)
        outcomes: Output of classify_weaning_outcome
        features: Output of build_feature_table
        icustay_detail: Stay table (gender)
        age: Admission ages (hadm_id, age)
        charlson: Comorbidity records keyed by hadm_id
        config: Cohort configuration

    Returns:
        DataFrame with output_columns(config), ordered by subject_id
    """
    cohort = episodes.merge(outcomes, on='stay_id', how='left')
    cohort = cohort.merge(features, on='stay_id', how='left')
    genders = _first_per_key(icustay_detail, 'stay_id', ['gender'], 'icustay_detail')
    cohort = cohort.merge(genders, on='stay_id', how='left')

    charlson_cols = ['charlson_comorbidity_index'] + CHARLSON_FLAGS + ['diabetes_with_cc', 'diabetes_without_cc']
    comorbidities = _first_per_key(charlson, 'hadm_id', charlson_cols, 'charlson')
    cohort = cohort.merge(comorbidities, on='hadm_id', how='left')
    cohort['diabetes'] = combine_diabetes(cohort, config.diabetes_mode)

    # Adults only; stays without an age record drop out
    ages = _first_per_key(age, 'hadm_id', ['age'], 'age')
    cohort = cohort.merge(ages, on='hadm_id', how='inner')
    n_before = len(cohort)
    cohort = cohort[cohort['age'] >= config.min_age]
    logger.info(f"Age >= {config.min_age}: {len(cohort):,} of {n_before:,} stays with an age record")

    cohort = cohort.copy()
    cohort['imv_duration_days'] = whole_days(cohort['ventilation_starttime'], cohort['weaning_time'])

    for col in ZERO_FILLED_FEATURES:
        cohort[col] = cohort[col].fillna(0)

    if cohort.empty:
        logger.warning("Empty cohort: no stays passed all inclusion criteria")
        return empty_cohort(config)

    columns = output_columns(config)
    cohort = cohort.sort_values(['subject_id', 'stay_id'], kind='mergesort')
    cohort = cohort[columns].reset_index(drop=True)

    cohort = cohort.astype({col: np.int64 for col in INTEGER_COLUMNS})
    if 'vasopressor_used' in cohort.columns:
        cohort['vasopressor_used'] = cohort['vasopressor_used'].astype('Int64')

    return cohort
