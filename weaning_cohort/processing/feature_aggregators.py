"""
Feature Aggregators
===================

Applies the declarative FEATURE_SPECS to the ventilated base population and
adds BMI from the earliest recorded weight and height.

The aggregations are independent and read-only over the snapshot, so they
can run in a joblib thread pool. Results are concatenated in spec order.
"""
from typing import Dict, List, Mapping, Optional
import logging

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm import tqdm

from weaning_cohort.config.cohort_config import COHORT_CONFIG, CohortConfig
from weaning_cohort.config.feature_config import FEATURE_SPECS, FeatureSpec
from weaning_cohort.errors import SchemaError, warn_cardinality
from weaning_cohort.processing.window_aggregator import (
    BASE_COLUMNS,
    aggregate_feature,
    earliest_value,
)

logger = logging.getLogger(__name__)

BMI_COLUMN = 'bmi'


def compute_bmi(
    base: pd.DataFrame,
    weight_durations: pd.DataFrame,
    height: pd.DataFrame,
) -> pd.Series:
    """BMI from the earliest recorded weight (kg) and height (cm) of each stay.

    No time window applies. When several weights (or heights) share the
    earliest timestamp, the lower value is used.

    Args:
        base: One row per stay with stay_id
        weight_durations: stay_id, starttime, weight
        height: stay_id, charttime, height

    Returns:
        Series named 'bmi' indexed by stay_id (NaN when either value is missing)
    """
    weights = earliest_value(base, weight_durations, 'starttime', 'weight')
    heights = earliest_value(base, height, 'charttime', 'height')

    warn_cardinality('earliest weight', int((weights['n_tied'] > 1).sum()), 'lowest weight')
    warn_cardinality('earliest height', int((heights['n_tied'] > 1).sum()), 'lowest height')

    merged = base[['stay_id']].merge(
        weights[['stay_id', 'weight']], on='stay_id', how='left'
    ).merge(
        heights[['stay_id', 'height']], on='stay_id', how='left'
    )

    height_m = merged['height'] / 100.0
    bmi = merged['weight'] / (height_m ** 2)
    bmi = bmi.where(height_m > 0)

    result = pd.Series(bmi.values, index=merged['stay_id'], name=BMI_COLUMN, dtype=float)
    result.index.name = 'stay_id'
    return result


def _source_table(tables: Mapping[str, pd.DataFrame], spec: FeatureSpec) -> pd.DataFrame:
    if spec.table not in tables:
        raise SchemaError(spec.table, f"required by feature '{spec.name}' but not loaded")
    source = tables[spec.table]
    missing = [c for c in [spec.key, spec.time_column, *spec.value_columns] if c not in source.columns]
    if missing:
        raise SchemaError(spec.table, f"feature '{spec.name}' needs column(s): {', '.join(missing)}")
    return source


def build_feature_table(
    base: pd.DataFrame,
    tables: Mapping[str, pd.DataFrame],
    config: CohortConfig = COHORT_CONFIG,
    specs: Optional[List[FeatureSpec]] = None,
) -> pd.DataFrame:
    """Aggregate every feature spec plus BMI for the base population.

    Args:
        base: Ventilated stays with stay_id, hadm_id, weaning_time
        tables: Validated snapshot tables
        config: Cohort configuration (windows, threshold, n_jobs)
        specs: Feature specs (default FEATURE_SPECS)

    Returns:
        DataFrame with stay_id, one column per spec, and bmi
    """
    specs = FEATURE_SPECS if specs is None else specs
    base = base[BASE_COLUMNS].drop_duplicates('stay_id')

    sources: Dict[str, pd.DataFrame] = {spec.name: _source_table(tables, spec) for spec in specs}

    def run(spec: FeatureSpec) -> pd.Series:
        return aggregate_feature(
            base,
            sources[spec.name],
            spec,
            config.windows,
            threshold=config.vasopressor_dose_threshold,
        )

    if config.n_jobs == 1:
        columns = [run(spec) for spec in tqdm(specs, desc="  Aggregating features", unit="feature",
                                               disable=len(base) == 0)]
    else:
        columns = Parallel(n_jobs=config.n_jobs, prefer="threads")(
            delayed(run)(spec) for spec in specs
        )

    for table in ('weight_durations', 'height'):
        if table not in tables:
            raise SchemaError(table, f"required by feature '{BMI_COLUMN}' but not loaded")
    columns.append(compute_bmi(base, tables['weight_durations'], tables['height']))

    features = pd.concat(columns, axis=1)
    features.index.name = 'stay_id'
    features = features.reset_index()

    low = []
    if len(features):
        coverage = features.drop(columns='stay_id').notna().mean()
        low = coverage[coverage < 0.5].index.tolist()
    if low:
        logger.info(f"Features with <50% coverage: {', '.join(low)}")
    logger.info(f"Aggregated {len(columns)} features for {len(features):,} stays")

    return features.astype({col: np.float64 for col in features.columns[1:]})
