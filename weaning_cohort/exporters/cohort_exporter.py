"""
Cohort Exporter
===============

Writes the cohort table and attrition report, and the wide feature matrix
consumed by the gradient-boosted weaning classifier.

Output:
- weaning_cohort.parquet / weaning_cohort.csv: one row per stay
- attrition.json: row counts per stage
- exports/classifier_features.parquet + classifier_labels.parquet
"""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union
import logging

import pandas as pd

from weaning_cohort.config.cohort_config import COHORT_FILENAME, ATTRITION_FILENAME
from weaning_cohort.processing.cohort_assembler import ID_COLUMNS
from weaning_cohort.processing.outcome_classifier import COMPONENT_COLUMNS

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ('parquet', 'csv')
LABEL_COLUMN = 'weaning_success'


def save_cohort(
    df: pd.DataFrame,
    output_dir: Union[str, Path],
    formats: Iterable[str] = ('parquet',),
) -> List[Path]:
    """
    Save the cohort table.

    Args:
        df: Assembled cohort
        output_dir: Target directory (created if missing)
        formats: Any of 'parquet', 'csv'

    Returns:
        Paths written
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for fmt in formats:
        if fmt not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported format '{fmt}', expected one of {SUPPORTED_FORMATS}")
        path = output_dir / f"{COHORT_FILENAME}.{fmt}"
        if fmt == 'parquet':
            df.to_parquet(path, index=False, engine='pyarrow')
        else:
            df.to_csv(path, index=False, date_format='%Y-%m-%d %H:%M:%S')
        logger.info(f"Saved {len(df):,} rows to {path}")
        written.append(path)
    return written


def save_attrition(report: Dict, output_dir: Union[str, Path]) -> Path:
    """Write the attrition report as JSON."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / ATTRITION_FILENAME
    with open(path, 'w') as f:
        json.dump(report, f, indent=2, sort_keys=True)
    return path


def build_classifier_matrix(df: pd.DataFrame) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Split the cohort into a numeric feature matrix and the outcome label.

    Identifier and outcome-component columns are dropped, gender becomes a
    0/1 'male' column and nullable integers become floats (NaN kept for
    tree models that handle missing values natively).

    Args:
        df: Assembled cohort

    Returns:
        (X indexed by stay_id, y indexed by stay_id)
    """
    indexed = df.set_index('stay_id')
    y = indexed[LABEL_COLUMN].astype('int64')

    drop = [c for c in ID_COLUMNS + [LABEL_COLUMN] + COMPONENT_COLUMNS if c in indexed.columns]
    X = indexed.drop(columns=drop)

    if 'gender' in X.columns:
        male = (X['gender'].astype(str).str.upper() == 'M').astype(float)
        male[X['gender'].isna()] = float('nan')
        X = X.drop(columns='gender')
        X.insert(0, 'male', male)

    X = X.astype('float64')
    return X, y


def export_classifier_matrix(df: pd.DataFrame, output_dir: Union[str, Path]) -> Tuple[Path, Path]:
    """
    Export the classifier feature matrix and labels.

    Args:
        df: Assembled cohort
        output_dir: Export directory

    Returns:
        (features path, labels path)
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    X, y = build_classifier_matrix(df)
    features_path = output_dir / "classifier_features.parquet"
    labels_path = output_dir / "classifier_labels.parquet"

    X.reset_index().to_parquet(features_path, index=False)
    y.reset_index().to_parquet(labels_path, index=False)

    print(f"  Classifier matrix: {X.shape[0]:,} stays x {X.shape[1]} features")
    if len(y):
        print(f"  Weaning success rate: {y.mean():.1%}")
    return features_path, labels_path
