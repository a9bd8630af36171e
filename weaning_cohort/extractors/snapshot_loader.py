"""
Snapshot Loader
===============

Loads the pre-computed derived tables of a clinical snapshot and validates
them against TABLE_SCHEMAS before any stage runs.
"""

import pandas as pd
import numpy as np
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Union
import logging

from weaning_cohort.config.cohort_config import TABLE_SCHEMAS, REQUIRED_TABLES
from weaning_cohort.errors import SchemaError

logger = logging.getLogger(__name__)

TABLE_SUFFIXES = ('.parquet', '.csv', '.csv.gz')

_TRUE_STRINGS = {'true', 't', '1', 'yes', 'y'}
_FALSE_STRINGS = {'false', 'f', '0', 'no', 'n'}


# =============================================================================
# COLUMN COERCION
# =============================================================================

def _coerce_int(table: str, column: str, series: pd.Series) -> pd.Series:
    try:
        values = pd.to_numeric(series, errors='raise')
    except (ValueError, TypeError) as e:
        raise SchemaError(table, f"column '{column}' is not numeric") from e

    non_null = values.dropna()
    if not non_null.empty and not np.all(np.mod(non_null.astype(float), 1) == 0):
        raise SchemaError(table, f"column '{column}' has non-integer values")
    if values.isna().any():
        return values.astype('Int64')
    return values.astype('int64')


def _coerce_float(table: str, column: str, series: pd.Series) -> pd.Series:
    if pd.api.types.is_bool_dtype(series):
        return series.astype('float64')
    try:
        return pd.to_numeric(series, errors='raise').astype('float64')
    except (ValueError, TypeError) as e:
        raise SchemaError(table, f"column '{column}' is not numeric") from e


def _coerce_bool(table: str, column: str, series: pd.Series) -> pd.Series:
    if pd.api.types.is_bool_dtype(series):
        return series.astype('boolean')

    if pd.api.types.is_numeric_dtype(series):
        non_null = series.dropna()
        if not non_null.isin([0, 1]).all():
            raise SchemaError(table, f"column '{column}' is not boolean (values outside 0/1)")
        return series.map(lambda v: pd.NA if pd.isna(v) else bool(v)).astype('boolean')

    def parse(value):
        if pd.isna(value):
            return pd.NA
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise SchemaError(table, f"column '{column}' has non-boolean value {value!r}")

    return series.map(parse).astype('boolean')


def _coerce_datetime(table: str, column: str, series: pd.Series) -> pd.Series:
    if pd.api.types.is_datetime64_any_dtype(series):
        return series
    try:
        return pd.to_datetime(series, errors='raise')
    except (ValueError, TypeError) as e:
        raise SchemaError(table, f"column '{column}' is not a timestamp") from e


def _coerce_str(table: str, column: str, series: pd.Series) -> pd.Series:
    return series.map(lambda v: v if pd.isna(v) else str(v)).astype(object)


COERCERS = {
    'int': _coerce_int,
    'float': _coerce_float,
    'bool': _coerce_bool,
    'datetime': _coerce_datetime,
    'str': _coerce_str,
}


# =============================================================================
# VALIDATION
# =============================================================================

def validate_table(name: str, df: pd.DataFrame) -> pd.DataFrame:
    """
    Check required columns and coerce them to their declared kinds.

    Args:
        name: Table name (key of TABLE_SCHEMAS)
        df: Raw table

    Returns:
        Copy of the table with coerced columns (extra columns kept as is)

    Raises:
        SchemaError: Unknown table, missing column, or uncoercible values
    """
    if name not in TABLE_SCHEMAS:
        raise SchemaError(name, "unknown table")
    if not isinstance(df, pd.DataFrame):
        raise SchemaError(name, f"expected a DataFrame, got {type(df).__name__}")

    schema = TABLE_SCHEMAS[name]
    missing = [col for col in schema if col not in df.columns]
    if missing:
        raise SchemaError(name, f"missing required column(s): {', '.join(missing)}")

    result = df.copy()
    for column, kind in schema.items():
        result[column] = COERCERS[kind](name, column, result[column])

    if name == 'ventilation' and 'event_id' not in result.columns:
        result['event_id'] = np.arange(len(result), dtype='int64')

    return result.reset_index(drop=True)


def validate_tables(
    tables: Mapping[str, pd.DataFrame],
    required: Iterable[str] = REQUIRED_TABLES,
) -> Dict[str, pd.DataFrame]:
    """
    Validate an in-memory snapshot.

    Args:
        tables: Mapping of table name -> DataFrame
        required: Tables that must be present

    Returns:
        Dict of validated tables

    Raises:
        SchemaError: A required table is missing or invalid
    """
    for name in required:
        if name not in tables:
            raise SchemaError(name, "required table is missing from snapshot")

    return {name: validate_table(name, tables[name]) for name in required}


# =============================================================================
# FILE LOADING
# =============================================================================

class SnapshotLoader:
    """Load derived tables from a snapshot directory."""

    def __init__(self, data_dir: Union[str, Path], tables: Optional[Iterable[str]] = None):
        """
        Initialize loader.

        Args:
            data_dir: Directory with one <table>.parquet / .csv / .csv.gz per table
            tables: Tables to load (default: all required tables)
        """
        self.data_dir = Path(data_dir)
        self.tables = list(tables) if tables is not None else list(REQUIRED_TABLES)

    def find_table_file(self, name: str) -> Path:
        """Locate the file for a table, preferring parquet."""
        for suffix in TABLE_SUFFIXES:
            path = self.data_dir / f"{name}{suffix}"
            if path.exists():
                return path
        raise SchemaError(name, f"no {'/'.join(TABLE_SUFFIXES)} file in {self.data_dir}")

    def read_table(self, name: str) -> pd.DataFrame:
        """Read one table without validation."""
        path = self.find_table_file(name)
        if path.suffix == '.parquet':
            df = pd.read_parquet(path, engine='pyarrow')
        else:
            df = pd.read_csv(path, low_memory=False)
        logger.info(f"Loaded {name}: {len(df):,} rows from {path.name}")
        return df

    def load_table(self, name: str) -> pd.DataFrame:
        """Read and validate one table."""
        return validate_table(name, self.read_table(name))

    def load_all(self) -> Dict[str, pd.DataFrame]:
        """
        Load and validate every configured table.

        Returns:
            Dict mapping table name -> validated DataFrame
        """
        if not self.data_dir.is_dir():
            raise FileNotFoundError(f"Snapshot directory not found: {self.data_dir}")
        return {name: self.load_table(name) for name in self.tables}
