"""
Weaning Cohort Configuration Package
"""

from .cohort_config import (
    # Paths
    PROJECT_ROOT,
    MODULE_ROOT,
    DATA_DIR,
    OUTPUT_DIR,
    EXPORTS_DIR,

    # Schemas and labels
    TABLE_SCHEMAS,
    REQUIRED_TABLES,
    INVASIVE_VENT,
    NON_INVASIVE_VENT,
    CHARLSON_FLAGS,

    # Configs
    WindowConfig,
    CohortConfig,
    COHORT_CONFIG,

    # Helpers
    load_cohort_config,
    ensure_directories,
)
from .feature_config import (
    FeatureSpec,
    FEATURE_SPECS,
    FEATURE_COLUMNS,
    ZERO_FILLED_FEATURES,
)

__all__ = [
    'PROJECT_ROOT',
    'MODULE_ROOT',
    'DATA_DIR',
    'OUTPUT_DIR',
    'EXPORTS_DIR',
    'TABLE_SCHEMAS',
    'REQUIRED_TABLES',
    'INVASIVE_VENT',
    'NON_INVASIVE_VENT',
    'CHARLSON_FLAGS',
    'WindowConfig',
    'CohortConfig',
    'COHORT_CONFIG',
    'load_cohort_config',
    'ensure_directories',
    'FeatureSpec',
    'FEATURE_SPECS',
    'FEATURE_COLUMNS',
    'ZERO_FILLED_FEATURES',
]
