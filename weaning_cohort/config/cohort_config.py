"""
Weaning Cohort Configuration
============================

Central configuration for the sepsis ventilation-weaning cohort pipeline.
"""

from pathlib import Path
from dataclasses import dataclass, field, fields, replace
from typing import Dict, List, Optional, Union
import yaml


# =============================================================================
# PATH CONFIGURATION
# =============================================================================

MODULE_ROOT = Path(__file__).parent.parent
PROJECT_ROOT = MODULE_ROOT.parent

# Snapshot of pre-computed derived tables, one file per table
DATA_DIR = PROJECT_ROOT / "Data"

# Output directories
OUTPUT_DIR = PROJECT_ROOT / "outputs"
EXPORTS_DIR = OUTPUT_DIR / "exports"

COHORT_FILENAME = "weaning_cohort"
ATTRITION_FILENAME = "attrition.json"


# =============================================================================
# VENTILATION STATUS LABELS
# =============================================================================

INVASIVE_VENT = 'InvasiveVent'
NON_INVASIVE_VENT = 'NonInvasiveVent'

VENTILATION_STATUSES = [
    INVASIVE_VENT,
    NON_INVASIVE_VENT,
    'HFNC',
    'SupplementalOxygen',
    'Tracheostomy',
    'None',
]


# =============================================================================
# INPUT SCHEMAS
# =============================================================================

# Column kinds: 'int', 'float', 'bool', 'datetime', 'str'
TABLE_SCHEMAS: Dict[str, Dict[str, str]] = {
    'icustay_detail': {
        'subject_id': 'int',
        'hadm_id': 'int',
        'stay_id': 'int',
        'first_icu_stay': 'bool',
        'gender': 'str',
        'dod': 'datetime',
    },
    'age': {
        'hadm_id': 'int',
        'age': 'float',
    },
    'sepsis3': {
        'stay_id': 'int',
        'sepsis3': 'bool',
    },
    'ventilation': {
        'stay_id': 'int',
        'starttime': 'datetime',
        'endtime': 'datetime',
        'ventilation_status': 'str',
    },
    'vitalsign': {
        'stay_id': 'int',
        'charttime': 'datetime',
        'heart_rate': 'float',
        'mbp': 'float',
        'resp_rate': 'float',
        'temperature': 'float',
        'spo2': 'float',
    },
    'gcs': {
        'stay_id': 'int',
        'charttime': 'datetime',
        'gcs': 'float',
    },
    'chemistry': {
        'hadm_id': 'int',
        'charttime': 'datetime',
        'creatinine': 'float',
        'bun': 'float',
        'potassium': 'float',
        'glucose': 'float',
    },
    'complete_blood_count': {
        'hadm_id': 'int',
        'charttime': 'datetime',
        'hemoglobin': 'float',
        'platelet': 'float',
        'wbc': 'float',
    },
    'bg': {
        'hadm_id': 'int',
        'charttime': 'datetime',
        'ph': 'float',
        'po2': 'float',
        'pco2': 'float',
        'pao2fio2ratio': 'float',
        'lactate': 'float',
    },
    'ventilator_setting': {
        'stay_id': 'int',
        'charttime': 'datetime',
        'peep': 'float',
        'fio2': 'float',
        'tidal_volume_observed': 'float',
    },
    'urine_output': {
        'stay_id': 'int',
        'charttime': 'datetime',
        'urineoutput': 'float',
    },
    'vasoactive_agent': {
        'stay_id': 'int',
        'starttime': 'datetime',
        'dopamine': 'float',
        'epinephrine': 'float',
        'norepinephrine': 'float',
        'phenylephrine': 'float',
        'vasopressin': 'float',
    },
    'antibiotic': {
        'hadm_id': 'int',
        'starttime': 'datetime',
    },
    'crrt': {
        'stay_id': 'int',
        'charttime': 'datetime',
    },
    'weight_durations': {
        'stay_id': 'int',
        'starttime': 'datetime',
        'weight': 'float',
    },
    'height': {
        'stay_id': 'int',
        'charttime': 'datetime',
        'height': 'float',
    },
    'charlson': {
        'hadm_id': 'int',
        'charlson_comorbidity_index': 'float',
        'congestive_heart_failure': 'float',
        'chronic_pulmonary_disease': 'float',
        'renal_disease': 'float',
        'malignant_cancer': 'float',
        'severe_liver_disease': 'float',
        'diabetes_with_cc': 'float',
        'diabetes_without_cc': 'float',
    },
}

REQUIRED_TABLES: List[str] = list(TABLE_SCHEMAS.keys())

CHARLSON_FLAGS = [
    'congestive_heart_failure',
    'chronic_pulmonary_disease',
    'renal_disease',
    'malignant_cancer',
    'severe_liver_disease',
]


# =============================================================================
# WINDOW CONFIGURATION
# =============================================================================

@dataclass
class WindowConfig:
    """Window lengths relative to weaning time (hours)."""

    # Trailing window for physiological/lab aggregates: [T - 24h, T]
    feature_window_hours: float = 24

    # Post-weaning outcome window: [T, T + 48h]
    outcome_window_hours: float = 48

    # NIV hours inside the outcome window that count as failure
    prolonged_niv_hours: float = 48


# =============================================================================
# COHORT CONFIGURATION
# =============================================================================

DIABETES_MODES = ('count', 'flag')


@dataclass
class CohortConfig:
    """Inclusion criteria and assembly options."""

    min_age: float = 18

    # 'count' keeps diabetes_with_cc + diabetes_without_cc (0/1/2),
    # 'flag' clamps the sum to 0/1
    diabetes_mode: str = 'count'

    # Any agent dose strictly above this marks vasopressor use
    vasopressor_dose_threshold: float = 0.0

    # Emit reintubated_48h / died_48h / prolonged_niv_48h / niv_hours_48h
    include_outcome_components: bool = False

    # Workers for the feature aggregations (1 = sequential)
    n_jobs: int = 1

    windows: WindowConfig = field(default_factory=WindowConfig)

    def __post_init__(self):
        if self.diabetes_mode not in DIABETES_MODES:
            raise ValueError(
                f"Unknown diabetes_mode '{self.diabetes_mode}', expected one of {DIABETES_MODES}"
            )
        if isinstance(self.windows, dict):
            self.windows = _build_dataclass(WindowConfig, self.windows, 'windows')
        for name in ('feature_window_hours', 'outcome_window_hours', 'prolonged_niv_hours'):
            if getattr(self.windows, name) <= 0:
                raise ValueError(f"windows.{name} must be positive")
        if self.n_jobs == 0:
            raise ValueError("n_jobs must be non-zero")


COHORT_CONFIG = CohortConfig()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _build_dataclass(cls, values: Dict, section: str):
    """Instantiate a config dataclass, rejecting unknown keys."""
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown {section} option(s): {', '.join(unknown)}")
    return cls(**values)


def load_cohort_config(path: Optional[Union[str, Path]] = None, **overrides) -> CohortConfig:
    """
    Build a CohortConfig from defaults, an optional YAML file and keyword overrides.

    Args:
        path: Optional YAML file with CohortConfig keys (and a nested 'windows' mapping)
        **overrides: Values applied after the YAML file

    Returns:
        CohortConfig instance
    """
    values: Dict = {}
    if path is not None:
        with open(path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        values.update(loaded)

    values.update({k: v for k, v in overrides.items() if v is not None})

    windows = values.pop('windows', None)
    config = _build_dataclass(CohortConfig, values, 'cohort')
    if windows is not None:
        window_values = {f.name: getattr(config.windows, f.name) for f in fields(WindowConfig)}
        window_values.update(windows)
        config = replace(config, windows=_build_dataclass(WindowConfig, window_values, 'windows'))
    return config


def ensure_directories(output_dir: Optional[Path] = None):
    """Create output directories."""
    output_dir = Path(output_dir) if output_dir else OUTPUT_DIR
    for dir_path in [output_dir, output_dir / "exports"]:
        dir_path.mkdir(parents=True, exist_ok=True)


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    print("=" * 60)
    print("Weaning Cohort Configuration")
    print("=" * 60)
    print(f"\nData Dir: {DATA_DIR}")
    print(f"Output Dir: {OUTPUT_DIR}")
    print(f"Required tables: {len(REQUIRED_TABLES)}")
    print(f"\nFeature window: {COHORT_CONFIG.windows.feature_window_hours}h before weaning")
    print(f"Outcome window: {COHORT_CONFIG.windows.outcome_window_hours}h after weaning")
    print(f"Minimum age: {COHORT_CONFIG.min_age}")
    print("=" * 60)
