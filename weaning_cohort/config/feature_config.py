"""Declarative feature specifications for the windowed aggregations."""
from dataclasses import dataclass
from typing import List, Optional, Tuple

# Window policies relative to weaning time T
TRAILING_24H = 'trailing_24h'     # [T - feature_window_hours, T]
BEFORE_WEANING = 'before_weaning'  # (-inf, T)
NO_WINDOW = 'none'

WINDOW_POLICIES = (TRAILING_24H, BEFORE_WEANING, NO_WINDOW)

REDUCERS = ('min', 'max', 'sum', 'count_distinct_days', 'any_positive')

VASOPRESSOR_AGENTS = ('dopamine', 'epinephrine', 'norepinephrine', 'phenylephrine', 'vasopressin')


@dataclass(frozen=True)
class FeatureSpec:
    """One aggregated output column."""

    name: str
    table: str
    key: str                      # 'stay_id' or 'hadm_id'
    time_column: str
    value_columns: Tuple[str, ...]
    reducer: str
    window: str = TRAILING_24H
    fill_value: Optional[float] = None

    def __post_init__(self):
        if self.key not in ('stay_id', 'hadm_id'):
            raise ValueError(f"{self.name}: unknown key '{self.key}'")
        if self.reducer not in REDUCERS:
            raise ValueError(f"{self.name}: unknown reducer '{self.reducer}'")
        if self.window not in WINDOW_POLICIES:
            raise ValueError(f"{self.name}: unknown window '{self.window}'")
        if self.reducer != 'count_distinct_days' and not self.value_columns:
            raise ValueError(f"{self.name}: reducer '{self.reducer}' needs value columns")


def _spec(name, table, key, column, reducer, **kwargs) -> FeatureSpec:
    return FeatureSpec(
        name=name,
        table=table,
        key=key,
        time_column=kwargs.pop('time_column', 'charttime'),
        value_columns=(column,) if column else (),
        reducer=reducer,
        **kwargs,
    )


# Worst value in the 24h before weaning: MIN where low is bad, MAX where high is bad
FEATURE_SPECS: List[FeatureSpec] = [
    # Vitals (stay level)
    _spec('heart_rate_max', 'vitalsign', 'stay_id', 'heart_rate', 'max'),
    _spec('resp_rate_max', 'vitalsign', 'stay_id', 'resp_rate', 'max'),
    _spec('mbp_min', 'vitalsign', 'stay_id', 'mbp', 'min'),
    _spec('temperature_max', 'vitalsign', 'stay_id', 'temperature', 'max'),
    _spec('spo2_min', 'vitalsign', 'stay_id', 'spo2', 'min'),
    _spec('gcs_min', 'gcs', 'stay_id', 'gcs', 'min'),

    # Chemistry (admission level)
    _spec('creatinine_max', 'chemistry', 'hadm_id', 'creatinine', 'max'),
    _spec('bun_max', 'chemistry', 'hadm_id', 'bun', 'max'),
    _spec('potassium_max', 'chemistry', 'hadm_id', 'potassium', 'max'),
    _spec('glucose_max', 'chemistry', 'hadm_id', 'glucose', 'max'),

    # Complete blood count (admission level)
    _spec('hemoglobin_min', 'complete_blood_count', 'hadm_id', 'hemoglobin', 'min'),
    _spec('platelet_min', 'complete_blood_count', 'hadm_id', 'platelet', 'min'),
    _spec('wbc_max', 'complete_blood_count', 'hadm_id', 'wbc', 'max'),

    # Blood gas (admission level)
    _spec('ph_min', 'bg', 'hadm_id', 'ph', 'min'),
    _spec('po2_min', 'bg', 'hadm_id', 'po2', 'min'),
    _spec('pco2_max', 'bg', 'hadm_id', 'pco2', 'max'),
    _spec('pao2fio2ratio_min', 'bg', 'hadm_id', 'pao2fio2ratio', 'min'),
    _spec('lactate_max', 'bg', 'hadm_id', 'lactate', 'max'),

    # Ventilator settings (stay level)
    _spec('peep_max', 'ventilator_setting', 'stay_id', 'peep', 'max'),
    _spec('fio2_max', 'ventilator_setting', 'stay_id', 'fio2', 'max'),
    _spec('tidal_volume_max', 'ventilator_setting', 'stay_id', 'tidal_volume_observed', 'max'),

    # Urine output, total over the window; no record means none produced
    _spec('urine_output', 'urine_output', 'stay_id', 'urineoutput', 'sum', fill_value=0),

    # Any vasopressor dose above threshold in the window
    FeatureSpec(
        name='vasopressor_used',
        table='vasoactive_agent',
        key='stay_id',
        time_column='starttime',
        value_columns=VASOPRESSOR_AGENTS,
        reducer='any_positive',
    ),

    # Cumulative treatment days up to weaning
    _spec('antibiotic_days', 'antibiotic', 'hadm_id', None, 'count_distinct_days',
          time_column='starttime', window=BEFORE_WEANING, fill_value=0),
    _spec('crrt_days', 'crrt', 'stay_id', None, 'count_distinct_days',
          window=BEFORE_WEANING, fill_value=0),
]

FEATURE_COLUMNS: List[str] = [spec.name for spec in FEATURE_SPECS]

ZERO_FILLED_FEATURES: List[str] = [
    spec.name for spec in FEATURE_SPECS if spec.fill_value is not None
]
