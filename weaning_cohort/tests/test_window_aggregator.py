"""Tests for the parameterized windowed aggregation."""
import numpy as np
import pandas as pd
import pytest

from weaning_cohort.config.cohort_config import WindowConfig
from weaning_cohort.config.feature_config import FEATURE_SPECS, BEFORE_WEANING, NO_WINDOW, TRAILING_24H
from weaning_cohort.processing.window_aggregator import (
    aggregate_feature,
    earliest_value,
    window_mask,
)
from synthetic_snapshot import WEANING

HOUR = pd.Timedelta(hours=1)
SECOND = pd.Timedelta(seconds=1)
WINDOWS = WindowConfig()


def spec_named(name):
    return next(spec for spec in FEATURE_SPECS if spec.name == name)


@pytest.fixture
def base():
    """Two ventilated stays sharing the same weaning time."""
    return pd.DataFrame({
        'stay_id': [100, 200],
        'hadm_id': [10, 20],
        'weaning_time': [WEANING, WEANING],
    })


class TestWindowMask:
    """Test window policies."""

    def test_trailing_window_inclusive(self):
        times = pd.Series([
            WEANING - 24 * HOUR - SECOND,
            WEANING - 24 * HOUR,
            WEANING,
            WEANING + SECOND,
        ])
        weaning = pd.Series([WEANING] * 4)

        mask = window_mask(times, weaning, TRAILING_24H, WINDOWS)
        assert mask.tolist() == [False, True, True, False]

    def test_before_weaning_is_open_ended_and_exclusive(self):
        times = pd.Series([WEANING - 1000 * HOUR, WEANING - SECOND, WEANING])
        weaning = pd.Series([WEANING] * 3)

        mask = window_mask(times, weaning, BEFORE_WEANING, WINDOWS)
        assert mask.tolist() == [True, True, False]

    def test_no_window_keeps_everything(self):
        times = pd.Series([WEANING + 1000 * HOUR, pd.NaT])
        mask = window_mask(times, pd.Series([WEANING] * 2), NO_WINDOW, WINDOWS)
        assert mask.tolist() == [True, True]

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            window_mask(pd.Series([WEANING]), pd.Series([WEANING]), 'yesterday', WINDOWS)

    def test_configurable_length(self):
        times = pd.Series([WEANING - 7 * HOUR])
        mask = window_mask(times, pd.Series([WEANING]), TRAILING_24H, WindowConfig(feature_window_hours=6))
        assert mask.tolist() == [False]


class TestWorstValueReducers:
    """Test MIN/MAX/SUM aggregation over the trailing window."""

    def test_max_heart_rate(self, base):
        vitals = pd.DataFrame({
            'stay_id': [100, 100, 100],
            'charttime': [WEANING - 2 * HOUR, WEANING - HOUR, WEANING - 30 * HOUR],
            'heart_rate': [90.0, 110.0, 150.0],
        })
        result = aggregate_feature(base, vitals, spec_named('heart_rate_max'), WINDOWS)

        assert result.name == 'heart_rate_max'
        assert result.loc[100] == 110.0

    def test_min_spo2(self, base):
        vitals = pd.DataFrame({
            'stay_id': [100, 100],
            'charttime': [WEANING - 2 * HOUR, WEANING],
            'spo2': [97.0, 88.0],
        })
        assert aggregate_feature(base, vitals, spec_named('spo2_min'), WINDOWS).loc[100] == 88.0

    def test_no_rows_in_window_is_null(self, base):
        vitals = pd.DataFrame({
            'stay_id': [100],
            'charttime': [WEANING - 48 * HOUR],
            'heart_rate': [80.0],
        })
        result = aggregate_feature(base, vitals, spec_named('heart_rate_max'), WINDOWS)

        assert np.isnan(result.loc[100])
        assert np.isnan(result.loc[200])

    def test_null_values_ignored(self, base):
        vitals = pd.DataFrame({
            'stay_id': [100, 100],
            'charttime': [WEANING - HOUR, WEANING - 2 * HOUR],
            'mbp': [np.nan, 65.0],
        })
        assert aggregate_feature(base, vitals, spec_named('mbp_min'), WINDOWS).loc[100] == 65.0

    def test_lab_joined_on_admission(self, base):
        chemistry = pd.DataFrame({
            'hadm_id': [10, 20],
            'charttime': [WEANING - HOUR, WEANING - HOUR],
            'creatinine': [1.2, 3.4],
        })
        result = aggregate_feature(base, chemistry, spec_named('creatinine_max'), WINDOWS)

        assert result.to_dict() == {100: 1.2, 200: 3.4}

    def test_urine_output_sum(self, base):
        urine = pd.DataFrame({
            'stay_id': [100, 100, 100],
            'charttime': [WEANING - HOUR, WEANING - 2 * HOUR, WEANING + HOUR],
            'urineoutput': [100.0, 250.0, 999.0],
        })
        result = aggregate_feature(base, urine, spec_named('urine_output'), WINDOWS)

        assert result.loc[100] == 350.0
        assert np.isnan(result.loc[200])

    def test_result_indexed_by_base_order(self, base):
        vitals = pd.DataFrame({
            'stay_id': pd.Series(dtype='int64'),
            'charttime': pd.Series(dtype='datetime64[ns]'),
            'gcs': pd.Series(dtype='float64'),
        })
        result = aggregate_feature(base, vitals, spec_named('gcs_min'), WINDOWS)

        assert result.index.tolist() == [100, 200]
        assert result.isna().all()


class TestCountDistinctDays:
    """Test cumulative day counts up to weaning."""

    def test_antibiotic_days(self, base):
        antibiotic = pd.DataFrame({
            'hadm_id': [10, 10, 10, 10],
            'starttime': [
                WEANING - 72 * HOUR,
                WEANING - 72 * HOUR + HOUR,
                WEANING - 24 * HOUR,
                WEANING,
            ],
        })
        result = aggregate_feature(base, antibiotic, spec_named('antibiotic_days'), WINDOWS)

        assert result.loc[100] == 2
        assert np.isnan(result.loc[200])

    def test_crrt_days_stay_keyed(self, base):
        crrt = pd.DataFrame({
            'stay_id': [200, 200, 200],
            'charttime': [WEANING - 30 * 24 * HOUR, WEANING - 2 * HOUR, WEANING - 26 * HOUR],
        })
        result = aggregate_feature(base, crrt, spec_named('crrt_days'), WINDOWS)

        assert result.loc[200] == 3


class TestVasopressorFlag:
    """Test the any-positive-dose reducer."""

    def _agents(self, **doses):
        row = {'stay_id': 100, 'starttime': WEANING - HOUR}
        for agent in ('dopamine', 'epinephrine', 'norepinephrine', 'phenylephrine', 'vasopressin'):
            row[agent] = doses.get(agent, np.nan)
        return pd.DataFrame([row])

    def test_positive_dose_sets_flag(self, base):
        result = aggregate_feature(base, self._agents(vasopressin=0.03), spec_named('vasopressor_used'), WINDOWS)
        assert result.loc[100] == 1

    def test_zero_dose_is_not_use(self, base):
        result = aggregate_feature(base, self._agents(norepinephrine=0.0), spec_named('vasopressor_used'), WINDOWS)
        assert result.loc[100] == 0

    def test_no_rows_is_null(self, base):
        result = aggregate_feature(base, self._agents(dopamine=5.0), spec_named('vasopressor_used'), WINDOWS)
        assert np.isnan(result.loc[200])

    def test_threshold(self, base):
        spec = spec_named('vasopressor_used')
        result = aggregate_feature(base, self._agents(dopamine=2.0), spec, WINDOWS, threshold=5.0)
        assert result.loc[100] == 0


class TestEarliestValue:
    """Test the earliest-record pick used for BMI."""

    def test_earliest_wins(self, base):
        weights = pd.DataFrame({
            'stay_id': [100, 100],
            'starttime': [WEANING - 10 * HOUR, WEANING - 20 * HOUR],
            'weight': [70.0, 80.0],
        })
        result = earliest_value(base, weights, 'starttime', 'weight').set_index('stay_id')

        assert result.loc[100, 'weight'] == 80.0
        assert result.loc[100, 'n_tied'] == 1

    def test_tie_takes_lower_value(self, base):
        weights = pd.DataFrame({
            'stay_id': [100, 100],
            'starttime': [WEANING, WEANING],
            'weight': [90.0, 75.0],
        })
        result = earliest_value(base, weights, 'starttime', 'weight').set_index('stay_id')

        assert result.loc[100, 'weight'] == 75.0
        assert result.loc[100, 'n_tied'] == 2
