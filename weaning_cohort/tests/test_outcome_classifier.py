"""Tests for the weaning outcome label."""
import pandas as pd
import pytest

from weaning_cohort.config.cohort_config import CohortConfig, WindowConfig
from weaning_cohort.extractors.snapshot_loader import validate_tables
from weaning_cohort.processing.cohort_selector import select_sepsis_cohort
from weaning_cohort.processing.ventilation_episodes import extract_first_invasive_episode
from weaning_cohort.processing.outcome_classifier import (
    OUTCOME_COLUMNS,
    classify_weaning_outcome,
    sum_niv_hours,
)
from synthetic_snapshot import D0, WEANING

HOUR = pd.Timedelta(hours=1)


def _classify(snapshot, config=None):
    tables = validate_tables(snapshot.build())
    cohort = select_sepsis_cohort(tables['icustay_detail'], tables['sepsis3'])
    episodes = extract_first_invasive_episode(cohort, tables['ventilation'])
    return classify_weaning_outcome(
        episodes, tables['ventilation'], tables['icustay_detail'], config or CohortConfig()
    )


def _outcome(snapshot, config=None):
    return _classify(snapshot, config).set_index('stay_id').iloc[0]


class TestReintubation:
    """Test reintubation within 48h of weaning."""

    @pytest.mark.parametrize("offset", [pd.Timedelta(0), 48 * HOUR])
    def test_boundaries_are_inclusive(self, snapshot, offset):
        ids = snapshot.add_patient()
        start = WEANING + offset
        snapshot.add_vent(ids['stay_id'], start, start + 24 * HOUR)

        outcome = _outcome(snapshot)
        assert outcome['reintubated_48h']
        assert outcome['weaning_success'] == 0

    def test_one_second_past_window_not_counted(self, snapshot):
        ids = snapshot.add_patient()
        start = WEANING + 48 * HOUR + pd.Timedelta(seconds=1)
        snapshot.add_vent(ids['stay_id'], start, start + 24 * HOUR)

        outcome = _outcome(snapshot)
        assert not outcome['reintubated_48h']
        assert outcome['weaning_success'] == 1

    def test_qualifying_episode_not_counted(self, snapshot):
        snapshot.add_patient(vent_start=WEANING, vent_end=WEANING)

        assert _outcome(snapshot)['weaning_success'] == 1

    def test_non_invasive_is_not_reintubation(self, snapshot):
        ids = snapshot.add_patient()
        snapshot.add_vent(ids['stay_id'], WEANING + HOUR, WEANING + 2 * HOUR, status='NonInvasiveVent')

        assert not _outcome(snapshot)['reintubated_48h']

    def test_other_stays_do_not_leak(self, snapshot):
        snapshot.add_patient(subject_id=1)
        other = snapshot.add_patient(subject_id=2, sepsis=False)
        snapshot.add_vent(other['stay_id'], WEANING + HOUR, WEANING + 5 * HOUR)

        assert _outcome(snapshot)['weaning_success'] == 1


class TestDeath:
    """Test death within 48h of weaning."""

    def test_death_in_window(self, snapshot):
        snapshot.add_patient(dod=WEANING + 24 * HOUR)

        outcome = _outcome(snapshot)
        assert outcome['died_48h']
        assert outcome['weaning_success'] == 0

    def test_death_at_window_end(self, snapshot):
        snapshot.add_patient(dod=WEANING + 48 * HOUR)
        assert _outcome(snapshot)['died_48h']

    def test_death_after_window(self, snapshot):
        snapshot.add_patient(dod=WEANING + 72 * HOUR)

        outcome = _outcome(snapshot)
        assert not outcome['died_48h']
        assert outcome['weaning_success'] == 1

    def test_death_before_weaning_not_counted(self, snapshot):
        snapshot.add_patient(dod=WEANING - HOUR)
        assert not _outcome(snapshot)['died_48h']

    def test_no_death_record(self, snapshot):
        snapshot.add_patient(dod=None)
        assert not _outcome(snapshot)['died_48h']


class TestProlongedNIV:
    """Test prolonged non-invasive ventilation after weaning."""

    def test_short_niv_is_success(self, snapshot):
        ids = snapshot.add_patient()
        snapshot.add_vent(ids['stay_id'], WEANING + HOUR, WEANING + 11 * HOUR, status='NonInvasiveVent')

        outcome = _outcome(snapshot)
        assert outcome['niv_hours_48h'] == 10
        assert not outcome['prolonged_niv_48h']
        assert outcome['weaning_success'] == 1

    def test_48_hours_is_failure(self, snapshot):
        ids = snapshot.add_patient()
        snapshot.add_vent(ids['stay_id'], WEANING, WEANING + 20 * HOUR, status='NonInvasiveVent')
        snapshot.add_vent(ids['stay_id'], WEANING + 30 * HOUR, WEANING + 58 * HOUR, status='NonInvasiveVent')

        outcome = _outcome(snapshot)
        assert outcome['niv_hours_48h'] == 48
        assert outcome['prolonged_niv_48h']
        assert outcome['weaning_success'] == 0

    def test_truncates_each_event_before_summing(self, snapshot):
        # 24h59m + 23h59m = 48h58m exactly, but 24 + 23 = 47 whole hours
        ids = snapshot.add_patient()
        snapshot.add_vent(ids['stay_id'], WEANING, WEANING + pd.Timedelta(hours=24, minutes=59),
                          status='NonInvasiveVent')
        second = WEANING + 30 * HOUR
        snapshot.add_vent(ids['stay_id'], second, second + pd.Timedelta(hours=23, minutes=59),
                          status='NonInvasiveVent')

        outcome = _outcome(snapshot)
        assert outcome['niv_hours_48h'] == 47
        assert not outcome['prolonged_niv_48h']
        assert outcome['weaning_success'] == 1

    def test_niv_starting_after_window_ignored(self, snapshot):
        ids = snapshot.add_patient()
        start = WEANING + 49 * HOUR
        snapshot.add_vent(ids['stay_id'], start, start + 72 * HOUR, status='NonInvasiveVent')

        assert _outcome(snapshot)['niv_hours_48h'] == 0

    def test_niv_before_weaning_ignored(self, snapshot):
        ids = snapshot.add_patient(vent_start=D0 + 3 * 24 * HOUR)
        snapshot.add_vent(ids['stay_id'], D0, D0 + 60 * HOUR, status='NonInvasiveVent')

        assert _outcome(snapshot)['weaning_success'] == 1

    def test_niv_spanning_weaning_ignored(self, snapshot):
        ids = snapshot.add_patient()
        snapshot.add_vent(ids['stay_id'], WEANING - HOUR, WEANING + 59 * HOUR, status='NonInvasiveVent')

        outcome = _outcome(snapshot)
        assert outcome['niv_hours_48h'] == 0
        assert outcome['weaning_success'] == 1

    def test_niv_starting_at_window_end_counted(self, snapshot):
        ids = snapshot.add_patient()
        start = WEANING + 48 * HOUR
        snapshot.add_vent(ids['stay_id'], start, start + 50 * HOUR, status='NonInvasiveVent')

        outcome = _outcome(snapshot)
        assert outcome['niv_hours_48h'] == 50
        assert outcome['weaning_success'] == 0

    def test_configurable_threshold(self, snapshot):
        ids = snapshot.add_patient()
        snapshot.add_vent(ids['stay_id'], WEANING, WEANING + 12 * HOUR, status='NonInvasiveVent')
        config = CohortConfig(windows=WindowConfig(prolonged_niv_hours=12))

        assert _outcome(snapshot, config)['prolonged_niv_48h']

    def test_sum_niv_hours_zero_without_events(self, snapshot):
        snapshot.add_patient()
        tables = validate_tables(snapshot.build())
        cohort = select_sepsis_cohort(tables['icustay_detail'], tables['sepsis3'])
        episodes = extract_first_invasive_episode(cohort, tables['ventilation'])

        hours = sum_niv_hours(episodes, tables['ventilation'])
        assert hours.tolist() == [0.0]


class TestOutcomeExclusivity:
    """Test the combined label across several stays."""

    def test_label_matches_components(self, snapshot):
        a = snapshot.add_patient(subject_id=1)
        snapshot.add_vent(a['stay_id'], WEANING + HOUR, WEANING + 10 * HOUR)
        snapshot.add_patient(subject_id=2, dod=WEANING + HOUR)
        c = snapshot.add_patient(subject_id=3)
        snapshot.add_vent(c['stay_id'], WEANING, WEANING + 50 * HOUR, status='NonInvasiveVent')
        snapshot.add_patient(subject_id=4)

        outcomes = _classify(snapshot)

        assert list(outcomes.columns) == OUTCOME_COLUMNS
        assert outcomes['weaning_success'].isin([0, 1]).all()
        any_failure = outcomes[['reintubated_48h', 'died_48h', 'prolonged_niv_48h']].any(axis=1)
        assert ((outcomes['weaning_success'] == 0) == any_failure).all()
        assert outcomes.set_index('stay_id')['weaning_success'].to_dict() == {
            100: 0, 200: 0, 300: 0, 400: 1,
        }

    def test_empty_episodes(self, snapshot):
        snapshot.add_patient(sepsis=False)
        outcomes = _classify(snapshot)

        assert outcomes.empty
        assert list(outcomes.columns) == OUTCOME_COLUMNS
