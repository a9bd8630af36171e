"""Tests for the cohort exporter."""
import json

import numpy as np
import pandas as pd
import pytest

from weaning_cohort.config.cohort_config import CohortConfig
from weaning_cohort.exporters.cohort_exporter import (
    build_classifier_matrix,
    export_classifier_matrix,
    save_attrition,
    save_cohort,
)
from weaning_cohort.pipeline import WeaningCohortPipeline


@pytest.fixture
def cohort(snapshot):
    snapshot.add_patient(subject_id=1, gender='M')
    snapshot.add_patient(subject_id=2, gender='F')
    config = CohortConfig(include_outcome_components=True)
    return WeaningCohortPipeline(config=config).process_data(snapshot.build())


class TestSaveCohort:

    def test_writes_requested_formats(self, cohort, tmp_path):
        paths = save_cohort(cohort, tmp_path, formats=['parquet', 'csv'])

        assert [p.name for p in paths] == ['weaning_cohort.parquet', 'weaning_cohort.csv']
        assert len(pd.read_csv(paths[1])) == 2

    def test_unknown_format(self, cohort, tmp_path):
        with pytest.raises(ValueError, match="Unsupported format"):
            save_cohort(cohort, tmp_path, formats=['xlsx'])

    def test_attrition_json(self, tmp_path):
        path = save_attrition({'icu_stays': 10, 'adult_cohort': 4}, tmp_path)
        assert json.loads(path.read_text()) == {'adult_cohort': 4, 'icu_stays': 10}


class TestClassifierMatrix:

    def test_drops_identifiers_and_components(self, cohort):
        X, y = build_classifier_matrix(cohort)

        for col in ['subject_id', 'hadm_id', 'weaning_success', 'reintubated_48h', 'niv_hours_48h']:
            assert col not in X.columns
        assert X.index.name == 'stay_id'
        assert y.tolist() == [1, 1]

    def test_gender_mapped_to_male(self, cohort):
        X, _ = build_classifier_matrix(cohort)

        assert 'gender' not in X.columns
        assert X['male'].tolist() == [1.0, 0.0]
        assert (X.dtypes == np.float64).all()

    def test_export_writes_parquet(self, cohort, tmp_path):
        features_path, labels_path = export_classifier_matrix(cohort, tmp_path)

        features = pd.read_parquet(features_path)
        labels = pd.read_parquet(labels_path)
        assert features['stay_id'].tolist() == labels['stay_id'].tolist()
        assert labels.columns.tolist() == ['stay_id', 'weaning_success']
