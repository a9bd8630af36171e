"""Cohort construction stages."""

from .cohort_selector import select_sepsis_cohort
from .ventilation_episodes import extract_first_invasive_episode
from .outcome_classifier import classify_weaning_outcome
from .window_aggregator import aggregate_feature
from .feature_aggregators import build_feature_table, compute_bmi
from .cohort_assembler import assemble_cohort, empty_cohort, output_columns, OUTPUT_COLUMNS

__all__ = [
    'select_sepsis_cohort',
    'extract_first_invasive_episode',
    'classify_weaning_outcome',
    'aggregate_feature',
    'build_feature_table',
    'compute_bmi',
    'assemble_cohort',
    'empty_cohort',
    'output_columns',
    'OUTPUT_COLUMNS',
]
