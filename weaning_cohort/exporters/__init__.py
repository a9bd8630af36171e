"""
Cohort Exporters
================

- Cohort table: parquet / CSV
- Attrition report: JSON
- Classifier matrix: wide parquet for gradient-boosted trees
"""

from .cohort_exporter import (
    save_cohort,
    save_attrition,
    build_classifier_matrix,
    export_classifier_matrix,
)

__all__ = [
    'save_cohort',
    'save_attrition',
    'build_classifier_matrix',
    'export_classifier_matrix',
]
