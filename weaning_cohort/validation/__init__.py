"""
Cohort Validation
=================

Quality checks on the assembled cohort table.
"""

from .cohort_validators import ValidationResult, validate_cohort

__all__ = ['ValidationResult', 'validate_cohort']
