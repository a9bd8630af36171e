"""
Cohort Validators
=================

Post-assembly checks on the cohort table.

Validation targets:
- One row per stay_id
- weaning_success in {0, 1}
- Every row meets the age criterion
- Treatment counts and ventilation durations are non-negative
- Output columns present and in order
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

import pandas as pd

from weaning_cohort.config.cohort_config import COHORT_CONFIG, CohortConfig
from weaning_cohort.processing.cohort_assembler import output_columns

logger = logging.getLogger(__name__)

NON_NEGATIVE_COLUMNS = ['imv_duration_days', 'urine_output', 'antibiotic_days', 'crrt_days']


@dataclass
class CohortCheck:
    """One named check on the assembled cohort."""
    description: str
    passed: bool
    details: str = ""


@dataclass
class ValidationResult:
    """Checks run on one cohort table, recorded next to the attrition counts."""
    name: str
    checks: List[CohortCheck] = field(default_factory=list)

    def add_check(self, description: str, passed: bool, details: str = ""):
        self.checks.append(CohortCheck(description, bool(passed), details))

    @property
    def ok(self) -> bool:
        return all(check.passed for check in self.checks)

    def failed_checks(self) -> List[str]:
        return [check.description for check in self.checks if not check.passed]

    def summary(self) -> str:
        n_passed = sum(check.passed for check in self.checks)
        status = "PASS" if self.ok else "FAIL"
        return f"{self.name}: {status} ({n_passed}/{len(self.checks)} checks)"

    def as_dict(self) -> Dict:
        """JSON-ready form: overall status plus details of failed checks."""
        return {
            "ok": self.ok,
            "n_checks": len(self.checks),
            "failed": {c.description: c.details for c in self.checks if not c.passed},
        }


def validate_cohort(df: pd.DataFrame, config: Optional[CohortConfig] = None) -> ValidationResult:
    """Run the cohort table checks.

    Args:
        df: Assembled cohort
        config: Configuration used to build it

    Returns:
        ValidationResult (failures are reported, never raised)
    """
    config = config or COHORT_CONFIG
    result = ValidationResult("Weaning Cohort")

    expected = output_columns(config)
    result.add_check(
        "Output columns match expected layout",
        list(df.columns) == expected,
        f"missing: {sorted(set(expected) - set(df.columns))}" if set(expected) - set(df.columns) else "",
    )

    if 'stay_id' in df.columns:
        n_dup = int(df['stay_id'].duplicated().sum())
        result.add_check("stay_id is unique", n_dup == 0, f"{n_dup} duplicate(s)" if n_dup else "")

    if 'weaning_success' in df.columns:
        bad = ~df['weaning_success'].isin([0, 1])
        result.add_check(
            "weaning_success is binary",
            not bad.any(),
            f"{int(bad.sum())} row(s) outside {{0, 1}}" if bad.any() else "",
        )

    if 'age' in df.columns:
        under = df['age'].isna() | (df['age'] < config.min_age)
        result.add_check(
            f"All ages >= {config.min_age}",
            not under.any(),
            f"{int(under.sum())} row(s) below threshold or missing" if under.any() else "",
        )

    for col in NON_NEGATIVE_COLUMNS:
        if col not in df.columns:
            continue
        negative = df[col] < 0
        result.add_check(
            f"{col} is non-negative",
            not negative.any(),
            f"{int(negative.sum())} negative value(s)" if negative.any() else "",
        )

    if 'subject_id' in df.columns and len(df) > 1:
        result.add_check(
            "Rows ordered by subject_id",
            df['subject_id'].is_monotonic_increasing,
        )

    if not result.ok:
        logger.warning(result.summary() + f" failed: {', '.join(result.failed_checks())}")
    return result
