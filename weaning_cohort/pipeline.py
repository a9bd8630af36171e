# pipeline.py
"""
Weaning Cohort Pipeline
=======================

Builds the sepsis ventilation-weaning cohort from a snapshot of derived
clinical tables:

1. Select first ICU stays with Sepsis-3
2. Take each stay's first invasive ventilation episode (weaning time = its end)
3. Label weaning success from the 48h post-weaning checks
4. Aggregate the windowed features
5. Assemble, filter to adults, order by subject_id
"""

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import pandas as pd

from weaning_cohort.config.cohort_config import (
    COHORT_CONFIG,
    DATA_DIR,
    OUTPUT_DIR,
    CohortConfig,
    ensure_directories,
    load_cohort_config,
)
from weaning_cohort.extractors.snapshot_loader import SnapshotLoader, validate_tables
from weaning_cohort.processing.cohort_selector import select_sepsis_cohort
from weaning_cohort.processing.ventilation_episodes import extract_first_invasive_episode
from weaning_cohort.processing.outcome_classifier import classify_weaning_outcome
from weaning_cohort.processing.feature_aggregators import build_feature_table
from weaning_cohort.processing.cohort_assembler import assemble_cohort
from weaning_cohort.validation.cohort_validators import ValidationResult, validate_cohort
from weaning_cohort.exporters.cohort_exporter import (
    save_cohort,
    save_attrition,
    export_classifier_matrix,
)

logger = logging.getLogger(__name__)


class WeaningCohortPipeline:
    """Main pipeline for the sepsis weaning cohort."""

    def __init__(
        self,
        data_dir: Union[str, Path] = DATA_DIR,
        config: Optional[CohortConfig] = None,
    ):
        """
        Initialize pipeline.

        Args:
            data_dir: Snapshot directory with one file per derived table
            config: Cohort configuration (default COHORT_CONFIG)
        """
        self.data_dir = Path(data_dir)
        self.config = config or COHORT_CONFIG
        self.attrition: Dict[str, Union[int, float, None]] = {}
        self.outcomes: Optional[pd.DataFrame] = None
        self.validation: Optional[ValidationResult] = None

    def process_data(self, tables: Mapping[str, pd.DataFrame]) -> pd.DataFrame:
        """
        Build the cohort from in-memory tables.

        Args:
            tables: Mapping of table name -> DataFrame (validated here)

        Returns:
            DataFrame with one row per qualifying stay

        Raises:
            SchemaError: A required table or column is missing or mistyped
        """
        tables = validate_tables(tables)

        cohort = select_sepsis_cohort(tables['icustay_detail'], tables['sepsis3'])
        episodes = extract_first_invasive_episode(cohort, tables['ventilation'])
        outcomes = classify_weaning_outcome(
            episodes, tables['ventilation'], tables['icustay_detail'], self.config
        )
        features = build_feature_table(episodes, tables, self.config)
        result = assemble_cohort(
            episodes,
            outcomes,
            features,
            tables['icustay_detail'],
            tables['age'],
            tables['charlson'],
            self.config,
        )

        self.outcomes = outcomes
        self.attrition = {
            'icu_stays': int(len(tables['icustay_detail'])),
            'sepsis_first_icu_stays': int(len(cohort)),
            'invasively_ventilated': int(len(episodes)),
            'adult_cohort': int(len(result)),
            'weaning_success': int(result['weaning_success'].sum()) if len(result) else 0,
            'weaning_success_rate': float(result['weaning_success'].mean()) if len(result) else None,
        }
        self.validation = validate_cohort(result, self.config)
        return result

    def run(
        self,
        output_dir: Optional[Union[str, Path]] = None,
        formats: List[str] = ('parquet',),
        export_matrix: bool = False,
    ) -> pd.DataFrame:
        """
        Run full extraction pipeline.

        Args:
            output_dir: Output directory (default: OUTPUT_DIR)
            formats: Cohort table formats to write
            export_matrix: Also export the classifier feature matrix

        Returns:
            DataFrame with the cohort
        """
        print("=" * 60)
        print("Sepsis Ventilation Weaning Cohort")
        print("=" * 60)

        output_dir = Path(output_dir) if output_dir else OUTPUT_DIR
        ensure_directories(output_dir)

        print(f"\n1. Loading snapshot from {self.data_dir}...")
        tables = SnapshotLoader(self.data_dir).load_all()
        print(f"   Loaded {len(tables)} tables")

        print("\n2. Building cohort...")
        cohort_df = self.process_data(tables)

        print(f"\n3. Saving to {output_dir}...")
        save_cohort(cohort_df, output_dir, formats)
        report = dict(self.attrition)
        if self.validation is not None:
            report['validation'] = self.validation.as_dict()
        save_attrition(report, output_dir)
        if export_matrix:
            export_classifier_matrix(cohort_df, output_dir / "exports")

        print("\n" + "=" * 60)
        print("Cohort Summary")
        print("=" * 60)
        for step, count in self.attrition.items():
            if isinstance(count, float):
                print(f"   {step}: {count:.1%}")
            elif count is not None:
                print(f"   {step}: {count:,}")
        print(f"   Features per stay: {len(cohort_df.columns)}")
        if self.validation is not None:
            print(f"   {self.validation.summary()}")
        print("=" * 60)

        return cohort_df


# =============================================================================
# CLI
# =============================================================================

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Extract the sepsis ventilation-weaning cohort")
    parser.add_argument('--data-dir', type=Path, default=DATA_DIR, help='Snapshot directory')
    parser.add_argument('--output-dir', type=Path, default=OUTPUT_DIR, help='Output directory')
    parser.add_argument('--config', type=Path, default=None, help='YAML config overrides')
    parser.add_argument('--n-jobs', type=int, default=None, help='Workers for feature aggregation')
    parser.add_argument('--format', nargs='+', default=['parquet'], choices=['parquet', 'csv'],
                        help='Output formats')
    parser.add_argument('--export-matrix', action='store_true',
                        help='Also export the classifier feature matrix')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    config = load_cohort_config(args.config, n_jobs=args.n_jobs)
    pipeline = WeaningCohortPipeline(data_dir=args.data_dir, config=config)
    pipeline.run(output_dir=args.output_dir, formats=args.format, export_matrix=args.export_matrix)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
