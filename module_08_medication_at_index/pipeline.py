"""
Module 08: Medication at Index Pipeline
=======================================

Main pipeline: resolve index dates with one strategy, stitch medication
intervals, evaluate the medication state at each index date and export the
cohort workbook.
"""

import logging
import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional

from .config.medication_at_index_config import (
    PATIENT_ID,
    INDEX_DATE,
    DATA_DIR,
    SOURCE_SCHEMA,
    load_moa_taxonomy,
    ensure_directories,
)
from .extractors.source_tables import (
    require_tables,
    require_columns,
    extract_bionaive_markers,
    load_source_tables,
)
from .transformers.index_date_resolver import IndexInfo, IndexStrategy, get_resolver
from .transformers.interval_stitcher import (
    parse_prescriptions,
    build_interval_set,
    current_medications_at_consent,
    no_current_medication_flags,
)
from .transformers.medication_state_evaluator import (
    select_active_intervals,
    select_enrollment_medications,
    collapse_state_rows,
)
from .transformers.bionaive_calculator import calculate_bionaive
from .transformers.cohort_assembler import build_base_table, assemble_cohort
from .validation.data_quality import (
    DataQualityReport,
    check_index_cardinality,
    check_interval_overlap,
    check_bionaive_before_index,
)
from .exporters.excel_exporter import export_medication_at_index

logger = logging.getLogger(__name__)

DEFAULT_INDEX_INFO = ('ENROLLMENT', 'LATEST', 'ENDOSCOPY', 'OMICS', 'BIOSAMPLE')


class MedicationAtIndexPipeline:
    """Medication-at-index cohort for one index-date strategy."""

    def __init__(
        self,
        data: Dict[str, pd.DataFrame],
        index_info: IndexInfo = DEFAULT_INDEX_INFO,
        taxonomy: Optional[Dict[str, List[str]]] = None,
    ):
        """
        Initialize pipeline.

        Args:
            data: Source tables keyed by name (see load_source_tables)
            index_info: Strategy name(s), or a DataFrame of caller index dates
            taxonomy: MOA class -> medication names (default from YAML)

        Raises:
            ValueError: unknown strategy, or EXTERNAL without an index table
        """
        self.data = data
        self.resolver = get_resolver(index_info)
        self.strategy = self.resolver.strategy
        self.taxonomy = taxonomy if taxonomy is not None else load_moa_taxonomy()

        self.report = DataQualityReport(f"Medication at Index ({self.strategy.value})")
        self.intervals = None
        self.resolution = None

    def validate_inputs(self):
        """Fail before any computation when a table or column is missing."""
        tables = list(SOURCE_SCHEMA.always_required) + list(self.resolver.required_tables)
        require_tables(self.data, tables)

        for name in tables:
            require_columns(self.data[name], name)
        if self.data.get('observations') is not None:
            require_columns(self.data['observations'], 'observations')

    def process_data(self) -> pd.DataFrame:
        """
        Build the cohort without writing anything.

        Returns:
            Cohort DataFrame, one row per index date (per sample for
            OMICS / BIOSAMPLE)
        """
        self.validate_inputs()
        report = self.report

        # Index dates
        resolution = self.resolver.resolve(self.data, report)
        index = resolution.index
        check_index_cardinality(index, self.strategy.value, report)

        # Intervals
        parsed = parse_prescriptions(self.data['prescriptions'], self.taxonomy)
        intervals = build_interval_set(self.data['prescriptions'], self.taxonomy, report, parsed=parsed)
        check_interval_overlap(intervals, report)

        # Medication state
        flags = None
        if self.strategy is IndexStrategy.ENROLLMENT:
            snapshot = current_medications_at_consent(parsed)
            selected = select_enrollment_medications(snapshot, index)
            flags = no_current_medication_flags(snapshot, index, parsed)
        else:
            selected = select_active_intervals(intervals, index)
        state_rows = collapse_state_rows(selected)

        # Biologic-naive
        markers = extract_bionaive_markers(self.data.get('observations'), report)
        bionaive = calculate_bionaive(markers, index)

        # Assembly
        base = build_base_table(self.data, report)
        cohort = assemble_cohort(
            resolution,
            base,
            state_rows,
            selected,
            bionaive,
            flags=flags,
            taxonomy=self.taxonomy,
            report=report,
        )
        check_bionaive_before_index(cohort, report)

        self.intervals = intervals
        self.resolution = resolution
        return cohort

    def run(self, filename: Optional[str] = None, export: bool = True) -> pd.DataFrame:
        """
        Run full pipeline.

        Args:
            filename: Workbook path (default: exports/SPARC_MEDICATION.xlsx)
            export: Write the workbook

        Returns:
            Cohort DataFrame
        """
        print("=" * 60)
        print("Module 08: Medication at Index")
        print("=" * 60)
        print(f"\n1. Index strategy: {self.strategy.value}")

        print("\n2. Building cohort...")
        cohort = self.process_data()

        if export:
            if filename is None:
                ensure_directories()
            print("\n3. Writing workbook...")
            export_medication_at_index(cohort, filename)

        # Summary
        print("\n" + "=" * 60)
        print("Cohort Summary")
        print("=" * 60)
        print(f"   Index rows: {len(cohort):,}")
        print(f"   Patients: {cohort[PATIENT_ID].nunique():,}")
        print(f"   Columns: {len(cohort.columns)}")
        if len(cohort) > 0:
            on_medication = cohort['MEDICATION_AT_INDEX'].notna().mean()
            print(f"   On IBD medication at index: {on_medication:.1%}")
        print(self.report.report())
        print("=" * 60)

        return cohort


def build_medication_at_index(
    data: Dict[str, pd.DataFrame],
    index_info: IndexInfo = DEFAULT_INDEX_INFO,
    filename: Optional[str] = None,
    export: bool = True,
) -> pd.DataFrame:
    """
    Medication at index for a SPARC cohort.

    Args:
        data: Source tables keyed by name
        index_info: Strategy name(s) or a DataFrame with
            DEIDENTIFIED_MASTER_PATIENT_ID and INDEX_DATE
        filename: Workbook path
        export: Write the workbook

    Returns:
        Cohort DataFrame
    """
    pipeline = MedicationAtIndexPipeline(data, index_info)
    if export:
        return pipeline.run(filename=filename, export=True)
    return pipeline.process_data()


# =============================================================================
# CLI
# =============================================================================

def main():
    """Main entry point for CLI."""
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description="Build the SPARC medication-at-index report")
    parser.add_argument('--data-dir', type=str, default=str(DATA_DIR), help='Directory of <table>.csv extracts')
    parser.add_argument('--index-info', nargs='+', default=list(DEFAULT_INDEX_INFO),
                        help='Index strategies; the highest priority one runs')
    parser.add_argument('--index-file', type=str, default=None,
                        help=f'CSV with {PATIENT_ID} and {INDEX_DATE} (EXTERNAL strategy)')
    parser.add_argument('--output', type=str, default=None, help='Output .xlsx path')
    args = parser.parse_args()

    data = load_source_tables(Path(args.data_dir))

    index_info = args.index_info
    if args.index_file:
        index_info = pd.read_csv(args.index_file, dtype=str)

    pipeline = MedicationAtIndexPipeline(data, index_info)
    pipeline.run(filename=args.output)

    print("Pipeline complete!")


if __name__ == "__main__":
    main()
