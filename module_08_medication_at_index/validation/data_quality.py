"""
Data Quality Checks
===================

Recoverable data problems found while building the medication-at-index
cohort. Schema and configuration errors raise instead; everything here is
recorded, logged, and the run continues.

Checks:
- Dropped rows (unparsable dates, unknown MOA, inverted intervals)
- Index-date cardinality for one-row-per-patient strategies
- Same-class interval overlap after stitching
- BIONAIVE never after INDEX_DATE
"""

import logging
from typing import Dict, List, Set

import pandas as pd

from ..config.medication_at_index_config import (
    PATIENT_ID,
    INDEX_DATE,
    STRATEGY_CONFIG,
)
from ..extractors.date_parser import next_distinct_date

logger = logging.getLogger(__name__)


class DataQualityReport:
    """Container for data-quality check results of one run."""

    def __init__(self, name: str):
        self.name = name
        self.checks = []
        self.passed = 0
        self.failed = 0
        self.dropped: Dict[str, Set[str]] = {}

    def add_check(self, description: str, passed: bool, details: str = ""):
        self.checks.append({
            'description': description,
            'passed': passed,
            'details': details,
        })
        if passed:
            self.passed += 1
        else:
            self.failed += 1
            logger.warning(f"{description}: {details}" if details else description)

    def record_dropped(self, reason: str, rows: pd.DataFrame):
        """Record rows excluded for `reason` along with their patients."""
        patients = set(rows[PATIENT_ID].dropna().astype(str)) if len(rows) else set()
        self.dropped.setdefault(reason, set()).update(patients)
        self.add_check(
            f"No rows dropped: {reason}",
            len(rows) == 0,
            f"{len(rows):,} rows across {len(patients):,} patients",
        )

    @property
    def warnings(self) -> List[Dict]:
        return [check for check in self.checks if not check['passed']]

    def summary(self) -> str:
        status = "PASS" if self.failed == 0 else "WARN"
        return f"{self.name}: {status} ({self.passed}/{self.passed + self.failed} checks)"

    def report(self) -> str:
        lines = [f"\n{'='*60}", f"{self.name}", "="*60]
        for check in self.checks:
            icon = "✓" if check['passed'] else "✗"
            lines.append(f"  {icon} {check['description']}")
            if check['details']:
                lines.append(f"      {check['details']}")
        lines.append(self.summary())
        return "\n".join(lines)


def check_index_cardinality(
    index: pd.DataFrame,
    strategy: str,
    report: DataQualityReport,
) -> pd.DataFrame:
    """
    Flag patients with more than one index date where exactly one is expected.

    Duplicated patients are reported, not collapsed.

    Returns:
        Rows belonging to duplicated patients
    """
    if strategy not in STRATEGY_CONFIG.single_row_strategies:
        return index.iloc[0:0]

    duplicated = index[index.duplicated(PATIENT_ID, keep=False)]
    n_patients = duplicated[PATIENT_ID].nunique()
    report.add_check(
        f"One {strategy} index date per patient",
        n_patients == 0,
        f"{n_patients:,} patients with multiple index rows",
    )
    return duplicated


def check_join_cardinality(
    before: pd.DataFrame,
    after: pd.DataFrame,
    description: str,
    report: DataQualityReport,
):
    """Flag a join that multiplied rows."""
    report.add_check(
        description,
        len(after) == len(before),
        f"{len(before):,} rows before join, {len(after):,} after",
    )


def check_interval_overlap(intervals: pd.DataFrame, report: DataQualityReport) -> pd.DataFrame:
    """
    Verify stitched intervals within a patient/MOA do not overlap.

    Intervals that share a start date are exempt.

    Returns:
        Intervals whose end runs past the next distinct start
    """
    if intervals.empty:
        report.add_check("Stitched intervals do not overlap within MOA", True, "no intervals")
        return intervals

    df = intervals.sort_values([PATIENT_ID, 'MOA', 'MED_START_DATE'], kind='mergesort')
    following = df.groupby([PATIENT_ID, 'MOA'], sort=False)['MED_START_DATE'].transform(next_distinct_date)

    # ongoing interval followed by a later start, or a bounded one ending after it
    ends = df['MED_END_DATE']
    overlapping = df[following.notna() & (ends.isna() | (ends > following))]

    report.add_check(
        "Stitched intervals do not overlap within MOA",
        len(overlapping) == 0,
        f"{len(overlapping):,} overlapping intervals",
    )
    return overlapping


def check_bionaive_before_index(cohort: pd.DataFrame, report: DataQualityReport):
    """Verify BIONAIVE is never after INDEX_DATE."""
    if 'BIONAIVE' not in cohort.columns or INDEX_DATE not in cohort.columns:
        return

    late = cohort[pd.to_datetime(cohort['BIONAIVE']) > pd.to_datetime(cohort[INDEX_DATE])]
    report.add_check(
        "BIONAIVE on or before INDEX_DATE",
        len(late) == 0,
        f"{len(late):,} rows with BIONAIVE after INDEX_DATE",
    )
