"""
Medication-State Evaluator
==========================

Decides which medication of each MOA class a patient was on at each index
date.

An interval is active at an index date when

    MED_START_DATE <= INDEX_DATE < MED_END_DATE

or when it is ongoing (MED_END_DATE is NaT) and INDEX_DATE >= MED_START_DATE.
When several intervals of one class are active, the latest start wins;
intervals sharing that start are all kept and reported together.
"""

import logging
import pandas as pd
from typing import Optional

from ..config.medication_at_index_config import (
    PATIENT_ID,
    INDEX_DATE,
    MEDICATION_CONFIG,
)
from .interval_stitcher import INTERVAL_COLUMNS

logger = logging.getLogger(__name__)

STATE_KEYS = [PATIENT_ID, INDEX_DATE, 'MOA']
STATE_COLUMNS = STATE_KEYS + ['MEDICATION_NAME', 'IS_ACTIVE']
SELECTED_COLUMNS = [PATIENT_ID, INDEX_DATE] + INTERVAL_COLUMNS[1:]


def _pair_with_index(intervals: pd.DataFrame, index: pd.DataFrame) -> pd.DataFrame:
    """Every interval alongside every index date of the same patient."""
    pairs = index[[PATIENT_ID, INDEX_DATE]].drop_duplicates()
    paired = intervals.merge(pairs, on=PATIENT_ID, how='inner')
    return paired[SELECTED_COLUMNS]


# =============================================================================
# CONTAINMENT
# =============================================================================

def find_active_intervals(intervals: pd.DataFrame, index: pd.DataFrame) -> pd.DataFrame:
    """
    Intervals that contain an index date.

    Args:
        intervals: Stitched intervals (INTERVAL_COLUMNS)
        index: Index table with PATIENT_ID, INDEX_DATE

    Returns:
        One row per (interval, index date) pair that is active
    """
    paired = _pair_with_index(intervals, index)

    start = paired['MED_START_DATE']
    end = paired['MED_END_DATE']
    index_date = paired[INDEX_DATE]

    active = (start <= index_date) & (end.isna() | (index_date < end))
    return paired[active].reset_index(drop=True)


def resolve_tie_breaks(active: pd.DataFrame) -> pd.DataFrame:
    """
    Keep the latest-starting interval(s) per patient, index date and MOA.

    Rows without a start date survive only in groups where no row is dated.
    """
    if active.empty:
        return active.reset_index(drop=True)

    latest = active.groupby(STATE_KEYS)['MED_START_DATE'].transform('max')
    keep = latest.isna() | (active['MED_START_DATE'] == latest)

    selected = active[keep].sort_values(STATE_KEYS + ['MEDICATION_NAME'], kind='mergesort')
    return selected.reset_index(drop=True)


def select_active_intervals(intervals: pd.DataFrame, index: pd.DataFrame) -> pd.DataFrame:
    """Active intervals after the latest-start tie-break."""
    selected = resolve_tie_breaks(find_active_intervals(intervals, index))
    logger.info(
        f"{len(selected):,} active intervals at {len(index[[PATIENT_ID, INDEX_DATE]].drop_duplicates()):,} index dates"
    )
    return selected


def select_enrollment_medications(snapshot: pd.DataFrame, index: pd.DataFrame) -> pd.DataFrame:
    """
    Medications current at enrollment, as reported on the consent form.

    The snapshot already describes the consent date, so no containment test
    is applied.

    Args:
        snapshot: Output of current_medications_at_consent
        index: ENROLLMENT index table

    Returns:
        Selected rows in the same layout as select_active_intervals
    """
    return resolve_tie_breaks(_pair_with_index(snapshot, index))


# =============================================================================
# COLLAPSE
# =============================================================================

def collapse_state_rows(selected: pd.DataFrame, delimiter: Optional[str] = None) -> pd.DataFrame:
    """
    One row per patient, index date and MOA class.

    Args:
        selected: Output of select_active_intervals
        delimiter: Joins tied medication names (default from config)

    Returns:
        DataFrame with STATE_COLUMNS; IS_ACTIVE is always True
    """
    delimiter = delimiter if delimiter is not None else MEDICATION_CONFIG.name_delimiter

    if selected.empty:
        return pd.DataFrame({
            PATIENT_ID: pd.Series(dtype=object),
            INDEX_DATE: pd.Series(dtype='datetime64[ns]'),
            'MOA': pd.Series(dtype=object),
            'MEDICATION_NAME': pd.Series(dtype=object),
            'IS_ACTIVE': pd.Series(dtype=bool),
        })

    state = (
        selected.groupby(STATE_KEYS, as_index=False)['MEDICATION_NAME']
        .agg(lambda names: delimiter.join(sorted(set(names))))
    )
    state['IS_ACTIVE'] = True

    return state[STATE_COLUMNS]


def evaluate_medication_state(
    intervals: pd.DataFrame,
    index: pd.DataFrame,
    delimiter: Optional[str] = None,
) -> pd.DataFrame:
    """Intervals + index dates -> medication state rows."""
    return collapse_state_rows(select_active_intervals(intervals, index), delimiter)
