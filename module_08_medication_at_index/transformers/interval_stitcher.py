"""
Medication Interval Stitcher
============================

Builds per-patient medication intervals from prescription start events
reported by the EMR and by patient case report forms (ECRF).

Within a patient and MOA class, a medication without a reported end date is
closed by the next later start of the same class. A reported end that runs
past the next start is clamped to it, so intervals of one class never
overlap. Medications starting on the same day are left open side by side.
"""

import logging
import pandas as pd
from typing import Dict, List, Optional

from ..config.medication_at_index_config import (
    PATIENT_ID,
    MEDICATION_CONFIG,
    get_medication_class_map,
)
from ..extractors.date_parser import parse_dmy, count_unparsable, is_blank, next_distinct_date
from ..extractors.source_tables import require_columns

logger = logging.getLogger(__name__)

INTERVAL_COLUMNS = [
    PATIENT_ID,
    'MEDICATION_NAME',
    'MOA',
    'MED_START_DATE',
    'MED_END_DATE',
    'REPORTED_END_DATE',
    'DATA_SOURCE',
]


# =============================================================================
# PARSING
# =============================================================================

def normalize_moa(
    moa: pd.Series,
    medication: pd.Series,
    taxonomy: Dict[str, List[str]],
) -> pd.Series:
    """
    Spell MOA classes as the taxonomy does; fill blanks from the medication name.

    Args:
        moa: Reported MOA class
        medication: Medication name
        taxonomy: MOA class -> medication names

    Returns:
        MOA Series, NaN where neither source resolves a class
    """
    classes = {name.lower(): name for name in taxonomy}
    class_by_name = get_medication_class_map(taxonomy)

    reported = moa.where(~is_blank(moa)).map(lambda v: str(v).strip(), na_action='ignore')
    canonical = reported.map(lambda v: classes.get(v.lower(), v), na_action='ignore')
    inferred = medication.map(lambda v: class_by_name.get(v.lower()), na_action='ignore')

    return canonical.fillna(inferred)


def normalize_medication_name(medication: pd.Series, taxonomy: Dict[str, List[str]]) -> pd.Series:
    """Spell medication names as the taxonomy does; unknown names are only stripped."""
    names = {name.lower().strip(): name for names in taxonomy.values() for name in names}

    stripped = medication.map(lambda v: str(v).strip(), na_action='ignore')
    return stripped.map(lambda v: names.get(v.lower(), v), na_action='ignore')


def parse_prescriptions(prescriptions: pd.DataFrame, taxonomy: Dict[str, List[str]]) -> pd.DataFrame:
    """
    Parse prescription dates and normalise name/MOA/source columns.

    No rows are dropped; the raw date text is kept in *_RAW columns.

    Args:
        prescriptions: Prescriptions extract
        taxonomy: MOA class -> medication names

    Returns:
        New DataFrame with parsed MED_START_DATE / MED_END_DATE
    """
    require_columns(prescriptions, 'prescriptions')

    df = prescriptions.copy()
    df['MEDICATION_NAME'] = normalize_medication_name(df['MEDICATION_NAME'], taxonomy)
    df['MOA'] = normalize_moa(df['MOA'], df['MEDICATION_NAME'], taxonomy)
    df['DATA_SOURCE'] = df['DATA_SOURCE'].map(lambda v: str(v).strip().upper(), na_action='ignore')

    for col in ['MED_START_DATE', 'MED_END_DATE']:
        df[f'{col}_RAW'] = df[col]
        df[col] = parse_dmy(df[col])

    return df


# =============================================================================
# CLEANING
# =============================================================================

def clean_prescriptions(parsed: pd.DataFrame, report=None) -> pd.DataFrame:
    """
    Drop prescription events that cannot form an interval.

    Each reason is counted in the data-quality report. Events reported by
    both sources with the same patient, MOA, medication and start date are
    reconciled by source priority.

    Args:
        parsed: Output of parse_prescriptions
        report: Optional DataQualityReport

    Returns:
        New DataFrame of usable events
    """
    df = parsed.copy()

    drop_reasons = {
        'unparsable MED_START_DATE': count_unparsable(df['MED_START_DATE_RAW'], df['MED_START_DATE']),
        'missing MED_START_DATE': is_blank(df['MED_START_DATE_RAW']),
        'unparsable MED_END_DATE': count_unparsable(df['MED_END_DATE_RAW'], df['MED_END_DATE']),
        'missing MEDICATION_NAME': is_blank(df['MEDICATION_NAME']),
        'unresolved MOA': df['MOA'].isna(),
        'MED_END_DATE before MED_START_DATE': df['MED_END_DATE'] < df['MED_START_DATE'],
    }

    keep = pd.Series(True, index=df.index)
    for reason, mask in drop_reasons.items():
        dropped = mask & keep
        if report is not None:
            report.record_dropped(reason, df[dropped])
        elif dropped.any():
            logger.warning(f"Dropped {dropped.sum():,} prescription rows: {reason}")
        keep &= ~mask

    df = df[keep]

    # Source reconciliation
    ranks = {source: i for i, source in enumerate(MEDICATION_CONFIG.source_priority)}
    df = df.assign(
        _source_rank=df['DATA_SOURCE'].map(ranks).fillna(len(ranks)),
        _name_key=df['MEDICATION_NAME'].map(lambda v: str(v).upper(), na_action='ignore'),
    )
    df = df.sort_values('_source_rank', kind='mergesort')
    df = df.drop_duplicates([PATIENT_ID, 'MOA', '_name_key', 'MED_START_DATE'], keep='first')

    return df.drop(columns=['_source_rank', '_name_key']).sort_index()


# =============================================================================
# STITCHING
# =============================================================================

def stitch_intervals(events: pd.DataFrame) -> pd.DataFrame:
    """
    Derive effective end dates within each patient/MOA class.

    Args:
        events: Cleaned prescription events

    Returns:
        New DataFrame with INTERVAL_COLUMNS; MED_END_DATE is NaT for ongoing
    """
    df = events.sort_values([PATIENT_ID, 'MOA', 'MED_START_DATE'], kind='mergesort')
    df = df.reset_index(drop=True)

    if df.empty:
        df['REPORTED_END_DATE'] = df['MED_END_DATE']
        return df[INTERVAL_COLUMNS]

    next_start = df.groupby([PATIENT_ID, 'MOA'], sort=False)['MED_START_DATE'].transform(next_distinct_date)

    reported = df['MED_END_DATE']
    df['REPORTED_END_DATE'] = reported
    df['MED_END_DATE'] = reported.where(next_start.isna() | (reported <= next_start), next_start)

    return df[INTERVAL_COLUMNS]


def build_interval_set(
    prescriptions: pd.DataFrame,
    taxonomy: Dict[str, List[str]],
    report=None,
    parsed: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Prescriptions extract -> canonical medication intervals.

    Pass parsed when the caller already ran parse_prescriptions on the
    same extract (the consent snapshot needs it too).
    """
    if parsed is None:
        parsed = parse_prescriptions(prescriptions, taxonomy)
    events = clean_prescriptions(parsed, report)
    intervals = stitch_intervals(events)

    logger.info(
        f"Stitched {len(intervals):,} intervals for {intervals[PATIENT_ID].nunique():,} patients"
    )
    return intervals


# =============================================================================
# MEDICATION AT CONSENT
# =============================================================================

def current_medications_at_consent(parsed: pd.DataFrame) -> pd.DataFrame:
    """
    Medications the patient reported as current on the enrollment form.

    Args:
        parsed: Output of parse_prescriptions

    Returns:
        New DataFrame of ECRF rows answered as current, with a resolved MOA
    """
    answers = {a.upper() for a in MEDICATION_CONFIG.affirmative_answers}
    answer = parsed['CURRENT_MEDICATION'].map(lambda v: str(v).strip().upper(), na_action='ignore')
    reported = parsed['DATA_SOURCE'] == MEDICATION_CONFIG.patient_reported_source

    snapshot = parsed[answer.isin(answers) & reported & parsed['MOA'].notna()]
    snapshot = snapshot[~is_blank(snapshot['MEDICATION_NAME'])]

    snapshot = snapshot.assign(REPORTED_END_DATE=snapshot['MED_END_DATE'])
    return snapshot[INTERVAL_COLUMNS].drop_duplicates().reset_index(drop=True)


def no_current_medication_flags(
    snapshot: pd.DataFrame,
    index: pd.DataFrame,
    parsed: pd.DataFrame,
) -> pd.DataFrame:
    """
    NO_CURRENT_IBD_MEDICATION_AT_ENROLLMENT per indexed patient.

    1 when the patient filled in the enrollment medication form but reported
    nothing as current, 0 when something was reported as current, NA when
    the patient has no enrollment-form (ECRF) rows at all.

    Args:
        snapshot: Output of current_medications_at_consent
        index: ENROLLMENT index table
        parsed: Output of parse_prescriptions

    Returns:
        DataFrame with PATIENT_ID, NO_CURRENT_IBD_MEDICATION_AT_ENROLLMENT (Int64)
    """
    patients = index[[PATIENT_ID]].drop_duplicates().reset_index(drop=True)
    on_form = parsed.loc[parsed['DATA_SOURCE'] == MEDICATION_CONFIG.patient_reported_source, PATIENT_ID]

    has_current = patients[PATIENT_ID].isin(snapshot[PATIENT_ID])
    flag = pd.Series((~has_current).astype(int), dtype='Int64')
    flag[~patients[PATIENT_ID].isin(on_form)] = pd.NA

    return patients.assign(NO_CURRENT_IBD_MEDICATION_AT_ENROLLMENT=flag)
