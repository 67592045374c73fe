"""
Cohort Assembler
================

Joins index dates, patient passthrough columns and the medication pivots
into the medication-at-index cohort, then fixes the column layout:

    band 1  patient / demographics / diagnosis      ... DIAGNOSIS
    band 2  medication-at-index summary             ... MEDICATION_AT_INDEX
    band 3  BIONAIVE, then per tracked MOA class the class column followed
            by <MEDICATION>_START_DATE / _END_DATE / _SOURCE
"""

import logging
import re
import pandas as pd
from typing import Dict, List, Optional

from ..config.medication_at_index_config import (
    PATIENT_ID,
    INDEX_DATE,
    MEDICATION_CONFIG,
    OUTPUT_CONFIG,
    load_moa_taxonomy,
)
from ..extractors.source_tables import (
    extract_consent,
    extract_demographics,
    extract_diagnosis,
)
from ..validation.data_quality import check_join_cardinality
from .index_date_resolver import IndexResolution, IndexStrategy

logger = logging.getLogger(__name__)

KEYS = [PATIENT_ID, INDEX_DATE]

DETAIL_VALUES = {
    'MED_START_DATE': 'START_DATE',
    'MED_END_DATE': 'END_DATE',
    'DATA_SOURCE': 'SOURCE',
}


def column_name(value) -> str:
    """Medication or class name as an output column name."""
    return re.sub(r'[^0-9A-Za-z]+', '_', str(value)).strip('_').upper()


def _empty_keys() -> pd.DataFrame:
    return pd.DataFrame({
        PATIENT_ID: pd.Series(dtype=object),
        INDEX_DATE: pd.Series(dtype='datetime64[ns]'),
    })


# =============================================================================
# PIVOTS
# =============================================================================

def pivot_medication_at_index(
    state_rows: pd.DataFrame,
    tracked_classes: Optional[List[str]] = None,
    delimiter: Optional[str] = None,
) -> pd.DataFrame:
    """
    MEDICATION_AT_INDEX plus one column per tracked MOA class.

    Args:
        state_rows: Output of evaluate_medication_state
        tracked_classes: MOA classes reported as columns (default from config)
        delimiter: Joins names across classes (default from config)

    Returns:
        One row per patient and index date with at least one active class
    """
    tracked_classes = tracked_classes if tracked_classes is not None else MEDICATION_CONFIG.tracked_classes
    delimiter = delimiter if delimiter is not None else MEDICATION_CONFIG.name_delimiter
    class_columns = [column_name(moa) for moa in tracked_classes]

    if state_rows.empty:
        empty = _empty_keys()
        empty['MEDICATION_AT_INDEX'] = pd.Series(dtype=object)
        for col in class_columns:
            empty[col] = pd.Series(dtype=object)
        return empty

    ordered = state_rows.sort_values(KEYS + ['MOA'], kind='mergesort')
    summary = (
        ordered.groupby(KEYS, as_index=False)['MEDICATION_NAME']
        .agg(delimiter.join)
        .rename(columns={'MEDICATION_NAME': 'MEDICATION_AT_INDEX'})
    )

    tracked = state_rows[state_rows['MOA'].isin(tracked_classes)]
    if not tracked.empty:
        by_class = tracked.pivot(index=KEYS, columns='MOA', values='MEDICATION_NAME')
        by_class.columns = [column_name(moa) for moa in by_class.columns]
        summary = summary.merge(by_class.reset_index(), on=KEYS, how='left')

    return summary.reindex(columns=KEYS + ['MEDICATION_AT_INDEX'] + class_columns)


def pivot_medication_dates(selected: pd.DataFrame) -> pd.DataFrame:
    """
    Start, end and source of each active medication.

    Args:
        selected: Output of select_active_intervals

    Returns:
        One row per patient and index date; columns <MEDICATION>_START_DATE,
        <MEDICATION>_END_DATE and <MEDICATION>_SOURCE
    """
    if selected.empty:
        return _empty_keys()

    detail = selected[KEYS + ['MEDICATION_NAME'] + list(DETAIL_VALUES)].copy()
    detail['MEDICATION'] = detail['MEDICATION_NAME'].map(column_name)
    detail = detail.drop_duplicates(KEYS + ['MEDICATION'])

    # one pivot per value keeps the date columns typed
    parts = []
    for value, suffix in DETAIL_VALUES.items():
        part = detail.pivot(index=KEYS, columns='MEDICATION', values=value)
        part.columns = [f"{medication}_{suffix}" for medication in part.columns]
        parts.append(part)

    return pd.concat(parts, axis=1).reset_index()


# =============================================================================
# LAYOUT
# =============================================================================

def order_columns(
    strategy: IndexStrategy,
    taxonomy: Dict[str, List[str]],
    tracked_classes: Optional[List[str]] = None,
) -> List[str]:
    """Output columns for one strategy, in band order."""
    tracked_classes = tracked_classes if tracked_classes is not None else MEDICATION_CONFIG.tracked_classes

    band1 = [PATIENT_ID, 'DATE_OF_CONSENT'] + OUTPUT_CONFIG.demographic_columns + [INDEX_DATE]
    if strategy is IndexStrategy.LATEST:
        band1 += OUTPUT_CONFIG.latest_passthrough_columns
    band1.append('DIAGNOSIS')

    band2 = ['MEDICATION_AT_INDEX']
    if strategy is IndexStrategy.ENROLLMENT:
        band2.insert(0, 'NO_CURRENT_IBD_MEDICATION_AT_ENROLLMENT')

    band3 = ['BIONAIVE']
    for moa in sorted(tracked_classes, key=column_name):
        band3.append(column_name(moa))
        for medication in sorted(taxonomy.get(moa, []), key=column_name):
            band3 += [f"{column_name(medication)}_{suffix}" for suffix in OUTPUT_CONFIG.detail_suffixes]

    columns = []
    for col in band1 + band2 + band3:
        if col not in columns:
            columns.append(col)
    return columns


# =============================================================================
# ASSEMBLY
# =============================================================================

def build_base_table(data: Dict[str, pd.DataFrame], report=None) -> pd.DataFrame:
    """
    Consent, demographic and diagnosis passthrough columns per patient.

    Returns:
        DataFrame keyed by PATIENT_ID
    """
    consent = extract_consent(data['demographics'])
    demographics = extract_demographics(data['demographics'])
    diagnosis = extract_diagnosis(data['diagnosis'])

    base = consent.merge(demographics, on=PATIENT_ID, how='left')
    base = base.merge(diagnosis, on=PATIENT_ID, how='left')

    if report is not None:
        check_join_cardinality(consent, base, "Passthrough join keeps one row per patient", report)

    return base


def assemble_cohort(
    resolution: IndexResolution,
    base: pd.DataFrame,
    state_rows: pd.DataFrame,
    selected: pd.DataFrame,
    bionaive: pd.DataFrame,
    flags: Optional[pd.DataFrame] = None,
    taxonomy: Optional[Dict[str, List[str]]] = None,
    report=None,
) -> pd.DataFrame:
    """
    Merge index dates with every derived table and lay out the columns.

    Args:
        resolution: Index dates from the selected strategy
        base: Output of build_base_table
        state_rows: Output of evaluate_medication_state
        selected: Selected intervals behind state_rows
        bionaive: Output of calculate_bionaive
        flags: NO_CURRENT_IBD_MEDICATION_AT_ENROLLMENT per patient (ENROLLMENT)
        taxonomy: MOA class -> medication names (default from YAML)
        report: Optional DataQualityReport

    Returns:
        Cohort DataFrame with upper-case column names
    """
    taxonomy = taxonomy if taxonomy is not None else load_moa_taxonomy()
    strategy = resolution.strategy

    index = resolution.index
    cohort = index.merge(base, on=PATIENT_ID, how='left')
    if report is not None:
        check_join_cardinality(index, cohort, "Index join keeps one row per index date", report)

    cohort = cohort.merge(pivot_medication_at_index(state_rows), on=KEYS, how='left')
    cohort = cohort.merge(pivot_medication_dates(selected), on=KEYS, how='left')
    cohort = cohort.merge(bionaive, on=KEYS, how='left')
    if flags is not None:
        cohort = cohort.merge(flags, on=PATIENT_ID, how='left')

    cohort.columns = [str(col).upper() for col in cohort.columns]
    cohort = cohort.drop(columns=OUTPUT_CONFIG.dropped_columns, errors='ignore')
    cohort = cohort.reindex(columns=order_columns(strategy, taxonomy))

    if strategy in (IndexStrategy.OMICS, IndexStrategy.BIOSAMPLE):
        events = resolution.collection_events
        cohort = events.merge(cohort, on=KEYS, how='left', suffixes=('', '_COHORT'))
        cohort.columns = [str(col).upper() for col in cohort.columns]
        cohort = cohort.drop(columns=OUTPUT_CONFIG.dropped_columns, errors='ignore')

    logger.info(f"Assembled {len(cohort):,} rows x {len(cohort.columns)} columns ({strategy.value})")
    return cohort.reset_index(drop=True)
