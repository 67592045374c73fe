"""
Source Table Extractors
=======================

Schema checks and thin extracts over the SPARC source tables consumed by
the medication-at-index pipeline: consent, demographics, diagnosis, latest
encounter, endoscopy procedures and biologic-naive observations.
"""

import logging
import pandas as pd
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from ..config.medication_at_index_config import (
    PATIENT_ID,
    INDEX_DATE,
    SOURCE_SCHEMA,
    STRATEGY_CONFIG,
    MEDICATION_CONFIG,
    OUTPUT_CONFIG,
)
from .date_parser import parse_dmy, count_unparsable

logger = logging.getLogger(__name__)


# =============================================================================
# SCHEMA CHECKS
# =============================================================================

def require_tables(data: Dict[str, pd.DataFrame], names: Iterable[str]):
    """
    Fail fast when a required source table is absent.

    Raises:
        ValueError: naming every missing table
    """
    missing = [name for name in names if data.get(name) is None]
    if missing:
        raise ValueError(f"Missing required source table(s): {missing}")


def require_columns(df: pd.DataFrame, table_name: str, columns: Optional[List[str]] = None):
    """
    Fail fast when a source table lacks required columns.

    Args:
        df: Source table
        table_name: Key in SOURCE_SCHEMA.required_columns
        columns: Override the configured column list

    Raises:
        ValueError: naming the table and the missing columns
    """
    columns = columns if columns is not None else SOURCE_SCHEMA.required_columns[table_name]
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise ValueError(
            f"Table '{table_name}' is missing required column(s): {missing}"
        )


def parse_and_drop_dates(
    df: pd.DataFrame,
    column: str,
    table_name: str,
    report=None,
) -> pd.DataFrame:
    """Parse a date column into INDEX_DATE-ready form and drop unusable rows."""
    df = df.copy()
    raw = df[column]
    df[column] = parse_dmy(raw)

    unparsable = count_unparsable(raw, df[column])
    missing = df[column].isna() & ~unparsable

    if report is not None:
        report.record_dropped(f"unparsable {table_name}.{column}", df[unparsable])
        report.record_dropped(f"missing {table_name}.{column}", df[missing])
    elif unparsable.any():
        logger.warning(f"Dropped {unparsable.sum():,} {table_name} rows with unparsable {column}")

    return df[df[column].notna()]


# =============================================================================
# CONSENT, DEMOGRAPHICS, DIAGNOSIS
# =============================================================================

def extract_consent(demographics: pd.DataFrame) -> pd.DataFrame:
    """
    Consent dates per patient.

    Returns:
        DataFrame with PATIENT_ID, DATE_OF_CONSENT, DATE_OF_CONSENT_WITHDRAWN
    """
    require_columns(demographics, 'demographics', [PATIENT_ID, 'DATE_OF_CONSENT'])

    consent = pd.DataFrame({
        PATIENT_ID: demographics[PATIENT_ID],
        'DATE_OF_CONSENT': parse_dmy(demographics['DATE_OF_CONSENT']),
    })
    if 'DATE_OF_CONSENT_WITHDRAWN' in demographics.columns:
        consent['DATE_OF_CONSENT_WITHDRAWN'] = parse_dmy(demographics['DATE_OF_CONSENT_WITHDRAWN'])
    else:
        consent['DATE_OF_CONSENT_WITHDRAWN'] = pd.NaT

    return consent.drop_duplicates().reset_index(drop=True)


def extract_demographics(demographics: pd.DataFrame) -> pd.DataFrame:
    """Demographic passthrough columns per patient."""
    require_columns(demographics, 'demographics')

    columns = [PATIENT_ID] + OUTPUT_CONFIG.demographic_columns
    return demographics[columns].drop_duplicates().reset_index(drop=True)


def extract_diagnosis(diagnosis: pd.DataFrame) -> pd.DataFrame:
    """
    Most recent diagnosis per patient.

    Rows with an unparsable DIAGNOSIS_DATE sort before dated rows, so a
    patient keeps a diagnosis even when no row is dated.

    Returns:
        DataFrame with PATIENT_ID, DIAGNOSIS, DIAGNOSIS_DATE (one row per patient)
    """
    require_columns(diagnosis, 'diagnosis')

    dx = diagnosis[[PATIENT_ID, 'DIAGNOSIS', 'DIAGNOSIS_DATE']].copy()
    dx['DIAGNOSIS_DATE'] = parse_dmy(dx['DIAGNOSIS_DATE'])
    dx = dx.sort_values(
        [PATIENT_ID, 'DIAGNOSIS_DATE', 'DIAGNOSIS'],
        na_position='first',
        kind='mergesort',
    )
    return dx.drop_duplicates(PATIENT_ID, keep='last').reset_index(drop=True)


# =============================================================================
# INDEX DATE EXTRACTS
# =============================================================================

def extract_latest(encounter: pd.DataFrame, report=None) -> pd.DataFrame:
    """
    Most recent encounter per patient.

    Patients without a dated encounter are absent from the result.

    Returns:
        DataFrame with PATIENT_ID, INDEX_DATE, TYPE_OF_ENCOUNTER
    """
    require_columns(encounter, 'encounter')

    visits = encounter[[PATIENT_ID, 'VISIT_ENCOUNTER_START_DATE', 'TYPE_OF_ENCOUNTER']]
    visits = parse_and_drop_dates(visits, 'VISIT_ENCOUNTER_START_DATE', 'encounter', report)

    visits = visits.sort_values(
        [PATIENT_ID, 'VISIT_ENCOUNTER_START_DATE', 'TYPE_OF_ENCOUNTER'],
        kind='mergesort',
    )
    latest = visits.drop_duplicates(PATIENT_ID, keep='last')
    latest = latest.rename(columns={'VISIT_ENCOUNTER_START_DATE': INDEX_DATE})

    return latest[[PATIENT_ID, INDEX_DATE, 'TYPE_OF_ENCOUNTER']].reset_index(drop=True)


def extract_endoscopy(procedures: pd.DataFrame, report=None) -> pd.DataFrame:
    """
    Endoscopy events per patient.

    Procedures on the same day collapse into one event.

    Returns:
        DataFrame with PATIENT_ID, INDEX_DATE (one row per patient-date)
    """
    require_columns(procedures, 'procedures')

    pattern = '|'.join(STRATEGY_CONFIG.endoscopy_terms)
    names = procedures['PROC_CONCEPT_NAME'].astype(str)
    is_endoscopy = names.str.contains(pattern, case=False, regex=True, na=False)

    scopes = procedures.loc[is_endoscopy, [PATIENT_ID, 'PROC_START_DATE']]
    scopes = parse_and_drop_dates(scopes, 'PROC_START_DATE', 'procedures', report)
    scopes = scopes.rename(columns={'PROC_START_DATE': INDEX_DATE})

    return scopes.drop_duplicates().reset_index(drop=True)


# =============================================================================
# BIOLOGIC-NAIVE OBSERVATIONS
# =============================================================================

def extract_bionaive_markers(observations: Optional[pd.DataFrame], report=None) -> pd.DataFrame:
    """
    Dates on which a patient was recorded as never exposed to a biologic.

    Args:
        observations: SPARC observations table, or None when not supplied

    Returns:
        DataFrame with PATIENT_ID, BIONAIVE
    """
    if observations is None:
        return pd.DataFrame({
            PATIENT_ID: pd.Series(dtype=object),
            'BIONAIVE': pd.Series(dtype='datetime64[ns]'),
        })

    require_columns(observations, 'observations')

    concepts = {c.upper() for c in MEDICATION_CONFIG.bionaive_concepts}
    answers = {a.upper() for a in MEDICATION_CONFIG.affirmative_answers}

    concept = observations['OBS_TEST_CONCEPT_NAME'].astype(str).str.strip().str.upper()
    answer = observations['DESCRIPTIVE_SYMP_TEST_RESULTS'].astype(str).str.strip().str.upper()
    flagged = observations.loc[concept.isin(concepts) & answer.isin(answers)]

    markers = flagged[[PATIENT_ID, 'OBS_TEST_RESULT_DATE']]
    markers = parse_and_drop_dates(markers, 'OBS_TEST_RESULT_DATE', 'observations', report)
    markers = markers.rename(columns={'OBS_TEST_RESULT_DATE': 'BIONAIVE'})

    return markers.drop_duplicates().reset_index(drop=True)


# =============================================================================
# LOADING
# =============================================================================

def load_source_tables(data_dir: Path, tables: Optional[Iterable[str]] = None) -> Dict[str, pd.DataFrame]:
    """
    Load SPARC extracts saved as `<table>.csv` in one directory.

    All columns are read as text; dates are parsed downstream.

    Args:
        data_dir: Directory holding the CSV extracts
        tables: Table names to load (default: every known table present)

    Returns:
        Dictionary mapping table name -> DataFrame
    """
    data_dir = Path(data_dir)
    tables = list(tables) if tables is not None else [
        name for name in SOURCE_SCHEMA.required_columns if name != 'index_info'
    ]

    data = {}
    for name in tables:
        path = data_dir / f"{name}.csv"
        if not path.exists():
            logger.info(f"No extract for '{name}' at {path}")
            continue
        data[name] = pd.read_csv(path, dtype=str, keep_default_na=True, low_memory=False)
        logger.info(f"Loaded {len(data[name]):,} rows from {path}")

    return data
