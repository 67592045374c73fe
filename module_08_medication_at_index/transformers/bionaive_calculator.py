"""
Biologic-Naive Calculator
=========================

BIONAIVE = earliest date on or before the index date on which the patient
was recorded as never having received a biologic.
"""

import pandas as pd

from ..config.medication_at_index_config import PATIENT_ID, INDEX_DATE


def calculate_bionaive(markers: pd.DataFrame, index: pd.DataFrame) -> pd.DataFrame:
    """
    Earliest biologic-naive marker per patient and index date.

    Args:
        markers: Output of extract_bionaive_markers (PATIENT_ID, BIONAIVE)
        index: Index table with PATIENT_ID, INDEX_DATE

    Returns:
        DataFrame with PATIENT_ID, INDEX_DATE, BIONAIVE; index dates without
        an eligible marker have no row
    """
    pairs = index[[PATIENT_ID, INDEX_DATE]].drop_duplicates()
    merged = pairs.merge(markers[[PATIENT_ID, 'BIONAIVE']], on=PATIENT_ID, how='inner')
    eligible = merged[merged['BIONAIVE'].notna() & (merged['BIONAIVE'] <= merged[INDEX_DATE])]

    if eligible.empty:
        return pd.DataFrame({
            PATIENT_ID: pd.Series(dtype=object),
            INDEX_DATE: pd.Series(dtype='datetime64[ns]'),
            'BIONAIVE': pd.Series(dtype='datetime64[ns]'),
        })

    return (
        eligible.groupby([PATIENT_ID, INDEX_DATE], as_index=False)['BIONAIVE']
        .min()
        .reset_index(drop=True)
    )
