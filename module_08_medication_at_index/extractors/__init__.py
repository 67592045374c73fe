"""
Module 8 Extractors
===================

Date parsing and thin extracts over the SPARC source tables.
"""

from .date_parser import (
    is_blank,
    parse_dmy,
    count_unparsable,
    next_distinct_date,
)

from .source_tables import (
    require_tables,
    require_columns,
    parse_and_drop_dates,
    extract_consent,
    extract_demographics,
    extract_diagnosis,
    extract_latest,
    extract_endoscopy,
    extract_bionaive_markers,
    load_source_tables,
)

__all__ = [
    # Dates
    'is_blank',
    'parse_dmy',
    'count_unparsable',
    'next_distinct_date',
    # Source tables
    'require_tables',
    'require_columns',
    'parse_and_drop_dates',
    'extract_consent',
    'extract_demographics',
    'extract_diagnosis',
    'extract_latest',
    'extract_endoscopy',
    'extract_bionaive_markers',
    'load_source_tables',
]
