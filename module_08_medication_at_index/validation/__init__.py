"""
Module 8 Validation
===================

Data-quality checks recorded during a run.
"""

from .data_quality import (
    DataQualityReport,
    check_index_cardinality,
    check_join_cardinality,
    check_interval_overlap,
    check_bionaive_before_index,
)

__all__ = [
    'DataQualityReport',
    'check_index_cardinality',
    'check_join_cardinality',
    'check_interval_overlap',
    'check_bionaive_before_index',
]
