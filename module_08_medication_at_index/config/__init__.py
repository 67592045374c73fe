"""
Module 8 Configuration Package
"""

from .medication_at_index_config import (
    # Paths
    MODULE_ROOT,
    PROJECT_ROOT,
    DATA_DIR,
    EXPORTS_DIR,
    MOA_TAXONOMY_YAML,

    # Keys
    PATIENT_ID,
    INDEX_DATE,

    # Configs
    SOURCE_SCHEMA,
    STRATEGY_CONFIG,
    MEDICATION_CONFIG,
    OUTPUT_CONFIG,

    # Helpers
    load_moa_taxonomy,
    get_medication_class_map,
    ensure_directories,
)

__all__ = [
    'MODULE_ROOT',
    'PROJECT_ROOT',
    'DATA_DIR',
    'EXPORTS_DIR',
    'MOA_TAXONOMY_YAML',
    'PATIENT_ID',
    'INDEX_DATE',
    'SOURCE_SCHEMA',
    'STRATEGY_CONFIG',
    'MEDICATION_CONFIG',
    'OUTPUT_CONFIG',
    'load_moa_taxonomy',
    'get_medication_class_map',
    'ensure_directories',
]
