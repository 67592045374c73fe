"""
Module 8: Medication at Index Configuration
===========================================

Central configuration for the medication-at-index pipeline.
"""

from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, List, Tuple
import yaml


# =============================================================================
# PATH CONFIGURATION
# =============================================================================

MODULE_ROOT = Path(__file__).parent.parent
PROJECT_ROOT = MODULE_ROOT.parent
DATA_DIR = PROJECT_ROOT / "Data"
EXPORTS_DIR = MODULE_ROOT / "exports"

# Config files
CONFIG_DIR = MODULE_ROOT / "config"
MOA_TAXONOMY_YAML = CONFIG_DIR / "moa_taxonomy.yaml"


# =============================================================================
# KEY COLUMNS
# =============================================================================

PATIENT_ID = 'DEIDENTIFIED_MASTER_PATIENT_ID'
INDEX_DATE = 'INDEX_DATE'


# =============================================================================
# SOURCE SCHEMA
# =============================================================================

@dataclass
class SourceSchema:
    """Required columns for each source extract."""

    required_columns: Dict[str, List[str]] = field(default_factory=lambda: {
        'prescriptions': [
            PATIENT_ID,
            'MEDICATION_NAME',
            'MOA',
            'MED_START_DATE',
            'MED_END_DATE',
            'DATA_SOURCE',
            'CURRENT_MEDICATION',
        ],
        'demographics': [PATIENT_ID, 'DATE_OF_CONSENT', 'BIRTH_YEAR', 'SEX'],
        'diagnosis': [PATIENT_ID, 'DIAGNOSIS', 'DIAGNOSIS_DATE'],
        'encounter': [PATIENT_ID, 'VISIT_ENCOUNTER_START_DATE', 'TYPE_OF_ENCOUNTER'],
        'procedures': [PATIENT_ID, 'PROC_CONCEPT_NAME', 'PROC_START_DATE'],
        'omics_patient_mapping': [PATIENT_ID, 'SAMPLE_COLLECTED_DATE'],
        'biosample': [PATIENT_ID, 'Date Sample Collected'],
        'observations': [
            PATIENT_ID,
            'OBS_TEST_CONCEPT_NAME',
            'OBS_TEST_RESULT_DATE',
            'DESCRIPTIVE_SYMP_TEST_RESULTS',
        ],
        'index_info': [PATIENT_ID, INDEX_DATE],
    })

    # Tables needed by every strategy
    always_required: Tuple[str, ...] = ('prescriptions', 'demographics', 'diagnosis')

    # Source bookkeeping columns removed from omics/biosample collection tables
    collection_drop_columns: List[str] = field(default_factory=lambda: [
        'DATA_SOURCE',
        'DEIDENTIFIED_PATIENT_ID',
        'VISIT_ENCOUNTER_ID',
    ])


SOURCE_SCHEMA = SourceSchema()


# =============================================================================
# INDEX STRATEGY CONFIGURATION
# =============================================================================

@dataclass
class StrategyConfig:
    """Index-date strategy selection settings."""

    # First match wins when several strategies are requested
    priority: List[str] = field(default_factory=lambda: [
        'ENROLLMENT',
        'ENDOSCOPY',
        'OMICS',
        'BIOSAMPLE',
        'LATEST',
        'EXTERNAL',
    ])

    # Strategies expected to produce exactly one index date per patient
    single_row_strategies: List[str] = field(default_factory=lambda: [
        'ENROLLMENT',
        'LATEST',
    ])

    # Case-insensitive substrings of PROC_CONCEPT_NAME counted as endoscopy
    endoscopy_terms: List[str] = field(default_factory=lambda: [
        'colonoscopy',
        'sigmoidoscopy',
        'ileoscopy',
        'pouchoscopy',
        'enteroscopy',
        'esophagogastroduodenoscopy',
        'upper endoscopy',
        'egd',
    ])


STRATEGY_CONFIG = StrategyConfig()


# =============================================================================
# MEDICATION CONFIGURATION
# =============================================================================

@dataclass
class MedicationConfig:
    """Medication reconciliation settings."""

    # MOA classes reported as their own columns
    tracked_classes: List[str] = field(default_factory=lambda: [
        'Aminosalicylates',
        'Biologic',
        'Immunomodulators',
    ])

    biologic_class: str = 'Biologic'

    # Joins medication names that tie within a class
    name_delimiter: str = '; '

    # Kept first when both sources report the same start
    source_priority: List[str] = field(default_factory=lambda: ['EMR', 'ECRF'])

    patient_reported_source: str = 'ECRF'

    affirmative_answers: List[str] = field(default_factory=lambda: [
        'YES', 'Y', 'TRUE', '1', 'CHECKED',
    ])

    bionaive_concepts: List[str] = field(default_factory=lambda: [
        'BIOLOGIC NAIVE',
        'NO PRIOR BIOLOGIC EXPOSURE',
    ])

    # Day-month-year text first, ISO last
    date_formats: List[str] = field(default_factory=lambda: [
        '%d-%b-%Y',
        '%d/%m/%Y',
        '%d-%m-%Y',
        '%d %b %Y',
        '%d.%m.%Y',
        '%Y-%m-%d',
        '%Y-%m-%d %H:%M:%S',
    ])


MEDICATION_CONFIG = MedicationConfig()


# =============================================================================
# OUTPUT CONFIGURATION
# =============================================================================

@dataclass
class OutputConfig:
    """Report layout and workbook settings."""

    sheet_name: str = 'med_at_index'
    default_filename: str = 'SPARC_MEDICATION.xlsx'

    # orange
    header_fill: str = 'F8CBAD'
    header_bold: bool = True

    pinned_columns: List[str] = field(default_factory=lambda: [
        'NO_CURRENT_IBD_MEDICATION_AT_ENROLLMENT',
        'MEDICATION_AT_INDEX',
        'BIONAIVE',
    ])

    dropped_columns: List[str] = field(default_factory=lambda: [
        'DATE_OF_CONSENT_WITHDRAWN',
        'DIAGNOSIS_DATE',
    ])

    demographic_columns: List[str] = field(default_factory=lambda: [
        'BIRTH_YEAR',
        'SEX',
    ])

    latest_passthrough_columns: List[str] = field(default_factory=lambda: [
        'TYPE_OF_ENCOUNTER',
    ])

    detail_suffixes: List[str] = field(default_factory=lambda: [
        'START_DATE',
        'END_DATE',
        'SOURCE',
    ])

    # Last column of the first and second header bands
    band_end_columns: Tuple[str, str] = ('DIAGNOSIS', 'MEDICATION_AT_INDEX')

    date_format: str = 'YYYY-MM-DD'


OUTPUT_CONFIG = OutputConfig()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def load_moa_taxonomy(path: Path = None) -> Dict[str, List[str]]:
    """Load MOA class -> medication names from YAML."""
    with open(path or MOA_TAXONOMY_YAML, 'r') as f:
        taxonomy = yaml.safe_load(f) or {}

    return {
        str(moa): sorted(str(name) for name in (names or []))
        for moa, names in taxonomy.items()
        if not str(moa).startswith('_')
    }


def get_medication_class_map(taxonomy: Dict[str, List[str]] = None) -> Dict[str, str]:
    """Build lowercase medication name -> MOA class lookup."""
    taxonomy = taxonomy if taxonomy is not None else load_moa_taxonomy()
    mapping = {}

    for moa, names in taxonomy.items():
        for name in names:
            mapping.setdefault(name.lower().strip(), moa)

    return mapping


def ensure_directories():
    """Create all required output directories."""
    EXPORTS_DIR.mkdir(parents=True, exist_ok=True)


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    print("=" * 60)
    print("Module 8: Medication at Index Configuration")
    print("=" * 60)
    print(f"\nModule Root: {MODULE_ROOT}")
    print(f"Data Dir: {DATA_DIR}")
    print(f"MOA Taxonomy: {MOA_TAXONOMY_YAML}")
    print(f"\nStrategy priority: {' > '.join(STRATEGY_CONFIG.priority)}")
    print(f"Tracked classes: {', '.join(MEDICATION_CONFIG.tracked_classes)}")
    taxonomy = load_moa_taxonomy()
    for moa, names in taxonomy.items():
        print(f"  {moa}: {len(names)} medications")
    print("=" * 60)
