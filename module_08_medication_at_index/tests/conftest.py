"""Shared SPARC source tables for medication-at-index tests."""

import pytest
import pandas as pd

from module_08_medication_at_index.config.medication_at_index_config import PATIENT_ID


def prescriptions_table(rows):
    """Prescriptions extract from (patient, medication, moa, start, end, source, current) tuples."""
    return pd.DataFrame(rows, columns=[
        PATIENT_ID,
        'MEDICATION_NAME',
        'MOA',
        'MED_START_DATE',
        'MED_END_DATE',
        'DATA_SOURCE',
        'CURRENT_MEDICATION',
    ])


@pytest.fixture
def make_prescriptions():
    """Factory for prescriptions extracts."""
    return prescriptions_table


@pytest.fixture
def taxonomy():
    """Small MOA taxonomy."""
    return {
        'Aminosalicylates': ['Mesalamine', 'Sulfasalazine'],
        'Biologic': ['Adalimumab', 'Infliximab', 'Ustekinumab', 'Vedolizumab'],
        'Corticosteroids': ['Prednisone'],
        'Immunomodulators': ['Azathioprine', 'Methotrexate'],
    }


@pytest.fixture
def sparc_data():
    """Two-patient SPARC extract covering every source table."""
    prescriptions = prescriptions_table([
        ('P1', 'Infliximab', 'Biologic', '01-JAN-2020', None, 'EMR', None),
        ('P1', 'Vedolizumab', 'Biologic', '01-JUN-2020', None, 'EMR', None),
        ('P1', 'Mesalamine', 'Aminosalicylates', '15-FEB-2019', '01-MAR-2020', 'EMR', None),
        ('P1', 'Azathioprine', 'Immunomodulators', '10-JAN-2018', None, 'ECRF', 'YES'),
        ('P2', 'Methotrexate', 'Immunomodulators', '01-JAN-2021', None, 'EMR', None),
        ('P2', 'Prednisone', 'Corticosteroids', '20-JAN-2021', '20-MAR-2021', 'EMR', None),
    ])

    demographics = pd.DataFrame({
        PATIENT_ID: ['P1', 'P2'],
        'DATE_OF_CONSENT': ['01-FEB-2019', '15-MAR-2021'],
        'DATE_OF_CONSENT_WITHDRAWN': [None, None],
        'BIRTH_YEAR': ['1980', '1991'],
        'SEX': ['Female', 'Male'],
    })

    diagnosis = pd.DataFrame({
        PATIENT_ID: ['P1', 'P1', 'P2'],
        'DIAGNOSIS': ['IBD Unclassified', "Crohn's Disease", 'Ulcerative Colitis'],
        'DIAGNOSIS_DATE': ['01-JAN-2015', '01-JAN-2017', '01-JAN-2020'],
    })

    encounter = pd.DataFrame({
        PATIENT_ID: ['P1', 'P1', 'P2'],
        'VISIT_ENCOUNTER_START_DATE': ['01-MAR-2020', '01-JUL-2020', '01-FEB-2021'],
        'TYPE_OF_ENCOUNTER': ['Office Visit', 'Telemedicine', 'Office Visit'],
    })

    procedures = pd.DataFrame({
        PATIENT_ID: ['P1', 'P1', 'P2'],
        'PROC_CONCEPT_NAME': ['Colonoscopy', 'Chest X-Ray', 'Flexible Sigmoidoscopy'],
        'PROC_START_DATE': ['01-MAR-2020', '05-MAR-2020', '01-FEB-2021'],
    })

    omics = pd.DataFrame({
        PATIENT_ID: ['P1', 'P1', 'P2'],
        'SAMPLE_COLLECTED_DATE': ['01-MAR-2020', '01-JUL-2020', '01-FEB-2021'],
        'SAMPLE_ID': ['S1', 'S2', 'S3'],
        'DATA_SOURCE': ['OMICS', 'OMICS', 'OMICS'],
    })

    biosample = pd.DataFrame({
        PATIENT_ID: ['P2'],
        'Date Sample Collected': ['01-FEB-2021'],
        'Biosample Type': ['Plasma'],
    })

    observations = pd.DataFrame({
        PATIENT_ID: ['P1', 'P2', 'P2'],
        'OBS_TEST_CONCEPT_NAME': ['Biologic Naive', 'Biologic Naive', 'Smoking Status'],
        'OBS_TEST_RESULT_DATE': ['01-FEB-2019', '15-JAN-2021', '15-JAN-2021'],
        'DESCRIPTIVE_SYMP_TEST_RESULTS': ['Yes', 'Yes', 'Never'],
    })

    return {
        'prescriptions': prescriptions,
        'demographics': demographics,
        'diagnosis': diagnosis,
        'encounter': encounter,
        'procedures': procedures,
        'omics_patient_mapping': omics,
        'biosample': biosample,
        'observations': observations,
    }
