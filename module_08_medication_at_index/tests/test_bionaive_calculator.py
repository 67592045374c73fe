"""Tests for biologic-naive dates."""

import pandas as pd

from module_08_medication_at_index.config.medication_at_index_config import PATIENT_ID, INDEX_DATE
from module_08_medication_at_index.extractors.source_tables import extract_bionaive_markers
from module_08_medication_at_index.transformers.bionaive_calculator import calculate_bionaive
from module_08_medication_at_index.validation.data_quality import (
    DataQualityReport,
    check_bionaive_before_index,
)


def _markers(rows):
    df = pd.DataFrame(rows, columns=[PATIENT_ID, 'BIONAIVE'])
    df['BIONAIVE'] = pd.to_datetime(df['BIONAIVE'])
    return df


def _index(rows):
    df = pd.DataFrame(rows, columns=[PATIENT_ID, INDEX_DATE])
    df[INDEX_DATE] = pd.to_datetime(df[INDEX_DATE])
    return df


class TestCalculateBionaive:
    """Earliest marker on or before each index date."""

    def test_earliest_marker(self):
        markers = _markers([('P1', '2019-05-01'), ('P1', '2018-01-01')])
        result = calculate_bionaive(markers, _index([('P1', '2020-01-01')]))

        assert result['BIONAIVE'].tolist() == [pd.Timestamp('2018-01-01')]

    def test_markers_after_index_ignored(self):
        markers = _markers([('P1', '2021-01-01')])
        result = calculate_bionaive(markers, _index([('P1', '2020-01-01')]))
        assert result.empty

    def test_marker_on_index_date_counts(self):
        markers = _markers([('P1', '2020-01-01')])
        result = calculate_bionaive(markers, _index([('P1', '2020-01-01')]))
        assert len(result) == 1

    def test_per_index_date(self):
        """Each index date only sees markers up to itself."""
        markers = _markers([('P1', '2019-06-01')])
        result = calculate_bionaive(markers, _index([('P1', '2019-01-01'), ('P1', '2020-01-01')]))

        assert result[INDEX_DATE].tolist() == [pd.Timestamp('2020-01-01')]

    def test_never_after_index(self):
        markers = _markers([('P1', '2018-01-01'), ('P1', '2022-01-01'), ('P2', '2019-01-01')])
        index = _index([('P1', '2020-01-01'), ('P1', '2023-01-01'), ('P2', '2018-01-01')])
        result = calculate_bionaive(markers, index)

        assert (result['BIONAIVE'] <= result[INDEX_DATE]).all()

    def test_no_markers(self):
        result = calculate_bionaive(_markers([]), _index([('P1', '2020-01-01')]))

        assert result.empty
        assert list(result.columns) == [PATIENT_ID, INDEX_DATE, 'BIONAIVE']


class TestBionaiveMarkers:
    """Biologic-naive markers from observations."""

    def test_affirmative_concepts_only(self, sparc_data):
        markers = extract_bionaive_markers(sparc_data['observations'])

        assert sorted(markers[PATIENT_ID]) == ['P1', 'P2']
        assert markers.set_index(PATIENT_ID).loc['P2', 'BIONAIVE'] == pd.Timestamp('2021-01-15')

    def test_no_observations(self):
        markers = extract_bionaive_markers(None)
        assert markers.empty
        assert list(markers.columns) == [PATIENT_ID, 'BIONAIVE']

    def test_late_bionaive_flagged(self):
        cohort = _index([('P1', '2020-01-01')])
        cohort['BIONAIVE'] = pd.to_datetime(['2021-01-01'])
        report = DataQualityReport("bionaive")
        check_bionaive_before_index(cohort, report)

        assert report.failed == 1
