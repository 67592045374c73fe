"""Tests for index date strategies and strategy selection."""

import pytest
import pandas as pd

from module_08_medication_at_index.config.medication_at_index_config import PATIENT_ID, INDEX_DATE
from module_08_medication_at_index.transformers.index_date_resolver import (
    IndexStrategy,
    ExternalResolver,
    select_strategy,
    get_resolver,
    resolve_index_dates,
)
from module_08_medication_at_index.validation.data_quality import (
    DataQualityReport,
    check_index_cardinality,
)


def _dates(resolution, patient):
    rows = resolution.index[resolution.index[PATIENT_ID] == patient]
    return sorted(rows[INDEX_DATE])


class TestStrategySelection:
    """Exactly one strategy runs; the priority order is fixed."""

    @pytest.mark.parametrize("requested,expected", [
        (['LATEST', 'ENROLLMENT'], IndexStrategy.ENROLLMENT),
        (['BIOSAMPLE', 'ENDOSCOPY', 'LATEST'], IndexStrategy.ENDOSCOPY),
        (['LATEST', 'OMICS', 'BIOSAMPLE'], IndexStrategy.OMICS),
        (['LATEST', 'BIOSAMPLE'], IndexStrategy.BIOSAMPLE),
        (['LATEST'], IndexStrategy.LATEST),
    ])
    def test_priority(self, requested, expected):
        assert select_strategy(requested) is expected

    def test_single_name(self):
        assert select_strategy('omics') is IndexStrategy.OMICS

    def test_enum_member(self):
        assert select_strategy(IndexStrategy.LATEST) is IndexStrategy.LATEST

    def test_dataframe_is_external(self):
        table = pd.DataFrame({PATIENT_ID: ['P1'], INDEX_DATE: ['01-JAN-2020']})
        assert select_strategy(table) is IndexStrategy.EXTERNAL
        assert isinstance(get_resolver(table), ExternalResolver)

    def test_unknown_strategy(self):
        with pytest.raises(ValueError, match="Unknown index strategy"):
            select_strategy(['LATEST', 'SURGERY'])

    def test_empty_selection(self):
        with pytest.raises(ValueError, match="No index strategy"):
            select_strategy([])

    def test_external_without_table(self):
        with pytest.raises(ValueError, match="EXTERNAL"):
            get_resolver('EXTERNAL')


class TestResolvers:
    """Index dates produced by each strategy."""

    def test_enrollment(self, sparc_data):
        resolution = resolve_index_dates(sparc_data, 'ENROLLMENT')

        assert resolution.strategy is IndexStrategy.ENROLLMENT
        assert _dates(resolution, 'P1') == [pd.Timestamp('2019-02-01')]
        assert _dates(resolution, 'P2') == [pd.Timestamp('2021-03-15')]

    def test_latest_keeps_encounter_type(self, sparc_data):
        resolution = resolve_index_dates(sparc_data, 'LATEST')
        p1 = resolution.index[resolution.index[PATIENT_ID] == 'P1'].iloc[0]

        assert p1[INDEX_DATE] == pd.Timestamp('2020-07-01')
        assert p1['TYPE_OF_ENCOUNTER'] == 'Telemedicine'

    def test_latest_without_encounters(self, sparc_data):
        """A patient with no encounter has no LATEST index date."""
        sparc_data['encounter'] = sparc_data['encounter'][sparc_data['encounter'][PATIENT_ID] != 'P2']
        resolution = resolve_index_dates(sparc_data, 'LATEST')

        assert 'P2' not in set(resolution.index[PATIENT_ID])

    def test_endoscopy_terms(self, sparc_data):
        """Only endoscopic procedures become index dates."""
        resolution = resolve_index_dates(sparc_data, 'ENDOSCOPY')

        assert _dates(resolution, 'P1') == [pd.Timestamp('2020-03-01')]
        assert _dates(resolution, 'P2') == [pd.Timestamp('2021-02-01')]

    def test_omics_keeps_sample_table(self, sparc_data):
        resolution = resolve_index_dates(sparc_data, 'OMICS')

        assert len(resolution.index) == 3
        assert list(resolution.collection_events['SAMPLE_ID']) == ['S1', 'S2', 'S3']
        assert 'DATA_SOURCE' not in resolution.collection_events.columns

    def test_biosample(self, sparc_data):
        resolution = resolve_index_dates(sparc_data, 'BIOSAMPLE')

        assert _dates(resolution, 'P2') == [pd.Timestamp('2021-02-01')]
        assert 'Biosample Type' in resolution.collection_events.columns

    def test_external_columns_case_insensitive(self, sparc_data):
        table = pd.DataFrame({
            PATIENT_ID.lower(): ['P1', 'P1'],
            'index_date': ['01-MAR-2020', '2020-07-01'],
        })
        resolution = resolve_index_dates(sparc_data, table)

        assert resolution.strategy is IndexStrategy.EXTERNAL
        assert _dates(resolution, 'P1') == [pd.Timestamp('2020-03-01'), pd.Timestamp('2020-07-01')]

    def test_external_missing_column(self, sparc_data):
        table = pd.DataFrame({PATIENT_ID: ['P1']})
        with pytest.raises(ValueError, match="index_info"):
            resolve_index_dates(sparc_data, table)

    def test_unparsable_index_dates_dropped(self, sparc_data):
        sparc_data['demographics'].loc[1, 'DATE_OF_CONSENT'] = 'unknown'
        report = DataQualityReport("resolver")
        resolution = resolve_index_dates(sparc_data, 'ENROLLMENT', report)

        assert set(resolution.index[PATIENT_ID]) == {'P1'}
        assert report.dropped['unparsable demographics.INDEX_DATE'] == {'P2'}

    def test_no_index_dates_is_a_warning(self, sparc_data):
        sparc_data['procedures'] = sparc_data['procedures'].iloc[0:0]
        report = DataQualityReport("resolver")
        resolution = resolve_index_dates(sparc_data, 'ENDOSCOPY', report)

        assert resolution.index.empty
        assert any('ENDOSCOPY yields index dates' == w['description'] for w in report.warnings)

    def test_missing_column(self, sparc_data):
        sparc_data['encounter'] = sparc_data['encounter'].drop(columns=['TYPE_OF_ENCOUNTER'])
        with pytest.raises(ValueError, match="encounter.*TYPE_OF_ENCOUNTER"):
            resolve_index_dates(sparc_data, 'LATEST')


class TestIndexCardinality:
    """Duplicate index rows for one-row-per-patient strategies."""

    def test_duplicates_flagged_not_collapsed(self):
        index = pd.DataFrame({
            PATIENT_ID: ['P1', 'P1', 'P2'],
            INDEX_DATE: pd.to_datetime(['2020-01-01', '2020-02-01', '2020-01-01']),
        })
        report = DataQualityReport("cardinality")
        duplicated = check_index_cardinality(index, 'ENROLLMENT', report)

        assert set(duplicated[PATIENT_ID]) == {'P1'}
        assert report.failed == 1
        assert len(index) == 3

    def test_multi_row_strategies_ignored(self):
        index = pd.DataFrame({
            PATIENT_ID: ['P1', 'P1'],
            INDEX_DATE: pd.to_datetime(['2020-01-01', '2020-02-01']),
        })
        report = DataQualityReport("cardinality")
        check_index_cardinality(index, 'ENDOSCOPY', report)

        assert report.failed == 0
