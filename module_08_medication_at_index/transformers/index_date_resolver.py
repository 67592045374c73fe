"""
Index Date Resolver
===================

One resolver class per cohort-definition strategy. Every resolver exposes
`resolve(data, report)` returning an IndexResolution.

When several strategies are requested the first one in
STRATEGY_CONFIG.priority wins:

    ENROLLMENT > ENDOSCOPY > OMICS > BIOSAMPLE > LATEST > EXTERNAL
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple, Union

import pandas as pd

from ..config.medication_at_index_config import (
    PATIENT_ID,
    INDEX_DATE,
    SOURCE_SCHEMA,
    STRATEGY_CONFIG,
)
from ..extractors.source_tables import (
    require_columns,
    extract_latest,
    extract_endoscopy,
    parse_and_drop_dates,
)

logger = logging.getLogger(__name__)


class IndexStrategy(Enum):
    ENROLLMENT = 'ENROLLMENT'
    ENDOSCOPY = 'ENDOSCOPY'
    OMICS = 'OMICS'
    BIOSAMPLE = 'BIOSAMPLE'
    LATEST = 'LATEST'
    EXTERNAL = 'EXTERNAL'


@dataclass
class IndexResolution:
    """Index dates produced by one strategy."""

    strategy: IndexStrategy
    index: pd.DataFrame
    # Full sample table for OMICS / BIOSAMPLE
    collection_events: Optional[pd.DataFrame] = None

    @property
    def index_dates(self) -> pd.DataFrame:
        """Distinct (patient, index date) pairs."""
        return self.index[[PATIENT_ID, INDEX_DATE]].drop_duplicates().reset_index(drop=True)


# =============================================================================
# RESOLVERS
# =============================================================================

class IndexDateResolver:
    """Base class: resolve index dates for one strategy."""

    strategy: IndexStrategy = None
    required_tables: Tuple[str, ...] = ()

    def resolve(self, data: Dict[str, pd.DataFrame], report=None) -> IndexResolution:
        raise NotImplementedError

    def _finish(self, index: pd.DataFrame, report=None, **kwargs) -> IndexResolution:
        index = index.reset_index(drop=True)
        n_patients = index[PATIENT_ID].nunique()

        if report is not None:
            report.add_check(
                f"{self.strategy.value} yields index dates",
                len(index) > 0,
                f"{len(index):,} index rows for {n_patients:,} patients",
            )
        logger.info(f"{self.strategy.value}: {len(index):,} index rows, {n_patients:,} patients")

        return IndexResolution(strategy=self.strategy, index=index, **kwargs)


class EnrollmentResolver(IndexDateResolver):
    """Index date = date of consent."""

    strategy = IndexStrategy.ENROLLMENT
    required_tables = ('demographics',)

    def resolve(self, data, report=None):
        demographics = data['demographics']
        require_columns(demographics, 'demographics', [PATIENT_ID, 'DATE_OF_CONSENT'])

        consent = demographics[[PATIENT_ID, 'DATE_OF_CONSENT']].rename(columns={'DATE_OF_CONSENT': INDEX_DATE})
        index = parse_and_drop_dates(consent, INDEX_DATE, 'demographics', report)
        return self._finish(index.drop_duplicates(), report)


class LatestResolver(IndexDateResolver):
    """Index date = most recent encounter."""

    strategy = IndexStrategy.LATEST
    required_tables = ('encounter',)

    def resolve(self, data, report=None):
        return self._finish(extract_latest(data['encounter'], report), report)


class EndoscopyResolver(IndexDateResolver):
    """Index date = each endoscopy."""

    strategy = IndexStrategy.ENDOSCOPY
    required_tables = ('procedures',)

    def resolve(self, data, report=None):
        return self._finish(extract_endoscopy(data['procedures'], report), report)


class CollectionEventResolver(IndexDateResolver):
    """Index date = each sample collection; the sample table rides along."""

    table_name: str = None
    date_column: str = None

    def resolve(self, data, report=None):
        table = data[self.table_name]
        require_columns(table, self.table_name)

        events = table.drop(columns=SOURCE_SCHEMA.collection_drop_columns, errors='ignore')
        events = events.assign(**{INDEX_DATE: events[self.date_column]})
        events = parse_and_drop_dates(events, INDEX_DATE, self.table_name, report)
        events = events.drop_duplicates().reset_index(drop=True)

        index = events[[PATIENT_ID, INDEX_DATE]].drop_duplicates()
        return self._finish(index, report, collection_events=events)


class OmicsResolver(CollectionEventResolver):
    strategy = IndexStrategy.OMICS
    required_tables = ('omics_patient_mapping',)
    table_name = 'omics_patient_mapping'
    date_column = 'SAMPLE_COLLECTED_DATE'


class BiosampleResolver(CollectionEventResolver):
    strategy = IndexStrategy.BIOSAMPLE
    required_tables = ('biosample',)
    table_name = 'biosample'
    date_column = 'Date Sample Collected'


class ExternalResolver(IndexDateResolver):
    """Index dates supplied by the caller."""

    strategy = IndexStrategy.EXTERNAL

    def __init__(self, index_table: pd.DataFrame):
        self.index_table = index_table

    def resolve(self, data, report=None):
        table = self.index_table.copy()
        table.columns = [str(col).upper() for col in table.columns]
        require_columns(table, 'index_info')

        index = parse_and_drop_dates(table[[PATIENT_ID, INDEX_DATE]], INDEX_DATE, 'index_info', report)
        return self._finish(index.drop_duplicates(), report)


RESOLVERS = {
    IndexStrategy.ENROLLMENT: EnrollmentResolver,
    IndexStrategy.ENDOSCOPY: EndoscopyResolver,
    IndexStrategy.OMICS: OmicsResolver,
    IndexStrategy.BIOSAMPLE: BiosampleResolver,
    IndexStrategy.LATEST: LatestResolver,
}


# =============================================================================
# SELECTION
# =============================================================================

IndexInfo = Union[str, IndexStrategy, Iterable[Union[str, IndexStrategy]], pd.DataFrame]


def _as_strategy(value) -> IndexStrategy:
    if isinstance(value, IndexStrategy):
        return value
    try:
        return IndexStrategy(str(value).strip().upper())
    except ValueError:
        valid = [s.value for s in IndexStrategy]
        raise ValueError(f"Unknown index strategy {value!r}; expected one of {valid}") from None


def select_strategy(index_info: IndexInfo) -> IndexStrategy:
    """
    Pick the single strategy to run.

    Args:
        index_info: Strategy name(s), IndexStrategy member(s), or a caller
            index table (-> EXTERNAL)

    Returns:
        Highest-priority requested strategy

    Raises:
        ValueError: unknown or empty selection
    """
    if isinstance(index_info, pd.DataFrame):
        return IndexStrategy.EXTERNAL

    if isinstance(index_info, (str, IndexStrategy)):
        index_info = [index_info]

    requested = {_as_strategy(value) for value in index_info}
    if not requested:
        raise ValueError("No index strategy requested")

    for name in STRATEGY_CONFIG.priority:
        strategy = IndexStrategy(name)
        if strategy in requested:
            return strategy

    raise ValueError(f"Requested strategies {sorted(s.value for s in requested)} are not in the priority list")


def get_resolver(index_info: IndexInfo) -> IndexDateResolver:
    """Resolver object for the selected strategy."""
    strategy = select_strategy(index_info)

    if strategy is IndexStrategy.EXTERNAL:
        if not isinstance(index_info, pd.DataFrame):
            raise ValueError("EXTERNAL index strategy requires a caller-supplied index table")
        return ExternalResolver(index_info)

    return RESOLVERS[strategy]()


def resolve_index_dates(
    data: Dict[str, pd.DataFrame],
    index_info: IndexInfo,
    report=None,
) -> IndexResolution:
    """Resolve index dates with the single selected strategy."""
    return get_resolver(index_info).resolve(data, report)
