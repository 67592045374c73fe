"""Tests for day-month-year date parsing."""

import pandas as pd

from module_08_medication_at_index.extractors.date_parser import (
    is_blank,
    parse_dmy,
    count_unparsable,
    next_distinct_date,
)


class TestParseDmy:
    """Tests for parse_dmy."""

    def test_configured_formats(self):
        """Every configured day-month-year spelling parses to the same day."""
        raw = pd.Series(['05-JAN-2021', '05/01/2021', '05-01-2021', '05 Jan 2021', '05.01.2021', '2021-01-05'])
        parsed = parse_dmy(raw)

        assert (parsed == pd.Timestamp('2021-01-05')).all()

    def test_day_comes_first(self):
        """Slash dates are read day first."""
        parsed = parse_dmy(pd.Series(['03/04/2020']))
        assert parsed.iloc[0] == pd.Timestamp('2020-04-03')

    def test_unparsable_becomes_nat(self):
        """Garbage and blanks become NaT."""
        parsed = parse_dmy(pd.Series(['not a date', '', None, '31-FEB-2020']))
        assert parsed.isna().all()

    def test_datetime_passthrough(self):
        """Datetime values pass through, normalised to midnight."""
        raw = pd.Series(pd.to_datetime(['2021-01-05 13:45:00', '2022-07-01 00:00:00']))
        parsed = parse_dmy(raw)

        assert list(parsed) == [pd.Timestamp('2021-01-05'), pd.Timestamp('2022-07-01')]

    def test_mixed_objects(self):
        """Timestamp objects mixed with text both parse."""
        raw = pd.Series(['05-JAN-2021', pd.Timestamp('2021-02-01')], dtype=object)
        parsed = parse_dmy(raw)

        assert list(parsed) == [pd.Timestamp('2021-01-05'), pd.Timestamp('2021-02-01')]

    def test_index_preserved(self):
        """Result is aligned to the input index."""
        raw = pd.Series(['05-JAN-2021', 'junk'], index=[10, 20])
        parsed = parse_dmy(raw)

        assert list(parsed.index) == [10, 20]
        assert parsed.loc[10] == pd.Timestamp('2021-01-05')
        assert pd.isna(parsed.loc[20])

    def test_empty_series(self):
        """Empty input gives an empty datetime Series."""
        parsed = parse_dmy(pd.Series([], dtype=object))
        assert len(parsed) == 0
        assert pd.api.types.is_datetime64_any_dtype(parsed)


class TestUnparsable:
    """Tests for separating missing from unparsable values."""

    def test_is_blank(self):
        blank = is_blank(pd.Series(['', '  ', None, 'x']))
        assert list(blank) == [True, True, True, False]

    def test_count_unparsable(self):
        """Only supplied-but-unreadable values count."""
        raw = pd.Series(['05-JAN-2021', 'junk', '', None])
        flags = count_unparsable(raw, parse_dmy(raw))

        assert list(flags) == [False, True, False, False]


class TestNextDistinctDate:
    """Tests for next_distinct_date."""

    def test_ties_share_next_date(self):
        """Equal dates both point to the next strictly later date."""
        dates = pd.Series(pd.to_datetime(['2020-01-01', '2020-01-01', '2020-06-01']))
        following = next_distinct_date(dates)

        assert following.iloc[0] == pd.Timestamp('2020-06-01')
        assert following.iloc[1] == pd.Timestamp('2020-06-01')
        assert pd.isna(following.iloc[2])

    def test_single_date(self):
        following = next_distinct_date(pd.Series(pd.to_datetime(['2020-01-01'])))
        assert pd.isna(following.iloc[0])
