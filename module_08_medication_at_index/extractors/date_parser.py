"""
Date Parser
===========

Day-month-year text parsing for SPARC extracts.

Source tables carry dates as text such as '05-JAN-2021' or '05/01/2021'.
Values already typed as dates pass through unchanged; anything that matches
none of the configured formats becomes NaT.
"""

import numpy as np
import pandas as pd
from typing import List, Optional

from ..config.medication_at_index_config import MEDICATION_CONFIG


def is_blank(values: pd.Series) -> pd.Series:
    """True where a value is missing or an empty string."""
    return values.isna() | values.map(lambda v: isinstance(v, str) and not v.strip()).astype(bool)


def parse_dmy(values: pd.Series, formats: Optional[List[str]] = None) -> pd.Series:
    """
    Parse day-month-year dates.

    Args:
        values: Series of text, date or datetime values
        formats: strptime formats tried in order (default from config)

    Returns:
        datetime64 Series normalised to midnight, NaT where unparsable
    """
    if pd.api.types.is_datetime64_any_dtype(values):
        return values.astype('datetime64[ns]').dt.normalize()

    formats = formats or MEDICATION_CONFIG.date_formats
    raw = values.reset_index(drop=True)
    parsed = pd.Series(pd.NaT, index=raw.index, dtype='datetime64[ns]')

    is_text = raw.map(lambda v: isinstance(v, str)).astype(bool)
    objects = raw[~is_text & raw.notna()]
    if len(objects) > 0:
        parsed.loc[objects.index] = pd.to_datetime(objects, errors='coerce')

    text = raw[is_text].astype(str).str.strip()
    for fmt in formats:
        pending = text[parsed.loc[text.index].isna()]
        if pending.empty:
            break
        parsed.loc[pending.index] = pd.to_datetime(pending, format=fmt, errors='coerce')

    parsed.index = values.index
    return parsed.dt.normalize()


def count_unparsable(raw: pd.Series, parsed: pd.Series) -> pd.Series:
    """True where a value was supplied but could not be parsed."""
    return ~is_blank(raw) & parsed.isna()


def next_distinct_date(dates: pd.Series) -> pd.Series:
    """
    For each date, the next strictly later date in the same Series.

    Args:
        dates: datetime64 Series sorted ascending, without NaT

    Returns:
        Series aligned to `dates`; NaT for the last distinct date
    """
    values = dates.to_numpy(dtype='datetime64[ns]')
    distinct = np.unique(values)
    position = np.searchsorted(distinct, values, side='right')
    following = np.concatenate([distinct, np.array(['NaT'], dtype='datetime64[ns]')])
    return pd.Series(following[position], index=dates.index)
