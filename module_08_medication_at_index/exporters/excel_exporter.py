"""
Excel Exporter
==============

Write the medication-at-index cohort to a single-sheet workbook.

The header row is bold with the highlight fill, applied in three bands:
- Columns up to DIAGNOSIS
- Columns up to MEDICATION_AT_INDEX
- Everything after
"""

import logging
import pandas as pd
from pathlib import Path
from typing import List, Optional, Tuple

from openpyxl.styles import Font, PatternFill

from ..config.medication_at_index_config import EXPORTS_DIR, OUTPUT_CONFIG

logger = logging.getLogger(__name__)


def header_bands(columns: List[str]) -> List[Tuple[int, int]]:
    """
    1-based (first, last) column ranges of the header bands.

    A band boundary whose column is absent is skipped, so the bands always
    cover the whole header.
    """
    n_columns = len(columns)
    if n_columns == 0:
        return []

    bounds = []
    for name in OUTPUT_CONFIG.band_end_columns:
        positions = [i + 1 for i, col in enumerate(columns) if col == name]
        if positions and (not bounds or positions[-1] > bounds[-1]):
            bounds.append(positions[-1])

    bands = []
    first = 1
    for last in bounds + [n_columns]:
        if last >= first:
            bands.append((first, last))
            first = last + 1
    return bands


def style_header(worksheet, columns: List[str]):
    """Apply the header fill and bold font band by band."""
    fill = PatternFill(
        start_color=OUTPUT_CONFIG.header_fill,
        end_color=OUTPUT_CONFIG.header_fill,
        fill_type='solid',
    )
    font = Font(bold=OUTPUT_CONFIG.header_bold)

    for first, last in header_bands(columns):
        for col in range(first, last + 1):
            cell = worksheet.cell(row=1, column=col)
            cell.fill = fill
            cell.font = font


def export_medication_at_index(
    cohort: pd.DataFrame,
    filename: Optional[str] = None,
) -> pd.DataFrame:
    """
    Save the cohort as an .xlsx workbook.

    Args:
        cohort: Assembled cohort
        filename: Output path (default: exports/SPARC_MEDICATION.xlsx)

    Returns:
        The cohort, unchanged

    Raises:
        ValueError: filename does not end in .xlsx
    """
    path = Path(filename) if filename else EXPORTS_DIR / OUTPUT_CONFIG.default_filename
    if path.suffix.lower() != '.xlsx':
        raise ValueError(f"Output file must be an .xlsx workbook, got '{path.name}'")

    path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(
        path,
        engine='openpyxl',
        date_format=OUTPUT_CONFIG.date_format,
        datetime_format=OUTPUT_CONFIG.date_format,
    ) as xl:
        cohort.to_excel(xl, sheet_name=OUTPUT_CONFIG.sheet_name, index=False)
        style_header(xl.sheets[OUTPUT_CONFIG.sheet_name], [str(col) for col in cohort.columns])

    logger.info(f"Wrote {len(cohort):,} rows to {path}")
    return cohort
