"""
Module 8 Exporters
==================

- Excel: one-sheet workbook with banded header styling
"""

from .excel_exporter import export_medication_at_index, header_bands

__all__ = ['export_medication_at_index', 'header_bands']
