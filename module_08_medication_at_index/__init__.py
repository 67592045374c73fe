"""
Module 08: Medication at Index
==============================

Medication each SPARC patient was on at a chosen index date.
"""

from .pipeline import MedicationAtIndexPipeline, build_medication_at_index

__all__ = ['MedicationAtIndexPipeline', 'build_medication_at_index']
