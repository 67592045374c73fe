"""
Module 8 Transformers
=====================

Turn source extracts into the medication-at-index cohort.

- Interval stitching per MOA class
- Index date resolution (one strategy per run)
- Medication state at each index date
- Biologic-naive dates
- Cohort assembly and column layout
"""
