"""Exports & reporting: per-turn statement CSVs and Markdown audit reports.

- writers.py: CSV emitters with fixed column schemas
- reports.py: validation_report.md and turn summary generators
"""
