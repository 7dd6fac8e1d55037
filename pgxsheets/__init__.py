"""Spreadsheet artifacts <-> PostgreSQL pharmacogenomics knowledge base.

Exports per-gene curation workbooks from the database and rebuilds database
tables from directories of curated workbooks.
"""

__version__ = "0.4.0"
