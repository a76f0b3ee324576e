"""
Export Package

Concurrent registry fetch and atomic CSV export of death reports.
"""

from civreg_reports.export.fetcher import HttpCategoryFetcher
from civreg_reports.export.service import (
    ExportOptions,
    ExportResult,
    export_death_report,
    write_export_file
)

__all__ = [
    "HttpCategoryFetcher",
    "ExportOptions",
    "ExportResult",
    "export_death_report",
    "write_export_file"
]
