"""
Reporting Module: death report aggregation, reconciliation and CSV layout.

Key exports:
- ReportCategory / EXPORT_ORDER: categories and their fixed block order
- month_total() / annual_total(): Total row cells and annual cross-checks
- decode_residence() / merge_demographic(): location schema reconciliation
- render_*(): one fixed-layout CSV block per category
"""

from .aggregation import (
    annual_total,
    check_reconciliation,
    get_section_value,
    month_total
)
from .categories import EXPORT_ORDER, CausesSort, ReportCategory, parse_categories
from .csv_serializer import (
    RenderedBlock,
    blank_for_zero,
    render_burial_method,
    render_causes,
    render_death_by_barangay,
    render_deaths_by_demographic,
    render_place_of_death,
    render_statistics
)
from .reconciler import NewFormat, OldFormat, decode_residence, merge_demographic

__all__ = [
    "annual_total",
    "check_reconciliation",
    "get_section_value",
    "month_total",
    "EXPORT_ORDER",
    "CausesSort",
    "ReportCategory",
    "parse_categories",
    "RenderedBlock",
    "blank_for_zero",
    "render_burial_method",
    "render_causes",
    "render_death_by_barangay",
    "render_deaths_by_demographic",
    "render_place_of_death",
    "render_statistics",
    "NewFormat",
    "OldFormat",
    "decode_residence",
    "merge_demographic"
]
