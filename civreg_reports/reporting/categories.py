"""
Report categories, their upstream read paths and fixed export order.
"""

from enum import Enum
from typing import Dict, Iterable, List, Sequence, Tuple


class ReportCategory(str, Enum):
    """Exportable death report categories."""
    STATISTICS = "statistics"
    DEATH_BY_BARANGAY = "death_by_barangay"
    PLACE_OF_DEATH = "place_of_death"
    BURIAL_METHOD = "burial_method"
    CAUSES = "causes"
    DEATHS_BY_DEMOGRAPHIC = "deaths_by_demographic"


class CausesSort(str, Enum):
    """Row order for the causes block."""
    COUNT = "count"
    ALPHABETICAL = "alphabetical"


# Blocks always appear in this order regardless of request order
EXPORT_ORDER: Tuple[ReportCategory, ...] = (
    ReportCategory.STATISTICS,
    ReportCategory.DEATH_BY_BARANGAY,
    ReportCategory.PLACE_OF_DEATH,
    ReportCategory.BURIAL_METHOD,
    ReportCategory.CAUSES,
    ReportCategory.DEATHS_BY_DEMOGRAPHIC,
)

# Residence categorization is fetched alongside death-by-barangay
RESIDENCE_SOURCE = "residence"

UPSTREAM_PATHS: Dict[str, str] = {
    ReportCategory.STATISTICS.value: "/api/death-report/statistics",
    ReportCategory.DEATH_BY_BARANGAY.value: "/api/death-report",
    RESIDENCE_SOURCE: "/api/death-report/outside-legazpi",
    ReportCategory.PLACE_OF_DEATH.value: "/api/death-report/place-of-death",
    ReportCategory.BURIAL_METHOD.value: "/api/death-report/burial-method",
    ReportCategory.CAUSES.value: "/api/death-report/causes",
    ReportCategory.DEATHS_BY_DEMOGRAPHIC.value: "/api/death-report/deaths-by-demographic",
}

BLOCK_TITLES: Dict[ReportCategory, str] = {
    ReportCategory.STATISTICS: "Death Statistics by Month",
    ReportCategory.DEATH_BY_BARANGAY: "Death by Barangay",
    ReportCategory.PLACE_OF_DEATH: "Place of Death",
    ReportCategory.BURIAL_METHOD: "Burial Method",
    ReportCategory.CAUSES: "Causes of Death by Month",
    ReportCategory.DEATHS_BY_DEMOGRAPHIC: "Deaths by Barangay, Age Group and Gender",
}

DEFAULT_EXPORT_NAME = "death_report"


def parse_categories(values: Iterable[str]) -> List[ReportCategory]:
    """
    Parse category slugs into a de-duplicated list in export order.

    Raises:
        ValueError: on an unknown slug
    """
    requested = set()
    for value in values:
        value = value.strip()
        if not value:
            continue
        try:
            requested.add(ReportCategory(value))
        except ValueError:
            valid = ", ".join(c.value for c in EXPORT_ORDER)
            raise ValueError(f"Unknown report category '{value}'. Valid: {valid}")
    if not requested:
        return list(EXPORT_ORDER)
    return [c for c in EXPORT_ORDER if c in requested]


def sources_for(categories: Sequence[ReportCategory]) -> List[str]:
    """Upstream payload keys needed to render the given categories."""
    sources = []
    for category in categories:
        sources.append(category.value)
        if category == ReportCategory.DEATH_BY_BARANGAY:
            sources.append(RESIDENCE_SOURCE)
    return sources


def export_filename(categories: Sequence[ReportCategory], year: int) -> str:
    """death_report_<year>.csv for multi-category exports, <slug>_<year>.csv for one."""
    if len(categories) == 1:
        return f"{categories[0].value}_{year}.csv"
    return f"{DEFAULT_EXPORT_NAME}_{year}.csv"
