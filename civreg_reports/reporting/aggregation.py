"""
Aggregation Engine: bucketed count accessors and totals

Reads pre-aggregated registry snapshots. Every accessor is total: a missing
section, missing month, missing field, null or non-numeric value resolves to
0 and is never raised. Monthly/annual divergence is reported through
check_reconciliation() as a logged diagnostic only.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from civreg_reports.core.config import settings
from civreg_reports.core.errors import ErrorClass
from civreg_reports.core.logging import setup_logger
from civreg_reports.reporting.categories import ReportCategory

logger = setup_logger(settings.LOG_LEVEL)

MONTHS = tuple(range(1, 13))

STATISTICS_SECTIONS = (
    "registration",
    "gender",
    "ageGroups",
    "placeOfDeath",
    "disposal",
    "transferPermit",
)

AGE_BANDS = (
    "lessThan1Year",
    "oneToFourYears",
    "fiveToFourteenYears",
    "fifteenToFortyNineYears",
    "fiftyToSixtyFourYears",
    "sixtyFiveAndAbove",
)

# Burial Total row fields; withoutTransferPermit is not one of them
BURIAL_TOTAL_FIELDS = (
    "legazpi.publicCemetery",
    "legazpi.privateCemetery",
    "outsideLegazpi.publicCemetery",
    "outsideLegazpi.privateCemetery",
    "cremation",
    "withTransferPermit",
    "notStated",
)

MonthKey = Union[int, str]


def to_count(value: Any) -> int:
    """Coerce an upstream leaf into a non-negative count (0 when unusable)."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else 0
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return 0


def lookup(obj: Any, key: str) -> Any:
    """obj[key] for mappings, None otherwise."""
    if not isinstance(obj, Mapping):
        return None
    return obj.get(key)


def dig(obj: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts; None when any hop is missing."""
    current = obj
    for key in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def get_section_value(snapshot: Optional[Mapping[str, Any]], section: str, field: str) -> int:
    """
    Read one leaf of a statistics snapshot (annual or one month).

    Args:
        snapshot: Statistics object or one of its monthly entries
        section: One of STATISTICS_SECTIONS
        field: Leaf name within the section (e.g. "onTime", "male")

    Returns:
        The count, or 0 for an unknown section/field or missing data
    """
    if section not in STATISTICS_SECTIONS or not isinstance(snapshot, Mapping):
        return 0
    bucket = snapshot.get(section)
    if not isinstance(bucket, Mapping):
        return 0
    return to_count(bucket.get(field))


def month_bucket(monthly: Optional[Mapping[Any, Any]], month: MonthKey) -> Dict[str, Any]:
    """The sub-object for one month, looked up by "3" or 3, or {} when absent."""
    if not isinstance(monthly, Mapping):
        return {}
    for key in (str(month), int(month)):
        value = monthly.get(key)
        if isinstance(value, Mapping):
            return dict(value)
    return {}


def monthly_series(
    monthly: Optional[Mapping[Any, Any]],
    getter: Callable[[Dict[str, Any]], int]
) -> List[int]:
    """Apply getter to each month's bucket, January through December."""
    return [getter(month_bucket(monthly, m)) for m in MONTHS]


def sum_counts(bucket: Optional[Mapping[str, Any]]) -> int:
    """Sum every leaf of a flat name -> count map."""
    if not isinstance(bucket, Mapping):
        return 0
    return sum(to_count(v) for v in bucket.values())


def burial_total(bucket: Optional[Mapping[str, Any]]) -> int:
    return sum(to_count(dig(bucket, field)) for field in BURIAL_TOTAL_FIELDS)


def statistics_snapshot(payload: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Unwrap {"statistics": {...}} responses; bare statistics objects pass through."""
    if not isinstance(payload, Mapping):
        return {}
    inner = payload.get("statistics")
    if isinstance(inner, Mapping):
        return dict(inner)
    return dict(payload)


def _category(category: Union[ReportCategory, str]) -> Optional[ReportCategory]:
    try:
        return ReportCategory(category)
    except ValueError:
        return None


def month_total(
    category: Union[ReportCategory, str],
    payload: Optional[Mapping[str, Any]],
    month: MonthKey
) -> int:
    """
    Compute the synthetic Total row cell for one month of one category.

    Args:
        category: Report category
        payload: Category payload as returned by the registry API
        month: Month number 1-12 (int or str)

    Returns:
        Month total, 0 for missing data or unknown category
    """
    category = _category(category)
    payload = payload if isinstance(payload, Mapping) else {}

    if category == ReportCategory.STATISTICS:
        bucket = month_bucket(statistics_snapshot(payload).get("monthly"), month)
        return (
            get_section_value(bucket, "registration", "onTime")
            + get_section_value(bucket, "registration", "late")
        )
    if category == ReportCategory.DEATH_BY_BARANGAY:
        return sum_counts(month_bucket(payload.get("deathsByMonthAndBarangay"), month))
    if category == ReportCategory.PLACE_OF_DEATH:
        return sum_counts(month_bucket(payload.get("deathsByPlaceOfDeathMonthly"), month))
    if category == ReportCategory.CAUSES:
        return sum_counts(month_bucket(payload.get("monthlyData"), month))
    if category == ReportCategory.BURIAL_METHOD:
        return burial_total(month_bucket(payload.get("burialCountsMonthly"), month))
    if category == ReportCategory.DEATHS_BY_DEMOGRAPHIC:
        return to_count(month_bucket(payload.get("totalsByMonth"), month).get("grandTotal"))
    return 0


def annual_total(
    category: Union[ReportCategory, str],
    payload: Optional[Mapping[str, Any]],
    field: Optional[str] = None
) -> int:
    """
    Read an annual figure directly from the snapshot.

    With field=None this is the category grand total; otherwise field names
    one row (a barangay, cause, place category, "section.field" for
    statistics, or a dotted path for burial/demographic totals).
    """
    category = _category(category)
    payload = payload if isinstance(payload, Mapping) else {}

    if category == ReportCategory.STATISTICS:
        stats = statistics_snapshot(payload)
        if field is None:
            return to_count(stats.get("totalDeaths"))
        section, _, leaf = field.partition(".")
        return get_section_value(stats, section, leaf)
    if category == ReportCategory.DEATH_BY_BARANGAY:
        if field is None:
            return to_count(payload.get("totalDeaths"))
        # barangay names may contain dots, so no path lookup here
        return to_count(lookup(payload.get("deathsByBarangay"), field))
    if category == ReportCategory.PLACE_OF_DEATH:
        if field is None:
            return to_count(payload.get("totalDeaths"))
        return to_count(lookup(payload.get("deathsByPlaceOfDeath"), field))
    if category == ReportCategory.CAUSES:
        if field is None:
            return to_count(payload.get("totalDeaths"))
        return to_count(lookup(payload.get("causeCounts"), field))
    if category == ReportCategory.BURIAL_METHOD:
        counts = payload.get("burialCounts")
        if field is None:
            return burial_total(counts)
        return to_count(dig(counts, field))
    if category == ReportCategory.DEATHS_BY_DEMOGRAPHIC:
        totals = payload.get("totalsByDemographic")
        return to_count(dig(totals, field or "grandTotal"))
    return 0


def check_reconciliation(label: str, monthly_values: List[int], annual: int) -> bool:
    """
    Compare a monthly series against its annual counterpart.

    Logs a RENDER_INCONSISTENCY warning on divergence; never raises.

    Returns:
        True when the 12-month sum equals the annual figure
    """
    monthly_sum = sum(monthly_values)
    if monthly_sum == annual:
        return True
    logger.warning(
        f"error_class={ErrorClass.RENDER_INCONSISTENCY} label=\"{label}\" "
        f"monthly_sum={monthly_sum} annual={annual}"
    )
    return False
