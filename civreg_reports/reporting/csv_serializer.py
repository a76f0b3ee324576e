"""
CSV Serializer: fixed-layout death report blocks

Renders one block per category in the layout of the civil registry's paper
form:

    <Title> (Year <year>)
    <first column>,Jan,Feb,...,Dec,Total
    <row label>,<12 monthly cells>,<row total>
    ...
    <Total row>

Every cell holding 0 is left blank. Rendering is pure: the functions read
their payloads and return text; divergence between monthly and annual totals
is collected on the returned RenderedBlock and logged, never raised.
"""

import calendar
import csv
import io
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from civreg_reports.core.config import settings
from civreg_reports.core.errors import ErrorClass
from civreg_reports.core.logging import setup_logger
from civreg_reports.reporting.aggregation import (
    AGE_BANDS,
    MONTHS,
    annual_total,
    burial_total,
    check_reconciliation,
    dig,
    get_section_value,
    lookup,
    month_bucket,
    month_total,
    statistics_snapshot,
    to_count,
)
from civreg_reports.reporting.categories import BLOCK_TITLES, CausesSort, ReportCategory
from civreg_reports.reporting.reconciler import (
    ResidenceCategorization,
    TableRow,
    barangay_rows,
    demographic_rows,
    special_rows,
)

logger = setup_logger(settings.LOG_LEVEL)

MONTH_HEADERS = [calendar.month_abbr[m] for m in MONTHS]

STATISTICS_ROWS: List[Tuple[str, str, str]] = [
    ("On-Time Registration", "registration", "onTime"),
    ("Late Registration", "registration", "late"),
    ("Male", "gender", "male"),
    ("Female", "gender", "female"),
    ("< 1 Year", "ageGroups", "lessThan1Year"),
    ("1-4 Years", "ageGroups", "oneToFourYears"),
    ("5-14 Years", "ageGroups", "fiveToFourteenYears"),
    ("15-49 Years", "ageGroups", "fifteenToFortyNineYears"),
    ("50-64 Years", "ageGroups", "fiftyToSixtyFourYears"),
    ("65 Above", "ageGroups", "sixtyFiveAndAbove"),
]

# Only rendered when the annual snapshot carries the section
OPTIONAL_STATISTICS_ROWS: List[Tuple[str, str, str]] = [
    ("Died in Hospital", "placeOfDeath", "hospital"),
    ("Died in Barangay", "placeOfDeath", "barangay"),
    ("Transient", "placeOfDeath", "transient"),
    ("Burial", "disposal", "burial"),
    ("Cremation", "disposal", "cremation"),
    ("With Transfer Permit", "transferPermit", "with"),
    ("Without Transfer Permit", "transferPermit", "without"),
]

PLACE_OF_DEATH_ROWS: List[Tuple[str, str]] = [
    ("Hospital", "hospital"),
    ("Barangay", "barangay"),
    ("Transient", "transient"),
    ("Others", "others"),
]

BURIAL_ROWS: List[Tuple[str, str]] = [
    ("Public Cemetery (Legazpi)", "legazpi.publicCemetery"),
    ("Private Cemetery (Legazpi)", "legazpi.privateCemetery"),
    ("Public Cemetery (Outside)", "outsideLegazpi.publicCemetery"),
    ("Private Cemetery (Outside)", "outsideLegazpi.privateCemetery"),
    ("Cremation", "cremation"),
    ("With Transfer Permit", "withTransferPermit"),
    ("Without Transfer Permit", "withoutTransferPermit"),
    ("Not Stated", "notStated"),
]

DEMOGRAPHIC_BAND_HEADERS = ["<1", "1-4", "5-14", "15-49", "50-64", "65 ABOVE"]


@dataclass
class RenderedBlock:
    """CSV text for one category plus any render inconsistencies found."""
    category: ReportCategory
    text: str
    inconsistencies: List[str] = field(default_factory=list)


def blank_for_zero(value: Any) -> str:
    """Render a count the paper-form way: "" for 0, plain decimal otherwise."""
    count = to_count(value)
    return str(count) if count else ""


def title_line(title: str, year: int, month: Optional[int] = None) -> str:
    if month is None:
        return f"{title} (Year {year})"
    return f"{title} ({calendar.month_name[month]} {year})"


def _to_text(lines: Sequence[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(lines)
    return buffer.getvalue()


def _monthly_line(label: str, monthly: Sequence[int], total: int) -> List[str]:
    return [label] + [blank_for_zero(v) for v in monthly] + [blank_for_zero(total)]


def _reconcile(label: str, cells: List[int], annual: int, found: List[str]) -> None:
    if not check_reconciliation(label, cells, annual):
        found.append(f"{label}: monthly sum {sum(cells)} != annual {annual}")


def _monthly_block(
    category: ReportCategory,
    year: int,
    first_column: str,
    rows: Sequence[TableRow],
    total_label: str,
    total_cells: List[int],
    total_trailing: Optional[int] = None
) -> str:
    lines: List[List[str]] = [
        [title_line(BLOCK_TITLES[category], year)],
        [first_column] + MONTH_HEADERS + ["Total"],
    ]
    for row in rows:
        lines.append(_monthly_line(row.label, row.monthly, row.total))
    trailing = sum(total_cells) if total_trailing is None else total_trailing
    lines.append(_monthly_line(total_label, total_cells, trailing))
    return _to_text(lines)


def _total_cells(category: ReportCategory, payload: Mapping[str, Any]) -> List[int]:
    return [month_total(category, payload, m) for m in MONTHS]


def _year(payload: Optional[Mapping[str, Any]], year: Optional[int]) -> int:
    if year is not None:
        return year
    return to_count(lookup(payload, "year"))


def render_statistics(payload: Mapping[str, Any], year: Optional[int] = None) -> RenderedBlock:
    """
    Render the "Death Statistics by Month" block.

    Args:
        payload: StatisticsSnapshot ({"statistics": {...}, "year": ...})
        year: Report year (defaults to payload["year"])

    Returns:
        RenderedBlock for ReportCategory.STATISTICS
    """
    category = ReportCategory.STATISTICS
    stats = statistics_snapshot(payload)
    monthly = stats.get("monthly")
    found: List[str] = []

    definitions = list(STATISTICS_ROWS)
    definitions += [d for d in OPTIONAL_STATISTICS_ROWS if isinstance(stats.get(d[1]), Mapping)]

    rows = []
    for label, section, leaf in definitions:
        cells = [get_section_value(month_bucket(monthly, m), section, leaf) for m in MONTHS]
        rows.append(TableRow(label=label, monthly=cells, total=sum(cells)))
        if isinstance(stats.get(section), Mapping) and leaf in stats[section]:
            _reconcile(label, cells, get_section_value(stats, section, leaf), found)

    total_cells = _total_cells(category, payload)
    if "totalDeaths" in stats:
        _reconcile("Total Deaths", total_cells, annual_total(category, payload), found)

    text = _monthly_block(category, _year(payload, year), "Particulars", rows, "Total Deaths", total_cells)
    return RenderedBlock(category, text, found)


def render_death_by_barangay(
    payload: Mapping[str, Any],
    year: Optional[int] = None,
    roster: Sequence[str] = (),
    residence: Optional[ResidenceCategorization] = None,
    show_all: bool = False
) -> RenderedBlock:
    """
    Render the "Death by Barangay" block.

    When a decoded residence categorization is given its special rows are
    rendered and counted in the Total row; otherwise pseudo-barangay keys in
    the payload supply them.
    """
    category = ReportCategory.DEATH_BY_BARANGAY
    found: List[str] = []
    rows = barangay_rows(payload, roster=roster, residence=residence, show_all=show_all)

    annual = annual_total(category, payload)
    if residence is None:
        total_cells = _total_cells(category, payload)
    else:
        # pseudo-barangay keys are replaced by residence rows, so sum what is rendered
        total_cells = [sum(row.monthly[i] for row in rows) for i in range(len(MONTHS))]
        annual += sum(special.total for special in special_rows(residence))
    if "totalDeaths" in payload:
        _reconcile("Death by Barangay Total", total_cells, annual, found)

    text = _monthly_block(category, _year(payload, year), "Barangay", rows, "Total", total_cells)
    return RenderedBlock(category, text, found)


def render_place_of_death(payload: Mapping[str, Any], year: Optional[int] = None) -> RenderedBlock:
    category = ReportCategory.PLACE_OF_DEATH
    found: List[str] = []
    annual = lookup(payload, "deathsByPlaceOfDeath")
    monthly = lookup(payload, "deathsByPlaceOfDeathMonthly")
    month_maps = [month_bucket(monthly, m) for m in MONTHS]

    present = set(annual) if isinstance(annual, Mapping) else set()
    for bucket in month_maps:
        present.update(bucket)

    known = [key for _, key in PLACE_OF_DEATH_ROWS]
    definitions = [(label, key) for label, key in PLACE_OF_DEATH_ROWS if key in present]
    definitions += [(key, key) for key in sorted(present) if key not in known]

    rows = []
    for label, key in definitions:
        cells = [to_count(bucket.get(key)) for bucket in month_maps]
        rows.append(TableRow(label=label, monthly=cells, total=sum(cells)))

    total_cells = _total_cells(category, payload)
    if "totalDeaths" in payload:
        _reconcile("Place of Death Total", total_cells, annual_total(category, payload), found)

    text = _monthly_block(category, _year(payload, year), "Category", rows, "Total", total_cells)
    return RenderedBlock(category, text, found)


def render_burial_method(payload: Mapping[str, Any], year: Optional[int] = None) -> RenderedBlock:
    """
    Render the "Burial Method" block.

    Without Transfer Permit is listed only when the annual counts carry it,
    and it is never part of the Total row.
    """
    category = ReportCategory.BURIAL_METHOD
    found: List[str] = []
    annual = lookup(payload, "burialCounts")
    monthly = lookup(payload, "burialCountsMonthly")
    month_maps = [month_bucket(monthly, m) for m in MONTHS]

    rows = []
    for label, path in BURIAL_ROWS:
        if path == "withoutTransferPermit" and lookup(annual, path) is None:
            continue
        cells = [to_count(dig(bucket, path)) for bucket in month_maps]
        rows.append(TableRow(label=label, monthly=cells, total=sum(cells)))

    total_cells = _total_cells(category, payload)
    if isinstance(annual, Mapping):
        _reconcile("Burial Method Total", total_cells, burial_total(annual), found)

    text = _monthly_block(category, _year(payload, year), "Method", rows, "Total", total_cells)
    return RenderedBlock(category, text, found)


def sort_causes(cause_counts: Mapping[str, int], order: CausesSort = CausesSort.COUNT) -> List[str]:
    """
    Order cause names for the causes block.

    COUNT sorts by annual count descending with ties broken alphabetically;
    ALPHABETICAL sorts by name only.
    """
    names = list(cause_counts)
    if CausesSort(order) == CausesSort.ALPHABETICAL:
        return sorted(names, key=lambda n: (n.lower(), n))
    return sorted(names, key=lambda n: (-to_count(cause_counts[n]), n.lower(), n))


def render_causes(
    payload: Mapping[str, Any],
    year: Optional[int] = None,
    order: CausesSort = CausesSort.COUNT
) -> RenderedBlock:
    """
    Render the "Causes of Death by Month" block.

    Row totals are the annual causeCounts, and the Total row's trailing cell
    is the supplied totalDeaths; both pass through unchanged.
    """
    category = ReportCategory.CAUSES
    found: List[str] = []
    annual = lookup(payload, "causeCounts")
    annual = dict(annual) if isinstance(annual, Mapping) else {}
    monthly = lookup(payload, "monthlyData")
    month_maps = [month_bucket(monthly, m) for m in MONTHS]

    # causes seen only in monthly data still get a row
    for bucket in month_maps:
        for name in bucket:
            annual.setdefault(name, 0)

    rows = []
    for name in sort_causes(annual, order):
        cells = [to_count(bucket.get(name)) for bucket in month_maps]
        rows.append(TableRow(label=name, monthly=cells, total=to_count(annual[name])))
        if name in (lookup(payload, "causeCounts") or {}):
            _reconcile(name, cells, to_count(annual[name]), found)

    total_cells = _total_cells(category, payload)
    grand_total = annual_total(category, payload)
    if "totalDeaths" in payload:
        _reconcile("Causes Total", total_cells, grand_total, found)

    text = _monthly_block(
        category, _year(payload, year), "Cause of Death", rows, "Total", total_cells, grand_total
    )
    return RenderedBlock(category, text, found)


def demographic_values(counts: Optional[Mapping[str, Any]]) -> List[int]:
    """The 15 cross-tab values: M/F per age band, M/F totals, grand total."""
    values = []
    for band in AGE_BANDS + ("total",):
        values.append(to_count(dig(counts, f"male.{band}")))
        values.append(to_count(dig(counts, f"female.{band}")))
    values.append(to_count(lookup(counts, "grandTotal")))
    return values


def render_deaths_by_demographic(
    payload: Mapping[str, Any],
    year: Optional[int] = None,
    roster: Sequence[str] = (),
    month: Optional[int] = None,
    show_all: bool = False
) -> RenderedBlock:
    """
    Render the barangay x age group x gender cross-tab.

    Args:
        payload: DemographicCrossTab payload
        year: Report year
        roster: Barangays padded in when show_all is set
        month: Render one month (1-12) instead of the whole year
        show_all: Keep zero rows

    Returns:
        RenderedBlock for ReportCategory.DEATHS_BY_DEMOGRAPHIC
    """
    category = ReportCategory.DEATHS_BY_DEMOGRAPHIC
    found: List[str] = []
    rows = demographic_rows(payload, roster=roster, month=month, show_all=show_all)

    if month is None:
        totals = lookup(payload, "totalsByDemographic")
    else:
        totals = month_bucket(lookup(payload, "totalsByMonth"), month)

    header_top = ["Name of Barangay"]
    for band in DEMOGRAPHIC_BAND_HEADERS + ["TOTAL"]:
        header_top += [band, ""]
    header_top.append("GRAND TOTAL")
    header_sub = [""] + ["M", "F"] * (len(AGE_BANDS) + 1) + [""]

    lines: List[List[str]] = [
        [title_line(BLOCK_TITLES[category], _year(payload, year), month)],
        header_top,
        header_sub,
    ]
    for row in rows:
        lines.append([row.label] + [blank_for_zero(v) for v in demographic_values(row.counts)])
    total_values = demographic_values(totals)
    lines.append(["TOTAL"] + [blank_for_zero(v) for v in total_values])

    row_sum = sum(row.total for row in rows)
    if isinstance(totals, Mapping) and "grandTotal" in totals and row_sum != total_values[-1]:
        message = f"Demographic rows: grand total sum {row_sum} != TOTAL {total_values[-1]}"
        logger.warning(f"error_class={ErrorClass.RENDER_INCONSISTENCY} label=\"Demographic\" "
                       f"row_sum={row_sum} total={total_values[-1]}")
        found.append(message)

    return RenderedBlock(category, _to_text(lines), found)
