"""
Category Reconciler: location schemas and special rows

The registry has served two residence-classification shapes over time:

- NewFormat: {legazpi, outsideLegazpiPhilippines, foreignCountries}
  (newer servers also repeat outsideLegazpi for older clients)
- OldFormat: {legazpi, outsideLegazpi}

decode_residence() resolves the shape once at the data boundary; everything
downstream works with the typed variant. The demographic cross-tab may carry
both the legacy "Outside Legazpi" bucket and the newer
"Outside Legazpi (Philippines)" bucket; merge_outside_buckets() folds the
latter into the former on a deep copy.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from civreg_reports.core.config import settings
from civreg_reports.core.errors import ErrorClass
from civreg_reports.core.logging import setup_logger
from civreg_reports.reporting.aggregation import (
    AGE_BANDS,
    MONTHS,
    lookup,
    month_bucket,
    to_count,
)

logger = setup_logger(settings.LOG_LEVEL)

OUTSIDE_LEGAZPI = "Outside Legazpi"
OUTSIDE_LEGAZPI_PH = "Outside Legazpi (Philippines)"
FOREIGN_COUNTRIES = "Foreign Countries"

# Pseudo-barangay keys rendered as special rows, with their display order
SPECIAL_ORDER: Dict[str, int] = {
    OUTSIDE_LEGAZPI_PH: 1,
    FOREIGN_COUNTRIES: 2,
    OUTSIDE_LEGAZPI: 3,
}

GENDERS = ("male", "female")


@dataclass(frozen=True)
class NewFormat:
    legazpi: int
    outside_legazpi_philippines: int
    foreign_countries: int
    monthly: Dict[str, Dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class OldFormat:
    legazpi: int
    outside_legazpi: int
    monthly: Dict[str, Dict[str, Any]] = field(default_factory=dict)


ResidenceCategorization = Union[NewFormat, OldFormat]


@dataclass
class TableRow:
    """One rendered row: a label, 12 monthly cells and the row total."""
    label: str
    monthly: List[int]
    total: int
    is_special: bool = False
    order: int = 0


# Special rows are ordinary rows flagged is_special
SpecialRow = TableRow


@dataclass
class DemographicRow:
    """One row of the barangay x age band x gender cross-tab."""
    label: str
    counts: Dict[str, Any]
    is_special: bool = False
    order: int = 0

    @property
    def total(self) -> int:
        return to_count(self.counts.get("grandTotal"))


def decode_residence(payload: Optional[Mapping[str, Any]]) -> Optional[ResidenceCategorization]:
    """
    Decode a residence-type payload into NewFormat or OldFormat.

    NewFormat wins whenever outsideLegazpiPhilippines is present, even if the
    legacy outsideLegazpi key is repeated alongside it.

    Returns:
        The decoded variant, or None when neither discriminator is present
    """
    by_type = lookup(payload, "deathsByResidenceType")
    if not isinstance(by_type, Mapping):
        logger.debug(f"error_class={ErrorClass.SCHEMA_MISMATCH} reason=no_residence_types")
        return None

    monthly_raw = lookup(payload, "deathsByResidenceTypeMonthly")
    monthly = {
        str(m): month_bucket(monthly_raw, m)
        for m in MONTHS
    }

    if "outsideLegazpiPhilippines" in by_type:
        return NewFormat(
            legazpi=to_count(by_type.get("legazpi")),
            outside_legazpi_philippines=to_count(by_type.get("outsideLegazpiPhilippines")),
            foreign_countries=to_count(by_type.get("foreignCountries")),
            monthly=monthly,
        )
    if "outsideLegazpi" in by_type:
        return OldFormat(
            legazpi=to_count(by_type.get("legazpi")),
            outside_legazpi=to_count(by_type.get("outsideLegazpi")),
            monthly=monthly,
        )

    logger.debug(
        f"error_class={ErrorClass.SCHEMA_MISMATCH} reason=unknown_residence_shape "
        f"keys={sorted(by_type.keys())}"
    )
    return None


def _residence_row(residence: ResidenceCategorization, label: str, key: str, order: int) -> TableRow:
    monthly = [to_count(residence.monthly.get(str(m), {}).get(key)) for m in MONTHS]
    return TableRow(label=label, monthly=monthly, total=sum(monthly), is_special=True, order=order)


def special_rows(residence: Optional[ResidenceCategorization]) -> List[SpecialRow]:
    """Special rows implied by a decoded residence categorization."""
    if isinstance(residence, NewFormat):
        return [
            _residence_row(residence, OUTSIDE_LEGAZPI_PH, "outsideLegazpiPhilippines", 1),
            _residence_row(residence, FOREIGN_COUNTRIES, "foreignCountries", 2),
        ]
    if isinstance(residence, OldFormat):
        return [_residence_row(residence, OUTSIDE_LEGAZPI, "outsideLegazpi", 1)]
    return []


def _merge_counts(target: Dict[str, Any], source: Mapping[str, Any]) -> None:
    for gender in GENDERS:
        target_gender = target.setdefault(gender, {})
        source_gender = lookup(source, gender) or {}
        for key in AGE_BANDS + ("total",):
            target_gender[key] = to_count(target_gender.get(key)) + to_count(source_gender.get(key))
    target["grandTotal"] = to_count(target.get("grandTotal")) + to_count(source.get("grandTotal"))


def merge_outside_buckets(by_barangay: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Fold "Outside Legazpi (Philippines)" into "Outside Legazpi".

    Works on a deep copy; the input is never modified. Only merges when both
    keys are present, so applying it twice is the same as applying it once.

    Args:
        by_barangay: Mapping of barangay -> AgeGenderCount

    Returns:
        New mapping without the "(Philippines)" key when a merge happened
    """
    merged = copy.deepcopy(dict(by_barangay or {}))
    if OUTSIDE_LEGAZPI in merged and OUTSIDE_LEGAZPI_PH in merged:
        philippines = merged.pop(OUTSIDE_LEGAZPI_PH)
        target = merged[OUTSIDE_LEGAZPI]
        if not isinstance(target, dict):
            target = {}
            merged[OUTSIDE_LEGAZPI] = target
        _merge_counts(target, philippines if isinstance(philippines, Mapping) else {})
    return merged


def merge_demographic(payload: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Apply merge_outside_buckets to the year view and every month; returns a new payload."""
    result = copy.deepcopy(dict(payload or {}))
    result["deathsByDemographic"] = merge_outside_buckets(result.get("deathsByDemographic"))
    monthly = result.get("monthlyData")
    if isinstance(monthly, Mapping):
        result["monthlyData"] = {
            month: merge_outside_buckets(bucket if isinstance(bucket, Mapping) else {})
            for month, bucket in monthly.items()
        }
    return result


def _label_key(row: Any):
    return (row.label.lower(), row.label)


def order_rows(special: Iterable[Any], regular: Iterable[Any]) -> List[Any]:
    """Specials by explicit order, then regular rows alphabetically."""
    specials = sorted(special, key=lambda r: r.order)
    regulars = sorted(regular, key=_label_key)
    return specials + regulars


def visible(rows: Sequence[Any], show_all: bool) -> List[Any]:
    """Drop zero-total rows unless show_all is set."""
    if show_all:
        return list(rows)
    return [row for row in rows if row.total > 0]


def _row_names(*maps: Any) -> List[str]:
    names = []
    seen = set()
    for mapping in maps:
        if not isinstance(mapping, Mapping):
            continue
        for name in mapping:
            if name not in seen:
                seen.add(name)
                names.append(name)
    return names


def barangay_rows(
    payload: Optional[Mapping[str, Any]],
    roster: Sequence[str] = (),
    residence: Optional[ResidenceCategorization] = None,
    show_all: bool = False
) -> List[TableRow]:
    """
    Build the death-by-barangay table rows.

    Args:
        payload: BarangayDeathCounts payload
        roster: Barangays padded in as zero rows when show_all is set
        residence: Decoded residence categorization; when given, special rows
            come from it and pseudo-barangay keys in payload are ignored
        show_all: Keep zero-total rows

    Returns:
        Ordered, filtered rows (specials first)
    """
    by_barangay = lookup(payload, "deathsByBarangay")
    by_month = lookup(payload, "deathsByMonthAndBarangay")
    month_maps = [month_bucket(by_month, m) for m in MONTHS]

    names = _row_names(by_barangay, *month_maps)
    if show_all:
        names = _row_names(dict.fromkeys(roster), dict.fromkeys(names))

    def row_for(name: str, is_special: bool = False, order: int = 0) -> TableRow:
        monthly = [to_count(bucket.get(name)) for bucket in month_maps]
        return TableRow(label=name, monthly=monthly, total=sum(monthly),
                        is_special=is_special, order=order)

    regular = [row_for(name) for name in names if name not in SPECIAL_ORDER]

    if residence is not None:
        specials = special_rows(residence)
    else:
        specials = [
            row_for(name, is_special=True, order=SPECIAL_ORDER[name])
            for name in names if name in SPECIAL_ORDER
        ]

    # Special rows only show when they carry deaths, even in show-all mode
    specials = [row for row in specials if row.total > 0]
    return visible(order_rows(specials, regular), show_all)


def demographic_rows(
    payload: Optional[Mapping[str, Any]],
    roster: Sequence[str] = (),
    month: Optional[int] = None,
    show_all: bool = False
) -> List[DemographicRow]:
    """
    Build cross-tab rows for the year (month=None) or for one month.

    The payload is merged first, so "Outside Legazpi (Philippines)" never
    appears as its own row when the legacy bucket is present.
    """
    merged = merge_demographic(payload)
    if month is None:
        view = merged.get("deathsByDemographic")
    else:
        view = month_bucket(merged.get("monthlyData"), month)
    view = view if isinstance(view, Mapping) else {}

    names = list(view)
    if show_all:
        names = _row_names(dict.fromkeys(roster), dict.fromkeys(names))

    specials = []
    regular = []
    for name in names:
        counts = view.get(name)
        counts = copy.deepcopy(dict(counts)) if isinstance(counts, Mapping) else {}
        if name in SPECIAL_ORDER:
            specials.append(DemographicRow(name, counts, is_special=True, order=SPECIAL_ORDER[name]))
        else:
            regular.append(DemographicRow(name, counts))

    specials = [row for row in specials if row.total > 0]
    return visible(order_rows(specials, regular), show_all)
