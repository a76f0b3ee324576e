"""
Shared fixtures: small registry payloads for year 2024 and a fixture roster.
"""

import asyncio
import copy
from typing import Any, Dict, Optional

import pytest

from civreg_reports.reporting.aggregation import AGE_BANDS

YEAR = 2024

FIXTURE_ROSTER = ("Bigaa", "Bitano", "Gogon", "Rawis")


def age_gender(male: Optional[Dict[str, int]] = None, female: Optional[Dict[str, int]] = None) -> Dict[str, Any]:
    """Build an AgeGenderCount with consistent totals."""
    counts: Dict[str, Any] = {}
    for gender, bands in (("male", male or {}), ("female", female or {})):
        entry = {band: bands.get(band, 0) for band in AGE_BANDS}
        entry["total"] = sum(entry.values())
        counts[gender] = entry
    counts["grandTotal"] = counts["male"]["total"] + counts["female"]["total"]
    return counts


def make_statistics_payload() -> Dict[str, Any]:
    march = {
        "registration": {"onTime": 5, "late": 1},
        "gender": {"male": 4, "female": 2, "unknown": 0},
        "ageGroups": {"sixtyFiveAndAbove": 6},
    }
    return {
        "year": YEAR,
        "statistics": {
            "totalDeaths": 6,
            "registration": {"onTime": 5, "late": 1},
            "gender": {"male": 4, "female": 2, "unknown": 0},
            "ageGroups": {
                "lessThan1Year": 0,
                "oneToFourYears": 0,
                "fiveToFourteenYears": 0,
                "fifteenToFortyNineYears": 0,
                "fiftyToSixtyFourYears": 0,
                "sixtyFiveAndAbove": 6,
                "unknown": 0,
            },
            "monthly": {"3": march},
        },
    }


def make_barangay_payload() -> Dict[str, Any]:
    return {
        "year": YEAR,
        "totalDeaths": 3,
        "deathsByBarangay": {"Bigaa": 3, "Gogon": 0},
        "deathsByMonthAndBarangay": {
            "3": {"Bigaa": 2, "Gogon": 0},
            "7": {"Bigaa": 1},
        },
    }


def make_residence_payload() -> Dict[str, Any]:
    return {
        "year": YEAR,
        "deathsByResidenceType": {
            "legazpi": 3,
            "outsideLegazpiPhilippines": 2,
            "foreignCountries": 1,
            "outsideLegazpi": 3,
        },
        "deathsByResidenceTypeMonthly": {
            "2": {"legazpi": 0, "outsideLegazpiPhilippines": 2, "foreignCountries": 0},
            "5": {"legazpi": 0, "outsideLegazpiPhilippines": 0, "foreignCountries": 1},
        },
    }


def make_place_payload() -> Dict[str, Any]:
    return {
        "year": YEAR,
        "totalDeaths": 3,
        "deathsByPlaceOfDeath": {"hospital": 2, "transient": 1, "others": 0},
        "deathsByPlaceOfDeathMonthly": {
            "1": {"hospital": 1, "transient": 0, "others": 0},
            "4": {"hospital": 1, "transient": 1, "others": 0},
        },
    }


def make_burial_payload() -> Dict[str, Any]:
    return {
        "year": YEAR,
        "burialCounts": {
            "legazpi": {"publicCemetery": 2, "privateCemetery": 1},
            "outsideLegazpi": {"publicCemetery": 0, "privateCemetery": 1},
            "cremation": 1,
            "withTransferPermit": 1,
            "withoutTransferPermit": 2,
            "notStated": 0,
        },
        "burialCountsMonthly": {
            "2": {
                "legazpi": {"publicCemetery": 2, "privateCemetery": 0},
                "cremation": 1,
                "withoutTransferPermit": 2,
            },
            "8": {
                "legazpi": {"publicCemetery": 0, "privateCemetery": 1},
                "outsideLegazpi": {"publicCemetery": 0, "privateCemetery": 1},
                "withTransferPermit": 1,
            },
        },
    }


def make_causes_payload() -> Dict[str, Any]:
    return {
        "year": YEAR,
        "totalDeaths": 8,
        "causeCounts": {"Pneumonia": 3, "Cardiac Arrest": 3, "Sepsis": 1, "Asthma": 1},
        "causeCategories": ["Pneumonia", "Cardiac Arrest", "Sepsis", "Asthma"],
        "monthlyData": {
            "1": {"Pneumonia": 2, "Cardiac Arrest": 1},
            "9": {"Pneumonia": 1, "Cardiac Arrest": 2, "Sepsis": 1, "Asthma": 1},
        },
    }


def make_demographic_payload() -> Dict[str, Any]:
    return {
        "year": YEAR,
        "deathsByDemographic": {
            "Bigaa": age_gender(male={"sixtyFiveAndAbove": 1}),
            "Outside Legazpi": age_gender(male={"lessThan1Year": 1}),
            "Outside Legazpi (Philippines)": age_gender(male={"lessThan1Year": 2}),
        },
        "totalsByDemographic": age_gender(male={"lessThan1Year": 3, "sixtyFiveAndAbove": 1}),
        "monthlyData": {
            "1": {
                "Outside Legazpi": age_gender(male={"lessThan1Year": 1}),
                "Outside Legazpi (Philippines)": age_gender(male={"lessThan1Year": 2}),
            },
            "6": {"Bigaa": age_gender(male={"sixtyFiveAndAbove": 1})},
        },
        "totalsByMonth": {
            "1": age_gender(male={"lessThan1Year": 3}),
            "6": age_gender(male={"sixtyFiveAndAbove": 1}),
        },
    }


def make_all_payloads() -> Dict[str, Dict[str, Any]]:
    return {
        "statistics": make_statistics_payload(),
        "death_by_barangay": make_barangay_payload(),
        "residence": make_residence_payload(),
        "place_of_death": make_place_payload(),
        "burial_method": make_burial_payload(),
        "causes": make_causes_payload(),
        "deaths_by_demographic": make_demographic_payload(),
    }


class FakeFetcher:
    """In-memory stand-in for HttpCategoryFetcher."""

    def __init__(
        self,
        payloads: Dict[str, Dict[str, Any]],
        failures: Optional[Dict[str, Exception]] = None,
        delays: Optional[Dict[str, float]] = None
    ):
        self.payloads = payloads
        self.failures = failures or {}
        self.delays = delays or {}
        self.calls = []
        self.cancelled = []

    async def fetch(self, source: str, year: int) -> Dict[str, Any]:
        self.calls.append((source, year))
        try:
            await asyncio.sleep(self.delays.get(source, 0))
        except asyncio.CancelledError:
            self.cancelled.append(source)
            raise
        if source in self.failures:
            raise self.failures[source]
        return copy.deepcopy(self.payloads[source])


@pytest.fixture
def roster():
    return FIXTURE_ROSTER


@pytest.fixture
def all_payloads():
    return make_all_payloads()


@pytest.fixture
def counts():
    """Factory for AgeGenderCount dicts."""
    return age_gender


@pytest.fixture
def fetcher_factory():
    """Build a FakeFetcher over fresh payloads."""
    def _build(failures=None, delays=None, payloads=None):
        return FakeFetcher(payloads or make_all_payloads(), failures=failures, delays=delays)
    return _build
