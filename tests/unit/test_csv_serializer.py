"""
Tests for the CSV Serializer.

Validates the paper-form layout of every block: titles, headers,
blank-for-zero cells, row totals and the synthetic Total row.
"""

import csv
import io

import pytest

from civreg_reports.reporting.categories import CausesSort
from civreg_reports.reporting.csv_serializer import (
    blank_for_zero,
    demographic_values,
    render_burial_method,
    render_causes,
    render_death_by_barangay,
    render_deaths_by_demographic,
    render_place_of_death,
    render_statistics,
    sort_causes,
    title_line,
)
from civreg_reports.reporting.reconciler import decode_residence

MONTH_HEADER = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
                "Jul", "Aug", "Sep", "Oct", "Nov", "Dec", "Total"]


def parse(text):
    return list(csv.reader(io.StringIO(text)))


def row_by_label(lines, label):
    matches = [line for line in lines if line and line[0] == label]
    assert len(matches) == 1, f"expected one row labelled {label!r}"
    return matches[0]


class TestCellFormatting:
    """Test blank-for-zero and titles."""

    @pytest.mark.parametrize("value,expected", [
        (0, ""),
        (None, ""),
        (7, "7"),
        (1234, "1234"),
    ])
    def test_blank_for_zero(self, value, expected):
        assert blank_for_zero(value) == expected

    def test_title_lines(self):
        assert title_line("Place of Death", 2024) == "Place of Death (Year 2024)"
        assert title_line("Deaths", 2024, month=3) == "Deaths (March 2024)"


class TestStatisticsBlock:
    """Test the Death Statistics by Month block."""

    def test_march_registration_cells(self, all_payloads):
        block = render_statistics(all_payloads["statistics"], 2024)
        lines = parse(block.text)

        assert lines[0] == ["Death Statistics by Month (Year 2024)"]
        assert lines[1] == ["Particulars"] + MONTH_HEADER

        on_time = row_by_label(lines, "On-Time Registration")
        late = row_by_label(lines, "Late Registration")
        assert on_time[3] == "5"
        assert late[3] == "1"
        assert on_time[1:3] + on_time[4:13] == [""] * 11
        assert on_time[13] == "5"
        assert late[13] == "1"

    def test_row_totals_equal_sum_of_cells(self, all_payloads):
        lines = parse(render_statistics(all_payloads["statistics"], 2024).text)

        for line in lines[2:]:
            cells = [int(c) if c else 0 for c in line[1:13]]
            total = int(line[13]) if line[13] else 0
            assert total == sum(cells)

    def test_fixed_row_order_and_total_row(self, all_payloads):
        lines = parse(render_statistics(all_payloads["statistics"], 2024).text)

        labels = [line[0] for line in lines[2:]]
        assert labels == [
            "On-Time Registration", "Late Registration", "Male", "Female",
            "< 1 Year", "1-4 Years", "5-14 Years", "15-49 Years", "50-64 Years",
            "65 Above", "Total Deaths",
        ]
        total = row_by_label(lines, "Total Deaths")
        assert total[3] == "6"
        assert total[13] == "6"

    def test_optional_sections_add_rows(self, all_payloads):
        payload = all_payloads["statistics"]
        payload["statistics"]["disposal"] = {"burial": 6, "cremation": 0}
        payload["statistics"]["monthly"]["3"]["disposal"] = {"burial": 6}

        lines = parse(render_statistics(payload, 2024).text)

        assert row_by_label(lines, "Burial")[3] == "6"
        assert row_by_label(lines, "Cremation")[13] == ""

    def test_divergence_is_recorded_not_raised(self, all_payloads):
        payload = all_payloads["statistics"]
        payload["statistics"]["totalDeaths"] = 9

        block = render_statistics(payload, 2024)

        assert any("Total Deaths" in msg for msg in block.inconsistencies)
        assert row_by_label(parse(block.text), "Total Deaths")[13] == "6"


class TestBarangayBlock:
    """Test the Death by Barangay block."""

    def test_bigaa_row(self, all_payloads, roster):
        block = render_death_by_barangay(all_payloads["death_by_barangay"], 2024, roster=roster)
        lines = parse(block.text)

        assert lines[0] == ["Death by Barangay (Year 2024)"]
        assert lines[1] == ["Barangay"] + MONTH_HEADER
        expected = ["Bigaa", "", "", "2", "", "", "", "1", "", "", "", "", "", "3"]
        assert row_by_label(lines, "Bigaa") == expected
        assert "Bigaa,,,2,,,,1,,,,,,3\n" in block.text

    def test_total_row_matches_month_sums(self, all_payloads, roster):
        payload = all_payloads["death_by_barangay"]
        lines = parse(render_death_by_barangay(payload, 2024, roster=roster, show_all=True).text)

        total = row_by_label(lines, "Total")
        for month in range(1, 13):
            expected = sum(payload["deathsByMonthAndBarangay"].get(str(month), {}).values())
            assert total[month] == blank_for_zero(expected)
        assert total[13] == "3"
        assert [line[0] for line in lines[2:-1]] == ["Bigaa", "Bitano", "Gogon", "Rawis"]

    def test_residence_rows_counted_in_total(self, all_payloads, roster):
        residence = decode_residence(all_payloads["residence"])
        lines = parse(render_death_by_barangay(
            all_payloads["death_by_barangay"], 2024, roster=roster, residence=residence
        ).text)

        assert [line[0] for line in lines[2:]] == [
            "Outside Legazpi (Philippines)", "Foreign Countries", "Bigaa", "Total"
        ]
        total = row_by_label(lines, "Total")
        assert total[2] == "2"
        assert total[5] == "1"
        assert total[13] == "6"


class TestPlaceOfDeathBlock:
    def test_rows_as_present(self, all_payloads):
        lines = parse(render_place_of_death(all_payloads["place_of_death"], 2024).text)

        assert lines[1][0] == "Category"
        assert [line[0] for line in lines[2:]] == ["Hospital", "Transient", "Others", "Total"]
        assert row_by_label(lines, "Others")[1:] == [""] * 13
        total = row_by_label(lines, "Total")
        assert total[1] == "1"
        assert total[4] == "2"
        assert total[13] == "3"


class TestBurialBlock:
    """Test the Burial Method block."""

    def test_without_permit_listed_but_not_totalled(self, all_payloads):
        block = render_burial_method(all_payloads["burial_method"], 2024)
        lines = parse(block.text)

        assert lines[1][0] == "Method"
        assert row_by_label(lines, "Without Transfer Permit")[2] == "2"
        total = row_by_label(lines, "Total")
        assert total[2] == "3"
        assert total[8] == "3"
        assert total[13] == "6"
        assert block.inconsistencies == []

    def test_without_permit_row_omitted_when_absent(self, all_payloads):
        payload = all_payloads["burial_method"]
        del payload["burialCounts"]["withoutTransferPermit"]

        lines = parse(render_burial_method(payload, 2024).text)

        assert "Without Transfer Permit" not in [line[0] for line in lines]
        assert [line[0] for line in lines[2:]] == [
            "Public Cemetery (Legazpi)", "Private Cemetery (Legazpi)",
            "Public Cemetery (Outside)", "Private Cemetery (Outside)",
            "Cremation", "With Transfer Permit", "Not Stated", "Total",
        ]


class TestCausesBlock:
    """Test the Causes of Death by Month block."""

    def test_count_sort_breaks_ties_alphabetically(self, all_payloads):
        counts = all_payloads["causes"]["causeCounts"]
        assert sort_causes(counts) == ["Cardiac Arrest", "Pneumonia", "Asthma", "Sepsis"]

    def test_alphabetical_sort(self, all_payloads):
        counts = all_payloads["causes"]["causeCounts"]
        assert sort_causes(counts, CausesSort.ALPHABETICAL) == [
            "Asthma", "Cardiac Arrest", "Pneumonia", "Sepsis"
        ]

    def test_total_passes_through_supplied_grand_total(self, all_payloads):
        payload = all_payloads["causes"]
        payload["totalDeaths"] = 10
        payload["causeCounts"]["Sepsis"] = 4

        block = render_causes(payload, 2024)
        lines = parse(block.text)

        assert lines[0] == ["Causes of Death by Month (Year 2024)"]
        assert row_by_label(lines, "Sepsis")[13] == "4"
        total = row_by_label(lines, "Total")
        assert total[1] == "3"
        assert total[9] == "5"
        assert total[13] == "10"
        assert block.inconsistencies


class TestDemographicBlock:
    """Test the barangay x age group x gender cross-tab."""

    def test_header_and_merged_row(self, all_payloads, roster):
        block = render_deaths_by_demographic(all_payloads["deaths_by_demographic"], 2024, roster=roster)
        lines = parse(block.text)

        assert block.text.splitlines()[0] == '"Deaths by Barangay, Age Group and Gender (Year 2024)"'
        assert block.text.splitlines()[1] == (
            "Name of Barangay,<1,,1-4,,5-14,,15-49,,50-64,,65 ABOVE,,TOTAL,,GRAND TOTAL"
        )
        assert lines[2] == [""] + ["M", "F"] * 7 + [""]

        outside = row_by_label(lines, "Outside Legazpi")
        assert len(outside) == 16
        assert outside[1] == "3"
        assert outside[13] == "3"
        assert outside[15] == "3"
        assert "Outside Legazpi (Philippines)" not in [line[0] for line in lines]

        total = row_by_label(lines, "TOTAL")
        assert total[15] == "4"
        assert block.inconsistencies == []

    def test_month_view(self, all_payloads, roster):
        block = render_deaths_by_demographic(all_payloads["deaths_by_demographic"], 2024, roster=roster, month=1)
        lines = parse(block.text)

        assert lines[0] == ["Deaths by Barangay, Age Group and Gender (January 2024)"]
        assert [line[0] for line in lines[3:]] == ["Outside Legazpi", "TOTAL"]

    def test_demographic_values_layout(self, counts):
        values = demographic_values(counts(male={"oneToFourYears": 2}, female={"sixtyFiveAndAbove": 1}))

        assert len(values) == 15
        assert values[2] == 2
        assert values[11] == 1
        assert values[12:] == [2, 1, 3]
