"""
Unit tests -- result formatter: pipe tables, date normalisation, nulls.
"""
import datetime

import pytest
from ledger_copilot.copilot.formatter import NO_RESULTS, format_rows, render_value


# ── render_value ─────────────────────────────────────────

def test_null_is_empty():
    assert render_value(None) == ""


def test_date_object():
    assert render_value(datetime.date(2024, 3, 31)) == "3/31/2024"


def test_datetime_object():
    assert render_value(datetime.datetime(2024, 1, 5, 13, 45)) == "1/5/2024"


@pytest.mark.parametrize("text", [
    "2024-03-31",
    "2024-03-31T00:00:00",
    "2024-03-31 00:00:00.000",
    "2024-03-31T00:00:00Z",
    "2024-03-31T00:00:00-05:00",
])
def test_iso_strings(text):
    assert render_value(text) == "3/31/2024"


def test_invalid_iso_date_left_alone():
    assert render_value("2024-13-45") == "2024-13-45"


def test_numbers_rendered_plainly():
    assert render_value(1234.5) == "1234.5"
    assert render_value(0) == "0"


def test_pipe_escaped():
    assert render_value("A|B") == "A\\|B"


def test_newlines_flattened():
    assert render_value("line one\nline two") == "line one line two"


# ── format_rows ──────────────────────────────────────────

def test_empty_rows():
    assert format_rows([]) == NO_RESULTS


def test_header_and_separator():
    table = format_rows([{"VENDORNAME": "Acme", "TOTAL": 10}])
    lines = table.splitlines()
    assert lines[0] == "| VENDORNAME | TOTAL |"
    assert lines[1] == "| --- | --- |"
    assert lines[2] == "| Acme | 10 |"


def test_one_line_per_row():
    rows = [{"A": i} for i in range(5)]
    assert len(format_rows(rows).splitlines()) == 2 + 5


def test_pinned_column_order():
    rows = [{"TOTAL": 5, "PER_END_DATE": datetime.date(2024, 1, 31)}]
    table = format_rows(rows, ["PER_END_DATE", "TOTAL"])
    assert table.splitlines()[0] == "| PER_END_DATE | TOTAL |"
    assert table.splitlines()[2] == "| 1/31/2024 | 5 |"


def test_pinned_columns_match_folded_keys():
    rows = [{"per_end_date": "2024-02-29", "total": 7}]
    table = format_rows(rows, ["PER_END_DATE", "TOTAL"])
    assert table.splitlines()[0] == "| PER_END_DATE | TOTAL |"
    assert table.splitlines()[2] == "| 2/29/2024 | 7 |"


def test_null_cells():
    table = format_rows([{"VENDORNAME": None, "TOTAL": 3}])
    assert table.splitlines()[2] == "|  | 3 |"


def test_monthly_totals_table():
    rows = [
        {"PER_END_DATE": datetime.date(2024, 1, 31), "TOTAL": 1200.0},
        {"PER_END_DATE": datetime.date(2024, 2, 29), "TOTAL": 980.5},
        {"PER_END_DATE": datetime.date(2024, 3, 31), "TOTAL": 1410.25},
    ]
    assert format_rows(rows, ["PER_END_DATE", "TOTAL"]) == (
        "| PER_END_DATE | TOTAL |\n"
        "| --- | --- |\n"
        "| 1/31/2024 | 1200.0 |\n"
        "| 2/29/2024 | 980.5 |\n"
        "| 3/31/2024 | 1410.25 |"
    )
