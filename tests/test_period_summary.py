from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from apuracao.schemas.ledger import Period
from apuracao.services.summary import summarize_period

JUNE = Period(month=6, year=2025)


def test_period_window_is_inclusive_of_whole_month():
    assert JUNE.start == datetime(2025, 6, 1)
    assert JUNE.end == datetime(2025, 6, 30, 23, 59, 59, 999999)
    assert Period(month=2, year=2024).end.day == 29
    assert Period(month=12, year=2025).end == datetime(2025, 12, 31, 23, 59, 59, 999999)


def test_invalid_month_rejected():
    with pytest.raises(ValidationError):
        Period(month=13, year=2025)


def test_groups_lines_by_tax_type(db_session, make_calculation, tax_line):
    make_calculation(datetime(2025, 6, 1, 0, 0), taxes=[tax_line("ICMS", "180"), tax_line("PIS", "16.50")])
    make_calculation(datetime(2025, 6, 30, 23, 59, 59), amount="500", taxes=[tax_line("ICMS", "90")])

    summary = summarize_period(db_session, JUNE)

    assert summary.total_operations == 2
    assert summary.total_amount == Decimal("1500")
    assert summary.total_tax == Decimal("286.50")
    assert list(summary.tax_breakdown) == ["ICMS", "PIS"]
    assert summary.tax_breakdown["ICMS"].total == Decimal("270")
    assert summary.tax_breakdown["ICMS"].operations == 2
    assert summary.tax_breakdown["PIS"].total == Decimal("16.50")
    assert summary.tax_breakdown["PIS"].operations == 1


def test_calculations_outside_month_ignored(db_session, make_calculation, tax_line):
    make_calculation(datetime(2025, 5, 31, 23, 59, 59), taxes=[tax_line("ICMS", "1")])
    make_calculation(datetime(2025, 7, 1, 0, 0), taxes=[tax_line("ICMS", "2")])
    make_calculation(datetime(2025, 6, 15, 12, 0), taxes=[tax_line("ICMS", "3")])

    summary = summarize_period(db_session, JUNE)

    assert summary.total_operations == 1
    assert summary.tax_breakdown["ICMS"].total == Decimal("3")


@pytest.mark.parametrize(
    "result",
    [
        {},
        {"taxes": None},
        {"taxes": "ICMS"},
        {"taxes": [{"tax_type": "ICMS"}]},
        {"taxes": [{"tax_type": "ICMS", "amount": "abc"}]},
        {"taxes": [None]},
        [],
    ],
)
def test_malformed_results_count_but_do_not_break_down(db_session, make_calculation, tax_line, result):
    make_calculation(datetime(2025, 6, 10), amount="200", result=result)
    make_calculation(datetime(2025, 6, 11), amount="1000", taxes=[tax_line("ICMS", "180")])

    summary = summarize_period(db_session, JUNE)

    assert summary.total_operations == 2
    assert summary.total_amount == Decimal("1200")
    assert summary.total_tax == Decimal("180")
    assert list(summary.tax_breakdown) == ["ICMS"]
    assert summary.tax_breakdown["ICMS"].operations == 1


def test_empty_period(db_session):
    summary = summarize_period(db_session, JUNE)

    assert summary.total_operations == 0
    assert summary.total_amount == Decimal("0")
    assert summary.tax_breakdown == {}
