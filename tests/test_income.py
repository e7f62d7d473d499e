import pytest

from fintrack.domain import ANNUALLY, BIWEEKLY, MONTHLY, WEEKLY, IncomeSource
from fintrack.income import annual_income, income_by_frequency, monthly_equivalent, total_monthly_income


def make_sources():
    return (
        IncomeSource("i1", "Acme Payroll", 4200.0, MONTHLY, "2025-01-01"),
        IncomeSource("i2", "Tutoring", 120.0, WEEKLY, "2025-01-01"),
        IncomeSource("i3", "Dividends", 1200.0, ANNUALLY, "2025-01-01"),
        IncomeSource("i4", "Contract", 600.0, BIWEEKLY, "2025-01-01"),
    )


def test_monthly_equivalent():
    sources = make_sources()
    assert monthly_equivalent(sources[0]) == 4200.0
    assert monthly_equivalent(sources[1]) == pytest.approx(520.0)
    assert monthly_equivalent(sources[2]) == pytest.approx(100.0)
    assert monthly_equivalent(sources[3]) == pytest.approx(1300.0)


def test_totals():
    sources = make_sources()
    assert total_monthly_income(sources) == pytest.approx(6120.0)
    assert annual_income(sources) == pytest.approx(73440.0)
    assert total_monthly_income([]) == 0


def test_unknown_frequency_contributes_nothing():
    odd = IncomeSource("i9", "Lottery", 50.0, "someday", "2025-01-01")
    assert monthly_equivalent(odd) == 0.0


def test_income_by_frequency():
    totals = income_by_frequency(make_sources())
    assert totals[MONTHLY] == 4200.0
    assert totals[WEEKLY] == pytest.approx(520.0)
    assert set(totals) == {MONTHLY, WEEKLY, ANNUALLY, BIWEEKLY}
