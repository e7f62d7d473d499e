from typing import Iterable

from fintrack.domain import ANNUALLY, BIWEEKLY, MONTHLY, QUARTERLY, WEEKLY, IncomeSource

# multiplier that turns one payment into its monthly equivalent
MONTHLY_FACTORS = {
    WEEKLY: 52 / 12,
    BIWEEKLY: 26 / 12,
    MONTHLY: 1.0,
    QUARTERLY: 1 / 3,
    ANNUALLY: 1 / 12,
}


def monthly_equivalent(source: IncomeSource) -> float:
    return source.amount * MONTHLY_FACTORS.get(source.frequency, 0.0)


def total_monthly_income(sources: Iterable[IncomeSource]) -> float:
    return sum(monthly_equivalent(s) for s in sources)


def annual_income(sources: Iterable[IncomeSource]) -> float:
    return total_monthly_income(sources) * 12


def income_by_frequency(sources: Iterable[IncomeSource]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for s in sources:
        totals[s.frequency] = totals.get(s.frequency, 0.0) + monthly_equivalent(s)
    return totals
