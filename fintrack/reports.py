"""Report aggregations over a transaction list.

Every function here is pure: it reads the transactions it is given and
returns fresh lists/dicts, so recomputing on each page load is always safe.
Transactions whose date cannot be read are left out of date-based views.
"""

from datetime import date
from typing import Any, Iterable, Optional

from fintrack.dates import add_cycle, display_month, in_range, month_key, to_date, trailing_months
from fintrack.domain import EXPENSE, INCOME, MONTHLY, Transaction

UNCATEGORIZED = "Uncategorized"
OTHER = "Other"


def filter_by_date_range(trans: Iterable[Transaction], start: Any = None, end: Any = None) -> list[Transaction]:
    lo, hi = to_date(start), to_date(end)
    return [t for t in trans if in_range(to_date(t.date), lo, hi)]


def summary_metrics(trans: Iterable[Transaction]) -> dict[str, float]:
    income = 0.0
    expenses = 0.0
    for t in trans:
        if t.type == INCOME:
            income += t.amount
        elif t.type == EXPENSE:
            expenses += t.amount
    return {"total_income": income, "total_expenses": expenses, "net_savings": income - expenses}


def monthly_totals(trans: Iterable[Transaction], end: Any = None, months: int = 6) -> list[dict]:
    """Income/expense sums for the trailing ``months`` months ending at ``end``.

    Buckets are created up front, so quiet months show as zero and anything
    outside the window is ignored.
    """
    end_date = to_date(end) or date.today()
    buckets: dict[str, dict] = {}
    for key in trailing_months(end_date, months):
        buckets[key] = {"month": key, "display_month": display_month(key), "income": 0.0, "expenses": 0.0}

    for t in trans:
        d = to_date(t.date)
        if d is None:
            continue
        row = buckets.get(month_key(d))
        if row is None:
            continue
        if t.type == INCOME:
            row["income"] += t.amount
        elif t.type == EXPENSE:
            row["expenses"] += t.amount

    rows = list(buckets.values())
    for row in rows:
        row["savings"] = row["income"] - row["expenses"]
    return rows


def monthly_series(trans: Iterable[Transaction], type: Optional[str] = None) -> list[dict]:
    """Per-month totals for the months present in the data, oldest first."""
    series: dict[str, dict] = {}
    for t in trans:
        if type is not None and t.type != type:
            continue
        d = to_date(t.date)
        if d is None:
            continue
        key = month_key(d)
        row = series.get(key)
        if row is None:
            row = series[key] = {"month": key, "display_month": display_month(key), "total": 0.0, "sources": {}}
        category = t.category or UNCATEGORIZED
        row["sources"][category] = row["sources"].get(category, 0.0) + t.amount
        row["total"] += t.amount
    return [series[k] for k in sorted(series)]


def moving_average(values: Iterable[float], window: int = 3) -> list[float]:
    # the window shrinks at the start of the series instead of padding with zeros
    values = list(values)
    out = []
    for i in range(len(values)):
        span = values[max(0, i - window + 1): i + 1]
        out.append(sum(span) / len(span))
    return out


def with_moving_average(rows: list[dict], key: str = "total", window: int = 3) -> list[dict]:
    averages = moving_average((r[key] for r in rows), window)
    return [{**r, "moving_average": avg} for r, avg in zip(rows, averages)]


def category_breakdown(trans: Iterable[Transaction], type: str = EXPENSE) -> list[dict]:
    """Totals per category with their share of the whole, largest first.

    Percentages are rounded to one decimal. Equal totals keep the order in
    which their categories were first seen.
    """
    totals: dict[str, float] = {}
    counts: dict[str, int] = {}
    for t in trans:
        if t.type != type:
            continue
        name = t.category or UNCATEGORIZED
        totals[name] = totals.get(name, 0.0) + t.amount
        counts[name] = counts.get(name, 0) + 1

    grand = sum(totals.values())
    rows = [
        {
            "name": name,
            "value": value,
            "count": counts[name],
            "percentage": round(value / grand * 100, 1) if grand > 0 else 0.0,
        }
        for name, value in totals.items()
    ]
    rows.sort(key=lambda r: r["value"], reverse=True)
    return rows


def group_small_categories(rows: list[dict], limit: int = 7) -> list[dict]:
    if len(rows) <= limit:
        return list(rows)
    head, tail = rows[: limit - 1], rows[limit - 1:]
    grand = sum(r["value"] for r in rows)
    other_total = sum(r["value"] for r in tail)
    other = {
        "name": OTHER,
        "value": other_total,
        "count": sum(r["count"] for r in tail),
        "percentage": round(other_total / grand * 100, 1) if grand > 0 else 0.0,
        "is_group": True,
        "items": tail,
    }
    return head + [other]


def top_category(rows: list[dict]) -> Optional[dict]:
    return rows[0] if rows else None


def top_spending_categories(trans: Iterable[Transaction], count: int = 5) -> list[dict]:
    return [{"category": r["name"], "amount": r["value"]} for r in category_breakdown(trans, EXPENSE)[:count]]


def income_analysis(trans: Iterable[Transaction]) -> dict[str, Any]:
    income = [t for t in trans if t.type == INCOME]
    sources = category_breakdown(income, INCOME)
    series = with_moving_average(monthly_series(income, INCOME))
    total = sum(r["value"] for r in sources)
    return {
        "total_income": total,
        "average_monthly_income": total / len(series) if series else 0.0,
        "top_source": top_category(sources),
        "sources": sources,
        "monthly": series,
    }


def _largest(trans: list[Transaction]) -> dict[str, Any]:
    best = None
    for t in trans:
        if best is None or t.amount > best.amount:
            best = t
    if best is None:
        return {"amount": 0.0, "description": "None"}
    return {"amount": best.amount, "description": best.description}


def transaction_trends(trans: Iterable[Transaction]) -> dict[str, Any]:
    trans = list(trans)
    expenses = [t for t in trans if t.type == EXPENSE]
    incomes = [t for t in trans if t.type == INCOME]
    total_expense = sum(t.amount for t in expenses)

    daily: dict[date, dict] = {}
    for t in trans:
        d = to_date(t.date)
        if d is None:
            continue
        row = daily.setdefault(d, {"date": d.isoformat(), "display_date": d.strftime("%b %d"),
                                   "income": 0.0, "expenses": 0.0})
        if t.type == INCOME:
            row["income"] += t.amount
        elif t.type == EXPENSE:
            row["expenses"] += t.amount

    running = 0.0
    series = []
    for d in sorted(daily):
        row = daily[d]
        running += row["income"] - row["expenses"]
        series.append({**row, "balance": running})

    return {
        "average_expense": total_expense / len(expenses) if expenses else 0.0,
        "largest_expense": _largest(expenses),
        "largest_income": _largest(incomes),
        "count": len(trans),
        "daily": series,
    }


def unusual_spending(trans: Iterable[Transaction], today: Any = None) -> list[dict]:
    """Categories whose last-month spend jumped against the two months before.

    A category is reported when the increase is above 50% and above 50 in
    absolute terms. Categories averaging under 10 before are skipped.
    """
    now = to_date(today) or date.today()
    three_months_ago = add_cycle(now, MONTHLY, -3)
    one_month_ago = add_cycle(now, MONTHLY, -1)

    previous: dict[str, float] = {}
    current: dict[str, float] = {}
    for t in trans:
        if t.type != EXPENSE:
            continue
        d = to_date(t.date)
        if d is None or d <= three_months_ago:
            continue
        category = t.category or UNCATEGORIZED
        bucket = current if d > one_month_ago else previous
        bucket[category] = bucket.get(category, 0.0) + t.amount

    flagged = []
    for category, spent in current.items():
        before = previous.get(category, 0.0) / 2
        if before < 10:
            continue
        increase = (spent - before) / before * 100
        if increase > 50 and spent - before > 50:
            flagged.append({"category": category, "amount": spent, "percent_increase": increase})
    flagged.sort(key=lambda r: r["percent_increase"], reverse=True)
    return flagged


def report_snapshot(trans: Iterable[Transaction], start: Any = None, end: Any = None, months: int = 6) -> dict[str, Any]:
    """Everything the reports page shows, computed from one date-filtered list."""
    scoped = filter_by_date_range(trans, start, end)
    return {
        "summary": summary_metrics(scoped),
        "monthly": with_moving_average(monthly_totals(scoped, end, months), key="expenses"),
        "categories": group_small_categories(category_breakdown(scoped, EXPENSE)),
        "income": income_analysis(scoped),
        "trends": transaction_trends(scoped),
    }
