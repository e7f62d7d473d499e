from typing import Iterable

from fintrack.domain import EXPENSE, BudgetCategory, BudgetStatus, Transaction
from fintrack.functional import Either, Left, Right

WARNING_THRESHOLD = 75.0
OVER_THRESHOLD = 100.0

FILTER_ALL = "all"
FILTER_OVER = "over"
FILTER_UNDER = "under"


def category_spending(name: str, trans: Iterable[Transaction]) -> float:
    # a category string that matches no transaction simply yields 0
    return sum(t.amount for t in trans if t.category == name and t.type == EXPENSE)


def budget_percentage(spent: float, budget: float) -> float:
    if budget <= 0:
        return 0.0
    return min(100.0, spent / budget * 100)


def status_level(percentage: float) -> str:
    if percentage >= OVER_THRESHOLD:
        return "over"
    if percentage >= WARNING_THRESHOLD:
        return "warning"
    return "ok"


def evaluate_budget(cat: BudgetCategory, trans: Iterable[Transaction]) -> BudgetStatus:
    spent = category_spending(cat.name, trans)
    percentage = budget_percentage(spent, cat.amount)
    return BudgetStatus(
        category=cat.name,
        budget=cat.amount,
        spent=spent,
        remaining=cat.amount - spent,
        percentage=percentage,
        is_over_budget=spent > cat.amount,
        level=status_level(percentage),
    )


def evaluate_budgets(cats: Iterable[BudgetCategory], trans: Iterable[Transaction]) -> list[BudgetStatus]:
    trans = tuple(trans)
    return [evaluate_budget(c, trans) for c in cats]


def budget_overview(cats: Iterable[BudgetCategory], trans: Iterable[Transaction]) -> dict:
    """Whole-budget totals plus how many categories are over or under."""
    cats = tuple(cats)
    trans = tuple(trans)
    total_budget = sum(c.amount for c in cats)
    total_spent = sum(t.amount for t in trans if t.type == EXPENSE)
    over = sum(1 for s in evaluate_budgets(cats, trans) if s.is_over_budget)
    return {
        "total_budget": total_budget,
        "total_spent": total_spent,
        "percentage": budget_percentage(total_spent, total_budget),
        "remaining": total_budget - total_spent,
        "is_over_budget": total_spent > total_budget,
        "over_count": over,
        "under_count": len(cats) - over,
    }


def filter_budgets(statuses: Iterable[BudgetStatus], mode: str = FILTER_ALL) -> list[BudgetStatus]:
    if mode == FILTER_OVER:
        return [s for s in statuses if s.is_over_budget]
    if mode == FILTER_UNDER:
        return [s for s in statuses if not s.is_over_budget]
    return list(statuses)


def check_budget(cat: BudgetCategory, trans: Iterable[Transaction]) -> Either[dict, BudgetCategory]:
    status = evaluate_budget(cat, trans)
    if status.is_over_budget:
        return Left({
            "error": "budget_exceeded",
            "message": f"Budget limit exceeded for category {cat.name}",
            "category": cat.name,
            "limit": cat.amount,
            "spent": status.spent,
            "over_budget": status.spent - cat.amount,
        })
    return Right(cat)
