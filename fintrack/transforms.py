import json
from typing import Any, Tuple

from fintrack.domain import EXPENSE, INCOME, BudgetCategory, IncomeSource, Subscription, Transaction

Ledger = Tuple[
    Tuple[Transaction, ...],
    Tuple[BudgetCategory, ...],
    Tuple[IncomeSource, ...],
    Tuple[Subscription, ...],
]


def _subscription(raw: dict[str, Any]) -> Subscription:
    data = dict(raw)
    data["transaction_ids"] = tuple(data.get("transaction_ids", ()))
    return Subscription(**data)


def load_seed(path: str) -> Ledger:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    transactions = tuple(Transaction(**t) for t in data.get("transactions", []))
    budgets = tuple(BudgetCategory(**b) for b in data.get("budgets", []))
    income_sources = tuple(IncomeSource(**s) for s in data.get("income_sources", []))
    subscriptions = tuple(_subscription(s) for s in data.get("subscriptions", []))

    return transactions, budgets, income_sources, subscriptions


def add_transaction(
    trans: Tuple[Transaction, ...], t: Transaction
) -> Tuple[Transaction, ...]:
    return trans + (t,)


def update_transaction(
    trans: Tuple[Transaction, ...], updated: Transaction
) -> Tuple[Transaction, ...]:
    return tuple(updated if t.id == updated.id else t for t in trans)


def delete_transaction(
    trans: Tuple[Transaction, ...], tid: str
) -> Tuple[Transaction, ...]:
    return tuple(t for t in trans if t.id != tid)


def update_budget_amount(
    budgets: Tuple[BudgetCategory, ...], bid: str, new_amount: float
) -> Tuple[BudgetCategory, ...]:
    return tuple(
        BudgetCategory(
            id=b.id,
            name=b.name,
            amount=new_amount if b.id == bid else b.amount,
            type=b.type,
        )
        for b in budgets
    )


def upsert_subscription(
    subs: Tuple[Subscription, ...], sub: Subscription
) -> Tuple[Subscription, ...]:
    if any(s.id == sub.id for s in subs):
        return tuple(sub if s.id == sub.id else s for s in subs)
    return subs + (sub,)


def delete_subscription(
    subs: Tuple[Subscription, ...], sid: str
) -> Tuple[Subscription, ...]:
    return tuple(s for s in subs if s.id != sid)


def income_transactions(trans: Tuple[Transaction, ...]) -> Tuple[Transaction, ...]:
    return tuple(filter(lambda t: t.type == INCOME, trans))


def expense_transactions(trans: Tuple[Transaction, ...]) -> Tuple[Transaction, ...]:
    return tuple(filter(lambda t: t.type == EXPENSE, trans))
