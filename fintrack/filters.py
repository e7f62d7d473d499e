from typing import Any, Callable

from fintrack.dates import in_range, to_date
from fintrack.domain import Transaction

Predicate = Callable[[Transaction], bool]


def by_type(type: str) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.type == type

    return _filter


def by_category(name: str) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return t.category == name

    return _filter


def by_description(text: str) -> Predicate:
    needle = text.lower()

    def _filter(t: Transaction) -> bool:
        return needle in (t.description or "").lower()

    return _filter


def by_date_range(start: Any, end: Any) -> Predicate:
    lo, hi = to_date(start), to_date(end)

    def _filter(t: Transaction) -> bool:
        return in_range(to_date(t.date), lo, hi)

    return _filter


def by_amount_range(min: float, max: float) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return min <= t.amount <= max

    return _filter


def all_of(*preds: Predicate) -> Predicate:
    def _filter(t: Transaction) -> bool:
        return all(p(t) for p in preds)

    return _filter
