from typing import Callable, Iterable, Iterator

from fintrack.domain import EXPENSE, Transaction


def iter_transactions(
    trans: Iterable[Transaction], pred: Callable[[Transaction], bool]
) -> Iterator[Transaction]:
    for t in trans:
        if pred(t):
            yield t


def lazy_top_categories(trans: Iterable[Transaction], k: int) -> Iterator[tuple[str, float]]:
    totals_by_category: dict[str, float] = {}

    for t in trans:
        if t.type == EXPENSE:
            name = t.category or "Uncategorized"
            totals_by_category[name] = totals_by_category.get(name, 0.0) + t.amount

    # stable sort keeps first-seen order for equal totals
    ordered = sorted(totals_by_category.items(), key=lambda item: item[1], reverse=True)

    for name, total in ordered[: max(0, k)]:
        yield name, total
