"""Recurring-charge detection over an expense history.

Detection is a strict, precision-first heuristic: a merchant is only reported
when its charges share an identical description, an identical amount and a
regular spacing that falls inside one of the known billing-cycle bands.
Anything else is left out of the result rather than reported with low
confidence.
"""

import re
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Iterable, Optional

from fintrack.dates import add_cycle, days_between, elapsed_days, to_date, to_moment
from fintrack.domain import (
    DETECTED,
    EXPENSE,
    MONTHLY,
    QUARTERLY,
    WEEKLY,
    YEARLY,
    Subscription,
    Transaction,
)
from fintrack.logging_setup import get_logger

logger = get_logger("fintrack.subscriptions")

# inclusive day bands, checked in this order
INTERVAL_BANDS = (
    (YEARLY, 350, 380),
    (MONTHLY, 25, 35),
    (WEEKLY, 6, 8),
)

WEEKS_PER_MONTH = 4.33

_MONTHLY_FACTOR = {
    WEEKLY: WEEKS_PER_MONTH,
    MONTHLY: 1.0,
    QUARTERLY: 1 / 3,
    YEARLY: 1 / 12,
}

_YEARLY_FACTOR = {
    WEEKLY: 52.0,
    MONTHLY: 12.0,
    QUARTERLY: 4.0,
    YEARLY: 1.0,
}


def classify_interval(avg_days: float) -> Optional[str]:
    for cycle, low, high in INTERVAL_BANDS:
        if low <= avg_days <= high:
            return cycle
    return None


def next_billing_date(last: date, cycle: str) -> date:
    return add_cycle(last, cycle)


def subscription_id(name: str) -> str:
    return "sub-" + re.sub(r"\s+", "-", name.lower())


def group_by_merchant(trans: Iterable[Transaction]) -> dict[str, list[tuple[datetime, Transaction]]]:
    """Bucket dated expenses by exact description, keeping first-seen order."""
    groups: dict[str, list[tuple[datetime, Transaction]]] = {}
    for t in trans:
        if t.type != EXPENSE:
            continue
        d = to_moment(t.date)
        if d is None:
            continue
        groups.setdefault(t.description, []).append((d, t))
    return groups


def average_interval(moments: list[datetime]) -> float:
    """Mean gap between neighbours of a newest-first list, each gap in whole days."""
    total = sum(elapsed_days(moments[i], moments[i + 1]) for i in range(len(moments) - 1))
    return total / (len(moments) - 1)


def _detect_one(merchant: str, entries: list[tuple[datetime, Transaction]]) -> Optional[Subscription]:
    if len(entries) < 2:
        return None

    # newest first; ties keep input order
    ordered = sorted(entries, key=lambda e: e[0], reverse=True)
    amounts = [t.amount for _, t in ordered]
    if any(a != amounts[0] for a in amounts):
        return None

    avg = average_interval([d for d, _ in ordered])
    cycle = classify_interval(avg)
    if cycle is None:
        logger.debug("dropping %r: average interval %.1f days fits no cycle", merchant, avg)
        return None

    last_seen, latest = ordered[0]
    last_date = last_seen.date()
    return Subscription(
        id=subscription_id(merchant),
        name=merchant,
        amount=latest.amount,
        billing_cycle=cycle,
        next_billing_date=next_billing_date(last_date, cycle),
        category=latest.category,
        source=DETECTED,
        transaction_ids=tuple(t.id for _, t in ordered),
    )


def detect_subscriptions(trans: Iterable[Transaction]) -> list[Subscription]:
    """Infer recurring subscriptions from a transaction list.

    Income transactions and transactions without a usable date are ignored.
    The result follows the order in which merchants first appear in ``trans``.
    """
    detected = []
    for merchant, entries in group_by_merchant(trans).items():
        sub = _detect_one(merchant, entries)
        if sub is not None:
            detected.append(sub)
    logger.debug("detected %d subscription(s)", len(detected))
    return detected


def advance_billing_date(sub: Subscription) -> Optional[date]:
    current = to_date(sub.next_billing_date)
    if current is None:
        return None
    return add_cycle(current, sub.billing_cycle)


def roll_forward(sub: Subscription, today: Any = None) -> Subscription:
    """Move a past-due billing date forward whole cycles until it is not before ``today``."""
    today = to_date(today) or date.today()
    current = to_date(sub.next_billing_date)
    if current is None or current >= today:
        return sub
    rolled = sub
    while to_date(rolled.next_billing_date) < today:
        rolled = replace(rolled, next_billing_date=advance_billing_date(rolled))
    return rolled


def monthly_cost(sub: Subscription) -> float:
    return sub.amount * _MONTHLY_FACTOR.get(sub.billing_cycle, 0.0)


def yearly_cost(sub: Subscription) -> float:
    return sub.amount * _YEARLY_FACTOR.get(sub.billing_cycle, 0.0)


def subscription_totals(subs: Iterable[Subscription]) -> dict[str, float]:
    monthly = 0.0
    yearly = 0.0
    for s in subs:
        monthly += monthly_cost(s)
        yearly += yearly_cost(s)
    return {"monthly": monthly, "yearly": yearly}


def merge_subscriptions(
    manual: Iterable[Subscription], detected: Iterable[Subscription]
) -> list[Subscription]:
    """Combine stored and detected subscriptions, manual entries winning by name."""
    manual = list(manual)
    names = {s.name for s in manual}
    merged = manual + [s for s in detected if s.name not in names]

    def _key(s: Subscription):
        d = to_date(s.next_billing_date)
        return (d is None, d or date.min)

    return sorted(merged, key=_key)


def upcoming_bills(subs: Iterable[Subscription], today: Any, days: int) -> list[tuple[date, Subscription]]:
    today = to_date(today) or date.today()
    due = []
    for s in subs:
        d = to_date(s.next_billing_date)
        if d is None:
            continue
        if 0 <= days_between(d, today) <= days:
            due.append((d, s))
    due.sort(key=lambda item: item[0])
    return due
