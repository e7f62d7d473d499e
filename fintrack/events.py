from datetime import date, datetime
from typing import Callable, Dict, List, NamedTuple

from fintrack.budgets import category_spending, check_budget
from fintrack.dates import days_between, to_date

__all__ = [
    'TRANSACTION_ADDED', 'SUBSCRIPTION_DUE',
    'Event', 'EventBus', 'default_bus',
    'budget_alert_handler', 'subscription_due_handler',
]

TRANSACTION_ADDED = "TRANSACTION_ADDED"
SUBSCRIPTION_DUE = "SUBSCRIPTION_DUE"


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


Handler = Callable[[Event, dict], dict]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> None:
        self._subscribers.setdefault(name, []).append(handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        handlers = self._subscribers.get(name)
        if not handlers:
            return []

        event = Event(name=name, ts=datetime.now().isoformat(), payload=payload)
        return [handler(event, payload) for handler in list(handlers)]

    def unsubscribe(self, name: str, handler: Handler) -> None:
        handlers = self._subscribers.get(name)
        if handlers and handler in handlers:
            handlers.remove(handler)


def budget_alert_handler(event: Event, payload: dict) -> dict:
    """Re-evaluate the budget touched by a new transaction.

    payload: ``budget`` (BudgetCategory or None) and ``transactions``
    (the ledger including the new transaction).
    """
    budget = payload.get("budget")
    if budget is None:
        return {}
    trans = tuple(payload.get("transactions", ()))
    checked = check_budget(budget, trans)
    if checked.is_left():
        err = checked.get_error()
        return {
            "alert": f"Budget exceeded for {err['category']}: {err['spent']:,.2f} / {err['limit']:,.2f}",
            "category": err["category"],
            "spent": err["spent"],
            "limit": err["limit"],
        }
    return {"category": budget.name, "spent": category_spending(budget.name, trans)}


def subscription_due_handler(event: Event, payload: dict) -> dict:
    sub = payload.get("subscription")
    if sub is None:
        return {}
    today = to_date(payload.get("today")) or date.today()
    due = to_date(sub.next_billing_date)
    if due is None:
        return {}
    days_left = days_between(due, today)
    if 0 <= days_left <= payload.get("days", 3):
        when = "today" if days_left == 0 else f"in {days_left} day(s)"
        return {
            "alert": f"{sub.name} renews {when} ({sub.amount:,.2f})",
            "subscription": sub.id,
            "due": due.isoformat(),
        }
    return {}


def default_bus() -> EventBus:
    bus = EventBus()
    bus.subscribe(TRANSACTION_ADDED, budget_alert_handler)
    bus.subscribe(SUBSCRIPTION_DUE, subscription_due_handler)
    return bus
