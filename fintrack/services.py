from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from fintrack import reports
from fintrack.budgets import (
    FILTER_ALL,
    budget_overview,
    evaluate_budget,
    evaluate_budgets,
    filter_budgets,
)
from fintrack.dates import month_key, to_date
from fintrack.domain import EXPENSE, MANUAL, BudgetCategory, BudgetStatus, CurrentUser, IncomeSource, Subscription, Transaction
from fintrack.events import SUBSCRIPTION_DUE, TRANSACTION_ADDED, EventBus, default_bus
from fintrack.functional import Either, Left, Right, find_budget, validate_transaction
from fintrack.income import total_monthly_income
from fintrack.logging_setup import get_logger
from fintrack.subscriptions import detect_subscriptions, merge_subscriptions, roll_forward, subscription_totals, upcoming_bills
from fintrack.transforms import (
    Ledger,
    add_transaction,
    delete_subscription,
    delete_transaction,
    update_budget_amount,
    update_transaction,
    upsert_subscription,
)

logger = get_logger("fintrack.services")

TRANSACTIONS = "transactions"
BUDGETS = "budgets"
INCOME_SOURCES = "income_sources"
SUBSCRIPTIONS = "subscriptions"


class Store(Protocol):
    """Per-user record collections.

    ``load`` returns the records of one collection. ``save`` replaces the
    whole collection with ``records``.
    """

    def load(self, uid: str, collection: str) -> Iterable[Any]:
        ...

    def save(self, uid: str, collection: str, records: Tuple[Any, ...]) -> None:
        ...


class Notifier(Protocol):
    def notify(self, title: str, description: str, variant: str = "default") -> None:
        ...


@dataclass
class ListNotifier:
    """Notifier that keeps every message; used by tests and batch callers."""

    messages: List[Dict[str, str]] = field(default_factory=list)

    def notify(self, title: str, description: str, variant: str = "default") -> None:
        self.messages.append({"title": title, "description": description, "variant": variant})


class SeedStore:
    """In-memory store seeded with one user's ledger (as returned by ``load_seed``)."""

    def __init__(self, uid: str, ledger: Ledger):
        transactions, budgets, income_sources, subscriptions = ledger
        self._collections: Dict[Tuple[str, str], Tuple[Any, ...]] = {
            (uid, TRANSACTIONS): tuple(transactions),
            (uid, BUDGETS): tuple(budgets),
            (uid, INCOME_SOURCES): tuple(income_sources),
            (uid, SUBSCRIPTIONS): tuple(subscriptions),
        }

    def load(self, uid: str, collection: str) -> Tuple[Any, ...]:
        return self._collections.get((uid, collection), ())

    def save(self, uid: str, collection: str, records: Tuple[Any, ...]) -> None:
        self._collections[(uid, collection)] = tuple(records)


class BudgetService:
    """Facade for budget reports built from injected validators and calculators.

    validators: functions taking (month, transactions, budgets) -> Sequence[str]
    calculators: functions taking (month, transactions, budgets, acc) -> dict
    """

    def __init__(self, validators: Sequence[Callable[..., Sequence[str]]], calculators: Sequence[Callable[..., Dict[str, Any]]]):
        self.validators = validators
        self.calculators = calculators

    def monthly_report(self, month: str, transactions: Iterable[Transaction], budgets: Iterable[BudgetCategory]) -> Dict[str, Any]:
        """Run validators and calculators and return the report with each step."""
        transactions = tuple(transactions)
        budgets = tuple(budgets)
        report = {
            "month": month,
            "validation": [],
            "steps": [],
            "result": {}
        }

        for v in self.validators:
            try:
                msgs = v(month, transactions, budgets)
            except Exception as e:
                logger.warning("validator %s failed: %s", getattr(v, "__name__", v), e)
                msgs = [f"validator_error: {e}"]
            report["validation"].append({"validator": getattr(v, "__name__", str(v)), "messages": list(msgs)})

        acc: Dict[str, Any] = {}
        for calc in self.calculators:
            out = calc(month, transactions, budgets, acc)
            report["steps"].append({"calculator": getattr(calc, "__name__", str(calc)), "output": out})
            if isinstance(out, dict):
                acc.update(out)

        report["result"] = acc
        return report


class ReportService:
    """Facade for report pages assembled from injected aggregators.

    aggregators: functions taking (transactions, acc) -> dict
    """

    def __init__(self, aggregators: Sequence[Callable[..., Dict[str, Any]]]):
        self.aggregators = aggregators

    def build(self, transactions: Iterable[Transaction], start: Any = None, end: Any = None) -> Dict[str, Any]:
        scoped = reports.filter_by_date_range(transactions, start, end)
        report = {"start": start, "end": end, "steps": [], "result": {}}
        acc: Dict[str, Any] = {}
        for agg in self.aggregators:
            out = agg(scoped, acc)
            report["steps"].append({"aggregator": getattr(agg, "__name__", str(agg)), "output": out})
            if isinstance(out, dict):
                acc.update(out)
        report["result"] = acc
        return report


def has_budgets(month, transactions, budgets) -> List[str]:
    return [] if budgets else ["No budgets defined"]


def unmatched_categories(month, transactions, budgets) -> List[str]:
    # spend under a category no budget names is invisible to every budget
    names = {b.name for b in budgets}
    seen = []
    for t in transactions:
        if t.type == EXPENSE and t.category not in names and t.category not in seen:
            seen.append(t.category)
    return [f"No budget for category {c!r}" for c in seen]


def _in_month(t: Transaction, month: str) -> bool:
    d = to_date(t.date)
    return d is not None and month_key(d) == month


def month_budget_statuses(month, transactions, budgets, acc=None) -> Dict[str, Any]:
    in_month = [t for t in transactions if _in_month(t, month)]
    statuses = evaluate_budgets(budgets, in_month)
    return {
        "budget_statuses": statuses,
        "total_spent": sum(s.spent for s in statuses),
        "total_budget": sum(s.budget for s in statuses),
    }


def summary_aggregator(transactions, acc=None) -> Dict[str, Any]:
    return {"summary": reports.summary_metrics(transactions)}


def category_aggregator(transactions, acc=None) -> Dict[str, Any]:
    rows = reports.category_breakdown(transactions)
    return {"categories": reports.group_small_categories(rows), "top_category": reports.top_category(rows)}


def income_aggregator(transactions, acc=None) -> Dict[str, Any]:
    return {"income": reports.income_analysis(transactions)}


def trends_aggregator(transactions, acc=None) -> Dict[str, Any]:
    return {"trends": reports.transaction_trends(transactions)}


def monthly_aggregator(end: Any, months: int) -> Callable[..., Dict[str, Any]]:
    def monthly_totals(transactions, acc=None) -> Dict[str, Any]:
        rows = reports.monthly_totals(transactions, end, months)
        return {"monthly": reports.with_moving_average(rows, key="expenses")}

    return monthly_totals


DEFAULT_AGGREGATORS = (summary_aggregator, category_aggregator, income_aggregator, trends_aggregator)


class FinanceService:
    """Per-user facade over the pure finance functions.

    The current user, the data store, the notifier and the event bus are all
    passed in; nothing here reads global application state. Every change is
    written through to the store before the in-memory ledger is updated.
    """

    def __init__(
        self,
        user: Optional[CurrentUser],
        store: Store,
        notifier: Notifier,
        bus: Optional[EventBus] = None,
        report_months: int = 6,
    ):
        self.user = user
        self.store = store
        self.notifier = notifier
        self.bus = bus or default_bus()
        self.report_months = report_months
        self.transactions: Tuple[Transaction, ...] = ()
        self.budgets: Tuple[BudgetCategory, ...] = ()
        self.income_sources: Tuple[IncomeSource, ...] = ()
        self.manual_subscriptions: Tuple[Subscription, ...] = ()

    def _signed_in(self) -> bool:
        return self.user is not None and bool(self.user.uid)

    def _load(self, collection: str) -> Tuple[Any, ...]:
        if not self._signed_in():
            return ()
        try:
            return tuple(self.store.load(self.user.uid, collection))
        except Exception:
            logger.exception("failed to load %s for user %s", collection, self.user.uid)
            self.notifier.notify("Error", f"Failed to load {collection.replace('_', ' ')}", "destructive")
            return ()

    def _save(self, collection: str, records: Tuple[Any, ...]) -> bool:
        if not self._signed_in():
            logger.info("not saving %s: no signed-in user", collection)
            return False
        try:
            self.store.save(self.user.uid, collection, records)
        except Exception:
            logger.exception("failed to save %s for user %s", collection, self.user.uid)
            self.notifier.notify("Error", f"Failed to save {collection.replace('_', ' ')}", "destructive")
            return False
        return True

    def refresh(self) -> "FinanceService":
        self.transactions = self._load(TRANSACTIONS)
        self.budgets = self._load(BUDGETS)
        self.income_sources = self._load(INCOME_SOURCES)
        self.manual_subscriptions = self._load(SUBSCRIPTIONS)
        logger.info(
            "loaded %d transaction(s), %d budget(s), %d income source(s), %d subscription(s)",
            len(self.transactions), len(self.budgets), len(self.income_sources), len(self.manual_subscriptions),
        )
        return self

    # subscriptions

    def detected_subscriptions(self) -> List[Subscription]:
        return detect_subscriptions(self.transactions)

    def subscriptions(self, today: Any = None) -> List[Subscription]:
        """Manual subscriptions (rolled past ``today``) merged with detected ones."""
        manual = [roll_forward(s, today) for s in self.manual_subscriptions]
        return merge_subscriptions(manual, self.detected_subscriptions())

    def subscription_totals(self) -> Dict[str, float]:
        return subscription_totals(self.subscriptions())

    def save_subscription(self, sub: Subscription) -> Optional[Subscription]:
        sub = replace(sub, source=MANUAL)
        updated = upsert_subscription(self.manual_subscriptions, sub)
        if not self._save(SUBSCRIPTIONS, updated):
            return None
        self.manual_subscriptions = updated
        self.notifier.notify("Subscription Saved", f"{sub.name} has been saved")
        return sub

    def remove_subscription(self, sid: str) -> bool:
        removed = next((s for s in self.manual_subscriptions if s.id == sid), None)
        if removed is None:
            self.notifier.notify("Error", "Failed to delete subscription", "destructive")
            return False
        updated = delete_subscription(self.manual_subscriptions, sid)
        if not self._save(SUBSCRIPTIONS, updated):
            return False
        self.manual_subscriptions = updated
        self.notifier.notify("Subscription Deleted", f"{removed.name} has been removed")
        return True

    def due_reminders(self, today: Any = None, days: int = 3) -> List[dict]:
        today = to_date(today) or date.today()
        alerts = []
        for _, sub in upcoming_bills(self.subscriptions(today), today, days):
            for result in self.bus.publish(SUBSCRIPTION_DUE, {"subscription": sub, "today": today, "days": days}):
                if "alert" in result:
                    alerts.append(result)
                    self.notifier.notify("Upcoming bill", result["alert"])
        return alerts

    # budgets

    def budget_statuses(self, mode: str = FILTER_ALL) -> List[BudgetStatus]:
        return filter_budgets(evaluate_budgets(self.budgets, self.transactions), mode)

    def budget_overview(self) -> Dict[str, Any]:
        return budget_overview(self.budgets, self.transactions)

    def monthly_budget_report(self, month: str) -> Dict[str, Any]:
        svc = BudgetService(validators=[has_budgets, unmatched_categories], calculators=[month_budget_statuses])
        return svc.monthly_report(month, self.transactions, self.budgets)

    def budget_status(self, name: str) -> Optional[BudgetStatus]:
        return find_budget(self.budgets, name).map(lambda b: evaluate_budget(b, self.transactions)).get_or_else(None)

    def set_budget_amount(self, bid: str, amount: float) -> Either[dict, str]:
        if amount < 0:
            self.notifier.notify("Error", "Budget amount cannot be negative", "destructive")
            return Left({"error": "invalid_amount", "message": "Budget amount cannot be negative", "amount": amount})
        if not any(b.id == bid for b in self.budgets):
            return Left({"error": "not_found", "message": f"Budget {bid} does not exist"})
        updated = update_budget_amount(self.budgets, bid, amount)
        if not self._save(BUDGETS, updated):
            return Left({"error": "store_error", "message": "Failed to save budgets"})
        self.budgets = updated
        self.notifier.notify("Budget updated", f"New limit {amount:,.2f}")
        return Right(bid)

    # reports

    def report(self, start: Any = None, end: Any = None) -> Dict[str, Any]:
        aggregators = DEFAULT_AGGREGATORS + (monthly_aggregator(end, self.report_months),)
        built = ReportService(aggregators).build(self.transactions, start, end)
        built["result"]["monthly_income"] = total_monthly_income(self.income_sources)
        return built

    # transactions

    def _reject(self, t: Transaction, checked: Either[dict, Transaction]) -> Either[dict, Transaction]:
        error = checked.get_error()
        logger.info("rejected transaction %s: %s", t.id, error["error"])
        self.notifier.notify("Error", error["message"], "destructive")
        return checked

    def record_transaction(self, t: Transaction) -> Either[dict, Transaction]:
        checked = validate_transaction(t)
        if checked.is_left():
            return self._reject(t, checked)

        updated = add_transaction(self.transactions, t)
        if not self._save(TRANSACTIONS, updated):
            return Left({"error": "store_error", "message": "Failed to save transactions"})
        self.transactions = updated
        payload = {
            "transaction": t,
            "budget": find_budget(self.budgets, t.category).get_or_else(None),
            "transactions": self.transactions,
        }
        alerts = [r for r in self.bus.publish(TRANSACTION_ADDED, payload) if "alert" in r]
        for alert in alerts:
            self.notifier.notify("Budget alert", alert["alert"], "destructive")
        self.notifier.notify("Transaction added", f"{t.description}: {t.amount:,.2f}")
        return Right(t)

    def edit_transaction(self, t: Transaction) -> Either[dict, Transaction]:
        if not any(old.id == t.id for old in self.transactions):
            return Left({"error": "not_found", "message": f"Transaction {t.id} does not exist"})
        checked = validate_transaction(t)
        if checked.is_left():
            return self._reject(t, checked)

        updated = update_transaction(self.transactions, t)
        if not self._save(TRANSACTIONS, updated):
            return Left({"error": "store_error", "message": "Failed to save transactions"})
        self.transactions = updated
        self.notifier.notify("Transaction updated", f"{t.description}: {t.amount:,.2f}")
        return Right(t)

    def remove_transaction(self, tid: str) -> Either[dict, str]:
        if not any(t.id == tid for t in self.transactions):
            return Left({"error": "not_found", "message": f"Transaction {tid} does not exist"})
        updated = delete_transaction(self.transactions, tid)
        if not self._save(TRANSACTIONS, updated):
            return Left({"error": "store_error", "message": "Failed to save transactions"})
        self.transactions = updated
        self.notifier.notify("Transaction deleted", f"Transaction {tid} has been removed")
        return Right(tid)
