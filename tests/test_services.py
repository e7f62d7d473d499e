from datetime import date
from pathlib import Path

import pytest

from fintrack.budgets import FILTER_OVER
from fintrack.domain import EXPENSE, MANUAL, MONTHLY, CurrentUser, Subscription, Transaction
from fintrack.services import (
    BudgetService,
    FinanceService,
    ListNotifier,
    ReportService,
    SeedStore,
    has_budgets,
    month_budget_statuses,
    summary_aggregator,
    unmatched_categories,
)
from fintrack.transforms import load_seed

SEED = Path(__file__).resolve().parent.parent / "data" / "seed.json"


class RecordingStore:
    def __init__(self, fail_on=(), fail_saves=False):
        self.fail_on = set(fail_on)
        self.fail_saves = fail_saves
        self.calls = []
        self.data = {}

    def load(self, uid, collection):
        self.calls.append(("load", collection))
        if collection in self.fail_on:
            raise ConnectionError("offline")
        return self.data.get(collection, ())

    def save(self, uid, collection, records):
        self.calls.append(("save", collection))
        if self.fail_saves:
            raise ConnectionError("offline")
        self.data[collection] = records


def make_service(uid="demo"):
    notifier = ListNotifier()
    store = SeedStore("demo", load_seed(SEED))
    svc = FinanceService(CurrentUser(uid, "Demo"), store, notifier).refresh()
    return svc, notifier


def test_refresh_loads_every_collection():
    svc, notifier = make_service()
    assert len(svc.transactions) == 30
    assert len(svc.budgets) == 5
    assert len(svc.income_sources) == 2
    assert len(svc.manual_subscriptions) == 2
    assert notifier.messages == []


def test_other_user_sees_nothing():
    svc, _ = make_service(uid="someone-else")
    assert svc.transactions == ()
    assert svc.detected_subscriptions() == []


def test_no_user_skips_the_store():
    store = RecordingStore()
    svc = FinanceService(None, store, ListNotifier()).refresh()
    assert store.calls == []
    assert svc.budgets == ()

    t = Transaction("t1", "2025-04-28", "Cinema", 12.0, "Entertainment", EXPENSE)
    assert svc.record_transaction(t).get_error()["error"] == "store_error"
    assert store.calls == []


def test_store_failure_is_reported_and_yields_empty_data():
    notifier = ListNotifier()
    svc = FinanceService(CurrentUser("u1"), RecordingStore(fail_on={"transactions"}), notifier).refresh()

    assert svc.transactions == ()
    assert notifier.messages == [
        {"title": "Error", "description": "Failed to load transactions", "variant": "destructive"}
    ]


def test_detected_and_merged_subscriptions():
    svc, _ = make_service()

    detected = svc.detected_subscriptions()
    assert [s.name for s in detected] == ["Netflix", "Corner Gym", "Amazon Prime"]
    assert detected[0].transaction_ids == ("t24", "t16", "t7", "t2")

    merged = [s.name for s in svc.subscriptions(today="2025-04-01")]
    assert merged == ["Corner Gym", "Daily Ledger", "Netflix", "Cloud Backup", "Amazon Prime"]

    totals = svc.subscription_totals()
    assert totals["yearly"] == pytest.approx(12.0 * 52 + 36.0 * 4 + 15.99 * 12 + 29.99 + 139.0)


def test_save_and_remove_subscription():
    svc, notifier = make_service()
    saved = svc.save_subscription(Subscription("sub-gym", "Gym", 30.0, MONTHLY, "2025-06-01", source="detected"))

    assert saved.source == MANUAL
    assert saved in svc.manual_subscriptions
    assert notifier.messages[-1]["title"] == "Subscription Saved"

    svc.remove_subscription("sub-gym")
    assert saved not in svc.manual_subscriptions
    assert notifier.messages[-1] == {
        "title": "Subscription Deleted", "description": "Gym has been removed", "variant": "default"
    }

    svc.remove_subscription("sub-missing")
    assert notifier.messages[-1]["variant"] == "destructive"


def test_due_reminders():
    svc, notifier = make_service()
    alerts = svc.due_reminders(today="2025-05-03", days=3)

    assert [a["subscription"] for a in alerts] == ["sub-newspaper"]
    assert notifier.messages[-1]["description"] == "Daily Ledger renews in 2 day(s) (36.00)"


def test_budget_views():
    svc, _ = make_service()

    over = [s.category for s in svc.budget_statuses(FILTER_OVER)]
    assert over == ["Groceries", "Entertainment", "Dining", "Transport"]

    overview = svc.budget_overview()
    assert overview["over_count"] == 4
    assert overview["under_count"] == 1

    utilities = svc.budget_status("Utilities")
    assert utilities.spent == pytest.approx(344.6)
    assert utilities.level == "warning"
    assert svc.budget_status("Pets") is None


def test_monthly_budget_report():
    svc, _ = make_service()
    report = svc.monthly_budget_report("2025-04")

    assert report["month"] == "2025-04"
    assert report["validation"][0] == {"validator": "has_budgets", "messages": []}
    assert report["validation"][1]["messages"] == [
        "No budget for category 'Health'",
        "No budget for category 'Shopping'",
        "No budget for category 'Misc'",
    ]
    statuses = {s.category: s for s in report["result"]["budget_statuses"]}
    assert statuses["Dining"].spent == 212.5
    assert statuses["Entertainment"].spent == pytest.approx(26.98)
    assert report["result"]["total_budget"] == 1150.0


def test_budget_service_records_validator_errors():
    def broken(month, transactions, budgets):
        raise RuntimeError("bad data")

    svc = BudgetService(validators=[broken, has_budgets], calculators=[month_budget_statuses])
    report = svc.monthly_report("2025-03", [], [])

    assert report["validation"][0]["messages"] == ["validator_error: bad data"]
    assert report["validation"][1]["messages"] == ["No budgets defined"]
    assert report["result"]["budget_statuses"] == []
    assert report["steps"][0]["calculator"] == "month_budget_statuses"


def test_unmatched_categories_ignores_income():
    trans = [Transaction("t1", "2025-01-01", "Payroll", 10.0, "Salary", "income")]
    assert unmatched_categories("2025-01", trans, []) == []


def test_report_service_filters_by_date():
    trans = (
        Transaction("t1", "2025-01-01", "A", 10.0, "Food", EXPENSE),
        Transaction("t2", "2025-02-01", "B", 20.0, "Food", EXPENSE),
    )
    built = ReportService([summary_aggregator]).build(trans, "2025-02-01", None)
    assert built["result"]["summary"]["total_expenses"] == 20.0
    assert built["steps"][0]["aggregator"] == "summary_aggregator"


def test_finance_report():
    svc, _ = make_service()
    result = svc.report("2025-01-01", "2025-04-30")["result"]

    assert set(result) >= {"summary", "categories", "top_category", "income", "trends", "monthly", "monthly_income"}
    assert result["summary"]["total_income"] == pytest.approx(4200.0 * 4 + 650.0)
    assert result["top_category"]["name"] == "Groceries"
    assert [m["month"] for m in result["monthly"]][-1] == "2025-04"
    assert result["monthly_income"] == pytest.approx(4200.0 + 650.0)


def test_record_transaction_alerts_when_over_budget():
    svc, notifier = make_service()
    t = Transaction("t99", "2025-04-28", "Cinema", 12.0, "Entertainment", EXPENSE)

    result = svc.record_transaction(t)

    assert result.is_right()
    assert svc.transactions[-1] == t
    titles = [m["title"] for m in notifier.messages]
    assert titles == ["Budget alert", "Transaction added"]
    assert notifier.messages[0]["variant"] == "destructive"


def test_record_transaction_rejects_invalid_input():
    svc, notifier = make_service()
    result = svc.record_transaction(Transaction("t99", "2025-04-28", "Cinema", -12.0, "Entertainment", EXPENSE))

    assert result.is_left()
    assert len(svc.transactions) == 30
    assert notifier.messages[-1]["variant"] == "destructive"


def test_remove_transaction():
    svc, _ = make_service()
    assert svc.remove_transaction("t1").is_right()
    assert len(svc.transactions) == 29
    assert svc.remove_transaction("t1").get_error()["error"] == "not_found"


def test_saved_subscription_survives_refresh():
    svc, _ = make_service()
    svc.save_subscription(Subscription("sub-x", "X", 4.0, MONTHLY, "2025-06-01"))

    svc.refresh()
    assert [s.name for s in svc.manual_subscriptions if s.id == "sub-x"] == ["X"]

    svc.remove_subscription("sub-x")
    svc.refresh()
    assert all(s.id != "sub-x" for s in svc.manual_subscriptions)


def test_transaction_changes_survive_refresh():
    svc, _ = make_service()
    t = Transaction("t99", "2025-04-28", "Cinema", 12.0, "Entertainment", EXPENSE)
    svc.record_transaction(t)
    svc.refresh()
    assert [x.id for x in svc.transactions].count("t99") == 1

    svc.edit_transaction(Transaction("t99", "2025-04-28", "Cinema", 18.0, "Entertainment", EXPENSE))
    svc.refresh()
    assert next(x for x in svc.transactions if x.id == "t99").amount == 18.0

    svc.remove_transaction("t99")
    svc.refresh()
    assert all(x.id != "t99" for x in svc.transactions)


def test_budget_limit_change_survives_refresh():
    svc, notifier = make_service()
    assert svc.set_budget_amount("b2", 250.0).is_right()

    svc.refresh()
    assert svc.budget_status("Entertainment").budget == 250.0
    assert svc.budget_status("Entertainment").is_over_budget is False

    assert svc.set_budget_amount("b2", -1.0).get_error()["error"] == "invalid_amount"
    assert svc.set_budget_amount("missing", 10.0).get_error()["error"] == "not_found"


def test_edit_transaction_validates_and_requires_existing_id():
    svc, _ = make_service()
    missing = Transaction("nope", "2025-04-28", "Cinema", 18.0, "Entertainment", EXPENSE)
    assert svc.edit_transaction(missing).get_error()["error"] == "not_found"

    bad = Transaction("t2", "2025-01-15", "Netflix", 0.0, "Entertainment", EXPENSE)
    assert svc.edit_transaction(bad).get_error()["error"] == "invalid_amount"
    assert next(x for x in svc.transactions if x.id == "t2").amount == 15.99


def test_store_write_failure_keeps_state_and_notifies():
    store = RecordingStore(fail_saves=True)
    notifier = ListNotifier()
    svc = FinanceService(CurrentUser("u1"), store, notifier).refresh()

    t = Transaction("t1", "2025-04-28", "Cinema", 12.0, "Entertainment", EXPENSE)
    result = svc.record_transaction(t)

    assert result.get_error()["error"] == "store_error"
    assert svc.transactions == ()
    assert notifier.messages == [
        {"title": "Error", "description": "Failed to save transactions", "variant": "destructive"}
    ]

    assert svc.save_subscription(Subscription("sub-x", "X", 4.0, MONTHLY, "2025-06-01")) is None
    assert svc.manual_subscriptions == ()
    assert notifier.messages[-1]["description"] == "Failed to save subscriptions"


def test_past_due_manual_subscriptions_roll_forward():
    svc, _ = make_service()
    subs = {s.name: s for s in svc.subscriptions(today="2025-06-01")}

    assert subs["Daily Ledger"].next_billing_date == date(2025, 8, 5)
    assert subs["Cloud Backup"].next_billing_date == "2025-09-01"
    # stored records are untouched
    stored = next(s for s in svc.manual_subscriptions if s.name == "Daily Ledger")
    assert stored.next_billing_date == "2025-05-05"


def test_other_users_writes_stay_separate():
    store = SeedStore("demo", load_seed(SEED))
    other = FinanceService(CurrentUser("someone-else"), store, ListNotifier()).refresh()
    other.record_transaction(Transaction("o1", "2025-04-28", "Cinema", 12.0, "Entertainment", EXPENSE))

    demo = FinanceService(CurrentUser("demo"), store, ListNotifier()).refresh()
    assert len(demo.transactions) == 30
    assert [t.id for t in other.refresh().transactions] == ["o1"]
