from dataclasses import dataclass
from typing import Any, Optional

INCOME = "income"
EXPENSE = "expense"
TRANSACTION_TYPES = (INCOME, EXPENSE)

WEEKLY = "weekly"
BIWEEKLY = "biweekly"
MONTHLY = "monthly"
QUARTERLY = "quarterly"
YEARLY = "yearly"
ANNUALLY = "annually"

BILLING_CYCLES = (WEEKLY, MONTHLY, QUARTERLY, YEARLY)
INCOME_FREQUENCIES = (WEEKLY, BIWEEKLY, MONTHLY, QUARTERLY, ANNUALLY)

DETECTED = "detected"
MANUAL = "manual"


@dataclass(frozen=True)
class Transaction:
    id: str
    date: Any          # date, datetime, ISO string or timestamp with toDate()
    description: str   # merchant / payee
    amount: float      # always positive, direction comes from type
    category: str
    type: str          # "income" or "expense"
    notes: str = ""


@dataclass(frozen=True)
class Subscription:
    id: str
    name: str
    amount: float
    billing_cycle: str
    next_billing_date: Any
    category: str = ""
    source: str = MANUAL
    transaction_ids: tuple[str, ...] = ()


# A budget cap for one category; spend is never stored here
@dataclass(frozen=True)
class BudgetCategory:
    id: str
    name: str
    amount: float
    type: str = EXPENSE


@dataclass(frozen=True)
class IncomeSource:
    id: str
    name: str
    amount: float
    frequency: str
    entry_date: Any
    notes: str = ""


@dataclass(frozen=True)
class BudgetStatus:
    category: str
    budget: float
    spent: float
    remaining: float
    percentage: float
    is_over_budget: bool
    level: str  # "ok", "warning" or "over"


@dataclass(frozen=True)
class CurrentUser:
    uid: str
    display_name: Optional[str] = None

