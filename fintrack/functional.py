from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, TypeVar

from fintrack.dates import to_date
from fintrack.domain import TRANSACTION_TYPES, BudgetCategory, Transaction

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def bind(self, f: Callable[[T], 'Maybe[U]']) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    def is_some(self) -> bool:
        return isinstance(self, Some)

    def is_none(self) -> bool:
        return not self.is_some()


@dataclass(frozen=True)
class Some(Maybe[T]):
    value: T

    def map(self, f):
        return Some(f(self.value))

    def bind(self, f):
        return f(self.value)

    def get_or_else(self, default):
        return self.value


@dataclass(frozen=True)
class Nothing(Maybe[T]):

    def map(self, f):
        return Nothing()

    def bind(self, f):
        return Nothing()

    def get_or_else(self, default):
        return default


class Either(Generic[E, T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Either[E, U]':
        pass

    @abstractmethod
    def bind(self, f: Callable[[T], 'Either[E, U]']) -> 'Either[E, U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def get_error(self) -> E:
        pass

    def is_right(self) -> bool:
        return isinstance(self, Right)

    def is_left(self) -> bool:
        return not self.is_right()


@dataclass(frozen=True)
class Right(Either[E, T]):
    value: T

    def map(self, f):
        return Right(f(self.value))

    def bind(self, f):
        return f(self.value)

    def get_or_else(self, default):
        return self.value

    def get_error(self):
        raise ValueError("Cannot get error from Right")


@dataclass(frozen=True)
class Left(Either[E, T]):
    error: E

    def map(self, f):
        return self

    def bind(self, f):
        return self

    def get_or_else(self, default):
        return default

    def get_error(self):
        return self.error


def find_budget(cats: Iterable[BudgetCategory], name: str) -> Maybe[BudgetCategory]:
    # exact, case-sensitive match on the category name
    for cat in cats:
        if cat.name == name:
            return Some(cat)
    return Nothing()


def validate_transaction(t: Transaction) -> Either[dict, Transaction]:
    if not isinstance(t.amount, (int, float)) or isinstance(t.amount, bool) or not t.amount > 0:
        return Left({
            "error": "invalid_amount",
            "message": f"Transaction {t.id} must have a positive amount",
            "amount": t.amount,
        })

    if t.type not in TRANSACTION_TYPES:
        return Left({
            "error": "invalid_type",
            "message": f"Transaction type must be one of {', '.join(TRANSACTION_TYPES)}",
            "type": t.type,
        })

    if to_date(t.date) is None:
        return Left({
            "error": "invalid_date",
            "message": f"Transaction {t.id} has no usable date",
            "date": t.date,
        })

    if not (t.description or "").strip():
        return Left({
            "error": "missing_description",
            "message": f"Transaction {t.id} needs a description",
        })

    return Right(t)


def compose(*funcs: Callable[[Any], Any]) -> Callable[[Any], Any]:
    """Return the right-to-left composition: compose(f, g)(x) == f(g(x))."""
    def _composed(x):
        res = x
        for f in reversed(funcs):
            res = f(res)
        return res
    return _composed


def pipe(x: Any, *funcs: Callable[[Any], Any]) -> Any:
    """Thread ``x`` through ``funcs`` left to right."""
    res = x
    for f in funcs:
        res = f(res)
    return res
