import math
from datetime import date, datetime, timezone
from typing import Any, Optional

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from fintrack.domain import MONTHLY, QUARTERLY, WEEKLY, YEARLY
from fintrack.logging_setup import get_logger

logger = get_logger("fintrack.dates")

_CYCLE_STEPS = {
    WEEKLY: relativedelta(weeks=1),
    MONTHLY: relativedelta(months=1),
    QUARTERLY: relativedelta(months=3),
    YEARLY: relativedelta(years=1),
}

# hosted timestamps may wrap other timestamps; stop following after this many
_MAX_UNWRAP = 3

SECONDS_PER_DAY = 86400


def _unwrap(value: Any) -> Any:
    for accessor in ("toDate", "to_date"):
        fn = getattr(value, accessor, None)
        if callable(fn):
            try:
                return fn()
            except Exception as e:
                logger.debug("%s.%s() failed: %s", type(value).__name__, accessor, e)
                return None
    return None


def _naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_moment(value: Any) -> Optional[datetime]:
    """Normalize any supported date shape to a naive ``datetime``.

    Accepts ``date``/``datetime`` (pandas ``Timestamp`` included), ISO-8601
    strings and hosted timestamps exposing ``toDate()`` or ``to_date()``.
    Aware values are converted to UTC. Plain dates become midnight.
    Returns ``None`` for anything that cannot be read as a date.
    """
    for _ in range(_MAX_UNWRAP + 1):
        if value is None:
            return None
        if isinstance(value, datetime):
            if value != value:  # NaT
                return None
            return _naive(value)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            try:
                return _naive(isoparse(value.strip()))
            except (ValueError, OverflowError):
                return None
        value = _unwrap(value)
    return None


def to_date(value: Any) -> Optional[date]:
    moment = to_moment(value)
    return moment.date() if moment is not None else None


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def display_month(key: str) -> str:
    year, month = key.split("-")
    return date(int(year), int(month), 1).strftime("%b %Y")


def add_cycle(d: date, cycle: str, count: int = 1) -> date:
    # relativedelta clamps to the last valid day (Jan 31 + 1 month -> Feb 28/29)
    step = _CYCLE_STEPS.get(cycle, _CYCLE_STEPS[MONTHLY])
    return d + step * count


def days_between(later: date, earlier: date) -> int:
    return (later - earlier).days


def trailing_months(end: date, count: int) -> list[str]:
    first = date(end.year, end.month, 1)
    return [month_key(first - relativedelta(months=i)) for i in range(count - 1, -1, -1)]


def in_range(d: Optional[date], start: Optional[date], end: Optional[date]) -> bool:
    if d is None:
        return False
    if start is not None and d < start:
        return False
    if end is not None and d > end:
        return False
    return True


def elapsed_days(later: datetime, earlier: datetime) -> int:
    # half-days round up, so 24.5 days counts as 25
    return math.floor((later - earlier).total_seconds() / SECONDS_PER_DAY + 0.5)
