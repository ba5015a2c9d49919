import calendar
import statistics
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from wealth_tracker.categorization.base import normalize_description
from wealth_tracker.domain.enums import RecurringFrequency
from wealth_tracker.domain.models import Transaction
from wealth_tracker.services.deduplication import round_money
from wealth_tracker.services.models import RecurringPattern

MIN_OCCURRENCES = 3
LOOKBACK_MONTHS = 6
AMOUNT_TOLERANCE = Decimal("0.1")
INTERVAL_STD_DEV_THRESHOLD = 0.2

# (frequency, min mean interval, max mean interval) in days
FREQUENCY_RANGES = [
    (RecurringFrequency.WEEKLY, 5, 9),
    (RecurringFrequency.MONTHLY, 25, 35),
    (RecurringFrequency.QUARTERLY, 75, 105),
    (RecurringFrequency.ANNUAL, 335, 395),
]


def months_before(reference: date, months: int) -> date:
    """Same day `months` earlier, clamped to the end of shorter months"""
    month_index = reference.year * 12 + reference.month - 1 - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(reference.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def detect_frequency(interval_days: float) -> Optional[RecurringFrequency]:
    for frequency, low, high in FREQUENCY_RANGES:
        if low <= interval_days <= high:
            return frequency
    return None


def detect_recurring(
    transactions: Iterable[Transaction],
    reference_date: Optional[date] = None,
) -> List[RecurringPattern]:
    """
    Find subscriptions, loans and other payments that repeat.

    A group of transactions sharing a normalized description is recurring
    when it has at least 3 occurrences in the last 6 months, every amount
    is within 10% of the mean, and the gaps between dates are regular
    (standard deviation under 20% of the mean gap) and close to a week,
    a month, a quarter or a year.

    Args:
        transactions: Candidate transactions, any order
        reference_date: End of the lookback window, defaults to today

    Returns:
        Detected patterns, in order of first appearance
    """
    reference_date = reference_date or date.today()
    since = months_before(reference_date, LOOKBACK_MONTHS)

    groups: Dict[str, List[Transaction]] = OrderedDict()
    for txn in sorted(transactions, key=lambda t: t.date):
        if txn.is_internal or txn.date < since:
            continue
        groups.setdefault(normalize_description(txn.description), []).append(txn)

    patterns = []
    for normalized, group in groups.items():
        pattern = _analyze(normalized, group)
        if pattern is not None:
            patterns.append(pattern)

    return patterns


def _analyze(normalized: str, group: List[Transaction]) -> Optional[RecurringPattern]:
    if len(group) < MIN_OCCURRENCES:
        return None

    amounts = [abs(txn.amount) for txn in group]
    mean_amount = sum(amounts) / len(amounts)
    if mean_amount <= 0:
        return None
    if any(abs(a - mean_amount) / mean_amount > AMOUNT_TOLERANCE for a in amounts):
        return None

    intervals = [(b.date - a.date).days for a, b in zip(group, group[1:])]
    mean_interval = statistics.mean(intervals)
    if mean_interval > 0 and statistics.pstdev(intervals) / mean_interval > INTERVAL_STD_DEV_THRESHOLD:
        return None

    frequency = detect_frequency(mean_interval)
    if frequency is None:
        return None

    category_id = next(
        (txn.category.category_id for txn in group if txn.category is not None),
        None,
    )

    return RecurringPattern(
        description=group[0].description,
        normalized_description=normalized,
        amount=round_money(mean_amount),
        frequency=frequency,
        occurrence_count=len(group),
        last_seen_at=group[-1].date,
        account_id=group[0].account_id,
        category_id=category_id,
    )
