"""
Occurrence projection onto a calendar window.

Builds the per-date view of which subscriptions bill when. Every record is
projected regardless of its include flag; hiding excluded ones is up to the
caller.
"""

import calendar
from datetime import date, timedelta
from typing import Dict, List, Sequence, Tuple

from .recurrence import occurrences_in
from subscription_calendar.storage.models import SubscriptionRecord

OccurrenceMap = Dict[date, List[SubscriptionRecord]]


def month_window(year: int, month: int) -> Tuple[date, date]:
    """Return (first_day, last_day) of a calendar month.

    Raises:
        ValueError: If month is not in 1..12
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def project(
    records: Sequence[SubscriptionRecord],
    range_start: date,
    range_end: date
) -> OccurrenceMap:
    """Map each billing date in the range to the records that bill on it.

    Args:
        records: Subscriptions in display order
        range_start: First visible date
        range_end: Last visible date (inclusive)

    Returns:
        Dates in ascending order; each bucket keeps input order. Dates
        with nothing billing are absent.
    """
    buckets: OccurrenceMap = {}
    for record in records:
        for occurrence in occurrences_in(record.rule, range_start, range_end):
            buckets.setdefault(occurrence, []).append(record)
    return {day: buckets[day] for day in sorted(buckets)}


def upcoming(
    records: Sequence[SubscriptionRecord],
    today: date,
    days: int
) -> List[Tuple[date, SubscriptionRecord]]:
    """Billing events from today through today + days, in date order.

    Raises:
        ValueError: If days is negative
    """
    if days < 0:
        raise ValueError("days cannot be negative")
    occurrence_map = project(records, today, today + timedelta(days=days))
    return [
        (day, record)
        for day, bucket in occurrence_map.items()
        for record in bucket
    ]
