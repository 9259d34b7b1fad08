"""
Billing cadence and occurrence enumeration.

A rule bills every ``step_count`` intervals starting at its anchor date.
Month and year steps are always computed from the anchor, so a day-of-month
that gets clamped in a short month comes back in the following one.
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterator, Optional


class InvalidRuleError(ValueError):
    """Raised when a recurrence rule is constructed with invalid fields."""


class Interval(Enum):
    """Unit a rule steps by."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


@dataclass(frozen=True)
class RecurrenceRule:
    """Immutable billing cadence anchored to a start date."""
    anchor_date: date
    interval: Interval
    step_count: int = 1

    def __post_init__(self):
        """Validate anchor, interval and step."""
        if not isinstance(self.anchor_date, date) or isinstance(self.anchor_date, datetime):
            raise InvalidRuleError(f"anchor_date must be a calendar date, got {self.anchor_date!r}")
        if not isinstance(self.interval, Interval):
            raise InvalidRuleError(f"Unknown interval: {self.interval!r}")
        if isinstance(self.step_count, bool) or not isinstance(self.step_count, int):
            raise InvalidRuleError("step_count must be an integer")
        if self.step_count < 1:
            raise InvalidRuleError("step_count must be >= 1")

    def occurrences_in(self, range_start: date, range_end: date) -> Iterator[date]:
        return occurrences_in(self, range_start, range_end)

    def describe(self) -> str:
        """Human readable cadence, e.g. 'every 3 months'."""
        unit = {
            Interval.DAILY: "day",
            Interval.WEEKLY: "week",
            Interval.MONTHLY: "month",
            Interval.YEARLY: "year",
        }[self.interval]
        if self.step_count == 1:
            return f"every {unit}"
        return f"every {self.step_count} {unit}s"


def add_months(anchor: date, months: int) -> date:
    """Add months to a date, clamping the day to the end of the target month."""
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    day = min(anchor.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _fixed_step_days(rule: RecurrenceRule) -> int:
    if rule.interval == Interval.DAILY:
        return rule.step_count
    return rule.step_count * 7


def _months_per_step(rule: RecurrenceRule) -> int:
    if rule.interval == Interval.MONTHLY:
        return rule.step_count
    return rule.step_count * 12


def _first_index_on_or_after(rule: RecurrenceRule, start: date) -> int:
    """Index n of the first occurrence >= start (occurrence 0 is the anchor).

    The occurrence at the returned index may lie past date.max.
    """
    if start <= rule.anchor_date:
        return 0

    if rule.interval in (Interval.DAILY, Interval.WEEKLY):
        step = _fixed_step_days(rule)
        elapsed = (start - rule.anchor_date).days
        return -(-elapsed // step)

    # Round up on whole months, then step past a same-month earlier day
    step = _months_per_step(rule)
    elapsed_months = (start.year - rule.anchor_date.year) * 12 + start.month - rule.anchor_date.month
    n = -(-elapsed_months // step)
    current = _nth_occurrence(rule, n)
    while current is not None and current < start:
        n += 1
        current = _nth_occurrence(rule, n)
    return n


def _nth_occurrence(rule: RecurrenceRule, n: int) -> Optional[date]:
    """The n-th billing date, or None when it falls after date.max."""
    try:
        if rule.interval in (Interval.DAILY, Interval.WEEKLY):
            return rule.anchor_date + timedelta(days=n * _fixed_step_days(rule))
        return add_months(rule.anchor_date, n * _months_per_step(rule))
    except (OverflowError, ValueError):
        return None


def occurrences_in(rule: RecurrenceRule, range_start: date, range_end: date) -> Iterator[date]:
    """Yield every billing date of the rule within [range_start, range_end].

    Each call returns a fresh iterator over the same dates, so callers can
    enumerate the same range as often as they like.

    Args:
        rule: Billing cadence
        range_start: First visible date
        range_end: Last visible date (inclusive)

    Yields:
        Occurrence dates in ascending order
    """
    if range_start > range_end or rule.anchor_date > range_end:
        return

    n = _first_index_on_or_after(rule, range_start)
    current = _nth_occurrence(rule, n)
    while current is not None and current <= range_end:
        yield current
        n += 1
        current = _nth_occurrence(rule, n)


def next_occurrence(rule: RecurrenceRule, on_or_after: date) -> Optional[date]:
    """First billing date on or after the given date.

    Returns None when that date would fall after date.max.
    """
    return _nth_occurrence(rule, _first_index_on_or_after(rule, on_or_after))
