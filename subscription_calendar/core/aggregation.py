"""
Recurring cost aggregation.

Turns each included subscription's cadence into an annualized cost and sums
them into effective monthly and yearly totals in a single display currency.

The occurrences-per-year factors are an approximation: a year is taken as
365 days and 52 weeks, so DAILY and WEEKLY totals ignore leap days and the
extra day or two beyond 52 weeks. Good enough for "what do I spend per
month"; exact billing dates come from the recurrence module.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Dict, Sequence, Tuple

from .money import Money, add, round_to_currency
from .recurrence import Interval, RecurrenceRule
from subscription_calendar.storage.models import SubscriptionRecord


class MissingRateError(LookupError):
    """Raised when a conversion is needed but no rate is known."""
    def __init__(self, source: str, target: str):
        super().__init__(f"No conversion rate from {source} to {target}")
        self.source = source
        self.target = target


class PeriodKind(Enum):
    """Period a total is expressed over."""
    MONTHLY = "monthly"
    YEARLY = "yearly"


_OCCURRENCES_PER_YEAR: Dict[Interval, Decimal] = {
    Interval.DAILY: Decimal(365),
    Interval.WEEKLY: Decimal(52),
    Interval.MONTHLY: Decimal(12),
    Interval.YEARLY: Decimal(1),
}

_MONTHS_PER_YEAR = Decimal(12)


@dataclass(frozen=True)
class ConversionRates:
    """Exchange multipliers keyed by (source, target) currency pair.

    ``amount_in_target = amount_in_source * rates[(source, target)]``
    """
    rates: Dict[Tuple[str, str], Decimal] = field(default_factory=dict)

    def __post_init__(self):
        """Validate every rate is a positive finite Decimal."""
        for pair, rate in self.rates.items():
            if not isinstance(rate, Decimal) or not rate.is_finite() or rate <= 0:
                raise ValueError(f"Rate for {pair[0]}/{pair[1]} must be a positive Decimal")

    def rate_for(self, source: str, target: str) -> Decimal:
        """Get the multiplier converting source into target.

        Falls back to the reciprocal of the inverse pair.

        Raises:
            MissingRateError: If neither direction is known
        """
        if source == target:
            return Decimal(1)
        if (source, target) in self.rates:
            return self.rates[(source, target)]
        if (target, source) in self.rates:
            return Decimal(1) / self.rates[(target, source)]
        raise MissingRateError(source, target)

    def with_rate(self, source: str, target: str, rate: Decimal) -> "ConversionRates":
        """Copy with one pair added or replaced."""
        rates = dict(self.rates)
        rates[(source, target)] = rate
        return ConversionRates(rates)


@dataclass(frozen=True)
class TotalsResult:
    """Effective recurring cost per period in the display currency."""
    display_currency: str
    period_totals: Dict[PeriodKind, Money]

    @property
    def monthly(self) -> Money:
        return self.period_totals[PeriodKind.MONTHLY]

    @property
    def yearly(self) -> Money:
        return self.period_totals[PeriodKind.YEARLY]


def occurrences_per_year(rule: RecurrenceRule) -> Decimal:
    """Approximate number of billing events per year for a rule."""
    return _OCCURRENCES_PER_YEAR[rule.interval] / Decimal(rule.step_count)


def _annualized_amount(record: SubscriptionRecord) -> Decimal:
    return record.cost.amount * occurrences_per_year(record.rule)


def aggregate(
    records: Sequence[SubscriptionRecord],
    display_currency: str,
    conversion_rates: ConversionRates
) -> TotalsResult:
    """Compute effective monthly and yearly totals of included subscriptions.

    Sums run at full Decimal precision; only the final totals are rounded
    to the display currency's minor units.

    Args:
        records: Subscriptions; those with included=False are skipped
        display_currency: ISO code totals are expressed in
        conversion_rates: Rates for every foreign currency present

    Returns:
        TotalsResult with MONTHLY and YEARLY totals

    Raises:
        MissingRateError: If any included record needs a rate that is absent.
            No partial total is returned.
    """
    annual_total = Decimal(0)
    for record in records:
        if not record.included:
            continue
        rate = conversion_rates.rate_for(record.cost.currency, display_currency)
        annual_total += _annualized_amount(record) * rate

    monthly_total = annual_total / _MONTHS_PER_YEAR
    return TotalsResult(
        display_currency=display_currency,
        period_totals={
            PeriodKind.MONTHLY: Money(round_to_currency(monthly_total, display_currency), display_currency),
            PeriodKind.YEARLY: Money(round_to_currency(annual_total, display_currency), display_currency),
        }
    )


def annualized_by_currency(records: Sequence[SubscriptionRecord]) -> Dict[str, Money]:
    """Yearly cost of included subscriptions per native currency, unconverted.

    Currencies appear in order of first occurrence.
    """
    totals: Dict[str, Money] = {}
    for record in records:
        if not record.included:
            continue
        currency = record.cost.currency
        annual = Money(round_to_currency(_annualized_amount(record), currency), currency)
        totals[currency] = add(totals[currency], annual) if currency in totals else annual
    return totals
