"""
Data models for storage layer.

Defines the subscription entity shared by the store and the core.
"""

from dataclasses import dataclass, replace
from typing import Optional

from subscription_calendar.core.money import Money
from subscription_calendar.core.recurrence import RecurrenceRule


@dataclass(frozen=True)
class SubscriptionRecord:
    """Immutable snapshot of one recurring subscription.

    ``id`` is assigned by the store on creation and is None before that.
    ``included`` only lives for the session and is never persisted.
    """
    name: str
    cost: Money
    rule: RecurrenceRule
    id: Optional[int] = None
    included: bool = True

    def __post_init__(self):
        """Validate name and component types."""
        if not isinstance(self.name, str) or not self.name.strip():
            raise ValueError("name is required and cannot be empty")
        if not isinstance(self.cost, Money):
            raise TypeError("cost must be Money")
        if not isinstance(self.rule, RecurrenceRule):
            raise TypeError("rule must be a RecurrenceRule")

    def with_included(self, included: bool) -> "SubscriptionRecord":
        """Copy of this record with the include flag set."""
        return replace(self, included=included)

    def with_id(self, record_id: int) -> "SubscriptionRecord":
        return replace(self, id=record_id)
