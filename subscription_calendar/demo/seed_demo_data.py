# subscription_calendar/demo/seed_demo_data.py

from datetime import date
from subscription_calendar.core.money import Money
from subscription_calendar.core.recurrence import Interval, RecurrenceRule
from subscription_calendar.storage.models import SubscriptionRecord
from subscription_calendar.storage.repository import get_repository

repository = get_repository()
repository.initialize_schema()

records = [
    SubscriptionRecord(
        name="Streaming",
        cost=Money.of("15.49", "USD"),
        rule=RecurrenceRule(date(2024, 1, 31), Interval.MONTHLY)
    ),
    SubscriptionRecord(
        name="Cloud storage",
        cost=Money.of("99.99", "USD"),
        rule=RecurrenceRule(date(2024, 2, 29), Interval.YEARLY)
    ),
    SubscriptionRecord(
        name="Gym",
        cost=Money.of("12.00", "EUR"),
        rule=RecurrenceRule(date(2024, 1, 1), Interval.WEEKLY, step_count=2)
    ),
]

for r in records:
    repository.create(r)

print("Demo subscriptions inserted")
