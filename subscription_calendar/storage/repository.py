"""
Repository pattern for data access.

Create/read/update/delete over subscription records stored in SQLite.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from .db import DEFAULT_DB_PATH, get_connection
from .models import SubscriptionRecord
from subscription_calendar.core.money import Money
from subscription_calendar.core.recurrence import Interval, RecurrenceRule
from subscription_calendar.utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = "id, name, amount, currency, anchor_date, interval, step_count"


class SubscriptionNotFoundError(LookupError):
    """Raised when no subscription exists with the requested id."""
    def __init__(self, record_id: int):
        super().__init__(f"Subscription not found: {record_id}")
        self.record_id = record_id


def _row_to_record(row: Tuple) -> SubscriptionRecord:
    return SubscriptionRecord(
        id=row[0],
        name=row[1],
        cost=Money(Decimal(row[2]), row[3]),
        rule=RecurrenceRule(
            anchor_date=date.fromisoformat(row[4]),
            interval=Interval(row[5]),
            step_count=row[6]
        ),
        included=True
    )


def _record_values(record: SubscriptionRecord) -> Tuple:
    return (
        record.name,
        str(record.cost.amount),
        record.cost.currency,
        record.rule.anchor_date.isoformat(),
        record.rule.interval.value,
        record.rule.step_count,
    )


class SubscriptionRepository:
    """Repository for reading and writing subscription records.

    Each operation opens its own connection, so an instance can be shared
    freely. The include flag is not stored; loaded records are included.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def initialize_schema(self) -> None:
        """Create the subscription table if it doesn't exist."""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS subscription (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    amount TEXT NOT NULL,
                    currency TEXT NOT NULL,
                    anchor_date TEXT NOT NULL,
                    interval TEXT NOT NULL,
                    step_count INTEGER NOT NULL DEFAULT 1
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def list_all(self) -> List[SubscriptionRecord]:
        """Get every subscription ordered by id (creation order)."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(f"SELECT {_COLUMNS} FROM subscription ORDER BY id")
            return [_row_to_record(row) for row in cursor.fetchall()]
        finally:
            conn.close()

    def get(self, record_id: int) -> SubscriptionRecord:
        """Get one subscription.

        Raises:
            SubscriptionNotFoundError: If the id is unknown
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute(
                f"SELECT {_COLUMNS} FROM subscription WHERE id = ?", (record_id,)
            )
            row = cursor.fetchone()
        finally:
            conn.close()
        if row is None:
            raise SubscriptionNotFoundError(record_id)
        return _row_to_record(row)

    def create(self, record: SubscriptionRecord) -> SubscriptionRecord:
        """Insert a new subscription.

        Any id already on the record is ignored; the store assigns one.

        Returns:
            The record carrying its new id
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                INSERT INTO subscription
                (name, amount, currency, anchor_date, interval, step_count)
                VALUES (?, ?, ?, ?, ?, ?)
            """, _record_values(record))
            conn.commit()
            record_id = cursor.lastrowid
        finally:
            conn.close()
        logger.info("Created subscription %s (%s)", record_id, record.name)
        return record.with_id(record_id)

    def update(self, record: SubscriptionRecord) -> SubscriptionRecord:
        """Replace a stored subscription wholesale.

        Raises:
            ValueError: If the record has no id
            SubscriptionNotFoundError: If the id is unknown
        """
        if record.id is None:
            raise ValueError("Cannot update a subscription without an id")
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                UPDATE subscription
                SET name = ?, amount = ?, currency = ?, anchor_date = ?,
                    interval = ?, step_count = ?
                WHERE id = ?
            """, _record_values(record) + (record.id,))
            conn.commit()
            updated = cursor.rowcount
        finally:
            conn.close()
        if updated == 0:
            raise SubscriptionNotFoundError(record.id)
        logger.info("Updated subscription %s (%s)", record.id, record.name)
        return record

    def delete(self, record_id: int) -> None:
        """Delete a subscription.

        Raises:
            SubscriptionNotFoundError: If the id is unknown
        """
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("DELETE FROM subscription WHERE id = ?", (record_id,))
            conn.commit()
            deleted = cursor.rowcount
        finally:
            conn.close()
        if deleted == 0:
            raise SubscriptionNotFoundError(record_id)
        logger.info("Deleted subscription %s", record_id)


def get_repository(db_path: Optional[str] = None) -> SubscriptionRepository:
    """Get a repository bound to the given database (default path if None)."""
    return SubscriptionRepository(db_path or DEFAULT_DB_PATH)
