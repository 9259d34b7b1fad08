"""
CLI interface for Subscription Calendar.

Loads subscriptions and settings, runs the projection and aggregation core,
and prints the results.
"""

import calendar
import sqlite3
import sys
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, Set

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from subscription_calendar.config.loader import (
    DEFAULT_CONFIG_PATH,
    NotificationSettings,
    UserConfig,
    default_user_config,
    load_user_config,
    parse_rate,
    save_user_config,
)
from subscription_calendar.core.aggregation import (
    MissingRateError,
    aggregate,
    annualized_by_currency,
)
from subscription_calendar.core.money import Money, format_money
from subscription_calendar.core.projection import month_window, project, upcoming as upcoming_occurrences
from subscription_calendar.core.recurrence import Interval, RecurrenceRule, next_occurrence
from subscription_calendar.storage.db import DEFAULT_DB_PATH
from subscription_calendar.storage.models import SubscriptionRecord
from subscription_calendar.storage.repository import (
    SubscriptionNotFoundError,
    SubscriptionRepository,
    get_repository,
)
from subscription_calendar.utils.logger import configure_logging, get_logger

app = typer.Typer()
console = Console()
logger = get_logger(__name__)

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1


class _Settings:
    """Global options shared by every command."""
    def __init__(self, db_path: str, config_path: str, locale: str):
        self.db_path = db_path
        self.config_path = config_path
        self.locale = locale


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db: str = typer.Option(DEFAULT_DB_PATH, "--db", help="SQLite database path"),
    config: str = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="YAML configuration path"),
    locale: str = typer.Option("en_US", "--locale", help="Locale for amount formatting"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr"),
):
    """Subscription Calendar CLI."""
    if verbose:
        configure_logging()
    ctx.obj = _Settings(db, config, locale)
    if ctx.invoked_subcommand is None:
        console.print("Subscription Calendar - Use --help to see available commands")


def _repository(ctx: typer.Context) -> SubscriptionRepository:
    return get_repository(ctx.obj.db_path)


def _load_config(ctx: typer.Context) -> UserConfig:
    path = ctx.obj.config_path
    if not Path(path).exists():
        return default_user_config()
    return load_user_config(path)


def _load_records(ctx: typer.Context, exclude: Optional[List[int]] = None) -> List[SubscriptionRecord]:
    """Fetch all records, marking the excluded ids as not included."""
    excluded: Set[int] = set(exclude or [])
    records = _repository(ctx).list_all()
    return [r.with_included(r.id not in excluded) for r in records]


def _fmt(ctx: typer.Context, money: Money) -> str:
    return format_money(money, ctx.obj.locale)


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {escape(message)}")
    sys.exit(EXIT_CODE_FAIL)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def _next_billing(rule: RecurrenceRule, today: date) -> str:
    upcoming_date = next_occurrence(rule, today)
    return upcoming_date.isoformat() if upcoming_date else "-"


def _run(action) -> None:
    """Run a command body and translate domain errors into exit codes."""
    try:
        action()
    except MissingRateError as e:
        console.print(f"[yellow]Missing conversion rate:[/] {e}")
        console.print(
            f"Add one with `subscription-calendar rate {e.source} {e.target} <value>` "
            "and try again."
        )
        sys.exit(EXIT_CODE_FAIL)
    except SubscriptionNotFoundError as e:
        _fail(str(e))
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            _fail("Database not initialized. Run `subscription-calendar init` first.")
        raise
    except ValueError as e:
        _fail(str(e))
    except yaml.YAMLError as e:
        _fail(str(e))


@app.command()
def init(ctx: typer.Context):
    """Initialize the subscription database."""
    try:
        _repository(ctx).initialize_schema()
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_OK)
    except sqlite3.Error as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Subscription name"),
    amount: str = typer.Argument(..., help="Amount billed per occurrence"),
    currency: Optional[str] = typer.Option(None, "--currency", "-c", help="ISO currency code (default: display currency)"),
    start: Optional[str] = typer.Option(None, "--start", "-s", help="First billing date YYYY-MM-DD (default: today)"),
    interval: Interval = typer.Option(Interval.MONTHLY, "--interval", "-i", help="Billing interval"),
    every: int = typer.Option(1, "--every", "-e", help="Bill every N intervals"),
):
    """Add a subscription."""
    def action():
        config = _load_config(ctx)
        record = SubscriptionRecord(
            name=name,
            cost=Money.of(amount, (currency or config.display_currency).upper()),
            rule=RecurrenceRule(
                anchor_date=_parse_date(start) if start else date.today(),
                interval=interval,
                step_count=every
            )
        )
        created = _repository(ctx).create(record)
        console.print(f"[green]✓[/] Added subscription {created.id}: {created.name}")

    _run(action)


@app.command()
def edit(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Subscription id"),
    name: Optional[str] = typer.Option(None, "--name", "-n"),
    amount: Optional[str] = typer.Option(None, "--amount", "-a"),
    currency: Optional[str] = typer.Option(None, "--currency", "-c"),
    start: Optional[str] = typer.Option(None, "--start", "-s"),
    interval: Optional[Interval] = typer.Option(None, "--interval", "-i"),
    every: Optional[int] = typer.Option(None, "--every", "-e"),
):
    """Edit a subscription. Unspecified fields keep their values."""
    def action():
        repository = _repository(ctx)
        current = repository.get(record_id)
        new_currency = (currency or current.cost.currency).upper()
        if amount is None and new_currency != current.cost.currency:
            raise ValueError("Changing the currency requires --amount")
        record = SubscriptionRecord(
            id=current.id,
            name=name if name is not None else current.name,
            cost=Money.of(amount if amount is not None else current.cost.amount, new_currency),
            rule=RecurrenceRule(
                anchor_date=_parse_date(start) if start else current.rule.anchor_date,
                interval=interval or current.rule.interval,
                step_count=every if every is not None else current.rule.step_count
            )
        )
        repository.update(record)
        console.print(f"[green]✓[/] Updated subscription {record.id}: {record.name}")

    _run(action)


@app.command()
def remove(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Subscription id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a subscription."""
    def action():
        repository = _repository(ctx)
        record = repository.get(record_id)
        if not yes and not typer.confirm(f"Delete subscription '{record.name}'?"):
            console.print("Cancelled")
            return
        repository.delete(record_id)
        console.print(f"[green]✓[/] Deleted subscription {record_id}")

    _run(action)


@app.command(name="list")
def list_subscriptions(
    ctx: typer.Context,
    exclude: Optional[List[int]] = typer.Option(None, "--exclude", "-x", help="Subscription id to leave out of totals"),
):
    """List subscriptions with their next billing date."""
    def action():
        records = _load_records(ctx, exclude)
        if not records:
            console.print("\n[dim]No subscriptions yet. Add one with `subscription-calendar add`.[/]")
            return

        today = date.today()
        table = Table(title="Subscriptions")
        table.add_column("ID", justify="right")
        table.add_column("Name")
        table.add_column("Amount", justify="right")
        table.add_column("Cadence")
        table.add_column("Next billing")
        table.add_column("Included")
        for record in records:
            table.add_row(
                str(record.id),
                record.name,
                _fmt(ctx, record.cost),
                record.rule.describe(),
                _next_billing(record.rule, today),
                "yes" if record.included else "no",
            )
        console.print(table)

    _run(action)


@app.command(name="calendar")
def show_calendar(
    ctx: typer.Context,
    month: Optional[str] = typer.Option(None, "--month", "-m", help="Month to show as YYYY-MM (default: current)"),
    exclude: Optional[List[int]] = typer.Option(None, "--exclude", "-x", help="Subscription id to dim"),
):
    """Show a month grid with the subscriptions billing on each day."""
    def action():
        if month:
            try:
                first = datetime.strptime(month, "%Y-%m").date()
            except ValueError:
                raise ValueError(f"Invalid month {month!r}, expected YYYY-MM")
        else:
            first = date.today().replace(day=1)

        records = _load_records(ctx, exclude)
        range_start, range_end = month_window(first.year, first.month)
        occurrence_map = project(records, range_start, range_end)

        table = Table(title=first.strftime("%B %Y"), show_lines=True)
        for day_name in calendar.day_abbr:
            table.add_column(day_name)
        for week in calendar.Calendar().monthdatescalendar(first.year, first.month):
            cells = []
            for day in week:
                if day.month != first.month:
                    cells.append("")
                    continue
                lines = [f"[bold]{day.day}[/]"]
                for record in occurrence_map.get(day, []):
                    lines.append(record.name if record.included else f"[dim]{record.name}[/]")
                cells.append("\n".join(lines))
            table.add_row(*cells)
        console.print(table)

        billing_count = sum(len(bucket) for bucket in occurrence_map.values())
        console.print(f"{billing_count} billing event(s) this month")

    _run(action)


@app.command()
def totals(
    ctx: typer.Context,
    exclude: Optional[List[int]] = typer.Option(None, "--exclude", "-x", help="Subscription id to leave out"),
):
    """Show effective monthly and yearly cost of included subscriptions."""
    def action():
        config = _load_config(ctx)
        records = _load_records(ctx, exclude)
        result = aggregate(records, config.display_currency, config.conversion_rates)

        console.print("\n[bold]Recurring Cost[/bold]")
        console.print("-" * 40)
        console.print(f"Effective monthly cost: {_fmt(ctx, result.monthly)}")
        console.print(f"Effective yearly cost: {_fmt(ctx, result.yearly)}")

        by_currency = annualized_by_currency(records)
        if len(by_currency) > 1:
            console.print("\n[bold]Yearly by currency[/bold]")
            for yearly in by_currency.values():
                console.print(f"{yearly.currency}: {_fmt(ctx, yearly)}")

    _run(action)


@app.command()
def upcoming(
    ctx: typer.Context,
    days: int = typer.Option(7, "--days", "-d", help="How many days ahead to look"),
    start: Optional[str] = typer.Option(None, "--from", help="Start date YYYY-MM-DD (default: today)"),
):
    """List renewals due in the next few days."""
    def action():
        today = _parse_date(start) if start else date.today()
        events = upcoming_occurrences(_load_records(ctx), today, days)
        if not events:
            console.print(f"No renewals in the next {days} day(s)")
            return
        for day, record in events:
            console.print(f"{day.isoformat()}  {record.name}  {_fmt(ctx, record.cost)}")

    _run(action)


@app.command()
def configure(
    ctx: typer.Context,
    currency: Optional[str] = typer.Option(None, "--currency", "-c", help="Display currency"),
    topic: Optional[str] = typer.Option(None, "--topic", help="ntfy topic"),
    domain: Optional[str] = typer.Option(None, "--domain", help="ntfy server URL"),
):
    """Update and save display currency and notification settings."""
    def action():
        current = _load_config(ctx)
        updated = UserConfig(
            display_currency=currency.upper() if currency else current.display_currency,
            conversion_rates=current.conversion_rates,
            notifications=NotificationSettings(
                topic=topic if topic is not None else current.notifications.topic,
                domain=domain if domain is not None else current.notifications.domain
            )
        )
        save_user_config(updated, ctx.obj.config_path)
        console.print(f"[green]✓[/] Configuration saved (display currency {updated.display_currency})")

    _run(action)


@app.command()
def rate(
    ctx: typer.Context,
    source: str = typer.Argument(..., help="Currency converted from"),
    target: str = typer.Argument(..., help="Currency converted to"),
    value: str = typer.Argument(..., help="Units of target per unit of source"),
):
    """Add or replace a conversion rate."""
    def action():
        current = _load_config(ctx)
        (source_code, target_code), rate_value = parse_rate(f"{source.upper()}/{target.upper()}", value)
        updated = UserConfig(
            display_currency=current.display_currency,
            conversion_rates=current.conversion_rates.with_rate(source_code, target_code, rate_value),
            notifications=current.notifications
        )
        save_user_config(updated, ctx.obj.config_path)
        logger.debug("Rate %s/%s set to %s", source_code, target_code, rate_value)
        console.print(f"[green]✓[/] Rate {source_code}/{target_code} = {rate_value}")

    _run(action)


if __name__ == "__main__":
    app()
