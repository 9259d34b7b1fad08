"""
Tests for the CLI interface.
"""
from decimal import Decimal
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from subscription_calendar.cli.main import app, EXIT_CODE_OK, EXIT_CODE_FAIL
from subscription_calendar.config.loader import load_user_config
from subscription_calendar.core.money import Money
from subscription_calendar.storage.repository import SubscriptionRepository

runner = CliRunner()


@pytest.fixture
def paths(tmp_path):
    """Database and config paths inside a temporary directory."""
    return str(tmp_path / "subs.db"), str(tmp_path / "config.yaml")


@pytest.fixture
def invoke(paths):
    """Run the CLI against the temporary database and config."""
    db_path, config_path = paths

    def _invoke(*args, **kwargs):
        return runner.invoke(app, ["--db", db_path, "--config", config_path, *args], **kwargs)
    return _invoke


@pytest.fixture
def seeded(invoke):
    """Initialized database holding two USD subscriptions and one EUR one."""
    assert invoke("init").exit_code == EXIT_CODE_OK
    assert invoke("add", "Video", "10.00", "--start", "2024-01-31").exit_code == EXIT_CODE_OK
    assert invoke("add", "Gym", "5.00", "--start", "2024-04-01", "--interval", "weekly").exit_code == EXIT_CODE_OK
    assert invoke("add", "Paper", "12.00", "--currency", "eur", "--start", "2024-04-30",
                  "--interval", "yearly").exit_code == EXIT_CODE_OK
    return invoke


class TestCLI:
    """Test CLI commands."""

    def test_no_command_prints_hint(self, invoke):
        result = invoke()
        assert result.exit_code == EXIT_CODE_OK
        assert "--help" in result.output

    def test_init(self, invoke):
        result = invoke("init")
        assert result.exit_code == EXIT_CODE_OK
        assert "initialized successfully" in result.output

    def test_uninitialized_database(self, invoke):
        """Test a helpful message when init was never run."""
        result = invoke("list")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "init" in result.output

    def test_add_persists_record(self, seeded, paths):
        records = SubscriptionRepository(paths[0]).list_all()
        assert [r.name for r in records] == ["Video", "Gym", "Paper"]
        assert records[2].cost.currency == "EUR"
        assert records[2].cost.amount == Decimal("12.00")

    def test_add_uses_display_currency_by_default(self, seeded, paths):
        seeded("configure", "--currency", "gbp")
        seeded("add", "Radio", "3.50", "--start", "2024-01-01")
        assert SubscriptionRepository(paths[0]).list_all()[-1].cost.currency == "GBP"

    def test_add_invalid_step(self, seeded):
        result = seeded("add", "Bad", "1.00", "--every", "0")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "step_count" in result.output

    def test_add_invalid_date(self, seeded):
        result = seeded("add", "Bad", "1.00", "--start", "2024-02-30")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid date" in result.output

    def test_add_invalid_amount(self, seeded):
        result = seeded("add", "Bad", "lots")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid amount" in result.output

    def test_add_amount_too_large(self, seeded):
        result = seeded("add", "Bad", "1e30")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "too large" in result.output

    def test_list(self, seeded):
        result = seeded("list", "--exclude", "2")
        assert result.exit_code == EXIT_CODE_OK
        assert "Video" in result.output
        assert "$10.00" in result.output
        assert "every week" in result.output
        assert "no" in result.output

    def test_list_empty(self, invoke):
        invoke("init")
        result = invoke("list")
        assert result.exit_code == EXIT_CODE_OK
        assert "No subscriptions" in result.output

    def test_edit_keeps_unspecified_fields(self, seeded, paths):
        result = seeded("edit", "1", "--amount", "12.99")
        assert result.exit_code == EXIT_CODE_OK
        record = SubscriptionRepository(paths[0]).get(1)
        assert record.cost.amount == Decimal("12.99")
        assert record.name == "Video"
        assert record.rule.anchor_date.isoformat() == "2024-01-31"

    def test_edit_currency_requires_amount(self, seeded, paths):
        """Verify a currency change never silently re-rounds the old amount."""
        result = seeded("edit", "1", "--currency", "JPY")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "requires --amount" in result.output
        assert SubscriptionRepository(paths[0]).get(1).cost == Money.of("10.00", "USD")

    def test_edit_currency_with_amount(self, seeded, paths):
        result = seeded("edit", "1", "--currency", "jpy", "--amount", "1500")
        assert result.exit_code == EXIT_CODE_OK
        assert SubscriptionRepository(paths[0]).get(1).cost == Money.of("1500", "JPY")

    def test_edit_unknown_id(self, seeded):
        result = seeded("edit", "99", "--name", "Ghost")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "not found" in result.output

    def test_remove_with_confirmation(self, seeded, paths):
        result = seeded("remove", "1", input="y\n")
        assert result.exit_code == EXIT_CODE_OK
        assert [r.id for r in SubscriptionRepository(paths[0]).list_all()] == [2, 3]

    def test_remove_cancelled(self, seeded, paths):
        result = seeded("remove", "1", input="n\n")
        assert "Cancelled" in result.output
        assert len(SubscriptionRepository(paths[0]).list_all()) == 3

    def test_remove_yes_flag(self, seeded, paths):
        assert seeded("remove", "3", "--yes").exit_code == EXIT_CODE_OK
        assert len(SubscriptionRepository(paths[0]).list_all()) == 2

    def test_calendar(self, seeded):
        result = seeded("calendar", "--month", "2024-04")
        assert result.exit_code == EXIT_CODE_OK
        assert "April 2024" in result.output
        # Gym x5, Video on the 30th, Paper on the 30th
        assert "7 billing event(s)" in result.output

    def test_calendar_invalid_month(self, seeded):
        result = seeded("calendar", "--month", "April")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid month" in result.output

    def test_totals_missing_rate(self, seeded):
        """Test the missing rate is reported as a fixable condition."""
        result = seeded("totals")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Missing conversion rate" in result.output
        assert "rate EUR USD" in result.output

    def test_totals_with_rate(self, seeded):
        assert seeded("rate", "EUR", "USD", "1.20").exit_code == EXIT_CODE_OK
        result = seeded("totals")
        assert result.exit_code == EXIT_CODE_OK
        # 10*12 + 5*52 + 12*1.2 = 394.40 per year
        assert "Effective yearly cost: $394.40" in result.output
        assert "Effective monthly cost: $32.87" in result.output
        assert "Yearly by currency" in result.output
        assert "USD: $380.00" in result.output
        assert "EUR: €12.00" in result.output

    def test_totals_excluding_foreign_record(self, seeded):
        """Test excluded subscriptions need no conversion rate."""
        result = seeded("totals", "--exclude", "3", "--exclude", "2")
        assert result.exit_code == EXIT_CODE_OK
        assert "Effective monthly cost: $10.00" in result.output

    def test_totals_malformed_config(self, seeded, paths):
        """Test a broken YAML file is reported instead of a traceback."""
        with open(paths[1], "w") as f:
            f.write("display_currency: [unclosed\n")
        result = seeded("totals")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid YAML" in result.output

    def test_totals_locale(self, paths):
        db_path, config_path = paths
        runner.invoke(app, ["--db", db_path, "--config", config_path, "init"])
        runner.invoke(app, ["--db", db_path, "--config", config_path,
                            "add", "Box", "1000", "--currency", "USD", "--start", "2024-01-01"])
        result = runner.invoke(app, ["--db", db_path, "--config", config_path,
                                     "--locale", "de_DE", "totals"])
        assert "1.000,00 $" in result.output

    def test_upcoming(self, seeded):
        result = seeded("upcoming", "--from", "2024-04-25", "--days", "7")
        assert result.exit_code == EXIT_CODE_OK
        lines = [line for line in result.output.splitlines() if line.strip()]
        assert lines[0].startswith("2024-04-29  Gym")
        assert "2024-04-30  Video" in result.output
        assert "2024-04-30  Paper" in result.output

    def test_upcoming_none(self, seeded):
        result = seeded("upcoming", "--from", "2024-01-01", "--days", "3")
        assert "No renewals in the next 3 day(s)" in result.output

    def test_upcoming_defaults_to_today(self, seeded):
        with patch("subscription_calendar.cli.main.upcoming_occurrences", return_value=[]) as mock_upcoming:
            result = seeded("upcoming")
        assert result.exit_code == EXIT_CODE_OK
        args, _ = mock_upcoming.call_args
        assert args[2] == 7

    def test_configure_saves(self, invoke, paths):
        result = invoke("configure", "--currency", "eur", "--topic", "bills")
        assert result.exit_code == EXIT_CODE_OK
        config = load_user_config(paths[1])
        assert config.display_currency == "EUR"
        assert config.notifications.topic == "bills"

    def test_configure_invalid_domain(self, invoke):
        result = invoke("configure", "--domain", "ntfy.sh")
        assert result.exit_code == EXIT_CODE_FAIL

    def test_rate_saves(self, invoke, paths):
        result = invoke("rate", "gbp", "usd", "1.27")
        assert result.exit_code == EXIT_CODE_OK
        config = load_user_config(paths[1])
        assert config.conversion_rates.rate_for("GBP", "USD") == Decimal("1.27")

    def test_rate_invalid_value(self, invoke):
        result = invoke("rate", "--", "GBP", "USD", "-2")
        assert result.exit_code == EXIT_CODE_FAIL
        assert "must be > 0" in result.output
