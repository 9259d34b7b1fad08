"""
Configuration management and loading.

Handles the user's display currency, conversion rates and notification
settings, stored as YAML.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, Tuple

import yaml

from subscription_calendar.core.aggregation import ConversionRates
from subscription_calendar.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "subscription_calendar.yaml"
DEFAULT_CURRENCY = "USD"
DEFAULT_NTFY_DOMAIN = "https://ntfy.sh"


def _is_currency_code(value) -> bool:
    return (isinstance(value, str) and len(value) == 3 and value.isascii()
            and value.isalpha() and value.isupper())


@dataclass(frozen=True)
class NotificationSettings:
    """ntfy topic and server used for renewal notifications."""
    topic: str = ""
    domain: str = DEFAULT_NTFY_DOMAIN

    def __post_init__(self):
        """Validate the server URL."""
        if not self.domain.startswith(("http://", "https://")):
            raise ValueError("notifications.domain must be an http(s) URL")


@dataclass(frozen=True)
class UserConfig:
    """Complete user configuration."""
    display_currency: str = DEFAULT_CURRENCY
    conversion_rates: ConversionRates = field(default_factory=ConversionRates)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)

    def __post_init__(self):
        """Validate display currency."""
        if not _is_currency_code(self.display_currency):
            raise ValueError(f"display_currency must be a 3-letter ISO code, got {self.display_currency!r}")


def default_user_config() -> UserConfig:
    """Configuration used when no file has been saved yet."""
    return UserConfig()


def load_user_config(path: str) -> UserConfig:
    """Load and validate user configuration from YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated UserConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        logger.debug("Config file %s is empty, using defaults", path)
        return default_user_config()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'display_currency', 'conversion_rates', 'notifications'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    display_currency = raw_config.get('display_currency', DEFAULT_CURRENCY)
    if not _is_currency_code(display_currency):
        raise ValueError(f"'display_currency' must be a 3-letter ISO code, got {display_currency!r}")

    rates_data = raw_config.get('conversion_rates') or {}
    if not isinstance(rates_data, dict):
        raise ValueError("'conversion_rates' must be a dictionary")
    rates = ConversionRates(_parse_rates(rates_data))

    notifications_data = raw_config.get('notifications') or {}
    if not isinstance(notifications_data, dict):
        raise ValueError("'notifications' must be a dictionary")
    notifications = _parse_notifications(notifications_data)

    logger.debug("Loaded config from %s (%d rates)", path, len(rates.rates))
    return UserConfig(
        display_currency=display_currency,
        conversion_rates=rates,
        notifications=notifications
    )


def save_user_config(config: UserConfig, path: str) -> None:
    """Write configuration to YAML in the format load_user_config reads."""
    data = {
        'display_currency': config.display_currency,
        'conversion_rates': {
            f"{source}/{target}": str(rate)
            for (source, target), rate in config.conversion_rates.rates.items()
        },
        'notifications': {
            'topic': config.notifications.topic,
            'domain': config.notifications.domain,
        },
    }
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(data, f, sort_keys=False)
    logger.debug("Saved config to %s", path)


def parse_rate(pair, value) -> Tuple[Tuple[str, str], Decimal]:
    """Parse one 'AAA/BBB' pair and its rate.

    Args:
        pair: Currency pair, source first
        value: Units of target per unit of source

    Returns:
        ((source, target), rate)

    Raises:
        ValueError: If the pair or rate is malformed
    """
    parts = pair.split('/') if isinstance(pair, str) else []
    if len(parts) != 2 or not all(_is_currency_code(p) for p in parts):
        raise ValueError(f"Invalid currency pair {pair!r}, expected 'AAA/BBB'")

    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError(f"Rate for {pair} must be a number")
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Rate for {pair} must be a number")
    if not rate.is_finite() or rate <= 0:
        raise ValueError(f"Rate for {pair} must be > 0")

    return (parts[0], parts[1]), rate


def _parse_rates(data: Dict) -> Dict[Tuple[str, str], Decimal]:
    """Parse the conversion_rates section."""
    rates = {}
    for pair, value in data.items():
        key, rate = parse_rate(pair, value)
        rates[key] = rate
    return rates


def _parse_notifications(data: Dict) -> NotificationSettings:
    """Parse and validate the notifications section.

    Raises:
        ValueError: If configuration is invalid
    """
    allowed_keys = {'topic', 'domain'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in notifications: {unknown_keys}")

    topic = data.get('topic', "")
    if topic is None:
        topic = ""
    if not isinstance(topic, str):
        raise ValueError("'topic' in notifications must be a string")

    domain = data.get('domain', DEFAULT_NTFY_DOMAIN)
    if not isinstance(domain, str):
        raise ValueError("'domain' in notifications must be a string")

    return NotificationSettings(topic=topic, domain=domain)
