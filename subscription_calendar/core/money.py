"""
Currency-tagged monetary amounts.

Arithmetic and formatting primitives the projection and aggregation
modules build on. Amounts are always Decimal; floats never leak in.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Tuple, Union


class CurrencyMismatchError(ValueError):
    """Raised when combining Money values of different currencies."""
    def __init__(self, left: str, right: str):
        super().__init__(f"Cannot combine {left} with {right} without conversion")
        self.left = left
        self.right = right


# ISO-4217 minor units for currencies that differ from the 2-digit default
_MINOR_UNITS: Dict[str, int] = {
    "BIF": 0, "CLP": 0, "DJF": 0, "GNF": 0, "ISK": 0, "JPY": 0, "KMF": 0,
    "KRW": 0, "PYG": 0, "RWF": 0, "UGX": 0, "VND": 0, "VUV": 0, "XAF": 0,
    "XOF": 0, "XPF": 0,
    "BHD": 3, "IQD": 3, "JOD": 3, "KWD": 3, "LYD": 3, "OMR": 3, "TND": 3,
}

_SYMBOLS: Dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
    "KRW": "₩",
    "CHF": "CHF ",
    "CAD": "CA$",
    "AUD": "A$",
}

# locale -> (grouping separator, decimal separator)
_LOCALE_SEPARATORS: Dict[str, Tuple[str, str]] = {
    "en_US": (",", "."),
    "en_GB": (",", "."),
    "ja_JP": (",", "."),
    "de_DE": (".", ","),
    "es_ES": (".", ","),
    "fr_FR": (" ", ","),
}


def minor_units(currency: str) -> int:
    """Number of fractional digits the currency is quoted in."""
    return _MINOR_UNITS.get(currency, 2)


def _quantum(currency: str) -> Decimal:
    return Decimal(1).scaleb(-minor_units(currency))


def round_to_currency(amount: Decimal, currency: str) -> Decimal:
    """Round half-up to the currency's minor units.

    Raises:
        ValueError: If the amount has too many digits to represent
    """
    try:
        return amount.quantize(_quantum(currency), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Amount {amount} is too large for {currency}")


def _validate_currency_code(currency: str) -> None:
    if (not isinstance(currency, str) or len(currency) != 3
            or not currency.isascii() or not currency.isalpha()
            or not currency.isupper()):
        raise ValueError(f"Invalid currency code: {currency!r}")


@dataclass(frozen=True)
class Money:
    """Immutable amount of a single currency.

    The amount never carries more fractional digits than the currency
    allows. Use ``Money.of`` to build one from loosely typed input.
    """
    amount: Decimal
    currency: str

    def __post_init__(self):
        """Validate amount and currency."""
        _validate_currency_code(self.currency)
        if not isinstance(self.amount, Decimal):
            raise TypeError("amount must be a Decimal")
        if not self.amount.is_finite():
            raise ValueError("amount must be finite")
        if -self.amount.as_tuple().exponent > minor_units(self.currency):
            raise ValueError(
                f"{self.amount} has more precision than {self.currency} allows"
            )

    @classmethod
    def of(cls, value: Union[Decimal, int, float, str], currency: str) -> "Money":
        """Build Money from a number or numeric string, rounding to minor units.

        Floats go through ``str`` so that 9.99 stays 9.99.

        Raises:
            ValueError: If the value is not a finite number or the
                currency code is malformed
        """
        _validate_currency_code(currency)
        if isinstance(value, bool):
            raise ValueError(f"Invalid amount: {value!r}")
        if isinstance(value, float):
            value = str(value)
        try:
            amount = Decimal(value)
        except (InvalidOperation, TypeError):
            raise ValueError(f"Invalid amount: {value!r}")
        if not amount.is_finite():
            raise ValueError("amount must be finite")
        return cls(round_to_currency(amount, currency), currency)

    @classmethod
    def zero(cls, currency: str) -> "Money":
        return cls.of(0, currency)

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return add(self, other)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"


def add(a: Money, b: Money) -> Money:
    """Sum two amounts of the same currency.

    Raises:
        CurrencyMismatchError: If the currencies differ
    """
    if a.currency != b.currency:
        raise CurrencyMismatchError(a.currency, b.currency)
    return Money(a.amount + b.amount, a.currency)


def convert(money: Money, rate: Union[Decimal, int, float, str], target_currency: str) -> Money:
    """Convert into another currency at the given multiplier.

    Args:
        money: Amount to convert
        rate: Units of target currency per unit of the source currency
        target_currency: ISO code of the result

    Returns:
        New Money rounded half-up to the target's minor units

    Raises:
        ValueError: If the rate is not a positive finite number
    """
    try:
        rate = Decimal(str(rate)) if isinstance(rate, float) else Decimal(rate)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid conversion rate: {rate!r}")
    if not rate.is_finite() or rate <= 0:
        raise ValueError(f"Conversion rate must be > 0, got {rate}")
    return Money.of(money.amount * rate, target_currency)


def format_money(money: Money, locale: str = "en_US") -> str:
    """Format for display, e.g. '$1,234.56' or '1.234,56 €'.

    Symbols follow the amount for the comma-decimal locales. Unknown
    locales fall back to en_US separators.
    """
    grouping, decimal_sep = _LOCALE_SEPARATORS.get(locale, _LOCALE_SEPARATORS["en_US"])
    digits = minor_units(money.currency)
    body = f"{abs(money.amount):,.{digits}f}"
    body = body.replace(",", "\0").replace(".", decimal_sep).replace("\0", grouping)
    sign = "-" if money.amount < 0 else ""
    symbol = _SYMBOLS.get(money.currency)
    if symbol is None:
        return f"{sign}{body} {money.currency}"
    if decimal_sep == ",":
        return f"{sign}{body} {symbol.strip()}"
    return f"{sign}{symbol}{body}"
