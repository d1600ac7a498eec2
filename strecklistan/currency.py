"""Fixed-point money values with two decimals of precision."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass

I32_MIN = -(2**31)
I32_MAX = 2**31 - 1

_CURRENCY_RE = re.compile(r"^(?P<neg>-)?\s*?(?P<whole>\d+)(\.(?P<frac>\d+))?\Z")


class ParseErrorKind(enum.Enum):
    """The ways in which parsing a currency string can fail."""

    FRAC_GREATER_THAN_99 = "decimal fraction greater than 99"
    MATCH_FAILED = "parsing failed"
    INTEGER_OVERFLOW = "integer overflow"


class CurrencyParseError(ValueError):
    """Raised when a string cannot be read as a currency amount."""

    def __init__(self, kind: ParseErrorKind) -> None:
        super().__init__(kind.value)
        self.kind = kind

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CurrencyParseError):
            return NotImplemented
        return self.kind is other.kind

    def __hash__(self) -> int:
        return hash(self.kind)


def _parse_i32(digits: str) -> int:
    if not digits.isascii():
        raise CurrencyParseError(ParseErrorKind.INTEGER_OVERFLOW)
    value = int(digits)
    if value > I32_MAX:
        raise CurrencyParseError(ParseErrorKind.INTEGER_OVERFLOW)
    return value


@dataclass(frozen=True, order=True)
class Currency:
    """An amount of money stored as a whole number of hundredths."""

    cents: int = 0

    @classmethod
    def parse(cls, text: str) -> Currency:
        """Parse text such as ``"12"``, ``"-3.5"`` or ``"0.25"``."""
        match = _CURRENCY_RE.match(text.strip())
        if match is None:
            raise CurrencyParseError(ParseErrorKind.MATCH_FAILED)

        whole = _parse_i32(match["whole"])
        frac_text = match["frac"] or "00"
        frac = _parse_i32(frac_text)

        # A single fractional digit is a tenth, not a hundredth.
        if len(frac_text) == 1:
            frac *= 10

        if not 0 <= frac < 100:
            raise CurrencyParseError(ParseErrorKind.FRAC_GREATER_THAN_99)

        cents = whole * 100 + frac
        if cents > I32_MAX:
            raise CurrencyParseError(ParseErrorKind.INTEGER_OVERFLOW)
        if match["neg"] is not None:
            cents = -cents
        return cls(cents)

    def fractional(self) -> int:
        """The fractional part, carrying the sign of the amount."""
        rest = abs(self.cents) % 100
        return -rest if self.cents < 0 else rest

    def whole(self) -> int:
        """The whole part, truncated towards zero."""
        quotient = abs(self.cents) // 100
        return -quotient if self.cents < 0 else quotient

    def as_float(self) -> float:
        """Lossy conversion to a float; not for bookkeeping."""
        return self.whole() + self.fractional() / 100.0

    def __int__(self) -> int:
        return self.cents

    def __add__(self, other: object) -> Currency:
        if not isinstance(other, Currency):
            return NotImplemented
        return Currency(self.cents + other.cents)

    def __sub__(self, other: object) -> Currency:
        if not isinstance(other, Currency):
            return NotImplemented
        return Currency(self.cents - other.cents)

    def __neg__(self) -> Currency:
        return Currency(-self.cents)

    def __str__(self) -> str:
        sign = "-" if self.cents < 0 else ""
        text = f"{sign}{abs(self.whole())}"
        if self.fractional() != 0:
            text += f".{abs(self.fractional()):02}"
        return text


@dataclass(frozen=True, order=True)
class AbsCurrency:
    """A currency amount that is never negative."""

    amount: Currency = Currency(0)

    def __post_init__(self) -> None:
        if self.amount < Currency(0):
            raise ValueError("currency less than 0")

    @classmethod
    def from_currency(cls, value: Currency) -> AbsCurrency:
        """Wrap ``value``, raising ValueError if it is negative."""
        return cls(value)

    @classmethod
    def parse(cls, text: str) -> AbsCurrency:
        """Parse text as a currency; negative amounts fail to match."""
        currency = Currency.parse(text)
        if currency < Currency(0):
            raise CurrencyParseError(ParseErrorKind.MATCH_FAILED)
        return cls(currency)

    def to_currency(self) -> Currency:
        return self.amount

    def __str__(self) -> str:
        return str(self.amount)