import pytest

from strecklistan.currency import (
    AbsCurrency,
    Currency,
    CurrencyParseError,
    ParseErrorKind,
)


@pytest.mark.parametrize(
    "text, kind",
    [
        ("123.123", ParseErrorKind.FRAC_GREATER_THAN_99),
        ("123.-3", ParseErrorKind.MATCH_FAILED),
        ("-123.-23", ParseErrorKind.MATCH_FAILED),
        ("123.-123", ParseErrorKind.MATCH_FAILED),
        ("0.0.0", ParseErrorKind.MATCH_FAILED),
    ],
)
def test_currency_parsing_errors(text, kind):
    with pytest.raises(CurrencyParseError) as info:
        Currency.parse(text)
    assert info.value.kind is kind


def test_currency_parsing_round_trip():
    for i in range(-9999, 9999, 9):
        assert Currency.parse(str(Currency(i))) == Currency(i)


def test_currency_add_subtract():
    for x in range(-999, 999, 37):
        for y in range(-999, 999, 41):
            a = Currency(x)
            b = Currency(y)

            assert a - a == Currency(0)
            assert b - b == Currency(0)
            assert a + a - a == a
            assert b + a - b == a
            assert a + b - b == a
            assert b + b - b == b
            assert a + b - a == b
            assert b + a - a == b

            a2 = a
            a2 += a
            assert a2 == a + a
            a2 -= a
            assert a2 == a
            a2 += b
            assert a2 == a + b
            a2 += b
            assert a2 == a + b + b
            a2 -= b + a
            assert a2 == b


@pytest.mark.parametrize(
    "cents, expected",
    [
        (3220, 32.20),
        (9999999, 99999.99),
        (0, 0.0),
        (1, 0.01),
        (-232323, -2323.23),
        (-1, -0.01),
    ],
)
def test_currency_float_repr(cents, expected):
    assert Currency(cents).as_float() == expected


def test_parse_error_messages():
    assert str(CurrencyParseError(ParseErrorKind.MATCH_FAILED)) == "parsing failed"
    assert str(CurrencyParseError(ParseErrorKind.INTEGER_OVERFLOW)) == "integer overflow"
    assert (
        str(CurrencyParseError(ParseErrorKind.FRAC_GREATER_THAN_99))
        == "decimal fraction greater than 99"
    )


def test_parse_single_fraction_digit_is_tenths():
    assert Currency.parse("1.5") == Currency.parse("1.50")


def test_parse_trims_whitespace():
    assert Currency.parse("  7.25 \n") == Currency.parse("7.25")


def test_parse_overflow():
    with pytest.raises(CurrencyParseError) as info:
        Currency.parse("99999999999")
    assert info.value.kind is ParseErrorKind.INTEGER_OVERFLOW


def test_whole_and_fractional_truncate_towards_zero():
    for cents in range(-1000, 1000, 7):
        c = Currency(cents)
        assert c.whole() * 100 + c.fractional() == cents
        assert abs(c.fractional()) < 100


def test_negation_and_ordering():
    assert -Currency(5) < Currency(0) < Currency(5)
    assert -(-Currency(42)) == Currency(42)
    assert int(Currency(42)) == 42


def test_abs_currency_rejects_negative():
    with pytest.raises(ValueError, match="currency less than 0"):
        AbsCurrency.from_currency(Currency(-1))


def test_abs_currency_round_trip():
    value = AbsCurrency.from_currency(Currency(1234))
    assert value.to_currency() == Currency(1234)
    assert AbsCurrency.parse(str(value)) == value
    assert AbsCurrency() == AbsCurrency.from_currency(Currency(0))


def test_abs_currency_parse_negative_fails_to_match():
    with pytest.raises(CurrencyParseError) as info:
        AbsCurrency.parse("-3")
    assert info.value.kind is ParseErrorKind.MATCH_FAILED