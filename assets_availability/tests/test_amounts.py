from decimal import Decimal

from assets_availability.utils.amounts import format_amount, slippage_pct, to_base_units, to_token_amount


def test_usd_to_token_amount_and_base_units():
    amount = to_token_amount(1000, 2.0, 18)
    assert amount == Decimal("500")
    assert to_base_units(amount, 18) == 500 * 10**18


def test_token_amount_truncates_to_token_precision():
    amount = to_token_amount(100, 3.0, 6)
    assert amount == Decimal("33.333333")
    assert to_base_units(amount, 6) == 33333333


def test_missing_or_non_positive_price_gives_none():
    assert to_token_amount(1000, None, 18) is None
    assert to_token_amount(1000, 0, 18) is None
    assert to_token_amount(1000, -1.5, 18) is None


def test_format_amount_has_no_exponent():
    assert format_amount(Decimal("500.000000")) == "500"
    assert format_amount(Decimal("0.000001")) == "0.000001"
    assert format_amount(Decimal("1E+3")) == "1000"


def test_slippage_percentage():
    assert slippage_pct(1000, 990) == 1.0
    assert slippage_pct(1000, 1000.5) == -0.05
    assert slippage_pct(3, 2) == 33.333
    assert slippage_pct("1000", "995") == 0.5


def test_slippage_undefined_for_zero_input():
    assert slippage_pct(0, 10) is None
    assert slippage_pct(None, 10) is None
