from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Optional


def to_token_amount(usd_amount, usd_price, decimals: int) -> Optional[Decimal]:
    """USD notional → token units, truncated to the token's precision.

    Returns None when the price is unknown or not positive.
    """
    if usd_price is None:
        return None
    try:
        price = Decimal(str(usd_price))
    except InvalidOperation:
        return None
    if price <= 0:
        return None
    quantum = Decimal(1).scaleb(-decimals)
    return (Decimal(str(usd_amount)) / price).quantize(quantum, rounding=ROUND_DOWN)


def to_base_units(token_amount: Decimal, decimals: int) -> int:
    return int(token_amount.scaleb(decimals))


def format_amount(token_amount: Decimal) -> str:
    """Plain decimal string without exponent or trailing zeros."""
    text = format(token_amount.normalize(), "f")
    return text


def slippage_pct(from_usd, to_usd) -> Optional[float]:
    """Percentage lost between input and output USD value, 3 decimals.

    None if the input value is missing or zero.
    """
    if from_usd is None or to_usd is None:
        return None
    from_usd, to_usd = float(from_usd), float(to_usd)
    if from_usd == 0:
        return None
    return round((from_usd - to_usd) / from_usd * 100, 3)
