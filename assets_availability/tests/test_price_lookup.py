from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from assets_availability.sources.prices.price_lookup import PriceLookup
from assets_availability.storage.models.price import Price

NOW = datetime(2026, 1, 1, 12, tzinfo=timezone.utc)


def _add(session, token, price, age_minutes=0):
    session.add(Price(token=token, price=Decimal(str(price)), timestamp=NOW - timedelta(minutes=age_minutes)))
    session.commit()


def test_latest_price_per_token_wins(session):
    _add(session, "weth", 3000, age_minutes=60)
    _add(session, "weth", 3100)
    _add(session, "usdc", 1)

    prices = PriceLookup(session).latest_prices()

    assert prices["weth"] == pytest.approx(3100)
    assert prices["usdc"] == pytest.approx(1)


def test_lbtc_borrows_wbtc_price(session):
    _add(session, "wbtc", 95000)

    prices = PriceLookup(session).latest_prices()

    assert prices["lbtc"] == prices["wbtc"]


def test_stxtz_derived_from_xtz_only_when_missing(session):
    _add(session, "xtz", 1.0)
    prices = PriceLookup(session).latest_prices()
    assert prices["stxtz"] == pytest.approx(1.031)

    _add(session, "stxtz", 1.2)
    prices = PriceLookup(session).latest_prices()
    assert prices["stxtz"] == pytest.approx(1.2)


def test_empty_table(session):
    assert PriceLookup(session).latest_prices() == {}
