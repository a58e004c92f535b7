from __future__ import annotations

import logging
from typing import Dict, List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from assets_availability.storage.models.price import Price
from assets_availability.utils.clean_util import price_key
from assets_availability.utils.constants import DERIVED_PRICES, PRICE_ALIASES
from assets_availability.utils.types import TokenPrice

log = logging.getLogger(__name__)


class PriceLookup:
    """Most recently observed USD price per token, read from the price table."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def latest_rows(self) -> List[TokenPrice]:
        newest = (
            select(Price.token, func.max(Price.timestamp).label("ts"))
            .group_by(Price.token)
            .subquery()
        )
        rows = self.session.execute(
            select(Price.token, Price.price, Price.timestamp)
            .join(newest, (Price.token == newest.c.token) & (Price.timestamp == newest.c.ts))
            .order_by(Price.token)
        ).all()
        return [TokenPrice(token, usd_price, ts) for token, usd_price, ts in rows]

    def latest_prices(self) -> Dict[str, float]:
        """
        token (lower-case) → USD price, with alias and derived-price rules
        applied. Snapshot once per pipeline run.
        """
        prices: Dict[str, float] = {}
        for row in self.latest_rows():
            prices[price_key(row.token)] = float(row.usd_price)

        for token, source in PRICE_ALIASES.items():
            if source in prices:
                prices[token] = prices[source]
                log.info("🔄 Using %s price ($%s) for %s", source.upper(), prices[source], token.upper())

        for token, (base, multiplier) in DERIVED_PRICES.items():
            if token not in prices and base in prices:
                prices[token] = prices[base] * multiplier
                log.info(
                    "🔄 Using %s price × %s for %s: $%.6f",
                    base.upper(), multiplier, token.upper(), prices[token],
                )

        log.info("Retrieved latest prices for %d tokens", len(prices))
        return prices
