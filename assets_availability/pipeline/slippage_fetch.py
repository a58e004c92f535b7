from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Sequence, Tuple

import httpx

from assets_availability.sources.providers.base import ProviderClient
from assets_availability.sources.providers.errors import ProviderError, RateLimitReached
from assets_availability.sources.providers.types import Ok, Unavailable
from assets_availability.storage.cache_store import CacheStore
from assets_availability.storage.token_registry import TokenRegistry
from assets_availability.pipeline.pairs import derive_slippage_pairs
from assets_availability.utils.clean_util import price_key
from assets_availability.utils.constants import TRADE_SIZES_USD
from assets_availability.utils.types import Pair, SlippageRecord

log = logging.getLogger(__name__)


@dataclass
class SlippageFetchStats:
    provider: str
    calculation_timestamp: Optional[datetime] = None
    pairs_total: int = 0
    success_count: int = 0          # pairs with at least one bucket
    error_count: int = 0            # pairs with every bucket null
    records_written: int = 0
    buckets_ok: int = 0
    buckets_failed: int = 0
    missing_price_pairs: int = 0
    stopped_by_rate_limit: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["calculation_timestamp"] = (
            self.calculation_timestamp.isoformat() if self.calculation_timestamp else None
        )
        return data


class SlippageFetchPipeline:
    """
    Quote every derived pair at each USD trade size and store the slippage,
    all rows stamped with one calculation timestamp.
    """

    def __init__(
        self,
        store: CacheStore,
        registry: TokenRegistry,
        client: ProviderClient,
        prices: Mapping[str, float],
        *,
        trade_sizes: Sequence[int] = TRADE_SIZES_USD,
        pair_delay: float = 0.0,
        amount_delay: float = 0.0,
    ) -> None:
        self.store = store
        self.registry = registry
        self.client = client
        self.prices = prices
        self.trade_sizes = tuple(sorted(trade_sizes))
        self.pair_delay = pair_delay
        self.amount_delay = amount_delay

    @property
    def provider(self) -> str:
        return self.client.provider.value

    async def _quote_pair(self, pair: Pair) -> Tuple[Dict[int, Optional[float]], int, bool]:
        """
        Returns
        -------
        (amounts, attempted, stop): bucket → slippage or None, how many
        buckets were actually tried, and whether the request ceiling was hit.
        """
        amounts: Dict[int, Optional[float]] = {size: None for size in self.trade_sizes}
        from_price = self.prices.get(price_key(pair.src.symbol))
        to_price = self.prices.get(price_key(pair.dst.symbol))

        if not from_price:
            log.warning("⚠️  No price found for token %s, skipping %s", pair.src.symbol, pair.label)
            return amounts, len(self.trade_sizes), False

        attempted = 0
        for j, size in enumerate(self.trade_sizes):
            if j > 0 and self.amount_delay:
                await asyncio.sleep(self.amount_delay)
            try:
                log.info("Making %s request %d/%d for %s at $%s", self.provider,
                         self.client.request_count + 1, self.client.max_requests, pair.label, size)
                result = await self.client.probe_slippage(pair.src, pair.dst, size, from_price, to_price)
            except RateLimitReached as exc:
                log.info("%s during %s. Stopping.", exc, pair.label)
                return amounts, attempted, True
            except (ProviderError, httpx.HTTPError, ValueError) as exc:
                attempted += 1
                log.error("Error fetching %s quote for %s at $%s: %s", self.provider, pair.label, size, exc)
                continue

            attempted += 1
            match result:
                case Ok(percent=percent, venue=venue):
                    amounts[size] = percent
                    log.info("✅ %s at $%s: %.3f%% slippage via %s", pair.label, size, percent, venue or self.provider)
                case Unavailable(reason=reason, detail=detail):
                    log.info("❌ %s at $%s unavailable (%s) %s", pair.label, size, reason.value, detail)
        return amounts, attempted, False

    async def run(self) -> SlippageFetchStats:
        calculation_ts = datetime.now(timezone.utc)
        stats = SlippageFetchStats(provider=self.provider, calculation_timestamp=calculation_ts)
        log.info("📅 %s slippage run, calculation timestamp %s", self.provider, calculation_ts.isoformat())

        tokens = self.registry.list_tokens()
        routes, _ = self.store.read_routes(self.provider)
        log.info("Found %d existing %s routes, checking for slippage...", len(routes), self.provider)
        pairs = derive_slippage_pairs(routes, tokens)
        stats.pairs_total = len(pairs)
        log.info("Processing %d token pairs for %s slippage...", len(pairs), self.provider)

        self.store.clear_slippage(self.provider)

        for i, pair in enumerate(pairs):
            if self.client.exhausted:
                log.info("Request ceiling reached (%d requests). Stopping %s slippage fetch.",
                         self.client.request_count, self.provider)
                stats.stopped_by_rate_limit = True
                break
            if i > 0 and self.pair_delay:
                await asyncio.sleep(self.pair_delay)

            sent_before = self.client.request_count
            amounts, attempted, stop = await self._quote_pair(pair)
            if attempted:
                record = SlippageRecord(
                    pair_from=pair.src.symbol,
                    pair_to=pair.dst.symbol,
                    provider=self.provider,
                    amounts=amounts,
                )
                stats.records_written += self.store.write_slippage_batch(calculation_ts, [record])
                if self.client.request_count > sent_before:
                    self.client.pair_completed()
                self._tally(stats, pair, record)
                if not self.prices.get(price_key(pair.src.symbol)):
                    stats.missing_price_pairs += 1

            if stop:
                stats.stopped_by_rate_limit = True
                break

        log.info("%s slippage fetch completed. Pairs: Success: %d, Errors: %d",
                 self.provider, stats.success_count, stats.error_count)
        log.info("Amounts: Total: %d, Successful: %d, Failed: %d",
                 stats.buckets_ok + stats.buckets_failed, stats.buckets_ok, stats.buckets_failed)
        return stats

    @staticmethod
    def _tally(stats: SlippageFetchStats, pair: Pair, record: SlippageRecord) -> None:
        ok = {k: v for k, v in record.amounts.items() if v is not None}
        failed = [k for k, v in record.amounts.items() if v is None]
        stats.buckets_ok += len(ok)
        stats.buckets_failed += len(failed)
        if ok:
            stats.success_count += 1
            log.info("✓ %s %s: %s", record.provider, pair.label,
                     ", ".join(f"${k}: {v}%" for k, v in ok.items()))
            if failed:
                log.info("  Failed amounts: %s", ", ".join(f"${k}" for k in failed))
        else:
            stats.error_count += 1
            log.info("✗ %s %s: All amounts failed", record.provider, pair.label)
