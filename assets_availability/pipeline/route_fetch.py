from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone

import httpx

from assets_availability.sources.providers.base import ProviderClient
from assets_availability.sources.providers.errors import MissingPriceError, ProviderError, RateLimitReached
from assets_availability.sources.providers.types import Supported, Unsupported
from assets_availability.storage.cache_store import CacheStore
from assets_availability.storage.token_registry import TokenRegistry
from assets_availability.pipeline.pairs import enumerate_all_pairs
from assets_availability.utils.types import RouteRecord

log = logging.getLogger(__name__)


@dataclass
class RouteFetchStats:
    provider: str
    pairs_total: int = 0
    success_count: int = 0          # lookups that completed (route or no route)
    error_count: int = 0            # lookups that failed after retries
    records_written: int = 0
    unsupported_count: int = 0
    skipped_count: int = 0          # no price to size the request
    stopped_by_rate_limit: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class RouteFetchPipeline:
    """Check every ordered token pair on one provider and cache the venues."""

    def __init__(
        self,
        store: CacheStore,
        registry: TokenRegistry,
        client: ProviderClient,
        *,
        pair_delay: float = 0.0,
    ) -> None:
        self.store = store
        self.registry = registry
        self.client = client
        self.pair_delay = pair_delay

    @property
    def provider(self) -> str:
        return self.client.provider.value

    async def run(self, clear_existing: bool = True) -> RouteFetchStats:
        """
        Registry or cache failures propagate; a failing pair is counted and
        skipped. `clear_existing` drops the provider's rows first so routes
        that disappeared upstream do not linger.
        """
        tokens = self.registry.list_tokens()
        pairs = enumerate_all_pairs(tokens)
        stats = RouteFetchStats(provider=self.provider, pairs_total=len(pairs))
        log.info("🚀 %s route fetch: %d tokens, %d pairs", self.provider, len(tokens), len(pairs))

        if clear_existing:
            self.store.clear_routes(self.provider)

        for i, pair in enumerate(pairs):
            if self.client.exhausted:
                log.info("Request ceiling reached (%d). Stopping %s route fetch.",
                         self.client.request_count, self.provider)
                stats.stopped_by_rate_limit = True
                break
            if i > 0 and self.pair_delay:
                await asyncio.sleep(self.pair_delay)

            log.info("🔍 [%d/%d] Checking %s...", i + 1, len(pairs), pair.label)
            try:
                result = await self.client.probe_route(pair.src, pair.dst)
            except RateLimitReached as exc:
                log.info("%s. Stopping %s route fetch.", exc, self.provider)
                stats.stopped_by_rate_limit = True
                break
            except MissingPriceError as exc:
                log.warning("⚠️  %s: %s, skipping", pair.label, exc)
                stats.skipped_count += 1
                continue
            except (ProviderError, httpx.HTTPError, ValueError) as exc:
                log.error("  💥 Error fetching %s data for %s: %s", self.provider, pair.label, exc)
                stats.error_count += 1
                self.client.pair_completed()
                continue

            self.client.pair_completed()
            stats.success_count += 1
            match result:
                case Supported(venues=venues) if venues:
                    self.store.upsert_route(
                        RouteRecord(
                            pair_from=pair.src.symbol,
                            pair_to=pair.dst.symbol,
                            provider=self.provider,
                            venues=[v.to_dict() for v in venues],
                            fetched_at=datetime.now(timezone.utc),
                        )
                    )
                    stats.records_written += 1
                    log.info("  🎯 %s: %s", pair.label, ", ".join(v.name for v in venues))
                case Supported() | Unsupported():
                    stats.unsupported_count += 1
                    log.info("  ❌ No supported routes found for %s", pair.label)

        log.info(
            "🎉 %s route fetch done. Success: %d, Errors: %d, Skipped: %d, Routes cached: %d",
            self.provider, stats.success_count, stats.error_count,
            stats.skipped_count, stats.records_written,
        )
        return stats
