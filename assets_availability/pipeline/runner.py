"""
Trigger and read entry points shared by the API, the CLI and Celery.

Callers need no pipeline internals: pass a provider name, get aggregate
counts (triggers) or the cached shapes (reads) back.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from assets_availability.config import settings
from assets_availability.pipeline.route_fetch import RouteFetchPipeline, RouteFetchStats
from assets_availability.pipeline.slippage_fetch import SlippageFetchPipeline, SlippageFetchStats
from assets_availability.sources.prices.price_lookup import PriceLookup
from assets_availability.sources.providers.factory import build_client
from assets_availability.sources.providers.types import Provider
from assets_availability.storage.cache_store import CacheStore
from assets_availability.storage.db import SessionLocal
from assets_availability.storage.token_registry import TokenRegistry

log = logging.getLogger(__name__)


@contextmanager
def _session_scope(session: Optional[Session]):
    if session is not None:
        yield session
        return
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@asynccontextmanager
async def _http_scope(http: Optional[httpx.AsyncClient]):
    """Use the caller's client as-is, or own a fresh one for the run."""
    if http is not None:
        yield http
        return
    async with httpx.AsyncClient(timeout=30.0) as owned:
        yield owned


async def run_route_fetch(
    provider,
    *,
    session: Optional[Session] = None,
    http: Optional[httpx.AsyncClient] = None,
    clear_existing: bool = True,
    pair_delay: Optional[float] = None,
    **client_overrides,
) -> RouteFetchStats:
    provider = Provider.parse(provider)
    with _session_scope(session) as db:
        prices = PriceLookup(db).latest_prices()
        async with _http_scope(http) as client_http:
            client = build_client(provider, client_http, prices, **client_overrides)
            pipeline = RouteFetchPipeline(
                CacheStore(db),
                TokenRegistry(db),
                client,
                pair_delay=(
                    pair_delay if pair_delay is not None
                    else settings.ROUTE_PAIR_DELAY_SECONDS[provider.value]
                ),
            )
            return await pipeline.run(clear_existing=clear_existing)


async def run_slippage_fetch(
    provider,
    *,
    session: Optional[Session] = None,
    http: Optional[httpx.AsyncClient] = None,
    pair_delay: Optional[float] = None,
    amount_delay: Optional[float] = None,
    **client_overrides,
) -> SlippageFetchStats:
    provider = Provider.parse(provider)
    with _session_scope(session) as db:
        prices = PriceLookup(db).latest_prices()
        async with _http_scope(http) as client_http:
            client = build_client(provider, client_http, prices, **client_overrides)
            pipeline = SlippageFetchPipeline(
                CacheStore(db),
                TokenRegistry(db),
                client,
                prices,
                pair_delay=(
                    pair_delay if pair_delay is not None
                    else settings.SLIPPAGE_PAIR_DELAY_SECONDS[provider.value]
                ),
                amount_delay=(
                    amount_delay if amount_delay is not None
                    else settings.SLIPPAGE_AMOUNT_DELAY_SECONDS[provider.value]
                ),
            )
            return await pipeline.run()


def get_routes(provider=None, *, session: Optional[Session] = None) -> dict:
    name = Provider.parse(provider).value if provider else None
    with _session_scope(session) as db:
        routes, last_updated = CacheStore(db).read_routes(name)
    return {
        "routes": [r.to_dict() for r in routes],
        "lastUpdated": last_updated.isoformat() if last_updated else None,
        "count": len(routes),
    }


def get_slippage(provider=None, *, session: Optional[Session] = None) -> dict:
    name = Provider.parse(provider).value if provider else None
    with _session_scope(session) as db:
        records, calc_ts = CacheStore(db).read_latest_slippage(name)
    last_updated = max((r.updated_at for r in records if r.updated_at), default=None)
    return {
        "slippageData": [r.to_dict() for r in records],
        "calculationTimestamp": calc_ts.isoformat() if calc_ts else None,
        "lastUpdated": last_updated.isoformat() if last_updated else None,
        "count": len(records),
    }


def get_slippage_status(provider, *, session: Optional[Session] = None) -> dict:
    name = Provider.parse(provider).value
    with _session_scope(session) as db:
        status = CacheStore(db).slippage_status(name)
    return {
        k: (v.isoformat() if hasattr(v, "isoformat") else v)
        for k, v in status.items()
    }

