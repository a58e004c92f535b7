"""
Oku client: order-based, three steps per lookup.

  1. Create              → order id (reused for a batch of pairs)
  2. UpdateQuoteParams   → pair / amount / enabled markets on that order
  3. GetNewQuotes        → one quote per market, polled with a bounded wait

An HTTP 500 saying "order already completed or canceled" means upstream
dropped the order: a new one is created and the failing step runs again on
it. Steps already done for the lookup are not repeated.
"""
from __future__ import annotations

import logging
from typing import Optional, Sequence

import backoff
import httpx

from assets_availability.config import settings
from assets_availability.sources.providers.base import ProviderClient, _log_retry
from assets_availability.sources.providers.errors import MissingPriceError, ProbeError, SessionExpiredError
from assets_availability.sources.providers.session import OrderSession
from assets_availability.sources.providers.types import (
    Ok, Provider, RouteResult, SlippageResult, Supported, Unavailable,
    UnavailableReason, Unsupported, Venue, VenueStatus,
)
from assets_availability.utils.amounts import format_amount, slippage_pct, to_token_amount
from assets_availability.utils.types import Token

log = logging.getLogger(__name__)

ORDER_CLOSED_MESSAGE = "order already completed or canceled"


def is_order_closed(response: httpx.Response) -> bool:
    if response.status_code != 500:
        return False
    try:
        body = response.json()
    except ValueError:
        body = response.text
    message = body.get("message") if isinstance(body, dict) else body
    return isinstance(message, str) and ORDER_CLOSED_MESSAGE in message.lower()


def _router_quotes(payload: dict) -> dict:
    """`quotes` keyed by router, tolerating a missing or list-shaped field."""
    quotes = payload.get("quotes") if isinstance(payload, dict) else None
    if isinstance(quotes, list):
        return {str(q.get("router") or f"router_{i}"): q for i, q in enumerate(quotes) if isinstance(q, dict)}
    if isinstance(quotes, dict):
        return {router: entry for router, entry in quotes.items() if isinstance(entry, dict)}
    return {}


def fetched_count(payload: dict) -> int:
    return sum(1 for q in _router_quotes(payload).values() if q.get("fetched"))


def _to_route_result(payload: dict) -> RouteResult:
    supported, simulation_failed = [], []
    for router, entry in _router_quotes(payload).items():
        if not entry.get("fetched"):
            log.info("  ❌ %s: not fetched", router)
            continue
        error = entry.get("error")
        if error:
            log.info("  ❌ %s: %s", router, error.get("message", "error") if isinstance(error, dict) else error)
            continue
        quote = entry.get("quote")
        if not isinstance(quote, dict) or not quote:
            log.info("  ❌ %s: no quote available", router)
            continue
        if quote.get("simulationError"):
            log.info("  ⚠️  %s: simulation failed", router)
            simulation_failed.append(router)
        else:
            log.info("  ✅ %s: fully supported", router)
            supported.append(router)

    venues = tuple(
        [Venue(name) for name in supported]
        + [Venue(name, VenueStatus.SIMULATION_FAILED) for name in simulation_failed]
    )
    return Supported(venues) if venues else Unsupported("no market returned a quote")


def _to_slippage_result(payload: dict, from_usd_price: float, to_usd_price: float) -> SlippageResult:
    for router, entry in _router_quotes(payload).items():
        quote = entry.get("quote")
        if not isinstance(quote, dict):
            continue
        if not entry.get("fetched") or entry.get("error") or quote.get("simulationError"):
            continue
        try:
            in_amount, out_amount = float(quote["inAmount"]), float(quote["outAmount"])
        except (KeyError, TypeError, ValueError):
            continue

        pct = slippage_pct(in_amount * from_usd_price, out_amount * to_usd_price)
        if pct is None:
            return Unavailable(UnavailableReason.ZERO_VALUE, f"zero input value via {router}")
        return Ok(percent=pct, venue=router)
    return Unavailable(UnavailableReason.NO_QUOTE, "no valid quote from any market")


class OkuClient(ProviderClient):
    provider = Provider.OKU

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        base_url: str = settings.OKU_BASE_URL,
        chain_id: int = settings.CHAIN_ID,
        markets: Sequence[str] = settings.OKU_MARKETS,
        batch_size: int = settings.OKU_ORDER_BATCH_SIZE,
        route_probe_usd: float = settings.OKU_ROUTE_PROBE_USD,
        route_wait_ms: int = settings.OKU_ROUTE_WAIT_MS,
        slippage_wait_ms: int = settings.OKU_SLIPPAGE_WAIT_MS,
        gas_price: str = settings.OKU_GAS_PRICE,
        order_slippage: float = settings.OKU_ORDER_SLIPPAGE,
        timeout: float = settings.OKU_TIMEOUT_SECONDS,
        quotes_timeout: float = settings.OKU_QUOTES_TIMEOUT_SECONDS,
        quotes_max_attempts: int = settings.QUOTES_MAX_ATTEMPTS,
        quotes_retry_interval: float = settings.QUOTES_RETRY_SECONDS,
        max_session_recoveries: int = settings.OKU_MAX_SESSION_RECOVERIES,
        **kwargs,
    ) -> None:
        super().__init__(http, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.chain = str(chain_id)
        self.markets = list(markets)
        self.route_probe_usd = route_probe_usd
        self.route_wait_ms = route_wait_ms
        self.slippage_wait_ms = slippage_wait_ms
        self.gas_price = gas_price
        self.order_slippage = order_slippage
        self.timeout = timeout
        self.quotes_timeout = quotes_timeout
        self.max_session_recoveries = max_session_recoveries
        self.session = OrderSession(batch_size=batch_size)

        self._create_step = self._retrying(self._create_order)
        self._update_step = self._retrying(self._update_quote_params)
        # not every market answered yet → ask again, keep the last answer when out of tries
        self._quotes_step = self._retrying(
            backoff.on_predicate(
                backoff.constant,
                predicate=lambda payload: fetched_count(payload) < len(self.markets),
                max_tries=quotes_max_attempts,
                interval=quotes_retry_interval,
                jitter=None,
                on_backoff=_log_retry,
            )(self._get_quotes),
            max_tries=quotes_max_attempts,
        )

    def _check_response(self, response: httpx.Response) -> None:
        if is_order_closed(response):
            raise SessionExpiredError(self.session.order_id)
        response.raise_for_status()

    async def _call(self, method: str, body: dict, timeout: float) -> dict:
        response = await self._send(
            "POST",
            f"{self.base_url}/{method}",
            json=body,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )
        return self._payload(response)

    # ── protocol steps ─────────────────────────────────────────────────
    async def _create_order(self) -> str:
        payload = await self._call(
            "Create",
            {
                "chain": self.chain,
                "isExactIn": True,
                "tokenAmount": "1",
                "slippage": self.order_slippage,
            },
            self.timeout,
        )
        order_id = payload.get("orderId")
        if not order_id:
            raise ProbeError("Oku Create returned no orderId")
        return order_id

    async def _update_quote_params(self, order_id: str, src: Token, dst: Token, token_amount: str) -> dict:
        return await self._call(
            "UpdateQuoteParams",
            {
                "orderId": order_id,
                "chain": self.chain,
                "enabledMarkets": self.markets,
                "isExactIn": True,
                "inTokenAddress": src.address,
                "outTokenAddress": dst.address,
                "tokenAmount": token_amount,
                "gasPrice": self.gas_price,
                "slippage": self.order_slippage,
            },
            self.timeout,
        )

    async def _get_quotes(self, order_id: str, wait_ms: int) -> dict:
        return await self._call(
            "GetNewQuotes",
            {"orderId": order_id, "fetchedRouters": self.markets, "waitTime": str(wait_ms)},
            self.quotes_timeout,
        )

    # ── session handling ───────────────────────────────────────────────
    async def _open_order(self) -> None:
        log.info("🆕 Creating new Oku order...")
        try:
            order_id = await self._create_step()
        except httpx.HTTPError as exc:
            raise ProbeError(f"Oku Create failed: {exc!r}") from exc
        self.session.activate(order_id)
        log.info("✅ Created Oku order with ID: %s", order_id)

    async def _run_step(self, step, *args):
        """
        Run one protocol step against the current order, opening an order
        first if there is none. An expiry signal rotates the order and runs
        the same step again with a fresh retry budget; it never consumes one
        of the step's transient attempts.
        """
        recoveries = 0
        while True:
            if self.session.needs_order:
                await self._open_order()
            try:
                return await step(self.session.order_id, *args)
            except SessionExpiredError:
                recoveries += 1
                if recoveries > self.max_session_recoveries:
                    raise ProbeError(
                        f"Oku order expired {recoveries} times in a row, giving up on this step"
                    )
                log.info("  🔄 Order %s already completed/canceled, creating new order...",
                         self.session.order_id)
                self.session.expire()
            except httpx.HTTPError as exc:
                raise ProbeError(f"Oku {step.__name__} failed: {exc!r}") from exc

    def pair_completed(self) -> None:
        self.session.pair_processed()

    # ── contract ───────────────────────────────────────────────────────
    async def probe_route(self, src: Token, dst: Token) -> RouteResult:
        token_amount = to_token_amount(self.route_probe_usd, self.require_price(src), src.decimals)
        if token_amount is None or token_amount <= 0:
            raise MissingPriceError(src.symbol)

        log.info("  📤 Updating quote params for %s→%s with %s tokens...",
                 src.symbol, dst.symbol, format_amount(token_amount))
        await self._run_step(self._update_step, src, dst, format_amount(token_amount))

        log.info("  📥 Fetching quotes for %s→%s... order %s", src.symbol, dst.symbol, self.session.order_id)
        payload = await self._run_step(self._quotes_step, self.route_wait_ms)
        if fetched_count(payload) < len(self.markets):
            log.info("  ⚠️  %s→%s: only %d/%d markets answered",
                     src.symbol, dst.symbol, fetched_count(payload), len(self.markets))
        return _to_route_result(payload)

    async def probe_slippage(self, src: Token, dst: Token, usd_amount: float,
                             from_usd_price: float, to_usd_price: Optional[float]) -> SlippageResult:
        if not to_usd_price:
            log.warning("⚠️  No price for output token %s, cannot compute slippage", dst.symbol)
            return Unavailable(UnavailableReason.MISSING_PRICE, f"no price for {dst.symbol}")
        token_amount = to_token_amount(usd_amount, from_usd_price, src.decimals)
        if token_amount is None or token_amount <= 0:
            return Unavailable(UnavailableReason.MISSING_PRICE, f"no usable price for {src.symbol}")

        amount = format_amount(token_amount)
        log.info("💰 %s: $%s / $%s = %s tokens (%d decimals)",
                 src.symbol, usd_amount, from_usd_price, amount, src.decimals)
        await self._run_step(self._update_step, src, dst, amount)
        payload = await self._run_step(self._quotes_step, self.slippage_wait_ms)
        return _to_slippage_result(payload, from_usd_price, to_usd_price)

    @property
    def orders_created(self) -> int:
        return self.session.orders_created
