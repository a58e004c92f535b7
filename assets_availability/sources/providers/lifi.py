"""
LI.FI client: one stateless request per lookup.

  routes   → GET  /connections        (non-empty connections = supported)
  slippage → POST /advanced/routes    (best route's fromAmountUSD vs toAmountUSD)
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from assets_availability.config import settings
from assets_availability.sources.providers.base import ProviderClient
from assets_availability.sources.providers.errors import ProbeError
from assets_availability.sources.providers.types import (
    Ok, Provider, RouteResult, SlippageResult, Supported, Unavailable,
    UnavailableReason, Unsupported, Venue,
)
from assets_availability.utils.amounts import slippage_pct, to_base_units, to_token_amount
from assets_availability.utils.types import Token

log = logging.getLogger(__name__)

UNSUPPORTED_STATUSES = {400, 404}


def _objects(value) -> list:
    """The JSON objects in `value`, or nothing when it is not a list."""
    return [v for v in value if isinstance(v, dict)] if isinstance(value, list) else []


def _to_route_result(payload: dict, dst: Token) -> RouteResult:
    connections = _objects(payload.get("connections")) if isinstance(payload, dict) else []
    for connection in connections:
        to_tokens = connection.get("toTokens")
        # older payloads omit the token lists; a bare connection still counts
        if to_tokens is None or any(
            str(t.get("address") or "").lower() == dst.address.lower() for t in _objects(to_tokens)
        ):
            return Supported(venues=(Venue(Provider.LIFI.value),))
    return Unsupported("no connections")


def _to_slippage_result(payload: dict) -> SlippageResult:
    routes = _objects(payload.get("routes")) if isinstance(payload, dict) else []
    if not routes:
        return Unavailable(UnavailableReason.NO_QUOTE, "no routes returned")

    best = routes[0]
    if best.get("fromAmountUSD") is None or best.get("toAmountUSD") is None:
        return Unavailable(UnavailableReason.NO_QUOTE, "route without USD amounts")
    try:
        pct = slippage_pct(best.get("fromAmountUSD"), best.get("toAmountUSD"))
    except (TypeError, ValueError):
        return Unavailable(UnavailableReason.NO_QUOTE, "route with unreadable USD amounts")
    if pct is None:
        return Unavailable(UnavailableReason.ZERO_VALUE, "zero input value")

    step = (_objects(best.get("steps")) or [{}])[0]
    details = step.get("toolDetails")
    venue = (details.get("name") if isinstance(details, dict) else None) or step.get("tool")
    return Ok(percent=pct, venue=venue)


class LiFiClient(ProviderClient):
    provider = Provider.LIFI

    def __init__(self, http: httpx.AsyncClient, *, base_url: str = settings.LIFI_BASE_URL,
                 api_key: Optional[str] = settings.LIFI_API_KEY, chain_id: int = settings.CHAIN_ID,
                 timeout: float = settings.LIFI_TIMEOUT_SECONDS, **kwargs) -> None:
        super().__init__(http, **kwargs)
        self.base_url = base_url.rstrip("/")
        self.chain_id = chain_id
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["x-lifi-api-key"] = api_key

    async def _get_connections(self, src: Token, dst: Token) -> dict:
        response = await self._send(
            "GET",
            f"{self.base_url}/connections",
            params={
                "fromChain": self.chain_id,
                "toChain": self.chain_id,
                "fromToken": src.address,
                "toToken": dst.address,
            },
            headers=self.headers,
            timeout=self.timeout,
        )
        return self._payload(response)

    async def _post_routes(self, src: Token, dst: Token, base_units: int) -> dict:
        response = await self._send(
            "POST",
            f"{self.base_url}/advanced/routes",
            json={
                "fromChainId": self.chain_id,
                "fromAmount": str(base_units),
                "fromTokenAddress": src.address,
                "toChainId": self.chain_id,
                "toTokenAddress": dst.address,
                "options": {},
            },
            headers=self.headers,
            timeout=self.timeout,
        )
        return self._payload(response)

    async def probe_route(self, src: Token, dst: Token) -> RouteResult:
        try:
            payload = await self._retrying(self._get_connections)(src, dst)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code in UNSUPPORTED_STATUSES:
                return Unsupported(f"HTTP {exc.response.status_code}")
            raise ProbeError(f"LiFi connections {src.symbol}→{dst.symbol}: {exc}") from exc
        except httpx.TransportError as exc:
            raise ProbeError(f"LiFi connections {src.symbol}→{dst.symbol}: {exc!r}") from exc
        return _to_route_result(payload, dst)

    async def probe_slippage(self, src: Token, dst: Token, usd_amount: float,
                             from_usd_price: float, to_usd_price: Optional[float] = None) -> SlippageResult:
        # upstream prices the output itself, so the destination price is not needed here
        token_amount = to_token_amount(usd_amount, from_usd_price, src.decimals)
        if token_amount is None or token_amount <= 0:
            return Unavailable(UnavailableReason.MISSING_PRICE, f"no usable price for {src.symbol}")

        base_units = to_base_units(token_amount, src.decimals)
        log.info("💰 %s: $%s / $%s = %s tokens (%s base units)",
                 src.symbol, usd_amount, from_usd_price, token_amount, base_units)
        try:
            payload = await self._retrying(self._post_routes)(src, dst, base_units)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code in UNSUPPORTED_STATUSES:
                log.info("⚠️  %s→%s at $%s: HTTP %d, pair unsupported or too little liquidity",
                         src.symbol, dst.symbol, usd_amount, exc.response.status_code)
                return Unavailable(UnavailableReason.UNSUPPORTED, f"HTTP {exc.response.status_code}")
            raise ProbeError(f"LiFi routes {src.symbol}→{dst.symbol} at ${usd_amount}: {exc}") from exc
        except httpx.TransportError as exc:
            raise ProbeError(f"LiFi routes {src.symbol}→{dst.symbol} at ${usd_amount}: {exc!r}") from exc
        return _to_slippage_result(payload)
