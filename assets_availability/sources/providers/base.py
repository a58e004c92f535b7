from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Mapping, Optional

import backoff
import httpx

from assets_availability.config import settings
from assets_availability.sources.providers.errors import MissingPriceError, ProbeError, RateLimitReached
from assets_availability.sources.providers.types import Provider, RouteResult, SlippageResult
from assets_availability.utils.clean_util import price_key
from assets_availability.utils.types import Token

log = logging.getLogger(__name__)

TRANSIENT_ERRORS = (httpx.TransportError, httpx.HTTPStatusError)


def is_permanent(exc: Exception) -> bool:
    """4xx (except 429) will not get better by asking again."""
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return 400 <= status < 500 and status != 429
    return False


def _log_retry(details):
    exc = details.get("exception")
    log.warning(
        "  🔄 Retry %d for %s in %.1fs: %s",
        details["tries"], details["target"].__name__, details["wait"], exc,
    )


class ProviderClient(ABC):
    """
    Normalized contract over one external quoting API.

    One instance serves exactly one pipeline run: the request counter is an
    instance field and starts at zero.
    """

    provider: Provider

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        prices: Optional[Mapping[str, float]] = None,
        max_requests: Optional[int] = None,
        max_attempts: int = settings.STEP_MAX_ATTEMPTS,
        retry_interval: float = settings.STEP_RETRY_SECONDS,
    ) -> None:
        self.http = http
        self.prices = dict(prices or {})
        self.max_requests = (
            max_requests if max_requests is not None
            else settings.MAX_REQUESTS_PER_RUN[self.provider.value]
        )
        self.max_attempts = max_attempts
        self.retry_interval = retry_interval
        self.request_count = 0

    # ── rate limiting ──────────────────────────────────────────────────
    @property
    def exhausted(self) -> bool:
        return self.request_count >= self.max_requests

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Issue one HTTP request, counted against the run's ceiling."""
        if self.exhausted:
            raise RateLimitReached(self.provider.value, self.request_count, self.max_requests)
        self.request_count += 1
        response = await self.http.request(method, url, **kwargs)
        self._check_response(response)
        return response

    def _check_response(self, response: httpx.Response) -> None:
        response.raise_for_status()

    def _payload(self, response: httpx.Response) -> dict:
        """Response body as a JSON object; anything else raises ProbeError."""
        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError as exc:
            raise ProbeError(f"{self.provider.value}: response body is not JSON") from exc
        if not isinstance(body, dict):
            raise ProbeError(f"{self.provider.value}: expected a JSON object, got {type(body).__name__}")
        return body

    # ── retries ────────────────────────────────────────────────────────
    def _retrying(self, func, *, max_tries: Optional[int] = None):
        """Wrap `func` with the fixed-interval transient retry policy."""
        return backoff.on_exception(
            backoff.constant,
            TRANSIENT_ERRORS,
            max_tries=max_tries or self.max_attempts,
            interval=self.retry_interval,
            jitter=None,
            giveup=is_permanent,
            on_backoff=_log_retry,
        )(func)

    # ── prices ─────────────────────────────────────────────────────────
    def price_of(self, token: Token) -> Optional[float]:
        return self.prices.get(price_key(token.symbol))

    def require_price(self, token: Token) -> float:
        price = self.price_of(token)
        if not price:
            raise MissingPriceError(token.symbol)
        return price

    # ── lifecycle hooks ────────────────────────────────────────────────
    def pair_completed(self) -> None:
        """Called by pipelines after each pair that sent a request; stateless clients ignore it."""

    # ── contract ───────────────────────────────────────────────────────
    @abstractmethod
    async def probe_route(self, src: Token, dst: Token) -> RouteResult:
        ...

    @abstractmethod
    async def probe_slippage(
        self,
        src: Token,
        dst: Token,
        usd_amount: float,
        from_usd_price: float,
        to_usd_price: Optional[float],
    ) -> SlippageResult:
        ...
