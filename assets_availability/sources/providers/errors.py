class ProviderError(Exception):
    """Base class for everything a provider client raises."""


class ProbeError(ProviderError):
    """A single quote request failed after exhausting its retries."""


class SessionExpiredError(ProviderError):
    """Upstream reports the order/session as already completed or canceled."""

    def __init__(self, order_id=None, message="order already completed or canceled"):
        super().__init__(f"{message} (order {order_id})")
        self.order_id = order_id


class MissingPriceError(ProviderError):
    """No USD price is known for a token the request needs."""

    def __init__(self, symbol: str):
        super().__init__(f"No USD price for {symbol}")
        self.symbol = symbol


class RateLimitReached(ProviderError):
    """The client's per-run request ceiling is exhausted."""

    def __init__(self, provider: str, count: int, ceiling: int):
        super().__init__(f"{provider}: request ceiling reached ({count}/{ceiling})")
        self.provider = provider
        self.count = count
        self.ceiling = ceiling
