from typing import Mapping, Optional

import httpx

from assets_availability.sources.providers.base import ProviderClient
from assets_availability.sources.providers.lifi import LiFiClient
from assets_availability.sources.providers.oku import OkuClient
from assets_availability.sources.providers.types import Provider

CLIENTS = {
    Provider.LIFI: LiFiClient,
    Provider.OKU: OkuClient,
}


def build_client(
    provider,
    http: httpx.AsyncClient,
    prices: Optional[Mapping[str, float]] = None,
    **overrides,
) -> ProviderClient:
    """Fresh client for one run: request counter and order session start empty."""
    provider = Provider.parse(provider)
    return CLIENTS[provider](http, prices=prices, **overrides)
