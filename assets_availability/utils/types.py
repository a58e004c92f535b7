from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, NamedTuple, Optional

from assets_availability.utils.constants import SIMULATION_FAILED_MARK, TRADE_SIZES_USD


class Token(NamedTuple):
    symbol: str
    address: str
    decimals: int


class Pair(NamedTuple):
    src: Token
    dst: Token

    @property
    def label(self) -> str:
        return f"{self.src.symbol}→{self.dst.symbol}"


class TokenPrice(NamedTuple):
    token: str
    usd_price: Decimal
    timestamp: datetime


@dataclass
class RouteRecord:
    pair_from: str
    pair_to: str
    provider: str
    venues: List[dict]                  # [{"name": ..., "status": ...}]
    fetched_at: Optional[datetime] = None

    @property
    def dexes(self) -> List[str]:
        """Display labels, simulation-failed venues suffixed with ✗."""
        return [
            v["name"] + (SIMULATION_FAILED_MARK if v.get("status") == "simulation_failed" else "")
            for v in self.venues
        ]

    def to_dict(self) -> dict:
        return {
            "pair": {"from": self.pair_from, "to": self.pair_to},
            "provider": self.provider,
            "routes": [{"aggregator": self.provider, "dexes": self.dexes}],
            "venues": self.venues,
            "fetchedAt": self.fetched_at.isoformat() if self.fetched_at else None,
        }


@dataclass
class SlippageRecord:
    pair_from: str
    pair_to: str
    provider: str
    amounts: Dict[int, Optional[float]] = field(
        default_factory=lambda: {size: None for size in TRADE_SIZES_USD}
    )
    calculation_timestamp: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "pair": {"from": self.pair_from, "to": self.pair_to},
            "provider": self.provider,
            "amounts": {str(k): v for k, v in self.amounts.items()},
            "calculationTimestamp": (
                self.calculation_timestamp.isoformat() if self.calculation_timestamp else None
            ),
        }
