from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union


class Provider(str, Enum):
    LIFI = "LiFi"
    OKU = "Oku"

    @classmethod
    def parse(cls, value) -> "Provider":
        """Case-insensitive lookup by value or name ("oku", "LIFI", "LiFi")."""
        if isinstance(value, cls):
            return value
        needle = str(value).strip().lower()
        for member in cls:
            if needle in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown provider {value!r}; expected one of {[m.value for m in cls]}")


class VenueStatus(str, Enum):
    FULLY_SUPPORTED = "fully_supported"
    SIMULATION_FAILED = "simulation_failed"


@dataclass(frozen=True)
class Venue:
    name: str
    status: VenueStatus = VenueStatus.FULLY_SUPPORTED

    def to_dict(self) -> dict:
        return {"name": self.name, "status": self.status.value}


# ── RouteResult ─────────────────────────────────────────────────────────
@dataclass(frozen=True)
class Supported:
    venues: Tuple[Venue, ...]


@dataclass(frozen=True)
class Unsupported:
    reason: str = "no route"


RouteResult = Union[Supported, Unsupported]


# ── SlippageResult ──────────────────────────────────────────────────────
class UnavailableReason(str, Enum):
    MISSING_PRICE = "missing_price"
    NO_QUOTE = "no_quote"
    UNSUPPORTED = "unsupported"
    ZERO_VALUE = "zero_value"


@dataclass(frozen=True)
class Ok:
    percent: float
    venue: Optional[str] = None


@dataclass(frozen=True)
class Unavailable:
    reason: UnavailableReason
    detail: str = ""


SlippageResult = Union[Ok, Unavailable]
