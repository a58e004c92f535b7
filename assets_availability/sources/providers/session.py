from dataclasses import dataclass
from enum import Enum
from typing import Optional
import logging

log = logging.getLogger(__name__)


class SessionState(str, Enum):
    NO_SESSION = "no_session"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass
class OrderSession:
    """
    Lifecycle of one upstream order handle.

        NO_SESSION ──activate──▶ ACTIVE ──(batch full | expiry signal)──▶ EXPIRED
                                    ▲                                      │
                                    └──────────────activate────────────────┘

    Only two things move an ACTIVE session to EXPIRED: `batch_size` pairs
    processed on it, or `expire()` called on an upstream expiry signal.
    """
    batch_size: int = 50
    state: SessionState = SessionState.NO_SESSION
    order_id: Optional[str] = None
    pairs_processed: int = 0
    orders_created: int = 0

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")

    @property
    def needs_order(self) -> bool:
        return self.state is not SessionState.ACTIVE

    def activate(self, order_id: str) -> None:
        if not order_id:
            raise ValueError("order_id must not be empty")
        self.state = SessionState.ACTIVE
        self.order_id = order_id
        self.pairs_processed = 0
        self.orders_created += 1

    def pair_processed(self) -> None:
        if self.state is not SessionState.ACTIVE:
            return
        self.pairs_processed += 1
        if self.pairs_processed >= self.batch_size:
            log.info("🔄 Order %s served %d pairs, rotating", self.order_id, self.pairs_processed)
            self.state = SessionState.EXPIRED

    def expire(self) -> None:
        if self.state is SessionState.ACTIVE:
            self.state = SessionState.EXPIRED
