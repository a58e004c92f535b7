from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session
from web3 import Web3

from assets_availability.storage.db_utils import upsert_insert
from assets_availability.storage.models.token import Token as TokenRow
from assets_availability.utils.constants import TOKENS
from assets_availability.utils.types import Token

log = logging.getLogger(__name__)


def normalize_token(symbol: str, address: str, decimals: int) -> Token:
    """Validate one registry entry and checksum its address."""
    if not symbol or not symbol.strip():
        raise ValueError("Token symbol must not be empty")
    if int(decimals) < 0:
        raise ValueError(f"[{symbol}] decimals must be >= 0, got {decimals}")
    if not isinstance(address, str) or not Web3.is_address(address.lower()):
        raise ValueError(f"[{symbol}] invalid contract address {address!r}")
    return Token(symbol.strip(), Web3.to_checksum_address(address), int(decimals))


class TokenRegistry:
    """Static list of tradable tokens, persisted in the `tokens` table."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def seed(self, tokens: Mapping[str, Tuple[str, int]] = TOKENS) -> int:
        """
        Insert-or-replace every token by symbol. Idempotent: re-seeding the
        same mapping leaves the table unchanged.
        """
        rows = [normalize_token(symbol, address, decimals)._asdict()
                for symbol, (address, decimals) in tokens.items()]
        if not rows:
            return 0

        stmt = upsert_insert(self.session, TokenRow.__table__).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["symbol"],
            set_={"address": stmt.excluded.address, "decimals": stmt.excluded.decimals},
        )
        self.session.execute(stmt)
        self.session.commit()
        log.info("Upserted %d tokens", len(rows))
        return len(rows)

    def list_tokens(self) -> List[Token]:
        """All tokens sorted by symbol, so pair enumeration is deterministic."""
        rows = self.session.execute(select(TokenRow)).scalars().all()
        return sorted(
            (Token(r.symbol, r.address, r.decimals) for r in rows),
            key=lambda t: t.symbol,
        )

    def get(self, symbol: str) -> Optional[Token]:
        row = self.session.get(TokenRow, symbol)
        return Token(row.symbol, row.address, row.decimals) if row else None

    def by_symbol(self, tokens: Optional[Iterable[Token]] = None) -> dict:
        return {t.symbol: t for t in (tokens if tokens is not None else self.list_tokens())}
