from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from assets_availability.storage.db_utils import upsert_insert
from assets_availability.storage.models.route_cache import RouteCache
from assets_availability.storage.models.slippage_cache import SlippageCache
from assets_availability.utils.constants import TRADE_SIZES_USD
from assets_availability.utils.types import RouteRecord, SlippageRecord

log = logging.getLogger(__name__)

AMOUNT_COLUMNS = {size: f"amount_{size}" for size in TRADE_SIZES_USD}


class CacheStore:
    """
    Route and slippage cache keyed by (pair_from, pair_to, provider).

    Every write commits on its own: a pipeline run is a sequence of
    independent row writes, not one transaction.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    # ── routes ──────────────────────────────────────────────────────────
    def upsert_route(self, record: RouteRecord) -> None:
        """Replace any existing record for (from, to, provider)."""
        fetched_at = record.fetched_at or datetime.now(timezone.utc)
        stmt = upsert_insert(self.session, RouteCache.__table__).values(
            pair_from=record.pair_from,
            pair_to=record.pair_to,
            provider=record.provider,
            venue_data=record.venues,
            fetched_at=fetched_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["pair_from", "pair_to", "provider"],
            set_={
                "venue_data": stmt.excluded.venue_data,
                "fetched_at": stmt.excluded.fetched_at,
            },
        )
        self.session.execute(stmt)
        self.session.commit()

    def clear_routes(self, provider: Optional[str] = None) -> int:
        """Delete every route row for `provider` (all providers when None)."""
        stmt = delete(RouteCache)
        if provider is not None:
            stmt = stmt.where(RouteCache.provider == provider)
        result = self.session.execute(stmt)
        self.session.commit()
        log.info("🗑️  Deleted %d %s routes", result.rowcount, provider or "(all providers)")
        return result.rowcount

    def delete_routes_older_than(self, days: int, provider: Optional[str] = None) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        stmt = delete(RouteCache).where(RouteCache.fetched_at < cutoff)
        if provider is not None:
            stmt = stmt.where(RouteCache.provider == provider)
        result = self.session.execute(stmt)
        self.session.commit()
        log.info("🗑️  Deleted %d routes older than %d days", result.rowcount, days)
        return result.rowcount

    def read_routes(self, provider: Optional[str] = None) -> Tuple[List[RouteRecord], Optional[datetime]]:
        """Cached routes ordered by pair, plus the most recent fetch time."""
        query = select(RouteCache).order_by(RouteCache.pair_from, RouteCache.pair_to, RouteCache.provider)
        latest = select(func.max(RouteCache.fetched_at))
        if provider is not None:
            query = query.where(RouteCache.provider == provider)
            latest = latest.where(RouteCache.provider == provider)

        rows = self.session.execute(query).scalars().all()
        records = [
            RouteRecord(
                pair_from=r.pair_from,
                pair_to=r.pair_to,
                provider=r.provider,
                venues=list(r.venue_data or []),
                fetched_at=r.fetched_at,
            )
            for r in rows
        ]
        return records, self.session.execute(latest).scalar()

    def route_stats(self) -> dict:
        per_provider = dict(
            self.session.execute(
                select(RouteCache.provider, func.count()).group_by(RouteCache.provider)
            ).all()
        )
        newest, oldest = self.session.execute(
            select(func.max(RouteCache.fetched_at), func.min(RouteCache.fetched_at))
        ).one()
        return {
            "total": sum(per_provider.values()),
            "providers": per_provider,
            "newest": newest,
            "oldest": oldest,
        }

    # ── slippage ────────────────────────────────────────────────────────
    def write_slippage_batch(self, calculation_timestamp: datetime, records: Iterable[SlippageRecord]) -> int:
        """Insert one row per record, all stamped with the same calculation run."""
        written = 0
        for record in records:
            row = SlippageCache(
                pair_from=record.pair_from,
                pair_to=record.pair_to,
                provider=record.provider,
                calculation_timestamp=calculation_timestamp,
                updated_at=datetime.now(timezone.utc),
                **{col: record.amounts.get(size) for size, col in AMOUNT_COLUMNS.items()},
            )
            self.session.add(row)
            self.session.commit()
            written += 1
        return written

    def clear_slippage(self, provider: Optional[str] = None) -> int:
        stmt = delete(SlippageCache)
        if provider is not None:
            stmt = stmt.where(SlippageCache.provider == provider)
        result = self.session.execute(stmt)
        self.session.commit()
        log.info("🗑️  Deleted %d %s slippage rows", result.rowcount, provider or "(all providers)")
        return result.rowcount

    def _latest_calculation(self, provider: str):
        return (
            select(func.max(SlippageCache.calculation_timestamp))
            .where(SlippageCache.provider == provider)
            .correlate(None)
            .scalar_subquery()
        )

    def _providers_with_slippage(self) -> List[str]:
        return list(
            self.session.execute(
                select(SlippageCache.provider).distinct().order_by(SlippageCache.provider)
            ).scalars()
        )

    def read_latest_slippage(
        self, provider: Optional[str] = None
    ) -> Tuple[List[SlippageRecord], Optional[datetime]]:
        """
        Rows of the most recent calculation run per provider, never a mix of
        two runs for the same provider.

        Returns
        -------
        (records, calculation_timestamp): with `provider=None` every
        provider's latest run is combined and the timestamp is the newest one.
        """
        providers = [provider] if provider is not None else self._providers_with_slippage()
        records: List[SlippageRecord] = []
        newest: Optional[datetime] = None

        for name in providers:
            rows = self.session.execute(
                select(SlippageCache)
                .where(
                    SlippageCache.provider == name,
                    SlippageCache.calculation_timestamp == self._latest_calculation(name),
                )
                .order_by(SlippageCache.pair_from, SlippageCache.pair_to)
            ).scalars().all()
            if not rows:
                continue
            calc_ts = rows[0].calculation_timestamp
            newest = calc_ts if newest is None or calc_ts > newest else newest
            records.extend(
                SlippageRecord(
                    pair_from=r.pair_from,
                    pair_to=r.pair_to,
                    provider=r.provider,
                    amounts={size: getattr(r, col) for size, col in AMOUNT_COLUMNS.items()},
                    calculation_timestamp=r.calculation_timestamp,
                    updated_at=r.updated_at,
                )
                for r in rows
            )
        return records, newest

    def slippage_status(self, provider: str) -> dict:
        """Pair counts for the provider's latest calculation run."""
        latest = self.session.execute(
            select(func.max(SlippageCache.calculation_timestamp)).where(SlippageCache.provider == provider)
        ).scalar()
        if latest is None:
            return {
                "totalPairs": 0,
                "successfulPairs": 0,
                "failedPairs": 0,
                "lastUpdated": None,
                "latestCalculationTimestamp": None,
            }

        in_run = (SlippageCache.provider == provider, SlippageCache.calculation_timestamp == latest)
        total, last_updated = self.session.execute(
            select(func.count(), func.max(SlippageCache.updated_at)).where(*in_run)
        ).one()
        successful = self.session.execute(
            select(func.count()).where(
                *in_run,
                or_(*(getattr(SlippageCache, col).is_not(None) for col in AMOUNT_COLUMNS.values())),
            )
        ).scalar()
        return {
            "totalPairs": total,
            "successfulPairs": successful,
            "failedPairs": total - successful,
            "lastUpdated": last_updated,
            "latestCalculationTimestamp": latest,
        }
