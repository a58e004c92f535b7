from sqlalchemy import Column, Integer, String, JSON, TIMESTAMP, UniqueConstraint, Index, func
from assets_availability.storage.base import Base

class RouteCache(Base):
    __tablename__ = "routes_cache"

    id         = Column(Integer, primary_key=True)
    pair_from  = Column(String(32), nullable=False)
    pair_to    = Column(String(32), nullable=False)
    provider   = Column(String(16), nullable=False)        # LiFi / Oku
    venue_data = Column(JSON, nullable=False)              # [{"name": ..., "status": ...}]
    fetched_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    # one live route record per (pair, provider)
    __table_args__ = (
        UniqueConstraint("pair_from", "pair_to", "provider", name="uq_routes_cache_pair_provider"),
        Index("ix_routes_cache_provider", "provider"),
    )

    def __repr__(self) -> str:
        return f"<RouteCache {self.provider} {self.pair_from}→{self.pair_to}>"
