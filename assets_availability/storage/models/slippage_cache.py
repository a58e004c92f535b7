from sqlalchemy import Column, Integer, String, Float, TIMESTAMP, Index, func
from assets_availability.storage.base import Base

class SlippageCache(Base):
    __tablename__ = "slippage_cache"

    id        = Column(Integer, primary_key=True)
    pair_from = Column(String(32), nullable=False)
    pair_to   = Column(String(32), nullable=False)
    provider  = Column(String(16), nullable=False)

    # percentage slippage per USD notional, NULL = quoted but unavailable
    amount_1000   = Column(Float, nullable=True)
    amount_10000  = Column(Float, nullable=True)
    amount_50000  = Column(Float, nullable=True)
    amount_100000 = Column(Float, nullable=True)

    calculation_timestamp = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at            = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_slippage_cache_provider_calc", "provider", "calculation_timestamp"),
    )
