from sqlalchemy import Column, Integer, String, Numeric, TIMESTAMP, Index, func
from assets_availability.storage.base import Base
from assets_availability.config.settings import PRICES_TABLE

class Price(Base):
    __tablename__ = PRICES_TABLE

    id         = Column(Integer, primary_key=True)
    token      = Column(String(20), nullable=False)        # lower-case symbol
    price      = Column(Numeric(18, 10), nullable=False)
    timestamp  = Column(TIMESTAMP(timezone=True), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        Index(f"ix_{PRICES_TABLE}_token_timestamp", "token", "timestamp"),
    )
