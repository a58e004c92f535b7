from sqlalchemy import Column, Integer, String
from assets_availability.storage.base import Base

class Token(Base):
    __tablename__ = "tokens"
    symbol   = Column(String(32), primary_key=True)
    address  = Column(String(42), nullable=False)
    decimals = Column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<Token {self.symbol} {self.address} ({self.decimals})>"
