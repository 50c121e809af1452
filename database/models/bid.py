"""Модель ставки"""
from sqlalchemy import Column, BigInteger, Numeric, DateTime, ForeignKey, String
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from database.connection import Base, BigIntId


class BidStatus(str, enum.Enum):
    """Статус ставки"""
    ACTIVE = "active"
    STOPPED = "stopped"  # Остановлена администратором, навсегда


class Bid(Base):
    """Модель ставки на аукционе"""
    __tablename__ = "bids"

    id = Column(BigIntId, primary_key=True)
    auction_id = Column(BigInteger, ForeignKey("auctions.id"), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)  # Сумма ставки
    status = Column(String(20), default=BidStatus.ACTIVE.value, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    stopped_at = Column(DateTime(timezone=True), nullable=True)
    stopped_by = Column(BigInteger, ForeignKey("users.id"), nullable=True)

    # Связи
    auction = relationship("Auction", back_populates="bids")
    user = relationship("User", foreign_keys=[user_id])

    @property
    def is_active(self) -> bool:
        return self.status == BidStatus.ACTIVE.value
