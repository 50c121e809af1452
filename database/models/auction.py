"""Модель аукциона"""
from sqlalchemy import Column, BigInteger, Numeric, DateTime, ForeignKey, String, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from database.connection import Base, BigIntId


class AuctionStatus(str, enum.Enum):
    """Статус аукциона"""
    ACTIVE = "active"  # Активный
    ENDED = "ended"  # Завершен (админом или по времени)
    CANCELLED = "cancelled"  # Отменен


class Auction(Base):
    """Модель аукциона (лота)"""
    __tablename__ = "auctions"

    id = Column(BigIntId, primary_key=True)
    owner_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    starting_bid = Column(Numeric(12, 2), nullable=False)  # Стартовая цена
    current_bid = Column(Numeric(12, 2), nullable=False)  # Кэш: максимальная активная ставка
    highest_bidder_id = Column(BigInteger, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(String(20), default=AuctionStatus.ACTIVE.value, nullable=False, index=True)
    ends_at = Column(DateTime(timezone=True), nullable=False, index=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    ended_by = Column(BigInteger, ForeignKey("users.id"), nullable=True)  # NULL - завершен по времени
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Связи
    owner = relationship("User", foreign_keys=[owner_id])
    highest_bidder = relationship("User", foreign_keys=[highest_bidder_id])
    bids = relationship("Bid", back_populates="auction", order_by="Bid.created_at.desc()")

    @property
    def is_active(self) -> bool:
        return self.status == AuctionStatus.ACTIVE.value
