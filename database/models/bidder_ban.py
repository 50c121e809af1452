"""Модель запрета на ставки"""
from sqlalchemy import Column, BigInteger, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from database.connection import Base, BigIntId


class BidderBan(Base):
    """Пользователь, которому запрещено делать ставки на лот.

    Запись появляется, когда администратор останавливает ставку пользователя,
    и больше не удаляется.
    """
    __tablename__ = "bidder_bans"
    __table_args__ = (
        UniqueConstraint("auction_id", "user_id", name="uq_bidder_bans_auction_user"),
    )

    id = Column(BigIntId, primary_key=True)
    auction_id = Column(BigInteger, ForeignKey("auctions.id"), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    bid_id = Column(BigInteger, ForeignKey("bids.id"), nullable=False)  # Остановленная ставка
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
