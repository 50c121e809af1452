"""Модель уведомления внутри приложения"""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey, Text, Boolean
from sqlalchemy.sql import func
import enum
from database.connection import Base, BigIntId


class NotificationType(str, enum.Enum):
    """Тип уведомления"""
    OUTBID = "outbid"
    BID_STOPPED = "bid_stopped"
    AUCTION_WON = "auction_won"
    AUCTION_LOST = "auction_lost"
    AUCTION_ENDED = "auction_ended"  # Продавцу
    ADMIN_ACTION = "admin_action"


class Notification(Base):
    """Модель уведомления"""
    __tablename__ = "notifications"

    id = Column(BigIntId, primary_key=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    related_id = Column(BigInteger, nullable=True)  # ID лота или ставки
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
