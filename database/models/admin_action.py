"""Модель журнала действий администраторов"""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey, Text, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from database.connection import Base, BigIntId


class AdminActionType(str, enum.Enum):
    """Тип действия администратора"""
    STOP_BID = "stop_bid"
    END_AUCTION = "end_auction"
    CANCEL_AUCTION = "cancel_auction"
    BULK_STOP_BIDS = "bulk_stop_bids"
    ASSIGN_ADMIN = "assign_admin"
    REMOVE_ADMIN = "remove_admin"
    AUTO_END_EXPIRED = "auto_end_expired"


class AdminAction(Base):
    """Запись аудита. Только добавляется, никогда не изменяется"""
    __tablename__ = "admin_actions"

    id = Column(BigIntId, primary_key=True)
    admin_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    action_type = Column(String(50), nullable=False, index=True)
    target_id = Column(BigInteger, nullable=True, index=True)  # NULL для сводных записей
    reason = Column(Text, nullable=True)
    additional_data = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Связи
    admin = relationship("User", foreign_keys=[admin_id])
