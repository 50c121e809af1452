"""Модель пользователя"""
from sqlalchemy import Column, BigInteger, String, DateTime
from sqlalchemy.sql import func
import enum
from database.connection import Base, BigIntId


class UserRole(str, enum.Enum):
    """Роль пользователя"""
    USER = "user"
    ADMIN = "admin"


class User(Base):
    """Модель пользователя"""
    __tablename__ = "users"

    id = Column(BigIntId, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, nullable=True, index=True)
    username = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    role = Column(String(20), default=UserRole.USER.value, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def display_name(self) -> str:
        """Имя для сообщений"""
        if self.username:
            return f"@{self.username}"
        return self.first_name or f"#{self.id}"
