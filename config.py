"""Конфигурация приложения"""
from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Настройки приложения"""

    # Telegram Bot
    BOT_TOKEN: str = ""

    # Database
    # Полный URL имеет приоритет над отдельными параметрами DB_*
    DATABASE_URL: str = ""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_NAME: str = ""
    DB_ECHO: bool = False

    # Admin
    # Telegram ID администраторов, которые получают роль admin при первом обращении
    ADMIN_USER_IDS: str = ""

    # Auction Settings
    # Базовая длительность аукциона (в часах). По умолчанию 2 часа.
    AUCTION_DURATION_HOURS: float = 2.0
    # Минимальный шаг ставки (наименьшая денежная единица)
    MIN_BID_INCREMENT: Decimal = Decimal("0.01")
    # Может ли первая ставка быть равна стартовой цене
    FIRST_BID_MAY_EQUAL_STARTING_BID: bool = False

    # Moderation
    MAX_BULK_STOP_BIDS: int = 50
    MAX_REASON_LENGTH: int = 500
    # Записывать отмену аукциона как end_auction с префиксом "CANCELLED:"
    LEGACY_CANCEL_ACTION_TYPE: bool = False

    # Scheduler
    SWEEP_INTERVAL_SECONDS: int = 60
    NOTIFICATION_RETENTION_DAYS: int = 30

    LOG_LEVEL: str = "INFO"

    @property
    def admin_ids_list(self) -> List[int]:
        """Список ID администраторов"""
        if not self.ADMIN_USER_IDS:
            return []
        return [int(uid.strip()) for uid in self.ADMIN_USER_IDS.split(",") if uid.strip()]

    @property
    def database_url(self) -> str:
        """URL подключения к базе данных"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
