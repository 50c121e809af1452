"""Главный файл бота"""
import asyncio
import logging
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from config import settings
from database.connection import create_tables
from database.gateway import Store
from bot.handlers import start, auction, admin
from bot.middlewares.database import DatabaseMiddleware
from services.notifications import Notifier
from services.scheduler import start_scheduler

# Настройка логирования
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Запуск бота"""
    # Создаем бот и диспетчер
    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML)
    )
    dp = Dispatcher()

    await create_tables()

    store = Store()
    notifier = Notifier(store, bot)

    # Регистрируем middleware
    dp.message.middleware(DatabaseMiddleware(store, notifier))

    # Регистрируем роутеры
    dp.include_router(start.router)
    dp.include_router(auction.router)
    dp.include_router(admin.router)  # Админ команды

    # Запускаем планировщик для завершения аукционов
    start_scheduler(store, notifier)

    logger.info("Бот запущен")

    # Запускаем polling
    await dp.start_polling(bot)


if __name__ == "__main__":
    asyncio.run(main())
