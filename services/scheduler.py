"""Планировщик задач для завершения аукционов"""
import asyncio
import logging
from config import settings
from database.gateway import Store
from services.auction import sweep_expired_auctions
from services.notifications import Notifier, cleanup_old_notifications

logger = logging.getLogger(__name__)

SECONDS_IN_DAY = 24 * 60 * 60


async def run_scheduled_jobs(store: Store, notifier: Notifier, cleanup: bool = False) -> list[int]:
    """Один проход планировщика"""
    ended_ids = await sweep_expired_auctions(store, notifier)
    if ended_ids:
        logger.info(f"Аукционы завершены по времени: {ended_ids}")
    if cleanup:
        await cleanup_old_notifications(store, settings.NOTIFICATION_RETENTION_DAYS)
    return ended_ids


async def scheduler_loop(store: Store, notifier: Notifier, interval: int = None):
    """Основной цикл планировщика"""
    interval = interval or settings.SWEEP_INTERVAL_SECONDS
    # Очистка старых уведомлений раз в сутки
    cleanup_every = max(1, SECONDS_IN_DAY // interval)
    ticks = 0

    while True:
        try:
            await run_scheduled_jobs(store, notifier, cleanup=ticks >= cleanup_every)
            if ticks >= cleanup_every:
                ticks = 0
            ticks += 1
        except Exception as e:
            logger.error(f"Ошибка в планировщике: {e}")

        await asyncio.sleep(interval)


def start_scheduler(store: Store, notifier: Notifier) -> asyncio.Task:
    """Запустить планировщик"""
    task = asyncio.create_task(scheduler_loop(store, notifier))
    logger.info("Планировщик аукционов запущен")
    return task


async def run_once() -> list[int]:
    """Один проход для запуска из cron: python -m services.scheduler"""
    store = Store()
    return await run_scheduled_jobs(store, Notifier(store), cleanup=True)


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    ended = asyncio.run(run_once())
    logger.info(f"Проход завершен, аукционов завершено: {len(ended)}")
