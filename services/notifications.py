"""Сервис уведомлений пользователей и администраторов"""
import logging
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from aiogram import Bot
from sqlalchemy import select, update, delete, func
from database.gateway import Store, get_auction, get_bid, get_user
from database.models.bid import Bid, BidStatus
from database.models.notification import Notification, NotificationType
from services.schemas import format_money

logger = logging.getLogger(__name__)


class Notifier:
    """Уведомления о событиях аукциона.

    Каждое уведомление сохраняется в таблицу notifications (в отдельной
    транзакции, уже после фиксации бизнес-операции). Если передан бот,
    текст дополнительно отправляется пользователю в Telegram.
    """

    def __init__(self, store: Store, bot: Optional[Bot] = None):
        self.store = store
        self.bot = bot

    async def notify_outbid(self, auction_id: int, user_id: int, new_amount: Decimal) -> None:
        """Ставку пользователя перебили"""
        async with self.store.transaction() as session:
            auction = await get_auction(session, auction_id)
            user = await get_user(session, user_id)
            if not auction or not user:
                logger.warning(f"Нет данных для уведомления outbid: лот {auction_id}, пользователь {user_id}")
                return
            text = (
                f"Вашу ставку на «{auction.title}» перебили. "
                f"Текущая ставка: {format_money(new_amount)}."
            )
            self._add(session, user.id, NotificationType.OUTBID, "Вашу ставку перебили", text, auction.id)
            outgoing = [(user.telegram_id, text)]
        await self._send(outgoing)

    async def notify_bid_stopped(self, bid_id: int, reason: Optional[str] = None) -> None:
        """Ставка остановлена администратором"""
        async with self.store.transaction() as session:
            bid = await get_bid(session, bid_id)
            if not bid:
                logger.warning(f"Ставка {bid_id} не найдена для уведомления")
                return
            auction = await get_auction(session, bid.auction_id)
            user = await get_user(session, bid.user_id)
            text = (
                f"Ваша ставка {format_money(bid.amount)} на «{auction.title}» "
                "остановлена администратором. Новые ставки на этот лот недоступны."
            )
            if reason:
                text += f" Причина: {reason}"
            self._add(session, user.id, NotificationType.BID_STOPPED, "Ставка остановлена", text, auction.id)
            outgoing = [(user.telegram_id, text)]
        await self._send(outgoing)

    async def notify_auction_ended(self, auction_id: int, winner_id: Optional[int]) -> None:
        """Аукцион завершен: победителю, остальным участникам и продавцу"""
        outgoing: List[Tuple[Optional[int], str]] = []
        async with self.store.transaction() as session:
            auction = await get_auction(session, auction_id)
            if not auction:
                logger.warning(f"Лот {auction_id} не найден для уведомления о завершении")
                return

            # Все пользователи с активными ставками и их максимальная ставка
            result = await session.execute(
                select(Bid.user_id, func.max(Bid.amount))
                .where(
                    Bid.auction_id == auction_id,
                    Bid.status == BidStatus.ACTIVE.value
                )
                .group_by(Bid.user_id)
            )
            for bidder_id, highest in result.all():
                bidder = await get_user(session, bidder_id)
                if winner_id is not None and bidder_id == winner_id:
                    text = (
                        f"Поздравляем! Вы выиграли аукцион «{auction.title}» "
                        f"со ставкой {format_money(highest)}."
                    )
                    self._add(session, bidder_id, NotificationType.AUCTION_WON, "Вы выиграли аукцион", text, auction.id)
                else:
                    text = (
                        f"Аукцион «{auction.title}» завершен. "
                        f"Ваша ставка {format_money(highest)} не стала выигрышной."
                    )
                    self._add(session, bidder_id, NotificationType.AUCTION_LOST, "Аукцион завершен", text, auction.id)
                outgoing.append((bidder.telegram_id, text))

            seller = await get_user(session, auction.owner_id)
            if winner_id is not None:
                winner = await get_user(session, winner_id)
                text = f"Ваш аукцион «{auction.title}» завершен. Победитель: {winner.display_name}"
            else:
                text = f"Ваш аукцион «{auction.title}» завершен без действительных ставок."
            self._add(session, seller.id, NotificationType.AUCTION_ENDED, "Ваш аукцион завершен", text, auction.id)
            outgoing.append((seller.telegram_id, text))
        await self._send(outgoing)

    async def notify_admin_action_completed(self, admin_id: int, summary: str) -> None:
        """Подтверждение администратору"""
        async with self.store.transaction() as session:
            admin = await get_user(session, admin_id)
            if not admin:
                return
            self._add(session, admin.id, NotificationType.ADMIN_ACTION, "Действие выполнено", summary, None)
            outgoing = [(admin.telegram_id, f"✅ {summary}")]
        await self._send(outgoing)

    def _add(self, session, user_id, notification_type, title, message, related_id) -> None:
        session.add(Notification(
            user_id=user_id,
            type=notification_type.value,
            title=title,
            message=message,
            related_id=related_id,
            created_at=self.store.now()
        ))

    async def _send(self, outgoing: List[Tuple[Optional[int], str]]) -> None:
        if not self.bot:
            return
        for chat_id, text in outgoing:
            if not chat_id:
                continue
            try:
                await self.bot.send_message(chat_id, text, parse_mode=None)
            except Exception as e:
                logger.error(f"Ошибка отправки уведомления в Telegram {chat_id}: {e}")


async def dispatch(callback, *args) -> bool:
    """Отправить уведомление после фиксации транзакции.

    Ошибка уведомления только логируется: операция, которая его вызвала,
    уже зафиксирована и считается успешной.
    """
    try:
        await callback(*args)
        return True
    except Exception as e:
        logger.error(f"Не удалось отправить уведомление {getattr(callback, '__name__', callback)}: {e!r}")
        return False


async def get_user_notifications(
    store: Store,
    user_id: int,
    unread_only: bool = False,
    limit: int = 50
) -> List[Notification]:
    """Уведомления пользователя, новые первыми"""
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)
    async with store.reader() as session:
        result = await session.execute(query)
        return list(result.scalars().all())


async def get_unread_count(store: Store, user_id: int) -> int:
    async with store.reader() as session:
        result = await session.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False)
            )
        )
        return result.scalar() or 0


async def mark_notification_read(store: Store, notification_id: int, user_id: int) -> bool:
    """Отметить уведомление прочитанным (только свое)"""
    async with store.transaction() as session:
        result = await session.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.user_id == user_id
            )
            .values(is_read=True, read_at=store.now())
        )
        return result.rowcount > 0


async def mark_all_notifications_read(store: Store, user_id: int) -> int:
    async with store.transaction() as session:
        result = await session.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False)
            )
            .values(is_read=True, read_at=store.now())
        )
        return result.rowcount


async def cleanup_old_notifications(store: Store, retention_days: int = 30) -> int:
    """Удалить уведомления старше retention_days"""
    cutoff = store.now() - timedelta(days=retention_days)
    async with store.transaction() as session:
        result = await session.execute(
            delete(Notification).where(Notification.created_at < cutoff)
        )
        removed = result.rowcount
    if removed:
        logger.info(f"Удалено старых уведомлений: {removed}")
    return removed
