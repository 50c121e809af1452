"""Сервис для работы с аукционами: создание, завершение, отмена, истечение срока"""
import logging
from datetime import timedelta
from typing import List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from config import settings
from database.gateway import Store, as_utc, get_auction, get_user
from database.models.admin_action import AdminActionType
from database.models.auction import Auction, AuctionStatus
from database.models.bid import Bid
from services.audit import log_admin_action, log_failed_admin_action
from services.auth import AuthContext
from services.errors import ConcurrencyConflict, PreconditionError, Result, ValidationError, returns_result
from services.ledger import recompute_auction_aggregate
from services.moderation import validate_permissions
from services.notifications import Notifier, dispatch
from services.schemas import format_money, parse_auction, parse_reason

logger = logging.getLogger(__name__)


@returns_result("create auction")
async def create_auction(
    store: Store,
    auth: AuthContext,
    title: str,
    starting_bid,
    ends_at=None,
    description: Optional[str] = None
) -> Result:
    """Выставить лот. Владелец - текущий пользователь"""
    data = parse_auction(title=title, starting_bid=starting_bid, ends_at=ends_at, description=description)
    now = store.now()
    ends_at = as_utc(data.ends_at) if data.ends_at else now + timedelta(hours=settings.AUCTION_DURATION_HOURS)
    if ends_at <= now:
        raise ValidationError("End time must be in the future")

    async with store.transaction() as session:
        auction = Auction(
            owner_id=auth.user_id,
            title=data.title,
            description=data.description,
            starting_bid=data.starting_bid,
            current_bid=data.starting_bid,
            highest_bidder_id=None,
            status=AuctionStatus.ACTIVE.value,
            ends_at=ends_at,
            created_at=now
        )
        session.add(auction)
        await session.flush()
        auction_id = auction.id

    logger.info(f"Лот {auction_id} выставлен пользователем {auth.user_id}, окончание {ends_at}")
    return Result.success(auction_id, message="Auction created successfully")


async def _close_auction(
    session: AsyncSession,
    store: Store,
    auction_id: int,
    status: AuctionStatus,
    ended_by: Optional[int]
) -> Tuple[Auction, Optional[Bid]]:
    """Перевести лот из active в конечный статус под блокировкой строки.

    Проверка status == active внутри транзакции - точка сериализации для
    параллельных завершений (админ, планировщик).
    """
    auction = await get_auction(session, auction_id, for_update=True)
    if auction is None:
        raise PreconditionError("Auction not found")
    if auction.status != AuctionStatus.ACTIVE.value:
        raise ConcurrencyConflict("Auction already ended")

    winning_bid = None
    if status == AuctionStatus.ENDED:
        # Снимок лидера по активным ставкам на момент завершения
        winning_bid = await recompute_auction_aggregate(session, auction)

    auction.status = status.value
    auction.ended_at = store.now()
    auction.ended_by = ended_by
    await session.flush()
    return auction, winning_bid


async def _winner_name(session: AsyncSession, winning_bid: Optional[Bid]) -> Optional[str]:
    if winning_bid is None:
        return None
    winner = await get_user(session, winning_bid.user_id)
    return winner.display_name if winner else f"#{winning_bid.user_id}"


def _winner_text(winner_name: Optional[str]) -> str:
    return f"Winner: {winner_name}" if winner_name is not None else "No valid bids found."


@returns_result("end auction")
async def end_auction(
    store: Store,
    notifier: Notifier,
    auth: AuthContext,
    auction_id: int,
    reason: Optional[str] = None
) -> Result:
    """Завершить аукцион по решению администратора и определить победителя"""
    reason = parse_reason(reason)
    permitted = await validate_permissions(store, auth, AdminActionType.END_AUCTION, auction_id)
    if not permitted.ok:
        return permitted

    async with store.transaction() as session:
        auction, winning_bid = await _close_auction(
            session, store, auction_id, AuctionStatus.ENDED, ended_by=auth.user_id
        )
        winner_id = winning_bid.user_id if winning_bid else None
        winner_name = await _winner_name(session, winning_bid)
        log_admin_action(
            session,
            auth.user_id,
            AdminActionType.END_AUCTION,
            auction.id,
            reason,
            {
                "winner_id": winner_id,
                "winning_bid": str(winning_bid.amount) if winning_bid else None
            },
            created_at=auction.ended_at
        )

    logger.info(f"Аукцион {auction_id} завершен админом {auth.user_id}. Победитель: {winner_id}")

    await dispatch(notifier.notify_auction_ended, auction_id, winner_id)
    details = (
        f"Ended auction #{auction_id} with winner {winner_name}"
        if winner_id is not None
        else f"Ended auction #{auction_id} with no valid bids"
    )
    await dispatch(notifier.notify_admin_action_completed, auth.user_id, details)

    return Result.success(winner_id, message=f"Auction ended successfully. {_winner_text(winner_name)}")


@returns_result("cancel auction")
async def cancel_auction(
    store: Store,
    notifier: Notifier,
    auth: AuthContext,
    auction_id: int,
    reason: Optional[str] = None
) -> Result:
    """Отменить аукцион. Причина обязательна, победитель не определяется"""
    reason = parse_reason(reason)
    if not reason:
        raise ValidationError("Reason is required for cancelling auctions")

    permitted = await validate_permissions(store, auth, AdminActionType.CANCEL_AUCTION, auction_id)
    if not permitted.ok:
        return permitted

    action_type = (
        AdminActionType.END_AUCTION
        if settings.LEGACY_CANCEL_ACTION_TYPE
        else AdminActionType.CANCEL_AUCTION
    )
    async with store.transaction() as session:
        auction, _ = await _close_auction(
            session, store, auction_id, AuctionStatus.CANCELLED, ended_by=auth.user_id
        )
        log_admin_action(
            session,
            auth.user_id,
            action_type,
            auction.id,
            f"CANCELLED: {reason}",
            created_at=auction.ended_at
        )

    logger.info(f"Аукцион {auction_id} отменен админом {auth.user_id}: {reason}")

    await dispatch(
        notifier.notify_admin_action_completed,
        auth.user_id,
        f"Cancelled auction #{auction_id}"
    )
    return Result.success(message="Auction cancelled successfully")


@returns_result("end auction")
async def end_auction_naturally(store: Store, notifier: Notifier, auction_id: int) -> Result:
    """Завершить аукцион по истечении времени (без администратора и без аудита)"""
    async with store.transaction() as session:
        _, winning_bid = await _close_auction(
            session, store, auction_id, AuctionStatus.ENDED, ended_by=None
        )
        winner_id = winning_bid.user_id if winning_bid else None
        winner_name = await _winner_name(session, winning_bid)

    logger.info(f"Аукцион {auction_id} завершен по времени. Победитель: {winner_id}")

    await dispatch(notifier.notify_auction_ended, auction_id, winner_id)
    return Result.success(winner_id, message=f"Auction ended naturally. {_winner_text(winner_name)}")


async def sweep_expired_auctions(
    store: Store,
    notifier: Notifier,
    auth: Optional[AuthContext] = None
) -> List[int]:
    """Завершить все активные аукционы с истекшим временем.

    Каждый лот завершается в своей транзакции; ошибка по одному лоту не
    мешает остальным. Повторный запуск ничего не находит.

    Если передан ``auth``, запуск ручной: права проверяются до поиска лотов,
    а после всех завершений пишется одна сводная запись аудита. Сводка
    пишется отдельной транзакцией после фиксации лотов; если она не
    записалась, сбой уходит в журнал безопасности.
    """
    if auth is not None and not auth.is_admin:
        log_failed_admin_action(auth.user_id, AdminActionType.AUTO_END_EXPIRED.value, "Admin privileges required")
        return []

    try:
        async with store.reader() as session:
            result = await session.execute(
                select(Auction.id)
                .where(
                    Auction.status == AuctionStatus.ACTIVE.value,
                    Auction.ends_at <= store.now()
                )
                .order_by(Auction.ends_at.asc(), Auction.id.asc())
            )
            expired_ids = list(result.scalars().all())
    except SQLAlchemyError:
        logger.exception("Ошибка при поиске истекших аукционов")
        return []

    ended_ids = []
    for auction_id in expired_ids:
        outcome = await end_auction_naturally(store, notifier, auction_id)
        if outcome.ok:
            ended_ids.append(auction_id)
        else:
            logger.info(f"Аукцион {auction_id} пропущен при завершении по времени: {outcome.reason}")

    if auth is not None and ended_ids:
        summary = {"ended_ids": ended_ids, "count": len(ended_ids)}
        try:
            async with store.transaction() as session:
                log_admin_action(
                    session,
                    auth.user_id,
                    AdminActionType.AUTO_END_EXPIRED,
                    None,
                    "",
                    summary,
                    created_at=store.now()
                )
        except SQLAlchemyError:
            logger.exception("Не удалось записать сводку auto_end_expired")
            log_failed_admin_action(
                auth.user_id,
                AdminActionType.AUTO_END_EXPIRED.value,
                "Audit summary not written",
                summary
            )

    if ended_ids:
        logger.info(f"Завершено по времени аукционов: {len(ended_ids)}")
    return ended_ids


async def get_active_auctions(store: Store) -> List[Auction]:
    """Получить активные аукционы"""
    async with store.reader() as session:
        result = await session.execute(
            select(Auction)
            .where(Auction.status == AuctionStatus.ACTIVE.value)
            .order_by(Auction.ends_at.asc())
        )
        return list(result.scalars().all())


async def get_auction_winner(store: Store, auction_id: int) -> Optional[dict]:
    """Победитель завершенного аукциона или None"""
    async with store.reader() as session:
        auction = await get_auction(session, auction_id)
    if auction is None or auction.status != AuctionStatus.ENDED.value:
        return None
    if auction.highest_bidder_id is None:
        return None
    return {
        "user_id": auction.highest_bidder_id,
        "winning_bid": auction.current_bid,
        "winning_bid_display": format_money(auction.current_bid),
        "auction_ended_at": as_utc(auction.ended_at),
        "ended_by_admin": auction.ended_by is not None,
    }
