"""Сервис модерации: проверка прав и остановка ставок"""
import logging
from typing import Any, Dict, Iterable, Optional
from sqlalchemy.exc import SQLAlchemyError
from database.gateway import Store, get_auction, get_bid
from database.models.admin_action import AdminActionType
from database.models.auction import AuctionStatus
from database.models.bid import BidStatus
from database.models.bidder_ban import BidderBan
from services.audit import log_admin_action, log_failed_admin_action
from services.auth import AuthContext
from services.errors import ConcurrencyConflict, ErrorKind, PreconditionError, Result, returns_result
from services.ledger import is_bidder_banned, recompute_auction_aggregate
from services.notifications import Notifier, dispatch
from services.schemas import format_money, parse_bulk_stop, parse_reason

logger = logging.getLogger(__name__)

AUCTION_ACTIONS = (AdminActionType.END_AUCTION, AdminActionType.CANCEL_AUCTION)


def _deny(auth: AuthContext, action_type: AdminActionType, reason: str, **context) -> Result:
    log_failed_admin_action(auth.user_id, action_type.value, reason, context)
    return Result.rejected(reason)


@returns_result("validate permissions")
async def validate_permissions(
    store: Store,
    auth: AuthContext,
    action_type: AdminActionType,
    target_id: int
) -> Result:
    """Проверить, может ли пользователь выполнить действие над объектом.

    Отказы (кроме неверного формата ID) пишутся в журнал безопасности.
    """
    if not auth.is_admin:
        return _deny(auth, action_type, "Admin privileges required", target_id=target_id)

    if not isinstance(target_id, int) or isinstance(target_id, bool) or target_id < 1:
        return Result.rejected("Invalid target ID", ErrorKind.VALIDATION)

    if action_type == AdminActionType.STOP_BID:
        async with store.reader() as session:
            bid = await get_bid(session, target_id)
        if bid is None:
            return _deny(auth, action_type, "Bid not found", bid_id=target_id)
        if bid.status != BidStatus.ACTIVE.value:
            return _deny(auth, action_type, "Bid is not active", bid_id=target_id, status=bid.status)

    elif action_type in AUCTION_ACTIONS:
        async with store.reader() as session:
            auction = await get_auction(session, target_id)
        if auction is None:
            return _deny(auth, action_type, "Auction not found", auction_id=target_id)
        if auction.status != AuctionStatus.ACTIVE.value:
            return _deny(auth, action_type, "Auction already ended", auction_id=target_id, status=auction.status)

    return Result.success()


@returns_result("stop bid")
async def stop_bid(
    store: Store,
    notifier: Notifier,
    auth: AuthContext,
    bid_id: int,
    reason: Optional[str] = None,
    additional_data: Optional[Dict[str, Any]] = None
) -> Result:
    """Остановить ставку.

    Ставка исключается из расчета лидера навсегда, а ее автор больше не может
    ставить на этот лот. Кэш лота пересчитывается в той же транзакции.
    """
    reason = parse_reason(reason)
    permitted = await validate_permissions(store, auth, AdminActionType.STOP_BID, bid_id)
    if not permitted.ok:
        return permitted

    async with store.transaction() as session:
        bid = await get_bid(session, bid_id)
        if bid is None:
            raise PreconditionError("Bid not found")
        # Порядок блокировок: сначала лот, затем ставка
        auction = await get_auction(session, bid.auction_id, for_update=True)
        bid = await get_bid(session, bid_id, for_update=True)
        if bid.status != BidStatus.ACTIVE.value:
            raise ConcurrencyConflict("Bid already stopped")

        now = store.now()
        bid.status = BidStatus.STOPPED.value
        bid.stopped_at = now
        bid.stopped_by = auth.user_id

        if not await is_bidder_banned(session, auction.id, bid.user_id):
            session.add(BidderBan(auction_id=auction.id, user_id=bid.user_id, bid_id=bid.id, created_at=now))

        log_admin_action(
            session,
            auth.user_id,
            AdminActionType.STOP_BID,
            bid.id,
            reason,
            {
                "auction_id": auction.id,
                "bidder_id": bid.user_id,
                "amount": str(bid.amount),
                **(additional_data or {})
            },
            created_at=now
        )
        await recompute_auction_aggregate(session, auction)
        auction_id = auction.id
        amount = bid.amount

    logger.info(f"Ставка {bid_id} ({format_money(amount)}) на лот {auction_id} остановлена админом {auth.user_id}")

    await dispatch(notifier.notify_bid_stopped, bid_id, reason)
    await dispatch(
        notifier.notify_admin_action_completed,
        auth.user_id,
        f"Stopped bid #{bid_id} for item #{auction_id}"
    )
    return Result.success(message="Bid stopped successfully")


@returns_result("stop bids")
async def bulk_stop_bids(
    store: Store,
    notifier: Notifier,
    auth: AuthContext,
    bid_ids: Iterable[int],
    reason: Optional[str] = None
) -> Result:
    """Остановить несколько ставок (до MAX_BULK_STOP_BIDS).

    Каждая ставка обрабатывается независимо, как отдельный ``stop_bid``.
    В конце пишется одна сводная запись bulk_stop_bids.
    """
    data = parse_bulk_stop(list(bid_ids), reason)
    if not auth.is_admin:
        return _deny(auth, AdminActionType.BULK_STOP_BIDS, "Admin privileges required", bid_ids=data.bid_ids)

    total = len(data.bid_ids)
    results: Dict[int, bool] = {}
    for bid_id in data.bid_ids:
        outcome = await stop_bid(
            store,
            notifier,
            auth,
            bid_id,
            data.reason,
            additional_data={"bulk_action": True, "total_bids": total}
        )
        results[bid_id] = outcome.ok
        if not outcome.ok:
            logger.info(f"Ставка {bid_id} не остановлена: {outcome.reason}")

    successful = sum(1 for ok in results.values() if ok)
    try:
        async with store.transaction() as session:
            log_admin_action(
                session,
                auth.user_id,
                AdminActionType.BULK_STOP_BIDS,
                None,
                data.reason,
                {
                    "bid_ids": data.bid_ids,
                    "total_bids": total,
                    "successful_bids": successful
                },
                created_at=store.now()
            )
    except SQLAlchemyError:
        # Отдельные остановки уже зафиксированы, сводка не должна их отменять
        logger.exception(f"Не удалось записать сводку bulk_stop_bids для {data.bid_ids}")

    return Result.success(results, message=f"Stopped {successful} of {total} bids")
