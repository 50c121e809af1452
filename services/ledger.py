"""Учет ставок: текущий лидер лота и правила допустимости ставки"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from config import settings
from database.gateway import Store, as_utc, get_auction
from database.models.auction import Auction, AuctionStatus
from database.models.bid import Bid, BidStatus
from database.models.bidder_ban import BidderBan
from services.auth import AuthContext
from services.errors import ConcurrencyConflict, PreconditionError, Result, returns_result
from services.notifications import Notifier, dispatch
from services.schemas import format_money, parse_bid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BidPolicy:
    """Правило минимальной ставки.

    При наличии активных ставок минимум равен максимальной активной ставке
    плюс ``min_increment``. Без ставок минимум равен стартовой цене, если
    ``first_bid_may_equal_starting_bid``, иначе стартовой цене плюс шаг.
    """
    min_increment: Decimal = Decimal("0.01")
    first_bid_may_equal_starting_bid: bool = False

    @classmethod
    def from_settings(cls) -> "BidPolicy":
        return cls(
            min_increment=settings.MIN_BID_INCREMENT,
            first_bid_may_equal_starting_bid=settings.FIRST_BID_MAY_EQUAL_STARTING_BID
        )

    def minimum_bid(self, auction: Auction, highest: Optional[Bid]) -> Decimal:
        if highest is not None:
            return Decimal(highest.amount) + self.min_increment
        if self.first_bid_may_equal_starting_bid:
            return Decimal(auction.starting_bid)
        return Decimal(auction.starting_bid) + self.min_increment


async def compute_highest_active_bid(session: AsyncSession, auction_id: int) -> Optional[Bid]:
    """Максимальная активная ставка; при равенстве побеждает более ранняя"""
    result = await session.execute(
        select(Bid)
        .where(
            Bid.auction_id == auction_id,
            Bid.status == BidStatus.ACTIVE.value
        )
        .order_by(Bid.amount.desc(), Bid.created_at.asc(), Bid.id.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def is_bidder_banned(session: AsyncSession, auction_id: int, user_id: int) -> bool:
    result = await session.execute(
        select(BidderBan.id).where(
            BidderBan.auction_id == auction_id,
            BidderBan.user_id == user_id
        )
    )
    return result.first() is not None


async def recompute_auction_aggregate(session: AsyncSession, auction: Auction) -> Optional[Bid]:
    """Пересчитать кэш лота (current_bid, highest_bidder_id) по активным ставкам.

    Вызывается внутри той же транзакции, что и изменение ставки, последней
    записью. Без активных ставок лот возвращается к стартовой цене.
    """
    await session.flush()
    highest = await compute_highest_active_bid(session, auction.id)
    if highest is not None:
        auction.current_bid = highest.amount
        auction.highest_bidder_id = highest.user_id
    else:
        auction.current_bid = auction.starting_bid
        auction.highest_bidder_id = None
    await session.flush()
    return highest


async def _check_bid(
    session: AsyncSession,
    store: Store,
    auction: Optional[Auction],
    amount: Decimal,
    bidder_id: int,
    policy: BidPolicy
) -> Optional[Bid]:
    """Проверить ставку против состояния лота, вернуть текущего лидера"""
    if auction is None:
        raise PreconditionError("Auction not found")

    if auction.status != AuctionStatus.ACTIVE.value:
        status_message = "completed" if auction.status == AuctionStatus.ENDED.value else auction.status
        raise PreconditionError(f"Auction has been {status_message}")

    # Время вышло, даже если планировщик еще не перевел лот в ended
    if as_utc(auction.ends_at) <= store.now():
        raise PreconditionError("Auction has ended")

    if auction.owner_id == bidder_id:
        raise PreconditionError("You cannot bid on your own item")

    highest = await compute_highest_active_bid(session, auction.id)
    minimum = policy.minimum_bid(auction, highest)
    if amount < minimum:
        raise PreconditionError(f"Bid must be at least {format_money(minimum)}")

    if await is_bidder_banned(session, auction.id, bidder_id):
        raise PreconditionError("You cannot place new bids on this item due to previous bid restrictions")

    return highest


@returns_result("validate bid")
async def validate_bid(
    store: Store,
    auction_id: int,
    amount,
    bidder_id: int,
    policy: Optional[BidPolicy] = None
) -> Result:
    """Проверить ставку без изменений в БД"""
    data = parse_bid(auction_id, amount)
    async with store.reader() as session:
        auction = await get_auction(session, data.auction_id)
        await _check_bid(session, store, auction, data.amount, bidder_id, policy or BidPolicy.from_settings())
    return Result.success(message="Bid is valid")


@returns_result("place bid")
async def place_bid(
    store: Store,
    notifier: Notifier,
    auth: AuthContext,
    auction_id: int,
    amount,
    policy: Optional[BidPolicy] = None
) -> Result:
    """Сделать ставку.

    Предварительная проверка выполняется вне транзакции. Затем в транзакции
    строка лота блокируется и все условия проверяются заново: параллельная
    ставка, остановка ставки или завершение аукциона могли успеть
    зафиксироваться между проверкой и записью.
    """
    policy = policy or BidPolicy.from_settings()
    data = parse_bid(auction_id, amount)

    checked = await validate_bid(store, data.auction_id, data.amount, auth.user_id, policy)
    if not checked.ok:
        return checked

    async with store.transaction() as session:
        auction = await get_auction(session, data.auction_id, for_update=True)
        if (
            auction is None
            or auction.status != AuctionStatus.ACTIVE.value
            or as_utc(auction.ends_at) <= store.now()
        ):
            raise ConcurrencyConflict("Auction is no longer active")

        try:
            previous = await _check_bid(session, store, auction, data.amount, auth.user_id, policy)
        except PreconditionError as e:
            # Состояние изменилось после предварительной проверки
            raise ConcurrencyConflict(e.reason)
        previous_bidder_id = previous.user_id if previous else None

        bid = Bid(
            auction_id=auction.id,
            user_id=auth.user_id,
            amount=data.amount,
            status=BidStatus.ACTIVE.value,
            created_at=store.now()
        )
        session.add(bid)
        await recompute_auction_aggregate(session, auction)
        bid_id = bid.id
        auction_ref = auction.id

    logger.info(f"Ставка {bid_id}: {format_money(data.amount)} на лот {auction_ref} от пользователя {auth.user_id}")

    if previous_bidder_id is not None and previous_bidder_id != auth.user_id:
        await dispatch(notifier.notify_outbid, auction_ref, previous_bidder_id, data.amount)

    return Result.success(bid_id, message="Bid placed successfully")


async def get_bids_for_auction(
    store: Store,
    auction_id: int,
    include_stopped: bool = False
) -> List[Bid]:
    """Ставки по лоту, от большей к меньшей"""
    query = select(Bid).where(Bid.auction_id == auction_id)
    if not include_stopped:
        query = query.where(Bid.status == BidStatus.ACTIVE.value)
    query = query.order_by(Bid.amount.desc(), Bid.created_at.asc(), Bid.id.asc())
    async with store.reader() as session:
        result = await session.execute(query)
        return list(result.scalars().all())


class BidDisplayStatus(str, enum.Enum):
    """Состояние ставки с точки зрения участника"""
    WINNING = "winning"
    OUTBID = "outbid"
    WON = "won"
    LOST = "lost"
    STOPPED = "stopped"


@dataclass(frozen=True)
class UserBid:
    """Ставка пользователя вместе с состоянием лота"""
    bid_id: int
    auction_id: int
    auction_title: str
    amount: Decimal
    current_bid: Decimal
    status: BidDisplayStatus
    created_at: datetime
    ends_at: datetime
    stopped_at: Optional[datetime] = None


def bid_display_status(bid: Bid, auction: Auction, now: datetime) -> BidDisplayStatus:
    """Вывести состояние ставки из статуса ставки и кэша лота.

    Остановленная ставка всегда stopped. Отмененный лот победителя не имеет.
    Лот, у которого вышло время, считается завершенным, даже если планировщик
    его еще не обработал.
    """
    if bid.status == BidStatus.STOPPED.value:
        return BidDisplayStatus.STOPPED

    leads = auction.highest_bidder_id == bid.user_id
    if auction.status == AuctionStatus.CANCELLED.value:
        return BidDisplayStatus.LOST
    if auction.status == AuctionStatus.ENDED.value or as_utc(auction.ends_at) <= now:
        return BidDisplayStatus.WON if leads else BidDisplayStatus.LOST
    return BidDisplayStatus.WINNING if leads else BidDisplayStatus.OUTBID


async def get_user_bids(
    store: Store,
    user_id: int,
    status: Optional[BidDisplayStatus] = None,
    limit: int = 20,
    offset: int = 0
) -> List[UserBid]:
    """Ставки пользователя, новые первыми, с вычисленным состоянием"""
    status = BidDisplayStatus(status) if status is not None else None
    now = store.now()
    async with store.reader() as session:
        result = await session.execute(
            select(Bid, Auction)
            .join(Auction, Bid.auction_id == Auction.id)
            .where(Bid.user_id == user_id)
            .order_by(Bid.created_at.desc(), Bid.id.desc())
        )
        rows = result.all()

    bids = []
    for bid, auction in rows:
        display = bid_display_status(bid, auction, now)
        if status is not None and display != status:
            continue
        bids.append(UserBid(
            bid_id=bid.id,
            auction_id=auction.id,
            auction_title=auction.title,
            amount=bid.amount,
            current_bid=auction.current_bid,
            status=display,
            created_at=as_utc(bid.created_at),
            ends_at=as_utc(auction.ends_at),
            stopped_at=as_utc(bid.stopped_at)
        ))
    return bids[offset:offset + limit]
