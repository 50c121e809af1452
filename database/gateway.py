"""Доступ к хранилищу: транзакции, часы и чтение строк с блокировкой"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from database.models.auction import Auction
from database.models.bid import Bid
from database.models.user import User


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Привести время из БД к aware UTC (SQLite возвращает naive)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Store:
    """Граница транзакций для сервисов ядра.

    Каждая изменяющая операция выполняется внутри ``transaction()``: все записи
    (ставка, пересчет кэша лота, журнал аудита) фиксируются вместе или
    откатываются вместе. Уведомления отправляются только после выхода из блока.
    """

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        if session_maker is None:
            from database.connection import async_session_maker
            session_maker = async_session_maker
        self.session_maker = session_maker
        self._clock = clock or utcnow

    def now(self) -> datetime:
        """Текущее время UTC"""
        return as_utc(self._clock())

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[AsyncSession]:
        """Сессия с открытой транзакцией: commit при выходе, rollback при исключении"""
        async with self.session_maker() as session:
            async with session.begin():
                yield session

    @asynccontextmanager
    async def reader(self) -> AsyncIterator[AsyncSession]:
        """Сессия только для чтения"""
        async with self.session_maker() as session:
            yield session


async def get_auction(
    session: AsyncSession,
    auction_id: int,
    for_update: bool = False
) -> Optional[Auction]:
    """Получить лот, при необходимости с блокировкой строки"""
    query = select(Auction).where(Auction.id == auction_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_bid(
    session: AsyncSession,
    bid_id: int,
    for_update: bool = False
) -> Optional[Bid]:
    """Получить ставку, при необходимости с блокировкой строки"""
    query = select(Bid).where(Bid.id == bid_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_user(
    session: AsyncSession,
    user_id: int,
    for_update: bool = False
) -> Optional[User]:
    """Получить пользователя"""
    query = select(User).where(User.id == user_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()
