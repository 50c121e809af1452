"""Общие фикстуры: SQLite в файле на каждый тест, управляемые часы"""
import os

# До импорта config: модульный движок не должен требовать PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from database.connection import build_engine, build_session_maker, create_tables
from database.gateway import Store, get_auction
from database.models import AdminAction, Notification, User, UserRole
from services.auction import create_auction
from services.auth import AuthContext
from services.notifications import Notifier


class FakeClock:
    """Часы, которые двигает тест"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier(Notifier):
    """Notifier, запоминающий вызовы"""

    def __init__(self, store: Store):
        super().__init__(store)
        self.calls = []

    async def notify_outbid(self, auction_id, user_id, new_amount):
        self.calls.append(("outbid", auction_id, user_id, new_amount))
        await super().notify_outbid(auction_id, user_id, new_amount)

    async def notify_bid_stopped(self, bid_id, reason=None):
        self.calls.append(("bid_stopped", bid_id, reason))
        await super().notify_bid_stopped(bid_id, reason)

    async def notify_auction_ended(self, auction_id, winner_id):
        self.calls.append(("auction_ended", auction_id, winner_id))
        await super().notify_auction_ended(auction_id, winner_id)

    async def notify_admin_action_completed(self, admin_id, summary):
        self.calls.append(("admin_action", admin_id, summary))
        await super().notify_admin_action_completed(admin_id, summary)

    def of_kind(self, kind):
        return [call for call in self.calls if call[0] == kind]


class FailingNotifier(Notifier):
    """Notifier, у которого отказывает канал доставки"""

    async def notify_outbid(self, *args):
        raise RuntimeError("mail server down")

    async def notify_bid_stopped(self, *args):
        raise RuntimeError("mail server down")

    async def notify_auction_ended(self, *args):
        raise RuntimeError("mail server down")

    async def notify_admin_action_completed(self, *args):
        raise RuntimeError("mail server down")


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'auction.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine, clock):
    return Store(build_session_maker(engine), clock=clock)


@pytest.fixture
def notifier(store):
    return RecordingNotifier(store)


@pytest.fixture
def failing_notifier(store):
    return FailingNotifier(store)


@pytest.fixture
def make_user(store):
    async def _make(username: str, role: str = UserRole.USER.value, telegram_id: int = None) -> AuthContext:
        async with store.transaction() as session:
            user = User(username=username, role=role, telegram_id=telegram_id)
            session.add(user)
            await session.flush()
            return AuthContext.for_user(user)
    return _make


@pytest.fixture
async def admin(make_user):
    return await make_user("admin", UserRole.ADMIN.value)


@pytest.fixture
async def seller(make_user):
    return await make_user("seller")


@pytest.fixture
async def alice(make_user):
    return await make_user("alice")


@pytest.fixture
async def bob(make_user):
    return await make_user("bob")


@pytest.fixture
def make_auction(store, seller):
    async def _make(starting_bid="10.00", hours: float = 2, owner: AuthContext = None) -> int:
        result = await create_auction(
            store,
            owner or seller,
            title="Vintage bicycle",
            starting_bid=starting_bid,
            ends_at=store.now() + timedelta(hours=hours)
        )
        assert result.ok, result.reason
        return result.value
    return _make


@pytest.fixture
def load_auction(store):
    async def _load(auction_id: int):
        async with store.reader() as session:
            return await get_auction(session, auction_id)
    return _load


@pytest.fixture
def admin_actions(store):
    async def _load(action_type: str = None):
        query = select(AdminAction).order_by(AdminAction.id)
        if action_type:
            query = query.where(AdminAction.action_type == action_type)
        async with store.reader() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
    return _load


@pytest.fixture
def notifications_for(store):
    async def _load(user_id: int):
        async with store.reader() as session:
            result = await session.execute(
                select(Notification).where(Notification.user_id == user_id).order_by(Notification.id)
            )
            return list(result.scalars().all())
    return _load


