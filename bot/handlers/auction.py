"""Обработчики для аукционов и ставок"""
import logging
import math
from datetime import timedelta
from html import escape
from aiogram import Router
from aiogram.types import Message
from aiogram.filters import Command, CommandObject
from database.gateway import Store, as_utc, get_auction
from services.auction import create_auction
from services.auth import AuthContext
from services.errors import Result
from services.ledger import BidDisplayStatus, get_user_bids, place_bid
from services.notifications import Notifier, get_user_notifications, mark_all_notifications_read
from services.schemas import format_money

logger = logging.getLogger(__name__)

router = Router()

# Год
MAX_AUCTION_HOURS = 24 * 365

SELL_USAGE = (
    "Использование: /sell &lt;цена&gt; &lt;часы&gt; &lt;название&gt;\n"
    f"Длительность: больше 0 и не более {MAX_AUCTION_HOURS} часов"
)

BID_STATUS_LABELS = {
    BidDisplayStatus.WINNING: "лидирует",
    BidDisplayStatus.OUTBID: "перебита",
    BidDisplayStatus.WON: "выиграна",
    BidDisplayStatus.LOST: "проиграна",
    BidDisplayStatus.STOPPED: "остановлена",
}


def reply_text(result: Result, success_text: str) -> str:
    """Текст ответа: причина отказа передается пользователю как есть"""
    if result.ok:
        return success_text
    return f"❌ {escape(result.reason)}"


@router.message(Command("sell"))
async def cmd_sell(message: Message, command: CommandObject, store: Store, auth: AuthContext):
    """Выставить лот: /sell <цена> <часы> <название>"""
    parts = (command.args or "").split(maxsplit=2)
    if len(parts) < 3:
        await message.answer(SELL_USAGE)
        return
    try:
        hours = float(parts[1])
    except ValueError:
        hours = None
    if hours is None or not math.isfinite(hours) or not 0 < hours <= MAX_AUCTION_HOURS:
        await message.answer(SELL_USAGE)
        return

    result = await create_auction(
        store,
        auth,
        title=parts[2],
        starting_bid=parts[0],
        ends_at=store.now() + timedelta(hours=hours)
    )
    await message.answer(reply_text(result, f"✅ Лот #{result.value} выставлен"))


@router.message(Command("auction"))
async def cmd_auction(message: Message, command: CommandObject, store: Store):
    """Состояние лота: /auction <id>"""
    try:
        auction_id = int((command.args or "").strip())
    except ValueError:
        await message.answer("Использование: /auction &lt;id&gt;")
        return

    async with store.reader() as session:
        auction = await get_auction(session, auction_id)
    if auction is None:
        await message.answer("❌ Auction not found")
        return

    leader = f"#{auction.highest_bidder_id}" if auction.highest_bidder_id else "нет"
    text = (
        f"<b>{escape(auction.title)}</b>\n"
        f"Статус: {auction.status}\n"
        f"Стартовая цена: {format_money(auction.starting_bid)}\n"
        f"Текущая ставка: {format_money(auction.current_bid)}\n"
        f"Лидер: {leader}\n"
        f"Окончание: {as_utc(auction.ends_at):%Y-%m-%d %H:%M} UTC"
    )
    await message.answer(text)


@router.message(Command("bid"))
async def cmd_bid(
    message: Message,
    command: CommandObject,
    store: Store,
    notifier: Notifier,
    auth: AuthContext
):
    """Сделать ставку: /bid <id> <сумма>"""
    parts = (command.args or "").split()
    if len(parts) != 2:
        await message.answer("Использование: /bid &lt;id&gt; &lt;сумма&gt;")
        return
    try:
        auction_id = int(parts[0])
    except ValueError:
        await message.answer("Использование: /bid &lt;id&gt; &lt;сумма&gt;")
        return
    amount = parts[1].replace(",", "").lstrip("$")

    result = await place_bid(store, notifier, auth, auction_id, amount)
    if not result.ok:
        await message.answer(reply_text(result, ""))
        return
    await message.answer(f"✅ Ставка {format_money(amount)} принята (#{result.value})")


@router.message(Command("my_bids"))
async def cmd_my_bids(message: Message, command: CommandObject, store: Store, auth: AuthContext):
    """Мои ставки: /my_bids [winning|outbid|won|lost|stopped]"""
    status_arg = (command.args or "").strip().lower()
    statuses = [status.value for status in BidDisplayStatus]
    if status_arg and status_arg not in statuses:
        await message.answer(f"Использование: /my_bids [{'|'.join(statuses)}]")
        return

    bids = await get_user_bids(store, auth.user_id, status=status_arg or None, limit=10)
    if not bids:
        await message.answer("Ставок нет")
        return

    lines = [
        f"#{bid.bid_id} {escape(bid.auction_title)}: {format_money(bid.amount)} "
        f"(текущая {format_money(bid.current_bid)}) - {BID_STATUS_LABELS[bid.status]}"
        for bid in bids
    ]
    await message.answer("\n".join(lines))


@router.message(Command("notifications"))
async def cmd_notifications(message: Message, store: Store, auth: AuthContext):
    """Непрочитанные уведомления"""
    notifications = await get_user_notifications(store, auth.user_id, unread_only=True, limit=10)
    if not notifications:
        await message.answer("Новых уведомлений нет")
        return

    lines = [f"• <b>{escape(n.title)}</b>: {escape(n.message)}" for n in notifications]
    await mark_all_notifications_read(store, auth.user_id)
    await message.answer("\n".join(lines))
