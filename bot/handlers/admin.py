"""Обработчики для админов"""
from html import escape
from typing import Optional, Tuple
from aiogram import Router
from aiogram.types import Message
from aiogram.filters import Command, CommandObject
from database.gateway import Store
from services.auction import cancel_auction, end_auction, sweep_expired_auctions
from services.audit import get_admin_action_history
from services.auth import AuthContext
from services.moderation import bulk_stop_bids, stop_bid
from services.notifications import Notifier
from services.user import assign_admin_role, remove_admin_role
from bot.handlers.auction import reply_text

router = Router()


def _target_and_reason(command: CommandObject) -> Tuple[Optional[int], str]:
    """Разобрать аргументы вида '<id> [причина]'"""
    parts = (command.args or "").split(maxsplit=1)
    if not parts:
        return None, ""
    try:
        target_id = int(parts[0])
    except ValueError:
        return None, ""
    return target_id, parts[1] if len(parts) > 1 else ""


@router.message(Command("stop_bid"))
async def cmd_stop_bid(
    message: Message,
    command: CommandObject,
    store: Store,
    notifier: Notifier,
    auth: AuthContext
):
    """Остановить ставку"""
    bid_id, reason = _target_and_reason(command)
    if bid_id is None:
        await message.answer("Использование: /stop_bid &lt;id&gt; [причина]")
        return
    result = await stop_bid(store, notifier, auth, bid_id, reason)
    await message.answer(reply_text(result, f"✅ Ставка #{bid_id} остановлена"))


@router.message(Command("bulk_stop"))
async def cmd_bulk_stop(
    message: Message,
    command: CommandObject,
    store: Store,
    notifier: Notifier,
    auth: AuthContext
):
    """Остановить несколько ставок: /bulk_stop 1,2,3 [причина]"""
    parts = (command.args or "").split(maxsplit=1)
    if not parts:
        await message.answer("Использование: /bulk_stop &lt;id1,id2,...&gt; [причина]")
        return
    bid_ids = [int(item) for item in parts[0].split(",") if item.strip().isdigit()]
    reason = parts[1] if len(parts) > 1 else ""

    result = await bulk_stop_bids(store, notifier, auth, bid_ids, reason)
    if not result.ok:
        await message.answer(reply_text(result, ""))
        return
    lines = [f"#{bid_id}: {'✅' if ok else '❌'}" for bid_id, ok in result.value.items()]
    await message.answer(f"{escape(result.message)}\n" + "\n".join(lines))


@router.message(Command("end_auction"))
async def cmd_end_auction(
    message: Message,
    command: CommandObject,
    store: Store,
    notifier: Notifier,
    auth: AuthContext
):
    """Завершить аукцион"""
    auction_id, reason = _target_and_reason(command)
    if auction_id is None:
        await message.answer("Использование: /end_auction &lt;id&gt; [причина]")
        return
    result = await end_auction(store, notifier, auth, auction_id, reason)
    await message.answer(reply_text(result, f"✅ {escape(result.message or '')}"))


@router.message(Command("cancel_auction"))
async def cmd_cancel_auction(
    message: Message,
    command: CommandObject,
    store: Store,
    notifier: Notifier,
    auth: AuthContext
):
    """Отменить аукцион (причина обязательна)"""
    auction_id, reason = _target_and_reason(command)
    if auction_id is None:
        await message.answer("Использование: /cancel_auction &lt;id&gt; &lt;причина&gt;")
        return
    result = await cancel_auction(store, notifier, auth, auction_id, reason)
    await message.answer(reply_text(result, f"✅ Аукцион #{auction_id} отменен"))


@router.message(Command("make_admin", "remove_admin"))
async def cmd_change_role(
    message: Message,
    command: CommandObject,
    store: Store,
    notifier: Notifier,
    auth: AuthContext
):
    """Назначить или снять администратора"""
    user_id, _ = _target_and_reason(command)
    if user_id is None:
        await message.answer(f"Использование: /{command.command} &lt;user_id&gt;")
        return
    if command.command == "make_admin":
        result = await assign_admin_role(store, notifier, auth, user_id)
    else:
        result = await remove_admin_role(store, notifier, auth, user_id)
    await message.answer(reply_text(result, f"✅ {escape(result.message or '')}"))


@router.message(Command("sweep"))
async def cmd_sweep(message: Message, store: Store, notifier: Notifier, auth: AuthContext):
    """Завершить истекшие аукционы вручную"""
    if not auth.is_admin:
        await message.answer("❌ Admin privileges required")
        return
    ended_ids = await sweep_expired_auctions(store, notifier, auth)
    if not ended_ids:
        await message.answer("Истекших аукционов нет")
        return
    await message.answer(f"✅ Завершено аукционов: {len(ended_ids)} ({', '.join(map(str, ended_ids))})")


@router.message(Command("admin_log"))
async def cmd_admin_log(message: Message, command: CommandObject, store: Store, auth: AuthContext):
    """Последние действия администраторов"""
    if not auth.is_admin:
        await message.answer("❌ Admin privileges required")
        return
    limit = int(command.args) if (command.args or "").strip().isdigit() else 10
    actions = await get_admin_action_history(store, auth, limit=limit)
    if not actions:
        await message.answer("Журнал пуст")
        return
    lines = [
        f"{action.created_at:%Y-%m-%d %H:%M} #{action.admin_id} {action.action_type} "
        f"{action.target_id if action.target_id is not None else '-'} {escape(action.reason or '')}"
        for action in actions
    ]
    await message.answer("\n".join(lines))
