"""Обработчики команды /start"""
from html import escape
from aiogram import Router
from aiogram.types import Message
from aiogram.filters import Command
from services.auth import AuthContext

router = Router()

USER_HELP = (
    "/sell <цена> <часы> <название> - выставить лот\n"
    "/auction <id> - состояние лота\n"
    "/bid <id> <сумма> - сделать ставку\n"
    "/my_bids [статус] - мои ставки\n"
    "/notifications - мои уведомления"
)

ADMIN_HELP = (
    "/stop_bid <id> [причина]\n"
    "/bulk_stop <id1,id2,...> [причина]\n"
    "/end_auction <id> [причина]\n"
    "/cancel_auction <id> <причина>\n"
    "/make_admin <user_id>, /remove_admin <user_id>\n"
    "/sweep - завершить истекшие аукционы\n"
    "/admin_log [N] - журнал действий"
)


@router.message(Command("start", "help"))
async def cmd_start(message: Message, auth: AuthContext):
    """Обработчик команды /start"""
    text = (
        "👋 Добро пожаловать в аукцион!\n\n"
        f"Ваш ID: <code>{auth.user_id}</code>\n\n"
        f"{escape(USER_HELP)}"
    )
    if auth.is_admin:
        text += f"\n\n👮 Команды администратора:\n{escape(ADMIN_HELP)}"
    await message.answer(text)
