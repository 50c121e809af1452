"""Middleware для работы с базой данных и контекстом пользователя"""
from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
from config import settings
from database.gateway import Store
from services.auth import AuthContext
from services.notifications import Notifier
from services.user import get_or_create_user


class DatabaseMiddleware(BaseMiddleware):
    """Передает в обработчики store, notifier и контекст пользователя (auth)"""

    def __init__(self, store: Store, notifier: Notifier):
        self.store = store
        self.notifier = notifier

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        data["store"] = self.store
        data["notifier"] = self.notifier

        from_user = data.get("event_from_user")
        if from_user is not None:
            async with self.store.session_maker() as session:
                user = await get_or_create_user(
                    session,
                    from_user.id,
                    from_user.username,
                    from_user.first_name,
                    from_user.last_name,
                    bootstrap_admin=from_user.id in settings.admin_ids_list
                )
                data["auth"] = AuthContext.for_user(user)

        return await handler(event, data)
