"""Сервис для работы с пользователями и ролями"""
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from database.gateway import Store, get_user
from database.models.admin_action import AdminActionType
from database.models.user import User, UserRole
from services.audit import log_admin_action, log_failed_admin_action
from services.auth import AuthContext
from services.errors import ConcurrencyConflict, ErrorKind, PreconditionError, Result, returns_result
from services.notifications import Notifier, dispatch

logger = logging.getLogger(__name__)


async def get_or_create_user(
    session: AsyncSession,
    telegram_id: int,
    username: str = None,
    first_name: str = None,
    last_name: str = None,
    bootstrap_admin: bool = False
) -> User:
    """Получить или создать пользователя.

    ``bootstrap_admin`` - пользователь указан в ADMIN_USER_IDS и получает роль
    admin только при создании записи. Роль существующего пользователя здесь не
    меняется: ее меняют только assign_admin_role и remove_admin_role.
    """
    result = await session.execute(
        select(User).where(User.telegram_id == telegram_id)
    )
    user = result.scalar_one_or_none()

    if not user:
        user = User(
            telegram_id=telegram_id,
            username=username,
            first_name=first_name,
            last_name=last_name,
            role=UserRole.ADMIN.value if bootstrap_admin else UserRole.USER.value
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        if bootstrap_admin:
            logger.info(f"Пользователь {telegram_id} зарегистрирован как администратор")
    else:
        # Обновляем данные, если изменились
        if username != user.username or first_name != user.first_name:
            user.username = username
            user.first_name = first_name
            user.last_name = last_name
            await session.commit()

    return user


async def _change_role(
    store: Store,
    notifier: Notifier,
    auth: AuthContext,
    user_id: int,
    role: UserRole,
    action_type: AdminActionType
) -> Result:
    if not auth.is_admin:
        log_failed_admin_action(auth.user_id, action_type.value, "Admin privileges required", {"user_id": user_id})
        return Result.rejected("Admin privileges required")
    if not isinstance(user_id, int) or user_id < 1:
        return Result.rejected("Invalid target ID", ErrorKind.VALIDATION)
    if role == UserRole.USER and user_id == auth.user_id:
        log_failed_admin_action(auth.user_id, action_type.value, "Self-demotion attempt", {"user_id": user_id})
        return Result.rejected("You cannot remove your own admin role")

    async with store.transaction() as session:
        user = await get_user(session, user_id, for_update=True)
        if user is None:
            raise PreconditionError("User not found")
        if user.role == role.value:
            raise ConcurrencyConflict(
                "User is already an admin" if role == UserRole.ADMIN else "User is not an admin"
            )
        user.role = role.value
        log_admin_action(session, auth.user_id, action_type, user.id, created_at=store.now())

    await dispatch(
        notifier.notify_admin_action_completed,
        auth.user_id,
        f"Changed role of user #{user_id} to {role.value}"
    )
    return Result.success(message=f"Role changed to {role.value}")


@returns_result("assign admin role")
async def assign_admin_role(store: Store, notifier: Notifier, auth: AuthContext, user_id: int) -> Result:
    """Назначить пользователя администратором"""
    return await _change_role(store, notifier, auth, user_id, UserRole.ADMIN, AdminActionType.ASSIGN_ADMIN)


@returns_result("remove admin role")
async def remove_admin_role(store: Store, notifier: Notifier, auth: AuthContext, user_id: int) -> Result:
    """Снять роль администратора (свою снять нельзя)"""
    return await _change_role(store, notifier, auth, user_id, UserRole.USER, AdminActionType.REMOVE_ADMIN)
