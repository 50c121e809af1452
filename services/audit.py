"""Журнал действий администраторов и события безопасности"""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from database.gateway import Store
from database.models.admin_action import AdminAction, AdminActionType
from services.auth import AuthContext

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("security")


def log_admin_action(
    session: AsyncSession,
    admin_id: int,
    action_type: AdminActionType,
    target_id: Optional[int],
    reason: str = "",
    additional_data: Optional[Dict[str, Any]] = None,
    created_at=None
) -> AdminAction:
    """Добавить запись аудита в текущую транзакцию.

    Запись фиксируется вместе с изменением, которое она описывает: если
    транзакция откатится, записи тоже не будет.
    """
    action = AdminAction(
        admin_id=admin_id,
        action_type=action_type.value,
        target_id=target_id,
        reason=reason or None,
        additional_data=additional_data or None
    )
    if created_at is not None:
        action.created_at = created_at
    session.add(action)

    message = f"Действие администратора: {action_type.value} над {target_id} (admin #{admin_id})"
    if reason:
        message += f" - причина: {reason}"
    logger.info(message)
    return action


def log_failed_admin_action(
    actor_id: Optional[int],
    action_type: str,
    reason: str,
    context: Optional[Dict[str, Any]] = None
) -> None:
    """Записать неудачную попытку привилегированного действия"""
    security_logger.warning(
        f"failed_admin_action: {action_type} - {reason} "
        f"(actor={actor_id}, context={context or {}})"
    )


async def get_admin_action_history(
    store: Store,
    auth: AuthContext,
    limit: int = 50,
    offset: int = 0,
    action_type: Optional[str] = None,
    admin_id: Optional[int] = None
) -> List[AdminAction]:
    """История действий администраторов (только для админов)"""
    if not auth.is_admin:
        log_failed_admin_action(auth.user_id, "view_admin_actions", "Admin privileges required")
        return []

    query = select(AdminAction)
    if action_type:
        query = query.where(AdminAction.action_type == action_type)
    if admin_id:
        query = query.where(AdminAction.admin_id == admin_id)
    query = query.order_by(AdminAction.created_at.desc(), AdminAction.id.desc()).limit(limit).offset(offset)

    async with store.reader() as session:
        result = await session.execute(query)
        return list(result.scalars().all())
