"""Контекст аутентифицированного пользователя"""
from dataclasses import dataclass
from database.models.user import User, UserRole


@dataclass(frozen=True)
class AuthContext:
    """Кто выполняет операцию.

    Передается в каждый вызов ядра явно; ядро доверяет ему как уже
    проверенному внешним слоем (бот, веб-сессия).
    """
    user_id: int
    role: str = UserRole.USER.value

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @classmethod
    def for_user(cls, user: User) -> "AuthContext":
        return cls(user_id=user.id, role=user.role)
