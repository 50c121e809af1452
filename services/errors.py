"""Ошибки ядра и результат операций"""
import enum
import functools
import logging
from dataclasses import dataclass
from typing import Any, Optional
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    """Категория отказа"""
    VALIDATION = "validation"  # Неверный ввод, транзакция не открывалась
    PRECONDITION = "precondition"  # Нет объекта, не то состояние, нет прав
    CONFLICT = "conflict"  # Проиграна гонка внутри транзакции, можно повторить
    FAULT = "fault"  # Сбой хранилища, транзакция откачена


class AuctionError(Exception):
    """Базовая ошибка ядра аукциона"""
    kind = ErrorKind.PRECONDITION

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ValidationError(AuctionError):
    kind = ErrorKind.VALIDATION


class PreconditionError(AuctionError):
    kind = ErrorKind.PRECONDITION


class ConcurrencyConflict(AuctionError):
    kind = ErrorKind.CONFLICT


class PersistenceFault(AuctionError):
    kind = ErrorKind.FAULT


@dataclass(frozen=True)
class Result:
    """Итог операции ядра: успех с данными или отказ с причиной"""
    ok: bool
    value: Any = None
    reason: Optional[str] = None
    kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None, message: Optional[str] = None) -> "Result":
        return cls(ok=True, value=value, message=message)

    @classmethod
    def rejected(cls, reason: str, kind: ErrorKind = ErrorKind.PRECONDITION) -> "Result":
        return cls(ok=False, reason=reason, kind=kind)

    @classmethod
    def from_error(cls, error: AuctionError) -> "Result":
        return cls.rejected(error.reason, error.kind)

    def __bool__(self) -> bool:
        return self.ok


def returns_result(operation: str):
    """Не выпускать исключения за границу сервиса.

    ``AuctionError`` превращается в отказ с его причиной, ошибки SQLAlchemy -
    в общий отказ категории FAULT (транзакция к этому моменту уже откачена).
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Result:
            try:
                return await func(*args, **kwargs)
            except AuctionError as e:
                return Result.from_error(e)
            except SQLAlchemyError:
                logger.exception(f"Ошибка хранилища при операции {operation}")
                return Result.from_error(
                    PersistenceFault(f"Failed to {operation}. Please try again.")
                )
        return wrapper
    return decorator
