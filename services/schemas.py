"""Проверка входных данных до открытия транзакции"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator
from config import settings
from services.errors import ValidationError

MAX_AMOUNT = Decimal("9999999999.99")


def _clean_reason(value: Optional[str]) -> str:
    return (value or "").strip()


class BidInput(BaseModel):
    """Ставка"""
    auction_id: int = Field(gt=0)
    amount: Decimal = Field(gt=0, le=MAX_AMOUNT)

    @field_validator("amount")
    @classmethod
    def check_precision(cls, value: Decimal) -> Decimal:
        if value.as_tuple().exponent < -2:
            raise ValueError("amount must have at most 2 decimal places")
        return value


class AuctionInput(BaseModel):
    """Новый лот"""
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    starting_bid: Decimal = Field(gt=0, le=MAX_AMOUNT)
    ends_at: Optional[datetime] = None

    @field_validator("starting_bid")
    @classmethod
    def check_precision(cls, value: Decimal) -> Decimal:
        if value.as_tuple().exponent < -2:
            raise ValueError("starting_bid must have at most 2 decimal places")
        return value


class AdminReason(BaseModel):
    """Причина действия администратора"""
    reason: str = ""

    @field_validator("reason", mode="before")
    @classmethod
    def strip(cls, value: Optional[str]) -> str:
        return _clean_reason(value)

    @field_validator("reason")
    @classmethod
    def check_length(cls, value: str) -> str:
        if len(value) > settings.MAX_REASON_LENGTH:
            raise ValueError("reason is too long")
        return value


class BulkStopInput(AdminReason):
    """Массовая остановка ставок"""
    bid_ids: List[int]

    @field_validator("bid_ids")
    @classmethod
    def check_ids(cls, value: List[int]) -> List[int]:
        ids = list(dict.fromkeys(bid_id for bid_id in value if bid_id > 0))
        if not ids:
            raise ValueError("No valid bid IDs provided")
        if len(ids) > settings.MAX_BULK_STOP_BIDS:
            raise ValueError(f"Too many bid IDs (max {settings.MAX_BULK_STOP_BIDS})")
        return ids


def parse_bid(auction_id, amount) -> BidInput:
    try:
        return BidInput(auction_id=auction_id, amount=amount)
    except PydanticValidationError:
        raise ValidationError("Invalid bid amount")


def parse_auction(**data) -> AuctionInput:
    try:
        return AuctionInput(**data)
    except PydanticValidationError as e:
        field = e.errors()[0]["loc"][0]
        raise ValidationError(f"Invalid {field}")


def parse_reason(reason: Optional[str]) -> str:
    try:
        return AdminReason(reason=reason).reason
    except PydanticValidationError:
        raise ValidationError("Invalid reason format")


def parse_bulk_stop(bid_ids, reason: Optional[str]) -> BulkStopInput:
    try:
        return BulkStopInput(bid_ids=bid_ids, reason=reason)
    except PydanticValidationError as e:
        error = e.errors()[0]
        if error["loc"] and error["loc"][0] == "bid_ids" and error["type"] == "value_error":
            # pydantic добавляет префикс "Value error, "
            raise ValidationError(str(error["ctx"]["error"]))
        if error["loc"] and error["loc"][0] == "reason":
            raise ValidationError("Invalid reason format")
        raise ValidationError("No valid bid IDs provided")


def format_money(amount: Decimal) -> str:
    """Сумма для сообщений: $1,234.50"""
    return f"${Decimal(amount):,.2f}"
