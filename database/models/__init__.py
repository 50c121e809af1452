"""Модели базы данных"""
from .user import User, UserRole
from .auction import Auction, AuctionStatus
from .bid import Bid, BidStatus
from .bidder_ban import BidderBan
from .admin_action import AdminAction, AdminActionType
from .notification import Notification, NotificationType

__all__ = [
    "User",
    "UserRole",
    "Auction",
    "AuctionStatus",
    "Bid",
    "BidStatus",
    "BidderBan",
    "AdminAction",
    "AdminActionType",
    "Notification",
    "NotificationType",
]
