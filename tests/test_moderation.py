"""Тесты модерации ставок"""
import logging
from decimal import Decimal

from database.models import AdminActionType
from services.auction import cancel_auction, end_auction
from services.audit import get_admin_action_history
from services.errors import ErrorKind
from services.ledger import get_bids_for_auction, place_bid
from services.moderation import bulk_stop_bids, stop_bid, validate_permissions


class TestValidatePermissions:
    """Test permission checks for admin actions."""

    async def test_non_admin_denied_and_logged(self, store, alice, caplog):
        with caplog.at_level(logging.WARNING, logger="security"):
            result = await validate_permissions(store, alice, AdminActionType.STOP_BID, 1)

        assert result.reason == "Admin privileges required"
        assert "failed_admin_action" in caplog.text
        assert "Admin privileges required" in caplog.text

    async def test_invalid_target_not_logged(self, store, admin, caplog):
        with caplog.at_level(logging.WARNING, logger="security"):
            result = await validate_permissions(store, admin, AdminActionType.STOP_BID, -3)

        assert result.reason == "Invalid target ID"
        assert result.kind == ErrorKind.VALIDATION
        assert "failed_admin_action" not in caplog.text

    async def test_missing_bid_logged(self, store, admin, caplog):
        with caplog.at_level(logging.WARNING, logger="security"):
            result = await validate_permissions(store, admin, AdminActionType.STOP_BID, 9999)

        assert result.reason == "Bid not found"
        assert "Bid not found" in caplog.text

    async def test_active_auction_passes(self, store, admin, make_auction):
        auction_id = await make_auction("10.00")

        result = await validate_permissions(store, admin, AdminActionType.END_AUCTION, auction_id)

        assert result.ok


class TestStopBid:
    """Test stopping a single bid."""

    async def test_stop_leading_bid(self, store, notifier, admin, bob, make_auction, load_auction, admin_actions, notifications_for):
        auction_id = await make_auction("10.00")
        placed = await place_bid(store, notifier, bob, auction_id, "15.00")

        result = await stop_bid(store, notifier, admin, placed.value, "suspicious")

        assert result.ok
        assert result.message == "Bid stopped successfully"
        auction = await load_auction(auction_id)
        assert auction.current_bid == Decimal("10.00")
        assert auction.highest_bidder_id is None

        [bid] = await get_bids_for_auction(store, auction_id, include_stopped=True)
        assert bid.status == "stopped"
        assert bid.stopped_by == admin.user_id
        assert bid.stopped_at is not None

        [action] = await admin_actions()
        assert action.action_type == "stop_bid"
        assert action.target_id == placed.value
        assert action.reason == "suspicious"
        assert action.additional_data == {"auction_id": auction_id, "bidder_id": bob.user_id, "amount": "15.00"}

        [notification] = await notifications_for(bob.user_id)
        assert notification.type == "bid_stopped"
        assert "suspicious" in notification.message

        retry = await place_bid(store, notifier, bob, auction_id, "20.00")
        assert retry.reason == "You cannot place new bids on this item due to previous bid restrictions"

    async def test_leader_falls_back_to_next_bid(self, store, notifier, admin, alice, bob, make_auction, load_auction):
        auction_id = await make_auction("10.00")
        await place_bid(store, notifier, alice, auction_id, "11.00")
        placed = await place_bid(store, notifier, bob, auction_id, "12.00")

        await stop_bid(store, notifier, admin, placed.value, "shill bidding")

        auction = await load_auction(auction_id)
        assert auction.current_bid == Decimal("11.00")
        assert auction.highest_bidder_id == alice.user_id

        follow_up = await place_bid(store, notifier, alice, auction_id, "11.00")
        assert follow_up.reason == "Bid must be at least $11.01"

    async def test_stopping_lower_bid_keeps_leader(self, store, notifier, admin, alice, bob, make_auction, load_auction):
        auction_id = await make_auction("10.00")
        placed = await place_bid(store, notifier, alice, auction_id, "11.00")
        await place_bid(store, notifier, bob, auction_id, "12.00")

        await stop_bid(store, notifier, admin, placed.value)

        auction = await load_auction(auction_id)
        assert auction.current_bid == Decimal("12.00")
        assert auction.highest_bidder_id == bob.user_id

    async def test_stop_twice(self, store, notifier, admin, bob, make_auction, admin_actions):
        auction_id = await make_auction("10.00")
        placed = await place_bid(store, notifier, bob, auction_id, "15.00")
        await stop_bid(store, notifier, admin, placed.value)

        again = await stop_bid(store, notifier, admin, placed.value)

        assert again.reason == "Bid is not active"
        assert len(await admin_actions()) == 1

    async def test_non_admin_cannot_stop(self, store, notifier, alice, bob, make_auction, load_auction):
        auction_id = await make_auction("10.00")
        placed = await place_bid(store, notifier, bob, auction_id, "15.00")

        result = await stop_bid(store, notifier, alice, placed.value)

        assert result.reason == "Admin privileges required"
        assert (await load_auction(auction_id)).highest_bidder_id == bob.user_id

    async def test_stop_on_ended_auction_keeps_snapshot_consistent(self, store, notifier, admin, bob, make_auction, load_auction):
        auction_id = await make_auction("10.00")
        placed = await place_bid(store, notifier, bob, auction_id, "15.00")
        await end_auction(store, notifier, admin, auction_id)

        result = await stop_bid(store, notifier, admin, placed.value, "fraud")

        assert result.ok
        auction = await load_auction(auction_id)
        assert auction.status == "ended"
        assert auction.highest_bidder_id is None
        assert auction.current_bid == Decimal("10.00")

    async def test_notification_failure_keeps_stop(self, store, failing_notifier, admin, bob, make_auction, load_auction):
        auction_id = await make_auction("10.00")
        placed = await place_bid(store, failing_notifier, bob, auction_id, "15.00")

        result = await stop_bid(store, failing_notifier, admin, placed.value)

        assert result.ok
        assert (await load_auction(auction_id)).highest_bidder_id is None


class TestBulkStopBids:
    """Test stopping several bids at once."""

    async def test_partial_success(self, store, notifier, admin, alice, bob, make_auction, load_auction, admin_actions):
        auction_id = await make_auction("10.00")
        first = (await place_bid(store, notifier, alice, auction_id, "11.00")).value
        second = (await place_bid(store, notifier, bob, auction_id, "12.00")).value

        result = await bulk_stop_bids(store, notifier, admin, [first, second, 9999, first], "cleanup")

        assert result.ok
        assert result.value == {first: True, second: True, 9999: False}
        assert result.message == "Stopped 2 of 3 bids"

        stops = await admin_actions("stop_bid")
        assert len(stops) == 2
        assert all(action.additional_data["bulk_action"] is True for action in stops)
        assert all(action.additional_data["total_bids"] == 3 for action in stops)

        [summary] = await admin_actions("bulk_stop_bids")
        assert summary.target_id is None
        assert summary.reason == "cleanup"
        assert summary.additional_data == {"bid_ids": [first, second, 9999], "total_bids": 3, "successful_bids": 2}

        auction = await load_auction(auction_id)
        assert auction.current_bid == Decimal("10.00")
        assert auction.highest_bidder_id is None

    async def test_empty_list(self, store, notifier, admin):
        for bid_ids in ([], [0, -1]):
            result = await bulk_stop_bids(store, notifier, admin, bid_ids)
            assert result.reason == "No valid bid IDs provided"
            assert result.kind == ErrorKind.VALIDATION

    async def test_too_many(self, store, notifier, admin, admin_actions):
        result = await bulk_stop_bids(store, notifier, admin, list(range(1, 52)))

        assert result.reason == "Too many bid IDs (max 50)"
        assert await admin_actions() == []

    async def test_non_admin(self, store, notifier, alice, admin_actions):
        result = await bulk_stop_bids(store, notifier, alice, [1, 2])

        assert result.reason == "Admin privileges required"
        assert await admin_actions() == []


class TestAuditCompleteness:
    """Test that every admin mutation leaves exactly one audit row."""

    async def test_one_row_per_mutation(self, store, notifier, admin, alice, bob, make_auction, admin_actions):
        first_auction = await make_auction("10.00")
        second_auction = await make_auction("10.00")
        placed = await place_bid(store, notifier, bob, first_auction, "15.00")

        await stop_bid(store, notifier, admin, placed.value, "fraud")
        await end_auction(store, notifier, admin, first_auction)
        await end_auction(store, notifier, admin, first_auction)
        await stop_bid(store, notifier, alice, placed.value)

        await cancel_auction(store, notifier, admin, second_auction, "withdrawn")

        actions = await admin_actions()
        assert [action.action_type for action in actions] == ["stop_bid", "end_auction", "cancel_auction"]
        assert [action.target_id for action in actions] == [placed.value, first_auction, second_auction]
        assert all(action.admin_id == admin.user_id for action in actions)

    async def test_history_admin_only(self, store, notifier, admin, alice, make_auction):
        auction_id = await make_auction("10.00")
        await end_auction(store, notifier, admin, auction_id)

        assert await get_admin_action_history(store, alice) == []
        history = await get_admin_action_history(store, admin, action_type="end_auction")
        assert [action.target_id for action in history] == [auction_id]
