"""Tests for the Supabase wrapper (the client is mocked)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, call, patch

import pytest

from bid_tracker.db import SETTINGS_ROW_ID, Database
from bid_tracker.models import AuctionBidState, Bid

QUERY_METHODS = ("select", "insert", "update", "upsert", "delete", "eq", "lt", "or_", "order", "limit", "range")


def _make_db(rows=None):
    """A Database whose every query chain returns `rows`."""
    query = MagicMock()
    for method in QUERY_METHODS:
        getattr(query, method).return_value = query
    query.execute.return_value = MagicMock(data=rows if rows is not None else [])

    client = MagicMock()
    client.table.return_value = query
    return Database(client=client), client, query


def _auction_row(**overrides):
    row = {
        "id": "a1",
        "title": "Vintage watch",
        "status": "active",
        "current_bid": 100,
        "total_bids": 2,
        "highest_bidder": "Ann",
    }
    row.update(overrides)
    return row


def test_get_auction():
    db, client, query = _make_db([_auction_row()])

    auction = db.get_auction("a1")

    client.table.assert_called_with("auctions")
    query.eq.assert_called_with("id", "a1")
    assert auction.title == "Vintage watch"
    assert auction.current_bid == 100


def test_get_auction_missing():
    db, _, _ = _make_db([])

    assert db.get_auction("nope") is None


def test_list_auctions_filters():
    db, _, query = _make_db([_auction_row()])

    db.list_auctions(status="active", search="watch")

    query.eq.assert_called_with("status", "active")
    query.or_.assert_called_once_with(
        "title.ilike.%watch%,group_name.ilike.%watch%,description.ilike.%watch%"
    )
    query.order.assert_called_once_with("created_at", desc=True)


def test_list_auctions_all_statuses():
    db, _, query = _make_db([])

    db.list_auctions(status="all")

    query.eq.assert_not_called()
    query.or_.assert_not_called()


def test_bid_state_update_is_conditional_on_previous_state():
    db, _, query = _make_db([_auction_row(current_bid=200, total_bids=4)])
    previous = AuctionBidState(current_bid=100, highest_bidder_name="Ann", total_bid_count=2)
    updated = AuctionBidState(current_bid=200, highest_bidder_name="Ben", total_bid_count=4)

    assert db.update_auction_bid_state("a1", previous, updated) is True

    payload = query.update.call_args.args[0]
    assert payload["current_bid"] == 200
    assert payload["highest_bidder"] == "Ben"
    assert payload["total_bids"] == 4
    assert query.eq.call_args_list == [
        call("id", "a1"),
        call("current_bid", 100),
        call("total_bids", 2),
    ]


def test_bid_state_update_reports_lost_race():
    db, _, _ = _make_db([])

    assert db.update_auction_bid_state("a1", AuctionBidState(), AuctionBidState(current_bid=10)) is False


def test_delete_auction_removes_bids_first():
    db, client, _ = _make_db([_auction_row()])

    assert db.delete_auction("a1") is True
    assert [c.args[0] for c in client.table.call_args_list] == ["bids", "auctions"]


def test_insert_bid_drops_id():
    stored_row = {"id": 42, "auction_id": "a1", "bidder_name": "Ann", "amount": 150, "timestamp": "2024-01-15T10:30:00Z"}
    db, _, query = _make_db([stored_row])

    stored = db.insert_bid(Bid(auction_id="a1", bidder_name="Ann", amount=150, id="ignored"))

    assert "id" not in query.insert.call_args.args[0]
    assert stored.id == "42"


def test_recorded_comment_urls_skip_manual_bids():
    db, _, _ = _make_db([{"comment_url": "https://facebook.com/c1"}, {"comment_url": None}, {}])

    assert db.get_recorded_comment_urls("a1") == {"https://facebook.com/c1"}


def test_get_settings_decodes_notifications():
    db, _, _ = _make_db([{"id": SETTINGS_ROW_ID, "currency": "NZD", "notifications": json.dumps({"push": True})}])

    settings = db.get_settings()

    assert settings.currency == "NZD"
    assert settings.notifications.push is True


def test_get_settings_creates_defaults():
    db, _, query = _make_db([])

    settings = db.get_settings()

    saved = query.upsert.call_args.args[0]
    assert saved["id"] == SETTINGS_ROW_ID
    assert json.loads(saved["notifications"])["email"] is True
    assert settings.currency == "AUD"


def test_update_settings_merges_fields():
    db, _, _ = _make_db([])

    settings = db.update_settings({"currency": "USD", "notifications": {"push": True}})

    assert settings.currency == "USD"
    assert settings.notifications.push is True
    assert settings.notifications.new_bid is True


def test_update_settings_rejects_invalid_values():
    db, _, _ = _make_db([])

    with pytest.raises(ValueError):
        db.update_settings({"auto_archive_days": 0})


def test_close_ended_auctions():
    now = datetime(2024, 1, 20, tzinfo=timezone.utc)
    db, _, query = _make_db([_auction_row(id="a1"), _auction_row(id="a2")])

    assert db.close_ended_auctions(now) == 2
    assert query.update.call_args.args[0]["status"] == "ended"
    query.eq.assert_called_with("status", "active")
    query.lt.assert_called_with("end_time", now.isoformat())


def test_recorded_comment_urls_read_every_page():
    db, _, query = _make_db()
    query.execute.side_effect = [
        MagicMock(data=[{"comment_url": "https://facebook.com/c1"}, {"comment_url": "https://facebook.com/c2"}]),
        MagicMock(data=[{"comment_url": "https://facebook.com/c3"}]),
    ]

    with patch("bid_tracker.db.PAGE_SIZE", 2):
        urls = db.get_recorded_comment_urls("a1")

    assert urls == {"https://facebook.com/c1", "https://facebook.com/c2", "https://facebook.com/c3"}
    assert query.range.call_args_list == [call(0, 1), call(2, 3)]


def test_get_all_bids_stops_after_short_page():
    row = {"id": 1, "auction_id": "a1", "bidder_name": "Ann", "amount": 150, "timestamp": "2024-01-15T10:30:00Z"}
    db, _, query = _make_db()
    query.execute.side_effect = [MagicMock(data=[row, {**row, "id": 2}]), MagicMock(data=[])]

    with patch("bid_tracker.db.PAGE_SIZE", 2):
        bids = db.get_all_bids()

    assert [b.id for b in bids] == ["1", "2"]
    assert query.execute.call_count == 2


def test_get_all_auctions_is_not_capped():
    db, client, query = _make_db([_auction_row(id="a1"), _auction_row(id="a2", status="ended")])

    auctions = db.get_all_auctions()

    client.table.assert_called_with("auctions")
    query.limit.assert_not_called()
    query.range.assert_called_once_with(0, 999)
    assert [a.id for a in auctions] == ["a1", "a2"]
