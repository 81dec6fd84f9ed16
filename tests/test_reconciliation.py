"""Tests for replaying detected bids against an auction's bid state."""

from __future__ import annotations

import pytest

from bid_tracker.models import AuctionBidState
from bid_tracker.reconciliation import (
    BidReconciler,
    InvalidBidInputError,
    format_amount,
    reconcile_bids,
)
from conftest import make_comment


def _absolute_then_increment():
    return [
        make_comment("c1", "I bid $150 for this item", "John Smith", created_at="2024-01-15T10:00:00Z"),
        make_comment("c2", "+$50 more", "Sarah Johnson", created_at="2024-01-15T11:00:00Z"),
    ]


def test_increment_resolves_against_running_amount():
    state = AuctionBidState(current_bid=100, highest_bidder_name=None, total_bid_count=3)

    result = reconcile_bids(_absolute_then_increment(), state, set())

    assert [b.resolved_amount for b in result.resolved_bids] == [150, 200]
    assert result.updated_state == AuctionBidState(
        current_bid=200, highest_bidder_name="Sarah Johnson", total_bid_count=5
    )


def test_resolved_amount_is_absolute_and_notes_record_derivation():
    state = AuctionBidState(current_bid=100)

    first, second = reconcile_bids(_absolute_then_increment(), state).resolved_bids

    assert first.note == "Auto-detected bid"
    assert second.is_increment is True
    assert second.amount == 50
    assert second.resolved_amount == 200
    assert second.note == "Increment bid (+$50) auto-detected"


def test_replay_is_chronological_regardless_of_input_order():
    state = AuctionBidState(current_bid=100)

    result = reconcile_bids(list(reversed(_absolute_then_increment())), state)

    assert [b.comment_id for b in result.resolved_bids] == ["c1", "c2"]
    assert [b.resolved_amount for b in result.resolved_bids] == [150, 200]


def test_only_latest_leader_is_winning():
    state = AuctionBidState(current_bid=0)
    comments = [
        make_comment("c1", "$200 bid", "Ann", created_at="2024-01-15T10:00:00Z"),
        make_comment("c2", "$150 bid", "Ben", created_at="2024-01-15T10:05:00Z"),
        make_comment("c3", "+$10", "Cat", created_at="2024-01-15T10:10:00Z"),
    ]

    result = reconcile_bids(comments, state)

    assert [b.resolved_amount for b in result.resolved_bids] == [200, 150, 210]
    assert [b.is_winning for b in result.resolved_bids] == [False, False, True]
    assert result.winning_bid.bidder_name == "Cat"
    assert result.updated_state.current_bid == 210


def test_lower_bid_does_not_reduce_increment_baseline():
    state = AuctionBidState(current_bid=0)
    comments = [
        make_comment("c1", "$200 bid", "Ann", created_at="2024-01-15T10:00:00Z"),
        make_comment("c2", "$150 bid", "Ben", created_at="2024-01-15T10:05:00Z"),
        make_comment("c3", "+$10", "Cat", created_at="2024-01-15T10:10:00Z"),
    ]

    increment = reconcile_bids(comments, state).resolved_bids[-1]

    assert increment.resolved_amount == 210


def test_equal_bid_does_not_take_the_lead():
    state = AuctionBidState(current_bid=0)
    comments = [
        make_comment("c1", "$200 bid", "Ann", created_at="2024-01-15T10:00:00Z"),
        make_comment("c2", "$200 bid", "Ben", created_at="2024-01-15T10:05:00Z"),
    ]

    result = reconcile_bids(comments, state)

    assert [b.is_winning for b in result.resolved_bids] == [True, False]
    assert result.updated_state.highest_bidder_name == "Ann"


def test_bid_below_current_keeps_existing_leader():
    state = AuctionBidState(current_bid=500, highest_bidder_name="Zoe", total_bid_count=4)

    result = reconcile_bids([make_comment("c1", "$150 bid", "Ann")], state)

    assert result.resolved_bids[0].is_winning is False
    assert result.updated_state == AuctionBidState(current_bid=500, highest_bidder_name="Zoe", total_bid_count=5)


def test_recorded_permalink_is_not_emitted():
    state = AuctionBidState(current_bid=100, total_bid_count=2)
    comment = make_comment("c1", "I bid $150 for this item")

    result = reconcile_bids([comment], state, {comment.permalink})

    assert result.resolved_bids == []
    assert result.updated_state.total_bid_count == 2


def test_recorded_bid_still_moves_running_amount():
    state = AuctionBidState(current_bid=100)
    comments = _absolute_then_increment()

    result = reconcile_bids(comments, state, {"https://facebook.com/c1"})

    assert len(result.resolved_bids) == 1
    assert result.resolved_bids[0].resolved_amount == 200
    assert result.updated_state.total_bid_count == 1


def test_recorded_leader_unflags_earlier_emitted_bids():
    state = AuctionBidState(current_bid=0)
    comments = [
        make_comment("c1", "$120 bid", "Ann", created_at="2024-01-15T10:00:00Z"),
        make_comment("c2", "$150 bid", "Ben", created_at="2024-01-15T10:05:00Z"),
    ]

    result = reconcile_bids(comments, state, {"https://facebook.com/c2"})

    assert [b.comment_id for b in result.resolved_bids] == ["c1"]
    assert result.resolved_bids[0].is_winning is False
    assert result.winning_bid is None
    assert result.updated_state.current_bid == 150
    assert result.updated_state.highest_bidder_name == "Ben"


def test_synthesized_permalink_is_used_for_dedup():
    comment = make_comment("c9", "$150 bid", permalink=None)

    result = reconcile_bids([comment], AuctionBidState(), {"https://facebook.com/c9"})

    assert result.resolved_bids == []


def test_empty_comment_list_leaves_state_unchanged():
    state = AuctionBidState(current_bid=100, highest_bidder_name="Ann", total_bid_count=7)

    result = reconcile_bids([], state, set())

    assert result.resolved_bids == []
    assert result.updated_state == state


def test_comments_without_bids_leave_state_unchanged():
    state = AuctionBidState(current_bid=100, highest_bidder_name="Ann", total_bid_count=7)
    comments = [make_comment("c1", "Is this still available?"), make_comment("c2", "Nice one")]

    result = reconcile_bids(comments, state)

    assert result.resolved_bids == []
    assert result.updated_state == state


def test_second_pass_with_recorded_permalinks_emits_nothing():
    comments = [
        make_comment("c1", "I bid $150 for this item", "John Smith", created_at="2024-01-15T10:00:00Z"),
        make_comment("c2", "$200 here", "Sarah Johnson", created_at="2024-01-15T11:00:00Z"),
    ]
    first = reconcile_bids(comments, AuctionBidState(current_bid=100))
    recorded = {b.comment_url for b in first.resolved_bids}

    second = reconcile_bids(comments, first.updated_state, recorded)

    assert second.resolved_bids == []
    assert second.updated_state == first.updated_state


def test_second_pass_with_increments_emits_nothing():
    first = reconcile_bids(_absolute_then_increment(), AuctionBidState(current_bid=100))
    recorded = {b.comment_url for b in first.resolved_bids}

    second = reconcile_bids(_absolute_then_increment(), first.updated_state, recorded)

    assert second.resolved_bids == []
    assert second.updated_state.total_bid_count == first.updated_state.total_bid_count
    # Recorded bids are replayed: "+$50" now resolves against the stored 200
    assert second.updated_state.current_bid == 250
    assert second.updated_state.highest_bidder_name == "Sarah Johnson"


def test_same_timestamp_keeps_input_order():
    comments = [
        make_comment("c1", "$150 bid", "Ann", created_at="2024-01-15T10:00:00Z"),
        make_comment("c2", "+$25", "Ben", created_at="2024-01-15T10:00:00Z"),
    ]

    result = reconcile_bids(comments, AuctionBidState())

    assert [b.comment_id for b in result.resolved_bids] == ["c1", "c2"]
    assert result.resolved_bids[1].resolved_amount == 175


def test_naive_and_aware_timestamps_sort_together():
    comments = [
        make_comment("c1", "$300 bid", "Ann", created_at="2024-01-15T12:00:00Z"),
        make_comment("c2", "$200 bid", "Ben", created_at="2024-01-15T11:00:00"),
    ]

    result = reconcile_bids(comments, AuctionBidState())

    assert [b.comment_id for b in result.resolved_bids] == ["c2", "c1"]


def test_full_thread(sample_comments):
    result = BidReconciler().reconcile(sample_comments, AuctionBidState(current_bid=100))

    assert [b.resolved_amount for b in result.resolved_bids] == [150, 200, 250, 300]
    assert result.updated_state == AuctionBidState(
        current_bid=300, highest_bidder_name="David Brown", total_bid_count=4
    )


def test_threshold_is_passed_to_classifier():
    comments = [make_comment("c1", "$200 here")]

    assert len(reconcile_bids(comments, AuctionBidState()).resolved_bids) == 1
    assert reconcile_bids(comments, AuctionBidState(), threshold=0.9).resolved_bids == []


def test_none_comments_is_an_input_error():
    with pytest.raises(InvalidBidInputError):
        reconcile_bids(None, AuctionBidState())


def test_none_state_is_an_input_error():
    with pytest.raises(ValueError):
        reconcile_bids([], None)


@pytest.mark.parametrize("amount,expected", [(50, "50"), (50.0, "50"), (12.5, "12.50")])
def test_format_amount(amount, expected):
    assert format_amount(amount) == expected
