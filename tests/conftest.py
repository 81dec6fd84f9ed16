"""Shared test fixtures: comment and auction factories."""

from __future__ import annotations

import pytest

from bid_tracker.models import Auction, RawComment


def make_comment(
    comment_id: str = "comment_1",
    text: str = "I bid $150 for this watch",
    author_name: str = "John Smith",
    author_id: str = "user_123",
    created_at: str = "2024-01-15T10:30:00Z",
    permalink: str | None = "default",
) -> RawComment:
    if permalink == "default":
        permalink = f"https://facebook.com/{comment_id}"
    return RawComment(
        id=comment_id,
        text=text,
        author_name=author_name,
        author_id=author_id,
        created_at=created_at,
        permalink=permalink,
    )


def make_auction(
    auction_id: str = "auction_1",
    current_bid: float = 100.0,
    total_bids: int = 0,
    highest_bidder: str | None = None,
    group_url: str = "https://www.facebook.com/groups/123/posts/456",
) -> Auction:
    return Auction(
        id=auction_id,
        title="Vintage watch",
        description="Working 1960s watch",
        group_name="Sydney Auctions",
        group_url=group_url,
        current_bid=current_bid,
        total_bids=total_bids,
        highest_bidder=highest_bidder,
    )


@pytest.fixture
def comment_factory():
    return make_comment


@pytest.fixture
def auction_factory():
    return make_auction


@pytest.fixture
def sample_comments() -> list[RawComment]:
    """A typical auction thread, in the order Facebook returned it."""
    return [
        make_comment("comment_1", "I bid $150 for this watch", "John Smith", "user_123", "2024-01-15T10:30:00Z"),
        make_comment("comment_2", "$200 here", "Sarah Johnson", "user_456", "2024-01-15T11:00:00Z"),
        make_comment("comment_3", "Just a question about the condition", "Mike Chen", "user_789", "2024-01-15T11:15:00Z"),
        make_comment("comment_4", "I'll bid $250 AUD", "Emma Wilson", "user_101", "2024-01-15T12:00:00Z"),
        make_comment("comment_5", "Plus $50 more", "David Brown", "user_202", "2024-01-15T12:30:00Z"),
    ]
