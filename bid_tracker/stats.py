"""
Dashboard statistics for Bid Tracker.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Optional

from .db import get_db
from .models import Auction, AuctionStatus, Bid, DashboardStats, utc_now

logger = logging.getLogger(__name__)


def compute_dashboard_stats(
    auctions: list[Auction],
    bids: list[Bid],
    today: Optional[date] = None,
) -> DashboardStats:
    """
    Compute dashboard statistics from auctions and bids.

    Args:
        auctions: All auctions
        bids: All bids
        today: The day for "ended today" (defaults to the current UTC date)

    Returns:
        DashboardStats
    """
    today = today or utc_now().date()
    stats = DashboardStats()

    for auction in auctions:
        if auction.status == AuctionStatus.ACTIVE:
            stats.active_auctions += 1
        elif (auction.status == AuctionStatus.ENDED and
              auction.end_time is not None and
              auction.end_time.date() == today):
            stats.auctions_ended_today += 1

    if not bids:
        return stats

    stats.total_bids = len(bids)
    stats.total_value = sum(bid.amount for bid in bids)
    stats.average_bid_amount = round(stats.total_value / stats.total_bids, 2)

    # Top bidder is whoever bid the most in total
    totals: dict[str, float] = defaultdict(float)
    for bid in bids:
        totals[bid.bidder_name] += bid.amount
    stats.top_bidder = max(totals, key=totals.get)

    return stats


def get_dashboard_stats() -> DashboardStats:
    """Read auctions and bids from the database and compute statistics."""
    db = get_db()
    auctions = db.get_all_auctions()
    bids = db.get_all_bids()

    stats = compute_dashboard_stats(auctions, bids)
    logger.debug(f"Dashboard stats: {stats}")
    return stats
