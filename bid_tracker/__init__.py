"""
Bid Tracker - Facebook group auction bid tracking

Reads the comments of Facebook auction posts, detects which comments are
bids, and keeps each auction's highest bid up to date.

Modules:
- config: Configuration and environment variables
- models: Data models (dataclasses)
- bid_parser: Detect bids in free-text comments
- reconciliation: Replay detected bids against an auction's bid state
- sources: Fetch comments from Facebook (Graph API or scraping)
- db: Supabase integration for storage
- pipeline: Sync orchestration and manual bids
- stats: Dashboard statistics
- scheduler: APScheduler setup for periodic syncs
- server: HTTP API server
"""

__version__ = "0.1.0"

# Convenient imports
from .models import (
    Auction,
    AuctionBidState,
    AuctionStatus,
    Bid,
    CandidateBid,
    DashboardStats,
    RawComment,
    ReconcileResult,
    ResolvedBid,
    Settings,
)
from .bid_parser import BidClassifier, classify_comment, classify_message
from .reconciliation import BidReconciler, InvalidBidInputError, reconcile_bids

__all__ = [
    # Models
    "Auction",
    "AuctionBidState",
    "AuctionStatus",
    "Bid",
    "CandidateBid",
    "DashboardStats",
    "RawComment",
    "ReconcileResult",
    "ResolvedBid",
    "Settings",
    # Bid detection
    "BidClassifier",
    "classify_comment",
    "classify_message",
    # Reconciliation
    "BidReconciler",
    "InvalidBidInputError",
    "reconcile_bids",
]
