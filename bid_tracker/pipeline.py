"""
Main Pipeline module for Bid Tracker.

Orchestrates the bid sync data flow for an auction:
1. Fetch → Read the comments of the auction's Facebook post
2. Detect → Classify each comment as bid / not a bid
3. Reconcile → Replay detected bids against the auction's bid state
4. Store → Write the new aggregate and the new bids to Supabase

This is the main entry point for running syncs by hand.
"""

import logging
from typing import Optional

from .bid_parser import BidClassifier, classify_message
from .config import get_app_config
from .db import get_db
from .models import Auction, AuctionBidState, Bid, ResolvedBid, utc_now
from .reconciliation import BidReconciler, ReconcileResult
from .sources import BaseCommentSource, FacebookCommentSource, extract_post_id, validate_facebook_url

logger = logging.getLogger(__name__)


class AuctionNotFoundError(LookupError):
    """Raised when an auction ID does not exist."""


class BidTooLowError(ValueError):
    """Raised when a manual bid does not beat the current bid."""


class SyncConflictError(RuntimeError):
    """Raised when the auction kept changing under a sync or bid."""


def get_comment_source() -> BaseCommentSource:
    """The comment source used for auction posts."""
    return FacebookCommentSource()


def get_classifier() -> BidClassifier:
    """A classifier using the configured acceptance threshold."""
    return BidClassifier(threshold=get_app_config().acceptance_threshold)


def _load_auction(auction_id: str) -> Auction:
    auction = get_db().get_auction(auction_id)
    if auction is None:
        raise AuctionNotFoundError(f"Auction not found: {auction_id}")
    return auction


def _new_bid_state(
    stored: AuctionBidState,
    new_bids: list[ResolvedBid],
) -> tuple[AuctionBidState, Optional[ResolvedBid]]:
    """
    The aggregate to store after a sync, and the new bid that leads it.

    Only bids emitted in this pass can raise the stored bid or change the
    leader. Already-recorded bids are replayed against the stored bid, so
    their re-resolved amounts must not be written back.
    """
    leader: Optional[ResolvedBid] = None
    for bid in new_bids:
        if bid.resolved_amount > (leader.resolved_amount if leader else stored.current_bid):
            leader = bid

    for bid in new_bids:
        bid.is_winning = bid is leader

    if leader is None:
        return AuctionBidState(
            current_bid=stored.current_bid,
            highest_bidder_name=stored.highest_bidder_name,
            total_bid_count=stored.total_bid_count + len(new_bids),
        ), None

    return AuctionBidState(
        current_bid=leader.resolved_amount,
        highest_bidder_name=leader.bidder_name,
        total_bid_count=stored.total_bid_count + len(new_bids),
    ), leader


# =============================================================================
# DETECTION (NO WRITES)
# =============================================================================

def check_message(message: str) -> dict:
    """
    Run bid detection on an ad-hoc message.

    Returns:
        Dict with the message, the detected bid (or None) and a validity flag
    """
    candidate = classify_message(message, threshold=get_app_config().acceptance_threshold)
    return {
        "test_message": message,
        "parsed_bid": candidate.to_dict() if candidate else None,
        "is_valid_bid": candidate is not None,
    }


def detect_bids(post_url: str, source: Optional[BaseCommentSource] = None) -> dict:
    """
    Detect bids in a post's comments without storing anything.

    Args:
        post_url: Facebook post URL
        source: Comment source (defaults to Facebook)

    Returns:
        Dict with post_id, comment/bid counts and detected bids (oldest first)

    Raises:
        ValueError: if post_url is not a valid Facebook post URL
    """
    if not validate_facebook_url(post_url):
        raise ValueError(f"Invalid Facebook post URL: {post_url}")

    post_id = extract_post_id(post_url)
    source = source or get_comment_source()

    logger.info(f"Detecting bids for post ID: {post_id}")
    comments = source.collect(post_url)

    candidates = get_classifier().classify_many(comments)
    candidates.sort(key=lambda c: c.timestamp)

    return {
        "post_id": post_id,
        "total_comments": len(comments),
        "detected_bids": len(candidates),
        "bids": [candidate.to_dict() for candidate in candidates],
    }


# =============================================================================
# SYNC
# =============================================================================

def sync_auction_bids(auction_id: str, source: Optional[BaseCommentSource] = None) -> dict:
    """
    Sync one auction's bids from its Facebook post.

    The auction aggregate is written with a compare-and-swap; if another
    writer changed the auction in the meantime the reconciliation is rerun
    against the fresh state.

    Args:
        auction_id: The auction to sync
        source: Comment source (defaults to Facebook)

    Returns:
        Summary dict of the sync

    Raises:
        AuctionNotFoundError: if the auction does not exist
        ValueError: if the auction has no post URL
        CommentFetchError: if the comments could not be fetched
        SyncConflictError: if every attempt lost the compare-and-swap
    """
    db = get_db()
    config = get_app_config()

    auction = _load_auction(auction_id)
    if not auction.group_url:
        raise ValueError(f"No Facebook post URL configured for auction {auction_id}")

    source = source or get_comment_source()
    comments = source.fetch_comments(auction.group_url)
    reconciler = BidReconciler(classifier=get_classifier())

    result: Optional[ReconcileResult] = None
    new_state = auction.bid_state
    leader: Optional[ResolvedBid] = None
    for attempt in range(1, config.max_sync_attempts + 1):
        if attempt > 1:
            logger.info(f"Retrying sync of auction {auction_id} (attempt {attempt})")
            auction = _load_auction(auction_id)

        recorded = db.get_recorded_comment_urls(auction_id)
        result = reconciler.reconcile(comments, auction.bid_state, recorded)
        if not result.resolved_bids:
            new_state, leader = auction.bid_state, None
            break

        new_state, leader = _new_bid_state(auction.bid_state, result.resolved_bids)
        if db.update_auction_bid_state(auction_id, auction.bid_state, new_state):
            break
    else:
        raise SyncConflictError(
            f"Auction {auction_id} changed during {config.max_sync_attempts} sync attempts"
        )

    if leader is not None:
        db.clear_winning_bids(auction_id)

    stored = [db.insert_bid(Bid.from_resolved(auction_id, resolved)) for resolved in result.resolved_bids]

    logger.info(f"Synced auction {auction_id}: {len(stored)} new bids from {len(comments)} comments")
    return {
        "success": True,
        "auction_id": auction_id,
        "total_comments": len(comments),
        "new_bids": len(stored),
        "new_highest_bid": new_state.current_bid,
        "new_highest_bidder": new_state.highest_bidder_name,
        "processed_bids": [
            {
                "id": bid.id,
                "bidder_name": bid.bidder_name,
                "amount": bid.amount,
                "timestamp": bid.timestamp.isoformat(),
                "confidence": bid.confidence,
                "notes": bid.notes,
            }
            for bid in stored
        ],
    }


def sync_active_auctions() -> dict:
    """
    Sync every active auction that has a post URL.

    Failures are collected per auction; one bad post does not stop the run.

    Returns:
        Summary dict with counts and errors
    """
    start_time = utc_now()
    logger.info(f"Starting sync run at {start_time}")

    summary = {
        "started_at": start_time.isoformat(),
        "auctions": 0,
        "synced": 0,
        "new_bids": 0,
        "errors": [],
    }

    auctions = [a for a in get_db().get_active_auctions() if a.group_url]
    summary["auctions"] = len(auctions)
    source = get_comment_source()

    for auction in auctions:
        try:
            result = sync_auction_bids(auction.id, source=source)
            summary["synced"] += 1
            summary["new_bids"] += result["new_bids"]
        except Exception as e:
            logger.error(f"Sync failed for auction {auction.id}: {e}")
            summary["errors"].append({"auction_id": auction.id, "error": str(e)})

    end_time = utc_now()
    summary["duration_seconds"] = (end_time - start_time).total_seconds()
    summary["completed_at"] = end_time.isoformat()

    logger.info(f"Sync run complete in {summary['duration_seconds']:.1f}s: {summary}")
    return summary


def close_ended_auctions() -> int:
    """Mark auctions past their end time as ended."""
    return get_db().close_ended_auctions()


# =============================================================================
# MANUAL BIDS
# =============================================================================

def place_manual_bid(
    auction_id: str,
    bidder_name: str,
    amount: float,
    bidder_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> Bid:
    """
    Record a bid entered by an admin.

    Raises:
        AuctionNotFoundError: if the auction does not exist
        BidTooLowError: if amount does not exceed the current bid
        SyncConflictError: if the auction changed while the bid was placed
    """
    db = get_db()
    auction = _load_auction(auction_id)

    if amount <= auction.current_bid:
        raise BidTooLowError(
            f"Bid must be higher than current bid ({auction.current_bid})"
        )

    updated = AuctionBidState(
        current_bid=amount,
        highest_bidder_name=bidder_name,
        total_bid_count=auction.total_bids + 1,
    )
    if not db.update_auction_bid_state(auction_id, auction.bid_state, updated):
        raise SyncConflictError(f"Auction {auction_id} changed while placing bid")

    db.clear_winning_bids(auction_id)
    return db.insert_bid(Bid(
        auction_id=auction_id,
        bidder_name=bidder_name,
        bidder_id=bidder_id,
        amount=amount,
        is_winning=True,
        notes=notes,
    ))


# =============================================================================
# CLI ENTRY POINT
# =============================================================================

def main():
    """CLI entry point for running syncs."""
    import argparse

    parser = argparse.ArgumentParser(description="Bid Tracker Pipeline")
    parser.add_argument(
        "--sync",
        metavar="AUCTION_ID",
        help="Sync bids for one auction"
    )
    parser.add_argument(
        "--sync-all",
        action="store_true",
        help="Sync bids for every active auction"
    )
    parser.add_argument(
        "--detect",
        metavar="POST_URL",
        help="Show the bids detected in a post without storing them"
    )
    parser.add_argument(
        "--test-message",
        metavar="TEXT",
        help="Run bid detection on a single message"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level"
    )

    args = parser.parse_args()

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    if args.test_message:
        result = check_message(args.test_message)
        print(f"Detection result: {result}")
    elif args.detect:
        result = detect_bids(args.detect)
        print(f"Detected bids: {result}")
    elif args.sync:
        result = sync_auction_bids(args.sync)
        print(f"Sync complete: {result}")
    elif args.sync_all:
        result = sync_active_auctions()
        print(f"Sync run complete: {result}")
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
