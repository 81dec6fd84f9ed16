"""
Bid reconciliation module for Bid Tracker.

Replays the bids detected in a batch of comments in chronological order
against an auction's current state. Increment bids are resolved into
absolute amounts, the leader is tracked as the replay goes, and bids that
were already recorded by an earlier sync are not emitted again.

Nothing here performs I/O: the caller persists the result.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .bid_parser import BidClassifier
from .models import (
    AuctionBidState,
    CandidateBid,
    RawComment,
    ReconcileResult,
    ResolvedBid,
)

logger = logging.getLogger(__name__)


class InvalidBidInputError(ValueError):
    """Raised when the reconciler is called with missing inputs."""


def format_amount(amount: float) -> str:
    """Format an amount for notes: 50 -> "50", 12.5 -> "12.50"."""
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"


@dataclass
class _Replay:
    """Accumulator threaded through the chronological replay."""
    current_amount: float
    highest_amount: float
    leader: Optional[str]


class BidReconciler:
    """
    Folds detected bids into an auction's bid state.

    Usage:
        reconciler = BidReconciler()
        result = reconciler.reconcile(comments, auction.bid_state, recorded_urls)
    """

    def __init__(self, classifier: Optional[BidClassifier] = None):
        self.classifier = classifier or BidClassifier()

    def reconcile(
        self,
        comments: list[RawComment],
        state: AuctionBidState,
        recorded_permalinks: Optional[Iterable[str]] = None,
    ) -> ReconcileResult:
        """
        Reconcile a batch of comments against the current auction state.

        Args:
            comments: Comments fetched from the auction's post (any order)
            state: The auction's current bid state
            recorded_permalinks: Comment URLs already stored as bids

        Returns:
            ReconcileResult with the new bids (chronological) and updated state

        Raises:
            InvalidBidInputError: if comments or state is None
        """
        if comments is None:
            raise InvalidBidInputError("comments must be a list, got None")
        if state is None:
            raise InvalidBidInputError("state must be an AuctionBidState, got None")

        recorded = set(recorded_permalinks or ())

        candidates = self.classifier.classify_many(comments)
        # Stable sort: comments with the same timestamp keep their input order
        candidates.sort(key=lambda c: c.timestamp)

        replay = _Replay(
            current_amount=state.current_bid,
            highest_amount=state.current_bid,
            leader=state.highest_bidder_name,
        )
        emitted: list[ResolvedBid] = []
        skipped = 0

        for candidate in candidates:
            resolved = self._resolve(candidate, replay)

            if resolved.is_winning:
                for earlier in emitted:
                    earlier.is_winning = False

            # A bid that was already recorded still moves the running amounts,
            # so increments after it resolve the same way on every re-sync
            if candidate.comment_url in recorded:
                skipped += 1
                continue

            emitted.append(resolved)

        updated_state = AuctionBidState(
            current_bid=replay.highest_amount,
            highest_bidder_name=replay.leader,
            total_bid_count=state.total_bid_count + len(emitted),
        )

        logger.info(
            f"Reconciled {len(candidates)} detected bids from {len(comments)} comments: "
            f"{len(emitted)} new, {skipped} already recorded, current bid {updated_state.current_bid}"
        )
        return ReconcileResult(resolved_bids=emitted, updated_state=updated_state)

    def _resolve(self, candidate: CandidateBid, replay: _Replay) -> ResolvedBid:
        """Resolve one candidate and advance the replay accumulator."""
        if candidate.is_increment:
            resolved_amount = replay.current_amount + candidate.amount
            note = f"Increment bid (+${format_amount(candidate.amount)}) auto-detected"
        else:
            resolved_amount = candidate.amount
            note = "Auto-detected bid"

        # A lower bid never pulls the baseline down
        replay.current_amount = max(replay.current_amount, resolved_amount)

        is_winning = resolved_amount > replay.highest_amount
        if is_winning:
            replay.highest_amount = resolved_amount
            replay.leader = candidate.bidder_name

        return ResolvedBid.from_candidate(
            candidate,
            resolved_amount=resolved_amount,
            note=note,
            is_winning=is_winning,
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def reconcile_bids(
    comments: list[RawComment],
    state: AuctionBidState,
    recorded_permalinks: Optional[Iterable[str]] = None,
    threshold: Optional[float] = None,
) -> ReconcileResult:
    """
    Convenience function to reconcile comments against an auction state.

    Args:
        comments: Raw comments from the auction post
        state: Current auction bid state
        recorded_permalinks: Comment URLs already stored as bids
        threshold: Optional classifier acceptance threshold

    Returns:
        ReconcileResult
    """
    classifier = BidClassifier() if threshold is None else BidClassifier(threshold=threshold)
    return BidReconciler(classifier=classifier).reconcile(comments, state, recorded_permalinks)
