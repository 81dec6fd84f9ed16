"""
Bid detection module for Bid Tracker.

Reads free-text Facebook comments and decides which ones are bids.
Every number in a comment is scored by how it was written (currency symbol,
"bid", "+50"...) and by the words around it; the best-scoring number is
accepted as the bid when its confidence clears the threshold.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional

from .models import CandidateBid, RawComment, parse_timestamp, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# PATTERNS AND KEYWORDS
# =============================================================================

_NUMBER = r"(\d+(?:[.,]\d{1,2})?)"
_SYMBOL = r"(?:\$|€|£|¥)"


@dataclass(frozen=True)
class BidPattern:
    """
    A number-extraction pattern.

    is_increment: the number is added to the current bid ("+50", "plus 20")
    is_direct: the pattern itself says "money" or "bid"
    """
    name: str
    regex: re.Pattern
    is_increment: bool = False
    is_direct: bool = False


# Ordered from most to least specific. All matches of all patterns are
# scored; the order only decides which of two equal scores is kept.
BID_PATTERNS: list[BidPattern] = [
    BidPattern("currency_symbol", re.compile(_SYMBOL + _NUMBER), is_direct=True),
    BidPattern("currency_word", re.compile(_NUMBER + r"\s*(?:dollars?|eur|gbp|jpy|aud)")),
    BidPattern("bid_word", re.compile(r"bid\s*" + _SYMBOL + "?" + _NUMBER), is_direct=True),
    BidPattern("plus_sign", re.compile(r"\+\s*" + _SYMBOL + "?" + _NUMBER), is_increment=True, is_direct=True),
    BidPattern("plus_word", re.compile(r"plus\s*" + _SYMBOL + "?" + _NUMBER), is_increment=True, is_direct=True),
    BidPattern("add_word", re.compile(r"add\s*" + _SYMBOL + "?" + _NUMBER), is_increment=True, is_direct=True),
    BidPattern("bare_number", re.compile(_NUMBER)),
]

# Words that make a nearby number more likely to be a bid
BID_KEYWORDS = [
    "bid", "bidding", "offer", "auction", "dollar", "dollars", "aud", "au",
    "plus", "add", "increase", "raise", "higher", "more", "up", "mine", "in",
]

# Any of these anywhere in the comment and it is not treated as a bid
NON_BID_KEYWORDS = [
    "question", "ask", "wondering", "curious", "interested", "available",
    "sold", "gone", "taken", "withdrawn", "cancel", "retract", "not a bid",
    "for sale", "iso", "in search of",
]

DEFAULT_THRESHOLD = 0.5
MAX_BID_AMOUNT = 1_000_000
FALLBACK_URL_BASE = "https://facebook.com"


# =============================================================================
# CLASSIFIER
# =============================================================================

@dataclass
class _Match:
    amount: float
    score: float
    pattern: BidPattern


class BidClassifier:
    """
    Detects bids in Facebook comments.

    Scoring weights are class attributes so they can be tuned in one place.

    Usage:
        classifier = BidClassifier()
        candidate = classifier.classify(comment)
    """

    BASE_CONFIDENCE = 0.4
    INCREMENT_BONUS = 0.2
    KEYWORD_BONUS = 0.15
    DIRECT_PATTERN_BONUS = 0.3
    COMMON_NUMBER_PENALTY = 0.05
    LATE_MATCH_PENALTY = 0.1

    CONTEXT_WINDOW = 30  # Characters inspected on each side of a match
    LATE_MATCH_OFFSET = 50

    def __init__(self, threshold: float = DEFAULT_THRESHOLD):
        self.threshold = threshold

    def classify(self, comment: RawComment) -> Optional[CandidateBid]:
        """
        Classify a single comment.

        Args:
            comment: The raw comment to inspect

        Returns:
            CandidateBid if the comment reads as a bid, None otherwise
        """
        message = self.normalize(comment.text)

        if not message or self._has_non_bid_keyword(message):
            return None

        best = self.best_match(message)
        if best is None or best.score < self.threshold:
            return None

        return CandidateBid(
            amount=best.amount,
            confidence=min(1.0, max(0.0, best.score)),
            is_increment=best.pattern.is_increment,
            comment_id=comment.id,
            bidder_name=comment.author_name,
            bidder_id=comment.author_id,
            comment_url=comment.permalink or f"{FALLBACK_URL_BASE}/{comment.id}",
            timestamp=self._comment_time(comment),
        )

    def classify_many(self, comments: list[RawComment]) -> list[CandidateBid]:
        """Classify a batch of comments, keeping only detected bids (input order)."""
        candidates = []
        for comment in comments:
            candidate = self.classify(comment)
            if candidate:
                candidates.append(candidate)

        logger.debug(f"Detected {len(candidates)} bids in {len(comments)} comments")
        return candidates

    @staticmethod
    def normalize(text: Optional[str]) -> str:
        """Lower-case and drop thousands separators ("1,200" -> "1200")."""
        if not text:
            return ""
        return text.lower().replace(",", "")

    def best_match(self, message: str) -> Optional[_Match]:
        """
        Score every number match in a normalized message.

        Returns:
            The highest-scoring match (first one wins ties), or None
        """
        best: Optional[_Match] = None

        for pattern in BID_PATTERNS:
            for match in pattern.regex.finditer(message):
                amount = float(match.group(1).replace(",", "."))

                if not 0 < amount < MAX_BID_AMOUNT:
                    continue

                score = self._score(message, match, amount, pattern)
                if best is None or score > best.score:
                    best = _Match(amount=amount, score=score, pattern=pattern)

        return best

    def _score(self, message: str, match: re.Match, amount: float, pattern: BidPattern) -> float:
        score = self.BASE_CONFIDENCE

        if pattern.is_increment:
            score += self.INCREMENT_BONUS

        context = message[max(0, match.start() - self.CONTEXT_WINDOW):match.end() + self.CONTEXT_WINDOW]
        keyword_count = sum(1 for keyword in BID_KEYWORDS if keyword in context)
        score += keyword_count * self.KEYWORD_BONUS

        if pattern.is_direct:
            score += self.DIRECT_PATTERN_BONUS

        # Small or round numbers are often quantities, sizes or years
        if amount < 10 or amount % 100 == 0:
            score -= self.COMMON_NUMBER_PENALTY
        if match.start() > self.LATE_MATCH_OFFSET:
            score -= self.LATE_MATCH_PENALTY

        return score

    def _has_non_bid_keyword(self, message: str) -> bool:
        return any(keyword in message for keyword in NON_BID_KEYWORDS)

    def _comment_time(self, comment: RawComment):
        timestamp = parse_timestamp(comment.created_at)
        if timestamp is None:
            logger.warning(f"Unparseable timestamp {comment.created_at!r} on comment {comment.id}, using now")
            return utc_now()
        return timestamp


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def classify_comment(comment: RawComment, threshold: float = DEFAULT_THRESHOLD) -> Optional[CandidateBid]:
    """
    Convenience function to classify one comment.

    Args:
        comment: The raw comment
        threshold: Minimum confidence to accept

    Returns:
        CandidateBid or None
    """
    return BidClassifier(threshold=threshold).classify(comment)


def classify_message(message: str, threshold: float = DEFAULT_THRESHOLD) -> Optional[CandidateBid]:
    """Classify an ad-hoc message (diagnostic "test this message" tool)."""
    comment = RawComment(
        id="test_comment",
        text=message,
        author_name="Test User",
        author_id="test_user",
        created_at=utc_now(),
        permalink=f"{FALLBACK_URL_BASE}/test_comment",
    )
    return classify_comment(comment, threshold=threshold)
