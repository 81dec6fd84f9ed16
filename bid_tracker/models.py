"""
Data models for Bid Tracker.

Defines the dataclasses shared by the bid detection core and the surrounding
application: raw Facebook comments, detected/resolved bids, the per-auction
bid aggregate, and the persisted auction, bid and settings records.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, Union
from enum import Enum


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> Optional[datetime]:
    """
    Parse a timestamp into an aware UTC datetime.

    Accepts datetimes (naive values are taken as UTC), ISO-8601 strings
    (a trailing "Z" is allowed, as Facebook returns) and epoch seconds.

    Returns:
        datetime or None if the value cannot be parsed
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        # Graph API uses "+0000" offsets, fromisoformat wants "+00:00"
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        elif len(text) > 5 and text[-5] in "+-" and text[-4:].isdigit():
            text = f"{text[:-2]}:{text[-2:]}"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class AuctionStatus(str, Enum):
    """Lifecycle states of an auction."""
    ACTIVE = "active"
    ENDED = "ended"
    CANCELLED = "cancelled"


class TimeFormat(str, Enum):
    TWELVE_HOUR = "12h"
    TWENTY_FOUR_HOUR = "24h"


# =============================================================================
# COMMENT / BID DETECTION MODELS
# =============================================================================

@dataclass
class RawComment:
    """
    A comment fetched from a Facebook post, before any bid detection.

    created_at is kept as delivered by the source (usually an ISO string);
    the classifier parses it.
    """
    id: str
    text: str
    author_name: str
    author_id: str
    created_at: Union[str, datetime]
    permalink: Optional[str] = None

    @classmethod
    def from_graph_dict(cls, data: dict) -> "RawComment":
        """Create from a Graph API comment object."""
        author = data.get("from") or {}
        return cls(
            id=str(data.get("id", "")),
            text=data.get("message") or "",
            author_name=author.get("name", ""),
            author_id=str(author.get("id", "")),
            created_at=data.get("created_time", ""),
            permalink=data.get("permalink_url"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "author_name": self.author_name,
            "author_id": self.author_id,
            "created_at": self.created_at.isoformat() if isinstance(self.created_at, datetime) else self.created_at,
            "permalink": self.permalink,
        }


@dataclass
class CandidateBid:
    """A bid the classifier found in a single comment."""
    amount: float
    confidence: float
    is_increment: bool

    # Identity carried over from the comment
    comment_id: str
    bidder_name: str
    bidder_id: str
    comment_url: str
    timestamp: datetime

    def to_dict(self) -> dict:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


@dataclass
class ResolvedBid(CandidateBid):
    """
    A candidate bid after increment resolution.

    resolved_amount is always an absolute value, even for increment bids.
    """
    resolved_amount: float = 0.0
    is_winning: bool = False
    note: str = ""

    @classmethod
    def from_candidate(
        cls,
        candidate: CandidateBid,
        resolved_amount: float,
        note: str,
        is_winning: bool = False,
    ) -> "ResolvedBid":
        return cls(
            amount=candidate.amount,
            confidence=candidate.confidence,
            is_increment=candidate.is_increment,
            comment_id=candidate.comment_id,
            bidder_name=candidate.bidder_name,
            bidder_id=candidate.bidder_id,
            comment_url=candidate.comment_url,
            timestamp=candidate.timestamp,
            resolved_amount=resolved_amount,
            is_winning=is_winning,
            note=note,
        )


@dataclass
class AuctionBidState:
    """The running bid aggregate of one auction."""
    current_bid: float = 0.0
    highest_bidder_name: Optional[str] = None
    total_bid_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ReconcileResult:
    """Output of a reconciliation pass."""
    resolved_bids: list[ResolvedBid]
    updated_state: AuctionBidState

    @property
    def winning_bid(self) -> Optional[ResolvedBid]:
        """The newly emitted bid that leads the auction, if any."""
        for bid in self.resolved_bids:
            if bid.is_winning:
                return bid
        return None


# =============================================================================
# PERSISTED RECORDS
# =============================================================================

@dataclass
class Auction:
    """
    An auction run in a Facebook group post.

    group_url is the post whose comments carry the bids.
    """
    id: str
    title: str
    description: str = ""
    group_name: str = ""
    group_url: str = ""

    # Timing
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: AuctionStatus = AuctionStatus.ACTIVE

    # Pricing
    current_bid: float = 0.0
    currency: str = "AUD"
    bid_increment: float = 50.0
    reserve_price: Optional[float] = None
    buy_it_now_price: Optional[float] = None

    # Aggregate
    highest_bidder: Optional[str] = None
    total_bids: int = 0

    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def bid_state(self) -> AuctionBidState:
        return AuctionBidState(
            current_bid=self.current_bid,
            highest_bidder_name=self.highest_bidder,
            total_bid_count=self.total_bids,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "group_name": self.group_name,
            "group_url": self.group_url,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "status": self.status.value,
            "current_bid": self.current_bid,
            "currency": self.currency,
            "bid_increment": self.bid_increment,
            "reserve_price": self.reserve_price,
            "buy_it_now_price": self.buy_it_now_price,
            "highest_bidder": self.highest_bidder,
            "total_bids": self.total_bids,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Auction":
        """Create from dictionary (e.g., from database)."""
        return cls(
            id=str(data["id"]),
            title=data["title"],
            description=data.get("description") or "",
            group_name=data.get("group_name") or "",
            group_url=data.get("group_url") or "",
            start_time=parse_timestamp(data.get("start_time")),
            end_time=parse_timestamp(data.get("end_time")),
            status=AuctionStatus(data.get("status", "active")),
            current_bid=float(data.get("current_bid") or 0.0),
            currency=data.get("currency") or "AUD",
            bid_increment=float(data.get("bid_increment") or 50.0),
            reserve_price=data.get("reserve_price"),
            buy_it_now_price=data.get("buy_it_now_price"),
            highest_bidder=data.get("highest_bidder"),
            total_bids=int(data.get("total_bids") or 0),
            created_at=parse_timestamp(data.get("created_at")) or utc_now(),
            updated_at=parse_timestamp(data.get("updated_at")) or utc_now(),
        )


@dataclass
class Bid:
    """A bid recorded against an auction (manual or auto-detected)."""
    auction_id: str
    bidder_name: str
    amount: float
    timestamp: datetime = field(default_factory=utc_now)
    is_winning: bool = False
    id: Optional[str] = None  # Assigned by the database
    bidder_id: Optional[str] = None
    comment_url: Optional[str] = None
    notes: Optional[str] = None
    confidence: Optional[float] = None
    is_increment: Optional[bool] = None

    @classmethod
    def from_resolved(cls, auction_id: str, resolved: ResolvedBid) -> "Bid":
        return cls(
            auction_id=auction_id,
            bidder_name=resolved.bidder_name,
            bidder_id=resolved.bidder_id,
            amount=resolved.resolved_amount,
            timestamp=resolved.timestamp,
            is_winning=resolved.is_winning,
            comment_url=resolved.comment_url,
            notes=resolved.note,
            confidence=resolved.confidence,
            is_increment=resolved.is_increment,
        )

    def to_dict(self) -> dict:
        data = {
            "auction_id": self.auction_id,
            "bidder_name": self.bidder_name,
            "bidder_id": self.bidder_id,
            "amount": self.amount,
            "timestamp": self.timestamp.isoformat(),
            "is_winning": self.is_winning,
            "comment_url": self.comment_url,
            "notes": self.notes,
            "confidence": self.confidence,
            "is_increment": self.is_increment,
        }
        if self.id is not None:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Bid":
        return cls(
            id=str(data["id"]) if data.get("id") is not None else None,
            auction_id=str(data["auction_id"]),
            bidder_name=data["bidder_name"],
            bidder_id=data.get("bidder_id"),
            amount=float(data["amount"]),
            timestamp=parse_timestamp(data.get("timestamp")) or utc_now(),
            is_winning=bool(data.get("is_winning", False)),
            comment_url=data.get("comment_url"),
            notes=data.get("notes"),
            confidence=data.get("confidence"),
            is_increment=data.get("is_increment"),
        )


@dataclass
class NotificationSettings:
    new_bid: bool = True
    auction_ending: bool = True
    auction_ended: bool = True
    email: bool = True
    push: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "NotificationSettings":
        defaults = cls()
        return cls(**{
            name: bool(data.get(name, getattr(defaults, name)))
            for name in ("new_bid", "auction_ending", "auction_ended", "email", "push")
        })


@dataclass
class Settings:
    """Admin settings (a single row)."""
    timezone: str = "Australia/Sydney"
    language: str = "en-AU"
    currency: str = "AUD"
    date_format: str = "DD/MM/YYYY"
    time_format: TimeFormat = TimeFormat.TWENTY_FOUR_HOUR
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    default_bid_increment: float = 50.0
    auto_archive_days: int = 30

    def __post_init__(self):
        if self.default_bid_increment < 1:
            raise ValueError("default_bid_increment must be at least 1")
        if self.auto_archive_days < 1:
            raise ValueError("auto_archive_days must be at least 1")

    def to_dict(self) -> dict:
        return {
            "timezone": self.timezone,
            "language": self.language,
            "currency": self.currency,
            "date_format": self.date_format,
            "time_format": self.time_format.value,
            "notifications": self.notifications.to_dict(),
            "default_bid_increment": self.default_bid_increment,
            "auto_archive_days": self.auto_archive_days,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        return cls(
            timezone=data.get("timezone", "Australia/Sydney"),
            language=data.get("language", "en-AU"),
            currency=data.get("currency", "AUD"),
            date_format=data.get("date_format", "DD/MM/YYYY"),
            time_format=TimeFormat(data.get("time_format", "24h")),
            notifications=NotificationSettings.from_dict(data.get("notifications") or {}),
            default_bid_increment=float(data.get("default_bid_increment", 50.0)),
            auto_archive_days=int(data.get("auto_archive_days", 30)),
        )


@dataclass
class DashboardStats:
    active_auctions: int = 0
    total_bids: int = 0
    total_value: float = 0.0
    auctions_ended_today: int = 0
    top_bidder: str = "No bids yet"
    average_bid_amount: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)
