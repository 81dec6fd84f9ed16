"""
Supabase database integration module.

Handles all database operations:
- Auctions (CRUD and the running bid aggregate)
- Bids recorded against auctions
- Admin settings

Tables required:
- auctions: One row per auction, including current_bid / highest_bidder / total_bids
- bids: Manual and auto-detected bids (comment_url identifies detected ones)
- settings: A single row (id = 1) of admin settings
"""

import json
import logging
from datetime import datetime
from typing import Any, Callable, Optional
from supabase import create_client, Client

from .config import get_supabase_config
from .models import (
    Auction,
    AuctionBidState,
    AuctionStatus,
    Bid,
    Settings,
    utc_now,
)

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1

# PostgREST caps unranged selects at this many rows
PAGE_SIZE = 1000


class Database:
    """
    Supabase database client wrapper.

    Provides methods for all database operations needed by the bid tracker.
    """

    def __init__(self, client: Optional[Client] = None):
        """Initialize Supabase client."""
        if client is None:
            config = get_supabase_config()
            if not config.url or not config.key:
                raise ValueError("Supabase URL and key must be set in environment variables")
            client = create_client(config.url, config.key)
        self._client: Client = client

    @property
    def client(self) -> Client:
        """Get the Supabase client."""
        return self._client

    def _select_all(self, build_query: Callable[[], Any]) -> list[dict]:
        """
        Run a select page by page until a short page comes back.

        build_query must return a fresh, stably ordered query on every call.
        """
        rows: list[dict] = []
        start = 0
        while True:
            result = build_query().range(start, start + PAGE_SIZE - 1).execute()
            rows.extend(result.data)
            if len(result.data) < PAGE_SIZE:
                return rows
            start += PAGE_SIZE

    # =========================================================================
    # AUCTION OPERATIONS
    # =========================================================================

    def list_auctions(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
    ) -> list[Auction]:
        """
        List auctions, newest first.

        Args:
            status: Filter by status ("all" or None for every status)
            search: Case-insensitive match on title, group name or description
            limit: Maximum number of auctions

        Returns:
            List of Auction objects
        """
        query = self._client.table("auctions").select("*")

        if status and status != "all":
            query = query.eq("status", status)
        if search:
            pattern = f"%{search}%"
            query = query.or_(
                f"title.ilike.{pattern},group_name.ilike.{pattern},description.ilike.{pattern}"
            )

        result = query.order("created_at", desc=True).limit(limit).execute()
        return [Auction.from_dict(data) for data in result.data]

    def get_active_auctions(self) -> list[Auction]:
        """Get all active auctions."""
        rows = self._select_all(
            lambda: self._client.table("auctions").select("*").eq("status", AuctionStatus.ACTIVE.value).order("id")
        )
        return [Auction.from_dict(data) for data in rows]

    def get_all_auctions(self) -> list[Auction]:
        """Get every auction (for statistics)."""
        rows = self._select_all(lambda: self._client.table("auctions").select("*").order("id"))
        return [Auction.from_dict(data) for data in rows]

    def get_auction(self, auction_id: str) -> Optional[Auction]:
        """Get an auction by ID."""
        result = self._client.table("auctions").select("*").eq("id", auction_id).execute()
        return Auction.from_dict(result.data[0]) if result.data else None

    def create_auction(self, fields: dict) -> Auction:
        """
        Create a new auction.

        The bid aggregate always starts from the given opening bid with no bids.
        """
        now = utc_now().isoformat()
        data = {
            **fields,
            "current_bid": fields.get("current_bid") or 0,
            "total_bids": 0,
            "status": AuctionStatus.ACTIVE.value,
            "created_at": now,
            "updated_at": now,
        }

        result = self._client.table("auctions").insert(data).execute()
        auction = Auction.from_dict(result.data[0])
        logger.info(f"Created auction: {auction.id} ({auction.title})")
        return auction

    def update_auction(self, auction_id: str, fields: dict) -> Optional[Auction]:
        """Update an auction. Returns None if it does not exist."""
        data = {**fields, "updated_at": utc_now().isoformat()}
        data.pop("id", None)

        result = self._client.table("auctions").update(data).eq("id", auction_id).execute()
        if not result.data:
            return None

        logger.debug(f"Updated auction: {auction_id}")
        return Auction.from_dict(result.data[0])

    def delete_auction(self, auction_id: str) -> bool:
        """Delete an auction and its bids. Returns False if it did not exist."""
        self._client.table("bids").delete().eq("auction_id", auction_id).execute()
        result = self._client.table("auctions").delete().eq("id", auction_id).execute()

        if not result.data:
            return False

        logger.info(f"Deleted auction: {auction_id}")
        return True

    def update_auction_bid_state(
        self,
        auction_id: str,
        previous: AuctionBidState,
        updated: AuctionBidState,
    ) -> bool:
        """
        Write a new bid aggregate if the stored one still equals previous.

        This is a compare-and-swap on current_bid and total_bids: two syncs
        of the same auction cannot both apply their result.

        Returns:
            True if the update was applied, False if the auction changed meanwhile
        """
        result = (
            self._client.table("auctions")
            .update({
                "current_bid": updated.current_bid,
                "highest_bidder": updated.highest_bidder_name,
                "total_bids": updated.total_bid_count,
                "updated_at": utc_now().isoformat(),
            })
            .eq("id", auction_id)
            .eq("current_bid", previous.current_bid)
            .eq("total_bids", previous.total_bid_count)
            .execute()
        )

        applied = bool(result.data)
        if applied:
            logger.info(
                f"Auction {auction_id} bid state: {previous.current_bid} -> {updated.current_bid} "
                f"({updated.total_bid_count} bids)"
            )
        else:
            logger.warning(f"Auction {auction_id} changed during sync, bid state not written")
        return applied

    def close_ended_auctions(self, now: Optional[datetime] = None) -> int:
        """
        Mark active auctions whose end time has passed as ended.

        Returns:
            Number of auctions closed
        """
        now = now or utc_now()
        result = (
            self._client.table("auctions")
            .update({"status": AuctionStatus.ENDED.value, "updated_at": now.isoformat()})
            .eq("status", AuctionStatus.ACTIVE.value)
            .lt("end_time", now.isoformat())
            .execute()
        )

        closed = len(result.data)
        logger.info(f"Closed {closed} ended auctions")
        return closed

    # =========================================================================
    # BID OPERATIONS
    # =========================================================================

    def list_bids(self, auction_id: Optional[str] = None, limit: int = 100) -> list[Bid]:
        """List bids, newest first, optionally for one auction."""
        query = self._client.table("bids").select("*")

        if auction_id:
            query = query.eq("auction_id", auction_id)

        result = query.order("timestamp", desc=True).limit(limit).execute()
        return [Bid.from_dict(data) for data in result.data]

    def get_all_bids(self) -> list[Bid]:
        """Get every bid (for statistics)."""
        rows = self._select_all(lambda: self._client.table("bids").select("*").order("id"))
        return [Bid.from_dict(data) for data in rows]

    def insert_bid(self, bid: Bid) -> Bid:
        """Insert a bid and return it with its database ID."""
        data = bid.to_dict()
        data.pop("id", None)

        result = self._client.table("bids").insert(data).execute()
        stored = Bid.from_dict(result.data[0])
        logger.info(f"Recorded bid {stored.id}: {stored.bidder_name} ${stored.amount} on auction {stored.auction_id}")
        return stored

    def get_recorded_comment_urls(self, auction_id: str) -> set[str]:
        """Comment URLs of the auction's auto-detected bids."""
        rows = self._select_all(
            lambda: self._client.table("bids")
            .select("id, comment_url")
            .eq("auction_id", auction_id)
            .order("id")
        )
        return {row["comment_url"] for row in rows if row.get("comment_url")}

    def clear_winning_bids(self, auction_id: str) -> None:
        """Mark every winning bid of an auction as no longer winning."""
        self._client.table("bids").update({"is_winning": False}).eq("auction_id", auction_id).eq("is_winning", True).execute()
        logger.debug(f"Cleared winning bids for auction {auction_id}")

    # =========================================================================
    # SETTINGS OPERATIONS
    # =========================================================================

    def get_settings(self) -> Settings:
        """Get the settings row, creating it with defaults if missing."""
        result = self._client.table("settings").select("*").eq("id", SETTINGS_ROW_ID).execute()

        if result.data:
            data = result.data[0]
            if isinstance(data.get("notifications"), str):
                data["notifications"] = json.loads(data["notifications"])
            return Settings.from_dict(data)

        settings = Settings()
        self._save_settings(settings)
        logger.info("Created default settings")
        return settings

    def update_settings(self, fields: dict) -> Settings:
        """
        Update settings with the given fields.

        Raises:
            ValueError: if the resulting settings are invalid
        """
        current = self.get_settings().to_dict()

        notifications = {**current["notifications"], **(fields.get("notifications") or {})}
        merged = {**current, **fields, "notifications": notifications}

        settings = Settings.from_dict(merged)
        self._save_settings(settings)
        logger.info("Updated settings")
        return settings

    def _save_settings(self, settings: Settings) -> None:
        data = settings.to_dict()
        data["id"] = SETTINGS_ROW_ID
        data["notifications"] = json.dumps(data["notifications"])
        self._client.table("settings").upsert(data).execute()


# Global database instance (lazy loaded)
_db: Optional[Database] = None


def get_db() -> Database:
    """Get database instance (singleton)."""
    global _db
    if _db is None:
        _db = Database()
    return _db
