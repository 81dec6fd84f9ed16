"""
Configuration module for Bid Tracker.

Loads environment variables and provides configuration constants.
All sensitive values should be in .env file (never commit to git).
"""

import os
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


@dataclass
class SupabaseConfig:
    """Supabase connection configuration."""
    url: str
    key: str  # Service role key for server-side operations

    @classmethod
    def from_env(cls) -> "SupabaseConfig":
        return cls(
            url=os.getenv("SUPABASE_URL", ""),
            key=os.getenv("SUPABASE_KEY", ""),
        )


@dataclass
class FacebookConfig:
    """Facebook Graph API configuration."""
    access_token: str
    app_id: str
    app_secret: str
    api_version: str = "v18.0"

    @property
    def api_base(self) -> str:
        return f"https://graph.facebook.com/{self.api_version}"

    @property
    def has_token(self) -> bool:
        # Placeholder values like "xxx" in a copied .env are not real tokens
        return len(self.access_token) > 10

    @classmethod
    def from_env(cls) -> "FacebookConfig":
        return cls(
            access_token=os.getenv("FACEBOOK_ACCESS_TOKEN", ""),
            app_id=os.getenv("FACEBOOK_APP_ID", ""),
            app_secret=os.getenv("FACEBOOK_APP_SECRET", ""),
            api_version=os.getenv("FACEBOOK_API_VERSION", "v18.0"),
        )


@dataclass
class AppConfig:
    """Main application configuration."""
    # Minimum classifier confidence for a comment to count as a bid
    acceptance_threshold: float = 0.5

    # Sync settings
    sync_interval_minutes: int = 15
    max_sync_attempts: int = 3  # Retries when another sync updated the auction first
    comment_page_limit: int = 100

    # Fetching settings
    request_timeout: int = 30
    request_delay: float = 1.0  # Seconds between requests (be nice to servers)

    @classmethod
    def from_env(cls) -> "AppConfig":
        return cls(
            acceptance_threshold=float(os.getenv("BID_ACCEPTANCE_THRESHOLD", "0.5")),
            sync_interval_minutes=int(os.getenv("SYNC_INTERVAL_MINUTES", "15")),
            max_sync_attempts=int(os.getenv("MAX_SYNC_ATTEMPTS", "3")),
            comment_page_limit=int(os.getenv("COMMENT_PAGE_LIMIT", "100")),
            request_timeout=int(os.getenv("REQUEST_TIMEOUT", "30")),
            request_delay=float(os.getenv("REQUEST_DELAY", "1.0")),
        )


# Global configuration instances (lazy loaded)
_supabase_config: Optional[SupabaseConfig] = None
_facebook_config: Optional[FacebookConfig] = None
_app_config: Optional[AppConfig] = None


def get_supabase_config() -> SupabaseConfig:
    """Get Supabase configuration (cached)."""
    global _supabase_config
    if _supabase_config is None:
        _supabase_config = SupabaseConfig.from_env()
    return _supabase_config


def get_facebook_config() -> FacebookConfig:
    """Get Facebook configuration (cached)."""
    global _facebook_config
    if _facebook_config is None:
        _facebook_config = FacebookConfig.from_env()
    return _facebook_config


def get_app_config() -> AppConfig:
    """Get app configuration (cached)."""
    global _app_config
    if _app_config is None:
        _app_config = AppConfig.from_env()
    return _app_config
