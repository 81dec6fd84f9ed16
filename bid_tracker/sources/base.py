"""
Base class for comment sources.

All sources inherit from BaseCommentSource and implement:
- fetch_comments(): Get the comments of a post as RawComment objects
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional
import requests

from ..config import get_app_config
from ..models import RawComment

logger = logging.getLogger(__name__)


class CommentFetchError(Exception):
    """Raised when a source cannot produce the comments of a post."""


class BaseCommentSource(ABC):
    """
    Abstract base class for comment sources.

    Provides common functionality:
    - HTTP requests with rate limiting
    - Error handling

    Subclasses must implement:
    - name: Short source name for logs
    - fetch_comments(): Get comments for a post
    """

    name: str  # Subclass must set this

    def __init__(self, session: Optional[requests.Session] = None):
        """Initialize the source."""
        self.config = get_app_config()
        self.session = session or requests.Session()

        # Set a reasonable user agent
        self.session.headers.update({
            "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) BidTracker/1.0",
            "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-AU,en;q=0.5",
        })

        self._last_request_time: float = 0

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.config.request_delay:
            time.sleep(self.config.request_delay - elapsed)
        self._last_request_time = time.time()

    def _get(self, url: str, **kwargs) -> Optional[requests.Response]:
        """
        Make a GET request with rate limiting and error handling.

        Args:
            url: The URL to fetch
            **kwargs: Additional arguments to pass to requests.get()

        Returns:
            Response object or None if request failed
        """
        self._rate_limit()

        try:
            kwargs.setdefault("timeout", self.config.request_timeout)
            response = self.session.get(url, **kwargs)
            response.raise_for_status()
            return response
        except requests.RequestException as e:
            logger.error(f"Request failed for {url}: {e}")
            return None

    @abstractmethod
    def fetch_comments(self, post_url: str) -> list[RawComment]:
        """
        Fetch the comments of a post.

        Raises:
            CommentFetchError: if no comments could be retrieved
        """
        pass

    def collect(self, post_url: str) -> list[RawComment]:
        """
        Best-effort entry point: fetch comments, never raise.

        Returns:
            List of RawComment objects (empty on failure)
        """
        logger.info(f"Collecting comments from {self.name} for {post_url}")

        try:
            comments = self.fetch_comments(post_url)
            logger.info(f"Collected {len(comments)} comments from {self.name}")
            return comments
        except Exception as e:
            logger.error(f"Comment collection failed for {post_url}: {e}")
            return []
