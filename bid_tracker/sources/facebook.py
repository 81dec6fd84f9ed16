"""
Facebook comment source.

Fetches the comments of a Facebook post. The Graph API is used when an
access token is configured; otherwise (or when the API call fails) the
lightweight mbasic.facebook.com rendering of the post is scraped.

Note: Graph API access to group posts needs an app with the groups
permissions and an admin of the group. Scraping is fragile and only sees
what a logged-out visitor sees.
"""

import re
import logging
from typing import Optional
from urllib.parse import parse_qs, urlparse

import requests
from bs4 import BeautifulSoup

from .base import BaseCommentSource, CommentFetchError
from ..config import FacebookConfig, get_facebook_config
from ..models import RawComment, parse_timestamp, utc_now

logger = logging.getLogger(__name__)


class FacebookApiError(CommentFetchError):
    """Raised when the Graph API returns an error or cannot be reached."""


# =============================================================================
# POST URL HANDLING
# =============================================================================

POST_ID_PATTERNS = [
    # Standard permalink formats (also cover group and m.facebook.com permalinks)
    re.compile(r"/permalink/(\d+)"),
    re.compile(r"/posts/(\d+)"),
    re.compile(r"/story\.php\?(?:[^#]*&)?story_fbid=(\d+)"),
    re.compile(r"/permalink\.php\?(?:[^#]*&)?story_fbid=(\d+)"),
]


def extract_post_id(url: str) -> Optional[str]:
    """
    Extract the numeric post ID from a Facebook post URL.

    Args:
        url: Post URL (www, m. or mbasic., page, profile or group post)

    Returns:
        The post ID or None if the URL has no recognizable post ID
    """
    if not url:
        return None

    for pattern in POST_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)

    return None


def validate_facebook_url(url: str) -> bool:
    """True if url is a facebook.com URL with an extractable post ID."""
    return bool(url) and "facebook.com" in url and extract_post_id(url) is not None


def to_mbasic_url(url: str) -> str:
    """Rewrite a Facebook URL to its mbasic.facebook.com equivalent."""
    return re.sub(r"^https?://(?:[a-z]+\.)?facebook\.com", "https://mbasic.facebook.com", url)


def validate_access_token(access_token: str, config: Optional[FacebookConfig] = None) -> bool:
    """Check an access token against the Graph API /me endpoint."""
    config = config or get_facebook_config()
    try:
        response = requests.get(
            f"{config.api_base}/me",
            params={"access_token": access_token},
            timeout=10,
        )
        return response.ok
    except requests.RequestException as e:
        logger.error(f"Error validating access token: {e}")
        return False


# =============================================================================
# SOURCE
# =============================================================================

class FacebookCommentSource(BaseCommentSource):
    """
    Comment source for Facebook posts.

    Usage:
        source = FacebookCommentSource()
        comments = source.fetch_comments("https://www.facebook.com/groups/x/posts/123")
    """

    name = "facebook"

    GRAPH_FIELDS = "id,message,from,created_time,permalink_url"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        facebook_config: Optional[FacebookConfig] = None,
    ):
        super().__init__(session=session)
        self.facebook_config = facebook_config or get_facebook_config()

    def fetch_comments(self, post_url: str) -> list[RawComment]:
        """
        Fetch comments for a post, preferring the Graph API.

        Raises:
            ValueError: if post_url is not a Facebook post URL
            CommentFetchError: if neither the API nor scraping worked
        """
        post_id = extract_post_id(post_url)
        if not post_id:
            raise ValueError(f"Could not extract post ID from Facebook URL: {post_url}")

        if self.facebook_config.has_token:
            try:
                comments = self.fetch_via_api(post_id)
                logger.info(f"Fetched {len(comments)} comments via Graph API for post {post_id}")
                return comments
            except FacebookApiError as e:
                logger.warning(f"Graph API failed for post {post_id}, falling back to scraping: {e}")

        comments = self.scrape(post_url)
        logger.info(f"Scraped {len(comments)} comments for post {post_id}")
        return comments

    # =========================================================================
    # GRAPH API
    # =========================================================================

    def fetch_via_api(self, post_id: str) -> list[RawComment]:
        """
        Fetch all comments of a post from the Graph API, following paging.

        Raises:
            FacebookApiError: on request failures or error payloads
        """
        url = f"{self.facebook_config.api_base}/{post_id}/comments"
        params: Optional[dict] = {
            "fields": self.GRAPH_FIELDS,
            "limit": self.config.comment_page_limit,
            "access_token": self.facebook_config.access_token,
        }

        comments = []
        while url:
            response = self._get(url, params=params, headers={"Accept": "application/json"})
            if response is None:
                raise FacebookApiError(f"Graph API request failed for post {post_id}")

            try:
                data = response.json()
            except ValueError as e:
                raise FacebookApiError(f"Graph API returned invalid JSON: {e}") from e

            if "error" in data:
                message = data["error"].get("message", "Unknown error")
                raise FacebookApiError(f"Facebook API Error: {message}")

            comments.extend(RawComment.from_graph_dict(item) for item in data.get("data", []))

            # The "next" URL already carries every query parameter
            url = (data.get("paging") or {}).get("next")
            params = None

        return comments

    # =========================================================================
    # SCRAPING
    # =========================================================================

    def scrape(self, post_url: str) -> list[RawComment]:
        """
        Scrape comments from the mbasic rendering of a post.

        Raises:
            CommentFetchError: if the page could not be fetched
        """
        page_url = to_mbasic_url(post_url)
        response = self._get(page_url)
        if response is None:
            raise CommentFetchError(f"Could not fetch post page {page_url}")

        return self.parse_comments_html(response.text, post_url)

    def parse_comments_html(self, html: str, post_url: str) -> list[RawComment]:
        """
        Extract comments from mbasic post HTML.

        Each comment is a div with a numeric id holding an h3 with the
        author link, the comment body in the div after it, and an abbr
        whose data-utime is the creation time.
        """
        soup = BeautifulSoup(html, "html.parser")
        comments = []

        for block in soup.find_all("div", id=re.compile(r"^\d+$")):
            header = block.find("h3")
            if header is None:
                continue

            author_link = header.find("a")
            author_name = (author_link or header).get_text(strip=True)
            author_id = self._author_id(author_link.get("href", "") if author_link else "")

            body = header.find_next_sibling("div")
            text = body.get_text(" ", strip=True) if body else ""

            abbr = block.find("abbr", attrs={"data-utime": True})
            created_at = None
            if abbr is not None and abbr["data-utime"].isdigit():
                created_at = parse_timestamp(int(abbr["data-utime"]))
            if created_at is None:
                logger.debug(f"No usable timestamp on comment {block['id']}, using fetch time")
                created_at = utc_now()

            comments.append(RawComment(
                id=block["id"],
                text=text,
                author_name=author_name,
                author_id=author_id or author_name,
                created_at=created_at,
                permalink=f"{post_url}#{block['id']}",
            ))

        return comments

    def _author_id(self, href: str) -> str:
        """Profile ID from "/profile.php?id=123" or the username from "/jane.doe"."""
        if not href:
            return ""

        parsed = urlparse(href)
        query = parse_qs(parsed.query)
        if "id" in query:
            return query["id"][0]

        return parsed.path.strip("/").split("/")[0]
