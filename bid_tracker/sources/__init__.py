"""
Sources package - Where auction comments come from.

Each source module handles:
1. Fetching the comments of a post (API or scraping)
2. Converting them into RawComment objects for bid detection
"""

from .base import BaseCommentSource, CommentFetchError
from .facebook import (
    FacebookApiError,
    FacebookCommentSource,
    extract_post_id,
    validate_access_token,
    validate_facebook_url,
)

__all__ = [
    "BaseCommentSource",
    "CommentFetchError",
    "FacebookApiError",
    "FacebookCommentSource",
    "extract_post_id",
    "validate_access_token",
    "validate_facebook_url",
]
