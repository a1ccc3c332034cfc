"""Content source: authentication, ranked listings, comment trees, session dedup."""

import logging
from typing import Optional

from reddivox.adapters.reddit_adapter import RedditAdapter
from reddivox.core.dedup_store import SessionDedupStore
from reddivox.core.exceptions import InvalidArgumentError, PostNotFoundError
from reddivox.core.types import (
    TIME_FILTERS,
    AuthenticatedSession,
    Comment,
    Post,
    RedditCredentials,
)

logger = logging.getLogger("reddivox")

# Extra listing entries requested so that already-consumed posts can be skipped
OVERFETCH_MARGIN = 20

POST_TYPE_PREFIX = "t3_"


def extract_post_id(post_id_or_url: str) -> str:
    """Extract a bare post id from an id, a "t3_" id or a permalink URL.

    Examples:
        >>> extract_post_id("https://www.reddit.com/r/AskReddit/comments/abc123/title/")
        'abc123'
        >>> extract_post_id("t3_abc123")
        'abc123'
        >>> extract_post_id("abc123")
        'abc123'
    """
    value = (post_id_or_url or "").strip()
    if not value:
        return ""

    path = value.split("?", 1)[0].split("#", 1)[0]
    segments = path.split("/")
    if "/comments/" in path and "comments" in segments:
        index = segments.index("comments")
        return segments[index + 1].strip() if index + 1 < len(segments) else ""
    if value.startswith(POST_TYPE_PREFIX):
        return value[len(POST_TYPE_PREFIX):]
    return value


class ContentSource:
    """Orchestrates Reddit fetching with session-level deduplication.

    Responsibilities:
    - Authenticate via the RedditAdapter
    - Over-fetch ranked listings and skip posts consumed this session
    - Resolve posts from ids or permalinks
    - Fetch comment trees to a bounded depth

    "Observed" and "consumed" are kept apart: fetching never marks a post
    as consumed, callers do that with mark_consumed().
    """

    def __init__(self, reddit: RedditAdapter, dedup: Optional[SessionDedupStore] = None):
        self._reddit = reddit
        self._dedup = dedup if dedup is not None else SessionDedupStore()

    @property
    def dedup_store(self) -> SessionDedupStore:
        return self._dedup

    async def authenticate(self, credentials: RedditCredentials) -> AuthenticatedSession:
        """Exchange credentials for a bearer session.

        Raises:
            IncompleteCredentialsError: Credentials missing fields (no network call)
            AuthError: Token exchange failed
        """
        return await self._reddit.authenticate(credentials)

    async def fetch_top_posts(self, subreddit: str, time_filter: str = "day",
                              limit: int = 10) -> list[Post]:
        """Fetch up to `limit` top posts not yet consumed this session.

        Requests limit + OVERFETCH_MARGIN entries, drops consumed ids and
        returns the first `limit` survivors in rank order. Fewer results
        are not an error.

        Raises:
            InvalidArgumentError: Unknown time_filter or limit < 1
            FetchNetworkError, FetchDecodeError, PostNotFoundError
        """
        if time_filter not in TIME_FILTERS:
            raise InvalidArgumentError(f"Invalid time_filter '{time_filter}'. Must be one of {TIME_FILTERS}")
        if limit < 1:
            raise InvalidArgumentError("limit must be >= 1")

        logger.debug(f"Fetching top {limit} posts from r/{subreddit} ({time_filter})")
        candidates = await self._reddit.get_top_posts(subreddit, time_filter, limit + OVERFETCH_MARGIN)

        fresh = []
        for post in candidates:
            if self._dedup.contains(post.id):
                continue
            fresh.append(post)
            if len(fresh) >= limit:
                break

        skipped = len(candidates) - len(fresh)
        logger.info(f"Fetched {len(fresh)} fresh posts from r/{subreddit} "
                    f"({len(candidates)} listed, {skipped} skipped or beyond limit)")
        return fresh

    async def fetch_post(self, post_id_or_url: str) -> Post:
        """Fetch a single post by id, "t3_" id or permalink.

        Raises:
            PostNotFoundError: Id could not be extracted or post does not exist
            FetchNetworkError, FetchDecodeError
        """
        post_id = extract_post_id(post_id_or_url)
        if not post_id:
            logger.warning(f"Could not extract a post id from '{post_id_or_url}'")
            raise PostNotFoundError(f"Could not extract a post id from '{post_id_or_url}'")

        post = await self._reddit.get_post(post_id)
        logger.info(f"Fetched post {post.id}")
        return post

    async def fetch_comments(self, post_id: str, limit: int = 50,
                             max_depth: int = 1) -> list[Comment]:
        """Fetch top comments for a post down to `max_depth` reply levels.

        Raises:
            InvalidArgumentError: max_depth < 0
            FetchNetworkError, FetchDecodeError, PostNotFoundError
        """
        if max_depth < 0:
            raise InvalidArgumentError("max_depth must be >= 0")
        clean_id = extract_post_id(post_id)
        comments = await self._reddit.get_post_comments(clean_id, limit, max_depth)
        logger.info(f"Fetched {len(comments)} comments for post {clean_id}")
        return comments

    def mark_consumed(self, post_id: str) -> None:
        """Record a post as used this session. Idempotent."""
        self._dedup.add(extract_post_id(post_id))

    def is_consumed(self, post_id: str) -> bool:
        return self._dedup.contains(extract_post_id(post_id))

    async def close(self) -> None:
        await self._reddit.close()

    async def __aenter__(self) -> "ContentSource":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
