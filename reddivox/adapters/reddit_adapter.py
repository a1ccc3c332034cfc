"""Abstract base class for Reddit data access."""

from abc import ABC, abstractmethod

from reddivox.core.types import AuthenticatedSession, Comment, Post, RedditCredentials


class RedditAdapter(ABC):
    """Abstract interface for authenticating and fetching Reddit data."""

    @abstractmethod
    async def authenticate(self, credentials: RedditCredentials) -> AuthenticatedSession:
        """Exchange application (and user) credentials for a bearer token.

        Raises:
            IncompleteCredentialsError: Required fields blank (no network call made)
            AuthError: Token endpoint rejected the credentials or sent garbage
        """
        ...

    @abstractmethod
    async def get_top_posts(self, subreddit: str, time_filter: str = "day",
                            limit: int = 25) -> list[Post]:
        """Fetch the ranked "top" listing of a subreddit.

        Args:
            subreddit: Subreddit name (without r/ prefix)
            time_filter: "hour", "day", "week", "month", "year", "all"
            limit: Number of posts to request

        Returns:
            List of Post in rank order

        Raises:
            FetchNetworkError, FetchDecodeError, PostNotFoundError
        """
        ...

    @abstractmethod
    async def get_post(self, post_id: str) -> Post:
        """Fetch a single post by bare id (no "t3_" prefix).

        Raises:
            PostNotFoundError: No such post
            FetchNetworkError, FetchDecodeError
        """
        ...

    @abstractmethod
    async def get_post_comments(self, post_id: str, limit: int = 50,
                                max_depth: int = 1) -> list[Comment]:
        """Fetch top-sorted comments for a post.

        Args:
            post_id: Bare post id
            limit: Number of top-level comments
            max_depth: Reply levels to keep (0 = top-level only)

        Returns:
            List of Comment (with nested replies)

        Raises:
            FetchNetworkError, FetchDecodeError, PostNotFoundError
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
