"""Reddit OAuth API adapter: token exchange, listings and comment trees."""

import asyncio
import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from reddivox.adapters.reddit_adapter import RedditAdapter
from reddivox.core.exceptions import (
    AuthError,
    FetchDecodeError,
    FetchNetworkError,
    IncompleteCredentialsError,
    PostNotFoundError,
)
from reddivox.core.types import (
    EPOCH,
    REDDIT_WEB_URL,
    AuthenticatedSession,
    AwardCounts,
    Comment,
    Post,
    RedditCredentials,
)

logger = logging.getLogger("reddivox")

TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
API_BASE_URL = "https://oauth.reddit.com"
INSTALLED_CLIENT_GRANT = "https://oauth.reddit.com/grants/installed_client"

# Refresh a little before the platform-reported expiry
_TOKEN_EXPIRY_SKEW_SEC = 60


class RateLimiter:
    """Minimum-interval request pacer shared by concurrent fetches.

    Only spaces requests out. It never retries a failed request.
    """

    def __init__(self, interval_sec: float = 1.0):
        self._interval = interval_sec
        self._last_request_time: float = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Wait if needed to respect the minimum interval, then record the request."""
        async with self._lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self._interval:
                sleep_time = self._interval - elapsed
                logger.debug(f"Rate limiter: sleeping {sleep_time:.2f}s")
                await asyncio.sleep(sleep_time)
            self._last_request_time = time.monotonic()


class RedditOAuthAdapter(RedditAdapter):
    """Fetches Reddit data over the authenticated OAuth API with httpx."""

    def __init__(
        self,
        user_agent: str = "desktop:reddivox:v1.0.0",
        request_interval_sec: float = 1.0,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._user_agent = user_agent
        self._rate_limiter = RateLimiter(request_interval_sec)
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None
        self._session: Optional[AuthenticatedSession] = None
        self._credentials: Optional[RedditCredentials] = None
        # Installed-client grant requires a stable 20-30 char device id
        self._device_id = uuid.uuid4().hex[:30]

    @property
    def session(self) -> Optional[AuthenticatedSession]:
        return self._session

    async def authenticate(self, credentials: RedditCredentials) -> AuthenticatedSession:
        missing = credentials.missing_fields()
        if missing:
            logger.error(f"Reddit credentials incomplete, missing: {', '.join(missing)}")
            raise IncompleteCredentialsError(
                f"Reddit credentials are not fully configured (missing: {', '.join(missing)})"
            )

        if credentials.uses_password_grant:
            form = {
                "grant_type": "password",
                "username": credentials.username,
                "password": credentials.password,
            }
            logger.info(f"Requesting Reddit token for user '{credentials.username}'")
        else:
            form = {"grant_type": INSTALLED_CLIENT_GRANT, "device_id": self._device_id}
            logger.info("Requesting Reddit installed-client token")

        try:
            response = await self._client.post(
                TOKEN_URL,
                data=form,
                auth=(credentials.app_id, credentials.app_secret),
                headers={"User-Agent": credentials.user_agent},
            )
        except httpx.HTTPError as e:
            raise AuthError(f"Could not reach Reddit token endpoint: {e}") from e

        if not response.is_success:
            raise AuthError(f"Reddit token endpoint rejected credentials ({response.status_code})")

        try:
            payload = response.json()
        except ValueError as e:
            raise AuthError("Reddit token endpoint returned a non-JSON body") from e

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            reason = payload.get("error", "no access_token") if isinstance(payload, dict) else "bad envelope"
            raise AuthError(f"Reddit token response invalid: {reason}")

        expires_at = None
        expires_in = payload.get("expires_in")
        if isinstance(expires_in, (int, float)) and expires_in > 0:
            expires_at = datetime.now(timezone.utc) + timedelta(
                seconds=max(0, expires_in - _TOKEN_EXPIRY_SKEW_SEC)
            )

        self._session = AuthenticatedSession(
            access_token=token,
            token_type=str(payload.get("token_type", "bearer")),
            scope=str(payload.get("scope", "")),
            expires_at=expires_at,
        )
        self._credentials = credentials
        self._user_agent = credentials.user_agent
        logger.info("Reddit authentication succeeded")
        return self._session

    async def get_top_posts(self, subreddit: str, time_filter: str = "day",
                            limit: int = 25) -> list[Post]:
        data = await self._fetch_json(f"/r/{subreddit}/top", {"limit": limit, "t": time_filter})
        return self._parse_listing(data)

    async def get_post(self, post_id: str) -> Post:
        data = await self._fetch_json("/api/info", {"id": f"t3_{post_id}"})
        posts = self._parse_listing(data)
        if not posts:
            raise PostNotFoundError(f"Post '{post_id}' not found")
        return posts[0]

    async def get_post_comments(self, post_id: str, limit: int = 50,
                                max_depth: int = 1) -> list[Comment]:
        # The platform counts the top level as depth 1
        params = {"sort": "top", "limit": limit, "depth": max_depth + 1}
        data = await self._fetch_json(f"/comments/{post_id}", params)

        # Response is a list of 2 Listings: [0] = post, [1] = comments
        if not isinstance(data, list) or len(data) < 2:
            raise FetchDecodeError("Unexpected comment response format")

        comments = []
        for child in self._listing_children(data[1]):
            parsed = self._parse_comment(child, level=0, max_depth=max_depth)
            if parsed:
                comments.append(parsed)
        return comments[:limit]

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _ensure_session(self) -> AuthenticatedSession:
        if self._session is None or self._credentials is None:
            raise AuthError("Reddit client is not authenticated. Call authenticate() first.")
        if self._session.is_expired():
            logger.info("Reddit access token expired, re-authenticating")
            await self.authenticate(self._credentials)
        return self._session

    async def _fetch_json(self, path: str, params: dict) -> Any:
        """GET an OAuth API path and decode the JSON body.

        Handles: pacing, transport errors, 404 / redirect as not-found,
        other non-2xx statuses, HTML bot-detection pages and bad JSON.
        """
        session = await self._ensure_session()
        await self._rate_limiter.wait()

        url = f"{API_BASE_URL}{path}"
        headers = {
            "Authorization": session.authorization_header(),
            "User-Agent": self._user_agent,
            "Accept": "application/json",
        }
        try:
            response = await self._client.get(url, params={**params, "raw_json": 1}, headers=headers)
        except httpx.TimeoutException as e:
            raise FetchNetworkError(f"Request timed out: {path}") from e
        except httpx.HTTPError as e:
            raise FetchNetworkError(f"Request failed for {path}: {e}") from e

        if response.status_code == 404 or response.is_redirect:
            # Unknown subreddits redirect to the search page
            raise PostNotFoundError(f"Not found: {path}")
        if not response.is_success:
            raise FetchNetworkError(
                f"Reddit API error ({response.status_code}) for {path}",
                status_code=response.status_code,
            )

        content_type = response.headers.get("Content-Type", "")
        if "json" not in content_type and "text/html" in content_type:
            raise FetchDecodeError("Reddit returned HTML instead of JSON")

        try:
            return response.json()
        except ValueError as e:
            raise FetchDecodeError(f"Invalid JSON from {path}: {e}") from e

    @staticmethod
    def _listing_children(listing: Any) -> list:
        """children[] of a Listing, validating the envelope."""
        data = listing.get("data") if isinstance(listing, dict) else None
        children = data.get("children") if isinstance(data, dict) else None
        if not isinstance(children, list):
            raise FetchDecodeError("Listing payload has no data.children array")
        return children

    @classmethod
    def _parse_listing(cls, data: Any) -> list[Post]:
        posts = []
        for child in cls._listing_children(data):
            if not isinstance(child, dict) or child.get("kind") != "t3":
                continue
            try:
                posts.append(cls._parse_post(child.get("data") or {}))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping unmappable post entry: {e}")
        return posts

    @classmethod
    def _parse_post(cls, d: dict) -> Post:
        """Map a t3 data object onto Post."""
        is_self = bool(d.get("is_self", True))
        selftext = ""
        if is_self:
            selftext = d.get("selftext") or ""
            if not selftext.strip():
                selftext = d.get("selftext_html") or ""

        permalink = d.get("permalink") or ""
        return Post(
            id=d.get("id") or "",
            title=d.get("title") or "",
            author=d.get("author") or "",
            subreddit=d.get("subreddit") or "",
            score=int(d.get("score") or 0),
            num_comments=int(d.get("num_comments") or 0),
            over_18=bool(d.get("over_18", False)),
            created_utc=cls._parse_timestamp(d.get("created_utc")),
            url=f"{REDDIT_WEB_URL}{permalink}" if permalink else "",
            selftext=selftext,
            awards=cls._parse_awards(d.get("gildings")),
            total_awards=int(d.get("total_awards_received") or 0),
        )

    @classmethod
    def _parse_comment(cls, item: Any, level: int = 0, max_depth: int = 1,
                       ancestors: frozenset = frozenset()) -> Optional[Comment]:
        """Recursively map a comment JSON object onto Comment.

        Replies are kept while level < max_depth. "more" placeholders and
        non-comment kinds are dropped.
        """
        if not isinstance(item, dict):
            return None
        if item.get("kind") == "more":
            logger.debug("Skipping collapsed 'more' comments placeholder")
            return None
        if item.get("kind") != "t1":
            return None

        d = item.get("data")
        if not isinstance(d, dict):
            return None
        comment_id = d.get("id") or ""
        if not comment_id or comment_id in ancestors:
            logger.warning(f"Skipping comment with empty or cyclic id '{comment_id}'")
            return None

        replies = []
        # replies is "" when there are none, a Listing dict otherwise
        raw_replies = d.get("replies")
        if level < max_depth and isinstance(raw_replies, dict):
            lineage = ancestors | {comment_id}
            for child in cls._listing_children(raw_replies):
                parsed = cls._parse_comment(child, level + 1, max_depth, lineage)
                if parsed:
                    replies.append(parsed)

        try:
            return Comment(
                id=comment_id,
                author=d.get("author") or "",
                body=d.get("body") or "",
                body_html=d.get("body_html") or "",
                score=int(d.get("score") or 0),
                created_utc=cls._parse_timestamp(d.get("created_utc")),
                is_submitter=bool(d.get("is_submitter", False)),
                awards=cls._parse_awards(d.get("gildings")),
                replies=tuple(replies),
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping unmappable comment '{comment_id}': {e}")
            return None

    @staticmethod
    def _parse_awards(gildings: Any) -> AwardCounts:
        if not isinstance(gildings, dict):
            return AwardCounts()
        return AwardCounts(
            platinum=int(gildings.get("gid_3") or 0),
            gold=int(gildings.get("gid_2") or 0),
            silver=int(gildings.get("gid_1") or 0),
        )

    @staticmethod
    def _parse_timestamp(value: Any) -> datetime:
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return EPOCH
