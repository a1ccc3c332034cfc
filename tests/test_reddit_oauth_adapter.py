"""Tests for RedditOAuthAdapter."""

import base64
from urllib.parse import parse_qs

import httpx
import pytest

from reddivox.adapters.reddit_oauth_adapter import (
    INSTALLED_CLIENT_GRANT,
    RedditOAuthAdapter,
)
from reddivox.core.exceptions import (
    AuthError,
    ConfigError,
    FetchDecodeError,
    FetchNetworkError,
    IncompleteCredentialsError,
    PostNotFoundError,
)
from reddivox.core.types import EPOCH, RedditCredentials

PASSWORD_CREDS = RedditCredentials(
    app_id="app-id", app_secret="app-secret", user_agent="test:reddivox:1.0",
    username="narrator", password="hunter2",
)
INSTALLED_CREDS = RedditCredentials(app_id="app-id", user_agent="test:reddivox:1.0")

TOKEN_OK = {"access_token": "tok-1", "token_type": "bearer", "expires_in": 3600, "scope": "*"}


# --- Helper: Create mock Reddit JSON responses ---

def make_post_data(**overrides):
    data = {
        "id": "abc123",
        "title": "Test Post",
        "selftext": "body",
        "selftext_html": "<p>body</p>",
        "author": "testuser",
        "subreddit": "AskReddit",
        "score": 42,
        "num_comments": 10,
        "over_18": False,
        "permalink": "/r/AskReddit/comments/abc123/test_post/",
        "created_utc": 1700000000.0,
        "is_self": True,
        "gildings": {},
        "total_awards_received": 0,
    }
    data.update(overrides)
    return data


def make_post_listing(*posts_data):
    """Create a Reddit listing response with post data."""
    return {"kind": "Listing", "data": {"children": [
        {"kind": "t3", "data": make_post_data(**p)} for p in posts_data
    ]}}


def make_comment(comment_id, body="test comment", replies=None, kind="t1", **overrides):
    data = {
        "id": comment_id,
        "author": "commenter",
        "body": body,
        "body_html": f"<p>{body}</p>",
        "score": 10,
        "created_utc": 1700000000.0,
        "is_submitter": False,
        "gildings": {},
        # Reddit sends "" when a comment has no replies
        "replies": {"kind": "Listing", "data": {"children": replies}} if replies else "",
    }
    data.update(overrides)
    return {"kind": kind, "data": data}


def make_comment_response(*comments):
    """Create a Reddit comments response (array of 2 listings)."""
    post_listing = make_post_listing({})
    comment_listing = {"kind": "Listing", "data": {"children": list(comments)}}
    return [post_listing, comment_listing]


class FakeReddit:
    """Routes MockTransport requests and records them."""

    def __init__(self, api_handler=None, token_status=200, token_json=None):
        self.requests = []
        self.token_requests = []
        self._api_handler = api_handler
        self._token_status = token_status
        self._token_json = token_json or TOKEN_OK

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/access_token":
            self.token_requests.append(request)
            return httpx.Response(self._token_status, json=self._token_json)
        self.requests.append(request)
        return self._api_handler(request)

    def adapter(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(self))
        return RedditOAuthAdapter(user_agent="test:reddivox:1.0", request_interval_sec=0, client=client)


def json_handler(payload, status_code=200):
    return lambda request: httpx.Response(status_code, json=payload)


class TestAuthenticate:
    """Test token exchange flows."""

    @pytest.mark.asyncio
    async def test_password_grant(self):
        fake = FakeReddit()
        adapter = fake.adapter()

        session = await adapter.authenticate(PASSWORD_CREDS)

        assert session.access_token == "tok-1"
        assert session.expires_at is not None
        request = fake.token_requests[0]
        assert request.method == "POST"
        assert request.url.host == "www.reddit.com"
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["password"]
        assert form["username"] == ["narrator"]
        assert form["password"] == ["hunter2"]
        expected = base64.b64encode(b"app-id:app-secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.headers["User-Agent"] == "test:reddivox:1.0"

    @pytest.mark.asyncio
    async def test_installed_client_grant(self):
        fake = FakeReddit()
        adapter = fake.adapter()

        await adapter.authenticate(INSTALLED_CREDS)

        form = parse_qs(fake.token_requests[0].content.decode())
        assert form["grant_type"] == [INSTALLED_CLIENT_GRANT]
        assert 20 <= len(form["device_id"][0]) <= 30

    @pytest.mark.asyncio
    async def test_missing_secret_fails_before_network(self):
        fake = FakeReddit()
        adapter = fake.adapter()
        creds = RedditCredentials(app_id="app-id", user_agent="ua", username="u", password="p")

        with pytest.raises(IncompleteCredentialsError) as exc_info:
            await adapter.authenticate(creds)

        assert isinstance(exc_info.value, ConfigError)
        assert fake.token_requests == []

    @pytest.mark.asyncio
    async def test_rejected_credentials_raise_auth_error(self):
        fake = FakeReddit(token_status=401, token_json={"message": "Unauthorized"})
        adapter = fake.adapter()

        with pytest.raises(AuthError):
            await adapter.authenticate(PASSWORD_CREDS)
        assert adapter.session is None

    @pytest.mark.asyncio
    async def test_error_body_raises_auth_error(self):
        fake = FakeReddit(token_json={"error": "invalid_grant"})
        adapter = fake.adapter()

        with pytest.raises(AuthError, match="invalid_grant"):
            await adapter.authenticate(PASSWORD_CREDS)

    @pytest.mark.asyncio
    async def test_fetch_before_authenticate_raises(self):
        fake = FakeReddit(json_handler(make_post_listing()))
        adapter = fake.adapter()

        with pytest.raises(AuthError):
            await adapter.get_top_posts("AskReddit")
        assert fake.requests == []

    @pytest.mark.asyncio
    async def test_expired_token_is_renewed(self):
        short = {"access_token": "tok-short", "expires_in": 30}
        fake = FakeReddit(json_handler(make_post_listing({})),
                          token_json=short)
        adapter = fake.adapter()
        await adapter.authenticate(PASSWORD_CREDS)

        await adapter.get_top_posts("AskReddit")

        assert len(fake.token_requests) == 2


class TestGetTopPosts:
    """Test ranked listing requests and post mapping."""

    async def _fetch(self, listing, **kwargs):
        fake = FakeReddit(json_handler(listing))
        adapter = fake.adapter()
        await adapter.authenticate(PASSWORD_CREDS)
        posts = await adapter.get_top_posts("AskReddit", **kwargs)
        return fake, posts

    @pytest.mark.asyncio
    async def test_request_shape(self):
        fake, _ = await self._fetch(make_post_listing({}), time_filter="week", limit=30)

        request = fake.requests[0]
        assert request.url.host == "oauth.reddit.com"
        assert request.url.path == "/r/AskReddit/top"
        assert request.url.params["limit"] == "30"
        assert request.url.params["t"] == "week"
        assert request.url.params["raw_json"] == "1"
        assert request.headers["Authorization"] == "Bearer tok-1"
        assert request.headers["User-Agent"] == "test:reddivox:1.0"

    @pytest.mark.asyncio
    async def test_maps_fields_in_rank_order(self):
        _, posts = await self._fetch(make_post_listing(
            {"id": "p1", "title": "First", "score": 100},
            {"id": "p2", "title": "Second", "score": 200, "over_18": True},
        ))

        assert [p.id for p in posts] == ["p1", "p2"]
        assert posts[0].title == "First"
        assert posts[1].score == 200
        assert posts[1].over_18 is True
        assert posts[0].created_utc.timestamp() == 1700000000.0
        assert posts[0].url == "https://www.reddit.com/r/AskReddit/comments/abc123/test_post/"

    @pytest.mark.asyncio
    async def test_award_tiers(self):
        _, posts = await self._fetch(make_post_listing(
            {"gildings": {"gid_1": 3, "gid_2": 2, "gid_3": 1}, "total_awards_received": 9},
        ))

        awards = posts[0].awards
        assert (awards.platinum, awards.gold, awards.silver) == (1, 2, 3)
        assert posts[0].total_awards == 9

    @pytest.mark.asyncio
    async def test_blank_selftext_falls_back_to_html(self):
        _, posts = await self._fetch(make_post_listing(
            {"selftext": "", "selftext_html": "<p>rich</p>"},
        ))
        assert posts[0].selftext == "<p>rich</p>"

    @pytest.mark.asyncio
    async def test_link_post_has_empty_selftext(self):
        _, posts = await self._fetch(make_post_listing(
            {"is_self": False, "selftext": "", "selftext_html": "<p>x</p>"},
        ))
        assert posts[0].selftext == ""

    @pytest.mark.asyncio
    async def test_missing_optional_fields_default(self):
        listing = {"data": {"children": [{"kind": "t3", "data": {"id": "bare", "title": "T"}}]}}
        _, posts = await self._fetch(listing)

        post = posts[0]
        assert post.author == ""
        assert post.score == 0
        assert post.created_utc == EPOCH
        assert post.total_awards == 0

    @pytest.mark.asyncio
    async def test_non_post_children_skipped(self):
        listing = make_post_listing({"id": "p1"})
        listing["data"]["children"].append({"kind": "t5", "data": {"id": "sub"}})
        _, posts = await self._fetch(listing)
        assert [p.id for p in posts] == ["p1"]


class TestGetPost:

    @pytest.mark.asyncio
    async def test_uses_info_endpoint(self):
        fake = FakeReddit(json_handler(make_post_listing({"id": "xyz"})))
        adapter = fake.adapter()
        await adapter.authenticate(PASSWORD_CREDS)

        post = await adapter.get_post("xyz")

        assert post.id == "xyz"
        assert fake.requests[0].url.path == "/api/info"
        assert fake.requests[0].url.params["id"] == "t3_xyz"

    @pytest.mark.asyncio
    async def test_empty_result_is_not_found(self):
        fake = FakeReddit(json_handler({"data": {"children": []}}))
        adapter = fake.adapter()
        await adapter.authenticate(PASSWORD_CREDS)

        with pytest.raises(PostNotFoundError):
            await adapter.get_post("gone")


class TestGetPostComments:
    """Test comment tree mapping and depth bounding."""

    def _nested_payload(self):
        return make_comment_response(
            make_comment("c1", "top one", replies=[
                make_comment("c1a", "reply", replies=[make_comment("c1a1", "deep reply")]),
                make_comment("c1b", "second reply"),
            ]),
            make_comment("c2", "top two", is_submitter=True, gildings={"gid_2": 1}),
            {"kind": "more", "data": {"id": "more1", "children": ["x", "y"]}},
        )

    async def _fetch(self, payload, **kwargs):
        fake = FakeReddit(json_handler(payload))
        adapter = fake.adapter()
        await adapter.authenticate(PASSWORD_CREDS)
        comments = await adapter.get_post_comments("abc123", **kwargs)
        return fake, comments

    @pytest.mark.asyncio
    async def test_request_shape(self):
        fake, _ = await self._fetch(self._nested_payload(), limit=20, max_depth=1)

        request = fake.requests[0]
        assert request.url.path == "/comments/abc123"
        assert request.url.params["sort"] == "top"
        assert request.url.params["limit"] == "20"
        assert request.url.params["depth"] == "2"

    @pytest.mark.asyncio
    async def test_depth_zero_keeps_top_level_only(self):
        _, comments = await self._fetch(self._nested_payload(), max_depth=0)

        assert [c.id for c in comments] == ["c1", "c2"]
        assert all(c.replies == () for c in comments)

    @pytest.mark.asyncio
    async def test_depth_one_keeps_direct_replies(self):
        _, comments = await self._fetch(self._nested_payload(), max_depth=1)

        assert [r.id for r in comments[0].replies] == ["c1a", "c1b"]
        assert comments[0].replies[0].replies == ()
        assert max(c.depth() for c in comments) <= 1

    @pytest.mark.asyncio
    async def test_full_depth(self):
        _, comments = await self._fetch(self._nested_payload(), max_depth=5)

        assert [c.id for c in comments[0].walk()] == ["c1", "c1a", "c1a1", "c1b"]

    @pytest.mark.asyncio
    async def test_more_placeholders_skipped(self):
        _, comments = await self._fetch(self._nested_payload())
        assert "more1" not in [c.id for c in comments]

    @pytest.mark.asyncio
    async def test_comment_fields(self):
        _, comments = await self._fetch(self._nested_payload())

        c2 = comments[1]
        assert c2.body == "top two"
        assert c2.body_html == "<p>top two</p>"
        assert c2.is_submitter is True
        assert c2.awards.gold == 1

    @pytest.mark.asyncio
    async def test_limit_truncates_top_level(self):
        _, comments = await self._fetch(self._nested_payload(), limit=1)
        assert [c.id for c in comments] == ["c1"]

    @pytest.mark.asyncio
    async def test_unmappable_comment_skipped(self):
        payload = make_comment_response(
            make_comment("c1", score="lots"),
            make_comment("c2", "kept", author=None),
        )
        _, comments = await self._fetch(payload)

        assert [c.id for c in comments] == ["c2"]
        assert comments[0].author == ""

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_decode_error(self):
        with pytest.raises(FetchDecodeError):
            await self._fetch({"data": {"children": []}})


class TestFetchErrors:
    """Test HTTP error mapping."""

    async def _adapter(self, handler):
        fake = FakeReddit(handler)
        adapter = fake.adapter()
        await adapter.authenticate(PASSWORD_CREDS)
        return adapter

    @pytest.mark.asyncio
    async def test_404_is_not_found(self):
        adapter = await self._adapter(lambda r: httpx.Response(404, json={"error": 404}))
        with pytest.raises(PostNotFoundError):
            await adapter.get_top_posts("nope")

    @pytest.mark.asyncio
    async def test_redirect_is_not_found(self):
        adapter = await self._adapter(
            lambda r: httpx.Response(302, headers={"Location": "https://oauth.reddit.com/subreddits/search"})
        )
        with pytest.raises(PostNotFoundError):
            await adapter.get_top_posts("nope")

    @pytest.mark.asyncio
    async def test_server_error_carries_status(self):
        adapter = await self._adapter(lambda r: httpx.Response(503, text="busy"))
        with pytest.raises(FetchNetworkError) as exc_info:
            await adapter.get_top_posts("AskReddit")
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        adapter = await self._adapter(handler)
        with pytest.raises(FetchNetworkError):
            await adapter.get_top_posts("AskReddit")

    @pytest.mark.asyncio
    async def test_html_page_is_decode_error(self):
        adapter = await self._adapter(lambda r: httpx.Response(
            200, content=b"<html>blocked</html>", headers={"Content-Type": "text/html"}))
        with pytest.raises(FetchDecodeError):
            await adapter.get_top_posts("AskReddit")

    @pytest.mark.asyncio
    async def test_invalid_json_is_decode_error(self):
        adapter = await self._adapter(lambda r: httpx.Response(
            200, content=b"{not json", headers={"Content-Type": "application/json"}))
        with pytest.raises(FetchDecodeError):
            await adapter.get_top_posts("AskReddit")

    @pytest.mark.asyncio
    async def test_listing_without_children_is_decode_error(self):
        adapter = await self._adapter(json_handler({"data": {}}))
        with pytest.raises(FetchDecodeError):
            await adapter.get_top_posts("AskReddit")
