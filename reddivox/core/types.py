"""Domain types for ReddiVox."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Iterator, Optional

REDDIT_WEB_URL = "https://www.reddit.com"

# Time windows accepted by the ranked "top" listing
TIME_FILTERS = ("hour", "day", "week", "month", "year", "all")

# Unix epoch, used when the platform omits a timestamp
EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


@dataclass(frozen=True)
class AwardCounts:
    """Award counts collapsed to three fixed tiers."""

    platinum: int = 0                # gildings "gid_3"
    gold: int = 0                    # gildings "gid_2"
    silver: int = 0                  # gildings "gid_1"

    @property
    def total(self) -> int:
        return self.platinum + self.gold + self.silver


@dataclass(frozen=True)
class Post:
    """A Reddit post normalized from a listing payload."""

    id: str                          # Reddit post ID without "t3_" (e.g., "8xwlg")
    title: str
    author: str = ""
    subreddit: str = ""
    score: int = 0
    num_comments: int = 0
    over_18: bool = False
    created_utc: datetime = EPOCH
    url: str = ""
    selftext: str = ""               # empty for link posts
    awards: AwardCounts = field(default_factory=AwardCounts)
    total_awards: int = 0

    def __post_init__(self):
        if not self.id:
            raise ValueError("Post id must be non-empty")
        if not self.url:
            object.__setattr__(self, "url", self.build_url(self.id, self.subreddit))

    @staticmethod
    def build_url(post_id: str, subreddit: str) -> str:
        """Canonical permalink derived from id + community."""
        return f"{REDDIT_WEB_URL}/r/{subreddit}/comments/{post_id}/"


@dataclass(frozen=True)
class Comment:
    """A Reddit comment with its ordered reply tree."""

    id: str
    author: str = ""
    body: str = ""                   # Raw markdown
    body_html: str = ""
    score: int = 0
    created_utc: datetime = EPOCH
    is_submitter: bool = False       # author is the original poster
    awards: AwardCounts = field(default_factory=AwardCounts)
    replies: tuple['Comment', ...] = ()

    def depth(self) -> int:
        """Number of reply levels below this comment (0 = no replies)."""
        if not self.replies:
            return 0
        return 1 + max(reply.depth() for reply in self.replies)

    def walk(self) -> Iterator['Comment']:
        """Yield this comment and its replies in pre-order."""
        yield self
        for reply in self.replies:
            yield from reply.walk()


@dataclass(frozen=True)
class AudioSegment:
    """A produced audio artifact. The caller owns the file."""

    path: Path
    duration_sec: float

    def __post_init__(self):
        if not str(self.path):
            raise ValueError("AudioSegment path must be non-empty")
        if self.duration_sec < 0:
            raise ValueError("AudioSegment duration must be >= 0")


class TtsProvider(str, Enum):
    """Speech synthesis providers."""

    LOCAL = "local"
    ELEVENLABS = "elevenlabs"

    @property
    def requires_voice_id(self) -> bool:
        return self is TtsProvider.ELEVENLABS


@dataclass(frozen=True)
class VoiceSelection:
    """Provider tag plus an optional provider-specific voice id."""

    provider: TtsProvider = TtsProvider.LOCAL
    voice_id: Optional[str] = None

    @property
    def requires_voice_id(self) -> bool:
        return self.provider.requires_voice_id


@dataclass(frozen=True)
class VoiceSettings:
    """ElevenLabs voice tuning parameters."""

    stability: float = 0.70
    similarity_boost: float = 0.70
    style: float = 0.45
    use_speaker_boost: bool = True

    def to_payload(self) -> dict:
        return {
            "stability": self.stability,
            "similarity_boost": self.similarity_boost,
            "style": self.style,
            "use_speaker_boost": self.use_speaker_boost,
        }


@dataclass(frozen=True)
class RedditCredentials:
    """Application (and optionally user) credentials for the token endpoint."""

    app_id: str = ""
    app_secret: str = ""
    user_agent: str = ""
    username: str = ""
    password: str = ""

    @property
    def uses_password_grant(self) -> bool:
        return bool(self.username or self.password)

    def missing_fields(self) -> list[str]:
        """Names of required fields that are blank for the selected grant."""
        required = ["app_id", "user_agent"]
        if self.uses_password_grant:
            required += ["app_secret", "username", "password"]
        return [name for name in required if not getattr(self, name).strip()]


@dataclass(frozen=True)
class AuthenticatedSession:
    """Bearer token obtained from the token endpoint."""

    access_token: str
    token_type: str = "bearer"
    scope: str = ""
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def authorization_header(self) -> str:
        return f"Bearer {self.access_token}"


@dataclass(frozen=True)
class NarratedSegment:
    """One spoken piece of a post (title, body or a comment)."""

    source_id: str
    kind: str                        # "title" | "body" | "comment"
    text: str
    audio: AudioSegment


@dataclass
class NarrationResult:
    """Ordered audio segments for a post. Total duration drives scene timing."""

    post_id: str
    segments: list[NarratedSegment] = field(default_factory=list)

    @property
    def total_duration_sec(self) -> float:
        return sum(seg.audio.duration_sec for seg in self.segments)
