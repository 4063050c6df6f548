from datetime import datetime

from pydantic import BaseModel, ConfigDict

from insta_lens.analyzers.schema import AnalysisResult


class MediaChild(BaseModel):
    """One item of a carousel post. Caption, timestamp and counts live on the parent."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    shortcode: str = ""
    display_url: str = ""
    is_video: bool = False
    video_url: str | None = None
    media_type: str = ""


class Post(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    shortcode: str = ""
    display_url: str = ""
    is_video: bool = False
    video_url: str | None = None
    caption: str = ""
    timestamp: int = 0  # Unix seconds
    like_count: int = 0
    comment_count: int = 0
    location: str | None = None
    tagged_users: list[str] | None = None
    media_type: str = ""
    children: list[MediaChild] | None = None


class Profile(BaseModel):
    """Snapshot of an Instagram profile at fetch time. Re-fetching replaces it."""

    model_config = ConfigDict(frozen=True)

    username: str
    user_id: str = ""
    full_name: str | None = None
    biography: str | None = None
    followers_count: int | None = None
    following_count: int | None = None
    is_private: bool | None = None
    is_verified: bool | None = None
    profile_pic_url: str | None = None
    posts: list[Post] | None = None


class CacheEntry(BaseModel):
    username: str
    data: Profile
    report: AnalysisResult
    timestamp: datetime


class AnalysisOutcome(BaseModel):
    """What the pipeline hands to the presentation layer."""

    username: str
    profile: Profile | None = None
    analysis: AnalysisResult | None = None
    served_from_cache: bool = False
    cached_at: datetime | None = None
    error: str | None = None
    error_kind: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.profile is not None and self.analysis is not None
