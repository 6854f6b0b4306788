"""
Domain models using Pydantic.
All data structures for the recommendation pipeline.
"""
from datetime import date, datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Timezone-aware current time; every pipeline timestamp is UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# Enumerations
# =============================================================================


class VideoStatus(IntEnum):
    PENDING = 0
    PUBLISHED = 1
    REJECTED = 2
    TAKEN_DOWN = 3


class ActionType(IntEnum):
    """Behavior event kinds, in the order the client SDK reports them."""
    VIEW = 1
    LIKE = 2
    COMMENT = 3
    SHARE = 4
    FAVORITE = 5
    FINISH = 6


class Scene(str, Enum):
    FEED = "feed"
    FOLLOW = "follow"
    HOT = "hot"


# =============================================================================
# Store Records
# =============================================================================


class Video(BaseModel):
    """Candidate video as stored by the catalogue."""

    id: int = Field(..., description="Unique video identifier")
    owner_id: int = Field(..., description="Author user id")
    category_id: int = Field(default=0, description="Category id")
    title: str = Field(default="", description="Video title")
    tags: List[str] = Field(default_factory=list, description="Content tags")
    duration: int = Field(default=0, ge=0, description="Length in seconds")
    status: VideoStatus = Field(default=VideoStatus.PENDING)
    quality_score: float = Field(default=0.0, description="Moderation quality score (0-100)")
    hot_score: float = Field(default=0.0, description="Persisted popularity metric")
    play_count: int = Field(default=0, ge=0)
    like_count: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)
    share_count: int = Field(default=0, ge=0)
    favorite_count: int = Field(default=0, ge=0)
    published_at: Optional[datetime] = Field(default=None)


class UserProfile(BaseModel):
    """Base profile fields used as demographic features."""

    id: int
    gender: int = Field(default=0, description="0 unknown, 1 male, 2 female")
    province: str = ""
    city: str = ""
    birthday: Optional[date] = None


class BehaviorEvent(BaseModel):
    """A single viewer interaction with a video."""

    id: Optional[int] = Field(default=None, description="Assigned by the store")
    user_id: int
    video_id: int
    action: ActionType
    duration: int = Field(default=0, ge=0, description="Seconds watched")
    progress: int = Field(default=0, ge=0, le=100, description="Watch progress percent")
    source: str = ""
    platform: str = ""
    created_at: datetime = Field(default_factory=utc_now)


class InterestRecord(BaseModel):
    """Per (user, category) affinity, updated by exponential smoothing."""

    user_id: int
    category_id: int
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    weight: float = 1.0
    view_count: int = 0
    like_count: int = 0
    updated_at: datetime = Field(default_factory=utc_now)


class VideoDailyStats(BaseModel):
    """Daily aggregation row for one video."""

    video_id: int
    day: date
    play_count: int = 0
    unique_view_count: int = 0
    avg_duration: float = 0.0
    finish_rate: float = 0.0


# =============================================================================
# Features
# =============================================================================


class UserFeature(BaseModel):
    user_id: int

    age: int = 0
    gender: int = 0
    province: str = ""
    city: str = ""

    active_days: int = 0
    avg_watch_time: float = 0.0
    avg_finish_rate: float = Field(default=0.0, description="Mean completion fraction (0-1)")
    like_rate: float = 0.0
    comment_rate: float = 0.0
    share_rate: float = 0.0
    active_hours: List[int] = Field(default_factory=list)

    # Category id -> interest score; pydantic coerces JSON string keys back to int
    interest_tags: Dict[int, float] = Field(default_factory=dict)

    updated_at: datetime = Field(default_factory=utc_now)


class VideoFeature(BaseModel):
    video_id: int

    category_id: int = 0
    duration: int = 0
    tags: List[str] = Field(default_factory=list)

    quality_score: float = 0.0
    finish_rate: float = 0.0
    avg_watch_time: float = 0.0

    ctr: float = 0.0
    like_rate: float = 0.0
    comment_rate: float = 0.0
    share_rate: float = 0.0

    hot_score: float = 0.0
    published_at: Optional[datetime] = None
    freshness_score: float = 0.0

    updated_at: datetime = Field(default_factory=utc_now)


class FeatureSet(BaseModel):
    """Scoring inputs for one request. Absent entries could not be computed."""

    user: Optional[UserFeature] = None
    videos: Dict[int, VideoFeature] = Field(default_factory=dict)


class ScoredCandidate(BaseModel):
    """Ranked video with its composite score; lives for one request."""

    video: Video
    score: float
    breakdown: Dict[str, float] = Field(default_factory=dict)


# =============================================================================
# Pipeline Request / Response
# =============================================================================


class RecommendationRequest(BaseModel):
    viewer_id: Optional[int] = Field(default=None, description="None for anonymous viewers")
    scene: Scene = Scene.FEED
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)


class RecommendationResponse(BaseModel):
    videos: List[Video] = Field(..., description="Ranked, filtered page")
    total: int = Field(..., description="Length of the filtered list for this request")
    page: int
    page_size: int
    scene: Scene


# =============================================================================
# API Models (External)
# =============================================================================


class BehaviorEventIn(BaseModel):
    """Inbound behavior event payload."""

    video_id: int
    action: ActionType
    duration: int = Field(default=0, ge=0)
    progress: int = Field(default=0, ge=0, le=100)
    source: str = Field(default="", max_length=50)
    platform: str = Field(default="", max_length=20)


class BehaviorAccepted(BaseModel):
    event_id: int
    status: str = "accepted"


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: Dict[str, Any] = Field(..., description="Error details")
