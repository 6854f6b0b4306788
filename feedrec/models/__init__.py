"""Models package - domain entities and interfaces."""
from .interfaces import RecommendationStore
from .schemas import (
    ActionType,
    BehaviorAccepted,
    BehaviorEvent,
    BehaviorEventIn,
    ErrorResponse,
    FeatureSet,
    InterestRecord,
    RecommendationRequest,
    RecommendationResponse,
    Scene,
    ScoredCandidate,
    UserFeature,
    UserProfile,
    Video,
    VideoDailyStats,
    VideoFeature,
    VideoStatus,
    utc_now,
)

__all__ = [
    # Interfaces
    "RecommendationStore",
    # Schemas
    "ActionType",
    "BehaviorAccepted",
    "BehaviorEvent",
    "BehaviorEventIn",
    "ErrorResponse",
    "FeatureSet",
    "InterestRecord",
    "RecommendationRequest",
    "RecommendationResponse",
    "Scene",
    "ScoredCandidate",
    "UserFeature",
    "UserProfile",
    "Video",
    "VideoDailyStats",
    "VideoFeature",
    "VideoStatus",
    "utc_now",
]
