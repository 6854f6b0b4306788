"""Services package - recommendation pipeline."""
from .decay import DecayCurve, freshness, time_decay
from .engine import RecommendationEngine
from .features import FeatureEngineer
from .filtering import VideoFilter
from .interest_queue import DeadLetter, InterestUpdateQueue
from .ranking import (
    CompletionScoring,
    CTRScoring,
    EngagementScoring,
    FreshnessScoring,
    HotScoring,
    Ranker,
    ScoringStrategy,
)
from .recall import Recaller

__all__ = [
    "CompletionScoring",
    "CTRScoring",
    "DeadLetter",
    "DecayCurve",
    "EngagementScoring",
    "FeatureEngineer",
    "FreshnessScoring",
    "HotScoring",
    "InterestUpdateQueue",
    "Ranker",
    "RecommendationEngine",
    "Recaller",
    "ScoringStrategy",
    "VideoFilter",
    "freshness",
    "time_decay",
]
