"""
Ranking service.
Multi-objective weighted scoring of recalled candidates.
"""
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Optional

from feedrec.models.schemas import (
    FeatureSet,
    ScoredCandidate,
    UserFeature,
    Video,
    VideoFeature,
    utc_now,
)
from feedrec.services.decay import DecayCurve, freshness

logger = logging.getLogger(__name__)


def normalize(value: float, low: float, high: float) -> float:
    """Linear min-max normalisation clamped to [0, 1]."""
    if high == low:
        return 0.0
    return min(1.0, max(0.0, (value - low) / (high - low)))


# =============================================================================
# Scoring Strategy (Strategy Pattern)
# =============================================================================


class ScoringStrategy(ABC):
    """One ranking objective; `score` must return a value in [0, 1]."""

    name: str = ""
    weight: float = 0.0

    @abstractmethod
    def score(
        self,
        video: Video,
        user: Optional[UserFeature],
        video_feature: Optional[VideoFeature],
        now: datetime,
    ) -> float:
        pass


class CTRScoring(ScoringStrategy):
    """Click-through estimate from quality, play volume and viewer interest."""

    name = "ctr"
    weight = 0.30

    def score(self, video, user, video_feature, now) -> float:
        score = 0.5
        score += normalize(video.quality_score, 0, 100) * 0.2

        if video.play_count > 0:
            # Smoothed so small play counts barely move the estimate
            score += video.play_count / (video.play_count + 1000) * 0.3

        if user is not None and video.category_id in user.interest_tags:
            score += user.interest_tags[video.category_id] * 0.5

        return min(score, 1.0)


class CompletionScoring(ScoringStrategy):
    """Finish-rate estimate; long videos are penalised past five minutes."""

    name = "completion"
    weight = 0.25

    LONG_VIDEO_SECONDS = 300

    def score(self, video, user, video_feature, now) -> float:
        score = 0.5

        duration_score = 1.0
        if video.duration > self.LONG_VIDEO_SECONDS:
            duration_score = self.LONG_VIDEO_SECONDS / video.duration
        score += duration_score * 0.3

        if video_feature is not None:
            score += video_feature.finish_rate * 0.4

        if user is not None:
            score += user.avg_finish_rate * 0.3

        return min(score, 1.0)


class EngagementScoring(ScoringStrategy):
    """Interaction rate from like/comment/share counters."""

    name = "engagement"
    weight = 0.25

    def score(self, video, user, video_feature, now) -> float:
        if video.play_count <= 0:
            return 0.0
        plays = video.play_count
        score = (
            video.like_count / plays * 0.4
            + video.comment_count / plays * 0.3
            + video.share_count / plays * 0.3
        )
        return min(score, 1.0)


class HotScoring(ScoringStrategy):
    name = "hot"
    weight = 0.10

    HOT_SCORE_MAX = 1000.0

    def score(self, video, user, video_feature, now) -> float:
        return normalize(video.hot_score, 0.0, self.HOT_SCORE_MAX)


class FreshnessScoring(ScoringStrategy):
    """24h half-life exponential decay on publish age."""

    name = "freshness"
    weight = 0.10

    def score(self, video, user, video_feature, now) -> float:
        return freshness(video.published_at, now, DecayCurve.EXPONENTIAL)


def default_strategies() -> List[ScoringStrategy]:
    return [
        CTRScoring(),
        CompletionScoring(),
        EngagementScoring(),
        HotScoring(),
        FreshnessScoring(),
    ]


# =============================================================================
# Ranker
# =============================================================================


class Ranker:
    """
    Scores candidates with a weighted sum of objectives and sorts them.

    Ordering is score descending, then newest publish time, then lowest
    video id, so equal scores always rank the same way.
    """

    DIVERSITY_CATEGORY_CAP = 3

    def __init__(
        self,
        scoring_strategies: Optional[List[ScoringStrategy]] = None,
        clock: Callable = utc_now,
    ) -> None:
        """
        Initialize ranker with scoring strategies.

        Args:
            scoring_strategies: Objectives to combine (default: all five)
            clock: Source of "now" for freshness
        """
        self._strategies = scoring_strategies or default_strategies()
        self._clock = clock

    def score(self, video: Video, features: FeatureSet, now: Optional[datetime] = None) -> ScoredCandidate:
        """Composite score for one candidate, with per-objective breakdown."""
        now = now or self._clock()
        video_feature = features.videos.get(video.id)

        breakdown: Dict[str, float] = {}
        total = 0.0
        for strategy in self._strategies:
            value = strategy.score(video, features.user, video_feature, now)
            breakdown[strategy.name] = value
            total += value * strategy.weight

        return ScoredCandidate(video=video, score=total, breakdown=breakdown)

    def rank(self, videos: List[Video], features: FeatureSet) -> List[ScoredCandidate]:
        """
        Score and order candidates.

        Args:
            videos: Recalled candidates
            features: Output of FeatureEngineer.extract; missing entries are tolerated

        Returns:
            Candidates sorted by descending score
        """
        start_time = time.time()
        now = self._clock()

        scored = [self.score(video, features, now) for video in videos]
        scored.sort(key=_rank_key)

        logger.debug(
            f"Ranked {len(scored)} candidates in "
            f"{(time.time() - start_time) * 1000:.2f}ms"
        )
        return scored

    def apply_diversity(
        self,
        candidates: List[ScoredCandidate],
        diversity_ratio: float,
    ) -> List[ScoredCandidate]:
        """
        Drop candidates once their category already has three survivors.

        A non-positive ratio, an empty list, or a ratio too small to affect a
        single item leaves the list unchanged.
        """
        if diversity_ratio <= 0 or not candidates:
            return candidates
        if int(len(candidates) * diversity_ratio) == 0:
            return candidates

        category_count: Dict[int, int] = defaultdict(int)
        result = []
        for candidate in candidates:
            category_id = candidate.video.category_id
            if category_count[category_id] >= self.DIVERSITY_CATEGORY_CAP:
                continue
            category_count[category_id] += 1
            result.append(candidate)
        return result


def _rank_key(candidate: ScoredCandidate):
    published = candidate.video.published_at
    published_ts = published.timestamp() if published is not None else float("-inf")
    return (-candidate.score, -published_ts, candidate.video.id)
