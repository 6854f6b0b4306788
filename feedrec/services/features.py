"""
Feature engineering for the ranking stage.

User and video features are cache-aside: read the JSON blob from the cache,
compute from the store on a miss (or when the cache is failing) and write the
result back with a TTL. Behavior events feed back into per-category interest
scores through the InterestUpdateQueue.
"""
import asyncio
import logging
from collections import Counter
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from feedrec.core.cache import CacheInterface
from feedrec.core.exceptions import AppException, NotFoundError, StoreUnavailableError
from feedrec.core.telemetry import FEATURE_LOOKUP_DROPPED
from feedrec.models.interfaces import RecommendationStore
from feedrec.models.schemas import (
    ActionType,
    BehaviorEvent,
    FeatureSet,
    InterestRecord,
    UserFeature,
    Video,
    VideoFeature,
    utc_now,
)
from feedrec.services.decay import DecayCurve, freshness
from feedrec.services.interest_queue import InterestUpdateQueue

logger = logging.getLogger(__name__)

# Interest increment per action; VIEW is scaled by completion fraction
INTEREST_INCREMENTS: Dict[ActionType, float] = {
    ActionType.VIEW: 0.1,
    ActionType.LIKE: 0.3,
    ActionType.COMMENT: 0.4,
    ActionType.SHARE: 0.5,
    ActionType.FAVORITE: 0.6,
    ActionType.FINISH: 0.8,
}
INTEREST_DECAY = 0.9
INTEREST_CEILING = 1.0


def user_feature_key(user_id: int) -> str:
    return f"user:feature:{user_id}"


def video_feature_key(video_id: int) -> str:
    return f"video:feature:{video_id}"


def interest_increment(event: BehaviorEvent) -> float:
    """Score increment contributed by one behavior event."""
    increment = INTEREST_INCREMENTS.get(event.action, 0.0)
    if event.action == ActionType.VIEW:
        increment *= event.progress / 100.0
    return increment


def smooth_interest(score: float, increment: float) -> float:
    """Exponential smoothing step: s' = 0.9 * s + increment, capped at 1."""
    return min(INTEREST_CEILING, score * INTEREST_DECAY + increment)


class FeatureEngineer:
    """Computes, caches and invalidates user and video features."""

    BEHAVIOR_WINDOW = timedelta(days=30)
    TOP_INTERESTS = 10
    ACTIVE_HOURS = 3

    def __init__(
        self,
        store: RecommendationStore,
        cache: CacheInterface,
        interest_queue: Optional[InterestUpdateQueue] = None,
        user_ttl_seconds: int = 3600,
        video_ttl_seconds: int = 1800,
        lookup_timeout_ms: Optional[int] = None,
        clock: Callable = utc_now,
    ) -> None:
        self._store = store
        self._cache = cache
        self._user_ttl = user_ttl_seconds
        self._video_ttl = video_ttl_seconds
        self._lookup_timeout = lookup_timeout_ms / 1000.0 if lookup_timeout_ms else None
        self._clock = clock
        self._interest_queue = interest_queue or InterestUpdateQueue()
        self._interest_queue.set_handler(self.apply_interest_update)

    @property
    def interest_queue(self) -> InterestUpdateQueue:
        return self._interest_queue

    # =========================================================================
    # Extraction
    # =========================================================================

    async def extract(self, viewer_id: Optional[int], videos: List[Video]) -> FeatureSet:
        """
        Collect scoring inputs for a request.

        Lookups run concurrently; any lookup that fails or exceeds the
        timeout is left out of the result rather than failing the request.
        """
        user_task = (
            self._lookup("user", viewer_id, self.get_user_feature(viewer_id))
            if viewer_id is not None
            else _none()
        )
        video_tasks = [
            self._lookup("video", video.id, self.get_video_feature(video.id))
            for video in videos
        ]
        user_feature, *video_features = await asyncio.gather(user_task, *video_tasks)

        return FeatureSet(
            user=user_feature,
            videos={f.video_id: f for f in video_features if f is not None},
        )

    async def _lookup(self, kind: str, identifier: int, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self._lookup_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{kind} feature lookup timed out: {identifier}")
            FEATURE_LOOKUP_DROPPED.labels(kind=kind, reason="timeout").inc()
        except NotFoundError:
            logger.debug(f"{kind} feature unavailable, entity missing: {identifier}")
            FEATURE_LOOKUP_DROPPED.labels(kind=kind, reason="not_found").inc()
        except Exception as e:
            logger.warning(f"{kind} feature lookup failed for {identifier}: {e}")
            FEATURE_LOOKUP_DROPPED.labels(kind=kind, reason="error").inc()
        return None

    async def get_user_feature(self, user_id: int) -> UserFeature:
        key = user_feature_key(user_id)
        cached = await self._cache_get(key)
        if cached is not None:
            try:
                return UserFeature.model_validate_json(cached)
            except ValueError as e:
                logger.warning(f"Discarding unreadable cache entry {key}: {e}")

        feature = await self.compute_user_feature(user_id)
        await self._cache_set(key, feature.model_dump_json(), self._user_ttl)
        return feature

    async def get_video_feature(self, video_id: int) -> VideoFeature:
        key = video_feature_key(video_id)
        cached = await self._cache_get(key)
        if cached is not None:
            try:
                return VideoFeature.model_validate_json(cached)
            except ValueError as e:
                logger.warning(f"Discarding unreadable cache entry {key}: {e}")

        feature = await self.compute_video_feature(video_id)
        await self._cache_set(key, feature.model_dump_json(), self._video_ttl)
        return feature

    async def compute_user_feature(self, user_id: int) -> UserFeature:
        """Build a user's feature summary from the store."""
        user = await self._store.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        now = self._clock()
        feature = UserFeature(
            user_id=user_id,
            gender=user.gender,
            province=user.province,
            city=user.city,
            age=now.year - user.birthday.year if user.birthday else 0,
            updated_at=now,
        )

        behaviors = await self._store.list_behaviors(user_id, now - self.BEHAVIOR_WINDOW)
        if behaviors:
            total = len(behaviors)
            views = [b for b in behaviors if b.action == ActionType.VIEW]
            actions = Counter(b.action for b in behaviors)
            hours = Counter(b.created_at.hour for b in behaviors)

            feature.active_days = len({b.created_at.date() for b in behaviors})
            if views:
                feature.avg_watch_time = sum(b.duration for b in views) / len(views)
                feature.avg_finish_rate = sum(b.progress for b in views) / len(views) / 100.0
            feature.like_rate = actions[ActionType.LIKE] / total
            feature.comment_rate = actions[ActionType.COMMENT] / total
            feature.share_rate = actions[ActionType.SHARE] / total
            # Busiest hours first, earlier hour wins a tie
            ranked_hours = sorted(hours.items(), key=lambda hc: (-hc[1], hc[0]))
            feature.active_hours = [hour for hour, _ in ranked_hours[: self.ACTIVE_HOURS]]

        interests = await self._store.top_interests(user_id, self.TOP_INTERESTS)
        feature.interest_tags = {i.category_id: i.score for i in interests}
        return feature

    async def compute_video_feature(self, video_id: int) -> VideoFeature:
        """Build a video's feature summary from the store."""
        video = await self._store.get_video(video_id)
        if video is None:
            raise NotFoundError("Video", video_id)

        now = self._clock()
        feature = VideoFeature(
            video_id=video.id,
            category_id=video.category_id,
            duration=video.duration,
            tags=video.tags,
            quality_score=video.quality_score,
            hot_score=video.hot_score,
            published_at=video.published_at,
            freshness_score=freshness(video.published_at, now, DecayCurve.HYPERBOLIC),
            updated_at=now,
        )

        if video.play_count > 0:
            feature.like_rate = video.like_count / video.play_count
            feature.comment_rate = video.comment_count / video.play_count
            feature.share_rate = video.share_count / video.play_count

        yesterday = (now - timedelta(days=1)).date()
        stats = await self._store.get_video_stats(video_id, yesterday)
        if stats is not None:
            feature.finish_rate = stats.finish_rate
            feature.avg_watch_time = stats.avg_duration
            if stats.unique_view_count > 0:
                feature.ctr = stats.play_count / stats.unique_view_count

        return feature

    # =========================================================================
    # Feedback loop
    # =========================================================================

    async def update_user_profile(self, user_id: int, event: BehaviorEvent) -> BehaviorEvent:
        """
        Ingest a behavior event.

        The event is persisted before returning; the interest update runs on
        the background queue and never affects the caller.

        Raises:
            NotFoundError: Unknown user
            StoreUnavailableError: The event could not be persisted
        """
        if await self._store.get_user(user_id) is None:
            raise NotFoundError("User", user_id)

        try:
            stored = await self._store.create_behavior(
                event.model_copy(update={"user_id": user_id})
            )
        except AppException:
            raise
        except Exception as e:
            raise StoreUnavailableError("create_behavior", str(e)) from e
        self._interest_queue.submit(stored)
        await self._evict(user_feature_key(user_id))

        logger.info(
            f"Behavior recorded: user={user_id}, video={stored.video_id}, "
            f"action={stored.action.name}",
            extra={"viewer_id": user_id, "event_id": stored.id},
        )
        return stored

    async def apply_interest_update(self, event: BehaviorEvent) -> None:
        """
        Fold one behavior event into the (user, category) interest record.

        The event id is claimed first so a redelivered event is applied once.
        No lock is held across the read-modify-write; concurrent events for
        the same (user, category) may overwrite each other.
        """
        if event.id is not None and not await self._store.claim_interest_event(event.id):
            logger.debug(f"Interest update already applied for event {event.id}")
            return

        try:
            video = await self._store.get_video(event.video_id)
            if video is None:
                logger.warning(
                    f"Interest update skipped, video not found: {event.video_id}",
                    extra={"event_id": event.id},
                )
                return

            increment = interest_increment(event)
            is_like = event.action == ActionType.LIKE
            record = await self._store.get_interest(event.user_id, video.category_id)

            if record is None:
                record = InterestRecord(
                    user_id=event.user_id,
                    category_id=video.category_id,
                    score=min(INTEREST_CEILING, increment),
                    weight=1.0,
                    view_count=1,
                    like_count=1 if is_like else 0,
                    updated_at=self._clock(),
                )
            else:
                record = record.model_copy(
                    update={
                        "score": smooth_interest(record.score, increment),
                        "view_count": record.view_count + 1,
                        "like_count": record.like_count + (1 if is_like else 0),
                        "updated_at": self._clock(),
                    }
                )
            await self._store.save_interest(record)
        except Exception:
            if event.id is not None:
                await self._store.release_interest_event(event.id)
            raise

        await self._evict(user_feature_key(event.user_id))

    async def update_video_feature(self, video_id: int) -> None:
        """
        Invalidate a video's cached features after its metadata changed.

        Raises:
            NotFoundError: Unknown video
        """
        if await self._store.get_video(video_id) is None:
            raise NotFoundError("Video", video_id)
        await self._evict(video_feature_key(video_id))

    # =========================================================================
    # Cache helpers (failures degrade to the store path)
    # =========================================================================

    async def _cache_get(self, key: str) -> Optional[str]:
        try:
            return await self._cache.get(key)
        except Exception as e:
            logger.warning(f"Feature cache read failed for {key}: {e}")
            return None

    async def _cache_set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self._cache.set(key, value, ttl_seconds=ttl)
        except Exception as e:
            logger.warning(f"Feature cache write failed for {key}: {e}")

    async def _evict(self, key: str) -> None:
        try:
            await self._cache.delete(key)
        except Exception as e:
            logger.warning(f"Feature cache eviction failed for {key}: {e}")


async def _none() -> None:
    return None
