"""
Post-ranking filter.

Removes candidates the viewer has already watched, that fail the quality gate,
that would over-saturate a category, or whose author the viewer blocked. Rank
order of the survivors is preserved.
"""
import logging
from collections import defaultdict
from datetime import timedelta
from typing import Callable, Dict, List, Optional, Set

from feedrec.core.cache import CacheInterface, as_members
from feedrec.models.interfaces import RecommendationStore
from feedrec.models.schemas import ActionType, Video, VideoStatus, utc_now

logger = logging.getLogger(__name__)


def watched_key(user_id: int) -> str:
    return f"user:watched:{user_id}"


def blocked_key(user_id: int) -> str:
    return f"user:blocked:{user_id}"


def recommended_key(user_id: int) -> str:
    return f"user:recommended:{user_id}"


class VideoFilter:
    """Applies the per-request filter chain to ranked videos."""

    WATCH_HISTORY_WINDOW = timedelta(days=7)

    def __init__(
        self,
        store: RecommendationStore,
        cache: CacheInterface,
        watched_ttl_seconds: int = 7 * 24 * 3600,
        recommended_ttl_seconds: int = 24 * 3600,
        min_quality_score: float = 30.0,
        min_duration: int = 3,
        max_duration: int = 3600,
        category_cap: int = 2,
        clock: Callable = utc_now,
    ) -> None:
        self._store = store
        self._cache = cache
        self._watched_ttl = watched_ttl_seconds
        self._recommended_ttl = recommended_ttl_seconds
        self._min_quality = min_quality_score
        self._min_duration = min_duration
        self._max_duration = max_duration
        self._category_cap = category_cap
        self._clock = clock

    async def filter(self, viewer_id: Optional[int], videos: List[Video]) -> List[Video]:
        """
        Run every check in order; the first failing check drops the video.

        Args:
            viewer_id: Viewer, None for anonymous (skips watched and block checks)
            videos: Ranked videos

        Returns:
            Surviving videos in their original order
        """
        if not videos:
            return []

        watched: Set[int] = set()
        if viewer_id is not None:
            watched = await self.watched_video_ids(viewer_id)

        category_count: Dict[int, int] = defaultdict(int)
        result: List[Video] = []
        for video in videos:
            if video.id in watched:
                continue
            if not self.passes_quality(video):
                continue
            if category_count[video.category_id] >= self._category_cap:
                continue
            if viewer_id is not None and await self.is_blocked(viewer_id, video.owner_id):
                continue

            category_count[video.category_id] += 1
            result.append(video)

        if viewer_id is not None and result:
            await self._record_recommended(viewer_id, result)

        logger.debug(
            f"Filter kept {len(result)}/{len(videos)} videos",
            extra={"viewer_id": viewer_id},
        )
        return result

    def passes_quality(self, video: Video) -> bool:
        """Quality gate: score threshold, published status and duration bounds."""
        if video.quality_score < self._min_quality:
            return False
        if video.status != VideoStatus.PUBLISHED:
            return False
        return self._min_duration <= video.duration <= self._max_duration

    async def watched_video_ids(self, user_id: int) -> Set[int]:
        """
        Ids of videos the user viewed in the last week.

        Read from the cached set; when it is empty (or the cache fails) the
        set is rebuilt from VIEW events and written back. A store failure
        yields an empty set.
        """
        key = watched_key(user_id)
        try:
            members = await self._cache.smembers(key)
            if members:
                return {int(m) for m in members}
        except Exception as e:
            logger.warning(f"Watched set read failed for user {user_id}: {e}")

        try:
            views = await self._store.list_behaviors(
                user_id,
                self._clock() - self.WATCH_HISTORY_WINDOW,
                action=ActionType.VIEW,
            )
        except Exception as e:
            logger.warning(f"Watch history unavailable for user {user_id}: {e}")
            return set()

        watched = {event.video_id for event in views}
        if watched:
            try:
                await self._cache.sadd(key, *as_members(watched))
                await self._cache.expire(key, self._watched_ttl)
            except Exception as e:
                logger.warning(f"Watched set write failed for user {user_id}: {e}")
        return watched

    async def is_blocked(self, user_id: int, author_id: int) -> bool:
        try:
            return await self._cache.sismember(blocked_key(user_id), str(author_id))
        except Exception as e:
            logger.warning(f"Block list check failed for user {user_id}: {e}")
            return False

    async def block_author(self, user_id: int, author_id: int) -> None:
        """Hide an author's videos from the user's feeds."""
        await self._cache.sadd(blocked_key(user_id), str(author_id))
        logger.info(
            f"Author {author_id} blocked by user {user_id}",
            extra={"viewer_id": user_id},
        )

    async def unblock_author(self, user_id: int, author_id: int) -> None:
        await self._cache.srem(blocked_key(user_id), str(author_id))
        logger.info(
            f"Author {author_id} unblocked by user {user_id}",
            extra={"viewer_id": user_id},
        )

    async def _record_recommended(self, user_id: int, videos: List[Video]) -> None:
        key = recommended_key(user_id)
        try:
            await self._cache.sadd(key, *as_members(v.id for v in videos))
            await self._cache.expire(key, self._recommended_ttl)
        except Exception as e:
            logger.warning(f"Recommended set write failed for user {user_id}: {e}")
