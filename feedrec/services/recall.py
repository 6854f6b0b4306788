"""
Multi-strategy candidate recall.

Each strategy is an independent coroutine with its own quota. Strategies run
concurrently under one shared timeout; a strategy that fails or runs out of
time contributes nothing and never aborts recall.
"""
import asyncio
import logging
import time
from datetime import timedelta
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from feedrec.core.cache import CacheInterface
from feedrec.core.telemetry import RECALL_DEGRADED
from feedrec.models.interfaces import RecommendationStore
from feedrec.models.schemas import Scene, Video, utc_now

logger = logging.getLogger(__name__)

HOT_VIDEOS_KEY = "hot:videos:24h"


class Recaller:
    """Builds the deduplicated candidate pool for one request."""

    RECENT_LIKES_LIMIT = 20
    SIMILAR_USERS_LIMIT = 50
    TOP_INTEREST_CATEGORIES = 5
    FOLLOWED_AUTHORS_LIMIT = 100
    HOT_WINDOW = timedelta(hours=24)
    NEW_VIDEO_WINDOW = timedelta(hours=1)

    def __init__(
        self,
        store: RecommendationStore,
        cache: CacheInterface,
        timeout_ms: Optional[int] = None,
        hot_ttl_seconds: int = 3600,
        hot_cache_size: int = 250,
        clock: Callable = utc_now,
    ) -> None:
        self._store = store
        self._cache = cache
        self._timeout = timeout_ms / 1000.0 if timeout_ms else None
        self._hot_ttl = hot_ttl_seconds
        self._hot_cache_size = hot_cache_size
        self._clock = clock

    async def recall(
        self,
        viewer_id: Optional[int],
        scene: Scene,
        limit: int,
    ) -> List[Video]:
        """
        Merge every strategy's candidates into one pool.

        Args:
            viewer_id: Viewer, None for anonymous requests
            scene: Requested scene; only FOLLOW enables the follow strategy
            limit: Target pool size (usually page_size * 10)

        Returns:
            Videos unique by id, in strategy order then strategy rank
        """
        start = time.time()
        quarter = limit // 4

        strategies: List[Tuple[str, Callable[[], Awaitable[List[Video]]]]] = [
            ("collaborative", lambda: self.collaborative_recall(viewer_id, quarter)),
            ("content", lambda: self.content_recall(viewer_id, quarter)),
            ("hot", lambda: self.hot_recall(quarter)),
        ]
        if scene == Scene.FOLLOW:
            strategies.append(
                ("follow", lambda: self.follow_recall(viewer_id, limit // 2))
            )
        strategies.append(("new", lambda: self.new_video_recall(quarter)))

        results = await asyncio.gather(
            *(self._run_strategy(name, factory) for name, factory in strategies)
        )

        # Insertion-ordered merge keyed by id
        pool: Dict[int, Video] = {}
        for videos in results:
            for video in videos:
                pool.setdefault(video.id, video)

        if len(pool) < limit:
            fillers = await self._run_strategy(
                "random",
                lambda: self.random_recall(limit - len(pool), exclude_ids=list(pool)),
            )
            for video in fillers:
                pool.setdefault(video.id, video)

        elapsed_ms = (time.time() - start) * 1000
        logger.debug(
            f"Recall finished: viewer={viewer_id}, scene={scene.value}, "
            f"candidates={len(pool)}, elapsed_ms={elapsed_ms:.2f}"
        )
        return list(pool.values())

    async def _run_strategy(
        self,
        name: str,
        factory: Callable[[], Awaitable[List[Video]]],
    ) -> List[Video]:
        """Run one strategy, degrading any failure to an empty contribution."""
        try:
            return await asyncio.wait_for(factory(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Recall strategy '{name}' timed out")
            RECALL_DEGRADED.labels(strategy=name, reason="timeout").inc()
        except Exception as e:
            logger.warning(f"Recall strategy '{name}' failed: {e}")
            RECALL_DEGRADED.labels(strategy=name, reason="error").inc()
        return []

    # =========================================================================
    # Strategies
    # =========================================================================

    async def collaborative_recall(self, viewer_id: Optional[int], limit: int) -> List[Video]:
        """Videos liked by users who liked what the viewer recently liked."""
        if viewer_id is None or limit <= 0:
            return []

        liked_ids = await self._store.recent_liked_video_ids(
            viewer_id, self.RECENT_LIKES_LIMIT
        )
        if not liked_ids:
            return []

        similar_users = await self._store.users_who_liked(
            liked_ids, exclude_user_id=viewer_id, limit=self.SIMILAR_USERS_LIMIT
        )
        if not similar_users:
            return []

        return await self._store.videos_liked_by(
            similar_users, exclude_video_ids=liked_ids, limit=limit
        )

    async def content_recall(self, viewer_id: Optional[int], limit: int) -> List[Video]:
        """Hottest videos in the viewer's top interest categories."""
        if viewer_id is None or limit <= 0:
            return []

        interests = await self._store.top_interests(viewer_id, self.TOP_INTEREST_CATEGORIES)
        if not interests:
            return []

        category_ids = [interest.category_id for interest in interests]
        return await self._store.videos_in_categories(category_ids, limit)

    async def hot_recall(self, limit: int) -> List[Video]:
        """
        Top hot videos of the last 24 hours.

        The cached ranked set always holds up to ``hot_cache_size`` videos, so
        every request size is sliced from the same ranking. On a miss the set
        is computed from the store and written back with a 1-hour expiry.
        """
        if limit <= 0:
            return []

        cached_ids: List[str] = []
        if limit <= self._hot_cache_size:
            try:
                cached_ids = await self._cache.zrevrange(HOT_VIDEOS_KEY, 0, limit - 1)
            except Exception as e:
                logger.warning(f"Hot video cache read failed: {e}")

        if cached_ids:
            videos = await self._store.get_videos([int(i) for i in cached_ids])
            if videos:
                return videos

        videos = await self._store.hot_videos(
            self._clock() - self.HOT_WINDOW, max(limit, self._hot_cache_size)
        )
        if videos:
            try:
                await self._cache.delete(HOT_VIDEOS_KEY)
                await self._cache.zadd(
                    HOT_VIDEOS_KEY, {str(v.id): v.hot_score for v in videos}
                )
                await self._cache.expire(HOT_VIDEOS_KEY, self._hot_ttl)
            except Exception as e:
                logger.warning(f"Hot video cache write failed: {e}")
        return videos[:limit]

    async def follow_recall(self, viewer_id: Optional[int], limit: int) -> List[Video]:
        """Newest videos from authors the viewer follows."""
        if viewer_id is None or limit <= 0:
            return []

        author_ids = await self._store.followed_author_ids(
            viewer_id, self.FOLLOWED_AUTHORS_LIMIT
        )
        if not author_ids:
            return []

        return await self._store.videos_by_authors(author_ids, limit)

    async def new_video_recall(self, limit: int) -> List[Video]:
        """Videos published within the last hour, for cold-start exposure."""
        if limit <= 0:
            return []
        return await self._store.recent_videos(self._clock() - self.NEW_VIDEO_WINDOW, limit)

    async def random_recall(self, limit: int, exclude_ids: List[int]) -> List[Video]:
        """Fallback filler when the merged pool is short."""
        if limit <= 0:
            return []
        return await self._store.random_videos(limit, exclude_ids=exclude_ids)
