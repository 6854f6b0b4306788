"""
In-memory RecommendationStore implementation.
Used for prototyping and testing.
Production would replace this with a Postgres implementation.
"""
import random
from collections import Counter
from datetime import date, datetime, timedelta, timezone
from threading import Lock
from typing import Collection, Dict, List, Optional, Set, Tuple

from feedrec.models.schemas import (
    ActionType,
    BehaviorEvent,
    InterestRecord,
    UserProfile,
    Video,
    VideoDailyStats,
    VideoStatus,
    utc_now,
)

NEVER = datetime.min.replace(tzinfo=timezone.utc)


class InMemoryRecommendationStore:
    """
    In-memory implementation of RecommendationStore.
    Simulates the users/videos/likes/follows/behavior tables.

    Records are copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, seed: bool = False) -> None:
        self._lock = Lock()
        self._users: Dict[int, UserProfile] = {}
        self._videos: Dict[int, Video] = {}
        self._behaviors: List[BehaviorEvent] = []
        self._interests: Dict[Tuple[int, int], InterestRecord] = {}
        self._stats: Dict[Tuple[int, date], VideoDailyStats] = {}
        self._likes: List[Tuple[int, int, datetime]] = []  # (user, video, liked_at)
        self._follows: Dict[int, List[int]] = {}
        self._claimed_events: Set[int] = set()
        self._next_event_id = 1
        self._random = random.Random()

        if seed:
            self._initialize_mock_data()

    # =========================================================================
    # Seeding helpers (not part of the store protocol)
    # =========================================================================

    def add_user(self, user: UserProfile) -> None:
        with self._lock:
            self._users[user.id] = user.model_copy()

    def add_video(self, video: Video) -> None:
        with self._lock:
            self._videos[video.id] = video.model_copy()

    def add_like(self, user_id: int, video_id: int, liked_at: Optional[datetime] = None) -> None:
        with self._lock:
            self._likes.append((user_id, video_id, liked_at or utc_now()))

    def add_follow(self, user_id: int, author_id: int) -> None:
        with self._lock:
            followed = self._follows.setdefault(user_id, [])
            if author_id not in followed:
                followed.append(author_id)

    def add_video_stats(self, stats: VideoDailyStats) -> None:
        with self._lock:
            self._stats[(stats.video_id, stats.day)] = stats.model_copy()

    def _initialize_mock_data(self) -> None:
        """Load a small demo catalogue."""
        now = utc_now()
        self._random.seed(7)

        for user_id in range(1, 6):
            self.add_user(
                UserProfile(
                    id=user_id,
                    gender=user_id % 3,
                    province="Zhejiang",
                    city="Hangzhou",
                    birthday=date(1990 + user_id, 1, 1),
                )
            )

        # 60 videos across 6 categories, authored by users 1-5 and 100-104
        for video_id in range(1, 61):
            category_id = video_id % 6 + 1
            hours_old = (video_id * 7) % 96 + 0.5
            plays = (video_id * 137) % 5000
            self.add_video(
                Video(
                    id=video_id,
                    owner_id=(100 + video_id % 5) if video_id % 2 else (video_id % 5 + 1),
                    category_id=category_id,
                    title=f"Demo video {video_id}",
                    tags=[f"cat{category_id}"],
                    duration=15 + (video_id * 23) % 400,
                    status=VideoStatus.PUBLISHED if video_id % 11 else VideoStatus.PENDING,
                    quality_score=25 + (video_id * 13) % 75,
                    hot_score=float((video_id * 53) % 1000),
                    play_count=plays,
                    like_count=plays // 10,
                    comment_count=plays // 40,
                    share_count=plays // 80,
                    published_at=now - timedelta(hours=hours_old),
                )
            )
            self.add_video_stats(
                VideoDailyStats(
                    video_id=video_id,
                    day=(now - timedelta(days=1)).date(),
                    play_count=plays // 5,
                    unique_view_count=max(1, plays // 7),
                    avg_duration=10.0 + video_id % 30,
                    finish_rate=round((video_id % 10) / 10.0, 2),
                )
            )

        # User 1 has history, user 5 is a cold-start account
        for video_id in (2, 8, 14):
            self.add_like(1, video_id)
        for video_id in (2, 8, 20, 26, 32):
            self.add_like(2, video_id)
        for video_id in (14, 38, 44):
            self.add_like(3, video_id)
        self.add_follow(1, 101)
        self.add_follow(1, 103)
        with self._lock:
            for category_id, score in ((3, 0.8), (2, 0.5), (5, 0.2)):
                self._interests[(1, category_id)] = InterestRecord(
                    user_id=1, category_id=category_id, score=score, view_count=3
                )

    # =========================================================================
    # Users / behavior
    # =========================================================================

    async def get_user(self, user_id: int) -> Optional[UserProfile]:
        with self._lock:
            user = self._users.get(user_id)
            return user.model_copy() if user else None

    async def list_behaviors(
        self,
        user_id: int,
        since: datetime,
        action: Optional[ActionType] = None,
    ) -> List[BehaviorEvent]:
        with self._lock:
            return [
                b.model_copy()
                for b in self._behaviors
                if b.user_id == user_id
                and b.created_at > since
                and (action is None or b.action == action)
            ]

    async def create_behavior(self, event: BehaviorEvent) -> BehaviorEvent:
        with self._lock:
            stored = event.model_copy(update={"id": self._next_event_id})
            self._next_event_id += 1
            self._behaviors.append(stored)
            return stored.model_copy()

    async def claim_interest_event(self, event_id: int) -> bool:
        with self._lock:
            if event_id in self._claimed_events:
                return False
            self._claimed_events.add(event_id)
            return True

    async def release_interest_event(self, event_id: int) -> None:
        with self._lock:
            self._claimed_events.discard(event_id)

    # =========================================================================
    # Interests
    # =========================================================================

    async def top_interests(self, user_id: int, limit: int) -> List[InterestRecord]:
        with self._lock:
            records = [r for (uid, _), r in self._interests.items() if uid == user_id]
        records.sort(key=lambda r: (-r.score, r.category_id))
        return [r.model_copy() for r in records[:limit]]

    async def get_interest(self, user_id: int, category_id: int) -> Optional[InterestRecord]:
        with self._lock:
            record = self._interests.get((user_id, category_id))
            return record.model_copy() if record else None

    async def save_interest(self, record: InterestRecord) -> InterestRecord:
        with self._lock:
            self._interests[(record.user_id, record.category_id)] = record.model_copy()
        return record

    # =========================================================================
    # Videos
    # =========================================================================

    def _published(self) -> List[Video]:
        # Caller holds the lock
        return [v for v in self._videos.values() if v.status == VideoStatus.PUBLISHED]

    async def get_video(self, video_id: int) -> Optional[Video]:
        with self._lock:
            video = self._videos.get(video_id)
            return video.model_copy() if video else None

    async def get_videos(self, video_ids: Collection[int]) -> List[Video]:
        with self._lock:
            return [self._videos[i].model_copy() for i in video_ids if i in self._videos]

    async def get_video_stats(self, video_id: int, day: date) -> Optional[VideoDailyStats]:
        with self._lock:
            stats = self._stats.get((video_id, day))
            return stats.model_copy() if stats else None

    async def videos_in_categories(
        self, category_ids: Collection[int], limit: int
    ) -> List[Video]:
        wanted = set(category_ids)
        with self._lock:
            videos = [v for v in self._published() if v.category_id in wanted]
        videos.sort(key=lambda v: v.hot_score, reverse=True)
        return [v.model_copy() for v in videos[:limit]]

    async def hot_videos(self, since: datetime, limit: int) -> List[Video]:
        with self._lock:
            videos = [
                v for v in self._published()
                if v.published_at is not None and v.published_at > since
            ]
        videos.sort(key=lambda v: v.hot_score, reverse=True)
        return [v.model_copy() for v in videos[:limit]]

    async def recent_videos(self, since: datetime, limit: int) -> List[Video]:
        with self._lock:
            videos = [
                v for v in self._published()
                if v.published_at is not None and v.published_at > since
            ]
        videos.sort(key=lambda v: v.published_at, reverse=True)
        return [v.model_copy() for v in videos[:limit]]

    async def videos_by_authors(self, author_ids: Collection[int], limit: int) -> List[Video]:
        authors = set(author_ids)
        with self._lock:
            videos = [v for v in self._published() if v.owner_id in authors]
        videos.sort(key=lambda v: v.published_at or NEVER, reverse=True)
        return [v.model_copy() for v in videos[:limit]]

    async def random_videos(self, limit: int, exclude_ids: Collection[int] = ()) -> List[Video]:
        excluded = set(exclude_ids)
        with self._lock:
            pool = [v for v in self._published() if v.id not in excluded]
            picked = self._random.sample(pool, min(limit, len(pool))) if limit > 0 else []
        return [v.model_copy() for v in picked]

    # =========================================================================
    # Social graph
    # =========================================================================

    async def recent_liked_video_ids(self, user_id: int, limit: int) -> List[int]:
        with self._lock:
            likes = [(vid, at) for uid, vid, at in self._likes if uid == user_id]
        likes.sort(key=lambda like: like[1], reverse=True)
        return [vid for vid, _ in likes[:limit]]

    async def users_who_liked(
        self, video_ids: Collection[int], exclude_user_id: int, limit: int
    ) -> List[int]:
        wanted = set(video_ids)
        users: List[int] = []
        with self._lock:
            for uid, vid, _ in self._likes:
                if vid in wanted and uid != exclude_user_id and uid not in users:
                    users.append(uid)
        return users[:limit]

    async def videos_liked_by(
        self,
        user_ids: Collection[int],
        exclude_video_ids: Collection[int],
        limit: int,
    ) -> List[Video]:
        users = set(user_ids)
        excluded = set(exclude_video_ids)
        with self._lock:
            counts = Counter(
                vid for uid, vid, _ in self._likes if uid in users and vid not in excluded
            )
            videos = [
                self._videos[vid]
                for vid, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
                if vid in self._videos and self._videos[vid].status == VideoStatus.PUBLISHED
            ]
        return [v.model_copy() for v in videos[:limit]]

    async def followed_author_ids(self, user_id: int, limit: int) -> List[int]:
        with self._lock:
            return list(self._follows.get(user_id, []))[:limit]
