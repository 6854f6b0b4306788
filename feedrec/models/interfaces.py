"""
Repository interfaces (abstractions).
Using Protocol for structural subtyping (duck typing with type hints).
These define the contracts that data access implementations must follow.

Every method may raise StoreUnavailableError when the backing store fails.
"""
from datetime import date, datetime
from typing import Collection, List, Optional, Protocol, runtime_checkable

from feedrec.models.schemas import (
    ActionType,
    BehaviorEvent,
    InterestRecord,
    UserProfile,
    Video,
    VideoDailyStats,
)


@runtime_checkable
class RecommendationStore(Protocol):
    """
    Interface for the persistent store behind the pipeline.
    Production: Postgres implementation.
    Testing: In-memory implementation.

    Video queries that mention "published" only return VideoStatus.PUBLISHED rows.
    """

    # -- users / behavior -----------------------------------------------------

    async def get_user(self, user_id: int) -> Optional[UserProfile]:
        """Fetch a user profile, None if unknown."""
        ...

    async def list_behaviors(
        self,
        user_id: int,
        since: datetime,
        action: Optional[ActionType] = None,
    ) -> List[BehaviorEvent]:
        """Behavior events created after `since`, optionally of one action."""
        ...

    async def create_behavior(self, event: BehaviorEvent) -> BehaviorEvent:
        """Persist an event and return it with its id assigned."""
        ...

    async def claim_interest_event(self, event_id: int) -> bool:
        """
        Atomically mark an event's interest update as applied.

        Returns:
            False if the event was already claimed
        """
        ...

    async def release_interest_event(self, event_id: int) -> None:
        """Undo a claim after a failed interest update."""
        ...

    # -- interests ------------------------------------------------------------

    async def top_interests(self, user_id: int, limit: int) -> List[InterestRecord]:
        """Interest records ordered by score descending."""
        ...

    async def get_interest(self, user_id: int, category_id: int) -> Optional[InterestRecord]:
        ...

    async def save_interest(self, record: InterestRecord) -> InterestRecord:
        """Create or replace the (user, category) record."""
        ...

    # -- videos ---------------------------------------------------------------

    async def get_video(self, video_id: int) -> Optional[Video]:
        ...

    async def get_videos(self, video_ids: Collection[int]) -> List[Video]:
        """Videos for the given ids, in the order of `video_ids`; unknown ids skipped."""
        ...

    async def get_video_stats(self, video_id: int, day: date) -> Optional[VideoDailyStats]:
        ...

    async def videos_in_categories(
        self, category_ids: Collection[int], limit: int
    ) -> List[Video]:
        """Published videos in any of the categories, by hot score descending."""
        ...

    async def hot_videos(self, since: datetime, limit: int) -> List[Video]:
        """Published videos published after `since`, by hot score descending."""
        ...

    async def recent_videos(self, since: datetime, limit: int) -> List[Video]:
        """Published videos published after `since`, newest first."""
        ...

    async def videos_by_authors(self, author_ids: Collection[int], limit: int) -> List[Video]:
        """Published videos by the authors, newest first."""
        ...

    async def random_videos(self, limit: int, exclude_ids: Collection[int] = ()) -> List[Video]:
        """Arbitrarily ordered published videos."""
        ...

    # -- social graph ---------------------------------------------------------

    async def recent_liked_video_ids(self, user_id: int, limit: int) -> List[int]:
        """Ids of the user's most recently liked videos."""
        ...

    async def users_who_liked(
        self, video_ids: Collection[int], exclude_user_id: int, limit: int
    ) -> List[int]:
        """Distinct users (other than `exclude_user_id`) who liked any of the videos."""
        ...

    async def videos_liked_by(
        self,
        user_ids: Collection[int],
        exclude_video_ids: Collection[int],
        limit: int,
    ) -> List[Video]:
        """Published videos liked by the users, by co-like count descending."""
        ...

    async def followed_author_ids(self, user_id: int, limit: int) -> List[int]:
        ...
