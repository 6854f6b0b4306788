"""
Unit tests for the RecommendationEngine pipeline.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from feedrec.core.exceptions import (
    NotFoundError,
    RecommendationError,
    StoreUnavailableError,
    ValidationError,
)
from feedrec.models.schemas import FeatureSet, RecommendationRequest, Scene, VideoStatus
from feedrec.services.engine import RecommendationEngine
from feedrec.services.features import FeatureEngineer
from feedrec.services.filtering import VideoFilter
from feedrec.services.ranking import Ranker
from feedrec.services.recall import Recaller


def build_engine(store, cache, clock, **overrides) -> RecommendationEngine:
    components = dict(
        store=store,
        recaller=Recaller(store, cache, clock=clock),
        feature_engineer=FeatureEngineer(store, cache, clock=clock),
        ranker=Ranker(clock=clock),
        video_filter=VideoFilter(store, cache, clock=clock),
    )
    components.update(overrides)
    return RecommendationEngine(**components)


@pytest.fixture
def distinct_catalogue(store, make_video):
    """Six published videos, one per category, so nothing is capped."""
    for video_id in range(1, 7):
        store.add_video(make_video(video_id, category_id=video_id, hot_score=video_id * 100.0))
    return store


class TestRecommend:
    @pytest.mark.asyncio
    async def test_cold_start_viewer(self, store, cache, clock, make_video):
        """Viewer with no history still gets a page from the general strategies."""
        for video_id in range(1, 11):
            store.add_video(make_video(video_id, category_id=video_id % 3))
        store.add_video(make_video(11, category_id=5, status=VideoStatus.PENDING))

        response = await build_engine(store, cache, clock).recommend(
            RecommendationRequest(viewer_id=2, scene=Scene.FEED, page=1, page_size=5)
        )

        ids = [v.id for v in response.videos]
        assert 0 < len(ids) <= 5
        assert len(ids) == len(set(ids))
        assert 11 not in ids
        # Three categories, at most two each
        assert response.total == 6

    @pytest.mark.asyncio
    async def test_exact_page_fit(self, distinct_catalogue, cache, clock):
        engine = build_engine(distinct_catalogue, cache, clock)

        first = await engine.recommend(RecommendationRequest(viewer_id=1, page=1, page_size=6))
        second = await engine.recommend(RecommendationRequest(viewer_id=None, page=2, page_size=6))

        assert len(first.videos) == 6
        assert first.total == 6
        assert second.videos == []

    @pytest.mark.asyncio
    async def test_page_past_end(self, distinct_catalogue, cache, clock):
        response = await build_engine(distinct_catalogue, cache, clock).recommend(
            RecommendationRequest(viewer_id=None, page=5, page_size=4)
        )

        assert response.videos == []
        assert response.total == 6
        assert response.page == 5

    @pytest.mark.asyncio
    async def test_pages_slice_the_ranked_list(self, distinct_catalogue, cache, clock):
        engine = build_engine(distinct_catalogue, cache, clock)

        page_1 = await engine.recommend(RecommendationRequest(page=1, page_size=4))
        page_2 = await engine.recommend(RecommendationRequest(page=2, page_size=4))

        assert len(page_1.videos) == 4
        assert len(page_2.videos) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page,expected", [(1, 15), (2, 0)])
    async def test_fifteen_filtered_videos(self, store, cache, clock, make_video, page, expected):
        filtered = [make_video(i) for i in range(1, 16)]
        video_filter = MagicMock(spec=VideoFilter)
        video_filter.filter = AsyncMock(return_value=filtered)
        engine = build_engine(store, cache, clock, video_filter=video_filter)

        response = await engine.recommend(RecommendationRequest(page=page, page_size=20))

        assert len(response.videos) == expected
        assert response.total == 15

    @pytest.mark.asyncio
    async def test_ranked_by_score(self, distinct_catalogue, cache, clock):
        response = await build_engine(distinct_catalogue, cache, clock).recommend(
            RecommendationRequest(page=1, page_size=6)
        )

        # Identical apart from hot score
        assert [v.id for v in response.videos] == [6, 5, 4, 3, 2, 1]

    @pytest.mark.asyncio
    async def test_unknown_viewer(self, store, cache, clock):
        with pytest.raises(NotFoundError):
            await build_engine(store, cache, clock).recommend(
                RecommendationRequest(viewer_id=404)
            )

    @pytest.mark.asyncio
    async def test_follow_requires_viewer(self, store, cache, clock):
        with pytest.raises(ValidationError):
            await build_engine(store, cache, clock).recommend(
                RecommendationRequest(viewer_id=None, scene=Scene.FOLLOW)
            )

    @pytest.mark.asyncio
    async def test_viewer_lookup_failure(self, store, cache, clock):
        store.get_user = AsyncMock(side_effect=ConnectionError("db down"))

        with pytest.raises(StoreUnavailableError):
            await build_engine(store, cache, clock).recommend(RecommendationRequest(viewer_id=1))

    @pytest.mark.asyncio
    async def test_stage_failure_is_named(self, distinct_catalogue, cache, clock):
        ranker = MagicMock(spec=Ranker)
        ranker.rank.side_effect = ZeroDivisionError("bad weights")
        engine = build_engine(distinct_catalogue, cache, clock, ranker=ranker)

        with pytest.raises(RecommendationError) as exc_info:
            await engine.recommend(RecommendationRequest(viewer_id=1))
        assert exc_info.value.details["stage"] == "rank"

    @pytest.mark.asyncio
    async def test_app_exceptions_pass_through(self, distinct_catalogue, cache, clock):
        recaller = MagicMock(spec=Recaller)
        recaller.recall = AsyncMock(side_effect=StoreUnavailableError("recall"))
        engine = build_engine(distinct_catalogue, cache, clock, recaller=recaller)

        with pytest.raises(StoreUnavailableError):
            await engine.recommend(RecommendationRequest(viewer_id=1))

    @pytest.mark.asyncio
    async def test_stages_receive_recall_limit(self, store, cache, clock):
        recaller = MagicMock(spec=Recaller)
        recaller.recall = AsyncMock(return_value=[])
        features = MagicMock(spec=FeatureEngineer)
        features.extract = AsyncMock(return_value=FeatureSet())
        engine = build_engine(
            store, cache, clock,
            recaller=recaller, feature_engineer=features, recall_multiplier=10,
        )

        response = await engine.recommend(
            RecommendationRequest(viewer_id=1, scene=Scene.HOT, page_size=7)
        )

        recaller.recall.assert_awaited_once_with(1, Scene.HOT, 70)
        features.extract.assert_awaited_once_with(1, [])
        assert response.videos == []
        assert response.total == 0

    @pytest.mark.asyncio
    async def test_diversity_runs_when_enabled(self, distinct_catalogue, cache, clock):
        ranker = Ranker(clock=clock)
        video_filter = MagicMock(spec=VideoFilter)
        video_filter.filter = AsyncMock(return_value=[])
        ranker.apply_diversity = MagicMock(side_effect=lambda ranked, ratio: ranked)
        engine = build_engine(
            distinct_catalogue, cache, clock,
            ranker=ranker, video_filter=video_filter,
            apply_diversity=True, diversity_ratio=0.5,
        )

        await engine.recommend(RecommendationRequest(viewer_id=1))

        ranker.apply_diversity.assert_called_once()
        assert ranker.apply_diversity.call_args.args[1] == 0.5


class TestFeedback:
    @pytest.mark.asyncio
    async def test_block_author_requires_known_user(self, store, cache, clock):
        with pytest.raises(NotFoundError):
            await build_engine(store, cache, clock).block_author(404, 1)

    @pytest.mark.asyncio
    async def test_blocked_author_hidden(self, distinct_catalogue, cache, clock):
        engine = build_engine(distinct_catalogue, cache, clock)
        await engine.block_author(1, 106)

        response = await engine.recommend(RecommendationRequest(viewer_id=1, page_size=10))

        assert 6 not in [v.id for v in response.videos]

        await engine.unblock_author(1, 106)
        response = await engine.recommend(RecommendationRequest(viewer_id=1, page_size=10))
        assert 6 in [v.id for v in response.videos]
