"""
Pytest configuration and fixtures.
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from feedrec.api.dependencies import clear_caches
from feedrec.core.cache import InMemoryCache
from feedrec.main import app
from feedrec.models.schemas import UserProfile, Video, VideoStatus
from feedrec.repositories.memory import InMemoryRecommendationStore

# Fixed "now" for deterministic decay and windows
NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def store():
    """Empty in-memory store with two users."""
    repo = InMemoryRecommendationStore()
    repo.add_user(UserProfile(id=1, gender=1, city="Hangzhou"))
    repo.add_user(UserProfile(id=2, gender=2, city="Beijing"))
    return repo


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def make_video():
    """Factory for published, filter-passing videos."""

    def _make(video_id: int, **overrides) -> Video:
        fields = dict(
            id=video_id,
            owner_id=100 + video_id,
            category_id=1,
            title=f"Video {video_id}",
            duration=60,
            status=VideoStatus.PUBLISHED,
            quality_score=80.0,
            hot_score=100.0,
            play_count=1000,
            like_count=100,
            comment_count=20,
            share_count=10,
            published_at=NOW - timedelta(hours=2),
        )
        fields.update(overrides)
        return Video(**fields)

    return _make


@pytest.fixture
def test_client():
    """
    TestClient fixture running the full app lifespan.
    Singletons are rebuilt per test so the seeded store starts clean.
    """
    clear_caches()

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    clear_caches()
