"""
Feed API router.
Implements the GET /v1/feed endpoints, one per scene.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response

from feedrec.api.dependencies import get_recommendation_engine
from feedrec.config import get_settings
from feedrec.core.exceptions import ValidationError
from feedrec.models.schemas import (
    ErrorResponse,
    RecommendationRequest,
    RecommendationResponse,
    Scene,
)
from feedrec.services.engine import RecommendationEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["feed"])

FEED_RESPONSES = {
    200: {"description": "Ranked page returned successfully"},
    400: {"model": ErrorResponse, "description": "Invalid request"},
    404: {"model": ErrorResponse, "description": "Unknown viewer"},
    500: {"model": ErrorResponse, "description": "Pipeline stage failed"},
    503: {"model": ErrorResponse, "description": "Store unavailable"},
}


class FeedQuery:
    """Query parameters shared by every scene."""

    def __init__(
        self,
        viewer_id: Optional[int] = Query(
            default=None,
            ge=1,
            description="Viewer id, omit for anonymous requests",
        ),
        page: int = Query(default=1, ge=1, description="1-based page number"),
        page_size: Optional[int] = Query(
            default=None,
            ge=1,
            description="Number of videos per page, capped by MAX_PAGE_SIZE",
        ),
    ) -> None:
        self.viewer_id = viewer_id
        self.page = page
        self.page_size = page_size


async def _serve(
    scene: Scene,
    query: FeedQuery,
    response: Response,
    engine: RecommendationEngine,
) -> RecommendationResponse:
    settings = get_settings()
    page_size = query.page_size or settings.DEFAULT_PAGE_SIZE
    if page_size > settings.MAX_PAGE_SIZE:
        raise ValidationError(
            f"page_size must be at most {settings.MAX_PAGE_SIZE}",
            details={"page_size": page_size},
        )

    result = await engine.recommend(
        RecommendationRequest(
            viewer_id=query.viewer_id,
            scene=scene,
            page=query.page,
            page_size=page_size,
        )
    )
    # Pages are per-viewer and never reproducible across calls
    response.headers["Cache-Control"] = "private, no-cache"
    return result


@router.get(
    "/feed",
    response_model=RecommendationResponse,
    summary="Get Recommended Feed",
    description="""
    Retrieve one page of the personalized recommendation feed.

    Candidates are recalled from collaborative, content, hot and new-video
    strategies, scored on CTR, completion, engagement, popularity and
    freshness, then filtered for watch history, quality, category diversity
    and blocked authors.
    """,
    responses=FEED_RESPONSES,
)
async def get_feed(
    response: Response,
    query: FeedQuery = Depends(),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> RecommendationResponse:
    return await _serve(Scene.FEED, query, response, engine)


@router.get(
    "/feed/follow",
    response_model=RecommendationResponse,
    summary="Get Follow Feed",
    description="Recommended feed with videos from followed authors mixed in. Requires viewer_id.",
    responses=FEED_RESPONSES,
)
async def get_follow_feed(
    response: Response,
    query: FeedQuery = Depends(),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> RecommendationResponse:
    return await _serve(Scene.FOLLOW, query, response, engine)


@router.get(
    "/feed/hot",
    response_model=RecommendationResponse,
    summary="Get Hot Feed",
    responses=FEED_RESPONSES,
)
async def get_hot_feed(
    response: Response,
    query: FeedQuery = Depends(),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> RecommendationResponse:
    return await _serve(Scene.HOT, query, response, engine)
