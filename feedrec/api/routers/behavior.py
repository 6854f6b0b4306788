"""
Feedback router.
Behavior ingestion, video feature invalidation and author blocking.
"""
import logging

from fastapi import APIRouter, Depends, Response, status

from feedrec.api.dependencies import get_recommendation_engine
from feedrec.models.schemas import (
    BehaviorAccepted,
    BehaviorEvent,
    BehaviorEventIn,
    ErrorResponse,
)
from feedrec.services.engine import RecommendationEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["feedback"])


@router.post(
    "/users/{user_id}/behaviors",
    response_model=BehaviorAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Report Behavior Event",
    description="""
    Record a viewer interaction. The event is stored before the response is
    sent; the interest-score update runs in the background.
    """,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown user"},
        503: {"model": ErrorResponse, "description": "Store unavailable"},
    },
)
async def report_behavior(
    user_id: int,
    payload: BehaviorEventIn,
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> BehaviorAccepted:
    event = BehaviorEvent(user_id=user_id, **payload.model_dump())
    stored = await engine.update_user_profile(user_id, event)
    return BehaviorAccepted(event_id=stored.id)


@router.post(
    "/videos/{video_id}/features/invalidate",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Invalidate Video Features",
    responses={404: {"model": ErrorResponse, "description": "Unknown video"}},
)
async def invalidate_video_features(
    video_id: int,
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> Response:
    await engine.update_video_feature(video_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/users/{user_id}/blocks/{author_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Block Author",
    responses={404: {"model": ErrorResponse, "description": "Unknown user"}},
)
async def block_author(
    user_id: int,
    author_id: int,
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> Response:
    await engine.block_author(user_id, author_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/users/{user_id}/blocks/{author_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Unblock Author",
    responses={404: {"model": ErrorResponse, "description": "Unknown user"}},
)
async def unblock_author(
    user_id: int,
    author_id: int,
    engine: RecommendationEngine = Depends(get_recommendation_engine),
) -> Response:
    await engine.unblock_author(user_id, author_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
