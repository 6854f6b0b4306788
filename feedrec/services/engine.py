"""
Recommendation engine - main pipeline orchestrator.

    recall -> extract features -> rank -> [diversity] -> filter -> paginate

Stages run sequentially. Partial failures inside a stage are absorbed by the
stage itself; anything unexpected that escapes a stage aborts the request
with RecommendationError naming that stage.
"""
import inspect
import logging
import time
from typing import Any, Callable, List

from opentelemetry import trace

from feedrec.core.exceptions import (
    AppException,
    NotFoundError,
    RecommendationError,
    StoreUnavailableError,
    ValidationError,
)
from feedrec.core.telemetry import STAGE_FAILURES
from feedrec.models.interfaces import RecommendationStore
from feedrec.models.schemas import (
    BehaviorEvent,
    RecommendationRequest,
    RecommendationResponse,
    Scene,
    Video,
)
from feedrec.services.features import FeatureEngineer
from feedrec.services.filtering import VideoFilter
from feedrec.services.ranking import Ranker
from feedrec.services.recall import Recaller

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RecommendationEngine:
    """
    Composes the pipeline components for one request.

    Responsibilities:
    - Validate the viewer
    - Run each stage inside a tracing span
    - Slice the filtered list into the requested page
    - Route feedback (behavior events, feature invalidation, blocks)
    """

    def __init__(
        self,
        store: RecommendationStore,
        recaller: Recaller,
        feature_engineer: FeatureEngineer,
        ranker: Ranker,
        video_filter: VideoFilter,
        recall_multiplier: int = 10,
        apply_diversity: bool = False,
        diversity_ratio: float = 0.3,
    ) -> None:
        """
        Initialize engine with its stages.

        Args:
            store: Persistent store, used for viewer validation
            recaller: Candidate recall stage
            feature_engineer: Feature extraction stage and feedback sink
            ranker: Scoring stage
            video_filter: Post-ranking filter stage
            recall_multiplier: Candidate pool size as a multiple of page_size
            apply_diversity: Run Ranker.apply_diversity between rank and filter
            diversity_ratio: Ratio passed to apply_diversity
        """
        self._store = store
        self._recaller = recaller
        self._features = feature_engineer
        self._ranker = ranker
        self._filter = video_filter
        self._recall_multiplier = recall_multiplier
        self._apply_diversity = apply_diversity
        self._diversity_ratio = diversity_ratio

    async def recommend(self, request: RecommendationRequest) -> RecommendationResponse:
        """
        Produce one page of recommendations.

        Raises:
            ValidationError: Follow scene without a viewer
            NotFoundError: Unknown viewer id
            StoreUnavailableError: Viewer could not be validated
            RecommendationError: A stage failed unexpectedly
        """
        start_time = time.time()
        viewer_id = request.viewer_id

        if request.scene == Scene.FOLLOW and viewer_id is None:
            raise ValidationError("The follow feed requires a viewer")
        if viewer_id is not None:
            await self._validate_viewer(viewer_id)

        limit = request.page_size * self._recall_multiplier

        candidates: List[Video] = await self._run_stage(
            "recall", lambda: self._recaller.recall(viewer_id, request.scene, limit)
        )
        features = await self._run_stage(
            "extract", lambda: self._features.extract(viewer_id, candidates)
        )
        ranked = await self._run_stage(
            "rank", lambda: self._ranker.rank(candidates, features)
        )
        if self._apply_diversity:
            ranked = await self._run_stage(
                "diversity",
                lambda: self._ranker.apply_diversity(ranked, self._diversity_ratio),
            )
        filtered: List[Video] = await self._run_stage(
            "filter",
            lambda: self._filter.filter(viewer_id, [c.video for c in ranked]),
        )

        offset = (request.page - 1) * request.page_size
        page = filtered[offset:offset + request.page_size]

        elapsed_ms = (time.time() - start_time) * 1000
        logger.info(
            f"Recommendations served: viewer={viewer_id}, scene={request.scene.value}, "
            f"recalled={len(candidates)}, filtered={len(filtered)}, "
            f"returned={len(page)}, elapsed_ms={elapsed_ms:.2f}",
            extra={"viewer_id": viewer_id, "scene": request.scene.value},
        )

        return RecommendationResponse(
            videos=page,
            total=len(filtered),
            page=request.page,
            page_size=request.page_size,
            scene=request.scene,
        )

    async def _validate_viewer(self, viewer_id: int) -> None:
        try:
            user = await self._store.get_user(viewer_id)
        except AppException:
            raise
        except Exception as e:
            raise StoreUnavailableError("get_user", str(e)) from e
        if user is None:
            raise NotFoundError("User", viewer_id)

    async def _run_stage(self, stage: str, func: Callable[[], Any]) -> Any:
        with tracer.start_as_current_span(f"recommend.{stage}"):
            try:
                result = func()
                if inspect.isawaitable(result):
                    result = await result
                return result
            except AppException:
                raise
            except Exception as e:
                logger.exception(f"Recommendation stage '{stage}' failed")
                STAGE_FAILURES.labels(stage=stage).inc()
                raise RecommendationError(stage, str(e)) from e

    # =========================================================================
    # Feedback
    # =========================================================================

    async def update_user_profile(self, user_id: int, event: BehaviorEvent) -> BehaviorEvent:
        return await self._features.update_user_profile(user_id, event)

    async def update_video_feature(self, video_id: int) -> None:
        await self._features.update_video_feature(video_id)

    async def block_author(self, user_id: int, author_id: int) -> None:
        await self._validate_viewer(user_id)
        await self._filter.block_author(user_id, author_id)

    async def unblock_author(self, user_id: int, author_id: int) -> None:
        await self._validate_viewer(user_id)
        await self._filter.unblock_author(user_id, author_id)
