"""
BaitGuard — Classification Routes
POST /classify        — classify one post
POST /classify/batch  — classify up to 100 posts in bounded concurrent chunks
POST /feedback        — submit a human label for an earlier prediction
"""
import logging
import time

from fastapi import APIRouter, Depends, Request

from api.schemas import (
    BatchClassifyRequest,
    BatchClassifyResponse,
    BatchItemResponse,
    ClassificationResponse,
    ClassifyRequest,
    ErrorResponse,
    FeedbackRequest,
    FeedbackResponse,
)
from scoring.engine import EnsembleManager

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Classification"])


def get_engine(request: Request) -> EnsembleManager:
    """The engine context built by the app lifespan."""
    return request.app.state.engine


@router.post(
    "/classify",
    response_model=ClassificationResponse,
    summary="Classify a post",
    description="Scores the text with the configured backend mode and returns a verdict with reasoning.",
    responses={503: {"model": ErrorResponse, "description": "Engine not initialized"}},
)
async def classify(body: ClassifyRequest, engine: EnsembleManager = Depends(get_engine)) -> ClassificationResponse:
    logger.info("classify called | chars=%d | mode=%s", len(body.text), engine.config.backend)
    context = body.context.to_context() if body.context else None
    result = await engine.classify(body.text, context)
    return ClassificationResponse.from_result(result)


@router.post(
    "/classify/batch",
    response_model=BatchClassifyResponse,
    summary="Classify many posts",
    responses={503: {"model": ErrorResponse, "description": "Engine not initialized"}},
)
async def classify_batch(
    body: BatchClassifyRequest, engine: EnsembleManager = Depends(get_engine)
) -> BatchClassifyResponse:
    start = time.perf_counter()
    logger.info("classify/batch called | items=%d", len(body.texts))
    context = body.context.to_context() if body.context else None
    items = await engine.classify_batch(body.texts, context)
    response_items = [
        BatchItemResponse(
            index=item.index,
            result=ClassificationResponse.from_result(item.result) if item.ok else None,
            error=item.error,
        )
        for item in items
    ]
    return BatchClassifyResponse(
        total=len(response_items),
        failed=sum(1 for item in items if not item.ok),
        items=response_items,
        processing_time_ms=round((time.perf_counter() - start) * 1000, 1),
    )


@router.post(
    "/feedback",
    response_model=FeedbackResponse,
    summary="Submit a label for an earlier prediction",
    description="Neural predictions feed the retraining buffer; all feedback updates accuracy stats.",
)
async def feedback(body: FeedbackRequest, engine: EnsembleManager = Depends(get_engine)) -> FeedbackResponse:
    logger.info("feedback called | label=%d | method=%s", body.actual_label, body.original.method)
    outcome = await engine.provide_feedback(body.text, body.actual_label, body.original.to_result())
    return FeedbackResponse(**outcome)
