"""
BaitGuard — Engine Admin Routes
GET   /stats          — usage, latency and feedback accuracy per backend
GET   /config         — current runtime config
PATCH /config         — hot-update runtime config (validated)
GET   /diagnostics    — backend health, including a live LLM probe
POST  /test-backends  — classify a fixed probe post on every ML backend
GET   /export         — config, stats, model snapshot and feedback buffer
POST  /reset          — clear state and retrain from seed data
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import ValidationError

from api.routes.classify import get_engine
from api.schemas import ConfigUpdateRequest, StatsResponse
from config import EngineConfig
from scoring.engine import EnsembleManager

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Engine"])


@router.get("/stats", response_model=StatsResponse, summary="Engine statistics")
async def get_stats(engine: EnsembleManager = Depends(get_engine)) -> StatsResponse:
    return StatsResponse(**engine.get_stats())


@router.get("/config", response_model=EngineConfig, summary="Current runtime config")
async def get_config(engine: EnsembleManager = Depends(get_engine)) -> EngineConfig:
    return engine.config


@router.patch("/config", response_model=EngineConfig, summary="Hot-update runtime config")
async def update_config(
    body: ConfigUpdateRequest, engine: EnsembleManager = Depends(get_engine)
) -> EngineConfig:
    try:
        return await engine.update_config(body.engine_updates(), llm_options=body.llm_options())
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc


@router.get("/diagnostics", summary="Backend diagnostics")
async def diagnostics(engine: EnsembleManager = Depends(get_engine)) -> dict:
    return await engine.get_diagnostics()


@router.post("/test-backends", summary="Probe every ML backend")
async def test_backends(engine: EnsembleManager = Depends(get_engine)) -> dict:
    return await engine.test_backends()


@router.get("/export", summary="Export engine state")
async def export_data(engine: EnsembleManager = Depends(get_engine)) -> dict:
    return await engine.export_data()


@router.post("/reset", summary="Reset engine state")
async def reset(engine: EnsembleManager = Depends(get_engine)) -> dict:
    logger.warning("Engine reset requested")
    return await engine.reset()
