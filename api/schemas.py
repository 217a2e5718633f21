"""
BaitGuard — Pydantic Request / Response Schemas
HTTP shapes for the classification engine. Engine dataclasses are converted
at the route boundary; the engine itself never sees these models.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from scoring.results import ClassificationContext, ClassificationResult


# ── Enums ─────────────────────────────────────────────────────────────────────

class BackendMode(str, Enum):
    RULES = "rules"
    NEURAL = "neural"
    LLM = "llm"
    AUTOMATIC = "automatic"


class Aggressiveness(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ── Request Models ────────────────────────────────────────────────────────────

class ContextModel(BaseModel):
    author: Optional[str] = None
    has_media: bool = False
    prior_score: Optional[float] = Field(None, ge=0.0)
    aggressiveness: Optional[Aggressiveness] = None
    language: Optional[str] = Field(None, min_length=2, max_length=5)
    requires_detailed_analysis: bool = False

    def to_context(self) -> ClassificationContext:
        data = self.model_dump()
        if self.aggressiveness is not None:
            data["aggressiveness"] = self.aggressiveness.value
        return ClassificationContext(**data)


class ClassifyRequest(BaseModel):
    text: str = Field(..., max_length=10_000, description="Post text; empty text yields a neutral rules result")
    context: Optional[ContextModel] = None


class BatchClassifyRequest(BaseModel):
    texts: list[str] = Field(..., min_length=1, max_length=100)
    context: Optional[ContextModel] = None


class PredictionModel(BaseModel):
    """The prediction a feedback label refers to, as returned by /classify."""
    confidence: float = Field(..., ge=0.0, le=1.0)
    is_bait: bool
    method: str
    reasoning: str = ""
    raw_backend_payload: Any = None

    def to_result(self) -> ClassificationResult:
        return ClassificationResult(**self.model_dump())


class FeedbackRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=10_000)
    actual_label: int = Field(..., ge=0, le=1, description="1 = bait, 0 = genuine")
    original: PredictionModel


class LLMOptions(BaseModel):
    enabled: Optional[bool] = None
    endpoint: Optional[str] = None
    model: Optional[str] = None
    timeout: Optional[float] = Field(None, gt=0)


class ConfigUpdateRequest(BaseModel):
    backend: Optional[BackendMode] = None
    confidence_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)
    aggressiveness: Optional[Aggressiveness] = None
    supported_languages: Optional[list[str]] = None
    retrain_threshold: Optional[int] = Field(None, ge=1)
    adaptive_mode: Optional[bool] = None
    auto_retrain: Optional[bool] = None
    rule_weight: Optional[float] = Field(None, ge=0.0, le=1.0)
    ml_weight: Optional[float] = Field(None, ge=0.0, le=1.0)
    llm: Optional[LLMOptions] = None

    def engine_updates(self) -> dict:
        return self.model_dump(exclude_none=True, exclude={"llm"}, mode="json")

    def llm_options(self) -> dict | None:
        return self.llm.model_dump(exclude_none=True) if self.llm else None


# ── Response Models ───────────────────────────────────────────────────────────

class ClassificationResponse(BaseModel):
    confidence: float = Field(..., ge=0.0, le=1.0)
    is_bait: bool
    method: str
    reasoning: str
    response_time_ms: float = 0.0
    backend: str
    rule_score: Optional[float] = None
    language: Optional[str] = None
    failure_reason: Optional[str] = None
    error: Optional[str] = None
    parse_success: Optional[bool] = None
    available_backends: Optional[dict[str, bool]] = None
    raw_backend_payload: Any = None

    @classmethod
    def from_result(cls, result: ClassificationResult) -> "ClassificationResponse":
        return cls(**result.to_dict())


class BatchItemResponse(BaseModel):
    index: int
    result: Optional[ClassificationResponse] = None
    error: Optional[str] = None


class BatchClassifyResponse(BaseModel):
    total: int
    failed: int
    items: list[BatchItemResponse]
    processing_time_ms: Optional[float] = None


class FeedbackResponse(BaseModel):
    success: bool
    feedback_results: dict[str, Any] = Field(default_factory=dict)
    accuracy_updated: bool = False


class BackendStatsModel(BaseModel):
    invocations: int = 0
    cumulative_latency_ms: float = 0.0
    correct_feedback: int = 0
    total_feedback: int = 0
    failures: int = 0
    average_latency_ms: float = 0.0
    accuracy: float = 0.0


class StatsResponse(BaseModel):
    total_classifications: int
    backend: BackendMode
    available_backends: dict[str, bool]
    backends: dict[str, BackendStatsModel]
    llm: Optional[dict[str, Any]] = None


# ── Error ─────────────────────────────────────────────────────────────────────

class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None
    code: Optional[str] = None
