"""
BaitGuard — Result Types
Per-call values (ClassificationResult, ClassificationContext), per-backend
counters (BackendStats) and feedback records shared across the engine.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class Backend(str, Enum):
    RULES = "rules"
    NEURAL = "neural"
    LLM = "llm"
    AUTOMATIC = "automatic"


class Method(str, Enum):
    RULES = "rules"
    NEURAL = "neural"
    LLM = "llm"
    AUTOMATIC_LLM = "automatic_llm"
    AUTOMATIC_NEURAL = "automatic_neural"
    AUTOMATIC_RULES = "automatic_rules"
    AUTOMATIC_FALLBACK = "automatic_fallback"
    NEURAL_FAILED = "neural_failed"
    LLM_FAILED = "llm_failed"


FAILED_METHODS = {Method.NEURAL_FAILED.value, Method.LLM_FAILED.value}


@dataclass
class ClassificationContext:
    author: str | None = None
    has_media: bool = False
    prior_score: float | None = None
    aggressiveness: str | None = None
    language: str | None = None
    requires_detailed_analysis: bool = False


@dataclass
class ClassificationResult:
    confidence: float
    is_bait: bool
    method: str
    reasoning: str
    response_time_ms: float = 0.0
    raw_backend_payload: Any = None
    backend: str = Backend.RULES.value
    rule_score: float | None = None
    language: str | None = None
    failure_reason: str | None = None
    error: str | None = None
    parse_success: bool | None = None
    available_backends: dict[str, bool] | None = None

    def __post_init__(self):
        self.confidence = max(0.0, min(1.0, float(self.confidence)))

    @property
    def failed(self) -> bool:
        return self.method in FAILED_METHODS

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BackendStats:
    invocations: int = 0
    cumulative_latency_ms: float = 0.0
    correct_feedback: int = 0
    total_feedback: int = 0
    failures: int = 0

    @property
    def average_latency_ms(self) -> float:
        return self.cumulative_latency_ms / self.invocations if self.invocations else 0.0

    @property
    def accuracy(self) -> float:
        return self.correct_feedback / self.total_feedback if self.total_feedback else 0.0

    def record_call(self, latency_ms: float, failed: bool = False) -> None:
        self.invocations += 1
        self.cumulative_latency_ms += latency_ms
        if failed:
            self.failures += 1

    def record_feedback(self, correct: bool) -> None:
        self.total_feedback += 1
        if correct:
            self.correct_feedback += 1

    def to_dict(self) -> dict:
        data = asdict(self)
        data["average_latency_ms"] = round(self.average_latency_ms, 2)
        data["accuracy"] = round(self.accuracy, 4)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "BackendStats":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class FeedbackRecord:
    text: str
    predicted_confidence: float
    actual_label: int
    original_method: str
    timestamp: float = field(default_factory=time.time)
    features: list[float] | None = None

    def __post_init__(self):
        if self.actual_label not in (0, 1):
            raise ValueError(f"actual_label must be 0 or 1, got {self.actual_label!r}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "FeedbackRecord":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
