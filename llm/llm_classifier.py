"""
BaitGuard — LLM Backend
Classifies posts with a local Ollama model: pick a prompt template, generate,
parse the CONFIDENCE / REASONING reply.

classify() never raises for backend trouble. Connection, timeout and payload
failures come back as a neutral 0.5 result with method "llm_failed" and the
failure reason attached, so the ensemble can decide what to do next.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from llm.ollama_client import (
    DEFAULT_ENDPOINT,
    DEFAULT_MODEL,
    DEFAULT_TIMEOUT,
    MODEL_PRESETS,
    OllamaClient,
    suggest_alternative_model,
)
from llm.prompts import NEUTRAL_CONFIDENCE, PromptBuilder, parse_response
from scoring.batch import DEFAULT_CHUNK_TIMEOUT, DEFAULT_MAX_CONCURRENT, BatchItem, run_batch
from scoring.errors import BackendError, BackendUnavailableError
from scoring.results import Backend, ClassificationContext, ClassificationResult, Method

logger = logging.getLogger(__name__)

DIAGNOSTIC_TEXT = "Great insights! What do you think about this approach?"


@dataclass
class LLMStats:
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    average_response_time_ms: float = 0.0
    last_error: str | None = None

    def record(self, success: bool, response_time_ms: float) -> None:
        if success:
            self.successful_requests += 1
        else:
            self.failed_requests += 1
        done = self.successful_requests + self.failed_requests
        self.average_response_time_ms = (
            (self.average_response_time_ms * (done - 1) + response_time_ms) / done
        )

    @property
    def success_rate(self) -> float:
        return self.successful_requests / self.total_requests if self.total_requests else 0.0


class LLMClassifier:
    """
    Usage:
        clf = LLMClassifier(enabled=True, model="llama3.2:1b")
        await clf.init()                     # probes /api/tags
        result = await clf.classify("Comment YES if you agree 👇")
    """

    name = Backend.LLM.value

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        enabled: bool = False,
        confidence_threshold: float = 0.6,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        batch_timeout: float = DEFAULT_CHUNK_TIMEOUT,
        client: OllamaClient | None = None,
        prompt_builder: PromptBuilder | None = None,
    ):
        self.enabled = enabled
        self.confidence_threshold = confidence_threshold
        self.max_concurrent = max_concurrent
        self.batch_timeout = batch_timeout
        self.client = client or OllamaClient(endpoint=endpoint, model=model, timeout=timeout)
        self.prompts = prompt_builder or PromptBuilder()
        self.stats = LLMStats()
        self.initialized = False
        self.available_models: list[str] = []

    @property
    def model(self) -> str:
        return self.client.model

    @property
    def available(self) -> bool:
        return self.enabled and self.initialized

    # ── Initialisation ────────────────────────────────────────────────────────

    async def init(self) -> bool:
        """Probe the server. Returns False (and stays unavailable) instead of raising."""
        self.initialized = False
        if not self.enabled:
            logger.info("LLM backend disabled; skipping Ollama probe")
            return False

        status = await self.client.test_connection()
        if not status.connected:
            self.stats.last_error = status.error
            logger.warning("LLM backend unavailable: %s", status.error)
            return False

        self.available_models = status.models
        if self.client.model not in status.models:
            alternative = suggest_alternative_model(status.models)
            if alternative is None:
                self.stats.last_error = f"Model {self.client.model} not installed and no alternative found"
                logger.warning("LLM backend unavailable: %s", self.stats.last_error)
                return False
            logger.warning("Model %s not installed; using %s instead", self.client.model, alternative)
            await self.client.reconfigure(model=alternative)

        self.initialized = True
        logger.info("LLM backend ready | model=%s | endpoint=%s", self.client.model, self.client.endpoint)
        return True

    async def check_model_availability(self, model: str | None = None) -> dict:
        model = model or self.client.model
        status = await self.client.test_connection()
        if not status.connected:
            return {"available": False, "error": status.error, "reason": status.reason}
        return {
            "available": model in status.models,
            "model": model,
            "installed": status.models,
            "suggested": None if model in status.models else suggest_alternative_model(status.models),
        }

    # ── Classification ────────────────────────────────────────────────────────

    def _failed(self, exc: BackendError, elapsed_ms: float) -> ClassificationResult:
        return ClassificationResult(
            confidence=NEUTRAL_CONFIDENCE,
            is_bait=False,
            method=Method.LLM_FAILED.value,
            reasoning=f"Classification failed: {exc}",
            response_time_ms=elapsed_ms,
            backend=self.name,
            failure_reason=exc.reason,
            error=str(exc),
        )

    async def classify(
        self,
        text: str,
        context: ClassificationContext | None = None,
    ) -> ClassificationResult:
        start = time.perf_counter()
        self.stats.total_requests += 1
        try:
            if not self.available:
                raise BackendUnavailableError("LLM classifier not available", backend=self.name)
            built = self.prompts.build(text, context)
            reply = await self.client.generate(built.prompt)
        except BackendError as exc:
            elapsed = round((time.perf_counter() - start) * 1000, 2)
            self.stats.record(False, elapsed)
            self.stats.last_error = str(exc)
            logger.warning("LLM classification failed (%s): %s", exc.reason, exc)
            return self._failed(exc, elapsed)

        parsed = parse_response(reply.response)
        elapsed = round((time.perf_counter() - start) * 1000, 2)
        self.stats.record(True, elapsed)
        if not parsed.parse_success:
            logger.warning("Unparseable LLM reply from %s; using neutral confidence", reply.model)

        return ClassificationResult(
            confidence=parsed.confidence,
            is_bait=parsed.confidence >= self.confidence_threshold,
            method=Method.LLM.value,
            reasoning=parsed.reasoning,
            response_time_ms=elapsed,
            raw_backend_payload={
                "model": reply.model,
                "template": built.template,
                "raw_response": parsed.raw_response,
            },
            backend=self.name,
            language=built.language,
            parse_success=parsed.parse_success,
        )

    async def classify_batch(
        self,
        items: list[tuple[str, ClassificationContext | None]],
        max_concurrent: int | None = None,
        timeout: float | None = None,
    ) -> list[BatchItem]:
        async def _one(item):
            text, context = item
            return await self.classify(text, context)

        return await run_batch(
            items, _one,
            max_concurrent=max_concurrent or self.max_concurrent,
            timeout=timeout or self.batch_timeout,
        )

    # ── Configuration / stats ─────────────────────────────────────────────────

    async def update_config(
        self,
        enabled: bool | None = None,
        endpoint: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> bool:
        """Apply new connection settings; re-probes when endpoint, model or enabled change."""
        reinit = (
            (enabled is not None and enabled != self.enabled)
            or (endpoint is not None and endpoint.rstrip("/") != self.client.endpoint)
            or (model is not None and model != self.client.model)
        )
        if enabled is not None:
            self.enabled = enabled
        await self.client.reconfigure(endpoint=endpoint, model=model, timeout=timeout)
        if reinit:
            return await self.init()
        return self.available

    def get_stats(self) -> dict:
        return {
            "total_requests": self.stats.total_requests,
            "successful_requests": self.stats.successful_requests,
            "failed_requests": self.stats.failed_requests,
            "average_response_time_ms": round(self.stats.average_response_time_ms),
            "success_rate": self.stats.success_rate,
            "last_error": self.stats.last_error,
            "initialized": self.initialized,
            "enabled": self.enabled,
            "model": self.client.model,
            "endpoint": self.client.endpoint,
        }

    def reset_stats(self) -> None:
        self.stats = LLMStats()

    async def run_diagnostics(self) -> dict:
        diagnostics: dict = {
            "initialized": self.initialized,
            "enabled": self.enabled,
            "model": self.client.model,
            "endpoint": self.client.endpoint,
            "presets": sorted(MODEL_PRESETS),
            "stats": self.get_stats(),
        }
        status = await self.client.test_connection()
        diagnostics["connection"] = {
            "connected": status.connected,
            "models": status.models,
            "error": status.error,
            "reason": status.reason,
        }
        if status.connected and self.available:
            test_start = time.perf_counter()
            result = await self.classify(DIAGNOSTIC_TEXT)
            diagnostics["classification_test"] = {
                **result.to_dict(),
                "test_duration_ms": round((time.perf_counter() - test_start) * 1000, 2),
            }
        diagnostics["model_availability"] = await self.check_model_availability()
        return diagnostics

    async def aclose(self) -> None:
        await self.client.aclose()
