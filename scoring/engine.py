"""
BaitGuard — Ensemble Engine (Orchestrator)
Arbitrates between the rule scorer, the neural backend and the LLM backend.

Modes:
  rules      — rule scorer only
  neural     — neural backend, blended with the rule score; failure is reported
  llm        — LLM backend, blended with the rule score; failure is reported
  automatic  — llm → neural → rules, skipping backends that are unavailable or
               fail; always ends at the rule scorer

The rule scorer runs on every call: it is cheap, it feeds the blend, and it
gives the LLM prompt a prior score.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from datetime import datetime, timezone
from typing import Protocol

from pydantic import ValidationError

from config import EngineConfig, Settings
from llm.llm_classifier import LLMClassifier
from ml.dataset import Sample
from ml.model_builder import choose_preset
from ml.neural_classifier import NeuralClassifier
from nlp.rule_scorer import RuleScorer, ScoredText, build_rule_reasoning, get_threshold
from scoring.batch import BatchItem, run_batch
from scoring.blending import adjusted_threshold, blend_scores, combined_reasoning
from scoring.errors import BackendError, ModelStateError
from scoring.results import (
    Backend,
    BackendStats,
    ClassificationContext,
    ClassificationResult,
    FeedbackRecord,
    Method,
)
from storage import (
    ENGINE_CONFIG,
    ENGINE_STATS,
    FEEDBACK_BUFFER,
    MODEL_SNAPSHOT,
    STORE_KEYS,
    InMemoryStore,
    KeyValueStore,
    build_store,
)

logger = logging.getLogger(__name__)

ML_BACKENDS = (Backend.LLM.value, Backend.NEURAL.value)
STATS_BUCKETS = (Backend.RULES.value, Backend.NEURAL.value, Backend.LLM.value, Backend.AUTOMATIC.value)
TEST_POST = "Great insights! What do you think about this approach? Tag someone who needs to see this!"

_AUTOMATIC_METHODS = {
    Backend.LLM.value: Method.AUTOMATIC_LLM.value,
    Backend.NEURAL.value: Method.AUTOMATIC_NEURAL.value,
}
_FAILED_METHODS = {
    Backend.LLM.value: Method.LLM_FAILED.value,
    Backend.NEURAL.value: Method.NEURAL_FAILED.value,
}


class Classifier(Protocol):
    name: str

    @property
    def available(self) -> bool: ...

    async def classify(
        self, text: str, context: ClassificationContext | None = None
    ) -> ClassificationResult: ...


class RulesClassifier:
    """RuleScorer behind the Classifier interface. Always available."""

    name = Backend.RULES.value

    def __init__(self, scorer: RuleScorer | None = None):
        self.scorer = scorer or RuleScorer()

    @property
    def available(self) -> bool:
        return True

    def from_scored(self, scored: ScoredText, aggressiveness: str | None, elapsed_ms: float = 0.0,
                    method: str = Method.RULES.value) -> ClassificationResult:
        threshold = get_threshold(aggressiveness)
        return ClassificationResult(
            confidence=min(1.0, scored.rule_score / 10),
            is_bait=scored.rule_score >= threshold,
            method=method,
            reasoning=build_rule_reasoning(scored),
            response_time_ms=elapsed_ms,
            raw_backend_payload={"signals": scored.signal_names(), "threshold": threshold},
            backend=self.name,
            rule_score=scored.rule_score,
            language=scored.detected_language,
        )

    async def classify(self, text: str, context: ClassificationContext | None = None) -> ClassificationResult:
        start = time.perf_counter()
        ctx = context or ClassificationContext()
        scored = self.scorer.analyze(text, ctx.language)
        return self.from_scored(scored, ctx.aggressiveness, round((time.perf_counter() - start) * 1000, 2))


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class EnsembleManager:
    """
    Explicit engine context: build once at process start, call init(), then
    share the instance with every caller.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        store: KeyValueStore | None = None,
        neural: NeuralClassifier | None = None,
        llm: LLMClassifier | None = None,
        rules: RulesClassifier | None = None,
        batch_max_concurrent: int = 3,
        batch_timeout: float = 30.0,
    ):
        self.config = config or EngineConfig()
        self._base_config = self.config
        self.store = store or InMemoryStore()
        self.rules = rules or RulesClassifier()
        self.neural = neural
        self.llm = llm
        self.batch_max_concurrent = batch_max_concurrent
        self.batch_timeout = batch_timeout

        self.initialized = False
        self.available_backends: dict[str, bool] = {b: False for b in ML_BACKENDS}
        self.total_classifications = 0
        self.stats: dict[str, BackendStats] = {b: BackendStats() for b in STATS_BUCKETS}
        self._training_samples: list[Sample] | None = None

    # ── Backends ──────────────────────────────────────────────────────────────

    def _backend(self, name: str) -> Classifier | None:
        if name == Backend.RULES.value:
            return self.rules
        if name == Backend.NEURAL.value:
            return self.neural
        if name == Backend.LLM.value:
            return self.llm
        return None

    def _is_available(self, name: str) -> bool:
        if name == Backend.RULES.value:
            return True
        backend = self._backend(name)
        return bool(self.available_backends.get(name)) and backend is not None and backend.available

    def _refresh_availability(self) -> None:
        self.available_backends = {
            Backend.NEURAL.value: bool(self.neural and self.neural.available),
            Backend.LLM.value: bool(self.llm and self.llm.available),
        }

    def _apply_config(self) -> None:
        self.rules.scorer.detector.set_languages(self.config.supported_languages)
        if self.neural is not None:
            self.neural.confidence_threshold = self.config.confidence_threshold
            self.neural.retrain_threshold = self.config.retrain_threshold
            self.neural.auto_retrain = self.config.auto_retrain
        if self.llm is not None:
            self.llm.confidence_threshold = self.config.confidence_threshold
            self.llm.prompts.detector.set_languages(self.config.supported_languages)

    # ── Initialisation ────────────────────────────────────────────────────────

    async def init(self, training_samples: list[Sample] | None = None) -> dict:
        """Load persisted state, bring up the ML backends concurrently, pick a mode."""
        logger.info("Initializing ensemble backends...")
        self._training_samples = training_samples
        await self._load_config()
        await self._load_stats()
        self._apply_config()

        snapshot = await self.store.get(MODEL_SNAPSHOT)
        feedback = await self.store.get(FEEDBACK_BUFFER) or []

        tasks, names = [], []
        if self.neural is not None:
            tasks.append(self.neural.init(training_samples, snapshot=snapshot))
            names.append(Backend.NEURAL.value)
        if self.llm is not None:
            tasks.append(self.llm.init())
            names.append(Backend.LLM.value)

        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, Exception):
                logger.warning("%s backend failed to initialize: %s", name, outcome)
            elif outcome:
                logger.info("%s backend initialized", name)
            else:
                logger.info("%s backend not available", name)
        self._refresh_availability()

        if self.available_backends[Backend.NEURAL.value]:
            try:
                self.neural.load_feedback(feedback)
            except (TypeError, ValueError) as exc:
                logger.warning("Stored feedback buffer discarded: %s", exc)
            if self.neural.snapshot is not None and self.neural.snapshot.to_dict() != snapshot:
                await self.store.set(MODEL_SNAPSHOT, self.neural.export_snapshot())

        if self.config.adaptive_mode:
            self.select_optimal_backend()
        await self.store.set(ENGINE_CONFIG, self.config.model_dump())

        self.initialized = True
        ready = [k for k, v in self.available_backends.items() if v]
        logger.info("Ensemble ready | mode=%s | ML backends: %s", self.config.backend, ", ".join(ready) or "none")
        return {
            "success": True,
            "available_backends": dict(self.available_backends),
            "selected_backend": self.config.backend,
        }

    async def _load_config(self) -> None:
        stored = await self.store.get(ENGINE_CONFIG)
        if not stored:
            return
        try:
            self.config = self.config.merged(stored)
        except ValidationError as exc:
            logger.warning("Stored engine config invalid, using defaults: %s", exc)

    async def _load_stats(self) -> None:
        stored = await self.store.get(ENGINE_STATS)
        if not stored:
            return
        self.total_classifications = int(stored.get("total_classifications", 0))
        for name, data in (stored.get("backends") or {}).items():
            if name in self.stats:
                self.stats[name] = BackendStats.from_dict(data)

    def select_optimal_backend(self) -> str:
        available = [b for b in ML_BACKENDS if self.available_backends.get(b)]
        if len(available) > 1:
            backend = Backend.AUTOMATIC.value
        elif available:
            backend = available[0]
        else:
            backend = Backend.RULES.value
        self.config = self.config.model_copy(update={"backend": backend})
        logger.info("Auto-selected %s backend", backend)
        return backend

    # ── Classification ────────────────────────────────────────────────────────

    def _context(self, text_scored: ScoredText, context: ClassificationContext | None) -> ClassificationContext:
        ctx = context or ClassificationContext()
        return dataclasses.replace(
            ctx,
            aggressiveness=ctx.aggressiveness or self.config.aggressiveness,
            language=ctx.language or text_scored.detected_language,
            prior_score=text_scored.rule_score if ctx.prior_score is None else ctx.prior_score,
        )

    async def classify(self, text: str, context: ClassificationContext | None = None) -> ClassificationResult:
        if not self.initialized:
            raise ModelStateError("EnsembleManager not initialized. Call init() first.")

        start = time.perf_counter()
        self.total_classifications += 1
        scored = self.rules.scorer.analyze(text, context.language if context else None)
        rule_ms = _elapsed_ms(start)
        ctx = self._context(scored, context)
        mode = self.config.backend

        if scored.normalized_length == 0:
            result = self.rules.from_scored(scored, ctx.aggressiveness)
            result.reasoning = "Empty text"
        elif mode == Backend.AUTOMATIC.value:
            result = await self._classify_automatic(text, ctx, scored, rule_ms)
        elif mode in ML_BACKENDS:
            result = await self._classify_fixed(mode, text, ctx, scored)
        else:
            result = self.rules.from_scored(scored, ctx.aggressiveness, rule_ms)
            self.stats[Backend.RULES.value].record_call(rule_ms)

        result.response_time_ms = _elapsed_ms(start)
        result.available_backends = dict(self.available_backends)
        if mode == Backend.AUTOMATIC.value:
            self.stats[Backend.AUTOMATIC.value].record_call(result.response_time_ms)
        return result

    async def _run_backend(
        self, name: str, text: str, ctx: ClassificationContext
    ) -> ClassificationResult:
        """Invoke one ML backend; every failure comes back as a `<backend>_failed` result."""
        start = time.perf_counter()
        if not self._is_available(name):
            result = self._failed_result(name, "unavailable", f"{name} backend not available", start)
        else:
            try:
                result = await self._backend(name).classify(text, ctx)
            except ModelStateError as exc:
                result = self._failed_result(name, "not_initialized", str(exc), start)
            except BackendError as exc:
                result = self._failed_result(name, exc.reason, str(exc), start)
            except Exception as exc:
                logger.exception("%s backend raised during classification", name)
                result = self._failed_result(name, "error", str(exc), start)
        self.stats[name].record_call(_elapsed_ms(start), failed=result.failed)
        return result

    def _failed_result(self, name: str, reason: str, error: str, start: float) -> ClassificationResult:
        return ClassificationResult(
            confidence=0.5,
            is_bait=False,
            method=_FAILED_METHODS[name],
            reasoning=f"Classification failed: {error}",
            response_time_ms=_elapsed_ms(start),
            backend=name,
            failure_reason=reason,
            error=error,
        )

    async def _classify_fixed(
        self, name: str, text: str, ctx: ClassificationContext, scored: ScoredText
    ) -> ClassificationResult:
        result = await self._run_backend(name, text, ctx)
        if result.failed:
            logger.warning("%s backend failed in fixed mode (%s)", name, result.failure_reason)
            result.rule_score = scored.rule_score
            result.language = scored.detected_language
            return result
        return self._blend(result, scored, ctx, result.method)

    async def _classify_automatic(
        self, text: str, ctx: ClassificationContext, scored: ScoredText, rule_ms: float = 0.0
    ) -> ClassificationResult:
        attempted = []
        order = [b for b in self.config.fallback_order if b in ML_BACKENDS]
        for name in order:
            if not self._is_available(name):
                continue
            attempted.append(name)
            result = await self._run_backend(name, text, ctx)
            if not result.failed:
                return self._blend(result, scored, ctx, _AUTOMATIC_METHODS[name])
            logger.warning("%s backend failed in automatic mode (%s); trying next",
                           name, result.failure_reason)

        method = Method.AUTOMATIC_FALLBACK.value if attempted else Method.AUTOMATIC_RULES.value
        result = self.rules.from_scored(scored, ctx.aggressiveness, rule_ms, method=method)
        self.stats[Backend.RULES.value].record_call(rule_ms)
        return result

    def _blend(
        self, ml: ClassificationResult, scored: ScoredText, ctx: ClassificationContext, method: str
    ) -> ClassificationResult:
        blend = blend_scores(
            scored.rule_score,
            ml.confidence,
            scored.detected_language,
            rule_weight=self.config.rule_weight,
            ml_weight=self.config.ml_weight,
        )
        threshold = adjusted_threshold(get_threshold(ctx.aggressiveness), has_ml_result=True)
        should_hide = blend.combined_score >= threshold
        return dataclasses.replace(
            ml,
            confidence=blend.confidence,
            is_bait=should_hide,
            method=method,
            reasoning=combined_reasoning(scored, blend, ml.confidence, ml.reasoning, ml.backend, should_hide),
            raw_backend_payload={
                "backend_payload": ml.raw_backend_payload,
                "ml_confidence": ml.confidence,
                "ml_reasoning": ml.reasoning,
                "combined_score": blend.combined_score,
                "threshold": threshold,
                "weights": {"rule": blend.rule_weight, "ml": blend.ml_weight},
            },
            rule_score=scored.rule_score,
            language=scored.detected_language,
        )

    async def classify_batch(
        self, texts: list[str], context: ClassificationContext | None = None
    ) -> list[BatchItem]:
        if not self.initialized:
            raise ModelStateError("EnsembleManager not initialized. Call init() first.")
        return await run_batch(
            texts,
            lambda text: self.classify(text, context),
            max_concurrent=self.batch_max_concurrent,
            timeout=self.batch_timeout,
        )

    # ── Feedback ──────────────────────────────────────────────────────────────

    @staticmethod
    def _backend_for_method(method: str) -> str:
        if method in (Method.NEURAL.value, Method.AUTOMATIC_NEURAL.value, Method.NEURAL_FAILED.value):
            return Backend.NEURAL.value
        if method in (Method.LLM.value, Method.AUTOMATIC_LLM.value, Method.LLM_FAILED.value):
            return Backend.LLM.value
        return Backend.RULES.value

    async def provide_feedback(self, text: str, actual_label: int, original: ClassificationResult) -> dict:
        """Route a human label to the backend that made the prediction; stats update regardless."""
        if actual_label not in (0, 1):
            raise ValueError(f"actual_label must be 0 or 1, got {actual_label!r}")
        backend = self._backend_for_method(original.method)
        feedback_results: dict = {}

        if backend == Backend.NEURAL.value and self._is_available(Backend.NEURAL.value):
            payload = original.raw_backend_payload or {}
            inner = payload.get("backend_payload", payload) if isinstance(payload, dict) else {}
            features = inner.get("features") if isinstance(inner, dict) else None
            record = FeedbackRecord(
                text=text,
                predicted_confidence=original.confidence,
                actual_label=actual_label,
                original_method=original.method,
                features=features,
            )
            outcome = await self.neural.provide_feedback(record)
            feedback_results[Backend.NEURAL.value] = outcome
            if outcome["retrained"]:
                await self.store.set(MODEL_SNAPSHOT, self.neural.export_snapshot())
            await self.store.set(FEEDBACK_BUFFER, self.neural.export_feedback())
        elif backend == Backend.LLM.value:
            feedback_results[Backend.LLM.value] = {
                "feedback_stored": True,
                "note": "Feedback tracked for future training",
            }

        correct = int(original.is_bait) == actual_label
        self.stats[backend].record_feedback(correct)
        if original.method.startswith("automatic"):
            self.stats[Backend.AUTOMATIC.value].record_feedback(correct)
        await self._save_stats()

        return {"success": True, "feedback_results": feedback_results, "accuracy_updated": True}

    # ── Stats / diagnostics ───────────────────────────────────────────────────

    def get_stats(self) -> dict:
        return {
            "total_classifications": self.total_classifications,
            "backend": self.config.backend,
            "available_backends": dict(self.available_backends),
            "backends": {name: stats.to_dict() for name, stats in self.stats.items()},
            "llm": self.llm.get_stats() if self.llm is not None else None,
        }

    async def _save_stats(self) -> None:
        await self.store.set(ENGINE_STATS, {
            "total_classifications": self.total_classifications,
            "backends": {name: dataclasses.asdict(stats) for name, stats in self.stats.items()},
        })

    async def get_diagnostics(self) -> dict:
        diagnostics = {
            "manager": {
                "initialized": self.initialized,
                "config": self.config.model_dump(),
                "available_backends": dict(self.available_backends),
                "stats": self.get_stats(),
            }
        }
        if self.neural is not None:
            diagnostics["neural"] = self.neural.get_diagnostics()
        if self.llm is not None and self.llm.enabled:
            diagnostics["llm"] = await self.llm.run_diagnostics()
        return diagnostics

    async def test_backends(self) -> dict:
        results = {}
        for name in (Backend.NEURAL.value, Backend.LLM.value):
            if not self._is_available(name):
                results[name] = {"success": False, "error": "Backend not available"}
                continue
            result = await self._run_backend(name, TEST_POST, ClassificationContext())
            if result.failed:
                results[name] = {"success": False, "error": result.error, "reason": result.failure_reason}
            else:
                results[name] = {
                    "success": True,
                    "confidence": result.confidence,
                    "response_time_ms": result.response_time_ms,
                    "reasoning": result.reasoning,
                }
        return results

    # ── Configuration ─────────────────────────────────────────────────────────

    async def update_config(self, updates: dict, llm_options: dict | None = None) -> EngineConfig:
        """Hot-apply validated config changes; raises pydantic ValidationError on bad input."""
        self.config = self.config.merged(updates)
        self._apply_config()

        if llm_options and self.llm is not None:
            await self.llm.update_config(**llm_options)
            self._refresh_availability()

        await self.store.set(ENGINE_CONFIG, self.config.model_dump())
        logger.info("Engine config updated: %s", ", ".join(sorted(updates)) or "(no changes)")
        return self.config

    # ── Export / reset ────────────────────────────────────────────────────────

    async def export_data(self) -> dict:
        data = {
            "manager": {"config": self.config.model_dump(), "stats": self.get_stats()},
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "version": "1.0",
        }
        if self.neural is not None and self.neural.available:
            data["neural"] = {
                "snapshot": self.neural.export_snapshot(),
                "feedback": self.neural.export_feedback(),
                "diagnostics": self.neural.get_diagnostics(),
            }
        if self.llm is not None:
            data["llm"] = self.llm.get_stats()
        return data

    async def save_state(self) -> None:
        await self._save_stats()
        if self.neural is not None and self.neural.available:
            await self.store.set(FEEDBACK_BUFFER, self.neural.export_feedback())

    async def reset(self) -> dict:
        """Drop stats, feedback and stored state; retrain the neural backend from seed data."""
        self.total_classifications = 0
        self.stats = {b: BackendStats() for b in STATS_BUCKETS}
        for key in STORE_KEYS:
            await self.store.delete(key)
        if self.llm is not None:
            self.llm.reset_stats()
        self.config = self._base_config

        if self.neural is not None:
            self.neural.reset()
            try:
                await self.neural.init(self._training_samples)
            except Exception as exc:
                logger.warning("Neural backend failed to reinitialize after reset: %s", exc)
            else:
                await self.store.set(MODEL_SNAPSHOT, self.neural.export_snapshot())
        self._refresh_availability()
        self._apply_config()
        if self.config.adaptive_mode:
            self.select_optimal_backend()
        logger.info("Engine reset completed")
        return {"success": True, "available_backends": dict(self.available_backends)}

    async def aclose(self) -> None:
        await self.save_state()
        if self.llm is not None:
            await self.llm.aclose()


def create_engine(settings: Settings, store: KeyValueStore | None = None) -> EnsembleManager:
    """Wire an EnsembleManager from application settings."""
    neural = None
    if settings.neural_enabled:
        neural = NeuralClassifier(
            preset=choose_preset(
                settings.model_preset,
                max_params=settings.model_max_params,
                max_layers=settings.model_max_layers,
                prioritize=settings.model_prioritize,
            ),
            confidence_threshold=settings.confidence_threshold,
            retrain_threshold=settings.retrain_threshold,
            feedback_buffer_limit=settings.feedback_buffer_limit,
            auto_retrain=settings.auto_retrain,
            initial_epochs=settings.initial_epochs,
        )
    llm = LLMClassifier(
        endpoint=settings.ollama_endpoint,
        model=settings.ollama_model,
        timeout=settings.ollama_timeout,
        enabled=settings.llm_enabled,
        confidence_threshold=settings.confidence_threshold,
        max_concurrent=settings.batch_max_concurrent,
        batch_timeout=settings.batch_timeout,
    )
    return EnsembleManager(
        config=EngineConfig.from_settings(settings),
        store=store or build_store(settings),
        neural=neural,
        llm=llm,
        batch_max_concurrent=settings.batch_max_concurrent,
        batch_timeout=settings.batch_timeout,
    )
