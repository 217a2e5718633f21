"""
BaitGuard — Neural Backend
Small feed-forward classifier over the 100-slot feature vector.

Each training run produces a new immutable ModelSnapshot (weights, vocabulary,
metadata). The live model reference is swapped only after a run succeeds, so
inference keeps using the previous snapshot while a retrain is in flight.

Online adaptation retrains on exactly the buffered feedback, not the seed
corpus. That keeps retraining cost bounded at the price of possible
catastrophic forgetting.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

from torch import nn

from ml.dataset import Sample, get_dataset, get_training_arrays
from ml.feature_extractor import FEATURE_SIZE, FeatureExtractor
from ml.model_builder import (
    DEFAULT_PRESET,
    TrainingResult,
    build_model,
    count_params,
    evaluate_model,
    predict,
    resolve_preset,
    state_dict_from_json,
    state_dict_to_json,
    train_model,
)
from scoring.errors import ModelStateError
from scoring.results import Backend, ClassificationContext, ClassificationResult, FeedbackRecord, Method

logger = logging.getLogger(__name__)

INITIAL_VALIDATION_SPLIT = 0.2
RETRAIN_VALIDATION_SPLIT = 0.1
RETRAIN_MAX_EPOCHS = 50


class SnapshotMismatchError(ValueError):
    """Snapshot was trained on a different feature layout."""


@dataclass(frozen=True)
class ModelSnapshot:
    preset: str
    feature_size: int
    weights: dict
    vocabulary: dict
    metadata: dict = field(default_factory=dict)

    @property
    def version(self) -> int:
        return int(self.metadata.get("version", 0))

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ModelSnapshot":
        return cls(
            preset=data["preset"],
            feature_size=int(data["feature_size"]),
            weights=data["weights"],
            vocabulary=data["vocabulary"],
            metadata=data.get("metadata", {}),
        )


def neural_reasoning(confidence: float) -> str:
    if confidence > 0.8:
        return "Neural network detected strong engagement bait patterns"
    if confidence > 0.6:
        return "Neural network identified potential engagement bait characteristics"
    if confidence < 0.3:
        return "Neural network found minimal bait indicators"
    return "Neural network classification with moderate confidence"


class NeuralClassifier:
    """
    Usage:
        clf = NeuralClassifier(preset="balanced")
        await clf.init()                     # trains on the seed corpus
        result = await clf.classify("Tag a friend 👇")
    """

    name = Backend.NEURAL.value

    def __init__(
        self,
        preset: str = DEFAULT_PRESET,
        confidence_threshold: float = 0.6,
        retrain_threshold: int = 20,
        feedback_buffer_limit: int = 200,
        auto_retrain: bool = True,
        initial_epochs: int = 100,
    ):
        self.preset = resolve_preset(preset)
        self.confidence_threshold = confidence_threshold
        self.auto_retrain = auto_retrain
        self.initial_epochs = initial_epochs
        self.feedback_buffer_limit = feedback_buffer_limit
        self._buffer: deque[FeedbackRecord] = deque()
        self.retrain_threshold = retrain_threshold
        self._retrain_lock = asyncio.Lock()
        self._extractor: FeatureExtractor | None = None
        self._model: nn.Module | None = None
        self._snapshot: ModelSnapshot | None = None
        self.retrain_count = 0
        self.last_training: TrainingResult | None = None

    # ── State ─────────────────────────────────────────────────────────────────

    @property
    def retrain_threshold(self) -> int:
        return self._retrain_threshold

    @retrain_threshold.setter
    def retrain_threshold(self, value: int) -> None:
        """The buffer always holds at least one full retrain batch; the newest records are kept."""
        self._retrain_threshold = value
        self._buffer = deque(self._buffer, maxlen=self._buffer_limit)

    @property
    def _buffer_limit(self) -> int:
        return max(self._retrain_threshold, self.feedback_buffer_limit)

    @property
    def initialized(self) -> bool:
        return self._model is not None and self._extractor is not None

    @property
    def available(self) -> bool:
        return self.initialized

    @property
    def snapshot(self) -> ModelSnapshot | None:
        return self._snapshot

    @property
    def feedback_buffer(self) -> list[FeedbackRecord]:
        return list(self._buffer)

    @property
    def is_training(self) -> bool:
        return self._retrain_lock.locked()

    def _require_init(self) -> None:
        if not self.initialized:
            raise ModelStateError("NeuralClassifier not initialized. Call init() first.")

    # ── Initialisation ────────────────────────────────────────────────────────

    async def init(
        self,
        training_samples: list[Sample] | None = None,
        snapshot: dict | None = None,
    ) -> bool:
        """Restore from a stored snapshot when one is given, else train from scratch."""
        if snapshot:
            try:
                self.load_snapshot(snapshot)
                logger.info("Neural model restored from snapshot v%d", self._snapshot.version)
                return True
            except (SnapshotMismatchError, KeyError) as exc:
                logger.warning("Stored snapshot rejected (%s); retraining from seed data", exc)

        texts, labels = get_training_arrays(training_samples or get_dataset())
        extractor = FeatureExtractor().init(texts)
        features = [extractor.extract_features(t) for t in texts]

        await self._train_and_install(
            extractor, features, [float(label) for label in labels],
            epochs=self.initial_epochs,
            validation_split=INITIAL_VALIDATION_SPLIT,
            base=None,
        )
        return True

    async def _train_and_install(self, extractor, features, labels, epochs, validation_split, base):
        model, snapshot, result = await asyncio.to_thread(
            self._train_snapshot, extractor, features, labels, epochs, validation_split, base,
        )
        # Swap references only once training has fully succeeded.
        self._extractor = extractor
        self._model = model
        self._snapshot = snapshot
        self.last_training = result
        return result

    def _train_snapshot(
        self,
        extractor: FeatureExtractor,
        features: list[list[float]],
        labels: list[float],
        epochs: int,
        validation_split: float,
        base: ModelSnapshot | None,
    ) -> tuple[nn.Module, ModelSnapshot, TrainingResult]:
        model = build_model(self.preset, FEATURE_SIZE)
        if base is not None:
            state_dict_from_json(model, base.weights)
        result = train_model(
            model, features, labels,
            preset=self.preset,
            epochs=epochs,
            validation_split=validation_split,
        )
        model.eval()
        snapshot = ModelSnapshot(
            preset=self.preset,
            feature_size=FEATURE_SIZE,
            weights=state_dict_to_json(model),
            vocabulary=dict(extractor.vocabulary),
            metadata={
                "version": (base.version if base else (self._snapshot.version if self._snapshot else 0)) + 1,
                "trained_at": datetime.now(timezone.utc).isoformat(),
                "sample_count": len(features),
                "final_loss": result.final_loss,
                "final_accuracy": result.final_accuracy,
                "epochs": result.epochs,
            },
        )
        return model, snapshot, result

    # ── Inference ─────────────────────────────────────────────────────────────

    def extract_features(self, text: str) -> list[float]:
        self._require_init()
        return self._extractor.extract_features(text)

    def predict(self, features: list[float]) -> float:
        self._require_init()
        if len(features) != FEATURE_SIZE:
            raise ValueError(f"Expected {FEATURE_SIZE} features, got {len(features)}")
        return predict(self._model, [features])[0]

    async def classify(
        self,
        text: str,
        context: ClassificationContext | None = None,
    ) -> ClassificationResult:
        self._require_init()
        start = time.perf_counter()
        features = self._extractor.extract_features(text)
        confidence = self.predict(features)
        return ClassificationResult(
            confidence=confidence,
            is_bait=confidence >= self.confidence_threshold,
            method=Method.NEURAL.value,
            reasoning=neural_reasoning(confidence),
            response_time_ms=round((time.perf_counter() - start) * 1000, 2),
            raw_backend_payload={
                "model_version": self._snapshot.version,
                "preset": self.preset,
                "features": features,
            },
            backend=self.name,
        )

    def evaluate(self, samples: list[Sample]) -> dict:
        self._require_init()
        features = [self._extractor.extract_features(s.text) for s in samples]
        labels = [float(s.binary_label) for s in samples]
        return evaluate_model(self._model, features, labels, threshold=self.confidence_threshold)

    # ── Online adaptation ─────────────────────────────────────────────────────

    async def provide_feedback(self, record: FeedbackRecord) -> dict:
        self._require_init()
        if record.features is None:
            record.features = self._extractor.extract_features(record.text)
        self._buffer.append(record)

        result = None
        if self.auto_retrain and len(self._buffer) >= self.retrain_threshold:
            result = await self.retrain()
        return {
            "buffered": len(self._buffer),
            "retrained": result is not None,
            "model_version": self._snapshot.version,
        }

    async def retrain(self) -> TrainingResult | None:
        """
        Retrain on the buffered feedback. Single-flight: a call made while
        another retrain is running returns None and leaves the buffer intact.
        """
        self._require_init()
        if self._retrain_lock.locked():
            logger.info("Retrain already in progress; %d samples stay buffered", len(self._buffer))
            return None

        async with self._retrain_lock:
            batch = list(self._buffer)
            if not batch:
                return None
            n = len(batch)
            features = [r.features or self._extractor.extract_features(r.text) for r in batch]
            labels = [float(r.actual_label) for r in batch]
            logger.info("Retraining neural model on %d feedback samples", n)

            result = await self._train_and_install(
                self._extractor, features, labels,
                epochs=min(RETRAIN_MAX_EPOCHS, n * 2),
                validation_split=RETRAIN_VALIDATION_SPLIT,
                base=self._snapshot,
            )
            consumed = {id(r) for r in batch}
            self._buffer = deque((r for r in self._buffer if id(r) not in consumed), maxlen=self._buffer_limit)
            self.retrain_count += 1
            logger.info(
                "Retrain complete | model v%d | loss=%.4f | acc=%.3f",
                self._snapshot.version, result.final_loss, result.final_accuracy,
            )
            return result

    def load_feedback(self, records: list[dict]) -> None:
        for data in records:
            self._buffer.append(FeedbackRecord.from_dict(data))

    def export_feedback(self) -> list[dict]:
        return [r.to_dict() for r in self._buffer]

    # ── Snapshots ─────────────────────────────────────────────────────────────

    def export_snapshot(self) -> dict | None:
        return self._snapshot.to_dict() if self._snapshot else None

    def load_snapshot(self, data: dict) -> None:
        snapshot = ModelSnapshot.from_dict(data)
        if snapshot.feature_size != FEATURE_SIZE:
            raise SnapshotMismatchError(
                f"Snapshot feature_size {snapshot.feature_size} != {FEATURE_SIZE}"
            )
        model = build_model(snapshot.preset, FEATURE_SIZE)
        state_dict_from_json(model, snapshot.weights)
        model.eval()
        self.preset = resolve_preset(snapshot.preset)
        self._extractor = FeatureExtractor.from_vocabulary(snapshot.vocabulary)
        self._model = model
        self._snapshot = snapshot

    def reset(self) -> None:
        self._buffer.clear()
        self._model = None
        self._extractor = None
        self._snapshot = None
        self.retrain_count = 0
        self.last_training = None

    def get_diagnostics(self) -> dict:
        return {
            "initialized": self.initialized,
            "preset": self.preset,
            "is_training": self.is_training,
            "buffered_feedback": len(self._buffer),
            "retrain_threshold": self.retrain_threshold,
            "buffer_limit": self._buffer_limit,
            "retrain_count": self.retrain_count,
            "parameters": count_params(self._model) if self._model is not None else 0,
            "snapshot": dict(self._snapshot.metadata) if self._snapshot else None,
            "vocabulary": self._extractor.vocabulary_info() if self._extractor else None,
        }
