"""
BaitGuard — Ensemble Engine Tests
Mode dispatch, fallback chain, score blending, feedback routing, persistence.
Ollama is mocked with httpx.MockTransport; the neural backend uses the
lightweight preset with few epochs.
Run: pytest tests/test_engine.py -v
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx
import pytest

BAIT_POST = "🔥 COMMENT YES if you agree! This will change everything! Tag 3 friends! 🔥💪"
PLAIN_POST = "Our quarterly report is out. Revenue grew in three regions and churn stayed flat."


def llm_transport(generate_status=200, reply="CONFIDENCE: 0.9\nREASONING: Contains explicit comment demand."):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "llama3.2:1b"}]})
        if generate_status != 200:
            return httpx.Response(generate_status)
        return httpx.Response(200, json={"model": "llama3.2:1b", "response": reply})
    return httpx.MockTransport(handler)


async def make_engine(neural=True, transport=None, store=None, init=True, **config):
    """Engine with optional neural / mocked LLM backends. Adaptive mode is off unless asked for."""
    from config import EngineConfig
    from llm.llm_classifier import LLMClassifier
    from llm.ollama_client import OllamaClient
    from ml.neural_classifier import NeuralClassifier
    from scoring.engine import EnsembleManager

    config.setdefault("adaptive_mode", False)
    engine = EnsembleManager(
        config=EngineConfig(**config),
        store=store,
        neural=NeuralClassifier(preset="lightweight", initial_epochs=5) if neural else None,
        llm=LLMClassifier(enabled=transport is not None, client=OllamaClient(transport=transport)),
    )
    if init:
        await engine.init()
    return engine


# ── Blending ──────────────────────────────────────────────────────────────────

class TestBlending:
    def test_base_weights(self):
        from scoring.blending import blend_scores
        blend = blend_scores(3.0, 0.5, "en")
        assert (blend.rule_weight, blend.ml_weight) == (0.4, 0.6)
        assert blend.combined_score == pytest.approx(4.2)
        assert blend.confidence == pytest.approx(0.42)

    def test_non_english_leans_on_ml(self):
        from scoring.blending import blend_scores
        blend = blend_scores(3.0, 0.5, "fr")
        assert (blend.rule_weight, blend.ml_weight) == (0.3, 0.7)
        assert blend.combined_score == pytest.approx(4.4)

    def test_strong_rule_score_wins_and_boosts(self):
        from scoring.blending import blend_scores
        blend = blend_scores(7.0, 0.5, "en")
        assert (blend.rule_weight, blend.ml_weight) == (0.6, 0.4)
        assert blend.combined_score == pytest.approx(6.3)   # 0.9 × 7.0

    def test_confident_ml_boosts(self):
        from scoring.blending import blend_scores
        blend = blend_scores(1.0, 0.9, "en")
        assert (blend.rule_weight, blend.ml_weight) == (0.2, 0.8)
        assert blend.combined_score == pytest.approx(8.1)   # 0.9 × 9.0

    def test_weak_signals_are_capped(self):
        from scoring.blending import blend_scores
        blend = blend_scores(1.0, 0.1, "en")
        assert blend.combined_score == pytest.approx(0.8)   # 0.8 × 1.0

    def test_threshold_relaxed_with_ml(self):
        from scoring.blending import adjusted_threshold
        assert adjusted_threshold(2.5, has_ml_result=True) == pytest.approx(2.0)
        assert adjusted_threshold(2.5, has_ml_result=False) == 2.5

    def test_ml_reasoning_cleanup(self):
        from scoring.blending import clean_ml_reasoning
        assert clean_ml_reasoning("Contains explicit CTA.") == "explicit CTA"
        assert len(clean_ml_reasoning("x" * 300)) == 100


# ── Dispatch ──────────────────────────────────────────────────────────────────

class TestEngineDispatch:
    @pytest.mark.asyncio
    async def test_classify_before_init_raises(self):
        from scoring.errors import ModelStateError
        engine = await make_engine(neural=False, init=False)
        with pytest.raises(ModelStateError):
            await engine.classify(BAIT_POST)

    @pytest.mark.asyncio
    async def test_automatic_without_ml_uses_rules(self):
        engine = await make_engine(neural=False)
        result = await engine.classify(BAIT_POST)
        assert result.method == "automatic_rules"
        assert result.is_bait
        assert result.available_backends == {"neural": False, "llm": False}

    @pytest.mark.asyncio
    async def test_automatic_prefers_llm(self):
        engine = await make_engine(neural=True, transport=llm_transport())
        result = await engine.classify(BAIT_POST)
        assert result.method == "automatic_llm"
        payload = result.raw_backend_payload
        assert payload["ml_confidence"] == pytest.approx(0.9)
        assert "template" in payload["backend_payload"]
        assert result.confidence == pytest.approx(min(1.0, payload["combined_score"] / 10))

    @pytest.mark.asyncio
    async def test_automatic_falls_through_failed_llm_to_neural(self):
        engine = await make_engine(neural=True, transport=llm_transport(generate_status=500))
        result = await engine.classify(BAIT_POST)
        assert result.method == "automatic_neural"
        assert engine.stats["llm"].failures == 1

    @pytest.mark.asyncio
    async def test_automatic_fallback_when_every_ml_backend_fails(self):
        engine = await make_engine(neural=False, transport=llm_transport(generate_status=500))
        result = await engine.classify(BAIT_POST)
        assert result.method == "automatic_fallback"
        assert result.rule_score > 4

    @pytest.mark.asyncio
    async def test_fixed_llm_failure_is_reported(self):
        engine = await make_engine(neural=True, backend="llm")
        result = await engine.classify(BAIT_POST)
        assert result.method == "llm_failed"
        assert result.failure_reason == "unavailable"
        assert result.confidence == 0.5
        assert result.rule_score > 4

    @pytest.mark.asyncio
    async def test_fixed_neural_blends_with_rules(self):
        from nlp.rule_scorer import get_threshold
        engine = await make_engine(neural=True, backend="neural")
        result = await engine.classify(BAIT_POST)
        payload = result.raw_backend_payload
        assert result.method == "neural"
        assert result.confidence == pytest.approx(min(1.0, payload["combined_score"] / 10))
        assert payload["threshold"] == pytest.approx(get_threshold("medium") * 0.8)
        assert result.is_bait == (payload["combined_score"] >= payload["threshold"])
        assert len(payload["backend_payload"]["features"]) == 100

    @pytest.mark.asyncio
    async def test_rules_mode(self):
        engine = await make_engine(neural=False, backend="rules")
        result = await engine.classify(PLAIN_POST)
        assert result.method == "rules"
        assert result.confidence == pytest.approx(min(1.0, result.rule_score / 10))
        assert engine.stats["rules"].invocations == 1

    @pytest.mark.asyncio
    async def test_empty_text(self):
        engine = await make_engine(neural=True)
        result = await engine.classify("   ")
        assert result.reasoning == "Empty text"
        assert result.confidence == 0.0
        assert result.is_bait is False

    @pytest.mark.asyncio
    async def test_context_aggressiveness_overrides_config(self):
        from scoring.results import ClassificationContext
        engine = await make_engine(neural=False, backend="rules")
        text = "What do you think? Thoughts below"
        low = await engine.classify(text, ClassificationContext(aggressiveness="low"))
        assert low.raw_backend_payload["threshold"] == 4.0

    @pytest.mark.asyncio
    async def test_batch(self):
        engine = await make_engine(neural=False, backend="rules")
        items = await engine.classify_batch([BAIT_POST, PLAIN_POST, ""])
        assert [i.index for i in items] == [0, 1, 2]
        assert all(i.ok for i in items)
        assert items[0].result.is_bait

    def test_method_values(self):
        from scoring.results import Method
        assert {m.value for m in Method} == {
            "rules", "neural", "llm",
            "automatic_llm", "automatic_neural", "automatic_rules", "automatic_fallback",
            "neural_failed", "llm_failed",
        }


# ── Adaptive backend selection ────────────────────────────────────────────────

class TestAdaptiveSelection:
    @pytest.mark.asyncio
    async def test_no_ml_selects_rules(self):
        engine = await make_engine(neural=False, adaptive_mode=True)
        assert engine.config.backend == "rules"

    @pytest.mark.asyncio
    async def test_single_ml_backend_is_selected(self):
        engine = await make_engine(neural=True, adaptive_mode=True)
        assert engine.config.backend == "neural"

    @pytest.mark.asyncio
    async def test_two_ml_backends_select_automatic(self):
        engine = await make_engine(neural=True, transport=llm_transport(), adaptive_mode=True)
        assert engine.config.backend == "automatic"

    @pytest.mark.asyncio
    async def test_explicit_update_is_honored(self):
        engine = await make_engine(neural=True, adaptive_mode=True)
        await engine.update_config({"backend": "rules"})
        assert engine.config.backend == "rules"


# ── Feedback ──────────────────────────────────────────────────────────────────

class TestFeedback:
    @pytest.mark.asyncio
    async def test_neural_feedback_is_buffered_and_persisted(self):
        from storage import FEEDBACK_BUFFER, InMemoryStore
        store = InMemoryStore()
        engine = await make_engine(neural=True, backend="neural", store=store)
        result = await engine.classify(BAIT_POST)
        outcome = await engine.provide_feedback(BAIT_POST, 1, result)

        assert outcome["success"] and outcome["accuracy_updated"]
        assert outcome["feedback_results"]["neural"]["buffered"] == 1
        stored = await store.get(FEEDBACK_BUFFER)
        assert len(stored) == 1 and len(stored[0]["features"]) == 100
        assert engine.stats["neural"].total_feedback == 1

    @pytest.mark.asyncio
    async def test_retrain_persists_new_snapshot(self):
        from storage import MODEL_SNAPSHOT, InMemoryStore
        store = InMemoryStore()
        engine = await make_engine(neural=True, backend="neural", store=store, retrain_threshold=2)
        for text, label in ((BAIT_POST, 1), (PLAIN_POST, 0)):
            result = await engine.classify(text)
            outcome = await engine.provide_feedback(text, label, result)
        assert outcome["feedback_results"]["neural"]["retrained"]
        snapshot = await store.get(MODEL_SNAPSHOT)
        assert snapshot["metadata"]["version"] == 2

    @pytest.mark.asyncio
    async def test_raised_retrain_threshold_still_retrains(self):
        from config import EngineConfig
        from llm.llm_classifier import LLMClassifier
        from ml.neural_classifier import NeuralClassifier
        from scoring.engine import EnsembleManager
        neural = NeuralClassifier(preset="lightweight", initial_epochs=5,
                                  retrain_threshold=3, feedback_buffer_limit=5)
        engine = EnsembleManager(
            config=EngineConfig(adaptive_mode=False, backend="neural", retrain_threshold=3),
            neural=neural,
            llm=LLMClassifier(enabled=False),
        )
        await engine.init()
        await engine.update_config({"retrain_threshold": 8})
        result = await engine.classify(BAIT_POST)
        for _ in range(7):
            outcome = await engine.provide_feedback(BAIT_POST, 1, result)
            assert not outcome["feedback_results"]["neural"]["retrained"]
        outcome = await engine.provide_feedback(BAIT_POST, 1, result)
        assert outcome["feedback_results"]["neural"]["retrained"]
        assert neural.retrain_count == 1
        assert neural.feedback_buffer == []

    @pytest.mark.asyncio
    async def test_llm_feedback_is_only_tracked(self):
        engine = await make_engine(neural=False, transport=llm_transport())
        result = await engine.classify(BAIT_POST)
        outcome = await engine.provide_feedback(BAIT_POST, 1, result)
        assert outcome["feedback_results"]["llm"]["feedback_stored"]
        assert engine.stats["llm"].correct_feedback == 1
        assert engine.stats["automatic"].total_feedback == 1

    @pytest.mark.asyncio
    async def test_rule_feedback_counts_accuracy(self):
        engine = await make_engine(neural=False, backend="rules")
        result = await engine.classify(BAIT_POST)
        outcome = await engine.provide_feedback(BAIT_POST, 0, result)
        assert outcome["feedback_results"] == {}
        assert engine.stats["rules"].total_feedback == 1
        assert engine.stats["rules"].correct_feedback == 0

    @pytest.mark.asyncio
    async def test_invalid_label_rejected(self):
        engine = await make_engine(neural=False, backend="rules")
        result = await engine.classify(BAIT_POST)
        with pytest.raises(ValueError):
            await engine.provide_feedback(BAIT_POST, 2, result)


# ── Configuration & persistence ───────────────────────────────────────────────

class TestConfigAndState:
    @pytest.mark.asyncio
    async def test_update_config_validates(self):
        from pydantic import ValidationError
        engine = await make_engine(neural=False)
        with pytest.raises(ValidationError):
            await engine.update_config({"confidence_threshold": 2.0})
        with pytest.raises(ValidationError):
            await engine.update_config({"backend": "quantum"})
        assert engine.config.confidence_threshold == 0.6

    @pytest.mark.asyncio
    async def test_update_config_persists(self):
        from storage import ENGINE_CONFIG, InMemoryStore
        store = InMemoryStore()
        engine = await make_engine(neural=True, store=store)
        await engine.update_config({"confidence_threshold": 0.75, "aggressiveness": "high"})
        assert (await store.get(ENGINE_CONFIG))["aggressiveness"] == "high"
        assert engine.neural.confidence_threshold == 0.75

    @pytest.mark.asyncio
    async def test_supported_languages_limit_detection(self):
        french = "Commentez OUI et taguez un ami pour la dernière chance"
        engine = await make_engine(neural=False, backend="rules")
        assert (await engine.classify(french)).language == "fr"
        await engine.update_config({"supported_languages": ["en", "de"]})
        assert (await engine.classify(french)).language == "en"

    def test_create_engine_auto_preset(self):
        from config import Settings
        from scoring.engine import create_engine
        from storage import InMemoryStore
        settings = Settings(model_preset="auto", model_prioritize="speed", llm_enabled=False)
        engine = create_engine(settings, store=InMemoryStore())
        assert engine.neural.preset == "lightweight"
        capped = create_engine(Settings(model_preset="auto", model_max_params=10_000), store=InMemoryStore())
        assert capped.neural.preset == "balanced"

    @pytest.mark.asyncio
    async def test_stored_config_loaded_at_init(self):
        from storage import ENGINE_CONFIG, InMemoryStore
        store = InMemoryStore({ENGINE_CONFIG: {"aggressiveness": "low", "backend": "rules"}})
        engine = await make_engine(neural=False, store=store)
        assert engine.config.aggressiveness == "low"
        assert engine.config.backend == "rules"

    @pytest.mark.asyncio
    async def test_state_survives_restart_with_json_store(self, tmp_path):
        from storage import JsonFileStore
        path = tmp_path / "state.json"
        first = await make_engine(neural=True, backend="neural", store=JsonFileStore(path))
        await first.classify(BAIT_POST)
        await first.aclose()

        second = await make_engine(neural=True, backend="neural", store=JsonFileStore(path))
        assert second.total_classifications == 1
        assert second.neural.snapshot.version == first.neural.snapshot.version
        assert second.neural.snapshot.weights == first.neural.snapshot.weights

    @pytest.mark.asyncio
    async def test_reset_clears_stats_and_retrains(self):
        from storage import ENGINE_STATS, MODEL_SNAPSHOT, InMemoryStore
        store = InMemoryStore()
        engine = await make_engine(neural=True, backend="neural", store=store)
        result = await engine.classify(BAIT_POST)
        await engine.provide_feedback(BAIT_POST, 1, result)

        outcome = await engine.reset()
        assert outcome["success"]
        assert engine.total_classifications == 0
        assert engine.neural.feedback_buffer == []
        assert await store.get(ENGINE_STATS) is None
        assert (await store.get(MODEL_SNAPSHOT))["metadata"]["version"] == 1

    @pytest.mark.asyncio
    async def test_test_backends(self):
        engine = await make_engine(neural=True)
        results = await engine.test_backends()
        assert results["neural"]["success"]
        assert results["llm"] == {"success": False, "error": "Backend not available"}

    @pytest.mark.asyncio
    async def test_export_contains_snapshot(self):
        engine = await make_engine(neural=True)
        data = await engine.export_data()
        assert data["neural"]["snapshot"]["feature_size"] == 100
        assert data["manager"]["config"]["backend"] == "automatic"


# ── Stores ────────────────────────────────────────────────────────────────────

class _FakeSnapshot:
    def __init__(self, data):
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return self._data


class _FakeDocument:
    def __init__(self, docs, key):
        self._docs, self._key = docs, key

    def get(self):
        return _FakeSnapshot(self._docs.get(self._key))

    def set(self, data):
        self._docs[self._key] = data

    def delete(self):
        self._docs.pop(self._key, None)


class _FakeFirestore:
    def __init__(self):
        self.docs = {}

    def collection(self, name):
        outer = self

        class _Collection:
            def document(self, key):
                return _FakeDocument(outer.docs, f"{name}/{key}")

        return _Collection()


class TestStores:
    @pytest.mark.asyncio
    async def test_memory_store_copies_values(self):
        from storage import InMemoryStore
        store = InMemoryStore()
        value = {"a": [1, 2]}
        await store.set("k", value)
        value["a"].append(3)
        assert await store.get("k") == {"a": [1, 2]}
        await store.delete("k")
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_json_store_round_trip(self, tmp_path):
        from storage import JsonFileStore
        store = JsonFileStore(tmp_path / "nested" / "state.json")
        await store.set("engine_config", {"backend": "rules"})
        assert await JsonFileStore(tmp_path / "nested" / "state.json").get("engine_config") == {"backend": "rules"}
        await store.delete("engine_config")
        assert await store.get("engine_config") is None

    @pytest.mark.asyncio
    async def test_json_store_tolerates_corrupt_file(self, tmp_path):
        from storage import JsonFileStore
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        assert await JsonFileStore(path).get("anything") is None

    @pytest.mark.asyncio
    async def test_firestore_store_keeps_nested_arrays_as_json(self):
        from storage import FirestoreStore
        client = _FakeFirestore()
        store = FirestoreStore(client, collection="baitguard")
        await store.set("model_snapshot", {"weights": {"0.weight": [[0.1, 0.2]]}})
        assert isinstance(client.docs["baitguard/model_snapshot"]["json"], str)
        assert await store.get("model_snapshot") == {"weights": {"0.weight": [[0.1, 0.2]]}}
        await store.delete("model_snapshot")
        assert await store.get("model_snapshot") is None

    def test_build_store_from_settings(self, tmp_path):
        from config import Settings
        from storage import InMemoryStore, JsonFileStore, build_store
        assert isinstance(build_store(Settings(store_backend="memory")), InMemoryStore)
        assert isinstance(
            build_store(Settings(store_backend="json", store_path=str(tmp_path / "s.json"))), JsonFileStore
        )
