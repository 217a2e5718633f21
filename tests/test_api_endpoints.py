"""
BaitGuard — HTTP Endpoint Integration Tests
Uses FastAPI TestClient (synchronous HTTPX transport — no running server needed).
The lifespan builds a real engine: lightweight neural preset, LLM disabled,
in-memory state.
Run: pytest tests/test_api_endpoints.py -v
"""
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("MODEL_PRESET", "lightweight")
os.environ.setdefault("INITIAL_EPOCHS", "5")
os.environ.setdefault("LLM_ENABLED", "false")
os.environ.setdefault("STORE_BACKEND", "memory")

import pytest
from fastapi.testclient import TestClient

from main import app

BAIT_POST = "🔥 COMMENT YES if you agree! This will change everything! Tag 3 friends! 🔥💪"
PLAIN_POST = "Our quarterly report is out. Revenue grew in three regions and churn stayed flat."


@pytest.fixture(scope="module")
def client():
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


# ── Health ────────────────────────────────────────────────────────────────────

class TestHealth:
    def test_health_returns_200(self, client):
        res = client.get("/health")
        assert res.status_code == 200

    def test_health_reports_engine(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["engine_ready"] is True
        assert data["backend"] in ("rules", "neural", "llm", "automatic")

    def test_root(self, client):
        assert client.get("/").json()["service"] == "BaitGuard"


# ── POST /classify ────────────────────────────────────────────────────────────

class TestClassify:
    def test_valid_text_returns_200(self, client):
        res = client.post("/classify", json={"text": BAIT_POST})
        assert res.status_code == 200

    def test_response_has_required_fields(self, client):
        data = client.post("/classify", json={"text": PLAIN_POST}).json()
        for key in ("confidence", "is_bait", "method", "reasoning", "backend", "rule_score", "language"):
            assert key in data

    def test_confidence_in_range(self, client):
        data = client.post("/classify", json={"text": BAIT_POST}).json()
        assert 0.0 <= data["confidence"] <= 1.0

    def test_obvious_bait_is_flagged(self, client):
        data = client.post("/classify", json={"text": BAIT_POST}).json()
        assert data["is_bait"] is True
        assert data["rule_score"] > 4

    def test_empty_text_is_allowed(self, client):
        data = client.post("/classify", json={"text": ""}).json()
        assert data["reasoning"] == "Empty text"
        assert data["is_bait"] is False

    def test_context_is_accepted(self, client):
        res = client.post("/classify", json={
            "text": PLAIN_POST,
            "context": {"author": "Sam", "has_media": True, "aggressiveness": "low"},
        })
        assert res.status_code == 200

    def test_invalid_aggressiveness_returns_422(self, client):
        res = client.post("/classify", json={"text": PLAIN_POST, "context": {"aggressiveness": "extreme"}})
        assert res.status_code == 422

    def test_too_long_text_returns_422(self, client):
        res = client.post("/classify", json={"text": "a" * 10_001})
        assert res.status_code == 422

    def test_missing_text_field_returns_422(self, client):
        res = client.post("/classify", json={})
        assert res.status_code == 422


# ── POST /classify/batch ──────────────────────────────────────────────────────

class TestClassifyBatch:
    def test_batch_returns_one_item_per_text(self, client):
        data = client.post("/classify/batch", json={"texts": [BAIT_POST, PLAIN_POST]}).json()
        assert data["total"] == 2
        assert data["failed"] == 0
        assert [item["index"] for item in data["items"]] == [0, 1]
        assert data["items"][0]["result"]["is_bait"] is True

    def test_empty_batch_returns_422(self, client):
        assert client.post("/classify/batch", json={"texts": []}).status_code == 422

    def test_oversized_batch_returns_422(self, client):
        assert client.post("/classify/batch", json={"texts": ["x"] * 101}).status_code == 422


# ── POST /feedback ────────────────────────────────────────────────────────────

class TestFeedback:
    def test_feedback_on_previous_prediction(self, client):
        prediction = client.post("/classify", json={"text": BAIT_POST}).json()
        res = client.post("/feedback", json={"text": BAIT_POST, "actual_label": 1, "original": prediction})
        assert res.status_code == 200
        data = res.json()
        assert data["success"] is True
        assert data["accuracy_updated"] is True

    def test_invalid_label_returns_422(self, client):
        prediction = client.post("/classify", json={"text": BAIT_POST}).json()
        res = client.post("/feedback", json={"text": BAIT_POST, "actual_label": 3, "original": prediction})
        assert res.status_code == 422


# ── Engine admin ──────────────────────────────────────────────────────────────

class TestEngineAdmin:
    def test_stats(self, client):
        client.post("/classify", json={"text": PLAIN_POST})
        data = client.get("/stats").json()
        assert data["total_classifications"] >= 1
        assert set(data["backends"]) == {"rules", "neural", "llm", "automatic"}

    def test_get_config(self, client):
        data = client.get("/config").json()
        assert 0.0 <= data["confidence_threshold"] <= 1.0
        assert data["aggressiveness"] in ("low", "medium", "high")

    def test_patch_config(self, client):
        res = client.patch("/config", json={"aggressiveness": "high"})
        assert res.status_code == 200
        assert res.json()["aggressiveness"] == "high"
        client.patch("/config", json={"aggressiveness": "medium"})

    def test_patch_config_out_of_range_returns_422(self, client):
        res = client.patch("/config", json={"confidence_threshold": 5})
        assert res.status_code == 422
        assert client.get("/config").json()["confidence_threshold"] <= 1.0

    def test_patch_config_unknown_backend_returns_422(self, client):
        assert client.patch("/config", json={"backend": "quantum"}).status_code == 422

    def test_diagnostics(self, client):
        data = client.get("/diagnostics").json()
        assert data["manager"]["initialized"] is True
        assert "neural" in data

    def test_test_backends(self, client):
        data = client.post("/test-backends").json()
        assert data["neural"]["success"] is True
        assert data["llm"]["success"] is False

    def test_export(self, client):
        data = client.get("/export").json()
        assert data["neural"]["snapshot"]["feature_size"] == 100
        assert "exported_at" in data

    def test_reset(self, client):
        res = client.post("/reset")
        assert res.status_code == 200
        assert res.json()["success"] is True
        assert client.get("/stats").json()["total_classifications"] == 0


# ── Uninitialised engine ──────────────────────────────────────────────────────

class TestEngineNotReady:
    def test_classify_returns_503(self, client):
        from api.routes.classify import get_engine
        from scoring.engine import EnsembleManager

        app.dependency_overrides[get_engine] = lambda: EnsembleManager()
        try:
            res = client.post("/classify", json={"text": PLAIN_POST})
        finally:
            app.dependency_overrides.pop(get_engine, None)
        assert res.status_code == 503
        assert res.json()["error"] == "Engine not initialized"
