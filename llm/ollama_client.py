"""
BaitGuard — Ollama Client
Thin async wrapper around a local Ollama server:
  GET  /api/tags      → installed models (connection test)
  POST /api/generate  → single non-streaming completion

Transport failures are mapped onto the backend error taxonomy so callers can
branch on `exc.reason` (connection_refused | timeout | http_error |
malformed_response) instead of on httpx internals.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import httpx

from scoring.errors import BackendTimeoutError, BackendUnavailableError, LLMResponseError

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://127.0.0.1:11434"
DEFAULT_MODEL = "llama3.2:1b"
DEFAULT_TIMEOUT = 5.0  # seconds

# ── Model presets (generation options) ───────────────────────────────────────
# fmt: off
MODEL_PRESETS: dict[str, dict] = {
    "llama3.2:latest": {"temperature": 0.1, "num_predict": 200, "top_p": 0.9},
    "llama3.2:1b":     {"temperature": 0.1, "num_predict": 150, "top_p": 0.9},
    "llama3.2:3b":     {"temperature": 0.1, "num_predict": 200, "top_p": 0.9},
    "llama3.1:8b":     {"temperature": 0.1, "num_predict": 250, "top_p": 0.85},
    "qwen2.5:1.5b":    {"temperature": 0.1, "num_predict": 150, "top_p": 0.9},
    "qwen2.5:3b":      {"temperature": 0.1, "num_predict": 200, "top_p": 0.9},
}
# fmt: on
DEFAULT_OPTIONS = MODEL_PRESETS["llama3.2:latest"]

# Smallest-first preference when the configured model is not installed
PREFERRED_MODELS = ("llama3.2:latest", "llama3.2:1b", "qwen2.5:1.5b", "llama3.2:3b", "qwen2.5:3b")


@dataclass
class ConnectionStatus:
    connected: bool
    models: list[str] = field(default_factory=list)
    error: str | None = None
    reason: str | None = None


@dataclass
class GenerateResult:
    response: str
    model: str
    response_time_ms: float
    raw: dict = field(default_factory=dict)


def model_options(model: str) -> dict:
    return dict(MODEL_PRESETS.get(model, DEFAULT_OPTIONS))


def suggest_alternative_model(available: list[str]) -> str | None:
    for name in PREFERRED_MODELS:
        if name in available:
            return name
    return available[0] if available else None


class OllamaClient:
    """
    Usage:
        async with OllamaClient() as client:
            status = await client.test_connection()
            reply = await client.generate("CONFIDENCE: ...")
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.model = model
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def _http(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.endpoint,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def reconfigure(self, endpoint: str | None = None, model: str | None = None,
                          timeout: float | None = None) -> None:
        """Point at a new server/model; the pooled connection is rebuilt lazily."""
        if endpoint is not None:
            self.endpoint = endpoint.rstrip("/")
        if model is not None:
            self.model = model
        if timeout is not None:
            self.timeout = timeout
        await self.aclose()

    # ── Requests ──────────────────────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            resp = await self._http().request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.TimeoutException as exc:
            raise BackendTimeoutError(
                f"Ollama {path} timed out after {self.timeout}s", reason="timeout", backend="llm",
            ) from exc
        except httpx.ConnectError as exc:
            raise BackendUnavailableError(
                f"Cannot connect to Ollama at {self.endpoint}", reason="connection_refused", backend="llm",
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise BackendUnavailableError(
                f"Ollama {path} returned HTTP {exc.response.status_code}", reason="http_error", backend="llm",
            ) from exc
        except httpx.HTTPError as exc:
            raise BackendUnavailableError(str(exc) or "Ollama request failed", reason="http_error",
                                          backend="llm") from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise LLMResponseError(f"Ollama {path} returned non-JSON body", backend="llm") from exc
        if not isinstance(data, dict):
            raise LLMResponseError(f"Ollama {path} returned unexpected payload", backend="llm")
        return data

    async def list_models(self) -> list[str]:
        data = await self._request("GET", "/api/tags")
        return [m.get("name", "") for m in data.get("models", []) if isinstance(m, dict) and m.get("name")]

    async def test_connection(self) -> ConnectionStatus:
        """Never raises; a failed probe is reported through the status object."""
        try:
            models = await self.list_models()
        except (BackendUnavailableError, BackendTimeoutError, LLMResponseError) as exc:
            logger.warning("Ollama connection test failed (%s): %s", exc.reason, exc)
            return ConnectionStatus(connected=False, error=str(exc), reason=exc.reason)
        return ConnectionStatus(connected=True, models=models)

    async def generate(self, prompt: str, model: str | None = None, options: dict | None = None) -> GenerateResult:
        model = model or self.model
        payload = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": options or model_options(model),
        }
        start = time.perf_counter()
        data = await self._request("POST", "/api/generate", json=payload)
        elapsed = round((time.perf_counter() - start) * 1000, 2)

        reply = data.get("response")
        if not isinstance(reply, str):
            raise LLMResponseError("Ollama reply is missing the 'response' field", backend="llm")
        return GenerateResult(response=reply, model=model, response_time_ms=elapsed, raw=data)
