"""
BaitGuard — Application Settings
Loaded via pydantic-settings from environment variables / .env file.
EngineConfig is the hot-updatable runtime subset the engine reads per call.
"""
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BackendName = Literal["rules", "neural", "llm", "automatic"]
Aggressiveness = Literal["low", "medium", "high"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── App ───────────────────────────────────────────────────────────────────
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    # ── Engine ────────────────────────────────────────────────────────────────
    backend: BackendName = "automatic"
    confidence_threshold: float = 0.6
    aggressiveness: Aggressiveness = "medium"
    supported_languages: str = "en,fr,es,de,it,pt"
    adaptive_mode: bool = True

    @property
    def supported_languages_list(self) -> list[str]:
        return [lang.strip() for lang in self.supported_languages.split(",") if lang.strip()]

    # ── Neural backend ────────────────────────────────────────────────────────
    neural_enabled: bool = True
    model_preset: str = "balanced"        # or "auto": pick from the constraints below
    model_max_params: int = 0             # 0 = no limit
    model_max_layers: int = 0             # 0 = no limit
    model_prioritize: Literal["balanced", "speed", "accuracy"] = "balanced"
    initial_epochs: int = 100
    retrain_threshold: int = 20
    feedback_buffer_limit: int = 200
    auto_retrain: bool = True

    # ── LLM backend (Ollama) ──────────────────────────────────────────────────
    llm_enabled: bool = False
    ollama_endpoint: str = "http://127.0.0.1:11434"
    ollama_model: str = "llama3.2:1b"
    ollama_timeout: float = 5.0          # seconds
    batch_max_concurrent: int = 3
    batch_timeout: float = 30.0          # seconds per chunk

    # ── Blending weights ──────────────────────────────────────────────────────
    rule_weight: float = 0.40
    ml_weight: float = 0.60

    # ── Storage ───────────────────────────────────────────────────────────────
    store_backend: Literal["memory", "json", "firestore"] = "memory"
    store_path: str = "./baitguard_state.json"
    firebase_credentials_path: str = ""
    firestore_collection: str = "baitguard"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


class EngineConfig(BaseModel):
    """Runtime options; validated on every hot update."""

    backend: BackendName = "automatic"
    confidence_threshold: float = Field(0.6, ge=0.0, le=1.0)
    aggressiveness: Aggressiveness = "medium"
    supported_languages: list[str] = Field(default_factory=lambda: ["en", "fr", "es", "de", "it", "pt"])
    retrain_threshold: int = Field(20, ge=1)
    adaptive_mode: bool = True
    auto_retrain: bool = True
    rule_weight: float = Field(0.4, ge=0.0, le=1.0)
    ml_weight: float = Field(0.6, ge=0.0, le=1.0)
    fallback_order: list[Literal["llm", "neural", "rules"]] = Field(
        default_factory=lambda: ["llm", "neural", "rules"]
    )

    @field_validator("supported_languages")
    @classmethod
    def _non_empty_languages(cls, value: list[str]) -> list[str]:
        cleaned = [v.strip() for v in value if v.strip()]
        return cleaned or ["en"]

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineConfig":
        return cls(
            backend=settings.backend,
            confidence_threshold=settings.confidence_threshold,
            aggressiveness=settings.aggressiveness,
            supported_languages=settings.supported_languages_list,
            retrain_threshold=settings.retrain_threshold,
            adaptive_mode=settings.adaptive_mode,
            auto_retrain=settings.auto_retrain,
            rule_weight=settings.rule_weight,
            ml_weight=settings.ml_weight,
        )

    def merged(self, updates: dict) -> "EngineConfig":
        return EngineConfig.model_validate({**self.model_dump(), **updates})


@lru_cache
def get_settings() -> Settings:
    """Return a cached singleton Settings instance."""
    return Settings()
