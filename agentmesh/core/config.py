"""
Configuration
=============

Environment-driven settings for the coordination subsystem. Every field can be
overridden with an ``AGENTMESH_``-prefixed environment variable or a ``.env``
file next to the working directory.

Usage:
    from agentmesh.core.config import settings, get_settings

    settings.HEALTH_CHECK_INTERVAL_S        # module-level default instance
    custom = get_settings(MAX_AGENTS=50)   # explicit construction for a composition root
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AGENTMESH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "AgentMesh Coordination Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: Literal["development", "testing", "production"] = "development"

    # ===== Logging =====
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool | None = None  # None = JSON outside development
    LOG_DIR: Path | None = None

    # ===== Registry =====
    MAX_AGENTS: int = Field(default=10, ge=1)
    SEED_DEFAULT_AGENTS: bool = True
    METRICS_SOURCE: Literal["static", "host"] = "static"

    # ===== Periodic activities =====
    HEALTH_MONITORING: bool = True
    PERFORMANCE_OPTIMIZATION: bool = True
    MESSAGE_TICK_S: float = Field(default=0.1, gt=0)
    HEALTH_CHECK_INTERVAL_S: float = Field(default=30.0, gt=0)
    AGENT_OPTIMIZATION_INTERVAL_S: float = Field(default=60.0, gt=0)
    COLLABORATION_OPTIMIZATION_INTERVAL_S: float = Field(default=30.0, gt=0)

    # ===== Collaboration framework =====
    MAX_CONCURRENT_COLLABORATIONS: int = Field(default=10, ge=1)
    KNOWLEDGE_SHARING_ENABLED: bool = True
    EMERGENT_PROPERTY_DETECTION: bool = True
    HANDLER_TIMEOUT_S: float = Field(default=5.0, gt=0)
    RESPONSE_TIMEOUT_S: float | None = 30.0
    SIMULATED_DELAY_MIN_S: float = Field(default=0.5, ge=0)
    SIMULATED_DELAY_MAX_S: float = Field(default=1.5, ge=0)

    # ===== Emergent-property policy =====
    COMMUNICATION_WINDOW_S: float = Field(default=300.0, gt=0)
    COMMUNICATION_SATURATION: int = Field(default=10, ge=1)
    RESPONSE_TIME_BUDGET_MS: float = Field(default=5000.0, gt=0)
    EMERGENT_SYNERGY_THRESHOLD: float = Field(default=0.8, ge=0, le=1)
    EMERGENT_COMMUNICATION_THRESHOLD: float = Field(default=0.7, ge=0, le=1)
    EMERGENT_EFFICIENCY_THRESHOLD: float = Field(default=0.8, ge=0, le=1)
    EMERGENT_MIN_PARTICIPANTS: int = Field(default=3, ge=2)
    QUANTUM_TAGS: tuple[str, ...] = ("quantum-coherence", "superposition-thinking")

    @model_validator(mode="after")
    def _check_delay_range(self) -> "Settings":
        if self.SIMULATED_DELAY_MAX_S < self.SIMULATED_DELAY_MIN_S:
            raise ValueError("SIMULATED_DELAY_MAX_S must be >= SIMULATED_DELAY_MIN_S")
        return self

    @property
    def json_logs(self) -> bool:
        if self.LOG_JSON is None:
            return self.ENVIRONMENT != "development"
        return self.LOG_JSON


def get_settings(**overrides) -> Settings:
    """Build a fresh Settings instance, applying keyword overrides."""
    return Settings(**overrides)


settings = Settings()
