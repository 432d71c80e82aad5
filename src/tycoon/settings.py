"""
Arena configuration using pydantic-settings.

Two groups, each read from the environment (and .env) once and cached:
game rules with the runner cadence (``ARENA_*``) and the endpoint behind
the LLM decision source (``LLM_*``).

Database configuration lives in `tycoon.data.config.DatabaseSettings`.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ArenaSettings(BaseSettings):
    """
    Game rules and scheduler configuration.

    Environment variables (prefix: ARENA_):
        ARENA_TURN_INTERVAL_SECONDS - Autonomous tick cadence (default: 3.0)
        ARENA_ROUND_CAP             - Rounds before an agent game is called (default: 100)
        ARENA_STARTING_BALANCE      - Balance given to each new seat (default: 1500)
        ARENA_GO_BONUS              - Paid for passing GO (default: 200)
        ARENA_RUNNER_AUTOSTART      - Start runners when agent games start (default: true)
        ARENA_EVENT_LOG_SIZE        - In-memory log entries kept per game (default: 200)
        ARENA_SEED                  - Optional seed for dice and card draws
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="ARENA_",
    )

    turn_interval_seconds: float = Field(default=3.0, gt=0)
    round_cap: int = Field(default=100, ge=1)
    starting_balance: int = Field(default=1500, ge=1)
    go_bonus: int = Field(default=200, ge=0)
    runner_autostart: bool = Field(default=True)
    event_log_size: int = Field(default=200, ge=1)
    seed: Optional[int] = Field(default=None)


class LLMProvider(str, Enum):
    OLLAMA = "ollama"
    VLLM = "vllm"
    OPENAI = "openai"
    CUSTOM = "custom"


# Local servers have a well-known address; hosted ones must be configured
DEFAULT_BASE_URLS: Dict[LLMProvider, str] = {
    LLMProvider.OLLAMA: "http://localhost:11434/v1",
    LLMProvider.VLLM: "http://localhost:8000/v1",
}


class LLMSettings(BaseSettings):
    """
    Chat-completions endpoint used by seats with the ``llm`` strategy.

    Environment variables (prefix: LLM_):
        LLM_PROVIDER        - ollama | vllm | openai | custom (default: ollama)
        LLM_BASE_URL        - API root, defaults per local provider
        LLM_MODEL           - Model name or identifier
        LLM_API_KEY         - Bearer token for hosted providers
        LLM_TIMEOUT_SECONDS - Per-request timeout (default: 30)
        LLM_MAX_TOKENS      - Response token limit (default: 512)
        LLM_MAX_RETRIES     - Attempts before falling back to end_turn (default: 2)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="LLM_",
    )

    provider: LLMProvider = Field(default=LLMProvider.OLLAMA)
    base_url: Optional[str] = Field(
        default=None,
        validate_default=True,
        description="API root ending in /v1, e.g. http://localhost:11434/v1.",
    )
    model: str = Field(default="gemma3:4b")
    api_key: Optional[SecretStr] = Field(default=None)
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_tokens: int = Field(default=512, gt=0)
    max_retries: int = Field(default=2, ge=1, le=5)

    @field_validator("base_url", mode="before")
    @classmethod
    def default_base_url(cls, value: Optional[str], info):
        if value:
            return value
        try:
            provider = LLMProvider(info.data.get("provider", LLMProvider.OLLAMA))
        except ValueError:
            return None
        return DEFAULT_BASE_URLS.get(provider)


@lru_cache
def get_arena_settings() -> ArenaSettings:
    return ArenaSettings()


@lru_cache
def get_llm_settings() -> LLMSettings:
    return LLMSettings()
