"""Configuration models for the chat pipeline."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetrievalConfig(BaseModel):
    """Configures vector retrieval, confidence gating and the local fallback."""

    top_k: int = Field(default=5, ge=1, le=20)
    similarity_threshold: float = Field(default=0.35, ge=0.0, le=1.0)
    local_fallback: bool = True


class ChunkingConfig(BaseModel):
    """Configures heading-aware chunking of help pages."""

    min_chars: int = Field(default=900, ge=1)
    max_chars: int = Field(default=1200, ge=1)
    max_heading_level: int = Field(default=3, ge=1, le=6)


class RouterConfig(BaseModel):
    """Configures how a question is matched to a read-only tool."""

    strategy: Literal["embedding", "keyword", "embedding_then_keyword", "llm_then_embedding"] = (
        "llm_then_embedding"
    )
    tool_similarity_threshold: float = Field(default=0.45, ge=0.0, le=1.0)


class RateLimitConfig(BaseModel):
    """Sliding-window throttle applied per session and origin."""

    max_requests: int = Field(default=12, ge=1)
    window_seconds: float = Field(default=60.0, gt=0.0)
    max_keys: int = Field(default=5000, ge=1)


class MemoryConfig(BaseModel):
    """Long-term memory behaviour.

    `fail_open` decides what a failed preference read means: `True` keeps
    memory writes enabled for the turn, `False` disables them.
    """

    fail_open: bool = True
    max_entries: int = Field(default=20, ge=1)


class PipelinePolicy(BaseModel):
    """Single policy object covering every pipeline variant."""

    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    router: RouterConfig = Field(default_factory=RouterConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    refuse_personal_data: bool = True
    personal_data_via_tools: bool = True
    low_confidence_reply: Literal["not_indexed", "off_topic"] = "not_indexed"
    default_language: str = "en"


class Settings(BaseSettings):
    """Process-level settings read from the environment or `.env`."""

    model_config = SettingsConfigDict(
        env_prefix="STUDYMATE_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("STUDYMATE_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_model: str = "gpt-4o-mini"
    openai_embedding_model: str = "text-embedding-3-small"
    openai_moderation_model: str = "omni-moderation-latest"

    ai_chat_enabled: bool = True
    flag_cache_seconds: float = Field(default=30.0, ge=0.0)
    admin_token: str | None = None
    viewer_tokens: dict[str, str] = Field(default_factory=dict)

    sqlite_path: str | None = None
    local_docs_dir: str = "content/ai"
    index_local_docs: bool = False
    log_level: str = "INFO"
