"""Pydantic models for sleuth configuration.

Tool configs live here alongside the rest of the settings so that a
single TOML file can tune every tool. Durations are milliseconds unless
a field says otherwise.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_LLM_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; ResearchAgent/1.0)"


class ProviderConfig(BaseModel):
    """Configuration for a single upstream provider."""

    enabled: bool = True
    api_key: str | None = None
    api_key_env: str | None = None
    base_url: str | None = None
    default_model: str | None = None
    # seconds between requests; 0 disables spacing
    min_interval: float = Field(default=0.0, ge=0)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    structured: bool = False


class RegistryConfig(BaseModel):
    """Tool registry settings."""

    max_history_size: int = Field(default=1000, ge=1)


# ─── Tool Configs ─────────────────────────────────────────────


class ToolConfig(BaseModel):
    """Settings every tool understands."""

    enabled: bool = True
    timeout: int | None = 30_000
    max_retries: int = Field(default=3, ge=0)


class SearchConfig(ToolConfig):
    """Web search tool configuration."""

    api_key: str | None = None
    default_max_results: int = Field(default=10, ge=1, le=100)
    default_search_depth: Literal["basic", "advanced"] = "basic"


class FetchConfig(ToolConfig):
    """Web fetch tool configuration."""

    user_agent: str = DEFAULT_USER_AGENT
    follow_redirects: bool = True
    max_redirects: int = Field(default=5, ge=0)
    validate_ssl: bool = True
    cache_enabled: bool = True
    cache_ttl: int = Field(default=3_600_000, ge=0)
    max_cache_size: int = Field(default=100, ge=1)


class AnalyzeConfig(ToolConfig):
    """Content analysis tool configuration."""

    timeout: int | None = 60_000
    llm_model: str = DEFAULT_LLM_MODEL
    max_tokens: int = 4000
    temperature: float = 0.3
    default_analysis_type: Literal[
        "extract", "summarize", "classify", "sentiment", "all"
    ] = "all"


class SynthesizeConfig(ToolConfig):
    """Multi-source synthesis tool configuration."""

    timeout: int | None = 90_000
    max_retries: int = Field(default=2, ge=0)
    llm_model: str = DEFAULT_LLM_MODEL
    max_tokens: int = 8000
    temperature: float = 0.4
    citation_style: Literal["inline", "footnote", "endnote"] = "inline"


class ToolsConfig(BaseModel):
    """Per-tool configuration."""

    search: SearchConfig = Field(default_factory=SearchConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    analyze: AnalyzeConfig = Field(default_factory=AnalyzeConfig)
    synthesize: SynthesizeConfig = Field(default_factory=SynthesizeConfig)


class SleuthConfig(BaseModel):
    """Top-level configuration for sleuth."""

    providers: dict[str, ProviderConfig] = Field(
        default_factory=lambda: {
            "anthropic": ProviderConfig(api_key_env="ANTHROPIC_API_KEY"),
            "tavily": ProviderConfig(api_key_env="TAVILY_API_KEY"),
        }
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
