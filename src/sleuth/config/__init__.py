"""Configuration loading and validation."""

from sleuth.config.loader import load_config
from sleuth.config.schema import (
    AnalyzeConfig,
    FetchConfig,
    LoggingConfig,
    ProviderConfig,
    RegistryConfig,
    SearchConfig,
    SleuthConfig,
    SynthesizeConfig,
    ToolConfig,
    ToolsConfig,
)

__all__ = [
    "AnalyzeConfig",
    "FetchConfig",
    "LoggingConfig",
    "ProviderConfig",
    "RegistryConfig",
    "SearchConfig",
    "SleuthConfig",
    "SynthesizeConfig",
    "ToolConfig",
    "ToolsConfig",
    "load_config",
]
