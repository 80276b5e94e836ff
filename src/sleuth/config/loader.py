"""Load sleuth settings from TOML files and the environment.

Layers, lowest priority first::

    model defaults
    ~/.config/sleuth/config.toml  ($XDG_CONFIG_HOME respected)
    ./sleuth.toml
    $SLEUTH_CONFIG
    explicit ``path`` argument
    SLEUTH_* setting variables (see ``ENV_SETTINGS``)
    programmatic ``overrides``

A ``[tools.defaults]`` table carries the settings every tool shares
(``enabled``, ``timeout``, ``max_retries``). Each tool's own table wins
over it, whichever layer either came from. Tool tables other than
search, fetch, analyze and synthesize are rejected so a typo cannot
silently fall back to defaults.

Provider API keys are read from the variable named by each provider's
``api_key_env``. The Tavily key doubles as the search tool's key unless
``[tools.search]`` sets its own.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from sleuth.core.errors import ConfigError

from .schema import SleuthConfig

CONFIG_ENV = "SLEUTH_CONFIG"
TOOL_SECTIONS = ("search", "fetch", "analyze", "synthesize")
SHARED_TOOL_KEYS = frozenset({"enabled", "timeout", "max_retries"})

ENV_SETTINGS: dict[str, tuple[str, str]] = {
    "SLEUTH_LOG_LEVEL": ("logging", "level"),
    "SLEUTH_LOG_FILE": ("logging", "file"),
    "SLEUTH_MAX_HISTORY": ("registry", "max_history_size"),
}


def config_files(path: str | Path | None = None) -> list[Path]:
    """Config files to merge, lowest priority first."""
    xdg = os.environ.get("XDG_CONFIG_HOME")
    user_dir = Path(xdg) if xdg else Path.home() / ".config"
    discovered = (user_dir / "sleuth" / "config.toml", Path.cwd() / "sleuth.toml")
    files = [candidate for candidate in discovered if candidate.is_file()]

    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        if not Path(env_path).is_file():
            msg = f"{CONFIG_ENV} points to non-existent file: {env_path}"
            raise ConfigError(msg)
        files.append(Path(env_path))

    if path is not None:
        if not Path(path).is_file():
            msg = f"Config file not found: {path}"
            raise ConfigError(msg)
        files.append(Path(path))

    return files


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {path}: {e}"
        raise ConfigError(msg) from e
    except OSError as e:
        msg = f"Cannot read config file {path}: {e}"
        raise ConfigError(msg) from e


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge *override* into a copy of *base*; tables merge key by key."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            value = _deep_merge(current, value)
        merged[key] = value
    return merged


def _env_settings() -> dict[str, Any]:
    """Nested settings taken from the SLEUTH_* variables that are set."""
    layer: dict[str, Any] = {}
    for var, (section, key) in ENV_SETTINGS.items():
        value = os.environ.get(var)
        if value:
            layer.setdefault(section, {})[key] = value
    return layer


def _resolve_tool_sections(data: dict[str, Any]) -> dict[str, Any]:
    """Expand ``[tools.defaults]`` into every tool table and reject unknown tables."""
    tools = data.get("tools")
    if not isinstance(tools, dict):
        return data

    unknown = sorted(set(tools) - {*TOOL_SECTIONS, "defaults"})
    if unknown:
        tables = ", ".join(f"[tools.{name}]" for name in unknown)
        msg = f"Unknown tool section(s): {tables}"
        raise ConfigError(msg)

    shared = tools.get("defaults", {})
    if not isinstance(shared, dict):
        msg = "[tools.defaults] must be a table"
        raise ConfigError(msg)
    unsupported = sorted(set(shared) - SHARED_TOOL_KEYS)
    if unsupported:
        msg = f"Unsupported key(s) in [tools.defaults]: {', '.join(unsupported)}"
        raise ConfigError(msg)

    resolved: dict[str, Any] = {}
    for name in TOOL_SECTIONS:
        own = tools.get(name, {})
        resolved[name] = {**shared, **own} if isinstance(own, dict) else own
    return {**data, "tools": resolved}


def _describe(error: ValidationError) -> str:
    """One ``dotted.location: message`` entry per validation problem."""
    return "; ".join(
        f"{'.'.join(str(part) for part in issue['loc'])}: {issue['msg']}"
        for issue in error.errors()
    )


def _resolve_api_keys(config: SleuthConfig) -> None:
    for provider in config.providers.values():
        if provider.api_key is None and provider.api_key_env:
            provider.api_key = os.environ.get(provider.api_key_env)

    tavily = config.providers.get("tavily")
    search = config.tools.search
    if search.api_key is None and tavily is not None:
        search.api_key = tavily.api_key


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> SleuthConfig:
    """Load, merge and validate configuration.

    Args:
        path: Explicit config file, merged after every discovered file.
        overrides: Settings merged last, above files and environment.

    Raises:
        ConfigError: On a missing or unreadable file, invalid TOML, an
            unknown tool table, or a value the schema rejects.
    """
    merged: dict[str, Any] = {}
    for config_file in config_files(path):
        merged = _deep_merge(merged, _read_toml(config_file))
    merged = _deep_merge(merged, _env_settings())
    if overrides:
        merged = _deep_merge(merged, overrides)

    try:
        config = SleuthConfig.model_validate(_resolve_tool_sections(merged))
    except ValidationError as e:
        msg = f"Configuration validation failed: {_describe(e)}"
        raise ConfigError(msg) from e

    _resolve_api_keys(config)
    return config
