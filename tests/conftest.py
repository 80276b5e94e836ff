"""Shared test fixtures for sleuth."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import pytest

from sleuth.core.log import ROOT_LOGGER
from sleuth.providers.tavily import ProviderSearchResult

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(autouse=True)
def _reset_sleuth_logger():
    """Undo configure_logging so caplog sees ``sleuth.*`` records."""
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run with no user/project config and no API keys in the environment."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    for var in (
        "ANTHROPIC_API_KEY",
        "TAVILY_API_KEY",
        "SLEUTH_CONFIG",
        "SLEUTH_LOG_LEVEL",
        "SLEUTH_LOG_FILE",
        "SLEUTH_MAX_HISTORY",
    ):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def make_search_result() -> Any:
    """Factory fixture for ProviderSearchResult with sensible defaults."""

    def _make(**overrides: Any) -> ProviderSearchResult:
        defaults: dict[str, Any] = {
            "title": "Quantum computing overview",
            "url": "https://example.com/quantum",
            "content": "Qubits can exist in superposition.",
            "published_date": None,
            "score": 0.9,
        }
        defaults.update(overrides)
        return ProviderSearchResult(**defaults)

    return _make
