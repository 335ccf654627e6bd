"""Shared pytest fixtures."""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

import pytest

from textrelay.ai.ai_types import ProviderTier
from textrelay.ai.orchestration.runtime_config import DEFAULT_TIER_PROFILES, TierProfile


@pytest.fixture
def fast_profiles() -> dict[ProviderTier, TierProfile]:
    """Default tier profiles with retry delays removed."""

    return {tier: replace(profile, retry_base_delay=0.0) for tier, profile in DEFAULT_TIER_PROFILES.items()}


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("TEXTRELAY_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TEXTRELAY_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def reset_logging(monkeypatch: pytest.MonkeyPatch):
    """Undo root logger changes made by ``setup_logging``."""

    from textrelay.utils import logging as logging_utils

    monkeypatch.setattr(logging_utils, "_CONFIGURED", False)
    monkeypatch.setattr(logging_utils, "_LOG_PATH", None)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
