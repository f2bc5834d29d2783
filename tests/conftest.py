from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from dredger.tokens import ModelProfile, ModelRegistry
from tests._fixtures.repo_builder import RepoBuilder
from tests._fixtures.tokenizer import word_profile


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable repo builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def profile() -> ModelProfile:
    return word_profile()


@pytest.fixture
def registry(profile: ModelProfile) -> ModelRegistry:
    return ModelRegistry({profile.name: profile})


@pytest.fixture(autouse=True)
def _clear_dredger_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in (
        "DREDGER_LLM_BASE_URL",
        "DREDGER_LLM_MODEL",
        "DREDGER_TOKENIZER",
        "OLLAMA_BASE_URL",
        "OLLAMA_MODEL",
    ):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _reset_dredger_logger() -> Iterator[None]:
    """CLI tests configure logging against captured streams; undo that afterwards."""
    yield
    logger = logging.getLogger("dredger")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
