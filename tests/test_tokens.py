"""Tests for tokenizer profiles and token counting."""

from __future__ import annotations

from pathlib import Path

import pytest

from dredger.errors import ConfigError, UnsupportedModel
from dredger.tokens import ModelProfile, ModelRegistry, count_tokens, load_profile, load_registry
from tests._fixtures.tokenizer import TEST_MODEL, save_tokenizer


def test_count_tokens_uses_the_profile_tokenizer(profile: ModelProfile) -> None:
    assert count_tokens("one two three", profile) == 3
    assert count_tokens("", profile) == 0


def test_count_tokens_is_deterministic(profile: ModelProfile) -> None:
    text = "def area(radius):\n    return radius * radius\n"
    assert count_tokens(text, profile) == count_tokens(text, profile)


def test_count_tokens_resolves_names_through_registry(registry: ModelRegistry) -> None:
    assert count_tokens("alpha beta", TEST_MODEL, registry) == 2


def test_unknown_model_raises_unsupported_model(registry: ModelRegistry) -> None:
    with pytest.raises(UnsupportedModel) as excinfo:
        count_tokens("text", "no-such-model", registry)

    assert excinfo.value.model == "no-such-model"
    assert isinstance(excinfo.value, ConfigError)


def test_model_name_without_registry_is_rejected() -> None:
    with pytest.raises(UnsupportedModel):
        count_tokens("text", TEST_MODEL)


def test_registry_membership(registry: ModelRegistry) -> None:
    assert TEST_MODEL in registry
    assert "other" not in registry
    assert list(registry) == [TEST_MODEL]
    assert len(registry) == 1


def test_load_registry_reads_tokenizer_files(tmp_path: Path) -> None:
    path = save_tokenizer(tmp_path / "tok" / "tokenizer.json")

    registry = load_registry({"llama3.1": path})

    assert count_tokens("a b c d", "llama3.1", registry) == 4


def test_load_profile_missing_file(tmp_path: Path) -> None:
    with pytest.raises(UnsupportedModel, match="tokenizer file not found"):
        load_profile("llama3.1", tmp_path / "missing.json")


def test_load_profile_invalid_file(tmp_path: Path) -> None:
    broken = tmp_path / "tokenizer.json"
    broken.write_text("{not json", encoding="utf-8")

    with pytest.raises(UnsupportedModel, match="failed to load tokenizer"):
        load_profile("llama3.1", broken)
