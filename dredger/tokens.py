"""Token accounting against named tokenizer profiles."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Mapping, Optional

from tokenizers import Tokenizer

from .errors import UnsupportedModel
from .logging import get_logger

logger = get_logger("tokens")


@dataclass(frozen=True)
class ModelProfile:
    """A named tokenizer configuration matching an inference model family."""

    name: str
    tokenizer: Tokenizer
    add_special_tokens: bool = False

    def count(self, text: str) -> int:
        if not text:
            return 0
        encoding = self.tokenizer.encode(text, add_special_tokens=self.add_special_tokens)
        return len(encoding.ids)


class ModelRegistry:
    """Maps model names to tokenizer profiles."""

    def __init__(self, profiles: Optional[Mapping[str, ModelProfile]] = None) -> None:
        self._profiles: Dict[str, ModelProfile] = {}
        for profile in (profiles or {}).values():
            self.register(profile)

    def register(self, profile: ModelProfile) -> None:
        self._profiles[profile.name] = profile

    def get(self, name: str) -> ModelProfile:
        try:
            return self._profiles[name]
        except KeyError:
            raise UnsupportedModel(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._profiles

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._profiles))

    def __len__(self) -> int:
        return len(self._profiles)


def load_profile(name: str, tokenizer_path: Path, *, add_special_tokens: bool = False) -> ModelProfile:
    """Load a `tokenizer.json` file into a profile."""
    path = Path(tokenizer_path).expanduser()
    if not path.is_file():
        raise UnsupportedModel(name, f"tokenizer file not found at {path}")
    try:
        tokenizer = Tokenizer.from_file(str(path))
    except Exception as exc:
        raise UnsupportedModel(name, f"failed to load tokenizer {path}: {exc}") from exc
    logger.debug("Loaded tokenizer profile %s from %s", name, path)
    return ModelProfile(name=name, tokenizer=tokenizer, add_special_tokens=add_special_tokens)


def load_registry(
    tokenizer_paths: Mapping[str, Path | str],
    *,
    add_special_tokens: bool = False,
) -> ModelRegistry:
    """Build a registry from a `model name -> tokenizer.json` mapping."""
    registry = ModelRegistry()
    for name, path in tokenizer_paths.items():
        registry.register(load_profile(name, Path(path), add_special_tokens=add_special_tokens))
    return registry


def count_tokens(
    text: str,
    model: ModelProfile | str,
    registry: ModelRegistry | None = None,
) -> int:
    """Return the number of tokens the model's tokenizer produces for `text`."""
    if isinstance(model, ModelProfile):
        return model.count(text)
    if registry is None:
        raise UnsupportedModel(model, "no registry supplied to resolve the profile")
    return registry.get(model).count(text)


__all__ = [
    "ModelProfile",
    "ModelRegistry",
    "count_tokens",
    "load_profile",
    "load_registry",
]
