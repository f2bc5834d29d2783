"""Configuration loading for dredger (.dredger.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".dredger.yml"
DEFAULT_MODEL = "llama3.1"
DEFAULT_BASE_URL = "http://localhost:11434/api/generate"
ENV_TOKENIZER_KEY = "DREDGER_TOKENIZER"


@dataclass
class InferenceConfig:
    """Completion endpoint and retry settings."""

    base_url: Optional[str] = None
    model: Optional[str] = None
    request_timeout: float = 60.0
    max_retries: int = 3
    backoff_base: float = 0.5
    backoff_factor: float = 2.0
    backoff_max: float = 30.0


@dataclass
class ChunkingConfig:
    budget: int = 2048
    model_profile: Optional[str] = None


@dataclass
class DispatchConfig:
    concurrency: int = 4
    grace_period: float = 10.0


@dataclass
class PromptConfig:
    template: Optional[str] = None
    template_file: Optional[Path] = None


@dataclass
class PublishConfig:
    """Branch and pull request settings."""

    branch_prefix: str = "dredger/"
    base_branch: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    update_existing: bool = False


@dataclass
class DredgerConfig:
    """Represents the settings defined in .dredger.yml."""

    root: Path
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    prompt: PromptConfig = field(default_factory=PromptConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    tokenizers: Dict[str, Path] = field(default_factory=dict)
    comment_styles: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    exclude_paths: List[str] = field(default_factory=list)

    @property
    def model(self) -> str:
        return self.inference.model or DEFAULT_MODEL

    @property
    def profile_name(self) -> str:
        """Tokenizer profile used for counting; defaults to the generation model."""
        return self.chunking.model_profile or self.model

    def prompt_template(self) -> Optional[str]:
        if self.prompt.template:
            return self.prompt.template
        if self.prompt.template_file is None:
            return None
        try:
            return self.prompt.template_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"Cannot read prompt template {self.prompt.template_file}: {exc}") from exc


def load_config(config_path: Path) -> DredgerConfig:
    """Load configuration from disk, applying environment overrides."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        data = _read_config(config_file)

    inference_data = _as_dict(data.get("inference"))
    defaults = InferenceConfig()
    inference = InferenceConfig(
        base_url=_as_str(inference_data.get("base_url")),
        model=_as_str(inference_data.get("model")),
        request_timeout=_as_float(inference_data.get("request_timeout"), defaults.request_timeout),
        max_retries=_as_count(inference_data, "max_retries", defaults.max_retries),
        backoff_base=_as_float(inference_data.get("backoff_base"), defaults.backoff_base),
        backoff_factor=_as_float(inference_data.get("backoff_factor"), defaults.backoff_factor),
        backoff_max=_as_float(inference_data.get("backoff_max"), defaults.backoff_max),
    )
    inference.base_url = os.getenv("DREDGER_LLM_BASE_URL") or inference.base_url
    inference.model = os.getenv("DREDGER_LLM_MODEL") or inference.model

    chunking_data = _as_dict(data.get("chunking"))
    chunking = ChunkingConfig(
        budget=_as_count(chunking_data, "budget", ChunkingConfig.budget),
        model_profile=_as_str(chunking_data.get("model_profile")),
    )

    dispatch_data = _as_dict(data.get("dispatch"))
    dispatch = DispatchConfig(
        concurrency=_as_count(dispatch_data, "concurrency", DispatchConfig.concurrency),
        grace_period=_as_float(dispatch_data.get("grace_period"), DispatchConfig.grace_period),
    )

    prompt_data = _as_dict(data.get("prompt"))
    template_file = _as_str(prompt_data.get("template_file"))
    prompt = PromptConfig(
        template=_as_str(prompt_data.get("template")),
        template_file=root / template_file if template_file else None,
    )

    publish_data = _as_dict(data.get("publish"))
    publish = PublishConfig(
        branch_prefix=_as_str(publish_data.get("branch_prefix")) or PublishConfig.branch_prefix,
        base_branch=_as_str(publish_data.get("base_branch")),
        labels=_as_str_list(publish_data.get("labels")),
        update_existing=_as_bool(publish_data.get("update_existing")) or False,
    )

    tokenizers: Dict[str, Path] = {}
    for name, value in _as_dict(data.get("tokenizers")).items():
        path = _as_str(value)
        if path:
            tokenizers[str(name)] = (root / Path(path).expanduser()).resolve()

    comment_styles: Dict[str, Dict[str, Any]] = {}
    for language, value in _as_dict(data.get("comment_styles")).items():
        style = _as_dict(value)
        if style:
            comment_styles[str(language)] = style

    config = DredgerConfig(
        root=root,
        inference=inference,
        chunking=chunking,
        dispatch=dispatch,
        prompt=prompt,
        publish=publish,
        tokenizers=tokenizers,
        comment_styles=comment_styles,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
    )

    env_tokenizer = os.getenv(ENV_TOKENIZER_KEY)
    if env_tokenizer and config.profile_name not in config.tokenizers:
        config.tokenizers[config.profile_name] = Path(env_tokenizer).expanduser().resolve()
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = Path(config_path).expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_float(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return default
    return default


def _as_count(data: Dict[str, Any], key: str, default: int) -> Any:
    """Return the value as written; the pipeline validates it before a run."""
    return data[key] if key in data else default


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ChunkingConfig",
    "DEFAULT_BASE_URL",
    "DEFAULT_MODEL",
    "DispatchConfig",
    "DredgerConfig",
    "InferenceConfig",
    "PromptConfig",
    "PublishConfig",
    "load_config",
]
