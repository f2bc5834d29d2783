"""Repository scanning: loads documentable source files from a local checkout."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .config import CONFIG_FILENAME, load_config
from .errors import ConfigError
from .logging import get_logger
from .models import SourceFile
from .patching.styles import COMMENT_STYLES
from .tokens import ModelProfile

logger = get_logger("repo_scanner")

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".dredger",
    "target",
    "dist",
    "build",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_LANGUAGE_BY_SUFFIX = {
    ".py": "Python",
    ".pyi": "Python",
    ".js": "JavaScript",
    ".jsx": "JavaScript",
    ".mjs": "JavaScript",
    ".ts": "TypeScript",
    ".tsx": "TypeScript",
    ".java": "Java",
    ".kt": "Kotlin",
    ".kts": "Kotlin",
    ".go": "Go",
    ".rs": "Rust",
    ".rb": "Ruby",
    ".php": "PHP",
    ".cs": "C#",
    ".c": "C",
    ".h": "C",
    ".cpp": "C++",
    ".hpp": "C++",
    ".cc": "C++",
    ".hh": "C++",
    ".swift": "Swift",
    ".m": "Objective-C",
    ".mm": "Objective-C++",
    ".scala": "Scala",
    ".r": "R",
    ".jl": "Julia",
    ".lua": "Lua",
    ".sql": "SQL",
    ".hs": "Haskell",
    ".sh": "Shell",
    ".ps1": "PowerShell",
    ".bat": "Batch",
    ".cmd": "Batch",
}


@dataclass(frozen=True)
class IgnoreRule:
    """One gitignore-style pattern from .gitignore or `exclude_paths`."""

    pattern: str
    negate: bool = False
    dir_only: bool = False
    rooted: bool = False

    @classmethod
    def parse(cls, line: str) -> Optional["IgnoreRule"]:
        text = line.strip()
        if not text or text.startswith("#"):
            return None
        negate = text.startswith("!")
        text = text.lstrip("!")
        dir_only = text.endswith("/")
        text = text.rstrip("/")
        rooted = "/" in text
        text = text.lstrip("/")
        if not text:
            return None
        return cls(pattern=text, negate=negate, dir_only=dir_only, rooted=rooted)

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if self.dir_only and not is_dir:
            return False
        if not self.rooted:
            # Bare names match at any depth.
            return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))
        return fnmatchcase(rel_path, self.pattern)


class IgnoreRules:
    """Ordered rules; the last matching rule decides."""

    def __init__(self, rules: Iterable[IgnoreRule] = ()) -> None:
        self.rules: List[IgnoreRule] = list(rules)

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "IgnoreRules":
        return cls(rule for rule in map(IgnoreRule.parse, lines) if rule is not None)

    def extend(self, other: "IgnoreRules") -> None:
        self.rules.extend(other.rules)

    def ignored(self, rel_path: str, is_dir: bool) -> bool:
        verdict = False
        for rule in self.rules:
            if rule.matches(rel_path, is_dir):
                verdict = not rule.negate
        return verdict


def _load_rules(root: Path, extra: Sequence[str]) -> IgnoreRules:
    rules = IgnoreRules()
    gitignore = root / ".gitignore"
    if gitignore.is_file():
        rules.extend(IgnoreRules.from_lines(gitignore.read_text(encoding="utf-8").splitlines()))

    patterns = list(extra)
    try:
        patterns.extend(load_config(root / CONFIG_FILENAME).exclude_paths)
    except ConfigError as exc:
        logger.warning("Ignoring exclude_paths from %s: %s", CONFIG_FILENAME, exc)
    rules.extend(IgnoreRules.from_lines(patterns))
    return rules


def _walk(root: Path, rules: IgnoreRules) -> Iterator[Tuple[Path, str]]:
    """Yield `(absolute path, posix relative path)` for every kept file, sorted per directory."""
    for dirpath, dirnames, filenames in os.walk(root):
        base = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if base == "." else f"{base}/"

        dirnames[:] = [
            name
            for name in sorted(dirnames)
            if name not in _EXCLUDED_DIRS and not rules.ignored(prefix + name, True)
        ]
        for name in sorted(filenames):
            if name in _EXCLUDED_FILES or rules.ignored(prefix + name, False):
                continue
            yield Path(dirpath) / name, prefix + name


def detect_language(path: Path | str) -> str | None:
    return _LANGUAGE_BY_SUFFIX.get(Path(path).suffix.lower())


class RepoScanner:
    """Walks a repository and loads the files dredger can document."""

    def __init__(self, *, exclude_paths: Sequence[str] = ()) -> None:
        self.exclude_paths = list(exclude_paths)

    def load(self, root: str | Path) -> List[SourceFile]:
        """Return documentable files sorted by path."""
        base = Path(root).expanduser().resolve()
        if not base.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not base.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")

        files: List[SourceFile] = []
        for path, rel_path in _walk(base, _load_rules(base, self.exclude_paths)):
            language = detect_language(path)
            if language not in COMMENT_STYLES:
                continue
            try:
                text = path.read_bytes().decode("utf-8")
            except UnicodeDecodeError:
                logger.debug("Skipping non UTF-8 file %s", rel_path)
                continue
            except OSError as exc:
                logger.warning("Cannot read %s: %s", rel_path, exc)
                continue
            if text.strip():
                files.append(SourceFile(path=rel_path, text=text, language=language))

        files.sort(key=lambda item: item.path)
        logger.debug("Loaded %d source files from %s", len(files), base)
        return files


@dataclass
class TokenNode:
    """File or directory with its aggregated token count."""

    name: str
    path: str
    token_count: int = 0
    children: Dict[str, "TokenNode"] = field(default_factory=dict)

    @property
    def is_dir(self) -> bool:
        return bool(self.children)

    def render(self, depth: int = 0) -> str:
        indent = "  " * depth
        marker = "/" if self.is_dir else ""
        lines = [f"{indent}{self.name}{marker} ({self.token_count} tokens)"]
        for child in sorted(self.children.values(), key=lambda node: (not node.is_dir, node.name)):
            lines.append(child.render(depth + 1))
        return "\n".join(lines)


def token_tree(files: Sequence[SourceFile], profile: ModelProfile, *, root_name: str = ".") -> TokenNode:
    """Count tokens per file and sum them up through each directory."""
    root = TokenNode(name=root_name, path="")
    for source in files:
        tokens = profile.count(source.text)
        parts = source.path.split("/")
        node = root
        node.token_count += tokens
        for depth, part in enumerate(parts):
            child_path = "/".join(parts[: depth + 1])
            child = node.children.get(part)
            if child is None:
                child = TokenNode(name=part, path=child_path)
                node.children[part] = child
            child.token_count += tokens
            node = child
    return root


__all__ = ["IgnoreRule", "IgnoreRules", "RepoScanner", "TokenNode", "detect_language", "token_tree"]
