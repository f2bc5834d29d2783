"""Per-language comment syntax used when inserting documentation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class CommentStyle:
    """Either a line comment prefix or a block comment triple."""

    line_prefix: Optional[str] = None
    block_start: Optional[str] = None
    block_line: str = ""
    block_end: Optional[str] = None

    def __post_init__(self) -> None:
        if self.line_prefix is None and (self.block_start is None or self.block_end is None):
            raise ValueError("CommentStyle needs a line_prefix or both block_start and block_end")

    def render(self, doc: str, indent: str, newline: str) -> str:
        """Return the comment lines for `doc`, each terminated by `newline`."""
        doc_lines = doc.strip().splitlines() or [""]
        lines: List[str] = []
        if self.line_prefix is not None:
            for line in doc_lines:
                lines.append(f"{indent}{self.line_prefix}{line}".rstrip())
        else:
            terminator = (self.block_end or "").strip()
            lines.append(f"{indent}{self.block_start}")
            for line in doc_lines:
                if terminator:
                    line = line.replace(terminator, _neutralise(terminator))
                lines.append(f"{indent}{self.block_line}{line}".rstrip())
            lines.append(f"{indent}{self.block_end}")
        return "".join(f"{line}{newline}" for line in lines)


def _neutralise(token: str) -> str:
    return f"{token[0]} {token[1:]}" if len(token) > 1 else f"{token} "


HASH = CommentStyle(line_prefix="# ")
SLASHES = CommentStyle(line_prefix="// ")
TRIPLE_SLASHES = CommentStyle(line_prefix="/// ")
DASHES = CommentStyle(line_prefix="-- ")
JAVADOC = CommentStyle(block_start="/**", block_line=" * ", block_end=" */")

DEFAULT_STYLE = HASH

COMMENT_STYLES: Mapping[str, CommentStyle] = MappingProxyType(
    {
        "Python": HASH,
        "Ruby": HASH,
        "R": HASH,
        "Julia": HASH,
        "Shell": HASH,
        "PowerShell": HASH,
        "JavaScript": JAVADOC,
        "TypeScript": JAVADOC,
        "Java": JAVADOC,
        "Kotlin": JAVADOC,
        "Scala": JAVADOC,
        "PHP": JAVADOC,
        "Objective-C": JAVADOC,
        "Objective-C++": JAVADOC,
        "C": SLASHES,
        "C++": SLASHES,
        "Go": SLASHES,
        "C#": TRIPLE_SLASHES,
        "Rust": TRIPLE_SLASHES,
        "Swift": TRIPLE_SLASHES,
        "Lua": DASHES,
        "SQL": DASHES,
        "Haskell": DASHES,
        "Batch": CommentStyle(line_prefix="REM "),
    }
)


SHEBANG = re.compile(r"#!(?!\[)")


@dataclass(frozen=True)
class FileLayout:
    """Where a whole-file comment goes and how it is written.

    Leading lines matching ``preamble`` stay above the comment. When ``opening``
    is set, one of those lines must match it or the file gets no comment at all.
    ``style`` replaces the language's usual comment style for the file comment.
    """

    preamble: Tuple[re.Pattern[str], ...] = (SHEBANG,)
    opening: Optional[re.Pattern[str]] = None
    style: Optional[CommentStyle] = None

    def leading_lines(self, lines: Sequence[str]) -> Optional[int]:
        """Return how many of `lines` precede the comment, or None when none fits."""
        patterns = self.preamble + ((self.opening,) if self.opening is not None else ())
        count = 0
        opened = self.opening is None
        for line in lines:
            if not any(pattern.match(line) for pattern in patterns):
                break
            if self.opening is not None and self.opening.match(line):
                opened = True
            count += 1
        return count if opened else None


DEFAULT_LAYOUT = FileLayout()

FILE_LAYOUTS: Mapping[str, FileLayout] = MappingProxyType(
    {
        "Python": FileLayout(preamble=(SHEBANG, re.compile(r"[ \t\f]*#.*?coding[:=]"))),
        # Text before the opening tag is output verbatim.
        "PHP": FileLayout(opening=re.compile(r"<\?php\b", re.IGNORECASE)),
        "Batch": FileLayout(preamble=(re.compile(r"@?echo\s+off\b", re.IGNORECASE),)),
        # Inner docs, so existing `//!` lines and `#![...]` attributes stay valid.
        "Rust": FileLayout(style=CommentStyle(line_prefix="//! ")),
    }
)


def layout_for(language: Optional[str]) -> FileLayout:
    return FILE_LAYOUTS.get(language or "", DEFAULT_LAYOUT)


def merge_styles(overrides: Mapping[str, Mapping[str, Any]] | None) -> Mapping[str, CommentStyle]:
    """Return the built-in table with configured overrides applied."""
    merged: Dict[str, CommentStyle] = dict(COMMENT_STYLES)
    for language, values in (overrides or {}).items():
        merged[language] = CommentStyle(
            line_prefix=_optional_str(values.get("line_prefix")),
            block_start=_optional_str(values.get("block_start")),
            block_line=str(values.get("block_line") or ""),
            block_end=_optional_str(values.get("block_end")),
        )
    return MappingProxyType(merged)


def style_for(language: Optional[str], styles: Mapping[str, CommentStyle] = COMMENT_STYLES) -> CommentStyle:
    if language and language in styles:
        return styles[language]
    return styles.get("default", DEFAULT_STYLE)


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


__all__ = [
    "COMMENT_STYLES",
    "DEFAULT_LAYOUT",
    "DEFAULT_STYLE",
    "FILE_LAYOUTS",
    "CommentStyle",
    "FileLayout",
    "layout_for",
    "merge_styles",
    "style_for",
]
