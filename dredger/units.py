"""Splits repository files into documentable source units."""

from __future__ import annotations

import ast
import re
from pathlib import PurePosixPath
from typing import Iterable, List, Sequence

from .logging import get_logger
from .models import SourceFile, SourceUnit
from .patching.styles import layout_for

logger = get_logger("units")

_NEWLINE_RE = re.compile(r"\r\n|\r|\n")
_DEFINITIONS = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)


def extract_units(files: Iterable[SourceFile]) -> List[SourceUnit]:
    """Return units in file order, then source order."""
    units: List[SourceUnit] = []
    for source in files:
        units.extend(extract_file_units(source))
    return units


def extract_file_units(source: SourceFile) -> List[SourceUnit]:
    if not source.text.strip():
        return []
    if source.language == "Python":
        units = _python_units(source)
        if units:
            return units
    unit = _whole_file_unit(source)
    return [unit] if unit is not None else []


def _line_starts(text: str) -> List[int]:
    starts = [0]
    starts.extend(match.end() for match in _NEWLINE_RE.finditer(text))
    return starts


def _python_units(source: SourceFile) -> List[SourceUnit]:
    try:
        tree = ast.parse(source.text)
    except (SyntaxError, ValueError) as exc:
        logger.debug("Treating %s as a single unit: %s", source.path, exc)
        return []

    starts = _line_starts(source.text)
    units: List[SourceUnit] = []
    for node in tree.body:
        if not isinstance(node, _DEFINITIONS):
            continue
        first = node.decorator_list[0] if node.decorator_list else node
        if first.col_offset != 0 or node.end_lineno is None:
            # Shares a line with other statements; no clean insertion point.
            continue
        kind = "class" if isinstance(node, ast.ClassDef) else "function"
        units.append(_make_unit(source, starts, node.name, kind, first.lineno, node.end_lineno))
    return units


def _whole_file_unit(source: SourceFile) -> SourceUnit | None:
    starts = _line_starts(source.text)
    kept = layout_for(source.language).leading_lines(_NEWLINE_RE.split(source.text))
    if kept is None:
        logger.debug("No place for a file comment in %s", source.path)
        return None
    if kept >= len(starts) or not source.text[starts[kept] :].strip():
        return None
    first_line = kept + 1
    last_line = len(starts) if starts[-1] < len(source.text) else len(starts) - 1
    name = PurePosixPath(source.path).name
    return _make_unit(source, starts, name, "file", first_line, max(last_line, first_line))


def _make_unit(
    source: SourceFile,
    starts: Sequence[int],
    name: str,
    kind: str,
    start_line: int,
    end_line: int,
) -> SourceUnit:
    start_offset = starts[start_line - 1]
    end_offset = starts[end_line] if end_line < len(starts) else len(source.text)
    return SourceUnit(
        unit_id=f"{source.path}:{start_line}:{name}",
        path=source.path,
        name=name,
        kind=kind,
        start_line=start_line,
        end_line=end_line,
        start_offset=start_offset,
        end_offset=end_offset,
        text=source.text[start_offset:end_offset],
        language=source.language,
    )


__all__ = ["extract_file_units", "extract_units"]
