"""Builds additive per-file patches from generation results."""

from __future__ import annotations

from typing import Dict, List, Mapping, Sequence

from ..logging import get_logger
from ..models import GenerationResult, Insertion, PatchEntry, SourceFile, SourceUnit, unit_index
from .styles import COMMENT_STYLES, CommentStyle, layout_for, style_for

logger = get_logger("patching")


class PatchAssembler:
    """Inserts generated documentation immediately before each unit."""

    def __init__(self, comment_styles: Mapping[str, CommentStyle] | None = None) -> None:
        self.comment_styles = comment_styles if comment_styles is not None else COMMENT_STYLES

    def assemble(
        self,
        results: Sequence[GenerationResult],
        units: Sequence[SourceUnit],
        files: Sequence[SourceFile],
    ) -> List[PatchEntry]:
        """Return one PatchEntry per file that gained at least one comment."""
        docs = self._collect_docs(results)
        texts = {source.path: source for source in files}

        by_path: Dict[str, List[SourceUnit]] = {}
        for unit in unit_index(list(units)).values():
            if unit.unit_id in docs:
                by_path.setdefault(unit.path, []).append(unit)

        entries: List[PatchEntry] = []
        for path, path_units in by_path.items():
            source = texts.get(path)
            if source is None:
                logger.warning("No source text for %s; skipping %d unit(s)", path, len(path_units))
                continue
            entry = self._patch_file(source, path_units, docs)
            if entry.insertions:
                entries.append(entry)
        return entries

    @staticmethod
    def _collect_docs(results: Sequence[GenerationResult]) -> Dict[str, str]:
        docs: Dict[str, str] = {}
        for result in results:
            if not result.succeeded:
                continue
            for unit_id, text in result.segments.items():
                if text and text.strip():
                    docs[unit_id] = text
        return docs

    def _style_for(self, unit: SourceUnit, source: SourceFile) -> CommentStyle:
        language = unit.language or source.language
        if unit.kind == "file":
            file_style = layout_for(language).style
            if file_style is not None:
                return file_style
        return style_for(language, self.comment_styles)

    def _patch_file(
        self,
        source: SourceFile,
        units: List[SourceUnit],
        docs: Mapping[str, str],
    ) -> PatchEntry:
        original = source.text
        newline = "\r\n" if "\r\n" in original else "\n"
        pieces: List[str] = []
        insertions: List[Insertion] = []
        cursor = 0
        written = 0

        for unit in sorted(units, key=lambda item: item.start_offset):
            if original[unit.start_offset : unit.end_offset] != unit.text:
                logger.warning("Unit %s no longer matches %s; leaving it untouched", unit.unit_id, source.path)
                continue
            offset = unit.start_offset
            style = self._style_for(unit, source)
            comment = style.render(docs[unit.unit_id], _indent_at(original, offset), newline)

            head = original[cursor:offset]
            pieces.append(head)
            written += len(head)
            insertions.append(Insertion(offset=written, text=comment, unit_id=unit.unit_id))
            pieces.append(comment)
            written += len(comment)
            cursor = offset
        pieces.append(original[cursor:])

        entry = PatchEntry(
            path=source.path,
            original_text=original,
            modified_text="".join(pieces),
            insertions=insertions,
        )
        if entry.strip() != original:
            raise RuntimeError(f"Patch for {source.path} is not purely additive")
        return entry


def _indent_at(text: str, offset: int) -> str:
    end = offset
    while end < len(text) and text[end] in " \t":
        end += 1
    return text[offset:end]


__all__ = ["PatchAssembler"]
