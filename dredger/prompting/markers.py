"""Unit boundary markers used in prompts and model answers."""

from __future__ import annotations

import re
from typing import Dict, Sequence

from ..errors import MalformedResponse
from ..models import SourceUnit


class UnitMarkers:
    """Wraps units for the prompt and splits the answer back into per-unit text."""

    UNIT_BEGIN_FMT = '<<<unit id="{key}">>>'
    UNIT_END = "<<<end unit>>>"
    DOC_BEGIN_FMT = '<<<doc id="{key}">>>'
    DOC_END = "<<<end doc>>>"

    _DOC_BEGIN_RE = re.compile(r'<<<doc id="([^"\n]+)">>>')
    _FENCE_RE = re.compile(r"^```[\w+-]*\n(.*?)\n?```$", re.DOTALL)

    def wrap(self, unit: SourceUnit) -> str:
        """Wrap a unit's source with its boundary markers."""
        begin = self.UNIT_BEGIN_FMT.format(key=unit.unit_id)
        return f"{begin}\n{unit.text.rstrip()}\n{self.UNIT_END}"

    def extract(self, answer: str, expected_ids: Sequence[str]) -> Dict[str, str]:
        """Return ``unit_id -> documentation`` for every expected unit.

        Raises MalformedResponse when a block is unterminated, repeated, names an
        unknown unit, or when an expected unit has no block at all.
        """
        expected = list(expected_ids)
        known = set(expected)
        segments: Dict[str, str] = {}

        matches = list(self._DOC_BEGIN_RE.finditer(answer))
        for position, match in enumerate(matches):
            key = match.group(1).strip()
            body_start = match.end()
            end_index = answer.find(self.DOC_END, body_start)
            if end_index == -1:
                raise MalformedResponse(f"Unterminated documentation block for {key}")
            if position + 1 < len(matches) and matches[position + 1].start() < end_index:
                raise MalformedResponse(f"Documentation block for {key} is not closed before the next block")
            if key not in known:
                raise MalformedResponse(f"Answer documents unknown unit {key}")
            if key in segments:
                raise MalformedResponse(f"Answer documents unit {key} more than once")
            segments[key] = self._clean(answer[body_start:end_index])

        missing = [key for key in expected if key not in segments]
        if missing:
            raise MalformedResponse(f"Answer is missing documentation for {', '.join(missing)}")
        return {key: segments[key] for key in expected}

    @classmethod
    def _clean(cls, body: str) -> str:
        text = body.strip()
        fenced = cls._FENCE_RE.match(text)
        if fenced:
            text = fenced.group(1).strip()
        return text


__all__ = ["UnitMarkers"]
