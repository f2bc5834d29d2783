"""Renders inference prompts for chunks from a Jinja template."""

from __future__ import annotations

from typing import Dict, List, Optional

from jinja2 import Environment, StrictUndefined, Template, TemplateError

from ..errors import ConfigError
from ..models import Chunk, SourceUnit
from .constants import DEFAULT_PROMPT_TEMPLATE, EXAMPLE_DOC, EXAMPLE_SOURCE, SYSTEM_PROMPT
from .markers import UnitMarkers

_SAMPLE_UNIT = SourceUnit(
    unit_id="example.py:1:area",
    path="example.py",
    name="area",
    kind="function",
    start_line=1,
    end_line=2,
    start_offset=0,
    end_offset=len(EXAMPLE_SOURCE),
    text=EXAMPLE_SOURCE,
    language="Python",
)


class PromptBuilder:
    """Interpolates a chunk's marked units into the prompt template.

    Available placeholders: ``system``, ``units`` (each with ``id``, ``name``,
    ``kind``, ``path``, ``language``, ``source`` and ``marked``), ``paths``,
    ``languages``, ``example_source`` and ``example_doc``.
    """

    def __init__(
        self,
        template: Optional[str] = None,
        *,
        system: str = SYSTEM_PROMPT,
        markers: UnitMarkers | None = None,
    ) -> None:
        self.source = template or DEFAULT_PROMPT_TEMPLATE
        self.system = system
        self.markers = markers or UnitMarkers()
        self._env = Environment(
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
        try:
            self._template: Template = self._env.from_string(self.source)
        except TemplateError as exc:
            raise ConfigError(f"Invalid prompt template: {exc}") from exc

    def render(self, chunk: Chunk) -> str:
        return self._render_units(list(chunk.units))

    def check(self) -> None:
        """Render against a sample unit so template mistakes surface before any request."""
        self._render_units([_SAMPLE_UNIT])

    def _render_units(self, units: List[SourceUnit]) -> str:
        context = {
            "system": self.system,
            "units": [self._unit_context(unit) for unit in units],
            "paths": list(dict.fromkeys(unit.path for unit in units)),
            "languages": sorted({unit.language for unit in units if unit.language}),
            "example_source": EXAMPLE_SOURCE,
            "example_doc": self._example_answer(),
        }
        try:
            return self._template.render(**context)
        except TemplateError as exc:
            raise ConfigError(f"Prompt template failed to render: {exc}") from exc

    def _unit_context(self, unit: SourceUnit) -> Dict[str, object]:
        return {
            "id": unit.unit_id,
            "name": unit.name,
            "kind": unit.kind,
            "path": unit.path,
            "language": unit.language,
            "source": unit.text,
            "marked": self.markers.wrap(unit),
        }

    def _example_answer(self) -> str:
        begin = self.markers.DOC_BEGIN_FMT.format(key=_SAMPLE_UNIT.unit_id)
        return f"{begin}\n{EXAMPLE_DOC}\n{self.markers.DOC_END}"


__all__ = ["PromptBuilder"]
