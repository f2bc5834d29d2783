"""Tests for the prompt builder."""

from __future__ import annotations

import pytest

from dredger.errors import ConfigError
from dredger.models import Chunk
from dredger.prompting.builder import PromptBuilder
from dredger.prompting.constants import SYSTEM_PROMPT
from tests._fixtures.tokenizer import TEST_MODEL, make_unit


def _chunk() -> Chunk:
    units = (make_unit("pkg/a.py", "first", 2), make_unit("pkg/b.py", "second", 3))
    return Chunk(index=0, units=units, token_count=5, model=TEST_MODEL)


def test_default_template_contains_every_marked_unit() -> None:
    prompt = PromptBuilder().render(_chunk())

    assert prompt.startswith(SYSTEM_PROMPT)
    assert "Document each of the 2 unit(s)" in prompt
    assert "`pkg/a.py`, `pkg/b.py`" in prompt
    assert '<<<unit id="pkg/a.py:1:first">>>\nw0 w1\n<<<end unit>>>' in prompt
    assert '<<<unit id="pkg/b.py:1:second">>>' in prompt
    assert '<<<doc id="example.py:1:area">>>' in prompt


def test_custom_template_receives_unit_fields() -> None:
    template = "{% for unit in units %}{{ unit.kind }} {{ unit.name }} in {{ unit.path }};{% endfor %}"

    prompt = PromptBuilder(template).render(_chunk())

    assert prompt == "function first in pkg/a.py;function second in pkg/b.py;"


def test_syntax_error_in_template_is_config_error() -> None:
    with pytest.raises(ConfigError):
        PromptBuilder("{% for unit in units %}")


def test_undefined_placeholder_fails_the_check() -> None:
    builder = PromptBuilder("{{ nonexistent }}")

    with pytest.raises(ConfigError):
        builder.check()


def test_valid_template_passes_the_check() -> None:
    PromptBuilder().check()
