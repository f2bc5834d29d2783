"""Tests for unit boundary markers."""

from __future__ import annotations

import pytest

from dredger.errors import MalformedResponse
from dredger.prompting.markers import UnitMarkers
from tests._fixtures.tokenizer import make_unit

IDS = ("a.py:1:first", "a.py:9:second")


def _block(unit_id: str, body: str) -> str:
    return f'<<<doc id="{unit_id}">>>\n{body}\n<<<end doc>>>'


def test_wrap_surrounds_unit_source() -> None:
    unit = make_unit("a.py", "first", 2)

    wrapped = UnitMarkers().wrap(unit)

    assert wrapped == '<<<unit id="a.py:1:first">>>\nw0 w1\n<<<end unit>>>'


def test_extract_returns_segments_in_expected_order() -> None:
    answer = "Here you go:\n" + _block(IDS[1], "Second.") + "\n" + _block(IDS[0], "First.\nMore.")

    segments = UnitMarkers().extract(answer, IDS)

    assert list(segments) == list(IDS)
    assert segments == {IDS[0]: "First.\nMore.", IDS[1]: "Second."}


def test_extract_strips_code_fences_and_allows_blank_blocks() -> None:
    answer = _block(IDS[0], "```text\nFenced docs.\n```") + _block(IDS[1], "")

    segments = UnitMarkers().extract(answer, IDS)

    assert segments == {IDS[0]: "Fenced docs.", IDS[1]: ""}


@pytest.mark.parametrize(
    "answer",
    [
        _block(IDS[0], "Only one."),
        _block(IDS[0], "x") + _block(IDS[0], "y") + _block(IDS[1], "z"),
        _block(IDS[0], "x") + _block(IDS[1], "y") + _block("other.py:1:ghost", "z"),
        f'<<<doc id="{IDS[0]}">>>\nno terminator' + _block(IDS[1], "y"),
        f'<<<doc id="{IDS[0]}">>>\nnever closed',
        "no markers at all",
    ],
    ids=["missing", "duplicate", "unknown", "unclosed-before-next", "unterminated", "prose"],
)
def test_extract_rejects_unparseable_answers(answer: str) -> None:
    with pytest.raises(MalformedResponse):
        UnitMarkers().extract(answer, IDS)
