"""Tests for token-budgeted chunking."""

from __future__ import annotations

import pytest

from dredger.chunker import chunk_units, validate_budget
from dredger.errors import InvalidBudget
from dredger.tokens import ModelProfile
from tests._fixtures.tokenizer import TEST_MODEL, make_unit


def test_units_are_packed_greedily_in_order(profile: ModelProfile) -> None:
    units = [
        make_unit("a.py", "first", 100),
        make_unit("a.py", "second", 50, start_line=10),
        make_unit("b.py", "third", 30),
    ]

    chunks = chunk_units(units, 120, profile)

    assert [chunk.unit_ids for chunk in chunks] == [
        ("a.py:1:first",),
        ("a.py:10:second", "b.py:1:third"),
    ]
    assert [chunk.token_count for chunk in chunks] == [100, 80]
    assert [chunk.index for chunk in chunks] == [0, 1]
    assert all(chunk.model == TEST_MODEL for chunk in chunks)
    assert not any(chunk.oversized for chunk in chunks)


def test_oversized_unit_gets_its_own_flagged_chunk(profile: ModelProfile) -> None:
    units = [
        make_unit("a.py", "small", 10),
        make_unit("a.py", "huge", 500, start_line=5),
        make_unit("a.py", "tail", 10, start_line=90),
    ]

    chunks = chunk_units(units, 100, profile)

    assert [chunk.unit_ids for chunk in chunks] == [
        ("a.py:1:small",),
        ("a.py:5:huge",),
        ("a.py:90:tail",),
    ]
    assert [chunk.oversized for chunk in chunks] == [False, True, False]
    assert chunks[1].token_count == 500


def test_unit_exactly_at_budget_fits(profile: ModelProfile) -> None:
    chunks = chunk_units([make_unit("a.py", "exact", 64)], 64, profile)

    assert len(chunks) == 1
    assert chunks[0].oversized is False


def test_every_unit_appears_exactly_once(profile: ModelProfile) -> None:
    units = [make_unit(f"m{i}.py", f"f{i}", (i * 7) % 40 + 1) for i in range(25)]

    chunks = chunk_units(units, 50, profile)

    flattened = [unit_id for chunk in chunks for unit_id in chunk.unit_ids]
    assert flattened == [unit.unit_id for unit in units]
    for chunk in chunks:
        assert chunk.oversized or chunk.token_count <= 50


def test_empty_input_yields_no_chunks(profile: ModelProfile) -> None:
    assert chunk_units([], 100, profile) == []


@pytest.mark.parametrize("budget", [0, -5, 2.5, True, "100", None])
def test_invalid_budgets_are_rejected(profile: ModelProfile, budget: object) -> None:
    with pytest.raises(InvalidBudget):
        chunk_units([make_unit("a.py", "f", 3)], budget, profile)  # type: ignore[arg-type]


def test_validate_budget_returns_value() -> None:
    assert validate_budget(2048) == 2048
