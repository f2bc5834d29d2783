"""Token-budgeted grouping of source units into inference chunks."""

from __future__ import annotations

from typing import List, Sequence

from .errors import InvalidBudget
from .logging import get_logger
from .models import Chunk, SourceUnit
from .tokens import ModelProfile

logger = get_logger("chunker")


def validate_budget(budget: object) -> int:
    """Return the budget when it is a positive integer, else raise InvalidBudget."""
    if isinstance(budget, bool) or not isinstance(budget, int) or budget <= 0:
        raise InvalidBudget(budget)
    return budget


def chunk_units(
    units: Sequence[SourceUnit],
    budget: int,
    profile: ModelProfile,
) -> List[Chunk]:
    """Pack units greedily, in source order, into chunks of at most `budget` tokens.

    A unit is never split. A unit that alone exceeds the budget is emitted as a
    singleton chunk flagged ``oversized``.
    """
    budget = validate_budget(budget)

    chunks: List[Chunk] = []
    current: List[SourceUnit] = []
    running = 0

    def close() -> None:
        nonlocal current, running
        if current:
            chunks.append(
                Chunk(
                    index=len(chunks),
                    units=tuple(current),
                    token_count=running,
                    model=profile.name,
                )
            )
        current = []
        running = 0

    for unit in units:
        tokens = profile.count(unit.text)
        if tokens > budget:
            close()
            logger.warning(
                "Unit %s needs %d tokens, over the %d token budget; sending it alone",
                unit.unit_id,
                tokens,
                budget,
            )
            chunks.append(
                Chunk(
                    index=len(chunks),
                    units=(unit,),
                    token_count=tokens,
                    model=profile.name,
                    oversized=True,
                )
            )
            continue
        if current and running + tokens > budget:
            close()
        current.append(unit)
        running += tokens
    close()

    logger.debug("Packed %d units into %d chunks (budget %d)", len(units), len(chunks), budget)
    return chunks


__all__ = ["chunk_units", "validate_budget"]
