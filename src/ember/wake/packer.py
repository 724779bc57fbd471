"""Budget packing: choose which memories fit in a wake prompt.

A greedy pass over memories in priority order (importance descending, then
most recent first, then id). The first memory that does not fit closes the
selection: it and everything after it go to the remainder, so every
selected memory ranks above every skipped one. The result is a pure function of its
inputs.
"""

import logging
from collections.abc import Iterable

from pydantic import BaseModel, Field

from ember.db.models import MemoryRecord
from ember.enums import MemoryCategory

logger = logging.getLogger(__name__)


class PackResult(BaseModel):
    """Outcome of one packing pass.

    Attributes:
        selected: Memories that fit, in priority order
        total_tokens: Sum of the selected memories' costs
        remainder: Memories of the selected categories that did not fit,
            in priority order
    """

    selected: list[MemoryRecord] = Field(default_factory=list)
    total_tokens: int = Field(0, ge=0)
    remainder: list[MemoryRecord] = Field(default_factory=list)


def priority_key(memory: MemoryRecord) -> tuple[int, float, str]:
    """Sort key: importance desc, created_at desc, id asc."""
    return (-memory.importance, -memory.created_at.timestamp(), memory.id)


def pack(
    memories: Iterable[MemoryRecord],
    categories: Iterable[MemoryCategory | str],
    budget: int,
) -> PackResult:
    """Select the memories that fit within budget.

    Args:
        memories: Candidate memories (any order)
        categories: Categories to include
        budget: Maximum total token cost (negative values behave like 0)

    Returns:
        PackResult with selected memories, their total cost and the remainder
    """
    wanted = {MemoryCategory(c) for c in categories}
    ordered = sorted((m for m in memories if m.category in wanted), key=priority_key)

    remaining = max(budget, 0)
    selected: list[MemoryRecord] = []
    remainder: list[MemoryRecord] = []

    for memory in ordered:
        if remainder or memory.token_cost > remaining:
            remainder.append(memory)
            continue
        selected.append(memory)
        remaining -= memory.token_cost

    total = sum(m.token_cost for m in selected)
    logger.debug(
        f"Packed {len(selected)}/{len(ordered)} memories: {total}/{budget} tokens, "
        f"{len(remainder)} over budget"
    )
    return PackResult(selected=selected, total_tokens=total, remainder=remainder)
