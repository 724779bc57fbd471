"""Deterministic wake prompt template.

Layout:
    header naming the profile
    one section per selected category, in fixed order, bullets in packer order
    optional "Condensed background" section holding compressed content

assemble() is a pure function: identical inputs give byte-identical text.
"""

from collections.abc import Iterable

from pydantic import BaseModel, Field

from ember.db.models import MemoryRecord
from ember.enums import CATEGORY_ORDER, MemoryCategory
from ember.wake.compression import CompressedResult
from ember.wake.estimator import TokenEstimator

SECTION_TITLES: dict[MemoryCategory, str] = {
    MemoryCategory.EMOTIONAL: "Emotional context",
    MemoryCategory.WORK: "Work",
    MemoryCategory.HOBBIES: "Hobbies and interests",
    MemoryCategory.RELATIONSHIPS: "Relationships",
    MemoryCategory.PREFERENCES: "Preferences",
}

CONDENSED_TITLE = "## Condensed background"
CONDENSED_NOTE = "(Summarized from older or lower-priority memories.)"


class WakePrompt(BaseModel):
    """Assembled artifact and its token accounting."""

    text: str
    token_count: int = Field(..., ge=0)
    memory_count: int = Field(..., ge=0)
    per_category_tokens: dict[str, int] = Field(default_factory=dict)
    compressed: bool = False


def header(profile_name: str) -> str:
    return (
        f"# What I remember about {profile_name}\n\n"
        "Use these memories from past conversations to continue where we left off."
    )


def section_heading(category: MemoryCategory) -> str:
    return f"## {SECTION_TITLES[category]}"


def render_memory(memory: MemoryRecord) -> str:
    if memory.uses_verbatim:
        return f'- "{memory.verbatim_text}"'
    return f"- {memory.rendered_text}"


def ordered_categories(categories: Iterable[MemoryCategory | str]) -> list[MemoryCategory]:
    """Deduplicate and put categories in section order."""
    wanted = {MemoryCategory(c) for c in categories}
    return [c for c in CATEGORY_ORDER if c in wanted]


def template_overhead(
    profile_name: str, categories: Iterable[MemoryCategory | str], estimator: TokenEstimator
) -> int:
    """Tokens taken by the header and section headings of a prompt."""
    parts = [header(profile_name)] + [section_heading(c) for c in ordered_categories(categories)]
    return estimator.estimate("\n\n".join(parts))


def condensed_overhead(estimator: TokenEstimator) -> int:
    return estimator.estimate(f"\n\n{CONDENSED_TITLE}\n{CONDENSED_NOTE}\n")


def assemble(
    packed: list[MemoryRecord],
    profile_name: str,
    categories: Iterable[MemoryCategory | str],
    estimator: TokenEstimator,
    compressed: CompressedResult | None = None,
) -> WakePrompt:
    """Render packed memories (and compressed content) into a wake prompt.

    Sections for selected categories without memories are left out of the
    text but still reported with 0 tokens.

    Args:
        packed: Selected memories in packer order
        profile_name: Name shown in the header
        categories: Categories the caller selected
        estimator: Token estimator for the accounting
        compressed: Condensed remainder, if any

    Returns:
        WakePrompt with text and token accounting
    """
    selected = ordered_categories(categories)
    blocks = [header(profile_name)]
    per_category: dict[str, int] = {}

    for category in selected:
        lines = [render_memory(m) for m in packed if m.category == category]
        per_category[category.value] = sum(estimator.estimate(line) for line in lines)
        if lines:
            blocks.append(section_heading(category) + "\n" + "\n".join(lines))

    if compressed is not None and compressed.text:
        blocks.append(f"{CONDENSED_TITLE}\n{CONDENSED_NOTE}\n{compressed.text}")

    text = "\n\n".join(blocks) + "\n"
    return WakePrompt(
        text=text,
        token_count=estimator.estimate(text),
        memory_count=len(packed),
        per_category_tokens=per_category,
        compressed=compressed is not None,
    )
