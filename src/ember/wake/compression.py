"""Compression capability for memories that did not fit a wake prompt.

Compression is a quality enhancement: every failure raises CompressionError,
which the wake prompt service recovers from by leaving the condensed section
out. A compressed result must keep at least one fact for every category in
its input and must fit the target it was given.
"""

import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field
from pydantic_ai import Agent

from ember.db.models import MemoryRecord
from ember.enums import CATEGORY_ORDER, MemoryCategory
from ember.wake.estimator import TokenEstimator

logger = logging.getLogger(__name__)


class CompressionError(Exception):
    """Compression could not produce an acceptable result."""

    pass


class CompressedFact(BaseModel):
    """One distilled fact."""

    category: MemoryCategory
    text: str = Field(..., min_length=1)


class CompressionOutput(BaseModel):
    """Structured output requested from the compression model."""

    facts: list[CompressedFact] = Field(..., min_length=1)


class CompressedResult(BaseModel):
    """Condensed rendering of a set of memories.

    Attributes:
        text: Bullet list, one line per fact, grouped in section order
        token_count: Estimated cost of text
        categories: Categories represented in text
        source_count: Number of memories that were condensed
    """

    text: str
    token_count: int = Field(..., ge=0)
    categories: list[MemoryCategory]
    source_count: int = Field(..., ge=0)


def render_facts(facts: list[CompressedFact]) -> str:
    """One bullet per fact, categories in section order, input order within."""
    lines = []
    for category in CATEGORY_ORDER:
        lines.extend(
            f"- {category.value.capitalize()}: {fact.text.strip()}"
            for fact in facts
            if fact.category == category
        )
    return "\n".join(lines)


class CompressionCapability(ABC):
    """Turns over-budget memories into a condensed section."""

    def __init__(self, estimator: TokenEstimator):
        self.estimator = estimator

    @abstractmethod
    async def _condense(
        self, memories: list[MemoryRecord], target_tokens: int
    ) -> list[CompressedFact]:
        pass

    async def compress(
        self, memories: list[MemoryRecord], target_tokens: int
    ) -> CompressedResult:
        """Condense memories into at most target_tokens.

        Raises:
            CompressionError: Nothing to compress, or the result missed a
                category, was empty or exceeded the target
        """
        if not memories:
            raise CompressionError("No memories to compress")
        if target_tokens <= 0:
            raise CompressionError("No budget left for compression")

        facts = await self._condense(memories, target_tokens)
        text = render_facts(facts)
        token_count = self.estimator.estimate(text)

        required = {m.category for m in memories}
        covered = {fact.category for fact in facts}
        missing = required - covered
        if missing:
            raise CompressionError(
                f"Compressed result lost categories: {sorted(c.value for c in missing)}"
            )
        extra = covered - required
        if extra:
            raise CompressionError(
                f"Compressed result introduced categories: {sorted(c.value for c in extra)}"
            )
        if token_count > target_tokens:
            raise CompressionError(
                f"Compressed result is {token_count} tokens (target {target_tokens})"
            )

        return CompressedResult(
            text=text,
            token_count=token_count,
            categories=[c for c in CATEGORY_ORDER if c in covered],
            source_count=len(memories),
        )


class ExtractiveCompressor(CompressionCapability):
    """Deterministic compression by selecting factual content.

    Takes the top fact of every category first, then adds further facts
    round-robin across categories while the target allows. Only factual
    content from the input is used, so nothing can be fabricated.
    """

    async def _condense(
        self, memories: list[MemoryRecord], target_tokens: int
    ) -> list[CompressedFact]:
        queues: dict[MemoryCategory, list[MemoryRecord]] = {}
        for memory in memories:
            queues.setdefault(memory.category, []).append(memory)

        facts: list[CompressedFact] = []
        for category in CATEGORY_ORDER:
            if category in queues:
                facts.append(
                    CompressedFact(category=category, text=queues[category].pop(0).factual_content)
                )
        if self.estimator.estimate(render_facts(facts)) > target_tokens:
            raise CompressionError("Target too small for one fact per category")

        progress = True
        while progress:
            progress = False
            for category in CATEGORY_ORDER:
                if not queues.get(category):
                    continue
                candidate = CompressedFact(category=category, text=queues[category][0].factual_content)
                if self.estimator.estimate(render_facts(facts + [candidate])) <= target_tokens:
                    facts.append(candidate)
                    queues[category].pop(0)
                    progress = True
                else:
                    queues[category] = []
        return facts


def compression_prompt() -> str:
    return """You condense personal memories so an AI assistant can recall them in few words.

Rules:
- Keep at least one fact for every category present in the input.
- Use only information stated in the input. Never invent names, dates or events.
- Prefer the most important memories; merge related facts into one line.
- Keep each fact short: a clause, not a paragraph.
- Use the category of the memories a fact comes from."""


def format_memories(memories: list[MemoryRecord], target_tokens: int) -> str:
    lines = [
        f"Condense these memories into at most {target_tokens * 4} characters in total.",
        "",
    ]
    for memory in memories:
        line = f"[{memory.category.value}] (importance {memory.importance}) {memory.factual_content}"
        if memory.emotional_significance:
            line += f" | {memory.emotional_significance}"
        lines.append(line)
    return "\n".join(lines)


class LLMCompressor(CompressionCapability):
    """Compression through a pydantic-ai agent with structured output."""

    def __init__(
        self,
        estimator: TokenEstimator,
        model: str = "anthropic:claude-haiku-4-5-20251001",
        agent: Agent | None = None,
    ):
        """Initialize the compressor.

        Args:
            estimator: Token estimator used to check the target
            model: pydantic-ai model id ('provider:model')
            agent: Pre-built agent; created on first use when omitted
        """
        super().__init__(estimator)
        self.model = model
        self._agent = agent

    def _get_agent(self) -> Agent:
        if self._agent is None:
            self._agent = Agent(
                model=self.model,
                output_type=CompressionOutput,
                system_prompt=compression_prompt(),
            )
        return self._agent

    async def _condense(
        self, memories: list[MemoryRecord], target_tokens: int
    ) -> list[CompressedFact]:
        try:
            result = await self._get_agent().run(format_memories(memories, target_tokens))
        except Exception as e:
            logger.warning(f"Compression model call failed: {type(e).__name__}")
            raise CompressionError(f"Compression model call failed: {type(e).__name__}") from e

        output = result.output
        if not isinstance(output, CompressionOutput):
            raise CompressionError("Compression model returned an unexpected shape")

        logger.debug(f"Compression model returned {len(output.facts)} facts")
        return output.facts
