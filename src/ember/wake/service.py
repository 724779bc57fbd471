"""Wake prompt generation.

Reads a profile's memories, packs them into the token budget, optionally
condenses what did not fit, and assembles the artifact. Nothing is written
to the Memory Store.
"""

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ember.config import CompressionBackend, Settings
from ember.db.models import MemoryRecord
from ember.db.repository import AccountRepository, MemoryRepository, ProfileRepository
from ember.enums import COMPRESSION_TIERS, AccountTier, MemoryCategory
from ember.wake.assembler import (
    WakePrompt,
    assemble,
    condensed_overhead,
    ordered_categories,
    template_overhead,
)
from ember.wake.compression import (
    CompressionCapability,
    CompressionError,
    ExtractiveCompressor,
    LLMCompressor,
)
from ember.wake.estimator import TokenEstimator
from ember.wake.packer import pack

logger = logging.getLogger(__name__)


def build_compressor(config: Settings, estimator: TokenEstimator) -> CompressionCapability | None:
    """Compression capability for the configured backend (None when disabled)."""
    if not config.compression_enabled:
        return None
    if config.compression_backend == CompressionBackend.EXTRACTIVE:
        return ExtractiveCompressor(estimator)
    return LLMCompressor(estimator, model=config.compression_model)


class WakePromptService:
    """Builds wake prompts on demand."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        estimator: TokenEstimator,
        compressor: CompressionCapability | None = None,
    ):
        self.session_factory = session_factory
        self.estimator = estimator
        self.compressor = compressor

    async def _load(
        self, account_id: str, profile_id: str, categories: list[MemoryCategory]
    ) -> tuple[str, AccountTier, int, list[MemoryRecord]]:
        async with self.session_factory() as session:
            profile = await ProfileRepository(session).get(account_id, profile_id)
            account = await AccountRepository(session).get(account_id)
            rows = await MemoryRepository(session).list_for_profile(
                account_id, profile_id, [c.value for c in categories]
            )
            records = [MemoryRecord.model_validate(row) for row in rows]
            return profile.name, AccountTier(account.tier), account.token_budget, records

    async def generate(
        self,
        account_id: str,
        profile_id: str,
        categories: Iterable[MemoryCategory | str],
        token_budget: int | None = None,
    ) -> WakePrompt:
        """Generate a wake prompt for a profile.

        Args:
            account_id: Caller's account (ownership scope)
            profile_id: Profile whose memories are used
            categories: Categories to include
            token_budget: Maximum estimated size; defaults to the account budget

        Returns:
            WakePrompt. A budget too small for any memory yields a prompt
            with zero memories rather than an error.

        Raises:
            ProfileNotFoundError: Profile missing or owned by another account
        """
        selected = ordered_categories(categories)
        profile_name, tier, account_budget, records = await self._load(
            account_id, profile_id, selected
        )
        budget = account_budget if token_budget is None else max(token_budget, 0)

        overhead = template_overhead(profile_name, selected, self.estimator)
        result = pack(records, selected, budget - overhead)
        chosen = list(result.selected)
        remainder = list(result.remainder)

        prompt = assemble(chosen, profile_name, selected, self.estimator)
        # Bullet markup can push the rendered text past the packed total
        while prompt.token_count > budget and chosen:
            remainder.insert(0, chosen.pop())
            prompt = assemble(chosen, profile_name, selected, self.estimator)

        if remainder and self._compression_allowed(tier):
            prompt = await self._with_compression(
                prompt, chosen, remainder, profile_name, selected, budget
            )

        logger.info(
            f"Generated wake prompt: {prompt.memory_count} memories, "
            f"{prompt.token_count}/{budget} tokens, compressed={prompt.compressed}",
            extra={"profile_id": profile_id, "remainder": len(remainder)},
        )
        return prompt

    def _compression_allowed(self, tier: AccountTier) -> bool:
        return self.compressor is not None and tier in COMPRESSION_TIERS

    async def _with_compression(
        self,
        prompt: WakePrompt,
        chosen: list[MemoryRecord],
        remainder: list[MemoryRecord],
        profile_name: str,
        categories: list[MemoryCategory],
        budget: int,
    ) -> WakePrompt:
        target = budget - prompt.token_count - condensed_overhead(self.estimator)
        if target <= 0:
            return prompt

        try:
            compressed = await self.compressor.compress(remainder, target)
        except CompressionError as e:
            logger.warning(f"Compression skipped, using truncated prompt: {e}")
            return prompt

        combined = assemble(chosen, profile_name, categories, self.estimator, compressed)
        if combined.token_count > budget:
            logger.warning(
                f"Compressed prompt is {combined.token_count} tokens (budget {budget}), dropping it"
            )
            return prompt
        return combined
