"""Token estimation for memories and wake prompts.

Usage:
    estimator = TokenEstimator()
    estimator.estimate("Some text")  # ceil(len / 4)

    exact = TokenEstimator(mode=TokenEstimatorMode.TIKTOKEN)
    exact.estimate("Some text")
"""

import logging
import math
from functools import lru_cache

from ember.config import Settings, TokenEstimatorMode

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4


class TokenEstimator:
    """Maps text to an integer token cost without any external call."""

    def __init__(
        self,
        mode: TokenEstimatorMode = TokenEstimatorMode.HEURISTIC,
        encoding_name: str = "cl100k_base",
    ):
        """Initialize the estimator.

        Args:
            mode: 'heuristic' (ceil(chars / 4)) or 'tiktoken' (exact BPE count)
            encoding_name: tiktoken encoding used in 'tiktoken' mode
        """
        self.mode = TokenEstimatorMode(mode)
        self.encoder = None

        if self.mode == TokenEstimatorMode.TIKTOKEN:
            import tiktoken

            self.encoder = tiktoken.get_encoding(encoding_name)

        logger.debug(f"TokenEstimator initialized: mode={self.mode.value}")

    @classmethod
    def from_settings(cls, config: Settings) -> "TokenEstimator":
        return cls(mode=config.token_estimator, encoding_name=config.tiktoken_encoding)

    @lru_cache(maxsize=4096)
    def estimate(self, text: str) -> int:
        """Estimated token cost of text (0 for empty text)."""
        if not text:
            return 0
        if self.encoder is not None:
            return len(self.encoder.encode(text))
        return math.ceil(len(text) / CHARS_PER_TOKEN)
