"""Service for estimating token counts for prompt text.

Uses a character-based approximation (1 token ~ 4 characters) that is
conservative across most tokenizers. Used by the batcher to keep batches
within provider limits.
Bounded Context: Token Management
"""

import logging
import math

from promptaudit.domain.models.common import PromptText, TokenCount

logger = logging.getLogger(__name__)

APPROX_CHARS_PER_TOKEN = 4


def estimate_tokens(text: PromptText | str) -> TokenCount:
    """Estimates the token count for a single string of text.

    Args:
        text: The text to estimate tokens for.

    Returns:
        ``ceil(len(text) / 4)``, or 0 for empty text.
    """
    if not text:
        return TokenCount(0)
    return TokenCount(math.ceil(len(text) / APPROX_CHARS_PER_TOKEN))


class TokenEstimator:
    """Estimates token counts using the character approximation."""

    def __init__(self, chars_per_token: int = APPROX_CHARS_PER_TOKEN):
        """Initializes the TokenEstimator."""
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self.chars_per_token = chars_per_token

    def estimate_tokens(self, text: PromptText | str) -> TokenCount:
        """Estimates the token count for ``text``."""
        if not text:
            return TokenCount(0)
        return TokenCount(math.ceil(len(text) / self.chars_per_token))

    def estimate_tokens_for_prompts(self, prompts) -> TokenCount:
        """Sums the estimate over a sequence of prompts."""
        total = sum(self.estimate_tokens(p) for p in prompts)
        logger.debug(f"Estimated tokens for {len(prompts)} prompts: {total} (using approximation)")
        return TokenCount(total)
