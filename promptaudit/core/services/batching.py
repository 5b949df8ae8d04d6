"""Groups prompts into batches that respect a provider's input limits.

A single greedy pass packs prompts under the effective token limit (the
provider limit minus a fixed reserve for instructions and the response)
and an optional per-batch prompt count.
"""

import logging
from typing import List, Optional, Sequence, Union

from promptaudit.domain.models.analysis import Batch, Prioritization
from promptaudit.domain.models.common import PromptText, TokenCount
from promptaudit.infrastructure.optimization.token_estimator import TokenEstimator

logger = logging.getLogger(__name__)

# Reserved for the system prompt and the model's response.
SYSTEM_OVERHEAD_TOKENS = 2000


def batch_prompts(
    prompts: Sequence[PromptText],
    max_tokens_per_batch: int,
    prioritization: Union[Prioritization, str],
    max_prompts_per_batch: Optional[int] = None,
    token_estimator: Optional[TokenEstimator] = None,
) -> List[Batch]:
    """Batches prompts based on token limits and prioritization strategy.

    Prompts whose own cost exceeds the effective limit get a dedicated
    batch; this is best effort, the provider may still reject them.

    Args:
        prompts: Prompts to batch, in chronological order.
        max_tokens_per_batch: Provider's stated token limit per call.
        prioritization: ``longest-first`` sorts by token cost (stable,
            descending); ``chronological`` keeps the input order.
        max_prompts_per_batch: Optional hard cap on prompts per batch.
        token_estimator: Estimator to use (defaults to the 4-chars heuristic).

    Returns:
        The batches, in processing order. Empty input gives an empty list.
    """
    if not prompts:
        return []

    estimator = token_estimator or TokenEstimator()
    effective_limit = max_tokens_per_batch - SYSTEM_OVERHEAD_TOKENS

    costed = [(prompt, estimator.estimate_tokens(prompt)) for prompt in prompts]
    if Prioritization(prioritization) is Prioritization.LONGEST_FIRST:
        # sorted() is stable, so equal-cost prompts keep their input order
        costed = sorted(costed, key=lambda item: item[1], reverse=True)

    batches: List[Batch] = []
    current: List[PromptText] = []
    current_tokens = 0

    def flush() -> None:
        nonlocal current, current_tokens
        batches.append(Batch(prompts=tuple(current), tokens=TokenCount(current_tokens)))
        current = []
        current_tokens = 0

    for prompt, tokens in costed:
        if tokens > effective_limit:
            if current:
                flush()
            logger.debug(f"Prompt of {tokens} tokens exceeds limit {effective_limit}, using a dedicated batch")
            batches.append(Batch(prompts=(prompt,), tokens=tokens))
            continue

        would_exceed_tokens = bool(current) and current_tokens + tokens > effective_limit
        would_exceed_prompts = max_prompts_per_batch is not None and len(current) >= max_prompts_per_batch

        if would_exceed_tokens or would_exceed_prompts:
            flush()
        current.append(prompt)
        current_tokens += tokens

    if current:
        flush()

    return batches
