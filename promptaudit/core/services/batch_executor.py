"""
Core service that runs one batch of prompts through a provider.

Consults the batch cache first. When the provider fails with a retryable
error the batch is split in half and both halves are retried concurrently,
recursing down to single prompts. A single prompt that still fails is
dropped; fatal errors propagate unchanged.
"""

import asyncio
import logging
import math
from dataclasses import replace
from typing import List, Optional, Sequence

# Domain Layer Imports
from promptaudit.domain.interfaces.cache import BatchResultCache
from promptaudit.domain.interfaces.provider import AnalysisProvider
from promptaudit.domain.models.analysis import AnalysisResult, ProjectContext
from promptaudit.domain.models.common import AnalysisDate, ModelName, PromptText
from promptaudit.domain.models.errors import classify_error

PREVIEW_LENGTH = 50


class BatchExecutor:
    """Executes batches against a provider with cache lookup and split-retry."""

    def __init__(
        self,
        cache: Optional[BatchResultCache] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initializes the executor.

        Args:
            cache: Batch-level result cache. ``None`` disables caching.
            logger: Logger to report through (defaults to the module logger).
        """
        self.cache = cache
        self.logger = logger or logging.getLogger(__name__)

    async def analyze_batch(
        self,
        provider: AnalysisProvider,
        prompts: Sequence[PromptText],
        date: AnalysisDate,
        context: Optional[ProjectContext],
        model: ModelName,
        no_cache: bool = False,
    ) -> List[AnalysisResult]:
        """Analyzes a batch, returning zero or more partial results.

        Each element of the returned list covers a disjoint subset of
        ``prompts``. Prompts that failed even on their own are missing
        from every element.

        Raises:
            Exception: The provider's original exception when it is not
                retryable.
        """
        if not prompts:
            return []

        use_cache = self.cache is not None and not no_cache

        if use_cache:
            cached = await self.cache.get(prompts, model)
            if cached is not None:
                self.logger.debug(f"Using cached result for batch of {len(prompts)} prompt(s)")
                return [replace(cached, date=date)]

        try:
            result = await provider.analyze(prompts, date, context)
        except Exception as e:
            error = classify_error(e)
            if not error.retryable:
                raise

            if len(prompts) > 1:
                mid = math.ceil(len(prompts) / 2)
                self.logger.warning(
                    f"Batch of {len(prompts)} prompts failed ({error.kind.value}: {error}). "
                    f"Retrying as {mid} + {len(prompts) - mid}"
                )
                left, right = await asyncio.gather(
                    self.analyze_batch(provider, prompts[:mid], date, context, model, no_cache),
                    self.analyze_batch(provider, prompts[mid:], date, context, model, no_cache),
                )
                return [*left, *right]

            preview = prompts[0][:PREVIEW_LENGTH]
            self.logger.warning(f'Skipping prompt that failed analysis: "{preview}..." ({error})')
            return []

        if use_cache:
            await self.cache.set(prompts, model, result)
        return [result]
