"""
Core service orchestrating a prompt analysis run.

Sanitizes the prompts, resolves the provider's batch limits, packs the
prompts into batches, runs them through the batch executor and merges the
partial results with any previously stored per-prompt results.
"""

import logging
import re
import time
from typing import Callable, Dict, List, Mapping, Optional, Sequence

# Domain Layer Imports
from promptaudit.domain.interfaces.provider import AnalysisProvider
from promptaudit.domain.interfaces.sanitizer import Sanitizer
from promptaudit.domain.models.analysis import (
    AnalysisResult,
    Prioritization,
    ProjectContext,
    ProviderLimits,
    RulesConfig,
)
from promptaudit.domain.models.common import AnalysisDate, ModelName, PromptText
from promptaudit.domain.models.errors import AnalysisFailedError

# Core Layer Imports
from promptaudit.core.services.aggregator import merge_batch_results, merge_with_cached_results, apply_rules_to_result
from promptaudit.core.services.batch_executor import BatchExecutor
from promptaudit.core.services.batching import batch_prompts

# Infrastructure Layer Imports (Specific Implementations Injected)
from promptaudit.infrastructure.optimization.token_estimator import TokenEstimator
from promptaudit.infrastructure.sanitizer.secret_sanitizer import SecretSanitizer

ProgressCallback = Callable[[int, int], None]

# --- Provider limits (used when the provider reports none) ---
PROVIDER_LIMITS: Dict[str, ProviderLimits] = {
    # Local models have small context windows; pack big prompts first
    "ollama": ProviderLimits(max_tokens_per_batch=30000, prioritization=Prioritization.LONGEST_FIRST),
    "anthropic": ProviderLimits(max_tokens_per_batch=100000, prioritization=Prioritization.CHRONOLOGICAL),
    "google": ProviderLimits(max_tokens_per_batch=500000, prioritization=Prioritization.CHRONOLOGICAL),
}

_MODEL_IN_NAME_RE = re.compile(r"\((.*?)\)")


def infer_provider_type(provider_name: str) -> str:
    """Maps a provider's display name onto a ``PROVIDER_LIMITS`` family."""
    name = provider_name.lower()
    if "ollama" in name:
        return "ollama"
    if "anthropic" in name or "claude" in name:
        return "anthropic"
    if "google" in name or "gemini" in name:
        return "google"
    return "ollama"


def extract_model_from_provider(provider_name: str) -> ModelName:
    """Extracts the model from names like ``"Ollama (llama3.2)"``."""
    match = _MODEL_IN_NAME_RE.search(provider_name)
    return ModelName(match.group(1) if match else provider_name)


class PromptAnalysisService:
    """Orchestrates batching, execution and merging of a prompt analysis."""

    def __init__(
        self,
        batch_executor: BatchExecutor,
        sanitizer: Optional[Sanitizer] = None,
        token_estimator: Optional[TokenEstimator] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initializes the PromptAnalysisService with its dependencies."""
        self.batch_executor = batch_executor
        self.sanitizer = sanitizer or SecretSanitizer()
        self.token_estimator = token_estimator or TokenEstimator()
        self.logger = logger or logging.getLogger(__name__)

    def resolve_limits(self, provider: AnalysisProvider) -> ProviderLimits:
        """Returns the provider's own limits, or the static limits for its family."""
        limits = provider.get_batch_limits()
        if limits is not None:
            return limits
        return PROVIDER_LIMITS[infer_provider_type(provider.name)]

    async def analyze_prompts(
        self,
        provider: AnalysisProvider,
        prompts: Sequence[PromptText],
        date: AnalysisDate,
        context: Optional[ProjectContext] = None,
        rules: Optional[RulesConfig] = None,
        on_progress: Optional[ProgressCallback] = None,
        no_cache: bool = False,
        cached_results: Optional[Mapping[PromptText, AnalysisResult]] = None,
    ) -> AnalysisResult:
        """Analyzes ``prompts`` and returns a single merged result.

        Args:
            provider: Provider to send batches to.
            prompts: Prompts still needing analysis (already-stored ones
                are passed via ``cached_results``).
            date: Date the prompts belong to.
            context: Optional project context forwarded to the provider.
            rules: Optional pattern rules applied to the final result.
            on_progress: Called with ``(completed, total)`` batch counts.
            no_cache: Bypass the batch-level cache.
            cached_results: Previously stored per-prompt results to merge in.

        Raises:
            ValueError: If there are neither prompts nor cached results.
            AnalysisFailedError: If every prompt or batch failed.
            Exception: A fatal provider error, propagated unchanged.
        """
        self.logger.debug(f"Starting analysis of {len(prompts)} prompts for {date}")

        if not prompts and cached_results:
            self.logger.debug(f"Using {len(cached_results)} cached result(s), no new prompts to analyze")
            merged = merge_batch_results(list(cached_results.values()), date)
            return apply_rules_to_result(merged, rules)

        if not prompts:
            raise ValueError("Cannot analyze empty prompts array")

        if cached_results:
            total = len(prompts) + len(cached_results)
            hit_rate = len(cached_results) / total * 100
            self.logger.debug(
                f"Results cache: {len(cached_results)} cached, {len(prompts)} to analyze ({hit_rate:.1f}% hit rate)"
            )

        # Step 1: Sanitize
        sanitized = self.sanitizer.sanitize_prompts(prompts)
        if sanitized.total_redacted > 0:
            self.logger.debug(f"Sanitizer redacted {sanitized.total_redacted} secrets")

        # Step 2: Limits
        limits = self.resolve_limits(provider)
        if limits.max_prompts_per_batch:
            limits_info = f"{limits.max_tokens_per_batch} tokens/batch, max {limits.max_prompts_per_batch} prompts/batch"
        else:
            limits_info = f"{limits.max_tokens_per_batch} tokens/batch"
        self.logger.debug(f"Using batch limits: {limits_info}")

        # Step 3: Batch
        batches = batch_prompts(
            sanitized.prompts,
            max_tokens_per_batch=limits.max_tokens_per_batch,
            prioritization=limits.prioritization,
            max_prompts_per_batch=limits.max_prompts_per_batch,
            token_estimator=self.token_estimator,
        )
        self.logger.debug(f"Created {len(batches)} batch(es) for analysis")

        model = extract_model_from_provider(provider.name)
        results: List[AnalysisResult] = []

        # Step 4: Execute
        if len(batches) == 1:
            batch = batches[0]
            if on_progress:
                on_progress(0, 1)

            self.logger.debug(f"Processing single batch ({batch.tokens} tokens, {len(batch)} prompts)")
            start_time = time.monotonic()
            results = await self.batch_executor.analyze_batch(
                provider, batch.prompts, date, context, model, no_cache
            )
            self.logger.debug(f"Batch completed in {(time.monotonic() - start_time) * 1000:.0f}ms")

            if on_progress:
                on_progress(1, 1)

            if not results:
                raise AnalysisFailedError("All prompts failed analysis")
        else:
            total_batches = len(batches)
            for i, batch in enumerate(batches):
                if on_progress:
                    on_progress(i, total_batches)

                self.logger.debug(
                    f"Processing batch {i + 1}/{total_batches} ({batch.tokens} tokens, {len(batch)} prompts)"
                )
                start_time = time.monotonic()
                batch_results = await self.batch_executor.analyze_batch(
                    provider, batch.prompts, date, context, model, no_cache
                )
                results.extend(batch_results)
                self.logger.debug(
                    f"Batch {i + 1}/{total_batches} completed in "
                    f"{(time.monotonic() - start_time) * 1000:.0f}ms ({len(batch_results)} result(s))"
                )

            if on_progress:
                on_progress(total_batches, total_batches)

            if not results:
                raise AnalysisFailedError("All batches failed analysis")

        # Step 5: Merge
        self.logger.debug(f"Analysis complete, merging {len(results)} result(s) with cached results")
        return merge_with_cached_results(results, cached_results, date, rules)
