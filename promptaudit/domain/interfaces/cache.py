"""Interface for the batch-level analysis cache.

Defines the contract for storing and retrieving whole-batch results keyed
by the batch's prompts and the model that analyzed them.
"""

import abc
from typing import Optional, Sequence

from ..models.analysis import AnalysisResult
from ..models.common import ModelName, PromptText


class BatchResultCache(abc.ABC):
    """Abstract Base Class for batch result caching."""

    @abc.abstractmethod
    async def get(self, prompts: Sequence[PromptText], model: ModelName) -> Optional[AnalysisResult]:
        """Retrieves the cached result for exactly this batch, or None on a miss.

        Implementations must collapse every read problem into a miss.
        """
        pass

    @abc.abstractmethod
    async def set(self, prompts: Sequence[PromptText], model: ModelName, result: AnalysisResult) -> None:
        """Stores a batch result. Failures are logged, never raised."""
        pass
