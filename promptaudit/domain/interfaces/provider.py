"""Interface for analysis providers (local or hosted language models).

Defines the contract for turning a batch of prompts into an
AnalysisResult. Concrete providers live outside this package.
"""

import abc
from typing import Optional, Sequence

from ..models.analysis import AnalysisResult, ProjectContext, ProviderLimits
from ..models.common import AnalysisDate, PromptText


class AnalysisProvider(abc.ABC):
    """Abstract Base Class for prompt analysis providers."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Display name, conventionally "Provider (model)", e.g. "Ollama (llama3.2)"."""
        pass

    @abc.abstractmethod
    async def is_available(self) -> bool:
        """Checks whether the provider can currently serve requests."""
        pass

    @abc.abstractmethod
    async def analyze(
        self,
        prompts: Sequence[PromptText],
        date: AnalysisDate,
        context: Optional[ProjectContext] = None,
    ) -> AnalysisResult:
        """Analyzes a batch of prompts asynchronously.

        Args:
            prompts: The batch of prompts to analyze.
            date: Date context for the analysis.
            context: Optional project context.

        Returns:
            An AnalysisResult for the whole batch.

        Raises:
            ProviderError: Preferred, carries an explicit failure kind.
            Exception: Any other failure; classified from its message.
        """
        pass

    def get_batch_limits(self) -> Optional[ProviderLimits]:
        """Returns dynamic batch limits, or None to use the static table."""
        return None
