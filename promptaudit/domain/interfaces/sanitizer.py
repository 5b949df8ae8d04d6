"""Interface for secret redaction applied before prompts leave the machine."""

import abc
from dataclasses import dataclass
from typing import List, Sequence

from ..models.common import PromptText


@dataclass
class SanitizeResult:
    """Redacted prompts (same length and order) and the number of redactions."""
    prompts: List[PromptText]
    total_redacted: int


class Sanitizer(abc.ABC):
    """Abstract Base Class for prompt sanitizers."""

    @abc.abstractmethod
    def sanitize_prompts(self, prompts: Sequence[PromptText]) -> SanitizeResult:
        """Replaces secrets in every prompt with redaction tokens."""
        pass
