"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or concepts like prompts, dates,
token counts and cache keys, ensuring consistency and type safety.
"""

from dataclasses import dataclass
from typing import NewType

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
PromptText = NewType("PromptText", str)        # Free-text prompt extracted from logs
AnalysisDate = NewType("AnalysisDate", str)    # Date bucket, always YYYY-MM-DD
ModelName = NewType("ModelName", str)          # Model identifier, e.g. "llama3.2"
SchemaType = NewType("SchemaType", str)        # 'minimal', 'simple', 'full' or 'individual'

# === Token Management ===
TokenCount = NewType("TokenCount", int)        # Number of (estimated) tokens

# === Caching Context ===
CacheKey = NewType("CacheKey", str)            # Key of a batch-level cache entry


@dataclass(frozen=True)
class PromptResultKey:
    """Content address of a single persisted prompt result.

    Wraps the SHA-256 hex digest so it cannot be mixed up with a batch
    level ``CacheKey``.
    """
    digest: str

    @property
    def filename(self) -> str:
        return f"{self.digest}.json"

    @property
    def short(self) -> str:
        """Abbreviated digest for log lines."""
        return f"{self.digest[:8]}..."

    def __str__(self) -> str:
        return self.digest


SCHEMA_MINIMAL = SchemaType("minimal")
SCHEMA_SIMPLE = SchemaType("simple")
SCHEMA_FULL = SchemaType("full")
SCHEMA_INDIVIDUAL = SchemaType("individual")
