"""Error types shared by the analysis pipeline.

Provider failures are normalized into a tagged ``ProviderError`` at the
provider boundary. Its ``kind`` decides whether the batch executor may
split and retry (``retryable``) or must propagate (fatal).
"""

from enum import Enum
from typing import Optional, Tuple


class FailureKind(str, Enum):
    """Classification of a provider failure."""
    PARSE = "parse"
    SCHEMA = "schema"
    JSON = "json"
    TIMEOUT = "timeout"
    NETWORK = "network"
    FAILED = "failed"
    FATAL = "fatal"

    @property
    def retryable(self) -> bool:
        return self is not FailureKind.FATAL


# Keyword -> kind, checked in this order against the lowercased message.
RETRYABLE_KEYWORDS: Tuple[Tuple[str, FailureKind], ...] = (
    ("parse", FailureKind.PARSE),
    ("schema", FailureKind.SCHEMA),
    ("json", FailureKind.JSON),
    ("timeout", FailureKind.TIMEOUT),
    ("network", FailureKind.NETWORK),
    ("failed", FailureKind.FAILED),
)


class ProviderError(Exception):
    """Failure raised by (or normalized from) an analysis provider."""

    def __init__(self, kind: FailureKind, message: str, cause: Optional[BaseException] = None):
        self.kind = kind
        self.cause = cause
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def __repr__(self) -> str:
        return f"ProviderError(kind={self.kind.value!r}, message={str(self)!r})"


class AnalysisFailedError(RuntimeError):
    """Raised when every prompt or batch of a run failed analysis."""


def classify_kind(message: str) -> FailureKind:
    """Maps an error message onto a ``FailureKind`` by keyword."""
    lowered = message.lower()
    for keyword, kind in RETRYABLE_KEYWORDS:
        if keyword in lowered:
            return kind
    return FailureKind.FATAL


def classify_error(error: BaseException) -> ProviderError:
    """Normalizes any exception into a ``ProviderError``.

    A ``ProviderError`` passes through untouched. Anything else is
    classified from its message, so a genuinely fatal error whose text
    happens to contain a trigger word is still treated as retryable.
    """
    if isinstance(error, ProviderError):
        return error
    return ProviderError(classify_kind(str(error)), str(error), cause=error)
