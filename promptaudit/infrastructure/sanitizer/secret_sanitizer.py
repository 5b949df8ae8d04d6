"""Redacts secrets from prompts before they are sent to a provider.

Each pattern replaces its match with a ``[REDACTED_*]`` token. The number
of redactions reported is the number of such tokens in the output.
"""

import logging
import re
from typing import List, Optional, Pattern, Sequence, Tuple

from promptaudit.domain.interfaces.sanitizer import SanitizeResult, Sanitizer
from promptaudit.domain.models.common import PromptText

REDACTION_TOKEN_RE = re.compile(r"\[REDACTED_[^\]]+\]")

# Applied in order. Anthropic keys go first because they also start with "sk-".
SECRET_PATTERNS: Tuple[Tuple[Pattern[str], str], ...] = (
    (re.compile(r"sk-ant-[a-zA-Z0-9-]+"), "[REDACTED_ANTHROPIC_KEY]"),
    (re.compile(r"sk-[a-zA-Z0-9]{48,}"), "[REDACTED_OPENAI_KEY]"),
    (re.compile(r"AKIA[0-9A-Z]{16}"), "[REDACTED_AWS_KEY]"),
    (re.compile(r"Bearer(?:\s+token)?:?\s+[a-zA-Z0-9._-]{20,}", re.IGNORECASE), "Bearer [REDACTED_TOKEN]"),
    (re.compile(r"(https?://)[^:\s@/]+(?::[^\s@/]+)?@"), r"\1[REDACTED_URL_CREDENTIAL]@"),
    (re.compile(r"[a-zA-Z0-9._+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"), "[REDACTED_EMAIL]"),
    (
        re.compile(r"-----BEGIN\s+[A-Z\s]+PRIVATE\s+KEY-----[\s\S]*?-----END\s+[A-Z\s]+PRIVATE\s+KEY-----"),
        "[REDACTED_PEM_KEY]",
    ),
)


def count_redactions(text: str) -> int:
    return len(REDACTION_TOKEN_RE.findall(text))


def sanitize_text(text: str) -> str:
    """Applies every secret pattern to ``text``."""
    for pattern, replacement in SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SecretSanitizer(Sanitizer):
    """Regex-based sanitizer for API keys, tokens, credentials and emails."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def sanitize_prompts(self, prompts: Sequence[PromptText]) -> SanitizeResult:
        sanitized: List[PromptText] = []
        total_redacted = 0
        for prompt in prompts:
            clean = sanitize_text(prompt)
            # Only count tokens this pass introduced
            total_redacted += max(count_redactions(clean) - count_redactions(prompt), 0)
            sanitized.append(PromptText(clean))

        if total_redacted:
            self.logger.debug(f"Redacted {total_redacted} secret(s) from {len(prompts)} prompt(s)")
        return SanitizeResult(prompts=sanitized, total_redacted=total_redacted)
