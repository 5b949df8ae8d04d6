"""System prompts sent to analysis providers, and their fingerprint.

The fingerprint (SHA-256 of the full system prompt) is part of every cache
key: editing the instructions silently invalidates all cached results.
"""

import hashlib

from promptaudit.domain.models.taxonomy import VALID_PATTERN_IDS

# Lightweight instructions for small models: issue ids plus a score only.
SYSTEM_PROMPT_MINIMAL = f"""You analyze prompts for quality issues.
Respond with JSON only: {{"issues": ["issue-id", ...], "score": 0-100}}

Valid issue IDs: {", ".join(VALID_PATTERN_IDS)}

Issue definitions:
- vague: Generic requests without specifics ("help", "fix", "improve")
- no-context: Refers to "this", "it" or "the bug" without background
- too-broad: Covers several unrelated topics at once
- no-goal: No clear success criteria or desired outcome
- imperative: A command with no explanation of why
- missing-technical-details: No file paths, function names or error messages
- unclear-priorities: Several requests with no ordering
- insufficient-constraints: No requirements or edge cases

Scoring: 0-100 (100=perfect, 90+=excellent, 70-89=good, 50-69=fair, <50=poor)"""

SYSTEM_PROMPT_FULL = """You are an expert prompt quality analyst for code-related prompts written to AI assistants.
Identify the patterns that make the prompts less effective and propose concrete improvements.

Return ONLY valid JSON with this exact schema, no markdown and no commentary:
{
  "patterns": [
    {
      "id": "kebab-case-id",
      "name": "Human-Readable Issue Name",
      "frequency": 3,
      "severity": "high|medium|low",
      "examples": ["example prompt 1", "example prompt 2"],
      "suggestion": "Actionable advice to fix this pattern",
      "beforeAfter": {"before": "Original prompt", "after": "Improved prompt"}
    }
  ],
  "stats": {"totalPrompts": 10, "promptsWithIssues": 7, "overallScore": 65},
  "topSuggestion": "Single most impactful recommendation"
}

Evaluate specificity, context, goal clarity, scope, actionability, technical
detail, priorities and constraints. Use the issue ids vague, no-context,
too-broad, no-goal, imperative, missing-technical-details, unclear-priorities
and insufficient-constraints where they apply. Quote real prompts as examples,
at most three per pattern, and report at most five patterns ordered by impact.
overallScore is 0-100 where 100 means every prompt was specific and actionable."""

SYSTEM_PROMPT = SYSTEM_PROMPT_FULL


def hash_string(value: str) -> str:
    """SHA-256 hex digest of a UTF-8 string. Lone surrogates are hashed as-is."""
    return hashlib.sha256(value.encode("utf-8", "surrogatepass")).hexdigest()


def hash_system_prompt(system_prompt: str = SYSTEM_PROMPT) -> str:
    """Fingerprint of the instruction text, used for cache invalidation."""
    return hash_string(system_prompt)
