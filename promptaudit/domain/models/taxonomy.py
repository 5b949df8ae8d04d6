"""Predefined issue taxonomy and user rule overrides.

The taxonomy maps kebab-case issue ids to display metadata. It is used to
expand minimal provider responses into full patterns and to decide which
patterns survive a user's rules configuration.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Optional

from .analysis import PatternSeverity, RuleConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssueMetadata:
    """Display metadata for a predefined issue type."""
    name: str
    severity: PatternSeverity
    suggestion: str
    example_before: Optional[str] = None
    example_after: Optional[str] = None


IssueTaxonomy = Dict[str, IssueMetadata]

ISSUE_TAXONOMY: IssueTaxonomy = {
    "vague": IssueMetadata(
        name="Vague Request",
        severity=PatternSeverity.HIGH,
        suggestion=(
            "Be more specific about what you need - include function names, "
            "file paths, error messages, or specific behaviors"
        ),
        example_before="Help me with my code",
        example_after=(
            "Help me debug the calculateTotal() function in utils.ts that "
            "returns undefined when called with an empty array"
        ),
    ),
    "no-context": IssueMetadata(
        name="Missing Context",
        severity=PatternSeverity.HIGH,
        suggestion=(
            "Provide relevant background information - include file paths, "
            "function names, error messages, or code snippets"
        ),
        example_before="Fix the bug",
        example_after=(
            "Fix the bug in src/auth/login.ts where users are logged out after "
            "5 minutes due to token expiration logic"
        ),
    ),
    "too-broad": IssueMetadata(
        name="Too Broad",
        severity=PatternSeverity.MEDIUM,
        suggestion=(
            "Break down into smaller, focused requests - focus on one task or "
            "clearly order multiple related tasks"
        ),
        example_before="Build me an app with authentication, database, and API",
        example_after="Create a React login component with email/password authentication using JWT tokens",
    ),
    "no-goal": IssueMetadata(
        name="No Clear Goal",
        severity=PatternSeverity.HIGH,
        suggestion="State what outcome you want to achieve - specify success criteria and desired behavior",
        example_before="Look at this file",
        example_after=(
            "Review src/auth/login.ts for security vulnerabilities, focusing on "
            "input validation and SQL injection risks"
        ),
    ),
    "imperative": IssueMetadata(
        name="Command Without Context",
        severity=PatternSeverity.LOW,
        suggestion="Explain why you need this - provide context about the use case and requirements",
        example_before="Add a button",
        example_after=(
            'Add a "Submit" button to the login form that triggers validation '
            "and calls the authentication API"
        ),
    ),
    "missing-technical-details": IssueMetadata(
        name="Missing Technical Details",
        severity=PatternSeverity.MEDIUM,
        suggestion=(
            "Include technical details - file paths, function signatures, "
            "error messages, stack traces, or code snippets"
        ),
        example_before="The function crashes sometimes",
        example_after=(
            "The validateUser() function in src/utils/auth.ts crashes with "
            "\"Cannot read property 'email' of null\" when called with undefined"
        ),
    ),
    "unclear-priorities": IssueMetadata(
        name="Unclear Priorities",
        severity=PatternSeverity.LOW,
        suggestion="Order multiple requests by priority or split into separate prompts for clarity",
        example_before="Add error handling and logging and also optimize performance and add tests",
        example_after=(
            "First, add comprehensive error handling with try-catch blocks. "
            "Then, add logging for debugging. Finally, optimize database queries."
        ),
    ),
    "insufficient-constraints": IssueMetadata(
        name="Insufficient Constraints",
        severity=PatternSeverity.LOW,
        suggestion=(
            "Specify requirements and constraints - edge cases, performance "
            "needs, compatibility requirements"
        ),
        example_before="Make it faster",
        example_after=(
            "Optimize the database query to reduce response time to under "
            "100ms, maintaining backward compatibility with existing API clients"
        ),
    ),
}

VALID_PATTERN_IDS: List[str] = list(ISSUE_TAXONOMY)


def apply_rules_config(
    rules: Optional[Mapping[str, RuleConfig]],
    base_taxonomy: Optional[IssueTaxonomy] = None,
) -> IssueTaxonomy:
    """Applies a rules configuration to the taxonomy.

    Drops explicitly disabled patterns and overrides severities. Unknown
    rule ids are reported but otherwise ignored.

    Args:
        rules: Pattern id -> rule override. ``None`` or empty means no change.
        base_taxonomy: Taxonomy to filter (defaults to ``ISSUE_TAXONOMY``).

    Returns:
        A new taxonomy with the rules applied.
    """
    taxonomy = ISSUE_TAXONOMY if base_taxonomy is None else base_taxonomy
    if not rules:
        return taxonomy

    for rule_id in rules:
        if rule_id not in VALID_PATTERN_IDS:
            logger.warning(
                f'Unknown rule ID "{rule_id}" in configuration. '
                f"Valid IDs are: {', '.join(VALID_PATTERN_IDS)}"
            )

    filtered: IssueTaxonomy = {}
    for pattern_id, metadata in taxonomy.items():
        rule = rules.get(pattern_id)
        if rule is not None and rule.enabled is False:
            continue
        if rule is not None and rule.severity is not None:
            filtered[pattern_id] = replace(metadata, severity=rule.severity)
        else:
            filtered[pattern_id] = metadata

    if not filtered:
        logger.warning("All analysis rules are disabled in configuration. No patterns will be detected.")

    return filtered


def get_enabled_pattern_ids(rules: Optional[Mapping[str, RuleConfig]]) -> List[str]:
    """Lists the pattern ids that remain enabled under ``rules``."""
    return list(apply_rules_config(rules, ISSUE_TAXONOMY))
