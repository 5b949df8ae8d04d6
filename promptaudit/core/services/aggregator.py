"""
Merges partial analysis results into one report.

Partial results come from separate batches, from split-retry halves and
from previously stored per-prompt results. Patterns are grouped by id,
frequencies and scores averaged, and the report is trimmed to the most
severe, most frequent patterns.
"""

import logging
import math
from collections import OrderedDict
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence

from promptaudit.domain.models.analysis import (
    AnalysisPattern,
    AnalysisResult,
    AnalysisStats,
    RulesConfig,
)
from promptaudit.domain.models.common import AnalysisDate, PromptText
from promptaudit.domain.models.taxonomy import ISSUE_TAXONOMY, apply_rules_config

logger = logging.getLogger(__name__)

MAX_PATTERNS = 5
MAX_EXAMPLES_PER_PATTERN = 3
NO_SUGGESTIONS = "No suggestions available"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _sort_key(pattern: AnalysisPattern):
    return (-pattern.severity.rank, -pattern.frequency)


def _cap_examples(pattern: AnalysisPattern) -> AnalysisPattern:
    return replace(pattern, examples=list(pattern.examples[:MAX_EXAMPLES_PER_PATTERN]))


def _merge_group(group: List[AnalysisPattern]) -> AnalysisPattern:
    """Combines same-id patterns; display fields come from the first."""
    first = group[0]
    if len(group) == 1:
        return _cap_examples(first)

    examples = [example for pattern in group for example in pattern.examples]
    return replace(
        first,
        frequency=_round_half_up(sum(p.frequency for p in group) / len(group)),
        severity=max((p.severity for p in group), key=lambda s: s.rank),
        examples=examples[:MAX_EXAMPLES_PER_PATTERN],
    )


def merge_batch_results(results: Sequence[AnalysisResult], date: AnalysisDate) -> AnalysisResult:
    """Merges several partial results into a single result for ``date``.

    Raises:
        ValueError: If ``results`` is empty.
    """
    if not results:
        raise ValueError("Cannot merge empty results array")

    if len(results) == 1:
        result = results[0]
        patterns = sorted((_cap_examples(p) for p in result.patterns), key=_sort_key)[:MAX_PATTERNS]
        return AnalysisResult(
            date=date,
            patterns=patterns,
            stats=replace(result.stats),
            top_suggestion=patterns[0].suggestion if patterns else result.top_suggestion,
        )

    # Insertion order keeps the first occurrence of each id as the group head
    groups: Dict[str, List[AnalysisPattern]] = OrderedDict()
    for result in results:
        for pattern in result.patterns:
            groups.setdefault(pattern.id, []).append(pattern)

    patterns = sorted((_merge_group(group) for group in groups.values()), key=_sort_key)[:MAX_PATTERNS]

    stats = AnalysisStats(
        total_prompts=sum(r.stats.total_prompts for r in results),
        prompts_with_issues=sum(r.stats.prompts_with_issues for r in results),
        overall_score=_round_half_up(sum(r.stats.overall_score for r in results) / len(results)),
    )

    if patterns:
        top_suggestion = patterns[0].suggestion
    else:
        top_suggestion = results[0].top_suggestion or NO_SUGGESTIONS

    logger.debug(f"Merged {len(results)} results into {len(patterns)} pattern(s)")
    return AnalysisResult(date=date, patterns=patterns, stats=stats, top_suggestion=top_suggestion)


def apply_rules_to_result(result: AnalysisResult, rules: Optional[RulesConfig]) -> AnalysisResult:
    """Drops disabled patterns and applies severity overrides."""
    if not rules:
        return result

    enabled = apply_rules_config(rules, ISSUE_TAXONOMY).keys()
    patterns: List[AnalysisPattern] = []
    for pattern in result.patterns:
        if pattern.id not in enabled:
            continue
        rule = rules.get(pattern.id)
        if rule is not None and rule.severity is not None:
            pattern = replace(pattern, severity=rule.severity)
        patterns.append(pattern)

    return replace(
        result,
        patterns=patterns,
        top_suggestion=patterns[0].suggestion if patterns else result.top_suggestion,
    )


def merge_with_cached_results(
    new_results: Sequence[AnalysisResult],
    cached: Optional[Mapping[PromptText, AnalysisResult]],
    date: AnalysisDate,
    rules: Optional[RulesConfig] = None,
) -> AnalysisResult:
    """Combines fresh results with stored per-prompt results, then applies rules.

    Raises:
        ValueError: If there is nothing to merge.
    """
    if not cached:
        if len(new_results) == 1:
            return apply_rules_to_result(new_results[0], rules)
        return apply_rules_to_result(merge_batch_results(new_results, date), rules)

    merged = merge_batch_results([*cached.values(), *new_results], date)
    return apply_rules_to_result(merged, rules)
