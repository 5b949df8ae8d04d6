"""Converts minimal provider responses into full AnalysisResults.

Small models only return issue ids and a 0-100 score. The issue taxonomy
supplies the names, severities, suggestions and examples needed to build
complete patterns.
"""

from collections import Counter
from typing import List, Sequence

from promptaudit.domain.models.analysis import (
    AnalysisPattern,
    AnalysisResult,
    AnalysisStats,
    BeforeAfter,
    MinimalResult,
    PatternSeverity,
)
from promptaudit.domain.models.common import AnalysisDate
from promptaudit.domain.models.taxonomy import IssueMetadata, IssueTaxonomy

MAX_MINIMAL_PATTERNS = 5
NO_ISSUES_SUGGESTION = "Your prompts look good!"


def normalize_score(score100: float) -> float:
    """Maps a 0-100 score onto the 0-10 display scale, clamped."""
    return max(0.0, min(10.0, score100 / 10))


def _title_case(issue_id: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in issue_id.split("-"))


def lookup_issue_metadata(issue_id: str, taxonomy: IssueTaxonomy) -> IssueMetadata:
    """Returns taxonomy metadata, or generated metadata for unknown ids."""
    if issue_id in taxonomy:
        return taxonomy[issue_id]
    return IssueMetadata(
        name=_title_case(issue_id),
        severity=PatternSeverity.MEDIUM,
        suggestion="Review this pattern",
    )


def _patterns_from_counts(counts: Counter, taxonomy: IssueTaxonomy) -> List[AnalysisPattern]:
    patterns = []
    # most_common keeps first-seen order for ties
    for issue_id, count in counts.most_common(MAX_MINIMAL_PATTERNS):
        metadata = lookup_issue_metadata(issue_id, taxonomy)
        patterns.append(
            AnalysisPattern(
                id=issue_id,
                name=metadata.name,
                frequency=count,
                severity=metadata.severity,
                examples=[metadata.example_before] if metadata.example_before else [],
                suggestion=metadata.suggestion,
                before_after=BeforeAfter(
                    before=metadata.example_before or "Example not available",
                    after=metadata.example_after or metadata.suggestion,
                ),
            )
        )
    return patterns


def convert_minimal_to_analysis_result(
    minimal: MinimalResult, date: AnalysisDate, taxonomy: IssueTaxonomy
) -> AnalysisResult:
    """Converts one minimal result (a single prompt) into an AnalysisResult."""
    patterns = _patterns_from_counts(Counter(minimal.issues), taxonomy)
    return AnalysisResult(
        date=date,
        patterns=patterns,
        stats=AnalysisStats(
            total_prompts=1,
            prompts_with_issues=1 if minimal.issues else 0,
            overall_score=normalize_score(minimal.score),
        ),
        top_suggestion=patterns[0].suggestion if patterns else NO_ISSUES_SUGGESTION,
    )


def aggregate_minimal_results(
    results: Sequence[MinimalResult], date: AnalysisDate, taxonomy: IssueTaxonomy
) -> AnalysisResult:
    """Aggregates several minimal results, combining issue frequencies.

    Raises:
        ValueError: If ``results`` is empty.
    """
    if not results:
        raise ValueError("Cannot aggregate empty results")
    if len(results) == 1:
        return convert_minimal_to_analysis_result(results[0], date, taxonomy)

    counts: Counter = Counter()
    for result in results:
        counts.update(result.issues)

    patterns = _patterns_from_counts(counts, taxonomy)
    average_score = sum(r.score for r in results) / len(results)

    return AnalysisResult(
        date=date,
        patterns=patterns,
        stats=AnalysisStats(
            total_prompts=len(results),
            prompts_with_issues=sum(1 for r in results if r.issues),
            overall_score=normalize_score(average_score),
        ),
        top_suggestion=patterns[0].suggestion if patterns else NO_ISSUES_SUGGESTION,
    )
