import pytest

from promptaudit.domain.models.analysis import MinimalResult, PatternSeverity
from promptaudit.domain.models.taxonomy import ISSUE_TAXONOMY
from promptaudit.infrastructure.providers.minimal_results import (
    aggregate_minimal_results,
    convert_minimal_to_analysis_result,
    lookup_issue_metadata,
    normalize_score,
)

DATE = "2025-01-15"


@pytest.mark.parametrize("score, expected", [(0, 0), (72, 7.2), (100, 10), (150, 10), (-5, 0)])
def test_normalize_score_clamps(score, expected):
    assert normalize_score(score) == pytest.approx(expected)


def test_unknown_issue_gets_generated_metadata():
    metadata = lookup_issue_metadata("slow-response-time", ISSUE_TAXONOMY)

    assert metadata.name == "Slow Response Time"
    assert metadata.severity is PatternSeverity.MEDIUM
    assert metadata.suggestion == "Review this pattern"


def test_convert_without_issues():
    result = convert_minimal_to_analysis_result(MinimalResult(issues=[], score=95), DATE, ISSUE_TAXONOMY)

    assert result.patterns == []
    assert result.top_suggestion == "Your prompts look good!"
    assert result.stats.prompts_with_issues == 0
    assert result.stats.total_prompts == 1


def test_convert_keeps_top_five_by_count():
    issues = ["vague", "vague", "no-goal", "too-broad", "imperative", "no-context", "unclear-priorities"]

    result = convert_minimal_to_analysis_result(MinimalResult(issues=issues, score=40), DATE, ISSUE_TAXONOMY)

    assert len(result.patterns) == 5
    assert result.patterns[0].id == "vague"
    assert result.patterns[0].examples == [ISSUE_TAXONOMY["vague"].example_before]
    assert result.top_suggestion == ISSUE_TAXONOMY["vague"].suggestion


def test_aggregate_combines_frequencies_and_averages_score():
    results = [
        MinimalResult(issues=["vague"], score=40),
        MinimalResult(issues=["vague", "no-goal"], score=60),
        MinimalResult(issues=[], score=80),
    ]

    result = aggregate_minimal_results(results, DATE, ISSUE_TAXONOMY)

    assert {p.id: p.frequency for p in result.patterns} == {"vague": 2, "no-goal": 1}
    assert result.stats.total_prompts == 3
    assert result.stats.prompts_with_issues == 2
    assert result.stats.overall_score == pytest.approx(6.0)


def test_aggregate_empty_raises():
    with pytest.raises(ValueError, match="Cannot aggregate empty results"):
        aggregate_minimal_results([], DATE, ISSUE_TAXONOMY)
