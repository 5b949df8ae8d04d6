import pytest
from unittest.mock import MagicMock

from promptaudit.core.services.analysis_service import (
    PROVIDER_LIMITS,
    PromptAnalysisService,
    extract_model_from_provider,
    infer_provider_type,
)
from promptaudit.core.services.batch_executor import BatchExecutor
from promptaudit.domain.models.analysis import Prioritization, ProviderLimits, RuleConfig
from promptaudit.domain.models.common import AnalysisDate
from promptaudit.domain.models.errors import AnalysisFailedError

DATE = AnalysisDate("2025-01-15")

# Two 8000-char prompts fill one batch under this limit, so three make two batches
SMALL_LIMITS = ProviderLimits(max_tokens_per_batch=6000, prioritization=Prioritization.CHRONOLOGICAL)


@pytest.fixture
def service():
    """PromptAnalysisService with a real, cache-less executor."""
    return PromptAnalysisService(batch_executor=BatchExecutor(cache=None))


@pytest.fixture
def ok_behavior(make_result):
    def _behavior(prompts):
        return make_result(total=len(prompts), with_issues=len(prompts), score=6)
    return _behavior


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Ollama (llama3.2)", "ollama"),
        ("Anthropic (claude-3-5-haiku)", "anthropic"),
        ("Claude", "anthropic"),
        ("Google (gemini-1.5-flash)", "google"),
        ("Gemini", "google"),
        ("Something Else", "ollama"),
    ],
)
def test_infer_provider_type(name, expected):
    assert infer_provider_type(name) == expected


def test_extract_model_from_provider():
    assert extract_model_from_provider("Ollama (llama3.2)") == "llama3.2"
    assert extract_model_from_provider("Anthropic (a) (b)") == "a"
    assert extract_model_from_provider("Ollama") == "Ollama"


def test_resolve_limits_prefers_provider_limits(service, fake_provider_cls, ok_behavior):
    provider = fake_provider_cls(ok_behavior, name="Claude (x)", limits=SMALL_LIMITS)

    assert service.resolve_limits(provider) is SMALL_LIMITS


def test_resolve_limits_falls_back_to_static_table(service, fake_provider_cls, ok_behavior):
    provider = fake_provider_cls(ok_behavior, name="Google (gemini-1.5-pro)")

    limits = service.resolve_limits(provider)

    assert limits is PROVIDER_LIMITS["google"]
    assert limits.max_tokens_per_batch == 500000
    assert PROVIDER_LIMITS["ollama"].prioritization is Prioritization.LONGEST_FIRST


@pytest.mark.asyncio
async def test_empty_prompts_without_cache_raises(service, fake_provider_cls, ok_behavior):
    with pytest.raises(ValueError, match="Cannot analyze empty prompts array"):
        await service.analyze_prompts(fake_provider_cls(ok_behavior), [], DATE)


@pytest.mark.asyncio
async def test_empty_prompts_with_cached_results_merges_cache(service, fake_provider_cls, ok_behavior, make_result):
    provider = fake_provider_cls(ok_behavior)
    cached = {"a": make_result(total=1), "b": make_result(total=1)}

    result = await service.analyze_prompts(provider, [], DATE, cached_results=cached)

    assert provider.calls == []
    assert result.stats.total_prompts == 2
    assert result.date == DATE


@pytest.mark.asyncio
async def test_single_batch_reports_progress(service, fake_provider_cls, ok_behavior):
    progress = []

    result = await service.analyze_prompts(
        fake_provider_cls(ok_behavior), ["p1", "p2"], DATE, on_progress=lambda c, t: progress.append((c, t))
    )

    assert progress == [(0, 1), (1, 1)]
    assert result.stats.total_prompts == 2


@pytest.mark.asyncio
async def test_multiple_batches_run_in_order_with_progress(service, fake_provider_cls, ok_behavior):
    provider = fake_provider_cls(ok_behavior, limits=SMALL_LIMITS)
    prompts = ["a" * 8000, "b" * 8000, "c" * 8000]
    progress = []

    result = await service.analyze_prompts(
        provider, prompts, DATE, on_progress=lambda c, t: progress.append((c, t))
    )

    assert provider.calls == [prompts[:2], prompts[2:]]
    assert progress == [(0, 2), (1, 2), (2, 2)]
    assert result.stats.total_prompts == 3
    assert result.stats.overall_score == 6


@pytest.mark.asyncio
async def test_all_prompts_failing_raises(service, fake_provider_cls):
    def behavior(prompts):
        raise RuntimeError("Failed to parse response")

    with pytest.raises(AnalysisFailedError, match="All prompts failed analysis"):
        await service.analyze_prompts(fake_provider_cls(behavior), ["p1", "p2"], DATE)


@pytest.mark.asyncio
async def test_all_batches_failing_raises(service, fake_provider_cls):
    def behavior(prompts):
        raise RuntimeError("Request timeout")

    provider = fake_provider_cls(behavior, limits=SMALL_LIMITS)

    with pytest.raises(AnalysisFailedError, match="All batches failed analysis"):
        await service.analyze_prompts(provider, ["a" * 8000, "b" * 8000, "c" * 8000], DATE)


@pytest.mark.asyncio
async def test_fatal_error_propagates(service, fake_provider_cls):
    def behavior(prompts):
        raise ConnectionRefusedError("connection refused")

    with pytest.raises(ConnectionRefusedError):
        await service.analyze_prompts(fake_provider_cls(behavior), ["p1"], DATE)


@pytest.mark.asyncio
async def test_prompts_are_sanitized_before_sending(service, fake_provider_cls, ok_behavior):
    provider = fake_provider_cls(ok_behavior)

    await service.analyze_prompts(provider, ["email me at dev@example.com"], DATE)

    assert provider.calls == [["email me at [REDACTED_EMAIL]"]]


@pytest.mark.asyncio
async def test_new_results_are_merged_with_cached_results(service, fake_provider_cls, ok_behavior, make_result):
    cached = {"old": make_result(total=1, with_issues=0, score=8)}

    result = await service.analyze_prompts(
        fake_provider_cls(ok_behavior), ["new"], DATE, cached_results=cached
    )

    assert result.stats.total_prompts == 2
    assert result.stats.prompts_with_issues == 1
    assert result.stats.overall_score == 7


@pytest.mark.asyncio
async def test_rules_are_applied_to_final_result(service, fake_provider_cls, make_result, make_pattern):
    def behavior(prompts):
        return make_result(patterns=[make_pattern("vague"), make_pattern("imperative")])

    result = await service.analyze_prompts(
        fake_provider_cls(behavior), ["p1"], DATE, rules={"vague": RuleConfig(enabled=False)}
    )

    assert [p.id for p in result.patterns] == ["imperative"]


@pytest.mark.asyncio
async def test_executor_receives_model_and_flags(fake_provider_cls, ok_behavior, make_result, mocker):
    executor = MagicMock(spec=BatchExecutor)
    executor.analyze_batch = mocker.AsyncMock(return_value=[make_result()])
    service = PromptAnalysisService(batch_executor=executor)

    await service.analyze_prompts(fake_provider_cls(ok_behavior), ["p1"], DATE, no_cache=True)

    executor.analyze_batch.assert_awaited_once()
    args = executor.analyze_batch.await_args.args
    assert tuple(args[1]) == ("p1",)
    assert args[2] == DATE
    assert args[4] == "llama3.2"
    assert args[5] is True
