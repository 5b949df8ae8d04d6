import logging

import pytest
from typer.testing import CliRunner

from promptaudit.domain.interfaces.provider import AnalysisProvider
from promptaudit.domain.models.analysis import (
    AnalysisPattern,
    AnalysisResult,
    AnalysisStats,
    BeforeAfter,
    PatternSeverity,
)
from promptaudit.domain.models.common import AnalysisDate
from promptaudit.infrastructure.config.settings import clear_test_config


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_logging_and_config():
    """The CLI reconfigures the root logger; put it back after every test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    clear_test_config()


@pytest.fixture
def make_pattern():
    """Factory for AnalysisPattern with sensible defaults."""
    def _make(
        pattern_id="vague",
        frequency=1,
        severity=PatternSeverity.MEDIUM,
        examples=None,
        suggestion=None,
        name=None,
    ):
        return AnalysisPattern(
            id=pattern_id,
            name=name or pattern_id.title(),
            frequency=frequency,
            severity=severity,
            examples=list(examples) if examples is not None else [f"{pattern_id} example"],
            suggestion=suggestion or f"Fix {pattern_id}",
            before_after=BeforeAfter(before="before", after="after"),
        )
    return _make


@pytest.fixture
def make_result(make_pattern):
    """Factory for AnalysisResult; ``patterns`` defaults to a single 'vague' pattern."""
    def _make(patterns=None, total=1, with_issues=1, score=50, date="2025-01-01", top_suggestion="Be specific"):
        return AnalysisResult(
            date=AnalysisDate(date),
            patterns=[make_pattern()] if patterns is None else list(patterns),
            stats=AnalysisStats(total_prompts=total, prompts_with_issues=with_issues, overall_score=score),
            top_suggestion=top_suggestion,
        )
    return _make


class FakeProvider(AnalysisProvider):
    """Scriptable provider: ``behavior(prompts)`` returns a result or raises."""

    def __init__(self, behavior, name="Ollama (llama3.2)", limits=None):
        self._behavior = behavior
        self._name = name
        self._limits = limits
        self.calls = []

    @property
    def name(self):
        return self._name

    async def is_available(self):
        return True

    async def analyze(self, prompts, date, context=None):
        self.calls.append(list(prompts))
        return self._behavior(list(prompts))

    def get_batch_limits(self):
        return self._limits


@pytest.fixture
def fake_provider_cls():
    return FakeProvider
